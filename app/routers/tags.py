from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas import TagsResponse
from app.services import article_service

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("", response_model=TagsResponse)
async def list_tags(db: AsyncSession = Depends(get_db)):
    return TagsResponse(tags=await article_service.get_tags(db))
