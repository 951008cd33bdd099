from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_current_user, get_optional_user
from app.models import User
from app.schemas import (
    ArticleCreate,
    ArticleEnvelope,
    ArticleList,
    ArticleUpdate,
    CommentCreate,
    CommentEnvelope,
    CommentsEnvelope,
)
from app.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("", response_model=ArticleList)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: PaginationParams = Depends(),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db,
        tag=tag,
        author=author,
        favorited=favorited,
        limit=pagination.limit,
        offset=pagination.offset,
        viewer_id=viewer.id if viewer else None,
    )


@router.get("/feed", response_model=ArticleList)
async def get_feed(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_feed(db, user.id, pagination.limit, pagination.offset)


@router.post("", status_code=201, response_model=ArticleEnvelope)
async def create_article(
    data: ArticleCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.create_article(db, data, user)}


@router.get("/{slug}", response_model=ArticleEnvelope)
async def get_article(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer.id if viewer else None)}


@router.put("/{slug}", response_model=ArticleEnvelope)
async def update_article(
    slug: str,
    data: ArticleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.update_article(db, slug, data, user)}


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, user)


@router.post("/{slug}/favorite", response_model=ArticleEnvelope)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, slug, user.id)}


@router.delete("/{slug}/favorite", response_model=ArticleEnvelope)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, slug, user.id)}


@router.get("/{slug}/comments", response_model=CommentsEnvelope)
async def list_comments(
    slug: str,
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.get_comments(db, slug, viewer.id if viewer else None)}


@router.post("/{slug}/comments", status_code=201, response_model=CommentEnvelope)
async def add_comment(
    slug: str,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, slug, data, user)}


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, user.username)
