import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import create_tables
from app.exceptions import ConduitError
from app.middleware import RequestTimingMiddleware
from app.routers import articles, profiles, tags, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()
        logger.info("Database schema ensured")
    yield


app = FastAPI(
    title="Conduit API",
    description="Social blogging backend: articles, comments, tags, follows and favorites",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    logger.warning(
        "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.message}, headers=headers
    )


# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
