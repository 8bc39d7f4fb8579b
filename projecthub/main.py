"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from .config import settings
from .database import create_tables
from .routers import archives_router, comments_router, issues_router, notifications_router
from .services.redis_service import redis_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def _connect_redis() -> None:
    try:
        await redis_service.connect()
    except Exception as e:
        if settings.redis_required:
            logger.error(f"Redis unavailable and REDIS_REQUIRED is set: {e}")
            raise RuntimeError(f"Redis is required for project locks: {e}") from e
        logger.warning(f"Redis unavailable, archive/restore will run without project locks: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await create_tables()
        logger.info("Document table ready")
    await _connect_redis()

    yield

    await redis_service.disconnect()


app = FastAPI(
    title="ProjectHub API",
    description="Projects, issues and todos with archiving, comments and notifications",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_exhausted_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Pool exhaustion is transient: answer 503 with Retry-After."""
    logger.warning(f"Database pool exhausted on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please retry."},
        headers={"Retry-After": "5"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


for router in (archives_router, comments_router, issues_router, notifications_router):
    app.include_router(router)


@app.get("/health", tags=["Health"])
async def health_check():
    redis_health = await redis_service.health_check()
    return {
        "status": "healthy",
        "redis": redis_health,
        "project_locks": redis_service.is_connected,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("projecthub.main:app", host=settings.host, port=settings.port)
