"""FastAPI application entry point.

Product Search API - keyword, semantic and hybrid search over the shop catalog,
plus recommendations and admin reindexing.

Every backing service is optional at startup:
- no Postgres: search analytics are skipped
- no Redis: catalog snapshot is per-process, reindex runs without a lock
- no Qdrant: semantic and hybrid search degrade to keyword results
"""

import asyncio
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from product_search.routes import api_router
from product_search.schemas import ErrorResponse
from product_search.services import recommendation_cache as rec_cache
from product_search.services import search_cache
from product_search.services.vector_store import close_qdrant_client, get_qdrant_client
from product_search.settings import get_settings
from product_search.stores.postgres import close_db, init_db, ping_db
from product_search.stores.memory import sweep_periodically
from product_search.stores.redis import close_redis, init_redis

logger = logging.getLogger("uvicorn.error")


def start_cache_sweeps() -> list[asyncio.Task]:
    """Background expiry sweeps for the in-process caches."""
    return [
        asyncio.create_task(
            sweep_periodically("search", search_cache.cleanup_search_caches, search_cache.SWEEP_INTERVAL)
        ),
        asyncio.create_task(
            sweep_periodically(
                "recommendation", rec_cache.recommendation_cache.cleanup, rec_cache.SWEEP_INTERVAL
            )
        ),
    ]


async def stop_cache_sweeps(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        f"Starting {settings.app_name} v{settings.app_version} "
        f"(embeddings={settings.embedding_provider}/{settings.embedding_dimensions}, "
        f"collection={settings.qdrant_collection})"
    )

    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected (search analytics enabled)")
    except Exception:
        logger.exception("Postgres init failed, search analytics disabled")
        await close_db()

    try:
        await init_redis()
    except Exception:
        logger.exception("Redis init failed, catalog snapshot is per-process")

    if not await get_qdrant_client().health_check():
        logger.warning("Qdrant unreachable at startup, semantic search will fall back to keyword")

    app.state.cache_sweeps = start_cache_sweeps()

    yield

    await stop_cache_sweeps(app.state.cache_sweeps)
    await close_qdrant_client()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Hybrid product search API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(status_code=500, content=ErrorResponse.build("INTERNAL_ERROR", message))

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "product_search.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
