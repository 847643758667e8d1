from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from linkpreview.api.router import router
from linkpreview.core.config import Settings, settings
from linkpreview.core.database import DatabaseManager
from linkpreview.repositories.base import MetadataStore
from linkpreview.repositories.metadata.file_store import FileMetadataStore
from linkpreview.repositories.metadata.mongo_store import MongoMetadataStore
from linkpreview.services.preview.resolver import PreviewResolver
from linkpreview.workers.fetcher import HttpMetadataSource

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure the ``linkpreview`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn sets up its own handlers before our lifespan
    runs).  Configuring the ``linkpreview`` namespace directly, with
    ``propagate = False``, ensures all application logs reach stdout
    regardless of uvicorn's root-logger setup.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("linkpreview")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


async def build_store(config: Settings, stack: AsyncExitStack) -> MetadataStore:
    """Create the metadata store selected by ``config.cache_backend``.

    Resources the store needs (the MongoDB connection) are registered on
    *stack* so they are released at shutdown.
    """
    if config.cache_backend == "mongo":
        db = DatabaseManager(config)
        await db.connect()
        stack.push_async_callback(db.disconnect)
        store = MongoMetadataStore.from_db(db, config.mongo_collection)
        await store.ensure_indexes()
        return store
    logger.info("Caching link metadata in %s", config.cache_dir)
    return FileMetadataStore(config.cache_dir)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with AsyncExitStack() as stack:
        # ── Startup ──────────────────────────────────────────────────
        store = await build_store(settings, stack)
        source = HttpMetadataSource.from_settings(settings)
        stack.push_async_callback(source.aclose)
        app.state.resolver = PreviewResolver(
            store,
            source,
            fetch_timeout=settings.fetch_timeout,
            coalesce=settings.coalesce_requests,
        )
        yield
        # ── Shutdown: the exit stack closes the source and database ──


app = FastAPI(
    title="Link Preview",
    description="Renders cached HTML link previews for arbitrary URLs.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
