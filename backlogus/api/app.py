"""FastAPI application and lifespan."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backlogus import __version__
from backlogus.api.dependencies import app_state
from backlogus.api.user_routes import router as user_router
from backlogus.config import ConfigLoader
from backlogus.db import configure_database, init_db
from backlogus.services.image_cache import ImageCacheService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info("Starting Backlogus...")

    system_config = ConfigLoader().load_system_config()
    app_state["system_config"] = system_config

    configure_database(system_config.database.url)
    init_db()

    cache_config = system_config.image_cache
    image_cache = ImageCacheService(
        cache_dir=cache_config.directory,
        timeout=cache_config.timeout_seconds,
        user_agent=cache_config.user_agent
    )
    app_state["image_cache"] = image_cache

    logger.info("Backlogus ready")
    yield

    logger.info("Shutting down Backlogus...")
    await image_cache.close()
    app_state["image_cache"] = None


app = FastAPI(
    title="Backlogus API",
    description="Personal game and movie backlog tracker",
    version=__version__,
    lifespan=lifespan
)

# CORS for the web UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(user_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
