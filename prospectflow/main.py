"""
FastAPI Application — entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prospectflow import __version__
from prospectflow.config import settings
from prospectflow.database import close_db, init_db
from prospectflow.models import Prospect  # noqa: F401  (registers the table)
from prospectflow.routes import router
from prospectflow.routes.prospects import _background_tasks, prospects_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting ProspectFlow API v%s", __version__)
    await init_db()
    logger.info("✅ Database ready")

    yield

    # Shutdown: cancel in-flight searches
    pending = list(_background_tasks)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="ProspectFlow API",
    description=(
        "Local business discovery, prospect scoring and live website audits."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")
app.include_router(prospects_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "ProspectFlow API",
        "version": __version__,
        "docs": "/docs",
    }
