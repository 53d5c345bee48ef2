"""
Classroom Sync Service - FastAPI application.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .api import get_router
from .classroom import ClassroomSync
from .config import debug_settings, get_settings
from .models import HealthCheck

logger = logging.getLogger(__name__)


def create_app(classroom: Optional[ClassroomSync] = None) -> FastAPI:
    """Build the app; without *classroom* one is built from settings at startup."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        app.state.classroom = classroom or ClassroomSync.from_settings(settings)
        removed = app.state.classroom.startup()
        logger.info(f"Classroom sync service starting up ({removed} stale sessions purged)")

        yield

        # Shutdown
        await app.state.classroom.close()
        logger.info("Classroom sync service shut down")

    app = FastAPI(
        title="Classroom Sync Service",
        description="Lesson and student-session synchronization with presence tracking",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthCheck)
    async def health_check():
        return HealthCheck(service=settings.service_name)

    app.include_router(get_router())
    return app


def run() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    debug_settings(settings)
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.service_port)


if __name__ == "__main__":
    run()
