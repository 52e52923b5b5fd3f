"""
Main API application module for Undangan.

This module creates and configures the FastAPI application with its routers,
exception handlers and the session cleanup background task.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from undangan.api.exception_handlers import setup_exception_handlers
from undangan.api.routers import auth
from undangan.services.session_cleanup import SessionCleanupService
from undangan.settings import settings
from undangan.utils.db_manager import db_manager
from undangan.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Creates database tables and owns the session cleanup task.
    """
    await db_manager.create_db_and_tables_async()
    logger.info("Database initialized with async support")

    cleanup = SessionCleanupService()
    app.state.session_cleanup = cleanup
    if settings.session_cleanup_enabled:
        await cleanup.start()

    logger.info("Application startup complete")

    try:
        yield
    finally:
        await cleanup.stop()
        await db_manager.close()
        logger.info("Application shutdown")


def create_app(root_path: str = "/") -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        root_path: The root path for the application

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Undangan",
        description="Account and session service",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth")

    return app


# Create default application instance
app = create_app(root_path=settings.root_url)
