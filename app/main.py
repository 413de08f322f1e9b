#!/usr/bin/env python3
"""
Adaptive practice engine - FastAPI application entry
Description: REST API for daily practice sessions, mistake mastery and concept proficiency
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.services.background import shutdown_background_runner
from app.utils.database import check_db_connection, init_db
from app.utils.exceptions import PracticeError
from app.utils.helpers import format_timestamp, utc_now
from app.utils.logger import setup_logging
from app.api.errors import to_http_exception

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle
    - create tables on startup
    - drain background proficiency jobs on shutdown
    """
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")
    try:
        init_db()
    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise

    yield

    logger.info("Shutting down, waiting for background jobs")
    shutdown_background_runner()
    logger.info("Shutdown complete")


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Adaptive question selection, mistake mastery and concept proficiency tracking",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail}
        )

    @app.exception_handler(PracticeError)
    async def practice_exception_handler(request, exc):
        http_exc = to_http_exception(exc, "Request")
        return JSONResponse(
            status_code=http_exc.status_code,
            content={"error": http_exc.detail}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    return app


app = create_application()

from app.api.routes import users, practice, mistakes, concepts

app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(practice.router, prefix="/api/v1/practice", tags=["practice"])
app.include_router(mistakes.router, prefix="/api/v1/mistakes", tags=["mistakes"])
app.include_router(concepts.router, prefix="/api/v1/concepts", tags=["concepts"])


@app.get("/")
async def root():
    """Service status"""
    return {
        "status": "running",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": format_timestamp(utc_now())
    }


@app.get("/health")
async def health_check():
    db_status = check_db_connection()
    return {
        "status": "healthy" if db_status else "unhealthy",
        "database": "connected" if db_status else "disconnected",
        "timestamp": format_timestamp(utc_now())
    }
