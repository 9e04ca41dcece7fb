"""FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from originality.api.v1.endpoints import health
from originality.api.v1.router import api_router
from originality.core.config import settings
from originality.core.database import close_database, init_database
from originality.utils.logging import get_logger

LOGGER = get_logger(__name__, level=settings.log_level)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    LOGGER.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "providers": settings.providers.enabled,
            "scoring_strategy": settings.scan.scoring_strategy,
        },
    )

    try:
        await asyncio.wait_for(
            init_database(auto_migrate=settings.auto_migrate),
            timeout=settings.db_init_timeout,
        )
        LOGGER.info("Database initialized successfully")
    except asyncio.TimeoutError:
        LOGGER.error(f"Database initialization timed out after {settings.db_init_timeout}s")
    except Exception as e:
        LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    LOGGER.info("Shutting down application")
    await close_database()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Originality and similarity detection for academic writing",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/health")
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/", response_model=RootResponse, tags=["Root"])
async def root() -> RootResponse:
    return RootResponse(
        message=f"{settings.app_name} is running",
        version=settings.app_version,
        docs="/docs",
        health="/health",
    )
