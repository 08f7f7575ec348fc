"""Main FastAPI application for database snapshots."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from dbsnapshots import __version__
from dbsnapshots.core.config import get_settings
from dbsnapshots.core.errors import ConfigurationError, ExecutionError
from dbsnapshots.core.logging import setup_logging
from dbsnapshots.core.scheduler import get_scheduler, schedule_plans
from dbsnapshots.services import PlanRegistry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    setup_logging()
    logger = logging.getLogger(__name__)
    settings = get_settings()

    scheduler = get_scheduler(settings.timezone)
    schedule_plans(scheduler, settings, lambda: PlanRegistry.from_settings(get_settings()))
    scheduler.start()
    logger.info("scheduler_started | timezone=%s environment=%s", settings.timezone, settings.environment)

    yield

    # Shutdown
    scheduler.shutdown()
    logger.info("scheduler_shutdown")


app = FastAPI(
    title="Database Snapshots API",
    description="Create, archive, retain and restore database snapshots",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logging.getLogger(__name__).error("configuration_error | path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


@app.exception_handler(ExecutionError)
async def execution_error_handler(request: Request, exc: ExecutionError) -> JSONResponse:
    logging.getLogger(__name__).error("execution_error | path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


# Include routers
from dbsnapshots.api import cache, groups, health, plans  # noqa: E402

# Mount health endpoints unversioned for infra probes (/health, /ready)
app.include_router(health.router)

# Mount application APIs under versioned prefix
app.include_router(plans.router, prefix="/api/v1")
app.include_router(groups.router, prefix="/api/v1")
app.include_router(cache.router, prefix="/api/v1")


@app.get("/")
async def root() -> RedirectResponse:
    """Redirect root to Swagger UI."""
    return RedirectResponse(url="/api/docs")
