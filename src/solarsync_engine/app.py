"""FastAPI application factory for SolarSync-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from solarsync_engine.common.config import get_settings
from solarsync_engine.common.exceptions import (
    ConfigurationError,
    SolarSyncError,
    VendorNotFoundError,
)
from solarsync_engine.common.logging import setup_logging
from solarsync_engine.common.schemas import ErrorResponse, HealthResponse


def create_app(start_scheduler: bool | None = None) -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)
    if start_scheduler is None:
        start_scheduler = settings.scheduler_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from solarsync_engine.deps import get_db, get_pool, get_scheduler
        db = get_db()
        await db.init()
        await db.create_all()
        scheduler = get_scheduler() if start_scheduler else None
        if scheduler is not None:
            scheduler.start()
        yield
        # Shutdown
        if scheduler is not None:
            await scheduler.stop()
        await get_pool().close()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SolarSyncError)
    async def solarsync_error_handler(request: Request, exc: SolarSyncError):
        if isinstance(exc, VendorNotFoundError):
            status = 404
        elif isinstance(exc, ConfigurationError):
            status = 400
        else:
            status = 502
        body = ErrorResponse(error=exc.message, code=exc.code)
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from solarsync_engine.sync.router import router as sync_router
    from solarsync_engine.organizations.router import router as organizations_router

    prefix = settings.api_prefix
    app.include_router(sync_router, prefix=prefix, tags=["sync"])
    app.include_router(organizations_router, prefix=prefix, tags=["organizations"])

    return app
