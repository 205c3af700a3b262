"""
FastAPI Application — Vehicle Homologation Service.

Architecture:
  - PostgreSQL (prod) / SQLite (dev) via SQLAlchemy async
  - MinIO (prod) / local filesystem (dev) for uploaded documents
  - MercadoPago for checkout preferences and payment webhooks
  - Admin console API: status workflow with optimistic concurrency
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.api.dependencies import (
    Services,
    build_services,
    check_datastore,
    get_services,
    prepare_storage,
)
from src.api.routes.admin import router as admin_router
from src.api.routes.homologations import router as homologations_router
from src.api.routes.webhooks import router as webhooks_router
from src.api.schemas.requests import AuthRequest
from src.api.schemas.responses import AuthResponse
from src.config.settings import Settings, configure_logging, get_settings
from src.core.exceptions import HomologationServiceError

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the application.

    `services` lets callers (tests, scripts) supply pre-wired adapters;
    otherwise they are built from `settings` at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = build_services(settings)
        svc: Services = app.state.services
        svc.datastore_available = await check_datastore(svc, settings.db_connect_timeout)
        await prepare_storage(svc)
        logger.info(f"Homologation service started (datastore={'up' if svc.datastore_available else 'DOWN'})")
        try:
            yield
        finally:
            await svc.aclose()

    app = FastAPI(
        title="Vehicle Homologation Service",
        description="Homologation workflow: intake, documents, MercadoPago payments and admin review.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ──
    @app.exception_handler(HomologationServiceError)
    async def handle_service_error(request: Request, exc: HomologationServiceError):
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "internal_error", "detail": str(exc)})

    # ── Routes ──
    app.include_router(homologations_router, prefix="/api/v1", tags=["Homologations"])
    app.include_router(webhooks_router, prefix="/api/v1", tags=["Webhooks"])
    app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])

    @app.post("/api/v1/auth", response_model=AuthResponse)
    async def authenticate(req: AuthRequest):
        """Simple password auth for the admin console."""
        if req.password == settings.api_password:
            return AuthResponse(success=True, token=settings.api_key, message="Authenticated successfully")
        return AuthResponse(success=False, message="Invalid password")

    # ── Health ──
    @app.get("/health")
    async def health(services: Services = Depends(get_services)):
        if not services.datastore_available:
            services.datastore_available = await check_datastore(services, settings.db_connect_timeout)
        db_url = settings.database_url
        return {
            "status": "ok" if services.datastore_available else "degraded",
            "version": VERSION,
            "database": "PostgreSQL" if "postgres" in db_url else "SQLite",
            "datastore_available": services.datastore_available,
            "storage_backend": settings.storage_backend,
            "reopen_rejected_enabled": settings.allow_reopen_rejected,
        }

    # ── Serve locally stored documents ──
    if settings.storage_backend == "local":
        files_dir = Path(settings.local_storage_dir)
        files_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/files", StaticFiles(directory=str(files_dir)), name="files")

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
