"""
Dependency wiring: builds adapters + use cases once per process
and exposes them to routes through FastAPI dependencies.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from fastapi import Header, Request
from sqlalchemy.exc import SQLAlchemyError

from src.config.settings import Settings
from src.core.exceptions import DatastoreUnavailable, StorageUnavailable, Unauthorized
from src.core.interfaces.payment_gateway import IPaymentGateway
from src.core.interfaces.repositories import IHomologationRepository, IPaymentRepository
from src.core.interfaces.storage_service import IStorageService
from src.core.use_cases.create_payment_preference import CreatePaymentPreferenceUseCase
from src.core.use_cases.manage_homologation import ManageHomologationUseCase
from src.core.use_cases.reconcile_payment import ReconcilePaymentUseCase
from src.core.use_cases.transition_homologation import TransitionHomologationUseCase
from src.core.use_cases.upload_document import UploadDocumentUseCase
from src.core.workflow.transitions import TransitionTable

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler may need. No globals."""
    settings: Settings
    homologations: IHomologationRepository
    payments: IPaymentRepository
    storage: IStorageService
    gateway: IPaymentGateway
    table: TransitionTable
    manage: ManageHomologationUseCase
    transition: TransitionHomologationUseCase
    reconcile: ReconcilePaymentUseCase
    upload: UploadDocumentUseCase
    preferences: CreatePaymentPreferenceUseCase
    # Startup check: creates tables for SQL, pings otherwise
    prepare_datastore: Callable[[], Awaitable[None]] | None = None
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
    datastore_available: bool = False

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


def assemble_services(
    settings: Settings,
    homologations: IHomologationRepository,
    payments: IPaymentRepository,
    storage: IStorageService,
    gateway: IPaymentGateway,
) -> Services:
    """Wire use cases on top of already-built adapters."""
    table = TransitionTable(allow_reopen_rejected=settings.allow_reopen_rejected)
    return Services(
        settings=settings,
        homologations=homologations,
        payments=payments,
        storage=storage,
        gateway=gateway,
        table=table,
        manage=ManageHomologationUseCase(homologations),
        transition=TransitionHomologationUseCase(homologations, table),
        reconcile=ReconcilePaymentUseCase(
            gateway=gateway,
            payments=payments,
            homologations=homologations,
            table=table,
            sync_attempts=settings.reconcile_sync_attempts,
        ),
        upload=UploadDocumentUseCase(homologations, storage, max_upload_bytes=settings.max_upload_bytes),
        preferences=CreatePaymentPreferenceUseCase(
            homologations=homologations,
            payments=payments,
            gateway=gateway,
            site_url=settings.site_url,
            notification_url=settings.webhook_url,
            currency=settings.default_currency,
        ),
        prepare_datastore=homologations.ping,
    )


def build_services(settings: Settings) -> Services:
    """Factory: build use cases with concrete adapters."""
    from src.infrastructure.db.database import Database
    from src.infrastructure.db.repository import SqlHomologationRepository, SqlPaymentRepository
    from src.infrastructure.payments.mercadopago_gateway import MercadoPagoGateway

    db = Database(settings.database_url)

    if settings.storage_backend == "minio":
        from src.infrastructure.storage.minio_storage import MinIOStorageService
        storage = MinIOStorageService(
            endpoint=settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            bucket=settings.storage_bucket,
            secure=settings.minio_secure,
        )
    else:
        from src.infrastructure.storage.local_storage import LocalStorageService
        storage = LocalStorageService(
            root=settings.local_storage_dir,
            bucket=settings.storage_bucket,
            public_url=settings.public_files_url,
        )

    gateway = MercadoPagoGateway(
        access_token=settings.mercadopago_access_token,
        base_url=settings.mercadopago_api_url,
        timeout=settings.gateway_timeout,
    )
    if not settings.mercadopago_access_token:
        logger.warning("MERCADOPAGO_ACCESS_TOKEN not set; payment calls will fail")

    services = assemble_services(
        settings,
        homologations=SqlHomologationRepository(db),
        payments=SqlPaymentRepository(db),
        storage=storage,
        gateway=gateway,
    )
    services.prepare_datastore = db.init
    services.closers = [gateway.aclose, db.dispose]
    return services


async def check_datastore(services: Services, timeout: float) -> bool:
    """
    Bounded connectivity check. Never raises: on timeout or error the
    process keeps serving routes that don't need the datastore.
    """
    if services.prepare_datastore is None:
        return True
    try:
        await asyncio.wait_for(services.prepare_datastore(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        logger.warning(f"Datastore check timed out after {timeout}s; running degraded")
    except (SQLAlchemyError, OSError, DatastoreUnavailable) as e:
        logger.warning(f"Datastore unavailable: {e}; running degraded")
    return False


async def prepare_storage(services: Services) -> None:
    ensure_bucket = getattr(services.storage, "ensure_bucket", None)
    if ensure_bucket is None:
        return
    try:
        await ensure_bucket()
    except StorageUnavailable as e:
        logger.warning(f"Storage not ready at startup: {e}")


# ── FastAPI dependencies ──

def get_services(request: Request) -> Services:
    return request.app.state.services


async def ensure_datastore(services: Services) -> None:
    """Re-checks a datastore marked down; raises DatastoreUnavailable while it stays down."""
    if not services.datastore_available:
        services.datastore_available = await check_datastore(services, services.settings.db_connect_timeout)
        if services.datastore_available:
            logger.info("Datastore reachable again; leaving degraded mode")
    if not services.datastore_available:
        raise DatastoreUnavailable("Datastore unavailable; try again later")


async def require_datastore(request: Request) -> Services:
    services = get_services(request)
    await ensure_datastore(services)
    return services


def require_admin(
    request: Request,
    x_api_key: str | None = Header(default=None),
    x_admin_user: str | None = Header(default=None),
) -> str:
    """Returns the acting admin's name."""
    settings = get_services(request).settings
    if x_api_key != settings.api_key:
        raise Unauthorized("Invalid or missing API key")
    return x_admin_user or "admin"
