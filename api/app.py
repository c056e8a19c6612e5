"""Application assembly: services wired over one row store, routers mounted under /api."""

import logging
from typing import Callable
from uuid import UUID

from fastapi import FastAPI
from starlette.requests import Request

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ClinicContextMiddleware, RequestIDMiddleware
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.row_store import PostgresRowStore, RowStore
from clients.vault_client import get_database_url, get_email_config
from core.audit import AuditLogger
from core.config import ClinicSettings
from core.services.appointment_record_service import AppointmentRecordService
from core.services.appointment_service import AppointmentService
from core.services.identity_service import IdentityService
from core.services.invoice_email_service import InvoiceEmailService
from core.services.invoice_service import InvoiceService
from core.services.owner_service import OwnerService
from core.services.pet_service import PetService

logger = logging.getLogger(__name__)


def build_services(
    store: RowStore,
    email_client: EmailGatewayClient,
    settings: ClinicSettings | None = None
) -> dict:
    """All services sharing one store and audit logger, keyed by domain."""
    audit = AuditLogger(store)
    invoice = InvoiceService(store, audit)

    return {
        "identity": IdentityService(store),
        "owner": OwnerService(store, audit),
        "pet": PetService(store, audit),
        "appointment": AppointmentService(store, audit),
        "appointment_record": AppointmentRecordService(store, audit),
        "invoice": invoice,
        "invoice_email": InvoiceEmailService(store, invoice, email_client, settings),
    }


def create_app(
    services: dict,
    current_user: Callable[[Request], UUID | None],
    settings: ClinicSettings | None = None
) -> FastAPI:
    """
    FastAPI app with clinic context resolution, error handlers and the
    data/actions routes.

    Args:
        services: Output of build_services
        current_user: Returns the authenticated user id for a request, or None
        settings: Display and numbering settings
    """
    app = FastAPI()

    # Last added runs first: request ids exist before context resolution
    app.add_middleware(
        ClinicContextMiddleware,
        current_user=current_user,
        identity=services["identity"],
    )
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services, settings), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


USER_HEADER = "X-User-Id"


def header_user(request: Request) -> UUID | None:
    """
    User id forwarded by the authenticating proxy in front of the API.

    Returns None when the header is missing or not a UUID.
    """
    raw = request.headers.get(USER_HEADER)
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {USER_HEADER} header")
        return None


def create_production_app(settings: ClinicSettings | None = None) -> FastAPI:
    """App over Postgres and the email gateway, credentials read from Vault."""
    store = PostgresRowStore(PostgresClient(get_database_url()))
    email_client = EmailGatewayClient(**get_email_config())
    services = build_services(store, email_client, settings)
    return create_app(services, header_user, settings)
