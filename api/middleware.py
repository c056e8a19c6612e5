"""Request-scoped middleware for API requests."""

import logging
from typing import Callable
from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import ClinicNotResolvedError, PersistenceError
from core.services.identity_service import IdentityService
from utils.clinic_context import ClinicContext

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ClinicContextMiddleware(BaseHTTPMiddleware):
    """Resolves the acting user's clinic once per request.

    For protected routes:
    1. Asks the injected current_user provider who is calling
    2. Resolves their clinic via IdentityService
    3. Stores the ClinicContext in request.state.clinic_context

    Authentication itself is done upstream; current_user returns None when
    the request carries no valid session. Public paths bypass resolution.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(
        self,
        app,
        current_user: Callable[[Request], UUID | None],
        identity: IdentityService
    ):
        super().__init__(app)
        self._current_user = current_user
        self._identity = identity

    def _is_public_path(self, path: str) -> bool:
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    def _reject(self, request: Request, status_code: int, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message, request).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        user_id = self._current_user(request)
        if user_id is None:
            return self._reject(
                request, 401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required"
            )

        try:
            ctx = self._identity.context_for_user(user_id)
        except ClinicNotResolvedError as e:
            return self._reject(request, 403, ErrorCodes.CLINIC_NOT_RESOLVED, str(e))
        except PersistenceError as e:
            logger.error(f"Clinic lookup failed for user {user_id}: {e}")
            return self._reject(
                request, 503, ErrorCodes.PERSISTENCE_ERROR, "The clinic database is unavailable"
            )

        request.state.clinic_context = ctx
        return await call_next(request)


def get_clinic_context(request: Request) -> ClinicContext:
    """FastAPI dependency returning the context set by ClinicContextMiddleware."""
    ctx = getattr(request.state, "clinic_context", None)
    if ctx is None:
        raise ClinicNotResolvedError("No clinic context for this request")
    return ctx
