"""HTTP surface: response envelope, error mapping, routers and app assembly."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    ErrorCodes,
    error_response,
    request_id_of,
    success_response,
)
