"""API test fixtures: TestClient over the in-memory store with a mocked email gateway."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from fakes import TEST_USER_B_ID, TEST_USER_ID
from api.app import USER_HEADER, build_services, create_app, header_user
from clients.email_client import EmailGatewayClient


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def email_client():
    client = Mock(spec=EmailGatewayClient)
    client.send_email.return_value = "msg-1"
    return client


@pytest.fixture
def services(store, email_client):
    return build_services(store, email_client)


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """FastAPI app with clinic context middleware, error handlers, and data/actions routes."""
    return create_app(services, header_user)


@pytest.fixture
def client(app):
    """Client acting as the primary clinic's vet."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers[USER_HEADER] = str(TEST_USER_ID)
    return c


@pytest.fixture
def client_b(app):
    """Client acting for the secondary clinic."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers[USER_HEADER] = str(TEST_USER_B_ID)
    return c


@pytest.fixture
def unauthed_client(app):
    """Client with no user header."""
    return TestClient(app, raise_server_exceptions=False)

