import pytest
from fastapi.testclient import TestClient

from order_chat_service.app.dependencies.services import ServiceContainer
from order_chat_service.app.main import app
from order_chat_service.app.service.auth import TokenAuthenticator
from order_chat_service.app.service.events.publisher import OrderEventPublisher
from order_chat_service.tests.fakes import TEST_JWT_SECRET


@pytest.fixture
def services(order_store, chat_store, catalog, object_storage):
    return ServiceContainer(
        order_store=order_store,
        chat_store=chat_store,
        catalog_client=catalog,
        object_storage=object_storage,
        authenticator=TokenAuthenticator(TEST_JWT_SECRET, "HS256"),
        event_publisher=OrderEventPublisher(None, topic="order_status_events"),
    )


@pytest.fixture
def client(services):
    # Startup hooks are not run: no `with TestClient(...)`, the container is injected directly.
    app.dependency_overrides = {}
    app.state.services = services
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides = {}
    del app.state.services
