import pytest

from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.chat.pipeline import ChatMessagePipeline
from order_chat_service.app.service.chat.registry import ChatSessionRegistry
from order_chat_service.app.service.chat.service import ChatService
from order_chat_service.app.service.interfaces.catalog_client import CatalogFieldSpec, CatalogService
from order_chat_service.app.service.orders.finalization import OrderFinalizationService
from order_chat_service.app.service.orders.lifecycle import OrderLifecycleService
from order_chat_service.tests.fakes import (
    FakeCatalogClient,
    FakeObjectStorage,
    InMemoryChatStore,
    InMemoryOrderStore,
    RecordingPublisher,
)


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def chat_store():
    return InMemoryChatStore()


@pytest.fixture
def object_storage():
    return FakeObjectStorage()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def catalog():
    return FakeCatalogClient({
        "svc-1": CatalogService(
            id="svc-1",
            title="Passport renewal",
            additional_fields={
                "full_name": CatalogFieldSpec(label="Full name", type="text", required=True),
                "age": CatalogFieldSpec(label="Age", type="number"),
                "dob": CatalogFieldSpec(label="Date of birth", type="date"),
                "category": CatalogFieldSpec(label="Category", type="select", options=["normal", "tatkal"]),
                "urgent": CatalogFieldSpec(label="Urgent", type="boolean"),
            },
        ),
        "svc-off": CatalogService(id="svc-off", is_active=False),
    })


@pytest.fixture
def lifecycle(order_store, catalog, object_storage, publisher):
    return OrderLifecycleService(order_store, catalog, object_storage, publisher)


@pytest.fixture
def finalization(order_store, publisher):
    return OrderFinalizationService(order_store, publisher)


@pytest.fixture
def registry():
    return ChatSessionRegistry()


@pytest.fixture
def pipeline(registry, chat_store, object_storage):
    return ChatMessagePipeline(registry, chat_store, object_storage)


@pytest.fixture
def chat_service(chat_store, order_store, object_storage):
    return ChatService(chat_store, order_store, object_storage)


@pytest.fixture
def user():
    return Actor(id="user-1", role="user")


@pytest.fixture
def other_user():
    return Actor(id="user-2", role="user")


@pytest.fixture
def manager():
    return Actor(id="admin-1", role="app_admin")


@pytest.fixture
def web_admin():
    return Actor(id="admin-2", role="web_admin")
