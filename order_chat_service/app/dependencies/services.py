"""
Service wiring.

Collaborators are built once at startup into a `ServiceContainer` kept on
`app.state.services`; route handlers receive them through the providers below,
which tests replace with `app.dependency_overrides` or a container of fakes.
"""
import logging
from typing import Optional

import httpx
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.requests import HTTPConnection

from order_chat_service.app.config import settings
from order_chat_service.app.service.auth import TokenAuthenticator
from order_chat_service.app.service.chat.gateway import ChatGateway
from order_chat_service.app.service.chat.pipeline import ChatMessagePipeline
from order_chat_service.app.service.chat.registry import ChatSessionRegistry
from order_chat_service.app.service.chat.service import ChatService
from order_chat_service.app.service.events.publisher import OrderEventPublisher
from order_chat_service.app.service.exceptions import ConfigurationError
from order_chat_service.app.service.interfaces.catalog_client import AbstractCatalogClient
from order_chat_service.app.service.interfaces.chat_store import AbstractChatStore
from order_chat_service.app.service.interfaces.object_storage import AbstractObjectStorage
from order_chat_service.app.service.interfaces.order_store import AbstractOrderStore
from order_chat_service.app.service.orders.finalization import OrderFinalizationService
from order_chat_service.app.service.orders.lifecycle import OrderLifecycleService
from order_chat_service.infrastructure.catalog.catalog_service_client import HttpCatalogClient
from order_chat_service.infrastructure.database.catalog_store import MongoCatalogClient
from order_chat_service.infrastructure.database.chat_store import MongoChatStore
from order_chat_service.infrastructure.database.order_store import MongoOrderStore
from order_chat_service.infrastructure.kafka.producer import OrderEventProducer

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(
        self,
        order_store: AbstractOrderStore,
        chat_store: AbstractChatStore,
        catalog_client: AbstractCatalogClient,
        object_storage: AbstractObjectStorage,
        authenticator: TokenAuthenticator,
        event_publisher: Optional[OrderEventPublisher] = None,
        registry: Optional[ChatSessionRegistry] = None,
    ):
        self.order_store = order_store
        self.chat_store = chat_store
        self.catalog_client = catalog_client
        self.object_storage = object_storage
        self.authenticator = authenticator
        self.event_publisher = event_publisher
        self.registry = registry or ChatSessionRegistry()

        self.lifecycle = OrderLifecycleService(order_store, catalog_client, object_storage, event_publisher)
        self.finalization = OrderFinalizationService(order_store, event_publisher)
        self.chat_service = ChatService(chat_store, order_store, object_storage, self.registry)
        self.pipeline = ChatMessagePipeline(self.registry, chat_store, object_storage)
        self.gateway = ChatGateway(authenticator, order_store, self.registry, self.pipeline)


def build_service_container(
    db: AsyncIOMotorDatabase,
    http_client: httpx.AsyncClient,
    object_storage: AbstractObjectStorage,
    kafka_producer: Optional[OrderEventProducer] = None,
) -> ServiceContainer:
    if settings.JWT_SECRET == "change-me":
        logger.warning("JWT_SECRET is using the development default; set it in the environment.")
    if not settings.JWT_SECRET:
        raise ConfigurationError("JWT_SECRET must be set.")

    if settings.CATALOG_SERVICE_URL:
        catalog_client: AbstractCatalogClient = HttpCatalogClient(http_client, settings.CATALOG_SERVICE_URL)
        logger.info(f"Catalog lookups go to {settings.CATALOG_SERVICE_URL}.")
    else:
        catalog_client = MongoCatalogClient(db)
        logger.info("Catalog lookups read the products collection directly.")

    return ServiceContainer(
        order_store=MongoOrderStore(db),
        chat_store=MongoChatStore(db),
        catalog_client=catalog_client,
        object_storage=object_storage,
        authenticator=TokenAuthenticator(settings.JWT_SECRET, settings.JWT_ALGORITHM),
        event_publisher=OrderEventPublisher(kafka_producer, settings.ORDER_EVENTS_TOPIC),
    )


def get_services(connection: HTTPConnection) -> ServiceContainer:
    """Works for both HTTP requests and WebSocket connections."""
    services = getattr(connection.app.state, "services", None)
    if services is None:
        raise ConfigurationError("Services are not initialized.")
    return services


def get_lifecycle_service(services: ServiceContainer = Depends(get_services)) -> OrderLifecycleService:
    return services.lifecycle


def get_finalization_service(services: ServiceContainer = Depends(get_services)) -> OrderFinalizationService:
    return services.finalization


def get_chat_service(services: ServiceContainer = Depends(get_services)) -> ChatService:
    return services.chat_service


def get_chat_gateway(services: ServiceContainer = Depends(get_services)) -> ChatGateway:
    return services.gateway


def get_authenticator(services: ServiceContainer = Depends(get_services)) -> TokenAuthenticator:
    return services.authenticator
