# Application Configuration using Pydantic BaseSettings
from pydantic_settings import BaseSettings
from typing import Optional

class AppSettings(BaseSettings):
    # MongoDB (transactions require a replica set)
    MONGO_DETAILS: str = "mongodb://mongo:27017/?replicaSet=rs0"
    DB_NAME: str = "order_chat_db"

    # Kafka (order events for the notification fan-out); empty disables publishing
    KAFKA_BOOTSTRAP_SERVERS: Optional[str] = "kafka:29092"
    ORDER_EVENTS_TOPIC: str = "order_status_events"

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "order-chat-api"

    # Outbound HTTP
    DEFAULT_HTTP_TIMEOUT: float = 10.0

    # Auth collaborator
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Catalog collaborator; when unset the products collection is read directly
    CATALOG_SERVICE_URL: Optional[str] = None # e.g., http://catalog:8080/api/v1

    # Object storage
    S3_BUCKET: str = "order-chat-uploads"
    S3_REGION: Optional[str] = "ap-south-1"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_BASE_URL: Optional[str] = None
    S3_KEY_PREFIX: str = "uploads"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# Instantiate settings to be imported by other modules
settings = AppSettings()

import logging
logger = logging.getLogger(__name__)
# Avoid logging secrets (JWT_SECRET, AWS keys).
logger.info("Application settings module initialized.")
