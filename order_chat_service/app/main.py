# FastAPI Application Entry Point
from fastapi import FastAPI
import httpx

# Configuration and Observability
from order_chat_service.app.config import settings
from order_chat_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from order_chat_service.app.api.errors import register_exception_handlers
from order_chat_service.app.dependencies.services import build_service_container
# Database connection
from order_chat_service.infrastructure.database import connection as mongo_connection
# Kafka Producer lifecycle
from order_chat_service.infrastructure.kafka.producer import get_kafka_producer, startup_kafka_producer, shutdown_kafka_producer
from order_chat_service.infrastructure.storage.s3_storage import S3ObjectStorage

# API Routers
from order_chat_service.app.api.v1.endpoints import health as health_router
from order_chat_service.app.api.v1.endpoints import orders as orders_router
from order_chat_service.app.api.v1.endpoints import chat as chat_router
from order_chat_service.app.api.v1.endpoints import chat_socket as chat_socket_router

# --- FastAPI Application Instance ---
app = FastAPI(
    title="Order Chat Service",
    description="Order lifecycle, finalization and real-time order chat.",
    version="1.0.0"
)

register_exception_handlers(app)

# --- Event Handlers for DB Connection & OTel Instrumentation ---
@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
    HTTPXClientInstrumentor().instrument()
    logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

    PymongoInstrumentor().instrument()
    # A service without its document store cannot serve anything; let startup fail.
    await mongo_connection.connect_to_mongo()
    await mongo_connection.ensure_indexes(mongo_connection.db)

    await startup_kafka_producer()

    app.state.services = build_service_container(
        db=mongo_connection.db,
        http_client=app.state.http_client,
        object_storage=S3ObjectStorage(),
        kafka_producer=get_kafka_producer(),
    )
    logger.info("Service container built. Application startup complete.")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")

    if getattr(app.state, 'http_client', None):
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")

    await shutdown_kafka_producer()

    mongo_connection.close_mongo_connection()

# Instrument FastAPI app
FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router)
app.include_router(orders_router.router, prefix="/api/v1")
app.include_router(chat_router.router, prefix="/api/v1")
app.include_router(chat_socket_router.router, prefix="/api/v1")

logger.info("API routers included. Application setup complete.")

# To run: uvicorn order_chat_service.app.main:app --reload --port 8000
