from order_chat_service.app.config import settings
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel
from pymongo.errors import PyMongoError
from typing import Optional

from order_chat_service.app.models import CHAT_MESSAGE_TTL_SECONDS

logger = logging.getLogger(__name__)

REVIEW_ORDERS_COLLECTION = "review_orders"
FINALIZED_ORDERS_COLLECTION = "finalized_orders"
CHAT_MESSAGES_COLLECTION = "chat_messages"
PRODUCTS_COLLECTION = "products"

# Process-wide handles, owned by application startup/shutdown
client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None

async def connect_to_mongo():
    global client, db
    if client is not None and db is not None:
        logger.info("MongoDB connection already established.")
        return

    logger.info(f"Connecting to MongoDB database '{settings.DB_NAME}'...")
    # tz_aware keeps status history timestamps comparable with datetime.now(timezone.utc)
    candidate = AsyncIOMotorClient(settings.MONGO_DETAILS, tz_aware=True)
    try:
        await candidate.admin.command('ping')
    except PyMongoError as e:
        candidate.close()
        logger.error(f"MongoDB ping failed: {e}", exc_info=True)
        raise ConnectionError(f"Failed to connect to MongoDB: {e}") from e
    client = candidate
    db = client[settings.DB_NAME]
    logger.info(f"Connected to MongoDB database '{settings.DB_NAME}'.")

def close_mongo_connection():
    global client, db
    if client is not None:
        client.close()
        client = None
        db = None
        logger.info("MongoDB connection closed.")

async def get_db():
    if db is None:
        logger.warning("MongoDB requested before startup connected it; connecting now.")
        await connect_to_mongo()
    yield db

async def ensure_indexes(database: AsyncIOMotorDatabase):
    """Creates the indexes the stores rely on. Safe to run on every startup."""
    await database[REVIEW_ORDERS_COLLECTION].create_indexes([
        IndexModel([("id", ASCENDING)], unique=True),
        IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("status", ASCENDING)]),
    ])
    await database[FINALIZED_ORDERS_COLLECTION].create_indexes([
        IndexModel([("id", ASCENDING)], unique=True),
        # At most one finalized record per review order; closes the double-finalize race.
        IndexModel([("review_order_id", ASCENDING)], unique=True, name="uniq_review_order_id"),
        IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)]),
    ])
    await database[CHAT_MESSAGES_COLLECTION].create_indexes([
        IndexModel([("id", ASCENDING)], unique=True),
        IndexModel([("order_id", ASCENDING), ("created_at", ASCENDING)]),
        IndexModel([("sender", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("created_at", ASCENDING)], expireAfterSeconds=CHAT_MESSAGE_TTL_SECONDS, name="chat_messages_ttl"),
    ])
    logger.info("MongoDB indexes ensured (review_orders, finalized_orders, chat_messages).")
