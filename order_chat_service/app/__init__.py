# order_chat_service/app/__init__.py
import logging

logger = logging.getLogger(__name__)
logger.info("Order Chat App Initialized")
