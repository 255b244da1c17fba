import logging
from typing import Optional

from order_chat_service.app.config import settings
from order_chat_service.app.service.events.models import BaseOrderEvent
from order_chat_service.app.service.exceptions import KafkaProducerError
from order_chat_service.infrastructure.kafka.producer import OrderEventProducer

logger = logging.getLogger(__name__)


class OrderEventPublisher:
    """
    Publishes order events for the notification fan-out.

    Publishing happens after the change is committed and is best-effort: a
    producer failure is logged and never undoes the order change.
    """

    def __init__(self, producer: Optional[OrderEventProducer], topic: Optional[str] = None):
        self.producer = producer
        self.topic = topic or settings.ORDER_EVENTS_TOPIC

    def publish(self, event: BaseOrderEvent) -> bool:
        if self.producer is None:
            logger.debug(f"Kafka disabled; dropping {event.event_type} for order {event.aggregate_id}.")
            return False
        try:
            self.producer.send(self.topic, event, key=event.aggregate_id, event_type=event.event_type)
        except KafkaProducerError as e:
            logger.error(f"Failed to publish {event.event_type} for order {event.aggregate_id}: {e.message}", exc_info=True)
            return False
        logger.info(f"Published {event.event_type} (event ID: {event.event_id}) for order {event.aggregate_id} to {self.topic}.")
        return True
