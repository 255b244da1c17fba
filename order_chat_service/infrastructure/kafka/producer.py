# Kafka producer for order lifecycle events
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from confluent_kafka import KafkaException, Producer
from pydantic import BaseModel

from order_chat_service.app.config import settings
from order_chat_service.app.service.exceptions import KafkaProducerError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.1


class OrderEventProducer:
    """
    Wraps a confluent-kafka Producer for order events.

    Events are keyed by order id so every change to one order lands on the same
    partition in commit order. Delivery results arrive on librdkafka's thread
    of control only when the producer is polled, so a background task polls
    while the application runs.
    """

    def __init__(self, bootstrap_servers: str, client_id: Optional[str] = None, producer: Optional[Producer] = None):
        self.producer_config = {
            'bootstrap.servers': bootstrap_servers,
            'client.id': client_id or settings.SERVICE_NAME_API,
            'acks': 'all',
            'enable.idempotence': True,
            'linger.ms': 10,
        }
        self.producer = producer or Producer(self.producer_config)
        self.delivered = 0
        self.failed = 0
        self._stopping = False
        self._poll_task: Optional[asyncio.Task] = None
        logger.info(f"Order event producer created for {bootstrap_servers} as {self.producer_config['client.id']}")

    def _on_delivery(self, err, msg):
        if err is not None:
            self.failed += 1
            logger.error(f"Order event not delivered to {msg.topic()} for order {msg.key()}: {err}")
            return
        self.delivered += 1
        logger.debug(f"Order event for {msg.key()} stored in {msg.topic()} [{msg.partition()}] at offset {msg.offset()}")

    def send(self, topic: str, event: BaseModel, key: Optional[str] = None, event_type: Optional[str] = None):
        """Serializes `event` as JSON and enqueues it; raises KafkaProducerError if it cannot be queued."""
        if self._stopping:
            raise KafkaProducerError(f"Producer is shutting down; event for {key} not sent to {topic}.")

        headers: List[Tuple[str, bytes]] = []
        if event_type:
            headers.append(("event_type", event_type.encode('utf-8')))
        try:
            self.producer.produce(
                topic,
                value=event.model_dump_json().encode('utf-8'),
                key=key.encode('utf-8') if key else None,
                headers=headers or None,
                on_delivery=self._on_delivery,
            )
        except BufferError as e:
            raise KafkaProducerError(f"Local producer queue is full ({len(self.producer)} messages waiting) for topic {topic}.") from e
        except KafkaException as e:
            raise KafkaProducerError(f"Could not enqueue event for topic {topic}: {e}") from e

    async def _poll_forever(self):
        while not self._stopping:
            self.producer.poll(0)
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

    def start(self):
        if self._poll_task is None or self._poll_task.done():
            self._stopping = False
            self._poll_task = asyncio.create_task(self._poll_forever())

    async def close(self, timeout: float = 10.0) -> int:
        """Stops polling and waits up to `timeout` seconds for queued events; returns how many were left undelivered."""
        self._stopping = True
        if self._poll_task is not None:
            await self._poll_task
            self._poll_task = None
        remaining = self.producer.flush(timeout)
        if remaining:
            logger.warning(f"{remaining} order events were still queued when the producer closed.")
        logger.info(f"Order event producer closed ({self.delivered} delivered, {self.failed} failed).")
        return remaining

    def stats(self) -> Dict[str, int]:
        return {"delivered": self.delivered, "failed": self.failed, "queued": len(self.producer)}


_kafka_producer_instance: Optional[OrderEventProducer] = None

def get_kafka_producer() -> Optional[OrderEventProducer]:
    """Returns the process-wide producer, or None when KAFKA_BOOTSTRAP_SERVERS is empty."""
    global _kafka_producer_instance
    if _kafka_producer_instance is None:
        if not settings.KAFKA_BOOTSTRAP_SERVERS:
            logger.warning("KAFKA_BOOTSTRAP_SERVERS not configured. Order events will not be published.")
            return None
        _kafka_producer_instance = OrderEventProducer(settings.KAFKA_BOOTSTRAP_SERVERS)
    return _kafka_producer_instance

async def startup_kafka_producer():
    producer = get_kafka_producer()
    if producer is not None:
        producer.start()

async def shutdown_kafka_producer():
    global _kafka_producer_instance
    if _kafka_producer_instance is None:
        return
    await _kafka_producer_instance.close()
    _kafka_producer_instance = None
