"""
kafka_client.py - Kafka Producer Client Wrapper

PURPOSE:
    Provides a reusable Kafka producer with JSON serialization and delivery
    guarantees. The inventory service only publishes; it never consumes.

PRODUCER FEATURES:
    - JSON serialization of BaseEvent objects or plain dicts
    - Delivery callbacks for tracking
    - Automatic retries on failure (3 attempts)
    - Snappy compression
    - All replicas acknowledgment (acks=all)

USAGE:
    producer = BaseKafkaProducer("localhost:9092", "inventory-producer")
    producer.publish("product.created", event_object)
    producer.flush()

ERROR HANDLING:
    - Delivery failures are logged by the delivery callback
    - Errors raised while producing are logged and re-raised, so the caller
      (the outbox publisher) can leave the row pending and retry later
"""

import json
import logging
from typing import Optional, Union

from confluent_kafka import Producer
from confluent_kafka.error import KafkaError

from shared.events import BaseEvent

logger = logging.getLogger(__name__)


class BaseKafkaProducer:
    """
    Base Kafka producer with JSON serialization and delivery callbacks.

    Features:
        - Automatic JSON serialization of events
        - Delivery acknowledgment from all replicas (acks=all)
        - 3 retry attempts on failure
        - Snappy compression for efficiency
        - Synchronous send with callback tracking
    """

    def __init__(self, bootstrap_servers: str, client_id: str = "producer"):
        """
        Initialize Kafka producer.

        Args:
            bootstrap_servers: Comma-separated Kafka broker addresses
            client_id: Unique identifier for this producer instance
        """
        self.config = {
            "bootstrap.servers": bootstrap_servers,
            "client.id": client_id,
            "acks": "all",
            "retries": 3,
            "compression.type": "snappy",
        }
        self.producer = Producer(self.config)

    def _delivery_report(self, err: Optional[KafkaError], msg) -> None:
        """Delivery report handler called by producer on message delivery."""
        if err is not None:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.info(
                f"Message delivered to topic={msg.topic()}, "
                f"partition={msg.partition()}, offset={msg.offset()}"
            )

    def publish(self, topic: str, event: Union[BaseEvent, dict]) -> None:
        """Publish event to Kafka topic."""
        try:
            # Outbox rows arrive as dicts, fresh events as BaseEvent objects
            if isinstance(event, dict):
                message = json.dumps(event)
                event_type = event.get("event_type", "unknown")
                event_id = event.get("event_id", "unknown")
                correlation_id = event.get("correlation_id", "unknown")
            else:
                message = event.model_dump_json()
                event_type = event.event_type
                event_id = event.event_id
                correlation_id = event.correlation_id

            self.producer.produce(
                topic=topic,
                key=event_id.encode("utf-8"),
                value=message.encode("utf-8"),
                callback=self._delivery_report,
            )
            self.producer.flush()
            logger.info(
                f"Published event to {topic}",
                extra={
                    "event_type": event_type,
                    "event_id": event_id,
                    "correlation_id": correlation_id,
                },
            )
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")
            raise

    def flush(self) -> None:
        """Flush any pending messages."""
        self.producer.flush()
