import json
import logging
import threading
import time

from sqlalchemy.orm import sessionmaker

from services.inventory_service.models import OutboxEvent
from services.inventory_service.repository import EventOutbox
from shared.events import DLQEvent

logger = logging.getLogger(__name__)


class OutboxPublisher:
    """Background thread to publish outbox events.

    Rows are only visible here once the transaction that wrote them has
    committed, so a publish failure can never undo a product or ledger write.
    A row that fails MAX_ATTEMPTS times is sent to the dead letter topic.
    """

    MAX_ATTEMPTS = 3

    def __init__(self, session_factory: sessionmaker, producer, poll_interval: float = 2):
        """Initialize publisher."""
        self.session_factory = session_factory
        self.producer = producer
        self.poll_interval = poll_interval
        self.running = True
        self._thread = None

    def start(self) -> threading.Thread:
        """Start publisher thread."""
        self.running = True
        self._thread = threading.Thread(target=self._publish_loop, daemon=True)
        self._thread.start()
        logger.info("Outbox publisher started")
        return self._thread

    def publish_pending(self) -> int:
        """Publish every pending row once. Returns the number sent.

        The pending rows are read in one short transaction and each row's
        status is written in another. No transaction is open while Kafka is
        producing, so the publisher never holds the write lock across a
        broker round trip.
        """
        with self.session_factory() as db:
            pending = EventOutbox(db).get_unpublished_events()

        sent = 0
        for event in pending:
            if self._publish_one(event):
                sent += 1
        return sent

    def _publish_one(self, event: OutboxEvent) -> bool:
        event_data = self._payload(event)
        try:
            self.producer.publish(event.event_type, json.loads(event.event_data))
        except Exception as e:
            attempts = self._record_failure(event.id)
            logger.error(
                f"Error publishing outbox event {event.id} (attempt {attempts}/{self.MAX_ATTEMPTS}): {e}",
                extra={"event_type": event.event_type, "correlation_id": event_data.get("correlation_id")},
            )
            if attempts >= self.MAX_ATTEMPTS:
                self._dead_letter(event, event_data, attempts, e)
            return False

        self._mark(event.id, "Y")
        logger.info(f"Published outbox event {event.event_type} for {event.aggregate_id}")
        return True

    @staticmethod
    def _payload(event: OutboxEvent) -> dict:
        try:
            data = json.loads(event.event_data)
        except ValueError:
            return {"raw": event.event_data}
        return data if isinstance(data, dict) else {"raw": data}

    def _record_failure(self, outbox_id: str) -> int:
        with self.session_factory() as db:
            outbox = EventOutbox(db)
            attempts = outbox.record_failure(outbox.get(outbox_id))
            db.commit()
        return attempts

    def _mark(self, outbox_id: str, status: str) -> None:
        with self.session_factory() as db:
            outbox = EventOutbox(db)
            outbox.mark_event_published(outbox.get(outbox_id), status=status)
            db.commit()

    def _dead_letter(self, event: OutboxEvent, event_data: dict, attempts: int, error: Exception) -> None:
        dlq_event = DLQEvent(
            correlation_id=event_data.get("correlation_id", event.aggregate_id),
            original_topic=event.event_type,
            original_event_type=event.event_type,
            error_reason=str(error),
            retry_count=attempts,
            payload=event_data,
        )
        try:
            self.producer.publish("dlq.events", dlq_event)
        except Exception as e:
            logger.error(f"Failed to dead-letter outbox event {event.id}: {e}")
            return
        self._mark(event.id, "D")
        logger.warning(f"Outbox event {event.id} moved to DLQ after {attempts} attempts")

    def _publish_loop(self) -> None:
        """Poll and publish outbox events."""
        while self.running:
            try:
                self.publish_pending()
            except Exception as e:
                logger.error(f"Error in outbox publisher: {e}", exc_info=True)
            time.sleep(self.poll_interval)

    def stop(self) -> None:
        """Stop publisher thread."""
        self.running = False
        logger.info("Outbox publisher stopped")
