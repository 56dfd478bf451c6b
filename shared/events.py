"""
events.py - Kafka Event Schema Definitions

PURPOSE:
    Defines the event schemas the inventory service publishes after a
    stock-affecting transaction commits. Uses Pydantic for validation and
    serialization.

EVENT CATEGORIES:
    1. Product Events: Stock-affecting catalog changes
       - product.created
       - product.stock_added

    2. System Events: Dead Letter Queue
       - dlq.events (failed message publishing)

COMMON FIELDS (BaseEvent):
    - event_id: Unique identifier (UUID)
    - event_type: Event category and action
    - timestamp: UTC timestamp of event creation
    - correlation_id: Links the event to the request that produced it

DELIVERY:
    Events are never sent from inside a transaction. The coordinator stores
    them as outbox rows in the same unit as the product and ledger writes;
    the OutboxPublisher sends them once the unit has committed.

USAGE:
    event = StockAddedEvent(
        correlation_id="req-123",
        product_id="PROD-1A2B3C4D5E6F",
        ...
    )
    json_data = event.model_dump_json()
    event = StockAddedEvent.model_validate_json(json_data)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from uuid import uuid4

from pydantic import BaseModel, Field


class BaseEvent(BaseModel):
    """
    Base event model for all Kafka events.

    All events inherit from this class and include:
    - Unique event ID
    - Event type identifier
    - UTC timestamp
    - Correlation ID for request tracing
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str


# ============================================================================
# PRODUCT EVENTS - Stock-affecting catalog changes
# ============================================================================

class LedgerEvent(BaseEvent):
    """Fields shared by every event that carries a ledger entry."""

    product_id: str
    product_name: str
    user_id: str
    seller_id: str
    seller_name: str
    purchase_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    stock: int  # Product stock after the transaction


class ProductCreatedEvent(LedgerEvent):
    """
    Event published when a product is created with its opening purchase.
    Triggers: TransactionCoordinator.create_product commit
    Consumers: Reporting, seller notifications
    """

    event_type: str = "product.created"


class StockAddedEvent(LedgerEvent):
    """
    Event published when stock is added to an existing product.
    Triggers: TransactionCoordinator.add_stock commit
    Consumers: Reporting, low-stock monitors
    """

    event_type: str = "product.stock_added"


# ============================================================================
# DLQ EVENTS - Dead Letter Queue
# ============================================================================

class DLQEvent(BaseEvent):
    """
    Event published when an outbox row keeps failing to publish.
    Purpose: Preserves the payload for manual replay.
    """

    event_type: str = "dlq.events"
    original_topic: str
    original_event_type: str
    error_reason: str
    retry_count: int
    payload: Dict[str, Any]


ALL_TOPICS = [
    "product.created",
    "product.stock_added",
    "dlq.events",
]
