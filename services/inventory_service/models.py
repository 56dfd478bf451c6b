from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from shared.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12].upper()}"


class Seller(Base):
    """Seller reference entity, read-only to the transactional core."""

    __tablename__ = "sellers"

    id = Column(String(64), primary_key=True, default=lambda: new_id("SELL"))
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    user_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Product(Base):
    """Inventory record owned by a user and supplied by a seller."""

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
    )

    id = Column(String(64), primary_key=True, default=lambda: new_id("PROD"))
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    seller_id = Column(String(64), ForeignKey("sellers.id"), nullable=False, index=True)
    category_id = Column(String(64), nullable=True, index=True)
    brand_id = Column(String(64), nullable=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Purchase(Base):
    """Append-only ledger entry for one stock-affecting event.

    Seller and product are plain columns, not foreign keys: deleting a
    product must leave its history in place.
    """

    __tablename__ = "purchases"

    id = Column(String(64), primary_key=True, default=lambda: new_id("PUR"))
    user_id = Column(String(255), nullable=False, index=True)
    seller_id = Column(String(64), nullable=False, index=True)
    product_id = Column(String(64), nullable=False, index=True)
    seller_name = Column(String(255), nullable=False)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(18, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class OutboxEvent(Base):
    """Outbox pattern for reliable Kafka publishing."""

    __tablename__ = "outbox_events"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid4()))
    aggregate_id = Column(String(64), nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    event_data = Column(Text, nullable=False)  # JSON string
    published = Column(String(1), default="N", nullable=False)  # N pending, Y sent, D dead-lettered
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
