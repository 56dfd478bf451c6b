import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from services.inventory_service.errors import ErrorKind, InventoryError, StepResult
from services.inventory_service.models import OutboxEvent, Product, Purchase, Seller
from services.inventory_service.schemas import ProductCreate, ProductQuery
from shared.events import BaseEvent

logger = logging.getLogger(__name__)


class SellerResolver:
    """Resolves seller references inside the caller's transaction."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def resolve(self, seller_id: str) -> StepResult[Seller]:
        seller = self.db.get(Seller, seller_id)
        if seller is None:
            logger.warning(f"Seller {seller_id} not found")
            return StepResult.failure(ErrorKind.INVALID_REFERENCE, f"Invalid seller ID provided: {seller_id}")
        return StepResult.success(seller)


class InventoryStore:
    """Repository for product records."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def insert(self, payload: ProductCreate, user_id: str) -> StepResult[Product]:
        """Insert a product owned by user_id. Flushes so the id is assigned."""
        product = Product(
            name=payload.name,
            description=payload.description,
            price=payload.price,
            stock=payload.opening_stock,
            seller_id=payload.seller,
            category_id=payload.category,
            brand_id=payload.brand,
            user_id=user_id,
        )
        self.db.add(product)
        self.db.flush()
        logger.info(f"Created product {product.id}: {product.name}, stock: {product.stock}")
        return StepResult.success(product)

    def increment_stock(self, product_id: str, delta: int) -> StepResult[Product]:
        """
        Add delta to stock in a single UPDATE and read the row back.

        The increment is evaluated by the database against the locked row, never
        from a value read earlier, so concurrent increments cannot overwrite
        each other.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + delta, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(f"Product {product_id} not found")
            return StepResult.failure(ErrorKind.NOT_FOUND, f"Product not found: {product_id}")

        product = self.db.execute(
            select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        ).scalar_one()
        logger.info(f"Added {delta} units to {product_id}, stock now {product.stock}")
        return StepResult.success(product)

    def exists(self, product_id: str) -> bool:
        return self.db.execute(select(Product.id).where(Product.id == product_id)).first() is not None

    def read(self, product_id: str, user_id: str) -> Optional[Product]:
        """Get a product by id, visible only to its owning user."""
        if not self.exists(product_id):
            raise InventoryError(ErrorKind.NOT_FOUND, f"Product not found: {product_id}")
        return self.db.execute(
            select(Product).where(Product.id == product_id, Product.user_id == user_id)
        ).scalar_one_or_none()

    def count_total_stock(self, user_id: str) -> dict:
        """Sum of stock across the user's products."""
        total = self.db.execute(
            select(func.coalesce(func.sum(Product.stock), 0)).where(Product.user_id == user_id)
        ).scalar_one()
        return {"totalQuantity": int(total)}

    def list_products(self, user_id: str, query: Optional[ProductQuery] = None) -> tuple:
        """Return (products, total_count) for one page of the user's products."""
        query = query or ProductQuery()
        conditions = [Product.user_id == user_id]
        if query.search:
            conditions.append(Product.name.ilike(f"%{query.search}%"))
        if query.seller:
            conditions.append(Product.seller_id == query.seller)
        if query.category:
            conditions.append(Product.category_id == query.category)
        if query.brand:
            conditions.append(Product.brand_id == query.brand)
        if query.min_price is not None:
            conditions.append(Product.price >= query.min_price)
        if query.max_price is not None:
            conditions.append(Product.price <= query.max_price)

        total = self.db.execute(select(func.count(Product.id)).where(*conditions)).scalar_one()
        products = (
            self.db.execute(
                select(Product)
                .where(*conditions)
                .order_by(Product.created_at.desc(), Product.id)
                .offset((query.page - 1) * query.limit)
                .limit(query.limit)
            )
            .scalars()
            .all()
        )
        return list(products), total

    def bulk_delete(self, product_ids: Sequence[str]) -> int:
        """Delete products by id. Ledger entries referencing them are kept."""
        if not product_ids:
            return 0
        result = self.db.execute(
            delete(Product).where(Product.id.in_(list(product_ids))).execution_options(synchronize_session=False)
        )
        logger.info(f"Deleted {result.rowcount} products")
        return result.rowcount


class LedgerWriter:
    """Append-only writer for purchase records. There is no update or delete."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def append(self, user_id: str, seller: Seller, product: Product, quantity: int) -> StepResult[Purchase]:
        """Record a stock event at the product's current price."""
        unit_price = Decimal(product.price)
        purchase = Purchase(
            user_id=user_id,
            seller_id=seller.id,
            product_id=product.id,
            seller_name=seller.name,
            product_name=product.name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=quantity * unit_price,
        )
        self.db.add(purchase)
        self.db.flush()
        logger.info(f"Recorded purchase {purchase.id}: {quantity} x {unit_price} of {product.id}")
        return StepResult.success(purchase)

    def list_for_product(self, product_id: str) -> List[Purchase]:
        return list(
            self.db.execute(
                select(Purchase).where(Purchase.product_id == product_id).order_by(Purchase.created_at, Purchase.id)
            ).scalars()
        )


class EventOutbox:
    """Outbox rows written in the same transaction as the change they describe."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def add(self, aggregate_id: str, event: BaseEvent) -> StepResult[OutboxEvent]:
        outbox_event = OutboxEvent(
            aggregate_id=aggregate_id,
            event_type=event.event_type,
            event_data=event.model_dump_json(),
            published="N",
            attempts=0,
        )
        self.db.add(outbox_event)
        self.db.flush()
        logger.info(f"Added outbox event {event.event_type} for {aggregate_id}")
        return StepResult.success(outbox_event)

    def get_unpublished_events(self, limit: int = 100) -> List[OutboxEvent]:
        return list(
            self.db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.published == "N")
                .order_by(OutboxEvent.created_at, OutboxEvent.id)
                .limit(limit)
            ).scalars()
        )

    def get(self, outbox_id: str) -> Optional[OutboxEvent]:
        return self.db.get(OutboxEvent, outbox_id)

    def mark_event_published(self, outbox_event: OutboxEvent, status: str = "Y") -> None:
        outbox_event.published = status
        outbox_event.published_at = datetime.now(timezone.utc)
        self.db.flush()

    def record_failure(self, outbox_event: OutboxEvent) -> int:
        outbox_event.attempts += 1
        self.db.flush()
        return outbox_event.attempts
