from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from services.inventory_service.coordinator import TransactionCoordinator, TransactionState
from services.inventory_service.errors import ErrorKind
from services.inventory_service.models import Product, Seller
from services.inventory_service.repository import InventoryStore, LedgerWriter


class ExplodingLedger(LedgerWriter):
    def append(self, *args, **kwargs):
        raise OperationalError("INSERT INTO purchases", {}, Exception("connection reset"))


class OverflowingStore(InventoryStore):
    def increment_stock(self, *args, **kwargs):
        raise OverflowError("Python int too large to convert to SQLite INTEGER")


def _set_price(session_factory, product_id, price):
    with session_factory() as db:
        db.execute(update(Product).where(Product.id == product_id).values(price=price))
        db.commit()


class TestAddStock:

    def test_increments_stock_and_appends_purchase(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": 3}, "U1")

        assert outcome.ok
        assert outcome.value.id == widget.id
        assert outcome.value.stock == 8

        purchases = snapshot.purchases(widget.id)
        assert [p.quantity for p in purchases] == [5, 3]
        latest = purchases[-1]
        assert latest.unit_price == Decimal("10")
        assert latest.total_price == Decimal("30")
        assert latest.product_name == "Widget"

    def test_uses_price_at_time_of_call(self, coordinator, widget, snapshot, session_factory):
        _set_price(session_factory, widget.id, Decimal("12.50"))

        coordinator.add_stock(widget.id, {"seller": "S1", "stock": 2}, "U1")

        latest = snapshot.purchases(widget.id)[-1]
        assert latest.unit_price == Decimal("12.50")
        assert latest.total_price == Decimal("25.00")

    def test_purchase_records_the_supplying_seller(self, coordinator, widget, snapshot):
        coordinator.add_stock(widget.id, {"seller": "S2", "stock": 4}, "U1")

        latest = snapshot.purchases(widget.id)[-1]
        assert latest.seller_id == "S2"
        assert latest.seller_name == "Northwind Traders"
        assert snapshot.product(widget.id).seller_id == "S1"

    def test_ledger_names_survive_renames(self, coordinator, widget, snapshot, session_factory):
        coordinator.add_stock(widget.id, {"seller": "S1", "stock": 1}, "U1")
        with session_factory() as db:
            db.get(Seller, "S1").name = "Acme Holdings"
            db.get(Product, widget.id).name = "Widget Pro"
            db.commit()

        assert {p.seller_name for p in snapshot.purchases(widget.id)} == {"Acme Supplies"}
        assert {p.product_name for p in snapshot.purchases(widget.id)} == {"Widget"}

    def test_negative_delta_is_recorded(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": -2}, "U1")

        assert outcome.value.stock == 3
        latest = snapshot.purchases(widget.id)[-1]
        assert latest.quantity == -2
        assert latest.total_price == Decimal("-20")

    def test_writes_stock_added_event(self, coordinator, widget, snapshot):
        coordinator.add_stock(widget.id, {"seller": "S1", "stock": 3}, "U1")

        assert sorted(e.event_type for e in snapshot.outbox()) == ["product.created", "product.stock_added"]


class TestAddStockFailures:

    def test_unknown_product_commits_nothing(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock("PROD-MISSING", {"seller": "S1", "stock": 3}, "U1")

        assert outcome.error.kind is ErrorKind.NOT_FOUND
        assert outcome.error.status_code == 404
        assert outcome.error.message == "stock update failed: Product not found: PROD-MISSING"
        assert outcome.failed_at is TransactionState.SELLER_VALIDATED
        assert len(snapshot.purchases()) == 1

    def test_unknown_seller_leaves_stock_alone(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock(widget.id, {"seller": "S9", "stock": 3}, "U1")

        assert outcome.error.kind is ErrorKind.INVALID_REFERENCE
        assert outcome.error.message == "stock update failed: Invalid seller ID provided: S9"
        assert snapshot.product(widget.id).stock == 5
        assert len(snapshot.purchases(widget.id)) == 1

    def test_missing_stock_is_rejected(self, coordinator, widget):
        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": ""}, "U1")

        assert outcome.error.kind is ErrorKind.MISSING_FIELD
        assert outcome.error.message == "stock update failed: Missing required fields: stock"

    def test_delta_beyond_column_range_is_rejected(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": 10**20}, "U1")

        assert outcome.state is TransactionState.ABORTED
        assert outcome.error.kind is ErrorKind.INVALID_FIELD
        assert outcome.error.message.startswith("stock update failed: Invalid fields: stock")
        assert outcome.failed_at is None
        assert snapshot.product(widget.id).stock == 5
        assert len(snapshot.purchases(widget.id)) == 1

    def test_unexpected_increment_exception_aborts(self, session_factory, widget, snapshot):
        coordinator = TransactionCoordinator(session_factory, store_cls=OverflowingStore)

        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": 3}, "U1")

        assert outcome.error.kind is ErrorKind.TRANSACTION_FAILED
        assert outcome.failed_at is TransactionState.SELLER_VALIDATED
        assert isinstance(outcome.error.cause, OverflowError)
        assert snapshot.product(widget.id).stock == 5
        assert len(snapshot.purchases(widget.id)) == 1

    def test_decrement_below_zero_is_rolled_back(self, coordinator, widget, snapshot):
        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": -6}, "U1")

        assert outcome.error.kind is ErrorKind.TRANSACTION_FAILED
        assert outcome.failed_at is TransactionState.SELLER_VALIDATED
        assert snapshot.product(widget.id).stock == 5
        assert len(snapshot.purchases(widget.id)) == 1

    def test_ledger_failure_rolls_back_increment(self, session_factory, widget, snapshot):
        coordinator = TransactionCoordinator(session_factory, ledger_cls=ExplodingLedger)

        outcome = coordinator.add_stock(widget.id, {"seller": "S1", "stock": 3}, "U1")

        assert outcome.error.kind is ErrorKind.TRANSACTION_FAILED
        assert outcome.failed_at is TransactionState.PRODUCT_MUTATED
        assert "connection reset" in outcome.error.message
        assert snapshot.product(widget.id).stock == 5
        assert len(snapshot.purchases(widget.id)) == 1
        assert len(snapshot.outbox()) == 1
