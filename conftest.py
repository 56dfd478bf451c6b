"""Shared pytest fixtures.

Sits at the repository root so `shared` and `services` resolve during
collection without an install. Each test gets its own SQLite file, since
the coordinator's locking is exercised across real connections.
"""

import pytest
from sqlalchemy import select

from services.inventory_service.coordinator import TransactionCoordinator
from services.inventory_service.models import OutboxEvent, Product, Purchase, Seller
from shared.database import init_db, make_engine, make_session_factory


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def sellers(session_factory):
    with session_factory() as db:
        db.add_all([
            Seller(id="S1", name="Acme Supplies"),
            Seller(id="S2", name="Northwind Traders"),
        ])
        db.commit()
    return ["S1", "S2"]


@pytest.fixture()
def coordinator(session_factory, sellers):
    return TransactionCoordinator(session_factory)


class Snapshot:
    """Reads committed rows in short sessions so no lock outlives the call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _all(self, model, *where):
        with self.session_factory() as db:
            return list(db.execute(select(model).where(*where)).scalars())

    def products(self):
        return self._all(Product)

    def product(self, product_id):
        with self.session_factory() as db:
            return db.get(Product, product_id)

    def purchases(self, product_id=None):
        where = [Purchase.product_id == product_id] if product_id else []
        with self.session_factory() as db:
            return list(
                db.execute(select(Purchase).where(*where).order_by(Purchase.created_at, Purchase.id)).scalars()
            )

    def outbox(self):
        return self._all(OutboxEvent)


@pytest.fixture()
def snapshot(session_factory):
    return Snapshot(session_factory)


@pytest.fixture()
def widget(coordinator):
    """A committed product: 5 Widgets at 10.00 from seller S1, owned by U1."""
    outcome = coordinator.create_product({"name": "Widget", "price": 10, "seller": "S1", "stock": 5}, "U1")
    assert outcome.ok, outcome.error
    return outcome.value
