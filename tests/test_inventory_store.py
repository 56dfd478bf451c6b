from decimal import Decimal

import pytest

from services.inventory_service.errors import ErrorKind, InventoryError
from services.inventory_service.repository import InventoryStore, LedgerWriter
from services.inventory_service.schemas import ProductQuery


def _create(coordinator, name, price, stock, user_id="U1", seller="S1"):
    outcome = coordinator.create_product({"name": name, "price": price, "seller": seller, "stock": stock}, user_id)
    assert outcome.ok, outcome.error
    return outcome.value


class TestRead:

    def test_owner_reads_product(self, session_factory, widget):
        with session_factory() as db:
            product = InventoryStore(db).read(widget.id, "U1")
        assert product.name == "Widget"

    def test_other_user_gets_nothing(self, session_factory, widget):
        with session_factory() as db:
            assert InventoryStore(db).read(widget.id, "U2") is None

    def test_unknown_id_raises_not_found(self, session_factory, sellers):
        with session_factory() as db:
            with pytest.raises(InventoryError) as exc_info:
                InventoryStore(db).read("PROD-NOPE", "U1")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND


class TestCountTotalStock:

    def test_sums_only_the_users_products(self, coordinator, session_factory):
        _create(coordinator, "Widget", 10, 5)
        _create(coordinator, "Gadget", 3, 7)
        _create(coordinator, "Gizmo", 1, 100, user_id="U2")

        with session_factory() as db:
            assert InventoryStore(db).count_total_stock("U1") == {"totalQuantity": 12}

    def test_zero_without_products(self, session_factory, sellers):
        with session_factory() as db:
            assert InventoryStore(db).count_total_stock("U1") == {"totalQuantity": 0}


class TestListProducts:

    def test_filters_and_pages(self, coordinator, session_factory):
        _create(coordinator, "Red Widget", 10, 1)
        _create(coordinator, "Blue Widget", 20, 1, seller="S2")
        _create(coordinator, "Green Widget", 30, 1)
        _create(coordinator, "Lamp", 15, 1)
        _create(coordinator, "Other Widget", 10, 1, user_id="U2")

        with session_factory() as db:
            store = InventoryStore(db)
            widgets, total = store.list_products("U1", ProductQuery(search="widget", limit=2))
            assert total == 3
            assert len(widgets) == 2

            _, total = store.list_products("U1", ProductQuery(seller="S2"))
            assert total == 1

            priced, total = store.list_products("U1", ProductQuery(min_price=Decimal("15"), max_price=Decimal("25")))
            assert sorted(p.name for p in priced) == ["Blue Widget", "Lamp"]

            last_page, total = store.list_products("U1", ProductQuery(page=3, limit=2))
            assert total == 4
            assert last_page == []


class TestBulkDelete:

    def test_delete_keeps_ledger_history(self, coordinator, widget, session_factory, snapshot):
        coordinator.add_stock(widget.id, {"seller": "S1", "stock": 3}, "U1")
        before = [(p.id, p.quantity, p.total_price) for p in snapshot.purchases(widget.id)]

        with session_factory() as db:
            deleted = InventoryStore(db).bulk_delete([widget.id])
            db.commit()

        assert deleted == 1
        assert snapshot.product(widget.id) is None
        after = [(p.id, p.quantity, p.total_price) for p in snapshot.purchases(widget.id)]
        assert after == before
        with session_factory() as db:
            assert [p.product_name for p in LedgerWriter(db).list_for_product(widget.id)] == ["Widget", "Widget"]

    def test_deletes_only_listed_ids(self, coordinator, session_factory, snapshot):
        keep = _create(coordinator, "Keep", 1, 1)
        drop = _create(coordinator, "Drop", 1, 1)

        with session_factory() as db:
            assert InventoryStore(db).bulk_delete([drop.id, "PROD-UNKNOWN"]) == 1
            db.commit()

        assert [p.id for p in snapshot.products()] == [keep.id]

    def test_empty_list_is_a_no_op(self, session_factory, sellers):
        with session_factory() as db:
            assert InventoryStore(db).bulk_delete([]) == 0
