"""
coordinator.py - Product/Ledger Transaction Coordinator

PURPOSE:
    Runs every stock-affecting operation as one atomic unit: the product
    mutation, its purchase (ledger) entry and the outbox event either all
    commit or all roll back.

STATE MACHINE (per transaction):
    STARTED -> SELLER_VALIDATED -> PRODUCT_MUTATED -> LEDGER_APPENDED -> COMMITTED
    Any failing step moves the unit to ABORTED; the session is rolled back
    before the error is returned, so callers never see half-applied state.

STEP ORDER:
    resolve seller -> mutate product -> append ledger (+ outbox) -> commit
    The ledger entry is derived from the values the product mutation
    produced (stock after the increment, current price), so the order is fixed.

RESULTS:
    Each step returns a StepResult. The coordinator inspects it and aborts
    explicitly. Any exception raised inside a step or by the commit is
    converted to TRANSACTION_FAILED and the unit is aborted. Public
    operations return an Outcome holding either the ProductRead or a wrapped
    InventoryError.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar, Union
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from services.inventory_service.errors import ErrorKind, InventoryError, StepResult
from services.inventory_service.repository import EventOutbox, InventoryStore, LedgerWriter, SellerResolver
from services.inventory_service.schemas import ProductCreate, ProductRead, StockAddition, parse_payload
from shared.events import LedgerEvent, ProductCreatedEvent, StockAddedEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    STARTED = "STARTED"
    SELLER_VALIDATED = "SELLER_VALIDATED"
    PRODUCT_MUTATED = "PRODUCT_MUTATED"
    LEDGER_APPENDED = "LEDGER_APPENDED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Terminal result of a coordinator operation."""

    state: TransactionState
    value: Optional[T] = None
    error: Optional[InventoryError] = None
    failed_at: Optional[TransactionState] = None

    @property
    def ok(self) -> bool:
        return self.state is TransactionState.COMMITTED

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


@dataclass
class _UnitOfWork:
    operation: str
    context: str
    session: Session
    correlation_id: str
    state: Optional[TransactionState] = None


class TransactionCoordinator:
    """Ties each product mutation to its ledger entry in one transaction."""

    def __init__(
        self,
        session_factory: sessionmaker,
        resolver_cls: Callable[[Session], SellerResolver] = SellerResolver,
        store_cls: Callable[[Session], InventoryStore] = InventoryStore,
        ledger_cls: Callable[[Session], LedgerWriter] = LedgerWriter,
        outbox_cls: Callable[[Session], EventOutbox] = EventOutbox,
    ):
        self.session_factory = session_factory
        self.resolver_cls = resolver_cls
        self.store_cls = store_cls
        self.ledger_cls = ledger_cls
        self.outbox_cls = outbox_cls

    def create_product(
        self,
        payload: Union[ProductCreate, dict],
        user_id: str,
        correlation_id: Optional[str] = None,
    ) -> Outcome[ProductRead]:
        """Insert a product and its opening purchase (quantity = initial stock)."""
        parsed = parse_payload(ProductCreate, payload)
        if not parsed.ok:
            return self._reject("create", "create failed", parsed.error)
        fields = parsed.value

        with self.session_factory() as session:
            unit = self._begin("create", "create failed", session, correlation_id)
            resolver = self.resolver_cls(session)
            store = self.store_cls(session)
            ledger = self.ledger_cls(session)
            outbox = self.outbox_cls(session)

            seller = self._step(unit, TransactionState.SELLER_VALIDATED, resolver.resolve, fields.seller)
            if not seller.ok:
                return self._abort(unit, seller.error)

            product = self._step(unit, TransactionState.PRODUCT_MUTATED, store.insert, fields, user_id)
            if not product.ok:
                return self._abort(unit, product.error)

            purchase = self._step(
                unit,
                TransactionState.LEDGER_APPENDED,
                ledger.append,
                user_id,
                seller.value,
                product.value,
                product.value.stock,
            )
            if not purchase.ok:
                return self._abort(unit, purchase.error)

            event = self._ledger_event(ProductCreatedEvent, unit, product.value, purchase.value)
            recorded = self._step(unit, TransactionState.LEDGER_APPENDED, outbox.add, product.value.id, event)
            if not recorded.ok:
                return self._abort(unit, recorded.error)

            return self._commit(unit, product.value)

    def add_stock(
        self,
        product_id: str,
        payload: Union[StockAddition, dict],
        user_id: str,
        correlation_id: Optional[str] = None,
    ) -> Outcome[ProductRead]:
        """Increment a product's stock and append a purchase for the delta."""
        parsed = parse_payload(StockAddition, payload)
        if not parsed.ok:
            return self._reject("add_stock", "stock update failed", parsed.error)
        fields = parsed.value

        with self.session_factory() as session:
            unit = self._begin("add_stock", "stock update failed", session, correlation_id)
            resolver = self.resolver_cls(session)
            store = self.store_cls(session)
            ledger = self.ledger_cls(session)
            outbox = self.outbox_cls(session)

            seller = self._step(unit, TransactionState.SELLER_VALIDATED, resolver.resolve, fields.seller)
            if not seller.ok:
                return self._abort(unit, seller.error)

            product = self._step(
                unit, TransactionState.PRODUCT_MUTATED, store.increment_stock, product_id, fields.stock
            )
            if not product.ok:
                return self._abort(unit, product.error)

            purchase = self._step(
                unit,
                TransactionState.LEDGER_APPENDED,
                ledger.append,
                user_id,
                seller.value,
                product.value,
                fields.stock,
            )
            if not purchase.ok:
                return self._abort(unit, purchase.error)

            event = self._ledger_event(StockAddedEvent, unit, product.value, purchase.value)
            recorded = self._step(unit, TransactionState.LEDGER_APPENDED, outbox.add, product.value.id, event)
            if not recorded.ok:
                return self._abort(unit, recorded.error)

            return self._commit(unit, product.value)

    # --- Unit of work ---------------------------------------------------------

    def _begin(self, operation: str, context: str, session: Session, correlation_id: Optional[str]) -> _UnitOfWork:
        unit = _UnitOfWork(
            operation=operation,
            context=context,
            session=session,
            correlation_id=correlation_id or str(uuid4()),
        )
        session.begin()
        unit.state = TransactionState.STARTED
        logger.debug(f"{operation} transaction started", extra=self._log_extra(unit))
        return unit

    def _step(self, unit: _UnitOfWork, next_state: TransactionState, fn: Callable[..., StepResult], *args) -> StepResult:
        """Run one step; on success the unit advances to next_state."""
        try:
            result = fn(*args)
        except SQLAlchemyError as exc:
            result = StepResult.failure(ErrorKind.TRANSACTION_FAILED, str(exc).splitlines()[0], cause=exc)
        except Exception as exc:
            result = StepResult.failure(ErrorKind.TRANSACTION_FAILED, f"{type(exc).__name__}: {exc}", cause=exc)
        if result.ok:
            unit.state = next_state
        return result

    def _commit(self, unit: _UnitOfWork, product) -> Outcome[ProductRead]:
        try:
            unit.session.commit()
        except SQLAlchemyError as exc:
            error = InventoryError(ErrorKind.TRANSACTION_FAILED, str(exc).splitlines()[0], cause=exc)
            return self._abort(unit, error)
        except Exception as exc:
            error = InventoryError(ErrorKind.TRANSACTION_FAILED, f"{type(exc).__name__}: {exc}", cause=exc)
            return self._abort(unit, error)

        unit.state = TransactionState.COMMITTED
        logger.info(f"{unit.operation} committed for product {product.id}", extra=self._log_extra(unit))
        return Outcome(state=TransactionState.COMMITTED, value=ProductRead.model_validate(product))

    def _abort(self, unit: _UnitOfWork, error: InventoryError) -> Outcome[ProductRead]:
        failed_at = unit.state
        wrapped = error.wrap(unit.context)
        logger.error(
            f"{unit.operation} aborted after {failed_at.value}: {error.message}",
            exc_info=error.cause,
            extra=self._log_extra(unit),
        )
        try:
            unit.session.rollback()
        except SQLAlchemyError as exc:
            logger.error(f"Rollback failed for {unit.operation}: {exc}", extra=self._log_extra(unit))
        unit.state = TransactionState.ABORTED
        return Outcome(state=TransactionState.ABORTED, error=wrapped, failed_at=failed_at)

    def _reject(self, operation: str, context: str, error: InventoryError) -> Outcome[ProductRead]:
        """Payload rejected before any transaction was opened."""
        logger.warning(f"{operation} rejected: {error.message}", extra={"operation": operation})
        return Outcome(state=TransactionState.ABORTED, error=error.wrap(context))

    # --- Helpers --------------------------------------------------------------

    @staticmethod
    def _ledger_event(event_cls, unit: _UnitOfWork, product, purchase) -> LedgerEvent:
        return event_cls(
            correlation_id=unit.correlation_id,
            product_id=product.id,
            product_name=product.name,
            user_id=purchase.user_id,
            seller_id=purchase.seller_id,
            seller_name=purchase.seller_name,
            purchase_id=purchase.id,
            quantity=purchase.quantity,
            unit_price=purchase.unit_price,
            total_price=purchase.total_price,
            stock=product.stock,
        )

    @staticmethod
    def _log_extra(unit: _UnitOfWork) -> dict:
        return {
            "operation": unit.operation,
            "correlation_id": unit.correlation_id,
            "transaction_state": unit.state.value if unit.state else None,
        }
