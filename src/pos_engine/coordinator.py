from __future__ import annotations

import logging
from collections import deque
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterator, Protocol

from .cart import CartStore, CartUpdate, ProductLookup
from .connectivity import ConnectivitySignal
from .events import EventEmitter, Subscription
from .exceptions import (
    ApiError,
    EmptyCartError,
    InsufficientPaymentError,
    PermanentSubmissionError,
    ProductNotFoundError,
    SaleInProgressError,
    TransientSubmissionError,
)
from .idempotency import new_idempotency_key
from .models import FinalizedSale, Product, QueuedSale, SaleAck, SalePayload
from .offline_queue import DrainResult, OfflineSaleQueue
from .receipt import ReceiptRenderer
from .scan_decoder import KeySource, ScanDecoder
from .telemetry import TelemetryLogger, build_event
from .tender import TenderLedger

logger = logging.getLogger(__name__)

TRANSITION_HISTORY = 32


class SaleState(str, Enum):
    BUILDING = "building"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    QUEUED = "queued"
    REJECTED = "rejected"


class SaleSubmitter(Protocol):
    def submit_sale(self, payload: SalePayload) -> SaleAck: ...


@dataclass(frozen=True)
class ScanMiss:
    code: str
    reason: str


@dataclass(frozen=True)
class SaleOutcome:
    state: SaleState
    sale: FinalizedSale
    ack: SaleAck | None = None
    queued: QueuedSale | None = None
    receipt: Any = None


class TransactionCoordinator:
    """Owns one till's cart, tenders and offline queue.

    ``complete`` moves Building → Submitting → Completed/Queued/Rejected and
    always lands back in Building. Cart and tenders are only writable while
    Building; a second ``complete`` during submission is refused.
    """

    def __init__(
        self,
        *,
        lookup: ProductLookup,
        submitter: SaleSubmitter,
        queue: OfflineSaleQueue,
        tax_rate: Decimal | str | float = Decimal("0"),
        scanner: ScanDecoder | None = None,
        renderer: ReceiptRenderer | None = None,
        telemetry: TelemetryLogger | None = None,
        key_factory: Callable[[], str] = new_idempotency_key,
    ) -> None:
        self.cart = CartStore(lookup, tax_rate)
        self.tender = TenderLedger(lambda: self.cart.total)
        self.queue = queue
        self.submitter = submitter
        self.scanner = scanner or ScanDecoder()
        self.renderer = renderer
        self.telemetry = telemetry
        self._key_factory = key_factory
        self.state = SaleState.BUILDING
        self.transitions: deque[SaleState] = deque(maxlen=TRANSITION_HISTORY)
        self.processing = False
        self._scan_misses: EventEmitter[ScanMiss] = EventEmitter()

    @property
    def pending_count(self) -> int:
        return self.queue.pending_count

    def subscribe_scan_misses(self, listener: Callable[[ScanMiss], None]) -> Subscription:
        return self._scan_misses.subscribe(listener)

    @contextmanager
    def bind(self, key_source: KeySource, connectivity: ConnectivitySignal | None = None) -> Iterator["TransactionCoordinator"]:
        """Wire keyboard and connectivity events for the lifetime of the block."""
        with ExitStack() as stack:
            stack.enter_context(self.scanner.attach(key_source))
            stack.enter_context(self.scanner.subscribe(self.scan))
            if connectivity is not None:
                stack.enter_context(connectivity.subscribe(self.on_connectivity))
            yield self

    def scan(self, code: str) -> CartUpdate | None:
        try:
            update = self.cart.add_by_code(code)
        except ProductNotFoundError:
            self._miss(code, "not_found")
            return None
        except ApiError as exc:
            self._miss(code, exc.code)
            return None
        self._emit("cart", "item_scanned", "add_by_code", success=True, context={"clamped": update.clamped})
        return update

    def search(self, query: str, limit: int = 20) -> list[Product]:
        """Free-text lookup for items without a readable code; add a hit with ``cart.add_product``."""
        return self.cart.lookup.search(query, limit)

    def on_connectivity(self, online: bool) -> DrainResult | None:
        if not online:
            return None
        return self.sync_pending()

    def sync_pending(self) -> DrainResult:
        if not self.queue.pending_count:
            return DrainResult()
        result = self.queue.drain(self.submitter.submit_sale)
        if not result.skipped:
            self._emit(
                "queue",
                "offline_sales_drained",
                "drain",
                success=result.completed,
                error_code=result.error.code if result.error else None,
                context={"delivered": len(result.delivered), "remaining": result.remaining},
            )
        return result

    def complete(self, customer_id: str | None = None) -> SaleOutcome:
        if self.processing:
            raise SaleInProgressError("A sale is already being submitted")
        if self.cart.is_empty:
            raise EmptyCartError()
        total = self.cart.total
        total_paid = self.tender.total_paid
        if total_paid < total:
            raise InsufficientPaymentError(total=total, total_paid=total_paid)

        self.processing = True
        self.cart.lock()
        self.tender.lock()
        self._transition(SaleState.SUBMITTING)
        try:
            payload = self._build_payload(customer_id)
            return self._submit(payload)
        finally:
            self.cart.unlock()
            self.tender.unlock()
            self.processing = False
            self._transition(SaleState.BUILDING)

    def _submit(self, payload: SalePayload) -> SaleOutcome:
        if self.queue.pending_count and not self.sync_pending().completed:
            # Older sales are still waiting; stay behind them.
            return self._queue(payload, reason="backlog")
        try:
            ack = self.submitter.submit_sale(payload)
        except TransientSubmissionError as exc:
            return self._queue(payload, reason=exc.code)
        except PermanentSubmissionError as exc:
            self._transition(SaleState.REJECTED)
            self._emit("sale", "sale_rejected", "complete", success=False, error_code=exc.code)
            logger.warning("sale %s rejected: %s", payload.idempotency_key, exc)
            raise
        except ApiError as exc:
            return self._queue(payload, reason=exc.code)

        self._transition(SaleState.COMPLETED)
        self._reset()
        sale = FinalizedSale(status="completed", payload=payload, sale_id=ack.sale_id)
        self._emit("sale", "sale_completed", "complete", success=True, context={"duplicate": ack.duplicate})
        return SaleOutcome(state=SaleState.COMPLETED, sale=sale, ack=ack, receipt=self._render(sale))

    def _queue(self, payload: SalePayload, *, reason: str) -> SaleOutcome:
        entry = self.queue.enqueue(payload)
        self._transition(SaleState.QUEUED)
        self._reset()
        sale = FinalizedSale(status="queued", payload=payload, sequence=entry.sequence)
        self._emit(
            "sale",
            "sale_queued",
            "complete",
            success=True,
            error_code=reason,
            context={"sequence": entry.sequence, "pending": self.queue.pending_count},
        )
        return SaleOutcome(state=SaleState.QUEUED, sale=sale, queued=entry, receipt=self._render(sale))

    def _build_payload(self, customer_id: str | None) -> SalePayload:
        totals = self.tender.totals()
        return SalePayload(
            idempotency_key=self._key_factory(),
            items=self.cart.items(),
            subtotal=self.cart.subtotal,
            tax=self.cart.tax,
            total=totals.total,
            tenders=totals.tenders,
            total_paid=totals.total_paid,
            change=totals.change,
            payment_method=self.tender.payment_method,
            customer_id=customer_id,
        )

    def _reset(self) -> None:
        self.cart.reset()
        self.tender.reset()

    def _render(self, sale: FinalizedSale) -> Any:
        if self.renderer is None:
            return None
        try:
            return self.renderer(sale)
        except Exception:
            # The sale is already recorded; a printer fault must not undo it.
            logger.exception("receipt rendering failed for %s", sale.payload.idempotency_key)
            return None

    def _miss(self, code: str, reason: str) -> None:
        logger.info("scan %s not added: %s", code, reason)
        self._emit("scan", "scan_miss", "add_by_code", success=False, error_code=reason)
        self._scan_misses.emit(ScanMiss(code=code, reason=reason))

    def _transition(self, state: SaleState) -> None:
        logger.debug("sale state %s -> %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    def _emit(
        self,
        category: str,
        name: str,
        action: str,
        *,
        success: bool | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if self.telemetry is None:
            return
        event = build_event(
            category=category,
            name=name,
            action=action,
            success=success,
            error_code=error_code,
            context=context,
        )
        try:
            self.telemetry.emit(event)
        except OSError:
            logger.exception("telemetry sink failed for %s", name)
