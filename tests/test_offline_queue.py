from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from fakes import FakeLedger, offline
from pos_engine.exceptions import PermanentSubmissionError, TransientSubmissionError
from pos_engine.models import SaleLineItem, SalePayload
from pos_engine.offline_queue import OfflineSaleQueue
from pos_engine.queue_storage import MemoryQueueStorage, SqlQueueStorage


def _payload(key: str, total: str = "10.00") -> SalePayload:
    amount = Decimal(total)
    return SalePayload(
        idempotency_key=key,
        items=(SaleLineItem(product_id="p-1", name="Item", quantity=1, unit_price=amount, line_total=amount),),
        subtotal=amount,
        tax=Decimal("0.00"),
        total=amount,
        tenders={"cash": amount},
        total_paid=amount,
        change=Decimal("0.00"),
        payment_method="CASH",
    )


@pytest.fixture(params=["memory", "sql"])
def storage(request, tmp_path: Path):
    if request.param == "memory":
        return MemoryQueueStorage()
    return SqlQueueStorage(f"sqlite:///{tmp_path / 'queue.sqlite'}")


def test_enqueue_assigns_increasing_sequences(storage) -> None:
    queue = OfflineSaleQueue(storage)
    first = queue.enqueue(_payload("k-1"))
    second = queue.enqueue(_payload("k-2"))
    assert (first.sequence, second.sequence) == (1, 2)
    assert queue.pending_count == 2
    assert [entry.idempotency_key for entry in storage.list()] == ["k-1", "k-2"]


def test_enqueue_same_key_twice_keeps_one_entry(storage) -> None:
    queue = OfflineSaleQueue(storage)
    first = queue.enqueue(_payload("k-1"))
    again = queue.enqueue(_payload("k-1"))
    assert again.sequence == first.sequence
    assert queue.pending_count == 1


def test_drain_delivers_in_sequence_order(storage) -> None:
    queue = OfflineSaleQueue(storage)
    for key in ("k-1", "k-2", "k-3"):
        queue.enqueue(_payload(key))
    ledger = FakeLedger()
    result = queue.drain(ledger.submit_sale)
    assert [payload.idempotency_key for payload in ledger.submitted] == ["k-1", "k-2", "k-3"]
    assert result.delivered == ["k-1", "k-2", "k-3"]
    assert result.completed
    assert queue.pending_count == 0
    assert storage.list() == []


def test_transient_failure_halts_drain_without_skipping(storage) -> None:
    queue = OfflineSaleQueue(storage)
    queue.enqueue(_payload("k-1"))
    queue.enqueue(_payload("k-2"))
    ledger = FakeLedger()
    ledger.fail_next(offline())

    result = queue.drain(ledger.submit_sale)

    assert [payload.idempotency_key for payload in ledger.submitted] == ["k-1"]
    assert result.halted_on is not None and result.halted_on.sequence == 1
    assert result.remaining == 2
    assert [entry.sequence for entry in queue.entries()] == [1, 2]
    assert storage.list()[0].attempts == 1

    retry = queue.drain(ledger.submit_sale)
    assert retry.delivered == ["k-1", "k-2"]
    assert queue.pending_count == 0


def test_success_removes_entry_before_next_submission(storage) -> None:
    queue = OfflineSaleQueue(storage)
    queue.enqueue(_payload("k-1"))
    queue.enqueue(_payload("k-2"))
    ledger = FakeLedger()
    seen: list[list[str]] = []
    ledger.on_submit = lambda payload: seen.append([entry.idempotency_key for entry in storage.list()])
    queue.drain(ledger.submit_sale)
    assert seen == [["k-1", "k-2"], ["k-2"]]


def test_drain_is_not_reentrant(storage) -> None:
    queue = OfflineSaleQueue(storage)
    queue.enqueue(_payload("k-1"))
    queue.enqueue(_payload("k-2"))
    ledger = FakeLedger()
    nested = []
    ledger.on_submit = lambda payload: nested.append(queue.drain(ledger.submit_sale))

    result = queue.drain(ledger.submit_sale)

    assert all(inner.skipped for inner in nested)
    assert len(ledger.submitted) == 2
    assert result.delivered == ["k-1", "k-2"]
    assert queue.draining is False


def test_permanent_rejection_stays_queued(storage) -> None:
    queue = OfflineSaleQueue(storage)
    queue.enqueue(_payload("k-1"))
    queue.enqueue(_payload("k-2"))
    ledger = FakeLedger()
    ledger.fail_next(PermanentSubmissionError("stock mismatch"))

    result = queue.drain(ledger.submit_sale)

    assert result.rejected
    assert queue.pending_count == 2
    assert queue.entries()[0].last_error == "stock mismatch"

    discarded = queue.discard("k-1")
    assert discarded is not None and discarded.sequence == 1
    assert queue.drain(ledger.submit_sale).delivered == ["k-2"]


def test_discard_unknown_key_returns_none(storage) -> None:
    assert OfflineSaleQueue(storage).discard("nope") is None


def test_sql_queue_survives_restart(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'queue.sqlite'}"
    queue = OfflineSaleQueue(SqlQueueStorage(url))
    queue.enqueue(_payload("k-1", "12.50"))
    queue.enqueue(_payload("k-2"))

    reopened = OfflineSaleQueue(SqlQueueStorage(url))

    assert reopened.pending_count == 2
    first = reopened.entries()[0]
    assert first.sequence == 1
    assert first.payload == _payload("k-1", "12.50").model_copy(update={"created_at": first.payload.created_at})
    assert first.payload.total == Decimal("12.50")


def test_sequence_keeps_growing_after_queue_empties(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'queue.sqlite'}"
    queue = OfflineSaleQueue(SqlQueueStorage(url))
    queue.enqueue(_payload("k-1"))
    queue.drain(FakeLedger().submit_sale)

    reopened = OfflineSaleQueue(SqlQueueStorage(url))
    assert reopened.enqueue(_payload("k-2")).sequence == 2


def test_unexpected_submit_error_halts_and_keeps_entry(storage) -> None:
    queue = OfflineSaleQueue(storage)
    queue.enqueue(_payload("k-1"))
    queue.enqueue(_payload("k-2"))
    ledger = FakeLedger()
    ledger.fail_next(RuntimeError("malformed ack"))

    result = queue.drain(ledger.submit_sale)

    assert result.halted_on is not None and result.halted_on.idempotency_key == "k-1"
    assert isinstance(result.error, TransientSubmissionError)
    assert not result.rejected
    assert queue.pending_count == 2
    assert storage.list()[0].attempts == 1
    assert not queue.draining

    assert queue.drain(ledger.submit_sale).delivered == ["k-1", "k-2"]
