from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .exceptions import PermanentSubmissionError, SubmissionError, TransientSubmissionError
from .models import QueuedSale, SaleAck, SalePayload
from .queue_storage import QueueStorage
from .telemetry import log_json

logger = logging.getLogger(__name__)

Submit = Callable[[SalePayload], SaleAck]


@dataclass
class DrainResult:
    skipped: bool = False
    delivered: list[str] = field(default_factory=list)
    halted_on: QueuedSale | None = None
    error: SubmissionError | None = None
    remaining: int = 0

    @property
    def rejected(self) -> bool:
        return isinstance(self.error, PermanentSubmissionError)

    @property
    def completed(self) -> bool:
        return not self.skipped and self.halted_on is None


class OfflineSaleQueue:
    """Durable FIFO of sales the ledger has not acknowledged yet.

    Entries are replayed strictly by sequence number. An entry leaves storage
    only once ``submit`` returns for it; the first failure stops the drain so
    a later sale can never overtake an earlier one.
    """

    def __init__(self, storage: QueueStorage, *, clock: Callable[[], datetime] | None = None) -> None:
        self.storage = storage
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: list[QueuedSale] = []
        self._last_sequence = 0
        self._draining = False
        self.reload()

    @property
    def pending_count(self) -> int:
        return len(self._entries)

    @property
    def draining(self) -> bool:
        return self._draining

    def entries(self) -> list[QueuedSale]:
        return list(self._entries)

    def reload(self) -> None:
        self._entries = sorted(self.storage.list(), key=lambda entry: entry.sequence)
        highest = self._entries[-1].sequence if self._entries else 0
        self._last_sequence = max(self.storage.last_sequence(), highest)

    def enqueue(self, payload: SalePayload) -> QueuedSale:
        existing = self._find(payload.idempotency_key)
        if existing is not None:
            logger.info("sale %s already queued as #%s", payload.idempotency_key, existing.sequence)
            return existing
        entry = QueuedSale(sequence=self._last_sequence + 1, payload=payload, enqueued_at=self._clock())
        self.storage.put(entry)
        self._last_sequence = entry.sequence
        self._entries.append(entry)
        log_json(
            logger,
            {
                "event": "offline_sale_queued",
                "sequence": entry.sequence,
                "idempotency_key": entry.idempotency_key,
                "total": entry.payload.total,
                "pending": self.pending_count,
            },
        )
        return entry

    def drain(self, submit: Submit) -> DrainResult:
        if self._draining:
            logger.debug("drain already in flight; ignoring trigger")
            return DrainResult(skipped=True, remaining=self.pending_count)
        self._draining = True
        result = DrainResult()
        try:
            while self._entries:
                entry = self._entries[0]
                try:
                    submit(entry.payload)
                except SubmissionError as exc:
                    result.halted_on = self._record_failure(entry, exc)
                    result.error = exc
                    break
                except Exception as exc:
                    # Unknown outcome; keep the entry so the same key is replayed later.
                    logger.exception("queued sale #%s: unexpected submit failure", entry.sequence)
                    error = TransientSubmissionError(f"Unexpected submit failure: {exc}")
                    result.halted_on = self._record_failure(entry, error)
                    result.error = error
                    break
                self.storage.delete(entry.idempotency_key)
                self._entries.pop(0)
                result.delivered.append(entry.idempotency_key)
                logger.info("queued sale #%s delivered", entry.sequence)
        finally:
            self._draining = False
        result.remaining = self.pending_count
        return result

    def discard(self, idempotency_key: str) -> QueuedSale | None:
        """Operator removal of an entry the ledger will never accept."""
        entry = self._find(idempotency_key)
        if entry is None:
            return None
        self.storage.delete(idempotency_key)
        self._entries.remove(entry)
        logger.warning("queued sale #%s (%s) discarded by operator", entry.sequence, idempotency_key)
        return entry

    def _record_failure(self, entry: QueuedSale, exc: SubmissionError) -> QueuedSale:
        updated = entry.model_copy(update={"attempts": entry.attempts + 1, "last_error": str(exc)})
        self.storage.put(updated)
        self._entries[0] = updated
        if isinstance(exc, PermanentSubmissionError):
            logger.error(
                "queued sale #%s rejected by ledger (%s); drain halted until resolved",
                entry.sequence,
                exc.code,
            )
        else:
            logger.info("drain halted at #%s: %s", entry.sequence, exc)
        return updated

    def _find(self, idempotency_key: str) -> QueuedSale | None:
        for entry in self._entries:
            if entry.idempotency_key == idempotency_key:
                return entry
        return None
