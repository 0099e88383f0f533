from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import Integer, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .models import QueuedSale, SalePayload

logger = logging.getLogger(__name__)

SEQUENCE_COUNTER = "offline_sales.sequence"


class QueueStorage(Protocol):
    def list(self) -> list[QueuedSale]: ...

    def put(self, entry: QueuedSale) -> None: ...

    def delete(self, idempotency_key: str) -> bool: ...

    def last_sequence(self) -> int: ...


class Base(DeclarativeBase):
    pass


class OfflineSaleRecord(Base):
    __tablename__ = "offline_sales"

    idempotency_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    enqueued_at: Mapped[str] = mapped_column(String(40), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)


class QueueCounter(Base):
    __tablename__ = "queue_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


def _to_entry(record: OfflineSaleRecord) -> QueuedSale:
    return QueuedSale(
        sequence=record.sequence,
        payload=SalePayload.model_validate(json.loads(record.payload_json)),
        enqueued_at=datetime.fromisoformat(record.enqueued_at),
        attempts=record.attempts,
        last_error=record.last_error,
    )


class SqlQueueStorage:
    """Queued sales in a local database (SQLite file by default)."""

    def __init__(self, url: str, *, engine: Engine | None = None) -> None:
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.url = url
        self.engine = engine or create_engine(url, echo=False, future=True, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, future=True)

    def list(self) -> list[QueuedSale]:
        with self._sessions() as db:
            records = db.scalars(select(OfflineSaleRecord).order_by(OfflineSaleRecord.sequence)).all()
            return [_to_entry(record) for record in records]

    def put(self, entry: QueuedSale) -> None:
        with self._sessions() as db, db.begin():
            record = db.get(OfflineSaleRecord, entry.idempotency_key)
            if record is None:
                record = OfflineSaleRecord(idempotency_key=entry.idempotency_key)
                db.add(record)
            record.sequence = entry.sequence
            record.payload_json = json.dumps(entry.payload.to_wire(), sort_keys=True)
            record.enqueued_at = entry.enqueued_at.isoformat()
            record.attempts = entry.attempts
            record.last_error = entry.last_error
            self._bump_counter(db, entry.sequence)

    def delete(self, idempotency_key: str) -> bool:
        with self._sessions() as db, db.begin():
            record = db.get(OfflineSaleRecord, idempotency_key)
            if record is None:
                return False
            db.delete(record)
            return True

    def last_sequence(self) -> int:
        with self._sessions() as db:
            counter = db.get(QueueCounter, SEQUENCE_COUNTER)
            return counter.value if counter is not None else 0

    def dispose(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _bump_counter(db: Session, sequence: int) -> None:
        counter = db.get(QueueCounter, SEQUENCE_COUNTER)
        if counter is None:
            db.add(QueueCounter(name=SEQUENCE_COUNTER, value=sequence))
        elif sequence > counter.value:
            counter.value = sequence


class MemoryQueueStorage:
    """Process-local storage; nothing survives a restart."""

    def __init__(self) -> None:
        self._entries: dict[str, QueuedSale] = {}
        self._last_sequence = 0

    def list(self) -> list[QueuedSale]:
        return sorted(self._entries.values(), key=lambda entry: entry.sequence)

    def put(self, entry: QueuedSale) -> None:
        self._entries[entry.idempotency_key] = entry
        self._last_sequence = max(self._last_sequence, entry.sequence)

    def delete(self, idempotency_key: str) -> bool:
        return self._entries.pop(idempotency_key, None) is not None

    def last_sequence(self) -> int:
        return self._last_sequence
