from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

from .events import EventEmitter, Subscription

logger = logging.getLogger(__name__)

ENTER = "Enter"
DEFAULT_TIMEOUT_MS = 120
DEFAULT_MIN_LENGTH = 4


@dataclass(frozen=True)
class KeyEvent:
    key: str
    timestamp_ms: float
    in_text_input: bool = False


class KeySource(Protocol):
    def subscribe(self, listener: Callable[[KeyEvent], None]) -> Subscription: ...


def _is_scannable(key: str) -> bool:
    return len(key) == 1 and key.isascii() and key.isalnum()


class ScanDecoder:
    """Turns a scanner's keystroke burst into one scanned code.

    Keys must arrive less than ``timeout_ms`` apart; a slower gap means the
    inactivity timer fired and whatever was buffered is thrown away. ``Enter``
    flushes the buffer as a code when it holds at least ``min_length``
    characters. Short or slow input is dropped without error.
    """

    def __init__(self, timeout_ms: float = DEFAULT_TIMEOUT_MS, min_length: int = DEFAULT_MIN_LENGTH) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        if min_length < 1:
            raise ValueError("min_length must be >= 1")
        self.timeout_ms = timeout_ms
        self.min_length = min_length
        self._buffer: list[str] = []
        self._last_key_ms: float | None = None
        self._codes: EventEmitter[str] = EventEmitter()

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    def subscribe(self, listener: Callable[[str], None]) -> Subscription:
        return self._codes.subscribe(listener)

    @contextmanager
    def attach(self, source: KeySource) -> Iterator["ScanDecoder"]:
        subscription = source.subscribe(self.feed)
        try:
            yield self
        finally:
            subscription.close()
            self.reset()

    def reset(self) -> None:
        self._buffer.clear()
        self._last_key_ms = None

    def expire(self, now_ms: float) -> bool:
        """Apply the inactivity timer at ``now_ms``; True if a buffer was dropped."""
        if self._buffer and self._is_stale(now_ms):
            logger.debug("scan buffer expired after inactivity (%d chars)", len(self._buffer))
            self.reset()
            return True
        return False

    def feed(self, event: KeyEvent) -> str | None:
        if event.in_text_input:
            return None
        if event.key == ENTER:
            return self._flush(event.timestamp_ms)
        if not _is_scannable(event.key):
            return None
        self.expire(event.timestamp_ms)
        self._buffer.append(event.key)
        self._last_key_ms = event.timestamp_ms
        return None

    def _flush(self, now_ms: float) -> str | None:
        self.expire(now_ms)
        code = self.buffer
        self.reset()
        if len(code) < self.min_length:
            if code:
                logger.debug("discarding short scan (%d chars)", len(code))
            return None
        self._codes.emit(code)
        return code

    def _is_stale(self, now_ms: float) -> bool:
        return self._last_key_ms is not None and now_ms - self._last_key_ms >= self.timeout_ms
