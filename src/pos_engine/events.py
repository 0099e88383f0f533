from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[[T], None]


class Subscription:
    """Handle returned by ``subscribe``; closing it twice is harmless."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def close(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventEmitter(Generic[T]):
    def __init__(self) -> None:
        self._listeners: list[Listener[T]] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Subscription:
        self._listeners.append(listener)

        def _release() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                logger.debug("listener already released")

        return Subscription(_release)

    def emit(self, event: T) -> None:
        for listener in list(self._listeners):
            listener(event)
