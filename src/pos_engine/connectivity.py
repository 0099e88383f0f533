from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from .events import EventEmitter, Subscription
from .error_mapper import is_transient
from .exceptions import ApiError
from .http_client import HttpClient

logger = logging.getLogger(__name__)


class ConnectivitySignal(Protocol):
    def subscribe(self, listener: Callable[[bool], None]) -> Subscription: ...


class ConnectivityMonitor:
    """Online/offline notifications pushed by the host (or a probe).

    Every call to ``set_online`` is forwarded, including repeats; listeners
    must tolerate spurious signals.
    """

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self._emitter: EventEmitter[bool] = EventEmitter()

    def subscribe(self, listener: Callable[[bool], None]) -> Subscription:
        return self._emitter.subscribe(listener)

    def set_online(self, online: bool) -> None:
        if online != self.online:
            logger.info("connectivity changed: %s", "online" if online else "offline")
        self.online = online
        self._emitter.emit(online)


@dataclass
class HealthProbe:
    http: HttpClient
    monitor: ConnectivityMonitor
    path: str = "/health"

    def check(self) -> bool:
        try:
            self.http.request("GET", self.path, module="connectivity", operation="health")
        except ApiError as exc:
            logger.debug("health probe failed: %s", exc)
            online = not is_transient(exc)
        else:
            online = True
        self.monitor.set_online(online)
        return online
