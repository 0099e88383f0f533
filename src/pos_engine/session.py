from __future__ import annotations

from dataclasses import dataclass, field

from .clients.inventory_client import InventoryClient
from .clients.sales_client import SalesClient
from .config import EngineConfig
from .connectivity import ConnectivityMonitor, HealthProbe
from .coordinator import TransactionCoordinator
from .http_client import HttpClient
from .offline_queue import OfflineSaleQueue
from .queue_storage import QueueStorage, SqlQueueStorage
from .receipt import ReceiptRenderer, render_text_receipt
from .scan_decoder import ScanDecoder
from .telemetry import TelemetryLogger


@dataclass
class PosSession:
    """Builds the engine's collaborators from one config."""

    config: EngineConfig
    device_id: str | None = None
    storage: QueueStorage | None = None
    monitor: ConnectivityMonitor = field(default_factory=ConnectivityMonitor)
    _http_client: HttpClient | None = None

    def _http(self) -> HttpClient:
        if self._http_client is None:
            self._http_client = HttpClient(config=self.config)
        return self._http_client

    def inventory_client(self) -> InventoryClient:
        return InventoryClient(http=self._http(), access_token=self.config.access_token, device_id=self.device_id)

    def sales_client(self) -> SalesClient:
        return SalesClient(http=self._http(), access_token=self.config.access_token, device_id=self.device_id)

    def health_probe(self) -> HealthProbe:
        return HealthProbe(http=self._http(), monitor=self.monitor)

    def offline_queue(self) -> OfflineSaleQueue:
        if self.storage is None:
            self.storage = SqlQueueStorage(self.config.queue_db_url)
        return OfflineSaleQueue(self.storage)

    def coordinator(self, renderer: ReceiptRenderer | None = render_text_receipt) -> TransactionCoordinator:
        return TransactionCoordinator(
            lookup=self.inventory_client(),
            submitter=self.sales_client(),
            queue=self.offline_queue(),
            tax_rate=self.config.effective_tax_rate,
            scanner=ScanDecoder(self.config.scan_timeout_ms, self.config.scan_min_length),
            renderer=renderer,
            telemetry=TelemetryLogger(enabled=self.config.telemetry_enabled),
        )
