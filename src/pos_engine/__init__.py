from .cart import CartLine, CartStore, CartUpdate, ProductLookup, StockLimitReached
from .clients import InventoryClient, SalesClient
from .config import ConfigError, EngineConfig, load_config
from .connectivity import ConnectivityMonitor, ConnectivitySignal, HealthProbe
from .coordinator import SaleOutcome, SaleState, ScanMiss, TransactionCoordinator
from .events import EventEmitter, Subscription
from .exceptions import (
    ApiError,
    AuthError,
    EmptyCartError,
    InsufficientPaymentError,
    InvalidAmountError,
    InvalidResponseError,
    NotFoundError,
    PermanentSubmissionError,
    PosEngineError,
    ProductNotFoundError,
    SaleInProgressError,
    TransactionLockedError,
    TransientSubmissionError,
    TransportError,
)
from .http_client import HttpClient
from .idempotency import new_idempotency_key
from .models import FinalizedSale, Product, QueuedSale, SaleAck, SaleLineItem, SalePayload
from .offline_queue import DrainResult, OfflineSaleQueue
from .queue_storage import MemoryQueueStorage, QueueStorage, SqlQueueStorage
from .receipt import render_text_receipt
from .scan_decoder import KeyEvent, KeySource, ScanDecoder
from .session import PosSession
from .tender import TenderLedger, TenderTotals

__all__ = [
    "ApiError",
    "AuthError",
    "CartLine",
    "CartStore",
    "CartUpdate",
    "ConfigError",
    "ConnectivityMonitor",
    "ConnectivitySignal",
    "DrainResult",
    "EmptyCartError",
    "EngineConfig",
    "EventEmitter",
    "FinalizedSale",
    "HealthProbe",
    "HttpClient",
    "InsufficientPaymentError",
    "InvalidAmountError",
    "InvalidResponseError",
    "InventoryClient",
    "KeyEvent",
    "KeySource",
    "MemoryQueueStorage",
    "NotFoundError",
    "OfflineSaleQueue",
    "PermanentSubmissionError",
    "PosEngineError",
    "PosSession",
    "Product",
    "ProductLookup",
    "ProductNotFoundError",
    "QueueStorage",
    "QueuedSale",
    "SaleAck",
    "SaleInProgressError",
    "SaleLineItem",
    "SaleOutcome",
    "SalePayload",
    "SaleState",
    "SalesClient",
    "ScanDecoder",
    "ScanMiss",
    "SqlQueueStorage",
    "StockLimitReached",
    "Subscription",
    "TenderLedger",
    "TenderTotals",
    "TransactionCoordinator",
    "TransactionLockedError",
    "TransientSubmissionError",
    "TransportError",
    "load_config",
    "new_idempotency_key",
    "render_text_receipt",
]
