from .base import BaseClient
from .inventory_client import InventoryClient
from .sales_client import SalesClient

__all__ = ["BaseClient", "InventoryClient", "SalesClient"]
