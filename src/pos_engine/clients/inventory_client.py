from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from ..exceptions import NotFoundError, ProductNotFoundError
from ..models import Product
from .base import BaseClient


@dataclass
class InventoryClient(BaseClient):
    def get_by_code(self, code: str) -> Product:
        try:
            data = self._request(
                "GET",
                f"/inventory/barcode/{quote(code, safe='')}",
                module="inventory",
                operation="get_by_code",
            )
        except NotFoundError as exc:
            raise ProductNotFoundError(code) from exc
        if not isinstance(data, dict):
            raise ValueError("Expected product response to be a JSON object")
        return Product.model_validate(data)

    def search(self, query: str, limit: int = 20) -> list[Product]:
        data = self._request(
            "GET",
            "/inventory",
            params={"search": query, "limit": limit},
            module="inventory",
            operation="search",
        )
        return [Product.model_validate(row) for row in _rows(data)]


def _rows(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("items", "rows", "data"):
            rows = data.get(key)
            if isinstance(rows, list):
                return rows
    raise ValueError("Expected inventory search response to be a list of products")
