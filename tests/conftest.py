from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR / "src"))

from fakes import FakeCatalog, FakeLedger  # noqa: E402
from pos_engine.config import EngineConfig  # noqa: E402
from pos_engine.models import Product  # noqa: E402


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(env_name="test", api_base_url="https://api.example.com", retries=0, retry_backoff_seconds=0)


@pytest.fixture
def paracetamol() -> Product:
    return Product(id="p-1", name="Paracetamol 500mg", price=Decimal("12.50"), stock=5, barcode="1234")


@pytest.fixture
def bandage() -> Product:
    return Product(id="p-2", name="Bandage", price=Decimal("25.00"), stock=None, barcode="5678")


@pytest.fixture
def catalog(paracetamol: Product, bandage: Product) -> FakeCatalog:
    return FakeCatalog(paracetamol, bandage)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
