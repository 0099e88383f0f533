from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SaleStatus = Literal["completed", "queued"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id", "productId"))
    name: str
    price: Decimal = Field(ge=0)
    stock: int | None = Field(default=None, ge=0)
    category: str | None = None
    barcode: str | None = None


class SaleLineItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    product_id: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal
    line_total: Decimal


class SalePayload(BaseModel):
    """Snapshot of a sale taken once at completion; never mutated afterwards."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    idempotency_key: str
    items: tuple[SaleLineItem, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tenders: dict[str, Decimal]
    total_paid: Decimal
    change: Decimal
    payment_method: str
    customer_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SaleAck(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sale_id: str | None = Field(default=None, validation_alias=AliasChoices("saleId", "sale_id", "_id", "id"))
    subtotal: Decimal | None = None
    total: Decimal | None = None
    change: Decimal | None = None
    duplicate: bool = False


class QueuedSale(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=1)
    payload: SalePayload
    enqueued_at: datetime = Field(default_factory=_utcnow)
    attempts: int = 0
    last_error: str | None = None

    @property
    def idempotency_key(self) -> str:
        return self.payload.idempotency_key


class FinalizedSale(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SaleStatus
    payload: SalePayload
    sale_id: str | None = None
    sequence: int | None = None
