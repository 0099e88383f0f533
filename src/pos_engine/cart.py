from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Protocol

from .events import EventEmitter, Subscription
from .exceptions import InvalidAmountError, ProductNotFoundError, TransactionLockedError
from .models import Product, SaleLineItem

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class ProductLookup(Protocol):
    def get_by_code(self, code: str) -> Product: ...

    def search(self, query: str, limit: int = 20) -> list[Product]: ...


@dataclass(frozen=True)
class StockLimitReached:
    product_id: str
    name: str
    stock: int
    requested: int


@dataclass
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock: int | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_item(self) -> SaleLineItem:
        return SaleLineItem(
            product_id=self.product_id,
            name=self.name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_total=quantize_money(self.line_total),
        )


@dataclass(frozen=True)
class CartUpdate:
    line: CartLine | None
    notice: StockLimitReached | None = None

    @property
    def clamped(self) -> bool:
        return self.notice is not None


class CartStore:
    """Line items of the current transaction and their derived totals."""

    def __init__(self, lookup: ProductLookup, tax_rate: Decimal | str | float = Decimal("0")) -> None:
        try:
            rate = Decimal(str(tax_rate))
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid tax rate: {tax_rate!r}") from exc
        if not rate.is_finite() or rate < 0:
            raise InvalidAmountError(f"tax rate must be >= 0, got {rate}")
        self.lookup = lookup
        self.tax_rate = rate
        self._lines: dict[str, CartLine] = {}
        self._locked = False
        self._notices: EventEmitter[StockLimitReached] = EventEmitter()

    def subscribe_notices(self, listener: Callable[[StockLimitReached], None]) -> Subscription:
        return self._notices.subscribe(listener)

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, product_id: str) -> CartLine | None:
        return self._lines.get(product_id)

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(sum((line.line_total for line in self._lines.values()), Decimal("0")))

    @property
    def tax(self) -> Decimal:
        return quantize_money(self.subtotal * self.tax_rate)

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    def add_by_code(self, code: str) -> CartUpdate:
        self._ensure_unlocked()
        product = self.lookup.get_by_code(code)
        if product is None:
            raise ProductNotFoundError(code)
        return self.add_product(product)

    def add_product(self, product: Product) -> CartUpdate:
        self._ensure_unlocked()
        line = self._lines.get(product.id)
        if line is None:
            if product.stock == 0:
                return CartUpdate(line=None, notice=self._limit(product.id, product.name, 0, 1))
            line = CartLine(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                quantity=1,
                stock=product.stock,
            )
            self._lines[product.id] = line
            logger.debug("cart: added %s", product.id)
            return CartUpdate(line=line)
        return self._set_quantity(line, line.quantity + 1)

    def adjust_quantity(self, product_id: str, delta: int) -> CartUpdate:
        self._ensure_unlocked()
        line = self._lines.get(product_id)
        if line is None:
            raise ProductNotFoundError(product_id)
        return self._set_quantity(line, line.quantity + delta)

    def refresh_stock(self, product: Product) -> CartUpdate | None:
        """Apply a fresh stock figure to an existing line, clamping if needed."""
        self._ensure_unlocked()
        line = self._lines.get(product.id)
        if line is None:
            return None
        line.stock = product.stock
        return self._set_quantity(line, line.quantity)

    def remove(self, product_id: str) -> bool:
        self._ensure_unlocked()
        return self._lines.pop(product_id, None) is not None

    def clear(self) -> bool:
        """Empty the cart; False (and nothing happens) when already empty."""
        self._ensure_unlocked()
        if not self._lines:
            return False
        self._lines.clear()
        return True

    def reset(self) -> None:
        self._lines.clear()
        self._locked = False

    def items(self) -> tuple[SaleLineItem, ...]:
        return tuple(line.to_item() for line in self._lines.values())

    def _set_quantity(self, line: CartLine, requested: int) -> CartUpdate:
        quantity = max(requested, 0)
        notice = None
        if line.stock is not None and quantity > line.stock:
            quantity = line.stock
            notice = self._limit(line.product_id, line.name, line.stock, requested)
        if quantity == 0:
            del self._lines[line.product_id]
            return CartUpdate(line=None, notice=notice)
        line.quantity = quantity
        return CartUpdate(line=line, notice=notice)

    def _limit(self, product_id: str, name: str, stock: int, requested: int) -> StockLimitReached:
        notice = StockLimitReached(product_id=product_id, name=name, stock=stock, requested=requested)
        logger.info("stock limit reached for %s (stock=%s, requested=%s)", product_id, stock, requested)
        self._notices.emit(notice)
        return notice

    def _ensure_unlocked(self) -> None:
        if self._locked:
            raise TransactionLockedError("Cart cannot change while a sale is being submitted")
