from __future__ import annotations

from decimal import Decimal

import pytest

from fakes import FakeCatalog
from pos_engine.cart import CartStore, StockLimitReached
from pos_engine.exceptions import InvalidAmountError, ProductNotFoundError, TransactionLockedError
from pos_engine.models import Product


def _subtotal(cart: CartStore) -> Decimal:
    return sum((line.unit_price * line.quantity for line in cart.lines), Decimal("0"))


def test_add_by_code_creates_line_then_increments(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    first = cart.add_by_code("1234")
    second = cart.add_by_code("1234")
    assert first.line is second.line
    assert cart.get("p-1").quantity == 2
    assert cart.subtotal == Decimal("25.00")


def test_unknown_code_raises_not_found_without_mutation(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("5678")
    with pytest.raises(ProductNotFoundError):
        cart.add_by_code("0000")
    assert [line.product_id for line in cart.lines] == ["p-2"]


def test_increment_clamps_at_stock_and_emits_notice(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    notices: list[StockLimitReached] = []
    cart.subscribe_notices(notices.append)
    for _ in range(5):
        cart.add_by_code("1234")
    update = cart.add_by_code("1234")
    assert update.clamped
    assert cart.get("p-1").quantity == 5
    assert notices == [StockLimitReached(product_id="p-1", name="Paracetamol 500mg", stock=5, requested=6)]


def test_adjust_quantity_over_stock_stays_at_stock(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("1234")
    cart.adjust_quantity("p-1", 4)
    update = cart.adjust_quantity("p-1", 1)
    assert cart.get("p-1").quantity == 5
    assert isinstance(update.notice, StockLimitReached)


def test_adjust_quantity_to_zero_removes_line(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("1234")
    cart.adjust_quantity("p-1", 2)
    update = cart.adjust_quantity("p-1", -10)
    assert update.line is None
    assert cart.get("p-1") is None
    assert cart.is_empty


def test_unlimited_stock_never_clamps(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("5678")
    update = cart.adjust_quantity("p-2", 999)
    assert update.notice is None
    assert cart.get("p-2").quantity == 1000


def test_out_of_stock_product_is_not_added() -> None:
    empty = Product(id="p-9", name="Syrup", price=Decimal("8.00"), stock=0, barcode="9999")
    cart = CartStore(FakeCatalog(empty))
    update = cart.add_by_code("9999")
    assert update.line is None
    assert update.clamped
    assert cart.is_empty


def test_lines_keep_insertion_order(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("5678")
    cart.add_by_code("1234")
    cart.add_by_code("5678")
    assert [line.product_id for line in cart.lines] == ["p-2", "p-1"]


def test_unit_price_is_snapshotted_at_add_time(catalog: FakeCatalog, paracetamol: Product) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("1234")
    catalog.products["1234"] = paracetamol.model_copy(update={"price": Decimal("99.00")})
    cart.add_by_code("1234")
    assert cart.get("p-1").unit_price == Decimal("12.50")


def test_subtotal_matches_lines_after_every_mutation(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    steps = [
        lambda: cart.add_by_code("1234"),
        lambda: cart.add_by_code("5678"),
        lambda: cart.adjust_quantity("p-2", 3),
        lambda: cart.adjust_quantity("p-1", 10),
        lambda: cart.remove("p-2"),
        lambda: cart.adjust_quantity("p-1", -2),
    ]
    for step in steps:
        step()
        assert cart.subtotal == _subtotal(cart)


def test_tax_rate_applies_to_total(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog, tax_rate="0.125")
    cart.add_by_code("1234")
    assert cart.subtotal == Decimal("12.50")
    assert cart.tax == Decimal("1.56")
    assert cart.total == Decimal("14.06")


def test_clear_is_noop_on_empty_cart(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    assert cart.clear() is False
    cart.add_by_code("1234")
    assert cart.clear() is True
    assert cart.is_empty


def test_refresh_stock_clamps_existing_line(catalog: FakeCatalog, paracetamol: Product) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("1234")
    cart.adjust_quantity("p-1", 3)
    update = cart.refresh_stock(paracetamol.model_copy(update={"stock": 2}))
    assert update is not None and update.clamped
    assert cart.get("p-1").quantity == 2
    cart.refresh_stock(paracetamol.model_copy(update={"stock": 0}))
    assert cart.get("p-1") is None


def test_locked_cart_rejects_mutations(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    cart.add_by_code("1234")
    cart.lock()
    with pytest.raises(TransactionLockedError):
        cart.add_by_code("5678")
    with pytest.raises(TransactionLockedError):
        cart.adjust_quantity("p-1", 1)
    assert catalog.calls == ["1234"]
    cart.unlock()
    cart.adjust_quantity("p-1", 1)
    assert cart.get("p-1").quantity == 2


def test_adjust_unknown_line_raises(catalog: FakeCatalog) -> None:
    cart = CartStore(catalog)
    with pytest.raises(ProductNotFoundError):
        cart.adjust_quantity("missing", 1)


@pytest.mark.parametrize("rate", ["-0.1", "NaN", "abc"])
def test_rejects_invalid_tax_rate(catalog: FakeCatalog, rate: str) -> None:
    with pytest.raises(InvalidAmountError):
        CartStore(catalog, tax_rate=rate)
