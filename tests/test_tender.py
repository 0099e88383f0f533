from __future__ import annotations

from decimal import Decimal

import pytest

from pos_engine.exceptions import InvalidAmountError, TransactionLockedError
from pos_engine.tender import TenderLedger, compute_tender_totals


def _ledger(total: str) -> TenderLedger:
    return TenderLedger(lambda: Decimal(total))


def test_split_tender_settles_exactly() -> None:
    ledger = _ledger("50.00")
    ledger.set_amount("cash", 30)
    ledger.set_amount("momo", "20")
    assert ledger.total_paid == Decimal("50.00")
    assert ledger.change == Decimal("0.00")
    assert ledger.balance_due == Decimal("0.00")
    assert ledger.payment_method == "CASH+MOMO"


def test_set_amount_replaces_previous_value() -> None:
    ledger = _ledger("10.00")
    ledger.set_amount("cash", 4)
    ledger.set_amount("cash", 6)
    assert ledger.amounts["cash"] == Decimal("6.00")


def test_quick_amount_is_additive() -> None:
    ledger = _ledger("10.00")
    ledger.apply_quick_amount("cash", 5)
    ledger.apply_quick_amount("cash", 10)
    assert ledger.amounts["cash"] == Decimal("15.00")
    assert ledger.change == Decimal("5.00")
    assert ledger.balance_due == Decimal("0.00")


def test_apply_exact_clears_balance_on_given_instrument() -> None:
    ledger = _ledger("42.75")
    ledger.set_amount("cash", 20)
    ledger.apply_exact("card")
    assert ledger.amounts["card"] == Decimal("22.75")
    assert ledger.balance_due == Decimal("0.00")
    assert ledger.change == Decimal("0.00")


def test_apply_exact_is_noop_when_settled() -> None:
    ledger = _ledger("10.00")
    ledger.set_amount("momo", 12)
    ledger.apply_exact("cash")
    assert ledger.amounts["cash"] == Decimal("0.00")
    assert ledger.change == Decimal("2.00")


def test_total_tracks_source_changes() -> None:
    total = {"value": Decimal("10.00")}
    ledger = TenderLedger(lambda: total["value"])
    ledger.set_amount("cash", 10)
    total["value"] = Decimal("15.00")
    assert ledger.balance_due == Decimal("5.00")


@pytest.mark.parametrize("amount", [-1, "-0.01", "abc", "NaN", "sNaN", "Infinity"])
def test_set_amount_rejects_invalid_values(amount) -> None:
    ledger = _ledger("10.00")
    with pytest.raises(InvalidAmountError):
        ledger.set_amount("cash", amount)


def test_quick_amount_cannot_go_negative() -> None:
    ledger = _ledger("10.00")
    ledger.set_amount("cash", 5)
    with pytest.raises(InvalidAmountError):
        ledger.apply_quick_amount("cash", -6)
    assert ledger.amounts["cash"] == Decimal("5.00")


def test_unknown_instrument_rejected() -> None:
    with pytest.raises(InvalidAmountError):
        _ledger("1.00").set_amount("cheque", 1)


def test_locked_ledger_rejects_changes() -> None:
    ledger = _ledger("1.00")
    ledger.lock()
    with pytest.raises(TransactionLockedError):
        ledger.apply_exact("cash")


def test_reset_zeroes_all_instruments() -> None:
    ledger = _ledger("5.00")
    ledger.set_amount("card", 5)
    ledger.reset()
    assert ledger.total_paid == Decimal("0.00")
    assert ledger.payment_method == "NONE"


def test_compute_tender_totals() -> None:
    totals = compute_tender_totals(Decimal("10.00"), {"cash": Decimal("6.00"), "card": Decimal("6.00")})
    assert totals.total_paid == Decimal("12.00")
    assert totals.balance_due == Decimal("0.00")
    assert totals.change == Decimal("2.00")
