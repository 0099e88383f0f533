from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable

from .cart import quantize_money
from .exceptions import InvalidAmountError, TransactionLockedError

INSTRUMENTS = ("cash", "momo", "card")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class TenderTotals:
    total: Decimal
    total_paid: Decimal
    balance_due: Decimal
    change: Decimal
    tenders: dict[str, Decimal]


def compute_tender_totals(total: Decimal, tenders: dict[str, Decimal]) -> TenderTotals:
    total_paid = sum(tenders.values(), ZERO)
    return TenderTotals(
        total=total,
        total_paid=total_paid,
        balance_due=max(total - total_paid, ZERO),
        change=max(total_paid - total, ZERO),
        tenders=dict(tenders),
    )


def _to_amount(value: Decimal | str | float | int) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return quantize_money(amount)


class TenderLedger:
    """Amounts tendered per instrument against a total owned elsewhere."""

    def __init__(self, total_source: Callable[[], Decimal], instruments: tuple[str, ...] = INSTRUMENTS) -> None:
        self._total_source = total_source
        self.instruments = instruments
        self._amounts: dict[str, Decimal] = {instrument: ZERO for instrument in instruments}
        self._locked = False

    @property
    def total(self) -> Decimal:
        return self._total_source()

    @property
    def amounts(self) -> dict[str, Decimal]:
        return dict(self._amounts)

    @property
    def total_paid(self) -> Decimal:
        return sum(self._amounts.values(), ZERO)

    @property
    def change(self) -> Decimal:
        return max(self.total_paid - self.total, ZERO)

    @property
    def balance_due(self) -> Decimal:
        return max(self.total - self.total_paid, ZERO)

    @property
    def payment_method(self) -> str:
        used = [instrument.upper() for instrument in self.instruments if self._amounts[instrument] > 0]
        if not used:
            return "NONE"
        return "+".join(used)

    def totals(self) -> TenderTotals:
        return compute_tender_totals(self.total, {k: v for k, v in self._amounts.items() if v > 0})

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    def set_amount(self, instrument: str, amount: Decimal | str | float | int) -> Decimal:
        self._ensure_writable(instrument)
        value = _to_amount(amount)
        if value < 0:
            raise InvalidAmountError(f"{instrument} amount must be >= 0, got {value}")
        self._amounts[instrument] = value
        return value

    def apply_quick_amount(self, instrument: str, delta: Decimal | str | float | int) -> Decimal:
        self._ensure_writable(instrument)
        value = self._amounts[instrument] + _to_amount(delta)
        if value < 0:
            raise InvalidAmountError(f"{instrument} amount cannot drop below 0 (would be {value})")
        self._amounts[instrument] = value
        return value

    def apply_exact(self, instrument: str) -> Decimal:
        """Top up ``instrument`` so nothing remains due; no-op when settled."""
        self._ensure_writable(instrument)
        due = self.balance_due
        if due > 0:
            self._amounts[instrument] += due
        return self._amounts[instrument]

    def reset(self) -> None:
        self._amounts = {instrument: ZERO for instrument in self.instruments}
        self._locked = False

    def _ensure_writable(self, instrument: str) -> None:
        if self._locked:
            raise TransactionLockedError("Tenders cannot change while a sale is being submitted")
        if instrument not in self._amounts:
            raise InvalidAmountError(f"Unknown payment instrument: {instrument!r}")
