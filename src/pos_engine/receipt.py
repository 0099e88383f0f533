from __future__ import annotations

from decimal import Decimal
from typing import Callable

from .models import FinalizedSale

ReceiptRenderer = Callable[[FinalizedSale], object]

RULE = "------------------------"


def _money(currency: str, value: Decimal) -> str:
    return f"{currency}{value:.2f}"


def render_text_receipt(sale: FinalizedSale, *, title: str = "PHARMACY RECEIPT", currency: str = "₵") -> str:
    payload = sale.payload
    lines = [title, RULE]
    lines.extend(f"{item.name} x{item.quantity} {_money(currency, item.line_total)}" for item in payload.items)
    lines.append(RULE)
    if payload.tax:
        lines.append(f"SUBTOTAL: {_money(currency, payload.subtotal)}")
        lines.append(f"TAX: {_money(currency, payload.tax)}")
    lines.append(f"TOTAL: {_money(currency, payload.total)}")
    lines.append(f"PAID: {_money(currency, payload.total_paid)} ({payload.payment_method})")
    lines.append(f"CHANGE: {_money(currency, payload.change)}")
    lines.append(RULE)
    if sale.status == "queued":
        lines.append(f"OFFLINE #{sale.sequence} - PENDING SYNC")
    elif sale.sale_id:
        lines.append(f"SALE: {sale.sale_id}")
    lines.append("THANK YOU")
    return "\n".join(lines) + "\n"
