from __future__ import annotations

import secrets
from datetime import datetime, timezone

IDEMPOTENCY_HEADER = "Idempotency-Key"


def new_idempotency_key(prefix: str = "sale") -> str:
    """One key per completion attempt; replays of that attempt reuse it."""
    normalized = prefix.strip().lower().replace(" ", "-").replace("_", "-")
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    nonce = secrets.token_hex(8)
    return f"{normalized}-{ts}-{nonce}"


def idempotency_headers(idempotency_key: str) -> dict[str, str]:
    return {IDEMPOTENCY_HEADER: idempotency_key}
