from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable

from dotenv import load_dotenv
from platformdirs import user_data_dir

CHANNELS = {"pharmacy", "general"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class EngineConfig:
    env_name: str
    api_base_url: str
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 10.0
    retries: int = 2
    retry_backoff_seconds: float = 0.3
    verify_ssl: bool = True
    access_token: str | None = None
    scan_timeout_ms: int = 120
    scan_min_length: int = 4
    channel: str = "pharmacy"
    tax_rate: Decimal = Decimal("0")
    queue_db_url: str = ""
    telemetry_enabled: bool = False

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()

    @property
    def effective_tax_rate(self) -> Decimal:
        # Pharmacy sales are zero-rated regardless of POS_TAX_RATE.
        if self.channel == "pharmacy":
            return Decimal("0")
        return self.tax_rate


def default_queue_db_url(app_name: str = "pos-engine") -> str:
    base = Path(user_data_dir(app_name, "POS"))
    base.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{base / 'offline_sales.sqlite'}"


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _read_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ConfigError(f"Invalid {name}: expected a decimal, got {raw!r}") from exc
    if not value.is_finite():
        raise ConfigError(f"Invalid {name}: expected a finite decimal, got {raw!r}")
    return value


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> EngineConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (os.getenv("POS_ENV") or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (os.getenv(f"POS_API_BASE_URL_{env_key}") or "").strip()
        or (os.getenv("POS_API_BASE_URL") or "").strip()
    )
    _require({"POS_API_BASE_URL": api_base_url}, ["POS_API_BASE_URL"])

    timeout_seconds = _read_float("POS_TIMEOUT_SECONDS", "10")
    _validate(timeout_seconds > 0, f"Invalid POS_TIMEOUT_SECONDS: expected > 0, got {timeout_seconds}")

    connect_timeout_seconds = _read_float("POS_CONNECT_TIMEOUT_SECONDS", str(min(timeout_seconds, 5.0)))
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid POS_CONNECT_TIMEOUT_SECONDS: expected > 0, got {connect_timeout_seconds}",
    )

    read_timeout_seconds = _read_float(
        "POS_READ_TIMEOUT_SECONDS",
        str(max(timeout_seconds, connect_timeout_seconds)),
    )
    _validate(
        read_timeout_seconds > 0,
        f"Invalid POS_READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    retries = _read_int("POS_RETRIES", "2")
    _validate(retries >= 0, f"Invalid POS_RETRIES: expected >= 0, got {retries}")

    retry_backoff_seconds = _read_float("POS_RETRY_BACKOFF_SECONDS", "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        f"Invalid POS_RETRY_BACKOFF_SECONDS: expected >= 0, got {retry_backoff_seconds}",
    )

    scan_timeout_ms = _read_int("POS_SCAN_TIMEOUT_MS", "120")
    _validate(scan_timeout_ms > 0, f"Invalid POS_SCAN_TIMEOUT_MS: expected > 0, got {scan_timeout_ms}")

    scan_min_length = _read_int("POS_SCAN_MIN_LENGTH", "4")
    _validate(scan_min_length >= 1, f"Invalid POS_SCAN_MIN_LENGTH: expected >= 1, got {scan_min_length}")

    channel = (os.getenv("POS_CHANNEL") or "pharmacy").strip().lower()
    _validate(channel in CHANNELS, f"Invalid POS_CHANNEL: expected one of {sorted(CHANNELS)}, got {channel!r}")

    tax_rate = _read_decimal("POS_TAX_RATE", "0")
    _validate(
        Decimal("0") <= tax_rate < Decimal("1"),
        f"Invalid POS_TAX_RATE: expected 0 <= rate < 1, got {tax_rate}",
    )

    queue_db_url = (os.getenv("POS_QUEUE_DB_URL") or "").strip() or default_queue_db_url()

    return EngineConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        verify_ssl=_coerce_bool(os.getenv("POS_VERIFY_SSL"), True),
        access_token=(os.getenv("POS_ACCESS_TOKEN") or "").strip() or None,
        scan_timeout_ms=scan_timeout_ms,
        scan_min_length=scan_min_length,
        channel=channel,
        tax_rate=tax_rate,
        queue_db_url=queue_db_url,
        telemetry_enabled=_coerce_bool(os.getenv("POS_TELEMETRY_ENABLED"), False),
    )
