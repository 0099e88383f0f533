from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from .clients.sales_client import SalesClient
from .config import ConfigError, EngineConfig, load_config
from .http_client import HttpClient
from .offline_queue import OfflineSaleQueue
from .queue_storage import SqlQueueStorage
from .telemetry import configure_logging

logger = logging.getLogger(__name__)


def _open_queue(config: EngineConfig) -> OfflineSaleQueue:
    return OfflineSaleQueue(SqlQueueStorage(config.queue_db_url))


def _cmd_list(config: EngineConfig, args: argparse.Namespace) -> int:
    queue = _open_queue(config)
    rows = [
        {
            "sequence": entry.sequence,
            "idempotency_key": entry.idempotency_key,
            "enqueued_at": entry.enqueued_at.isoformat(),
            "total": str(entry.payload.total),
            "attempts": entry.attempts,
            "last_error": entry.last_error,
        }
        for entry in queue.entries()
    ]
    print(json.dumps({"pending": len(rows), "entries": rows}, indent=2))
    return 0


def _cmd_drain(config: EngineConfig, args: argparse.Namespace) -> int:
    queue = _open_queue(config)
    client = SalesClient(http=HttpClient(config), access_token=config.access_token)
    result = queue.drain(client.submit_sale)
    summary = {
        "delivered": result.delivered,
        "remaining": result.remaining,
        "halted_on": result.halted_on.sequence if result.halted_on else None,
        "error": str(result.error) if result.error else None,
        "rejected": result.rejected,
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.completed else 1


def _cmd_discard(config: EngineConfig, args: argparse.Namespace) -> int:
    queue = _open_queue(config)
    entry = queue.discard(args.idempotency_key)
    if entry is None:
        print(f"No queued sale with key {args.idempotency_key}", file=sys.stderr)
        return 1
    print(json.dumps({"discarded": entry.idempotency_key, "sequence": entry.sequence}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pos-engine", description="POS transaction engine tools")
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    queue = sub.add_parser("queue", help="Inspect or replay the offline sale queue")
    queue_sub = queue.add_subparsers(dest="queue_command", required=True)
    queue_sub.add_parser("list", help="Print pending sales").set_defaults(handler=_cmd_list)
    queue_sub.add_parser("drain", help="Deliver pending sales in order").set_defaults(handler=_cmd_drain)
    discard = queue_sub.add_parser("discard", help="Drop a sale the ledger will never accept")
    discard.add_argument("idempotency_key")
    discard.set_defaults(handler=_cmd_discard)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        config = load_config(args.env_file)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    return args.handler(config, args)


if __name__ == "__main__":
    raise SystemExit(main())
