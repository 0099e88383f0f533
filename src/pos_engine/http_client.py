from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import EngineConfig
from .error_mapper import map_error
from .exceptions import InvalidResponseError, TransportError

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-ID"
TRACE_HEADER_ALIASES = (TRACE_HEADER, "X-Trace-Id", "x-trace-id")


@dataclass
class LastOperation:
    module: str
    operation: str
    duration_ms: int
    result: str
    trace_id: str | None


@dataclass
class HttpClient:
    config: EngineConfig
    session: requests.Session | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _build_url(self, path: str) -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        retry_mutation: bool = False,
        module: str = "unknown",
        operation: str = "unknown",
    ) -> dict[str, Any] | list[Any] | None:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        trace_id = str(uuid.uuid4())
        request_headers = {"Accept": "application/json", TRACE_HEADER: trace_id}
        if headers:
            request_headers.update(headers)

        normalized_method = method.upper()
        url = self._build_url(path)
        # Mutations are only replayed here when the caller sends an idempotency key.
        can_retry = normalized_method in {"GET", "HEAD"} or retry_mutation
        attempts = self.config.retries + 1 if can_retry else 1

        started = time.monotonic()
        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method=normalized_method,
                    url=url,
                    headers=request_headers,
                    json=json_body,
                    params=params,
                    timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                    verify=self.config.verify_ssl,
                )
            except requests.RequestException as exc:
                logger.debug("%s %s attempt %s failed: %s", normalized_method, url, attempt + 1, exc)
                if attempt >= attempts - 1:
                    self._record_operation(module, operation, started, "network_error", trace_id)
                    raise TransportError(
                        code="TRANSPORT_ERROR",
                        message=str(exc),
                        details={"type": type(exc).__name__},
                        trace_id=trace_id,
                        status_code=0,
                        raw_payload=None,
                    ) from exc
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
            time.sleep(self.config.retry_backoff_seconds * (2**attempt))

        if response is None:
            raise RuntimeError("HTTP request finished without a response")

        trace_id = _trace_from_headers(response.headers) or trace_id
        if response.ok:
            if not response.content:
                self._record_operation(module, operation, started, "success", trace_id)
                return None
            try:
                data = response.json()
            except ValueError as exc:
                self._record_operation(module, operation, started, "invalid_response", trace_id)
                raise InvalidResponseError(
                    code="INVALID_RESPONSE",
                    message="Response body is not valid JSON",
                    details={"content_type": response.headers.get("Content-Type")},
                    trace_id=trace_id,
                    status_code=response.status_code,
                    raw_payload=response.text[:200],
                ) from exc
            self._record_operation(module, operation, started, "success", trace_id)
            return data

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError):
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"message": str(payload)}
        self._record_operation(module, operation, started, "error", trace_id)
        raise map_error(response.status_code, payload, trace_id)

    def _record_operation(self, module: str, operation: str, started: float, result: str, trace_id: str | None) -> None:
        self.last_operation = LastOperation(
            module=module,
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
            trace_id=trace_id,
        )


def _trace_from_headers(headers) -> str | None:
    for key in TRACE_HEADER_ALIASES:
        trace_id = headers.get(key)
        if trace_id:
            return trace_id
    return None
