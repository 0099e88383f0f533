from __future__ import annotations

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from ..error_mapper import is_duplicate_ack, to_submission_error
from ..exceptions import ApiError, InvalidResponseError
from ..idempotency import idempotency_headers
from ..models import SaleAck, SalePayload
from .base import BaseClient

logger = logging.getLogger(__name__)


@dataclass
class SalesClient(BaseClient):
    def submit_sale(self, payload: SalePayload) -> SaleAck:
        """POST the sale; the idempotency key goes out on every attempt.

        Raises ``TransientSubmissionError`` when the ledger is unreachable or
        temporarily failing and ``PermanentSubmissionError`` when it refuses
        the sale. A replay of an already-applied key counts as acknowledged,
        and so does any 2xx, whatever its body.
        """
        try:
            data = self._request(
                "POST",
                "/sales",
                json_body=payload.to_wire(),
                headers=idempotency_headers(payload.idempotency_key),
                retry_mutation=True,
                module="sales",
                operation="submit_sale",
            )
        except InvalidResponseError as exc:
            logger.warning("sale %s accepted with an unreadable body: %s", payload.idempotency_key, exc)
            return SaleAck()
        except ApiError as exc:
            if is_duplicate_ack(exc):
                logger.info("sale %s already recorded by ledger", payload.idempotency_key)
                return _duplicate_ack(exc)
            raise to_submission_error(exc) from exc
        return _parse_ack(payload, data)


def _parse_ack(payload: SalePayload, data: object) -> SaleAck:
    if data is None:
        return SaleAck()
    if not isinstance(data, dict):
        logger.warning("sale %s accepted with a non-object body", payload.idempotency_key)
        return SaleAck()
    try:
        return SaleAck.model_validate(data)
    except ValidationError as exc:
        logger.warning("sale %s accepted with an unexpected body: %s", payload.idempotency_key, exc)
        return SaleAck()


def _duplicate_ack(error: ApiError) -> SaleAck:
    details = error.details if isinstance(error.details, dict) else {}
    try:
        return SaleAck.model_validate({**details, "duplicate": True})
    except ValidationError:
        return SaleAck(duplicate=True)
