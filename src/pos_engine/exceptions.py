from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    trace_id: str | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class AuthError(ApiError):
    """401/403 from the API; the host owns re-authentication."""


class NotFoundError(ApiError):
    pass


class ValidationError(ApiError):
    pass


class ConflictError(ApiError):
    """409 or conflict-style errors."""


class RateLimitError(ApiError):
    """429 throttling error."""


class ServerError(ApiError):
    """5xx server-side failures."""


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""


class InvalidResponseError(ApiError):
    """2xx response whose body could not be decoded."""


class PosEngineError(Exception):
    pass


class ProductNotFoundError(PosEngineError, LookupError):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Product not found: {reference}")
        self.reference = reference


class EmptyCartError(PosEngineError):
    def __init__(self) -> None:
        super().__init__("Cart is empty")


class InsufficientPaymentError(PosEngineError):
    def __init__(self, total: Decimal, total_paid: Decimal) -> None:
        super().__init__(f"Payment insufficient: paid {total_paid} of {total}")
        self.total = total
        self.total_paid = total_paid

    @property
    def balance_due(self) -> Decimal:
        return self.total - self.total_paid


class InvalidAmountError(PosEngineError, ValueError):
    pass


class TransactionLockedError(PosEngineError):
    """Cart or tender mutated while a sale is being submitted."""


class SaleInProgressError(PosEngineError):
    """complete() called while a previous submission is still processing."""


class SubmissionError(PosEngineError):
    def __init__(self, message: str, *, cause: ApiError | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def code(self) -> str:
        return self.cause.code if self.cause is not None else "SUBMISSION_FAILED"

    @property
    def trace_id(self) -> str | None:
        return self.cause.trace_id if self.cause is not None else None


class TransientSubmissionError(SubmissionError):
    """Offline or retryable failure; the sale belongs in the offline queue."""


class PermanentSubmissionError(SubmissionError):
    """The ledger refused the sale; retrying the same payload will not help."""
