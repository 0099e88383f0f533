import pytest

from pos_engine.error_mapper import is_duplicate_ack, is_transient, map_error, to_submission_error
from pos_engine.exceptions import (
    ApiError,
    AuthError,
    ConflictError,
    NotFoundError,
    PermanentSubmissionError,
    RateLimitError,
    ServerError,
    TransientSubmissionError,
    TransportError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (401, AuthError),
        (403, AuthError),
        (404, NotFoundError),
        (400, ValidationError),
        (422, ValidationError),
        (409, ConflictError),
        (429, RateLimitError),
        (500, ServerError),
        (503, ServerError),
        (418, ApiError),
    ],
)
def test_status_mapping(status: int, expected: type) -> None:
    error = map_error(status, {"code": "X", "message": "nope"}, "trace-1")
    assert type(error) is expected
    assert error.status_code == status
    assert error.trace_id == "trace-1"


def test_payload_trace_id_overrides_header() -> None:
    error = map_error(500, {"trace_id": "from-body"}, "from-header")
    assert error.trace_id == "from-body"
    assert error.code == "HTTP_ERROR"
    assert error.message == "Request failed"


def test_transient_classification() -> None:
    transport = TransportError(code="TRANSPORT_ERROR", message="down", details=None, trace_id=None, status_code=0)
    assert is_transient(transport)
    assert is_transient(map_error(408, {}, None))
    assert is_transient(map_error(502, {}, None))
    assert not is_transient(map_error(422, {}, None))
    assert not is_transient(map_error(401, {}, None))


def test_duplicate_ack_needs_replay_code() -> None:
    assert is_duplicate_ack(map_error(409, {"code": "idempotent_replay"}, None))
    assert not is_duplicate_ack(map_error(409, {"code": "STOCK_CONFLICT"}, None))
    assert not is_duplicate_ack(map_error(400, {"code": "IDEMPOTENT_REPLAY"}, None))


def test_submission_error_keeps_cause() -> None:
    transient = to_submission_error(map_error(503, {"code": "UNAVAILABLE"}, "t-1"))
    assert isinstance(transient, TransientSubmissionError)
    assert transient.code == "UNAVAILABLE"
    assert transient.trace_id == "t-1"

    permanent = to_submission_error(map_error(422, {"code": "VALIDATION_ERROR", "message": "bad total"}, None))
    assert isinstance(permanent, PermanentSubmissionError)
    assert str(permanent) == "bad total"
