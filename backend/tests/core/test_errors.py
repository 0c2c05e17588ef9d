"""Error Hierarchy: kinds, HTTP statuses and the response envelope."""

from dctwin.core.errors import (
    AnomalyAlreadyResolvedError, ConcurrencyError, DatabaseError,
    DuplicateResourceError, ErrorContext, InvalidRequestError,
    PlacementConflictError, ResourceNotFoundError,
)


def test_kinds_and_statuses():
    cases = [
        (ResourceNotFoundError("Device", "D1"), "not_found", 404),
        (InvalidRequestError("bad", "target_phase"), "validation", 400),
        (PlacementConflictError([]), "conflict", 409),
        (ConcurrencyError("lost the race"), "conflict", 409),
        (DuplicateResourceError("Site", "code", "nyc-01"), "conflict", 409),
        (DatabaseError("down", "commit"), "internal", 503),
    ]
    for error, kind, status in cases:
        assert error.kind == kind
        assert error.http_status == status


def test_conflict_envelope_carries_conflicts():
    conflicts = [{"device_id": "D1", "u_start": 10, "u_end": 11}]
    body = PlacementConflictError(conflicts, ErrorContext(rack_id="R1")).to_response()
    assert body["success"] is False
    assert body["error"]["code"] == "PLACEMENT_CONFLICT"
    assert body["error"]["kind"] == "conflict"
    assert body["error"]["conflicts"] == conflicts
    assert body["error"]["context"]["rack_id"] == "R1"


def test_concurrency_conflict_is_marked_retryable():
    body = ConcurrencyError("lost the race").to_response()
    assert body["error"]["code"] == "CONCURRENCY_CONFLICT"
    assert body["error"]["retryable"] is True
    assert "retryable" not in PlacementConflictError([]).to_response()["error"]


def test_already_resolved_is_a_validation_error():
    error = AnomalyAlreadyResolvedError("A1", "RESOLVED")
    assert error.code == "ANOMALY_ALREADY_RESOLVED"
    assert error.kind == "validation"
    assert "already RESOLVED" in error.message
