"""Error Hierarchy: typed, categorized exceptions for every twin failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Four caller-visible kinds: not_found, validation, conflict, internal
    - PlacementConflictError is resolvable by retrying with another placement;
      ConcurrencyError by retrying the same request
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with TwinError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Conflicts carry plain dicts, not ORM rows, so the envelope is JSON-ready
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    site_id: str | None = None
    device_id: str | None = None
    rack_id: str | None = None
    user_id: str | None = None
    debug_info: dict[str, Any] | None = None


_KIND = {
    ErrorCategory.VALIDATION: "validation",
    ErrorCategory.RESOURCE_NOT_FOUND: "not_found",
    ErrorCategory.CONFLICT: "conflict",
}


class TwinError(Exception):
    """Base exception for all twin errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    @property
    def kind(self) -> str:
        """Caller-facing failure kind: not_found, validation, conflict or internal."""
        return _KIND.get(self.category, "internal")

    def details(self) -> dict[str, Any]:
        """Structured detail specific to the error subclass."""
        return {}

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        error = {
            "code": self.code,
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": {
                "site_id": self.context.site_id,
                "device_id": self.context.device_id,
                "rack_id": self.context.rack_id,
            },
        }
        error.update(self.details())
        return {"success": False, "error": error}


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidRequestError(TwinError):
    """Malformed phase, move type, position or other input."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class PlacementOutOfBoundsError(InvalidRequestError):
    """Requested U-interval does not fit inside the rack."""
    def __init__(
        self, rack_id: str, u_start: int, u_height: int, rack_u_height: int,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Placement U{u_start}-U{u_start + u_height - 1} does not fit "
            f"rack '{rack_id}' (U1-U{rack_u_height})",
            "u_start", context,
        )
        self.code = "PLACEMENT_OUT_OF_BOUNDS"
        self.rack_id = rack_id
        self.u_start = u_start
        self.u_height = u_height
        self.rack_u_height = rack_u_height

    def details(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "bounds": {"min_u": 1, "max_u": self.rack_u_height},
        }


class ResourceNotFoundError(TwinError):
    """Requested resource does not exist (or is soft-deleted)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class PlacementConflictError(TwinError):
    """Target U-range overlaps devices visible in an affected phase."""
    def __init__(self, conflicts: list[dict], context: ErrorContext | None = None):
        super().__init__(
            f"U-space conflict detected. {len(conflicts)} device(s) occupy "
            f"overlapping positions.",
            "PLACEMENT_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.conflicts = conflicts

    def details(self) -> dict[str, Any]:
        return {"conflicts": self.conflicts}


class ConcurrencyError(TwinError):
    """Concurrent write to the same rack or batch; the transaction was rolled back."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )

    def details(self) -> dict[str, Any]:
        return {"retryable": True}


class DuplicateResourceError(TwinError):
    """A resource with the same unique key already exists."""
    def __init__(
        self, resource_type: str, field: str, value: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} with {field} '{value}' already exists",
            "DUPLICATE_RESOURCE", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class AnomalyAlreadyResolvedError(InvalidRequestError):
    """Resolution attempted on an anomaly that is no longer open."""
    def __init__(self, anomaly_id: str, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"Anomaly '{anomaly_id}' is already {status}", "status", context,
        )
        self.code = "ANOMALY_ALREADY_RESOLVED"


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(TwinError):
    """Database operation failed; the enclosing transaction was rolled back."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
