"""Error Hierarchy — typed, categorized exceptions for all SwapSync failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are business-rule rejections and never retried
    - StaleVersionError is the only error the retry policy swallows; exhausted
      retries surface as TransientConflictError
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with SwapSyncError base: FastAPI global handler catches all
    - ErrorContext as dataclass: ids for observability without coupling to logging
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
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    event_id: str | None = None
    request_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class SwapSyncError(Exception):
    """Base exception for all SwapSync errors."""

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
    def retryable(self) -> bool:
        return False

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "user_id": self.context.user_id,
                    "event_id": self.context.event_id,
                    "request_id": self.context.request_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class EventValidationError(SwapSyncError):
    """Event attributes are invalid (time range, title)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(SwapSyncError):
    """Requested resource does not exist (or is not visible to the caller)."""
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


class ForbiddenError(SwapSyncError):
    """Caller is not the owner/recipient required by the operation."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.ERROR, context, 403,
        )


class NotSwappableError(SwapSyncError):
    """Event is not SWAPPABLE, so it cannot be locked into a swap."""
    def __init__(self, event_id: str, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"Event '{event_id}' is not swappable (status: {status})",
            "NOT_SWAPPABLE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.event_id = event_id
        self.status = status


class EventLockedError(SwapSyncError):
    """Event is SWAP_PENDING: status, edits and deletion are blocked."""
    def __init__(self, event_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Event '{event_id}' has a pending swap and cannot be modified",
            "EVENT_LOCKED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.event_id = event_id


class InvalidTransitionError(SwapSyncError):
    """Requested status transition is not an edge of the event state machine."""
    def __init__(
        self, event_id: str, current: str, target: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Event '{event_id}' cannot move from {current} to {target}",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.event_id = event_id
        self.current = current
        self.target = target


class AlreadyResolvedError(SwapSyncError):
    """Swap request already left PENDING."""
    def __init__(self, request_id: str, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"Swap request '{request_id}' is no longer pending (status: {status})",
            "ALREADY_RESOLVED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.request_id = request_id
        self.status = status


class SelfSwapError(SwapSyncError):
    """Both sides of a proposed swap belong to the same owner."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Cannot propose a swap between events of the same owner",
            "SELF_SWAP", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )


class UnauthenticatedError(SwapSyncError):
    """Caller identity could not be resolved."""
    def __init__(self, message: str = "Authentication required", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


# ─── Concurrency Errors (409) ───────────────────────────────────

class StaleVersionError(SwapSyncError):
    """A versioned write lost a race: the document changed since it was read."""
    def __init__(self, resource_type: str, resource_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"{resource_type} '{resource_id}' was modified concurrently",
            "STALE_VERSION", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id

    @property
    def retryable(self) -> bool:
        return True


class TransientConflictError(SwapSyncError):
    """Bounded retries exhausted on contended documents; safe to retry later."""
    def __init__(
        self, operation: str, attempts: int, retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Concurrent modification during {operation} (gave up after {attempts} attempts)",
            "TRANSIENT_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.operation = operation
        self.attempts = attempts

    @property
    def retryable(self) -> bool:
        return True


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(SwapSyncError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
