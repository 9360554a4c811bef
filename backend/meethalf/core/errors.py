"""Error Hierarchy — typed, categorized exceptions for all MeetHalf failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope used by every error handler
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with MeetHalfError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Codes are stable strings the frontend switches on (EVENT_NOT_FOUND, OUTSIDE_TIME_WINDOW, ...)
"""

from dataclasses import dataclass, field
from enum import Enum
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
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: int | None = None
    member_id: int | None = None
    user_id: str | None = None
    retry_after_ms: int | None = None


class MeetHalfError(Exception):
    """Base exception for all MeetHalf errors."""

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

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "event_id": self.context.event_id,
                    "member_id": self.context.member_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationFailedError(MeetHalfError):
    """Input passed schema validation but is semantically invalid."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field


class BusinessRuleError(MeetHalfError):
    """A domain rule rejected the operation (poke limit, time window, ...)."""
    def __init__(
        self, message: str, code: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )


class UnprocessableError(MeetHalfError):
    """Request is well-formed but cannot be computed (no routes, no candidates)."""
    def __init__(
        self, message: str, code: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 422,
        )


class AuthenticationError(MeetHalfError):
    """Missing, invalid, or expired credentials."""
    def __init__(
        self, message: str = "Authentication required",
        code: str = "UNAUTHORIZED", context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class PermissionDeniedError(MeetHalfError):
    """Authenticated caller is not allowed to perform the operation."""
    def __init__(
        self, message: str, code: str = "FORBIDDEN",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.PERMISSION,
            ErrorSeverity.WARNING, context, 403,
        )


class ResourceNotFoundError(MeetHalfError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str | int,
        code: str | None = None, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code or f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type


class ConflictError(MeetHalfError):
    """Resource already exists or state conflicts with the request."""
    def __init__(
        self, message: str, code: str = "CONFLICT",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(MeetHalfError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ExternalServiceError(MeetHalfError):
    """Google Maps / OAuth / Pusher call failed."""
    def __init__(
        self,
        message: str,
        service: str,
        code: str = "EXTERNAL_SERVICE_ERROR",
        http_status: int = 502,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"{service} error: {message}",
            code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, http_status,
        )
        self.service = service
