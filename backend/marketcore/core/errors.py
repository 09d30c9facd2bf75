"""Error Hierarchy — typed, categorized exceptions for every core failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Business-rule rejections are never retryable; only TransientError is
    - to_response() produces the REST envelope used by api/error_handlers.py
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with MarketError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging
    - Codes are stable strings; request handlers translate them, tests assert them
"""

from dataclasses import dataclass, field
from decimal import Decimal
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
    AUTHORIZATION = "authorization"
    CONFLICT = "conflict"
    TRANSIENT = "transient"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    party_id: str | None = None
    entity_id: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class MarketError(Exception):
    """Base exception for all marketplace core errors."""

    retryable: bool = False

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
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "party_id": self.context.party_id,
                    "entity_id": self.context.entity_id,
                    "operation": self.context.operation,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Generic Errors ─────────────────────────────────────────────

class NotFoundError(MarketError):
    """Referenced entity does not exist."""
    def __init__(
        self, entity_type: str, entity_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{entity_type} '{entity_id}' not found",
            "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ForbiddenError(MarketError):
    """Actor lacks authorization for the requested transition or view."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class InvalidTransitionError(MarketError):
    """Requested status change is not defined from the current state."""
    def __init__(
        self, entity_type: str, current: str, action: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot '{action}' a {entity_type} in state '{current}'",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.current = current
        self.action = action


class InputValidationError(MarketError):
    """Malformed input (non-positive amount, end <= start, naive datetime...)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


# ─── Reservation Errors ─────────────────────────────────────────

class SlotConflictError(MarketError):
    """Requested interval overlaps a pending or confirmed reservation."""
    def __init__(self, resource_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Resource is already booked for this time slot",
            "SLOT_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )
        self.resource_id = resource_id


class ResourceInactiveError(MarketError):
    """Target resource is deactivated."""
    def __init__(self, resource_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Resource is not available for booking",
            "RESOURCE_INACTIVE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.resource_id = resource_id


# ─── Auction Errors ─────────────────────────────────────────────

class ListingInactiveError(MarketError):
    """Listing is closed, expired, or past its expiry instant."""
    def __init__(self, listing_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Listing is no longer accepting bids",
            "LISTING_INACTIVE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.listing_id = listing_id


class SelfBidForbiddenError(MarketError):
    """Listing creator attempted to bid on their own listing."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Cannot bid on your own listing",
            "SELF_BID_FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class DuplicatePendingBidError(MarketError):
    """Bidder already holds a pending bid on this listing."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "You already have a pending bid on this listing",
            "DUPLICATE_PENDING_BID", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class BidTooLowError(MarketError):
    """Bid is below max(minimum bid, current high bid)."""
    def __init__(self, required: Decimal, context: ErrorContext | None = None):
        super().__init__(
            f"Bid must be at least {required}",
            "BID_TOO_LOW", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.required = required


class IncrementTooSmallError(MarketError):
    """Bid does not beat the current high bid by the minimum increment."""
    def __init__(self, required: Decimal, context: ErrorContext | None = None):
        super().__init__(
            f"Bid must be at least {required} (minimum increment not met)",
            "INCREMENT_TOO_SMALL", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.required = required


# ─── Infrastructure Errors ──────────────────────────────────────

class ConstraintViolationError(MarketError):
    """A write broke a database constraint. Retrying the same request cannot succeed."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = operation
        super().__init__(
            f"{operation} failed: conflicting or invalid data",
            "CONSTRAINT_VIOLATION", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.operation = operation


class TransientError(MarketError):
    """Retryable infrastructure failure (timeout, lock contention, dropped connection)."""

    retryable = True

    def __init__(
        self, message: str, operation: str,
        retry_after_ms: int | None = None, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = operation
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"{operation} failed: {message}",
            "TRANSIENT", ErrorCategory.TRANSIENT,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.operation = operation
