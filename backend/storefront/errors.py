# Overview: Domain error taxonomy shared by services and routes.

"""
Storefront core errors.

Every failure a coordinator can report is one of these. Routes translate
them to HTTP responses; services never return half-applied results.

- ValidationError: malformed input, raised before the store is touched.
- InsufficientStockError: live stock check failed for a line.
- InvalidTransitionError: order status change not allowed (or stale).
- OrderNotFoundError: unknown order id.
- PersistenceError: the atomic unit could not commit; nothing was written.
- AuditEmissionError: audit write failed; only ever logged.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for core errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(StorefrontError, ValueError):
    """400-level input problem."""


class InsufficientStockError(StorefrontError):
    """A requested line cannot be covered by live stock."""

    REASON_MISSING = "missing"
    REASON_INACTIVE = "inactive"
    REASON_INSUFFICIENT = "insufficient"

    def __init__(
        self,
        message: str,
        *,
        product_id: int | None,
        product_name: str | None = None,
        requested: int = 0,
        available: int = 0,
        reason: str = REASON_INSUFFICIENT,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.reason = reason
        super().__init__(message, details={
            "product_id": product_id,
            "product_name": product_name,
            "requested_quantity": requested,
            "available_quantity": available,
            "shortfall": self.shortfall,
            "reason": reason,
        })

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)


class InvalidTransitionError(StorefrontError):
    """Requested order status change is not in the allowed set."""


class OrderNotFoundError(StorefrontError):
    """Raised when an order id does not resolve."""


class PersistenceError(StorefrontError):
    """The atomic unit failed to commit and was rolled back."""


class AuditEmissionError(StorefrontError):
    """Writing an audit entry failed. Never surfaced to callers."""
