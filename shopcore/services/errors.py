"""Service-layer exceptions.

Every failure the services raise is a ``ShopError`` carrying a stable ``code``
and the HTTP status the web layer should answer with. ``ValidationFailed`` and
``BusinessRuleViolation`` also derive from ``ValueError`` so callers may treat
them as plain bad input.
"""
from typing import List, Optional


class ShopError(Exception):
    code = "error"
    http_status = 500
    default_message = "Server Error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# families

class NotFound(ShopError):
    code = "not_found"
    http_status = 404
    default_message = "Resource not found"


class ValidationFailed(ShopError, ValueError):
    code = "validation_failed"
    http_status = 400
    default_message = "Invalid request"


class BusinessRuleViolation(ShopError, ValueError):
    code = "business_rule_violation"
    http_status = 400
    default_message = "Request violates a business rule"


class IntegrityFailure(ShopError):
    code = "integrity_failure"
    http_status = 400
    default_message = "Integrity check failed"


class ExternalServiceFailure(ShopError):
    code = "external_service_failure"
    http_status = 502
    default_message = "Payment service unavailable"


class Conflict(ShopError):
    code = "conflict"
    http_status = 409
    default_message = "Resource already exists"


class Unauthorized(ShopError):
    code = "unauthorized"
    http_status = 401
    default_message = "Access token required"


class Forbidden(ShopError):
    code = "forbidden"
    http_status = 403
    default_message = "Access denied"


# not found

class ProductUnavailable(NotFound):
    code = "product_unavailable"
    default_message = "Product not found or inactive"


class LineNotFound(NotFound):
    code = "line_not_found"
    default_message = "Cart item not found"


class OrderNotFound(NotFound):
    code = "order_not_found"
    default_message = "Order not found"


class PaymentNotFound(NotFound):
    code = "payment_not_found"
    default_message = "Payment record not found or already processed"


class ReviewNotFound(NotFound):
    code = "review_not_found"
    default_message = "Review not found"


# business rules

class InvalidSize(BusinessRuleViolation):
    code = "invalid_size"
    default_message = "Selected size not available for this product"


class InsufficientStock(BusinessRuleViolation):
    code = "insufficient_stock"
    default_message = "Insufficient stock"


class CartEmpty(BusinessRuleViolation):
    code = "cart_empty"
    default_message = "Cart is empty"


class CartInvalid(BusinessRuleViolation):
    code = "cart_invalid"

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("Cart validation failed: " + ", ".join(self.errors))


class InvalidTransition(BusinessRuleViolation):
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, message: Optional[str] = None) -> None:
        self.current = current
        self.requested = requested
        super().__init__(message or f"Cannot change status from '{current}' to '{requested}'")


class AlreadyCancelled(BusinessRuleViolation):
    code = "already_cancelled"
    default_message = "Order is already cancelled"


class AlreadyPaid(BusinessRuleViolation):
    code = "already_paid"
    default_message = "Order is already paid"


class OrderCancelled(BusinessRuleViolation):
    code = "order_cancelled"
    default_message = "Cannot process payment for cancelled order"


class PaymentNotCompleted(BusinessRuleViolation):
    code = "payment_not_completed"
    default_message = "Can only refund completed payments"


# integrity

class InvalidSignature(IntegrityFailure):
    code = "invalid_signature"
    default_message = "Invalid payment signature"


class PaymentMismatch(IntegrityFailure):
    code = "payment_mismatch"
    default_message = "Payment details do not match the order"


# gateway

class GatewayTimeout(ExternalServiceFailure):
    code = "gateway_timeout"
    http_status = 504
    default_message = "Payment service timed out"


class GatewayRejected(ExternalServiceFailure):
    code = "gateway_rejected"
    default_message = "Payment service rejected the request"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None, detail: Optional[dict] = None) -> None:
        self.status_code = status_code
        self.detail = detail or {}
        super().__init__(message)


class GatewayNotConfigured(ExternalServiceFailure):
    code = "gateway_not_configured"
    http_status = 503
    default_message = "Payment service not configured"


# conflicts

class DuplicateReview(Conflict):
    code = "duplicate_review"
    default_message = "You have already reviewed this product"


class OrderNumberUnavailable(Conflict):
    code = "order_number_unavailable"
    default_message = "Could not allocate order number, please retry"
