from typing import Optional, Dict, Any


class AppException(Exception):
    """Base application exception"""
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "APP_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_ERROR",
            details=details
        )


class AuthorizationError(AppException):
    """Caller may not act on the resource"""
    def __init__(self, message: str = "Permission denied", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED",
            details=details
        )


class NotFoundError(AppException):
    """Resource not found errors"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "NOT_FOUND"
    ):
        super().__init__(
            message=message,
            status_code=404,
            error_code=error_code,
            details=details
        )


class ValidationError(AppException):
    """Validation errors"""
    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR",
        status_code: int = 422
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class StateError(AppException):
    """Operation not allowed in the entity's current state"""
    def __init__(
        self,
        message: str = "Invalid state",
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "STATE_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code,
            details=details
        )


# Validation

class InvalidQuantity(ValidationError):
    def __init__(self, quantity):
        super().__init__(
            message=f"Quantity must be at least 1, got {quantity}",
            details={"quantity": quantity},
            error_code="INVALID_QUANTITY"
        )


class InvalidAmount(ValidationError):
    def __init__(self, message: str = "Amount must not be negative", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, error_code="INVALID_AMOUNT")


class InvalidDiscountConfig(ValidationError):
    def __init__(self, message: str = "Invalid discount configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, error_code="INVALID_DISCOUNT_CONFIG")


class UnsupportedCommissionType(ValidationError):
    def __init__(self, commission_type):
        super().__init__(
            message=f"Unsupported commission type: {commission_type!r}",
            details={"commission_type": commission_type},
            error_code="UNSUPPORTED_COMMISSION_TYPE"
        )


class UnsupportedDiscountType(ValidationError):
    def __init__(self, discount_type):
        super().__init__(
            message=f"Unsupported discount type: {discount_type!r}",
            details={"discount_type": discount_type},
            error_code="UNSUPPORTED_DISCOUNT_TYPE"
        )


class UnsupportedPayoutMethod(ValidationError):
    def __init__(self, method):
        super().__init__(
            message=f"Unsupported payout method: {method!r}",
            details={"payout_method": method},
            error_code="UNSUPPORTED_PAYOUT_METHOD"
        )


class AmountOutOfRange(ValidationError):
    def __init__(self, amount, method, min_amount, max_amount):
        super().__init__(
            message=f"Amount {amount} is outside the allowed range [{min_amount}, {max_amount}] for {method}",
            details={
                "amount": str(amount),
                "payout_method": method,
                "min_amount": str(min_amount),
                "max_amount": str(max_amount)
            },
            error_code="AMOUNT_OUT_OF_RANGE"
        )


class MissingRequiredField(ValidationError):
    def __init__(self, fields):
        super().__init__(
            message=f"Missing or invalid required fields: {', '.join(fields)}",
            details={"fields": list(fields)},
            error_code="MISSING_REQUIRED_FIELD",
            status_code=400
        )


# Not found

class ProductNotFound(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__(
            message="Product not found",
            details={"product_id": product_id},
            error_code="PRODUCT_NOT_FOUND"
        )


class PartnershipNotFound(NotFoundError):
    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Partnership not found or not approved",
            details=details,
            error_code="PARTNERSHIP_NOT_FOUND"
        )


class PayoutNotFound(NotFoundError):
    def __init__(self, transfer_id: str):
        super().__init__(
            message="Payout not found",
            details={"stripe_transfer_id": transfer_id},
            error_code="PAYOUT_NOT_FOUND"
        )


# State

class PartnershipNotApproved(StateError):
    def __init__(self, partnership_id: str, status):
        super().__init__(
            message="Partnership is not approved",
            details={"partnership_id": partnership_id, "status": str(status)},
            error_code="PARTNERSHIP_NOT_APPROVED"
        )


class InsufficientInventory(StateError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            message=f"Only {available} units available",
            details={"requested": requested, "available": available},
            error_code="INSUFFICIENT_INVENTORY"
        )


class ExternalCheckoutRequired(StateError):
    def __init__(self, product_id: str, url: str):
        super().__init__(
            message="Product is sold through an external checkout",
            details={"product_id": product_id, "external_checkout_url": url},
            error_code="EXTERNAL_CHECKOUT_REQUIRED"
        )


class InvalidStatusTransition(StateError):
    def __init__(self, current, requested):
        super().__init__(
            message=f"Cannot move commission from {current} to {requested}",
            details={"current": str(current), "requested": str(requested)},
            error_code="INVALID_STATUS_TRANSITION"
        )


class CommissionConflict(StateError):
    def __init__(self, affiliate_id: str, message: str = "Commission set changed while the payout was in progress"):
        super().__init__(
            message=message,
            details={"affiliate_id": affiliate_id},
            error_code="COMMISSION_CONFLICT"
        )


# External dependencies

class PaymentError(AppException):
    """Payment processor rejected or failed a request"""
    def __init__(self, message: str = "Payment processor error", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="PAYMENT_ERROR",
            details=details
        )


class TransferTimeout(PaymentError):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Transfer did not complete within {timeout} seconds",
            details={"timeout_seconds": timeout}
        )
        self.status_code = 504
        self.error_code = "TRANSFER_TIMEOUT"
