class DomainException(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


# Kinds

class NotFoundError(DomainException):
    status_code = 404
    code = "not_found"


class BadRequestError(DomainException):
    status_code = 400
    code = "bad_request"


class UnauthenticatedError(DomainException):
    """Authentication required"""
    status_code = 401
    code = "unauthenticated"


class NotAuthorizedError(DomainException):
    """Not authorized to perform this action"""
    status_code = 403
    code = "not_authorized"


class ConflictError(DomainException):
    status_code = 409
    code = "conflict"


class InternalError(DomainException):
    status_code = 500
    code = "internal_error"


# Not found

class OrderNotFoundError(NotFoundError):
    code = "order_not_found"


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found with ID: {product_id}")


class PromoCodeNotFoundError(NotFoundError):
    """Promo code not found"""
    code = "promo_code_not_found"


class PaymentNotFoundError(NotFoundError):
    code = "payment_not_found"


class ReturnNotFoundError(NotFoundError):
    code = "return_not_found"


# Business rules

class InsufficientStockError(BadRequestError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, available: int | None, required: int):
        self.product_id = product_id
        self.available = available
        self.required = required
        if available is None:
            message = f"Not enough stock for product {product_id}. Required: {required}"
        else:
            message = (
                f"Not enough stock for product {product_id}. "
                f"Available: {available}, required: {required}"
            )
        super().__init__(message)


class ShippingUnavailableError(BadRequestError):
    code = "shipping_unavailable"

    def __init__(self, province: str):
        self.province = province
        super().__init__(f"Shipping not available to {province}")


class MinimumOrderNotMetError(BadRequestError):
    code = "minimum_order_not_met"

    def __init__(self, min_order_amount):
        self.min_order_amount = min_order_amount
        super().__init__(
            f"Minimum order amount of {min_order_amount} required for this promo code"
        )


class InvalidPromoCodeError(BadRequestError):
    """Promo code is inactive or expired"""
    code = "invalid_promo_code"


class InvalidStatusTransitionError(BadRequestError):
    code = "invalid_status_transition"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid status transition from {_value(current)} to {_value(requested)}"
        )


class CannotCancelInCurrentStateError(BadRequestError):
    code = "cannot_cancel_in_current_state"

    def __init__(self, current):
        self.current = current
        super().__init__(f"Order cannot be cancelled in {_value(current)} status")


class ReturnWindowExpiredError(BadRequestError):
    """Return period has expired"""
    code = "return_window_expired"


class ItemNotInOrderError(BadRequestError):
    code = "item_not_in_order"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found in order")


class OrderNotReturnableError(BadRequestError):
    """Only delivered orders can be returned"""
    code = "order_not_returnable"


class InvalidReturnTransitionError(BadRequestError):
    code = "invalid_return_transition"

    def __init__(self, current, requested):
        super().__init__(
            f"Invalid return status transition from {_value(current)} to {_value(requested)}"
        )


class AlreadyPaidError(BadRequestError):
    """Order is already paid"""
    code = "already_paid"


class PaymentRequiredError(BadRequestError):
    code = "payment_required"


class OrderNotPayableError(BadRequestError):
    code = "order_not_payable"

    def __init__(self, current):
        self.current = current
        super().__init__(f"Order cannot be paid in {_value(current)} status")


class PaymentNotSettledError(BadRequestError):
    """Payment verification failed"""
    code = "payment_not_settled"


class PaymentInitiationFailedError(BadRequestError):
    """Payment initiation failed"""
    code = "payment_initiation_failed"


class PaymentVerificationFailedError(BadRequestError):
    """Payment verification failed"""
    code = "payment_verification_failed"


class UnsupportedPaymentMethodError(BadRequestError):
    """Invalid payment method"""
    code = "unsupported_payment_method"


class InvalidProductError(BadRequestError):
    code = "invalid_product"


class InvalidPromotionError(BadRequestError):
    code = "invalid_promotion"


# Conflicts

class PromoCodeExistsError(ConflictError):
    """Promo code already exists"""
    code = "promo_code_exists"


# Infrastructure

class CompensationFailedError(InternalError):
    code = "compensation_failed"


def _value(status) -> str:
    return getattr(status, "value", status)
