class StoreError(Exception):
    """Base class for errors reported back to the caller. `status_code` is used by the API layer."""

    status_code = 400
    detail = "Bad request"

    def __init__(self, detail: str = None):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class NotFoundError(StoreError):
    status_code = 404
    detail = "Not found"


class PromoCodeNotFoundError(StoreError):
    """Code is unknown, inactive or has reached its usage cap."""

    status_code = 404
    detail = "Invalid promo code"


class DuplicatePromoCodeError(StoreError):
    status_code = 409
    detail = "Promo code already exists"


class AuthenticationError(StoreError):
    status_code = 401
    detail = "Unauthorized"


class AuthorizationError(StoreError):
    status_code = 403
    detail = "Forbidden"


class InvalidQuantityError(StoreError):
    detail = "Quantity must be a positive integer"


class InvalidSizeError(StoreError):
    detail = "Size is required for this product"


class EmptyCartError(StoreError):
    detail = "Cart is empty"


class ConfiguratorError(StoreError):
    detail = "Configurator step is not available"


class InvalidStatusTransitionError(StoreError):
    status_code = 409
    detail = "Invalid order status transition"
