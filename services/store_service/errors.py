"""Domain exceptions raised by store services and translated by the routers."""

from typing import Optional


class StoreError(Exception):
    """Base class; status_code is the HTTP status the routers answer with."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CheckoutValidationError(StoreError):
    status_code = 400


class ProductNotFoundError(CheckoutValidationError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__(f"Product not found: {self.product_id}")


class CartItemNotFoundError(StoreError):
    status_code = 404

    def __init__(self, product_id, variant_id: Optional[str] = None):
        suffix = f" (variant {variant_id})" if variant_id else ""
        super().__init__(f"Item {product_id}{suffix} is not in the cart")


class OrderNotFoundError(StoreError):
    status_code = 404

    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class PaymentInitializationError(StoreError):
    """Provider refused or could not be reached; the order is marked payment_failed."""

    status_code = 502


class PaymentNotConfiguredError(PaymentInitializationError):
    status_code = 503


class AmountMismatchError(StoreError):
    status_code = 409

    def __init__(self, expected, received):
        self.expected = expected
        self.received = received
        super().__init__(f"Amount mismatch: got {received}, expected {expected}.")


class FulfillmentPreconditionError(StoreError):
    status_code = 409
