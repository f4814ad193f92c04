"""Enum definitions for store service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class SupplierType(str, enum.Enum):
    ALIEXPRESS = "aliexpress"
    CUSTOM = "custom"


class StockStatus(str, enum.Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


class SyncStatus(str, enum.Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PAYMENT_FAILED = "payment_failed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class FulfillmentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    PAYSTACK = "paystack"
    CRYPTO = "crypto"


class PaymentProvider(str, enum.Enum):
    PAYSTACK = "paystack"
    NOWPAYMENTS = "nowpayments"


class AutomationType(str, enum.Enum):
    INVENTORY_SYNC = "inventory_sync"
    PRICE_UPDATE = "price_update"
    ORDER_FULFILLMENT = "order_fulfillment"
    TRACKING_SYNC = "tracking_sync"
    PRODUCT_IMPORT = "product_import"


class AutomationStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OutboxEventType(str, enum.Enum):
    ORDER_PAID = "order.paid"


class OutboxStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
