"""Store Service models package."""

from services.store_service.models.automation import AutomationLog, OutboxEvent
from services.store_service.models.catalog import Product, SupplierCredential
from services.store_service.models.commerce import (
    Cart,
    CartItem,
    Order,
    PaymentSession,
)
from services.store_service.models.enums import (
    AutomationStatus,
    AutomationType,
    FulfillmentStatus,
    OrderStatus,
    OutboxEventType,
    OutboxStatus,
    PaymentMethod,
    PaymentProvider,
    PaymentStatus,
    StockStatus,
    SupplierType,
    SyncStatus,
)

__all__ = [
    "AutomationLog",
    "AutomationStatus",
    "AutomationType",
    "Cart",
    "CartItem",
    "FulfillmentStatus",
    "Order",
    "OrderStatus",
    "OutboxEvent",
    "OutboxEventType",
    "OutboxStatus",
    "PaymentMethod",
    "PaymentProvider",
    "PaymentSession",
    "Product",
    "StockStatus",
    "SupplierCredential",
    "SupplierType",
    "SyncStatus",
]
