"""Supplier adapters and the manager that fans out across them."""

from services.store_service.suppliers.aliexpress import (
    AliExpressConfig,
    AliExpressSupplier,
)
from services.store_service.suppliers.base import BaseSupplier
from services.store_service.suppliers.custom import CustomSupplier, CustomSupplierConfig
from services.store_service.suppliers.manager import (
    SupplierManager,
    SupplierManagerConfig,
    build_supplier_cache,
    load_supplier_manager,
)
from services.store_service.suppliers.types import (
    ProductComparison,
    SupplierAddress,
    SupplierError,
    SupplierHealth,
    SupplierOffer,
    SupplierOrderItem,
    SupplierOrderRequest,
    SupplierOrderResult,
    SupplierOrderStatus,
    SupplierProduct,
    SupplierSearchParams,
    SupplierSearchResponse,
)

__all__ = [
    "AliExpressConfig",
    "AliExpressSupplier",
    "BaseSupplier",
    "CustomSupplier",
    "CustomSupplierConfig",
    "ProductComparison",
    "SupplierAddress",
    "SupplierError",
    "SupplierHealth",
    "SupplierManager",
    "SupplierManagerConfig",
    "SupplierOffer",
    "SupplierOrderItem",
    "SupplierOrderRequest",
    "SupplierOrderResult",
    "SupplierOrderStatus",
    "SupplierProduct",
    "SupplierSearchParams",
    "SupplierSearchResponse",
    "build_supplier_cache",
    "load_supplier_manager",
]
