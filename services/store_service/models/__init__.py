"""Store Service models package."""

from services.store_service.models.catalog import Product, Retailer
from services.store_service.models.commerce import CartLine, OrderGroup, OrderLine
from services.store_service.models.enums import EARNING_EXCLUDED_STATUSES, OrderStatus
from services.store_service.models.inventory import StockUnit

__all__ = [
    "CartLine",
    "EARNING_EXCLUDED_STATUSES",
    "OrderGroup",
    "OrderLine",
    "OrderStatus",
    "Product",
    "Retailer",
    "StockUnit",
]
