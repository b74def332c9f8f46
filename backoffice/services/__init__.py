from .inventory_service import InventoryService, InsufficientStockError
from .delivery_service import DeliveryCatalogService
from .product_service import ProductService
from .user_service import UserService
from .order_service import OrderService, OrderValidationError

__all__ = [
    "InventoryService",
    "InsufficientStockError",
    "DeliveryCatalogService",
    "ProductService",
    "UserService",
    "OrderService",
    "OrderValidationError",
]
