from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.models import OrderItem, Product, ProductStatus
from backoffice.observability import increment_counter, record_event


class InsufficientStockError(ValueError):
    """Raised when a stock change would leave a product below zero."""

    def __init__(self, product: Product, requested: int) -> None:
        self.product = product
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product.name}")


class InventoryService:
    """
    Encapsulates stock adjustments triggered by orders and manual restocks.

    Methods only mutate the session; committing is left to the caller so that
    stock changes land in the same transaction as the order they belong to.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)

    def lock_product(self, product_id: str) -> Optional[Product]:
        """Load a product with a row lock (no-op on SQLite)."""
        return (
            self.db.query(Product)
            .filter_by(productID=product_id)
            .with_for_update()
            .first()
        )

    def decrease_stock(self, product: Product, quantity: int, reason: str = "order") -> int:
        old_stock = product.stock or 0
        if old_stock < quantity:
            raise InsufficientStockError(product, quantity)
        product.stock = old_stock - quantity
        self._record(product, old_stock, reason)
        return product.stock

    def increase_stock(self, product: Product, quantity: int, reason: str = "order_cancelled") -> int:
        old_stock = product.stock or 0
        product.stock = old_stock + quantity
        self._record(product, old_stock, reason)
        return product.stock

    def lock_items(self, items: Iterable[OrderItem]) -> List[OrderItem]:
        """
        Re-read the products behind order items with a row lock, so stock
        changes start from the committed level rather than a stale copy
        held by the session.
        """
        items = list(items)
        products = {item.product for item in items}
        with self.db.no_autoflush:
            # fixed lock order across concurrent status updates
            for product in sorted(products, key=lambda p: p.productID):
                self.db.refresh(product, with_for_update=True)
        return items

    def release_items(self, items: Iterable[OrderItem]) -> None:
        """Return the stock held by order items (order cancelled)."""
        for item in self.lock_items(items):
            self.increase_stock(item.product, item.quantity, reason="order_cancelled")

    def reserve_items(self, items: Iterable[OrderItem]) -> None:
        """
        Take stock for order items again (order un-cancelled).
        Every item is checked before any product is touched.
        """
        items = self.lock_items(items)
        for item in items:
            if not item.product.has_stock_for(item.quantity):
                raise InsufficientStockError(item.product, item.quantity)
        for item in items:
            self.decrease_stock(item.product, item.quantity, reason="order_reinstated")

    def adjust_stock(self, product: Product, delta: int) -> Tuple[bool, str]:
        """
        Manual restock or correction by a signed delta.
        Availability follows the stock level; discontinued products stay discontinued.
        """
        old_stock = product.stock or 0
        new_stock = old_stock + delta
        if new_stock < 0:
            return False, "Insufficient stock"

        product.stock = new_stock
        if ProductStatus(product.status) != ProductStatus.DISCONTINUED:
            product.status = ProductStatus.INACTIVE if new_stock == 0 else ProductStatus.ACTIVE
        self._record(product, old_stock, "manual_adjustment")
        return True, "Stock updated successfully"

    def _record(self, product: Product, old_stock: int, reason: str) -> None:
        increment_counter("stock_adjustments_total", labels={"reason": reason})
        record_event(
            "stock_adjusted",
            {
                "product_id": product.productID,
                "old_stock": old_stock,
                "new_stock": product.stock,
                "reason": reason,
            },
        )
        self.logger.info(
            "Stock for product %s: %d -> %d (%s)",
            product.productID,
            old_stock,
            product.stock,
            reason,
        )
