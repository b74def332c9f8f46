from __future__ import annotations

import json
import logging
import math
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, asc, cast, desc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.models import Product, ProductStatus, OrderItem
from backoffice.observability import increment_counter
from backoffice.services.inventory_service import InventoryService
from backoffice.services.parsing import (
    clean_str,
    parse_bool,
    parse_int,
    parse_money,
    parse_pagination,
)

# Numeric(10, 2) columns hold at most eight integer digits
MAX_AMOUNT = Decimal("99999999.99")

_SORT_COLUMNS = {
    "price": Product.price,
    "name": Product.name,
    "stock": Product.stock,
}


class ProductService:
    """Catalog browsing and product maintenance."""

    def __init__(
        self,
        db_session: Session,
        inventory_service: Optional[InventoryService] = None,
    ) -> None:
        self.db = db_session
        self.logger = logging.getLogger(__name__)
        self.inventory_service = inventory_service or InventoryService(db_session)

    def list_products(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Filter, sort and paginate the catalog.

        Supported filters: category, subcategory, minPrice, maxPrice, inStock,
        status, featured, search, tags (list or single value), sortBy, order,
        page and limit.
        """
        query = self.db.query(Product)

        if filters.get("category"):
            query = query.filter(Product.category == filters["category"])
        if filters.get("subcategory"):
            query = query.filter(Product.subcategory == filters["subcategory"])
        if filters.get("minPrice") not in (None, ""):
            query = query.filter(Product.price >= parse_money(filters["minPrice"], "minPrice"))
        if filters.get("maxPrice") not in (None, ""):
            query = query.filter(Product.price <= parse_money(filters["maxPrice"], "maxPrice"))
        if parse_bool(filters.get("inStock")):
            query = query.filter(Product.stock > 0)
        if filters.get("status"):
            query = query.filter(Product.status == ProductStatus(filters["status"]))
        if parse_bool(filters.get("featured")):
            query = query.filter(Product.featured.is_(True))

        tags = filters.get("tags")
        if tags:
            tags = tags if isinstance(tags, (list, tuple)) else [tags]
            # tags are stored as a JSON array, match any encoded element
            serialized = cast(Product.tags, String)
            query = query.filter(or_(*[serialized.like(_tag_pattern(tag), escape="\\") for tag in tags]))

        search = clean_str(filters.get("search"))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Product.name.ilike(pattern),
                    Product.description.ilike(pattern),
                    Product.sku.ilike(pattern),
                )
            )

        direction = asc if str(filters.get("order", "DESC")).upper() == "ASC" else desc
        sort_column = _SORT_COLUMNS.get(filters.get("sortBy"), Product.created_at)
        query = query.order_by(direction(sort_column), Product.productID)

        page, limit = parse_pagination(filters.get("page"), filters.get("limit"))
        total = query.count()
        products = query.offset((page - 1) * limit).limit(limit).all()
        return {
            "products": products,
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.db.query(Product).filter_by(productID=product_id).first()

    def create_product(self, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[Product]]:
        name = clean_str(payload.get("name"))
        category = clean_str(payload.get("category"))
        if not name or payload.get("price") in (None, "") or not category:
            return False, "Name, price, and category are required", None

        try:
            price = _parse_amount(payload["price"], "price", "Price")
            stock = parse_int(payload.get("stock") or 0, "stock")
            if stock < 0:
                raise ValueError("Stock must be non-negative")
            product = Product(
                name=name,
                price=price,
                category=category,
                stock=stock,
                sku=clean_str(payload.get("sku")) or Product.generate_sku(category),
                status=ProductStatus(payload.get("status") or ProductStatus.ACTIVE),
                images=[],
                tags=[],
                extra_metadata={},
            )
            self._apply_details(product, payload)
        except ValueError as exc:
            return False, str(exc), None

        self.db.add(product)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False, "A product with this SKU already exists", None
        except SQLAlchemyError:
            self.db.rollback()
            self.logger.exception("Product %s could not be saved", name)
            return False, "Product could not be saved", None

        self.db.refresh(product)
        increment_counter("products_created_total", labels={"category": product.category})
        self.logger.info("Product %s created", product.productID, extra={"sku": product.sku})
        return True, "Product created successfully", product

    def update_product(self, product_id: str, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[Product]]:
        product = self.get_product(product_id)
        if not product:
            return False, "Product not found", None

        try:
            if "name" in payload:
                name = clean_str(payload.get("name"))
                if not name:
                    raise ValueError("Name cannot be empty")
                product.name = name
            if "category" in payload:
                category = clean_str(payload.get("category"))
                if not category:
                    raise ValueError("Category cannot be empty")
                product.category = category
            if payload.get("price") is not None:
                product.price = _parse_amount(payload["price"], "price", "Price")
            if payload.get("status"):
                product.status = ProductStatus(payload["status"])
            self._apply_details(product, payload)
        except ValueError as exc:
            self.db.rollback()
            return False, str(exc), None

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            self.logger.exception("Product %s could not be saved", product_id)
            return False, "Product could not be saved", None
        self.db.refresh(product)
        self.logger.info("Product %s updated", product.productID)
        return True, "Product updated successfully", product

    def delete_product(self, product_id: str) -> Tuple[bool, str]:
        product = self.get_product(product_id)
        if not product:
            return False, "Product not found"
        has_orders = self.db.query(OrderItem.orderItemID).filter_by(productID=product_id).first()
        if has_orders:
            return False, "Product is referenced by orders; discontinue it instead"

        self.db.delete(product)
        self.db.commit()
        self.logger.info("Product %s deleted", product_id)
        return True, "Product deleted successfully"

    def update_stock(self, product_id: str, quantity: Any) -> Tuple[bool, str, Optional[Product]]:
        product = self.inventory_service.lock_product(product_id)
        if not product:
            return False, "Product not found", None
        try:
            delta = parse_int(quantity, "quantity")
        except ValueError as exc:
            self.db.rollback()
            return False, str(exc), product

        success, message = self.inventory_service.adjust_stock(product, delta)
        if not success:
            self.db.rollback()
            return False, message, product
        self.db.commit()
        self.db.refresh(product)
        return True, message, product

    def categories(self) -> List[Dict[str, Any]]:
        count = func.count(Product.productID)
        rows = (
            self.db.query(Product.category, count)
            .group_by(Product.category)
            .order_by(count.desc(), Product.category)
            .all()
        )
        return [{"category": category, "count": total} for category, total in rows]

    def tags(self) -> List[str]:
        seen: Dict[str, None] = {}
        for (tags,) in self.db.query(Product.tags).all():
            for tag in tags or []:
                seen.setdefault(tag, None)
        return list(seen)

    @staticmethod
    def _apply_details(product: Product, payload: Dict[str, Any]) -> None:
        """Optional descriptive fields shared by create and update."""
        for field in ("description", "subcategory"):
            if field in payload:
                setattr(product, field, clean_str(payload.get(field)))
        if "images" in payload:
            product.images = _string_list(payload.get("images"), "images")
        if "tags" in payload:
            product.tags = _string_list(payload.get("tags"), "tags")
        if "featured" in payload:
            product.featured = parse_bool(payload.get("featured"))
        if "dimensions" in payload and payload["dimensions"] is not None:
            if not isinstance(payload["dimensions"], dict):
                raise ValueError("dimensions must be an object")
            product.dimensions = payload["dimensions"]
        if "metadata" in payload and payload["metadata"] is not None:
            if not isinstance(payload["metadata"], dict):
                raise ValueError("metadata must be an object")
            product.extra_metadata = payload["metadata"]
        if payload.get("weight") is not None:
            product.weight = _parse_amount(payload["weight"], "weight", "Weight")
        if "discountPrice" in payload:
            if payload["discountPrice"] in (None, ""):
                product.discount_price = None
            else:
                product.discount_price = _parse_amount(payload["discountPrice"], "discountPrice", "Discount price")
        if product.discount_price is not None and product.discount_price >= product.price:
            raise ValueError("Discount price must be less than regular price")


def _string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{field_name} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _parse_amount(value: Any, field_name: str, label: str) -> Decimal:
    amount = parse_money(value, field_name)
    if amount < 0:
        raise ValueError(f"{label} must be non-negative")
    if amount > MAX_AMOUNT:
        raise ValueError(f"{label} must be at most {MAX_AMOUNT}")
    return amount


def _tag_pattern(tag: Any) -> str:
    """LIKE pattern for one tag as the JSON column encodes it (ASCII-escaped)."""
    encoded = json.dumps(str(tag))
    for char in ("\\", "%", "_"):
        encoded = encoded.replace(char, "\\" + char)
    return f"%{encoded}%"
