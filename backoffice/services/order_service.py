"""
Order placement and lifecycle.

Order creation validates the delivery service, the delivery city, the
customer and every product, prices the order, takes the stock, and commits
all of it in one transaction. Status updates move stock back and forth when
an order enters or leaves the cancelled state, again in one transaction.
"""
from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from backoffice.config import Config
from backoffice.models import (
    City,
    Order,
    OrderItem,
    OrderStatus,
    Role,
    User,
    money,
)
from backoffice.observability import increment_counter, observe_latency, record_event
from backoffice.services.delivery_service import DeliveryCatalogService
from backoffice.services.inventory_service import InsufficientStockError, InventoryService
from backoffice.services.parsing import clean_str, parse_datetime, parse_int, parse_pagination

ORDER_CREATORS = (Role.STAFF, Role.SALESMAN)
STATUS_MANAGERS = (Role.ADMIN, Role.STAFF)


class OrderValidationError(ValueError):
    """A business rule rejected the order; the message is safe to return to clients."""


class OrderService:
    """Domain service for the order workflow."""

    def __init__(
        self,
        db_session: Session,
        config: type[Config] = Config,
        inventory_service: Optional[InventoryService] = None,
        delivery_service: Optional[DeliveryCatalogService] = None,
    ) -> None:
        self.db = db_session
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.inventory_service = inventory_service or InventoryService(db_session)
        self.delivery_service = delivery_service or DeliveryCatalogService(db_session, config=config)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    def create_order(self, actor: User, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[Order]]:
        started = time.perf_counter()
        try:
            order = self._place_order(actor, payload)
            self.db.commit()
        except (OrderValidationError, InsufficientStockError) as exc:
            self.db.rollback()
            increment_counter("orders_rejected_total")
            self.logger.info("Order rejected: %s", exc, extra={"actor_id": actor.userID})
            return False, str(exc), None
        except SQLAlchemyError:
            self.db.rollback()
            self.logger.exception("Order creation failed", extra={"actor_id": actor.userID})
            return False, "Order could not be saved", None

        observe_latency(
            "order_create_latency_ms",
            (time.perf_counter() - started) * 1000,
        )
        increment_counter("orders_created_total", labels={"role": Role.normalize(actor.role).value})
        record_event(
            "order_created",
            {
                "order_id": order.orderID,
                "order_number": order.order_number,
                "total_amount": float(order.total_amount),
                "actor_id": actor.userID,
            },
        )
        self.logger.info(
            "Order %s created",
            order.order_number,
            extra={"order_id": order.orderID, "items": len(order.items)},
        )
        return True, "Order created successfully", self.get_order_details(order.orderID)

    def _place_order(self, actor: User, payload: Dict[str, Any]) -> Order:
        if not actor.has_role(*ORDER_CREATORS):
            raise OrderValidationError("Only staff and salesmen can create orders")

        items = self._normalize_items(payload.get("items"))
        shipping_address = payload.get("shippingAddress")
        if not isinstance(shipping_address, dict) or not shipping_address:
            raise OrderValidationError("Shipping address is required")
        customer_id = clean_str(payload.get("customerId"))
        if not customer_id:
            raise OrderValidationError("Customer is required")

        delivery_service = self.delivery_service.get_service(clean_str(payload.get("deliveryServiceId")) or "")
        if not delivery_service or not delivery_service.is_active:
            raise OrderValidationError("Invalid or inactive delivery service")

        city = self.db.query(City).filter_by(cityID=clean_str(payload.get("deliveryCityId")) or "").first()
        if not city or not city.is_active:
            raise OrderValidationError("Invalid or inactive delivery city")
        if self.config.DELIVERY_REQUIRE_CITY_COVERAGE and not delivery_service.covers(city):
            raise OrderValidationError(f"{delivery_service.name} does not deliver to {city.name}")

        customer = self.db.query(User).filter_by(userID=customer_id).first()
        if not customer:
            raise OrderValidationError("Customer not found")

        total_amount = Decimal("0.00")
        order_items: List[OrderItem] = []
        for product_id, quantity in items:
            product = self.inventory_service.lock_product(product_id)
            if not product:
                raise OrderValidationError(f"Product {product_id} not found")
            if not product.is_active:
                raise OrderValidationError(f"Product {product.name} is not active")
            if not product.has_stock_for(quantity):
                raise InsufficientStockError(product, quantity)
            total_amount += product.subtotal_for(quantity)
            order_items.append(OrderItem(product=product, quantity=quantity, price=money(product.price)))

        is_salesman = actor.has_role(Role.SALESMAN)
        commission = (
            money(total_amount * Decimal(str(self.config.SALESMAN_COMMISSION_RATE)))
            if is_salesman
            else Decimal("0.00")
        )

        order = Order(
            order_number=self._next_order_number(),
            status=OrderStatus.PENDING,
            total_amount=money(total_amount),
            shipping_address=shipping_address,
            delivery_fee=self.delivery_service.quote_fee(delivery_service),
            salesman_commission=commission,
            customerID=customer.userID,
            salesmanID=actor.userID if is_salesman else None,
            staffID=actor.staffID if is_salesman else actor.userID,
            deliveryServiceID=delivery_service.deliveryServiceID,
            deliveryCityID=city.cityID,
            items=order_items,
        )
        self.db.add(order)

        for item in order_items:
            self.inventory_service.decrease_stock(item.product, item.quantity, reason="order")

        self.db.flush()
        return order

    @staticmethod
    def _normalize_items(raw_items: Any) -> List[Tuple[str, int]]:
        if not isinstance(raw_items, list) or not raw_items:
            raise OrderValidationError("At least one item is required")

        normalized: List[Tuple[str, int]] = []
        seen = set()
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise OrderValidationError("Each item must be an object")
            product_id = clean_str(raw.get("productId"))
            if not product_id:
                raise OrderValidationError("Each item needs a productId")
            try:
                quantity = parse_int(raw.get("quantity"), "quantity")
            except ValueError as exc:
                raise OrderValidationError(str(exc)) from None
            if quantity < 1:
                raise OrderValidationError("Item quantity must be at least 1")
            if product_id in seen:
                raise OrderValidationError(f"Product {product_id} is listed more than once")
            seen.add(product_id)
            normalized.append((product_id, quantity))
        return normalized

    def _next_order_number(self) -> str:
        for _ in range(self.config.ORDER_NUMBER_ATTEMPTS):
            candidate = Order.generate_order_number()
            if not self.db.query(Order.orderID).filter_by(order_number=candidate).first():
                return candidate
        raise OrderValidationError("Could not allocate an order number, please retry")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def update_order_status(
        self,
        actor: User,
        order_id: str,
        status: Any,
    ) -> Tuple[bool, str, Optional[Order]]:
        if not actor.has_role(*STATUS_MANAGERS):
            return False, "Unauthorized: Only admin and staff can update order status", None
        try:
            new_status = OrderStatus(status)
        except ValueError:
            return False, f"Invalid status: {status}", None

        order = (
            self.db.query(Order)
            .options(selectinload(Order.items).joinedload(OrderItem.product))
            .filter_by(orderID=order_id)
            .with_for_update(of=Order)
            .first()
        )
        if not order:
            return False, "Order not found", None

        old_status = OrderStatus(order.status)
        was_cancelled = order.is_cancelled
        try:
            if new_status == OrderStatus.CANCELLED and not was_cancelled:
                self.inventory_service.release_items(order.items)
            elif was_cancelled and new_status != OrderStatus.CANCELLED:
                self.inventory_service.reserve_items(order.items)
            order.status = new_status
            self.db.commit()
        except InsufficientStockError as exc:
            self.db.rollback()
            return False, str(exc), None
        except SQLAlchemyError:
            self.db.rollback()
            self.logger.exception("Status update failed for order %s", order_id)
            return False, "Order status could not be saved", None

        increment_counter(
            "order_status_changes_total",
            labels={"from": old_status.value, "to": new_status.value},
        )
        record_event(
            "order_status_changed",
            {"order_id": order_id, "from": old_status.value, "to": new_status.value, "actor_id": actor.userID},
        )
        self.logger.info("Order %s status %s -> %s", order.order_number, old_status.value, new_status.value)
        return True, "Order status updated", self.get_order_details(order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _with_details(self, query):
        return query.options(
            selectinload(Order.items).joinedload(OrderItem.product),
            joinedload(Order.customer),
            joinedload(Order.salesman),
            joinedload(Order.staff),
            joinedload(Order.delivery_service),
            joinedload(Order.delivery_city),
        )

    def get_order_details(self, order_id: str) -> Optional[Order]:
        self.db.expire_all()
        return self._with_details(self.db.query(Order)).filter(Order.orderID == order_id).first()

    def get_order(self, actor: User, order_id: str) -> Tuple[Optional[Order], Optional[str]]:
        """Return (order, error) where error is "not_found" or "forbidden"."""
        order = self.get_order_details(order_id)
        if not order:
            return None, "not_found"
        if actor.has_role(Role.SALESMAN) and order.salesmanID != actor.userID:
            return None, "forbidden"
        if actor.has_role(Role.STAFF) and order.staffID != actor.userID:
            return None, "forbidden"
        return order, None

    def list_orders(self, actor: User, filters: Dict[str, Any]) -> Dict[str, Any]:
        query = self.db.query(Order)

        if filters.get("status"):
            query = query.filter(Order.status == OrderStatus(filters["status"]))
        date_range = self._date_range(filters)
        if date_range:
            query = query.filter(Order.created_at.between(*date_range))

        if actor.has_role(Role.SALESMAN):
            query = query.filter(Order.salesmanID == actor.userID)
        elif actor.has_role(Role.STAFF):
            query = query.filter(Order.staffID == actor.userID)
        elif actor.has_role(Role.ADMIN):
            if filters.get("salesmanId"):
                query = query.filter(Order.salesmanID == filters["salesmanId"])
            if filters.get("staffId"):
                query = query.filter(Order.staffID == filters["staffId"])
        else:
            query = query.filter(Order.customerID == actor.userID)

        page, limit = parse_pagination(filters.get("page"), filters.get("limit"))
        offset = (page - 1) * limit
        total = query.count()
        orders = (
            self._with_details(query)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "orders": orders,
            "total_count": total,
            "current_page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
            "has_more": offset + len(orders) < total,
        }

    def commission_summary(self, actor: User, filters: Dict[str, Any]) -> Dict[str, Any]:
        order_count = func.count(Order.orderID)
        total_sales = func.coalesce(func.sum(Order.total_amount), 0)
        total_commission = func.coalesce(func.sum(Order.salesman_commission), 0)

        query = self.db.query(
            Order.salesmanID,
            Order.staffID,
            order_count,
            total_sales,
            total_commission,
        ).filter(Order.salesman_commission > 0)

        date_range = self._date_range(filters)
        if date_range:
            query = query.filter(Order.created_at.between(*date_range))
        if actor.has_role(Role.STAFF):
            query = query.filter(Order.staffID == actor.userID)
        elif actor.has_role(Role.ADMIN) and filters.get("salesmanId"):
            query = query.filter(Order.salesmanID == filters["salesmanId"])

        rows = (
            query.group_by(Order.salesmanID, Order.staffID)
            .order_by(total_commission.desc())
            .all()
        )

        user_ids = {uid for row in rows for uid in (row[0], row[1]) if uid}
        users = {
            user.userID: user
            for user in (self.db.query(User).filter(User.userID.in_(user_ids)).all() if user_ids else [])
        }

        salesmen = []
        for salesman_id, staff_id, count, sales, commission in rows:
            sales = money(sales)
            commission = money(commission)
            salesman = users.get(salesman_id)
            staff = users.get(staff_id)
            salesmen.append(
                {
                    "id": salesman_id,
                    "name": salesman.name if salesman else None,
                    "email": salesman.email if salesman else None,
                    "staffName": staff.name if staff else None,
                    "orderCount": int(count),
                    "totalSales": float(sales),
                    "totalCommission": float(commission),
                    "commissionRate": _rate(commission, sales),
                }
            )

        grand_sales = sum((money(row[3]) for row in rows), Decimal("0.00"))
        grand_commission = sum((money(row[4]) for row in rows), Decimal("0.00"))
        return {
            "summary": {
                "totalOrders": sum(int(row[2]) for row in rows),
                "totalSales": float(grand_sales),
                "totalCommission": float(grand_commission),
                "averageCommissionRate": _rate(grand_commission, grand_sales),
                "salesmen": salesmen,
            },
            "dateRange": {
                "start": filters.get("startDate") or "All time",
                "end": filters.get("endDate") or "All time",
            },
        }

    @staticmethod
    def _date_range(filters: Dict[str, Any]) -> Optional[Tuple[datetime, datetime]]:
        start, end = filters.get("startDate"), filters.get("endDate")
        if not start or not end:
            return None
        end_at = parse_datetime(end, "endDate")
        if len(str(end).strip()) == 10:
            # a bare date covers the whole day
            end_at += timedelta(days=1) - timedelta(microseconds=1)
        return parse_datetime(start, "startDate"), end_at


def _rate(commission: Decimal, sales: Decimal) -> float:
    if not sales:
        return 0.0
    return round(float(commission / sales * 100), 2)
