"""JSON representations shared by the API blueprints (camelCase field names)."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from backoffice.models import City, DeliveryService, Order, OrderItem, Product, User


def serialize_dt(value: Optional[datetime]) -> Optional[str]:
    if not value:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def as_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def serialize_user_ref(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.userID, "name": user.name, "email": user.email}


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.userID,
        "name": user.name,
        "email": user.email,
        "role": enum_value(user.role),
        "staffId": user.staffID,
        "assignedStaff": serialize_user_ref(user.assigned_staff),
        "createdAt": serialize_dt(user.created_at),
        "updatedAt": serialize_dt(user.updated_at),
    }


def serialize_product(product: Product) -> Dict[str, Any]:
    return {
        "id": product.productID,
        "name": product.name,
        "description": product.description,
        "price": as_float(product.price),
        "category": product.category,
        "subcategory": product.subcategory,
        "stock": product.stock,
        "images": product.images or [],
        "status": enum_value(product.status),
        "sku": product.sku,
        "weight": as_float(product.weight),
        "dimensions": product.dimensions,
        "tags": product.tags or [],
        "featured": bool(product.featured),
        "discountPrice": as_float(product.discount_price),
        "metadata": product.extra_metadata or {},
        "createdAt": serialize_dt(product.created_at),
        "updatedAt": serialize_dt(product.updated_at),
    }


def serialize_city(city: Optional[City]) -> Optional[Dict[str, Any]]:
    if city is None:
        return None
    return {
        "id": city.cityID,
        "name": city.name,
        "state": city.state,
        "country": city.country,
        "isActive": bool(city.is_active),
    }


def serialize_delivery_service(service: Optional[DeliveryService], include_cities: bool = False) -> Optional[Dict[str, Any]]:
    if service is None:
        return None
    body = {
        "id": service.deliveryServiceID,
        "name": service.name,
        "basePrice": as_float(service.base_price),
        "pricePerKm": as_float(service.price_per_km),
        "estimatedDays": service.estimated_days,
        "isActive": bool(service.is_active),
    }
    if include_cities:
        body["cities"] = [serialize_city(city) for city in service.cities]
    return body


def serialize_order_item(item: OrderItem) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.orderItemID,
        "productId": item.productID,
        "quantity": item.quantity,
        "price": as_float(item.price),
        "lineTotal": as_float(item.line_total),
        "Product": {
            "id": product.productID,
            "name": product.name,
            "price": as_float(product.price),
            "sku": product.sku,
            "stock": product.stock,
        } if product else None,
    }


def serialize_order(order: Order) -> Dict[str, Any]:
    return {
        "id": order.orderID,
        "orderNumber": order.order_number,
        "status": enum_value(order.status),
        "totalAmount": as_float(order.total_amount),
        "shippingAddress": order.shipping_address,
        "deliveryFee": as_float(order.delivery_fee),
        "salesmanCommission": as_float(order.salesman_commission),
        "customerId": order.customerID,
        "salesmanId": order.salesmanID,
        "staffId": order.staffID,
        "deliveryServiceId": order.deliveryServiceID,
        "deliveryCityId": order.deliveryCityID,
        "createdAt": serialize_dt(order.created_at),
        "updatedAt": serialize_dt(order.updated_at),
        "OrderItems": [serialize_order_item(item) for item in order.items],
        "customer": serialize_user_ref(order.customer),
        "salesman": serialize_user_ref(order.salesman),
        "staff": serialize_user_ref(order.staff),
        "DeliveryService": serialize_delivery_service(order.delivery_service),
        "deliveryCity": serialize_city(order.delivery_city),
    }
