# backoffice/models.py
import random
import string
import time
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Boolean,
    Text,
    JSON,
    Table,
    UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship

# Every model shares the one Base so a single metadata holds all tables.
from backoffice.database import Base

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Coerce a number to a two-decimal Decimal, rounding half up."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    SALESMAN = "salesman"
    CUSTOMER = "customer"

    @classmethod
    def normalize(cls, value) -> "Role":
        if isinstance(value, Role):
            return value
        candidate = (value or "").strip().lower()
        # Seed data of the first release used "guest" for customers
        if candidate == "guest":
            return cls.CUSTOMER
        return cls(candidate)


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = 'User'
    userID = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    _passwordHash = Column('passwordHash', String(255), nullable=False)
    role = Column(
        SAEnum(Role, name="user_role", native_enum=False, validate_strings=True,
               values_callable=lambda enum: [member.value for member in enum]),
        default=Role.CUSTOMER,
        nullable=False,
    )
    staffID = Column(String(36), ForeignKey('User.userID', ondelete="SET NULL"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    assigned_staff = relationship("User", remote_side=[userID], back_populates="salesmen")
    salesmen = relationship("User", back_populates="assigned_staff")
    customer_orders = relationship("Order", foreign_keys="Order.customerID", back_populates="customer")
    salesman_orders = relationship("Order", foreign_keys="Order.salesmanID", back_populates="salesman")
    staff_orders = relationship("Order", foreign_keys="Order.staffID", back_populates="staff")

    @property
    def passwordHash(self):
        return self._passwordHash

    @passwordHash.setter
    def passwordHash(self, value):
        self._passwordHash = value

    def has_role(self, *roles) -> bool:
        return Role.normalize(self.role) in {Role.normalize(r) for r in roles}


class Product(Base):
    __tablename__ = 'Product'
    productID = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(120), nullable=False)
    subcategory = Column(String(120))
    stock = Column(Integer, nullable=False, default=0)
    images = Column(JSON, default=list)
    status = Column(
        SAEnum(ProductStatus, name="product_status", native_enum=False, validate_strings=True,
               values_callable=lambda enum: [member.value for member in enum]),
        default=ProductStatus.ACTIVE,
        nullable=False,
    )
    sku = Column(String(64), unique=True, nullable=False)
    weight = Column(Numeric(10, 2))
    dimensions = Column(JSON, default=lambda: {"length": 0, "width": 0, "height": 0, "unit": "cm"})
    tags = Column(JSON, default=list)
    featured = Column(Boolean, default=False, nullable=False)
    discount_price = Column(Numeric(10, 2))
    # "metadata" is reserved on declarative classes
    extra_metadata = Column('metadata', JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    order_items = relationship("OrderItem", back_populates="product")

    @property
    def is_active(self) -> bool:
        return ProductStatus(self.status) == ProductStatus.ACTIVE

    def has_stock_for(self, quantity: int) -> bool:
        return (self.stock or 0) >= quantity

    def subtotal_for(self, quantity: int) -> Decimal:
        return money(money(self.price) * quantity)

    @staticmethod
    def generate_sku(category: str) -> str:
        timestamp = _to_base36(int(time.time() * 1000))
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=3))
        return f"{category[:3]}-{timestamp}-{suffix}".upper()


def _to_base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    if number == 0:
        return "0"
    encoded = []
    while number:
        number, remainder = divmod(number, 36)
        encoded.append(digits[remainder])
    return "".join(reversed(encoded))


delivery_service_cities = Table(
    'DeliveryServiceCity',
    Base.metadata,
    Column('deliveryServiceID', String(36), ForeignKey('DeliveryService.deliveryServiceID', ondelete="CASCADE"), primary_key=True),
    Column('cityID', String(36), ForeignKey('City.cityID', ondelete="CASCADE"), primary_key=True),
)


class City(Base):
    __tablename__ = 'City'
    __table_args__ = (UniqueConstraint('name', 'state', 'country', name='uq_city_location'),)

    cityID = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    state = Column(String(255))
    country = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    delivery_services = relationship(
        "DeliveryService", secondary=delivery_service_cities, back_populates="cities"
    )


class DeliveryService(Base):
    __tablename__ = 'DeliveryService'
    deliveryServiceID = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), unique=True, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    price_per_km = Column(Numeric(10, 2), nullable=False)
    estimated_days = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    cities = relationship("City", secondary=delivery_service_cities, back_populates="delivery_services")

    def quote_fee(self, distance_km) -> Decimal:
        return money(money(self.base_price) + Decimal(str(distance_km)) * money(self.price_per_km))

    def covers(self, city: "City") -> bool:
        return any(c.cityID == city.cityID for c in self.cities)


class Order(Base):
    __tablename__ = 'Order'
    orderID = Column(String(36), primary_key=True, default=_new_id)
    order_number = Column(String(32), unique=True, nullable=False)
    status = Column(
        SAEnum(OrderStatus, name="order_status", native_enum=False, validate_strings=True,
               values_callable=lambda enum: [member.value for member in enum]),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    total_amount = Column(Numeric(10, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    salesman_commission = Column(Numeric(10, 2), nullable=False, default=0)
    customerID = Column(String(36), ForeignKey('User.userID'), nullable=False)
    salesmanID = Column(String(36), ForeignKey('User.userID', ondelete="SET NULL"))
    staffID = Column(String(36), ForeignKey('User.userID', ondelete="SET NULL"))
    deliveryServiceID = Column(String(36), ForeignKey('DeliveryService.deliveryServiceID'), nullable=False)
    deliveryCityID = Column(String(36), ForeignKey('City.cityID'), nullable=False)
    created_at = Column(DateTime, default=_utcnow, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    customer = relationship("User", foreign_keys=[customerID], back_populates="customer_orders")
    salesman = relationship("User", foreign_keys=[salesmanID], back_populates="salesman_orders")
    staff = relationship("User", foreign_keys=[staffID], back_populates="staff_orders")
    delivery_service = relationship("DeliveryService")
    delivery_city = relationship("City")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def is_cancelled(self) -> bool:
        return OrderStatus(self.status) == OrderStatus.CANCELLED

    @staticmethod
    def generate_order_number(now: datetime | None = None) -> str:
        now = now or datetime.now()
        return f"ORD-{now.strftime('%Y%m%d')}-{random.randint(0, 9999):04d}"


class OrderItem(Base):
    __tablename__ = 'OrderItem'
    orderItemID = Column(String(36), primary_key=True, default=_new_id)
    orderID = Column(String(36), ForeignKey('Order.orderID', ondelete="CASCADE"), nullable=False)
    productID = Column(String(36), ForeignKey('Product.productID'), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    @property
    def line_total(self) -> Decimal:
        return money(money(self.price) * self.quantity)
