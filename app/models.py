"""
SQLAlchemy Database Models

Point-of-sale domain:
- Staff and owner accounts
- Menu categories and menu items
- Dine-in orders (staff-entered or guest QR) with per-item kitchen status
- Payments (cash/manual and Midtrans)
- Audit trail and daily sales counters
"""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.database import Base


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def _status_column(enum_cls: type[enum.Enum], default: enum.Enum) -> Column:
    return Column(
        Enum(enum_cls, native_enum=False, length=20, values_callable=_enum_values),
        default=default,
        nullable=False,
        index=True,
    )


class UserRole(str, enum.Enum):
    OWNER = "owner"
    STAFF = "staff"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PROCESSING = "processing"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderItemStatus(str, enum.Enum):
    """Kitchen status of a single order line."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Orders in these states count as sales.
REPORTABLE_ORDER_STATUSES = (
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
)


class User(Base):
    """Owner or staff account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = _status_column(UserRole, UserRole.STAFF)
    status = _status_column(UserStatus, UserStatus.ACTIVE)

    reset_token = Column(String(128), nullable=True, index=True)
    reset_token_expires = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role.value}>"


class Category(Base):
    """Menu category; menu items reference it by name."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    subcategories = Column(JSON, nullable=False, default=list)
    icon = Column(String(16), nullable=False, default="🍴")

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Category #{self.id} - {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    subcategory = Column(String(100), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    image_url = Column(String(500), nullable=False, default="")
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price}>"


class Order(Base):
    """
    Dine-in order for a table.

    Tracks the lifecycle from capture (staff console or guest QR menu)
    to completion once the bill is paid.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # TABLE & CUSTOMER
    # =========================================================================
    table_number = Column(Integer, nullable=False)
    customer_name = Column(String(100), nullable=False, default="")
    source = Column(String(10), nullable=False, default="staff")  # staff | guest

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )
    total_amount = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(30), nullable=False, default="cash")

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = _status_column(OrderStatus, OrderStatus.PENDING)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_number} - {self.status.value}>"


class OrderItem(Base):
    """One order line; name and price are snapshotted from the menu."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    menu_id = Column(Integer, nullable=False, index=True)
    name = Column(String(150), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    status = _status_column(OrderItemStatus, OrderItemStatus.PENDING)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def __repr__(self):
        return f"<OrderItem #{self.id} - {self.name} x{self.quantity}>"


class Payment(Base):
    """
    Payment attempt for an order.

    provider_ref is the reference sent to the gateway (order-<id>-<ms>)
    and is how webhook notifications find their way back here.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String(30), nullable=False)

    # =========================================================================
    # GATEWAY
    # =========================================================================
    provider = Column(String(30), nullable=True)
    provider_ref = Column(String(100), nullable=True, index=True)
    provider_status = Column(String(30), nullable=True)
    snap_token = Column(String(255), nullable=True)
    redirect_url = Column(String(500), nullable=True)

    status = _status_column(PaymentStatus, PaymentStatus.PENDING)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Payment #{self.id} - order {self.order_id} - {self.status.value}>"


class AuditLog(Base):
    """Append-only trail of payment-affecting actions."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(String(60), nullable=False, index=True)
    entity = Column(String(60), nullable=False)
    entity_id = Column(String(60), nullable=True)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity}#{self.entity_id}>"


class SalesStat(Base):
    """Running per-day counters, keyed by YYYY-MM-DD."""
    __tablename__ = "sales_stats"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(String(10), nullable=False, unique=True, index=True)
    total_revenue = Column(Float, nullable=False, default=0.0)
    total_orders = Column(Integer, nullable=False, default=0)
    total_paid_payments = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<SalesStat {self.date} - {self.total_revenue}>"
