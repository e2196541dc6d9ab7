"""
Pydantic Schemas for Request/Response Validation

The wire format is camelCase (tableNumber, totalAmount, ...). Requests
accept snake_case as well, so both `orderId` and `order_id` work.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models import (
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    UserRole,
    UserStatus,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


# =============================================================================
# AUTH & USERS
# =============================================================================

class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Owner Bagus"])
    email: EmailStr = Field(..., examples=["owner@example.com"])
    password: str = Field(..., min_length=6, max_length=128)

    strip_name = field_validator("name")(_strip_required)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=128)


class UserCreate(CamelModel):
    """Owner creating a staff (or co-owner) account."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.STAFF
    status: UserStatus = UserStatus.ACTIVE

    strip_name = field_validator("name")(_strip_required)


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class RoleUpdate(CamelModel):
    role: UserRole


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: UserRole
    status: UserStatus
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    user: UserResponse


# =============================================================================
# CATEGORIES & MENU
# =============================================================================

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["minuman"])
    subcategories: List[str] = Field(default_factory=list, examples=[["kafein"]])
    icon: Optional[str] = Field(None, max_length=16)

    strip_name = field_validator("name")(_strip_required)


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    subcategories: Optional[List[str]] = None
    icon: Optional[str] = Field(None, max_length=16)


class SubcategoryCreate(CamelModel):
    subcategory: str = Field(..., min_length=1, max_length=100)

    strip_subcategory = field_validator("subcategory")(_strip_required)


class CategoryResponse(CamelModel):
    id: int
    name: str
    subcategories: List[str]
    icon: str


class MenuFilters(CamelModel):
    categories: List[str]
    subcategories: dict[str, List[str]]


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=150, examples=["Nasi Goreng"])
    price: float = Field(..., ge=0, examples=[25000])
    category: str = Field(..., min_length=1, max_length=100, examples=["makanan"])
    subcategory: str = Field(default="", max_length=100)
    description: str = Field(default="", max_length=2000)
    image_url: str = Field(default="", max_length=500)
    is_available: bool = True

    strip_name = field_validator("name")(_strip_required)


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: Optional[bool] = None


class MenuItemResponse(CamelModel):
    id: int
    name: str
    price: float
    category: str
    subcategory: str
    description: str
    image_url: str
    is_available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemIn(CamelModel):
    """Single line of a new order. Price always comes from the menu."""
    menu_id: int = Field(..., gt=0, examples=[1])
    quantity: int = Field(..., ge=1, le=99, examples=[2])


class GuestOrderCreate(CamelModel):
    """Order placed from the table QR menu, no login."""
    table_number: int = Field(..., ge=1, examples=[7])
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Budi"])
    items: List[OrderItemIn] = Field(..., min_length=1)

    strip_customer_name = field_validator("customer_name")(_strip_required)


class OrderCreate(CamelModel):
    """Order entered by staff at the POS."""
    table_number: int = Field(..., ge=1, examples=[3])
    customer_name: str = Field(default="", max_length=100)
    items: List[OrderItemIn] = Field(..., min_length=1)
    payment_method: Literal["cash", "midtrans"] = "cash"


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderItemStatusUpdate(CamelModel):
    status: OrderItemStatus


class OrderItemResponse(CamelModel):
    id: int
    menu_id: int
    name: str
    quantity: int
    unit_price: float
    status: OrderItemStatus


class OrderResponse(CamelModel):
    id: int
    table_number: int
    customer_name: str
    items: List[OrderItemResponse]
    total_amount: float
    status: OrderStatus
    payment_method: str
    source: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderItemUpdateResponse(CamelModel):
    order: OrderResponse
    item: OrderItemResponse


class ReceiptItem(OrderItemResponse):
    menu_name: str
    menu_price: float


class ReceiptResponse(OrderResponse):
    items: List[ReceiptItem]


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int


class OrderPage(CamelModel):
    orders: List[OrderResponse]
    pagination: Pagination


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentProcessRequest(CamelModel):
    order_id: int = Field(..., gt=0)
    amount: float = Field(..., ge=0)
    payment_method: str = Field(default="cash", max_length=30, examples=["cash", "qris"])


class PaymentStatusUpdate(CamelModel):
    status: str


class CustomerDetails(BaseModel):
    """Midtrans customer_details; keys are sent as-is to the gateway."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class GuestDigitalPaymentRequest(CamelModel):
    order_id: int = Field(..., gt=0)
    customer: Optional[CustomerDetails] = None


class GuestManualPaymentRequest(CamelModel):
    order_id: int = Field(..., gt=0)


class PaymentResponse(CamelModel):
    id: int
    order_id: int
    amount: float
    payment_method: str
    provider: Optional[str] = None
    provider_ref: Optional[str] = None
    provider_status: Optional[str] = None
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class SnapTransaction(CamelModel):
    token: str
    redirect_url: str
    order_id: str


class PaymentCreated(CamelModel):
    payment_id: int
    order_id: int
    amount: float
    status: PaymentStatus
    midtrans: Optional[SnapTransaction] = None


class GuestDigitalPaymentResponse(CamelModel):
    payment: PaymentResponse
    midtrans: SnapTransaction


class PaymentPage(CamelModel):
    payments: List[PaymentResponse]
    total_items: int
    total_pages: int
    current_page: int


class MidtransNotification(BaseModel):
    """Body Midtrans POSTs to the notification URL (snake_case)."""
    model_config = ConfigDict(extra="allow")

    order_id: str
    status_code: str
    gross_amount: str
    signature_key: str
    transaction_status: str
    fraud_status: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None

    @field_validator("status_code", "gross_amount", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str:
        return str(v)


# =============================================================================
# REPORTS
# =============================================================================

class SalesPeriod(CamelModel):
    period: str
    date: datetime
    revenue: float
    order_count: int
    average_order_value: int


class TopSellingItem(CamelModel):
    id: int
    name: str
    quantity: int
    total_revenue: float


class SalesSummary(CamelModel):
    total_revenue: float
    total_orders: int
    average_order_value: int
    start_date: datetime
    end_date: datetime
    period: str


class SalesReport(CamelModel):
    summary: SalesSummary
    periods: List[SalesPeriod]
    top_selling_items: List[TopSellingItem]


class SalesStatResponse(CamelModel):
    date: str
    total_revenue: float
    total_orders: int
    total_paid_payments: int


# =============================================================================
# SYSTEM
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    payment_gateway: str
    notification_service: str
    uptime_seconds: float
    timestamp: datetime
