"""
API routers, one module per area:

    auth      /api/auth       accounts, login, password reset
    menu      /api/menu       categories and menu items
    orders    /api/orders     staff and guest orders
    payments  /api/payments   payments and the Midtrans webhook
    staff     /api/staff      staff console and staff management
    owner     /api/owner      sales reports
"""

from app.routers import auth, menu, orders, owner, payments, staff

__all__ = ["auth", "menu", "orders", "owner", "payments", "staff"]
