"""
                        Services Module

Business logic behind the routers. External integrations follow the
hybrid architecture pattern: a Mock (development) and a Real
(staging/production) implementation behind one factory.

Services:
    - payment: Midtrans Snap gateway
    - notifications: SendGrid email
    - accounts, catalog, ordering: users, menu and orders
    - reconciliation: payment status transitions and webhooks
    - sales: daily counters and owner reports
    - audit: audit trail
    - excel_manager: thread-safe payments ledger
"""

from app.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
