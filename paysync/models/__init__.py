from paysync.models.account import OrderUpdate, UserAccount
from paysync.models.audit_log import OrderAuditLog
from paysync.models.failed_job import FailedJob
from paysync.models.gateway import GatewayOrder, GatewayOrderPage, GatewayPayment
from paysync.models.order import LocalOrderRecord, OrderNotes
from paysync.models.premium_plan import PremiumPlan
from paysync.models.user import User

__all__ = [
    "OrderAuditLog",
    "FailedJob",
    "GatewayOrder",
    "GatewayOrderPage",
    "GatewayPayment",
    "LocalOrderRecord",
    "OrderNotes",
    "OrderUpdate",
    "PremiumPlan",
    "User",
    "UserAccount",
]
