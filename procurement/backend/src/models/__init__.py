"""ORM models exposed for easy imports."""

from .approval import ApprovalAction, ApprovalActionType, DocumentStatus
from .budgetary_offer import BudgetaryOffer
from .line_item import PurchaseOrderItem
from .purchase_order import PurchaseOrder
from .user import User
from .vendor import Vendor

__all__ = [
    "ApprovalAction",
    "ApprovalActionType",
    "BudgetaryOffer",
    "DocumentStatus",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "User",
    "Vendor",
]
