"""PRFlow — SQLAlchemy models."""
from prflow.models.approval import ApprovalAction, ApprovalHistory, ApprovalWorkflow
from prflow.models.master import Department, InventoryItem, Location
from prflow.models.notification import Notification, NotificationType
from prflow.models.purchase_request import LineItem, PurchaseRequest, RequestStatus, RequisitionCounter
from prflow.models.user import User, UserRoleEnum

__all__ = [
    "User", "UserRoleEnum",
    "PurchaseRequest", "LineItem", "RequestStatus", "RequisitionCounter",
    "ApprovalWorkflow", "ApprovalHistory", "ApprovalAction",
    "Notification", "NotificationType",
    "Department", "Location", "InventoryItem",
]
