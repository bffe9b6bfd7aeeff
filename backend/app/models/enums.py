"""
Enum definitions for the application.
Using string enums for database compatibility.
"""

from enum import Enum


class TargetRole(str, Enum):
    """Coarse routing key for notifications."""
    ADMIN = "admin"
    RESIDENT = "resident"


class NotificationType(str, Enum):
    """
    Notification types handled by the update-request workflow.
    Other types (document and ID requests) pass through as plain strings.
    """
    INFO_UPDATE_REQUEST = "info_update_request"
    INFO_UPDATE_APPROVED = "info_update_approved"
    INFO_UPDATE_REJECTED = "info_update_rejected"


class NotificationStatus(str, Enum):
    """Resolution status carried by a notification."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class NotificationPriority(str, Enum):
    """Display priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UpdateRequestStatus(str, Enum):
    """Forward-only lifecycle of an update request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewAction(str, Enum):
    """Decision an admin takes on a pending request."""
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_NOTIFICATION_STATUSES = {
    NotificationStatus.APPROVED,
    NotificationStatus.REJECTED,
    NotificationStatus.COMPLETED,
}

OUTCOME_NOTIFICATION_TYPES = {
    ReviewAction.APPROVED: NotificationType.INFO_UPDATE_APPROVED,
    ReviewAction.REJECTED: NotificationType.INFO_UPDATE_REJECTED,
}
