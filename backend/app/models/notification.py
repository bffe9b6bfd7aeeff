"""Notification models."""
from typing import Optional, Dict, Any, List, Literal
from datetime import datetime
from pydantic import Field, model_validator

from .common import CamelModel
from .enums import (
    NotificationStatus,
    NotificationPriority,
    TargetRole,
)


class NotificationBase(CamelModel):
    """Fields shared by every notification."""
    type: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    target_role: TargetRole
    target_user_id: Optional[str] = None
    sender_user_id: Optional[str] = None
    request_id: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    status: NotificationStatus = NotificationStatus.PENDING
    data: Optional[Dict[str, Any]] = None


class NotificationCreate(NotificationBase):
    """Create notification request."""
    pass


class Notification(NotificationBase):
    """Stored notification."""
    id: str
    read: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class NotificationFilter(CamelModel):
    """
    Role-scoped list query.

    Admins see everything addressed to the admin role; residents see only
    notifications addressed to their own id.
    """
    target_role: TargetRole
    target_user_id: Optional[str] = None
    resident_id: Optional[str] = None
    types: Optional[List[str]] = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    unread_only: bool = False

    @property
    def recipient_id(self) -> Optional[str]:
        return self.target_user_id or self.resident_id

    @model_validator(mode="after")
    def _resident_scope_needs_recipient(self):
        if self.target_role == TargetRole.RESIDENT and not self.recipient_id:
            raise ValueError("Resident-scoped queries need residentId or targetUserId")
        return self


class NotificationScope(CamelModel):
    """Scope for bulk read-marking."""
    target_role: TargetRole
    target_user_id: Optional[str] = None


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class NotificationPage(CamelModel):
    """
    One list response. unread_count and notifications come from the same
    read and are applied to view state together.
    """
    notifications: List[Notification]
    unread_count: int
    pagination: Pagination

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more


class NotificationPatchRequest(CamelModel):
    """
    PATCH /notifications body.

    Either a status flip ({notificationId, status}), a read-marker change
    ({notificationId, action: markRead|markUnread}) or a bulk read
    ({action: markAllRead}).
    """
    notification_id: Optional[str] = None
    status: Optional[NotificationStatus] = None
    action: Optional[Literal["markRead", "markUnread", "markAllRead"]] = None
    target_role: Optional[TargetRole] = None
    target_user_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self):
        if self.action == "markAllRead":
            return self
        if not self.notification_id:
            raise ValueError("notificationId is required")
        if self.status is None and self.action is None:
            raise ValueError("Either status or action is required")
        return self


class BulkUpdateResponse(CamelModel):
    message: str
    count: int
