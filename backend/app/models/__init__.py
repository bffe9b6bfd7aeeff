"""
Pydantic models for request/response validation.
"""

from .enums import (
    TargetRole,
    NotificationType,
    NotificationStatus,
    NotificationPriority,
    UpdateRequestStatus,
    ReviewAction,
    TERMINAL_NOTIFICATION_STATUSES,
    OUTCOME_NOTIFICATION_TYPES,
)

from .common import (
    CamelModel,
    SuccessResponse,
    ErrorResponse,
    ValidationErrorDetail,
    ValidationErrorResponse,
    HealthCheckResponse,
)

from .audit import (
    AuditAction,
    AuditResourceType,
    AUDIT_ACTION_LABELS,
)

from .events import (
    SyncEventName,
    SyncEvent,
)

from .notification import (
    Notification,
    NotificationCreate,
    NotificationFilter,
    NotificationScope,
    NotificationPage,
    NotificationPatchRequest,
    Pagination,
    BulkUpdateResponse,
)

from .update_request import (
    UpdateRequest,
    UpdateRequestSubmit,
    SubmissionResponse,
    ReviewRequest,
    ApprovalResult,
)

__all__ = [
    # Enums
    "TargetRole",
    "NotificationType",
    "NotificationStatus",
    "NotificationPriority",
    "UpdateRequestStatus",
    "ReviewAction",
    "TERMINAL_NOTIFICATION_STATUSES",
    "OUTCOME_NOTIFICATION_TYPES",
    # Common
    "CamelModel",
    "SuccessResponse",
    "ErrorResponse",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
    "HealthCheckResponse",
    # Audit
    "AuditAction",
    "AuditResourceType",
    "AUDIT_ACTION_LABELS",
    # Events
    "SyncEventName",
    "SyncEvent",
    # Notifications
    "Notification",
    "NotificationCreate",
    "NotificationFilter",
    "NotificationScope",
    "NotificationPage",
    "NotificationPatchRequest",
    "Pagination",
    "BulkUpdateResponse",
    # Update requests
    "UpdateRequest",
    "UpdateRequestSubmit",
    "SubmissionResponse",
    "ReviewRequest",
    "ApprovalResult",
]
