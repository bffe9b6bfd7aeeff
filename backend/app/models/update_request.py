"""
Update request models.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import Field

from .common import CamelModel
from .enums import UpdateRequestStatus
from .events import SyncEvent
from .notification import Notification


class UpdateRequest(CamelModel):
    """
    One resident-submitted change to their own record.

    The same shape is embedded (by value) in the info_update_request
    notification's data payload.
    """
    id: str
    resident_id: str
    original_data: Dict[str, Any] = Field(default_factory=dict)
    requested_changes: Dict[str, Any]
    status: UpdateRequestStatus = UpdateRequestStatus.PENDING
    requested_at: datetime
    requested_by: str
    uploaded_files: List[str] = Field(default_factory=list)
    resident_version: Optional[int] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == UpdateRequestStatus.PENDING


class UpdateRequestSubmit(CamelModel):
    """Request body for a resident's profile change."""
    requested_changes: Dict[str, Any] = Field(
        ...,
        description="Fields to change with their new values"
    )
    uploaded_files: List[str] = Field(
        default_factory=list,
        description="References to supporting documents already uploaded"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "requestedChanges": {
                    "firstName": "Juana",
                    "phone": "0921234567",
                    "address": {
                        "street": "123 Rizal St",
                        "barangay": "San Isidro",
                        "city": "Quezon City",
                        "province": "Metro Manila",
                        "zipCode": "1100"
                    }
                },
                "uploadedFiles": []
            }
        }


class SubmissionResponse(CamelModel):
    """Result of a submission; the request is stored even if notifying admins failed."""
    request: UpdateRequest
    notification: Optional[Notification] = None
    notification_delivered: bool
    warning: Optional[str] = None


class ReviewRequest(CamelModel):
    """Admin decision payload."""
    review_notes: Optional[str] = Field(
        None,
        description="Admin's notes or reason for the decision"
    )
    force: bool = Field(
        False,
        description="Approve even though the resident record changed since submission"
    )


class ApprovalResult(CamelModel):
    """Outcome of approve/reject as reported to the reviewing admin."""
    request: UpdateRequest
    applied_changes: Dict[str, Any] = Field(default_factory=dict)
    resident: Optional[Dict[str, Any]] = None
    outcome_notification: Optional[Notification] = None
    resident_notified: bool = False
    already_resolved: bool = False
    warnings: List[str] = Field(default_factory=list)
    events: List[SyncEvent] = Field(default_factory=list)
