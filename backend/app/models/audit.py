"""
Audit trail models for tracking review activity.
"""

from enum import Enum


class AuditAction(str, Enum):
    """Auditable actions."""
    INFO_UPDATE_REQUESTED = "info_update_requested"
    INFO_UPDATE_APPROVED = "info_update_approved"
    INFO_UPDATE_REJECTED = "info_update_rejected"
    RESIDENT_UPDATED = "resident_updated"


class AuditResourceType(str, Enum):
    """Types of resources that can be audited."""
    RESIDENT = "resident"
    UPDATE_REQUEST = "update_request"


AUDIT_ACTION_LABELS = {
    AuditAction.INFO_UPDATE_REQUESTED: "Resident requested an information update",
    AuditAction.INFO_UPDATE_APPROVED: "Information update approved",
    AuditAction.INFO_UPDATE_REJECTED: "Information update rejected",
    AuditAction.RESIDENT_UPDATED: "Resident record updated",
}
