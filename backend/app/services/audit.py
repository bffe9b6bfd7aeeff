"""
Audit logging service for tracking review activity.
"""

from typing import Optional, Dict, Any

from ..models.audit import (
    AuditAction,
    AuditResourceType,
    AUDIT_ACTION_LABELS,
)
from ..db.supabase import Database
from ..core.logger import logger


class AuditService:
    """Service for creating audit log entries."""

    def __init__(self, db: Database):
        self.db = db

    async def log_action(
        self,
        action: AuditAction,
        resource_type: AuditResourceType,
        user_id: Optional[str] = None,
        user_type: str = "system",
        resource_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Create an audit log entry.

        Args:
            action: The action being performed
            resource_type: Type of resource being affected
            user_id: ID of user performing action
            user_type: Type of user (admin, resident, system)
            resource_id: ID of the resource
            changes: Dictionary of changes (for updates)
            metadata: Additional context

        Returns:
            bool: True if audit log created successfully
        """
        try:
            await self.db.create_audit_log({
                "user_id": user_id,
                "user_type": user_type,
                "action": action.value,
                "action_description": AUDIT_ACTION_LABELS.get(action, action.value),
                "resource_type": resource_type.value,
                "resource_id": resource_id,
                "changes": changes,
                "metadata": metadata,
            })
            return True

        except Exception as e:
            # Audit failures never break the main flow
            logger.warning(f"Failed to create audit log for {action.value}: {e}")
            return False

    async def log_update_requested(
        self,
        resident_id: str,
        request_id: str,
        requested_changes: Dict[str, Any],
    ) -> bool:
        return await self.log_action(
            action=AuditAction.INFO_UPDATE_REQUESTED,
            resource_type=AuditResourceType.UPDATE_REQUEST,
            user_id=resident_id,
            user_type="resident",
            resource_id=request_id,
            changes=requested_changes,
        )

    async def log_review(
        self,
        action: AuditAction,
        reviewer_id: Optional[str],
        request_id: str,
        resident_id: str,
        changes: Optional[Dict[str, Any]] = None,
        review_notes: Optional[str] = None,
    ) -> bool:
        """Record an approve/reject decision against the request."""
        return await self.log_action(
            action=action,
            resource_type=AuditResourceType.UPDATE_REQUEST,
            user_id=reviewer_id,
            user_type="admin",
            resource_id=request_id,
            changes=changes,
            metadata={"residentId": resident_id, "reviewNotes": review_notes},
        )

    async def log_resident_updated(
        self,
        admin_id: Optional[str],
        resident_id: str,
        changes: Dict[str, Any],
    ) -> bool:
        return await self.log_action(
            action=AuditAction.RESIDENT_UPDATED,
            resource_type=AuditResourceType.RESIDENT,
            user_id=admin_id,
            user_type="admin",
            resource_id=resident_id,
            changes=changes,
        )
