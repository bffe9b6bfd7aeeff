"""
Resident-side submission of information update requests.
"""

import asyncio
from typing import Optional, List, Dict, Any, Set
from uuid import uuid4

from ..db.supabase import Database
from ..models.enums import (
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    TargetRole,
    UpdateRequestStatus,
)
from ..models.notification import Notification, NotificationCreate
from ..models.update_request import UpdateRequest, SubmissionResponse
from ..core.config import settings
from ..core.email import EmailService, EmailTemplate
from ..core.errors import ConflictError, NotFoundError
from ..core.logger import logger, log_error, log_data_access
from ..core.resident_fields import EDITABLE_FIELDS, validate_requested_changes
from ..core.timezone import utc_now, format_local_datetime
from .audit import AuditService
from .notifications import NotificationService


def resident_display_name(resident: Dict[str, Any]) -> str:
    name = " ".join(
        part for part in (resident.get("firstName"), resident.get("lastName")) if part
    )
    return name or resident.get("uniqueId") or resident["id"]


class UpdateRequestService:
    """
    Stores update requests and raises the admin notification for each.

    The request row is the authoritative record; the notification embeds a
    copy of it for the admin queue.
    """

    def __init__(
        self,
        db: Database,
        notifications: NotificationService,
        audit: Optional[AuditService] = None,
        email: Optional[EmailService] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.db = db
        self.notifications = notifications
        self.audit = audit
        self.email = email
        self.retry_attempts = (
            settings.NOTIFICATION_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        )
        self.retry_delay = (
            settings.NOTIFICATION_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        )
        self._retry_tasks: Set[asyncio.Task] = set()

    async def submit(
        self,
        resident_id: str,
        changes: Dict[str, Any],
        uploaded_files: Optional[List[str]] = None,
        requested_by: Optional[str] = None,
    ) -> SubmissionResponse:
        """
        Submit a resident's requested changes for admin review.

        Args:
            resident_id: Resident whose record would change
            changes: Requested field values
            uploaded_files: References to supporting documents
            requested_by: Submitting user, defaults to the resident

        Returns:
            The stored request and whether the admin notification was written

        Raises:
            ValidationError: If a field may not be changed or nothing remains
            NotFoundError: If the resident does not exist
            ConflictError: If the resident already has a pending request
        """
        validate_requested_changes(changes)

        resident = await self.db.get_resident_by_id(resident_id)
        if not resident:
            raise NotFoundError(f"Resident not found: {resident_id}")
        resident_id = resident["id"]

        await self._ensure_no_pending(resident_id)

        request = UpdateRequest(
            id=str(uuid4()),
            resident_id=resident_id,
            original_data={
                field: resident.get(field)
                for field in sorted(EDITABLE_FIELDS)
                if field in resident
            },
            requested_changes=changes,
            status=UpdateRequestStatus.PENDING,
            requested_at=utc_now(),
            requested_by=requested_by or resident_id,
            uploaded_files=uploaded_files or [],
            resident_version=resident.get("version"),
        )

        stored = await self.db.create_update_request(request.model_dump(mode="json"))
        if stored:
            request = UpdateRequest.model_validate(stored)

        log_data_access(
            user_id=request.requested_by,
            resource_type="update_request",
            resource_id=request.id,
            action="submit",
            resident_id=resident_id,
            fields=sorted(changes),
        )

        notification = None
        warning = None
        try:
            notification = await self._notify_admins(request, resident)
        except Exception as e:
            log_error(e, {"request_id": request.id, "step": "admin_notification"})
            warning = (
                "Your request was saved but the barangay office has not been "
                "notified yet. It will be retried automatically."
            )
            self._schedule_retry(request.id)

        if self.audit:
            await self.audit.log_update_requested(resident_id, request.id, changes)

        if notification is not None:
            await self._email_admins(request, resident)

        return SubmissionResponse(
            request=request,
            notification=notification,
            notification_delivered=notification is not None,
            warning=warning,
        )

    async def resend_notification(self, request_id: str) -> Notification:
        """
        Write the admin notification for a pending request if it is missing.

        Calling this again after a notification exists returns that
        notification rather than creating a second one.
        """
        request = await self.get(request_id)
        if not request.is_pending:
            raise ConflictError(
                f"Update request already {request.status.value}",
                {"requestId": request_id}
            )

        existing = await self.notifications.for_request(request_id)
        if existing:
            return existing[0]

        resident = await self.db.get_resident_by_id(request.resident_id) or {"id": request.resident_id}
        notification = await self._notify_admins(request, resident)
        logger.info(f"Admin notification re-sent for update request {request_id}")
        return notification

    async def get(self, request_id: str) -> UpdateRequest:
        row = await self.db.get_update_request(request_id)
        if not row:
            raise NotFoundError(f"Update request not found: {request_id}")
        return UpdateRequest.model_validate(row)

    async def get_pending(self, resident_id: str) -> Optional[UpdateRequest]:
        """The resident's pending request, if any."""
        row = await self.db.get_pending_update_request(resident_id)
        return UpdateRequest.model_validate(row) if row else None

    async def list(
        self,
        status: Optional[UpdateRequestStatus] = None,
        resident_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[UpdateRequest]:
        rows = await self.db.list_update_requests(
            status=status.value if status else None,
            resident_id=resident_id,
            limit=limit,
        )
        return [UpdateRequest.model_validate(row) for row in rows]

    async def _ensure_no_pending(self, resident_id: str) -> None:
        pending_notification = await self.notifications.find_pending_request(resident_id)
        if pending_notification is not None:
            raise ConflictError(
                "You already have a pending update request",
                {"residentId": resident_id, "requestId": pending_notification.request_id}
            )

        pending_request = await self.db.get_pending_update_request(resident_id)
        if pending_request:
            raise ConflictError(
                "You already have a pending update request",
                {"residentId": resident_id, "requestId": pending_request["id"]}
            )

    async def _notify_admins(
        self,
        request: UpdateRequest,
        resident: Dict[str, Any]
    ) -> Notification:
        name = resident_display_name(resident)
        fields = ", ".join(sorted(request.requested_changes))
        return await self.notifications.create(NotificationCreate(
            type=NotificationType.INFO_UPDATE_REQUEST.value,
            title="Information Update Request",
            message=f"{name} requested an update to: {fields}",
            target_role=TargetRole.ADMIN,
            sender_user_id=request.resident_id,
            request_id=request.id,
            priority=NotificationPriority.MEDIUM,
            status=NotificationStatus.PENDING,
            data=request.model_dump(mode="json", by_alias=True),
        ))

    def _schedule_retry(self, request_id: str) -> None:
        if self.retry_attempts <= 0:
            return
        task = asyncio.create_task(self._retry_notification(request_id))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _retry_notification(self, request_id: str) -> None:
        for attempt in range(1, self.retry_attempts + 1):
            await asyncio.sleep(self.retry_delay)
            try:
                await self.resend_notification(request_id)
                logger.info(f"Admin notification for {request_id} delivered on retry {attempt}")
                return
            except ConflictError:
                # Resolved in the meantime; nothing left to announce
                return
            except Exception as e:
                logger.warning(
                    f"Retry {attempt}/{self.retry_attempts} for request {request_id} failed: {e}"
                )
        logger.error(f"Admin notification for update request {request_id} was never delivered")

    async def _email_admins(self, request: UpdateRequest, resident: Dict[str, Any]) -> None:
        if not self.email or not self.email.enabled:
            return
        try:
            admins = await self.db.get_active_admin_emails()
            if not admins:
                return
            await self.email.send_bulk_emails(
                recipients=admins,
                template=EmailTemplate.ADMIN_INFO_UPDATE_REQUEST,
                common_data={
                    "resident_name": resident_display_name(resident),
                    "resident_id": resident.get("uniqueId") or request.resident_id,
                    "requested_at": format_local_datetime(request.requested_at),
                    "field_list": "".join(
                        f"<li>{field}</li>" for field in sorted(request.requested_changes)
                    ),
                    "review_link": f"{settings.FRONTEND_URL}/admin/update-requests/{request.id}",
                },
            )
        except Exception as e:
            log_error(e, {"request_id": request.id, "step": "admin_email"})
