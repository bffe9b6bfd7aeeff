"""
Admin review of information update requests.

approve/reject run in two phases. The authoritative phase (load the request,
load the resident, version check, resident write) raises and aborts on any
failure. The propagation phase (resolve the request and its notification,
outcome notification, sync events, audit, email) is best-effort: each failure
is logged as a PartialPropagationError and reported back in the result. If
the resolve step fails the request stays pending and the remaining steps are
left to the next approve/reject, which recognises its own earlier write.
"""

from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any, Set

from ..db.supabase import Database
from ..models.audit import AuditAction
from ..models.enums import (
    NotificationPriority,
    NotificationStatus,
    ReviewAction,
    TargetRole,
    UpdateRequestStatus,
    OUTCOME_NOTIFICATION_TYPES,
)
from ..models.events import SyncEvent, SyncEventName
from ..models.notification import Notification, NotificationCreate
from ..models.update_request import UpdateRequest, ApprovalResult
from ..core.config import settings
from ..core.email import EmailService, EmailTemplate
from ..core.errors import ConflictError, NotFoundError, PartialPropagationError
from ..core.logger import logger, log_error, log_data_access
from ..core.resident_fields import EDITABLE_FIELDS, changed_fields, normalize_changes
from ..core.timezone import utc_now_iso, format_local_datetime
from ..sync.bus import EventBus
from .audit import AuditService
from .notifications import NotificationService
from .update_requests import resident_display_name


class InFlightGuard:
    """Rejects a second review of the same request while one is running."""

    def __init__(self):
        self._active: Set[str] = set()

    def is_active(self, key: str) -> bool:
        return key in self._active

    @asynccontextmanager
    async def hold(self, key: str):
        if key in self._active:
            raise ConflictError(
                "This request is already being reviewed",
                {"requestId": key}
            )
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)


# Shared by every processor in the process
review_guard = InFlightGuard()


class ApprovalProcessor:
    """Transitions pending update requests to approved or rejected."""

    def __init__(
        self,
        db: Database,
        notifications: NotificationService,
        event_bus: Optional[EventBus] = None,
        audit: Optional[AuditService] = None,
        email: Optional[EmailService] = None,
        guard: Optional[InFlightGuard] = None,
    ):
        self.db = db
        self.notifications = notifications
        self.event_bus = event_bus
        self.audit = audit
        self.email = email
        self.guard = guard or review_guard

    async def approve(
        self,
        request_id: str,
        reviewer_id: Optional[str] = None,
        force: bool = False,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        """
        Apply a pending request to the resident record.

        Args:
            request_id: Request to approve
            reviewer_id: Reviewing admin
            force: Approve even though the resident's version moved on since
                submission; the write is still conditional on the version
                read here
            review_notes: Stored on the request

        Raises:
            NotFoundError: Request or resident missing; nothing was changed
            ConflictError: Rejected already, under review elsewhere, or the
                resident record changed since submission
        """
        async with self.guard.hold(request_id):
            request = await self._load(request_id)
            if request.status == UpdateRequestStatus.APPROVED:
                return await self._already_resolved(request, ReviewAction.APPROVED)
            if request.status != UpdateRequestStatus.PENDING:
                raise ConflictError(
                    f"Update request already {request.status.value}",
                    {"requestId": request_id}
                )

            resident = await self._load_resident(request)
            current_version = resident.get("version")
            applied = {
                field: value
                for field, value in normalize_changes(request.requested_changes).items()
                if field in EDITABLE_FIELDS
            }
            # A retry after a failed status update finds its own write in place
            already_applied = bool(applied) and not changed_fields(resident, applied)

            if (
                not force
                and not already_applied
                and request.resident_version is not None
                and current_version != request.resident_version
            ):
                raise ConflictError(
                    "Resident record changed since this request was submitted. "
                    "Review the current record and approve again to overwrite.",
                    {
                        "requestId": request_id,
                        "submittedVersion": request.resident_version,
                        "currentVersion": current_version,
                    }
                )

            updated_resident = resident
            if applied and not already_applied:
                updated_resident = await self.db.update_resident(
                    resident["id"], applied, expected_version=current_version
                )
            log_data_access(
                user_id=reviewer_id,
                resource_type="resident",
                resource_id=resident["id"],
                action="approve_update",
                request_id=request_id,
                fields=sorted(applied),
            )

            return await self._propagate(
                request,
                ReviewAction.APPROVED,
                resident=updated_resident,
                applied=applied,
                reviewer_id=reviewer_id,
                review_notes=review_notes,
            )

    async def reject(
        self,
        request_id: str,
        reviewer_id: Optional[str] = None,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        """Resolve a pending request as rejected; the resident record is untouched."""
        async with self.guard.hold(request_id):
            request = await self._load(request_id)
            if request.status == UpdateRequestStatus.REJECTED:
                return await self._already_resolved(request, ReviewAction.REJECTED)
            if request.status != UpdateRequestStatus.PENDING:
                raise ConflictError(
                    f"Update request already {request.status.value}",
                    {"requestId": request_id}
                )

            resident = await self._load_resident(request)

            return await self._propagate(
                request,
                ReviewAction.REJECTED,
                resident=resident,
                applied={},
                reviewer_id=reviewer_id,
                review_notes=review_notes,
            )

    async def _load(self, request_id: str) -> UpdateRequest:
        row = await self.db.get_update_request(request_id)
        if not row:
            raise NotFoundError(f"Update request not found: {request_id}")
        return UpdateRequest.model_validate(row)

    async def _load_resident(self, request: UpdateRequest) -> Dict[str, Any]:
        resident = await self.db.get_resident_by_id(request.resident_id)
        if not resident:
            raise NotFoundError(
                f"Resident not found: {request.resident_id}",
                {"requestId": request.id}
            )
        return resident

    async def _already_resolved(
        self,
        request: UpdateRequest,
        action: ReviewAction
    ) -> ApprovalResult:
        outcome = await self.notifications.for_request(
            request.id, OUTCOME_NOTIFICATION_TYPES[action]
        )
        logger.info(f"Update request {request.id} already {action.value}; nothing to do")
        return ApprovalResult(
            request=request,
            outcome_notification=outcome[0] if outcome else None,
            resident_notified=bool(outcome),
            already_resolved=True,
        )

    async def _propagate(
        self,
        request: UpdateRequest,
        action: ReviewAction,
        resident: Dict[str, Any],
        applied: Dict[str, Any],
        reviewer_id: Optional[str],
        review_notes: Optional[str],
    ) -> ApprovalResult:
        warnings: List[str] = []
        status = UpdateRequestStatus(action.value)

        try:
            resolved = await self.db.resolve_update_request(
                request.id, status.value, reviewer_id, review_notes
            )
            request = UpdateRequest.model_validate(resolved)
        except Exception as e:
            # Request and notification stay pending; approving again finishes them
            self._propagation_failed("status update", e, request, warnings)
            warnings.append(
                f"Request is still pending; {action.value[:-1]} it again to finish"
            )
            logger.warning(f"Update request {request.id} left pending after failed status update")
            return ApprovalResult(
                request=request,
                applied_changes=applied,
                resident=resident,
                warnings=warnings,
            )

        outcome: Optional[Notification] = None
        try:
            outcome = await self.notifications.create(
                self._outcome_notification(request, action, applied, reviewer_id)
            )
        except Exception as e:
            self._propagation_failed("outcome notification", e, request, warnings)
            warnings.append(f"Request {action.value} but resident not notified")

        events = [
            SyncEvent(
                name=name,
                resident_id=request.resident_id,
                updated_data=applied or None,
                action=action,
                request_id=request.id,
            )
            for name in (SyncEventName.RESIDENT_DATA_UPDATED, SyncEventName.ADMIN_DATA_REFRESH)
        ]
        if self.event_bus is not None:
            for event in events:
                try:
                    await self.event_bus.publish(event)
                except Exception as e:
                    self._propagation_failed(f"{event.name.value} event", e, request, warnings)

        if self.audit:
            audit_action = (
                AuditAction.INFO_UPDATE_APPROVED
                if action == ReviewAction.APPROVED
                else AuditAction.INFO_UPDATE_REJECTED
            )
            await self.audit.log_review(
                audit_action,
                reviewer_id=reviewer_id,
                request_id=request.id,
                resident_id=request.resident_id,
                changes=applied or None,
                review_notes=review_notes,
            )

        await self._email_resident(request, action, resident)

        logger.info(
            f"Update request {request.id} {action.value} by {reviewer_id}"
            + (f" with {len(warnings)} warning(s)" if warnings else "")
        )
        return ApprovalResult(
            request=request,
            applied_changes=applied,
            resident=resident,
            outcome_notification=outcome,
            resident_notified=outcome is not None,
            warnings=warnings,
            events=events,
        )

    def _outcome_notification(
        self,
        request: UpdateRequest,
        action: ReviewAction,
        applied: Dict[str, Any],
        reviewer_id: Optional[str],
    ) -> NotificationCreate:
        data = request.model_dump(mode="json", by_alias=True)
        if action == ReviewAction.APPROVED:
            title = "Information Update Approved"
            message = "Your information update request has been approved and your profile was updated."
            data.update({"appliedChanges": applied, "approvedAt": utc_now_iso()})
        else:
            title = "Information Update Rejected"
            message = "Your information update request was not approved."
            if request.review_notes:
                message += f" Notes: {request.review_notes}"
            data["rejectedAt"] = utc_now_iso()

        return NotificationCreate(
            type=OUTCOME_NOTIFICATION_TYPES[action].value,
            title=title,
            message=message,
            target_role=TargetRole.RESIDENT,
            target_user_id=request.resident_id,
            sender_user_id=reviewer_id,
            request_id=request.id,
            priority=NotificationPriority.MEDIUM,
            status=NotificationStatus.COMPLETED,
            data=data,
        )

    def _propagation_failed(
        self,
        step: str,
        cause: Exception,
        request: UpdateRequest,
        warnings: List[str],
    ) -> None:
        error = PartialPropagationError(step, cause, {"requestId": request.id})
        log_error(error, {"request_id": request.id, "step": step})
        warnings.append(error.message)

    async def _email_resident(
        self,
        request: UpdateRequest,
        action: ReviewAction,
        resident: Dict[str, Any],
    ) -> None:
        if not settings.SEND_OUTCOME_EMAILS or not self.email or not resident.get("email"):
            return
        template = (
            EmailTemplate.RESIDENT_INFO_UPDATE_APPROVED
            if action == ReviewAction.APPROVED
            else EmailTemplate.RESIDENT_INFO_UPDATE_REJECTED
        )
        try:
            await self.email.send_template_email(
                to_email=resident["email"],
                template=template,
                data={
                    "resident_name": resident_display_name(resident),
                    "requested_at": format_local_datetime(request.requested_at),
                    "review_notes": request.review_notes or "None",
                    "profile_link": f"{settings.FRONTEND_URL}/profile",
                },
                to_name=resident_display_name(resident),
            )
        except Exception as e:
            log_error(e, {"request_id": request.id, "step": "outcome_email"})
