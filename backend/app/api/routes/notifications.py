"""Notification API routes."""
from typing import Optional, Dict, Any
from fastapi import APIRouter, Body, Depends, Query, HTTPException, status

from ...api.deps import CurrentUser, get_current_user, get_notification_service
from ...core.logger import logger
from ...models.common import SuccessResponse
from ...models.enums import TargetRole
from ...models.notification import (
    Notification,
    NotificationFilter,
    NotificationPage,
    NotificationPatchRequest,
    NotificationScope,
    BulkUpdateResponse,
)
from ...services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _forbidden(detail: str = "You can only access your own notifications") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _ensure_visible(user: CurrentUser, notification: Notification) -> None:
    if user.is_admin:
        return
    if notification.target_role != TargetRole.RESIDENT or notification.target_user_id != user.id:
        raise _forbidden()


@router.get("", response_model=NotificationPage)
async def list_notifications(
    target_role: Optional[TargetRole] = Query(None, alias="targetRole"),
    target_user_id: Optional[str] = Query(None, alias="targetUserId"),
    resident_id: Optional[str] = Query(None, alias="residentId"),
    type: Optional[str] = Query(None, description="Comma-separated notification types"),
    limit: int = Query(10, ge=1, le=100, description="Number of results"),
    offset: int = Query(0, ge=0, description="Offset for pagination"),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    List notifications for a role.

    Admins see everything addressed to the admin role (or a given resident's
    notifications); residents only ever see their own.
    """
    if not current_user.is_admin:
        requested = target_user_id or resident_id
        if target_role == TargetRole.ADMIN or (requested and requested != current_user.id):
            raise _forbidden()
        target_role = TargetRole.RESIDENT
        target_user_id = current_user.id
        resident_id = None
    elif target_role in (None, TargetRole.ADMIN):
        # Admin notifications are addressed to the role, not a user
        target_role = TargetRole.ADMIN
        target_user_id = None
        resident_id = None

    try:
        query = NotificationFilter(
            target_role=target_role,
            target_user_id=target_user_id,
            resident_id=resident_id,
            types=[t.strip() for t in type.split(",") if t.strip()] if type else None,
            limit=limit,
            offset=offset,
            unread_only=unread_only,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return await service.list(query)


@router.post("", response_model=Notification, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Create a notification.

    Residents may only address the admin role and are always the sender.
    """
    if not current_user.is_admin:
        if payload.get("targetRole", payload.get("target_role")) != TargetRole.ADMIN.value:
            raise _forbidden("Residents can only notify the barangay office")
        payload = {**payload, "senderUserId": current_user.id}
        payload.pop("sender_user_id", None)

    return await service.create(payload)


@router.patch("")
async def patch_notifications(
    payload: NotificationPatchRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Flip a notification's status, change its read marker, or mark a whole
    scope read.
    """
    if payload.action == "markAllRead":
        if current_user.is_admin:
            scope = NotificationScope(
                target_role=payload.target_role or TargetRole.ADMIN,
                target_user_id=payload.target_user_id,
            )
        else:
            scope = NotificationScope(
                target_role=TargetRole.RESIDENT,
                target_user_id=current_user.id,
            )
        count = await service.mark_all_read(scope)
        return BulkUpdateResponse(message=f"Marked {count} notifications as read", count=count)

    notification = await service.get(payload.notification_id)
    _ensure_visible(current_user, notification)

    if payload.status is not None:
        if not current_user.is_admin:
            raise _forbidden("Only administrators can change a notification's status")
        notification = await service.patch_status(payload.notification_id, payload.status)
        logger.info(
            f"Notification {payload.notification_id} status set to "
            f"{payload.status.value} by {current_user.id}"
        )

    if payload.action == "markRead":
        notification = await service.mark_read(payload.notification_id)
    elif payload.action == "markUnread":
        notification = await service.mark_unread(payload.notification_id)

    return notification


@router.delete("", response_model=SuccessResponse)
async def delete_notification(
    id: str = Query(..., description="Notification ID"),
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Delete a notification."""
    notification = await service.get(id)
    _ensure_visible(current_user, notification)

    await service.remove(id)
    return SuccessResponse(message="Notification deleted")
