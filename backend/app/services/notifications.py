"""Notification service for creating and managing notifications."""
from typing import Optional, List, Dict, Any, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.supabase import Database
from ..models.enums import (
    NotificationStatus,
    NotificationType,
    TERMINAL_NOTIFICATION_STATUSES,
)
from ..models.notification import (
    Notification,
    NotificationCreate,
    NotificationFilter,
    NotificationPage,
    NotificationScope,
    Pagination,
)
from ..core.errors import AppError, ConflictError, NotFoundError, ValidationError
from ..core.logger import logger


def _validation_details(error: PydanticValidationError) -> Dict[str, Any]:
    return {
        "errors": [
            {
                "field": ".".join(str(part) for part in item["loc"]),
                "message": item["msg"],
            }
            for item in error.errors()
        ]
    }


class NotificationService:
    """Service for managing notifications for both roles."""

    def __init__(self, db: Database):
        self.db = db

    async def create(
        self,
        notification: Union[NotificationCreate, Dict[str, Any]]
    ) -> Notification:
        """
        Create a new notification.

        Args:
            notification: Notification data, as a model or a raw mapping

        Returns:
            Created notification

        Raises:
            ValidationError: If type or targetRole is missing or malformed
        """
        if not isinstance(notification, NotificationCreate):
            try:
                notification = NotificationCreate.model_validate(notification)
            except PydanticValidationError as e:
                raise ValidationError("Invalid notification", _validation_details(e))

        created = await self.db.create_notification(notification.model_dump(mode="json"))
        if not created:
            raise AppError("Notification could not be stored")

        logger.info(
            f"Notification created: {created.get('id')} "
            f"type={notification.type} targetRole={notification.target_role.value}"
        )
        return Notification.model_validate(created)

    async def list(self, filter: NotificationFilter) -> NotificationPage:
        """
        List notifications in a role scope.

        The page and its unread count are derived from a single read so they
        always agree with each other.
        """
        rows = await self.db.list_notifications(
            target_role=filter.target_role.value,
            recipient_id=filter.recipient_id,
            types=filter.types,
        )
        notifications = [Notification.model_validate(row) for row in rows]
        unread_count = sum(1 for n in notifications if not n.read)

        if filter.unread_only:
            notifications = [n for n in notifications if not n.read]

        total = len(notifications)
        page = notifications[filter.offset:filter.offset + filter.limit]

        return NotificationPage(
            notifications=page,
            unread_count=unread_count,
            pagination=Pagination(
                total=total,
                limit=filter.limit,
                offset=filter.offset,
                has_more=filter.offset + len(page) < total,
            ),
        )

    async def get(self, notification_id: str) -> Notification:
        """Get a single notification by ID."""
        row = await self.db.get_notification(notification_id)
        if not row:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return Notification.model_validate(row)

    async def mark_read(self, notification_id: str) -> Notification:
        return await self._set_read(notification_id, True)

    async def mark_unread(self, notification_id: str) -> Notification:
        return await self._set_read(notification_id, False)

    async def _set_read(self, notification_id: str, read: bool) -> Notification:
        current = await self.get(notification_id)
        if current.read == read:
            return current

        updated = await self.db.update_notification(notification_id, {"read": read})
        if not updated:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return Notification.model_validate(updated)

    async def mark_all_read(self, scope: NotificationScope) -> int:
        """
        Mark every unread notification in a scope as read.

        Returns:
            Number of notifications marked as read
        """
        count = await self.db.mark_notifications_read(
            target_role=scope.target_role.value,
            target_user_id=scope.target_user_id,
        )
        logger.info(f"Marked {count} notifications read for {scope.target_role.value}")
        return count

    async def patch_status(
        self,
        notification_id: str,
        status: Union[NotificationStatus, str]
    ) -> Notification:
        """
        Set a notification's resolution status.

        Reapplying the current status is a no-op. A resolved notification
        cannot be moved to a different resolution.

        Raises:
            NotFoundError: If the notification does not exist
            ConflictError: If it already carries a different terminal status
        """
        try:
            status = NotificationStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown notification status: {status}")

        current = await self.get(notification_id)
        if current.status == status:
            return current

        if current.status in TERMINAL_NOTIFICATION_STATUSES:
            raise ConflictError(
                f"Notification already {current.status.value}",
                {"notificationId": notification_id, "status": current.status.value}
            )

        changes: Dict[str, Any] = {"status": status.value}
        if current.data is not None and "status" in current.data:
            changes["data"] = {**current.data, "status": status.value}

        updated = await self.db.update_notification(notification_id, changes)
        if not updated:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return Notification.model_validate(updated)

    async def remove(self, notification_id: str) -> None:
        """Delete a notification."""
        if not await self.db.delete_notification(notification_id):
            raise NotFoundError(f"Notification not found: {notification_id}")

    async def find_pending_request(self, resident_id: str) -> Optional[Notification]:
        """
        The pending info_update_request notification sent by a resident, if any.

        Read from the store on every call; local caches are never consulted.
        """
        rows = await self.db.find_pending_request_notifications(resident_id)
        if not rows:
            return None
        return Notification.model_validate(rows[0])

    async def for_request(
        self,
        request_id: str,
        notification_type: NotificationType = NotificationType.INFO_UPDATE_REQUEST
    ) -> List[Notification]:
        """Notifications of one type that embed or reference the request."""
        rows = await self.db.get_request_notifications(request_id, notification_type.value)
        return [Notification.model_validate(row) for row in rows]

