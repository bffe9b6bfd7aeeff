"""
View models for the resident profile page and the admin review queue.

Each view keeps its state current through two channels: a PollScheduler
that re-reads the records API, and EventBus subscriptions for changes made
by another view in the same process.
"""

from typing import Any, Callable, Dict, List, Optional, Set

from ..models.enums import NotificationStatus, NotificationType, ReviewAction, TargetRole, UpdateRequestStatus
from ..models.events import SyncEvent, SyncEventName
from ..models.notification import Notification, NotificationPage
from ..models.update_request import UpdateRequest, SubmissionResponse, ApprovalResult
from ..core.config import settings
from ..core.errors import ConflictError, TransientNetworkError
from ..core.logger import logger
from ..core.resident_fields import normalize_changes
from .bus import EventBus, sync_bus
from .cache import PendingRequestCache
from .client import RecordsAPIClient
from .scheduler import PollScheduler


class NotificationFeed:
    """
    Notification list plus unread badge.

    Both always come from the same page and are replaced together.
    """

    def __init__(self):
        self._page: Optional[NotificationPage] = None

    def apply(self, page: NotificationPage) -> None:
        self._page = page

    @property
    def loaded(self) -> bool:
        return self._page is not None

    @property
    def notifications(self) -> List[Notification]:
        return list(self._page.notifications) if self._page else []

    @property
    def unread_count(self) -> int:
        return self._page.unread_count if self._page else 0

    @property
    def has_more(self) -> bool:
        return self._page.has_more if self._page else False

    def of_type(self, notification_type: NotificationType) -> List[Notification]:
        return [n for n in self.notifications if n.type == notification_type.value]


class _SyncedView:
    """Shared poll and subscription lifecycle."""

    def __init__(
        self,
        api: RecordsAPIClient,
        bus: Optional[EventBus],
        name: str,
        visible_interval: Optional[float] = None,
        hidden_interval: Optional[float] = None,
    ):
        self.api = api
        self.bus = bus or sync_bus
        self.feed = NotificationFeed()
        self.scheduler = PollScheduler(
            self.refresh,
            visible_interval=visible_interval,
            hidden_interval=hidden_interval,
            name=name,
        )
        self._unsubscribers: List[Callable[[], None]] = []

    async def refresh(self) -> None:
        raise NotImplementedError

    def _subscriptions(self) -> Dict[SyncEventName, Callable]:
        return {}

    async def open(self) -> None:
        """Subscribe, load once and start polling."""
        for name, handler in self._subscriptions().items():
            self._unsubscribers.append(self.bus.subscribe(name, handler))
        await self.scheduler.poll_now()
        self.scheduler.start(poll_first=False)

    async def close(self) -> None:
        await self.scheduler.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class ResidentView(_SyncedView):
    """
    A resident's own profile page.

    Shows the profile, a pending banner while a request awaits review, and
    the resident's notifications.
    """

    def __init__(
        self,
        api: RecordsAPIClient,
        resident_id: str,
        bus: Optional[EventBus] = None,
        cache: Optional[PendingRequestCache] = None,
        visible_interval: Optional[float] = None,
        hidden_interval: Optional[float] = None,
    ):
        super().__init__(
            api, bus, f"resident:{resident_id}",
            visible_interval=visible_interval,
            hidden_interval=hidden_interval,
        )
        self.resident_id = resident_id
        self.cache = cache or PendingRequestCache()
        self.profile: Dict[str, Any] = {}
        self.pending_request: Optional[UpdateRequest] = None
        self.draft: Optional[Dict[str, Any]] = None
        self.warning: Optional[str] = None
        self._reconciled = False

    def _subscriptions(self) -> Dict[SyncEventName, Callable]:
        return {SyncEventName.RESIDENT_DATA_UPDATED: self._on_resident_data_updated}

    @property
    def has_pending(self) -> bool:
        if self.pending_request is not None:
            return True
        # Before the first poll the local hint stands in for the server
        return not self._reconciled and self.cache.has_pending(self.resident_id)

    @property
    def edit_allowed(self) -> bool:
        return not self.has_pending

    @property
    def pending_banner(self) -> Optional[str]:
        if not self.has_pending:
            return None
        return "Your information update request is pending review."

    async def load_profile(self) -> Dict[str, Any]:
        self.profile = await self.api.get_resident(self.resident_id)
        return self.profile

    async def refresh(self) -> None:
        page = await self.api.list_notifications(
            target_role=TargetRole.RESIDENT,
            target_user_id=self.resident_id,
        )
        pending = await self.api.get_pending_request()

        had_pending = self.pending_request is not None or (
            not self._reconciled and self.cache.has_pending(self.resident_id)
        )
        self.feed.apply(page)
        self._reconciled = True

        if pending is not None:
            self.pending_request = pending
            self.cache.add(pending)
        else:
            self.pending_request = None
            self.cache.clear_resident(self.resident_id)

        if not self.profile or (had_pending and pending is None):
            await self.load_profile()

    async def submit(
        self,
        changes: Dict[str, Any],
        uploaded_files: Optional[List[str]] = None,
    ) -> Optional[SubmissionResponse]:
        """
        Submit a change request.

        A network failure keeps the draft and sets a warning instead of
        raising, so the resident's input is not lost.

        Raises:
            ConflictError: If a request is already pending
            ValidationError: If the change names a field that cannot change
        """
        if self.pending_request is not None:
            raise ConflictError(
                "You already have a pending update request",
                {"requestId": self.pending_request.id}
            )

        self.draft = dict(changes)
        try:
            response = await self.api.submit_update_request(changes, uploaded_files)
        except TransientNetworkError as e:
            self.warning = "Could not reach the records office. Your changes were kept; try again."
            logger.warning(f"Submission for resident {self.resident_id} deferred: {e.message}")
            return None

        self.draft = None
        self.pending_request = response.request
        self.cache.add(response.request)
        self.warning = response.warning
        return response

    async def _on_resident_data_updated(self, event: SyncEvent) -> None:
        if event.resident_id != self.resident_id:
            return

        if event.action == ReviewAction.APPROVED and event.updated_data:
            self.profile = {**self.profile, **normalize_changes(event.updated_data)}

        self.pending_request = None
        self.cache.clear_resident(self.resident_id)

        await self.bus.publish(SyncEvent(
            name=SyncEventName.PERSONAL_INFO_UPDATED,
            resident_id=event.resident_id,
            updated_data=event.updated_data,
            action=event.action,
            request_id=event.request_id,
        ))
        self.scheduler.trigger()


class AdminView(_SyncedView):
    """The admin review queue."""

    def __init__(
        self,
        api: RecordsAPIClient,
        bus: Optional[EventBus] = None,
        visible_interval: Optional[float] = None,
        hidden_interval: Optional[float] = None,
    ):
        super().__init__(
            api, bus, "admin",
            visible_interval=visible_interval,
            hidden_interval=hidden_interval,
        )
        self.pending_requests: List[UpdateRequest] = []
        self.in_flight: Set[str] = set()
        self.warnings: List[str] = []

    def _subscriptions(self) -> Dict[SyncEventName, Callable]:
        return {SyncEventName.ADMIN_DATA_REFRESH: self._on_admin_data_refresh}

    @property
    def pending_notifications(self) -> List[Notification]:
        return [
            n for n in self.feed.of_type(NotificationType.INFO_UPDATE_REQUEST)
            if n.status == NotificationStatus.PENDING
        ]

    def can_review(self, request_id: str) -> bool:
        return request_id not in self.in_flight

    async def refresh(self) -> None:
        page = await self.api.list_notifications(
            target_role=TargetRole.ADMIN,
            limit=settings.NOTIFICATION_PAGE_SIZE,
        )
        requests = await self.api.list_update_requests(status=UpdateRequestStatus.PENDING)
        self.feed.apply(page)
        self.pending_requests = requests

    async def approve(
        self,
        request_id: str,
        force: bool = False,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        return await self._review(request_id, ReviewAction.APPROVED, force, review_notes)

    async def reject(
        self,
        request_id: str,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        return await self._review(request_id, ReviewAction.REJECTED, False, review_notes)

    async def _review(
        self,
        request_id: str,
        action: ReviewAction,
        force: bool,
        review_notes: Optional[str],
    ) -> ApprovalResult:
        if not self.can_review(request_id):
            raise ConflictError("This request is already being reviewed", {"requestId": request_id})

        self.in_flight.add(request_id)
        try:
            if action == ReviewAction.APPROVED:
                result = await self.api.approve(request_id, force=force, review_notes=review_notes)
            else:
                result = await self.api.reject(request_id, review_notes=review_notes)
        finally:
            self.in_flight.discard(request_id)

        self.warnings.extend(result.warnings)
        if not result.request.is_pending:
            self.pending_requests = [r for r in self.pending_requests if r.id != request_id]

        for event in result.events:
            await self.bus.publish(event)
        return result

    def _on_admin_data_refresh(self, event: SyncEvent) -> None:
        self.scheduler.trigger()
