# tests/test_views.py

"""
End-to-end tests: resident and admin views talking to the API in-process.
"""

from datetime import datetime, timezone

import httpx
import pytest

from app.core.errors import ConflictError
from app.models import (
    NotificationStatus,
    NotificationType,
    SyncEventName,
    UpdateRequest,
)
from app.sync.cache import PendingRequestCache
from app.sync.client import RecordsAPIClient
from app.sync.views import AdminView, ResidentView

from conftest import RESIDENT_ID


def _resident_view(api, event_bus, cache=None):
    return ResidentView(
        api,
        RESIDENT_ID,
        bus=event_bus,
        cache=cache or PendingRequestCache(ttl_seconds=60),
        visible_interval=30,
        hidden_interval=30,
    )


def _admin_view(api, event_bus):
    return AdminView(api, bus=event_bus, visible_interval=30, hidden_interval=30)


async def _close(*views):
    for view in views:
        await view.close()
        await view.api.close()


@pytest.mark.asyncio
async def test_approval_flows_to_resident_view(make_api, resident_token, admin_token, event_bus, fake_db):
    resident = _resident_view(make_api(resident_token), event_bus)
    admin = _admin_view(make_api(admin_token), event_bus)
    personal_updates = []
    event_bus.subscribe(SyncEventName.PERSONAL_INFO_UPDATED, personal_updates.append)

    try:
        await resident.open()
        assert resident.profile["firstName"] == "Juan"
        assert resident.edit_allowed is True

        response = await resident.submit({"firstName": "Juana"})
        request_id = response.request.id
        assert response.notification_delivered is True
        assert resident.has_pending is True
        assert resident.edit_allowed is False
        assert resident.pending_banner

        await admin.open()
        assert [r.id for r in admin.pending_requests] == [request_id]
        assert len(admin.pending_notifications) == 1

        result = await admin.approve(request_id)

        assert result.request.status.value == "approved"
        assert admin.pending_requests == []
        assert resident.profile["firstName"] == "Juana"
        assert resident.has_pending is False
        assert resident.pending_banner is None
        assert len(personal_updates) == 1
        assert personal_updates[0].updated_data == {"firstName": "Juana"}

        await resident.scheduler.poll_now()
        approved = resident.feed.of_type(NotificationType.INFO_UPDATE_APPROVED)
        assert len(approved) == 1
        assert resident.feed.unread_count == 1

        await admin.scheduler.poll_now()
        assert admin.pending_notifications == []
    finally:
        await _close(resident, admin)

    assert fake_db.residents[RESIDENT_ID]["firstName"] == "Juana"
    original = next(
        n for n in fake_db.notifications.values() if n["type"] == "info_update_request"
    )
    assert original["status"] == NotificationStatus.APPROVED.value


@pytest.mark.asyncio
async def test_rejection_clears_banner_and_keeps_profile(make_api, resident_token, admin_token, event_bus, fake_db):
    resident = _resident_view(make_api(resident_token), event_bus)
    admin = _admin_view(make_api(admin_token), event_bus)

    try:
        await resident.open()
        response = await resident.submit({"lastName": "Reyes"})
        await admin.open()

        result = await admin.reject(response.request.id, review_notes="Please attach a marriage certificate")

        assert result.request.status.value == "rejected"
        assert resident.pending_banner is None
        assert resident.profile["lastName"] == "Dela Cruz"

        await resident.scheduler.poll_now()
        rejected = resident.feed.of_type(NotificationType.INFO_UPDATE_REJECTED)
        assert len(rejected) == 1
        assert "marriage certificate" in rejected[0].message
    finally:
        await _close(resident, admin)

    assert fake_db.residents[RESIDENT_ID]["lastName"] == "Dela Cruz"
    assert fake_db.residents[RESIDENT_ID]["version"] == 1


@pytest.mark.asyncio
async def test_second_tab_converges_by_polling(make_api, resident_token, event_bus, fake_db):
    """Two tabs with separate caches: the second learns of the request on its next poll."""
    first_tab = _resident_view(make_api(resident_token), event_bus)
    second_tab = _resident_view(make_api(resident_token), event_bus)

    try:
        await first_tab.open()
        await second_tab.open()

        await first_tab.submit({"firstName": "Juana"})
        assert second_tab.has_pending is False

        await second_tab.scheduler.poll_now()

        assert second_tab.has_pending is True
        with pytest.raises(ConflictError):
            await second_tab.submit({"lastName": "Reyes"})
    finally:
        await _close(first_tab, second_tab)

    assert len(fake_db.update_requests) == 1


@pytest.mark.asyncio
async def test_duplicate_submit_is_blocked_by_server(make_api, resident_token, event_bus, fake_db):
    """A tab that has not polled yet still cannot create a second request."""
    first_tab = _resident_view(make_api(resident_token), event_bus)
    stale_tab = _resident_view(make_api(resident_token), event_bus)

    try:
        await stale_tab.open()
        await first_tab.open()
        await first_tab.submit({"firstName": "Juana"})

        with pytest.raises(ConflictError):
            await stale_tab.submit({"lastName": "Reyes"})
    finally:
        await _close(first_tab, stale_tab)

    pending = [r for r in fake_db.update_requests.values() if r["status"] == "pending"]
    admin_notices = [
        n for n in fake_db.notifications.values() if n["type"] == "info_update_request"
    ]
    assert len(pending) == 1
    assert len(admin_notices) == 1


@pytest.mark.asyncio
async def test_cached_hint_is_reconciled_on_first_poll(make_api, resident_token, event_bus):
    cache = PendingRequestCache(ttl_seconds=60)
    cache.add(UpdateRequest(
        id="stale-req",
        resident_id=RESIDENT_ID,
        requested_changes={"firstName": "Juana"},
        requested_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        requested_by=RESIDENT_ID,
    ))
    resident = _resident_view(make_api(resident_token), event_bus, cache=cache)

    assert resident.has_pending is True

    try:
        await resident.open()

        assert resident.has_pending is False
        assert cache.has_pending(RESIDENT_ID) is False
    finally:
        await _close(resident)


@pytest.mark.asyncio
async def test_network_failure_keeps_draft(event_bus):
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    api = RecordsAPIClient("http://records.test/api/v1", token="t", transport=httpx.MockTransport(handler))
    resident = _resident_view(api, event_bus)

    try:
        response = await resident.submit({"firstName": "Juana"})

        assert response is None
        assert resident.draft == {"firstName": "Juana"}
        assert resident.warning
        assert resident.has_pending is False
    finally:
        await api.close()


@pytest.mark.asyncio
async def test_admin_view_refuses_double_review(make_api, admin_token, event_bus):
    admin = _admin_view(make_api(admin_token), event_bus)
    admin.in_flight.add("req-1")

    try:
        assert admin.can_review("req-1") is False
        with pytest.raises(ConflictError):
            await admin.approve("req-1")
    finally:
        await admin.api.close()


@pytest.mark.asyncio
async def test_admin_data_refresh_triggers_poll(make_api, admin_token, event_bus):
    admin = _admin_view(make_api(admin_token), event_bus)

    try:
        await admin.open()
        polls = admin.scheduler.poll_count

        await event_bus.publish({
            "name": "adminDataRefresh",
            "residentId": RESIDENT_ID,
            "action": "approved",
        })
        await admin.scheduler.poll_now()

        assert admin.scheduler.poll_count > polls
    finally:
        await _close(admin)


@pytest.mark.asyncio
async def test_unresolved_request_stays_in_admin_queue(make_api, resident_token, admin_token, event_bus, fake_db):
    resident = _resident_view(make_api(resident_token), event_bus)
    admin = _admin_view(make_api(admin_token), event_bus)

    try:
        await resident.open()
        response = await resident.submit({"firstName": "Juana"})
        await admin.open()
        fake_db.fail("resolve_update_request")

        result = await admin.approve(response.request.id)

        assert result.request.status.value == "pending"
        assert [r.id for r in admin.pending_requests] == [response.request.id]
        assert admin.warnings

        fake_db.recover("resolve_update_request")
        await admin.approve(response.request.id)

        assert admin.pending_requests == []
        assert resident.has_pending is False
    finally:
        await _close(resident, admin)
