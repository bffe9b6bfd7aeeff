# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import os

# Settings are read at import time; give them test values first
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-records-api-0123456789")
os.environ.setdefault("NOTIFICATION_RETRY_ATTEMPTS", "0")
os.environ.setdefault("SENDGRID_API_KEY", "")
os.environ.setdefault("SMTP_USERNAME", "")

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.errors import ConflictError, NotFoundError
from app.core.security import create_access_token
from app.db.supabase import get_db
from app.services.approvals import ApprovalProcessor, InFlightGuard
from app.services.audit import AuditService
from app.services.notifications import NotificationService
from app.services.update_requests import UpdateRequestService
from app.sync.bus import EventBus
from app.sync.client import RecordsAPIClient


RESIDENT_ID = "res-1"
OTHER_RESIDENT_ID = "res-2"
ADMIN_ID = "admin-1"


class FakeDatabase:
    """
    In-memory stand-in for app.db.supabase.Database.

    Mirrors the conditional resident update, the one-pending-request index
    and the resolve_update_request function.
    """

    def __init__(self):
        self.residents: Dict[str, Dict[str, Any]] = {}
        self.admins: Dict[str, Dict[str, Any]] = {}
        self.notifications: Dict[str, Dict[str, Any]] = {}
        self.update_requests: Dict[str, Dict[str, Any]] = {}
        self.audit_logs: List[Dict[str, Any]] = []
        self.failures: Dict[str, Exception] = {}
        self._ids = itertools.count(1)
        self._ticks = itertools.count()

    # ---- test helpers ----

    def fail(self, method: str, error: Optional[Exception] = None):
        self.failures[method] = error or RuntimeError(f"{method} unavailable")

    def recover(self, method: str):
        self.failures.pop(method, None)

    def _check(self, method: str):
        if method in self.failures:
            raise self.failures[method]

    def _now(self) -> str:
        base = datetime(2024, 6, 1, tzinfo=timezone.utc)
        return (base + timedelta(seconds=next(self._ticks))).isoformat()

    def add_resident(self, **fields) -> Dict[str, Any]:
        resident = {"version": 1, "status": "active", "createdAt": self._now(), **fields}
        self.residents[resident["id"]] = resident
        return copy.deepcopy(resident)

    def add_admin(self, **fields) -> Dict[str, Any]:
        admin = {"is_active": True, **fields}
        self.admins[admin["id"]] = admin
        return copy.deepcopy(admin)

    # ---- residents ----

    async def get_resident_by_id(self, resident_id: str) -> Optional[Dict[str, Any]]:
        self._check("get_resident_by_id")
        resident = self.residents.get(resident_id)
        if resident is None:
            resident = next(
                (r for r in self.residents.values() if r.get("uniqueId") == resident_id),
                None
            )
        return copy.deepcopy(resident)

    async def update_resident(
        self,
        resident_id: str,
        data: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> Dict[str, Any]:
        self._check("update_resident")
        current = await self.get_resident_by_id(resident_id)
        if not current:
            raise NotFoundError(f"Resident not found: {resident_id}")
        stored = self.residents[current["id"]]
        if expected_version is not None and stored["version"] != expected_version:
            raise ConflictError("Resident record changed since it was read")
        stored.update(data)
        stored["updatedAt"] = self._now()
        stored["version"] += 1
        return copy.deepcopy(stored)

    # ---- admins ----

    async def get_admin_by_id(self, admin_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.admins.get(admin_id))

    async def get_active_admin_emails(self) -> List[Dict[str, str]]:
        return [
            {"email": a["email"], "name": a.get("full_name") or a["email"]}
            for a in self.admins.values() if a.get("is_active")
        ]

    # ---- notifications ----

    async def create_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("create_notification")
        now = self._now()
        row = {
            "read": False,
            **copy.deepcopy(data),
            "id": f"notif-{next(self._ids)}",
            "created_at": now,
            "updated_at": now,
        }
        self.notifications[row["id"]] = row
        return copy.deepcopy(row)

    async def get_notification(self, notification_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.notifications.get(notification_id))

    async def list_notifications(
        self,
        target_role: str,
        recipient_id: Optional[str] = None,
        types: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        self._check("list_notifications")
        rows = [
            n for n in self.notifications.values()
            if n["target_role"] == target_role
            and (not recipient_id or n.get("target_user_id") == recipient_id)
            and (not types or n["type"] in types)
        ]
        rows.sort(key=lambda n: n["created_at"], reverse=True)
        return copy.deepcopy(rows)

    async def get_request_notifications(
        self,
        request_id: str,
        notification_type: str
    ) -> List[Dict[str, Any]]:
        return copy.deepcopy([
            n for n in self.notifications.values()
            if n.get("request_id") == request_id and n["type"] == notification_type
        ])

    async def find_pending_request_notifications(self, resident_id: str) -> List[Dict[str, Any]]:
        return copy.deepcopy([
            n for n in self.notifications.values()
            if n["type"] == "info_update_request"
            and n["status"] == "pending"
            and n.get("sender_user_id") == resident_id
        ])

    async def update_notification(
        self,
        notification_id: str,
        data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        self._check("update_notification")
        row = self.notifications.get(notification_id)
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        row["updated_at"] = self._now()
        return copy.deepcopy(row)

    async def mark_notifications_read(
        self,
        target_role: str,
        target_user_id: Optional[str] = None
    ) -> int:
        count = 0
        for row in self.notifications.values():
            if row["target_role"] != target_role or row["read"]:
                continue
            if target_user_id and row.get("target_user_id") != target_user_id:
                continue
            row["read"] = True
            count += 1
        return count

    async def delete_notification(self, notification_id: str) -> bool:
        return self.notifications.pop(notification_id, None) is not None

    # ---- update requests ----

    async def create_update_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("create_update_request")
        if any(
            r["resident_id"] == data["resident_id"] and r["status"] == "pending"
            for r in self.update_requests.values()
        ):
            raise ConflictError("Resident already has a pending update request")
        self.update_requests[data["id"]] = copy.deepcopy(data)
        return copy.deepcopy(data)

    async def get_update_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.update_requests.get(request_id))

    async def get_pending_update_request(self, resident_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(next(
            (
                r for r in self.update_requests.values()
                if r["resident_id"] == resident_id and r["status"] == "pending"
            ),
            None
        ))

    async def list_update_requests(
        self,
        status: Optional[str] = None,
        resident_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        rows = [
            r for r in self.update_requests.values()
            if (not status or r["status"] == status)
            and (not resident_id or r["resident_id"] == resident_id)
        ]
        rows.sort(key=lambda r: r["requested_at"], reverse=True)
        return copy.deepcopy(rows[:limit])

    async def resolve_update_request(
        self,
        request_id: str,
        status: str,
        reviewed_by: Optional[str] = None,
        review_notes: Optional[str] = None
    ) -> Dict[str, Any]:
        self._check("resolve_update_request")
        request = self.update_requests.get(request_id)
        if request is None:
            raise NotFoundError(f"Update request not found: {request_id}")
        if request["status"] == "pending":
            request.update({
                "status": status,
                "reviewed_by": reviewed_by,
                "reviewed_at": self._now(),
                "review_notes": review_notes,
            })
        elif request["status"] != status:
            raise ConflictError(f"Update request already {request['status']}")

        for row in self.notifications.values():
            if (
                row.get("request_id") == request_id
                and row["type"] == "info_update_request"
                and row["status"] != status
            ):
                row["status"] = status
                row["data"] = {**(row.get("data") or {}), "status": status}
        return copy.deepcopy(request)

    # ---- audit ----

    async def create_audit_log(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("create_audit_log")
        self.audit_logs.append(copy.deepcopy(data))
        return data


# ============== Database and services ==============

@pytest.fixture
def fake_db() -> FakeDatabase:
    db = FakeDatabase()
    db.add_resident(
        id=RESIDENT_ID,
        uniqueId="BRGY-2024-0001",
        firstName="Juan",
        lastName="Dela Cruz",
        contactNumber="09170000000",
        email="juan@example.com",
        address="1 Rizal St, San Isidro",
        birthdate="1990-04-12",
    )
    db.add_resident(
        id=OTHER_RESIDENT_ID,
        uniqueId="BRGY-2024-0002",
        firstName="Maria",
        lastName="Santos",
    )
    db.add_admin(id=ADMIN_ID, email="records@barangay.gov.ph", full_name="Records Officer")
    return db


@pytest.fixture
def notification_service(fake_db) -> NotificationService:
    return NotificationService(fake_db)


@pytest.fixture
def update_service(fake_db, notification_service) -> UpdateRequestService:
    return UpdateRequestService(
        fake_db,
        notification_service,
        audit=AuditService(fake_db),
        retry_attempts=0,
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def processor(fake_db, notification_service, event_bus) -> ApprovalProcessor:
    return ApprovalProcessor(
        fake_db,
        notification_service,
        event_bus=event_bus,
        audit=AuditService(fake_db),
        guard=InFlightGuard(),
    )


# ============== HTTP ==============

@pytest.fixture
def api_app(fake_db):
    """The FastAPI application wired to the in-memory database."""
    from app.main import app

    app.dependency_overrides[get_db] = lambda: fake_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(api_app) as test_client:
        yield test_client


@pytest.fixture
def resident_token() -> str:
    return create_access_token(RESIDENT_ID, "resident")


@pytest.fixture
def other_resident_token() -> str:
    return create_access_token(OTHER_RESIDENT_ID, "resident")


@pytest.fixture
def admin_token() -> str:
    return create_access_token(ADMIN_ID, "admin")


@pytest.fixture
def resident_headers(resident_token) -> Dict[str, str]:
    return {"Authorization": f"Bearer {resident_token}"}


@pytest.fixture
def admin_headers(admin_token) -> Dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def make_api(api_app):
    """Build a RecordsAPIClient that talks to the app in-process."""
    def _make(token: str) -> RecordsAPIClient:
        return RecordsAPIClient(
            "http://testserver/api/v1",
            token=token,
            transport=httpx.ASGITransport(app=api_app),
        )
    return _make
