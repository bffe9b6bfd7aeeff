"""
API dependencies for authentication and service wiring.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..core.email import email_service
from ..core.security import verify_access_token
from ..db.supabase import get_db, Database
from ..models.enums import TargetRole
from ..services.approvals import ApprovalProcessor
from ..services.audit import AuditService
from ..services.notifications import NotificationService
from ..services.update_requests import UpdateRequestService
from ..sync.bus import sync_bus


# HTTP Bearer token security scheme
security = HTTPBearer()


class CurrentUser:
    """Authenticated principal: an admin user or a resident."""

    def __init__(self, id: str, role: TargetRole, record: dict):
        self.id = id
        self.role = role
        self.record = record

    @property
    def is_admin(self) -> bool:
        return self.role == TargetRole.ADMIN


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Database = Depends(get_db)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    payload = verify_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in (TargetRole.ADMIN.value, TargetRole.RESIDENT.value):
        raise _unauthorized("Invalid token payload")

    if role == TargetRole.ADMIN.value:
        admin = await db.get_admin_by_id(user_id)
        if not admin:
            raise _unauthorized("Admin user not found")
        if not admin.get("is_active", True):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin account is deactivated",
            )
        return CurrentUser(admin["id"], TargetRole.ADMIN, admin)

    resident = await db.get_resident_by_id(user_id)
    if not resident:
        raise _unauthorized("Resident not found")
    return CurrentUser(resident["id"], TargetRole.RESIDENT, resident)


async def get_current_admin(
    user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires an administrator",
        )
    return user


async def get_current_resident(
    user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    if user.role != TargetRole.RESIDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action is only available to residents",
        )
    return user


def ensure_owner_or_admin(user: CurrentUser, resident_id: Optional[str]) -> None:
    """Residents may only touch their own records."""
    if user.is_admin:
        return
    if resident_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own records",
        )


# ============== Services ==============

def get_notification_service(db: Database = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_audit_service(db: Database = Depends(get_db)) -> AuditService:
    return AuditService(db)


def get_update_request_service(
    db: Database = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditService = Depends(get_audit_service),
) -> UpdateRequestService:
    return UpdateRequestService(db, notifications, audit=audit, email=email_service)


def get_approval_processor(
    db: Database = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
    audit: AuditService = Depends(get_audit_service),
) -> ApprovalProcessor:
    return ApprovalProcessor(
        db,
        notifications,
        event_bus=sync_bus,
        audit=audit,
        email=email_service,
    )
