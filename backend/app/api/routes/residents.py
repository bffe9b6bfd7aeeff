"""
Resident record endpoints used by the update-request workflow.
"""

from typing import Optional, Dict, Any
from fastapi import APIRouter, Body, Depends, Header, Response

from ...api.deps import (
    CurrentUser,
    ensure_owner_or_admin,
    get_audit_service,
    get_current_admin,
    get_current_user,
)
from ...core.errors import NotFoundError, ValidationError
from ...core.logger import log_data_access
from ...core.resident_fields import normalize_changes, validate_requested_changes
from ...db.supabase import get_db, Database
from ...services.audit import AuditService

router = APIRouter(prefix="/residents", tags=["residents"])


def _parse_version(if_match: Optional[str]) -> Optional[int]:
    if if_match is None:
        return None
    value = if_match.strip().strip('"')
    if value.startswith("W/"):
        value = value[2:].strip('"')
    try:
        return int(value)
    except ValueError:
        raise ValidationError("If-Match must carry the resident version", {"ifMatch": if_match})


@router.get("/{resident_id}")
async def get_resident(
    resident_id: str,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """
    Get a resident record by id or uniqueId.

    Residents can only read their own record. The ETag carries the record
    version.
    """
    resident = await db.get_resident_by_id(resident_id)
    if not resident:
        raise NotFoundError(f"Resident not found: {resident_id}")
    ensure_owner_or_admin(current_user, resident["id"])

    if resident.get("version") is not None:
        response.headers["ETag"] = str(resident["version"])
    return resident


@router.put("/{resident_id}")
async def update_resident(
    resident_id: str,
    response: Response,
    data: Dict[str, Any] = Body(...),
    if_match: Optional[str] = Header(None, alias="If-Match"),
    current_admin: CurrentUser = Depends(get_current_admin),
    db: Database = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
) -> Dict[str, Any]:
    """
    Write a partial field map onto a resident record.

    With If-Match the write only applies when the stored version still
    matches; otherwise 409 is returned.
    """
    expected_version = _parse_version(if_match)
    changes = normalize_changes(validate_requested_changes(data))

    updated = await db.update_resident(resident_id, changes, expected_version=expected_version)

    log_data_access(
        user_id=current_admin.id,
        resource_type="resident",
        resource_id=updated["id"],
        action="update",
        fields=sorted(changes),
    )
    await audit.log_resident_updated(current_admin.id, updated["id"], changes)

    if updated.get("version") is not None:
        response.headers["ETag"] = str(updated["version"])
    return updated
