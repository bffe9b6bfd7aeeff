"""
Information update request endpoints.
Residents submit changes to their own record; admins approve or reject them.
"""

from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status

from ...api.deps import (
    CurrentUser,
    ensure_owner_or_admin,
    get_approval_processor,
    get_current_admin,
    get_current_resident,
    get_current_user,
    get_update_request_service,
)
from ...models.enums import UpdateRequestStatus
from ...models.notification import Notification
from ...models.update_request import (
    UpdateRequest,
    UpdateRequestSubmit,
    SubmissionResponse,
    ReviewRequest,
    ApprovalResult,
)
from ...services.approvals import ApprovalProcessor
from ...services.update_requests import UpdateRequestService

router = APIRouter(prefix="/update-requests", tags=["update-requests"])


# ============================================================
# Resident Endpoints
# ============================================================

@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_update_request(
    submission: UpdateRequestSubmit,
    current_resident: CurrentUser = Depends(get_current_resident),
    service: UpdateRequestService = Depends(get_update_request_service),
):
    """
    Submit changes to the caller's own record for admin review.

    Rejected with 409 while another request is pending. If the admin
    notification could not be written the request is still stored and the
    response carries notificationDelivered=false and a warning.
    """
    return await service.submit(
        resident_id=current_resident.id,
        changes=submission.requested_changes,
        uploaded_files=submission.uploaded_files,
        requested_by=current_resident.id,
    )


@router.get("/me/pending", response_model=Optional[UpdateRequest])
async def get_my_pending_request(
    current_resident: CurrentUser = Depends(get_current_resident),
    service: UpdateRequestService = Depends(get_update_request_service),
):
    """The caller's pending request, or null."""
    return await service.get_pending(current_resident.id)


# ============================================================
# Shared Endpoints
# ============================================================

@router.get("", response_model=List[UpdateRequest])
async def list_update_requests(
    request_status: Optional[UpdateRequestStatus] = Query(None, alias="status"),
    resident_id: Optional[str] = Query(None, alias="residentId"),
    limit: int = Query(100, ge=1, le=500),
    current_user: CurrentUser = Depends(get_current_user),
    service: UpdateRequestService = Depends(get_update_request_service),
):
    """
    List update requests, newest first.
    Residents only see their own.
    """
    if not current_user.is_admin:
        ensure_owner_or_admin(current_user, resident_id or current_user.id)
        resident_id = current_user.id

    return await service.list(status=request_status, resident_id=resident_id, limit=limit)


@router.get("/{request_id}", response_model=UpdateRequest)
async def get_update_request(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: UpdateRequestService = Depends(get_update_request_service),
):
    request = await service.get(request_id)
    ensure_owner_or_admin(current_user, request.resident_id)
    return request


@router.post("/{request_id}/resend-notification", response_model=Notification)
async def resend_notification(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: UpdateRequestService = Depends(get_update_request_service),
):
    """
    Write the admin notification for a pending request that lacks one.
    Returns the existing notification when there already is one.
    """
    request = await service.get(request_id)
    ensure_owner_or_admin(current_user, request.resident_id)
    return await service.resend_notification(request_id)


# ============================================================
# Admin Endpoints
# ============================================================

@router.post("/{request_id}/approve", response_model=ApprovalResult)
async def approve_update_request(
    request_id: str,
    review: Optional[ReviewRequest] = Body(None),
    current_admin: CurrentUser = Depends(get_current_admin),
    processor: ApprovalProcessor = Depends(get_approval_processor),
):
    """
    Approve a pending request and apply it to the resident record.

    409 when the resident record changed since submission; re-review and
    send force=true to overwrite.
    """
    review = review or ReviewRequest()
    return await processor.approve(
        request_id,
        reviewer_id=current_admin.id,
        force=review.force,
        review_notes=review.review_notes,
    )


@router.post("/{request_id}/reject", response_model=ApprovalResult)
async def reject_update_request(
    request_id: str,
    review: Optional[ReviewRequest] = Body(None),
    current_admin: CurrentUser = Depends(get_current_admin),
    processor: ApprovalProcessor = Depends(get_approval_processor),
):
    """Reject a pending request. The resident record is not changed."""
    review = review or ReviewRequest()
    return await processor.reject(
        request_id,
        reviewer_id=current_admin.id,
        review_notes=review.review_notes,
    )
