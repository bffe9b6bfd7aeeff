"""
Async HTTP client for the records API used by the resident and admin views.
"""

from typing import Any, Dict, List, Optional

import httpx

from ..models.enums import TargetRole, UpdateRequestStatus
from ..models.notification import Notification, NotificationPage
from ..models.update_request import UpdateRequest, SubmissionResponse, ApprovalResult
from ..core.config import settings
from ..core.errors import TransientNetworkError, error_for_status
from ..core.logger import logger


class RecordsAPIClient:
    """
    Thin wrapper over httpx.AsyncClient.

    Timeouts and connection failures surface as TransientNetworkError; HTTP
    error statuses are mapped back onto the domain error taxonomy.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RecordsAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientNetworkError(
                f"Request timed out: {method} {path}",
                {"path": path}
            ) from e
        except httpx.TransportError as e:
            raise TransientNetworkError(
                f"Could not reach the records API: {e}",
                {"path": path}
            ) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            message = body.get("error") or body.get("detail") or response.reason_phrase
            logger.debug(f"{method} {path} -> {response.status_code}: {message}")
            raise error_for_status(
                response.status_code,
                str(message),
                body.get("details") or {}
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ============== Notifications ==============

    async def list_notifications(
        self,
        target_role: TargetRole,
        target_user_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        unread_only: bool = False,
        types: Optional[List[str]] = None,
    ) -> NotificationPage:
        params: Dict[str, Any] = {
            "targetRole": TargetRole(target_role).value,
            "limit": limit or settings.NOTIFICATION_PAGE_SIZE,
            "offset": offset,
            "unreadOnly": str(unread_only).lower(),
        }
        if target_user_id:
            params["targetUserId"] = target_user_id
        if types:
            params["type"] = ",".join(types)

        body = await self._request("GET", "/notifications", params=params)
        return NotificationPage.model_validate(body)

    async def create_notification(self, payload: Dict[str, Any]) -> Notification:
        body = await self._request("POST", "/notifications", json=payload)
        return Notification.model_validate(body)

    async def patch_notification(
        self,
        notification_id: str,
        status: Optional[str] = None,
        action: Optional[str] = None,
    ) -> Notification:
        payload: Dict[str, Any] = {"notificationId": notification_id}
        if status:
            payload["status"] = status
        if action:
            payload["action"] = action
        body = await self._request("PATCH", "/notifications", json=payload)
        return Notification.model_validate(body)

    async def mark_all_read(
        self,
        target_role: TargetRole,
        target_user_id: Optional[str] = None,
    ) -> int:
        payload: Dict[str, Any] = {
            "action": "markAllRead",
            "targetRole": TargetRole(target_role).value,
        }
        if target_user_id:
            payload["targetUserId"] = target_user_id
        body = await self._request("PATCH", "/notifications", json=payload)
        return body["count"]

    async def delete_notification(self, notification_id: str) -> None:
        await self._request("DELETE", "/notifications", params={"id": notification_id})

    # ============== Residents ==============

    async def get_resident(self, resident_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/residents/{resident_id}")

    async def update_resident(
        self,
        resident_id: str,
        data: Dict[str, Any],
        version: Optional[int] = None,
    ) -> Dict[str, Any]:
        headers = {"If-Match": str(version)} if version is not None else None
        return await self._request("PUT", f"/residents/{resident_id}", json=data, headers=headers)

    # ============== Update requests ==============

    async def submit_update_request(
        self,
        changes: Dict[str, Any],
        uploaded_files: Optional[List[str]] = None,
    ) -> SubmissionResponse:
        body = await self._request("POST", "/update-requests", json={
            "requestedChanges": changes,
            "uploadedFiles": uploaded_files or [],
        })
        return SubmissionResponse.model_validate(body)

    async def get_pending_request(self) -> Optional[UpdateRequest]:
        body = await self._request("GET", "/update-requests/me/pending")
        return UpdateRequest.model_validate(body) if body else None

    async def list_update_requests(
        self,
        status: Optional[UpdateRequestStatus] = None,
        resident_id: Optional[str] = None,
    ) -> List[UpdateRequest]:
        params: Dict[str, Any] = {}
        if status:
            params["status"] = UpdateRequestStatus(status).value
        if resident_id:
            params["residentId"] = resident_id
        body = await self._request("GET", "/update-requests", params=params)
        return [UpdateRequest.model_validate(item) for item in body]

    async def get_update_request(self, request_id: str) -> UpdateRequest:
        body = await self._request("GET", f"/update-requests/{request_id}")
        return UpdateRequest.model_validate(body)

    async def approve(
        self,
        request_id: str,
        force: bool = False,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        body = await self._request(
            "POST",
            f"/update-requests/{request_id}/approve",
            json={"force": force, "reviewNotes": review_notes},
        )
        return ApprovalResult.model_validate(body)

    async def reject(
        self,
        request_id: str,
        review_notes: Optional[str] = None,
    ) -> ApprovalResult:
        body = await self._request(
            "POST",
            f"/update-requests/{request_id}/reject",
            json={"reviewNotes": review_notes},
        )
        return ApprovalResult.model_validate(body)

    async def resend_notification(self, request_id: str) -> Notification:
        body = await self._request("POST", f"/update-requests/{request_id}/resend-notification")
        return Notification.model_validate(body)
