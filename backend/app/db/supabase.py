"""
Supabase database client and utilities.
"""

from typing import Optional, Dict, Any, List
from postgrest import SyncPostgrestClient
from postgrest.exceptions import APIError

from ..core.config import settings
from ..core.errors import ConflictError, NotFoundError, is_unique_violation
from ..core.timezone import utc_now_iso


class SupabaseClient:
    """
    Minimal Supabase client exposing PostgREST tables and RPC.
    """
    def __init__(self, postgrest_client: SyncPostgrestClient):
        self.postgrest = postgrest_client

    def table(self, table_name: str):
        """Access a table via PostgREST."""
        return self.postgrest.table(table_name)

    def rpc(self, function_name: str, params: Dict[str, Any] = None):
        """Call a PostgreSQL function via PostgREST RPC."""
        return self.postgrest.rpc(function_name, params or {})


class Database:
    """
    Database client wrapper for Supabase.
    Provides methods for the records, notification and update-request tables.
    """

    _instance: Optional["Database"] = None
    _client: Optional[SupabaseClient] = None

    def __new__(cls):
        """Singleton pattern to ensure only one database instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize Supabase client."""
        if self._client is None:
            postgrest_client = SyncPostgrestClient(
                base_url=f"{settings.SUPABASE_URL}/rest/v1",
                headers={
                    "apikey": settings.SUPABASE_KEY,
                    "Authorization": f"Bearer {settings.SUPABASE_SERVICE_KEY}"
                },
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
            self._client = SupabaseClient(postgrest_client)

    @property
    def client(self) -> SupabaseClient:
        """Get the Supabase client instance."""
        return self._client

    # ============== Resident Operations ==============

    async def get_resident_by_id(self, resident_id: str) -> Optional[Dict[str, Any]]:
        """Get a resident by record id, falling back to the printed uniqueId."""
        result = self._client.table("residents").select("*").eq("id", resident_id).execute()
        if result.data:
            return result.data[0]

        result = self._client.table("residents").select("*")\
            .eq("uniqueId", resident_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    async def update_resident(
        self,
        resident_id: str,
        data: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Write a partial field map onto a resident record.

        When expected_version is given the write only applies if the stored
        version still matches; the version column is bumped by a trigger.

        Raises:
            NotFoundError: If the resident does not exist
            ConflictError: If the stored version moved on
        """
        current = await self.get_resident_by_id(resident_id)
        if not current:
            raise NotFoundError(f"Resident not found: {resident_id}")

        payload = {**data, "updatedAt": utc_now_iso()}
        query = self._client.table("residents").update(payload).eq("id", current["id"])
        if expected_version is not None:
            query = query.eq("version", expected_version)

        result = query.execute()
        if not result.data:
            raise ConflictError(
                "Resident record changed since it was read",
                {"residentId": current["id"], "expectedVersion": expected_version}
            )
        return result.data[0]

    # ============== Admin Operations ==============

    async def get_admin_by_id(self, admin_id: str) -> Optional[Dict[str, Any]]:
        """Get an admin user by ID."""
        result = self._client.table("admin_users").select("*").eq("id", admin_id).execute()
        return result.data[0] if result.data else None

    async def get_active_admin_emails(self) -> List[Dict[str, str]]:
        """
        Get email addresses of all active admin users.

        Returns:
            List of dicts with 'email' and 'name' keys
        """
        result = self._client.table("admin_users")\
            .select("email, full_name")\
            .eq("is_active", True)\
            .execute()

        if not result.data:
            return []

        return [
            {
                "email": admin["email"],
                "name": admin.get("full_name") or admin["email"]
            }
            for admin in result.data
        ]

    # ============== Notification Operations ==============

    async def create_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a notification row."""
        result = self._client.table("notifications").insert(data).execute()
        return result.data[0] if result.data else None

    async def get_notification(self, notification_id: str) -> Optional[Dict[str, Any]]:
        """Get a notification by ID."""
        result = self._client.table("notifications").select("*").eq("id", notification_id).execute()
        return result.data[0] if result.data else None

    async def list_notifications(
        self,
        target_role: str,
        recipient_id: Optional[str] = None,
        types: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Every notification in a role scope, newest first.

        Returned as one read so callers can page and count unread entries
        from the same snapshot.
        """
        query = self._client.table("notifications").select("*").eq("target_role", target_role)
        if recipient_id:
            query = query.eq("target_user_id", recipient_id)
        if types:
            query = query.in_("type", types)

        result = query.order("created_at", desc=True).execute()
        return result.data or []

    async def get_request_notifications(
        self,
        request_id: str,
        notification_type: str
    ) -> List[Dict[str, Any]]:
        """Notifications of one type that carry the given request id."""
        result = self._client.table("notifications").select("*")\
            .eq("request_id", request_id)\
            .eq("type", notification_type)\
            .execute()
        return result.data or []

    async def find_pending_request_notifications(self, resident_id: str) -> List[Dict[str, Any]]:
        """Pending info_update_request notifications sent by a resident."""
        result = self._client.table("notifications").select("*")\
            .eq("type", "info_update_request")\
            .eq("status", "pending")\
            .eq("sender_user_id", resident_id)\
            .execute()
        return result.data or []

    async def update_notification(
        self,
        notification_id: str,
        data: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Update a notification row."""
        result = self._client.table("notifications")\
            .update({**data, "updated_at": utc_now_iso()})\
            .eq("id", notification_id)\
            .execute()
        return result.data[0] if result.data else None

    async def mark_notifications_read(
        self,
        target_role: str,
        target_user_id: Optional[str] = None
    ) -> int:
        """Mark every unread notification in a scope as read."""
        query = self._client.table("notifications")\
            .update({"read": True, "updated_at": utc_now_iso()})\
            .eq("target_role", target_role)\
            .eq("read", False)
        if target_user_id:
            query = query.eq("target_user_id", target_user_id)

        result = query.execute()
        return len(result.data) if result.data else 0

    async def delete_notification(self, notification_id: str) -> bool:
        """Delete a notification."""
        result = self._client.table("notifications").delete().eq("id", notification_id).execute()
        return bool(result.data)

    # ============== Update Request Operations ==============

    async def create_update_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert an update request.

        Raises:
            ConflictError: If the resident already has a pending request
        """
        try:
            result = self._client.table("update_requests").insert(data).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise ConflictError(
                    "Resident already has a pending update request",
                    {"residentId": data.get("resident_id")}
                )
            raise
        return result.data[0] if result.data else None

    async def get_update_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        """Get an update request by ID."""
        result = self._client.table("update_requests").select("*").eq("id", request_id).execute()
        return result.data[0] if result.data else None

    async def get_pending_update_request(self, resident_id: str) -> Optional[Dict[str, Any]]:
        """Get the pending update request for a resident, if any."""
        result = self._client.table("update_requests").select("*")\
            .eq("resident_id", resident_id)\
            .eq("status", "pending")\
            .order("requested_at", desc=True)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    async def list_update_requests(
        self,
        status: Optional[str] = None,
        resident_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """List update requests, newest first."""
        query = self._client.table("update_requests").select("*")
        if status:
            query = query.eq("status", status)
        if resident_id:
            query = query.eq("resident_id", resident_id)

        result = query.order("requested_at", desc=True).limit(limit).execute()
        return result.data or []

    async def resolve_update_request(
        self,
        request_id: str,
        status: str,
        reviewed_by: Optional[str] = None,
        review_notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Resolve a request and the notifications embedding it in one transaction.

        Raises:
            NotFoundError: If the request does not exist
            ConflictError: If it was already resolved the other way
        """
        try:
            result = self._client.rpc("resolve_update_request", {
                "p_request_id": request_id,
                "p_status": status,
                "p_reviewed_by": reviewed_by,
                "p_review_notes": review_notes,
            }).execute()
        except APIError as e:
            if e.code == "P0002":
                raise NotFoundError(f"Update request not found: {request_id}")
            if e.code == "23P01":
                raise ConflictError(str(e.message), {"requestId": request_id})
            raise

        if not result.data:
            raise NotFoundError(f"Update request not found: {request_id}")
        return result.data[0]

    # ============== Audit Log Operations ==============

    async def create_audit_log(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an audit log entry."""
        result = self._client.table("audit_logs").insert(data).execute()
        return result.data[0] if result.data else None


# Singleton instance
db = Database()


def get_db() -> Database:
    """Get database instance (for dependency injection)."""
    return db
