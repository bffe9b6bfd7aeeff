"""
Device-local cache of a resident's pending update requests.

A hint only: it disables the edit control and pre-populates the pending
banner before the first poll. The server is always asked before a new
submission is accepted.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Union

from ..models.update_request import UpdateRequest
from ..core.config import settings
from ..core.logger import logger


class CacheEntry:
    """Represents a cached value with expiration time."""

    def __init__(self, value: Any, ttl_seconds: int, expires_at: Optional[datetime] = None):
        self.value = value
        self.expires_at = expires_at or datetime.now() + timedelta(seconds=ttl_seconds)

    def is_expired(self) -> bool:
        """Check if the cache entry has expired."""
        return datetime.now() >= self.expires_at


class PendingRequestCache:
    """
    TTL-bounded map of request id to the submitted request.

    When a path is given, entries are persisted to a JSON file and reloaded
    on construction, skipping any that already expired.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        self.ttl_seconds = settings.PENDING_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.path = Path(path) if path else None
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._load()

    def add(self, request: UpdateRequest) -> None:
        with self._lock:
            self._entries[request.id] = CacheEntry(
                request.model_dump(mode="json", by_alias=True), self.ttl_seconds
            )
            self._save()

    def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a cached request.

        Returns:
            The cached request payload, or None if absent or expired
        """
        with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[request_id]
                self._save()
                return None
            return entry.value

    def for_resident(self, resident_id: str) -> List[Dict[str, Any]]:
        self.cleanup_expired()
        with self._lock:
            return [
                entry.value for entry in self._entries.values()
                if entry.value.get("residentId") == resident_id
            ]

    def has_pending(self, resident_id: str) -> bool:
        return bool(self.for_resident(resident_id))

    def delete(self, request_id: str) -> None:
        with self._lock:
            if self._entries.pop(request_id, None) is not None:
                self._save()

    def clear_resident(self, resident_id: str) -> None:
        """Drop every cached request for a resident."""
        with self._lock:
            stale = [
                key for key, entry in self._entries.items()
                if entry.value.get("residentId") == resident_id
            ]
            for key in stale:
                del self._entries[key]
            if stale:
                self._save()

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()
            self._save()

    def cleanup_expired(self) -> None:
        """Remove all expired entries from the cache."""
        with self._lock:
            expired_keys = [
                key for key, entry in self._entries.items()
                if entry.is_expired()
            ]
            for key in expired_keys:
                del self._entries[key]
            if expired_keys:
                self._save()

    def size(self) -> int:
        """Get the number of entries in the cache."""
        with self._lock:
            return len(self._entries)

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable pending cache {self.path}: {e}")
            return
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed pending cache {self.path}")
            return

        for key, item in raw.items():
            try:
                if not isinstance(item["value"], dict):
                    raise TypeError("cached value is not an object")
                entry = CacheEntry(
                    item["value"],
                    self.ttl_seconds,
                    expires_at=datetime.fromisoformat(item["expiresAt"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed pending cache entry {key}: {e}")
                continue
            if not entry.is_expired():
                self._entries[key] = entry

    def _save(self) -> None:
        # Callers hold the lock
        if self.path is None:
            return
        payload = {
            key: {"value": entry.value, "expiresAt": entry.expires_at.isoformat()}
            for key, entry in self._entries.items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not persist pending cache to {self.path}: {e}")
