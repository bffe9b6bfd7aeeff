"""
In-process synchronisation event payloads.
"""

from enum import Enum
from typing import Optional, Dict, Any

from .common import CamelModel
from .enums import ReviewAction


class SyncEventName(str, Enum):
    """Event names other views subscribe to."""
    RESIDENT_DATA_UPDATED = "residentDataUpdated"
    PERSONAL_INFO_UPDATED = "personalInfoUpdated"
    ADMIN_DATA_REFRESH = "adminDataRefresh"


class SyncEvent(CamelModel):
    """Payload carried by every sync event."""
    name: SyncEventName
    resident_id: str
    updated_data: Optional[Dict[str, Any]] = None
    action: ReviewAction
    request_id: Optional[str] = None
