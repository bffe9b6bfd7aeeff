"""
API routes module.
"""

from .notifications import router as notifications_router
from .residents import router as residents_router
from .update_requests import router as update_requests_router

__all__ = [
    "notifications_router",
    "residents_router",
    "update_requests_router",
]
