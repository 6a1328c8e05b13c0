"""API endpoint modules for version 1."""

from .calendar import router as calendar_router
from .guest import router as guest_router

__all__ = [
    "calendar_router",
    "guest_router",
]
