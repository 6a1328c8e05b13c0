"""Version 1 API endpoints."""

from .endpoints import calendar_router, guest_router

__all__ = [
    "calendar_router",
    "guest_router",
]
