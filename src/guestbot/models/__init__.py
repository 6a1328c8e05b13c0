# src/guestbot/models/__init__.py
"""SQLAlchemy models for GuestBot."""

from .document import StoredDocument

__all__ = ["StoredDocument"]
