# src/guestbot/models/document.py
"""Generic key/value document storage."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from guestbot.db.session import Base


class StoredDocument(Base):
    """One JSON document addressed by a namespaced string key.

    Keys look like ``"ratelimit:askGuestBot:<digest>"`` or ``"property:<id>"``.
    """

    __tablename__ = "documents"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
