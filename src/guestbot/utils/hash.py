# src/guestbot/utils/hash.py
"""Hashing helpers used to derive persistent storage keys."""

from __future__ import annotations

from blake3 import blake3


def blake3_hexdigest(data: bytes) -> str:
    """Return the hexadecimal BLAKE3 digest of the supplied data."""
    return blake3(data).hexdigest()


def document_key(purpose: str, identifier: str) -> str:
    """Return the namespaced storage key ``"<purpose>:<digest>"``.

    Identifiers are caller IPs, property IDs and similar values. Hashing
    them bounds the key length and keeps raw addresses out of the store.
    """
    return f"{purpose}:{blake3_hexdigest(identifier.encode('utf-8'))}"
