"""Signed bearer tokens for guest sessions and owner access."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Literal

from jose import JWTError, jwt

from guestbot.core.clock import utcnow
from guestbot.core.errors import AuthenticationRequired
from guestbot.core.settings import settings

TokenKind = Literal["guest", "owner"]


def create_token(
    subject: str,
    kind: TokenKind,
    extra_claims: dict[str, Any] | None = None,
    ttl_minutes: int | None = None,
) -> str:
    """Create a JWT for ``subject``.

    Guest tokens carry the property they were verified against in ``pid``.
    """
    to_encode: dict[str, Any] = {"sub": subject, "typ": kind}
    if extra_claims:
        to_encode.update(extra_claims)
    minutes = ttl_minutes if ttl_minutes is not None else settings.guest_session_ttl_minutes
    to_encode["exp"] = utcnow() + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_token(token: str, kind: TokenKind) -> dict[str, Any]:
    """Return the claims of a valid token of the expected kind.

    Raises:
        AuthenticationRequired: if the token is invalid, expired or of the
            wrong kind.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise AuthenticationRequired("invalid token") from err
    if payload.get("typ") != kind or not payload.get("sub"):
        raise AuthenticationRequired("wrong token kind")
    return payload


def guest_property_id(token: str | None) -> str:
    """Return the property a guest session token was issued for.

    Raises:
        AuthenticationRequired: if the token is missing, invalid or carries
            no property.
    """
    if not token:
        raise AuthenticationRequired("missing bearer token")
    property_id = decode_token(token, "guest").get("pid")
    if not isinstance(property_id, str) or not property_id:
        raise AuthenticationRequired("guest token without property")
    return property_id
