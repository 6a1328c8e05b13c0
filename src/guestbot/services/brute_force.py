"""Brute-force lockout accounting for guest verification.

Failures are counted along two independent scopes:

- ``caller``: one client identifier (IP). Short window, low threshold.
- ``resource``: one property. Longer window, higher threshold, since many
  distinct guests legitimately try the same property.

Each scope lives in its own document and is updated in its own
transaction. If the process dies between the two updates only the caller
scope has counted the failure; each record stays self-consistent, so that
window is accepted rather than forced into a cross-document transaction.

Lockouts are sticky: once ``lockoutUntil`` is set it is honored until it
passes, regardless of how the failure window has moved in the meantime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Literal

from guestbot.core.clock import Clock, system_clock
from guestbot.core.errors import MSG_NOT_FOUND, FailurePolicy, StoreError
from guestbot.services.documents import Document, DocumentStore, Transaction
from guestbot.utils.hash import document_key

logger = logging.getLogger(__name__)

Scope = Literal["caller", "resource"]

# Shown for a missed lookup and for either lockout; must stay byte-identical.
GENERIC_NOT_FOUND_MESSAGE: Final[str] = MSG_NOT_FOUND


@dataclass(frozen=True)
class LockoutPolicy:
    scope: Scope
    key_prefix: str
    max_failures: int
    window_seconds: float
    lockout_seconds: float


CALLER_POLICY: Final[LockoutPolicy] = LockoutPolicy(
    scope="caller",
    key_prefix="verify",
    max_failures=5,
    window_seconds=30 * 60,
    lockout_seconds=30 * 60,
)
RESOURCE_POLICY: Final[LockoutPolicy] = LockoutPolicy(
    scope="resource",
    key_prefix="verify_prop",
    max_failures=20,
    window_seconds=60 * 60,
    lockout_seconds=60 * 60,
)


@dataclass
class LockoutRecord:
    failed_attempts: int
    window_start: float
    last_attempt: float
    lockout_until: float | None
    scope: Scope

    @classmethod
    def from_document(cls, data: Document, scope: Scope) -> LockoutRecord:
        lockout_until = data.get("lockoutUntil")
        return cls(
            failed_attempts=int(data.get("failedAttempts", 0)),
            window_start=float(data.get("windowStart", 0.0)),
            last_attempt=float(data.get("lastAttempt", 0.0)),
            lockout_until=float(lockout_until) if lockout_until is not None else None,
            scope=data.get("scope", scope),
        )

    def to_document(self) -> Document:
        return {
            "failedAttempts": self.failed_attempts,
            "windowStart": self.window_start,
            "lastAttempt": self.last_attempt,
            "lockoutUntil": self.lockout_until,
            "scope": self.scope,
        }

    def is_locked(self, now: float) -> bool:
        return self.lockout_until is not None and now < self.lockout_until


def apply_failure(
    record: LockoutRecord | None, policy: LockoutPolicy, now: float
) -> LockoutRecord:
    """Return ``record`` after counting one more failure at ``now``."""
    if record is None:
        record = LockoutRecord(
            failed_attempts=1,
            window_start=now,
            last_attempt=now,
            lockout_until=None,
            scope=policy.scope,
        )
    elif record.is_locked(now):
        # Keep counting but never extend or clear an active lockout.
        record.failed_attempts += 1
        record.last_attempt = now
        return record
    elif now - record.window_start > policy.window_seconds:
        record = LockoutRecord(
            failed_attempts=1,
            window_start=now,
            last_attempt=now,
            lockout_until=None,
            scope=policy.scope,
        )
    else:
        record.failed_attempts += 1
        record.last_attempt = now

    if record.failed_attempts >= policy.max_failures:
        record.lockout_until = now + policy.lockout_seconds
    return record


class BruteForceGuard:
    """Failure counter with sticky lockouts on two independent scopes."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = system_clock,
        failure_policy: FailurePolicy = FailurePolicy.OPEN,
        caller_policy: LockoutPolicy = CALLER_POLICY,
        resource_policy: LockoutPolicy = RESOURCE_POLICY,
    ) -> None:
        self._store = store
        self._clock = clock
        self.failure_policy = failure_policy
        self._policies = (caller_policy, resource_policy)

    def record_failure(self, caller_id: str, resource_id: str) -> None:
        """Count one failed verification against both scopes."""
        for policy, identifier in zip(self._policies, (caller_id, resource_id), strict=True):
            try:
                self._record_scope(policy, identifier)
            except StoreError:
                logger.error(
                    "Could not record %s-scope verification failure", policy.scope, exc_info=True
                )

    def is_locked(self, caller_id: str, resource_id: str) -> bool:
        """Return True when either scope is locked.

        The answer does not say which scope is locked.
        """
        now = self._clock()
        try:
            for policy, identifier in zip(
                self._policies, (caller_id, resource_id), strict=True
            ):
                data = self._store.get_doc(document_key(policy.key_prefix, identifier))
                if data is not None and LockoutRecord.from_document(data, policy.scope).is_locked(
                    now
                ):
                    return True
        except StoreError:
            logger.error("Lockout lookup failed", exc_info=True)
            return self.failure_policy is FailurePolicy.CLOSED
        return False

    def _record_scope(self, policy: LockoutPolicy, identifier: str) -> None:
        key = document_key(policy.key_prefix, identifier)

        def _apply(tx: Transaction) -> None:
            now = self._clock()
            data = tx.get(key)
            current = LockoutRecord.from_document(data, policy.scope) if data else None
            was_locked = current is not None and current.is_locked(now)
            updated = apply_failure(current, policy, now)
            if not was_locked and updated.is_locked(now):
                logger.warning(
                    "Verification lockout activated for %s scope after %d failures",
                    policy.scope,
                    updated.failed_attempts,
                )
            tx.set(key, updated.to_document())

        self._store.run_transaction(_apply)
