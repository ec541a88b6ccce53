"""Per-identity failed-login counter with a lockout window."""

import logging
import math
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from docutrack.models.login_attempt import LoginAttemptRecord

logger = logging.getLogger("docutrack.throttle")

MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=30)


class LoginThrottle:
    """Tracks failures per identity and locks it once ``max_attempts`` is reached.

    The lock is set once, when the threshold is first reached, and further
    failures during the window do not extend it. Expired locks are cleared
    lazily by ``is_locked``.
    """

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS, lockout_duration: timedelta = LOCKOUT_DURATION):
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration
        self._records: Dict[str, LoginAttemptRecord] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(identity: str) -> str:
        return (identity or "").strip().lower()

    def is_locked(self, identity: str, now: datetime) -> bool:
        key = self._key(identity)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False
            if record.locked_until is not None and now >= record.locked_until:
                del self._records[key]
                logger.info("Lockout expired for %s", key)
                return False
            return record.failed_count >= self.max_attempts and record.locked_until is not None

    def _prune(self, now: datetime) -> None:
        """Drop unlocked records idle for a full lockout window and expired locks."""
        cutoff = now - self.lockout_duration
        stale = [
            key
            for key, record in self._records.items()
            if (record.locked_until is None and record.last_attempt_at is not None and record.last_attempt_at <= cutoff)
            or (record.locked_until is not None and now >= record.locked_until)
        ]
        for key in stale:
            del self._records[key]

    def record_failure(self, identity: str, now: datetime, reason: str = "UNKNOWN") -> LoginAttemptRecord:
        key = self._key(identity)
        with self._lock:
            self._prune(now)
            record = self._records.setdefault(key, LoginAttemptRecord())
            record.failed_count += 1
            record.last_attempt_at = now
            record.history.append((now, reason))
            if record.failed_count >= self.max_attempts and record.locked_until is None:
                record.locked_until = now + self.lockout_duration
                logger.warning("Account %s locked after %d failed attempts", key, record.failed_count)
            return record

    def record_success(self, identity: str) -> None:
        with self._lock:
            self._records.pop(self._key(identity), None)

    def remaining_lock_seconds(self, identity: str, now: datetime) -> int:
        if not self.is_locked(identity, now):
            return 0
        with self._lock:
            record = self._records.get(self._key(identity))
            if record is None or record.locked_until is None:
                return 0
            return max(0, math.ceil((record.locked_until - now).total_seconds()))

    def failed_count(self, identity: str) -> int:
        with self._lock:
            record = self._records.get(self._key(identity))
            return record.failed_count if record else 0

    def attempts_summary(self, identity: str, now: datetime) -> Dict[str, Any]:
        locked = self.is_locked(identity, now)
        with self._lock:
            record = self._records.get(self._key(identity))
            if record is None:
                return {"failedAttempts": 0, "lastAttempt": None, "isLocked": False, "lockedUntil": None}
            return {
                "failedAttempts": record.failed_count,
                "lastAttempt": record.last_attempt_at,
                "isLocked": locked,
                "lockedUntil": record.locked_until,
            }

    def locked_count(self, now: datetime) -> int:
        with self._lock:
            identities = list(self._records)
        return sum(1 for identity in identities if self.is_locked(identity, now))

    def get_record(self, identity: str) -> Optional[LoginAttemptRecord]:
        with self._lock:
            return self._records.get(self._key(identity))
