"""
Login rate limiting per client IP.

Every ATTEMPTS_PER_LOCKOUT-th consecutive failure locks the IP out. The first
lockout lasts 30 minutes and each subsequent one doubles. A record is forgotten
one hour after its last failure or lockout end, whichever is later, or
immediately on a successful login.
State lives in the limiter instance for the process lifetime.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

ATTEMPTS_PER_LOCKOUT = 10
INITIAL_LOCKOUT_SECONDS = 30 * 60
RECORD_TTL_SECONDS = 60 * 60


@dataclass
class _FailureRecord:
    total_attempts: int
    lockout_until: float
    lockout_seconds: float
    last_failure: float = 0.0


@dataclass(frozen=True)
class FailureOutcome:
    total_attempts: int
    remaining_attempts: int
    locked: bool
    lockout_until: Optional[float] = None  # epoch seconds
    lockout_minutes: int = 0


class LoginRateLimiter:
    def __init__(
        self,
        attempts_per_lockout: int = ATTEMPTS_PER_LOCKOUT,
        initial_lockout_seconds: float = INITIAL_LOCKOUT_SECONDS,
        record_ttl_seconds: float = RECORD_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.attempts_per_lockout = attempts_per_lockout
        self.initial_lockout_seconds = initial_lockout_seconds
        self.record_ttl_seconds = record_ttl_seconds
        self._clock = clock
        self._records: Dict[str, _FailureRecord] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def _expired(self, record: _FailureRecord, now: float) -> bool:
        return now - max(record.lockout_until, record.last_failure) > self.record_ttl_seconds

    def _cleanup(self, now: float) -> None:
        expired = [ip for ip, record in self._records.items() if self._expired(record, now)]
        for ip in expired:
            del self._records[ip]

    def locked_until(self, ip: str) -> Optional[float]:
        """Epoch seconds until which ip is locked out, or None."""
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            record = self._records.get(ip)
            if record and record.lockout_until > now:
                return record.lockout_until
            return None

    def record_failure(self, ip: str) -> FailureOutcome:
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            record = self._records.get(ip)
            if record is None:
                record = _FailureRecord(total_attempts=0, lockout_until=0.0, lockout_seconds=self.initial_lockout_seconds)
                self._records[ip] = record

            record.total_attempts += 1
            record.last_failure = now
            if record.total_attempts % self.attempts_per_lockout == 0:
                lockout_seconds = record.lockout_seconds
                record.lockout_until = now + lockout_seconds
                record.lockout_seconds *= 2
                logger.warning(
                    f"Login locked for {ip} after {record.total_attempts} failures ({lockout_seconds / 60:.0f} min)"
                )
                return FailureOutcome(
                    total_attempts=record.total_attempts,
                    remaining_attempts=0,
                    locked=True,
                    lockout_until=record.lockout_until,
                    lockout_minutes=int(-(-lockout_seconds // 60)),
                )

            return FailureOutcome(
                total_attempts=record.total_attempts,
                remaining_attempts=self.attempts_per_lockout - (record.total_attempts % self.attempts_per_lockout),
                locked=False,
            )

    def record_success(self, ip: str) -> None:
        with self._lock:
            self._records.pop(ip, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
