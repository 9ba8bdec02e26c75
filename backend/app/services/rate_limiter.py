"""Login rate limiting with pluggable counter storage.

The in-memory store is process local: running several API instances splits
the attempt count between them. Use ``DatabaseRateLimitStore`` (setting
``RATE_LIMIT_BACKEND=database``) when more than one instance serves sign-ins.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings
from app.core.exceptions import StorageError
from app.core.security import hash_identifier, naive_utc, utc_now
from app.models.rate_limit import RateLimitEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    max_attempts: int = 5
    window: timedelta = timedelta(minutes=15)
    lockout: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, config: Settings) -> "RateLimitPolicy":
        return cls(
            max_attempts=config.MAX_LOGIN_ATTEMPTS,
            window=timedelta(minutes=config.RATE_LIMIT_WINDOW_MINUTES),
            lockout=timedelta(minutes=config.LOCKOUT_DURATION_MINUTES),
        )


@dataclass(frozen=True)
class RateLimitState:
    count: int
    reset_at: datetime
    locked_until: Optional[datetime] = None


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    attempts_left: Optional[int] = None
    locked_until: Optional[datetime] = None


Transition = Callable[[Optional[RateLimitState]], Tuple[RateLimitState, RateLimitDecision]]


def evaluate_attempt(
    state: Optional[RateLimitState],
    now: datetime,
    policy: RateLimitPolicy,
) -> Tuple[RateLimitState, RateLimitDecision]:
    """Count one attempt and decide whether it may proceed."""

    def fresh() -> Tuple[RateLimitState, RateLimitDecision]:
        return (
            RateLimitState(count=1, reset_at=now + policy.window),
            RateLimitDecision(allowed=True, attempts_left=policy.max_attempts - 1),
        )

    if state is None:
        return fresh()

    if state.locked_until is not None:
        if now < state.locked_until:
            return state, RateLimitDecision(allowed=False, locked_until=state.locked_until)
        # Lockout over: start again from a clean window.
        return fresh()

    if now > state.reset_at:
        return fresh()

    count = state.count + 1
    if count >= policy.max_attempts:
        locked_until = now + policy.lockout
        return (
            replace(state, count=count, locked_until=locked_until),
            RateLimitDecision(allowed=False, locked_until=locked_until),
        )

    return (
        replace(state, count=count),
        RateLimitDecision(allowed=True, attempts_left=policy.max_attempts - count),
    )


def is_stale(state: RateLimitState, now: datetime) -> bool:
    """True when ``evaluate_attempt`` would treat ``state`` like a missing entry."""
    if state.locked_until is not None:
        return now >= state.locked_until
    return now > state.reset_at


class RateLimitStore(ABC):
    """Keyed counter storage; ``apply`` must be atomic per key."""

    @abstractmethod
    def apply(self, key: str, transition: Transition) -> RateLimitDecision:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[RateLimitState]:
        ...

    @abstractmethod
    def clear(self, key: str) -> None:
        ...

    @abstractmethod
    def prune(self, now: datetime) -> int:
        """Drop entries that no longer affect any decision; return how many."""


class InMemoryRateLimitStore(RateLimitStore):
    """Dict-backed store suitable for single-node deployments."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, RateLimitState] = {}

    def apply(self, key: str, transition: Transition) -> RateLimitDecision:
        with self._lock:
            new_state, decision = transition(self._entries.get(key))
            self._entries[key] = new_state
            return decision

    def get(self, key: str) -> Optional[RateLimitState]:
        with self._lock:
            return self._entries.get(key)

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def prune(self, now: datetime) -> int:
        with self._lock:
            stale = [key for key, state in self._entries.items() if is_stale(state, now)]
            for key in stale:
                del self._entries[key]
            return len(stale)


class DatabaseRateLimitStore(RateLimitStore):
    """Row-per-identifier store shared by every API instance.

    Rows are locked with ``SELECT ... FOR UPDATE`` for the read-modify-write.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _to_state(row: RateLimitEntry) -> RateLimitState:
        return RateLimitState(
            count=row.attempt_count,
            reset_at=naive_utc(row.reset_at),
            locked_until=naive_utc(row.locked_until),
        )

    def apply(self, key: str, transition: Transition) -> RateLimitDecision:
        key_hash = hash_identifier(key)
        for attempt in range(2):
            db = self._session_factory()
            try:
                row = (
                    db.query(RateLimitEntry)
                    .filter(RateLimitEntry.identifier_hash == key_hash)
                    .with_for_update()
                    .first()
                )
                new_state, decision = transition(self._to_state(row) if row else None)
                if row is None:
                    row = RateLimitEntry(identifier_hash=key_hash)
                    db.add(row)
                row.attempt_count = new_state.count
                row.reset_at = new_state.reset_at
                row.locked_until = new_state.locked_until
                db.commit()
                return decision
            except IntegrityError:
                # Another instance inserted the row first; retry against it.
                db.rollback()
                if attempt:
                    raise StorageError("Rate limit store conflict")
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Rate limit store failure: %s", exc)
                raise StorageError("Rate limit store unavailable")
            finally:
                db.close()
        raise StorageError("Rate limit store conflict")

    def get(self, key: str) -> Optional[RateLimitState]:
        db = self._session_factory()
        try:
            row = db.get(RateLimitEntry, hash_identifier(key))
            return self._to_state(row) if row else None
        except SQLAlchemyError as exc:
            logger.error("Rate limit store failure: %s", exc)
            raise StorageError("Rate limit store unavailable")
        finally:
            db.close()

    def clear(self, key: str) -> None:
        db = self._session_factory()
        try:
            db.query(RateLimitEntry).filter(
                RateLimitEntry.identifier_hash == hash_identifier(key)
            ).delete()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Rate limit store failure: %s", exc)
            raise StorageError("Rate limit store unavailable")
        finally:
            db.close()

    def prune(self, now: datetime) -> int:
        db = self._session_factory()
        try:
            removed = db.query(RateLimitEntry).filter(
                or_(
                    and_(RateLimitEntry.locked_until.is_(None), RateLimitEntry.reset_at < now),
                    RateLimitEntry.locked_until <= now,
                )
            ).delete(synchronize_session=False)
            db.commit()
            return removed
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Rate limit store failure: %s", exc)
            raise StorageError("Rate limit store unavailable")
        finally:
            db.close()


class LoginRateLimiter:
    """Per-identifier login throttle with temporary lockout."""

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        policy: Optional[RateLimitPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store or InMemoryRateLimitStore()
        self.policy = policy or RateLimitPolicy()
        self._clock = clock
        self._sweep_lock = threading.Lock()
        self._next_sweep: Optional[datetime] = None

    @staticmethod
    def _key(identifier: str) -> str:
        return f"login:{identifier.strip().lower()}"

    def check(self, identifier: str) -> RateLimitDecision:
        """Record an attempt for ``identifier`` and report whether it may proceed."""
        now = self._clock()
        self._sweep(now)
        decision = self.store.apply(
            self._key(identifier),
            lambda state: evaluate_attempt(state, now, self.policy),
        )
        if not decision.allowed:
            logger.warning(
                "Login attempts locked for identifier %s until %s",
                hash_identifier(identifier)[:12],
                decision.locked_until.isoformat() if decision.locked_until else "?",
            )
        return decision

    def reset(self, identifier: str) -> None:
        """Forget all attempts (after a verified-successful login)."""
        self.store.clear(self._key(identifier))

    def _sweep(self, now: datetime) -> None:
        """Prune stale entries at most once per window."""
        with self._sweep_lock:
            if self._next_sweep is not None and now < self._next_sweep:
                return
            self._next_sweep = now + self.policy.window
        removed = self.store.prune(now)
        if removed:
            logger.debug("Pruned %d stale rate limit entries", removed)


def create_rate_limit_store(
    config: Settings,
    session_factory: Optional[Callable[[], Session]] = None,
) -> RateLimitStore:
    if config.RATE_LIMIT_BACKEND == "database":
        if session_factory is None:
            from app.core.database import SessionLocal
            session_factory = SessionLocal
        return DatabaseRateLimitStore(session_factory)
    return InMemoryRateLimitStore()
