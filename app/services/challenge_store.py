"""
Challenge storage.

Challenges are short-lived (value -> wallet address, expiry) records. Two backends
share one interface: SqlChallengeStore for the service and InMemoryChallengeStore for
tests and single-process tools. Neither commits; the caller owns the unit of work.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.core.clock import Clock, epoch_seconds
from app.core.stellar_auth import generate_challenge
from app.models.auth import AuthChallenge


@dataclass(frozen=True)
class Challenge:
    value: str
    wallet_address: str
    created_at: int
    expires_at: int


class ChallengeStore(ABC):
    @abstractmethod
    def create(self, wallet_address: str, ttl_seconds: int) -> Challenge:
        """Generate and persist a new challenge valid for ttl_seconds."""

    @abstractmethod
    def lookup(self, value: str) -> Optional[Challenge]:
        """Return the live challenge or None. Expired records count as missing."""

    @abstractmethod
    def consume(self, value: str) -> bool:
        """Atomically delete a live challenge. True only for the caller that removed it."""

    @abstractmethod
    def purge_expired(self, now: int) -> int:
        """Delete every record with expires_at <= now and return how many went."""


def _new_challenge(wallet_address: str, ttl_seconds: int, now: int) -> Challenge:
    if ttl_seconds <= 0:
        raise ValueError("ttl_seconds must be positive")
    return Challenge(
        value=generate_challenge(now_ms=now * 1000),
        wallet_address=wallet_address,
        created_at=now,
        expires_at=now + ttl_seconds,
    )


class SqlChallengeStore(ChallengeStore):
    def __init__(self, db: Session, clock: Clock = epoch_seconds):
        self.db = db
        self.clock = clock

    def create(self, wallet_address: str, ttl_seconds: int) -> Challenge:
        # value is the primary key, so a colliding insert fails instead of overwriting
        challenge = _new_challenge(wallet_address, ttl_seconds, self.clock())
        self.db.add(
            AuthChallenge(
                challenge=challenge.value,
                wallet_address=challenge.wallet_address,
                created_at=challenge.created_at,
                expires_at=challenge.expires_at,
            )
        )
        self.db.flush()
        return challenge

    def lookup(self, value: str) -> Optional[Challenge]:
        record = (
            self.db.query(AuthChallenge)
            .filter(AuthChallenge.challenge == value, AuthChallenge.expires_at > self.clock())
            .first()
        )
        if record is None:
            return None
        return Challenge(
            value=record.challenge,
            wallet_address=record.wallet_address,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )

    def consume(self, value: str) -> bool:
        result = self.db.execute(
            delete(AuthChallenge)
            .where(AuthChallenge.challenge == value, AuthChallenge.expires_at > self.clock())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def purge_expired(self, now: int) -> int:
        result = self.db.execute(
            delete(AuthChallenge)
            .where(AuthChallenge.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class InMemoryChallengeStore(ChallengeStore):
    def __init__(self, clock: Clock = epoch_seconds):
        self.clock = clock
        self._records: Dict[str, Challenge] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def create(self, wallet_address: str, ttl_seconds: int) -> Challenge:
        with self._lock:
            challenge = _new_challenge(wallet_address, ttl_seconds, self.clock())
            while challenge.value in self._records:
                challenge = _new_challenge(wallet_address, ttl_seconds, self.clock())
            self._records[challenge.value] = challenge
            return challenge

    def lookup(self, value: str) -> Optional[Challenge]:
        with self._lock:
            challenge = self._records.get(value)
        if challenge is None or challenge.expires_at <= self.clock():
            return None
        return challenge

    def consume(self, value: str) -> bool:
        with self._lock:
            challenge = self._records.get(value)
            if challenge is None or challenge.expires_at <= self.clock():
                return False
            del self._records[value]
            return True

    def purge_expired(self, now: int) -> int:
        with self._lock:
            expired = [value for value, c in self._records.items() if c.expires_at <= now]
            for value in expired:
                del self._records[value]
            return len(expired)
