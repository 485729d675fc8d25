"""
Session storage.

A session row mirrors an issued token and its embedded expiry. The row is bookkeeping:
a token stays self-verifying through its own exp claim even if the row lags behind.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.core.clock import Clock, epoch_seconds
from app.models.auth import AuthSession


@dataclass(frozen=True)
class SessionRecord:
    wallet_address: str
    token: str
    created_at: int
    expires_at: int


class SessionStore(ABC):
    @abstractmethod
    def create(self, wallet_address: str, token: str, expires_at: int) -> SessionRecord:
        """Persist an issued token."""

    @abstractmethod
    def purge_expired(self, now: int) -> int:
        """Delete every record with expires_at <= now and return how many went."""


class SqlSessionStore(SessionStore):
    def __init__(self, db: Session, clock: Clock = epoch_seconds):
        self.db = db
        self.clock = clock

    def create(self, wallet_address: str, token: str, expires_at: int) -> SessionRecord:
        record = SessionRecord(
            wallet_address=wallet_address,
            token=token,
            created_at=self.clock(),
            expires_at=expires_at,
        )
        self.db.add(
            AuthSession(
                wallet_address=record.wallet_address,
                token=record.token,
                created_at=record.created_at,
                expires_at=record.expires_at,
            )
        )
        self.db.flush()
        return record

    def purge_expired(self, now: int) -> int:
        result = self.db.execute(
            delete(AuthSession)
            .where(AuthSession.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class InMemorySessionStore(SessionStore):
    def __init__(self, clock: Clock = epoch_seconds):
        self.clock = clock
        self._records: List[SessionRecord] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def for_wallet(self, wallet_address: str) -> List[SessionRecord]:
        with self._lock:
            return [r for r in self._records if r.wallet_address == wallet_address]

    def create(self, wallet_address: str, token: str, expires_at: int) -> SessionRecord:
        record = SessionRecord(
            wallet_address=wallet_address,
            token=token,
            created_at=self.clock(),
            expires_at=expires_at,
        )
        with self._lock:
            self._records.append(record)
        return record

    def purge_expired(self, now: int) -> int:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.expires_at > now]
            return before - len(self._records)
