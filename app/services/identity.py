"""
Identity resolution for authenticated wallets.

The user table belongs to the business side of the application; authentication only
needs "resolve or create the identity for this wallet" and the id it returns.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.users import User

logger = logging.getLogger(__name__)

# dialects with INSERT ... ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class Identity:
    id: str
    wallet_address: str


class IdentityResolver(ABC):
    @abstractmethod
    def resolve(self, wallet_address: str) -> Identity:
        """Return the identity for wallet_address, creating it on first login."""


class SqlIdentityResolver(IdentityResolver):
    """
    Get-or-create on the users table.

    Two first logins for the same wallet may race. The insert never fails on the
    unique wallet_address: the loser's insert is a no-op and it re-reads the
    winner's row.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find(self, wallet_address: str):
        return self.db.query(User).filter(User.wallet_address == wallet_address).first()

    def _insert_if_missing(self, wallet_address: str, now: datetime) -> None:
        insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if insert is not None:
            self.db.execute(
                insert(User)
                .values(id=str(uuid.uuid4()), wallet_address=wallet_address, created_at=now, last_active_at=now)
                .on_conflict_do_nothing(index_elements=[User.wallet_address])
            )
            return

        try:
            with self.db.begin_nested():
                self.db.add(User(wallet_address=wallet_address, created_at=now, last_active_at=now))
        except IntegrityError:
            logger.info("user for %s created by a concurrent login", wallet_address)

    def resolve(self, wallet_address: str) -> Identity:
        now = datetime.now(timezone.utc)
        user = self._find(wallet_address)

        if not user:
            self._insert_if_missing(wallet_address, now)
            user = self._find(wallet_address)
        else:
            user.last_active_at = now  # type: ignore

        return Identity(id=str(user.id), wallet_address=user.wallet_address)


class InMemoryIdentityResolver(IdentityResolver):
    def __init__(self):
        self._ids: Dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, wallet_address: str) -> Identity:
        with self._lock:
            user_id = self._ids.setdefault(wallet_address, str(uuid.uuid4()))
        return Identity(id=user_id, wallet_address=wallet_address)
