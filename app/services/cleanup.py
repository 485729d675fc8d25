"""
Periodic purge of expired challenges and sessions.

One pass runs at startup, then every interval. Each pass runs in the default
executor with its own DB session so the event loop is never blocked by the
delete statements. A failing pass is logged and the loop keeps going.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional, Tuple

from app.core.clock import Clock, epoch_seconds
from app.db.session import SessionLocal
from app.services.challenge_store import ChallengeStore, SqlChallengeStore
from app.services.session_store import SessionStore, SqlSessionStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], ContextManager[Tuple[ChallengeStore, SessionStore]]]


@contextmanager
def sql_store_factory() -> Iterator[Tuple[ChallengeStore, SessionStore]]:
    """Open a DB session for one cleanup pass and commit it when the pass succeeds."""
    db = SessionLocal()
    try:
        yield SqlChallengeStore(db), SqlSessionStore(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class CleanupScheduler:
    def __init__(
        self,
        store_factory: StoreFactory = sql_store_factory,
        interval_seconds: int = 3600,
        clock: Clock = epoch_seconds,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.store_factory = store_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Tuple[int, int]:
        """Purge both stores with a single cutoff. Returns (challenges, sessions) removed."""
        now = self.clock()
        with self.store_factory() as (challenges, sessions):
            purged_challenges = challenges.purge_expired(now)
            purged_sessions = sessions.purge_expired(now)
        logger.info(
            "cleanup removed %d expired challenges and %d expired sessions",
            purged_challenges,
            purged_sessions,
        )
        return purged_challenges, purged_sessions

    async def _run_forever(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                await loop.run_in_executor(None, self.run_once)
            except Exception:
                logger.exception("cleanup pass failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Schedule the loop on the running event loop. Calling it twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run_forever())
        logger.info("cleanup scheduler started, interval %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("cleanup scheduler stopped")
