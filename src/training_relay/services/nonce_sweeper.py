"""Periodic removal of expired nonces.

The sweeper is housekeeping only: replay protection never depends on it
running, and its failures are logged without reaching request handling.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from training_relay.core.settings import settings
from training_relay.db.session import SessionLocal
from training_relay.db.time import utcnow
from training_relay.services.replay import NonceLedger

logger = logging.getLogger(__name__)


class NonceSweeper:
    """Deletes expired nonce rows on a fixed interval in the background."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        interval_seconds: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the sweeper.

        Args:
            session_factory: Session factory to use; defaults to the application's.
            interval_seconds: Delay between sweeps; defaults to the value derived
                from the nonce TTL.
            clock: Source of the current time.
        """
        self._session_factory = session_factory or SessionLocal
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else float(settings.nonce_cleanup_interval_seconds)
        )
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                await asyncio.to_thread(self.sweep_once)

    def sweep_once(self) -> int:
        """Remove expired nonces once.

        Returns:
            Number of rows removed; zero when the sweep failed.
        """
        with self._session_factory() as db:
            try:
                removed = NonceLedger(db).cleanup_expired(self._clock())
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning("Periodic nonce cleanup failed: %s", e)
                return 0

        logger.debug("Periodic nonce cleanup removed %d rows", removed)
        return removed
