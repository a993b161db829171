"""Background task that deletes expired shares and abandoned upload sessions."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from common.constants import SWEEP_INTERVAL_SECONDS, UPLOAD_TIMEOUT_SECONDS
from dropserver.share_store import ShareStore
from dropserver.upload_manager import UploadManager
from dropserver.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """
    Outcome of one sweeper firing.
    """
    expired_shares: int = 0
    stale_sessions: int = 0
    failures: int = 0


class ExpirySweeper:
    """
    Periodically removes shares past their expiry and upload sessions
    inactive beyond the session timeout. Fires once on start, then every
    interval until stopped.
    """

    def __init__(
        self,
        share_store: ShareStore,
        upload_manager: UploadManager,
        interval_seconds: int = SWEEP_INTERVAL_SECONDS,
        session_timeout_seconds: int = UPLOAD_TIMEOUT_SECONDS
    ):
        """
        Initialize sweeper task.

        Args:
            share_store: Store whose expired shares are deleted
            upload_manager: Manager whose stale sessions are discarded
            interval_seconds: Time between sweeps (default 1 hour)
            session_timeout_seconds: Inactivity timeout for upload sessions (default 24 hours)
        """
        self.share_store = share_store
        self.upload_manager = upload_manager
        self.interval_seconds = interval_seconds
        self.session_timeout = timedelta(seconds=session_timeout_seconds)
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Expiry sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started expiry sweeper (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped expiry sweeper")

    async def _run(self) -> None:
        """Main loop for sweep task."""
        while self._running:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in expiry sweeper: {e}", exc_info=True)

            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

    async def sweep_once(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Run both sweeps once in a worker thread.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            SweepResult with counts
        """
        return await asyncio.to_thread(self.sweep, now)

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Delete expired shares, then discard stale upload sessions.

        The two sweeps are independent; a failure in one does not skip the other.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            SweepResult with counts
        """
        if now is None:
            now = utcnow()

        expired_shares = 0
        stale_sessions = 0
        failures = 0

        try:
            expired_shares, failed = self.share_store.cleanup_expired(now)
            failures += failed
        except Exception as e:
            logger.error(f"Expired share sweep failed: {e}", exc_info=True)
            failures += 1

        try:
            stale_sessions, failed = self.upload_manager.sweep_stale(self.session_timeout, now)
            failures += failed
        except Exception as e:
            logger.error(f"Stale upload sweep failed: {e}", exc_info=True)
            failures += 1

        if expired_shares or stale_sessions or failures:
            logger.info(
                f"Sweep complete: {expired_shares} expired share(s), "
                f"{stale_sessions} stale upload(s), {failures} failure(s)"
            )
        else:
            logger.debug("Sweep complete: nothing to remove")

        return SweepResult(
            expired_shares=expired_shares,
            stale_sessions=stale_sessions,
            failures=failures,
        )
