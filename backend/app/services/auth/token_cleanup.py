"""Periodic sweep of dead refresh tokens and stale reset tokens."""

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.services.auth.refresh_token_service import RefreshTokenService
from app.services.auth.reset_token_service import ResetTokenService

logger = logging.getLogger(__name__)


def run_token_cleanup(
    session_factory: Callable[[], Session],
    refresh_retention_days: int,
    reset_grace_hours: int,
) -> tuple[int, int]:
    """Run one sweep with its own session. Returns ``(refresh, reset)`` counts.

    Failures (a missing table included) are logged and reported as zero.
    """
    refresh_deleted = 0
    reset_cleared = 0
    db = session_factory()
    try:
        try:
            refresh_deleted = RefreshTokenService(db).cleanup(refresh_retention_days)
            logger.info(f"Token cleanup deleted {refresh_deleted} refresh token(s)")
        except SQLAlchemyError as e:
            logger.error(f"Refresh token cleanup failed: {e}")

        try:
            reset_cleared = ResetTokenService(db).cleanup(reset_grace_hours)
            logger.info(f"Token cleanup cleared {reset_cleared} expired reset token(s)")
        except SQLAlchemyError as e:
            logger.error(f"Reset token cleanup failed: {e}")
    finally:
        db.close()
    return refresh_deleted, reset_cleared


class TokenCleanupTask:
    """Background task owned by the application lifespan.

    Sweeps once on start, then every ``interval_seconds``. Each sweep runs in a
    worker thread so database I/O never blocks the event loop.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: float,
        refresh_retention_days: int,
        reset_grace_hours: int,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._refresh_retention_days = refresh_retention_days
        self._reset_grace_hours = reset_grace_hours
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="token-cleanup")
        logger.info(f"Token cleanup scheduled every {self._interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Token cleanup stopped")

    async def run_once(self) -> tuple[int, int]:
        return await asyncio.to_thread(
            run_token_cleanup,
            self._session_factory,
            self._refresh_retention_days,
            self._reset_grace_hours,
        )

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Token cleanup sweep crashed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                continue
