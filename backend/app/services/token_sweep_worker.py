"""Bookmarklet token sweep background worker.

asyncio background task started from the FastAPI lifespan. Periodically
drops expired tokens and receipts from the in-memory store. Expiry is
already enforced on every access; the sweep only reclaims memory.
"""

import asyncio
import contextlib
import logging

from app.services.bookmarklet_token_store import BookmarkletTokenStore

logger = logging.getLogger(__name__)

# Default interval: 5 minutes
DEFAULT_INTERVAL_SECONDS = 5 * 60


class TokenSweepWorker:
    """Background worker that periodically removes expired tokens.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for it to finish.
    - run_once() executes a single sweep (for testing).

    Args:
        store: Token store to sweep.
        interval_seconds: Seconds between sweeps.
    """

    def __init__(
        self,
        store: BookmarkletTokenStore,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep loop.

        No-op if already running. Must be called with a running event loop.
        """
        if self.is_running:
            logger.warning("Token sweep worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Token sweep worker started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Token sweep worker stopped")

    def run_once(self) -> int:
        """Execute a single sweep.

        Returns:
            Number of records removed.
        """
        return self._store.cleanup_expired()

    async def _run_loop(self) -> None:
        """Background loop: sleep → sweep → repeat."""
        try:
            while self._running:
                await asyncio.sleep(self._interval_seconds)
                try:
                    removed = self.run_once()
                    if removed:
                        logger.info("Swept %d expired bookmarklet tokens", removed)
                except Exception:  # noqa: BLE001
                    logger.exception("Error in token sweep")
        except asyncio.CancelledError:
            logger.debug("Token sweep loop cancelled")
            raise
