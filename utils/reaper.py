"""
Background deletion of refresh-token rows that are already invalid.

Deleting is housekeeping only: an invalid row left in place fails
validation the same way a missing one does, so a skipped run is harmless.
"""
from __future__ import annotations

import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from models.refresh_token_store import RefreshTokenStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60


class ExpiryReaper:
    """Runs purge_stale() on a single daemon thread, one sweep at a time."""

    def __init__(self, store: RefreshTokenStore, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        self.store = store
        self.interval = interval_seconds
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int | None:
        """One sweep. Returns rows deleted, or None if storage failed."""
        try:
            deleted = self.store.purge_stale()
        except SQLAlchemyError:
            logger.exception("Refresh token cleanup failed; will retry next cycle")
            return None
        finally:
            # the sweep runs outside any request, so nothing else removes this thread's session
            self.store.storage.close()
        if deleted:
            logger.info("Purged %d stale refresh token(s)", deleted)
        return deleted

    def start(self):
        with self._lock:
            if self.running:
                return
            self._shutdown.clear()
            self._thread = threading.Thread(
                target=self._loop, name="refresh-token-reaper", daemon=True
            )
            self._thread.start()
            logger.info("Refresh token reaper started (every %ss)", self.interval)

    def stop(self, timeout: float = 5):
        self._shutdown.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
        self._thread = None

    def _loop(self):
        while not self._shutdown.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                # keep the thread alive; the next cycle retries
                logger.exception("Unexpected error in refresh token reaper")
