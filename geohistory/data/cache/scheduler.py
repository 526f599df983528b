"""
Periodic eviction for a cache registry.

Caches never schedule their own eviction. Applications that have no
scheduler of their own can start one of these next to their caches.
"""

import logging
import threading
from typing import Dict, Optional

from geohistory.data.cache.manager import CacheRegistry

logger = logging.getLogger(__name__)


class EvictionScheduler:
    """Runs CacheRegistry.evict_all() on a background thread at a fixed interval."""

    def __init__(self, registry: CacheRegistry, interval_seconds: float = 300.0):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self.registry = registry
        self.interval_seconds = interval_seconds
        self._thread: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Dict[str, Dict[str, int]]:
        """Run one sweep on the calling thread."""
        return self.registry.evict_all()

    def start(self) -> None:
        """Start the background eviction thread."""
        if self.is_running:
            return

        self._shutdown_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="geohistory-eviction",
        )
        self._thread.start()
        logger.info(f"Started eviction thread (interval={self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the background eviction thread.

        Args:
            timeout: Maximum time to wait for thread to stop
        """
        if not self.is_running:
            return

        self._shutdown_event.set()
        self._thread.join(timeout=timeout)
        logger.info("Stopped eviction thread")

    def _loop(self) -> None:
        """Background eviction loop."""
        while not self._shutdown_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in eviction loop: {e}")

            # Wait for next sweep or shutdown
            self._shutdown_event.wait(timeout=self.interval_seconds)
