"""Cancellable one-shot timer used for the auto-submit heartbeat."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from loguru import logger


class AutoSubmitTimer:
    """Owns at most one pending timer. Arming always replaces the previous one."""

    def __init__(self, name: str = "AutoSubmit"):
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def arm(self, interval_seconds: float, callback: Callable[[], None]) -> None:
        """Cancel any pending timer and schedule callback after interval_seconds."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()

            timer = threading.Timer(interval_seconds, self._fire, args=(callback,))
            timer.daemon = True
            timer.name = self.name
            self._timer = timer
            timer.start()

        logger.debug(f"Armed {self.name} timer for {interval_seconds:.1f}s")

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def is_armed(self) -> bool:
        with self._lock:
            return self._timer is not None and self._timer.is_alive()

    def _fire(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Error in {self.name} timer callback: {e}")
