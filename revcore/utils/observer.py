"""
revcore/utils/observer.py
Minimal signal/observer used to publish run progress to hosts (CLI, UI).
"""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """
    A simple pure-Python signal.

    Signals are created per owning instance, so two orchestrators never share
    subscribers.
    """
    def __init__(self):
        self._observers: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]):
        """Subscribe a callback function."""
        if callback not in self._observers:
            self._observers.append(callback)

    def disconnect(self, callback: Callable[..., Any]):
        """Unsubscribe a callback function."""
        if callback in self._observers:
            self._observers.remove(callback)

    @property
    def observers(self) -> int:
        return len(self._observers)

    def emit(self, *args, **kwargs):
        """Notify all subscribers."""
        for callback in list(self._observers):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                # Prevent one subscriber from breaking the loop
                logger.warning(f"[Signal] Error in observer callback: {e}", exc_info=True)
