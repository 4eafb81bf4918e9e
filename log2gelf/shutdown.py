"""Single-fire shutdown signal — the first reported reason wins."""

import logging
import threading

from log2gelf.models import ShutdownEvent, ShutdownReason

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """Any task may fire it; only the first fire is kept, later ones are ignored."""

    def __init__(self):
        self._lock = threading.RLock()
        self._fired = threading.Event()
        self._event: ShutdownEvent | None = None

    def fire(self, reason: ShutdownReason, detail: str = "") -> bool:
        """Record *reason* if nothing was recorded yet. Returns True if it won."""
        with self._lock:
            if self._event is not None:
                logger.debug("Ignoring %s (%s), already shutting down", reason.value, detail)
                return False
            self._event = ShutdownEvent(reason, detail)
        self._fired.set()
        return True

    def wait(self, timeout: float | None = None) -> ShutdownEvent | None:
        """Block until fired (or *timeout*); returns the winning event or None."""
        if not self._fired.wait(timeout):
            return None
        return self._event

    @property
    def is_set(self) -> bool:
        return self._fired.is_set()
