"""
Listener registry shared by the transport services.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional, Set

from .types import TransportEvent, TransportEventListener, TransportEventType

logger = logging.getLogger(__name__)


class EventEmitter:
    """Observer support: ``on()`` / ``off()`` listeners receive TransportEvents."""

    def __init__(self) -> None:
        self._listeners: Set[TransportEventListener] = set()

    def on(self, listener: TransportEventListener) -> Callable[[], None]:
        """Add event listener. Returns a function that removes it."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: TransportEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(
        self,
        event_type: TransportEventType,
        key: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = TransportEvent(
            type=event_type,
            key=key,
            timestamp=time.time(),
            metadata=metadata,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(
                    f"EventEmitter._emit: listener {listener!r} failed for {event_type.value}",
                    exc_info=True,
                )


def mask_token(value: Optional[str], visible_chars: int = 10) -> str:
    """Mask sensitive value for logging, showing the first characters."""
    if not value:
        return "<empty>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)
