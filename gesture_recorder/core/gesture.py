"""Long-press detection for a single hardware key.

The classifier only looks at press/release pairs. A press is classified when
the key is released, so one qualifying press yields exactly one signal no
matter how long it was held.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from .config import LONG_PRESS_THRESHOLD_MS


class KeyEdge(str, Enum):
    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class KeyTransition:
    """One raw key event from the listener."""

    edge: KeyEdge
    timestamp_ms: int


@dataclass(frozen=True)
class LongPressDetected:
    duration_ms: int
    released_at_ms: int


class GestureClassifier:
    """Turns DOWN/UP transitions into :class:`LongPressDetected` signals.

    Args:
        threshold_ms: Minimum hold time in milliseconds. A press lasting
            exactly ``threshold_ms`` counts as long.
    """

    def __init__(self, threshold_ms: int = LONG_PRESS_THRESHOLD_MS) -> None:
        if threshold_ms <= 0:
            raise ValueError(f"threshold_ms must be positive, got {threshold_ms}")
        self.threshold_ms = threshold_ms
        self._down_at: Optional[int] = None
        self._long_press_signaled = False

    @property
    def pressed(self) -> bool:
        """True between a DOWN and its matching UP."""
        return self._down_at is not None

    def on_event(self, transition: KeyTransition) -> Optional[LongPressDetected]:
        """Feed one transition; returns a signal when a long press is released."""
        if transition.edge == KeyEdge.DOWN:
            if self._down_at is not None:
                # auto-repeat while held
                return None
            self._down_at = transition.timestamp_ms
            self._long_press_signaled = False
            return None

        if self._down_at is None:
            logger.debug(f"Ignoring key release without press at {transition.timestamp_ms} ms")
            return None

        duration = transition.timestamp_ms - self._down_at
        self._down_at = None
        if duration >= self.threshold_ms and not self._long_press_signaled:
            self._long_press_signaled = True
            logger.debug(f"Long press detected ({duration} ms)")
            return LongPressDetected(duration_ms=duration, released_at_ms=transition.timestamp_ms)
        return None

    def reset(self) -> None:
        """Forget any press in progress."""
        self._down_at = None
        self._long_press_signaled = False
