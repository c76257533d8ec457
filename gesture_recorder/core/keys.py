"""Global key listener based on pynput.

Watches one key (``media_volume_up`` by default) and turns its press/release
events into :class:`~gesture_recorder.core.gesture.KeyTransition` values with
monotonic millisecond timestamps. Every other key is filtered out here, so the
gesture core only ever sees the trigger key. Auto-repeat presses are passed
through; the classifier ignores them.

pynput is imported on :meth:`VolumeKeyListener.start` because it needs a
display server or input device access that headless machines lack.
"""

import time
from typing import Callable, Optional

from loguru import logger

from .config import TRIGGER_KEY
from .gesture import KeyEdge, KeyTransition

TransitionCallback = Callable[[KeyTransition], None]


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class VolumeKeyListener:
    """Forwards trigger-key transitions to a callback.

    Args:
        key_name: pynput ``Key`` member name (``media_volume_up``) or a single
            character.
        clock_ms: Millisecond clock used to stamp transitions.
    """

    def __init__(self, key_name: str = TRIGGER_KEY, clock_ms: Callable[[], int] = monotonic_ms) -> None:
        self._key_name = key_name
        self._clock_ms = clock_ms
        self._listener: Optional[object] = None
        self._target: Optional[object] = None

    @property
    def key_name(self) -> str:
        return self._key_name

    def start(self, on_transition: TransitionCallback) -> None:
        """Start listening in pynput's background thread."""
        from pynput import keyboard

        self._target = self._resolve_key(keyboard, self._key_name)

        def _on_press(key: object) -> None:
            if self.matches(key):
                on_transition(KeyTransition(KeyEdge.DOWN, self._clock_ms()))

        def _on_release(key: object) -> None:
            if self.matches(key):
                on_transition(KeyTransition(KeyEdge.UP, self._clock_ms()))

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()
        logger.info(f"Listening for long presses on {self._key_name}")

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None

    def matches(self, key: object) -> bool:
        """True when *key* is the configured trigger key."""
        if self._target is None:
            return False
        if key == self._target:
            return True
        char = getattr(key, "char", None)
        return char is not None and char == getattr(self._target, "char", object())

    @staticmethod
    def _resolve_key(keyboard, key_name: str) -> object:
        if len(key_name) == 1:
            return keyboard.KeyCode.from_char(key_name)
        try:
            return keyboard.Key[key_name]
        except KeyError:
            raise ValueError(f"Unknown key name: {key_name}") from None
