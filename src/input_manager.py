# input_manager.py
# Translates key presses and swipes into the three commands the game understands.

import logging
from typing import Any, Callable, Dict, List, Optional

from core import DIRECTION

logger = logging.getLogger(__name__)

MOVE = "move"
RESTART = "restart"
KEEP_PLAYING = "keepPlaying"
EVENTS = (MOVE, RESTART, KEEP_PLAYING)

# Minimum swipe distance before a gesture counts as a move.
SWIPE_THRESHOLD = 10

KEY_MAP: Dict[str, DIRECTION] = {
    "up": DIRECTION.UP,
    "right": DIRECTION.RIGHT,
    "down": DIRECTION.DOWN,
    "left": DIRECTION.LEFT,
    # Vim
    "k": DIRECTION.UP,
    "l": DIRECTION.RIGHT,
    "j": DIRECTION.DOWN,
    "h": DIRECTION.LEFT,
    # WASD
    "w": DIRECTION.UP,
    "d": DIRECTION.RIGHT,
    "s": DIRECTION.DOWN,
    "a": DIRECTION.LEFT,
}
RESTART_KEY = "r"
KEEP_PLAYING_KEY = "c"


def direction_from_swipe(dx: float, dy: float) -> Optional[DIRECTION]:
    """
    Maps a swipe vector to a direction; the dominant axis wins.
    Args:
        dx (float): Horizontal distance, positive to the right.
        dy (float): Vertical distance, positive downwards.
    Returns:
        Optional[DIRECTION]: None when the swipe is shorter than SWIPE_THRESHOLD.
    """
    if max(abs(dx), abs(dy)) <= SWIPE_THRESHOLD:
        return None
    if abs(dx) > abs(dy):
        return DIRECTION.RIGHT if dx > 0 else DIRECTION.LEFT
    return DIRECTION.DOWN if dy > 0 else DIRECTION.UP


class InputManager:
    """Callback registry that only ever emits move, restart and keepPlaying."""

    def __init__(self):
        self.events: Dict[str, List[Callable[..., Any]]] = {}

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown input event: {event!r}")
        self.events.setdefault(event, []).append(callback)

    def emit(self, event: str, data: Any = None) -> None:
        for callback in self.events.get(event, []):
            if data is None:
                callback()
            else:
                callback(data)

    def move(self, direction: DIRECTION) -> None:
        self.emit(MOVE, DIRECTION(direction))

    def restart(self) -> None:
        self.emit(RESTART)

    def keep_playing(self) -> None:
        self.emit(KEEP_PLAYING)

    def handle_key(self, key: str, modifiers: bool = False) -> bool:
        """
        Dispatches a key press.
        Args:
            key (str): Key name, e.g. "left", "h", "a" or "r".
            modifiers (bool): True if alt/ctrl/meta/shift was held; such presses are ignored.
        Returns:
            bool: True if the key was mapped to a command.
        """
        if modifiers:
            return False
        key = key.strip().lower()
        if key in KEY_MAP:
            self.move(KEY_MAP[key])
            return True
        if key == RESTART_KEY:
            self.restart()
            return True
        if key == KEEP_PLAYING_KEY:
            self.keep_playing()
            return True
        logger.debug("Unmapped key %r", key)
        return False

    def handle_swipe(self, dx: float, dy: float) -> bool:
        direction = direction_from_swipe(dx, dy)
        if direction is None:
            return False
        self.move(direction)
        return True
