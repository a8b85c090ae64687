# game_manager.py
# Session orchestration: start or restore a game, apply commands, persist
# the session and notify the renderer after every change.

import logging
import random
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from core import (
    DEFAULT_WIN_TILE,
    DIRECTION,
    Grid,
    InvalidFormatError,
    Tile,
    move_tiles,
    moves_available,
)
from input_manager import KEEP_PLAYING, MOVE, RESTART, InputManager
from storage import Storage

logger = logging.getLogger(__name__)


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    ACTIVE = 1
    WON_PENDING_CHOICE = 2  # Won, waiting for the player to keep playing or restart
    WON_CONTINUING = 3
    OVER = 4  # Lost


class RenderMetadata(NamedTuple):
    score: int
    over: bool
    won: bool
    best_score: int
    terminated: bool


class Renderer:
    """
    Receives a read-only view of the grid after every state change.
    Subclasses must override render(); continue_game() is optional.
    """

    def render(self, grid: Grid, metadata: RenderMetadata) -> None:
        raise NotImplementedError

    def continue_game(self) -> None:
        """Clears any win / game-over message."""


class GameManager:
    """
    Owns one game session and applies move, restart and keep-playing commands to it.

    Args:
        renderer (Renderer): Painted after every state change.
        storage (Optional[Storage]): Best score and saved session. None disables persistence.
        size (int): The dimension of the N x N board.
        win_tile (int): The merge result that wins the game.
        start_tiles (int): Tiles placed on a fresh board.
        rng (Optional[random.Random]): Source of randomness for tile spawns.
    """

    def __init__(
        self,
        renderer: Renderer,
        storage: Optional[Storage] = None,
        size: int = 4,
        win_tile: int = DEFAULT_WIN_TILE,
        start_tiles: int = 2,
        rng: Optional[random.Random] = None,
    ):
        self.size = size
        self.win_tile = win_tile
        self.start_tiles = start_tiles
        self.renderer = renderer
        self.storage = storage
        self.rng = rng or random.Random()

        self.grid = Grid(size)
        self.score = 0
        self.over = False
        self.won = False
        self.keep_playing_after_win = False

        self.setup()

    # --- Lifecycle ---

    def setup(self) -> None:
        """Restores the saved session if there is a valid one, otherwise starts fresh."""
        if not self._restore():
            self.grid = Grid(self.size)
            self.score = 0
            self.over = False
            self.won = False
            self.keep_playing_after_win = False
            self.add_start_tiles()
        self.actuate()

    def _restore(self) -> bool:
        if self.storage is None:
            return False
        try:
            previous_state = self.storage.get_session_state()
            if previous_state is None:
                return False
            self.load(previous_state)
        except InvalidFormatError as e:
            logger.warning("Discarding saved session: %s", e)
            try:
                self.storage.clear_session_state()
            except OSError as clear_error:
                logger.error("Could not clear saved session: %s", clear_error)
            return False
        except OSError as e:
            logger.error("Could not read saved session: %s", e)
            return False
        logger.info("Restored saved session with score %d", self.score)
        return True

    def load(self, state: Dict[str, Any]) -> None:
        """
        Replaces the session with a serialized record.
        Raises:
            InvalidFormatError: If the record is malformed.
        """
        if not isinstance(state, dict):
            raise InvalidFormatError("Saved session must be a mapping.")
        grid = Grid.deserialize(state.get("grid"), size=self.size)
        score = state.get("score")
        if not isinstance(score, int) or isinstance(score, bool) or score < 0:
            raise InvalidFormatError(f"Invalid score {score!r}.")
        flags = [state.get(name, False) for name in ("over", "won", "keepPlaying")]
        if not all(isinstance(flag, bool) for flag in flags):
            raise InvalidFormatError("Session flags must be booleans.")

        self.grid = grid
        self.score = score
        self.over, self.won, self.keep_playing_after_win = flags

    def restart(self) -> None:
        logger.info("Restarting game (final score %d)", self.score)
        if self.storage is not None:
            self.storage.clear_session_state()
        self.renderer.continue_game()
        self.setup()

    def keep_playing(self) -> None:
        """Lets the player continue after reaching the win tile. Ignored unless a win is pending."""
        if self.progress != GameProgressState.WON_PENDING_CHOICE:
            logger.debug("Ignoring keep playing: game is %s", self.progress.name)
            return
        self.keep_playing_after_win = True
        self.renderer.continue_game()
        self.actuate()

    def bind(self, input_manager: InputManager) -> None:
        input_manager.on(MOVE, self.move)
        input_manager.on(RESTART, self.restart)
        input_manager.on(KEEP_PLAYING, self.keep_playing)

    # --- Tiles ---

    def add_start_tiles(self) -> None:
        for _ in range(self.start_tiles):
            self.add_random_tile()

    def add_random_tile(self) -> Optional[Tile]:
        """Adds a new tile (90% chance of 2, 10% chance of 4) to a random empty cell."""
        position = self.grid.random_empty_position(self.rng)
        if position is None:
            return None
        tile = Tile(position, 2 if self.rng.random() < 0.9 else 4)
        self.grid.place(tile)
        return tile

    # --- State ---

    @property
    def progress(self) -> GameProgressState:
        if self.over:
            return GameProgressState.OVER
        if self.won:
            if self.keep_playing_after_win:
                return GameProgressState.WON_CONTINUING
            return GameProgressState.WON_PENDING_CHOICE
        return GameProgressState.ACTIVE

    @property
    def is_terminated(self) -> bool:
        return self.over or (self.won and not self.keep_playing_after_win)

    def moves_available(self) -> bool:
        return moves_available(self.grid)

    def best_score(self) -> int:
        return self.storage.get_best_score() if self.storage is not None else 0

    def serialize(self) -> Dict[str, Any]:
        return {
            "grid": self.grid.serialize(),
            "score": self.score,
            "over": self.over,
            "won": self.won,
            "keepPlaying": self.keep_playing_after_win,
        }

    # --- Commands ---

    def move(self, direction: DIRECTION) -> bool:
        """
        Moves the tiles in a direction.
        Args:
            direction (DIRECTION): The direction to move.
        Returns:
            bool: True if the board changed. Ignored moves (terminated game or
                  nothing to slide) return False and leave everything untouched.
        """
        if self.is_terminated:
            logger.debug("Ignoring move %s: game is terminated", direction)
            return False

        result = move_tiles(self.grid, direction, self.win_tile)
        if not result.moved:
            return False

        self.score += result.score
        self.add_random_tile()

        if result.won:
            self.won = True
        if self.won and not self.keep_playing_after_win:
            logger.info("Reached %d with score %d", self.win_tile, self.score)
        elif not self.moves_available():
            self.over = True
            logger.info("Game over with score %d", self.score)

        self.actuate()
        return True

    def actuate(self) -> None:
        """Persists the session and hands the current grid to the renderer."""
        best_score = 0
        if self.storage is not None:
            try:
                best_score = self.storage.get_best_score()
                if self.score > best_score:
                    best_score = self.score
                    self.storage.set_best_score(best_score)

                self.storage.clear_session_state()
                if not self.over:
                    self.storage.set_session_state(self.serialize())
            except OSError as e:
                # The session stays playable; only this write is lost.
                logger.error("Could not persist session: %s", e)

        self.renderer.render(self.grid, RenderMetadata(
            score=self.score,
            over=self.over,
            won=self.won,
            best_score=best_score,
            terminated=self.is_terminated,
        ))
