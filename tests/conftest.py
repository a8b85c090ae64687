"""
Pytest fixtures for the 2048 tests.
"""

import random

import pytest

from core import Grid
from game_manager import GameManager, Renderer
from storage import InMemoryStorage


class RecordingRenderer(Renderer):
    """Keeps every frame handed to it."""

    def __init__(self):
        self.frames = []
        self.continued = 0

    def render(self, grid, metadata):
        self.frames.append((grid.to_matrix(), metadata))

    def continue_game(self):
        self.continued += 1

    @property
    def last(self):
        return self.frames[-1]


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(2048)


@pytest.fixture
def game(renderer, storage, rng) -> GameManager:
    """A fresh 4x4 game with a seeded generator."""
    return GameManager(renderer=renderer, storage=storage, rng=rng)


def set_board(game: GameManager, board, **flags) -> None:
    """Replaces the game's grid with a fixed board."""
    game.grid = Grid.from_matrix(board)
    game.score = flags.get("score", 0)
    game.over = flags.get("over", False)
    game.won = flags.get("won", False)
    game.keep_playing_after_win = flags.get("keep_playing", False)
