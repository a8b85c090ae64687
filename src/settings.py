# settings.py
# Runtime configuration for the game, the HTTP binding and the CLI.

import logging
import os
import sys
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from core import DEFAULT_WIN_TILE, is_power_of_two

ENV_PREFIX = "MERGE2048_"
DEFAULT_STORAGE_PATH = Path.home() / ".merge2048" / "storage.json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class GameSettings(BaseModel):
    """Settings shared by every front end of the game."""
    size: int = Field(
        default=4,
        gt=1,  # Board size must be at least 2x2
        description="Size of the N x N game board (e.g., 4 for a 4x4 board)."
    )
    win_tile: int = Field(
        default=DEFAULT_WIN_TILE,
        gt=0,
        description="The tile value to achieve for winning the game (e.g., 2048)."
    )
    start_tiles: int = Field(
        default=2,
        ge=1,
        description="Number of random tiles placed on a fresh board."
    )
    storage_path: Path = Field(
        default=DEFAULT_STORAGE_PATH,
        description="JSON file holding the best score and the saved session."
    )
    log_level: str = Field(default="INFO", description="Logging level name.")
    rate_limit: str = Field(default="100/minute", description="slowapi limit for each endpoint.")
    host: str = Field(default="127.0.0.1", description="Address the HTTP server binds to.")
    port: int = Field(default=8000, gt=0, lt=65536)

    @field_validator("win_tile")
    @classmethod
    def _win_tile_is_power_of_two(cls, value: int) -> int:
        if not is_power_of_two(value):
            raise ValueError("win_tile must be a power of two.")
        return value


def load_settings() -> GameSettings:
    """
    Builds settings from MERGE2048_* environment variables, falling back to defaults.
    Raises:
        pydantic.ValidationError: If a variable holds an invalid value.
    """
    overrides = {}
    for name in GameSettings.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return GameSettings(**overrides)


def setup_logging(level: str = "INFO") -> None:
    """Configures the root logger to write to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
