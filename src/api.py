import logging
import random
from typing import List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

import core
from game_manager import GameManager, GameProgressState, Renderer, RenderMetadata
from input_manager import InputManager
from settings import GameSettings, load_settings, setup_logging
from storage import Storage, select_storage

logger = logging.getLogger(__name__)

router = APIRouter()

# --- Pydantic Models for API requests and responses ---

class TileData(BaseModel):
    """A tile as drawn by a client, with its animation hints."""
    value: int = Field(..., ge=2, description="Tile value, a power of two.")
    position: List[int] = Field(..., description="[row, col] after the last move.")
    previous_position: Optional[List[int]] = Field(
        default=None,
        description="[row, col] before the last move; absent for new and merged tiles."
    )
    merged_from: Optional[List[List[int]]] = Field(
        default=None,
        description="[row, col] each consumed tile started from, if this tile is a merge result."
    )


class GameStateData(BaseModel):
    """Represents the complete state of the game session."""
    board: List[List[int]] = Field(..., description="The N x N game board, represented as a list of lists.")
    tiles: List[TileData] = Field(..., description="Occupied cells in row-major order.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    best_score: int = Field(..., ge=0, description="Best score recorded by the storage backend.")
    over: bool
    won: bool
    terminated: bool = Field(..., description="True while moves are blocked (game over or win pending).")
    progress: GameProgressState = Field(
        ...,
        description="Current progress state (ACTIVE, WON_PENDING_CHOICE, WON_CONTINUING, OVER)."
    )
    win_tile: int = Field(..., gt=0, description="The tile value required to win this game.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")


class MoveRequestData(BaseModel):
    """Data required to make a move."""
    direction: core.DIRECTION = Field(
        ...,
        description="Direction of the move (0: UP, 1: RIGHT, 2: DOWN, 3: LEFT)."
    )


class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the move resulted in a change to the board state, False otherwise."
    )
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was ignored or the game ended."
    )

# --- Renderer ---

def _tile_data(tile: core.Tile) -> TileData:
    return TileData(
        value=tile.value,
        position=list(tile.position),
        previous_position=list(tile.previous_position) if tile.previous_position else None,
        merged_from=[list(source.previous_position) for source in tile.merged_from] if tile.merged_from else None,
    )


class SnapshotRenderer(Renderer):
    """Keeps a copy of the last rendered frame for the HTTP responses."""

    def __init__(self):
        self.frames = 0
        self.board: List[List[int]] = []
        self.tiles: List[TileData] = []
        self.metadata: Optional[RenderMetadata] = None

    def render(self, grid: core.Grid, metadata: RenderMetadata) -> None:
        self.frames += 1
        self.board = grid.to_matrix()
        self.tiles = [_tile_data(tile) for tile in grid.tiles()]
        self.metadata = metadata

    def continue_game(self) -> None:
        logger.debug("Win / game over message cleared")


class GameBinding:
    """Wires one game session to the HTTP layer."""

    def __init__(self, settings: GameSettings, storage: Storage, rng: Optional[random.Random] = None):
        self.settings = settings
        self.renderer = SnapshotRenderer()
        self.input_manager = InputManager()
        self.game = GameManager(
            renderer=self.renderer,
            storage=storage,
            size=settings.size,
            win_tile=settings.win_tile,
            start_tiles=settings.start_tiles,
            rng=rng,
        )
        self.game.bind(self.input_manager)

    def state(self) -> GameStateData:
        metadata = self.renderer.metadata
        return GameStateData(
            board=self.renderer.board,
            tiles=self.renderer.tiles,
            score=metadata.score,
            best_score=metadata.best_score,
            over=metadata.over,
            won=metadata.won,
            terminated=metadata.terminated,
            progress=self.game.progress,
            win_tile=self.settings.win_tile,
            board_size=self.game.grid.size,
        )


def _binding(request: Request) -> GameBinding:
    return request.app.state.binding

# --- API Endpoints ---

@router.get("/game", response_model=GameStateData, summary="Get the Current Game")
async def get_game(request: Request):
    """Returns the board, score and status as of the last rendered frame."""
    return _binding(request).state()


@router.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    The engine will:
    1. Ignore the move if the game is over or a win is awaiting a decision.
    2. Otherwise slide and merge the tiles in the requested `direction`.
    3. If the board changed, add a new random tile (2 or 4) and update the status.

    Returns the updated game state, whether the move was effective, and an optional message.
    """
    binding = _binding(request)
    frames_before = binding.renderer.frames
    try:
        binding.input_manager.move(request_data.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error(f"Unexpected error in /game/move: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while processing the move.")

    move_was_effective = binding.renderer.frames != frames_before
    message_for_client: Optional[str] = None
    if not move_was_effective:
        message_for_client = "Move was not effective; board state unchanged by slide."

    progress = binding.game.progress
    if progress == GameProgressState.WON_PENDING_CHOICE:
        message_for_client = "Congratulations! You won!"
    elif progress == GameProgressState.OVER:
        message_for_client = "Game Over. No more valid moves."

    return MoveResponseData(
        **binding.state().model_dump(),
        move_was_effective=move_was_effective,
        message=message_for_client,
    )


@router.post("/game/restart", response_model=GameStateData, summary="Start a New Game")
async def restart_game(request: Request):
    """Discards the current session and starts a fresh board with the configured start tiles."""
    binding = _binding(request)
    try:
        binding.input_manager.restart()
    except Exception as e:
        logger.error(f"Unexpected error in /game/restart: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred during game creation.")
    return binding.state()


@router.post("/game/keep-playing", response_model=GameStateData, summary="Keep Playing After a Win")
async def keep_playing(request: Request):
    binding = _binding(request)
    binding.input_manager.keep_playing()
    return binding.state()


# --- Application ---

def create_app(
    settings: Optional[GameSettings] = None,
    storage: Optional[Storage] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """
    Builds the application around a single game session.
    Args:
        settings (Optional[GameSettings]): Defaults to load_settings().
        storage (Optional[Storage]): Defaults to select_storage(settings.storage_path).
        rng (Optional[random.Random]): Source of randomness for tile spawns.
    """
    settings = settings or load_settings()
    if storage is None:
        storage = select_storage(settings.storage_path)

    app = FastAPI(
        title="2048 Game API",
        description="Play a single persistent 2048 session. "\
                    "The server owns the board; clients send moves and draw the returned state.",
        version="1.0.0"
    )
    # Initialize the rate limiter
    app.state.limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.state.binding = GameBinding(settings, storage, rng)
    app.include_router(router)
    return app


def main():
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level)
    uvicorn.run("api:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
