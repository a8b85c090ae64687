# core.py
# This file is intended to be the stateless core logic for a 2048 game:
# tiles, the grid that owns them, and the move resolution rules.

from enum import Enum
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple
import random

DEFAULT_WIN_TILE = 2048


class OutOfBoundsError(ValueError):
    """Raised when a grid cell outside [0, size) x [0, size) is accessed."""


class InvalidFormatError(ValueError):
    """Raised when serialized grid or session data cannot be restored."""


class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3


class Position(NamedTuple):
    """A grid coordinate. x is the row, y is the column."""
    x: int
    y: int


# Unit step for each direction, expressed as (row delta, column delta).
VECTORS: Dict[DIRECTION, Position] = {
    DIRECTION.UP: Position(-1, 0),
    DIRECTION.RIGHT: Position(0, 1),
    DIRECTION.DOWN: Position(1, 0),
    DIRECTION.LEFT: Position(0, -1),
}


def is_power_of_two(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 2 and value & (value - 1) == 0


# --- Tile ---

class Tile:
    """
    A single numbered piece occupying one grid cell.

    previous_position and merged_from are transient hints for renderers; they
    are reset at the start of every move.
    """

    def __init__(self, position: Tuple[int, int], value: int = 2):
        if not is_power_of_two(value):
            raise ValueError(f"Tile value must be a power of two >= 2, got {value!r}.")
        self.position = Position(*position)
        self.value = value
        self.previous_position: Optional[Position] = None
        self.merged_from: Optional[Tuple["Tile", "Tile"]] = None

    def save_position(self) -> None:
        self.previous_position = self.position

    def update_position(self, position: Tuple[int, int]) -> None:
        self.position = Position(*position)

    def serialize(self) -> Dict[str, int]:
        return {"x": self.position.x, "y": self.position.y, "value": self.value}

    def __repr__(self) -> str:
        return f"Tile(position=({self.position.x}, {self.position.y}), value={self.value})"


# --- Grid ---

class Grid:
    """An N x N cell array holding at most one Tile per cell."""

    def __init__(self, size: int):
        if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
            raise ValueError("Grid size must be a positive integer.")
        self.size = size
        self.cells: List[List[Optional[Tile]]] = [[None] * size for _ in range(size)]

    # Bounds and cell queries

    def is_within_bounds(self, position: Tuple[int, int]) -> bool:
        x, y = position
        return 0 <= x < self.size and 0 <= y < self.size

    def cell_at(self, position: Tuple[int, int]) -> Optional[Tile]:
        """
        Returns the tile at the given position, or None if the cell is empty.
        Args:
            position (Tuple[int, int]): (row, col) coordinate.
        Returns:
            Optional[Tile]: The occupant of the cell.
        Raises:
            OutOfBoundsError: If the position lies outside the grid.
        """
        if not self.is_within_bounds(position):
            raise OutOfBoundsError(f"Position {tuple(position)} is outside a {self.size}x{self.size} grid.")
        x, y = position
        return self.cells[x][y]

    def is_occupied(self, position: Tuple[int, int]) -> bool:
        # Out-of-bounds cells count as occupied so traversal stops at the edge.
        if not self.is_within_bounds(position):
            return True
        return self.cell_at(position) is not None

    def is_available(self, position: Tuple[int, int]) -> bool:
        return not self.is_occupied(position)

    # Mutation

    def place(self, tile: Tile) -> None:
        x, y = tile.position
        self.cell_at(tile.position)  # bounds check
        self.cells[x][y] = tile

    def remove(self, tile: Tile) -> None:
        x, y = tile.position
        self.cell_at(tile.position)
        self.cells[x][y] = None

    def move_tile(self, tile: Tile, position: Tuple[int, int]) -> None:
        """Relocates a tile, keeping its stored position and its cell in step."""
        target = Position(*position)
        self.cell_at(target)
        self.cells[tile.position.x][tile.position.y] = None
        self.cells[target.x][target.y] = tile
        tile.update_position(target)

    # Traversal

    def for_each_cell(self, visitor: Callable[[Position, Optional[Tile]], None]) -> None:
        for x in range(self.size):
            for y in range(self.size):
                visitor(Position(x, y), self.cells[x][y])

    def __iter__(self) -> Iterator[Tuple[Position, Optional[Tile]]]:
        for x in range(self.size):
            for y in range(self.size):
                yield Position(x, y), self.cells[x][y]

    def tiles(self) -> List[Tile]:
        return [tile for _, tile in self if tile is not None]

    def empty_positions(self) -> List[Position]:
        """
        Get coordinates of empty cells in row-major order.
        Returns:
            List[Position]: Unoccupied positions.
        """
        return [position for position, tile in self if tile is None]

    def random_empty_position(self, rng: Optional[random.Random] = None) -> Optional[Position]:
        """
        Picks an empty cell uniformly at random.
        Args:
            rng (Optional[random.Random]): Source of randomness; the module-level
                                           generator is used when omitted.
        Returns:
            Optional[Position]: A free position, or None when the grid is full.
        """
        empty_cells = self.empty_positions()
        if not empty_cells:
            return None
        return (rng or random).choice(empty_cells)

    # Conversions

    def to_matrix(self) -> List[List[int]]:
        """Returns the board as a list of rows of values, 0 for empty cells."""
        return [[tile.value if tile else 0 for tile in row] for row in self.cells]

    @classmethod
    def from_matrix(cls, board: List[List[int]]) -> "Grid":
        """
        Builds a grid from a square matrix of values (0 = empty cell).
        Args:
            board (List[List[int]]): The rows of the board.
        Returns:
            Grid: A grid holding one tile per non-zero value.
        Raises:
            InvalidFormatError: If the board is not a non-empty square matrix.
        """
        if not board or not all(len(row) == len(board) for row in board):
            raise InvalidFormatError("Board must be a non-empty square matrix.")
        grid = cls(len(board))
        for x, row in enumerate(board):
            for y, value in enumerate(row):
                if value:
                    grid.place(Tile((x, y), value))
        return grid

    def serialize(self) -> Dict[str, object]:
        cell_state = [[tile.serialize() if tile else None for tile in row] for row in self.cells]
        return {"size": self.size, "cells": cell_state}

    @classmethod
    def deserialize(cls, data: Dict[str, object], size: Optional[int] = None) -> "Grid":
        """
        Restores a grid from the output of serialize().
        Args:
            data (Dict[str, object]): {"size": int, "cells": [[{x, y, value} | None]]}.
            size (Optional[int]): Expected grid size; checked when given.
        Returns:
            Grid: The restored grid.
        Raises:
            InvalidFormatError: On a size mismatch, malformed cells, out-of-bounds
                                or duplicated positions, or invalid tile values.
        """
        if not isinstance(data, dict):
            raise InvalidFormatError("Serialized grid must be a mapping.")
        declared_size = data.get("size")
        cells = data.get("cells")
        if not isinstance(declared_size, int) or isinstance(declared_size, bool) or declared_size <= 0:
            raise InvalidFormatError(f"Invalid grid size: {declared_size!r}.")
        if size is not None and declared_size != size:
            raise InvalidFormatError(f"Grid size {declared_size} does not match expected size {size}.")
        if not isinstance(cells, list) or len(cells) != declared_size:
            raise InvalidFormatError("Cell rows do not match the grid size.")

        grid = cls(declared_size)
        for row_index, row in enumerate(cells):
            if not isinstance(row, list) or len(row) != declared_size:
                raise InvalidFormatError("Cell columns do not match the grid size.")
            for col_index, entry in enumerate(row):
                if entry is None:
                    continue
                try:
                    x, y, value = entry["x"], entry["y"], entry["value"]
                except (KeyError, TypeError) as e:
                    raise InvalidFormatError(f"Malformed cell entry {entry!r}.") from e
                if not all(isinstance(c, int) and not isinstance(c, bool) for c in (x, y)):
                    raise InvalidFormatError(f"Malformed cell entry {entry!r}.")
                position = Position(x, y)
                if not grid.is_within_bounds(position):
                    raise InvalidFormatError(f"Tile position {tuple(position)} is out of bounds.")
                # Each cell may only describe itself, which also rules out duplicates.
                if position != (row_index, col_index):
                    raise InvalidFormatError(
                        f"Tile at cell {(row_index, col_index)} claims position {tuple(position)}."
                    )
                if not is_power_of_two(value):
                    raise InvalidFormatError(f"Invalid tile value {value!r} at {tuple(position)}.")
                grid.place(Tile(position, value))
        return grid


# --- Move Resolution ---

class MoveResult(NamedTuple):
    """Outcome of resolving one move on a grid."""
    moved: bool
    score: int
    won: bool


def build_traversals(size: int, vector: Position) -> Tuple[List[int], List[int]]:
    """
    Builds the row and column visiting order for a move.
    Cells farthest along the movement vector come first, so every tile is
    resolved against cells that have already settled.
    Args:
        size (int): The dimension of the grid.
        vector (Position): The unit step of the move.
    Returns:
        Tuple[List[int], List[int]]: (row order, column order).
    """
    xs = list(range(size))
    ys = list(range(size))
    if vector.x == 1:
        xs.reverse()
    if vector.y == 1:
        ys.reverse()
    return xs, ys


def find_farthest_position(grid: Grid, position: Position, vector: Position) -> Tuple[Position, Position]:
    """
    Walks from a cell along the vector until the next cell is blocked.
    Returns:
        Tuple[Position, Position]: The last free cell reached, and the first
                                   blocking cell (which may be out of bounds).
    """
    while True:
        previous = position
        position = Position(previous.x + vector.x, previous.y + vector.y)
        if not (grid.is_within_bounds(position) and grid.is_available(position)):
            return previous, position


def prepare_tiles(grid: Grid) -> None:
    """Clears merge hints and snapshots every tile's position before a move."""
    for tile in grid.tiles():
        tile.merged_from = None
        tile.save_position()


def move_tiles(grid: Grid, direction: DIRECTION, win_tile: int = DEFAULT_WIN_TILE) -> MoveResult:
    """
    Slides and merges every tile on the grid in the given direction, in place.
    Args:
        grid (Grid): The grid to mutate.
        direction (DIRECTION): The direction to move.
        win_tile (int): Merge result that triggers a win. Default is 2048.
    Returns:
        MoveResult: Whether anything moved, the score gained, and whether the
                    win tile was produced by a merge.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    try:
        vector = VECTORS[DIRECTION(direction)]
    except ValueError:
        raise ValueError(f"Invalid direction specified for move_tiles: {direction!r}.") from None

    xs, ys = build_traversals(grid.size, vector)
    moved = False
    score_gained = 0
    won = False

    prepare_tiles(grid)

    for x in xs:
        for y in ys:
            cell = Position(x, y)
            tile = grid.cell_at(cell)
            if tile is None:
                continue

            farthest, next_cell = find_farthest_position(grid, cell, vector)
            target = grid.cell_at(next_cell) if grid.is_within_bounds(next_cell) else None

            if target is not None and target.value == tile.value and target.merged_from is None:
                merged = Tile(next_cell, tile.value * 2)
                merged.merged_from = (tile, target)

                grid.place(merged)
                grid.remove(tile)
                # The consumed tile keeps its destination so renderers can slide it in.
                tile.update_position(next_cell)

                score_gained += merged.value
                if merged.value == win_tile:
                    won = True
            else:
                grid.move_tile(tile, farthest)

            if tile.position != tile.previous_position:
                moved = True

    return MoveResult(moved, score_gained, won)


# --- Game State Checks ---

def tile_matches_available(grid: Grid) -> bool:
    """
    Check whether any two orthogonally adjacent tiles share a value.
    Args:
        grid (Grid): The game grid.
    Returns:
        bool: True on the first matching pair found, False otherwise.
    """
    for position, tile in grid:
        if tile is None:
            continue
        for vector in VECTORS.values():
            neighbour = Position(position.x + vector.x, position.y + vector.y)
            if not grid.is_within_bounds(neighbour):
                continue
            other = grid.cell_at(neighbour)
            if other is not None and other.value == tile.value:
                return True
    return False


def moves_available(grid: Grid) -> bool:
    """
    Checks if any move is possible in any direction on the grid.
    Args:
        grid (Grid): The game grid.
    Returns:
        bool: True if there is an empty cell or a mergeable pair.
    """
    return bool(grid.empty_positions()) or tile_matches_available(grid)
