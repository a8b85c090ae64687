"""
Tests for the grid, tiles and move resolution.
"""

import random

import pytest

from core import (
    DIRECTION,
    Grid,
    InvalidFormatError,
    OutOfBoundsError,
    Position,
    Tile,
    build_traversals,
    is_power_of_two,
    move_tiles,
    moves_available,
    tile_matches_available,
)


class TestGrid:

    def test_new_grid_is_empty(self):
        grid = Grid(3)
        assert grid.tiles() == []
        assert len(grid.empty_positions()) == 9
        assert grid.to_matrix() == [[0, 0, 0]] * 3

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            Grid(0)

    def test_cell_at_out_of_bounds(self):
        grid = Grid(2)
        for position in [(-1, 0), (0, 2), (2, 2), (0, -1)]:
            with pytest.raises(OutOfBoundsError):
                grid.cell_at(position)

    def test_out_of_bounds_predicates_do_not_raise(self):
        grid = Grid(2)
        assert not grid.is_within_bounds((2, 0))
        assert grid.is_occupied((2, 0))
        assert not grid.is_available((-1, 1))

    def test_place_and_remove(self):
        grid = Grid(2)
        tile = Tile((1, 0), 4)
        grid.place(tile)
        assert grid.cell_at((1, 0)) is tile
        assert grid.is_occupied((1, 0))
        grid.remove(tile)
        assert grid.cell_at((1, 0)) is None
        assert grid.is_available((1, 0))

    def test_move_tile_keeps_position_in_step(self):
        grid = Grid(3)
        tile = Tile((0, 0), 2)
        grid.place(tile)
        grid.move_tile(tile, (2, 1))
        assert tile.position == Position(2, 1)
        assert grid.cell_at((2, 1)) is tile
        assert grid.cell_at((0, 0)) is None

    def test_empty_positions_are_row_major(self):
        grid = Grid.from_matrix([[2, 0], [0, 4]])
        assert grid.empty_positions() == [Position(0, 1), Position(1, 0)]

    def test_for_each_cell_visits_row_major(self):
        grid = Grid.from_matrix([[2, 0], [0, 4]])
        visited = []
        grid.for_each_cell(lambda position, tile: visited.append((tuple(position), tile.value if tile else None)))
        assert visited == [((0, 0), 2), ((0, 1), None), ((1, 0), None), ((1, 1), 4)]

    def test_random_empty_position_is_seeded(self):
        grid = Grid.from_matrix([[2, 0, 0], [0, 4, 0], [0, 0, 8]])
        expected = random.Random(7).choice(grid.empty_positions())
        assert grid.random_empty_position(random.Random(7)) == expected

    def test_random_empty_position_full_grid(self):
        grid = Grid.from_matrix([[2, 4], [8, 16]])
        assert grid.random_empty_position(random.Random(0)) is None

    def test_from_matrix_rejects_non_square(self):
        with pytest.raises(InvalidFormatError):
            Grid.from_matrix([[2, 0], [0]])

    def test_tile_rejects_non_power_of_two(self):
        with pytest.raises(ValueError):
            Tile((0, 0), 3)


class TestSerialization:

    def test_serialize_format(self):
        grid = Grid.from_matrix([[2, 0], [0, 4]])
        assert grid.serialize() == {
            "size": 2,
            "cells": [
                [{"x": 0, "y": 0, "value": 2}, None],
                [None, {"x": 1, "y": 1, "value": 4}],
            ],
        }

    def test_round_trip(self):
        board = [[2, 0, 4, 0], [0, 8, 0, 16], [32, 0, 0, 0], [0, 0, 0, 2048]]
        restored = Grid.deserialize(Grid.from_matrix(board).serialize())
        assert restored.size == 4
        assert restored.to_matrix() == board
        for position, tile in restored:
            if tile is not None:
                assert tile.position == position

    def test_expected_size_mismatch(self):
        data = Grid.from_matrix([[2, 0], [0, 0]]).serialize()
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data, size=4)

    def test_cells_do_not_match_declared_size(self):
        data = {"size": 3, "cells": [[None, None], [None, None]]}
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data)

    def test_duplicate_position(self):
        data = {"size": 2, "cells": [
            [{"x": 0, "y": 0, "value": 2}, {"x": 0, "y": 0, "value": 4}],
            [None, None],
        ]}
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data)

    def test_entry_must_match_its_cell(self):
        data = {"size": 2, "cells": [[{"x": 1, "y": 1, "value": 2}, None], [None, None]]}
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data)

    def test_out_of_bounds_position(self):
        data = {"size": 2, "cells": [[{"x": 0, "y": 5, "value": 2}, None], [None, None]]}
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data)

    @pytest.mark.parametrize("entry", [
        {"x": 0, "y": 0, "value": 3},
        {"x": 0, "y": 0, "value": 0},
        {"x": 0, "y": 0},
        {"x": "0", "y": 0, "value": 2},
        "tile",
    ])
    def test_malformed_entries(self, entry):
        data = {"size": 2, "cells": [[entry, None], [None, None]]}
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(data)

    def test_not_a_mapping(self):
        with pytest.raises(InvalidFormatError):
            Grid.deserialize(None)


class TestMoveTiles:

    def test_two_by_two_merge_left(self):
        grid = Grid.from_matrix([[2, 2], [0, 0]])
        result = move_tiles(grid, DIRECTION.LEFT)
        assert grid.to_matrix() == [[4, 0], [0, 0]]
        assert result.moved
        assert result.score == 4
        assert not result.won

    def test_slide_without_merge(self):
        grid = Grid.from_matrix([[0, 0, 2, 0], [4, 0, 0, 8], [0, 0, 0, 0], [0, 16, 0, 0]])
        result = move_tiles(grid, DIRECTION.RIGHT)
        assert grid.to_matrix() == [[0, 0, 0, 2], [0, 0, 4, 8], [0, 0, 0, 0], [0, 0, 0, 16]]
        assert result.moved
        assert result.score == 0

    def test_vertical_moves(self):
        grid = Grid.from_matrix([[2, 0, 0], [2, 4, 0], [0, 4, 8]])
        result = move_tiles(grid, DIRECTION.UP)
        assert grid.to_matrix() == [[4, 8, 8], [0, 0, 0], [0, 0, 0]]
        assert result.score == 12

        result = move_tiles(grid, DIRECTION.DOWN)
        assert grid.to_matrix() == [[0, 0, 0], [0, 0, 0], [4, 8, 8]]
        assert result.moved
        assert result.score == 0

    def test_nothing_to_move(self):
        grid = Grid.from_matrix([[2, 0], [4, 0]])
        result = move_tiles(grid, DIRECTION.LEFT)
        assert not result.moved
        assert result.score == 0
        assert grid.to_matrix() == [[2, 0], [4, 0]]

    def test_each_tile_merges_once(self):
        grid = Grid.from_matrix([[2, 2, 2, 2], [2, 2, 2, 0], [4, 2, 2, 0], [0, 0, 0, 0]])
        result = move_tiles(grid, DIRECTION.LEFT)
        assert grid.to_matrix() == [[4, 4, 0, 0], [4, 2, 0, 0], [4, 4, 0, 0], [0, 0, 0, 0]]
        assert result.score == 4 + 4 + 4 + 4

    def test_farthest_tiles_merge_first(self):
        grid = Grid.from_matrix([[2, 2, 2, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
        move_tiles(grid, DIRECTION.RIGHT)
        assert grid.to_matrix()[0] == [0, 0, 2, 4]

    def test_score_is_sum_of_merge_results(self):
        grid = Grid.from_matrix([[2, 2, 4, 4], [8, 8, 0, 0], [0, 0, 0, 0], [16, 0, 0, 16]])
        result = move_tiles(grid, DIRECTION.LEFT)
        merged_values = [tile.value for tile in grid.tiles() if tile.merged_from]
        assert result.score == sum(merged_values) == 4 + 8 + 16 + 32

    def test_win_tile_triggers_win(self):
        grid = Grid.from_matrix([[1024, 1024], [0, 0]])
        assert move_tiles(grid, DIRECTION.LEFT).won

    def test_custom_win_tile(self):
        grid = Grid.from_matrix([[4, 4], [0, 0]])
        assert move_tiles(grid, DIRECTION.RIGHT, win_tile=8).won

    def test_merge_annotations(self):
        grid = Grid.from_matrix([[2, 0, 2], [0, 0, 0], [0, 4, 0]])
        left, right = grid.cell_at((0, 0)), grid.cell_at((0, 2))
        slider = grid.cell_at((2, 1))
        move_tiles(grid, DIRECTION.LEFT)

        merged = grid.cell_at((0, 0))
        assert merged.value == 4
        assert merged.merged_from == (right, left)
        assert merged.previous_position is None
        assert right.previous_position == Position(0, 2)
        assert right.position == Position(0, 0)
        assert slider.previous_position == Position(2, 1)
        assert slider.position == Position(2, 0)

    def test_annotations_reset_on_next_move(self):
        grid = Grid.from_matrix([[2, 2], [0, 0]])
        move_tiles(grid, DIRECTION.LEFT)
        merged = grid.cell_at((0, 0))
        move_tiles(grid, DIRECTION.DOWN)
        assert merged.merged_from is None
        assert merged.previous_position == Position(0, 0)
        assert merged.position == Position(1, 0)

    def test_invalid_direction(self):
        with pytest.raises(ValueError):
            move_tiles(Grid(2), 9)

    @pytest.mark.parametrize("direction", list(DIRECTION))
    def test_settled_grid_does_not_move_again(self, direction):
        board = [[0, 2, 0, 4], [8, 0, 16, 0], [0, 0, 0, 2], [4, 0, 8, 0]]
        grid = Grid.from_matrix(board)
        assert move_tiles(grid, direction).score == 0
        assert not move_tiles(grid, direction).moved

    @pytest.mark.parametrize("direction", list(DIRECTION))
    def test_repeated_moves_settle(self, direction):
        grid = Grid.from_matrix([[2, 2, 4, 0], [0, 4, 4, 8], [2, 0, 2, 2], [16, 16, 16, 16]])
        for _ in range(grid.size + 1):
            if not move_tiles(grid, direction).moved:
                break
        else:
            pytest.fail("grid never settled")
        assert not move_tiles(grid, direction).moved

    def test_random_play_keeps_powers_of_two(self):
        rng = random.Random(11)
        grid = Grid(4)
        for _ in range(200):
            position = grid.random_empty_position(rng)
            if position is None:
                break
            grid.place(Tile(position, rng.choice([2, 4])))
            before = sum(tile.value for tile in grid.tiles())
            result = move_tiles(grid, rng.choice(list(DIRECTION)))
            values = [tile.value for tile in grid.tiles()]
            assert all(is_power_of_two(value) for value in values)
            assert sum(values) == before
            assert not any(tile.merged_from and tile.merged_from[0].merged_from for tile in grid.tiles())
            assert result.score >= 0


class TestTraversals:

    def test_positive_components_reverse(self):
        assert build_traversals(3, Position(1, 0)) == ([2, 1, 0], [0, 1, 2])
        assert build_traversals(3, Position(0, 1)) == ([0, 1, 2], [2, 1, 0])

    def test_negative_components_keep_order(self):
        assert build_traversals(3, Position(-1, 0)) == ([0, 1, 2], [0, 1, 2])
        assert build_traversals(3, Position(0, -1)) == ([0, 1, 2], [0, 1, 2])


class TestMovesAvailable:

    def test_locked_full_grid(self):
        grid = Grid.from_matrix([[2, 4, 2], [4, 2, 4], [2, 4, 2]])
        assert not tile_matches_available(grid)
        assert not moves_available(grid)
        for direction in DIRECTION:
            assert not move_tiles(grid, direction).moved

    def test_full_grid_with_match(self):
        grid = Grid.from_matrix([[2, 4], [2, 8]])
        assert tile_matches_available(grid)
        assert moves_available(grid)

    def test_empty_cell_means_moves(self):
        grid = Grid.from_matrix([[2, 4], [8, 0]])
        assert not tile_matches_available(grid)
        assert moves_available(grid)
