"""
Tests for the field model and gravity.
"""

import pytest
import numpy as np

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import load_config
from renren.puyo_core.field import Field, Position

GLYPHS = {".": 0, "R": 1, "B": 2, "G": 3, "Y": 4, "P": 5}


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def empty(config):
    return Field.create_empty(config)


def make_field(config, *bottom_rows):
    """Field whose bottom rows are the given strings, listed top to bottom."""
    rows = [[0] * config.board.cols for _ in range(config.board.rows)]
    start = config.board.rows - len(bottom_rows)
    for i, line in enumerate(bottom_rows):
        rows[start + i] = [GLYPHS[ch] for ch in line]
    return Field.from_rows(rows, config)


class TestBasics:
    """Construction and cell access."""

    def test_create_empty(self, empty):
        assert empty.cells.shape == (13, 6)
        assert empty.is_empty_field()
        assert empty.count_filled() == 0

    def test_get_out_of_bounds_is_none(self, empty):
        assert empty.get(Position(-1, 5)) is None
        assert empty.get(Position(6, 5)) is None
        assert empty.get(Position(0, 13)) is None

    def test_is_empty_out_of_bounds_is_false(self, empty):
        assert empty.is_empty(Position(0, 0))
        assert not empty.is_empty(Position(0, -1))
        assert not empty.is_empty(Position(6, 0))

    def test_set_is_copy_on_write(self, empty):
        placed = empty.set(Position(1, 12), CellColor.RED)
        assert placed.get(Position(1, 12)) == CellColor.RED
        assert empty.is_empty(Position(1, 12))

    def test_set_on_occupied_cell_is_noop(self, empty):
        placed = empty.set(Position(1, 12), CellColor.RED)
        again = placed.set(Position(1, 12), CellColor.BLUE)
        assert again.get(Position(1, 12)) == CellColor.RED

    def test_set_out_of_bounds_is_noop(self, empty):
        assert empty.set(Position(3, -1), CellColor.RED) == empty

    def test_clone_is_independent(self, config):
        field = make_field(config, "R.....")
        copy = field.clone()
        changed = copy.remove_many([Position(0, 12)])
        assert field.get(Position(0, 12)) == CellColor.RED
        assert copy == field
        assert changed != field

    def test_cells_view_is_read_only(self, empty):
        with pytest.raises(ValueError):
            empty.cells[0, 0] = 1

    def test_remove_many(self, config):
        field = make_field(config, "RBG...")
        cleared = field.remove_many([Position(0, 12), Position(2, 12), Position(9, 9)])
        assert cleared.count_filled() == 1
        assert cleared.get(Position(1, 12)) == CellColor.BLUE


class TestGravity:
    """Gravity compaction."""

    def test_gravity_removes_gaps_preserving_order(self, config):
        field = make_field(
            config,
            "R.....",
            "......",
            "B.....",
            "......",
        )
        settled = field.apply_gravity()
        assert settled.get(Position(0, 11)) == CellColor.RED
        assert settled.get(Position(0, 12)) == CellColor.BLUE
        assert settled.count_filled() == 2

    def test_gravity_moves_hidden_row_cells(self, empty):
        field = empty.set(Position(4, 0), CellColor.YELLOW)
        settled = field.apply_gravity()
        assert settled.get(Position(4, 12)) == CellColor.YELLOW
        assert settled.is_empty(Position(4, 0))

    def test_gravity_is_idempotent(self, config):
        rng = np.random.default_rng(7)
        for _ in range(50):
            cells = rng.integers(0, 6, size=(13, 6)).astype(np.int8)
            cells[rng.random((13, 6)) < 0.5] = 0
            field = Field(cells, config.board)
            once = field.apply_gravity()
            assert once.apply_gravity() == once
            assert not once.has_floating_cells()
            assert once.count_filled() == field.count_filled()

    def test_has_floating_cells(self, config):
        assert make_field(config, "R.....", "......").has_floating_cells()
        assert not make_field(config, "R.....", "B.....").has_floating_cells()


class TestConditions:
    """Game-over and all-clear checks."""

    def test_center_top_visible_cell_is_game_over(self, empty):
        assert empty.set(Position(2, 1), CellColor.RED).is_game_over_condition()
        assert empty.set(Position(3, 1), CellColor.RED).is_game_over_condition()

    def test_other_top_cells_are_not_game_over(self, empty):
        assert not empty.set(Position(0, 1), CellColor.RED).is_game_over_condition()
        assert not empty.set(Position(2, 0), CellColor.RED).is_game_over_condition()

    def test_is_empty_field(self, config, empty):
        assert empty.is_empty_field()
        assert not make_field(config, "....P.").is_empty_field()


class TestSerialization:
    """Row list round trip used by persistence."""

    def test_rows_round_trip(self, config):
        field = make_field(config, "RB....", "GYP...")
        assert Field.from_rows(field.to_rows(), config) == field

    def test_invalid_color_code_rejected(self, config):
        rows = Field.create_empty(config).to_rows()
        rows[5][2] = 9
        with pytest.raises(ValueError):
            Field.from_rows(rows, config)

    @pytest.mark.parametrize("code", [300, -200, "R", 1.5])
    def test_non_color_code_rejected(self, config, code):
        rows = Field.create_empty(config).to_rows()
        rows[12][0] = code
        with pytest.raises(ValueError):
            Field.from_rows(rows, config)

    def test_wrong_shape_rejected(self, config):
        with pytest.raises(ValueError):
            Field.from_rows([[0] * 6] * 12, config)
