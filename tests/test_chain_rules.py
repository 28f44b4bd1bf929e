"""
Tests for connectivity, erasure eligibility and scoring.
"""

from collections import Counter

import pytest

from renren.puyo_core.chain import (
    count_colors,
    count_erased,
    detect_erasing_cells,
    find_connected,
    find_erasable_groups,
    has_erasable_groups,
)
from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import load_config
from renren.puyo_core.field import Field, Position
from renren.puyo_core.scoring import (
    ScoreTracker,
    calculate_score,
    get_chain_bonus,
    get_color_bonus,
    get_connection_bonus,
)

GLYPHS = {".": 0, "R": 1, "B": 2, "G": 3, "Y": 4, "P": 5}


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def scorer(config):
    return ScoreTracker(config)


def make_field(config, *bottom_rows):
    """Field whose bottom rows are the given strings, listed top to bottom."""
    rows = [[0] * config.board.cols for _ in range(config.board.rows)]
    start = config.board.rows - len(bottom_rows)
    for i, line in enumerate(bottom_rows):
        rows[start + i] = [GLYPHS[ch] for ch in line]
    return Field.from_rows(rows, config)


def fake_group(size):
    return tuple(Position(i % 6, i // 6) for i in range(size))


class TestConnectivity:
    """Flood fill and group detection."""

    def test_run_of_four_is_erasable(self, config):
        field = make_field(config, "RRRR..")
        groups = find_erasable_groups(field)
        assert len(groups) == 1
        assert set(groups[0]) == {Position(x, 12) for x in range(4)}

    def test_run_of_three_is_not_erasable(self, config):
        field = make_field(config, "RRR...")
        assert find_erasable_groups(field) == []
        assert not has_erasable_groups(field)

    def test_vertical_and_bent_groups(self, config):
        field = make_field(
            config,
            "B.....",
            "B.....",
            "BB....",
            "G.....",
        )
        groups = find_erasable_groups(field)
        assert len(groups) == 1
        assert len(groups[0]) == 4

    def test_diagonal_cells_do_not_connect(self, config):
        field = make_field(
            config,
            "R.....",
            ".R....",
            "..R...",
            "...R..",
        )
        assert find_erasable_groups(field) == []

    def test_hidden_row_never_counts(self, empty_with_hidden_column):
        assert find_erasable_groups(empty_with_hidden_column) == []
        assert len(find_connected(empty_with_hidden_column, Position(0, 1))) == 3

    def test_find_connected_from_hidden_or_empty_start(self, empty_with_hidden_column):
        assert find_connected(empty_with_hidden_column, Position(0, 0)) == []
        assert find_connected(empty_with_hidden_column, Position(5, 12)) == []

    def test_empty_field_has_no_groups(self, config):
        assert find_erasable_groups(Field.create_empty(config)) == []

    def test_multiple_groups_are_disjoint(self, config):
        field = make_field(
            config,
            "RRBB..",
            "RRBB..",
        )
        groups = find_erasable_groups(field)
        assert len(groups) == 2
        cells = [pos for group in groups for pos in group]
        assert len(cells) == len(set(cells)) == 8
        assert count_erased(groups) == 8
        assert count_colors(field, groups) == 2
        assert Counter(field.get(g[0]) for g in groups) == Counter([CellColor.RED, CellColor.BLUE])

    def test_detect_erasing_cells_carry_colors(self, config):
        field = make_field(config, "YYYYR.")
        cells = detect_erasing_cells(field)
        assert len(cells) == 4
        assert all(cell.color == CellColor.YELLOW for cell in cells)


@pytest.fixture
def empty_with_hidden_column(config):
    """Red cells in rows 0-3 of column 0: one hidden, three visible."""
    field = Field.create_empty(config)
    for y in range(4):
        field = field.set(Position(0, y), CellColor.RED)
    return field


class TestBonusTables:
    """Table lookups and clamping."""

    def test_chain_bonus(self, config):
        assert get_chain_bonus(1, config.scoring) == 0
        assert get_chain_bonus(2, config.scoring) == 8
        assert get_chain_bonus(13, config.scoring) == 320
        assert get_chain_bonus(19, config.scoring) == 320

    def test_connection_bonus(self, config):
        assert get_connection_bonus(4, config.scoring) == 0
        assert get_connection_bonus(5, config.scoring) == 2
        assert get_connection_bonus(10, config.scoring) == 7
        assert get_connection_bonus(11, config.scoring) == 10
        assert get_connection_bonus(20, config.scoring) == 10

    def test_color_bonus(self, config):
        assert get_color_bonus(1, config.scoring) == 0
        assert get_color_bonus(2, config.scoring) == 3
        assert get_color_bonus(4, config.scoring) == 12
        assert get_color_bonus(5, config.scoring) == 12


class TestScoreFormula:
    """Per-pass score."""

    def test_single_group_first_chain(self, config):
        assert calculate_score(4, 1, [fake_group(4)], 1, config) == 40

    def test_single_group_second_chain(self, config):
        assert calculate_score(4, 2, [fake_group(4)], 1, config) == 320

    def test_two_groups_two_colors(self, config):
        groups = [fake_group(4), fake_group(4)]
        assert calculate_score(8, 1, groups, 2, config) == 240

    def test_bonus_is_capped(self, config):
        groups = [fake_group(11)] * 70
        erased = 11 * 70
        assert calculate_score(erased, 13, groups, 4, config) == erased * 10 * 999

    def test_group_order_does_not_matter(self, config):
        a = [fake_group(5), fake_group(7), fake_group(4)]
        b = list(reversed(a))
        assert calculate_score(16, 3, a, 3, config) == calculate_score(16, 3, b, 3, config)


class TestScoreTracker:
    """Cumulative scoring."""

    def test_apply_erasure_accumulates(self, scorer):
        scorer.apply_erasure([fake_group(4)], 1, 1, False)
        scorer.apply_erasure([fake_group(4)], 2, 1, False)
        assert scorer.score == 360
        assert scorer.max_chain == 2

    def test_all_clear_is_additive(self, scorer):
        event = scorer.apply_erasure([fake_group(4)], 1, 1, True)
        assert event.points == 40 + 2100
        assert event.is_all_clear
        assert scorer.score == 2140

    def test_restore_and_reset(self, scorer):
        scorer.restore(1234, max_chain=5)
        assert scorer.score == 1234
        assert scorer.max_chain == 5
        scorer.reset()
        assert scorer.score == 0
        assert scorer.max_chain == 0
