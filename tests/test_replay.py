"""
Tests for the replay player and replay fidelity.
"""

import random
from dataclasses import replace

import pytest

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import load_config
from renren.puyo_core.field import Field, Position
from renren.puyo_core.game import PuyoGame
from renren.puyo_core.piece import Rotation
from renren.puyo_core.replay import (
    ReplayPhase,
    ReplayPlayer,
    find_divergence,
    replay_fields,
    replay_settled_fields,
)
from renren.puyo_core.state_snapshot import SnapshotLedger

GLYPHS = {".": 0, "R": 1, "B": 2, "G": 3, "Y": 4, "P": 5}
R, B, G, Y = CellColor.RED, CellColor.BLUE, CellColor.GREEN, CellColor.YELLOW


@pytest.fixture
def config():
    return load_config()


def mixed_seed(k):
    source = random.Random(k)
    return tuple(source.getrandbits(32) for _ in range(4))


def make_field(config, *bottom_rows):
    rows = [[0] * config.board.cols for _ in range(config.board.rows)]
    start = config.board.rows - len(bottom_rows)
    for i, line in enumerate(bottom_rows):
        rows[start + i] = [GLYPHS[ch] for ch in line]
    return Field.from_rows(rows, config)


def random_game(config, seed_index, drops):
    """Game played with seeded random placements until ``drops`` or game over."""
    chooser = random.Random(seed_index)
    game = PuyoGame(config=config, seed=mixed_seed(seed_index))
    game.start()
    for _ in range(drops):
        if game.is_over:
            break
        game.set_rotation(Rotation(chooser.randrange(4)))
        game.set_column(chooser.randrange(6))
        game.hard_drop()
        game.run_until_input()
    return game


@pytest.fixture
def two_chain_game(config):
    field = make_field(
        config,
        "..B...",
        "RRRBBB",
    )
    ledger = SnapshotLedger()
    ledger.capture(field, [(R, G), (Y, Y)], 0, 0, mixed_seed(5), selected_colors=(R, B, G, Y))
    game = PuyoGame(config=config, seed=mixed_seed(5))
    game.resume(ledger)
    game.set_column(1)
    game.hard_drop()
    game.run_until_input()
    return game


class TestFidelity:
    """Replaying stored data reproduces the observed fields."""

    @pytest.mark.parametrize("seed_index", [1, 2, 3, 4, 5])
    def test_settled_fields_match_ledger(self, config, seed_index):
        game = random_game(config, seed_index, 60)
        fields = replay_settled_fields(game.ledger)
        assert len(fields) == len(game.ledger)
        for derived, snapshot in zip(fields, game.ledger):
            assert derived == snapshot.field
        assert find_divergence(game.ledger) is None

    def test_replay_draws_no_rng(self, config):
        game = random_game(config, 7, 30)
        state = game.rng_state
        list(replay_fields(game.ledger))
        assert game.rng_state == state

    def test_divergence_is_reported(self, config):
        game = random_game(config, 8, 10)
        snapshots = list(game.ledger)
        tampered = snapshots[3].field.set(Position(0, 1), CellColor.PURPLE)
        snapshots[3] = replace(snapshots[3], field=tampered)
        assert find_divergence(snapshots) == 3

    def test_empty_ledger_rejected(self):
        with pytest.raises(ValueError):
            ReplayPlayer([])


class TestStepping:
    """Phase-by-phase stepping of one drop."""

    def test_two_chain_step_sequence(self, two_chain_game):
        player = ReplayPlayer(two_chain_game.ledger)
        assert player.is_at_start

        assert player.step()
        assert player.phase == ReplayPhase.SHOWING_DROP
        assert player.field.get(Position(1, 11)) == R
        assert player.field.get(Position(1, 10)) == G

        assert player.step()
        assert player.phase == ReplayPhase.SHOWING_GRAVITY

        assert player.step()
        assert player.phase == ReplayPhase.SHOWING_ERASING
        assert player.chain_count == 1
        assert {cell.color for cell in player.erasing_cells} == {R}

        assert player.step()
        assert player.phase == ReplayPhase.SHOWING_GRAVITY
        assert player.step()
        assert player.phase == ReplayPhase.SHOWING_ERASING
        assert player.chain_count == 2

        assert player.acknowledge_erasure()
        assert player.step()
        assert player.phase == ReplayPhase.IDLE
        assert player.index == 1
        assert player.field == two_chain_game.ledger[1].field
        assert player.is_at_end
        assert not player.step()

    def test_acknowledge_outside_erasing_is_rejected(self, two_chain_game):
        player = ReplayPlayer(two_chain_game.ledger)
        assert not player.acknowledge_erasure()


class TestNavigation:
    """first / previous / next / last."""

    def test_navigation(self, config):
        game = random_game(config, 3, 8)
        player = ReplayPlayer(game.ledger)
        last = len(game.ledger) - 1

        assert not player.previous()
        assert player.next()
        assert player.index == 1
        assert player.field == game.ledger[1].field

        assert player.last()
        assert player.index == last
        assert not player.next()

        assert player.previous()
        assert player.index == last - 1
        assert player.first()
        assert player.is_at_start

    def test_previous_mid_step_returns_to_step_start(self, config):
        game = random_game(config, 3, 4)
        player = ReplayPlayer(game.ledger)
        player.go_to(2)
        player.step()
        assert player.previous()
        assert player.index == 2
        assert player.phase == ReplayPhase.IDLE

    def test_go_to_id_and_bounds(self, config):
        game = random_game(config, 3, 4)
        player = ReplayPlayer(game.ledger)
        assert player.go_to_id(game.ledger[2].id)
        assert player.index == 2
        assert not player.go_to_id(999)
        assert not player.go_to(-1)
        assert not player.go_to(len(game.ledger))
