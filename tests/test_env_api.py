"""
Tests for Gymnasium environment API.
"""

import pytest
import numpy as np

from renren.puyo_core.config_loader import load_config
from renren.puyo_core.env_gym import PuyoEnv, build_placements
from renren.puyo_core.piece import Rotation


@pytest.fixture
def config():
    return load_config()


@pytest.fixture
def env():
    env = PuyoEnv()
    yield env
    env.close()


class TestPuyoEnv:
    """Test single environment API."""

    def test_reset_returns_obs_and_info(self, env):
        """Reset should return (observation, info) tuple."""
        result = env.reset(seed=42)

        assert isinstance(result, tuple)
        assert len(result) == 2

        obs, info = result
        assert isinstance(obs, dict)
        assert isinstance(info, dict)

    def test_observation_structure(self, env, config):
        """Observation should have expected keys and shapes."""
        obs, _ = env.reset(seed=42)

        assert env.observation_space.contains(obs)
        assert obs["field"].shape == (config.board.rows, config.board.cols)
        assert obs["next_queue"].shape == (config.queue.next_count, 2)
        assert np.all(obs["field"] == 0)
        assert np.all(obs["current_pair"] > 0)

    def test_action_space(self, env):
        assert env.action_space.n == 22
        assert len(set(env.placements)) == 22
        assert (0, Rotation.LEFT) not in env.placements
        assert (5, Rotation.RIGHT) not in env.placements

    def test_step_returns_five_values(self, env):
        """Step should return (obs, reward, terminated, truncated, info)."""
        env.reset(seed=42)

        result = env.step(0)

        assert isinstance(result, tuple)
        assert len(result) == 5

        obs, reward, terminated, truncated, info = result
        assert isinstance(obs, dict)
        assert reward == 0.0
        assert not terminated
        assert not truncated
        assert info["drop_count"] == 1
        assert int(np.count_nonzero(obs["field"])) == 2

    def test_invalid_action_raises(self, env):
        env.reset(seed=42)
        with pytest.raises(ValueError):
            env.step(22)
        with pytest.raises(ValueError):
            env.step(-1)

    def test_info_contents(self, env):
        _, info = env.reset(seed=42)
        for key in ("score", "delta_score", "chain_count", "max_chain_count",
                    "drop_count", "phase", "action_mask"):
            assert key in info
        assert info["phase"] == "falling"
        assert info["action_mask"].shape == (22,)
        assert info["action_mask"].all()

    def test_render_ansi(self, config):
        env = PuyoEnv(config=config, render_mode="ansi")
        env.reset(seed=1)
        text = env.render()
        assert isinstance(text, str)
        assert "score=0" in text
        env.close()

    def test_render_headless(self, env):
        env.reset(seed=1)
        assert env.render() is None


class TestDeterminism:
    """Seeded resets."""

    def test_same_seed_same_trajectory(self, config):
        a = PuyoEnv(config=config)
        b = PuyoEnv(config=config)
        obs_a, _ = a.reset(seed=7)
        obs_b, _ = b.reset(seed=7)
        for key in obs_a:
            np.testing.assert_array_equal(obs_a[key], obs_b[key])

        for action in [0, 5, 9, 13, 21, 3, 7, 11]:
            obs_a, *_ = a.step(action)
            obs_b, *_ = b.step(action)
            np.testing.assert_array_equal(obs_a["field"], obs_b["field"])
            np.testing.assert_array_equal(obs_a["next_queue"], obs_b["next_queue"])
        assert a.game.rng_state == b.game.rng_state


class TestTermination:
    """Episodes end when the spawn area fills."""

    def test_center_stacking_terminates(self, env):
        env.reset(seed=3)
        action = env.placements.index((2, Rotation.UP))

        terminated = False
        for _ in range(500):
            _, _, terminated, _, info = env.step(action)
            if terminated:
                break
        assert terminated
        assert info["phase"] == "gameover"

        _, reward, terminated, _, info = env.step(action)
        assert terminated
        assert reward == 0.0
        assert info["delta_score"] == 0
        assert not info["action_mask"].any()


def test_build_placements_narrow_field():
    assert len(build_placements(2)) == 2 * 4 - 2
