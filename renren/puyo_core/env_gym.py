"""
Gymnasium Environment Wrapper
=============================

Provides a standard Gymnasium interface to the puzzle engine.
One step places one piece; chains resolve inside the step.
Reward is always 0.0 - agents compute their own from info.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

import gymnasium as gym
from gymnasium import spaces

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import GameConfig, load_config
from renren.puyo_core.field import Position
from renren.puyo_core.game import GamePhase, PuyoGame
from renren.puyo_core.piece import Rotation, can_place, satellite_offset


def build_placements(cols: int) -> List[Tuple[int, Rotation]]:
    """
    Every (pivot column, rotation) whose satellite stays inside the walls.

    On a 6-wide field this is 6 * 4 - 2 = 22 placements.
    """
    placements = []
    for column in range(cols):
        for rotation in Rotation:
            sat_x = column + satellite_offset(rotation).x
            if 0 <= sat_x < cols:
                placements.append((column, rotation))
    return placements


class PuyoEnv(gym.Env):
    """
    Falling-pair chain puzzle as a Gymnasium environment.

    Action Space:
        Discrete(len(placements)), an index into ``placements``: the
        pivot column and rotation to hard-drop the current piece with.

    Observation Space:
        Dict with the field grid, current pair, next queue, score and
        last chain count.

    Reward:
        Always 0.0. Compute your own reward from the info dict.

    Info:
        Contains score, delta_score, chain_count, max_chain_count,
        drop_count, phase and action_mask.
    """

    metadata = {
        "render_modes": ["ansi"],
        "render_fps": 10,
    }

    def __init__(
        self,
        config_path: Optional[str] = None,
        render_mode: Optional[str] = None,
        config: Optional[GameConfig] = None,
    ):
        """
        Initialize environment.

        Args:
            config_path: Path to game_config.yaml. Uses default if None.
            render_mode: "ansi" for a text board, None for headless.
            config: Already-loaded configuration; overrides config_path.
        """
        super().__init__()

        self._config = config if config is not None else load_config(config_path)
        self.render_mode = render_mode

        self._game = PuyoGame(config=self._config, seed=(1, 0, 0, 0))
        self.placements = build_placements(self._config.board.cols)

        self.action_space = spaces.Discrete(len(self.placements))
        self.observation_space = self._build_observation_space()

    def _build_observation_space(self) -> spaces.Dict:
        """Build the observation space definition."""
        board = self._config.board
        max_color = len(CellColor) - 1

        return spaces.Dict({
            "field": spaces.Box(low=0, high=max_color, shape=(board.rows, board.cols), dtype=np.int8),
            "current_pair": spaces.Box(low=0, high=max_color, shape=(2,), dtype=np.int8),
            "next_queue": spaces.Box(
                low=0, high=max_color, shape=(self._config.queue.next_count, 2), dtype=np.int8
            ),
            "score": spaces.Box(low=0, high=np.iinfo(np.int64).max, shape=(), dtype=np.int64),
            "chain_count": spaces.Box(low=0, high=np.iinfo(np.int32).max, shape=(), dtype=np.int32),
        })

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Tuple[Dict[str, np.ndarray], Dict[str, Any]]:
        """
        Reset the environment.

        Args:
            seed: Random seed for reproducibility.
            options: Additional options (unused).

        Returns:
            (observation, info) tuple.
        """
        super().reset(seed=seed)

        words = self.np_random.integers(1, 2**32, size=4, dtype=np.uint64)
        self._game.restart(tuple(int(w) for w in words))
        self._game.start()

        info = self._build_info(delta_score=0)
        return self._get_obs(), info

    def step(
        self,
        action: Union[int, np.integer, np.ndarray]
    ) -> Tuple[Dict[str, np.ndarray], float, bool, bool, Dict[str, Any]]:
        """
        Place the current piece.

        Args:
            action: Index into ``placements``. A placement the field does
                not allow is approximated: the rotation and column are
                applied as far as legal, then the piece is hard-dropped.

        Returns:
            (observation, reward, terminated, truncated, info) tuple.
            Reward is always 0.0.
        """
        if isinstance(action, np.ndarray):
            action = action.item()
        action = int(action)
        if not 0 <= action < len(self.placements):
            raise ValueError(f"Action {action} outside Discrete({len(self.placements)})")

        score_before = self._game.score
        if self._game.phase == GamePhase.FALLING:
            column, rotation = self.placements[action]
            self._game.set_rotation(rotation)
            self._game.set_column(column)
            self._game.hard_drop()
            self._game.run_until_input()

        info = self._build_info(delta_score=self._game.score - score_before)
        return self._get_obs(), 0.0, self._game.is_over, False, info

    def action_mask(self) -> np.ndarray:
        """1 for placements that fit at the current piece's row."""
        mask = np.zeros(len(self.placements), dtype=np.int8)
        piece = self._game.falling_piece
        if piece is None:
            return mask

        field = self._game.field
        for index, (column, rotation) in enumerate(self.placements):
            candidate = replace(piece, pivot=Position(column, piece.pivot.y), rotation=rotation)
            if can_place(field, candidate):
                mask[index] = 1
        return mask

    def _get_obs(self) -> Dict[str, np.ndarray]:
        current = np.zeros(2, dtype=np.int8)
        piece = self._game.falling_piece
        if piece is not None:
            current[:] = (int(piece.pivot_color), int(piece.satellite_color))

        queue = np.zeros((self._config.queue.next_count, 2), dtype=np.int8)
        for i, (pivot, satellite) in enumerate(self._game.next_queue[:len(queue)]):
            queue[i] = (int(pivot), int(satellite))

        return {
            "field": self._game.field.cells.astype(np.int8),
            "current_pair": current,
            "next_queue": queue,
            "score": np.array(self._game.score, dtype=np.int64),
            "chain_count": np.array(self._game.chain_count, dtype=np.int32),
        }

    def _build_info(self, delta_score: int) -> Dict[str, Any]:
        info = self._game.get_info()
        info["delta_score"] = delta_score
        info["action_mask"] = self.action_mask()
        return info

    def render(self) -> Optional[str]:
        """
        Render the current game state.

        Returns:
            Text board if render_mode is "ansi", None otherwise.
        """
        if self.render_mode != "ansi":
            return None
        return f"{self._game.field}\nscore={self._game.score} chain={self._game.chain_count}"

    def close(self) -> None:
        """Nothing to release."""

    @property
    def game(self) -> PuyoGame:
        """Access to underlying game (for debugging/tools)."""
        return self._game

    @property
    def config(self) -> GameConfig:
        """Game configuration."""
        return self._config
