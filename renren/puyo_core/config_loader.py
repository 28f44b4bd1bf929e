"""
Configuration Loader
====================

Loads and validates game_config.yaml, providing typed access to all parameters.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml


@dataclass(frozen=True)
class BoardConfig:
    """Field geometry and spawn settings."""
    cols: int                          # Field width in cells
    visible_rows: int                  # Rows shown to the player
    hidden_rows: int                   # Spawn buffer rows above the visible field
    connect_count: int                 # Group size needed to erase
    spawn_column: int                  # Pivot column of a new piece
    spawn_row: int                     # Pivot row of a new piece
    game_over_columns: Tuple[int, ...]  # Top visible cells that end the game

    @property
    def rows(self) -> int:
        """Total rows including the hidden buffer."""
        return self.visible_rows + self.hidden_rows


@dataclass(frozen=True)
class ColorConfig:
    """Cell hues and per-game color selection."""
    all: Tuple[str, ...]
    per_game: int
    initial_pairs_max_colors: int


@dataclass(frozen=True)
class ScoringConfig:
    """Bonus tables and score constants."""
    chain_bonus: Tuple[int, ...]
    connection_bonus: Tuple[int, ...]
    color_bonus: Tuple[int, ...]
    bonus_cap: int
    points_per_cell: int
    all_clear_bonus: int


@dataclass(frozen=True)
class QueueConfig:
    """Next-piece queue settings."""
    next_count: int


@dataclass(frozen=True)
class TimingConfig:
    """Loop scheduling. Not part of the rules."""
    tick_interval: float
    erase_delays: Dict[str, float]
    erase_speed: str

    @property
    def erase_delay(self) -> float:
        """Delay for the configured erase animation speed."""
        return self.erase_delays[self.erase_speed]


@dataclass(frozen=True)
class SessionConfig:
    """Persisted session settings."""
    schema_version: int
    max_history_entries: int


@dataclass(frozen=True)
class GameConfig:
    """
    Complete game configuration loaded from YAML.

    All values are immutable to prevent accidental modification during runtime.
    """
    board: BoardConfig
    colors: ColorConfig
    scoring: ScoringConfig
    queue: QueueConfig
    timing: TimingConfig
    session: SessionConfig


def _parse_int_table(name: str, data: List) -> Tuple[int, ...]:
    """Parse a non-empty bonus table from YAML."""
    if not data:
        raise ValueError(f"{name} must contain at least one value")
    return tuple(int(v) for v in data)


def _validate_config(config: GameConfig) -> None:
    """Validate configuration consistency."""
    board = config.board
    if board.cols < 2 or board.visible_rows < 2:
        raise ValueError(f"Board too small: {board.cols}x{board.visible_rows}")

    if board.hidden_rows < 0:
        raise ValueError(f"hidden_rows must be >= 0, got {board.hidden_rows}")

    if not 0 <= board.spawn_column < board.cols:
        raise ValueError(f"spawn_column {board.spawn_column} outside board")

    if not 0 <= board.spawn_row < board.rows:
        raise ValueError(f"spawn_row {board.spawn_row} outside board")

    for col in board.game_over_columns:
        if not 0 <= col < board.cols:
            raise ValueError(f"game_over_columns entry {col} outside board")

    if board.connect_count < 2:
        raise ValueError(f"connect_count must be >= 2, got {board.connect_count}")

    colors = config.colors
    if len(set(colors.all)) != len(colors.all):
        raise ValueError(f"Duplicate color names: {colors.all}")

    if not 1 <= colors.per_game <= len(colors.all):
        raise ValueError(
            f"colors.per_game ({colors.per_game}) must be between 1 and "
            f"the number of colors ({len(colors.all)})"
        )

    # Only the last cell of the second pair is ever redrawn
    if colors.initial_pairs_max_colors < 3:
        raise ValueError("colors.initial_pairs_max_colors must be >= 3")

    if config.scoring.bonus_cap < 1:
        raise ValueError(f"bonus_cap must be >= 1, got {config.scoring.bonus_cap}")

    if config.queue.next_count < 2:
        raise ValueError(f"queue.next_count must be >= 2, got {config.queue.next_count}")

    if config.timing.erase_speed not in config.timing.erase_delays:
        raise ValueError(
            f"erase_speed '{config.timing.erase_speed}' not in "
            f"{sorted(config.timing.erase_delays)}"
        )


def load_config(config_path: Optional[str] = None) -> GameConfig:
    """
    Load and validate game configuration from YAML.

    Args:
        config_path: Path to game_config.yaml. If None, uses default location.

    Returns:
        Validated GameConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if config_path is None:
        config_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "game_config.yaml"
        )

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f)

    board_data = raw["board"]
    board = BoardConfig(
        cols=int(board_data["cols"]),
        visible_rows=int(board_data["visible_rows"]),
        hidden_rows=int(board_data.get("hidden_rows", 1)),
        connect_count=int(board_data.get("connect_count", 4)),
        spawn_column=int(board_data.get("spawn_column", 2)),
        spawn_row=int(board_data.get("spawn_row", 0)),
        game_over_columns=tuple(int(c) for c in board_data.get("game_over_columns", [2, 3]))
    )

    color_data = raw["colors"]
    colors = ColorConfig(
        all=tuple(str(c) for c in color_data["all"]),
        per_game=int(color_data.get("per_game", 4)),
        initial_pairs_max_colors=int(color_data.get("initial_pairs_max_colors", 3))
    )

    scoring_data = raw["scoring"]
    scoring = ScoringConfig(
        chain_bonus=_parse_int_table("chain_bonus", scoring_data["chain_bonus"]),
        connection_bonus=_parse_int_table("connection_bonus", scoring_data["connection_bonus"]),
        color_bonus=_parse_int_table("color_bonus", scoring_data["color_bonus"]),
        bonus_cap=int(scoring_data.get("bonus_cap", 999)),
        points_per_cell=int(scoring_data.get("points_per_cell", 10)),
        all_clear_bonus=int(scoring_data.get("all_clear_bonus", 2100))
    )

    queue_data = raw.get("queue", {})
    queue = QueueConfig(
        next_count=int(queue_data.get("next_count", 2))
    )

    timing_data = raw.get("timing", {})
    timing = TimingConfig(
        tick_interval=float(timing_data.get("tick_interval", 0.1)),
        erase_delays={
            str(k): float(v)
            for k, v in timing_data.get(
                "erase_delays", {"short": 0.0, "middle": 0.3, "long": 0.6}
            ).items()
        },
        erase_speed=str(timing_data.get("erase_speed", "middle"))
    )

    session_data = raw.get("session", {})
    session = SessionConfig(
        schema_version=int(session_data.get("schema_version", 1)),
        max_history_entries=int(session_data.get("max_history_entries", 100))
    )

    config = GameConfig(
        board=board,
        colors=colors,
        scoring=scoring,
        queue=queue,
        timing=timing,
        session=session
    )

    _validate_config(config)
    return config


def compute_config_hash(config: GameConfig) -> str:
    """
    Hash every rule-affecting parameter.

    Timing is excluded: it changes pacing, never outcomes.
    """
    hash_data = {
        "board": {
            "cols": config.board.cols,
            "visible_rows": config.board.visible_rows,
            "hidden_rows": config.board.hidden_rows,
            "connect_count": config.board.connect_count,
            "spawn": [config.board.spawn_column, config.board.spawn_row],
            "game_over_columns": list(config.board.game_over_columns),
        },
        "colors": {
            "all": list(config.colors.all),
            "per_game": config.colors.per_game,
            "initial_pairs_max_colors": config.colors.initial_pairs_max_colors,
        },
        "scoring": {
            "chain_bonus": list(config.scoring.chain_bonus),
            "connection_bonus": list(config.scoring.connection_bonus),
            "color_bonus": list(config.scoring.color_bonus),
            "bonus_cap": config.scoring.bonus_cap,
            "points_per_cell": config.scoring.points_per_cell,
            "all_clear_bonus": config.scoring.all_clear_bonus,
        },
        "queue": {
            "next_count": config.queue.next_count,
        },
    }
    return hashlib.md5(json.dumps(hash_data, sort_keys=True).encode()).hexdigest()[:8]


# Module-level singleton for convenience
_cached_config: Optional[GameConfig] = None


def get_config() -> GameConfig:
    """Get the cached game configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> GameConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
