"""
Scoring System
==============

Chain, connection and color bonus tables and the per-pass score formula.

    score = erased * points_per_cell * clamp(chain + connection + color, 1, cap)

The tables are literal lookups from config, clamped at their last entry.
The all-clear bonus is added by the caller on top of the pass score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from renren.puyo_core.chain import Group
from renren.puyo_core.config_loader import GameConfig, ScoringConfig, get_config


def _lookup(table: Sequence[int], index: int) -> int:
    """Table value at index, clamped to the last entry."""
    if index < 0:
        return 0
    return table[min(index, len(table) - 1)]


def get_chain_bonus(chain_count: int, scoring: ScoringConfig) -> int:
    """Chain bonus for a 1-based chain number."""
    return _lookup(scoring.chain_bonus, chain_count - 1)


def get_connection_bonus(group_size: int, scoring: ScoringConfig, connect_count: int = 4) -> int:
    """Connection bonus for a single group."""
    return _lookup(scoring.connection_bonus, group_size - connect_count)


def get_color_bonus(color_count: int, scoring: ScoringConfig) -> int:
    """Color bonus for the number of distinct colors erased together."""
    return _lookup(scoring.color_bonus, color_count - 1)


def get_total_connection_bonus(
    groups: Sequence[Group],
    scoring: ScoringConfig,
    connect_count: int = 4
) -> int:
    return sum(get_connection_bonus(len(g), scoring, connect_count) for g in groups)


def calculate_score(
    erased_count: int,
    chain_count: int,
    groups: Sequence[Group],
    color_count: int,
    config: Optional[GameConfig] = None
) -> int:
    """
    Score for one erasure pass.

    Args:
        erased_count: Cells erased in this pass.
        chain_count: 1-based chain number of this pass.
        groups: Groups erased in this pass.
        color_count: Distinct colors across the groups.
        config: Game configuration. Uses default if None.

    Returns:
        Points for the pass, excluding any all-clear bonus.
    """
    if config is None:
        config = get_config()
    scoring = config.scoring
    connect_count = config.board.connect_count

    total_bonus = (
        get_chain_bonus(chain_count, scoring)
        + get_total_connection_bonus(groups, scoring, connect_count)
        + get_color_bonus(color_count, scoring)
    )

    if total_bonus == 0:
        total_bonus = 1

    total_bonus = min(total_bonus, scoring.bonus_cap)

    return erased_count * scoring.points_per_cell * total_bonus


@dataclass
class ScoreEvent:
    """Record of one scoring erasure pass."""
    points: int
    chain_count: int
    erased_count: int
    color_count: int
    is_all_clear: bool = False

    def __repr__(self) -> str:
        if self.is_all_clear:
            return f"ScoreEvent(chain={self.chain_count}, points={self.points}, all_clear)"
        return f"ScoreEvent(chain={self.chain_count}, points={self.points})"


class ScoreTracker:
    """
    Tracks cumulative score and the best chain of a session.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize score tracker.

        Args:
            config: Game configuration. Uses default if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._score: int = 0
        self._max_chain: int = 0

    @property
    def score(self) -> int:
        """Current total score."""
        return self._score

    @property
    def max_chain(self) -> int:
        """Longest chain reached this session."""
        return self._max_chain

    @property
    def all_clear_bonus(self) -> int:
        return self._config.scoring.all_clear_bonus

    def apply_erasure(
        self,
        groups: Sequence[Group],
        chain_count: int,
        color_count: int,
        is_all_clear: bool
    ) -> ScoreEvent:
        """
        Apply the score for one erasure pass and return the event.

        The all-clear bonus, when earned, is added to the pass score.
        """
        erased_count = sum(len(g) for g in groups)
        points = calculate_score(erased_count, chain_count, groups, color_count, self._config)
        if is_all_clear:
            points += self.all_clear_bonus

        self._score += points
        self._max_chain = max(self._max_chain, chain_count)
        return ScoreEvent(
            points=points,
            chain_count=chain_count,
            erased_count=erased_count,
            color_count=color_count,
            is_all_clear=is_all_clear
        )

    def restore(self, score: int, max_chain: int = 0) -> None:
        """Set totals when resuming from a snapshot or session."""
        self._score = max(0, int(score))
        self._max_chain = max(0, int(max_chain))

    def reset(self) -> None:
        """Reset score to zero."""
        self._score = 0
        self._max_chain = 0
