"""
RNG - Seeded xorshift128+
=========================

Deterministic color generator for the next-piece queue.

The 128-bit state is exposed as four unsigned 32-bit words
``(s0_hi, s0_lo, s1_hi, s1_lo)``. Saving and restoring those four words is
the only thing the snapshot ledger needs to reproduce every future draw.
"""

from __future__ import annotations

import random
from typing import List, Optional, Sequence, Tuple

from renren.puyo_core.color_catalog import CellColor, ColorCatalog, ColorPair
from renren.puyo_core.config_loader import GameConfig, get_config

# Four unsigned 32-bit words
RngState = Tuple[int, int, int, int]

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF

# 2**-32 and 2**-52
_HI_SCALE = 2.3283064365386963e-10
_LO_SCALE = 2.220446049250313e-16


def generate_seed() -> RngState:
    """Draw a fresh seed from a non-deterministic source."""
    source = random.SystemRandom()
    while True:
        seed = tuple(source.getrandbits(32) for _ in range(4))
        if any(seed):
            return seed


def _validate_state(state: Sequence[int]) -> RngState:
    if len(state) != 4:
        raise ValueError(f"RNG state must have 4 words, got {len(state)}")
    words = tuple(int(w) for w in state)
    for word in words:
        if not 0 <= word <= _MASK32:
            raise ValueError(f"RNG state word out of 32-bit range: {word}")
    if not any(words):
        raise ValueError("RNG state must not be all zero")
    return words


class PuyoRng:
    """
    xorshift128+ generator with color helpers.

    One instance is owned by a game; nothing in the engine draws from a
    global generator.
    """

    def __init__(
        self,
        seed: Optional[Sequence[int]] = None,
        colors: Optional[Sequence[CellColor]] = None,
        config: Optional[GameConfig] = None
    ):
        """
        Initialize generator.

        Args:
            seed: Four 32-bit words. Random if None.
            colors: Active hue set for next_color(). Uses the catalog's
                default hues if None.
            config: Game configuration. Uses default if None.

        Raises:
            ValueError: If the seed is malformed or all zero.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._catalog = ColorCatalog(config)

        if seed is None:
            seed = generate_seed()
        self._s0 = 0
        self._s1 = 0
        self.set_state(seed)

        self._colors: Tuple[CellColor, ...] = tuple(colors) if colors else self._catalog.default_colors

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_state(self) -> RngState:
        """Current state as four 32-bit words."""
        return (
            (self._s0 >> 32) & _MASK32,
            self._s0 & _MASK32,
            (self._s1 >> 32) & _MASK32,
            self._s1 & _MASK32,
        )

    def set_state(self, state: Sequence[int]) -> None:
        """
        Restore a state previously returned by get_state().

        Raises:
            ValueError: If the state is malformed or all zero.
        """
        s0_hi, s0_lo, s1_hi, s1_lo = _validate_state(state)
        self._s0 = (s0_hi << 32) | s0_lo
        self._s1 = (s1_hi << 32) | s1_lo

    @property
    def colors(self) -> Tuple[CellColor, ...]:
        """Hues used by next_color()."""
        return self._colors

    def set_colors(self, colors: Sequence[CellColor]) -> None:
        self._colors = self._catalog.validate_selection(colors)

    # ------------------------------------------------------------------
    # Raw draws
    # ------------------------------------------------------------------

    def next_uint64(self) -> int:
        """Advance the generator and return its 64-bit output."""
        s1 = self._s0
        s0 = self._s1
        result = (s0 + s1) & _MASK64

        self._s0 = s0
        s1 ^= (s1 << 23) & _MASK64
        self._s1 = s1 ^ s0 ^ (s1 >> 17) ^ (s0 >> 26)
        return result

    def random(self) -> float:
        """Float in [0, 1)."""
        value = self.next_uint64()
        return (value >> 32) * _HI_SCALE + ((value & _MASK32) >> 12) * _LO_SCALE

    def next_int(self, max_value: int) -> int:
        """Integer in [0, max_value)."""
        if max_value <= 0:
            raise ValueError(f"max_value must be positive, got {max_value}")
        return min(int(self.random() * max_value), max_value - 1)

    # ------------------------------------------------------------------
    # Colors
    # ------------------------------------------------------------------

    def next_color(self) -> CellColor:
        """Uniform draw from the active hue set."""
        return self._colors[self.next_int(len(self._colors))]

    def next_color_from(self, colors: Sequence[CellColor]) -> CellColor:
        """Uniform draw from an explicit subset."""
        if not colors:
            raise ValueError("Cannot draw from an empty color set")
        return colors[self.next_int(len(colors))]

    def next_puyo_pair(self) -> ColorPair:
        """Two independent draws: (pivot, satellite)."""
        pivot = self.next_color()
        satellite = self.next_color()
        return (pivot, satellite)

    def generate_initial_pairs(self) -> List[ColorPair]:
        """
        Draw the first two pairs of a game.

        The four cells use at most ``initial_pairs_max_colors`` distinct
        colors. When the last cell would add one more, it is redrawn from
        the colors of the first three cells.
        """
        max_colors = self._config.colors.initial_pairs_max_colors
        first = self.next_puyo_pair()
        second = self.next_puyo_pair()

        cells = [first[0], first[1], second[0], second[1]]
        if len(set(cells)) > max_colors:
            used: List[CellColor] = []
            for color in cells[:3]:
                if color not in used:
                    used.append(color)
            second = (second[0], self.next_color_from(used))

        return [first, second]

    def select_colors(self, count: Optional[int] = None) -> Tuple[CellColor, ...]:
        """
        Choose the hues for a game and make them the active set.

        Args:
            count: Number of hues. Uses the config value if None.

        Returns:
            Chosen hues in catalog order.
        """
        if count is None:
            count = self._catalog.per_game

        pool = list(self._catalog.all_colors)
        for i in range(len(pool) - 1, 0, -1):
            j = self.next_int(i + 1)
            pool[i], pool[j] = pool[j], pool[i]

        chosen = set(pool[:count])
        self._colors = tuple(c for c in self._catalog.all_colors if c in chosen)
        return self._colors

    def __repr__(self) -> str:
        return f"PuyoRng(state={self.get_state()})"
