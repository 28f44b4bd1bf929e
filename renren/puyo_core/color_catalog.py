"""
Color Catalog
=============

Cell color codes and the configured hue set.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, Optional, Tuple

from renren.puyo_core.config_loader import GameConfig, get_config


class CellColor(IntEnum):
    """Cell content. EMPTY is stored as 0 in the field grid."""
    EMPTY = 0
    RED = 1
    BLUE = 2
    GREEN = 3
    YELLOW = 4
    PURPLE = 5

    @classmethod
    def from_name(cls, name: str) -> "CellColor":
        """Look up a color by its config name (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown color name: {name!r}") from None

    def __repr__(self) -> str:
        return f"CellColor.{self.name}"


# A color pair as held in the next queue: (pivot, satellite)
ColorPair = Tuple[CellColor, CellColor]


class ColorCatalog:
    """
    The hues available to a game, resolved from config.

    Selecting the per-game subset is done by the RNG; the catalog only
    knows the full list and how many a game uses.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        """
        Initialize catalog from game config.

        Args:
            config: GameConfig instance. If None, loads from default location.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._all = tuple(CellColor.from_name(name) for name in config.colors.all)
        if CellColor.EMPTY in self._all:
            raise ValueError("'empty' cannot be configured as a hue")

    @property
    def all_colors(self) -> Tuple[CellColor, ...]:
        """Every configured hue, in config order."""
        return self._all

    @property
    def per_game(self) -> int:
        """Number of hues a single game draws from."""
        return self._config.colors.per_game

    @property
    def default_colors(self) -> Tuple[CellColor, ...]:
        """Hue set used when none has been selected: the first per_game hues."""
        return self._all[:self.per_game]

    def validate_selection(self, colors: Iterable[CellColor]) -> Tuple[CellColor, ...]:
        """
        Check a persisted color selection against the catalog.

        Raises:
            ValueError: If a color is unknown or the selection is empty.
        """
        selection = tuple(CellColor(c) for c in colors)
        if not selection:
            raise ValueError("Color selection is empty")
        for color in selection:
            if color not in self._all:
                raise ValueError(f"{color!r} is not a configured hue")
        return selection

    def __len__(self) -> int:
        return len(self._all)

    def __repr__(self) -> str:
        names = ", ".join(c.name.lower() for c in self._all)
        return f"ColorCatalog([{names}], per_game={self.per_game})"
