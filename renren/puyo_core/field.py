"""
Field
=====

Fixed-size cell grid with gravity compaction.

Row 0 is the top of the grid. Rows below ``hidden_rows`` are visible;
the rows above them are a spawn buffer that never takes part in
connectivity. Every transform returns a new Field, so snapshots taken
before a transform stay valid.
"""

from __future__ import annotations

from typing import Iterable, List, NamedTuple, Optional, Sequence

import numpy as np

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import BoardConfig, GameConfig, get_config


class Position(NamedTuple):
    """Cell coordinate. x is the column, y is the row (0 = top)."""
    x: int
    y: int


class Field:
    """
    Immutable-by-convention view over an (rows, cols) int8 grid.

    Mutating methods never touch ``self``; they return a modified copy.
    """

    __slots__ = ("_board", "_cells")

    def __init__(self, cells: np.ndarray, board: BoardConfig):
        if cells.shape != (board.rows, board.cols):
            raise ValueError(
                f"Field shape {cells.shape} does not match board "
                f"({board.rows}, {board.cols})"
            )
        self._board = board
        self._cells = cells

    @classmethod
    def create_empty(cls, config: Optional[GameConfig] = None) -> "Field":
        """Create an empty field for the configured board."""
        if config is None:
            config = get_config()
        board = config.board
        return cls(np.zeros((board.rows, board.cols), dtype=np.int8), board)

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[int]],
        config: Optional[GameConfig] = None
    ) -> "Field":
        """
        Build a field from nested row lists of color codes (0 = empty).

        Raises:
            ValueError: If the shape or a color code is invalid.
        """
        if config is None:
            config = get_config()
        codes = np.asarray(rows)
        if codes.dtype.kind not in "iu":
            raise ValueError(f"Field rows must hold integer color codes, got {codes.dtype}")
        valid = set(int(c) for c in CellColor)
        for code in np.unique(codes):
            if int(code) not in valid:
                raise ValueError(f"Invalid color code in field: {int(code)}")
        return cls(codes.astype(np.int8), config.board)

    def to_rows(self) -> List[List[int]]:
        """Nested row lists of color codes, for JSON persistence."""
        return self._cells.tolist()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def board(self) -> BoardConfig:
        return self._board

    @property
    def cols(self) -> int:
        return self._board.cols

    @property
    def rows(self) -> int:
        return self._board.rows

    @property
    def hidden_rows(self) -> int:
        return self._board.hidden_rows

    @property
    def cells(self) -> np.ndarray:
        """Read-only view of the grid."""
        view = self._cells.view()
        view.flags.writeable = False
        return view

    def is_valid_position(self, pos: Position) -> bool:
        """True if pos lies inside the grid (hidden rows included)."""
        return 0 <= pos.x < self.cols and 0 <= pos.y < self.rows

    def is_visible_position(self, pos: Position) -> bool:
        """True if pos lies inside the visible part of the grid."""
        return self.is_valid_position(pos) and pos.y >= self.hidden_rows

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, pos: Position) -> Optional[CellColor]:
        """Color at pos, or None if pos is empty or out of bounds."""
        if not self.is_valid_position(pos):
            return None
        code = int(self._cells[pos.y, pos.x])
        if code == CellColor.EMPTY:
            return None
        return CellColor(code)

    def is_empty(self, pos: Position) -> bool:
        """True if pos is in bounds and holds no cell."""
        if not self.is_valid_position(pos):
            return False
        return self._cells[pos.y, pos.x] == CellColor.EMPTY

    def has_floating_cells(self) -> bool:
        """True if any column has an empty cell strictly above a filled one."""
        filled = self._cells != CellColor.EMPTY
        for x in range(self.cols):
            column = filled[:, x]
            if not column.any():
                continue
            top = int(np.argmax(column))
            if not column[top:].all():
                return True
        return False

    def is_game_over_condition(self) -> bool:
        """True if any configured top visible cell is occupied."""
        row = self.hidden_rows
        return any(
            self._cells[row, col] != CellColor.EMPTY
            for col in self._board.game_over_columns
        )

    def is_empty_field(self) -> bool:
        return not self._cells.any()

    def count_filled(self) -> int:
        return int(np.count_nonzero(self._cells))

    # ------------------------------------------------------------------
    # Transforms (copy-on-write)
    # ------------------------------------------------------------------

    def clone(self) -> "Field":
        return Field(self._cells.copy(), self._board)

    def set(self, pos: Position, color: CellColor) -> "Field":
        """
        Place a cell.

        Returns a copy with the cell written; the copy is unchanged if pos
        is out of bounds or already occupied.
        """
        new_field = self.clone()
        if self.is_empty(pos):
            new_field._cells[pos.y, pos.x] = int(color)
        return new_field

    def remove_many(self, positions: Iterable[Position]) -> "Field":
        """Clear every in-bounds position in ``positions``."""
        new_field = self.clone()
        for pos in positions:
            if self.is_valid_position(pos):
                new_field._cells[pos.y, pos.x] = CellColor.EMPTY
        return new_field

    def apply_gravity(self) -> "Field":
        """
        Drop every cell to the bottom of its column.

        Column order is preserved; only gaps are removed.
        """
        new_cells = np.zeros_like(self._cells)
        for x in range(self.cols):
            column = self._cells[:, x]
            stacked = column[column != CellColor.EMPTY]
            if stacked.size:
                new_cells[self.rows - stacked.size:, x] = stacked
        return Field(new_cells, self._board)

    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return np.array_equal(self._cells, other._cells)

    __hash__ = None

    def __repr__(self) -> str:
        return f"Field({self.cols}x{self.rows}, filled={self.count_filled()})"

    def __str__(self) -> str:
        glyphs = {int(c): c.name[0] if c else "." for c in CellColor}
        lines = []
        for y in range(self.rows):
            row = "".join(glyphs[int(code)] for code in self._cells[y])
            if y < self.hidden_rows:
                row += "  (hidden)"
            lines.append(row)
        return "\n".join(lines)
