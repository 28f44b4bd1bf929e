"""
Falling Piece
=============

Movement and rotation rules for the two-cell falling piece.

A piece is a pivot cell plus a satellite that orbits it. Every operation
returns a new piece, or None when the move is illegal; the input piece is
never modified.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Dict, Optional, Tuple

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.config_loader import GameConfig, get_config
from renren.puyo_core.field import Field, Position


class Rotation(IntEnum):
    """Direction of the satellite relative to the pivot."""
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3


class MoveDirection(IntEnum):
    LEFT = -1
    RIGHT = 1


class RotationDirection(IntEnum):
    CW = 1
    CCW = 3  # -1 mod 4


_SATELLITE_OFFSETS: Dict[Rotation, Tuple[int, int]] = {
    Rotation.UP: (0, -1),
    Rotation.RIGHT: (1, 0),
    Rotation.DOWN: (0, 1),
    Rotation.LEFT: (-1, 0),
}


@dataclass(frozen=True)
class FallingPiece:
    """The piece under player control."""
    pivot: Position
    pivot_color: CellColor
    satellite_color: CellColor
    rotation: Rotation = Rotation.UP

    @property
    def satellite(self) -> Position:
        """Absolute satellite position."""
        return satellite_position(self)

    def cells(self) -> Tuple[Tuple[Position, CellColor], Tuple[Position, CellColor]]:
        """(position, color) of pivot then satellite."""
        return (
            (self.pivot, self.pivot_color),
            (self.satellite, self.satellite_color),
        )

    def moved_to(self, x: int, y: int) -> "FallingPiece":
        return replace(self, pivot=Position(x, y))


def satellite_offset(rotation: Rotation) -> Position:
    dx, dy = _SATELLITE_OFFSETS[Rotation(rotation)]
    return Position(dx, dy)


def satellite_position(piece: FallingPiece) -> Position:
    offset = satellite_offset(piece.rotation)
    return Position(piece.pivot.x + offset.x, piece.pivot.y + offset.y)


def create_falling_piece(
    pivot_color: CellColor,
    satellite_color: CellColor,
    config: Optional[GameConfig] = None
) -> FallingPiece:
    """
    New piece at the spawn cell.

    The pivot starts in the hidden row with the satellite above the field;
    a satellite still above the field when the piece locks is discarded.
    """
    if config is None:
        config = get_config()
    return FallingPiece(
        pivot=Position(config.board.spawn_column, config.board.spawn_row),
        pivot_color=pivot_color,
        satellite_color=satellite_color,
        rotation=Rotation.UP,
    )


def can_place(field: Field, piece: FallingPiece) -> bool:
    """
    True if the piece fits on the field.

    The pivot must be in bounds and empty. The satellite must be in bounds
    and empty, or above the field (row < 0) in a valid column.
    """
    if not field.is_empty(piece.pivot):
        return False

    sat = satellite_position(piece)
    if sat.y < 0:
        return 0 <= sat.x < field.cols

    return field.is_empty(sat)


def _accept(field: Field, piece: FallingPiece) -> Optional[FallingPiece]:
    return piece if can_place(field, piece) else None


def move(field: Field, piece: FallingPiece, direction: MoveDirection) -> Optional[FallingPiece]:
    """Shift one column left or right."""
    dx = int(MoveDirection(direction))
    return _accept(field, piece.moved_to(piece.pivot.x + dx, piece.pivot.y))


def drop(field: Field, piece: FallingPiece) -> Optional[FallingPiece]:
    """Move down one row."""
    return _accept(field, piece.moved_to(piece.pivot.x, piece.pivot.y + 1))


def _kick(field: Field, piece: FallingPiece, rotation: Rotation) -> Tuple[int, int]:
    """
    Pivot correction for a satellite that would hit a wall, the floor, or
    an occupied cell after rotating into ``rotation``.
    """
    offset = satellite_offset(rotation)
    target = Position(piece.pivot.x + offset.x, piece.pivot.y + offset.y)

    kick_x = 0
    if target.x < 0:
        kick_x = 1
    elif target.x >= field.cols:
        kick_x = -1
    elif field.is_valid_position(target) and not field.is_empty(target):
        kick_x = -offset.x

    kick_y = 0
    if target.y >= field.rows:
        kick_y = -1
    elif offset.y > 0 and field.is_valid_position(target) and not field.is_empty(target):
        kick_y = -1

    return kick_x, kick_y


def _rotate_to(field: Field, piece: FallingPiece, rotation: Rotation) -> Optional[FallingPiece]:
    rotated = replace(piece, rotation=Rotation(rotation))
    if can_place(field, rotated):
        return rotated

    kick_x, kick_y = _kick(field, piece, rotation)
    if kick_x == 0 and kick_y == 0:
        return None

    return _accept(field, rotated.moved_to(piece.pivot.x + kick_x, piece.pivot.y + kick_y))


def rotate(field: Field, piece: FallingPiece, direction: RotationDirection) -> Optional[FallingPiece]:
    """
    Rotate a quarter turn, kicking the pivot away from walls, the floor,
    or a blocking cell when the plain rotation does not fit.
    """
    new_rotation = Rotation((piece.rotation + int(RotationDirection(direction))) % 4)
    return _rotate_to(field, piece, new_rotation)


def hard_drop(field: Field, piece: FallingPiece) -> FallingPiece:
    """Drop until landed. Returns the input piece if it cannot fall."""
    current = piece
    dropped = drop(field, current)
    while dropped is not None:
        current = dropped
        dropped = drop(field, current)
    return current


def is_landed(field: Field, piece: FallingPiece) -> bool:
    return drop(field, piece) is None


def set_column(field: Field, piece: FallingPiece, column: int) -> Optional[FallingPiece]:
    """Place the pivot directly in ``column``, keeping its row."""
    return _accept(field, piece.moved_to(column, piece.pivot.y))


def set_rotation(field: Field, piece: FallingPiece, rotation: Rotation) -> Optional[FallingPiece]:
    """Set the rotation directly, with the same kick rules as rotate()."""
    rotation = Rotation(rotation)
    if rotation == piece.rotation:
        return piece
    return _rotate_to(field, piece, rotation)
