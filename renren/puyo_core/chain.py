"""
Chain Detection
===============

Flood-fill grouping of same-colored cells and erasure eligibility.

Only visible rows are searched. The hidden buffer row contributes no cells
to any group, even when it touches a visible group of the same color.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from renren.puyo_core.color_catalog import CellColor
from renren.puyo_core.field import Field, Position

# A connected group of same-colored positions
Group = Tuple[Position, ...]


@dataclass(frozen=True)
class ErasingCell:
    """A cell about to be erased, with its color for the erase effect."""
    pos: Position
    color: CellColor


def _neighbors(pos: Position) -> Tuple[Position, ...]:
    return (
        Position(pos.x - 1, pos.y),
        Position(pos.x + 1, pos.y),
        Position(pos.x, pos.y - 1),
        Position(pos.x, pos.y + 1),
    )


def find_connected(field: Field, start: Position) -> List[Position]:
    """
    Breadth-first search for cells connected to ``start`` by color.

    Args:
        field: Field to search.
        start: Starting position.

    Returns:
        Connected positions in visit order, starting with ``start``.
        Empty if ``start`` is hidden, out of bounds, or empty.
    """
    if not field.is_visible_position(start):
        return []

    color = field.get(start)
    if color is None:
        return []

    connected: List[Position] = []
    visited: Set[Position] = {start}
    queue = deque([start])

    while queue:
        pos = queue.popleft()
        connected.append(pos)

        for neighbor in _neighbors(pos):
            if neighbor in visited or not field.is_visible_position(neighbor):
                continue
            if field.get(neighbor) != color:
                continue
            visited.add(neighbor)
            queue.append(neighbor)

    return connected


def find_erasable_groups(
    field: Field,
    connect_count: Optional[int] = None
) -> List[Group]:
    """
    Find every group large enough to erase.

    Scans visible cells row-major. A cell that has been reached by any
    search is never expanded again, so groups never overlap.

    Args:
        field: Field to search.
        connect_count: Minimum group size. Uses the board setting if None.

    Returns:
        Groups in scan order of their first member.
    """
    if connect_count is None:
        connect_count = field.board.connect_count

    visited: Set[Position] = set()
    groups: List[Group] = []

    for y in range(field.hidden_rows, field.rows):
        for x in range(field.cols):
            pos = Position(x, y)
            if pos in visited or field.is_empty(pos):
                continue

            connected = find_connected(field, pos)
            visited.update(connected)

            if len(connected) >= connect_count:
                groups.append(tuple(connected))

    return groups


def has_erasable_groups(field: Field) -> bool:
    return len(find_erasable_groups(field)) > 0


def count_colors(field: Field, groups: Sequence[Group]) -> int:
    """Number of distinct colors across all groups combined."""
    colors: Set[CellColor] = set()
    for group in groups:
        for pos in group:
            color = field.get(pos)
            if color is not None:
                colors.add(color)
    return len(colors)


def count_erased(groups: Sequence[Group]) -> int:
    """Total number of cells across all groups."""
    return sum(len(group) for group in groups)


def flatten_groups(groups: Sequence[Group]) -> List[Position]:
    return [pos for group in groups for pos in group]


def detect_erasing_cells(field: Field) -> List[ErasingCell]:
    """Cells that the next erasure pass would remove, with their colors."""
    cells: List[ErasingCell] = []
    for pos in flatten_groups(find_erasable_groups(field)):
        color = field.get(pos)
        if color is not None:
            cells.append(ErasingCell(pos=pos, color=color))
    return cells
