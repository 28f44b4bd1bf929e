"""
State Snapshot
==============

Point-in-time captures of a game and the ledger that orders them.

A snapshot is taken once at game start and then every time a dropped
piece has fully resolved, right before the next piece is drawn. Its field
is the settled field, the head of its queue is the piece about to spawn,
and its RNG state is the one from before the refill draw. The positions
of the piece that led to it are kept so a replay can re-derive the drop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from renren.puyo_core.color_catalog import CellColor, ColorPair
from renren.puyo_core.config_loader import GameConfig, get_config
from renren.puyo_core.field import Field, Position
from renren.puyo_core.rng import RngState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameSnapshot:
    """
    Immutable capture of everything needed to resume or replay.

    Fields are never mutated after capture; Field transforms are
    copy-on-write so holding a reference is safe.
    """
    id: int
    field: Field
    next_queue: Tuple[ColorPair, ...]
    score: int
    chain_count: int
    rng_state: RngState
    dropped_positions: Tuple[Position, ...] = ()
    selected_colors: Tuple[CellColor, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        return {
            "id": self.id,
            "field": self.field.to_rows(),
            "next_queue": [[int(p), int(s)] for p, s in self.next_queue],
            "score": self.score,
            "chain_count": self.chain_count,
            "rng_state": list(self.rng_state),
            "dropped_positions": [[p.x, p.y] for p in self.dropped_positions],
            "selected_colors": [int(c) for c in self.selected_colors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: Optional[GameConfig] = None) -> "GameSnapshot":
        """
        Rebuild a snapshot from to_dict() output.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a value is malformed.
        """
        if config is None:
            config = get_config()

        next_queue = tuple((_hue(pivot), _hue(satellite)) for pivot, satellite in data["next_queue"])
        if not next_queue:
            raise ValueError(f"Snapshot {data.get('id')} has an empty next queue")

        rng_state = tuple(int(w) for w in data["rng_state"])
        if len(rng_state) != 4:
            raise ValueError(f"Snapshot {data.get('id')} has a malformed RNG state")

        return cls(
            id=int(data["id"]),
            field=Field.from_rows(data["field"], config),
            next_queue=next_queue,
            score=int(data["score"]),
            chain_count=int(data["chain_count"]),
            rng_state=rng_state,
            dropped_positions=tuple(Position(int(x), int(y)) for x, y in data["dropped_positions"]),
            selected_colors=tuple(_hue(c) for c in data.get("selected_colors", [])),
        )


def _hue(code: int) -> CellColor:
    """A stored piece or palette color; EMPTY is never one."""
    color = CellColor(code)
    if color == CellColor.EMPTY:
        raise ValueError("EMPTY is not a piece color")
    return color


class SnapshotLedger:
    """
    Ordered, append-only list of snapshots for one session.

    The only removal is truncation on rewind.
    """

    def __init__(self, snapshots: Optional[Sequence[GameSnapshot]] = None):
        self._snapshots: List[GameSnapshot] = list(snapshots or [])
        ids = [s.id for s in self._snapshots]
        if ids != sorted(set(ids)):
            raise ValueError(f"Snapshot ids must be unique and increasing: {ids}")
        self._next_id = ids[-1] + 1 if ids else 0

    @property
    def next_id(self) -> int:
        """Id the next captured snapshot will get."""
        return self._next_id

    @property
    def latest(self) -> Optional[GameSnapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def capture(
        self,
        field: Field,
        next_queue: Sequence[ColorPair],
        score: int,
        chain_count: int,
        rng_state: RngState,
        dropped_positions: Sequence[Position] = (),
        selected_colors: Sequence[CellColor] = ()
    ) -> GameSnapshot:
        """Append a snapshot with the next id and return it."""
        snapshot = GameSnapshot(
            id=self._next_id,
            field=field,
            next_queue=tuple(tuple(pair) for pair in next_queue),
            score=score,
            chain_count=chain_count,
            rng_state=tuple(rng_state),
            dropped_positions=tuple(dropped_positions),
            selected_colors=tuple(selected_colors),
        )
        self._snapshots.append(snapshot)
        self._next_id += 1
        logger.debug("Captured snapshot %d (score=%d)", snapshot.id, score)
        return snapshot

    def get(self, snapshot_id: int) -> Optional[GameSnapshot]:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def truncate_to(self, snapshot_id: int) -> Optional[GameSnapshot]:
        """
        Drop every snapshot after ``snapshot_id``.

        Returns:
            The snapshot with that id, or None (ledger untouched) if absent.
        """
        for index, snapshot in enumerate(self._snapshots):
            if snapshot.id == snapshot_id:
                del self._snapshots[index + 1:]
                self._next_id = snapshot_id + 1
                return snapshot
        return None

    def clear(self) -> None:
        self._snapshots.clear()
        self._next_id = 0

    def to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self._snapshots]

    @classmethod
    def from_list(cls, data: Sequence[Dict[str, Any]], config: Optional[GameConfig] = None) -> "SnapshotLedger":
        return cls([GameSnapshot.from_dict(item, config) for item in data])

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[GameSnapshot]:
        return iter(self._snapshots)

    def __getitem__(self, index: int) -> GameSnapshot:
        return self._snapshots[index]
