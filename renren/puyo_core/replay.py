"""
Replay Player
=============

Steps through a snapshot ledger, re-deriving the drop, gravity and chain
sequence between consecutive snapshots from stored data alone.

No RNG is consulted: the colors of each dropped piece are the head of the
previous snapshot's queue, and its cells are the next snapshot's dropped
positions.

Usage:
    player = ReplayPlayer(game.ledger)
    while player.step():
        if player.phase == ReplayPhase.SHOWING_ERASING:
            show(player.erasing_cells)
        draw(player.field)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence

from renren.puyo_core.chain import ErasingCell, detect_erasing_cells
from renren.puyo_core.field import Field
from renren.puyo_core.state_snapshot import GameSnapshot


class ReplayPhase(str, Enum):
    IDLE = "idle"
    SHOWING_DROP = "showing_drop"
    SHOWING_GRAVITY = "showing_gravity"
    SHOWING_ERASING = "showing_erasing"


@dataclass(frozen=True)
class ReplayFrame:
    """One displayed state while stepping from ``index`` to ``index + 1``."""
    index: int
    phase: ReplayPhase
    field: Field
    chain_count: int


def field_with_drop(previous: GameSnapshot, following: GameSnapshot) -> Field:
    """
    Field of ``previous`` with the piece that led to ``following`` written in.

    Cells above the field are skipped, as they were when the piece locked.
    """
    field = previous.field
    if not following.dropped_positions:
        return field

    colors = previous.next_queue[0]
    for pos, color in zip(following.dropped_positions, colors):
        if field.is_valid_position(pos):
            field = field.set(pos, color)
    return field


class ReplayPlayer:
    """
    Cursor over a ledger with per-phase stepping and direct navigation.

    ``step()`` walks idle -> showing_drop -> showing_gravity, then
    alternates showing_erasing / showing_gravity for each cascade, and
    returns to idle on the next snapshot.
    """

    def __init__(self, snapshots: Sequence[GameSnapshot]):
        """
        Args:
            snapshots: Ledger (or any ordered snapshot sequence) to replay.

        Raises:
            ValueError: If there are no snapshots.
        """
        self._snapshots: List[GameSnapshot] = list(snapshots)
        if not self._snapshots:
            raise ValueError("Cannot replay an empty ledger")

        self._index = 0
        self._phase = ReplayPhase.IDLE
        self._field = self._snapshots[0].field
        self._chain_count = 0
        self._erasing: List[ErasingCell] = []

    @property
    def index(self) -> int:
        """Index of the last snapshot reached."""
        return self._index

    @property
    def snapshot(self) -> GameSnapshot:
        return self._snapshots[self._index]

    @property
    def phase(self) -> ReplayPhase:
        return self._phase

    @property
    def field(self) -> Field:
        """Field to display in the current phase."""
        return self._field

    @property
    def chain_count(self) -> int:
        """Cascades shown so far in the current step."""
        return self._chain_count

    @property
    def erasing_cells(self) -> List[ErasingCell]:
        """Cells being erased while in ``showing_erasing``."""
        return list(self._erasing)

    @property
    def is_at_start(self) -> bool:
        return self._index == 0 and self._phase == ReplayPhase.IDLE

    @property
    def is_at_end(self) -> bool:
        return self._index == len(self._snapshots) - 1 and self._phase == ReplayPhase.IDLE

    def __len__(self) -> int:
        return len(self._snapshots)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self) -> bool:
        """
        Advance one display phase.

        Returns:
            False if already at the last snapshot.
        """
        if self._phase == ReplayPhase.IDLE:
            if self._index >= len(self._snapshots) - 1:
                return False
            self._chain_count = 0
            self._field = field_with_drop(self.snapshot, self._snapshots[self._index + 1])
            self._phase = ReplayPhase.SHOWING_DROP
            return True

        if self._phase == ReplayPhase.SHOWING_ERASING:
            return self.acknowledge_erasure()

        if self._phase == ReplayPhase.SHOWING_DROP:
            self._field = self._field.apply_gravity()
            self._phase = ReplayPhase.SHOWING_GRAVITY
            return True

        erasing = detect_erasing_cells(self._field)
        if erasing:
            self._erasing = erasing
            self._chain_count += 1
            self._phase = ReplayPhase.SHOWING_ERASING
        else:
            self._index += 1
            self._phase = ReplayPhase.IDLE
        return True

    def acknowledge_erasure(self) -> bool:
        """Remove the erasing cells and settle. False outside showing_erasing."""
        if self._phase != ReplayPhase.SHOWING_ERASING:
            return False

        self._field = self._field.remove_many(cell.pos for cell in self._erasing).apply_gravity()
        self._erasing = []
        self._phase = ReplayPhase.SHOWING_GRAVITY
        return True

    def next(self) -> bool:
        """Play every phase up to the next snapshot."""
        if self.is_at_end:
            return False
        start = self._index
        while self._index == start or self._phase != ReplayPhase.IDLE:
            self.step()
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to(self, index: int) -> bool:
        """
        Jump to a snapshot by index, showing its stored field.

        Returns:
            False if the index is out of range.
        """
        if not 0 <= index < len(self._snapshots):
            return False
        self._index = index
        self._phase = ReplayPhase.IDLE
        self._field = self._snapshots[index].field
        self._chain_count = 0
        self._erasing = []
        return True

    def go_to_id(self, snapshot_id: int) -> bool:
        for index, snapshot in enumerate(self._snapshots):
            if snapshot.id == snapshot_id:
                return self.go_to(index)
        return False

    def first(self) -> bool:
        return self.go_to(0)

    def previous(self) -> bool:
        if self._phase == ReplayPhase.IDLE and self._index == 0:
            return False
        # Mid-step, "previous" returns to the snapshot the step started from
        if self._phase != ReplayPhase.IDLE:
            return self.go_to(self._index)
        return self.go_to(self._index - 1)

    def last(self) -> bool:
        return self.go_to(len(self._snapshots) - 1)


def replay_fields(snapshots: Sequence[GameSnapshot]) -> Iterator[ReplayFrame]:
    """
    Yield every displayed state of a full replay from snapshot 0.

    The first frame is the idle state of snapshot 0; each step ends with
    an idle frame carrying the re-derived settled field.
    """
    player = ReplayPlayer(snapshots)
    yield ReplayFrame(player.index, player.phase, player.field, player.chain_count)
    while player.step():
        yield ReplayFrame(player.index, player.phase, player.field, player.chain_count)


def replay_settled_fields(snapshots: Sequence[GameSnapshot]) -> List[Field]:
    """Re-derived field at every snapshot, for comparing with the ledger."""
    return [frame.field for frame in replay_fields(snapshots) if frame.phase == ReplayPhase.IDLE]


def find_divergence(snapshots: Sequence[GameSnapshot]) -> Optional[int]:
    """
    Index of the first snapshot whose stored field differs from the
    re-derived one, or None if the whole ledger replays faithfully.
    """
    for index, (stored, derived) in enumerate(zip(snapshots, replay_settled_fields(snapshots))):
        if stored.field != derived:
            return index
    return None
