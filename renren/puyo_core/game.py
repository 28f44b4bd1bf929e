"""
Core Game
=========

Phase state machine combining the field, piece controller, chain
detection, scoring, RNG and snapshot ledger.

    ready -> falling -> dropping -> chaining -> erasing -> (chaining | falling | gameover)

Commands that are illegal in the current phase or position are rejected
by returning False; they never raise and never change state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from renren.puyo_core.chain import (
    ErasingCell,
    Group,
    count_colors,
    find_erasable_groups,
    flatten_groups,
)
from renren.puyo_core.color_catalog import CellColor, ColorPair
from renren.puyo_core.config_loader import GameConfig, get_config
from renren.puyo_core.field import Field, Position
from renren.puyo_core.piece import (
    FallingPiece,
    MoveDirection,
    Rotation,
    RotationDirection,
    create_falling_piece,
    drop,
    hard_drop,
    move,
    rotate,
    set_column,
    set_rotation,
)
from renren.puyo_core.rng import PuyoRng, RngState, generate_seed
from renren.puyo_core.scoring import ScoreTracker
from renren.puyo_core.state_snapshot import GameSnapshot, SnapshotLedger

logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    READY = "ready"
    FALLING = "falling"
    DROPPING = "dropping"
    CHAINING = "chaining"
    ERASING = "erasing"
    GAMEOVER = "gameover"


class CommandType(str, Enum):
    START_GAME = "START_GAME"
    RESTART_GAME = "RESTART_GAME"
    MOVE_LEFT = "MOVE_LEFT"
    MOVE_RIGHT = "MOVE_RIGHT"
    ROTATE_CW = "ROTATE_CW"
    ROTATE_CCW = "ROTATE_CCW"
    SOFT_DROP = "SOFT_DROP"
    HARD_DROP = "HARD_DROP"
    SET_COLUMN = "SET_COLUMN"
    SET_ROTATION = "SET_ROTATION"


@dataclass(frozen=True)
class Command:
    """A single input command. SET_COLUMN and SET_ROTATION carry an argument."""
    type: CommandType
    column: Optional[int] = None
    rotation: Optional[Rotation] = None

    @classmethod
    def set_column(cls, column: int) -> "Command":
        return cls(CommandType.SET_COLUMN, column=column)

    @classmethod
    def set_rotation(cls, rotation: Rotation) -> "Command":
        return cls(CommandType.SET_ROTATION, rotation=Rotation(rotation))


@dataclass(frozen=True)
class ErasureResult:
    """One erasure pass, published while the game waits in ``erasing``."""
    groups: Tuple[Group, ...]
    erasing_cells: Tuple[ErasingCell, ...]
    chain_count: int
    score: int                # Points for this pass, all-clear bonus included
    color_count: int
    erased_count: int
    is_all_clear: bool


SnapshotListener = Callable[["PuyoGame", GameSnapshot], None]


class PuyoGame:
    """
    Main game simulation class.

    Orchestrates:
    - Field and gravity
    - Falling piece control
    - Chain detection and scoring
    - Next-queue RNG
    - Snapshot ledger (rewind / resume)

    The engine is synchronous. ``tick()`` advances the no-input phases and
    ``acknowledge_erasure()`` releases the ``erasing`` pause.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[Sequence[int]] = None
    ):
        """
        Initialize game in the ``ready`` phase.

        Args:
            config: Game configuration. Uses default if None.
            seed: Four 32-bit RNG seed words. Random if None.
        """
        if config is None:
            config = get_config()

        self._config = config
        self._listeners: List[SnapshotListener] = []
        self._reset_state(seed)

    def _reset_state(self, seed: Optional[Sequence[int]]) -> None:
        if seed is None:
            seed = generate_seed()

        self._seed: RngState = tuple(seed)
        self._rng = PuyoRng(self._seed, config=self._config)
        self._scorer = ScoreTracker(self._config)
        self._ledger = SnapshotLedger()

        self._field = Field.create_empty(self._config)
        self._falling: Optional[FallingPiece] = None
        self._next_queue: List[ColorPair] = []
        self._chain_count: int = 0
        self._phase = GamePhase.READY
        self._current_erasure: Optional[ErasureResult] = None
        self._last_dropped: Tuple[Position, ...] = ()
        self._drop_count: int = 0

    # ------------------------------------------------------------------
    # State surface
    # ------------------------------------------------------------------

    @property
    def config(self) -> GameConfig:
        """Game configuration."""
        return self._config

    @property
    def seed(self) -> RngState:
        """Seed the current game was started from."""
        return self._seed

    @property
    def field(self) -> Field:
        return self._field

    @property
    def falling_piece(self) -> Optional[FallingPiece]:
        return self._falling

    @property
    def next_queue(self) -> Tuple[ColorPair, ...]:
        """Upcoming pairs, head first."""
        return tuple(self._next_queue)

    @property
    def score(self) -> int:
        """Current score."""
        return self._scorer.score

    @property
    def chain_count(self) -> int:
        """Chain count of the current (or last) resolution sequence."""
        return self._chain_count

    @property
    def max_chain_count(self) -> int:
        return self._scorer.max_chain

    @property
    def drop_count(self) -> int:
        """Pieces locked so far."""
        return self._drop_count

    @property
    def phase(self) -> GamePhase:
        return self._phase

    @property
    def current_erasure(self) -> Optional[ErasureResult]:
        """The pass being shown while in ``erasing``, else None."""
        return self._current_erasure

    @property
    def ledger(self) -> SnapshotLedger:
        return self._ledger

    @property
    def history(self) -> Tuple[GameSnapshot, ...]:
        return tuple(self._ledger)

    @property
    def selected_colors(self) -> Tuple[CellColor, ...]:
        return self._rng.colors

    @property
    def rng_state(self) -> RngState:
        return self._rng.get_state()

    @property
    def is_over(self) -> bool:
        """True if game has ended."""
        return self._phase == GamePhase.GAMEOVER

    def add_snapshot_listener(self, listener: SnapshotListener) -> None:
        """
        Register a callback run after every snapshot capture and restore.

        Used by persistence adapters; the engine itself has no side effects.
        """
        self._listeners.append(listener)

    def remove_snapshot_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Leave ``ready``: pick colors, fill the queue and spawn the first piece.

        Returns:
            False if the game was not in ``ready``.
        """
        if self._phase != GamePhase.READY:
            return False

        self._rng.select_colors()
        pairs = self._rng.generate_initial_pairs()
        while len(pairs) < self._config.queue.next_count:
            pairs.append(self._rng.next_puyo_pair())
        self._next_queue = list(pairs)

        logger.debug("Game started with seed %s, colors %s", self._seed, self._rng.colors)
        self._spawn_next()
        return True

    def restart(self, seed: Optional[Sequence[int]] = None) -> None:
        """
        Discard the session and return to ``ready`` with a new seed.

        Args:
            seed: Seed for the new game. Random if None.
        """
        self._reset_state(seed)
        logger.debug("Game restarted")

    def _set_phase(self, phase: GamePhase) -> None:
        if phase != self._phase:
            logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase

    def _capture_snapshot(self) -> GameSnapshot:
        snapshot = self._ledger.capture(
            field=self._field,
            next_queue=self._next_queue,
            score=self._scorer.score,
            chain_count=self._chain_count,
            rng_state=self._rng.get_state(),
            dropped_positions=self._last_dropped,
            selected_colors=self._rng.colors,
        )
        return snapshot

    def _notify(self, snapshot: GameSnapshot) -> None:
        for listener in list(self._listeners):
            listener(self, snapshot)

    def _spawn_next(self, capture: bool = True) -> None:
        """
        Draw the queue head into a new falling piece and refill the queue.

        A snapshot is captured first, so its RNG state precedes the refill.
        Listeners hear about it once the new phase is in place.
        """
        snapshot = self._capture_snapshot() if capture else None

        pivot_color, satellite_color = self._next_queue[0]
        piece = create_falling_piece(pivot_color, satellite_color, self._config)

        if not self._field.is_empty(piece.pivot):
            self._falling = None
            self._set_phase(GamePhase.GAMEOVER)
        else:
            self._next_queue.pop(0)
            self._next_queue.append(self._rng.next_puyo_pair())
            self._falling = piece
            self._set_phase(GamePhase.FALLING)

        if snapshot is not None:
            self._notify(snapshot)

    def _finish_resolution(self) -> None:
        """No more erasures: end the game or hand over to the next piece."""
        if self._field.is_game_over_condition():
            snapshot = self._capture_snapshot()
            self._set_phase(GamePhase.GAMEOVER)
            self._notify(snapshot)
            return
        self._spawn_next()

    # ------------------------------------------------------------------
    # Piece commands
    # ------------------------------------------------------------------

    def _apply_piece(self, piece: Optional[FallingPiece]) -> bool:
        # Setting the current column or rotation again is not a change
        if piece is None or piece == self._falling:
            return False
        self._falling = piece
        return True

    def _can_control(self) -> bool:
        return self._phase == GamePhase.FALLING and self._falling is not None

    def move_left(self) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(move(self._field, self._falling, MoveDirection.LEFT))

    def move_right(self) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(move(self._field, self._falling, MoveDirection.RIGHT))

    def rotate_cw(self) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(rotate(self._field, self._falling, RotationDirection.CW))

    def rotate_ccw(self) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(rotate(self._field, self._falling, RotationDirection.CCW))

    def soft_drop(self) -> bool:
        """Move the piece down one row. Does not lock a landed piece."""
        if not self._can_control():
            return False
        return self._apply_piece(drop(self._field, self._falling))

    def set_column(self, column: int) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(set_column(self._field, self._falling, column))

    def set_rotation(self, rotation: Rotation) -> bool:
        if not self._can_control():
            return False
        return self._apply_piece(set_rotation(self._field, self._falling, rotation))

    def hard_drop(self) -> bool:
        """
        Drop the piece to its resting place, lock it and resolve gravity.

        Afterwards the game is in ``falling`` (next piece spawned),
        ``chaining`` (tick to erase) or ``gameover``.
        """
        if not self._can_control():
            return False

        self._falling = hard_drop(self._field, self._falling)
        self._lock()
        self._advance_dropping()
        return True

    def _lock(self) -> None:
        """Write the piece into the field. An above-field satellite vanishes."""
        piece = self._falling
        field = self._field
        for pos, color in piece.cells():
            if field.is_valid_position(pos):
                field = field.set(pos, color)

        self._field = field
        self._last_dropped = (piece.pivot, piece.satellite)
        self._falling = None
        self._drop_count += 1
        self._set_phase(GamePhase.DROPPING)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """
        Advance a no-input phase by one step.

        ``dropping`` applies gravity; ``chaining`` runs one erasure pass.
        Other phases are left alone.

        Returns:
            True if the state changed.
        """
        if self._phase == GamePhase.DROPPING:
            self._advance_dropping()
            return True
        if self._phase == GamePhase.CHAINING:
            self._erase_pass()
            return True
        return False

    def _advance_dropping(self) -> None:
        self._field = self._field.apply_gravity()
        if find_erasable_groups(self._field):
            self._chain_count = 0
            self._set_phase(GamePhase.CHAINING)
        else:
            self._finish_resolution()

    def _erase_pass(self) -> None:
        groups = find_erasable_groups(self._field)
        if not groups:
            self._finish_resolution()
            return

        chain_count = self._chain_count + 1
        color_count = count_colors(self._field, groups)
        erasing_cells = tuple(
            ErasingCell(pos=pos, color=self._field.get(pos))
            for pos in flatten_groups(groups)
        )

        new_field = self._field.remove_many(flatten_groups(groups))
        is_all_clear = new_field.is_empty_field()
        event = self._scorer.apply_erasure(groups, chain_count, color_count, is_all_clear)

        self._field = new_field
        self._chain_count = chain_count
        self._current_erasure = ErasureResult(
            groups=tuple(groups),
            erasing_cells=erasing_cells,
            chain_count=chain_count,
            score=event.points,
            color_count=color_count,
            erased_count=event.erased_count,
            is_all_clear=is_all_clear,
        )
        logger.debug("Erasure %r", event)
        self._set_phase(GamePhase.ERASING)

    def acknowledge_erasure(self) -> bool:
        """
        Resume after the erase effect for the current pass has finished.

        Returns:
            False if no erasure was pending.
        """
        if self._phase != GamePhase.ERASING:
            return False

        self._current_erasure = None
        self._field = self._field.apply_gravity()
        if find_erasable_groups(self._field):
            self._set_phase(GamePhase.CHAINING)
        else:
            self._finish_resolution()
        return True

    def run_until_input(self, max_steps: int = 1000) -> None:
        """
        Tick and acknowledge erasures until the game needs input or ends.

        For headless use (tests, environments) where no effect is shown.
        """
        for _ in range(max_steps):
            if self._phase == GamePhase.ERASING:
                self.acknowledge_erasure()
            elif not self.tick():
                return

    # ------------------------------------------------------------------
    # Rewind / resume
    # ------------------------------------------------------------------

    def restore_to_snapshot(self, snapshot_id: int) -> bool:
        """
        Rewind to a ledger entry and continue from there.

        Later entries are discarded, the RNG is restored, and a fresh
        piece is drawn from the snapshot's queue exactly as it was on the
        first playthrough.

        Returns:
            False (state unchanged) if the id is not in the ledger.
        """
        snapshot = self._ledger.truncate_to(snapshot_id)
        if snapshot is None:
            return False

        self._rng.set_state(snapshot.rng_state)
        if snapshot.selected_colors:
            self._rng.set_colors(snapshot.selected_colors)

        self._field = snapshot.field
        self._next_queue = list(snapshot.next_queue)
        self._chain_count = snapshot.chain_count
        self._scorer.restore(
            snapshot.score,
            max((s.chain_count for s in self._ledger), default=0)
        )
        self._falling = None
        self._current_erasure = None
        self._last_dropped = snapshot.dropped_positions
        self._drop_count = snapshot.id

        logger.debug("Restored snapshot %d", snapshot.id)
        if self._field.is_game_over_condition():
            self._set_phase(GamePhase.GAMEOVER)
        else:
            self._spawn_next(capture=False)
        self._notify(snapshot)
        return True

    def resume(self, ledger: SnapshotLedger, seed: Optional[Sequence[int]] = None) -> bool:
        """
        Continue a persisted session from the last entry of its ledger.

        Args:
            ledger: Ledger of the saved session.
            seed: Original seed, kept for reference only.

        Returns:
            False if the ledger is empty.
        """
        latest = ledger.latest
        if latest is None:
            return False

        self._reset_state(seed or latest.rng_state)
        self._ledger = ledger
        return self.restore_to_snapshot(latest.id)

    # ------------------------------------------------------------------
    # Command surface
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> bool:
        """
        Apply one command.

        Returns:
            True if the command changed state.
        """
        kind = CommandType(command.type)

        if kind == CommandType.START_GAME:
            return self.start()
        if kind == CommandType.RESTART_GAME:
            self.restart()
            return True
        if kind == CommandType.SET_COLUMN:
            if command.column is None:
                return False
            return self.set_column(command.column)
        if kind == CommandType.SET_ROTATION:
            if command.rotation is None:
                return False
            return self.set_rotation(command.rotation)

        handlers: Dict[CommandType, Callable[[], bool]] = {
            CommandType.MOVE_LEFT: self.move_left,
            CommandType.MOVE_RIGHT: self.move_right,
            CommandType.ROTATE_CW: self.rotate_cw,
            CommandType.ROTATE_CCW: self.rotate_ccw,
            CommandType.SOFT_DROP: self.soft_drop,
            CommandType.HARD_DROP: self.hard_drop,
        }
        return handlers[kind]()

    def get_info(self) -> Dict[str, Any]:
        """Summary dict for hosts and environments."""
        return {
            "score": self.score,
            "chain_count": self._chain_count,
            "max_chain_count": self.max_chain_count,
            "drop_count": self._drop_count,
            "phase": self._phase.value,
            "snapshots": len(self._ledger),
        }
