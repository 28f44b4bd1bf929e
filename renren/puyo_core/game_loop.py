"""
Game Loop
=========

Timer-driven host for a PuyoGame.

The engine only advances when ticked. GameLoop schedules those ticks with
``threading.Timer`` while the game is in a no-input phase, and releases
the ``erasing`` pause after the configured erase delay unless the host
acknowledges erasures itself.

Every scheduled callback carries the generation it was scheduled in.
``restart()``, ``stop()``, rewinds and manual acknowledgements bump the
generation and cancel pending timers under the loop lock, so a callback
that fires late finds a newer generation and returns without touching
the game.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence

from renren.puyo_core.config_loader import GameConfig
from renren.puyo_core.game import Command, CommandType, GamePhase, PuyoGame

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[PuyoGame], None]
TimerFactory = Callable[..., threading.Timer]


class GameLoop:
    """
    Schedules engine ticks for interactive play.

    All access to the game goes through the loop lock: commands from the
    input thread and timer callbacks never interleave.

    Example:
        loop = GameLoop(PuyoGame(), on_update=redraw)
        loop.start()
        loop.dispatch(Command(CommandType.HARD_DROP))
        ...
        loop.stop()
    """

    def __init__(
        self,
        game: PuyoGame,
        config: Optional[GameConfig] = None,
        on_update: Optional[UpdateCallback] = None,
        auto_acknowledge: bool = True,
        timer_factory: TimerFactory = threading.Timer
    ):
        """
        Args:
            game: Game to drive.
            config: Timing source. Uses the game's config if None.
            on_update: Called (under the lock) after every state change.
            auto_acknowledge: Release ``erasing`` after the erase delay.
                If False the host must call acknowledge_erasure().
            timer_factory: Timer constructor, replaceable in tests.
        """
        self._game = game
        self._config = config if config is not None else game.config
        self._on_update = on_update
        self._auto_acknowledge = auto_acknowledge
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._generation = 0
        self._timers: List[threading.Timer] = []
        self._running = False

    @property
    def game(self) -> PuyoGame:
        return self._game

    @property
    def generation(self) -> int:
        """Incremented whenever pending callbacks are invalidated."""
        return self._generation

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_timers(self) -> Sequence[threading.Timer]:
        return tuple(self._timers)

    def start(self) -> None:
        """Start the game if it is ready and begin scheduling."""
        with self._lock:
            self._running = True
            self._game.start()
            self._after_change()

    def stop(self) -> None:
        """Cancel every pending callback. The game is left as it is."""
        with self._lock:
            self._running = False
            self._invalidate()
        logger.debug("Game loop stopped")

    def restart(self, seed: Optional[Sequence[int]] = None) -> None:
        """Invalidate pending callbacks, then reset and start a new game."""
        with self._lock:
            self._invalidate()
            self._running = True
            self._game.restart(seed)
            self._game.start()
            self._after_change()
        logger.debug("Game loop restarted (generation %d)", self._generation)

    def dispatch(self, command: Command) -> bool:
        """
        Apply a command from the input layer.

        RESTART_GAME goes through restart() so stale timers are cancelled
        before the state is reset.
        """
        if CommandType(command.type) == CommandType.RESTART_GAME:
            self.restart()
            return True

        with self._lock:
            changed = self._game.dispatch(command)
            if changed:
                self._after_change()
            return changed

    def restore_to_snapshot(self, snapshot_id: int) -> bool:
        """Rewind the game, dropping callbacks scheduled for the abandoned state."""
        with self._lock:
            if snapshot_id not in {s.id for s in self._game.ledger}:
                return False
            self._invalidate()
            self._game.restore_to_snapshot(snapshot_id)
            self._after_change()
            return True

    def acknowledge_erasure(self) -> bool:
        """
        Effect-finished signal from the host.

        Any pending automatic acknowledgement is cancelled, so it cannot
        cut short the erase delay of a later cascade.
        """
        with self._lock:
            changed = self._game.acknowledge_erasure()
            if changed:
                self._invalidate()
                self._after_change()
            return changed

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _invalidate(self) -> None:
        self._generation += 1
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    def _schedule(self, delay: float, action: Callable[[], bool]) -> None:
        timer = self._timer_factory(delay, self._fire, args=(self._generation, action))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def _fire(self, generation: int, action: Callable[[], bool]) -> None:
        with self._lock:
            if generation != self._generation or not self._running:
                logger.debug("Dropped stale callback from generation %d", generation)
                return

            current = threading.current_thread()
            self._timers = [t for t in self._timers if t is not current and t.is_alive()]
            if action():
                self._after_change()

    def _after_change(self) -> None:
        if self._on_update is not None:
            self._on_update(self._game)

        if not self._running:
            return

        phase = self._game.phase
        if phase in (GamePhase.DROPPING, GamePhase.CHAINING):
            self._schedule(self._config.timing.tick_interval, self._game.tick)
        elif phase == GamePhase.ERASING and self._auto_acknowledge:
            self._schedule(self._config.timing.erase_delay, self._game.acknowledge_erasure)
