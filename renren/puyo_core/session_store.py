"""
Session Store
=============

JSON persistence for suspended sessions and the finished-game history.

The engine never touches storage. A store attaches to a game as a snapshot
listener and writes the session after each snapshot, so files always sit
on a snapshot boundary.

Usage:
    store = SessionStore("sessions/")
    game = store.resume_or_new("current")
    store.attach(game, "current")
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from renren.puyo_core.config_loader import GameConfig, compute_config_hash, get_config
from renren.puyo_core.game import GamePhase, PuyoGame
from renren.puyo_core.state_snapshot import GameSnapshot, SnapshotLedger

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = (
    "schema_version",
    "config_hash",
    "seed",
    "phase",
    "field",
    "next_queue",
    "score",
    "chain_count",
    "rng_state",
    "ledger",
)


class SessionLoadError(Exception):
    """A persisted session cannot be resumed (corrupt or incompatible)."""


def generate_session_id(prefix: str = "game") -> str:
    """
    Generate a timestamped session id.

    Format: {prefix}_{YYYYMMDD_HHMMSS}_{random}

    Example:
        >>> generate_session_id()
        'game_20260119_143052_3f9a1c2'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}_{uuid.uuid4().hex[:7]}"


def session_to_dict(game: PuyoGame) -> Dict[str, Any]:
    """
    Serialize everything needed to resume a game.

    The falling piece is not stored; it is redrawn from the queue on resume.
    """
    return {
        "schema_version": game.config.session.schema_version,
        "config_hash": compute_config_hash(game.config),
        "saved_at": datetime.now().isoformat(timespec="seconds"),
        "seed": list(game.seed),
        "phase": game.phase.value,
        "field": game.field.to_rows(),
        "next_queue": [[int(p), int(s)] for p, s in game.next_queue],
        "score": game.score,
        "chain_count": game.chain_count,
        "max_chain_count": game.max_chain_count,
        "drop_count": game.drop_count,
        "rng_state": list(game.rng_state),
        "selected_colors": [int(c) for c in game.selected_colors],
        "ledger": game.ledger.to_list(),
    }


def session_from_dict(data: Dict[str, Any], config: Optional[GameConfig] = None) -> PuyoGame:
    """
    Rebuild a game from session_to_dict() output.

    A started session resumes from the last ledger entry, as if play had
    stopped right before that entry's piece was drawn.

    Raises:
        SessionLoadError: If the data is incompatible or malformed.
    """
    if config is None:
        config = get_config()

    if not isinstance(data, dict):
        raise SessionLoadError(f"Session must be a JSON object, got {type(data).__name__}")

    missing = [key for key in _REQUIRED_KEYS if key not in data]
    if missing:
        raise SessionLoadError(f"Session is missing keys: {missing}")

    if data["schema_version"] != config.session.schema_version:
        raise SessionLoadError(
            f"Schema version {data['schema_version']} != {config.session.schema_version}"
        )

    expected_hash = compute_config_hash(config)
    if data["config_hash"] != expected_hash:
        raise SessionLoadError(
            f"Config hash mismatch: session {data['config_hash']}, current {expected_hash}"
        )

    try:
        phase = GamePhase(data["phase"])
        seed = tuple(int(w) for w in data["seed"])
        ledger = SnapshotLedger.from_list(data["ledger"], config)
        game = PuyoGame(config=config, seed=seed)
    except (KeyError, TypeError, ValueError) as e:
        raise SessionLoadError(f"Malformed session: {e}") from e

    if phase == GamePhase.READY:
        if len(ledger) > 0:
            raise SessionLoadError("Session in 'ready' phase has ledger entries")
        return game

    try:
        resumed = game.resume(ledger, seed=seed)
    except ValueError as e:
        raise SessionLoadError(f"Malformed session: {e}") from e

    if not resumed:
        raise SessionLoadError(f"Session in '{phase.value}' phase has an empty ledger")
    return game


def save_session(game: PuyoGame, path: Union[str, Path]) -> Path:
    """
    Write a session file.

    Returns:
        Path where the session was saved.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(session_to_dict(game), f)

    logger.info("Session saved: %s (score=%d, drops=%d)", path, game.score, game.drop_count)
    return path


def load_session(path: Union[str, Path], config: Optional[GameConfig] = None) -> PuyoGame:
    """
    Read a session file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SessionLoadError: If the file is not a resumable session.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Session file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SessionLoadError(f"Session file is not valid JSON: {path}") from e

    game = session_from_dict(data, config)
    logger.info("Session loaded: %s (phase=%s, score=%d)", path, game.phase.value, game.score)
    return game


def resume_or_new(
    path: Union[str, Path],
    config: Optional[GameConfig] = None
) -> PuyoGame:
    """
    Resume the session at ``path``, or start a fresh game if it cannot be.

    A missing file starts a new game quietly; an unusable one is logged.
    """
    try:
        return load_session(path, config)
    except FileNotFoundError:
        logger.info("No session at %s, starting a new game", path)
    except SessionLoadError as e:
        logger.warning("Cannot resume session %s: %s. Starting a new game", path, e)

    game = PuyoGame(config=config)
    game.start()
    return game


@dataclass(frozen=True)
class SessionSummary:
    """One line of the game history list."""
    session_id: str
    score: int
    max_chain_count: int
    drop_count: int
    saved_at: str


class SessionStore:
    """
    Directory of session files, one per game, newest kept.

    Games with no drops are not recorded. When the store grows past
    ``max_history_entries`` the least recently saved sessions are removed.
    """

    def __init__(self, directory: Union[str, Path], config: Optional[GameConfig] = None):
        if config is None:
            config = get_config()

        self._config = config
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, session_id: str) -> Path:
        return self._directory / f"{session_id}.json"

    def save(self, game: PuyoGame, session_id: str) -> Optional[Path]:
        """
        Save a game under ``session_id``.

        Returns:
            The written path, or None if the game has no drops yet (any
            earlier file for the id is removed).
        """
        path = self.path_for(session_id)
        if game.phase == GamePhase.READY:
            return None
        if game.drop_count == 0:
            if path.exists():
                path.unlink()
            return None

        save_session(game, path)
        self._prune(keep=session_id)
        return path

    def load(self, session_id: str) -> PuyoGame:
        """
        Raises:
            FileNotFoundError: If there is no such session.
            SessionLoadError: If the session cannot be resumed.
        """
        return load_session(self.path_for(session_id), self._config)

    def resume_or_new(self, session_id: str) -> PuyoGame:
        return resume_or_new(self.path_for(session_id), self._config)

    def attach(self, game: PuyoGame, session_id: str) -> None:
        """Save ``game`` after every snapshot it captures or restores."""
        def _autosave(source: PuyoGame, snapshot: GameSnapshot) -> None:
            self.save(source, session_id)

        game.add_snapshot_listener(_autosave)

    def delete(self, session_id: str) -> bool:
        path = self.path_for(session_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Session deleted: %s", path)
        return True

    def clear(self) -> None:
        for path in self._session_paths():
            path.unlink()
        logger.info("Session history cleared: %s", self._directory)

    def list_sessions(self) -> List[SessionSummary]:
        """
        Summaries of stored sessions, most recently saved first.

        Unreadable files are skipped with a warning.
        """
        summaries = []
        for path in self._session_paths():
            try:
                with open(path, "r") as f:
                    data = json.load(f)
                summaries.append(SessionSummary(
                    session_id=path.stem,
                    score=int(data["score"]),
                    max_chain_count=int(data.get("max_chain_count", 0)),
                    drop_count=int(data.get("drop_count", 0)),
                    saved_at=str(data.get("saved_at", "")),
                ))
            except (OSError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable session %s: %s", path, e)
        return summaries

    def _session_paths(self) -> List[Path]:
        paths = list(self._directory.glob("*.json"))
        paths.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return paths

    def _prune(self, keep: str) -> None:
        limit = self._config.session.max_history_entries
        paths = self._session_paths()
        for path in paths[limit:]:
            if path.stem == keep:
                continue
            path.unlink()
            logger.info("Pruned old session: %s", path)

    def __len__(self) -> int:
        return len(self._session_paths())
