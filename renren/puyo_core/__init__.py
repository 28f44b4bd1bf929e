"""
Puyo Core - The deterministic game engine.

This module provides the game simulation, its snapshot ledger and replay
player, session persistence, a timer-driven loop and a Gymnasium wrapper.

Main exports:
- PuyoGame: Phase state machine and command surface
- PuyoEnv: Gymnasium environment for single-agent use
- ReplayPlayer: Steps a ledger without consuming any RNG
- SessionStore: JSON persistence of suspended and finished games
- GameLoop: Timer-driven ticking with restart-safe cancellation
- GameConfig: Configuration loaded from game_config.yaml
"""

from renren.puyo_core.config_loader import GameConfig, get_config, load_config
from renren.puyo_core.color_catalog import CellColor, ColorCatalog
from renren.puyo_core.field import Field, Position
from renren.puyo_core.piece import FallingPiece, Rotation
from renren.puyo_core.rng import PuyoRng, generate_seed
from renren.puyo_core.state_snapshot import GameSnapshot, SnapshotLedger
from renren.puyo_core.game import (
    Command,
    CommandType,
    ErasureResult,
    GamePhase,
    PuyoGame,
)
from renren.puyo_core.replay import ReplayPhase, ReplayPlayer, replay_fields
from renren.puyo_core.session_store import (
    SessionLoadError,
    SessionStore,
    load_session,
    resume_or_new,
    save_session,
)
from renren.puyo_core.game_loop import GameLoop
from renren.puyo_core.env_gym import PuyoEnv

__all__ = [
    "GameConfig",
    "get_config",
    "load_config",
    "CellColor",
    "ColorCatalog",
    "Field",
    "Position",
    "FallingPiece",
    "Rotation",
    "PuyoRng",
    "generate_seed",
    "GameSnapshot",
    "SnapshotLedger",
    "Command",
    "CommandType",
    "ErasureResult",
    "GamePhase",
    "PuyoGame",
    "ReplayPhase",
    "ReplayPlayer",
    "replay_fields",
    "SessionLoadError",
    "SessionStore",
    "load_session",
    "resume_or_new",
    "save_session",
    "GameLoop",
    "PuyoEnv",
]
