"""
Terminal Play Mode
==================

Play interactively in the terminal. The game is driven by a GameLoop, so
chains resolve on timers while you type, and every drop is autosaved to
a session directory. Running again with the same session id resumes it.

Commands (one per line):
    a / d       Move left / right
    z / x       Rotate counter-clockwise / clockwise
    s           Soft drop
    SPACE / w   Hard drop
    c <col>     Set column
    r <rot>     Set rotation (0=up, 1=right, 2=down, 3=left)
    u <id>      Rewind to snapshot id
    n           Restart with a new seed
    q           Quit (the session stays resumable)

Usage:
    python tools/play_terminal.py [--sessions DIR] [--session-id ID] [--new]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

# Add project root to path for direct script execution
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from renren.puyo_core.config_loader import load_config
from renren.puyo_core.game import Command, CommandType, GamePhase, PuyoGame
from renren.puyo_core.game_loop import GameLoop
from renren.puyo_core.piece import Rotation
from renren.puyo_core.session_store import SessionStore

logger = logging.getLogger("play_terminal")

KEYMAP: Dict[str, CommandType] = {
    "a": CommandType.MOVE_LEFT,
    "d": CommandType.MOVE_RIGHT,
    "z": CommandType.ROTATE_CCW,
    "x": CommandType.ROTATE_CW,
    "s": CommandType.SOFT_DROP,
    "w": CommandType.HARD_DROP,
    "": CommandType.HARD_DROP,
    "n": CommandType.RESTART_GAME,
}


def render(game: PuyoGame) -> str:
    """Text frame with the falling piece drawn over the field."""
    field = game.field
    piece = game.falling_piece
    overlay = {}
    if piece is not None:
        for pos, color in piece.cells():
            overlay[pos] = color.name[0].lower()

    lines = []
    for y, row in enumerate(str(field).splitlines()):
        cells = "".join(
            overlay.get((x, y), glyph) for x, glyph in enumerate(row[:field.cols])
        )
        lines.append(cells + row[field.cols:])

    queue = "  ".join(f"{p.name[0]}{s.name[0]}" for p, s in game.next_queue)
    lines.append(f"next: {queue}")
    lines.append(
        f"score={game.score}  chain={game.chain_count}  max={game.max_chain_count}  "
        f"drops={game.drop_count}  phase={game.phase.value}"
    )
    erasure = game.current_erasure
    if erasure is not None:
        lines.append(f"{erasure.chain_count} chain! +{erasure.score}"
                     + ("  ALL CLEAR" if erasure.is_all_clear else ""))
    return "\n".join(lines)


def parse_command(line: str) -> Optional[Command]:
    """Map one input line to a command, or None if it is not one."""
    parts = line.strip().split()
    key = parts[0].lower() if parts else ""

    if key in KEYMAP:
        return Command(KEYMAP[key])
    if key == "c" and len(parts) == 2 and parts[1].isdigit():
        return Command.set_column(int(parts[1]))
    if key == "r" and len(parts) == 2 and parts[1] in ("0", "1", "2", "3"):
        return Command.set_rotation(Rotation(int(parts[1])))
    return None


def run(loop: GameLoop) -> int:
    """Read commands until quit or EOF. Returns the final score."""
    game = loop.game
    print(render(game))

    for line in sys.stdin:
        text = line.strip()
        if text == "q":
            break

        if text.startswith("u "):
            _, _, value = text.partition(" ")
            if not (value.isdigit() and loop.restore_to_snapshot(int(value))):
                print(f"No snapshot {value}")
        else:
            command = parse_command(text)
            if command is None:
                print(__doc__)
                continue
            loop.dispatch(command)

        if game.phase == GamePhase.GAMEOVER:
            print(render(game))
            print(f"\nGAME OVER - Score: {game.score}  (n to restart, q to quit)")

    loop.stop()
    return game.score


def main():
    parser = argparse.ArgumentParser(description="Play the chain puzzle in the terminal")
    parser.add_argument("--config", type=str, default=None, help="Path to game_config.yaml")
    parser.add_argument("--sessions", type=str, default="sessions", help="Session directory")
    parser.add_argument("--session-id", type=str, default="current", help="Session to resume or create")
    parser.add_argument("--new", action="store_true", help="Discard the saved session")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    config = load_config(args.config)
    store = SessionStore(args.sessions, config)
    if args.new:
        store.delete(args.session_id)

    game = store.resume_or_new(args.session_id)
    store.attach(game, args.session_id)

    loop = GameLoop(game, on_update=lambda g: print(render(g)))
    loop.start()

    score = run(loop)
    print(f"\nFinal Score: {score}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
