"""
Replay Viewer
=============

Step through a saved session in the terminal.

The field between snapshots is re-derived from the ledger alone, so the
viewer also works as a fidelity check for saved sessions.

Usage:
    python tools/replay_viewer.py sessions/game_20260119_143052.json
    python tools/replay_viewer.py session.json --auto --delay 0.2
    python tools/replay_viewer.py session.json --check

Commands (interactive):
    ENTER / s   Step one phase
    n / p       Next / previous snapshot
    f / l       First / last snapshot
    g <id>      Jump to snapshot id
    q           Quit
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Add project root to path for direct script execution
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from renren.puyo_core.config_loader import load_config
from renren.puyo_core.replay import ReplayPhase, ReplayPlayer, find_divergence
from renren.puyo_core.session_store import SessionLoadError, load_session

logger = logging.getLogger("replay_viewer")


def render(player: ReplayPlayer) -> str:
    """Text frame for the current replay position."""
    snapshot = player.snapshot
    lines = [
        f"Snapshot {snapshot.id} ({player.index + 1}/{len(player)})  "
        f"phase={player.phase.value}  score={snapshot.score}",
    ]
    if player.chain_count:
        lines.append(f"{player.chain_count} chain")

    erasing = {cell.pos for cell in player.erasing_cells}
    field = player.field
    for y, row in enumerate(str(field).splitlines()):
        marks = "".join(
            "*" if (x, y) in erasing else glyph
            for x, glyph in enumerate(row[:field.cols])
        )
        lines.append(marks + row[field.cols:])

    queue = "  ".join(f"{p.name[0]}{s.name[0]}" for p, s in snapshot.next_queue)
    lines.append(f"next: {queue}")
    return "\n".join(lines)


def run_interactive(player: ReplayPlayer) -> None:
    print(render(player))
    while True:
        command = input("> ").strip().split()
        key = command[0] if command else "s"

        if key == "q":
            return
        if key == "s":
            moved = player.step()
        elif key == "n":
            moved = player.next()
        elif key == "p":
            moved = player.previous()
        elif key == "f":
            moved = player.first()
        elif key == "l":
            moved = player.last()
        elif key == "g" and len(command) > 1 and command[1].isdigit():
            moved = player.go_to_id(int(command[1]))
        else:
            print("Unknown command")
            continue

        if not moved:
            print("(no change)")
        print(render(player))


def run_auto(player: ReplayPlayer, delay: float) -> None:
    print(render(player))
    while player.step():
        time.sleep(delay)
        print()
        print(render(player))
        if player.phase == ReplayPhase.SHOWING_ERASING:
            time.sleep(delay)


def main():
    parser = argparse.ArgumentParser(
        description="View a saved game session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  ENTER / s   Step one phase
  n / p       Next / previous snapshot
  f / l       First / last snapshot
  g <id>      Jump to snapshot id
  q           Quit
        """
    )
    parser.add_argument("session", type=str, help="Path to session JSON file")
    parser.add_argument("--config", type=str, default=None, help="Path to game_config.yaml")
    parser.add_argument("--auto", action="store_true", help="Play through without prompting")
    parser.add_argument("--delay", type=float, default=0.3, help="Seconds per phase with --auto")
    parser.add_argument("--check", action="store_true", help="Verify replay fidelity and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    try:
        game = load_session(args.session, config)
    except (FileNotFoundError, SessionLoadError) as e:
        logger.error("Cannot open session: %s", e)
        return 1

    if len(game.ledger) == 0:
        logger.error("Session has no snapshots")
        return 1

    if args.check:
        divergence = find_divergence(game.ledger)
        if divergence is None:
            print(f"OK: {len(game.ledger)} snapshots replay faithfully")
            return 0
        print(f"DIVERGED at snapshot index {divergence}")
        return 1

    player = ReplayPlayer(game.ledger)
    if args.auto:
        run_auto(player, args.delay)
    else:
        try:
            run_interactive(player)
        except (EOFError, KeyboardInterrupt):
            print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
