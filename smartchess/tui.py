"""Terminal chess board UI for SmartChess.

Renders a Rich-based chess board that auto-updates by watching
data/current_game.json via watchdog at ~4Hz. Use --state FILE to render
one saved state and exit.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import chess
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from smartchess.storage import DATA_DIR

_CURRENT_GAME = DATA_DIR / "current_game.json"

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_CAPTURE_SYMBOLS = {
    "queen": "Q", "rook": "R", "bishop": "B", "knight": "N", "pawn": "P",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HIGHLIGHT = "yellow"
_SELECTED = "green3"
_TARGET = "pale_green3"

_STATUS_LABELS = {
    "playing": "Playing",
    "thinking": "Computer is thinking...",
    "checkmate": "Checkmate",
    "stalemate": "Stalemate",
    "draw": "Draw",
}


def _load_game_state(path: Path) -> dict | None:
    """Load a game state dict from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed dict or None if file missing/corrupt.
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return None
    return data if isinstance(data, dict) else None


def render_board(state: dict) -> Layout:
    """Render the full board layout from a game state dict.

    Args:
        state: Game state dict as written by the MCP server.

    Returns:
        Rich Layout with board and sidebar.
    """
    layout = Layout()
    layout.split_row(
        Layout(name="board", ratio=2),
        Layout(name="sidebar", ratio=1),
    )
    layout["board"].update(_render_board_panel(state))
    layout["sidebar"].update(_render_sidebar(state))
    return layout


def _square_styles(state: dict) -> dict[int, str]:
    """Background overrides for last move, selection and its targets."""
    styles: dict[int, str] = {}

    last_move = state.get("last_move")
    if last_move:
        try:
            mv = chess.Move.from_uci(last_move)
        except (ValueError, chess.InvalidMoveError):
            mv = None
        if mv is not None:
            styles[mv.from_square] = _HIGHLIGHT
            styles[mv.to_square] = _HIGHLIGHT

    selection = state.get("selection") or {}
    for name in selection.get("legal_targets", []):
        styles[chess.parse_square(name)] = _TARGET
    if selection.get("square"):
        styles[chess.parse_square(selection["square"])] = _SELECTED

    return styles


def _render_board_panel(state: dict) -> Panel:
    """Render the chess board as a Rich Panel, oriented for the human."""
    board = chess.Board(state.get("fen", chess.STARTING_FEN))
    is_flipped = state.get("human_side", "white") == "black"
    styles = _square_styles(state)

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))

    # Rank label + 8 squares
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    ranks = range(8) if is_flipped else range(7, -1, -1)
    files = list(range(7, -1, -1)) if is_flipped else list(range(8))

    for rank in ranks:
        row: list[Text] = [Text(str(rank + 1), style="bold")]
        for file in files:
            sq = chess.square(file, rank)
            bg = _LIGHT_SQ if (rank + file) % 2 == 1 else _DARK_SQ
            bg = styles.get(sq, bg)

            piece = board.piece_at(sq)
            symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?") if piece else " "
            row.append(Text(f" {symbol} ", style=f"on {bg}"))
        table.add_row(*row)

    file_labels = [Text("  ")]
    for f in files:
        file_labels.append(Text(f" {chess.FILE_NAMES[f]} ", style="bold"))
    table.add_row(*file_labels)

    title = "SmartChess"
    if state.get("is_game_over"):
        title = f"Game Over: {state.get('result') or '?'}"

    return Panel(table, title=title, border_style="blue")


def _render_sidebar(state: dict) -> Panel:
    """Render the sidebar: status, moves, captures and opponent style."""
    parts: list[str] = []

    status = state.get("status", "playing")
    parts.append(f"[bold]{_STATUS_LABELS.get(status, status)}[/bold]")
    parts.append(f"To move: {state.get('side_to_move', 'white')}")
    parts.append("")

    move_list = state.get("move_list", [])
    if move_list:
        parts.append("[bold]Moves:[/bold]")
        for i in range(0, len(move_list), 2):
            black_move = move_list[i + 1] if i + 1 < len(move_list) else ""
            parts.append(f"  {i // 2 + 1}. {move_list[i]} {black_move}")
        parts.append("")

    # Pieces each side has lost
    captured = state.get("captured", {})
    parts.append("[bold]Captured:[/bold]")
    for side in ("white", "black"):
        pieces = captured.get(side, [])
        symbols = " ".join(_CAPTURE_SYMBOLS.get(p, "?") for p in pieces)
        parts.append(f"  {side.capitalize()}: {symbols or '-'}")
    parts.append("")

    parts.append(f"Playing as: {state.get('human_side', 'white')}")
    parts.append(f"Difficulty: {state.get('difficulty', 'medium')}")

    profile = state.get("style_profile")
    if profile:
        parts.append("")
        parts.append(f"[bold]Style:[/bold] {profile.get('name', '?')}")
        parts.append(f"  Games: {profile.get('total_games', 0)}")
        parts.append(f"  Aggressiveness: {profile.get('aggressiveness', 50)}")
        parts.append(f"  Positional: {profile.get('positional_vs_tactical', 50)}")

    return Panel("\n".join(parts), title="Info", border_style="green")


def _render_waiting() -> Panel:
    return Panel(
        Text("Waiting for game...\n\nStart a game via MCP server to see the board.",
             justify="center"),
        title="SmartChess",
        border_style="dim",
    )


def _watch_loop(console: Console, path: Path) -> None:
    """Watch the state file and auto-update display at ~4Hz.

    Args:
        console: Rich Console instance.
        path: Game state JSON file to follow.
    """
    from watchdog.observers import Observer
    from watchdog.events import FileSystemEventHandler

    last_state: dict | None = None
    state_changed = True

    class _Handler(FileSystemEventHandler):
        def on_any_event(self, event):
            nonlocal state_changed
            # Atomic writes land as a move onto the target name
            target = getattr(event, "dest_path", "") or event.src_path
            if str(target).endswith(path.name):
                state_changed = True

    observer = Observer()
    path.parent.mkdir(parents=True, exist_ok=True)
    observer.schedule(_Handler(), str(path.parent), recursive=False)
    observer.start()

    try:
        with Live(console=console, refresh_per_second=4) as live:
            while True:
                if state_changed:
                    state = _load_game_state(path)
                    if state is not None:
                        last_state = state
                        live.update(render_board(state))
                    elif last_state is None:
                        live.update(_render_waiting())
                    state_changed = False
                time.sleep(0.25)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()


def main() -> None:
    """CLI entry point for tui.py."""
    parser = argparse.ArgumentParser(description="SmartChess Terminal UI")
    parser.add_argument(
        "--state", type=Path, default=None,
        help="Render this game state JSON once and exit (no watch loop)",
    )
    parser.add_argument(
        "--watch", type=Path, default=_CURRENT_GAME,
        help="Game state file to watch (default: data/current_game.json)",
    )
    args = parser.parse_args()

    console = Console()

    if args.state is not None:
        state = _load_game_state(args.state)
        if state is None:
            console.print(f"[red]No readable game state at {args.state}[/red]")
            sys.exit(1)
        console.print(render_board(state))
        return

    _watch_loop(console, args.watch)


if __name__ == "__main__":
    main()
