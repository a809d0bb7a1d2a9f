"""MCP server for SmartChess.

Exposes the game session, the personality move selector and the PGN style
profiler via FastMCP. Games are stored in memory keyed by UUID. Board state
is synced to data/current_game.json after every change for TUI consumption.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP

from smartchess import rules
from smartchess.errors import (
    IllegalMoveError,
    NoHistoryError,
    PlayerNotFoundError,
    ProcessingTimeoutError,
)
from smartchess.game import ComputerDriver, GameSession
from smartchess.models import GameStatus, StyleProfile
from smartchess.pgn_parser import (
    DEFAULT_TIMEOUT,
    analyze_player_style,
    candidate_players,
    load_pgn_file,
    parse_pgn_with_timeout,
    profile_players,
)
from smartchess.storage import (
    DATA_DIR,
    DEFAULT_SNAPSHOT,
    load_snapshot,
    save_snapshot,
    snapshot_path,
    write_json_atomic,
)

from response_schemas import minify_game_state, minify_style_profile  # noqa: E402

# stdout carries the MCP stdio protocol, so logs go to stderr
logging.basicConfig(
    stream=sys.stderr,
    level=os.environ.get("SMARTCHESS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("smartchess.mcp")

mcp = FastMCP("smartchess")

# In-memory game store: game_id -> {session, driver}
_games: dict[str, dict] = {}

# Style profiles built by analyze_pgn or restored with a saved game, by name
_profiles: dict[str, StyleProfile] = {}

_DATA_DIR = DATA_DIR


def _result(session: GameSession) -> str | None:
    """PGN result string for a finished game, None while in progress."""
    status = session.state.status
    if status == GameStatus.CHECKMATE:
        # The side to move is the side that got mated
        return "0-1" if session.side_to_move == "white" else "1-0"
    if status in (GameStatus.STALEMATE, GameStatus.DRAW):
        return "1/2-1/2"
    return None


def _build_game_state(game_id: str, game: dict) -> dict:
    """Build a game state dict from the in-memory game record.

    Args:
        game_id: UUID of the game.
        game: Internal game record with session and driver.

    Returns:
        Dict with everything the TUI renders.
    """
    session: GameSession = game["session"]
    state = session.state
    position = state.position

    last_move = state.last_move
    selection = None
    if state.selection is not None:
        selection = {
            "square": state.selection.square,
            "legal_targets": sorted(state.selection.legal_targets),
        }

    return {
        "game_id": game_id,
        "fen": rules.to_fen(position),
        "board_display": str(rules.board_view(position)),
        "move_list": list(state.move_history),
        "last_move": last_move.uci if last_move else None,
        "last_move_san": last_move.san if last_move else None,
        "status": state.status.value,
        "human_side": state.human_side,
        "side_to_move": session.side_to_move,
        "difficulty": state.difficulty.value,
        "personality": session.personality.value,
        "is_game_over": session.is_game_over,
        "result": _result(session),
        "legal_moves": [m.san for m in rules.legal_moves(position)],
        "selection": selection,
        "captured": {side: list(pieces) for side, pieces in state.captured.items()},
        "style_profile": (
            state.style_profile.to_dict() if state.style_profile else None
        ),
        "generation": state.generation,
    }


def _sync_game_json(game_state: dict) -> None:
    """Write game state to data/current_game.json atomically.

    Args:
        game_state: Game state dict to persist.
    """
    write_json_atomic(_DATA_DIR / "current_game.json", game_state)


def _get_game(game_id: str) -> dict | None:
    """Look up a game by ID.

    Args:
        game_id: UUID string.

    Returns:
        Game record dict or None if not found.
    """
    return _games.get(game_id)


def _register(session: GameSession) -> tuple[str, dict]:
    game_id = str(uuid.uuid4())
    game = {"session": session, "driver": ComputerDriver(session)}
    _games[game_id] = game
    return game_id, game


def _respond(game_id: str, game: dict) -> dict:
    """Sync the TUI file and return the minified state."""
    state = _build_game_state(game_id, game)
    _sync_game_json(state)
    return minify_game_state(state)


# ---------------------------------------------------------------------------
# Core game tools
# ---------------------------------------------------------------------------


@mcp.tool()
def new_game(
    human_side: str = "white",
    difficulty: str = "medium",
    style_profile: str | None = None,
) -> dict:
    """Start a new game against the computer.

    Args:
        human_side: 'white' or 'black'. Default 'white'.
        difficulty: 'easy', 'medium', 'hard' or 'style'. Default 'medium'.
        style_profile: Name of a profile built by analyze_pgn. Selects the
            style-based personality.

    Returns:
        Game state dict with the initial position.
    """
    profile = None
    if style_profile is not None:
        profile = _profiles.get(style_profile)
        if profile is None:
            return {"error": f"Style profile not found: {style_profile}"}

    try:
        session = GameSession(
            human_side=human_side, difficulty=difficulty, style_profile=profile
        )
    except ValueError as exc:
        return {"error": str(exc)}

    game_id, game = _register(session)
    logger.info("New game %s (%s, human plays %s)",
                game_id, session.personality.value, human_side)
    return _respond(game_id, game)


@mcp.tool()
def get_board(game_id: str) -> dict:
    """Get the current board state for a game.

    Args:
        game_id: UUID of the game.

    Returns:
        Game state dict with position, status and configuration.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    return minify_game_state(_build_game_state(game_id, game))


@mcp.tool()
def select_square(game_id: str, square: str) -> dict:
    """Select a square, listing where its piece can move.

    Selecting the selected square again, or a square without a piece of the
    side to move, clears the selection.

    Args:
        game_id: UUID of the game.
        square: Square name, e.g. 'e2'.

    Returns:
        Updated game state dict.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    game["session"].select_square(square)
    return _respond(game_id, game)


@mcp.tool()
def make_move(game_id: str, move: str) -> dict:
    """Make a move for the side to move.

    Args:
        game_id: UUID of the game.
        move: Move in SAN ('e4', 'Nf3', 'O-O') or UCI ('e2e4', 'e7e8q').

    Returns:
        Updated game state dict after the move.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    if session.is_game_over:
        return {"error": f"Game is already over: {session.state.status.value}"}
    if session.state.status == GameStatus.THINKING:
        return {"error": "Computer is thinking"}

    try:
        info = rules.resolve_move_text(session.state.position, move)
    except IllegalMoveError:
        legal = [m.san for m in rules.legal_moves(session.state.position)]
        return {"error": f"Illegal move: {move}. Legal moves: {legal}"}

    if not session.apply_move(info.from_square, info.to_square, info.promotion):
        return {"error": f"Move rejected: {move}"}

    return _respond(game_id, game)


@mcp.tool()
def engine_move(game_id: str) -> dict:
    """Have the computer make its move.

    Args:
        game_id: UUID of the game.

    Returns:
        Updated game state dict plus the move played.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    if session.is_game_over:
        return {"error": f"Game is already over: {session.state.status.value}"}
    if not session.needs_computer_move:
        return {"error": "It is not the computer's turn"}

    move = game["driver"].play_now()
    if move is None:
        return {"error": "Computer could not move"}

    response = _respond(game_id, game)
    response["engine_move"] = move.san
    return response


@mcp.tool()
def undo_move(game_id: str) -> dict:
    """Take back the last move (and the computer's reply, if recorded).

    Args:
        game_id: UUID of the game.

    Returns:
        Updated game state dict plus the number of plies undone.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    game["driver"].cancel()
    try:
        undone = game["session"].undo()
    except NoHistoryError as exc:
        return {"error": str(exc)}

    response = _respond(game_id, game)
    response["plies_undone"] = undone
    return response


@mcp.tool()
def restart_game(game_id: str) -> dict:
    """Restart from the initial position, keeping sides and difficulty.

    Args:
        game_id: UUID of the game.

    Returns:
        Game state dict with the initial position.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    game["driver"].cancel()
    game["session"].reset()
    return _respond(game_id, game)


@mcp.tool()
def set_difficulty(game_id: str, difficulty: str) -> dict:
    """Change the computer's difficulty.

    Args:
        game_id: UUID of the game.
        difficulty: 'easy', 'medium', 'hard' or 'style'.

    Returns:
        Updated game state dict.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    try:
        game["session"].set_difficulty(difficulty)
    except ValueError:
        return {"error": f"Unknown difficulty: {difficulty}"}
    return _respond(game_id, game)


@mcp.tool()
def set_human_side(game_id: str, side: str) -> dict:
    """Choose which side the human plays.

    Args:
        game_id: UUID of the game.
        side: 'white' or 'black'.

    Returns:
        Updated game state dict.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    try:
        game["session"].set_human_side(side)
    except ValueError as exc:
        return {"error": str(exc)}
    return _respond(game_id, game)


@mcp.tool()
def get_legal_moves(game_id: str, square: str | None = None) -> dict:
    """List legal moves, optionally only those from one square.

    Args:
        game_id: UUID of the game.
        square: Optional origin square, e.g. 'g1'.

    Returns:
        Dict with game_id, moves (SAN list) and count.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    moves = rules.legal_moves(game["session"].state.position, square)
    return {
        "game_id": game_id,
        "moves": [m.san for m in moves],
        "count": len(moves),
    }


@mcp.tool()
def get_game_pgn(game_id: str) -> dict:
    """Export the game so far as PGN.

    Args:
        game_id: UUID of the game.

    Returns:
        Dict with game_id and pgn text.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    session: GameSession = game["session"]
    if session.state.human_side == "white":
        pgn = session.to_pgn(white="Player", black="Computer")
    else:
        pgn = session.to_pgn(white="Computer", black="Player")
    return {"game_id": game_id, "pgn": pgn}


# ---------------------------------------------------------------------------
# Style profile tools
# ---------------------------------------------------------------------------


@mcp.tool()
def analyze_pgn(
    pgn_text: str | None = None,
    file_path: str | None = None,
    player: str | None = None,
    min_games: int = 3,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict:
    """Build style profiles from PGN games.

    With ``player`` only that player is profiled; otherwise every player
    with at least ``min_games`` games (up to 10) is. Profiles are kept for
    set_style_profile and new_game.

    Args:
        pgn_text: Raw PGN text.
        file_path: Path to a .pgn file (used when pgn_text is not given).
        player: Optional player name (case-insensitive substring).
        min_games: Minimum games for automatic player discovery.
        timeout: Time budget in seconds for parsing and for analysis.

    Returns:
        Dict with games_parsed and the minified profiles.
    """
    if pgn_text is None and file_path is None:
        return {"error": "Provide pgn_text or file_path"}

    try:
        text = pgn_text if pgn_text is not None else load_pgn_file(file_path)
        games = parse_pgn_with_timeout(text, timeout=timeout)
    except (OSError, ValueError, ProcessingTimeoutError) as exc:
        return {"error": str(exc)}

    if not games:
        return {"error": "No valid games found in the PGN"}

    if player is not None:
        try:
            profiles = {player: analyze_player_style(games, player)}
        except PlayerNotFoundError as exc:
            return {"error": str(exc)}
    else:
        names = candidate_players(games, min_games=min_games)
        if not names:
            return {"error": f"No player has at least {min_games} games"}
        try:
            profiles = profile_players(games, names, timeout=timeout)
        except ProcessingTimeoutError as exc:
            _profiles.update(exc.partial)
            return {
                "error": str(exc),
                "partial_profiles": sorted(exc.partial),
            }

    _profiles.update(profiles)
    logger.info("Built %d style profiles from %d games", len(profiles), len(games))
    return {
        "games_parsed": len(games),
        "profiles": [minify_style_profile(p.to_dict()) for p in profiles.values()],
    }


@mcp.tool()
def list_style_profiles() -> dict:
    """List the style profiles available to attach to a game.

    Returns:
        Dict with the minified profiles and their count.
    """
    return {
        "profiles": [minify_style_profile(p.to_dict()) for p in _profiles.values()],
        "count": len(_profiles),
    }


@mcp.tool()
def set_style_profile(game_id: str, name: str | None = None) -> dict:
    """Make the computer imitate a profiled player, or stop imitating.

    Args:
        game_id: UUID of the game.
        name: Profile name from analyze_pgn. None falls back to medium.

    Returns:
        Updated game state dict.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    profile = None
    if name is not None:
        profile = _profiles.get(name)
        if profile is None:
            return {"error": f"Style profile not found: {name}"}

    game["session"].set_style_profile(profile)
    return _respond(game_id, game)


# ---------------------------------------------------------------------------
# Persistence tools
# ---------------------------------------------------------------------------


@mcp.tool()
def save_game(game_id: str, name: str = DEFAULT_SNAPSHOT) -> dict:
    """Save a game snapshot to the data directory.

    Args:
        game_id: UUID of the game.
        name: Snapshot file name. Default 'saved_game.json'.

    Returns:
        Dict with game_id and the path written.
    """
    game = _get_game(game_id)
    if game is None:
        return {"error": f"Game not found: {game_id}"}

    path = save_snapshot(game["session"].to_snapshot(), snapshot_path(name, _DATA_DIR))
    return {"game_id": game_id, "path": str(path)}


@mcp.tool()
def load_game(name: str = DEFAULT_SNAPSHOT) -> dict:
    """Restore a saved game as a new game.

    A snapshot whose moves cannot be replayed yields a fresh game.

    Args:
        name: Snapshot file name. Default 'saved_game.json'.

    Returns:
        Game state dict of the restored game.
    """
    snapshot = load_snapshot(snapshot_path(name, _DATA_DIR))
    if snapshot is None:
        return {"error": f"No saved game: {name}"}

    session = GameSession.from_snapshot(snapshot)
    profile = session.state.style_profile
    if profile is not None:
        _profiles.setdefault(profile.name, profile)

    game_id, game = _register(session)
    return _respond(game_id, game)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run()
