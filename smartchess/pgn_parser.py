"""PGN ingestion and playing-style profiling for SmartChess.

Turns raw PGN text into ParsedGame records and aggregates one player's
moves into a StyleProfile the style-based personality can imitate. This is
a best-effort pipeline: malformed games are skipped, never reported.

CLI interface prints profiles as JSON to stdout.

Usage:
    uv run python -m smartchess.pgn_parser games.pgn --player Carlsen
"""

from __future__ import annotations

import argparse
import io
import json
import logging
import math
import re
import sys
from collections import Counter
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path

import chess.pgn

from smartchess.errors import (
    MalformedGameBlockError,
    PlayerNotFoundError,
    ProcessingTimeoutError,
)
from smartchess.models import ParsedGame, StyleProfile

logger = logging.getLogger(__name__)

# Games with this many recognized moves or fewer are dropped
_MIN_MOVES = 5

# Per-game analysis window and endgame window, in plies
_MAX_ANALYZED_PLIES = 80
_ENDGAME_WINDOW = 20
_OPENING_PLIES = 6

DEFAULT_TIMEOUT = 10.0
MAX_PGN_BYTES = 10 * 1024 * 1024

_RESULTS = {"1-0", "0-1", "1/2-1/2", "*"}

_COMMENT = re.compile(r"\{[^}]*\}")
_LINE_COMMENT = re.compile(r";[^\n]*")
_VARIATION = re.compile(r"\([^()]*\)")
_NAG = re.compile(r"\$\d+")
_GLYPHS = re.compile(r"[!?]+")
_MOVE_NUMBER = re.compile(r"\d+\.+")
_SAN_MOVE = re.compile(
    r"^(?:[KQRBN]?[a-h]?[1-8]?x?[a-h][1-8](?:=[QRBN])?|O-O(?:-O)?)[+#]?$"
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _read_games(text: str) -> Iterator[tuple[chess.pgn.Headers, str]]:
    """Yield (headers, raw movetext) for every game in ``text``.

    chess.pgn finds game boundaries and reads the tag pairs. The movetext
    comes back untouched so the token filter sees illegal SAN too.
    """
    text = text.lstrip("\ufeff")
    stream = io.StringIO(text)
    while True:
        start = stream.tell()
        headers = chess.pgn.read_headers(stream)
        if headers is None:
            return
        block = text[start:stream.tell()]
        movetext = "\n".join(
            line for line in block.splitlines()
            if not line.startswith(("[", "%"))
        )
        yield headers, movetext


def _clean_movetext(movetext: str) -> str:
    """Strip comments, variations, glyphs and move numbers from movetext."""
    text = _COMMENT.sub(" ", movetext)
    text = _LINE_COMMENT.sub(" ", text)
    while True:
        stripped = _VARIATION.sub(" ", text)
        if stripped == text:
            break
        text = stripped
    text = _NAG.sub(" ", text)
    text = _GLYPHS.sub("", text)
    text = _MOVE_NUMBER.sub(" ", text)
    return text


def is_san_token(token: str) -> bool:
    """True when ``token`` matches the strict algebraic move grammar."""
    return bool(_SAN_MOVE.match(token))


def _parse_game(headers: chess.pgn.Headers, movetext: str) -> ParsedGame:
    """Build a ParsedGame from one game's tag pairs and movetext.

    Raises:
        MalformedGameBlockError: If the block has no headers or too few moves.
    """
    if not headers:
        raise MalformedGameBlockError("Game block has no header tags")

    tokens = _clean_movetext(movetext).split()
    moves = tuple(t for t in tokens if is_san_token(t))
    if len(moves) <= _MIN_MOVES:
        raise MalformedGameBlockError(f"Only {len(moves)} recognizable moves")

    result = headers.get("Result")
    if result is None:
        result = tokens[-1] if tokens and tokens[-1] in _RESULTS else "*"

    return ParsedGame(
        moves=moves,
        result=result,
        white=headers.get("White") or "Unknown",
        black=headers.get("Black") or "Unknown",
        event=headers.get("Event"),
        date=headers.get("Date"),
        eco=headers.get("ECO"),
    )


def parse_pgn(text: str) -> list[ParsedGame]:
    """Parse every usable game out of raw PGN text.

    Args:
        text: Raw PGN, one or more games.

    Returns:
        ParsedGame list in file order. Empty when nothing is usable.
    """
    games: list[ParsedGame] = []
    skipped = 0
    for headers, movetext in _read_games(text):
        try:
            games.append(_parse_game(headers, movetext))
        except MalformedGameBlockError:
            skipped += 1
    if skipped:
        logger.debug("Skipped %d unusable PGN game blocks", skipped)
    return games


# ---------------------------------------------------------------------------
# Style analysis
# ---------------------------------------------------------------------------


def _name_matches(header_name: str, player_name: str) -> bool:
    return player_name.lower() in header_name.lower()


def analyze_player_style(games: list[ParsedGame], player_name: str) -> StyleProfile:
    """Build a StyleProfile from one player's moves across many games.

    Args:
        games: Parsed games, typically from parse_pgn.
        player_name: Case-insensitive substring of the White/Black header.

    Returns:
        The player's StyleProfile.

    Raises:
        PlayerNotFoundError: If no game header contains the name.
    """
    player_games = [
        g for g in games
        if _name_matches(g.white, player_name) or _name_matches(g.black, player_name)
    ]
    if not player_games:
        raise PlayerNotFoundError(player_name)

    profile = StyleProfile(name=player_name, total_games=len(player_games))
    pieces = profile.piece_activity
    tactics = profile.tactical_patterns
    endgame = profile.endgame_style
    total_plies = 0

    for game in player_games:
        moves = game.moves
        total_plies += len(moves)
        is_white = _name_matches(game.white, player_name)

        opening = " ".join(moves[:_OPENING_PLIES])
        if opening:
            profile.opening_preferences[opening] = (
                profile.opening_preferences.get(opening, 0) + 1
            )

        endgame_start = len(moves) - _ENDGAME_WINDOW
        for i, move in enumerate(moves[:_MAX_ANALYZED_PLIES]):
            if (i % 2 == 0) != is_white:
                continue
            in_endgame = i >= endgame_start

            if move.startswith("O-O"):
                tactics["castles"] += 1
            elif move[0] == "Q":
                pieces["queen"] += 1
            elif move[0] == "R":
                pieces["rook"] += 1
            elif move[0] == "B":
                pieces["bishop"] += 1
            elif move[0] == "N":
                pieces["knight"] += 1
            elif move[0] == "K":
                if in_endgame:
                    endgame["king_activity"] += 1
            else:
                pieces["pawn"] += 1
                if in_endgame:
                    endgame["pawn_pushes"] += 1

            if "x" in move:
                tactics["captures"] += 1
                if in_endgame:
                    endgame["exchanges"] += 1
            if "+" in move or "#" in move:
                tactics["checks"] += 1
            if "=" in move:
                tactics["promotions"] += 1

    game_count = len(player_games)
    profile.average_game_length = _round_half_up(total_plies / game_count)

    captures_per_game = tactics["captures"] / game_count
    checks_per_game = tactics["checks"] / game_count
    profile.aggressiveness = min(
        100, max(0, _round_half_up((captures_per_game + checks_per_game) * 8))
    )

    total_piece_moves = sum(pieces.values())
    if total_piece_moves > 0:
        minor_moves = pieces["bishop"] + pieces["knight"]
        profile.positional_vs_tactical = _round_half_up(
            minor_moves / total_piece_moves * 100
        )

    return profile


def candidate_players(
    games: list[ParsedGame],
    min_games: int = 3,
    limit: int = 10,
) -> list[str]:
    """Players worth profiling: enough games, most frequent first.

    Args:
        games: Parsed games.
        min_games: Minimum number of games a player must appear in.
        limit: Maximum number of players returned.

    Returns:
        Player names as they appear in the headers.
    """
    counts: Counter[str] = Counter()
    for game in games:
        for name in (game.white, game.black):
            if name != "Unknown":
                counts[name] += 1
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [name for name, count in ranked if count >= min_games][:limit]


# ---------------------------------------------------------------------------
# Bounded processing
# ---------------------------------------------------------------------------


def parse_pgn_with_timeout(text: str, timeout: float = DEFAULT_TIMEOUT) -> list[ParsedGame]:
    """parse_pgn bounded by a wall-clock timeout.

    Raises:
        ProcessingTimeoutError: If parsing does not finish in time.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(parse_pgn, text)
        done, _ = wait([future], timeout=timeout)
        if not done:
            raise ProcessingTimeoutError(f"PGN parsing timed out after {timeout}s")
        return future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def profile_players(
    games: list[ParsedGame],
    names: list[str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_workers: int = 4,
) -> dict[str, StyleProfile]:
    """Analyze several players concurrently.

    Args:
        games: Parsed games shared read-only by all workers.
        names: Players to analyze. Defaults to candidate_players(games).
        timeout: Overall time budget in seconds.
        max_workers: Thread pool size.

    Returns:
        Dict of player name -> StyleProfile, in ``names`` order. Players
        that match no game are logged and left out.

    Raises:
        ProcessingTimeoutError: If some analyses did not finish in time.
            ``partial`` holds the profiles that did.
    """
    if names is None:
        names = candidate_players(games)
    if not names:
        return {}

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = {name: executor.submit(analyze_player_style, games, name) for name in names}
        done, pending = wait(futures.values(), timeout=timeout)

        profiles: dict[str, StyleProfile] = {}
        for name, future in futures.items():
            if future not in done:
                continue
            try:
                profiles[name] = future.result()
            except PlayerNotFoundError as exc:
                logger.warning("Failed to analyze %s: %s", name, exc)

        if pending:
            raise ProcessingTimeoutError(
                f"Style analysis timed out after {timeout}s "
                f"({len(pending)} of {len(names)} players unfinished)",
                partial=profiles,
            )
        return profiles
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def load_pgn_file(path: str | Path, max_bytes: int = MAX_PGN_BYTES) -> str:
    """Read a .pgn file for ingestion.

    Raises:
        ValueError: Wrong extension, file too large, or empty file.
        OSError: If the file cannot be read.
    """
    pgn_path = Path(path)
    if pgn_path.suffix.lower() != ".pgn":
        raise ValueError("Please provide a .pgn file")
    if pgn_path.stat().st_size > max_bytes:
        raise ValueError(f"File too large, limit is {max_bytes // (1024 * 1024)}MB")
    text = pgn_path.read_text(encoding="utf-8", errors="replace")
    if not text.strip():
        raise ValueError("File appears to be empty")
    return text


# ---------------------------------------------------------------------------
# CLI interface
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point for pgn_parser.py."""
    parser = argparse.ArgumentParser(
        description="Build playing-style profiles from a PGN file"
    )
    parser.add_argument("pgn_file", type=str, help="Path to a .pgn file")
    parser.add_argument(
        "--player", action="append", default=None,
        help="Player to profile (repeatable). Default: most frequent players",
    )
    parser.add_argument("--min-games", type=int, default=3)
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT)
    args = parser.parse_args()

    try:
        text = load_pgn_file(args.pgn_file)
        games = parse_pgn_with_timeout(text, timeout=args.timeout)
    except (OSError, ValueError, ProcessingTimeoutError) as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)

    if not games:
        print(json.dumps({"error": "No valid games found in the PGN file"}))
        sys.exit(1)

    names = args.player or candidate_players(games, min_games=args.min_games)
    output: dict = {"games": len(games), "profiles": []}
    try:
        profiles = profile_players(games, names, timeout=args.timeout)
    except ProcessingTimeoutError as exc:
        profiles = exc.partial
        output["error"] = str(exc)

    output["profiles"] = [p.to_dict() for p in profiles.values()]
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
