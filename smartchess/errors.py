"""Exception types for SmartChess.

None of these are fatal: the game session recovers from illegal moves
locally, the MCP server turns the rest into error dicts.
"""

from __future__ import annotations


class SmartChessError(Exception):
    """Base class for all SmartChess errors."""


class IllegalMoveError(SmartChessError):
    """Attempted move is not in the legal move set."""


class NoHistoryError(SmartChessError):
    """Undo requested with an empty move history."""


class PlayerNotFoundError(SmartChessError):
    """No game header matches the requested player name."""

    def __init__(self, player_name: str) -> None:
        super().__init__(f"No games found for player: {player_name}")
        self.player_name = player_name


class ProcessingTimeoutError(SmartChessError):
    """PGN parsing or style analysis exceeded its time budget.

    Attributes:
        partial: Results that did finish before the deadline.
    """

    def __init__(self, message: str, partial: dict | None = None) -> None:
        super().__init__(message)
        self.partial = partial or {}


class MalformedGameBlockError(SmartChessError):
    """A PGN game block could not be turned into a game. Internal only."""
