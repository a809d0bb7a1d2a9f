"""Shared data models for SmartChess.

GameState, StyleProfile and GameSnapshot are the shared contract between
the game session, the move selector, the MCP server and the TUI.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smartchess.rules import Position


WHITE = "white"
BLACK = "black"


def opposite(color: str) -> str:
    """Return the other side's color name."""
    return BLACK if color == WHITE else WHITE


class GameStatus(str, Enum):
    PLAYING = "playing"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW = "draw"
    THINKING = "thinking"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    STYLE = "style"


class Personality(str, Enum):
    DEFENSIVE_TACTICAL = "defensive_tactical"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"
    POSITIONAL = "positional"
    STYLE_BASED = "style_based"


DIFFICULTY_PERSONALITIES: dict[Difficulty, Personality] = {
    Difficulty.EASY: Personality.DEFENSIVE_TACTICAL,
    Difficulty.MEDIUM: Personality.BALANCED,
    Difficulty.HARD: Personality.AGGRESSIVE,
    Difficulty.STYLE: Personality.STYLE_BASED,
}


@dataclass(frozen=True)
class MoveInfo:
    """A legal move as described by the rules adapter."""

    from_square: str
    to_square: str
    piece: str
    san: str
    uci: str
    promotion: str | None = None
    captured: str | None = None
    is_check: bool = False
    is_checkmate: bool = False
    is_castle: bool = False


@dataclass(frozen=True)
class Selection:
    """Transient UI selection: a square and where its piece may go."""

    square: str
    legal_targets: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ParsedGame:
    """One game extracted from PGN text."""

    moves: tuple[str, ...]
    result: str = "*"
    white: str = "Unknown"
    black: str = "Unknown"
    event: str | None = None
    date: str | None = None
    eco: str | None = None


@dataclass
class StyleProfile:
    """Statistical summary of one player's historical move tendencies."""

    name: str
    total_games: int
    average_game_length: int = 0
    opening_preferences: dict[str, int] = field(default_factory=dict)
    piece_activity: dict[str, int] = field(default_factory=lambda: {
        "queen": 0, "rook": 0, "bishop": 0, "knight": 0, "pawn": 0,
    })
    tactical_patterns: dict[str, int] = field(default_factory=lambda: {
        "captures": 0, "checks": 0, "castles": 0, "promotions": 0,
    })
    endgame_style: dict[str, int] = field(default_factory=lambda: {
        "king_activity": 0, "pawn_pushes": 0, "exchanges": 0,
    })
    aggressiveness: int = 50
    positional_vs_tactical: int = 50

    def piece_share(self, piece: str) -> float:
        """Fraction of this player's piece moves made with ``piece``."""
        total = sum(self.piece_activity.values())
        if total == 0:
            return 0.0
        return self.piece_activity.get(piece, 0) / total

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> StyleProfile:
        """Rebuild a profile from ``to_dict`` output.

        Raises:
            KeyError: If ``name`` or ``total_games`` is missing.
        """
        profile = cls(name=data["name"], total_games=int(data["total_games"]))
        profile.average_game_length = int(data.get("average_game_length", 0))
        profile.opening_preferences = dict(data.get("opening_preferences", {}))
        profile.piece_activity.update(data.get("piece_activity", {}))
        profile.tactical_patterns.update(data.get("tactical_patterns", {}))
        profile.endgame_style.update(data.get("endgame_style", {}))
        profile.aggressiveness = int(data.get("aggressiveness", 50))
        profile.positional_vs_tactical = int(data.get("positional_vs_tactical", 50))
        return profile


@dataclass
class GameState:
    """The single source of truth for one game session."""

    position: Position
    move_history: list[str] = field(default_factory=list)
    status: GameStatus = GameStatus.PLAYING
    human_side: str = WHITE
    selection: Selection | None = None
    last_move: MoveInfo | None = None
    captured: dict[str, list[str]] = field(
        default_factory=lambda: {WHITE: [], BLACK: []}
    )
    difficulty: Difficulty = Difficulty.MEDIUM
    style_profile: StyleProfile | None = None
    generation: int = 0


@dataclass
class GameSnapshot:
    """Plain serializable form of a game for external storage."""

    fen: str
    move_history: list[str] = field(default_factory=list)
    difficulty: str = Difficulty.MEDIUM.value
    human_side: str = WHITE
    style_profile: dict | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> GameSnapshot:
        return cls(
            fen=data["fen"],
            move_history=list(data.get("move_history", [])),
            difficulty=data.get("difficulty", Difficulty.MEDIUM.value),
            human_side=data.get("human_side", WHITE),
            style_profile=data.get("style_profile"),
        )
