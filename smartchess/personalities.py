"""Computer personalities as declarative scoring configurations.

Each personality is a list of weighted scoring terms. A term pairs a
feature (a number computed for one candidate move) with a weight and an
applicability predicate, usually a game-phase gate. The move selector in
smartchess.engine evaluates them generically; nothing here picks moves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import chess

from smartchess.models import MoveInfo, Personality, StyleProfile

# Piece values used by the capture terms
_PIECE_VALUES: dict[str, float] = {
    "pawn": 1.0,
    "knight": 3.0,
    "bishop": 3.25,
    "rook": 5.0,
    "queen": 9.0,
    "king": 0.0,
}

_CENTRAL_SQUARES = {"d4", "d5", "e4", "e5", "c4", "c5", "f4", "f5"}

# Squares where each piece kind tends to be strong, regardless of color
_OUTPOST_SQUARES: dict[str, set[str]] = {
    "knight": {"d5", "e5", "d4", "e4", "f5", "f4", "c5", "c4"},
    "bishop": {"d5", "e5", "d4", "e4", "f5", "f4", "c5", "c4", "a3", "h3", "a6", "h6"},
    "rook": {"d1", "e1", "d8", "e8", "d2", "e2", "d7", "e7", "c1", "f1", "c8", "f8"},
    "queen": {"d3", "e3", "d6", "e6", "c3", "f3", "c6", "f6"},
}


def piece_value(piece: str | None) -> float:
    """Return the material value for a piece name (0 for None/king)."""
    if piece is None:
        return 0.0
    return _PIECE_VALUES.get(piece, 0.0)


@dataclass
class MoveContext:
    """Everything a scoring term may look at for one candidate move."""

    board: chess.Board
    move: chess.Move
    info: MoveInfo
    ply: int
    phase: str
    style_profile: StyleProfile | None = None

    @property
    def color(self) -> chess.Color:
        return self.board.turn

    @property
    def is_endgame(self) -> bool:
        return self.phase == "endgame"


@dataclass(frozen=True)
class ScoringTerm:
    name: str
    weight: float
    feature: Callable[[MoveContext], float]
    applies: Callable[[MoveContext], bool] = lambda ctx: True


@dataclass(frozen=True)
class PersonalityProfile:
    """A named scoring configuration plus its selection policy.

    Attributes:
        top_fraction: Share of the ranked move list the final pick is drawn
            from. Smaller is stronger.
        thinking_time: Minimum delay in seconds before the computer moves.
        jitter: Upper bound of the uniform random term added to each score.
    """

    name: Personality
    terms: tuple[ScoringTerm, ...] = field(default_factory=tuple)
    top_fraction: float = 0.3
    thinking_time: float = 0.5
    jitter: float = 2.0


# ---------------------------------------------------------------------------
# Phase predicates
# ---------------------------------------------------------------------------


def _in_opening(ctx: MoveContext) -> bool:
    return ctx.phase == "opening"


def _in_endgame(ctx: MoveContext) -> bool:
    return ctx.is_endgame


def _not_endgame(ctx: MoveContext) -> bool:
    return not ctx.is_endgame


def _before_ply(limit: int) -> Callable[[MoveContext], bool]:
    return lambda ctx: ctx.ply < limit


def _after_ply(limit: int) -> Callable[[MoveContext], bool]:
    return lambda ctx: ctx.ply > limit


def _has_profile(ctx: MoveContext) -> bool:
    return ctx.style_profile is not None


# ---------------------------------------------------------------------------
# Board helpers
# ---------------------------------------------------------------------------


def _is_passed_pawn(board: chess.Board, color: chess.Color, square: int) -> bool:
    """True when no enemy pawn on this or an adjacent file can stop the pawn."""
    file = chess.square_file(square)
    rank = chess.square_rank(square)
    for enemy_sq in board.pieces(chess.PAWN, not color):
        enemy_file = chess.square_file(enemy_sq)
        if abs(enemy_file - file) > 1:
            continue
        enemy_rank = chess.square_rank(enemy_sq)
        if color == chess.WHITE and enemy_rank > rank:
            return False
        if color == chess.BLACK and enemy_rank < rank:
            return False
    return True


def _board_after(ctx: MoveContext) -> chess.Board:
    board = ctx.board.copy(stack=False)
    board.push(ctx.move)
    return board


def _has_adjacent_pawn(board: chess.Board, color: chess.Color, square: int) -> bool:
    file = chess.square_file(square)
    for sq in board.pieces(chess.PAWN, color):
        if sq != square and abs(chess.square_file(sq) - file) == 1:
            return True
    return False


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


def capture_value(ctx: MoveContext) -> float:
    return piece_value(ctx.info.captured)


def is_capture(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.captured else 0.0


def favorable_capture(ctx: MoveContext) -> float:
    """Value of a capture that wins at least as much as the capturing piece."""
    captured = piece_value(ctx.info.captured)
    if ctx.info.captured and captured >= piece_value(ctx.info.piece):
        return captured
    return 0.0


def unfavorable_capture(ctx: MoveContext) -> float:
    captured = piece_value(ctx.info.captured)
    if ctx.info.captured and captured < piece_value(ctx.info.piece):
        return captured
    return 0.0


def gives_check(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.is_check else 0.0


def castles(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.is_castle else 0.0


def central_destination(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.to_square in _CENTRAL_SQUARES else 0.0


def minor_piece_move(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.piece in ("knight", "bishop") else 0.0


def minor_piece_development(ctx: MoveContext) -> float:
    """A knight or bishop leaving its own back rank."""
    if ctx.info.piece not in ("knight", "bishop"):
        return 0.0
    home_rank = 0 if ctx.color == chess.WHITE else 7
    return 1.0 if chess.square_rank(ctx.move.from_square) == home_rank else 0.0


def repeated_piece_move(ctx: MoveContext) -> float:
    """Moving again a piece that this side moved in its last two turns."""
    # move_stack[-1] is the opponent's reply, so ours are at -2 and -4
    own_recent = ctx.board.move_stack[-2::-2][:2]
    for previous in own_recent:
        if previous.to_square == ctx.move.from_square:
            return 1.0
    return 0.0


def king_move(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.piece == "king" and not ctx.info.is_castle else 0.0


def queen_move(ctx: MoveContext) -> float:
    return 1.0 if ctx.info.piece == "queen" else 0.0


def pawn_support(ctx: MoveContext) -> float:
    """A pawn move next to a friendly pawn on an adjacent file."""
    if ctx.info.piece != "pawn":
        return 0.0
    return 1.0 if _has_adjacent_pawn(ctx.board, ctx.color, ctx.move.from_square) else 0.0


def isolated_pawn(ctx: MoveContext) -> float:
    """A pawn move that leaves the pawn without neighbours on adjacent files."""
    if ctx.info.piece != "pawn":
        return 0.0
    after = _board_after(ctx)
    return 0.0 if _has_adjacent_pawn(after, ctx.color, ctx.move.to_square) else 1.0


def passed_pawn(ctx: MoveContext) -> float:
    if ctx.info.piece != "pawn":
        return 0.0
    after = _board_after(ctx)
    return 1.0 if _is_passed_pawn(after, ctx.color, ctx.move.to_square) else 0.0


def outpost_square(ctx: MoveContext) -> float:
    squares = _OUTPOST_SQUARES.get(ctx.info.piece)
    if squares is None:
        return 0.0
    return 1.0 if ctx.info.to_square in squares else 0.0


def enemy_king_proximity(ctx: MoveContext) -> float:
    """8 minus the king-move distance from the destination to the enemy king."""
    if ctx.info.piece == "king":
        return 0.0
    enemy_king = ctx.board.king(not ctx.color)
    if enemy_king is None:
        return 0.0
    return float(8 - chess.square_distance(ctx.move.to_square, enemy_king))


def king_to_back_rank(ctx: MoveContext) -> float:
    if ctx.info.piece != "king" or ctx.info.is_castle:
        return 0.0
    return 1.0 if chess.square_rank(ctx.move.to_square) in (0, 7) else 0.0


def king_centralization(ctx: MoveContext) -> float:
    """0 on the rim up to 3 on the four centre squares, for king moves."""
    if ctx.info.piece != "king":
        return 0.0
    file = chess.square_file(ctx.move.to_square)
    rank = chess.square_rank(ctx.move.to_square)
    return 3.5 - max(abs(3.5 - file), abs(3.5 - rank))


def rook_behind_passed_pawn(ctx: MoveContext) -> float:
    if ctx.info.piece != "rook":
        return 0.0
    after = _board_after(ctx)
    to_file = chess.square_file(ctx.move.to_square)
    to_rank = chess.square_rank(ctx.move.to_square)
    for pawn_sq in after.pieces(chess.PAWN, ctx.color):
        if chess.square_file(pawn_sq) != to_file:
            continue
        if not _is_passed_pawn(after, ctx.color, pawn_sq):
            continue
        pawn_rank = chess.square_rank(pawn_sq)
        if ctx.color == chess.WHITE and to_rank < pawn_rank:
            return 1.0
        if ctx.color == chess.BLACK and to_rank > pawn_rank:
            return 1.0
    return 0.0


def style_piece_preference(ctx: MoveContext) -> float:
    """Share of the profiled player's piece moves made with this piece kind."""
    return ctx.style_profile.piece_share(ctx.info.piece)


def style_capture_appetite(ctx: MoveContext) -> float:
    if not ctx.info.captured:
        return 0.0
    return ctx.style_profile.aggressiveness / 100


def style_endgame_king(ctx: MoveContext) -> float:
    """King moves per game in the profiled player's endgames."""
    if ctx.info.piece != "king":
        return 0.0
    profile = ctx.style_profile
    if profile.total_games == 0:
        return 0.0
    return profile.endgame_style.get("king_activity", 0) / profile.total_games


# ---------------------------------------------------------------------------
# Personalities
# ---------------------------------------------------------------------------


DEFENSIVE_TACTICAL = PersonalityProfile(
    name=Personality.DEFENSIVE_TACTICAL,
    terms=(
        ScoringTerm("favorable_capture", 2.0, favorable_capture),
        ScoringTerm("unfavorable_capture", 0.5, unfavorable_capture),
        ScoringTerm("check", 3.0, gives_check),
        ScoringTerm("development", 2.0, minor_piece_development),
        ScoringTerm("center", 1.5, central_destination),
        ScoringTerm("castle", 4.0, castles),
        ScoringTerm("repeat_piece", -1.0, repeated_piece_move, _before_ply(16)),
        ScoringTerm("late_king", 1.0, king_move, _after_ply(20)),
        ScoringTerm("pawn_support", 0.5, pawn_support, _before_ply(40)),
    ),
    top_fraction=0.3,
    thinking_time=0.3,
)

BALANCED = PersonalityProfile(
    name=Personality.BALANCED,
    terms=(
        ScoringTerm("capture", 1.5, capture_value),
        ScoringTerm("check", 2.0, gives_check),
        ScoringTerm("development", 1.5, minor_piece_development, _not_endgame),
        ScoringTerm("center", 1.5, central_destination),
        ScoringTerm("castle", 3.0, castles),
        ScoringTerm("passed_pawn", 1.5, passed_pawn),
        ScoringTerm("early_queen", -1.0, queen_move, _in_opening),
        ScoringTerm("king_center", 0.5, king_centralization, _in_endgame),
    ),
    top_fraction=0.25,
    thinking_time=0.4,
)

AGGRESSIVE = PersonalityProfile(
    name=Personality.AGGRESSIVE,
    terms=(
        ScoringTerm("capture", 1.5, capture_value),
        ScoringTerm("endgame_king", 3.0, king_move, _in_endgame),
        ScoringTerm("king_center", 0.5, king_centralization, _in_endgame),
        ScoringTerm("king_back_rank", -1.0, king_to_back_rank, _not_endgame),
        ScoringTerm("passed_pawn", 3.0, passed_pawn),
        ScoringTerm("push_passed_pawn", 2.0, passed_pawn, _in_endgame),
        ScoringTerm("isolated_pawn", -1.5, isolated_pawn),
        ScoringTerm("outpost", 1.5, outpost_square),
        ScoringTerm("check", 3.0, gives_check),
        ScoringTerm("middlegame_capture", 1.5, is_capture, _not_endgame),
        ScoringTerm("king_pressure", 0.3, enemy_king_proximity),
        ScoringTerm("rook_behind_passer", 2.5, rook_behind_passed_pawn, _in_endgame),
    ),
    top_fraction=0.2,
    thinking_time=0.5,
)

POSITIONAL = PersonalityProfile(
    name=Personality.POSITIONAL,
    terms=(
        ScoringTerm("minor_piece", 2.0, minor_piece_move),
        ScoringTerm("castle", 3.0, castles),
        ScoringTerm("center", 2.0, central_destination),
        ScoringTerm("early_queen", -2.0, queen_move, _before_ply(10)),
    ),
    top_fraction=0.3,
    thinking_time=0.4,
)

STYLE_BASED = PersonalityProfile(
    name=Personality.STYLE_BASED,
    terms=(
        ScoringTerm("capture_appetite", 5.0, style_capture_appetite, _has_profile),
        ScoringTerm("piece_preference", 4.0, style_piece_preference, _has_profile),
        ScoringTerm(
            "endgame_king",
            1.0,
            style_endgame_king,
            lambda ctx: _has_profile(ctx) and _in_endgame(ctx),
        ),
    ),
    top_fraction=0.3,
    thinking_time=0.6,
)

PERSONALITIES: dict[Personality, PersonalityProfile] = {
    profile.name: profile
    for profile in (DEFENSIVE_TACTICAL, BALANCED, AGGRESSIVE, POSITIONAL, STYLE_BASED)
}


def get_personality(
    personality: Personality, style_profile: StyleProfile | None = None
) -> PersonalityProfile:
    """Look up a personality, falling back to aggressive for a profileless style."""
    if personality == Personality.STYLE_BASED and style_profile is None:
        return AGGRESSIVE
    return PERSONALITIES[Personality(personality)]
