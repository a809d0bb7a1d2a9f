"""Chess rules adapter over python-chess.

Positions are immutable values: a root FEN plus the UCI moves played from
it. Every function takes a Position and returns new values, never touching
a shared board. python-chess does all of the actual rules work.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

import chess

from smartchess.errors import IllegalMoveError, NoHistoryError
from smartchess.models import BLACK, WHITE, MoveInfo


@dataclass(frozen=True)
class Position:
    """Immutable chess position threaded through every adapter call."""

    root_fen: str = chess.STARTING_FEN
    moves: tuple[str, ...] = ()

    @cached_property
    def _board(self) -> chess.Board:
        board = chess.Board(self.root_fen)
        for uci in self.moves:
            board.push(chess.Move.from_uci(uci))
        return board

    @property
    def fen(self) -> str:
        return self._board.fen()


def _board(position: Position) -> chess.Board:
    """Private mutable copy of the position's board (with move stack)."""
    return position._board.copy()


def _promotion_type(promotion: str | None) -> int | None:
    """Map 'q' / 'queen' style promotion names to a python-chess piece type."""
    if promotion is None:
        return None
    text = promotion.strip().lower()
    if text in chess.PIECE_NAMES[1:]:
        return chess.PIECE_NAMES.index(text)
    if text in chess.PIECE_SYMBOLS[1:]:
        return chess.PIECE_SYMBOLS.index(text)
    raise IllegalMoveError(f"Unknown promotion piece: {promotion}")


def _describe(board: chess.Board, move: chess.Move) -> MoveInfo:
    """Build a MoveInfo for a legal move on the given board."""
    piece_type = board.piece_type_at(move.from_square)
    captured = None
    if board.is_en_passant(move):
        captured = chess.piece_name(chess.PAWN)
    elif board.is_capture(move):
        captured = chess.piece_name(board.piece_type_at(move.to_square))

    san = board.san(move)
    return MoveInfo(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        piece=chess.piece_name(piece_type),
        san=san,
        uci=move.uci(),
        promotion=chess.piece_name(move.promotion) if move.promotion else None,
        captured=captured,
        is_check=san.endswith(("+", "#")),
        is_checkmate=san.endswith("#"),
        is_castle=board.is_castling(move),
    )


# ---------------------------------------------------------------------------
# Construction and serialization
# ---------------------------------------------------------------------------


def initial_position() -> Position:
    return Position()


def from_fen(text: str) -> Position:
    """Create a position from FEN text.

    Raises:
        ValueError: If the FEN is malformed or describes an invalid position.
    """
    board = chess.Board(text)
    if not board.is_valid():
        raise ValueError(f"Invalid FEN position: {text}")
    return Position(root_fen=board.fen())


def to_fen(position: Position) -> str:
    return position.fen


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def legal_moves(position: Position, square: str | None = None) -> list[MoveInfo]:
    """List legal moves, optionally only those starting on ``square``.

    An unparseable square yields an empty list.
    """
    board = _board(position)
    if square is None:
        candidates = list(board.legal_moves)
    else:
        try:
            origin = chess.parse_square(square)
        except ValueError:
            return []
        candidates = [m for m in board.legal_moves if m.from_square == origin]
    return [_describe(board, m) for m in candidates]


def side_to_move(position: Position) -> str:
    return WHITE if position._board.turn == chess.WHITE else BLACK


def piece_at(position: Position, square: str) -> chess.Piece | None:
    """Return the piece on ``square`` or None (also for bad square names)."""
    try:
        return _board(position).piece_at(chess.parse_square(square))
    except ValueError:
        return None


def ply_count(position: Position) -> int:
    """Half-moves since the start of the game, honoring the FEN counters."""
    return _board(position).ply()


def non_king_piece_count(position: Position) -> int:
    board = _board(position)
    return chess.popcount(board.occupied) - 2


def is_checkmate(position: Position) -> bool:
    return _board(position).is_checkmate()


def is_stalemate(position: Position) -> bool:
    return _board(position).is_stalemate()


def is_draw(position: Position) -> bool:
    """Draws other than stalemate that have already happened on the board.

    Threefold repetition and the 50-move rule count once reached, not when
    the next move could reach them.
    """
    board = _board(position)
    return (
        board.is_insufficient_material()
        or board.is_seventyfive_moves()
        or board.is_fivefold_repetition()
        or board.halfmove_clock >= 100
        or board.is_repetition(3)
    )


def is_game_over(position: Position) -> bool:
    return is_checkmate(position) or is_stalemate(position) or is_draw(position)


def board_view(position: Position) -> chess.Board:
    """Copy of the underlying board for read-only static feature queries."""
    return _board(position)


def move_log(position: Position) -> list[tuple[str, MoveInfo]]:
    """(mover color, move) for every move played from the root position."""
    board = chess.Board(position.root_fen)
    log: list[tuple[str, MoveInfo]] = []
    for uci in position.moves:
        move = chess.Move.from_uci(uci)
        mover = WHITE if board.turn == chess.WHITE else BLACK
        log.append((mover, _describe(board, move)))
        board.push(move)
    return log


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def apply_move(
    position: Position,
    from_square: str,
    to_square: str,
    promotion: str | None = None,
) -> tuple[Position, MoveInfo]:
    """Play a move given by origin/destination squares.

    Returns:
        Tuple of (new position, description of the move played).

    Raises:
        IllegalMoveError: If the squares are invalid or the move is not legal.
    """
    board = _board(position)
    try:
        move = chess.Move(
            chess.parse_square(from_square),
            chess.parse_square(to_square),
            promotion=_promotion_type(promotion),
        )
    except ValueError as exc:
        raise IllegalMoveError(f"Invalid squares: {from_square}{to_square}") from exc

    if move not in board.legal_moves:
        raise IllegalMoveError(f"Illegal move: {move.uci()}")

    info = _describe(board, move)
    return Position(position.root_fen, position.moves + (move.uci(),)), info


def resolve_move_text(position: Position, text: str) -> MoveInfo:
    """Resolve UCI ('e2e4') or SAN ('e4', 'Nf3') text to a legal move.

    Raises:
        IllegalMoveError: If the text is neither a legal UCI nor SAN move.
    """
    board = _board(position)
    move = None
    try:
        candidate = chess.Move.from_uci(text.strip())
        if candidate in board.legal_moves:
            move = candidate
    except ValueError:
        pass

    if move is None:
        try:
            move = board.parse_san(text.strip())
        except (chess.InvalidMoveError, chess.IllegalMoveError, chess.AmbiguousMoveError) as exc:
            raise IllegalMoveError(f"Illegal move: {text}") from exc
        # parse_san accepts '--' and friends as a null move
        if not move:
            raise IllegalMoveError(f"Illegal move: {text}")

    return _describe(board, move)


def apply_san(position: Position, san: str) -> tuple[Position, MoveInfo]:
    """Play a move given as SAN (or UCI) text. Used for history replay."""
    info = resolve_move_text(position, san)
    return apply_move(position, info.from_square, info.to_square, info.promotion)


def undo(position: Position) -> Position:
    """Take back the last move.

    Raises:
        NoHistoryError: If no move has been played from the root position.
    """
    if not position.moves:
        raise NoHistoryError("No moves to undo")
    return Position(position.root_fen, position.moves[:-1])
