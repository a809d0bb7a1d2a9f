"""Tests for the python-chess rules adapter.

Covers: position construction, legal move queries, move application,
special moves, terminal detection and undo.
"""

from __future__ import annotations

import chess
import pytest

from smartchess import rules
from smartchess.errors import IllegalMoveError, NoHistoryError

FOOLS_MATE = [("f2", "f3"), ("e7", "e5"), ("g2", "g4"), ("d8", "h4")]
STALEMATE_FEN = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
PROMOTION_FEN = "8/P6k/8/8/8/8/8/K7 w - - 0 1"
CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
KNIGHT_SHUFFLE = [("g1", "f3"), ("g8", "f6"), ("f3", "g1"), ("f6", "g8")] * 2


def _play(moves, position=None):
    position = position or rules.initial_position()
    for from_sq, to_sq in moves:
        position, _ = rules.apply_move(position, from_sq, to_sq)
    return position


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:

    def test_initial_position(self):
        position = rules.initial_position()
        assert rules.to_fen(position) == chess.STARTING_FEN
        assert rules.side_to_move(position) == "white"
        assert rules.ply_count(position) == 0
        assert rules.non_king_piece_count(position) == 30

    def test_from_fen_round_trip(self):
        position = rules.from_fen(CASTLING_FEN)
        assert rules.to_fen(position) == CASTLING_FEN

    def test_from_fen_malformed(self):
        with pytest.raises(ValueError):
            rules.from_fen("not a fen")

    def test_from_fen_invalid_position(self):
        # No kings on the board
        with pytest.raises(ValueError, match="Invalid FEN"):
            rules.from_fen("8/8/8/8/8/8/8/8 w - - 0 1")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestLegalMoves:

    def test_initial_position_has_twenty_moves(self):
        assert len(rules.legal_moves(rules.initial_position())) == 20

    def test_moves_from_square(self):
        moves = rules.legal_moves(rules.initial_position(), "g1")
        assert {m.to_square for m in moves} == {"f3", "h3"}
        assert all(m.piece == "knight" for m in moves)

    def test_empty_square_has_no_moves(self):
        assert rules.legal_moves(rules.initial_position(), "e4") == []

    def test_bad_square_name(self):
        assert rules.legal_moves(rules.initial_position(), "z9") == []

    def test_piece_at(self):
        position = rules.initial_position()
        piece = rules.piece_at(position, "e1")
        assert piece.piece_type == chess.KING
        assert piece.color == chess.WHITE
        assert rules.piece_at(position, "e4") is None
        assert rules.piece_at(position, "bogus") is None


# ---------------------------------------------------------------------------
# Move application
# ---------------------------------------------------------------------------


class TestApplyMove:

    def test_simple_move(self):
        start = rules.initial_position()
        position, info = rules.apply_move(start, "e2", "e4")
        assert info.san == "e4"
        assert info.uci == "e2e4"
        assert info.piece == "pawn"
        assert info.captured is None
        assert rules.side_to_move(position) == "black"
        assert rules.ply_count(position) == 1

    def test_original_position_unchanged(self):
        start = rules.initial_position()
        rules.apply_move(start, "e2", "e4")
        assert rules.to_fen(start) == chess.STARTING_FEN

    def test_illegal_move_raises(self):
        with pytest.raises(IllegalMoveError):
            rules.apply_move(rules.initial_position(), "e2", "e5")

    def test_bad_square_raises(self):
        with pytest.raises(IllegalMoveError):
            rules.apply_move(rules.initial_position(), "e9", "e4")

    def test_capture_reports_piece(self):
        position = _play([("e2", "e4"), ("d7", "d5")])
        _, info = rules.apply_move(position, "e4", "d5")
        assert info.captured == "pawn"
        assert info.san == "exd5"

    def test_en_passant(self):
        position = _play([("e2", "e4"), ("a7", "a6"), ("e4", "e5"), ("d7", "d5")])
        position, info = rules.apply_move(position, "e5", "d6")
        assert info.captured == "pawn"
        assert rules.piece_at(position, "d5") is None

    def test_promotion(self):
        position = rules.from_fen(PROMOTION_FEN)
        position, info = rules.apply_move(position, "a7", "a8", "queen")
        assert info.promotion == "queen"
        assert info.san.startswith("a8=Q")
        assert rules.piece_at(position, "a8").piece_type == chess.QUEEN

    def test_promotion_letter(self):
        position = rules.from_fen(PROMOTION_FEN)
        _, info = rules.apply_move(position, "a7", "a8", "n")
        assert info.promotion == "knight"

    def test_promotion_required(self):
        position = rules.from_fen(PROMOTION_FEN)
        with pytest.raises(IllegalMoveError):
            rules.apply_move(position, "a7", "a8")

    def test_unknown_promotion_piece(self):
        position = rules.from_fen(PROMOTION_FEN)
        with pytest.raises(IllegalMoveError, match="Unknown promotion"):
            rules.apply_move(position, "a7", "a8", "dragon")

    def test_castling(self):
        position = rules.from_fen(CASTLING_FEN)
        _, info = rules.apply_move(position, "e1", "g1")
        assert info.is_castle
        assert info.san == "O-O"

    def test_check_flag(self):
        position = _play(FOOLS_MATE[:3])
        _, info = rules.apply_move(position, "d8", "h4")
        assert info.is_check
        assert info.is_checkmate


class TestMoveText:

    def test_resolve_san(self):
        info = rules.resolve_move_text(rules.initial_position(), "Nf3")
        assert (info.from_square, info.to_square) == ("g1", "f3")

    def test_resolve_uci(self):
        info = rules.resolve_move_text(rules.initial_position(), "g1f3")
        assert info.san == "Nf3"

    @pytest.mark.parametrize("text", ["Nf9", "e2e5", "Ke2", "hello"])
    def test_resolve_rejects(self, text):
        with pytest.raises(IllegalMoveError):
            rules.resolve_move_text(rules.initial_position(), text)

    def test_apply_san(self):
        position, info = rules.apply_san(rules.initial_position(), "e4")
        assert info.uci == "e2e4"
        assert [i.san for _, i in rules.move_log(position)] == ["e4"]


# ---------------------------------------------------------------------------
# Terminal detection and history
# ---------------------------------------------------------------------------


class TestTerminal:

    def test_fools_mate(self):
        position = _play(FOOLS_MATE)
        assert rules.is_checkmate(position)
        assert not rules.is_stalemate(position)
        assert rules.is_game_over(position)
        assert rules.legal_moves(position) == []

    def test_stalemate(self):
        position = rules.from_fen(STALEMATE_FEN)
        assert rules.is_stalemate(position)
        assert not rules.is_checkmate(position)
        assert rules.is_game_over(position)

    def test_insufficient_material_is_draw(self):
        position = rules.from_fen("k7/2K5/8/8/8/8/8/8 b - - 0 1")
        assert rules.is_draw(position)

    def test_initial_position_not_over(self):
        assert not rules.is_game_over(rules.initial_position())

    def test_piece_count_drops_after_capture(self):
        position = _play([("e2", "e4"), ("d7", "d5"), ("e4", "d5")])
        assert rules.non_king_piece_count(position) == 29

    def test_repetition_not_drawn_before_third_occurrence(self):
        position = _play(KNIGHT_SHUFFLE[:7])
        assert not rules.is_draw(position)
        assert not rules.is_game_over(position)

    def test_threefold_repetition_is_draw(self):
        position = _play(KNIGHT_SHUFFLE)
        assert rules.is_draw(position)

    @pytest.mark.parametrize("clock, drawn", [(99, False), (100, True)])
    def test_fifty_move_rule(self, clock, drawn):
        position = rules.from_fen(f"4k3/8/8/8/8/8/8/R3K3 w - - {clock} 80")
        assert rules.is_draw(position) is drawn


class TestHistory:

    def test_move_log_sans(self):
        position = _play([("e2", "e4"), ("e7", "e5"), ("g1", "f3")])
        assert [info.san for _, info in rules.move_log(position)] == ["e4", "e5", "Nf3"]

    def test_move_log_colors(self):
        position = _play([("e2", "e4"), ("d7", "d5"), ("e4", "d5")])
        log = rules.move_log(position)
        assert [color for color, _ in log] == ["white", "black", "white"]
        assert log[-1][1].captured == "pawn"

    def test_undo(self):
        start = rules.initial_position()
        position, _ = rules.apply_move(start, "e2", "e4")
        assert rules.to_fen(rules.undo(position)) == rules.to_fen(start)

    def test_undo_empty(self):
        with pytest.raises(NoHistoryError):
            rules.undo(rules.initial_position())
