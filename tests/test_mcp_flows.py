"""Multi-tool functional flow tests for MCP server.

Exercises realistic multi-tool sequences: a full human/computer game loop,
style-profile play, save/restore mid-game and error paths.

Run:
    uv run pytest tests/test_mcp_flows.py -v
"""

from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import chess
import pytest

# Add project root so imports resolve
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

# Import server module from hyphenated directory via importlib
_server_path = _PROJECT_ROOT / "mcp-server" / "server.py"
_spec = importlib.util.spec_from_file_location("mcp_server_flows_test", _server_path)
_server = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(_server)

new_game = _server.new_game
get_board = _server.get_board
make_move = _server.make_move
engine_move = _server.engine_move
undo_move = _server.undo_move
restart_game = _server.restart_game
get_legal_moves = _server.get_legal_moves
get_game_pgn = _server.get_game_pgn
analyze_pgn = _server.analyze_pgn
set_style_profile = _server.set_style_profile
save_game = _server.save_game
load_game = _server.load_game

sys.path.insert(0, str(_PROJECT_ROOT / "mcp-server"))
from response_schemas import GAME_STATE_SCHEMA, validate_response


@pytest.fixture(autouse=True)
def isolated_server(tmp_path, monkeypatch):
    monkeypatch.setattr(_server, "_DATA_DIR", tmp_path)
    _server._games.clear()
    _server._profiles.clear()
    yield tmp_path
    _server._games.clear()
    _server._profiles.clear()


def _play_turns(game_id: str, turns: int) -> dict:
    """Alternate human (first legal move) and computer moves."""
    state = get_board(game_id)
    for _ in range(turns):
        if state["is_game_over"]:
            break
        human_move = get_legal_moves(game_id)["moves"][0]
        state = make_move(game_id, human_move)
        assert validate_response(state, GAME_STATE_SCHEMA) == []
        if state["is_game_over"]:
            break
        state = engine_move(game_id)
        assert validate_response(state, GAME_STATE_SCHEMA) == []
    return state


# ---------------------------------------------------------------------------
# Game lifecycle
# ---------------------------------------------------------------------------


class TestGameLoop:

    @pytest.mark.parametrize("difficulty", ["easy", "medium", "hard"])
    def test_game_loop_positions_stay_consistent(self, isolated_server, difficulty):
        game_id = new_game(difficulty=difficulty)["game_id"]
        state = _play_turns(game_id, 6)

        # TUI file mirrors the last response
        data = json.loads((isolated_server / "current_game.json").read_text(encoding="utf-8"))
        assert data["fen"] == state["fen"]

        # Replaying the PGN reproduces the position
        board = chess.Board()
        for san in data["move_list"]:
            board.push_san(san)
        assert board.fen() == state["fen"]

    def test_undo_keeps_human_on_move(self):
        game_id = new_game()["game_id"]
        _play_turns(game_id, 3)
        state = undo_move(game_id)
        assert state["side_to_move"] == "white"
        assert state["move_list"].count(".") == 2

    def test_restart_mid_game(self):
        game_id = new_game(human_side="black")["game_id"]
        engine_move(game_id)
        make_move(game_id, get_legal_moves(game_id)["moves"][0])
        state = restart_game(game_id)
        assert state["move_list"] == ""
        assert state["human_side"] == "black"
        assert engine_move(game_id)["side_to_move"] == "black"


# ---------------------------------------------------------------------------
# Style play and persistence
# ---------------------------------------------------------------------------


class TestStylePlay:

    def test_play_in_style_then_resume_from_disk(self, sample_pgn):
        analyze_pgn(pgn_text=sample_pgn, player="Carlsen")
        game_id = new_game(style_profile="Carlsen")["game_id"]
        state = _play_turns(game_id, 3)
        assert state["difficulty"] == "style"

        save_game(game_id, "style_game")
        restored = load_game("style_game")
        assert restored["fen"] == state["fen"]
        assert restored["move_list"] == state["move_list"]
        assert restored["style_profile"] == "Carlsen"

        pgn = get_game_pgn(restored["game_id"])["pgn"]
        assert pgn.split("\n\n", 1)[1].startswith("1. ")

    def test_dropping_style_mid_game(self, sample_pgn):
        analyze_pgn(pgn_text=sample_pgn, player="Carlsen")
        game_id = new_game(style_profile="Carlsen")["game_id"]
        make_move(game_id, "e4")
        engine_move(game_id)
        state = set_style_profile(game_id, None)
        assert state["difficulty"] == "medium"
        assert state["move_list"].startswith("1.e4 ")


# ---------------------------------------------------------------------------
# Error paths
# ---------------------------------------------------------------------------


class TestErrorPaths:

    @pytest.mark.parametrize("tool", [
        get_board, engine_move, undo_move, restart_game, get_legal_moves,
        get_game_pgn, save_game,
    ])
    def test_unknown_game(self, tool):
        assert tool("no-such-game") == {"error": "Game not found: no-such-game"}

    def test_corrupt_save_file(self, isolated_server):
        (isolated_server / "saved_game.json").write_text("{oops", encoding="utf-8")
        assert "error" in load_game()

    def test_unreplayable_save_starts_fresh(self, isolated_server):
        (isolated_server / "saved_game.json").write_text(json.dumps({
            "fen": chess.STARTING_FEN,
            "move_history": ["e4", "Qxh7"],
            "difficulty": "hard",
            "human_side": "black",
            "style_profile": None,
        }), encoding="utf-8")
        state = load_game()
        assert state["move_list"] == ""
        assert state["difficulty"] == "medium"
        assert state["human_side"] == "white"
