"""Tests for snapshot persistence."""

from __future__ import annotations

import json

from smartchess.game import GameSession
from smartchess.models import GameSnapshot
from smartchess.storage import load_snapshot, save_snapshot, snapshot_path


class TestSnapshotPath:

    def test_adds_extension(self, tmp_path):
        assert snapshot_path("mygame", tmp_path) == tmp_path / "mygame.json"

    def test_stays_inside_data_dir(self, tmp_path):
        assert snapshot_path("../../etc/evil.json", tmp_path) == tmp_path / "evil.json"


class TestSaveLoad:

    def test_round_trip(self, tmp_path, session):
        session.apply_move("e2", "e4")
        path = save_snapshot(session.to_snapshot(), tmp_path / "game.json")
        loaded = load_snapshot(path)
        assert loaded == session.to_snapshot()

    def test_no_temp_file_left(self, tmp_path, session):
        save_snapshot(session.to_snapshot(), tmp_path / "game.json")
        assert [p.name for p in tmp_path.iterdir()] == ["game.json"]

    def test_creates_directory(self, tmp_path, session):
        path = tmp_path / "nested" / "game.json"
        save_snapshot(session.to_snapshot(), path)
        assert path.exists()

    def test_file_is_plain_json(self, tmp_path, session):
        path = save_snapshot(session.to_snapshot(), tmp_path / "game.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"fen", "move_history", "difficulty", "human_side", "style_profile"}

    def test_missing_file(self, tmp_path):
        assert load_snapshot(tmp_path / "nope.json") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "game.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_snapshot(path) is None

    def test_missing_fen(self, tmp_path):
        path = tmp_path / "game.json"
        path.write_text(json.dumps({"move_history": []}), encoding="utf-8")
        assert load_snapshot(path) is None

    def test_restore_from_disk(self, tmp_path, carlsen_profile):
        session = GameSession(style_profile=carlsen_profile)
        session.apply_move("d2", "d4")
        path = save_snapshot(session.to_snapshot(), tmp_path / "game.json")
        restored = GameSession.from_snapshot(load_snapshot(path))
        assert restored.state.move_history == ["d4"]
        assert restored.state.style_profile == carlsen_profile
        assert isinstance(load_snapshot(path), GameSnapshot)
