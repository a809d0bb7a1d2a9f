"""Snapshot persistence for SmartChess sessions.

Snapshots are JSON files written atomically (temp file + os.replace) so a
reader never sees a half-written game.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from smartchess.models import GameSnapshot

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR = Path(os.environ.get("SMARTCHESS_DATA_DIR", _PROJECT_ROOT / "data"))
DEFAULT_SNAPSHOT = "saved_game.json"


def snapshot_path(name: str = DEFAULT_SNAPSHOT, data_dir: Path | None = None) -> Path:
    """Resolve a snapshot file name inside the data directory."""
    if not name.endswith(".json"):
        name = f"{name}.json"
    return Path(data_dir or DATA_DIR) / Path(name).name


def write_json_atomic(path: Path, payload: dict) -> None:
    """Write a dict as JSON via a temp file and os.replace()."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(
        json.dumps(payload, indent=2, default=str, ensure_ascii=False),
        encoding="utf-8",
    )
    os.replace(tmp, path)


def save_snapshot(snapshot: GameSnapshot, path: Path) -> Path:
    """Persist a snapshot.

    Args:
        snapshot: Snapshot to write.
        path: Destination JSON file.

    Returns:
        The path written.
    """
    write_json_atomic(path, snapshot.to_dict())
    logger.info("Saved game snapshot to %s", path)
    return path


def load_snapshot(path: Path) -> GameSnapshot | None:
    """Read a snapshot back.

    Returns:
        The snapshot, or None if the file is missing or not a valid snapshot.
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GameSnapshot.from_dict(data)
    except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Ignoring unreadable snapshot %s: %s", path, exc)
        return None
