"""Response schemas and minification for MCP tool responses.

Minifies MCP tool return values to reduce LLM context token waste.
data/current_game.json (TUI sync) is NOT affected, only MCP return values.

PGN string format for move_list uses standard chess notation
(1.e4 e5 2.Nf3 ...) which is natural for the LLM agent to read.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_game_state(state: dict) -> dict:
    """Minify a game state dict for MCP response.

    Drops the board drawing and generation counter, compacts move_list to a
    PGN string, replaces legal_moves with a count and reduces the style
    profile to its name.

    Args:
        state: Full game state dict (as produced by _build_game_state).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    for key in (
        "game_id", "fen", "last_move", "last_move_san", "status",
        "human_side", "side_to_move", "difficulty", "is_game_over", "result",
        "captured",
    ):
        if key in state:
            result[key] = state[key]

    move_list = state.get("move_list", [])
    if isinstance(move_list, list):
        result["move_list"] = _moves_to_pgn_string(move_list)
    else:
        result["move_list"] = move_list

    legal_moves = state.get("legal_moves", [])
    if isinstance(legal_moves, list):
        result["legal_moves_count"] = len(legal_moves)
    else:
        result["legal_moves_count"] = 0

    selection = state.get("selection")
    if isinstance(selection, dict):
        result["selection"] = {
            "square": selection.get("square"),
            "targets": sorted(selection.get("legal_targets", [])),
        }
    else:
        result["selection"] = None

    profile = state.get("style_profile")
    if isinstance(profile, dict):
        result["style_profile"] = profile.get("name")
    else:
        result["style_profile"] = None

    # Removed fields: board_display, personality, generation

    return result


def minify_style_profile(profile: dict) -> dict:
    """Minify a StyleProfile dict for MCP response.

    Keeps the headline numbers and the top three openings; drops the
    endgame counters.

    Args:
        profile: Full StyleProfile dict (from StyleProfile.to_dict).

    Returns:
        Minified dict.
    """
    result = {}

    for key in (
        "name", "total_games", "average_game_length", "aggressiveness",
        "positional_vs_tactical", "piece_activity", "tactical_patterns",
    ):
        if key in profile:
            result[key] = profile[key]

    openings = profile.get("opening_preferences", {})
    if isinstance(openings, dict):
        ranked = sorted(openings.items(), key=lambda kv: (-kv[1], kv[0]))
        result["top_openings"] = [name for name, _ in ranked[:3]]
    else:
        result["top_openings"] = []

    return result


# ---------------------------------------------------------------------------
# Helper: move list to PGN string
# ---------------------------------------------------------------------------


def _moves_to_pgn_string(moves: list[str]) -> str:
    """Convert a list of SAN moves to a PGN move string.

    E.g., ['e4', 'e5', 'Nf3', 'Nc6'] -> '1.e4 e5 2.Nf3 Nc6'
    """
    if not moves:
        return ""

    parts = []
    for i, move in enumerate(moves):
        if i % 2 == 0:
            parts.append(f"{i // 2 + 1}.{move}")
        else:
            parts.append(move)

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

GAME_STATE_SCHEMA = {
    "game_id": str,
    "fen": str,
    "last_move": (str, type(None)),
    "last_move_san": (str, type(None)),
    "status": str,
    "human_side": str,
    "side_to_move": str,
    "difficulty": str,
    "is_game_over": bool,
    "result": (str, type(None)),
    "captured": dict,
    "move_list": str,
    "legal_moves_count": int,
    "selection": (dict, type(None)),
    "style_profile": (str, type(None)),
}

STYLE_PROFILE_SCHEMA = {
    "name": str,
    "total_games": int,
    "average_game_length": int,
    "aggressiveness": int,
    "positional_vs_tactical": int,
    "piece_activity": dict,
    "tactical_patterns": dict,
    "top_openings": list,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when the SMARTCHESS_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if os.environ.get("SMARTCHESS_VALIDATE") != "1":
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        elif not isinstance(value, expected_types):
            errors.append(
                f"Key '{key}': expected {expected_types.__name__}, "
                f"got {type(value).__name__}"
            )

    return errors
