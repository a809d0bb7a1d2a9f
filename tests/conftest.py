"""Shared test fixtures.

Usage:
    uv run pytest tests/

Fixtures:
    rng               - Seeded random.Random for reproducible move picks.
    session           - Fresh GameSession, human plays White.
    sample_pgn        - Three-game PGN text (two usable games, one too short).
    carlsen_profile   - StyleProfile built from sample_pgn for Carlsen.
    enable_validation - Sets SMARTCHESS_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import os
import random

import pytest

from smartchess.game import GameSession
from smartchess.pgn_parser import analyze_player_style, parse_pgn

SAMPLE_PGN = """\
[Event "Casual"]
[White "Carlsen, Magnus"]
[Black "Nakamura, Hikaru"]
[Result "1-0"]

1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 4. Ba4 Nf6 5. O-O Be7 1-0

[Event "Casual"]
[White "Nakamura, Hikaru"]
[Black "Carlsen, Magnus"]
[Result "0-1"]

1. d4 Nf6 2. c4 e6 3. Nc3 Bb4 4. Qc2 O-O 0-1

[Event "Blitz"]
[White "Carlsen, Magnus"]
[Black "Firouzja, Alireza"]
[Result "*"]

1. e4 c5 2. Nf3 *
"""


# ---------------------------------------------------------------------------
# Game fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def session():
    return GameSession()


# ---------------------------------------------------------------------------
# PGN fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pgn():
    return SAMPLE_PGN


@pytest.fixture()
def carlsen_profile():
    return analyze_player_style(parse_pgn(SAMPLE_PGN), "Carlsen")


# ---------------------------------------------------------------------------
# Schema validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def enable_validation():
    """Set SMARTCHESS_VALIDATE=1 for the test.

    Restores the original env var value after the test.
    """
    original = os.environ.get("SMARTCHESS_VALIDATE")
    os.environ["SMARTCHESS_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("SMARTCHESS_VALIDATE", None)
    else:
        os.environ["SMARTCHESS_VALIDATE"] = original
