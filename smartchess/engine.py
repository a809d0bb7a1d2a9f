"""Personality-driven move selection for SmartChess.

Scores every legal move with the terms of the chosen personality and picks
one at random from the top of the ranking. Provides:
- Game phase detection from ply count and remaining material
- Style-based play from a StyleProfile built out of PGN games
- CLI for quick move picks and play demos
"""

from __future__ import annotations

import argparse
import random
import sys
from dataclasses import dataclass

import chess

from smartchess import rules
from smartchess.errors import IllegalMoveError
from smartchess.models import MoveInfo, Personality, StyleProfile
from smartchess.personalities import MoveContext, PersonalityProfile, get_personality

# Added on top of all other terms so mates always rank first
CHECKMATE_BONUS = 1000.0


@dataclass
class SelectionConfig:
    """Move selection settings.

    Attributes:
        personality: Which scoring configuration to use.
        style_profile: Profile consulted by the style-based personality.
        opening_ply_limit: Plies before which the game counts as an opening.
        endgame_ply_start: Ply from which the game counts as an endgame.
        endgame_piece_threshold: Non-king piece count at or below which the
            position counts as an endgame.
    """

    personality: Personality = Personality.BALANCED
    style_profile: StyleProfile | None = None
    opening_ply_limit: int = 15
    endgame_ply_start: int = 50
    endgame_piece_threshold: int = 10


@dataclass
class ScoredMove:
    score: float
    move: MoveInfo


def game_phase(position: rules.Position, config: SelectionConfig) -> str:
    """Classify a position as 'opening', 'middlegame' or 'endgame'."""
    ply = rules.ply_count(position)
    if (
        rules.non_king_piece_count(position) <= config.endgame_piece_threshold
        or ply >= config.endgame_ply_start
    ):
        return "endgame"
    if ply < config.opening_ply_limit:
        return "opening"
    return "middlegame"


def score_move(
    ctx: MoveContext,
    personality: PersonalityProfile,
    rng: random.Random,
) -> float:
    """Jitter plus every applicable weighted term, plus the mate bonus."""
    score = rng.uniform(0, personality.jitter)
    for term in personality.terms:
        if term.applies(ctx):
            score += term.weight * term.feature(ctx)
    if ctx.info.is_checkmate:
        score += CHECKMATE_BONUS
    return score


def rank_moves(
    position: rules.Position,
    config: SelectionConfig | None = None,
    rng: random.Random | None = None,
) -> list[ScoredMove]:
    """Score all legal moves and sort them best first.

    Args:
        position: Position to move from.
        config: Selection settings (defaults to balanced).
        rng: Random source for the jitter term.

    Returns:
        ScoredMove list, highest score first. Empty for terminal positions.
    """
    config = config or SelectionConfig()
    rng = rng or random.Random()
    personality = get_personality(config.personality, config.style_profile)

    board = rules.board_view(position)
    ply = rules.ply_count(position)
    phase = game_phase(position, config)

    scored: list[ScoredMove] = []
    for info in rules.legal_moves(position):
        ctx = MoveContext(
            board=board,
            move=chess.Move.from_uci(info.uci),
            info=info,
            ply=ply,
            phase=phase,
            style_profile=config.style_profile,
        )
        scored.append(ScoredMove(score_move(ctx, personality, rng), info))

    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def pick_from_top(
    ranked: list[ScoredMove],
    top_fraction: float,
    rng: random.Random,
) -> MoveInfo | None:
    """Pick uniformly among the best ``top_fraction`` of a ranked list.

    When the best move mates, only mating moves are eligible.
    """
    if not ranked:
        return None
    if ranked[0].move.is_checkmate:
        pool = [s for s in ranked if s.move.is_checkmate]
    else:
        top_count = max(1, int(len(ranked) * top_fraction))
        pool = ranked[:top_count]
    return rng.choice(pool).move


def select_move(
    position: rules.Position,
    config: SelectionConfig | None = None,
    rng: random.Random | None = None,
) -> MoveInfo | None:
    """Choose the computer's move for the side to move.

    Args:
        position: Current position.
        config: Personality and phase settings.
        rng: Optional random source, for reproducible play.

    Returns:
        One of the legal moves, or None if the position has none.
    """
    config = config or SelectionConfig()
    rng = rng or random.Random()
    ranked = rank_moves(position, config, rng)
    if len(ranked) == 1:
        return ranked[0].move
    personality = get_personality(config.personality, config.style_profile)
    return pick_from_top(ranked, personality.top_fraction, rng)


def thinking_time(config: SelectionConfig) -> float:
    """Minimum delay, in seconds, the personality takes before moving."""
    return get_personality(config.personality, config.style_profile).thinking_time


# ---------------------------------------------------------------------------
# CLI interface
# ---------------------------------------------------------------------------


def _cli_pick(fen: str, personality: Personality) -> None:
    """Rank moves for a FEN position and print the top 5 and the pick.

    Args:
        fen: FEN string of the position.
        personality: Personality to score with.
    """
    position = rules.from_fen(fen)
    config = SelectionConfig(personality=personality)
    rng = random.Random()

    print(f"Position: {fen}")
    print(f"Side to move: {rules.side_to_move(position).capitalize()}")
    print(f"Phase: {game_phase(position, config)}")
    print()

    ranked = rank_moves(position, config, rng)
    for i, scored in enumerate(ranked[:5], 1):
        print(f"  {i}. {scored.move.san:<8} {scored.score:+.2f}")

    move = select_move(position, config, rng)
    print()
    print(f"Pick: {move.san if move else '(no legal moves)'}")


def _cli_play(personality: Personality, human_black: bool) -> None:
    """Play an interactive terminal game against a personality.

    Args:
        personality: Computer personality.
        human_black: If True, the human plays Black.
    """
    position = rules.initial_position()
    config = SelectionConfig(personality=personality)
    human_side = "black" if human_black else "white"
    print(f"New game against {personality.value}, you play {human_side}")
    print(rules.board_view(position))
    print()

    while not rules.is_game_over(position):
        if rules.side_to_move(position) == human_side:
            print("Your move (SAN or UCI, 'q' to quit): ", end="")
            user_input = input().strip()
            if user_input.lower() == "q":
                print("Game ended by user.")
                return
            try:
                position, info = rules.apply_san(position, user_input)
            except IllegalMoveError:
                print("Illegal move. Use SAN (e.g., e4) or UCI (e.g., e2e4).")
                continue
            print(f"You played: {info.san}")
        else:
            move = select_move(position, config)
            position, info = rules.apply_move(
                position, move.from_square, move.to_square, move.promotion
            )
            print(f"Computer plays: {info.san}")

        print(rules.board_view(position))
        print()

    board = rules.board_view(position)
    print(f"Game over: {board.result(claim_draw=True)}")


def main() -> None:
    """CLI entry point for engine.py."""
    parser = argparse.ArgumentParser(
        description="Personality move selector - pick moves or play demos"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    choices = [p.value for p in Personality]

    pick_parser = subparsers.add_parser("pick", help="Pick a move for a FEN position")
    pick_parser.add_argument("fen", type=str, help="FEN string of the position")
    pick_parser.add_argument(
        "--personality", choices=choices, default=Personality.BALANCED.value
    )

    play_parser = subparsers.add_parser("play", help="Play against the computer")
    play_parser.add_argument(
        "--personality", choices=choices, default=Personality.BALANCED.value
    )
    play_parser.add_argument(
        "--black", action="store_true", help="Play the black pieces"
    )

    args = parser.parse_args()

    if args.command == "pick":
        try:
            _cli_pick(args.fen, Personality(args.personality))
        except ValueError as exc:
            print(f"Invalid FEN: {exc}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "play":
        _cli_play(Personality(args.personality), args.black)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
