"""Game session state machine for SmartChess.

GameSession is the only component that mutates a GameState. Every
mutation happens under the session lock and bumps the state generation,
which is how a computer move computed against an older state is recognized
and dropped. ComputerDriver runs the computer's turn, either immediately or
after the personality's thinking delay on a cancellable timer.
"""

from __future__ import annotations

import logging
import os
import random
import threading

import chess.pgn

from smartchess import rules
from smartchess.engine import SelectionConfig, select_move, thinking_time
from smartchess.errors import IllegalMoveError, NoHistoryError
from smartchess.models import (
    BLACK,
    DIFFICULTY_PERSONALITIES,
    WHITE,
    Difficulty,
    GameSnapshot,
    GameState,
    GameStatus,
    MoveInfo,
    Personality,
    Selection,
    StyleProfile,
    opposite,
)

logger = logging.getLogger(__name__)

# Multiplier on every personality's thinking delay (0 disables the delay)
_THINK_SCALE = float(os.environ.get("SMARTCHESS_THINK_SCALE", "1.0"))


def _status_for(position: rules.Position) -> GameStatus:
    """Derive status with the priority checkmate > stalemate > other draw."""
    if rules.is_checkmate(position):
        return GameStatus.CHECKMATE
    if rules.is_stalemate(position):
        return GameStatus.STALEMATE
    if rules.is_draw(position):
        return GameStatus.DRAW
    return GameStatus.PLAYING


def _check_side(side: str) -> str:
    if side not in (WHITE, BLACK):
        raise ValueError(f"Side must be 'white' or 'black', got {side!r}")
    return side


class GameSession:
    """Owns one game's state and serializes every change to it."""

    def __init__(
        self,
        human_side: str = WHITE,
        difficulty: Difficulty | str = Difficulty.MEDIUM,
        style_profile: StyleProfile | None = None,
        position: rules.Position | None = None,
    ) -> None:
        """Start a session.

        Args:
            human_side: 'white' or 'black'.
            difficulty: Fixed difficulty; ignored when a style profile is given.
            style_profile: Profile for the style-based personality.
            position: Starting position (default: the standard initial one).

        Raises:
            ValueError: If human_side or difficulty is unknown.
        """
        self._lock = threading.RLock()
        self.state = GameState(
            position=position or rules.initial_position(),
            human_side=_check_side(human_side),
            difficulty=Difficulty(difficulty),
        )
        if style_profile is not None:
            self.state.style_profile = style_profile
            self.state.difficulty = Difficulty.STYLE
        self.state.status = _status_for(self.state.position)

    # ── Derived views ──────────────────────────────────────────────

    @property
    def side_to_move(self) -> str:
        return rules.side_to_move(self.state.position)

    @property
    def personality(self) -> Personality:
        return DIFFICULTY_PERSONALITIES[self.state.difficulty]

    @property
    def selection_config(self) -> SelectionConfig:
        return SelectionConfig(
            personality=self.personality,
            style_profile=self.state.style_profile,
        )

    @property
    def is_game_over(self) -> bool:
        return self.state.status in (
            GameStatus.CHECKMATE, GameStatus.STALEMATE, GameStatus.DRAW,
        )

    @property
    def needs_computer_move(self) -> bool:
        with self._lock:
            return (
                self.state.status == GameStatus.PLAYING
                and self.side_to_move != self.state.human_side
            )

    # ── Moves ──────────────────────────────────────────────────────

    def apply_move(
        self,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> bool:
        """Play a move for the side to move.

        Ignored unless the game is in the playing state. A pawn reaching the
        last rank promotes to a queen unless ``promotion`` says otherwise.

        Returns:
            True if the move was played; False if it was rejected, in which
            case only the selection is cleared.
        """
        with self._lock:
            if self.state.status != GameStatus.PLAYING:
                logger.debug("Move %s%s ignored in status %s",
                             from_square, to_square, self.state.status.value)
                return False
            return self._apply(from_square, to_square, promotion)

    def _apply(self, from_square: str, to_square: str, promotion: str | None) -> bool:
        state = self.state
        candidates = [
            m for m in rules.legal_moves(state.position, from_square)
            if m.to_square == to_square
        ]
        if not candidates:
            logger.warning("Invalid move attempted: %s to %s", from_square, to_square)
            state.selection = None
            return False

        if promotion is None and any(m.promotion for m in candidates):
            promotion = "queen"

        mover = self.side_to_move
        try:
            position, info = rules.apply_move(
                state.position, from_square, to_square, promotion
            )
        except IllegalMoveError as exc:
            logger.warning("Move was rejected by the rules engine: %s", exc)
            state.selection = None
            return False

        state.position = position
        state.move_history.append(info.san)
        state.last_move = info
        if info.captured:
            state.captured[opposite(mover)].append(info.captured)
        state.status = _status_for(position)
        state.selection = None
        state.generation += 1
        return True

    def select_square(self, square: str) -> Selection | None:
        """Select a square of the side to move and list its legal targets.

        Selecting the already-selected square, an empty square, or an
        opponent's piece clears the selection instead.
        """
        with self._lock:
            state = self.state
            if state.status != GameStatus.PLAYING:
                return None
            if state.selection is not None and state.selection.square == square:
                state.selection = None
                return None

            piece = rules.piece_at(state.position, square)
            if piece is None or (WHITE if piece.color else BLACK) != self.side_to_move:
                state.selection = None
                return None

            targets = frozenset(
                m.to_square for m in rules.legal_moves(state.position, square)
            )
            state.selection = Selection(square=square, legal_targets=targets)
            return state.selection

    def clear_selection(self) -> None:
        with self._lock:
            if self.state.status == GameStatus.PLAYING:
                self.state.selection = None

    def undo(self) -> int:
        """Take back the last move, and the one before it if needed.

        A second ply is undone when history remains and the side to move is
        then not the human side, so a recorded computer reply is rolled back
        together with the human move it answered.

        Returns:
            Number of plies undone (1 or 2).

        Raises:
            NoHistoryError: If there is no move to undo.
        """
        with self._lock:
            state = self.state
            if not state.move_history:
                raise NoHistoryError("No moves to undo")

            position = rules.undo(state.position)
            undone = 1
            if position.moves and rules.side_to_move(position) != state.human_side:
                position = rules.undo(position)
                undone = 2

            self._load_position(position)
            state.status = GameStatus.PLAYING
            state.last_move = None
            return undone

    def _load_position(self, position: rules.Position) -> None:
        """Replace the position and rebuild history and captures from it."""
        state = self.state
        log = rules.move_log(position)
        state.position = position
        state.move_history = [info.san for _, info in log]
        state.captured = {WHITE: [], BLACK: []}
        for mover, info in log:
            if info.captured:
                state.captured[opposite(mover)].append(info.captured)
        state.last_move = log[-1][1] if log else None
        state.status = _status_for(position)
        state.selection = None
        state.generation += 1

    def reset(self) -> None:
        """Start over from the initial position, keeping the configuration."""
        with self._lock:
            self._load_position(rules.initial_position())

    # ── Configuration ──────────────────────────────────────────────

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        """Choose a fixed difficulty. Any style profile is dropped."""
        with self._lock:
            difficulty = Difficulty(difficulty)
            self.state.difficulty = difficulty
            if difficulty != Difficulty.STYLE:
                self.state.style_profile = None

    def set_style_profile(self, profile: StyleProfile | None) -> None:
        """Play in the style of ``profile``; None falls back to medium."""
        with self._lock:
            self.state.style_profile = profile
            self.state.difficulty = (
                Difficulty.STYLE if profile is not None else Difficulty.MEDIUM
            )

    def set_human_side(self, side: str) -> None:
        with self._lock:
            self.state.human_side = _check_side(side)

    # ── Computer turn ──────────────────────────────────────────────

    def begin_thinking(self) -> int | None:
        """Enter the thinking state if it is the computer's turn.

        Returns:
            Generation token for finish_thinking, or None if the computer
            has nothing to do.
        """
        with self._lock:
            if not self.needs_computer_move:
                return None
            self.state.status = GameStatus.THINKING
            self.state.selection = None
            return self.state.generation

    def finish_thinking(self, token: int, move: MoveInfo | None) -> bool:
        """Apply the computer's move chosen during a thinking episode.

        Results for a state that changed since begin_thinking are dropped.

        Returns:
            True if the move was played.
        """
        with self._lock:
            state = self.state
            if token != state.generation or state.status != GameStatus.THINKING:
                logger.info("Discarding computer move for stale generation %d", token)
                return False
            state.status = GameStatus.PLAYING
            if move is None:
                logger.warning("Computer has no legal move at generation %d", token)
                return False
            return self._apply(move.from_square, move.to_square, move.promotion)

    # ── Persistence ────────────────────────────────────────────────

    def to_snapshot(self) -> GameSnapshot:
        with self._lock:
            state = self.state
            return GameSnapshot(
                fen=rules.to_fen(state.position),
                move_history=list(state.move_history),
                difficulty=state.difficulty.value,
                human_side=state.human_side,
                style_profile=(
                    state.style_profile.to_dict() if state.style_profile else None
                ),
            )

    @classmethod
    def from_snapshot(cls, snapshot: GameSnapshot) -> GameSession:
        """Restore a session by replaying the snapshot's move history.

        If any step fails, or the replayed position does not match the saved
        FEN, a fresh default session is returned instead.
        """
        position = rules.initial_position()
        try:
            for san in snapshot.move_history:
                position, _ = rules.apply_san(position, san)
            if rules.to_fen(position).split()[:4] != snapshot.fen.split()[:4]:
                raise IllegalMoveError("Replayed position does not match saved FEN")
            profile = None
            if snapshot.style_profile is not None:
                profile = StyleProfile.from_dict(snapshot.style_profile)
            session = cls(
                human_side=snapshot.human_side,
                difficulty=snapshot.difficulty,
                style_profile=profile,
            )
        except (IllegalMoveError, ValueError, KeyError) as exc:
            logger.warning("Could not restore saved game, starting fresh: %s", exc)
            return cls()

        session._load_position(position)
        return session

    def to_pgn(self, white: str = "Player", black: str = "Computer") -> str:
        """Export the game as PGN text."""
        with self._lock:
            game = chess.pgn.Game.from_board(rules.board_view(self.state.position))
        game.headers["Event"] = "SmartChess"
        game.headers["White"] = white
        game.headers["Black"] = black
        return str(game)


class ComputerDriver:
    """Plays the computer's turns for one session.

    ``schedule`` waits the personality's thinking time on a timer thread
    before choosing; ``play_now`` chooses immediately. Either way the choice
    goes back through GameSession.finish_thinking, which drops it if the
    game moved on in the meantime.
    """

    def __init__(
        self,
        session: GameSession,
        rng: random.Random | None = None,
        think_scale: float | None = None,
    ) -> None:
        self._session = session
        self._rng = rng or random.Random()
        self._think_scale = _THINK_SCALE if think_scale is None else think_scale
        self._timer: threading.Timer | None = None

    def play_now(self) -> MoveInfo | None:
        """Choose and play the computer's move without delay.

        Returns:
            The move played, or None if it was not the computer's turn or
            no legal move exists.
        """
        token = self._session.begin_thinking()
        if token is None:
            return None
        try:
            move = select_move(
                self._session.state.position, self._session.selection_config, self._rng
            )
        except Exception:
            logger.exception("Computer move selection failed")
            move = None
        if self._session.finish_thinking(token, move):
            return move
        return None

    def schedule(self) -> threading.Timer | None:
        """Start a thinking episode that resolves after the thinking delay.

        Returns:
            The started timer (join it to wait), or None if it is not the
            computer's turn.
        """
        self.cancel()
        token = self._session.begin_thinking()
        if token is None:
            return None
        position = self._session.state.position
        config = self._session.selection_config
        delay = thinking_time(config) * self._think_scale

        timer = threading.Timer(delay, self._resolve, args=(token, position, config))
        timer.daemon = True
        self._timer = timer
        timer.start()
        return timer

    def _resolve(
        self,
        token: int,
        position: rules.Position,
        config: SelectionConfig,
    ) -> None:
        try:
            move = select_move(position, config, self._rng)
        except Exception:
            logger.exception("Computer move selection failed")
            move = None
        self._session.finish_thinking(token, move)

    def cancel(self) -> None:
        """Stop a pending timer. Its episode is invalidated by reset/undo."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
