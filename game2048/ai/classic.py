"""Classic heuristic move chooser."""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING
import random

from ..board import Board, Direction
from ..rules import GameRules

if TYPE_CHECKING:
    from ..position import GamePosition


@dataclass
class ScoredMove:
    """A move with its heuristic score."""
    direction: Direction
    score: float
    reason: str


class ClassicAI:
    """Greedy player: one ply of lookahead scored by board shape."""

    def __init__(self, difficulty: str = "normal", rng: random.Random | None = None):
        self.difficulty = difficulty
        self.randomness = {"easy": 0.3, "normal": 0.1, "hard": 0.0}.get(difficulty, 0.1)
        self.rng = rng or random.Random()
        self.rules = GameRules(self.rng)

    def next_move(self, position: GamePosition) -> Direction | None:
        """Direction to play, None when no move is possible."""
        scored = self._score_moves(position)
        move = self._pick_best(scored)
        return move.direction if move else None

    def _score_moves(self, position: GamePosition) -> list[ScoredMove]:
        scored = []
        for direction in Direction:
            result = self.rules.move(position, direction)
            if not result.success:
                continue
            board = result.position.board
            gained = result.position.score - position.score
            empty = len(board.empty_squares())
            score = gained + 10.0 * empty + self._corner_bonus(board) + self._monotonicity(board)
            scored.append(ScoredMove(direction, score, f"+{gained} points, {empty} empty"))
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored

    def _pick_best(self, items: list[ScoredMove]) -> ScoredMove | None:
        """Pick the best item, with some randomness based on difficulty."""
        if not items:
            return None

        if self.randomness == 0:
            return items[0]

        top_n = min(3, len(items))
        weights = [1.0 - i * self.randomness for i in range(top_n)]
        return self.rng.choices(items[:top_n], weights=weights)[0]

    def _corner_bonus(self, board: Board) -> float:
        """Reward keeping the biggest piece in a corner."""
        biggest = max(board.tiles)
        corners = (
            board.get(0, 0),
            board.get(board.width - 1, 0),
            board.get(0, board.height - 1),
            board.get(board.width - 1, board.height - 1),
        )
        return 2.0 * biggest if biggest in corners else 0.0

    def _monotonicity(self, board: Board) -> float:
        """Penalty for rows and columns that go up and down."""
        penalty = 0
        for direction in (Direction.LEFT, Direction.UP):
            for line in board.lines(direction):
                values = [board[s] for s in line]
                ups = sum(max(b - a, 0) for a, b in zip(values, values[1:]))
                downs = sum(max(a - b, 0) for a, b in zip(values, values[1:]))
                penalty += min(ups, downs)
        return -0.5 * penalty
