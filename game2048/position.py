from __future__ import annotations
from dataclasses import dataclass, field, replace
import logging
import time

from .board import Board, Square
from .pieces import Piece
from .ply import EMPTY_PLY, Ply

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GamePosition:
    """Board snapshot with the state derived from the plies that led to it."""
    board: Board
    score: int = 0
    ply_number: int = 0
    seconds: int = 0
    prev_ply: Ply = field(default=EMPTY_PLY, compare=False)

    @classmethod
    def empty(cls, width: int = 4, height: int = 4) -> GamePosition:
        return cls(board=Board(width=width, height=height))

    def __getitem__(self, square: Square) -> int:
        return self.board[square]

    def with_ply(self, ply: Ply, board: Board | None = None, score: int | None = None) -> GamePosition:
        """Position reached from this one by ply."""
        return replace(
            self,
            board=self.board if board is None else board,
            score=self.score if score is None else score,
            ply_number=self.ply_number + 1,
            seconds=ply.seconds,
            prev_ply=ply,
        )

    def without_ply(self) -> GamePosition:
        """Same snapshot with the back reference dropped, e.g. for bookmarks."""
        return replace(self, prev_ply=EMPTY_PLY)

    def to_dict(self) -> dict:
        return {
            "board": self.board.to_dict(),
            "score": self.score,
            "plyNumber": self.ply_number,
            "seconds": self.seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> GamePosition | None:
        try:
            position = cls(
                board=Board.from_dict(data["board"]),
                score=int(data.get("score", 0)),
                ply_number=int(data.get("plyNumber", 0)),
                seconds=int(data.get("seconds", 0)),
            )
            for value in position.board.tiles:
                if value:
                    Piece(value)
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected position %.100s", data)
            return None
        if position.score < 0 or position.ply_number < 0:
            logger.warning("Rejected position with negative counters %.100s", data)
            return None
        return position

    def __str__(self) -> str:
        return f"ply {self.ply_number}, score {self.score}, {self.seconds}s"


class GameClock:
    """Counts seconds of active play; paused between sessions."""

    def __init__(self, played_seconds: int = 0):
        self._base_seconds = played_seconds
        self._started_at: float | None = None

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def played_seconds(self) -> int:
        seconds = self._base_seconds
        if self._started_at is not None:
            seconds += int(time.monotonic() - self._started_at)
        return seconds

    @property
    def played_seconds_string(self) -> str:
        s = self.played_seconds
        hours, rest = divmod(s, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def start(self):
        if self._started_at is None:
            self._started_at = time.monotonic()

    def stop(self):
        if self._started_at is not None:
            self._base_seconds = self.played_seconds
            self._started_at = None

    def reset(self, played_seconds: int = 0):
        """Jump to another position's clock, keeping the running state."""
        running = self.started
        self._base_seconds = played_seconds
        self._started_at = time.monotonic() if running else None
