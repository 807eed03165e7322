"""The move log of a game."""
from __future__ import annotations
from typing import Iterable, Iterator
import logging

from ..board import Board
from ..ply import Ply

logger = logging.getLogger(__name__)


class GamePlies:
    """Immutable sequence of plies numbered from 1.

    Appending or truncating returns a new log, so snapshots taken earlier
    stay valid.
    """

    def __init__(self, plies: Iterable[Ply] = (), not_completed: bool = False):
        self._plies: tuple[Ply, ...] = tuple(plies)
        # True while the log is still being loaded from storage
        self.not_completed = not_completed

    @classmethod
    def loading(cls) -> GamePlies:
        """Placeholder for a log that is being read in the background."""
        return cls(not_completed=True)

    def __len__(self) -> int:
        return len(self._plies)

    def __iter__(self) -> Iterator[Ply]:
        return iter(self._plies)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GamePlies):
            return NotImplemented
        return self._plies == other._plies

    def __hash__(self):
        return hash(self._plies)

    def __add__(self, ply: Ply) -> GamePlies:
        return GamePlies(self._plies + (ply,))

    def ply_at(self, number: int) -> Ply | None:
        """Ply by its 1-based number, None outside of 1..len."""
        if 1 <= number <= len(self._plies):
            return self._plies[number - 1]
        return None

    def last(self) -> Ply | None:
        return self._plies[-1] if self._plies else None

    def take(self, n: int) -> GamePlies:
        """The first n plies."""
        return GamePlies(self._plies[:max(n, 0)])

    def points(self) -> int:
        return sum(p.points() for p in self._plies)

    def to_list(self) -> list[dict]:
        return [p.to_dict() for p in self._plies]

    @classmethod
    def from_list(cls, data: list, board: Board) -> GamePlies | None:
        """Parse a log; a single bad ply rejects the whole log."""
        if not isinstance(data, list):
            return None
        plies = []
        for index, item in enumerate(data, start=1):
            ply = Ply.from_dict(item, board)
            if ply is None:
                logger.warning("Ply %d of %d is broken, log rejected", index, len(data))
                return None
            plies.append(ply)
        return cls(plies)

    def __repr__(self) -> str:
        state = ", loading" if self.not_completed else ""
        return f"GamePlies({len(self._plies)} plies{state})"
