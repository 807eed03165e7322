"""Ply recording: one atomic event of a game.

On the term see https://en.wikipedia.org/wiki/Ply_(game_theory)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
import logging

from .board import Board, Direction
from .pieces import PlacedPiece
from .piece_move import (
    PieceMove,
    PieceMoveDelay,
    PieceMoveLoad,
    PieceMovePlace,
    piece_move_from_dict,
)

if TYPE_CHECKING:
    from .position import GamePosition

logger = logging.getLogger(__name__)

# Candidate keys in priority order: current schema first, then older ones
KEYS_PLAYER = ("player", "playerEnum")
KEYS_PLY_KIND = ("plyKind", "ply", "moveEnum")
KEY_SECONDS = "seconds"
KEY_MOVES = "moves"


class PlayerType(Enum):
    USER = "user"
    COMPUTER = "computer"
    COMPOSER = "composer"


class PlyKind(Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    PLACE = "place"
    LOAD = "load"
    DELAY = "delay"
    EMPTY = "empty"

    @classmethod
    def from_direction(cls, direction: Direction) -> PlyKind:
        return cls(direction.value)

    @property
    def direction(self) -> Direction | None:
        try:
            return Direction(self.value)
        except ValueError:
            return None

    @property
    def is_empty(self) -> bool:
        return self == PlyKind.EMPTY


def first_present(data: dict, keys: tuple[str, ...]):
    """Value of the first key found in data, or None."""
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True)
class Ply:
    """Immutable record of a ply and the sub-moves it consists of."""
    player: PlayerType
    kind: PlyKind
    seconds: int = 0
    piece_moves: tuple[PieceMove, ...] = field(default=())

    def __post_init__(self):
        if self.kind.is_empty != (not self.piece_moves):
            raise ValueError(f"{self.kind} ply with {len(self.piece_moves)} piece moves")

    def points(self) -> int:
        return sum(m.points() for m in self.piece_moves)

    def is_empty(self) -> bool:
        return self.kind.is_empty

    def is_not_empty(self) -> bool:
        return not self.is_empty()

    def to_dict(self) -> dict:
        return {
            KEYS_PLAYER[0]: self.player.value,
            KEYS_PLY_KIND[0]: self.kind.value,
            KEY_SECONDS: self.seconds,
            KEY_MOVES: [m.to_dict() for m in self.piece_moves],
        }

    @classmethod
    def from_dict(cls, data: dict, board: Board) -> Ply | None:
        """Parse a ply, accepting historical key names.

        Returns None if the player or the ply kind is unknown or any
        sub-move doesn't fit the board.
        """
        if not isinstance(data, dict):
            return None
        try:
            player = PlayerType(first_present(data, KEYS_PLAYER))
            kind = PlyKind(first_present(data, KEYS_PLY_KIND))
            seconds = int(data.get(KEY_SECONDS) or 0)
            raw_moves = data[KEY_MOVES]
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected ply %.100s", data)
            return None

        moves = []
        for raw in raw_moves:
            move = piece_move_from_dict(raw, board) if isinstance(raw, dict) else None
            if move is None:
                logger.warning("Rejected piece move %.100s", raw)
                return None
            moves.append(move)

        try:
            return cls(player, kind, seconds, tuple(moves))
        except ValueError:
            logger.warning("Inconsistent ply %.100s", data)
            return None

    def __str__(self) -> str:
        return f"{self.player.value} {self.kind.value} {self.seconds}s moves:{len(self.piece_moves)}"


EMPTY_PLY = Ply(PlayerType.COMPOSER, PlyKind.EMPTY, 0, ())


def composer_ply(position: GamePosition) -> Ply:
    return Ply(PlayerType.COMPOSER, PlyKind.LOAD, position.seconds, (PieceMoveLoad(position),))


def computer_ply(placed_piece: PlacedPiece, seconds: int) -> Ply:
    return Ply(PlayerType.COMPUTER, PlyKind.PLACE, seconds, (PieceMovePlace(placed_piece),))


def user_ply(kind: PlyKind, seconds: int, piece_moves) -> Ply:
    return Ply(PlayerType.USER, kind, seconds, tuple(piece_moves))


def delay(delay_ms: int = 500) -> Ply:
    return Ply(PlayerType.COMPOSER, PlyKind.DELAY, 0, (PieceMoveDelay(delay_ms),))
