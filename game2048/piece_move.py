"""Sub-moves of a ply: what happened to each piece."""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from .board import Board, Square
from .pieces import PlacedPiece

if TYPE_CHECKING:
    from .position import GamePosition


@dataclass(frozen=True)
class PieceMovePlace:
    """A new piece appeared on an empty square."""
    first: PlacedPiece

    def points(self) -> int:
        return 0

    def to_dict(self) -> dict:
        return {"type": "place", "first": self.first.to_dict()}


@dataclass(frozen=True)
class PieceMoveOne:
    """A piece slid to another square without merging."""
    first: PlacedPiece
    destination: Square

    def points(self) -> int:
        return 0

    def to_dict(self) -> dict:
        return {
            "type": "one",
            "first": self.first.to_dict(),
            "destination": self.destination.to_list(),
        }


@dataclass(frozen=True)
class PieceMoveMerge:
    """Two equal pieces slid together and became the merged piece."""
    first: PlacedPiece
    second: PlacedPiece
    merged: PlacedPiece

    def points(self) -> int:
        return self.merged.piece.value

    def to_dict(self) -> dict:
        return {
            "type": "merge",
            "first": self.first.to_dict(),
            "second": self.second.to_dict(),
            "merged": self.merged.to_dict(),
        }


@dataclass(frozen=True)
class PieceMoveLoad:
    """The whole board was replaced by a composed position."""
    position: GamePosition

    def points(self) -> int:
        return 0

    def to_dict(self) -> dict:
        return {"type": "load", "position": self.position.to_dict()}


@dataclass(frozen=True)
class PieceMoveDelay:
    """A pause in presentation, nothing changes on the board."""
    delay_ms: int = 500

    def points(self) -> int:
        return 0

    def to_dict(self) -> dict:
        return {"type": "delay", "delayMs": self.delay_ms}


PieceMove = Union[PieceMovePlace, PieceMoveOne, PieceMoveMerge, PieceMoveLoad, PieceMoveDelay]


def piece_move_from_dict(data: dict, board: Board) -> PieceMove | None:
    """Parse one sub-move, checking every square against board dimensions.

    Returns None for anything that doesn't parse.
    """
    from .position import GamePosition

    try:
        move_type = data["type"]
        if move_type == "place":
            return PieceMovePlace(PlacedPiece.from_dict(data["first"], board))
        if move_type == "one":
            destination = Square.from_list(data["destination"])
            if not board.contains(destination):
                return None
            return PieceMoveOne(PlacedPiece.from_dict(data["first"], board), destination)
        if move_type == "merge":
            move = PieceMoveMerge(
                first=PlacedPiece.from_dict(data["first"], board),
                second=PlacedPiece.from_dict(data["second"], board),
                merged=PlacedPiece.from_dict(data["merged"], board),
            )
            if move.first.piece != move.second.piece or move.first.piece.next != move.merged.piece:
                return None
            return move
        if move_type == "load":
            position = GamePosition.from_dict(data["position"])
            if position is None or (position.board.width, position.board.height) != (board.width, board.height):
                return None
            return PieceMoveLoad(position)
        if move_type == "delay":
            return PieceMoveDelay(int(data.get("delayMs", 500)))
    except (KeyError, TypeError, ValueError):
        return None
    return None
