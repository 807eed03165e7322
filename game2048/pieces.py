from __future__ import annotations
from dataclasses import dataclass

from .board import Board, Square


# Values of a freshly placed piece with their placement weights
PLACEMENT_WEIGHTS = {
    2: 0.9,
    4: 0.1,
}

MAX_PIECE_VALUE = 2 ** 17


@dataclass(frozen=True)
class Piece:
    value: int

    def __post_init__(self):
        v = self.value
        if v < 2 or v > MAX_PIECE_VALUE or v & (v - 1):
            raise ValueError(f"Invalid piece value: {v}")

    @property
    def rank(self) -> int:
        """1 for a 2, 2 for a 4 and so on."""
        return self.value.bit_length() - 1

    @property
    def next(self) -> Piece:
        """Piece produced by merging two of this piece."""
        return Piece(self.value * 2)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PlacedPiece:
    piece: Piece
    square: Square

    def to_dict(self) -> dict:
        return {
            "piece": self.piece.value,
            "square": self.square.to_list(),
        }

    @classmethod
    def from_dict(cls, data: dict, board: Board) -> PlacedPiece:
        """Parse and check that the square lies on the board."""
        square = Square.from_list(data["square"])
        if not board.contains(square):
            raise ValueError(f"{square} is outside of the board")
        return cls(piece=Piece(int(data["piece"])), square=square)

    def __str__(self) -> str:
        return f"{self.piece}@({self.square.x},{self.square.y})"
