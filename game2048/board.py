from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class Direction(Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"

    @property
    def delta(self) -> tuple[int, int]:
        return DIRECTION_DELTAS[self]


# (dx, dy) of one step in each direction; y grows downwards
DIRECTION_DELTAS = {
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
}


@dataclass(frozen=True, order=True)
class Square:
    x: int
    y: int

    def to_list(self) -> list[int]:
        return [self.x, self.y]

    @classmethod
    def from_list(cls, data) -> Square:
        x, y = data
        return cls(x=int(x), y=int(y))


@dataclass(frozen=True)
class Board:
    """Immutable tile contents of a rectangular board.

    Tiles are stored row by row; 0 marks an empty square.
    """
    width: int = 4
    height: int = 4
    tiles: tuple[int, ...] = field(default=())

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Invalid board size {self.width}x{self.height}")
        if not self.tiles:
            object.__setattr__(self, "tiles", (0,) * (self.width * self.height))
        elif len(self.tiles) != self.width * self.height:
            raise ValueError(
                f"Expected {self.width * self.height} tiles, got {len(self.tiles)}"
            )

    def contains(self, square: Square) -> bool:
        return 0 <= square.x < self.width and 0 <= square.y < self.height

    def _index(self, square: Square) -> int:
        if not self.contains(square):
            raise IndexError(f"{square} is outside of {self.width}x{self.height} board")
        return square.y * self.width + square.x

    def get(self, x: int, y: int) -> int:
        return self.tiles[self._index(Square(x, y))]

    def __getitem__(self, square: Square) -> int:
        return self.tiles[self._index(square)]

    def __iter__(self) -> Iterator[Square]:
        for y in range(self.height):
            for x in range(self.width):
                yield Square(x, y)

    def with_tiles(self, changes: dict[Square, int]) -> Board:
        """Copy of the board with the given squares set (0 clears a square)."""
        tiles = list(self.tiles)
        for square, value in changes.items():
            tiles[self._index(square)] = value
        return Board(width=self.width, height=self.height, tiles=tuple(tiles))

    def empty_squares(self) -> list[Square]:
        return [s for s in self if self[s] == 0]

    def occupied_squares(self) -> list[Square]:
        return [s for s in self if self[s] != 0]

    @property
    def is_full(self) -> bool:
        return all(self.tiles)

    def lines(self, direction: Direction) -> list[list[Square]]:
        """Lines of squares parallel to direction, each ordered from the leading edge.

        The leading edge is the side tiles slide towards.
        """
        if direction in (Direction.LEFT, Direction.RIGHT):
            xs = range(self.width)
            if direction == Direction.RIGHT:
                xs = reversed(xs)
            xs = list(xs)
            return [[Square(x, y) for x in xs] for y in range(self.height)]
        ys = range(self.height)
        if direction == Direction.DOWN:
            ys = reversed(ys)
        ys = list(ys)
        return [[Square(x, y) for y in ys] for x in range(self.width)]

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "tiles": list(self.tiles),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Board:
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            tiles=tuple(int(t) for t in data["tiles"]),
        )

    def to_ascii(self) -> str:
        """ASCII representation for debugging."""
        cell = max(len(str(t)) for t in self.tiles)
        lines = []
        for y in range(self.height):
            row = []
            for x in range(self.width):
                value = self.get(x, y)
                row.append((str(value) if value else ".").rjust(cell))
            lines.append(" ".join(row))
        return "\n".join(lines)
