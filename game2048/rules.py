from __future__ import annotations
from dataclasses import dataclass, field, replace
import random

from .board import Board, Direction, Square
from .pieces import MAX_PIECE_VALUE, PLACEMENT_WEIGHTS, Piece, PlacedPiece
from .piece_move import (
    PieceMove,
    PieceMoveDelay,
    PieceMoveLoad,
    PieceMoveMerge,
    PieceMoveOne,
    PieceMovePlace,
)
from .ply import Ply, PlyKind, composer_ply, computer_ply, user_ply
from .position import GamePosition


@dataclass
class MoveResult:
    success: bool
    message: str
    position: GamePosition | None = None
    piece_moves: list[PieceMove] = field(default_factory=list)

    @property
    def ply(self) -> Ply | None:
        return self.position.prev_ply if self.position else None


class GameRules:
    """Validates moves, produces plies and replays them on positions.

    Merge rule: every line is scanned from the edge tiles slide towards and
    the first two equal pieces that haven't merged yet during this move
    merge. Placement: a uniformly chosen empty square gets a 2 (90%) or a
    4 (10%).
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def move(self, position: GamePosition, direction: Direction, seconds: int | None = None) -> MoveResult:
        """Slide all pieces towards direction.

        Fails without a position if no piece would move or merge.
        """
        board = position.board
        moves: list[PieceMove] = []

        for line in board.lines(direction):
            pending: PlacedPiece | None = None
            pending_target = 0
            next_target = 0

            for square in line:
                value = board[square]
                if not value:
                    continue
                piece = PlacedPiece(Piece(value), square)
                # The largest piece no longer merges
                if (pending is not None and pending.piece == piece.piece
                        and piece.piece.value < MAX_PIECE_VALUE):
                    merged = PlacedPiece(piece.piece.next, line[pending_target])
                    moves.append(PieceMoveMerge(first=pending, second=piece, merged=merged))
                    pending = None
                    continue
                if pending is not None and pending.square != line[pending_target]:
                    moves.append(PieceMoveOne(pending, line[pending_target]))
                pending = piece
                pending_target = next_target
                next_target += 1

            if pending is not None and pending.square != line[pending_target]:
                moves.append(PieceMoveOne(pending, line[pending_target]))

        if not moves:
            return MoveResult(False, f"Nothing moves {direction.value}")

        ply = user_ply(
            PlyKind.from_direction(direction),
            position.seconds if seconds is None else seconds,
            moves,
        )
        return MoveResult(True, "Moved", self.apply(position, ply), moves)

    def can_move(self, position: GamePosition) -> bool:
        return any(self.move(position, d).success for d in Direction)

    def is_game_over(self, position: GamePosition) -> bool:
        return not self.can_move(position)

    def place_random_piece(self, position: GamePosition) -> PlacedPiece | None:
        """Choose a square and a value for the computer's piece; None if the board is full."""
        empty = position.board.empty_squares()
        if not empty:
            return None
        square = self.rng.choice(empty)
        values = list(PLACEMENT_WEIGHTS)
        value = self.rng.choices(values, weights=[PLACEMENT_WEIGHTS[v] for v in values])[0]
        return PlacedPiece(Piece(value), square)

    def computer_move(self, position: GamePosition, placed: PlacedPiece | None = None,
                      seconds: int | None = None) -> GamePosition | None:
        """Place a piece (random if not given). None if there is no room."""
        if placed is None:
            placed = self.place_random_piece(position)
            if placed is None:
                return None
        elif position.board[placed.square]:
            return None
        return self.apply(position, computer_ply(placed, position.seconds if seconds is None else seconds))

    def load(self, position: GamePosition) -> GamePosition:
        """Position composed from outside; it starts a new game."""
        loaded = replace(position.without_ply(), ply_number=0)
        return replace(loaded, prev_ply=composer_ply(loaded))

    def apply(self, position: GamePosition, ply: Ply) -> GamePosition:
        """Replay one ply on position."""
        changes: dict[Square, int] = {}
        board: Board = position.board
        score = position.score

        for move in ply.piece_moves:
            if isinstance(move, PieceMovePlace):
                changes[move.first.square] = move.first.piece.value
            elif isinstance(move, PieceMoveOne):
                changes[move.first.square] = 0
                changes[move.destination] = move.first.piece.value
            elif isinstance(move, PieceMoveMerge):
                changes[move.first.square] = 0
                changes[move.second.square] = 0
                changes[move.merged.square] = move.merged.piece.value
                score += move.points()
            elif isinstance(move, PieceMoveLoad):
                board = move.position.board
                score = move.position.score
                changes = {}
            elif isinstance(move, PieceMoveDelay):
                pass
            else:
                raise TypeError(f"Unknown piece move: {move!r}")

        if changes:
            board = board.with_tiles(changes)
        return position.with_ply(ply, board=board, score=score)

    def replay(self, position: GamePosition, plies) -> GamePosition:
        for ply in plies:
            position = self.apply(position, ply)
        return position
