"""Tests for board geometry, moves, placement and replay."""

import random
from collections import Counter

import pytest

from conftest import make_position, placed
from game2048.board import Board, Direction, Square
from game2048.pieces import MAX_PIECE_VALUE, Piece
from game2048.piece_move import PieceMoveMerge, PieceMoveOne
from game2048.ply import PlayerType, Ply, PlyKind, composer_ply
from game2048.position import GamePosition
from game2048.rules import GameRules


def row(position: GamePosition, y: int = 0) -> list:
    return [position.board.get(x, y) for x in range(position.board.width)]


def column(position: GamePosition, x: int = 0) -> list:
    return [position.board.get(x, y) for y in range(position.board.height)]


class TestBoard:
    def test_empty_board(self):
        board = Board()
        assert board.tiles == (0,) * 16
        assert len(board.empty_squares()) == 16
        assert not board.is_full

    def test_wrong_tile_count(self):
        with pytest.raises(ValueError):
            Board(width=2, height=2, tiles=(0, 0, 0))

    def test_square_outside(self):
        board = Board(width=3, height=2)
        assert board.contains(Square(2, 1))
        assert not board.contains(Square(3, 0))
        with pytest.raises(IndexError):
            board[Square(0, 2)]

    def test_lines_start_at_leading_edge(self):
        board = Board(width=3, height=2)
        assert board.lines(Direction.RIGHT)[0] == [Square(2, 0), Square(1, 0), Square(0, 0)]
        assert board.lines(Direction.DOWN)[1] == [Square(1, 1), Square(1, 0)]

    def test_dict_roundtrip(self):
        board = make_position([[2, 0], [0, 4]]).board
        assert Board.from_dict(board.to_dict()) == board


class TestPiece:
    @pytest.mark.parametrize("value", [0, 1, 3, 6, 2 ** 18])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            Piece(value)

    def test_rank_and_next(self):
        assert Piece(2).rank == 1
        assert Piece(1024).rank == 10
        assert Piece(8).next == Piece(16)


class TestMove:
    """Sliding and merging along one line."""

    def test_pair_merges(self, rules):
        result = rules.move(make_position([[2, 2, 0, 0]]), Direction.LEFT)
        assert result.success
        assert row(result.position) == [4, 0, 0, 0]
        assert result.position.score == 4
        assert result.position.ply_number == 1

    def test_four_equal_make_two_pairs(self, rules):
        result = rules.move(make_position([[2, 2, 2, 2]]), Direction.LEFT)
        assert row(result.position) == [4, 4, 0, 0]
        assert result.position.score == 8

    def test_merged_piece_does_not_merge_again(self, rules):
        result = rules.move(make_position([[2, 2, 4, 0]]), Direction.LEFT)
        assert row(result.position) == [4, 4, 0, 0]
        assert result.position.score == 4

    def test_first_pair_from_leading_edge_merges(self, rules):
        result = rules.move(make_position([[2, 2, 2, 0]]), Direction.RIGHT)
        assert row(result.position) == [0, 0, 2, 4]

    def test_slide_without_merge(self, rules):
        result = rules.move(make_position([[0, 2, 0, 4]]), Direction.LEFT)
        assert row(result.position) == [2, 4, 0, 0]
        assert result.position.score == 0
        assert all(isinstance(m, PieceMoveOne) for m in result.piece_moves)

    def test_up_and_down(self, rules):
        position = make_position([[0, 0], [2, 0], [2, 0], [8, 0]])
        up = rules.move(position, Direction.UP)
        assert column(up.position) == [4, 8, 0, 0]
        down = rules.move(position, Direction.DOWN)
        assert column(down.position) == [0, 0, 4, 8]

    def test_nothing_moves(self, rules):
        result = rules.move(make_position([[2, 4, 0, 0]]), Direction.LEFT)
        assert not result.success
        assert result.position is None
        assert result.ply is None

    def test_second_move_same_direction_fails(self, rules):
        first = rules.move(make_position([[2, 0, 4, 0], [0, 0, 0, 8]]), Direction.LEFT)
        assert first.success
        assert not rules.move(first.position, Direction.LEFT).success

    def test_ply_of_the_move(self, rules):
        result = rules.move(make_position([[0, 2, 2, 0]], ply_number=3), Direction.LEFT, seconds=12)
        ply = result.ply
        assert ply.player == PlayerType.USER
        assert ply.kind == PlyKind.LEFT
        assert ply.seconds == 12
        assert result.position.seconds == 12
        assert result.position.ply_number == 4
        merge = ply.piece_moves[0]
        assert isinstance(merge, PieceMoveMerge)
        assert merge.merged == placed(4, 0, 0)
        assert ply.points() == 4

    def test_game_over(self, rules):
        assert rules.is_game_over(make_position([[2, 4], [4, 2]]))
        assert not rules.is_game_over(make_position([[2, 2], [4, 8]]))
        assert not rules.is_game_over(make_position([[2, 4], [0, 2]]))

    def test_largest_pieces_do_not_merge(self, rules):
        top = MAX_PIECE_VALUE
        assert not rules.move(make_position([[top, top, 0, 0]]), Direction.LEFT).success
        result = rules.move(make_position([[0, top, top, 0]]), Direction.LEFT)
        assert row(result.position) == [top, top, 0, 0]
        assert rules.is_game_over(make_position([[top, top], [4, 2]]))
        assert not rules.is_game_over(make_position([[top // 2, top // 2], [4, 2]]))


class TestComputerMove:
    def test_places_on_empty_square(self, rules):
        position = make_position([[2, 0], [4, 8]], ply_number=5)
        after = rules.computer_move(position)
        assert after.board.get(1, 0) in (2, 4)
        assert after.ply_number == 6
        assert after.prev_ply.player == PlayerType.COMPUTER
        assert after.prev_ply.kind == PlyKind.PLACE

    def test_full_board(self, rules):
        assert rules.computer_move(make_position([[2, 4], [4, 2]])) is None

    def test_given_piece(self, rules):
        position = make_position([[2, 0], [0, 0]])
        after = rules.computer_move(position, placed(4, 1, 1))
        assert after.board.get(1, 1) == 4
        assert rules.computer_move(position, placed(2, 0, 0)) is None

    def test_placement_weights(self):
        rules = GameRules(random.Random(7))
        position = make_position([[0, 0, 0, 0]])
        counts = Counter(rules.place_random_piece(position).piece.value for _ in range(2000))
        assert set(counts) == {2, 4}
        assert 100 < counts[4] < 300

    def test_placement_is_uniform_over_empty_squares(self):
        rules = GameRules(random.Random(7))
        position = make_position([[0, 2, 0, 2]])
        squares = Counter(rules.place_random_piece(position).square for _ in range(1000))
        assert set(squares) == {Square(0, 0), Square(2, 0)}


class TestApply:
    def test_replay_sums_points(self, rules):
        position = make_position([[0, 0, 0, 0], [0, 0, 0, 0]])
        plies = []
        for piece in (placed(2, 0, 0), placed(2, 1, 0), placed(2, 3, 1)):
            position = rules.computer_move(position, piece)
            plies.append(position.prev_ply)
        moved = rules.move(position, Direction.LEFT)
        plies.append(moved.ply)

        start = make_position([[0, 0, 0, 0], [0, 0, 0, 0]])
        final = rules.replay(start, plies)
        assert final == moved.position
        assert final.score == sum(p.points() for p in plies)
        assert final.ply_number == 4

    def test_load_replaces_board(self, rules):
        composed = make_position([[8, 0], [0, 16]], score=24, ply_number=9)
        loaded = rules.load(composed)
        assert loaded.ply_number == 0
        assert loaded.prev_ply.kind == PlyKind.LOAD

        after = rules.apply(make_position([[2, 2], [2, 2]]), composer_ply(composed))
        assert after.board == composed.board
        assert after.score == 24

    def test_unknown_piece_move(self, rules):
        ply = Ply(PlayerType.USER, PlyKind.LEFT, 0, (object(),))
        with pytest.raises(TypeError):
            rules.apply(make_position([[2, 0]]), ply)
