"""Tests for ply records and their serialized forms."""

import pytest

from conftest import make_position, placed
from game2048.board import Board, Square
from game2048.history import GamePlies
from game2048.piece_move import PieceMoveDelay, PieceMoveLoad, PieceMoveMerge, PieceMoveOne, piece_move_from_dict
from game2048.ply import EMPTY_PLY, PlayerType, Ply, PlyKind, composer_ply, computer_ply, delay


BOARD = Board()


class TestPly:
    def test_empty_kind_has_no_moves(self):
        assert EMPTY_PLY.is_empty()
        with pytest.raises(ValueError):
            Ply(PlayerType.USER, PlyKind.EMPTY, 0, (PieceMoveDelay(),))
        with pytest.raises(ValueError):
            Ply(PlayerType.USER, PlyKind.LEFT, 0, ())

    def test_points(self):
        merge = PieceMoveMerge(placed(8, 1, 0), placed(8, 2, 0), placed(16, 0, 0))
        ply = Ply(PlayerType.USER, PlyKind.LEFT, 3, (merge, PieceMoveOne(placed(2, 3, 0), Square(1, 0))))
        assert ply.points() == 16
        assert computer_ply(placed(2, 0, 0), 0).points() == 0

    def test_delay(self):
        ply = delay()
        assert ply.kind == PlyKind.DELAY
        assert ply.piece_moves == (PieceMoveDelay(500),)

    def test_dict_roundtrip(self):
        ply = computer_ply(placed(4, 2, 3), 17)
        assert Ply.from_dict(ply.to_dict(), BOARD) == ply

    def test_composer_ply_roundtrip(self):
        position = make_position([[2, 0, 0, 0]] * 4, score=8, ply_number=3)
        ply = Ply.from_dict(composer_ply(position).to_dict(), BOARD)
        assert ply.player == PlayerType.COMPOSER
        assert isinstance(ply.piece_moves[0], PieceMoveLoad)
        assert ply.piece_moves[0].position == position

    def test_legacy_keys(self):
        data = {
            "playerEnum": "user",
            "moveEnum": "left",
            "seconds": 3,
            "moves": [
                {"type": "one", "first": {"piece": 2, "square": [1, 0]}, "destination": [0, 0]},
            ],
        }
        ply = Ply.from_dict(data, BOARD)
        assert ply.player == PlayerType.USER
        assert ply.kind == PlyKind.LEFT
        assert ply.seconds == 3

    def test_current_key_wins(self):
        data = computer_ply(placed(2, 0, 0), 0).to_dict()
        data["ply"] = "left"
        assert Ply.from_dict(data, BOARD).kind == PlyKind.PLACE

    @pytest.mark.parametrize("change", [
        {"player": "robot"},
        {"plyKind": "sideways"},
        {"seconds": "soon"},
        {"moves": [{"type": "place", "first": {"piece": 2, "square": [4, 0]}}]},
        {"moves": [{"type": "place", "first": {"piece": 3, "square": [0, 0]}}]},
        {"moves": [{"type": "teleport"}]},
        {"moves": []},
    ])
    def test_rejected(self, change):
        data = computer_ply(placed(2, 0, 0), 0).to_dict()
        data.update(change)
        assert Ply.from_dict(data, BOARD) is None

    def test_missing_keys(self):
        assert Ply.from_dict({"player": "user"}, BOARD) is None
        assert Ply.from_dict(["user", "left"], BOARD) is None


class TestPieceMoveParsing:
    def test_inconsistent_merge(self):
        data = PieceMoveMerge(placed(2, 1, 0), placed(2, 2, 0), placed(4, 0, 0)).to_dict()
        assert isinstance(piece_move_from_dict(data, BOARD), PieceMoveMerge)
        data["merged"]["piece"] = 8
        assert piece_move_from_dict(data, BOARD) is None

    def test_destination_outside(self):
        data = {"type": "one", "first": {"piece": 2, "square": [1, 0]}, "destination": [0, 9]}
        assert piece_move_from_dict(data, BOARD) is None

    def test_load_of_other_size(self):
        data = {"type": "load", "position": make_position([[2, 0]]).to_dict()}
        assert piece_move_from_dict(data, BOARD) is None


class TestGamePlies:
    def test_numbered_from_one(self):
        first = computer_ply(placed(2, 0, 0), 0)
        second = computer_ply(placed(2, 1, 0), 1)
        plies = GamePlies([first, second])
        assert plies.ply_at(1) == first
        assert plies.ply_at(2) == second
        assert plies.ply_at(0) is None
        assert plies.ply_at(3) is None
        assert plies.last() == second

    def test_append_and_take_make_new_logs(self):
        first = computer_ply(placed(2, 0, 0), 0)
        plies = GamePlies([first])
        longer = plies + computer_ply(placed(2, 1, 0), 1)
        assert len(plies) == 1
        assert len(longer) == 2
        assert longer.take(1) == plies
        assert len(longer.take(-1)) == 0

    def test_one_bad_ply_rejects_log(self):
        good = computer_ply(placed(2, 0, 0), 0).to_dict()
        assert len(GamePlies.from_list([good, good], BOARD)) == 2
        assert GamePlies.from_list([good, {"player": "user"}], BOARD) is None
        assert GamePlies.from_list({"plies": []}, BOARD) is None

    def test_loading_placeholder(self):
        assert GamePlies.loading().not_completed
        assert not GamePlies().not_completed
