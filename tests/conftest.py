"""
Shared pytest fixtures for game2048 tests.

Storage fixtures are function-scoped: every test gets its own SQLite file.
"""

import random
from typing import List

import pytest

from game2048.board import Board, Square
from game2048.config import Settings
from game2048.database import KeyValueStore
from game2048.history import History
from game2048.pieces import Piece, PlacedPiece
from game2048.position import GamePosition
from game2048.rules import GameRules


def make_position(rows: List[List[int]], score: int = 0, ply_number: int = 0) -> GamePosition:
    """Position from rows of tile values, top row first."""
    board = Board(
        width=len(rows[0]),
        height=len(rows),
        tiles=tuple(v for row in rows for v in row),
    )
    return GamePosition(board=board, score=score, ply_number=ply_number)


def placed(value: int, x: int, y: int) -> PlacedPiece:
    return PlacedPiece(Piece(value), Square(x, y))


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "game2048.db"


@pytest.fixture
def storage(db_path):
    return KeyValueStore(db_path)


@pytest.fixture
def settings(db_path):
    return Settings(db_path=str(db_path))


@pytest.fixture
def history(settings, storage):
    return History(settings, storage)


@pytest.fixture
def rules():
    return GameRules(random.Random(2048))
