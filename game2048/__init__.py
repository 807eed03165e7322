from .board import Board, Direction, Square
from .pieces import Piece, PlacedPiece
from .ply import Ply, PlyKind, PlayerType
from .position import GameClock, GamePosition
from .rules import GameRules, MoveResult
from .config import GameMode, GameModeEnum, Settings
from .database import KeyValueStore
from .history import GamePlies, GameRecord, History, ShortRecord
from .orchestrator import GameOrchestrator
