"""Game history tracking."""
from .plies import GamePlies
from .record import GameRecord, ShortRecord
from .manager import GameLoadGuard, History

__all__ = [
    "GamePlies",
    "GameRecord",
    "ShortRecord",
    "GameLoadGuard",
    "History",
]
