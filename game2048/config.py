"""Game configuration dataclasses."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal
import json
import logging

from .database import DB_PATH
from .position import GamePosition

if TYPE_CHECKING:
    from .database import KeyValueStore

logger = logging.getLogger(__name__)

KEY_SETTINGS = "settings"
KEY_GAME_MODE = "gameMode"


@dataclass
class Settings:
    """Application settings; the board size is fixed for a game."""
    board_width: int = 4
    board_height: int = 4
    allow_undo: bool = True
    db_path: str = str(DB_PATH)
    ai_difficulty: Literal["easy", "normal", "hard"] = "normal"

    def default_position(self) -> GamePosition:
        return GamePosition.empty(self.board_width, self.board_height)

    def to_dict(self) -> dict:
        return {
            "board_width": self.board_width,
            "board_height": self.board_height,
            "allow_undo": self.allow_undo,
            "db_path": self.db_path,
            "ai_difficulty": self.ai_difficulty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Settings:
        return cls(
            board_width=int(data.get("board_width", 4)),
            board_height=int(data.get("board_height", 4)),
            allow_undo=bool(data.get("allow_undo", True)),
            db_path=data.get("db_path", str(DB_PATH)),
            ai_difficulty=data.get("ai_difficulty", "normal"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> Settings:
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, storage: KeyValueStore) -> Settings:
        """Stored settings, defaults if absent or unreadable."""
        raw = storage.get(KEY_SETTINGS)
        if raw is None:
            return cls()
        try:
            return cls.from_json(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Ignored broken settings: %s", e)
            return cls()

    def save(self, storage: KeyValueStore):
        storage[KEY_SETTINGS] = self.to_json()


class GameModeEnum(Enum):
    PLAY = "play"
    AI_PLAY = "ai_play"
    STOP = "stop"
    BACKWARDS = "backwards"
    FORWARD = "forward"

    @classmethod
    def from_id(cls, mode_id: str | None) -> GameModeEnum:
        try:
            return cls(mode_id)
        except ValueError:
            return cls.STOP


# Delay between automatic steps by absolute speed, speed 0 is a pause
DELAYS_MS = (500, 500, 250, 125, 64, 32, 16)
MAX_SPEED = len(DELAYS_MS) - 1


@dataclass
class GameMode:
    """What drives the game now: the user, the AI or automatic replay."""
    mode: GameModeEnum = GameModeEnum.STOP
    ai_enabled: bool = False
    speed: int = 0
    max_speed: int = field(default=MAX_SPEED, repr=False)

    @property
    def auto_playing(self) -> bool:
        return self.mode in (GameModeEnum.AI_PLAY, GameModeEnum.BACKWARDS, GameModeEnum.FORWARD)

    @property
    def delay_ms(self) -> int:
        return DELAYS_MS[min(abs(self.speed), self.max_speed)]

    def start(self, mode: GameModeEnum):
        self.mode = mode
        if mode == GameModeEnum.BACKWARDS:
            self.speed = -1
        elif mode in (GameModeEnum.FORWARD, GameModeEnum.AI_PLAY):
            self.speed = 1
        else:
            self.speed = 0

    def increment_speed(self):
        self.speed = min(self.speed + 1, self.max_speed)

    def decrement_speed(self):
        self.speed = max(self.speed - 1, -self.max_speed)

    def stop(self):
        self.mode = GameModeEnum.STOP
        self.speed = 0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "ai_enabled": self.ai_enabled,
            "speed": self.speed,
            "delay_ms": self.delay_ms,
        }
