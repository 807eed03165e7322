"""Saved games: the full record and its short projection for listings."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import TYPE_CHECKING
import json
import logging

from ..position import GamePosition
from ..rules import GameRules
from .plies import GamePlies

if TYPE_CHECKING:
    from ..database import KeyValueStore

logger = logging.getLogger(__name__)

KEY_ID = "id"
KEY_START = "start"
KEY_NOTE = "note"
KEY_BOOKMARKS = "bookmarks"
# Current key first, then the older schema
KEYS_STARTING_POSITION = ("startingPosition",)
KEYS_FINAL_POSITION = ("finalPosition", "finalBoard")
KEYS_PLIES = ("plies", "playersMoves")

# Replay needs no randomness
_rules = GameRules()


def key_game(game_id: int) -> str:
    return f"game{game_id}"


def key_summary(game_id: int) -> str:
    return f"gameSummary{game_id}"


def now() -> datetime:
    return datetime.now().astimezone()


def format_start(start: datetime) -> str:
    return start.isoformat(timespec="seconds")


def parse_start(value) -> datetime:
    start = datetime.fromisoformat(value)
    # Old records were saved in local time without offset
    return start if start.tzinfo else start.astimezone()


def _first(data: dict, keys: tuple[str, ...]):
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_bookmarks(data: dict, board_size: tuple[int, int]) -> tuple[GamePosition, ...] | None:
    bookmarks = []
    for item in data.get(KEY_BOOKMARKS) or []:
        position = GamePosition.from_dict(item) if isinstance(item, dict) else None
        if position is None or (position.board.width, position.board.height) != board_size:
            return None
        bookmarks.append(position)
    return normalize_bookmarks(bookmarks)


def normalize_bookmarks(bookmarks) -> tuple[GamePosition, ...]:
    """One bookmark per ply number, the last one wins, ordered by ply number."""
    by_ply = {}
    for position in bookmarks:
        by_ply[position.ply_number] = position.without_ply()
    return tuple(by_ply[n] for n in sorted(by_ply))


@dataclass(frozen=True)
class ShortRecord:
    """What a game list needs to know about a saved game."""
    id: int
    start: datetime
    final_position: GamePosition
    bookmarks: tuple[GamePosition, ...] = ()
    note: str | None = None

    @property
    def score(self) -> int:
        return self.final_position.score

    @property
    def summary(self) -> str:
        return f"{self.score} {self.start:%Y-%m-%d %H:%M} id:{self.id}"

    def to_dict(self) -> dict:
        return {
            KEY_ID: self.id,
            KEY_START: format_start(self.start),
            KEYS_FINAL_POSITION[0]: self.final_position.to_dict(),
            KEY_BOOKMARKS: [b.to_dict() for b in self.bookmarks],
            KEY_NOTE: self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ShortRecord | None:
        if not isinstance(data, dict):
            return None
        try:
            game_id = int(data.get(KEY_ID) or 0)
            start = parse_start(data[KEY_START])
            raw_final = _first(data, KEYS_FINAL_POSITION)
        except (KeyError, TypeError, ValueError):
            logger.warning("Rejected game summary %.100s", data)
            return None
        final_position = GamePosition.from_dict(raw_final) if isinstance(raw_final, dict) else None
        if final_position is None:
            return None
        board = final_position.board
        bookmarks = _parse_bookmarks(data, (board.width, board.height))
        if bookmarks is None:
            logger.warning("Rejected bookmarks of game %s", game_id)
            return None
        return cls(game_id, start, final_position, bookmarks, data.get(KEY_NOTE))

    @classmethod
    def from_id(cls, storage: KeyValueStore, game_id: int) -> ShortRecord | None:
        raw = storage.get(key_summary(game_id))
        if raw is None:
            return None
        try:
            record = cls.from_dict(json.loads(raw))
        except ValueError:
            logger.warning("Summary of game %s is not JSON", game_id)
            return None
        if record is not None and record.id != game_id:
            logger.info("Fixed id %s of the summary stored as %s", record.id, game_id)
            record = ShortRecord(game_id, record.start, record.final_position,
                                 record.bookmarks, record.note)
        return record


@dataclass(eq=False)
class GameRecord:
    """A complete game: starting position, the ply log and metadata.

    The final position is always derived by replaying the log.
    """
    id: int
    start: datetime
    starting_position: GamePosition
    plies: GamePlies = field(default_factory=GamePlies)
    bookmarks: tuple[GamePosition, ...] = ()
    note: str | None = None

    @classmethod
    def new_with_position_and_plies(cls, position: GamePosition, game_id: int,
                                    plies: GamePlies | None = None, bookmarks=()) -> GameRecord:
        return cls(
            id=game_id,
            start=now(),
            starting_position=position,
            plies=plies if plies is not None else GamePlies(),
            bookmarks=normalize_bookmarks(bookmarks),
        )

    @property
    def not_completed(self) -> bool:
        """True while the ply log is still being loaded."""
        return self.plies.not_completed

    @property
    def is_ready(self) -> bool:
        return not self.not_completed

    @cached_property
    def final_position(self) -> GamePosition:
        return _rules.replay(self.starting_position, self.plies)

    @property
    def score(self) -> int:
        return self.final_position.score

    def position_at(self, ply_count: int) -> GamePosition:
        """Position after the first ply_count plies of the log."""
        if ply_count >= len(self.plies):
            return self.final_position
        return _rules.replay(self.starting_position, self.plies.take(ply_count))

    def bookmark_at(self, ply_number: int) -> GamePosition | None:
        for bookmark in self.bookmarks:
            if bookmark.ply_number == ply_number:
                return bookmark
        return None

    @property
    def short_record(self) -> ShortRecord:
        return ShortRecord(self.id, self.start, self.final_position.without_ply(),
                           self.bookmarks, self.note)

    def with_changes(self, plies: GamePlies | None = None, bookmarks=None) -> GameRecord:
        """New record of the same game with another log or bookmarks."""
        return GameRecord(
            id=self.id,
            start=self.start,
            starting_position=self.starting_position,
            plies=self.plies if plies is None else plies,
            bookmarks=self.bookmarks if bookmarks is None else normalize_bookmarks(bookmarks),
            note=self.note,
        )

    def to_dict(self) -> dict:
        data = self.short_record.to_dict()
        data[KEYS_STARTING_POSITION[0]] = self.starting_position.to_dict()
        data[KEYS_PLIES[0]] = self.plies.to_list()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict, new_id: int | None = None) -> GameRecord | None:
        """Parse the current or the older schema; None if anything is off."""
        summary = ShortRecord.from_dict(data)
        if summary is None:
            return None

        raw_start = _first(data, KEYS_STARTING_POSITION)
        if raw_start is None:
            final_board = summary.final_position.board
            starting_position = GamePosition.empty(final_board.width, final_board.height)
        else:
            starting_position = GamePosition.from_dict(raw_start) if isinstance(raw_start, dict) else None
            if starting_position is None:
                return None

        plies = GamePlies.from_list(_first(data, KEYS_PLIES) or [], starting_position.board)
        if plies is None:
            return None

        record = cls(
            id=summary.id if new_id is None else new_id,
            start=summary.start,
            starting_position=starting_position,
            plies=plies,
            bookmarks=summary.bookmarks,
            note=summary.note,
        )
        try:
            final_position = record.final_position
        except (IndexError, ValueError) as e:
            logger.warning("Game %s doesn't replay: %s", summary.id, e)
            return None
        if (final_position.board, final_position.score) != (summary.final_position.board, summary.score):
            logger.warning("Game %s replays to %s, stored %s", summary.id, final_position, summary.final_position)
            return None
        return record

    @classmethod
    def from_json(cls, json_str: str, new_id: int | None = None) -> GameRecord | None:
        try:
            data = json.loads(json_str)
        except ValueError:
            logger.warning("Game record is not JSON: %.100s", json_str)
            return None
        return cls.from_dict(data, new_id)

    def save(self, storage: KeyValueStore) -> bool:
        """Write the record and its summary; transient records are not saved."""
        if self.id <= 0:
            logger.info("Not saving transient game %s", self)
            return False
        storage[key_game(self.id)] = self.to_json()
        storage[key_summary(self.id)] = json.dumps(self.short_record.to_dict())
        return True

    @classmethod
    def from_id(cls, storage: KeyValueStore, game_id: int) -> GameRecord | None:
        raw = storage.get(key_game(game_id))
        if raw is None:
            return None
        return cls.from_json(raw)

    @staticmethod
    def delete(storage: KeyValueStore, game_id: int) -> bool:
        return storage.delete(key_game(game_id), key_summary(game_id)) > 0

    def __str__(self) -> str:
        state = " loading" if self.not_completed else ""
        return f"Game id:{self.id} plies:{len(self.plies)}{state} started {format_start(self.start)}"
