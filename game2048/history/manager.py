"""History of games: the current one with its undo/redo pointer and the saved ones."""
from __future__ import annotations
from datetime import timedelta
from typing import TYPE_CHECKING
import asyncio
import logging
import time

from ..config import KEY_GAME_MODE, GameMode, GameModeEnum
from ..ply import Ply, PlayerType, PlyKind
from .plies import GamePlies
from .record import GameRecord, ShortRecord, now

if TYPE_CHECKING:
    from ..config import Settings
    from ..database import KeyValueStore
    from ..position import GamePosition

logger = logging.getLogger(__name__)

KEY_CURRENT_GAME_ID = "currentGameId"
KEY_BEST = "best"

GAME_IDS = range(1, 61)
MAX_OLDER_GAMES = 30
MIN_OLD_GAMES_TO_EVICT = 20
KEEP_GAMES_FOR = timedelta(weeks=1)


def read_recent_games(storage: KeyValueStore) -> list[ShortRecord]:
    """Summaries of all saved games, the most recently started first."""
    started = time.perf_counter()
    games = [g for g in (ShortRecord.from_id(storage, i) for i in GAME_IDS) if g is not None]
    games.sort(key=lambda g: g.start, reverse=True)
    logger.debug("%d recent games loaded in %.3fs", len(games), time.perf_counter() - started)
    return games


class GameLoadGuard:
    """The "game is loading" flag shared by the load and save paths.

    Storage work of both paths runs under one lock so a save never
    interleaves with a load.
    """

    def __init__(self):
        self.loading = False
        self._lock: asyncio.Lock | None = None

    @property
    def lock(self) -> asyncio.Lock:
        # Created lazily so the guard can be built outside of an event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def begin_load(self) -> bool:
        """Set the flag; False if a load is already in flight."""
        if self.loading:
            return False
        self.loading = True
        return True

    def clear(self) -> bool:
        """Reset the flag, True if it was set."""
        was_loading = self.loading
        self.loading = False
        return was_loading


class History:
    """Owns the current game, the list of recent games and the best score.

    redo_ply_pointer: 0 means there is nothing to redo; p in 1..len(plies)
    means ply p is the next one to redo; len(plies) + 1 is the state
    reached after undoing below the lowest stored ply.
    """

    def __init__(self, settings: Settings, storage: KeyValueStore,
                 current_game: GameRecord | None = None,
                 recent_games: list[ShortRecord] | None = None):
        self.settings = settings
        self.storage = storage
        self.recent_games: list[ShortRecord] = list(recent_games or [])
        self.load_guard = GameLoadGuard()

        # 1. Info on previous games
        self.best_score = self._load_best_score()

        # 2. This game
        self.current_game: GameRecord = current_game or GameRecord.new_with_position_and_plies(
            settings.default_position(), self.id_for_new_game()
        )
        self.redo_ply_pointer = 0
        self.game_mode = GameMode(mode=self._load_game_mode())

    def _load_best_score(self) -> int:
        raw = self.storage.get(KEY_BEST)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            logger.warning("Ignored broken best score %r", raw)
            return 0

    def _load_game_mode(self) -> GameModeEnum:
        mode = GameModeEnum.from_id(self.storage.get(KEY_GAME_MODE))
        if mode in (GameModeEnum.AI_PLAY, GameModeEnum.PLAY):
            return GameModeEnum.PLAY
        return GameModeEnum.STOP

    @classmethod
    async def load(cls, settings: Settings, storage: KeyValueStore) -> History:
        """History with the current game and the recent games read from storage."""
        started = time.perf_counter()
        current_game = None
        raw_id = storage.get(KEY_CURRENT_GAME_ID)
        if raw_id is not None and raw_id.isdigit():
            current_game = await asyncio.to_thread(GameRecord.from_id, storage, int(raw_id))
        logger.info("Current game loaded in %.3fs: %s", time.perf_counter() - started, current_game)
        # Recent games go first: a new game must not take a used slot
        recent_games = await asyncio.to_thread(read_recent_games, storage)
        return cls(settings, storage, current_game, recent_games)

    # ==================== Recent games ====================

    def load_recent_games(self) -> History:
        self.recent_games = read_recent_games(self.storage)
        return self

    async def load_recent_games_async(self) -> History:
        self.recent_games = await asyncio.to_thread(read_recent_games, self.storage)
        return self

    @property
    def prev_games(self) -> list[ShortRecord]:
        return [g for g in self.recent_games if g.id != self.current_game.id]

    # ==================== Opening and saving ====================

    def open_game(self, game_id: int) -> GameRecord | None:
        if self.current_game.id == game_id:
            return self.current_game
        return self._install_opened(GameRecord.from_id(self.storage, game_id), game_id)

    async def open_game_async(self, game_id: int) -> GameRecord | None:
        """Read a saved game on a worker.

        While it loads the current game is a placeholder that ignores plies
        and bookmarks; the loading flag stays set until the next save.
        """
        if self.current_game.id == game_id:
            return self.current_game
        if not self.load_guard.begin_load():
            logger.info("Game %s not opened: another game is loading", game_id)
            return None

        previous = self.current_game
        summary = next((g for g in self.recent_games if g.id == game_id), None)
        if summary is not None:
            self.current_game = GameRecord(
                id=summary.id,
                start=summary.start,
                starting_position=summary.final_position,
                plies=GamePlies.loading(),
                bookmarks=summary.bookmarks,
                note=summary.note,
            )
        try:
            async with self.load_guard.lock:
                game = await asyncio.to_thread(GameRecord.from_id, self.storage, game_id)
        except BaseException:
            self.current_game = previous
            self.load_guard.clear()
            raise
        if game is None:
            self.current_game = previous
            self.load_guard.clear()
        return self._install_opened(game, game_id)

    def _install_opened(self, game: GameRecord | None, game_id: int) -> GameRecord | None:
        if game is None:
            logger.info("Failed to open game %s", game_id)
            return None
        if game.id == game_id:
            logger.info("Opened game %s", game)
        else:
            logger.info("Fixed id %s while opening game %s", game_id, game)
            game.id = game_id
        self.current_game = game
        self.redo_ply_pointer = 0
        self.storage[KEY_CURRENT_GAME_ID] = game.id
        self.game_mode.stop()
        return game

    def start_new_game(self, position: GamePosition) -> GameRecord:
        self.current_game = GameRecord.new_with_position_and_plies(position, self.id_for_new_game())
        self.redo_ply_pointer = 0
        logger.info("Started %s", self.current_game)
        return self.current_game

    def adopt_game(self, game: GameRecord) -> GameRecord:
        """Make an imported game current under a slot of this history."""
        game.id = self.id_for_new_game()
        self.current_game = game
        self.redo_ply_pointer = 0
        logger.info("Adopted %s", game)
        return game

    def save_current(self) -> asyncio.Task | None:
        """Persist the mode and current id now, the game body in the background.

        Returns the background task; without a running event loop the body
        is written before returning.
        """
        self.storage[KEY_GAME_MODE] = self.game_mode.mode.value
        if self.current_game.id <= 0 or self.current_game.not_completed:
            logger.info("Nothing to save %s", self.current_game)
            return None

        self.storage[KEY_CURRENT_GAME_ID] = self.current_game.id
        game = self.current_game
        # Listed right away so its id is not handed out before the body is written
        self.recent_games = [g for g in self.recent_games if g.id != game.id] + [game.short_record]
        self.recent_games.sort(key=lambda g: g.start, reverse=True)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._save_game(game)
            self.load_recent_games()
            return None
        return asyncio.create_task(self._save_in_background(game))

    def _save_game(self, game: GameRecord):
        started = time.perf_counter()
        try:
            self.update_best_score(game.score)
            game.save(self.storage)
            logger.info("Game %s saved in %.3fs", game.id, time.perf_counter() - started)
        finally:
            self.load_guard.clear()

    async def _save_in_background(self, game: GameRecord):
        try:
            async with self.load_guard.lock:
                await asyncio.to_thread(self._save_game, game)
        except Exception:
            logger.exception("Failed to save game %s", game.id)
            return
        await self.load_recent_games_async()

    def update_best_score(self, score: int | None = None):
        if score is None:
            score = self.current_game.score
        if self.best_score < score:
            self.best_score = score
            self.storage[KEY_BEST] = str(score)

    def delete_current(self):
        GameRecord.delete(self.storage, self.current_game.id)
        logger.info("Deleted %s", self.current_game)
        self.load_recent_games()

    # ==================== Id pool ====================

    def id_for_new_game(self) -> int:
        """Id of a free slot; an evicted game is deleted first."""
        game_id = self._id_to_delete() or self._unused_game_id()
        if GameRecord.delete(self.storage, game_id):
            logger.info("Evicted game %s", game_id)
        self.recent_games = [g for g in self.recent_games if g.id != game_id]
        return game_id

    def _other_games(self) -> list[ShortRecord]:
        # The current game is unset while the constructor picks its id
        current = getattr(self, "current_game", None)
        if current is None:
            return self.recent_games
        return [g for g in self.recent_games if g.id != current.id]

    def _id_to_delete(self) -> int | None:
        if len(self.recent_games) <= MAX_OLDER_GAMES:
            return None
        others = self._other_games()
        keep_after = now() - KEEP_GAMES_FOR
        older_games = [g for g in others if g.start < keep_after]
        if len(older_games) > MIN_OLD_GAMES_TO_EVICT:
            return min(older_games, key=lambda g: g.score).id
        if len(self.recent_games) >= GAME_IDS[-1] and others:
            return min(others, key=lambda g: g.score).id
        return None

    def _unused_game_id(self) -> int:
        others = self._other_games()
        used = {g.id for g in self.recent_games}
        current = getattr(self, "current_game", None)
        if current is not None:
            used.add(current.id)
        for game_id in GAME_IDS:
            if game_id not in used:
                return game_id
        if others:
            return min(others, key=lambda g: g.start).id
        return GAME_IDS[0]

    # ==================== Plies ====================

    @property
    def ply_to_redo(self) -> Ply | None:
        return self.current_game.plies.ply_at(self.redo_ply_pointer)

    def add(self, position: GamePosition):
        """Append the ply that produced position, dropping the redo tail."""
        if self.current_game.not_completed:
            return

        game = self.current_game
        if position.prev_ply.kind == PlyKind.LOAD:
            self.current_game = GameRecord.new_with_position_and_plies(position, self.id_for_new_game())
        else:
            pointer = self.redo_ply_pointer
            if pointer < 1:
                bookmarks = game.bookmarks
                plies = game.plies
            elif pointer == 1:
                bookmarks = ()
                plies = GamePlies()
            else:
                bookmarks = [b for b in game.bookmarks if b.ply_number < pointer]
                plies = game.plies.take(pointer - 1)
            if pointer > 0:
                logger.debug("Dropped %d plies to redo in game %s", len(game.plies) - len(plies), game.id)
            self.current_game = game.with_changes(plies=plies + position.prev_ply, bookmarks=bookmarks)
        self.update_best_score(position.score)
        self.redo_ply_pointer = 0

    def can_undo(self) -> bool:
        last = self.current_game.plies.last()
        return (self.current_game.is_ready
                and self.settings.allow_undo
                and self.redo_ply_pointer not in (1, 2)
                and len(self.current_game.plies) > 1
                and last is not None and last.player == PlayerType.COMPUTER)

    def undo(self) -> Ply | None:
        size = len(self.current_game.plies)
        if not self.can_undo():
            return None
        if self.redo_ply_pointer < 1 and size > 0:
            # Point to the last ply
            self.redo_ply_pointer = size
        elif 1 < self.redo_ply_pointer <= size + 1:
            self.redo_ply_pointer -= 1
        else:
            return None
        return self.ply_to_redo

    def can_redo(self) -> bool:
        return self.current_game.is_ready and 0 < self.redo_ply_pointer <= len(self.current_game.plies)

    def redo(self) -> Ply | None:
        if self.can_redo():
            ply = self.ply_to_redo
            if self.redo_ply_pointer < len(self.current_game.plies):
                self.redo_ply_pointer += 1
            else:
                self.redo_ply_pointer = 0
            return ply
        self.redo_ply_pointer = 0
        return None

    def undo_to_start(self) -> bool:
        """Point before the first ply."""
        if not self.can_undo():
            return False
        self.redo_ply_pointer = 1
        return True

    def redo_to_current(self) -> bool:
        if not self.can_redo():
            return False
        self.redo_ply_pointer = 0
        return True

    @property
    def current_ply_count(self) -> int:
        """Number of plies behind the position the pointer stands at."""
        if self.redo_ply_pointer < 1:
            return len(self.current_game.plies)
        return self.redo_ply_pointer - 1

    # ==================== Bookmarks ====================

    def create_bookmark(self, position: GamePosition):
        if self.current_game.not_completed:
            return
        bookmarks = [b for b in self.current_game.bookmarks if b.ply_number != position.ply_number]
        self.current_game = self.current_game.with_changes(bookmarks=bookmarks + [position])

    def delete_bookmark(self, position: GamePosition):
        if self.current_game.not_completed:
            return
        bookmarks = [b for b in self.current_game.bookmarks if b.ply_number != position.ply_number]
        self.current_game = self.current_game.with_changes(bookmarks=bookmarks)

    def goto_bookmark(self, position: GamePosition):
        if self.current_game.not_completed:
            return
        if position.ply_number >= self.current_game.final_position.ply_number:
            self.redo_ply_pointer = 0
        else:
            self.redo_ply_pointer = position.ply_number + 1
