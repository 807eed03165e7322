"""Game orchestrator that coordinates history, rules, the clock and the AI."""
from __future__ import annotations
from typing import Awaitable, Callable
import asyncio
import logging

from .ai.classic import ClassicAI
from .board import Direction
from .config import GameModeEnum
from .history import GameRecord, History
from .pieces import PlacedPiece
from .ply import Ply, composer_ply, delay
from .position import GameClock, GamePosition
from .rules import GameRules

logger = logging.getLogger(__name__)

# Receives plies to present and whether to play them backwards
PliesCallback = Callable[[list[Ply], bool], Awaitable[None]]


class GameOrchestrator:
    """Turns user intents into plies and keeps the shown position in sync.

    Every method returns the plies the presentation layer has to animate;
    an empty list means nothing happened.
    """

    def __init__(self, history: History, rules: GameRules | None = None,
                 ai: ClassicAI | None = None):
        self.history = history
        self.rules = rules or GameRules()
        self.ai = ai or ClassicAI(history.settings.ai_difficulty)
        self.position: GamePosition = history.current_game.final_position
        self.clock = GameClock(self.position.seconds)
        self._move_lock: asyncio.Lock | None = None
        self._auto_task: asyncio.Task | None = None

    @property
    def move_lock(self) -> asyncio.Lock:
        """Held while a move is applied; one move at a time."""
        if self._move_lock is None:
            self._move_lock = asyncio.Lock()
        return self._move_lock

    @property
    def game_mode(self):
        return self.history.game_mode

    @property
    def score(self) -> int:
        return self.position.score

    @property
    def best_score(self) -> int:
        return self.history.best_score

    @property
    def is_bookmarked(self) -> bool:
        return self.history.current_game.bookmark_at(self.position.ply_number) is not None

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def no_more_moves(self) -> bool:
        return self.rules.is_game_over(self.position)

    def _show(self, position: GamePosition):
        self.position = position
        self.clock.reset(position.seconds)

    def _add(self, position: GamePosition):
        self.history.add(position)
        self.position = position

    # ==================== Playing ====================

    def on_app_entry(self) -> list[Ply]:
        """Plies to show the current game, a fresh one if it has no pieces yet."""
        plies = [composer_ply(self.position)]
        if not self.history.current_game.plies and not self.position.board.occupied_squares():
            plies += self.computer_move() + self.computer_move()
        return plies

    def user_move(self, direction: Direction) -> list[Ply]:
        """The user's move followed by the computer's placement."""
        if self.history.current_game.not_completed:
            return []
        self.clock.start()
        result = self.rules.move(self.position, direction, self.clock.played_seconds)
        if not result.success:
            logger.debug("%s: %s", direction.value, result.message)
            return []
        self._add(result.position)
        return [result.ply] + self.computer_move()

    def computer_move(self, placed: PlacedPiece | None = None) -> list[Ply]:
        if self.history.current_game.not_completed:
            return []
        position = self.rules.computer_move(self.position, placed, self.clock.played_seconds)
        if position is None:
            return []
        self._add(position)
        return [position.prev_ply]

    def composer_move(self, position: GamePosition) -> list[Ply]:
        """Load a composed position, it starts a new game."""
        if self.history.current_game.not_completed:
            return []
        loaded = self.rules.load(position)
        self._add(loaded)
        self.clock.reset(loaded.seconds)
        return [loaded.prev_ply]

    def restart(self, save: bool = True) -> list[Ply]:
        """Start a new game with two pieces placed by the computer."""
        if save:
            self.history.save_current()
        self.history.start_new_game(self.history.settings.default_position())
        self.clock = GameClock()
        self._show(self.history.current_game.starting_position)
        return [composer_ply(self.position)] + self.computer_move() + self.computer_move()

    # ==================== Navigation ====================

    def undo(self) -> list[Ply]:
        """Step back over the computer's placement and the user's move."""
        return self._step(self.history.undo)

    def redo(self) -> list[Ply]:
        return self._step(self.history.redo)

    def _step(self, step: Callable[[], Ply | None]) -> list[Ply]:
        plies: list[Ply] = []
        for _ in range(2):
            ply = step()
            if ply is None:
                break
            if plies:
                plies.append(delay())
            plies.append(ply)
        if plies:
            self._show(self.history.current_game.position_at(self.history.current_ply_count))
        return plies

    def undo_to_start(self) -> list[Ply]:
        if not self.history.undo_to_start():
            return []
        self._show(self.history.current_game.starting_position)
        return [composer_ply(self.position)]

    def redo_to_current(self) -> list[Ply]:
        if not self.history.redo_to_current():
            return []
        self._show(self.history.current_game.final_position)
        return [composer_ply(self.position)]

    # ==================== Bookmarks ====================

    def create_bookmark(self):
        self.history.create_bookmark(self.position)

    def delete_bookmark(self):
        self.history.delete_bookmark(self.position)

    def goto_bookmark(self, ply_number: int) -> list[Ply]:
        bookmark = self.history.current_game.bookmark_at(ply_number)
        if bookmark is None:
            return []
        self.history.goto_bookmark(bookmark)
        self._show(self.history.current_game.position_at(self.history.current_ply_count))
        return [composer_ply(self.position)]

    # ==================== Games ====================

    def save_current(self) -> asyncio.Task | None:
        return self.history.save_current()

    async def restore_game(self, game_id: int) -> list[Ply]:
        """Make a saved game current and show its final position."""
        self.history.save_current()
        game = await self.history.open_game_async(game_id)
        if game is None:
            return []
        self._show(game.final_position)
        self.history.save_current()
        return [composer_ply(self.position)]

    def delete_current(self) -> list[Ply]:
        self.history.delete_current()
        return self.restart(save=False)

    def export_current(self) -> str:
        return self.history.current_game.to_json()

    def import_game(self, json_str: str) -> list[Ply]:
        """Adopt a shared game; nothing happens if it doesn't parse."""
        game = GameRecord.from_json(json_str, new_id=0)
        if game is None:
            return []
        self.history.adopt_game(game)
        self._show(game.final_position)
        self.history.save_current()
        return [composer_ply(self.position)]

    # ==================== Automatic play ====================

    def pause_game(self):
        self.clock.stop()

    def stop_auto(self):
        """Stop the AI or automatic replay."""
        task, self._auto_task = self._auto_task, None
        if task and not task.done():
            task.cancel()
        if self.game_mode.mode == GameModeEnum.AI_PLAY:
            self.game_mode.start(GameModeEnum.PLAY)
        elif self.game_mode.auto_playing:
            self.game_mode.stop()
        self.pause_game()

    def start_ai(self, on_plies: PliesCallback | None = None) -> asyncio.Task:
        self.stop_auto()
        self.game_mode.ai_enabled = True
        self.game_mode.start(GameModeEnum.AI_PLAY)
        self._auto_task = asyncio.create_task(self._run_ai(on_plies))
        return self._auto_task

    def start_auto_replay(self, mode: GameModeEnum,
                          on_plies: PliesCallback | None = None) -> asyncio.Task | None:
        """Replay backwards or forward; speeds up if already running that way."""
        if mode not in (GameModeEnum.BACKWARDS, GameModeEnum.FORWARD):
            raise ValueError(f"Not a replay mode: {mode}")
        if self.game_mode.mode == mode:
            if mode == GameModeEnum.BACKWARDS:
                self.game_mode.decrement_speed()
            else:
                self.game_mode.increment_speed()
            return self._auto_task
        can_go = self.can_undo() if mode == GameModeEnum.BACKWARDS else self.can_redo()
        if not can_go:
            return None
        self.stop_auto()
        self.game_mode.start(mode)
        self._auto_task = asyncio.create_task(self._run_replay(mode, on_plies))
        return self._auto_task

    async def _run_ai(self, on_plies: PliesCallback | None):
        self.clock.start()
        while self.game_mode.mode == GameModeEnum.AI_PLAY and not self.no_more_moves():
            async with self.move_lock:
                direction = self.ai.next_move(self.position)
                if direction is None:
                    break
                plies = self.user_move(direction)
            if on_plies and plies:
                await on_plies(plies, False)
            await asyncio.sleep(self.game_mode.delay_ms / 1000)
        logger.info("AI stopped at %s", self.position)
        if self.game_mode.mode == GameModeEnum.AI_PLAY:
            self.game_mode.start(GameModeEnum.PLAY)
        self.pause_game()

    async def _run_replay(self, mode: GameModeEnum, on_plies: PliesCallback | None):
        backwards = mode == GameModeEnum.BACKWARDS
        while self.game_mode.mode == mode and (self.can_undo() if backwards else self.can_redo()):
            if self.game_mode.speed != 0:
                async with self.move_lock:
                    plies = self.undo() if backwards else self.redo()
                if on_plies and plies:
                    await on_plies(plies, backwards)
            await asyncio.sleep(self.game_mode.delay_ms / 1000)
        if self.game_mode.mode == mode:
            self.game_mode.stop()
