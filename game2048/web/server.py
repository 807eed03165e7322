"""FastAPI server with WebSocket for the 2048 game."""
from __future__ import annotations
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..board import Direction
from ..config import GameModeEnum, Settings
from ..database import KeyValueStore
from ..history import History
from ..orchestrator import GameOrchestrator
from ..ply import Ply

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections."""

    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        """Broadcast message to all connected clients."""
        dead = []
        for connection in self.active_connections:
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                dead.append(connection)
        for conn in dead:
            self.disconnect(conn)


class MoveRequest(BaseModel):
    """Request body for a user move."""
    direction: str


class BookmarkRequest(BaseModel):
    ply_number: int


class ReplayRequest(BaseModel):
    mode: str


class SpeedRequest(BaseModel):
    delta: Optional[int] = None
    speed: Optional[int] = None


class ImportRequest(BaseModel):
    """A game record as exported by /api/game/export."""
    record: dict


def create_app(settings: Settings | None = None, storage: KeyValueStore | None = None) -> FastAPI:
    manager = ConnectionManager()

    # Created on first use, History loads asynchronously
    orchestrator: Optional[GameOrchestrator] = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if orchestrator is not None:
            orchestrator.stop_auto()
            task = orchestrator.save_current()
            if task is not None:
                await task

    app = FastAPI(title="2048", lifespan=lifespan)

    async def get_orchestrator() -> GameOrchestrator:
        nonlocal orchestrator, settings, storage
        if orchestrator is None:
            if storage is None:
                storage = KeyValueStore(settings.db_path if settings else Settings().db_path)
            if settings is None:
                settings = Settings.load(storage)
            history = await History.load(settings, storage)
            orchestrator = GameOrchestrator(history)
            logger.info("Serving %s", history.current_game)
            orchestrator.on_app_entry()
        return orchestrator

    def build_state_message(orch: GameOrchestrator) -> dict:
        game = orch.history.current_game
        return {
            "type": "state",
            "game_id": game.id,
            "position": orch.position.to_dict(),
            "score": orch.score,
            "best_score": orch.best_score,
            "clock": orch.clock.played_seconds_string,
            "can_undo": orch.can_undo(),
            "can_redo": orch.can_redo(),
            "bookmarked": orch.is_bookmarked,
            "bookmarks": [b.ply_number for b in game.bookmarks],
            "game_over": orch.no_more_moves(),
            "mode": orch.game_mode.to_dict(),
        }

    async def present(orch: GameOrchestrator, plies: list[Ply], reversed_: bool = False) -> dict:
        """Send plies to the rendering surface and answer the request."""
        if plies:
            await manager.broadcast({
                "type": "plies",
                "plies": [p.to_dict() for p in plies],
                "reversed": reversed_,
            })
        state = build_state_message(orch)
        await manager.broadcast(state)
        return {
            "status": "ok" if plies else "noop",
            "plies": [p.to_dict() for p in plies],
            "state": state,
        }

    async def on_plies(plies: list[Ply], reversed_: bool):
        await present(orchestrator, plies, reversed_)

    # ==================== State ====================

    @app.get("/api/state")
    async def get_state():
        orch = await get_orchestrator()
        return {"status": "ok", "state": build_state_message(orch)}

    # ==================== Moves ====================

    @app.post("/api/move")
    async def move(request: MoveRequest):
        orch = await get_orchestrator()
        try:
            direction = Direction(request.direction)
        except ValueError:
            return {"status": "error", "message": f"Unknown direction: {request.direction}"}
        if orch.game_mode.auto_playing:
            return {"status": "error", "message": "Stop automatic play first"}
        if orch.move_lock.locked():
            return {"status": "busy"}
        async with orch.move_lock:
            if orch.no_more_moves():
                return {"status": "game_over", "state": build_state_message(orch)}
            orch.game_mode.start(GameModeEnum.PLAY)
            plies = orch.user_move(direction)
        return await present(orch, plies)

    async def navigate(step) -> dict:
        orch = await get_orchestrator()
        if orch.move_lock.locked():
            return {"status": "busy"}
        orch.stop_auto()
        async with orch.move_lock:
            plies, reversed_ = step(orch)
        return await present(orch, plies, reversed_)

    @app.post("/api/undo")
    async def undo():
        return await navigate(lambda o: (o.undo(), True))

    @app.post("/api/redo")
    async def redo():
        return await navigate(lambda o: (o.redo(), False))

    @app.post("/api/undo-to-start")
    async def undo_to_start():
        return await navigate(lambda o: (o.undo_to_start(), False))

    @app.post("/api/redo-to-current")
    async def redo_to_current():
        return await navigate(lambda o: (o.redo_to_current(), False))

    # ==================== Bookmarks ====================

    @app.post("/api/bookmark")
    async def create_bookmark():
        orch = await get_orchestrator()
        orch.create_bookmark()
        return {"status": "ok", "state": build_state_message(orch)}

    @app.delete("/api/bookmark")
    async def delete_bookmark():
        orch = await get_orchestrator()
        orch.delete_bookmark()
        return {"status": "ok", "state": build_state_message(orch)}

    @app.post("/api/bookmark/goto")
    async def goto_bookmark(request: BookmarkRequest):
        return await navigate(lambda o: (o.goto_bookmark(request.ply_number), False))

    # ==================== Game Persistence ====================

    @app.get("/api/games")
    async def get_games_list():
        """List recent saved games."""
        orch = await get_orchestrator()
        await orch.history.load_recent_games_async()
        return {
            "status": "ok",
            "current": orch.history.current_game.id,
            "games": [
                {
                    "id": g.id,
                    "start": g.start.isoformat(),
                    "score": g.score,
                    "plies": g.final_position.ply_number,
                    "summary": g.summary,
                }
                for g in orch.history.recent_games
            ],
        }

    @app.delete("/api/game")
    async def delete_current_game():
        orch = await get_orchestrator()
        orch.stop_auto()
        async with orch.move_lock:
            plies = orch.delete_current()
        return await present(orch, plies)

    @app.post("/api/new-game")
    async def new_game():
        orch = await get_orchestrator()
        orch.stop_auto()
        async with orch.move_lock:
            plies = orch.restart()
        return await present(orch, plies)

    @app.post("/api/game/save")
    async def save_current_game():
        """Manually save current game."""
        orch = await get_orchestrator()
        task = orch.save_current()
        if task is not None:
            await task
        return {"status": "ok", "game_id": orch.history.current_game.id}

    @app.get("/api/game/export")
    async def export_game():
        orch = await get_orchestrator()
        return {"status": "ok", "record": json.loads(orch.export_current())}

    @app.post("/api/game/import")
    async def import_game(request: ImportRequest):
        orch = await get_orchestrator()
        orch.stop_auto()
        async with orch.move_lock:
            plies = orch.import_game(json.dumps(request.record))
        if not plies:
            return {"status": "error", "message": "Not a valid game record"}
        return await present(orch, plies)

    @app.post("/api/game/{game_id}")
    async def restore_game(game_id: int):
        """Load a specific saved game."""
        orch = await get_orchestrator()
        orch.stop_auto()
        async with orch.move_lock:
            plies = await orch.restore_game(game_id)
        if not plies:
            return {"status": "error", "message": "Game not found"}
        return await present(orch, plies)

    # ==================== Automatic play ====================

    @app.post("/api/ai/start")
    async def start_ai():
        orch = await get_orchestrator()
        if orch.no_more_moves():
            return {"status": "game_over", "state": build_state_message(orch)}
        orch.start_ai(on_plies)
        return {"status": "ok", "mode": orch.game_mode.to_dict()}

    @app.post("/api/replay")
    async def start_replay(request: ReplayRequest):
        orch = await get_orchestrator()
        mode = GameModeEnum.from_id(request.mode)
        if mode not in (GameModeEnum.BACKWARDS, GameModeEnum.FORWARD):
            return {"status": "error", "message": f"Unknown replay mode: {request.mode}"}
        if orch.start_auto_replay(mode, on_plies) is None:
            return {"status": "noop", "mode": orch.game_mode.to_dict()}
        return {"status": "ok", "mode": orch.game_mode.to_dict()}

    @app.post("/api/ai/stop")
    async def stop_auto():
        orch = await get_orchestrator()
        orch.stop_auto()
        orch.save_current()
        return {"status": "ok", "mode": orch.game_mode.to_dict()}

    @app.post("/api/speed")
    async def set_speed(req: SpeedRequest):
        orch = await get_orchestrator()
        mode = orch.game_mode
        if req.speed is not None:
            mode.speed = max(-mode.max_speed, min(mode.max_speed, req.speed))
        elif req.delta:
            for _ in range(abs(req.delta)):
                if req.delta > 0:
                    mode.increment_speed()
                else:
                    mode.decrement_speed()
        return {"status": "ok", "mode": mode.to_dict()}

    # ==================== WebSocket ====================

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await manager.connect(websocket)
        try:
            orch = await get_orchestrator()
            await websocket.send_json(build_state_message(orch))

            while True:
                data = await websocket.receive_text()
                try:
                    cmd = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if cmd.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=7000)
