from __future__ import annotations

import asyncio
import json
import logging
import os
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import ConfigError, SimulationConfig
from ..sim.core.world import World
from ..sim.input.gestures import GestureInterpreter, Landmark

logger = logging.getLogger(__name__)

# About two seconds of unacknowledged snapshots at 60 Hz.
SNAPSHOT_QUEUE_LIMIT = 120


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: SimulationConfig, queue_limit: int = SNAPSHOT_QUEUE_LIMIT):
        self.world = World(config)
        self.gestures = GestureInterpreter(config.gesture, self.world.perturbation)
        self.tick = 0
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=queue_limit)
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def config(self) -> SimulationConfig:
        return self.world.config

    @property
    def running(self) -> bool:
        return not self.world.paused

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
            self._loop_task.add_done_callback(self._on_loop_done)
        async with self._lock:
            self.world.resume()

    async def stop(self) -> None:
        async with self._lock:
            self.world.pause()

    async def toggle(self) -> bool:
        async with self._lock:
            self.world.toggle_pause()
        return self.running

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
            self.tick = 0
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def update_parameters(self, changes: Dict[str, Any]) -> SimulationConfig:
        async with self._lock:
            config = self.world.update_parameters(changes)
            self.gestures.config = config.gesture
        return config

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.frame_interval / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                self.world.step(self.tick)
                self.tick += 1
            if self.tick % self.config.broadcast_interval == 0:
                await self._broadcast_snapshot()

    def _on_loop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Simulation loop stopped at tick %d", self.tick, exc_info=exc)
        self._loop_task = None

    async def acknowledge(self, tick: int) -> int:
        """Forget every queued snapshot up to `tick`; returns how many were dropped."""

        dropped = 0
        async with self._queue_lock:
            queue = self._snapshot_queue
            while queue and queue[0].tick <= tick:
                queue.popleft()
                dropped += 1
        return dropped

    async def handle_message(self, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            return
        if not isinstance(payload, dict):
            return
        kind = payload.get("type")
        if kind == "ack":
            tick = payload.get("tick")
            if isinstance(tick, int):
                await self.acknowledge(tick)
        elif kind == "hand":
            raw = payload.get("landmarks")
            try:
                landmarks = [Landmark.from_raw(point) for point in raw] if raw else None
                self.gestures.process(landmarks, payload.get("position"))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Ignoring malformed hand message: %s", exc)
        elif kind == "attractor":
            try:
                self._apply_attractor(payload)
            except (TypeError, ValueError) as exc:
                logger.debug("Ignoring malformed attractor message: %s", exc)
        elif kind == "explode":
            try:
                self.world.perturbation.trigger_explosion(payload.get("position"))
            except (TypeError, ValueError) as exc:
                logger.debug("Ignoring malformed explode message: %s", exc)
        elif kind == "pause":
            await self.toggle()

    def _apply_attractor(self, payload: Dict[str, Any]) -> None:
        perturbation = self.world.perturbation
        position = payload.get("position")
        if position is not None:
            perturbation.set_attractor(position)
        if "active" in payload:
            perturbation.set_attraction_active(bool(payload["active"]))
            perturbation.set_hand_visible(bool(payload["active"]))

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot(self.tick)
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "state": snapshot.state,
                "metrics": None if snapshot.metrics is None else asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "attractor": asdict(snapshot.attractor),
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _enqueue_snapshot(self) -> QueuedSnapshot:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            queue = self._snapshot_queue
            if queue and len(queue) == queue.maxlen:
                # Unacknowledged backlog is full; the oldest snapshot falls off.
                logger.debug("Snapshot queue full, dropping tick %d", queue[0].tick)
            queue.append(queued)
        return queued

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        since = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > since]
        for item in pending:
            await client.send_text(item.payload)
            self._client_last_sent[client] = item.tick

    def _drop_client(self, client: WebSocket) -> None:
        self.clients.discard(client)
        self._client_last_sent.pop(client, None)

    async def _broadcast_snapshot(self) -> None:
        await self._enqueue_snapshot()
        for client in list(self.clients):
            try:
                await self._send_pending_snapshots(client)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.info("Dropping disconnected client: %r", exc)
                self._drop_client(client)


def _load_app_config() -> SimulationConfig:
    path = os.environ.get("SKYFLOCK_CONFIG")
    if not path:
        return SimulationConfig()
    logger.info("Loading configuration from %s", path)
    return SimulationConfig.from_yaml(Path(path))


app = FastAPI(title="Skyflock Simulation")
controller = SimulationController(_load_app_config())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    snapshot = controller.world.snapshot(controller.tick)
    return JSONResponse(
        {
            "running": controller.running,
            "state": snapshot.state,
            "tick": controller.tick,
            "population": len(controller.world.agents),
            "metrics": None if snapshot.metrics is None else asdict(snapshot.metrics),
            "attractor": asdict(snapshot.attractor),
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    await controller.start()
    return JSONResponse({"running": controller.running})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": controller.running})


@app.post("/api/control/toggle")
async def toggle_simulation() -> JSONResponse:
    running = await controller.toggle()
    return JSONResponse({"running": running})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.get("/api/params")
async def get_params() -> JSONResponse:
    return JSONResponse(controller.config.to_dict())


@app.patch("/api/params")
async def patch_params(payload: dict) -> JSONResponse:
    try:
        config = await controller.update_parameters(payload)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=exc.problems) from exc
    return JSONResponse(config.to_dict())


@app.post("/api/attractor")
async def set_attractor(payload: dict) -> JSONResponse:
    try:
        controller._apply_attractor(payload)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    perturbation = controller.world.perturbation
    position = perturbation.attractor_position
    return JSONResponse(
        {"position": [position.x, position.y, position.z], "active": perturbation.attraction_active}
    )


@app.post("/api/explode")
async def explode(payload: dict | None = None) -> JSONResponse:
    position = None if not payload else payload.get("position")
    try:
        controller.world.perturbation.trigger_explosion(position)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse({"armed": True})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            await controller.handle_message(message)
    except WebSocketDisconnect:
        controller._drop_client(websocket)


__all__ = ["app", "controller"]
