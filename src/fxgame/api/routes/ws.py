"""WebSocket hub pushing game events as JSON to connected clients."""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fxgame.api.routes.api import player_to_dict, prediction_to_dict
from fxgame.models import OpenPrediction, ResolvedPrediction
from fxgame.session import GameSession

log = structlog.get_logger(__name__)

router = APIRouter()


class EventHub:
    """Manages WebSocket connections and broadcasts event messages to all clients.

    Events are queued and sent by a single sender task, so clients receive
    them in publish order and broadcasts never overlap.
    """

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._sender: asyncio.Task[None] | None = None

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.connections.append(ws)
        log.info("ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self.connections:
            self.connections.remove(ws)
        log.info("ws_disconnected", total=len(self.connections))

    async def broadcast(self, message: str) -> None:
        """Send a message to all connected clients, removing broken connections."""
        for ws in self.connections.copy():
            try:
                await ws.send_text(message)
            except Exception:
                if ws in self.connections:
                    self.connections.remove(ws)
                log.warning("ws_broadcast_error", remaining=len(self.connections))

    def publish(self, message: str) -> None:
        """Queue a message for the sender task. Dropped while no client is connected."""
        if not self.connections:
            return
        self._queue.put_nowait(message)

    def start(self) -> None:
        if self._sender is None:
            self._sender = asyncio.create_task(self._run_sender(), name="ws-sender")

    async def stop(self) -> None:
        if self._sender is not None:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
            self._sender = None

    async def _run_sender(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.broadcast(message)
            except Exception:
                log.warning("ws_sender_error", exc_info=True)

    def attach(self, session: GameSession) -> None:
        """Forward feed and lifecycle events to connected clients.

        Listeners are synchronous, so each event is queued for the sender
        task, which is started here.
        """
        self.start()

        def push(event: str, data: Any) -> None:
            if self.connections:
                self.publish(json.dumps({"event": event, "data": data}))

        def on_rates(rates: dict[str, Decimal]) -> None:
            push("rates_updated", {k: str(v) for k, v in rates.items()})

        def on_placed(prediction: OpenPrediction) -> None:
            push("prediction_placed", prediction_to_dict(prediction))

        def on_resolved(prediction: ResolvedPrediction) -> None:
            push("prediction_resolved", prediction_to_dict(prediction))

        def on_badge(badge: str) -> None:
            push("badge_unlocked", {"badge": badge})

        session.feed.on_rates_updated.subscribe(on_rates)
        session.lifecycle.on_prediction_placed.subscribe(on_placed)
        session.lifecycle.on_prediction_resolved.subscribe(on_resolved)
        session.lifecycle.on_badge_unlocked.subscribe(on_badge)
        session.lifecycle.on_stats_updated.subscribe(
            lambda state: push("stats_updated", player_to_dict(state))
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time game events."""
    hub: EventHub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            # Consume messages to keep the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)
