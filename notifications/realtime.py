"""Live delivery of persisted notifications to connected users."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, DefaultDict, Set

from fastapi import WebSocket

from constants import NOTIFICATION_EVENT
from utils.background import BestEffortRunner
from utils.push import push_configured, send_push_notification
from logging_config import get_logger

logger = get_logger("realtime")


class ConnectionManager:
    """Active websocket connections grouped by user id."""

    def __init__(self) -> None:
        self._connections: DefaultDict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[user_id].add(websocket)
        logger.debug("Websocket connected", extra={"data": {"user_id": user_id, "sockets": len(self._connections[user_id])}})

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(user_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(user_id, None)

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every socket of ``user_id``; returns how many accepted it."""
        delivered = 0
        for connection in list(self._connections.get(user_id, set())):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.info(f"Dropping dead websocket: {exc}", extra={"data": {"user_id": user_id}})
                self.disconnect(user_id, connection)
        return delivered


class RealtimeEmitter:
    """
    Pushes ``notification:new`` events to a user's live sockets. Users with no
    live socket get a web push instead, when VAPID keys are configured and
    they have not turned push off.
    """

    def __init__(self, manager: ConnectionManager, background: BestEffortRunner, preferences=None, subscriptions=None) -> None:
        self._manager = manager
        self._background = background
        self._preferences = preferences
        self._subscriptions = subscriptions

    async def emit(self, user_id: str, payload: dict[str, Any]) -> None:
        delivered = await self._manager.send_to_user(user_id, {"type": NOTIFICATION_EVENT, "data": payload})
        if delivered or self._subscriptions is None or not push_configured():
            return
        self._background.spawn(self._push(user_id, payload), label=f"web-push:{user_id}")

    async def _push(self, user_id: str, payload: dict[str, Any]) -> None:
        if self._preferences is not None:
            prefs = await self._preferences.get_preferences(user_id)
            if prefs is not None and prefs.push_enabled is False:
                return
        await send_push_notification(
            self._subscriptions,
            user_id,
            title=payload.get("title") or "Notification",
            message=payload.get("message") or "",
            url=payload.get("href") or "/",
        )
