import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as redis
from fastapi import WebSocket

from taskboard.services.task_store import parse_task_id

from .security import TokenClaims

logger = logging.getLogger(__name__)

TASK_EVENTS = ("task_created", "task_updated", "task_deleted")


def task_created_event(task: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event": "task_created",
        "data": {
            "type": "success",
            "title": "New Task Created",
            "message": f'Task "{task.get("title")}" has been created',
            "task": task,
        },
    }


def task_updated_event(task: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event": "task_updated",
        "data": {
            "type": "info",
            "title": "Task Updated",
            "message": f'Task "{task.get("title")}" has been updated',
            "task": task,
        },
    }


def task_deleted_event(task_id: Any, task_title: Optional[str]) -> Dict[str, Any]:
    return {
        "event": "task_deleted",
        "data": {
            "type": "warning",
            "title": "Task Deleted",
            "message": f'Task "{task_title}" has been deleted',
            "taskId": task_id,
        },
    }


def event_from_client(frame: Any) -> Optional[Dict[str, Any]]:
    """Turn a frame emitted by a client into a broadcast event, or None if unusable.

    Clients send ``{"event": "task_created" | "task_updated", "data": task}`` or
    ``{"event": "task_deleted", "data": {"taskId": ..., "title": ...}}``.
    """
    if not isinstance(frame, dict):
        return None
    kind = frame.get("event")
    data = frame.get("data")
    if kind not in TASK_EVENTS or not isinstance(data, dict):
        return None
    if kind == "task_created":
        return task_created_event(data)
    if kind == "task_updated":
        return task_updated_event(data)
    task_id = parse_task_id(data.get("taskId"))
    if task_id is None:
        return None
    return task_deleted_event(task_id, data.get("title"))


def _owner_of(event: Dict[str, Any]) -> Optional[int]:
    task = event.get("data", {}).get("task")
    if isinstance(task, dict):
        return task.get("userId")
    return None


class ConnectionManager:
    """Registry of live task-event sockets for this server process.

    With a redis client (or ``redis_url``) every event goes through the redis
    channel, and each process relays what it hears there to its own sockets.
    """

    def __init__(self, redis_url: Optional[str] = None, channel: str = "taskboard_events", scope: str = "all",
                 redis_client=None, retry_delay: float = 1.0):
        self.active_connections: List[Tuple[WebSocket, TokenClaims]] = []
        self.redis_url = redis_url
        self.channel = channel
        self.scope = scope
        self.retry_delay = retry_delay
        self._redis = redis_client
        self._listener: Optional[asyncio.Task] = None

    async def start(self):
        if self._redis is None:
            if not self.redis_url:
                return
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        self._listener = asyncio.create_task(self._redis_listener())
        logger.info("Relaying task events through redis channel %s", self.channel)

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        for websocket, _ in list(self.active_connections):
            try:
                await websocket.close()
            except Exception:
                logger.debug("Socket already closed during shutdown")
        self.active_connections.clear()

    async def connect(self, websocket: WebSocket, claims: TokenClaims):
        await websocket.accept()
        self.active_connections.append((websocket, claims))
        logger.info("User %s connected (%d open sockets)", claims.user_id, len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        for entry in list(self.active_connections):
            if entry[0] is websocket:
                self.active_connections.remove(entry)
                logger.info("User %s disconnected", entry[1].user_id)

    async def broadcast(self, event: Dict[str, Any], owner_id: Optional[int] = None):
        """Send to every local socket; sockets that fail to receive are dropped."""
        for websocket, claims in list(self.active_connections):
            if owner_id is not None and claims.user_id != owner_id:
                continue
            try:
                await websocket.send_json(event)
            except Exception as e:
                logger.warning("Dropping socket of user %s: %s", claims.user_id, e)
                self.disconnect(websocket)

    async def publish(self, event: Dict[str, Any], owner_id: Optional[int] = None):
        """Fan an event out to all processes. Never raises."""
        if owner_id is None:
            owner_id = _owner_of(event)
        target = owner_id if self.scope == "owner" else None
        try:
            if self._redis is not None:
                envelope = dict(event, ownerId=target)
                await self._redis.publish(self.channel, json.dumps(envelope))
            else:
                await self.broadcast(event, owner_id=target)
        except Exception:
            logger.exception("Failed to broadcast %s", event.get("event"))

    async def relay(self, raw: Any):
        """Deliver one message received on the redis channel to local sockets."""
        try:
            envelope = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed message on %s", self.channel)
            return
        if not isinstance(envelope, dict) or "event" not in envelope:
            logger.warning("Ignoring non-event message on %s", self.channel)
            return
        target = envelope.pop("ownerId", None)
        await self.broadcast(envelope, owner_id=target)

    async def _redis_listener(self):
        # Runs until stop() cancels it; a dropped subscription is re-established.
        while True:
            try:
                await self._subscribe_and_relay()
                logger.warning("Subscription to %s ended, resubscribing", self.channel)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Redis relay on %s failed, resubscribing in %.1fs", self.channel, self.retry_delay)
            await asyncio.sleep(self.retry_delay)

    async def _subscribe_and_relay(self):
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.relay(message["data"])
        finally:
            await pubsub.aclose()
