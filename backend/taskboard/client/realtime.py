import json
import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import websockets

from taskboard.client.cache import Task, TaskCache

logger = logging.getLogger(__name__)

Notify = Callable[[Dict[str, Any]], None]


class TaskEventListener:
    """Keeps a ``TaskCache`` in step with the server's task-event socket.

    Events missed while disconnected are gone for good; call
    ``TaskApiClient.fetch_tasks`` after reconnecting to resync.
    """

    def __init__(self, ws_url: str, token: str, cache: TaskCache, notify: Optional[Notify] = None):
        self.url = f"{ws_url}?{urlencode({'token': token})}"
        self.cache = cache
        self.notify = notify
        self._socket = None

    def handle_frame(self, raw: str) -> bool:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON frame")
            return False
        if not isinstance(frame, dict) or not isinstance(frame.get("data"), dict):
            return False
        data = frame["data"]
        if not self.cache.apply_event(frame.get("event"), data):
            return False
        if self.notify is not None:
            self.notify({"type": data.get("type"), "title": data.get("title"), "message": data.get("message")})
        return True

    async def run(self):
        """Consume events until the server closes the socket."""
        async with websockets.connect(self.url) as socket:
            self._socket = socket
            logger.info("Connected to %s", self.url.split("?")[0])
            try:
                async for raw in socket:
                    self.handle_frame(raw)
            finally:
                self._socket = None
                logger.info("Disconnected from task events")

    async def _emit(self, event: str, data: Dict[str, Any]):
        # Nobody to tell while offline.
        if self._socket is None:
            return
        await self._socket.send(json.dumps({"event": event, "data": data}))

    async def emit_task_created(self, task: Task):
        await self._emit("task_created", task)

    async def emit_task_updated(self, task: Task):
        await self._emit("task_updated", task)

    async def emit_task_deleted(self, task_id: Any, task_title: str):
        await self._emit("task_deleted", {"taskId": task_id, "title": task_title})
