import logging
from typing import Any, Dict, Optional

import httpx

from taskboard.client.cache import Task, TaskCache

logger = logging.getLogger(__name__)

NETWORK_ERROR = "Network error occurred"


class TaskApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TaskApiClient:
    """REST client that keeps a ``TaskCache`` in step with every call.

    Each call moves the cache through pending, then either the matching merge or
    ``rejected`` with the server's message. The error is also raised as
    ``TaskApiError`` so callers can react to it.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, cache: Optional[TaskCache] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.cache = cache if cache is not None else TaskCache()
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def _request(self, method: str, url: str, default_error: str, **kwargs) -> Dict[str, Any]:
        self.cache.pending()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            self.cache.rejected(NETWORK_ERROR, default_error)
            raise TaskApiError(NETWORK_ERROR) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            self.cache.rejected(message, default_error)
            raise TaskApiError(message or default_error, response.status_code)
        return data

    async def fetch_tasks(self, status: Optional[str] = None, sort_by: Optional[str] = None,
                          sort_order: Optional[str] = None) -> list:
        params = {k: v for k, v in (("status", status), ("sortBy", sort_by), ("sortOrder", sort_order)) if v}
        data = await self._request("GET", "/tasks", "Failed to fetch tasks", params=params)
        self.cache.set_tasks(data["tasks"])
        return data["tasks"]

    async def create_task(self, title: str, description: Optional[str] = None,
                          due_date: Optional[str] = None) -> Task:
        body: Dict[str, Any] = {"title": title}
        if description is not None:
            body["description"] = description
        if due_date is not None:
            body["dueDate"] = due_date
        data = await self._request("POST", "/tasks", "Failed to create task", json=body)
        self.cache.add_task(data["task"])
        return data["task"]

    async def update_task(self, task_id: Any, **changes) -> Task:
        """Send only the given fields; pass ``dueDate=None`` to clear the due date."""
        data = await self._request("PUT", f"/tasks/{task_id}", "Failed to update task", json=changes)
        self.cache.replace_task(data["task"])
        return data["task"]

    async def delete_task(self, task_id: Any) -> Any:
        data = await self._request("DELETE", f"/tasks/{task_id}", "Failed to delete task")
        self.cache.drop_task(data["taskId"])
        return data["taskId"]

    async def fetch_task_by_id(self, task_id: Any) -> Task:
        data = await self._request("GET", f"/tasks/{task_id}", "Failed to fetch task")
        self.cache.select_task(data["task"])
        return data["task"]
