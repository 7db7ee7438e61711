# tests/test_tasks_api.py

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

from fastapi.testclient import TestClient

from taskboard.core.security import create_access_token
from taskboard.main import app
from taskboard.services.task_store import TaskStore

from .helpers import bearer, register


def test_task_lifecycle_scenario(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    login = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert login.status_code == 200
    token = login.json()["token"]

    created = client.post("/tasks", json={"title": "Buy milk"}, headers=bearer(token))
    assert created.status_code == 201
    task = created.json()["task"]
    assert task["title"] == "Buy milk"
    assert task["status"] == "todo"

    updated = client.put(f"/tasks/{task['id']}", json={"status": "done"}, headers=bearer(token))
    assert updated.status_code == 200
    assert updated.json()["task"]["status"] == "done"
    assert updated.json()["task"]["title"] == "Buy milk"

    done = client.get("/tasks", params={"status": "done"}, headers=bearer(token)).json()["tasks"]
    assert [t["id"] for t in done] == [task["id"]]

    todo = client.get("/tasks", params={"status": "todo"}, headers=bearer(token)).json()["tasks"]
    assert todo == []


def test_create_then_get_round_trip(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    body = {"title": "  Report  ", "description": " draft ", "dueDate": "2030-05-01T12:00:00Z"}

    created = client.post("/tasks", json=body, headers=bearer(token)).json()["task"]
    fetched = client.get(f"/tasks/{created['id']}", headers=bearer(token))

    assert fetched.status_code == 200
    task = fetched.json()["task"]
    assert task["title"] == "Report"
    assert task["description"] == "draft"
    assert task["dueDate"] == created["dueDate"]
    assert task["dueDate"].startswith("2030-05-01T12:00:00")
    assert set(task) == {"id", "title", "description", "status", "dueDate", "userId", "createdAt", "updatedAt"}


def test_expired_token_is_rejected(client) -> None:
    register(client, "Alice", "alice@example.com")
    client.cookies.clear()
    expired = create_access_token(
        SimpleNamespace(id=1, email="alice@example.com", name="Alice"),
        expires_delta=timedelta(seconds=-5),
    )

    response = client.get("/tasks", headers=bearer(expired))

    assert response.status_code == 401
    assert "tasks" not in response.json()
    assert response.json()["message"] == "Not authenticated"


def test_missing_and_garbage_tokens_are_rejected(client) -> None:
    assert client.get("/tasks").status_code == 401
    assert client.post("/tasks", json={"title": "x"}, headers=bearer("not.a.jwt")).status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Basic abc"}).status_code == 401


def test_cookie_authenticates_when_no_header(client) -> None:
    register(client, "Alice", "alice@example.com")
    # the registration response left the token cookie on the client
    response = client.post("/tasks", json={"title": "via cookie"})
    assert response.status_code == 201


def test_title_boundaries(client) -> None:
    token = register(client, "Alice", "alice@example.com")

    ok = client.post("/tasks", json={"title": "t" * 100}, headers=bearer(token))
    assert ok.status_code == 201

    too_long = client.post("/tasks", json={"title": "t" * 101}, headers=bearer(token))
    assert too_long.status_code == 400
    assert too_long.json()["message"] == "Title cannot be more than 100 characters"

    blank = client.post("/tasks", json={"title": "   "}, headers=bearer(token))
    assert blank.status_code == 400
    assert blank.json()["message"] == "Title is required"

    missing = client.post("/tasks", json={}, headers=bearer(token))
    assert missing.status_code == 400


def test_invalid_status_rejected_and_unchanged(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    task = client.post("/tasks", json={"title": "Stay todo"}, headers=bearer(token)).json()["task"]

    response = client.put(f"/tasks/{task['id']}", json={"status": "archived"}, headers=bearer(token))
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid status"

    fetched = client.get(f"/tasks/{task['id']}", headers=bearer(token)).json()["task"]
    assert fetched["status"] == "todo"


def test_update_null_due_date_clears_it(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    task = client.post(
        "/tasks", json={"title": "Dentist", "dueDate": "2030-01-01T08:00:00Z"}, headers=bearer(token)
    ).json()["task"]

    response = client.put(f"/tasks/{task['id']}", json={"dueDate": None}, headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["task"]["dueDate"] is None
    assert response.json()["task"]["title"] == "Dentist"


def test_bad_due_date_is_a_validation_error(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    response = client.post("/tasks", json={"title": "x", "dueDate": "someday"}, headers=bearer(token))
    assert response.status_code == 400


def test_malformed_and_missing_ids(client) -> None:
    token = register(client, "Alice", "alice@example.com")

    for method in ("get", "delete"):
        response = getattr(client, method)("/tasks/not-an-id", headers=bearer(token))
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid task ID"

    response = client.put("/tasks/not-an-id", json={"title": "x"}, headers=bearer(token))
    assert response.status_code == 400

    response = client.get("/tasks/9999", headers=bearer(token))
    assert response.status_code == 404
    assert response.json()["message"] == "Task not found"


def test_cross_user_access_is_not_found(client) -> None:
    alice = register(client, "Alice", "alice@example.com")
    bob = register(client, "Bob", "bob@example.com")
    task = client.post("/tasks", json={"title": "Alice only"}, headers=bearer(alice)).json()["task"]

    assert client.get(f"/tasks/{task['id']}", headers=bearer(bob)).status_code == 404
    assert client.put(f"/tasks/{task['id']}", json={"title": "mine"}, headers=bearer(bob)).status_code == 404
    assert client.delete(f"/tasks/{task['id']}", headers=bearer(bob)).status_code == 404
    assert client.get("/tasks", headers=bearer(bob)).json()["tasks"] == []

    mine = client.get(f"/tasks/{task['id']}", headers=bearer(alice)).json()["task"]
    assert mine["title"] == "Alice only"


def test_delete_twice(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    task = client.post("/tasks", json={"title": "Gone soon"}, headers=bearer(token)).json()["task"]

    first = client.delete(f"/tasks/{task['id']}", headers=bearer(token))
    assert first.status_code == 200
    assert first.json()["taskId"] == task["id"]

    second = client.delete(f"/tasks/{task['id']}", headers=bearer(token))
    assert second.status_code == 404


def test_list_sort_order(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    for title in ("b", "c", "a"):
        client.post("/tasks", json={"title": title}, headers=bearer(token))

    default = client.get("/tasks", headers=bearer(token)).json()["tasks"]
    assert [t["title"] for t in default] == ["a", "c", "b"]

    by_title = client.get(
        "/tasks", params={"sortBy": "title", "sortOrder": "asc"}, headers=bearer(token)
    ).json()["tasks"]
    assert [t["title"] for t in by_title] == ["a", "b", "c"]


def test_stats_endpoint(client) -> None:
    token = register(client, "Alice", "alice@example.com")
    task = client.post("/tasks", json={"title": "one"}, headers=bearer(token)).json()["task"]
    client.post("/tasks", json={"title": "two"}, headers=bearer(token))
    client.put(f"/tasks/{task['id']}", json={"status": "done"}, headers=bearer(token))

    response = client.get("/tasks/stats", headers=bearer(token))

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["totalTasks"] == 2
    assert stats["byStatus"]["done"] == 1
    assert stats["completionPercentage"] == 50
    assert len(stats["createdPerDay"]) == 7


def test_unexpected_failure_is_a_generic_500(client, monkeypatch) -> None:
    token = register(client, "Alice", "alice@example.com")

    async def broken_list(self, owner, **kwargs):
        raise RuntimeError("connection pool exhausted at db-7")

    monkeypatch.setattr(TaskStore, "list", broken_list)
    quiet = TestClient(app, raise_server_exceptions=False)

    response = quiet.get("/tasks", headers=bearer(token))

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
    assert "db-7" not in response.text
