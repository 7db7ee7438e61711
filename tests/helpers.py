# tests/helpers.py

from __future__ import annotations

from fastapi.testclient import TestClient


def register(client: TestClient, name: str, email: str, password: str = "secret123") -> str:
    response = client.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
