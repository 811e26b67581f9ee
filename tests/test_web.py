from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from nextaction.web import create_app

NOW = "2025-01-10T12:00:00Z"


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.delenv("NEXTACTION_STATE_DIR", raising=False)
    return TestClient(create_app(tmp_path / ".nextaction"))


def test_status_on_empty_state(client: TestClient) -> None:
    resp = client.get("/api/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["tasks"] == 0
    assert body["inbox"] == 0
    assert body["version"] == "0.1.0"


def test_create_task_and_read_back(client: TestClient) -> None:
    resp = client.post(
        "/api/tasks", json={"title": "Buy milk", "due_date": "2025-01-11T09:00:00Z"}
    )
    assert resp.status_code == 200
    task = resp.json()
    assert task["due_date_iso"] == "2025-01-11T09:00:00Z"

    assert client.get(f"/api/tasks/{task['id']}").json()["title"] == "Buy milk"
    assert client.get("/api/tasks/task-missing").json() == {"error": "not found"}
    assert [row["id"] for row in client.get("/api/inbox").json()] == [task["id"]]


def test_views_and_evaluation_follow_inherited_dates(client: TestClient) -> None:
    project = client.post(
        "/api/projects",
        json={"title": "Launch", "type": "sequential", "due_date": "2025-01-11T00:00:00Z"},
    ).json()
    first = client.post(
        "/api/tasks", json={"title": "Draft", "project_id": project["id"], "order": 0}
    ).json()
    second = client.post(
        "/api/tasks", json={"title": "Review", "project_id": project["id"], "order": 1}
    ).json()

    rows = client.get("/api/views/next", params={"now": NOW}).json()
    assert [row["id"] for row in rows] == [first["id"]]

    ev = client.get(f"/api/tasks/{second['id']}/evaluation", params={"now": NOW}).json()
    assert ev["is_available"] is False
    assert ev["blocking_reasons"] == ["sequential"]
    assert ev["effective_due_date_iso"] == "2025-01-11T00:00:00Z"
    assert ev["parents"] == []

    client.post(f"/api/tasks/{first['id']}/complete")
    rows = client.get("/api/views/next", params={"now": NOW}).json()
    assert [row["id"] for row in rows] == [second["id"]]

    detail = client.get(f"/api/projects/{project['id']}").json()
    assert {row["id"] for row in detail["tasks"]} == {first["id"], second["id"]}


def test_project_on_hold_blocks_its_tasks(client: TestClient) -> None:
    project = client.post("/api/projects", json={"title": "Garden"}).json()
    task = client.post(
        "/api/tasks", json={"title": "Plant bulbs", "project_id": project["id"]}
    ).json()

    resp = client.post(f"/api/projects/{project['id']}/status", json={"status": "on_hold"})
    assert resp.json()["status"] == "on_hold"

    ev = client.get(f"/api/tasks/{task['id']}/evaluation", params={"now": NOW}).json()
    assert ev["blocking_reasons"] == ["project_on_hold"]

    resp = client.post(f"/api/projects/{project['id']}/status", json={"status": "paused"})
    assert resp.status_code == 400
    assert "invalid project status" in resp.json()["error"]


def test_inbox_tentative_and_clean_up(client: TestClient) -> None:
    parent = client.post("/api/tasks", json={"title": "Parent"}).json()
    item = client.post("/api/tasks", json={"title": "Item"}).json()

    resp = client.post(
        f"/api/inbox/{item['id']}/tentative", json={"parent_task_id": parent["id"]}
    )
    assert resp.json()["tentative_parent_task_id"] == parent["id"]

    result = client.post("/api/inbox/clean-up").json()
    assert result["processed"] == 1
    assert result["updated"][0]["parent_task_id"] == parent["id"]

    assert client.get("/api/inbox/stats").json()["total"] == 1


def test_bad_input_returns_400(client: TestClient) -> None:
    item = client.post("/api/tasks", json={"title": "Item"}).json()

    resp = client.post(f"/api/inbox/{item['id']}/process", json={})
    assert resp.status_code == 400

    resp = client.get("/api/views/someday")
    assert resp.status_code == 400
    assert "unknown view" in resp.json()["error"]

    resp = client.patch(f"/api/tasks/{item['id']}", json={"parent_task_id": item["id"]})
    assert resp.status_code == 400
    assert "cycle" in resp.json()["error"]


def test_validate_endpoint(client: TestClient) -> None:
    client.post("/api/tasks", json={"title": "Item"})
    report = client.get("/api/validate").json()
    assert report["errors"] == []
    assert report["checks"]["task_acyclic"] is True
