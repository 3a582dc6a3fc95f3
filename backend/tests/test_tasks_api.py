from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.deps import get_db
from app.db.models.activity_log import ActivityLog
from app.db.models.schedule import Schedule, ScheduleItem
from app.db.models.task import Task
from app.main import app


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _create_task(client: TestClient, user_id: UUID, **fields) -> dict:
    payload = {"user_id": str(user_id), "title": "Task", "category": "WORK", "duration_min": 60}
    payload.update(fields)
    resp = client.post("/tasks", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _task_logs(db, user_id: UUID):
    logs = db.query(ActivityLog).filter(ActivityLog.user_id == user_id).all()
    return [log for log in logs if log.action_type.startswith("task_")]


def test_create_task_defaults_priority(client):
    test_client, session_factory = client
    user_id = uuid4()

    body = _create_task(test_client, user_id, title="Read chapter", category="STUDY", preferred_time="evening")

    assert body["priority"] == "MEDIUM"
    assert body["category"] == "STUDY"
    assert body["preferred_time"] == "evening"
    assert body["completed"] is False
    with session_factory() as db:
        logs = _task_logs(db, user_id)
        assert [log.action_type for log in logs] == ["task_created"]


@pytest.mark.parametrize(
    "fields",
    [
        {"category": "GARDENING"},
        {"priority": "SOMEDAY"},
        {"duration_min": 0},
        {"duration_min": -15},
        {"preferred_time": "night"},
        {"title": ""},
    ],
)
def test_create_task_rejects_invalid_input(client, fields):
    test_client, _ = client
    payload = {"user_id": str(uuid4()), "title": "Task", "category": "WORK", "duration_min": 60}
    payload.update(fields)

    resp = test_client.post("/tasks", json=payload)

    assert resp.status_code == 422


def test_list_tasks_orders_by_priority_then_deadline(client):
    test_client, _ = client
    user_id = uuid4()
    _create_task(test_client, user_id, title="low", priority="LOW")
    _create_task(test_client, user_id, title="high-undated", priority="HIGH")
    _create_task(test_client, user_id, title="high-dated", priority="HIGH", deadline="2026-03-04T09:00:00")
    _create_task(test_client, user_id, title="urgent", priority="URGENT")
    _create_task(test_client, uuid4(), title="someone else")

    resp = test_client.get("/tasks", params={"user_id": str(user_id)})

    assert resp.status_code == 200
    assert [task["title"] for task in resp.json()] == ["urgent", "high-dated", "high-undated", "low"]


def test_update_task_completion_creates_logs(client):
    test_client, session_factory = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id)["id"]

    complete_resp = test_client.patch(
        f"/tasks/{task_id}",
        json={"user_id": str(user_id), "completed": True},
    )
    assert complete_resp.status_code == 200
    body = complete_resp.json()
    assert body["completed"] is True
    assert body["completed_at"]

    with session_factory() as db:
        task = db.get(Task, UUID(task_id))
        assert task.completed is True
        assert task.completed_at is not None
        assert sorted(log.action_type for log in _task_logs(db, user_id)) == ["task_completed", "task_created"]

    # Idempotent toggle
    repeat_resp = test_client.patch(
        f"/tasks/{task_id}",
        json={"user_id": str(user_id), "completed": True},
    )
    assert repeat_resp.status_code == 200
    with session_factory() as db:
        assert len(_task_logs(db, user_id)) == 2

    active = test_client.get("/tasks", params={"user_id": str(user_id)}).json()
    completed = test_client.get("/tasks", params={"user_id": str(user_id), "status": "completed"}).json()
    assert active == []
    assert [task["id"] for task in completed] == [task_id]

    uncomplete_resp = test_client.patch(
        f"/tasks/{task_id}",
        json={"user_id": str(user_id), "completed": False},
    )
    assert uncomplete_resp.status_code == 200
    assert uncomplete_resp.json()["completed"] is False
    assert uncomplete_resp.json()["completed_at"] is None
    with session_factory() as db:
        task = db.get(Task, UUID(task_id))
        assert task.completed is False
        assert task.completed_at is None
        action_types = [log.action_type for log in _task_logs(db, user_id)]
        assert len(action_types) == 3
        assert action_types.count("task_uncompleted") == 1


def test_update_task_enforces_ownership(client):
    test_client, _ = client
    task_id = _create_task(test_client, uuid4())["id"]

    resp = test_client.patch(
        f"/tasks/{task_id}",
        json={"user_id": str(uuid4()), "completed": True},
    )
    assert resp.status_code == 403


def test_update_unknown_task_returns_404(client):
    test_client, _ = client

    resp = test_client.patch(
        f"/tasks/{uuid4()}",
        json={"user_id": str(uuid4()), "completed": True},
    )
    assert resp.status_code == 404


DAY = "2026-03-02"


def _schedule_task(client: TestClient, user_id: UUID, task_id: str, title: str = "Deep work") -> str:
    resp = client.post(
        f"/schedules/{DAY}/items",
        json={
            "user_id": str(user_id),
            "title": title,
            "type": "TASK",
            "start_time": f"{DAY}T09:00:00",
            "end_time": f"{DAY}T11:00:00",
            "task_id": task_id,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["item"]["id"]


def test_get_task_by_id(client):
    test_client, _ = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, title="Pay rent", category="PERSONAL")["id"]

    resp = test_client.get(f"/tasks/{task_id}", params={"user_id": str(user_id)})
    other = test_client.get(f"/tasks/{task_id}", params={"user_id": str(uuid4())})
    missing = test_client.get(f"/tasks/{uuid4()}", params={"user_id": str(user_id)})

    assert resp.status_code == 200
    assert resp.json()["title"] == "Pay rent"
    assert other.status_code == 403
    assert missing.status_code == 404


def test_edit_task_revalidates_and_logs(client):
    test_client, session_factory = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, deadline="2026-03-04T09:00:00", preferred_time="morning")["id"]

    resp = test_client.put(
        f"/tasks/{task_id}",
        json={"user_id": str(user_id), "duration_min": 90, "priority": "HIGH", "deadline": None},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["duration_min"] == 90
    assert body["priority"] == "HIGH"
    assert body["deadline"] is None
    assert body["category"] == "WORK"
    assert body["preferred_time"] == "morning"
    with session_factory() as db:
        logs = [log for log in _task_logs(db, user_id) if log.action_type == "task_updated"]
        assert len(logs) == 1
        assert sorted(logs[0].action_payload["fields"]) == ["deadline", "duration_min", "priority"]


def test_edit_task_rejects_bad_values_and_foreign_users(client):
    test_client, session_factory = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, duration_min=45)["id"]

    bad_duration = test_client.put(f"/tasks/{task_id}", json={"user_id": str(user_id), "duration_min": 0})
    bad_category = test_client.put(f"/tasks/{task_id}", json={"user_id": str(user_id), "category": "GARDENING"})
    foreign = test_client.put(f"/tasks/{task_id}", json={"user_id": str(uuid4()), "title": "Mine"})
    missing = test_client.put(f"/tasks/{uuid4()}", json={"user_id": str(user_id), "title": "Ghost"})

    assert bad_duration.status_code == 422
    assert bad_category.status_code == 422
    assert foreign.status_code == 403
    assert missing.status_code == 404
    with session_factory() as db:
        assert db.get(Task, UUID(task_id)).duration_min == 45


def test_edit_task_rescores_days_that_place_it(client):
    test_client, session_factory = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, title="Deep work", duration_min=120)["id"]
    _schedule_task(test_client, user_id, task_id)

    resp = test_client.put(f"/tasks/{task_id}", json={"user_id": str(user_id), "category": "REST"})

    assert resp.status_code == 200
    with session_factory() as db:
        schedule = db.query(Schedule).filter(Schedule.user_id == user_id).one()
        # 2h * 0.2 / 12 * 10
        assert schedule.mental_load_score == 0.3


def test_delete_task_keeps_schedule_block_without_link(client):
    test_client, session_factory = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, title="Deep work", priority="HIGH", duration_min=120)["id"]
    item_id = _schedule_task(test_client, user_id, task_id)

    foreign = test_client.delete(f"/tasks/{task_id}", params={"user_id": str(uuid4())})
    assert foreign.status_code == 403

    resp = test_client.delete(f"/tasks/{task_id}", params={"user_id": str(user_id)})

    assert resp.status_code == 204
    assert test_client.get(f"/tasks/{task_id}", params={"user_id": str(user_id)}).status_code == 404
    with session_factory() as db:
        item = db.get(ScheduleItem, UUID(item_id))
        assert item is not None
        assert item.task_id is None
        assert item.title == "Deep work"
        # 2h * 1.5 * 1.2 scored 3.0; without the task the title falls back to WORK at 1.0.
        assert item.schedule.mental_load_score == 2.5
        assert "task_deleted" in [log.action_type for log in _task_logs(db, user_id)]

    schedule = test_client.get(f"/schedules/{DAY}", params={"user_id": str(user_id)}).json()["schedule"]
    assert schedule["items"][0]["task_id"] is None
    assert schedule["items"][0]["task"] is None


def test_bulk_complete_only_touches_owned_open_tasks(client):
    test_client, _ = client
    user_id = uuid4()
    first = _create_task(test_client, user_id, title="first")["id"]
    second = _create_task(test_client, user_id, title="second")["id"]
    foreign = _create_task(test_client, uuid4(), title="foreign")["id"]
    test_client.patch(f"/tasks/{second}", json={"user_id": str(user_id), "completed": True})

    resp = test_client.post(
        "/tasks/bulk-complete",
        json={"user_id": str(user_id), "task_ids": [first, second, foreign, str(uuid4())]},
    )

    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert test_client.get("/tasks", params={"user_id": str(user_id)}).json() == []


def test_bulk_delete_removes_owned_tasks(client):
    test_client, session_factory = client
    user_id = uuid4()
    first = _create_task(test_client, user_id, title="first")["id"]
    second = _create_task(test_client, user_id, title="second")["id"]
    keep = _create_task(test_client, user_id, title="keep")["id"]
    foreign = _create_task(test_client, uuid4(), title="foreign")["id"]
    item_id = _schedule_task(test_client, user_id, first, title="first")

    resp = test_client.post(
        "/tasks/bulk-delete",
        json={"user_id": str(user_id), "task_ids": [first, second, foreign]},
    )

    assert resp.status_code == 200
    assert resp.json()["count"] == 2
    remaining = test_client.get("/tasks", params={"user_id": str(user_id), "status": "all"}).json()
    assert [task["id"] for task in remaining] == [keep]
    with session_factory() as db:
        assert db.get(Task, UUID(foreign)) is not None
        assert db.get(ScheduleItem, UUID(item_id)).task_id is None


def test_bulk_requests_need_task_ids(client):
    test_client, _ = client

    resp = test_client.post("/tasks/bulk-complete", json={"user_id": str(uuid4()), "task_ids": []})

    assert resp.status_code == 422
