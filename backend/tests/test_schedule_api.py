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
from app.db.models.schedule import Schedule
from app.main import app

DAY = "2026-03-02"


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


def _setup_profile(client: TestClient, user_id: UUID, **fields) -> None:
    resp = client.put("/profile", json={"user_id": str(user_id), **fields})
    assert resp.status_code == 200


def _create_task(client: TestClient, user_id: UUID, **fields) -> str:
    payload = {"user_id": str(user_id), "title": "Task", "category": "WORK", "duration_min": 60}
    payload.update(fields)
    resp = client.post("/tasks", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _optimize(client: TestClient, user_id: UUID):
    return client.post("/schedules/optimize", json={"user_id": str(user_id), "date": DAY})


def test_optimize_requires_profile(client):
    test_client, _ = client
    user_id = uuid4()
    _create_task(test_client, user_id)

    resp = _optimize(test_client, user_id)

    assert resp.status_code == 404


def test_optimize_places_work_block_with_break_and_lunch(client):
    test_client, session_factory = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    task_id = _create_task(test_client, user_id, title="Quarterly report", duration_min=240)

    resp = _optimize(test_client, user_id)

    assert resp.status_code == 200
    body = resp.json()
    assert body["mental_load"] == 5.0
    assert body["overload_warning"] is None
    assert body["unplaced_task_ids"] == []
    assert body["request_id"]
    schedule = body["schedule"]
    assert schedule["optimized"] is True
    assert schedule["mental_load_score"] == 5.0
    items = schedule["items"]
    assert [item["type"] for item in items] == ["TASK", "BREAK", "LUNCH"]
    assert items[0]["task_id"] == task_id
    assert items[0]["task"]["category"] == "WORK"
    assert items[0]["start_time"] == f"{DAY}T07:00:00"
    assert items[0]["end_time"] == f"{DAY}T11:00:00"
    assert items[1]["task_id"] is None

    with session_factory() as db:
        logs = db.query(ActivityLog).filter(ActivityLog.user_id == user_id).all()
        assert "schedule_optimized" in [log.action_type for log in logs]


def test_optimize_replaces_previous_items(client):
    test_client, _ = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    _create_task(test_client, user_id, duration_min=240)

    first = _optimize(test_client, user_id).json()
    second = _optimize(test_client, user_id).json()

    assert first["schedule"]["id"] == second["schedule"]["id"]
    assert len(second["schedule"]["items"]) == 3


def test_optimize_reports_overload(client):
    test_client, session_factory = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    _create_task(test_client, user_id, title="Launch", category="WORK", priority="URGENT", duration_min=240)
    _create_task(test_client, user_id, title="Exam prep", category="STUDY", priority="HIGH", duration_min=180)
    _create_task(test_client, user_id, title="Clean kitchen", category="HOUSEHOLD", priority="LOW", duration_min=60)

    resp = _optimize(test_client, user_id)

    assert resp.status_code == 200
    body = resp.json()
    assert body["mental_load"] == 10.0
    warning = body["overload_warning"]
    assert [s["type"] for s in warning] == ["postpone", "breaks", "reschedule"]
    assert warning[0]["tasks"] == ["Clean kitchen"]
    assert "tasks" not in warning[1] or warning[1]["tasks"] is None

    with session_factory() as db:
        schedule = db.query(Schedule).filter(Schedule.user_id == user_id).one()
        assert schedule.metadata_json["overload_warning"][0]["type"] == "postpone"


def test_optimize_lists_unplaced_tasks(client):
    test_client, session_factory = client
    user_id = uuid4()
    _setup_profile(test_client, user_id, wake_up_time="07:00", bed_time="09:00")
    task_id = _create_task(test_client, user_id, title="Marathon", category="SPORT", duration_min=180)

    body = _optimize(test_client, user_id).json()

    assert body["unplaced_task_ids"] == [task_id]
    assert [item["type"] for item in body["schedule"]["items"]] == ["LUNCH"]
    with session_factory() as db:
        schedule = db.query(Schedule).filter(Schedule.user_id == user_id).one()
        assert schedule.metadata_json["unplaced_task_ids"] == [task_id]


def test_optimize_skips_past_deadlines_and_completed_tasks(client):
    test_client, _ = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    _create_task(test_client, user_id, title="Overdue", deadline="2026-03-01T18:00:00")
    done_id = _create_task(test_client, user_id, title="Done")
    resp = test_client.patch(f"/tasks/{done_id}", json={"user_id": str(user_id), "completed": True})
    assert resp.status_code == 200
    due_id = _create_task(test_client, user_id, title="Due today", deadline=f"{DAY}T18:00:00")

    body = _optimize(test_client, user_id).json()

    task_ids = [item["task_id"] for item in body["schedule"]["items"] if item["type"] == "TASK"]
    assert task_ids == [due_id]


def test_get_schedule_creates_empty_day(client):
    test_client, _ = client
    user_id = uuid4()

    resp = test_client.get(f"/schedules/{DAY}", params={"user_id": str(user_id)})

    assert resp.status_code == 200
    schedule = resp.json()["schedule"]
    assert schedule["date"] == DAY
    assert schedule["items"] == []
    assert schedule["optimized"] is False
    assert schedule["mental_load_score"] == 0.0


def test_replace_schedule_rescores_and_clears_optimized_flag(client):
    test_client, session_factory = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    _create_task(test_client, user_id, duration_min=240)
    _optimize(test_client, user_id)

    resp = test_client.put(
        f"/schedules/{DAY}",
        json={
            "user_id": str(user_id),
            "items": [
                {"title": "Meeting", "type": "TASK", "start_time": f"{DAY}T09:00:00", "end_time": f"{DAY}T11:00:00"},
                {"title": "Lunch break", "type": "LUNCH", "start_time": f"{DAY}T12:00:00", "end_time": f"{DAY}T13:00:00"},
            ],
        },
    )

    assert resp.status_code == 200
    schedule = resp.json()["schedule"]
    assert schedule["optimized"] is False
    assert schedule["mental_load_score"] == 2.5
    assert [item["title"] for item in schedule["items"]] == ["Meeting", "Lunch break"]
    with session_factory() as db:
        logs = db.query(ActivityLog).filter(ActivityLog.user_id == user_id).all()
        assert "schedule_updated" in [log.action_type for log in logs]


def test_replace_schedule_rejects_break_with_task(client):
    test_client, _ = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id)

    resp = test_client.put(
        f"/schedules/{DAY}",
        json={
            "user_id": str(user_id),
            "items": [
                {
                    "title": "Break",
                    "type": "BREAK",
                    "start_time": f"{DAY}T09:00:00",
                    "end_time": f"{DAY}T09:15:00",
                    "task_id": task_id,
                }
            ],
        },
    )

    assert resp.status_code == 422


def test_replace_schedule_rejects_inverted_times(client):
    test_client, _ = client
    user_id = uuid4()

    resp = test_client.put(
        f"/schedules/{DAY}",
        json={
            "user_id": str(user_id),
            "items": [{"title": "Backwards", "start_time": f"{DAY}T10:00:00", "end_time": f"{DAY}T09:00:00"}],
        },
    )

    assert resp.status_code == 422


def test_replace_schedule_rejects_foreign_task(client):
    test_client, _ = client
    owner = uuid4()
    task_id = _create_task(test_client, owner)

    resp = test_client.put(
        f"/schedules/{DAY}",
        json={
            "user_id": str(uuid4()),
            "items": [
                {
                    "title": "Borrowed",
                    "start_time": f"{DAY}T09:00:00",
                    "end_time": f"{DAY}T10:00:00",
                    "task_id": task_id,
                }
            ],
        },
    )

    assert resp.status_code == 403


def test_item_add_update_delete_keep_score_current(client):
    test_client, _ = client
    user_id = uuid4()
    task_id = _create_task(test_client, user_id, title="Deep work", duration_min=120)

    add_resp = test_client.post(
        f"/schedules/{DAY}/items",
        json={
            "user_id": str(user_id),
            "title": "Deep work",
            "type": "TASK",
            "start_time": f"{DAY}T09:00:00",
            "end_time": f"{DAY}T11:00:00",
            "task_id": task_id,
        },
    )
    assert add_resp.status_code == 201
    added = add_resp.json()
    item_id = added["item"]["id"]
    assert added["item"]["task"]["title"] == "Deep work"
    # 2h * 1.5 * 1.0 / 12 * 10
    assert added["mental_load_score"] == 2.5

    update_resp = test_client.put(
        f"/schedules/{DAY}/items/{item_id}",
        json={"user_id": str(user_id), "end_time": f"{DAY}T13:00:00"},
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["item"]["end_time"] == f"{DAY}T13:00:00"
    assert update_resp.json()["mental_load_score"] == 5.0

    bad_update = test_client.put(
        f"/schedules/{DAY}/items/{item_id}",
        json={"user_id": str(user_id), "end_time": f"{DAY}T08:00:00"},
    )
    assert bad_update.status_code == 422

    delete_resp = test_client.delete(f"/schedules/{DAY}/items/{item_id}", params={"user_id": str(user_id)})
    assert delete_resp.status_code == 204

    schedule = test_client.get(f"/schedules/{DAY}", params={"user_id": str(user_id)}).json()["schedule"]
    assert schedule["items"] == []
    assert schedule["mental_load_score"] == 0.0


def test_items_of_other_users_are_not_found(client):
    test_client, _ = client
    owner = uuid4()
    add_resp = test_client.post(
        f"/schedules/{DAY}/items",
        json={
            "user_id": str(owner),
            "title": "Walk",
            "type": "BREAK",
            "start_time": f"{DAY}T15:00:00",
            "end_time": f"{DAY}T15:15:00",
        },
    )
    item_id = add_resp.json()["item"]["id"]
    intruder = str(uuid4())

    update_resp = test_client.put(
        f"/schedules/{DAY}/items/{item_id}",
        json={"user_id": intruder, "title": "Mine now"},
    )
    delete_resp = test_client.delete(f"/schedules/{DAY}/items/{item_id}", params={"user_id": intruder})

    assert update_resp.status_code == 404
    assert delete_resp.status_code == 404


def test_mental_load_without_schedule(client):
    test_client, _ = client

    resp = test_client.get(f"/schedules/{DAY}/mental-load", params={"user_id": str(uuid4())})

    assert resp.status_code == 200
    body = resp.json()
    assert body["score"] == 0.0
    assert body["level"] == "light"
    assert body["message"] == "No schedule for this date"
    assert body["suggestions"] == []
    assert body["distribution"] == {}


def test_mental_load_for_optimized_day(client):
    test_client, _ = client
    user_id = uuid4()
    _setup_profile(test_client, user_id)
    _create_task(test_client, user_id, duration_min=240)
    _optimize(test_client, user_id)

    resp = test_client.get(f"/schedules/{DAY}/mental-load", params={"user_id": str(user_id)})

    assert resp.status_code == 200
    body = resp.json()
    assert body["score"] == 5.0
    assert body["level"] == "balanced"
    assert body["suggestions"] == []
    assert body["distribution"]["WORK"] == {"minutes": 240.0, "percentage": 80}
    assert body["distribution"]["REST"] == {"minutes": 60.0, "percentage": 20}
