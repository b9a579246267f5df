import asyncio
import logging

from fastapi.testclient import TestClient

from src.server.app import create_app
from src.server.dependencies import get_day_expansion, get_session


def create_test_client(tmp_path, monkeypatch) -> TestClient:
    db_path = tmp_path / "api_todos.db"
    monkeypatch.setenv("TODOLIST_DB_PATH", str(db_path))
    get_session.cache_clear()
    get_day_expansion.cache_clear()
    app = create_app()
    return TestClient(app)


def signup(client: TestClient, email: str = "sam@example.com") -> dict:
    resp = client.post("/api/auth/signup", json={"email": email, "password": "secret"})
    assert resp.status_code == 200
    return resp.json()


def test_requires_sign_in(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)

    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/todos").status_code == 401
    assert client.get("/api/auth/me").status_code == 401


def test_signup_and_login_errors(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)

    resp = client.post("/api/auth/signup", json={"email": "sam@example.com", "password": "x"})
    assert resp.status_code == 400
    assert "already exists" in resp.json()["detail"]

    resp = client.post("/api/auth/login", json={"email": "sam@example.com", "password": "wrong"})
    assert resp.status_code == 401


def test_todo_api_crud_flow(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    user = signup(client)
    assert user["todo_count"] == 0

    resp = client.get("/api/todos")
    assert resp.status_code == 200
    assert resp.json() == []

    resp = client.post("/api/todos", json={"title": "Pay rent", "date": "2024-03-01"})
    assert resp.status_code == 200
    todo = resp.json()
    assert todo["title"] == "Pay rent"
    assert todo["isCompleted"] is False
    assert todo["date"] == "2024-03-01"
    todo_id = todo["id"]

    resp = client.patch(f"/api/todos/{todo_id}", json={"isCompleted": True})
    assert resp.status_code == 200
    assert resp.json()["isCompleted"] is True

    assert client.get(f"/api/todos/{todo_id}").json()["isCompleted"] is True
    assert client.patch("/api/todos/999", json={"isCompleted": True}).status_code == 404

    resp = client.delete(f"/api/todos/{todo_id}")
    assert resp.status_code == 200
    assert resp.json() == {"deleted": True}
    assert client.delete(f"/api/todos/{todo_id}").status_code == 404

    assert client.get("/api/todos").json() == []


def test_blank_title_rejected(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)
    assert client.post("/api/todos", json={"title": "   "}).status_code == 422
    assert client.post("/api/todos", json={"title": "x", "timeSlotId": 5}).status_code == 404


def test_views_and_time_slots(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)

    resp = client.post(
        "/api/timeslots",
        json={"startTime": "12:00", "endTime": "13:00", "displayName": "Lunch Break"},
    )
    assert resp.status_code == 200
    slot = resp.json()
    assert slot["id"] == 0

    client.post("/api/todos", json={"title": "Buy milk"})
    client.post("/api/todos", json={"title": "Pay rent", "date": "2024-03-01"})
    client.post(
        "/api/todos",
        json={"title": "Lunch with Sam", "date": "2024-05-10", "timeSlotId": slot["id"]},
    )

    simple = client.get("/api/todos", params={"view": "simple"}).json()
    assert [t["title"] for t in simple] == ["Buy milk"]

    calendar = client.get("/api/views/calendar").json()
    assert [group["date"] for group in calendar] == ["2024-03-01", "2024-05-10"]

    flat = client.get("/api/views/simple").json()
    assert sum(len(group["todos"]) for group in flat) == 3

    timetable = client.get("/api/views/timetable", params={"today": "2024-05-10"}).json()
    assert len(timetable) == 1
    day = timetable[0]
    assert day["is_today"] is True
    assert day["expanded"] is True
    assert day["slots"][0]["timeSlot"]["displayName"] == "Lunch Break"
    assert [t["title"] for t in day["slots"][0]["todos"]] == ["Lunch with Sam"]

    toggled = client.post("/api/views/timetable/2024-05-12/toggle", params={"today": "2024-05-10"})
    assert toggled.json() == {"date": "2024-05-12", "expanded": True}

    assert client.delete(f"/api/timeslots/{slot['id']}").json() == {"deleted": True}
    assert client.get("/api/timeslots").json() == []
    # the todo keeps its copy of the removed slot
    lunch = client.get("/api/todos", params={"view": "time"}).json()[0]
    assert lunch["timeSlot"]["displayName"] == "Lunch Break"


def test_reminders_and_logout(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)
    client.post("/api/todos", json={"title": "Dentist", "date": "2024-05-10"})

    resp = client.get("/api/reminders/pending", params={"now_ms": 0})
    assert resp.json() == {"reminders": []}

    resp = client.get("/api/reminders/pending")
    reminders = resp.json()["reminders"]
    assert [r["title"] for r in reminders] == ["Dentist"]

    assert client.post("/api/auth/logout").json() == {"logged_out": True}
    assert client.get("/api/todos").status_code == 401


def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_time_slot_writes_run_off_the_event_loop(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)
    session = get_session()
    seen = []
    add_time_slot = session.add_time_slot
    remove_time_slot = session.remove_time_slot

    def recording_add(*args):
        seen.append(_on_event_loop())
        return add_time_slot(*args)

    def recording_remove(*args):
        seen.append(_on_event_loop())
        return remove_time_slot(*args)

    monkeypatch.setattr(session, "add_time_slot", recording_add)
    monkeypatch.setattr(session, "remove_time_slot", recording_remove)

    slot = client.post(
        "/api/timeslots",
        json={"startTime": "09:00", "endTime": "10:00", "displayName": "Morning"},
    ).json()
    assert client.delete(f"/api/timeslots/{slot['id']}").status_code == 200
    assert seen == [False, False]


def test_edits_wait_for_loaded_todos(tmp_path, monkeypatch):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)
    monkeypatch.setattr(get_session(), "_loaded", False)

    assert client.post("/api/todos", json={"title": "too early"}).status_code == 503
    assert client.get("/api/todos").status_code == 200


def test_rejected_login_is_logged(tmp_path, monkeypatch, caplog):
    client = create_test_client(tmp_path, monkeypatch)
    signup(client)

    with caplog.at_level(logging.WARNING, logger="src.server.routes.auth"):
        resp = client.post("/api/auth/login", json={"email": "sam@example.com", "password": "bad"})

    assert resp.status_code == 401
    assert any("Login rejected" in record.getMessage() for record in caplog.records)
