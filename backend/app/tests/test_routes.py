from uuid import uuid4

import pytest

from app.core.errors import ApiError, DuplicateEmail, InvalidReference, NotFound, ReferenceNotFound
from app.models.task import Task
from app.routes.tasks import create_task, delete_task, read_task, read_tasks, update_task
from app.routes.users import create_user, delete_user, get_user, list_users, update_user
from app.schemas.task import TaskPayload
from app.schemas.user import UserPayload


def new_user(db, name="Ana", email=None, pending=None):
    body = {"name": name, "email": email or f"{name.lower()}.{uuid4().hex[:6]}@Test.local"}
    if pending is not None:
        body["pendingTasks"] = pending
    return create_user(payload=UserPayload(**body), db=db)["data"]


def new_task(db, name="Tarefa", assigned_user=None, completed=False):
    payload = TaskPayload(
        name=name,
        deadline="2026-12-31T00:00:00Z",
        completed=completed,
        assignedUser=assigned_user,
    )
    return create_task(payload=payload, db=db)["data"]


def test_create_task_with_assignee(db_session, assert_consistent):
    user = new_user(db_session, "Ana")

    task = new_task(db_session, "Comprar leite", assigned_user=user["_id"])

    assert task["assignedUser"] == user["_id"]
    assert task["assignedUserName"] == "Ana"
    assert task["completed"] is False
    refreshed = get_user(user_id=user["_id"], select=None, db=db_session)["data"]
    assert refreshed["pendingTasks"] == [task["_id"]]
    assert_consistent()


def test_create_task_without_assignee(db_session):
    task = new_task(db_session)

    assert task["assignedUser"] is None
    assert task["assignedUserName"] == "unassigned"
    assert set(task) == {
        "_id", "name", "description", "deadline", "completed",
        "assignedUser", "assignedUserName", "dateCreated",
    }


def test_create_task_with_unknown_assignee_is_not_persisted(db_session):
    with pytest.raises(ReferenceNotFound):
        new_task(db_session, assigned_user=str(uuid4()))

    assert db_session.query(Task).count() == 0


def test_create_task_with_malformed_assignee(db_session):
    with pytest.raises(InvalidReference):
        new_task(db_session, assigned_user="bad-id")

    assert db_session.query(Task).count() == 0


def test_update_task_reassigns_and_completes(db_session, assert_consistent):
    user_a = new_user(db_session, "Ana")
    user_b = new_user(db_session, "Bruno")
    task = new_task(db_session, assigned_user=user_a["_id"])

    payload = TaskPayload(name="Revisar", deadline=1767225600, completed="true", assignedUser=user_b["_id"])
    updated = update_task(task_id=task["_id"], payload=payload, db=db_session)["data"]

    assert updated["name"] == "Revisar"
    assert updated["completed"] is True
    assert updated["assignedUser"] == user_b["_id"]
    assert get_user(user_id=user_a["_id"], select=None, db=db_session)["data"]["pendingTasks"] == []
    assert get_user(user_id=user_b["_id"], select=None, db=db_session)["data"]["pendingTasks"] == []
    assert_consistent()


def test_update_task_failure_rolls_back_field_changes(db_session):
    user = new_user(db_session, "Ana")
    task = new_task(db_session, "Original", assigned_user=user["_id"])

    payload = TaskPayload(name="Changed", deadline=1767225600, assignedUser=str(uuid4()))
    with pytest.raises(ReferenceNotFound):
        update_task(task_id=task["_id"], payload=payload, db=db_session)

    stored = read_task(task_id=task["_id"], select=None, db=db_session)["data"]
    assert stored["name"] == "Original"
    assert stored["assignedUser"] == user["_id"]


@pytest.mark.parametrize("task_id", ["bad-id", None])
def test_missing_task_is_404(db_session, task_id):
    with pytest.raises(NotFound, match="Task not found"):
        read_task(task_id=task_id or str(uuid4()), select=None, db=db_session)


def test_delete_task_removes_from_pending(db_session, assert_consistent):
    user = new_user(db_session)
    task = new_task(db_session, assigned_user=user["_id"])

    response = delete_task(task_id=task["_id"], db=db_session)

    assert response["message"] == "Task deleted"
    assert response["data"]["_id"] == task["_id"]
    assert get_user(user_id=user["_id"], select=None, db=db_session)["data"]["pendingTasks"] == []
    assert_consistent()


def test_list_tasks_with_query_options(db_session):
    user = new_user(db_session)
    for index in range(3):
        new_task(db_session, f"t{index}", assigned_user=user["_id"] if index else None)

    counted = read_tasks(
        where=f'{{"assignedUser": "{user["_id"]}"}}',
        sort=None, select=None, skip=None, limit=None, count="true", db=db_session,
    )
    assert counted["data"] == {"count": 2}

    listed = read_tasks(
        where=None, sort='{"name": -1}', select='{"name": 1}', skip="1", limit="1", count=None, db=db_session,
    )
    assert listed["message"] == "Tasks retrieved"
    assert [set(item) for item in listed["data"]] == [{"_id", "name"}]
    assert listed["data"][0]["name"] == "t1"


def test_create_user_normalizes_email_and_syncs_pending(db_session, assert_consistent):
    task = new_task(db_session)

    user = new_user(db_session, "Ana", email=" ANA@Example.com ", pending=[task["_id"], task["_id"]])

    assert user["email"] == "ana@example.com"
    assert user["pendingTasks"] == [task["_id"]]
    stored = read_task(task_id=task["_id"], select=None, db=db_session)["data"]
    assert stored["assignedUser"] == user["_id"]
    assert stored["assignedUserName"] == "Ana"
    assert_consistent()


def test_create_user_with_unknown_pending_task_is_not_persisted(db_session):
    with pytest.raises(ReferenceNotFound):
        new_user(db_session, "Ana", pending=[str(uuid4())])

    listed = list_users(where=None, sort=None, select=None, skip=None, limit=None, count="true", db=db_session)
    assert listed["data"] == {"count": 0}


def test_duplicate_email_rejected(db_session):
    new_user(db_session, "Ana", email="ana@example.com")

    with pytest.raises(DuplicateEmail) as exc_info:
        new_user(db_session, "Outra Ana", email="Ana@Example.com")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "A user with that email already exists"


def test_update_user_keeps_own_email_and_renames_tasks(db_session):
    user = new_user(db_session, "Ana", email="ana@example.com")
    task = new_task(db_session, assigned_user=user["_id"])

    updated = update_user(
        user_id=user["_id"],
        payload=UserPayload(name="Ana Paula", email="ana@example.com"),
        db=db_session,
    )["data"]

    assert updated["name"] == "Ana Paula"
    assert updated["pendingTasks"] == [task["_id"]]
    stored = read_task(task_id=task["_id"], select=None, db=db_session)["data"]
    assert stored["assignedUserName"] == "Ana Paula"


def test_update_user_email_collision(db_session):
    new_user(db_session, "Ana", email="ana@example.com")
    other = new_user(db_session, "Bruno", email="bruno@example.com")

    with pytest.raises(DuplicateEmail):
        update_user(
            user_id=other["_id"],
            payload=UserPayload(name="Bruno", email="ana@example.com"),
            db=db_session,
        )


def test_update_user_replaces_pending_tasks(db_session, assert_consistent):
    t1, t2 = new_task(db_session, "t1"), new_task(db_session, "t2")
    user = new_user(db_session, "Ana", pending=[t1["_id"]])

    updated = update_user(
        user_id=user["_id"],
        payload=UserPayload(name="Ana", email=user["email"], pendingTasks=[t2["_id"]]),
        db=db_session,
    )["data"]

    assert updated["pendingTasks"] == [t2["_id"]]
    assert read_task(task_id=t1["_id"], select=None, db=db_session)["data"]["assignedUser"] is None
    assert_consistent()


def test_delete_user_unassigns_tasks(db_session, assert_consistent):
    user = new_user(db_session, "Ana")
    t1 = new_task(db_session, "t1", assigned_user=user["_id"])
    t2 = new_task(db_session, "t2", assigned_user=user["_id"])

    response = delete_user(user_id=user["_id"], db=db_session)

    assert response["message"] == "User deleted"
    for task in (t1, t2):
        stored = read_task(task_id=task["_id"], select=None, db=db_session)["data"]
        assert stored["assignedUser"] is None
        assert stored["assignedUserName"] == "unassigned"
    with pytest.raises(NotFound, match="User not found"):
        get_user(user_id=user["_id"], select=None, db=db_session)
    assert_consistent()


def test_list_tasks_limit_zero_returns_everything(db_session):
    for index in range(3):
        new_task(db_session, f"t{index}")

    listed = read_tasks(where=None, sort=None, select=None, skip=None, limit="0", count=None, db=db_session)

    assert len(listed["data"]) == 3


def test_email_unique_index_surfaces_duplicate_email(db_session, monkeypatch):
    monkeypatch.setattr("app.routes.users.ensure_email_unique", lambda *args, **kwargs: None)
    new_user(db_session, "Ana", email="ana@example.com")

    with pytest.raises(DuplicateEmail) as exc_info:
        new_user(db_session, "Outra Ana", email="ana@example.com")

    assert exc_info.value.status_code == 400
    listed = list_users(where=None, sort=None, select=None, skip=None, limit=None, count=None, db=db_session)
    assert [user["email"] for user in listed["data"]] == ["ana@example.com"]
    assert new_user(db_session, "Bruno", email="bruno@example.com")["email"] == "bruno@example.com"


def test_unexpected_read_failure_uses_route_message(db_session, monkeypatch):
    task = new_task(db_session)
    user = new_user(db_session)

    def broken(record):
        raise RuntimeError("boom")

    monkeypatch.setattr("app.routes.tasks.build_task_out", broken)
    monkeypatch.setattr("app.routes.users._build_user_out", broken)

    with pytest.raises(ApiError, match="Failed to fetch tasks") as exc_info:
        read_tasks(where=None, sort=None, select=None, skip=None, limit=None, count=None, db=db_session)
    assert exc_info.value.status_code == 500
    with pytest.raises(ApiError, match="Failed to fetch task"):
        read_task(task_id=task["_id"], select=None, db=db_session)
    with pytest.raises(ApiError, match="Failed to fetch users"):
        list_users(where=None, sort=None, select=None, skip=None, limit=None, count=None, db=db_session)
    with pytest.raises(ApiError, match="Failed to fetch user"):
        get_user(user_id=user["_id"], select=None, db=db_session)
