import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import pytest

TEST_DB_FILE = Path(tempfile.gettempdir()) / f"test_task_assignment_{uuid4().hex}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_FILE.as_posix()}"
os.environ.setdefault("DB_BOOTSTRAP_MODE", "off")

from app.database.base import Base  # noqa: E402
from app.database.session import SessionLocal, engine  # noqa: E402
from app.models.task import Task  # noqa: E402
from app.models.user import User  # noqa: E402


@pytest.fixture(autouse=True)
def reset_database():
    engine.dispose()
    if TEST_DB_FILE.exists():
        TEST_DB_FILE.unlink()
    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        if TEST_DB_FILE.exists():
            TEST_DB_FILE.unlink()


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(db_session):
    def factory(name: str = "Ana", email: str = None) -> User:
        user = User(name=name, email=email or f"{name.lower()}.{uuid4().hex[:8]}@test.local")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture
def make_task(db_session):
    def factory(name: str = "Tarefa", completed: bool = False) -> Task:
        task = Task(
            name=name,
            deadline=datetime(2026, 12, 31, tzinfo=timezone.utc),
            completed=completed,
        )
        db_session.add(task)
        db_session.commit()
        db_session.refresh(task)
        return task

    return factory


@pytest.fixture
def assert_consistent(db_session):
    def check() -> None:
        _check_consistency(db_session)

    return check


def _check_consistency(db) -> None:
    """Both sides of the task/user relationship agree."""
    db.expire_all()
    tasks = {task.id: task for task in db.query(Task).all()}
    users = {user.id: user for user in db.query(User).all()}

    for task in tasks.values():
        if task.assigned_user is None:
            assert task.assigned_user_name == "unassigned"
            continue
        assert task.assigned_user in users
        owner = users[task.assigned_user]
        if not task.completed:
            assert task.id in owner.pending_task_ids
        else:
            assert task.id not in owner.pending_task_ids

    for user in users.values():
        for task_id in user.pending_task_ids:
            task = tasks[task_id]
            assert task.assigned_user == user.id
            assert task.completed is False
