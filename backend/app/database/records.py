"""Per-collection record primitives used by the relationship engine.

Each helper issues a single statement against one table and flushes, so the
engine's later reads in the same session observe it. Nothing here commits:
the request handler owns the transaction.
"""
from typing import Any, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.user import User

RecordT = TypeVar("RecordT")


def find_by_id(db: Session, model: type[RecordT], record_id: Optional[UUID]) -> Optional[RecordT]:
    if record_id is None:
        return None
    return db.query(model).filter(model.id == record_id).first()


def find_many(db: Session, model: type[RecordT], record_ids: Sequence[UUID]) -> list[RecordT]:
    if not record_ids:
        return []
    return db.query(model).filter(model.id.in_(list(record_ids))).all()


def insert(db: Session, record: RecordT) -> RecordT:
    db.add(record)
    db.flush()
    return record


def save(db: Session, record: RecordT) -> RecordT:
    if record not in db:
        db.add(record)
    db.flush()
    return record


def update_many(db: Session, model: type, criteria: Iterable[Any], values: dict) -> int:
    count = (
        db.query(model)
        .filter(*criteria)
        .update(values, synchronize_session="fetch")
    )
    db.flush()
    return count


def delete(db: Session, record: Any) -> None:
    db.delete(record)
    db.flush()


def find_user_by_email(db: Session, email: str, exclude_id: Optional[UUID] = None) -> Optional[User]:
    query = db.query(User).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first()


def add_pending_task(db: Session, user_id: UUID, task_id: UUID) -> Optional[User]:
    user = find_by_id(db, User, user_id)
    if not user:
        return None
    pending = user.pending_task_ids
    if task_id not in pending:
        pending.append(task_id)
        user.pending_task_ids = pending
        db.flush()
    return user


def pull_pending_task(db: Session, user_id: UUID, task_id: UUID) -> Optional[User]:
    user = find_by_id(db, User, user_id)
    if not user:
        return None
    pending = user.pending_task_ids
    if task_id in pending:
        user.pending_task_ids = [item for item in pending if item != task_id]
        db.flush()
    return user
