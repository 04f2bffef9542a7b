import json
import uuid
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import Column, DateTime, String, Text, Uuid

from app.database.base import Base
from app.models.task import utcnow


def parse_pending_tasks(raw_value: object) -> list[UUID]:
    if raw_value is None:
        return []

    if isinstance(raw_value, list):
        source = raw_value
    elif isinstance(raw_value, str):
        text = raw_value.strip()
        if not text:
            return []
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            return []
        if not isinstance(decoded, list):
            return []
        source = decoded
    else:
        return []

    result: list[UUID] = []
    seen: set[UUID] = set()
    for item in source:
        try:
            task_id = item if isinstance(item, UUID) else UUID(str(item or "").strip())
        except ValueError:
            continue
        if task_id in seen:
            continue
        seen.add(task_id)
        result.append(task_id)
    return result


def serialize_pending_tasks(task_ids: Optional[Iterable[UUID]]) -> str:
    return json.dumps([str(task_id) for task_id in parse_pending_tasks(list(task_ids or []))])


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    pending_tasks = Column("pendingTasks", Text, nullable=False, default="[]")
    date_created = Column("dateCreated", DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def pending_task_ids(self) -> list[UUID]:
        return parse_pending_tasks(self.pending_tasks)

    @pending_task_ids.setter
    def pending_task_ids(self, task_ids: Iterable[UUID]) -> None:
        self.pending_tasks = serialize_pending_tasks(task_ids)
