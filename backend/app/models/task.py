import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid

from app.core.config import UNASSIGNED_NAME
from app.database.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    deadline = Column(DateTime(timezone=True), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    assigned_user = Column("assignedUser", Uuid, ForeignKey("users.id"), nullable=True, index=True)
    assigned_user_name = Column("assignedUserName", String, nullable=False, default=UNASSIGNED_NAME)
    date_created = Column("dateCreated", DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def assignee_name(self) -> Optional[str]:
        if self.assigned_user is None:
            return None
        return self.assigned_user_name

    # Only app.services.relationships should call these two.
    def set_assignee(self, user) -> None:
        self.assigned_user = user.id
        self.assigned_user_name = user.name

    def clear_assignee(self) -> None:
        self.assigned_user = None
        self.assigned_user_name = UNASSIGNED_NAME
