from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.config import UNASSIGNED_NAME
from app.core.parsing import coerce_datetime, parse_boolean


class TaskPayload(BaseModel):
    name: str = Field(default="", validate_default=True)
    description: str = ""
    deadline: datetime = Field(default=None, validate_default=True)
    completed: bool = False
    assigned_user: Any = Field(default=None, alias="assignedUser")

    class Config:
        populate_by_name = True

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, value):
        name = value.strip() if isinstance(value, str) else ""
        if not name:
            raise ValueError("Task name is required")
        return name

    @field_validator("description", mode="before")
    @classmethod
    def clean_description(cls, value):
        return value.strip() if isinstance(value, str) else ""

    @field_validator("deadline", mode="before")
    @classmethod
    def coerce_deadline(cls, value):
        deadline = coerce_datetime(value)
        if deadline is None:
            raise ValueError("Task deadline is required")
        return deadline

    @field_validator("completed", mode="before")
    @classmethod
    def coerce_completed(cls, value):
        # Only runs for a supplied value; an absent field keeps the default.
        completed = parse_boolean(value, "completed")
        if completed is None:
            raise ValueError("Invalid boolean value for completed")
        return completed


class TaskOut(BaseModel):
    id: UUID = Field(serialization_alias="_id")
    name: str
    description: str = ""
    deadline: datetime
    completed: bool = False
    assigned_user: Optional[UUID] = Field(default=None, serialization_alias="assignedUser")
    assigned_user_name: str = Field(default=UNASSIGNED_NAME, serialization_alias="assignedUserName")
    date_created: Optional[datetime] = Field(default=None, serialization_alias="dateCreated")

    class Config:
        from_attributes = True
