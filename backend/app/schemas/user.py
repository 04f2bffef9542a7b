from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class UserPayload(BaseModel):
    name: str = Field(default="", validate_default=True)
    email: str = Field(default="", validate_default=True)
    pending_tasks: Optional[list[Any]] = Field(default=None, alias="pendingTasks")

    class Config:
        populate_by_name = True

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, value):
        name = value.strip() if isinstance(value, str) else ""
        if not name:
            raise ValueError("User name is required")
        return name

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        email = value.strip().lower() if isinstance(value, str) else ""
        if not email:
            raise ValueError("User email is required")
        return email

    @field_validator("pending_tasks", mode="before")
    @classmethod
    def require_array(cls, value):
        if not isinstance(value, list):
            raise ValueError("pendingTasks must be an array")
        return value


class UserOut(BaseModel):
    id: UUID = Field(serialization_alias="_id")
    name: str
    email: str
    pending_tasks: list[UUID] = Field(
        default_factory=list,
        validation_alias="pending_task_ids",
        serialization_alias="pendingTasks",
    )
    date_created: Optional[datetime] = Field(default=None, serialization_alias="dateCreated")

    class Config:
        from_attributes = True
