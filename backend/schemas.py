# schemas.py — In-memory board records shared by the controller, gateway and routers
from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models import TaskPriority, TaskStatus, UserRole


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive timestamps; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BoardUser(BaseModel):
    id: int
    name: str
    email: str
    avatar_url: Optional[str] = None
    role: UserRole = UserRole.MEMBER
    created_at: Optional[datetime] = None


class BoardComment(BaseModel):
    id: int
    content: str
    task_id: int
    author_id: Optional[int] = None
    created_at: datetime
    author: Optional[BoardUser] = None


class BoardAttachment(BaseModel):
    id: int
    filename: str
    file_url: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    task_id: int
    uploaded_by: Optional[int] = None
    created_at: datetime


class BoardTask(BaseModel):
    id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project_id: int
    assignee_id: Optional[int] = None
    assignee: Optional[BoardUser] = None
    due_date: Optional[date] = None
    created_by: int
    created_at: datetime
    updated_at: datetime
    comments: List[BoardComment] = Field(default_factory=list)
    attachments: List[BoardAttachment] = Field(default_factory=list)

    @model_validator(mode="after")
    def _assignee_matches_id(self):
        # No assignee id means no assignee record, and a record always wins its id
        if self.assignee_id is None:
            self.assignee = None
        elif self.assignee is not None and self.assignee.id != self.assignee_id:
            self.assignee = None
        return self


class TaskFields(BaseModel):
    """Fields supplied when a task is created"""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[int] = None
    due_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title must not be blank")
        return v.strip()
