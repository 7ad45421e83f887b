# surfaces.py — Add-task and task-detail forms over a board controller
# A surface holds a draft only; the controller stays the source of truth.

from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from models import TaskPriority, TaskStatus
from schemas import BoardComment, BoardTask, TaskFields


class SurfaceValidationError(ValueError):
    pass


class TaskNotFound(LookupError):
    pass


class TaskDraft(BaseModel):
    title: str = ""
    description: Optional[str] = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[int] = None
    due_date: Optional[date] = None

    @classmethod
    def from_task(cls, task: BoardTask) -> "TaskDraft":
        return cls(
            title=task.title,
            description=task.description or "",
            status=task.status,
            priority=task.priority,
            assignee_id=task.assignee_id,
            due_date=task.due_date,
        )

    def validate_for_submit(self) -> None:
        if not self.title.strip():
            raise SurfaceValidationError("Title is required")


def _apply(draft: TaskDraft, changes: dict) -> TaskDraft:
    return TaskDraft.model_validate({**draft.model_dump(), **changes})


class AddTaskSurface:
    """New-task form; defaults to the current user as assignee."""

    def __init__(self, controller):
        self._controller = controller
        self.reset()

    def reset(self) -> None:
        user = self._controller.session.user
        self.draft = TaskDraft(assignee_id=user.id if user else None)

    def edit(self, **changes) -> TaskDraft:
        self.draft = _apply(self.draft, changes)
        return self.draft

    def submit(self) -> BoardTask:
        self.draft.validate_for_submit()
        task = self._controller.add_task(TaskFields(**self.draft.model_dump()))
        self.reset()
        return task


class TaskDetailSurface:
    """Detail / edit view of a single task."""

    def __init__(self, controller, task_id: int):
        self._controller = controller
        snapshot = controller.open_detail(task_id)
        if snapshot is None:
            raise TaskNotFound(task_id)
        self.task = snapshot
        self.draft = TaskDraft.from_task(snapshot)
        self.comments: List[BoardComment] = list(snapshot.comments)

    @property
    def task_id(self) -> int:
        return self.task.id

    def refresh(self) -> Optional[BoardTask]:
        snapshot = self._controller.snapshot(self.task.id)
        if snapshot is not None:
            self.task = snapshot
            self.comments = list(snapshot.comments)
        return snapshot

    async def load_comments(self) -> List[BoardComment]:
        self.comments = await self._controller.load_comments(self.task.id)
        return self.comments

    def edit(self, **changes) -> TaskDraft:
        self.draft = _apply(self.draft, changes)
        return self.draft

    def save(self) -> BoardTask:
        self.draft.validate_for_submit()
        updated = self.task.model_copy(update={
            "title": self.draft.title.strip(),
            "description": self.draft.description,
            "status": self.draft.status,
            "priority": self.draft.priority,
            "assignee_id": self.draft.assignee_id,
            "assignee": self.task.assignee if self.draft.assignee_id == self.task.assignee_id else None,
            "due_date": self.draft.due_date,
        })
        if not self._controller.update_task(updated):
            raise TaskNotFound(self.task.id)
        self.refresh()
        return self.task

    def delete(self) -> bool:
        return self._controller.delete_task(self.task.id)

    def comment(self, text: str) -> Optional[BoardComment]:
        comment = self._controller.add_comment(self.task.id, text, self._controller.session.user)
        if comment is not None:
            self.refresh()
        return comment

    def close(self) -> None:
        self._controller.close_detail()
