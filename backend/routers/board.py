# routers/board.py — Task board: columns, task editing, comments and drag gestures
from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from board import BoardController
from drag import DragGesture, DragState
from models import TaskPriority, TaskStatus
from registry import BoardEntry, BoardRegistry, get_registry
from schemas import BoardComment, BoardTask
from surfaces import AddTaskSurface, SurfaceValidationError, TaskDetailSurface, TaskNotFound

router = APIRouter(prefix="/api/v1/board", tags=["Task Board"])

# Fields that may be cleared with an explicit null on update
_NULLABLE_FIELDS = {"description", "assignee_id", "due_date"}


# ============================================================
# SCHEMAS
# ============================================================

class ColumnOut(BaseModel):
    id: str
    title: str
    count: int
    tasks: List[BoardTask] = []


class BoardOut(BaseModel):
    project_id: int
    status: str
    mode: str
    query: str = ""
    completion_percentage: int
    total_tasks: int
    columns: List[ColumnOut]
    dragging_task_id: Optional[int] = None
    detail_task_id: Optional[int] = None


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[int] = None
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[int] = None
    due_date: Optional[date] = None


class StatusChange(BaseModel):
    status: TaskStatus


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class DragPress(BaseModel):
    task_id: int
    x: float
    y: float


class DragMove(BaseModel):
    x: float
    y: float


class DragRelease(BaseModel):
    column: Optional[str] = None


class DragOut(BaseModel):
    state: str
    task_id: Optional[int] = None
    overlay: Optional[BoardTask] = None


class DropOut(BaseModel):
    outcome: Optional[str] = None
    task_id: Optional[int] = None
    target: Optional[str] = None
    state: str


# ============================================================
# HELPERS
# ============================================================

async def get_board(
    user: CurrentUser = Depends(get_current_user),
    boards: BoardRegistry = Depends(get_registry),
) -> BoardEntry:
    return await boards.open(user.to_board_user())


def _board_out(entry: BoardEntry) -> BoardOut:
    controller = entry.controller
    drag = entry.drag
    detail = controller.detail
    return BoardOut(
        project_id=controller.session.project_id,
        status=controller.session.status.value,
        mode="connected" if controller.session.persisted else "demo",
        query=controller.query,
        completion_percentage=controller.completion_percentage(),
        total_tasks=len(controller.tasks()),
        columns=[
            ColumnOut(
                id=column.status.value,
                title=column.title,
                count=column.count,
                tasks=[task for task in column.tasks if not drag.is_suppressed(task.id)],
            )
            for column in controller.columns()
        ],
        dragging_task_id=drag.task_id if drag.state == DragState.DRAGGING else None,
        detail_task_id=detail.id if detail else None,
    )


def _drag_out(drag: DragGesture) -> DragOut:
    return DragOut(
        state=drag.state.value,
        task_id=drag.task_id,
        overlay=drag.overlay,
    )


def _open_detail(controller: BoardController, task_id: int) -> TaskDetailSurface:
    try:
        return TaskDetailSurface(controller, task_id)
    except TaskNotFound:
        raise HTTPException(status_code=404, detail="Task not found")


# ============================================================
# BOARD
# ============================================================

@router.get("", response_model=BoardOut)
async def get_board_view(
    q: Optional[str] = Query(None, description="Case-insensitive title/description filter"),
    entry: BoardEntry = Depends(get_board),
):
    """Columns, completion and connection mode of the current user's board"""
    if q is not None:
        entry.controller.search(q)
    return _board_out(entry)


@router.post("/reload", response_model=BoardOut)
async def reload_board(
    entry: BoardEntry = Depends(get_board),
    boards: BoardRegistry = Depends(get_registry),
):
    """Reload tasks from the store, falling back to the demo board"""
    await boards.reload(entry)
    return _board_out(entry)


@router.get("/stats")
async def get_board_stats(entry: BoardEntry = Depends(get_board)):
    """Task counts by status and priority"""
    return entry.controller.stats()


# ============================================================
# TASKS
# ============================================================

@router.post("/tasks", response_model=BoardTask, status_code=201)
async def create_task(data: TaskCreate, entry: BoardEntry = Depends(get_board)):
    surface = AddTaskSurface(entry.controller)
    surface.edit(**data.model_dump(exclude_unset=True))
    try:
        return surface.submit()
    except SurfaceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/tasks/{task_id}", response_model=BoardTask)
async def get_task(task_id: int, entry: BoardEntry = Depends(get_board)):
    """Open a task's detail view, with its comments"""
    surface = _open_detail(entry.controller, task_id)
    comments = await surface.load_comments()
    return surface.task.model_copy(update={"comments": comments})


@router.patch("/tasks/{task_id}", response_model=BoardTask)
async def update_task(task_id: int, data: TaskUpdate, entry: BoardEntry = Depends(get_board)):
    surface = _open_detail(entry.controller, task_id)
    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_FIELDS
    }
    surface.edit(**changes)
    try:
        return surface.save()
    except SurfaceValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TaskNotFound:
        raise HTTPException(status_code=404, detail="Task not found")


@router.post("/tasks/{task_id}/status", response_model=BoardTask)
async def change_status(task_id: int, data: StatusChange, entry: BoardEntry = Depends(get_board)):
    """Move a task to another column"""
    if not entry.controller.set_status(task_id, data.status):
        raise HTTPException(status_code=404, detail="Task not found")
    return entry.controller.snapshot(task_id)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: int, entry: BoardEntry = Depends(get_board)):
    surface = _open_detail(entry.controller, task_id)
    surface.delete()
    return {"message": "Task deleted"}


@router.delete("/detail")
async def close_detail(entry: BoardEntry = Depends(get_board)):
    entry.controller.close_detail()
    return {"message": "Detail view closed"}


# ============================================================
# COMMENTS
# ============================================================

@router.get("/tasks/{task_id}/comments", response_model=List[BoardComment])
async def list_comments(task_id: int, entry: BoardEntry = Depends(get_board)):
    if entry.controller.snapshot(task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return await entry.controller.load_comments(task_id)


@router.post("/tasks/{task_id}/comments", response_model=BoardComment, status_code=201)
async def add_comment(task_id: int, data: CommentCreate, entry: BoardEntry = Depends(get_board)):
    surface = _open_detail(entry.controller, task_id)
    comment = surface.comment(data.content)
    if comment is None:
        raise HTTPException(status_code=400, detail="Comment must not be blank")
    return comment


# ============================================================
# DRAG GESTURE
# ============================================================

@router.get("/drag", response_model=DragOut)
async def get_drag(entry: BoardEntry = Depends(get_board)):
    return _drag_out(entry.drag)


@router.post("/drag/press", response_model=DragOut)
async def drag_press(data: DragPress, entry: BoardEntry = Depends(get_board)):
    if not entry.drag.press(data.task_id, data.x, data.y):
        raise HTTPException(status_code=404, detail="Task not found")
    return _drag_out(entry.drag)


@router.post("/drag/move", response_model=DragOut)
async def drag_move(data: DragMove, entry: BoardEntry = Depends(get_board)):
    entry.drag.move(data.x, data.y)
    return _drag_out(entry.drag)


@router.post("/drag/release", response_model=DropOut)
async def drag_release(data: DragRelease, entry: BoardEntry = Depends(get_board)):
    """Drop the dragged card on a column, or nowhere to discard the move"""
    result = entry.drag.release(data.column)
    if result is None:
        return DropOut(state=entry.drag.state.value)
    return DropOut(
        outcome=result.outcome.value,
        task_id=result.task_id,
        target=result.target.value if result.target else None,
        state=entry.drag.state.value,
    )


@router.post("/drag/cancel", response_model=DragOut)
async def drag_cancel(entry: BoardEntry = Depends(get_board)):
    entry.drag.cancel()
    return _drag_out(entry.drag)
