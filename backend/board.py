# board.py — Board state controller
# Features:
# - In-memory task list for one board session
# - Optimistic mutations; persistence runs as fire-and-forget asyncio tasks
# - Demo fallback (onboarding board) when the store is empty, slow or down
# - Stored ids reconciled back into local tasks once a create is confirmed
# - Derived views: search, columns, completion, stats

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set

from models import COLUMN_ORDER, COLUMN_TITLES, TaskPriority, TaskStatus, utcnow
from schemas import BoardComment, BoardTask, BoardUser, TaskFields
from seed import onboarding_tasks

logger = logging.getLogger("mons.board")

DEFAULT_PROJECT_ID = int(os.getenv("BOARD_PROJECT_ID", "1"))
LOAD_TIMEOUT_SECONDS = float(os.getenv("BOARD_LOAD_TIMEOUT", "2.0"))

# Fields written by a task update
_EDITABLE_FIELDS = {"title", "description", "status", "priority", "assignee_id", "due_date"}


class ConnectionStatus(str, Enum):
    LOADING = "loading"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass
class BoardSession:
    """Who is looking at which project, and whether it is backed by the store."""
    user: Optional[BoardUser]
    project_id: int = DEFAULT_PROJECT_ID
    status: ConnectionStatus = ConnectionStatus.LOADING

    @property
    def persisted(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED


@dataclass
class BoardColumn:
    status: TaskStatus
    title: str
    tasks: List[BoardTask]

    @property
    def count(self) -> int:
        return len(self.tasks)


def completion_percentage(tasks: List[BoardTask]) -> int:
    """Share of done tasks, rounded half up; 0 for an empty board."""
    total = len(tasks)
    if total == 0:
        return 0
    done = sum(1 for task in tasks if task.status == TaskStatus.DONE)
    return (200 * done + total) // (2 * total)


class BoardController:
    """Owns the task list of one board session.

    Every mutation is applied locally first. In persisted mode the matching
    gateway call is dispatched in the background; a failed call is logged
    and the local state is kept.
    """

    def __init__(
        self,
        session: BoardSession,
        gateway,
        clock: Callable[[], datetime] = utcnow,
        load_timeout: float = LOAD_TIMEOUT_SECONDS,
    ):
        self.session = session
        self._gateway = gateway
        self._clock = clock
        self._load_timeout = load_timeout
        self._tasks: List[BoardTask] = []
        self._query = ""
        self._detail_id: Optional[int] = None
        self._last_local_id = 0

        # local id -> stored id, for tasks whose create has been confirmed
        self._aliases: Dict[int, int] = {}
        self._pending_creates: Set[int] = set()
        self._deferred_comments: Dict[int, List[int]] = {}
        self._unsynced_comments: Set[int] = set()
        self._inflight: Set[asyncio.Task] = set()

    # ============================================================
    # LOADING
    # ============================================================

    async def load(
        self,
        project_id: Optional[int] = None,
        timeout: Optional[float] = None,
        offline: bool = False,
    ) -> bool:
        """Load the project's tasks, falling back to the onboarding board.

        `offline` skips the store and installs the onboarding board directly.
        Returns True when the board is backed by the store.
        """
        if project_id is not None:
            self.session.project_id = project_id
        self.session.status = ConnectionStatus.LOADING
        await self.drain()

        limit = self._load_timeout if timeout is None else timeout
        tasks = None if offline else await self._fetch_tasks(limit)

        self._aliases.clear()
        self._pending_creates.clear()
        self._deferred_comments.clear()
        self._unsynced_comments.clear()

        if not tasks:
            self._tasks = onboarding_tasks(self.session.user, self.session.project_id, self._clock())
            self.session.status = ConnectionStatus.DISCONNECTED
            logger.info(f"Board for project {self.session.project_id} running unpersisted")
        else:
            self._tasks = list(tasks)
            self.session.status = ConnectionStatus.CONNECTED
            logger.info(f"Loaded {len(tasks)} tasks for project {self.session.project_id}")

        if self._detail_id is not None and self._find(self._detail_id) is None:
            self._detail_id = None
        return self.session.persisted

    async def _fetch_tasks(self, limit: float) -> Optional[List[BoardTask]]:
        try:
            return await asyncio.wait_for(self._gateway.load_tasks(self.session.project_id), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"Loading tasks timed out after {limit}s; switching to demo board")
        except Exception as e:
            logger.error(f"Error loading tasks: {e}")
        return None

    async def drain(self) -> None:
        """Wait until every dispatched persistence call has finished."""
        while True:
            pending = [task for task in self._inflight if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ============================================================
    # MUTATIONS
    # ============================================================

    def set_status(self, task_id: int, new_status) -> bool:
        try:
            status = TaskStatus(new_status)
        except ValueError:
            logger.warning(f"Ignoring invalid status {new_status!r} for task #{task_id}")
            return False

        task = self._find(task_id)
        if task is None:
            return False

        task.status = status
        self._touch(task)
        if self._should_persist(task.id):
            self._dispatch(
                self._gateway.update_task_status(task.id, status),
                f"status of task #{task.id}",
            )
        return True

    def add_task(self, fields: TaskFields) -> BoardTask:
        now = self._clock()
        user = self.session.user
        assignee = self._known_user(fields.assignee_id)

        task = BoardTask(
            id=self._next_local_id(),
            title=fields.title,
            description=fields.description or "",
            status=fields.status or TaskStatus.TODO,
            priority=fields.priority or TaskPriority.MEDIUM,
            project_id=self.session.project_id,
            assignee_id=assignee.id if assignee else None,
            assignee=assignee,
            due_date=fields.due_date,
            created_by=user.id if user else 1,
            created_at=now,
            updated_at=now,
        )
        self._tasks.append(task)

        if self.session.persisted:
            self._pending_creates.add(task.id)
            self._dispatch(
                self._confirm_create(task.id, task.model_copy(deep=True)),
                f"create of task #{task.id}",
            )
        return task.model_copy(deep=True)

    def update_task(self, task: BoardTask) -> bool:
        index = self._index_of(task.id)
        if index is None:
            return False

        current = self._tasks[index]
        replacement = task.model_copy(deep=True)
        replacement.id = current.id
        self._normalize_assignee(replacement)
        replacement.updated_at = max(self._clock(), current.updated_at)
        self._tasks[index] = replacement

        if self._should_persist(replacement.id):
            self._dispatch(
                self._gateway.update_task(replacement.model_copy(deep=True)),
                f"update of task #{replacement.id}",
            )
        return True

    def delete_task(self, task_id: int) -> bool:
        index = self._index_of(task_id)
        if index is None:
            return False

        task = self._tasks.pop(index)
        if self._detail_id == task.id:
            self._detail_id = None
        if self._should_persist(task.id):
            self._dispatch(self._gateway.delete_task(task.id), f"delete of task #{task.id}")
        return True

    def add_comment(self, task_id: int, text: str, author: Optional[BoardUser]) -> Optional[BoardComment]:
        content = (text or "").strip()
        if not content or author is None:
            return None
        task = self._find(task_id)
        if task is None:
            return None

        comment = BoardComment(
            id=self._next_local_id(),
            content=content,
            task_id=task.id,
            author_id=author.id,
            created_at=self._clock(),
            author=author,
        )
        task.comments.append(comment)

        if self.session.persisted:
            self._unsynced_comments.add(comment.id)
            if task.id in self._pending_creates:
                self._deferred_comments.setdefault(task.id, []).append(comment.id)
            else:
                self._dispatch(
                    self._store_comment(task.id, comment.id, content, author.id),
                    f"comment on task #{task.id}",
                )
        return comment.model_copy(deep=True)

    async def load_comments(self, task_id: int) -> List[BoardComment]:
        """Comments of a task, refreshed from the store in persisted mode."""
        task = self._find(task_id)
        if task is None:
            return []

        if self.session.persisted and task.id not in self._pending_creates:
            stored = await self._gateway.load_comments(task.id)
            task = self._find(task_id)
            if task is None:
                return []
            if stored is not None:
                stored_ids = {comment.id for comment in stored}
                unsynced = [
                    comment for comment in task.comments
                    if comment.id in self._unsynced_comments and comment.id not in stored_ids
                ]
                task.comments = list(stored) + unsynced

        return [comment.model_copy(deep=True) for comment in task.comments]

    # ============================================================
    # DETAIL VIEW
    # ============================================================

    def open_detail(self, task_id: int) -> Optional[BoardTask]:
        task = self._find(task_id)
        if task is None:
            return None
        self._detail_id = task.id
        return task.model_copy(deep=True)

    def close_detail(self) -> None:
        self._detail_id = None

    @property
    def detail(self) -> Optional[BoardTask]:
        if self._detail_id is None:
            return None
        return self.snapshot(self._detail_id)

    # ============================================================
    # DERIVED VIEWS
    # ============================================================

    @property
    def query(self) -> str:
        return self._query

    def search(self, query: Optional[str]) -> List[BoardTask]:
        self._query = query or ""
        return self.filtered_tasks()

    def filtered_tasks(self) -> List[BoardTask]:
        needle = self._query.lower()
        visible = [
            task for task in self._tasks
            if not needle
            or needle in task.title.lower()
            or needle in (task.description or "").lower()
        ]
        return [task.model_copy(deep=True) for task in visible]

    def columns(self) -> List[BoardColumn]:
        visible = self.filtered_tasks()
        return [
            BoardColumn(
                status=status,
                title=COLUMN_TITLES[status],
                tasks=[task for task in visible if task.status == status],
            )
            for status in COLUMN_ORDER
        ]

    def completion_percentage(self) -> int:
        return completion_percentage(self._tasks)

    def stats(self) -> Dict[str, Any]:
        today = self._clock().date()
        by_status = {status.value: 0 for status in COLUMN_ORDER}
        by_priority = {priority.value: 0 for priority in TaskPriority}
        overdue = 0
        for task in self._tasks:
            by_status[task.status.value] += 1
            by_priority[task.priority.value] += 1
            if task.due_date and task.due_date < today and task.status != TaskStatus.DONE:
                overdue += 1
        return {
            "total_tasks": len(self._tasks),
            "by_status": by_status,
            "by_priority": by_priority,
            "overdue": overdue,
            "completion_percentage": self.completion_percentage(),
        }

    def tasks(self) -> List[BoardTask]:
        return [task.model_copy(deep=True) for task in self._tasks]

    def snapshot(self, task_id: int) -> Optional[BoardTask]:
        task = self._find(task_id)
        return task.model_copy(deep=True) if task else None

    def resolve_id(self, task_id: int) -> int:
        seen = set()
        while task_id in self._aliases and task_id not in seen:
            seen.add(task_id)
            task_id = self._aliases[task_id]
        return task_id

    # ============================================================
    # INTERNALS
    # ============================================================

    def _index_of(self, task_id: int) -> Optional[int]:
        resolved = self.resolve_id(task_id)
        for index, task in enumerate(self._tasks):
            if task.id == resolved:
                return index
        return None

    def _find(self, task_id: int) -> Optional[BoardTask]:
        index = self._index_of(task_id)
        return self._tasks[index] if index is not None else None

    def _next_local_id(self) -> int:
        candidate = int(self._clock().timestamp() * 1000)
        self._last_local_id = max(candidate, self._last_local_id + 1)
        return self._last_local_id

    def _touch(self, task: BoardTask) -> None:
        task.updated_at = max(self._clock(), task.updated_at)

    def _known_user(self, user_id: Optional[int]) -> Optional[BoardUser]:
        if user_id is None:
            return None
        user = self.session.user
        if user is not None and user.id == user_id:
            return user
        for task in self._tasks:
            if task.assignee is not None and task.assignee.id == user_id:
                return task.assignee
        return None

    def _normalize_assignee(self, task: BoardTask) -> None:
        if task.assignee_id is None:
            task.assignee = None
        elif task.assignee is None or task.assignee.id != task.assignee_id:
            known = self._known_user(task.assignee_id)
            if known is None:
                logger.debug(f"Dropping unknown assignee #{task.assignee_id} from task #{task.id}")
                task.assignee_id = None
            task.assignee = known

    def _should_persist(self, task_id: int) -> bool:
        # A task still being created is flushed once its create is confirmed
        return self.session.persisted and task_id not in self._pending_creates

    def _dispatch(self, operation: Coroutine, description: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            operation.close()
            logger.warning(f"No running event loop; skipped persistence for {description}")
            return
        task = loop.create_task(operation)
        self._inflight.add(task)
        task.add_done_callback(lambda done: self._persistence_done(done, description))

    def _persistence_done(self, task: asyncio.Task, description: str) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            logger.warning(f"Persistence cancelled for {description}")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Persistence failed for {description}: {error}")
        elif not task.result():
            logger.warning(f"Persistence failed for {description}; keeping local state")

    async def _confirm_create(self, local_id: int, submitted: BoardTask) -> bool:
        try:
            stored_id = await self._gateway.create_task(submitted)
        finally:
            self._pending_creates.discard(local_id)
        deferred = self._deferred_comments.pop(local_id, [])
        if stored_id is None:
            return False

        task = next((t for t in self._tasks if t.id == local_id), None)
        self._aliases[local_id] = stored_id
        if task is None:
            logger.info(f"Task #{local_id} was deleted before it was stored; removing #{stored_id}")
            return await self._gateway.delete_task(stored_id)

        task.id = stored_id
        for comment in task.comments:
            comment.task_id = stored_id
        if self._detail_id == local_id:
            self._detail_id = stored_id
        logger.debug(f"Task #{local_id} stored as #{stored_id}")

        ok = True
        if task.model_dump(include=_EDITABLE_FIELDS) != submitted.model_dump(include=_EDITABLE_FIELDS):
            ok = await self._gateway.update_task(task.model_copy(deep=True))
        for comment in [c for c in task.comments if c.id in deferred]:
            stored = await self._store_comment(stored_id, comment.id, comment.content, comment.author_id)
            ok = ok and stored
        return ok

    async def _store_comment(self, task_id: int, comment_id: int, content: str, author_id: Optional[int]) -> bool:
        stored = await self._gateway.add_comment(task_id, content, author_id)
        if stored is None:
            return False
        self._unsynced_comments.discard(comment_id)
        task = self._find(task_id)
        if task is not None:
            for comment in task.comments:
                if comment.id == comment_id:
                    comment.id = stored.id
        return True
