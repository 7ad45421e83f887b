# gateway.py — Persistence gateway for the task board
# Every operation reports failure as a value (None / False) and logs it;
# nothing raised here reaches the board controller.

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlalchemy.orm import selectinload

from database import create_engine_for, create_session_maker, database_configured, session_scope
from models import Base, Attachment, Comment, Task, TaskStatus, User, utcnow
from schemas import BoardComment, BoardTask, BoardUser, as_utc
from seed import seed_database

logger = logging.getLogger("mons.gateway")


def user_from_row(user: Optional[User]) -> Optional[BoardUser]:
    if user is None:
        return None
    return BoardUser(
        id=user.id,
        name=user.name,
        email=user.email,
        avatar_url=user.avatar_url,
        role=user.role,
        created_at=as_utc(user.created_at),
    )


def task_from_row(task: Task) -> BoardTask:
    return BoardTask(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        project_id=task.project_id,
        assignee_id=task.assignee_id,
        assignee=user_from_row(task.assignee),
        due_date=task.due_date,
        created_by=task.created_by or 0,
        created_at=as_utc(task.created_at) or utcnow(),
        updated_at=as_utc(task.updated_at) or utcnow(),
    )


def comment_from_row(comment: Comment, author: Optional[User] = None) -> BoardComment:
    return BoardComment(
        id=comment.id,
        content=comment.content,
        task_id=comment.task_id,
        author_id=comment.author_id,
        created_at=as_utc(comment.created_at) or utcnow(),
        author=user_from_row(author),
    )


class PersistenceGateway:
    """Optional relational store behind the board.

    An unconfigured gateway is valid: every call fails fast and the board
    stays in demo mode.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self._engine = engine
        self._session_maker: Optional[async_sessionmaker] = (
            create_session_maker(engine) if engine is not None else None
        )
        self._available = False

    @classmethod
    def from_url(cls, url: Optional[str]) -> "PersistenceGateway":
        if not database_configured(url):
            logger.info("No database URL configured; board runs unpersisted")
            return cls(None)
        return cls(create_engine_for(url))

    @property
    def configured(self) -> bool:
        return self._engine is not None

    @property
    def available(self) -> bool:
        return self._available

    async def initialize(self) -> bool:
        """Verify the connection, create the schema and seed an empty store.

        Idempotent: tables are created only if missing and seed rows are
        inserted only while the users table is empty.
        """
        if self._available:
            return True
        if not self.configured:
            return False
        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)

            async with session_scope(self._session_maker) as db:
                user_count = (await db.execute(select(func.count(User.id)))).scalar_one()
                if user_count == 0:
                    await seed_database(db)
                    logger.info("Database seeded with initial data")

            self._available = True
            logger.info("✅ Database initialized")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            self._available = False
        return self._available

    async def _ready(self) -> bool:
        if self._available:
            return True
        return await self.initialize()

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._available = False

    async def ping(self) -> bool:
        if not self.configured:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    # ============================================================
    # USERS
    # ============================================================

    async def ensure_user(self, user: BoardUser) -> Optional[BoardUser]:
        """Map a signed-in user onto a users row, matching by email.

        Returns the stored user, or None when the store is unavailable.
        """
        if not await self._ready():
            return None
        try:
            async with session_scope(self._session_maker) as db:
                row = (await db.execute(select(User).where(User.email == user.email))).scalar_one_or_none()
                if row is None:
                    row = User(name=user.name, email=user.email, avatar_url=user.avatar_url, role=user.role)
                    db.add(row)
                    await db.flush()
                    logger.info(f"Registered board user {user.email} as #{row.id}")
                return user_from_row(row)
        except Exception as e:
            logger.error(f"Error ensuring user {user.email}: {e}")
            return None

    # ============================================================
    # TASKS
    # ============================================================

    async def load_tasks(self, project_id: int) -> Optional[List[BoardTask]]:
        """Tasks of a project with their assignee, newest first. None on failure."""
        if not await self._ready():
            return None
        try:
            async with session_scope(self._session_maker) as db:
                stmt = (
                    select(Task)
                    .where(Task.project_id == project_id)
                    .options(selectinload(Task.assignee))
                    .order_by(Task.created_at.desc(), Task.id.desc())
                )
                rows = (await db.execute(stmt)).scalars().all()
                return [task_from_row(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching tasks: {e}")
            return None

    async def create_task(self, task: BoardTask) -> Optional[int]:
        """Insert a task and return the id the store assigned."""
        if not await self._ready():
            return None
        try:
            async with session_scope(self._session_maker) as db:
                row = Task(
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    priority=task.priority,
                    project_id=task.project_id,
                    assignee_id=task.assignee_id,
                    due_date=task.due_date,
                    created_by=task.created_by,
                )
                db.add(row)
                await db.flush()
                return row.id
        except Exception as e:
            logger.error(f"Error creating task: {e}")
            return None

    async def update_task_status(self, task_id: int, status: TaskStatus) -> bool:
        if not await self._ready():
            return False
        try:
            async with session_scope(self._session_maker) as db:
                result = await db.execute(
                    update(Task)
                    .where(Task.id == task_id)
                    .values(status=TaskStatus(status), updated_at=utcnow())
                )
                if result.rowcount == 0:
                    logger.warning(f"Status update matched no task #{task_id}")
                    return False
                return True
        except Exception as e:
            logger.error(f"Error updating task status: {e}")
            return False

    async def update_task(self, task: BoardTask) -> bool:
        if not await self._ready():
            return False
        try:
            async with session_scope(self._session_maker) as db:
                result = await db.execute(
                    update(Task)
                    .where(Task.id == task.id)
                    .values(
                        title=task.title,
                        description=task.description,
                        status=task.status,
                        priority=task.priority,
                        assignee_id=task.assignee_id,
                        due_date=task.due_date,
                        updated_at=utcnow(),
                    )
                )
                if result.rowcount == 0:
                    logger.warning(f"Update matched no task #{task.id}")
                    return False
                return True
        except Exception as e:
            logger.error(f"Error updating task: {e}")
            return False

    async def delete_task(self, task_id: int) -> bool:
        """Delete a task together with its comments and attachments."""
        if not await self._ready():
            return False
        try:
            async with session_scope(self._session_maker) as db:
                await db.execute(delete(Comment).where(Comment.task_id == task_id))
                await db.execute(delete(Attachment).where(Attachment.task_id == task_id))
                result = await db.execute(delete(Task).where(Task.id == task_id))
                return result.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting task: {e}")
            return False

    # ============================================================
    # COMMENTS
    # ============================================================

    async def add_comment(self, task_id: int, content: str, author_id: Optional[int]) -> Optional[BoardComment]:
        if not await self._ready():
            return None
        try:
            async with session_scope(self._session_maker) as db:
                row = Comment(content=content, task_id=task_id, author_id=author_id)
                db.add(row)
                await db.flush()
                author = await db.get(User, author_id) if author_id is not None else None
                return comment_from_row(row, author)
        except Exception as e:
            logger.error(f"Error adding comment: {e}")
            return None

    async def load_comments(self, task_id: int) -> Optional[List[BoardComment]]:
        """Comments of a task with their author, oldest first. None on failure."""
        if not await self._ready():
            return None
        try:
            async with session_scope(self._session_maker) as db:
                stmt = (
                    select(Comment, User)
                    .outerjoin(User, Comment.author_id == User.id)
                    .where(Comment.task_id == task_id)
                    .order_by(Comment.created_at.asc(), Comment.id.asc())
                )
                rows = (await db.execute(stmt)).all()
                return [comment_from_row(comment, author) for comment, author in rows]
        except Exception as e:
            logger.error(f"Error fetching comments: {e}")
            return None
