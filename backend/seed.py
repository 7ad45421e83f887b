# seed.py — First-run database content and the unpersisted onboarding board
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    User, Project, ProjectMember, Task, Comment,
    UserRole, TaskStatus, TaskPriority, utcnow,
)
from schemas import BoardComment, BoardTask, BoardUser

# ============================================================
# DATABASE SEED (inserted once, when the users table is empty)
# ============================================================

SEED_USERS = [
    {"name": "Alice Johnson", "email": "alice@example.com", "role": UserRole.ADMIN},
    {"name": "Bob Smith", "email": "bob@example.com", "role": UserRole.MEMBER},
    {"name": "Carol Davis", "email": "carol@example.com", "role": UserRole.MEMBER},
    {"name": "David Wilson", "email": "david@example.com", "role": UserRole.MEMBER},
]

SEED_PROJECT = {
    "name": "Project Alpha",
    "description": "Main development project for the new application",
}

# assignee / author are indexes into SEED_USERS
SEED_TASKS = [
    {"title": "Design System Setup", "description": "Create a comprehensive design system for the project",
     "status": TaskStatus.TODO, "priority": TaskPriority.HIGH, "assignee": 0, "due_date": date(2024, 1, 15)},
    {"title": "API Integration", "description": "Integrate with third-party APIs for data synchronization",
     "status": TaskStatus.IN_PROGRESS, "priority": TaskPriority.MEDIUM, "assignee": 1, "due_date": date(2024, 1, 20)},
    {"title": "User Authentication", "description": "Implement secure user authentication system",
     "status": TaskStatus.DONE, "priority": TaskPriority.HIGH, "assignee": 2, "due_date": None},
    {"title": "Database Migration", "description": "Set up and migrate database schema",
     "status": TaskStatus.TODO, "priority": TaskPriority.MEDIUM, "assignee": 3, "due_date": date(2024, 1, 18)},
    {"title": "Frontend Components", "description": "Build reusable React components",
     "status": TaskStatus.IN_PROGRESS, "priority": TaskPriority.LOW, "assignee": 1, "due_date": date(2024, 1, 25)},
]

# task is an index into SEED_TASKS
SEED_COMMENTS = [
    {"content": "Started working on the color palette and typography", "task": 0, "author": 0},
    {"content": "Authentication system is complete and tested", "task": 2, "author": 2},
    {"content": "Need to review the API documentation first", "task": 1, "author": 1},
    {"content": "Database schema looks good, ready to proceed", "task": 3, "author": 3},
]


async def seed_database(db: AsyncSession) -> None:
    """Insert the sample team, project, tasks and comments.

    Ids are left to the database so its sequences stay in step.
    """
    users = [User(**data) for data in SEED_USERS]
    db.add_all(users)
    await db.flush()

    project = Project(created_by=users[0].id, **SEED_PROJECT)
    db.add(project)
    await db.flush()

    db.add_all([
        ProjectMember(
            project_id=project.id,
            user_id=user.id,
            role="admin" if user.role == UserRole.ADMIN else "member",
        )
        for user in users
    ])

    tasks = []
    for data in SEED_TASKS:
        tasks.append(Task(
            title=data["title"],
            description=data["description"],
            status=data["status"],
            priority=data["priority"],
            project_id=project.id,
            assignee_id=users[data["assignee"]].id,
            due_date=data["due_date"],
            created_by=users[0].id,
        ))
    db.add_all(tasks)
    await db.flush()

    db.add_all([
        Comment(
            content=data["content"],
            task_id=tasks[data["task"]].id,
            author_id=users[data["author"]].id,
        )
        for data in SEED_COMMENTS
    ])
    await db.flush()


# ============================================================
# ONBOARDING BOARD (unpersisted fallback)
# ============================================================

ONBOARDING_TASKS = [
    {
        "id": 1,
        "title": "Complete Profile Verification",
        "description": "Add your profile picture, phone number, location, and bio to complete your profile "
                       "setup. This helps personalize your workspace experience.",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.HIGH,
        "due_in_days": 3,
    },
    {
        "id": 2,
        "title": "Configure Data Backup Settings",
        "description": "Set up automatic backup for your tasks and data. Choose between Google Drive sync "
                       "or local backup to ensure your work is always safe.",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.HIGH,
        "due_in_days": 2,
    },
    {
        "id": 3,
        "title": "Set Up Notification Preferences",
        "description": "Customize your notification settings to stay updated on task deadlines, comments, "
                       "and project updates without being overwhelmed.",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.MEDIUM,
        "due_in_days": 5,
    },
    {
        "id": 4,
        "title": "Create Your First Personal Project",
        "description": "Start organizing your work by creating your first project. You can use it for "
                       "personal goals, work tasks, or hobby projects.",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.MEDIUM,
        "due_in_days": 7,
    },
    {
        "id": 5,
        "title": "Learn Application Features",
        "description": "Explore the help guide to understand drag & drop functionality, task management, "
                       "comments, file attachments, and keyboard shortcuts.",
        "status": TaskStatus.IN_PROGRESS,
        "priority": TaskPriority.MEDIUM,
        "due_in_days": 4,
        "comments": [
            {
                "id": 1,
                "content": "Started reading the user guide. The drag & drop feature looks really intuitive!",
                "age": timedelta(hours=2),
            },
        ],
    },
    {
        "id": 6,
        "title": "Welcome to Mons📋",
        "description": "Congratulations! You've successfully created your account and logged into Mons📋. "
                       "This task management system will help you stay organized and productive.",
        "status": TaskStatus.DONE,
        "priority": TaskPriority.LOW,
        "due_in_days": None,
        "age": timedelta(days=1),
        "comments": [
            {"id": 2, "content": "Welcome to your personal workspace! 🎉", "age": timedelta(days=1)},
        ],
    },
]


def onboarding_tasks(
    user: Optional[BoardUser],
    project_id: int = 1,
    now: Optional[datetime] = None,
) -> List[BoardTask]:
    """Build the fixed onboarding board, assigned to `user`."""
    now = now or utcnow()
    owner_id = user.id if user else 1

    tasks = []
    for data in ONBOARDING_TASKS:
        due_in = data.get("due_in_days")
        comments = [
            BoardComment(
                id=c["id"],
                content=c["content"],
                task_id=data["id"],
                author_id=owner_id,
                created_at=now - c["age"],
                author=user,
            )
            for c in data.get("comments", [])
        ]
        tasks.append(BoardTask(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            status=data["status"],
            priority=data["priority"],
            project_id=project_id,
            assignee_id=user.id if user else None,
            assignee=user,
            due_date=(now + timedelta(days=due_in)).date() if due_in is not None else None,
            created_by=owner_id,
            created_at=now - data.get("age", timedelta(0)),
            updated_at=now,
            comments=comments,
        ))
    return tasks
