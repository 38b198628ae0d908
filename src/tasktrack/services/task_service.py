"""Task service — owner-scoped task storage.

This is the only code path that reads or writes task rows. Every method
takes the caller's RequestIdentity as its first argument, resolves it to the
owning user, and adds `owner_id == <that user>` to the query. There is no
unscoped variant.

A task that exists but belongs to someone else is reported exactly like a
task that does not exist (None / False), so callers cannot discover other
users' ids.
"""

from typing import Any, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import RequestIdentity
from tasktrack.db.models import Task, User

logger = structlog.get_logger()

# Fields a patch may touch. id and owner are never client-writable.
UPDATABLE_FIELDS = ("title", "description", "completed")


class IdentityRequired(Exception):
    """Raised when a task operation is attempted without a known identity."""


class TaskService:
    """Business logic for task CRUD, always filtered by owner."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _owner(self, identity: RequestIdentity) -> User:
        if not isinstance(identity, RequestIdentity):
            raise IdentityRequired("Task access requires an authenticated identity")
        result = await self.db.execute(
            select(User).where(User.username == identity.username)
        )
        user = result.scalars().first()
        if user is None:
            raise IdentityRequired(f"Unknown identity: {identity.username}")
        return user

    # ─── Read ────────────────────────────────────────────

    async def list_all(self, identity: RequestIdentity) -> list[Task]:
        owner = await self._owner(identity)
        result = await self.db.execute(
            select(Task).where(Task.owner_id == owner.id).order_by(Task.id)
        )
        return list(result.scalars().all())

    async def list_by_completion(
        self, identity: RequestIdentity, completed: bool
    ) -> list[Task]:
        owner = await self._owner(identity)
        result = await self.db.execute(
            select(Task)
            .where(Task.owner_id == owner.id, Task.completed == completed)
            .order_by(Task.id)
        )
        return list(result.scalars().all())

    async def get_by_id(
        self, identity: RequestIdentity, task_id: int
    ) -> Optional[Task]:
        owner = await self._owner(identity)
        return await self._get_owned(owner, task_id)

    async def _get_owned(self, owner: User, task_id: int) -> Optional[Task]:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, Task.owner_id == owner.id)
        )
        return result.scalars().first()

    # ─── Create ──────────────────────────────────────────

    async def create(
        self,
        identity: RequestIdentity,
        title: str,
        description: Optional[str] = None,
    ) -> Task:
        """Create a new, not-yet-completed task owned by the caller."""
        owner = await self._owner(identity)
        task = Task(
            title=title,
            description=description,
            completed=False,
            owner=owner,
        )
        self.db.add(task)
        await self.db.commit()
        logger.info("tasks.created", task_id=task.id)
        return task

    # ─── Update ──────────────────────────────────────────

    async def update(
        self,
        identity: RequestIdentity,
        task_id: int,
        patch: dict[str, Any],
    ) -> Optional[Task]:
        """Apply a partial update.

        Only keys present in patch are written; anything absent keeps its
        current value. Returns None, touching nothing, if the task is not
        the caller's.
        """
        owner = await self._owner(identity)
        task = await self._get_owned(owner, task_id)
        if not task:
            return None

        changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
        for field, value in changes.items():
            setattr(task, field, value)

        if changes:
            await self.db.commit()
            logger.info("tasks.updated", task_id=task_id, fields=sorted(changes))
        return task

    # ─── Delete ──────────────────────────────────────────

    async def delete(self, identity: RequestIdentity, task_id: int) -> bool:
        owner = await self._owner(identity)
        result = await self.db.execute(
            delete(Task).where(Task.id == task_id, Task.owner_id == owner.id)
        )
        await self.db.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("tasks.deleted", task_id=task_id)
        return deleted

    async def delete_all(self, identity: RequestIdentity) -> int:
        owner = await self._owner(identity)
        result = await self.db.execute(delete(Task).where(Task.owner_id == owner.id))
        await self.db.commit()
        logger.info("tasks.cleared", count=result.rowcount)
        return result.rowcount
