"""Owner-scoped persistence for tasks.

Every query issued here carries ``Task.user_id == owner.user_id``; the caller
passes the authenticated identity explicitly on each call.
"""
import logging
from datetime import datetime, timedelta, timezone, date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.errors import TaskNotFound, TaskValidationError
from taskboard.core.security import TokenClaims
from taskboard.models.task import Task, TASK_STATUSES

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

SORTABLE_FIELDS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "title": Task.title,
    "status": Task.status,
}


def parse_task_id(raw: Any) -> Optional[int]:
    """Return the integer id, or None when ``raw`` is not a well-formed id."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str) and raw.isascii() and raw.isdigit():
        value = int(raw)
        return value if value > 0 else None
    return None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_title(title: Optional[str]) -> str:
    if not isinstance(title, str) or not title.strip():
        raise TaskValidationError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise TaskValidationError(f"Title cannot be more than {TITLE_MAX_LENGTH} characters")
    return title.strip()


def _check_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise TaskValidationError(
            f"Description cannot be more than {DESCRIPTION_MAX_LENGTH} characters"
        )
    return description.strip()


class TaskStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(
        self,
        owner: TokenClaims,
        status: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> List[Task]:
        query = select(Task).where(Task.user_id == owner.user_id)
        if status in TASK_STATUSES:
            query = query.where(Task.status == status)

        column = SORTABLE_FIELDS.get(sort_by or "createdAt", Task.created_at)
        descending = (sort_order or "desc") == "desc"
        # id breaks ties between rows sharing a timestamp
        if descending:
            query = query.order_by(column.desc(), Task.id.desc())
        else:
            query = query.order_by(column.asc(), Task.id.asc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(
        self,
        owner: TokenClaims,
        title: Optional[str],
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Task:
        task = Task(
            title=_check_title(title),
            description=_check_description(description),
            status="todo",
            due_date=_as_utc(due_date),
            user_id=owner.user_id,
        )
        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info("User %s created task %s", owner.user_id, task.id)
        return task

    async def _owned(self, owner: TokenClaims, task_id: Any) -> Task:
        parsed = parse_task_id(task_id)
        if parsed is None:
            raise TaskNotFound(task_id)
        result = await self.db.execute(
            select(Task).where(Task.id == parsed, Task.user_id == owner.user_id)
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def get(self, owner: TokenClaims, task_id: Any) -> Task:
        return await self._owned(owner, task_id)

    async def update(self, owner: TokenClaims, task_id: Any, patch: Dict[str, Any]) -> Task:
        # Validate the whole patch before touching the row.
        changes: Dict[str, Any] = {}
        if "title" in patch:
            changes["title"] = _check_title(patch["title"])
        if "description" in patch:
            changes["description"] = _check_description(patch["description"])
        if "status" in patch:
            if patch["status"] not in TASK_STATUSES:
                raise TaskValidationError("Invalid status")
            changes["status"] = patch["status"]
        if "dueDate" in patch:
            changes["due_date"] = _as_utc(patch["dueDate"])

        task = await self._owned(owner, task_id)
        for key, value in changes.items():
            setattr(task, key, value)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info("User %s updated task %s (%s)", owner.user_id, task.id, ", ".join(changes) or "no fields")
        return task

    async def remove(self, owner: TokenClaims, task_id: Any) -> Task:
        task = await self._owned(owner, task_id)
        await self.db.delete(task)
        await self.db.commit()
        logger.info("User %s deleted task %s", owner.user_id, task.id)
        return task

    async def stats(self, owner: TokenClaims, days: int = 7, today: Optional[date] = None) -> Dict[str, Any]:
        """Numbers behind the dashboard charts, computed over the caller's tasks."""
        tasks = await self.list(owner)
        now = datetime.now(timezone.utc)
        today = today or now.date()

        by_status = {status: 0 for status in TASK_STATUSES}
        for task in tasks:
            by_status[task.status] = by_status.get(task.status, 0) + 1
        total = len(tasks)
        done = by_status["done"]

        overdue = sum(
            1 for task in tasks
            if task.status != "done" and task.due_date is not None and _as_utc(task.due_date) < now
        )

        created_on = [_as_utc(task.created_at).date() for task in tasks]
        window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        created_per_day = []
        completion_rate_per_day = []
        for day in window:
            created_per_day.append({
                "date": day.isoformat(),
                "tasks": sum(1 for created in created_on if created == day),
            })
            upto = [task for task, created in zip(tasks, created_on) if created <= day]
            completed = sum(1 for task in upto if task.status == "done")
            rate = round(completed / len(upto) * 100) if upto else 0
            completion_rate_per_day.append({"date": day.isoformat(), "completionRate": rate})

        return {
            "total_tasks": total,
            "by_status": by_status,
            "completion_percentage": round(done / total * 100) if total else 0,
            "overdue_tasks": overdue,
            "created_per_day": created_per_day,
            "completion_rate_per_day": completion_rate_per_day,
        }
