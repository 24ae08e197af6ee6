"""
Task repository.

Every read and write is scoped to the caller: lookups filter on both the
task id and the owner id, and a task owned by someone else is reported
exactly like a task that does not exist.
"""

from typing import Any, Dict, List, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from errors import NotFoundError, ValidationError
from logging_config import get_logger
from models import PRIORITIES, Task as DBTask, utcnow
from schemas import TaskDraft, TaskUpdate

logger = get_logger("tasks")

UPDATABLE_FIELDS = ("title", "description", "completed", "priority", "due_date", "estimated_time")

# Fields that may not be cleared with an explicit null
NON_NULLABLE_FIELDS = ("title", "completed", "priority")


def _clean_title(title) -> str:
    if title is None or not str(title).strip():
        raise ValidationError("Title is required", field="title")
    return str(title).strip()


def _check_priority(priority) -> str:
    if priority not in PRIORITIES:
        raise ValidationError(
            f"Priority must be one of: {', '.join(PRIORITIES)}", field="priority"
        )
    return priority


def _build_task(owner_id: int, draft: TaskDraft) -> DBTask:
    return DBTask(
        title=_clean_title(draft.title),
        description=(draft.description or "").strip(),
        priority=_check_priority(draft.priority or "medium"),
        completed=False,
        due_date=draft.due_date,
        estimated_time=(draft.estimated_time or "").strip(),
        created_at=utcnow(),
        owner_id=owner_id,
    )


def _not_found() -> NotFoundError:
    return NotFoundError("Task not found")


def list_tasks(db: Session, owner_id: int) -> List[DBTask]:
    return list(
        db.scalars(select(DBTask).where(DBTask.owner_id == owner_id).order_by(DBTask.id))
    )


def get_task(db: Session, owner_id: int, task_id: int) -> DBTask:
    task = db.scalars(
        select(DBTask).where(DBTask.id == task_id, DBTask.owner_id == owner_id)
    ).first()
    if task is None:
        raise _not_found()
    return task


def create_task(db: Session, owner_id: int, draft: TaskDraft) -> DBTask:
    task = _build_task(owner_id, draft)
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Task created: id={task.id} owner={owner_id}")
    return task


def create_tasks(db: Session, owner_id: int, drafts: Sequence[TaskDraft]) -> List[DBTask]:
    """
    Persist a batch of drafts in order, all or nothing.

    Every draft is validated before the first insert, so an invalid element
    leaves the store untouched.
    """
    tasks = [_build_task(owner_id, draft) for draft in drafts]
    db.add_all(tasks)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    for task in tasks:
        db.refresh(task)
    logger.info(f"Task batch created: count={len(tasks)} owner={owner_id}")
    return tasks


def _patch_values(patch: TaskUpdate) -> Dict[str, Any]:
    values = patch.model_dump(exclude_unset=True)
    for field in NON_NULLABLE_FIELDS:
        if field in values and values[field] is None:
            raise ValidationError(f"{field} cannot be null", field=field)

    if "title" in values:
        values["title"] = _clean_title(values["title"])
    if "priority" in values:
        values["priority"] = _check_priority(values["priority"])
    for field in ("description", "estimated_time"):
        if field in values:
            values[field] = (values[field] or "").strip()
    return {key: value for key, value in values.items() if key in UPDATABLE_FIELDS}


def update_task(db: Session, owner_id: int, task_id: int, patch: TaskUpdate) -> DBTask:
    """
    Apply a partial update to an owned task.

    The write is one conditional UPDATE scoped by owner. Existence is decided
    by the scoped read in the same transaction, since some backends report
    only rows whose values actually changed.
    """
    values = _patch_values(patch)
    scope = (DBTask.id == task_id, DBTask.owner_id == owner_id)

    if values:
        db.execute(
            update(DBTask).where(*scope).values(**values).execution_options(synchronize_session=False)
        )

    task = db.scalars(select(DBTask).where(*scope)).first()
    if task is None:
        db.rollback()
        raise _not_found()
    db.commit()
    db.refresh(task)
    logger.info(f"Task updated: id={task_id} owner={owner_id} fields={sorted(values)}")
    return task


def delete_task(db: Session, owner_id: int, task_id: int) -> None:
    result = db.execute(
        delete(DBTask)
        .where(DBTask.id == task_id, DBTask.owner_id == owner_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise _not_found()
    db.commit()
    logger.info(f"Task deleted: id={task_id} owner={owner_id}")
