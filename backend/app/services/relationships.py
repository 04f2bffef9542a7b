"""Keeps Task.assignedUser and User.pendingTasks in agreement.

Every write to either side of the task/user relationship goes through this
module. The operations are sequences of single-table statements; the caller
commits the session once the operation returns and rolls back if it raises.
"""
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import UNASSIGNED_NAME
from app.core.errors import ReferenceNotFound
from app.core.identifiers import normalize_id, normalize_id_array
from app.database import records
from app.models.task import Task
from app.models.user import User

logger = logging.getLogger(__name__)


def assign_task(db: Session, task: Task, assigned_user: Any, completed: bool) -> Optional[User]:
    """Set or clear the assignee of ``task``.

    The new assignee's pending set gains the task when ``completed`` is false
    and loses it otherwise; a previous, different assignee always loses it.
    Raises InvalidReference for a malformed reference and ReferenceNotFound
    for an unknown user, in both cases before touching ``task``.

    Returns the resolved assignee or None.
    """
    previous_user_id = task.assigned_user
    user_id = normalize_id(assigned_user, "assignedUser")

    new_user = None
    if user_id is None:
        task.clear_assignee()
    else:
        new_user = records.find_by_id(db, User, user_id)
        if not new_user:
            raise ReferenceNotFound("Assigned user does not exist")
        task.set_assignee(new_user)
        if not completed:
            records.add_pending_task(db, new_user.id, task.id)
        else:
            records.pull_pending_task(db, new_user.id, task.id)

    if previous_user_id is not None and previous_user_id != user_id:
        records.pull_pending_task(db, previous_user_id, task.id)
        logger.debug("Task %s moved from user %s to %s", task.id, previous_user_id, user_id)

    return new_user


def sync_pending_tasks(db: Session, user: User, task_refs: Any) -> list[UUID]:
    """Replace the pending set of ``user`` with ``task_refs``.

    Tasks dropped from the set are unassigned (only if still assigned to this
    user). Tasks in the new list are taken from whoever held them and are
    reopened: ``completed`` is forced to false even for a task that was
    already completed.
    """
    task_ids = normalize_id_array(task_refs, "pendingTasks")
    tasks = records.find_many(db, Task, task_ids)
    if len(tasks) != len(task_ids):
        raise ReferenceNotFound("One or more pending tasks do not exist")

    requested = set(task_ids)
    dropped = [task_id for task_id in user.pending_task_ids if task_id not in requested]
    if dropped:
        records.update_many(
            db,
            Task,
            [Task.id.in_(dropped), Task.assigned_user == user.id],
            {Task.assigned_user: None, Task.assigned_user_name: UNASSIGNED_NAME},
        )

    tasks_by_id = {task.id: task for task in tasks}
    for task_id in task_ids:
        task = tasks_by_id[task_id]
        previous_user_id = task.assigned_user
        if previous_user_id is not None and previous_user_id != user.id:
            records.pull_pending_task(db, previous_user_id, task.id)

        task.set_assignee(user)
        task.completed = False
        records.save(db, task)

    user.pending_task_ids = task_ids
    records.save(db, user)
    logger.debug(
        "Synced pending tasks for user %s: %d kept/added, %d dropped",
        user.id,
        len(task_ids),
        len(dropped),
    )
    return task_ids


def unassign_all_for_user(db: Session, user_id: UUID) -> int:
    count = records.update_many(
        db,
        Task,
        [Task.assigned_user == user_id],
        {Task.assigned_user: None, Task.assigned_user_name: UNASSIGNED_NAME},
    )
    logger.debug("Unassigned %d task(s) from user %s", count, user_id)
    return count


def propagate_assignee_name(db: Session, user: User) -> int:
    """Copy ``user.name`` onto every task assigned to them."""
    return records.update_many(
        db,
        Task,
        [Task.assigned_user == user.id],
        {Task.assigned_user_name: user.name},
    )


def delete_task(db: Session, task: Task) -> None:
    task_id, assigned_user_id = task.id, task.assigned_user
    records.delete(db, task)
    if assigned_user_id is not None:
        records.pull_pending_task(db, assigned_user_id, task_id)


def delete_user(db: Session, user: User) -> None:
    unassign_all_for_user(db, user.id)
    records.delete(db, user)
