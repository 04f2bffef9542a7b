from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_TASK_LIMIT
from app.core.errors import InvalidReference, NotFound
from app.core.identifiers import normalize_id
from app.core.query import apply_filters, apply_paging, apply_sort, parse_query_options, project
from app.core.responses import envelope
from app.database import records
from app.database.deps import get_db
from app.database.transaction import transaction
from app.models.task import Task
from app.schemas.task import TaskOut, TaskPayload
from app.services import relationships

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"]
)


def build_task_out(task: Task) -> dict:
    return TaskOut.model_validate(task).model_dump(mode="json", by_alias=True)


def get_task_or_404(db: Session, task_id: str) -> Task:
    try:
        normalized = normalize_id(task_id, "id")
    except InvalidReference:
        normalized = None
    task = records.find_by_id(db, Task, normalized)
    if not task:
        raise NotFound("Task not found")
    return task


@router.get("/")
def read_tasks(
    where: Optional[str] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    count: Optional[str] = None,
    db: Session = Depends(get_db)
):
    options = parse_query_options(
        where=where,
        sort=sort,
        select=select,
        skip=skip,
        limit=limit,
        count=count,
        default_limit=DEFAULT_TASK_LIMIT,
    )
    with transaction(db, "Failed to fetch tasks"):
        query = apply_filters(db.query(Task), Task, options.where)
        if options.count_only:
            return envelope("Task count retrieved", {"count": query.count()})
        query = apply_paging(apply_sort(query, Task, options.sort), options)
        data = [project(build_task_out(task), options.select) for task in query.all()]
    return envelope("Tasks retrieved", data)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskPayload,
    db: Session = Depends(get_db)
):
    with transaction(db, "Failed to create task"):
        task = records.insert(db, Task(
            name=payload.name,
            description=payload.description,
            deadline=payload.deadline,
            completed=payload.completed
        ))
        relationships.assign_task(db, task, payload.assigned_user, task.completed)
    return envelope("Task created", build_task_out(task))


@router.get("/{task_id}")
def read_task(
    task_id: str,
    select: Optional[str] = None,
    db: Session = Depends(get_db)
):
    options = parse_query_options(select=select)
    with transaction(db, "Failed to fetch task"):
        data = project(build_task_out(get_task_or_404(db, task_id)), options.select)
    return envelope("Task retrieved", data)


@router.put("/{task_id}")
def update_task(
    task_id: str,
    payload: TaskPayload,
    db: Session = Depends(get_db)
):
    with transaction(db, "Failed to update task"):
        task = get_task_or_404(db, task_id)
        task.name = payload.name
        task.description = payload.description
        task.deadline = payload.deadline
        task.completed = payload.completed
        relationships.assign_task(db, task, payload.assigned_user, task.completed)
        records.save(db, task)
    return envelope("Task updated", build_task_out(task))


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    db: Session = Depends(get_db)
):
    with transaction(db, "Failed to delete task"):
        task = get_task_or_404(db, task_id)
        deleted = build_task_out(task)
        relationships.delete_task(db, task)
    return envelope("Task deleted", deleted)
