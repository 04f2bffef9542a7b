from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import DuplicateEmail, InvalidReference, NotFound
from app.core.identifiers import normalize_id
from app.core.query import apply_filters, apply_paging, apply_sort, parse_query_options, project
from app.core.responses import envelope
from app.database import records
from app.database.deps import get_db
from app.database.transaction import transaction
from app.models.user import User
from app.schemas.user import UserOut, UserPayload
from app.services import relationships

router = APIRouter(prefix='/users', tags=['Users'])


def _build_user_out(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode='json', by_alias=True)


def _get_user_or_404(db: Session, user_id: str) -> User:
    try:
        normalized = normalize_id(user_id, 'id')
    except InvalidReference:
        normalized = None
    user = records.find_by_id(db, User, normalized)
    if not user:
        raise NotFound('User not found')
    return user


def ensure_email_unique(db: Session, email: str, exclude_id: Optional[UUID] = None) -> None:
    # The unique index on users.email still catches concurrent inserts.
    if records.find_user_by_email(db, email, exclude_id=exclude_id):
        raise DuplicateEmail()


@router.get('/')
def list_users(
    where: Optional[str] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    count: Optional[str] = None,
    db: Session = Depends(get_db),
):
    options = parse_query_options(where=where, sort=sort, select=select, skip=skip, limit=limit, count=count)
    with transaction(db, 'Failed to fetch users'):
        query = apply_filters(db.query(User), User, options.where)
        if options.count_only:
            return envelope('User count retrieved', {'count': query.count()})
        query = apply_paging(apply_sort(query, User, options.sort), options)
        data = [project(_build_user_out(row), options.select) for row in query.all()]
    return envelope('Users retrieved', data)


@router.post('/', status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserPayload,
    db: Session = Depends(get_db),
):
    with transaction(db, 'Failed to create user', conflict=DuplicateEmail()):
        ensure_email_unique(db, payload.email)
        user = records.insert(db, User(name=payload.name, email=payload.email))
        if payload.pending_tasks:
            relationships.sync_pending_tasks(db, user, payload.pending_tasks)
    return envelope('User created', _build_user_out(user))


@router.get('/{user_id}')
def get_user(
    user_id: str,
    select: Optional[str] = None,
    db: Session = Depends(get_db),
):
    options = parse_query_options(select=select)
    with transaction(db, 'Failed to fetch user'):
        data = project(_build_user_out(_get_user_or_404(db, user_id)), options.select)
    return envelope('User retrieved', data)


@router.put('/{user_id}')
def update_user(
    user_id: str,
    payload: UserPayload,
    db: Session = Depends(get_db),
):
    with transaction(db, 'Failed to update user', conflict=DuplicateEmail()):
        user = _get_user_or_404(db, user_id)
        ensure_email_unique(db, payload.email, exclude_id=user.id)
        user.name = payload.name
        user.email = payload.email
        if payload.pending_tasks is not None:
            relationships.sync_pending_tasks(db, user, payload.pending_tasks)
        else:
            records.save(db, user)
        relationships.propagate_assignee_name(db, user)
    return envelope('User updated', _build_user_out(user))


@router.delete('/{user_id}')
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
):
    with transaction(db, 'Failed to delete user'):
        user = _get_user_or_404(db, user_id)
        deleted = _build_user_out(user)
        relationships.delete_user(db, user)
    return envelope('User deleted', deleted)
