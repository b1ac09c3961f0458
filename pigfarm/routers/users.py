from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError
from ..models import UserRole
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/users", tags=["users"])


def _get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _ensure_email_free(db: Session, email: str, user_id: int | None = None) -> None:
    q = db.query(models.User).filter(models.User.email == email)
    if user_id is not None:
        q = q.filter(models.User.user_id != user_id)
    if q.first():
        raise ConflictError(f"Email {email} is already registered", details={"email": "already registered"})


@router.get("/", response_model=schemas.Page[schemas.UserOut])
def list_users(
    role: UserRole | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.User)
    if role:
        q = q.filter(models.User.role == role.value)
    if is_active is not None:
        q = q.filter(models.User.is_active.is_(is_active))
    return to_page(views.USERS.apply(q.all(), query), schemas.UserOut.model_validate)


@router.post("/", response_model=schemas.UserOut)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    payload.email = payload.email.strip().lower()
    _ensure_email_free(db, payload.email)

    user = models.User(**payload.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)

    log_activity(
        db, actor, Action.CREATE, Module.USERS,
        entity_id=user.user_id, entity_name=user.email, details={"role": user.role},
    )
    return user


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return _get_user(db, user_id)


@router.patch("/{user_id}", response_model=schemas.UserOut)
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    user = _get_user(db, user_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "name"}
    if "email" in changes:
        changes["email"] = changes["email"].strip().lower()
        _ensure_email_free(db, changes["email"], user_id)

    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)

    log_activity(
        db, actor, Action.UPDATE, Module.USERS,
        entity_id=user.user_id, entity_name=user.email, details=changes,
    )
    return user


@router.delete("/{user_id}", response_model=schemas.DeleteResult)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """Delete a user; their activity log entries keep the email/name snapshot."""
    user = _get_user(db, user_id)
    if actor is not None and actor.user_id == user_id:
        raise ConflictError("Users cannot delete their own account")

    email = user.email
    db.query(models.ActivityLog).filter(models.ActivityLog.user_id == user_id).update(
        {models.ActivityLog.user_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.USERS, entity_id=user_id, entity_name=email)
    return {"deleted_count": 1}
