from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from . import models
from .config import Settings
from .database import get_db
from .errors import ValidationError
from .query import ListQuery, Page, SortDirection


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def list_query(
    q: str = Query(default=""),
    sort: Optional[str] = Query(default=None),
    direction: SortDirection = Query(default=SortDirection.ASC),
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    settings: Settings = Depends(get_app_settings),
) -> ListQuery:
    size = page_size or settings.default_page_size
    if size > settings.max_page_size:
        raise ValidationError(
            f"page_size cannot exceed {settings.max_page_size}",
            details={"page_size": f"must be <= {settings.max_page_size}"},
        )
    return ListQuery(q=q, sort=sort, direction=direction, page=page, page_size=size)


def get_actor(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User | None:
    """The user named by the X-User-Id header, used only to attribute activity."""
    if x_user_id is None:
        return None
    user = db.get(models.User, x_user_id)
    if user is None or not user.is_active:
        return None
    return user


def to_page(page: Page, serialize: Callable[[Any], Any]) -> dict:
    return {
        "items": [serialize(item) for item in page.items],
        "total": page.total,
        "total_pages": page.total_pages,
        "page": page.page,
        "page_size": page.page_size,
    }
