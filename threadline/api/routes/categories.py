"""
threadline.api.routes.categories — Category tree & moderator endpoints
=======================================================================

Reads are public; creating categories and assigning moderators is admin-only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from threadline.api.deps import get_engine, require_admin
from threadline.engine.authorization import Viewer
from threadline.services import category_service

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    parent_id: int | None = None


class ModeratorAssign(BaseModel):
    user_id: int


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    body: CategoryCreate,
    admin: Viewer = Depends(require_admin),
    engine: Engine = Depends(get_engine),
):
    category = category_service.create_category(
        engine,
        name=body.name,
        parent_id=body.parent_id,
        description=body.description,
    )
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "parent_id": category.parent_id,
    }


@router.get("/{category_id}/descendants")
def get_descendants(category_id: int, engine: Engine = Depends(get_engine)):
    """The category itself plus every category beneath it."""
    ids = category_service.self_and_descendant_category_ids(engine, category_id)
    return {"category_id": category_id, "ids": sorted(ids)}


@router.get("/{category_id}/moderators")
def get_moderators(category_id: int, engine: Engine = Depends(get_engine)):
    return category_service.list_moderators(engine, category_id)


@router.post("/{category_id}/moderators")
def add_moderator(
    category_id: int,
    body: ModeratorAssign,
    admin: Viewer = Depends(require_admin),
    engine: Engine = Depends(get_engine),
):
    created = category_service.assign_moderator(
        engine, user_id=body.user_id, category_id=category_id
    )
    return {"user_id": body.user_id, "category_id": category_id, "created": created}
