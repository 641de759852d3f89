"""
threadline.api.routes.posts — Thread listing and post lifecycle endpoints
==========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from threadline.api.deps import get_config, get_current_viewer, get_engine, require_viewer
from threadline.config import ThreadlineConfig
from threadline.constants import MAX_CONTENT_LENGTH
from threadline.database.engine import run_db
from threadline.engine.authorization import PostActions, Viewer
from threadline.engine.reply_tree import PostNode
from threadline.services import post_service

router = APIRouter(tags=["posts"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PostCreate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    parent_id: int | None = None


class PostUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _post_dict(
    node: PostNode,
    cfg: ThreadlineConfig,
    actions: dict[int, PostActions] | None = None,
) -> dict:
    """Serialize *node* and its replies; soft-deleted content is replaced."""
    author = (
        {"id": node.author_id, "username": node.author_name}
        if node.author_id is not None
        else None
    )
    body = {
        "id": node.id,
        "thread_id": node.thread_id,
        "parent_id": node.parent_id,
        "depth": node.depth,
        "author": author,
        "author_label": node.author_name if author else cfg.deleted_user_label,
        "visible_content": (
            cfg.deleted_content_placeholder if node.is_deleted else node.content
        ),
        "is_deleted": node.is_deleted,
        "created_at": node.created_at.isoformat() if node.created_at else None,
        "updated_at": node.updated_at.isoformat() if node.updated_at else None,
        "deleted_at": node.deleted_at.isoformat() if node.deleted_at else None,
        "replies": [_post_dict(child, cfg, actions) for child in node.replies],
    }
    if actions is not None and node.id in actions:
        body.update(actions[node.id].to_dict())
    return body


# ---------------------------------------------------------------------------
# GET /threads/{thread_id}/posts
# ---------------------------------------------------------------------------
@router.get("/threads/{thread_id}/posts")
async def list_posts(
    thread_id: int,
    viewer: Viewer | None = Depends(get_current_viewer),
    engine: Engine = Depends(get_engine),
    cfg: ThreadlineConfig = Depends(get_config),
):
    """Nested reply tree for a thread, annotated with the viewer's actions."""
    listing = await run_db(
        post_service.list_thread_posts,
        engine,
        thread_id,
        viewer,
        max_depth=cfg.max_reply_depth,
    )
    return {
        "thread_id": listing.thread_id,
        "category_id": listing.category_id,
        "max_depth": cfg.max_reply_depth,
        "posts": [_post_dict(node, cfg, listing.actions) for node in listing.posts],
    }


# ---------------------------------------------------------------------------
# POST /threads/{thread_id}/posts
# ---------------------------------------------------------------------------
@router.post("/threads/{thread_id}/posts", status_code=status.HTTP_201_CREATED)
async def create_post(
    thread_id: int,
    body: PostCreate,
    viewer: Viewer = Depends(require_viewer),
    engine: Engine = Depends(get_engine),
    cfg: ThreadlineConfig = Depends(get_config),
):
    node = await run_db(
        post_service.create_post,
        engine,
        thread_id=thread_id,
        author=viewer,
        content=body.content,
        parent_id=body.parent_id,
        max_depth=cfg.max_reply_depth,
    )
    return _post_dict(node, cfg)


# ---------------------------------------------------------------------------
# PATCH / DELETE /posts/{post_id}, POST /posts/{post_id}/restore
# ---------------------------------------------------------------------------
@router.patch("/posts/{post_id}")
async def update_post(
    post_id: int,
    body: PostUpdate,
    viewer: Viewer = Depends(require_viewer),
    engine: Engine = Depends(get_engine),
    cfg: ThreadlineConfig = Depends(get_config),
):
    node = await run_db(post_service.update_post, engine, post_id, viewer, body.content)
    return _post_dict(node, cfg)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    viewer: Viewer = Depends(require_viewer),
    engine: Engine = Depends(get_engine),
):
    await run_db(post_service.soft_delete_post, engine, post_id, viewer)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/posts/{post_id}/restore")
async def restore_post(
    post_id: int,
    viewer: Viewer = Depends(require_viewer),
    engine: Engine = Depends(get_engine),
    cfg: ThreadlineConfig = Depends(get_config),
):
    node = await run_db(post_service.restore_post, engine, post_id, viewer)
    return _post_dict(node, cfg)
