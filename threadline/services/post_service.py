"""
threadline.services.post_service — Thread Listing & Post Lifecycle
===================================================================

Storage-facing side of the forum core.

Reads
  ``list_thread_posts`` loads a thread's root posts, expands them with
  :func:`~threadline.engine.reply_tree.build_reply_tree` (one ``IN`` query
  per reply level), and annotates every node with the viewer's actions.

Writes
  Every mutation follows the same pattern:
    1. Load the post (``PostLookupError`` if missing)
    2. Resolve the actor's grant (author / admin / moderator)
    3. Check the soft-delete state
    4. Apply the change
    5. Write moderation_log with before/after snapshots
    6. Commit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from threadline.constants import MAX_CONTENT_LENGTH, MAX_REPLY_DEPTH, ROOT_DEPTH
from threadline.database.models import (
    ActingRole,
    ForumThread,
    ModerationAction,
    ModerationLog,
    Post,
)
from threadline.engine.authorization import AuthorizationResolver, PostActions, Viewer
from threadline.engine.categories import CategoryIndex
from threadline.engine.errors import (
    ContentValidationError,
    DepthExceededError,
    InvalidStateError,
    PermissionDeniedError,
    PostLookupError,
    RetrievalError,
)
from threadline.engine.reply_tree import PostNode, build_reply_tree, walk_tree
from threadline.services.category_service import load_category_index

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ThreadListing:
    """A rendered thread: the nested tree plus per-post viewer actions."""

    thread_id: int
    category_id: int
    posts: list[PostNode]
    actions: dict[int, PostActions] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Collaborators for the engine
# ---------------------------------------------------------------------------
def fetch_root_posts(session: Session, thread_id: int) -> list[PostNode]:
    """Root posts of *thread_id*, oldest first."""
    try:
        rows = session.scalars(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.thread_id == thread_id, Post.parent_id.is_(None))
            .order_by(Post.created_at, Post.id)
        ).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load root posts for thread %d", thread_id)
        raise RetrievalError(f"Could not load posts for thread {thread_id}") from exc
    return [PostNode.from_row(row) for row in rows]


def fetch_replies_by_parent_ids(session: Session, parent_ids: set[int]) -> list[PostNode]:
    """All direct replies to *parent_ids* in a single query, oldest first."""
    if not parent_ids:
        return []
    try:
        rows = session.scalars(
            select(Post)
            .options(joinedload(Post.author))
            .where(Post.parent_id.in_(parent_ids))
            .order_by(Post.created_at, Post.id)
        ).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load replies for %d parents", len(parent_ids))
        raise RetrievalError("Could not load replies") from exc
    return [PostNode.from_row(row) for row in rows]


def make_resolver(session: Session, max_depth: int = MAX_REPLY_DEPTH) -> AuthorizationResolver:
    """An :class:`AuthorizationResolver` backed by *session*.

    The category arena is read at most once, and only if some check needs
    moderator scope.  Thread → category lookups are memoized.
    """
    index: CategoryIndex | None = None
    thread_categories: dict[int, int] = {}

    def descendant_ids(category_id: int) -> set[int]:
        nonlocal index
        if index is None:
            index = load_category_index(session)
        return index.self_and_descendant_ids(category_id)

    def thread_category(thread_id: int) -> int:
        if thread_id not in thread_categories:
            try:
                thread = session.get(ForumThread, thread_id)
            except SQLAlchemyError as exc:
                raise RetrievalError(f"Could not load thread {thread_id}") from exc
            if thread is None:
                raise PostLookupError(f"Unknown thread {thread_id}")
            thread_categories[thread_id] = thread.category_id
        return thread_categories[thread_id]

    return AuthorizationResolver(descendant_ids, thread_category, max_depth=max_depth)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
def list_thread_posts(
    engine,
    thread_id: int,
    viewer: Viewer | None,
    *,
    max_depth: int = MAX_REPLY_DEPTH,
) -> ThreadListing:
    """Build the reply tree for *thread_id* and annotate it for *viewer*."""
    with Session(engine) as session:
        thread = session.get(ForumThread, thread_id)
        if thread is None:
            raise PostLookupError(f"Unknown thread {thread_id}")
        category_id = thread.category_id

        roots = fetch_root_posts(session, thread_id)
        tree = build_reply_tree(
            roots,
            lambda parent_ids: fetch_replies_by_parent_ids(session, parent_ids),
            max_depth=max_depth,
        )

        resolver = make_resolver(session, max_depth=max_depth)
        actions = {node.id: resolver.resolve_actions(viewer, node) for node in walk_tree(tree)}

    logger.debug(
        "Thread %d rendered: %d roots, %d posts", thread_id, len(tree), len(actions)
    )
    return ThreadListing(
        thread_id=thread_id,
        category_id=category_id,
        posts=tree,
        actions=actions,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _clean_content(content: str) -> str:
    text = (content or "").strip()
    if not text:
        raise ContentValidationError("Post content must not be blank")
    if len(text) > MAX_CONTENT_LENGTH:
        raise ContentValidationError(f"Post content exceeds {MAX_CONTENT_LENGTH} characters")
    return text


def _post_snapshot(post: Post) -> dict[str, Any]:
    return {
        "id": post.id,
        "thread_id": post.thread_id,
        "parent_id": post.parent_id,
        "depth": post.depth,
        "author_id": post.author_id,
        "content": post.content,
        "deleted_at": post.deleted_at.isoformat() if post.deleted_at else None,
    }


def _log_moderation(
    session: Session,
    *,
    actor: Viewer,
    role: ActingRole,
    action: ModerationAction,
    post: Post,
    before: dict[str, Any],
) -> None:
    """Insert a moderation_log row within the current transaction."""
    session.add(ModerationLog(
        actor_id=actor.id,
        action_type=action.value,
        acted_as=role.value,
        post_id=post.id,
        before_snapshot=before,
        after_snapshot=_post_snapshot(post),
    ))


def _load_post(session: Session, post_id: int) -> Post:
    post = session.get(Post, post_id, options=[joinedload(Post.author)])
    if post is None:
        raise PostLookupError(f"Unknown post {post_id}")
    return post


def _require_role(
    session: Session, viewer: Viewer | None, post: Post, verb: str
) -> ActingRole:
    """Resolve the actor's grant or raise :class:`PermissionDeniedError`.

    An unresolvable thread/category is a denial for every actor, authors
    and admins included, matching :meth:`AuthorizationResolver.resolve_actions`.
    """
    resolver = make_resolver(session)
    try:
        resolver.category_of(post)
        role = resolver.acting_role(viewer, post)
    except PostLookupError as exc:
        logger.warning("Denying %s of post %d: %s", verb, post.id, exc)
        role = None
    if role is None:
        actor = viewer.id if viewer is not None else "anonymous"
        logger.info("User %s may not %s post %d", actor, verb, post.id)
        raise PermissionDeniedError(f"Not allowed to {verb} post {post.id}")
    return role


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_post(
    engine,
    *,
    thread_id: int,
    author: Viewer,
    content: str,
    parent_id: int | None = None,
    max_depth: int = MAX_REPLY_DEPTH,
) -> PostNode:
    """Create a root post, or a reply to *parent_id*.

    Raises
    ------
    PostLookupError
        Unknown thread, or unknown parent / parent in another thread.
    DepthExceededError
        The reply would land deeper than *max_depth*.  Nothing is written.
    InvalidStateError
        The parent is soft-deleted.
    ContentValidationError
        Blank or oversized content.
    """
    text = _clean_content(content)

    with Session(engine, expire_on_commit=False) as session:
        if session.get(ForumThread, thread_id) is None:
            raise PostLookupError(f"Unknown thread {thread_id}")

        depth = ROOT_DEPTH
        if parent_id is not None:
            parent = session.get(Post, parent_id)
            if parent is None or parent.thread_id != thread_id:
                raise PostLookupError(
                    f"Parent post {parent_id} not found in thread {thread_id}"
                )
            if parent.is_deleted:
                raise InvalidStateError(f"Cannot reply to deleted post {parent_id}")
            depth = parent.depth + 1
            if depth > max_depth:
                raise DepthExceededError(depth, max_depth)

        post = Post(
            thread_id=thread_id,
            parent_id=parent_id,
            depth=depth,
            author_id=author.id,
            content=text,
        )
        session.add(post)
        session.commit()
        session.refresh(post)
        node = PostNode.from_row(post)

    logger.info(
        "%s (user %d) created post %d in thread %d (depth %d)",
        author.username, author.id, node.id, thread_id, depth,
    )
    return node


# ---------------------------------------------------------------------------
# Update / soft delete / restore
# ---------------------------------------------------------------------------
def update_post(engine, post_id: int, viewer: Viewer | None, content: str) -> PostNode:
    """Replace the content of an active post."""
    text = _clean_content(content)
    with Session(engine, expire_on_commit=False) as session:
        post = _load_post(session, post_id)
        role = _require_role(session, viewer, post, "edit")
        if post.is_deleted:
            raise InvalidStateError(f"Post {post_id} is deleted")

        before = _post_snapshot(post)
        post.content = text
        post.updated_at = datetime.now(UTC)
        session.flush()
        _log_moderation(
            session, actor=viewer, role=role, action=ModerationAction.UPDATE,
            post=post, before=before,
        )
        session.commit()
        node = PostNode.from_row(post)

    logger.info("Post %d edited by %s (user %d) as %s", post_id, viewer.username, viewer.id, role)
    return node


def soft_delete_post(engine, post_id: int, viewer: Viewer | None) -> PostNode:
    """Mark a post deleted; its replies stay attached."""
    with Session(engine, expire_on_commit=False) as session:
        post = _load_post(session, post_id)
        role = _require_role(session, viewer, post, "delete")
        if post.is_deleted:
            raise InvalidStateError(f"Post {post_id} is already deleted")

        before = _post_snapshot(post)
        post.deleted_at = datetime.now(UTC)
        session.flush()
        _log_moderation(
            session, actor=viewer, role=role, action=ModerationAction.DELETE,
            post=post, before=before,
        )
        session.commit()
        node = PostNode.from_row(post)

    logger.info("Post %d deleted by %s (user %d) as %s", post_id, viewer.username, viewer.id, role)
    return node


def restore_post(engine, post_id: int, viewer: Viewer | None) -> PostNode:
    """Clear the soft-delete marker of a deleted post."""
    with Session(engine, expire_on_commit=False) as session:
        post = _load_post(session, post_id)
        role = _require_role(session, viewer, post, "restore")
        if not post.is_deleted:
            raise InvalidStateError(f"Post {post_id} is not deleted")

        before = _post_snapshot(post)
        post.deleted_at = None
        session.flush()
        _log_moderation(
            session, actor=viewer, role=role, action=ModerationAction.RESTORE,
            post=post, before=before,
        )
        session.commit()
        node = PostNode.from_row(post)

    logger.info("Post %d restored by %s (user %d) as %s", post_id, viewer.username, viewer.id, role)
    return node
