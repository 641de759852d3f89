"""
threadline.engine.reply_tree — Level-Batched Reply Tree Builder
================================================================

Turns the flat ``posts`` table into a nested tree without one query per
node.  Starting from a thread's root posts, each pass collects the ids of
the posts attached in the previous pass and asks the fetcher for all of
their replies in ONE call, then groups the result by ``parent_id``.

Cost: one fetch per level, so at most ``max_depth`` fetches regardless of
how wide the thread is.  Posts at ``max_depth`` always end up with an empty
``replies`` list; rows below that level are never requested.

The builder knows nothing about SQL.  It takes a fetcher callable (see
:data:`ReplyFetcher`) and returns fresh :class:`PostNode` values, so nodes
never point back at their parent and no ORM state leaks into the tree.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING

from threadline.constants import MAX_REPLY_DEPTH
from threadline.engine.errors import RetrievalError

if TYPE_CHECKING:
    from threadline.database.models import Post

logger = logging.getLogger(__name__)

__all__ = ["PostNode", "ReplyFetcher", "build_reply_tree", "walk_tree"]


# ---------------------------------------------------------------------------
# PostNode — one owned node of the per-read tree
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class PostNode:
    """A post as it appears in a rendered thread.

    ``replies`` is ordered by creation time and owned by this node;
    the parent is referenced only through ``parent_id``.
    """

    id: int
    thread_id: int
    parent_id: int | None
    depth: int
    author_id: int | None
    content: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    author_name: str | None = None
    replies: list[PostNode] = field(default_factory=list)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def from_row(cls, post: Post) -> PostNode:
        """Copy the columns of an ORM ``Post`` (author eagerly loaded)."""
        author = post.author
        return cls(
            id=post.id,
            thread_id=post.thread_id,
            parent_id=post.parent_id,
            depth=post.depth,
            author_id=post.author_id,
            content=post.content,
            created_at=post.created_at,
            updated_at=post.updated_at,
            deleted_at=post.deleted_at,
            author_name=author.username if author is not None else None,
        )


#: ``fetch(parent_ids) -> replies``; replies ordered by creation time ascending.
ReplyFetcher = Callable[[set[int]], Sequence[PostNode]]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------
def build_reply_tree(
    roots: Sequence[PostNode],
    fetch_replies: ReplyFetcher,
    max_depth: int = MAX_REPLY_DEPTH,
) -> list[PostNode]:
    """Attach replies to *roots*, one batched fetch per level.

    Parameters
    ----------
    roots:
        A thread's root posts, oldest first.  They are copied, so the
        caller's objects are left untouched.
    fetch_replies:
        Called once per level with the set of ids attached at the previous
        level.
    max_depth:
        Deepest depth that may appear in the result (roots are depth 0).

    Raises
    ------
    RetrievalError
        If any fetch fails.  Nothing is returned in that case, not even the
        levels already attached.
    ValueError
        If *max_depth* is negative.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")

    tree = [replace(root, replies=[]) for root in roots]
    frontier: list[PostNode] = tree
    level = 0

    while frontier and level < max_depth:
        parent_ids = {node.id for node in frontier}
        try:
            fetched = fetch_replies(parent_ids)
        except RetrievalError:
            raise
        except Exception as exc:
            logger.exception(
                "Reply fetch failed at level %d for %d parents", level + 1, len(parent_ids)
            )
            raise RetrievalError(
                f"Failed to fetch replies at level {level + 1}"
            ) from exc

        by_parent: dict[int, list[PostNode]] = defaultdict(list)
        for reply in fetched:
            if reply.parent_id not in parent_ids:
                logger.warning(
                    "Fetcher returned post %d for unrequested parent %s; dropping.",
                    reply.id, reply.parent_id,
                )
                continue
            by_parent[reply.parent_id].append(replace(reply, replies=[]))

        next_frontier: list[PostNode] = []
        for node in frontier:
            children = by_parent.get(node.id, [])
            for child in children:
                if child.depth != node.depth + 1:
                    logger.warning(
                        "Post %d stored at depth %d under post %d (depth %d); using %d.",
                        child.id, child.depth, node.id, node.depth, node.depth + 1,
                    )
                    child.depth = node.depth + 1
            node.replies = children
            next_frontier.extend(children)

        logger.debug(
            "Reply tree level %d: %d parents → %d replies",
            level + 1, len(frontier), len(next_frontier),
        )
        frontier = next_frontier
        level += 1

    return tree


def walk_tree(nodes: Sequence[PostNode]) -> Iterator[PostNode]:
    """Yield every node depth-first, in display order, without recursion."""
    stack: list[PostNode] = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.replies))
