"""
threadline.engine.authorization — Post Authorization Resolver
==============================================================

Decides what a viewer may do with a post.  A viewer may modify, delete or
restore a post when they

1. wrote it,
2. are a global admin, or
3. moderate the post's thread category, either directly or through an
   assignment to any ancestor category.

The viewer context (id, admin flag, direct category assignments) is handed
in per call; nothing is read from process-wide state.  An absent viewer
(``None``) is denied everything except viewing.

Category lookups that fail with :class:`PostLookupError` deny access inside
:meth:`AuthorizationResolver.resolve_actions`; mutation guards get the same
result by calling :meth:`AuthorizationResolver.category_of` first.  The
individual checks let the error propagate so callers that need to
distinguish "not allowed" from "not found" can.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from threadline.constants import MAX_REPLY_DEPTH
from threadline.database.models import ActingRole
from threadline.engine.errors import PostLookupError

logger = logging.getLogger(__name__)

__all__ = ["Viewer", "PostActions", "AuthorizationResolver"]


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Viewer:
    """The authenticated user behind the current request."""

    id: int
    is_admin: bool = False
    moderated_category_ids: frozenset[int] = frozenset()
    username: str | None = None

    @property
    def is_moderator(self) -> bool:
        return bool(self.moderated_category_ids)


@dataclass(frozen=True, slots=True)
class PostActions:
    """Actions offered to a viewer for one post."""

    can_view: bool
    can_modify: bool
    can_delete: bool
    can_restore: bool
    can_reply: bool
    can_moderate: bool

    def to_dict(self) -> dict[str, bool]:
        return {
            "can_view": self.can_view,
            "can_modify": self.can_modify,
            "can_delete": self.can_delete,
            "can_restore": self.can_restore,
            "can_reply": self.can_reply,
            "can_moderate": self.can_moderate,
        }


class PostLike(Protocol):
    id: int
    thread_id: int
    author_id: int | None
    depth: int
    deleted_at: datetime | None


DescendantLookup = Callable[[int], set[int]]
ThreadCategoryLookup = Callable[[int], int]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------
class AuthorizationResolver:
    """Author / admin / moderator-scope checks for posts.

    Parameters
    ----------
    descendant_ids:
        ``category_id -> {category_id, *descendants}``.
    thread_category:
        ``thread_id -> category_id``; raises :class:`PostLookupError` when the
        thread is unknown.
    max_depth:
        Deepest depth a reply may be created at.

    One instance serves one request: moderator scopes are memoized per
    viewer for the lifetime of the resolver.
    """

    def __init__(
        self,
        descendant_ids: DescendantLookup,
        thread_category: ThreadCategoryLookup,
        max_depth: int = MAX_REPLY_DEPTH,
    ) -> None:
        self._descendant_ids = descendant_ids
        self._thread_category = thread_category
        self.max_depth = max_depth
        self._scopes: dict[tuple[int, frozenset[int]], frozenset[int]] = {}

    # -- scope --------------------------------------------------------------
    def moderation_scope(self, viewer: Viewer) -> frozenset[int]:
        """Every category id *viewer* moderates, descendants included."""
        key = (viewer.id, viewer.moderated_category_ids)
        cached = self._scopes.get(key)
        if cached is not None:
            return cached

        scope: set[int] = set()
        for assigned in viewer.moderated_category_ids:
            if assigned in scope:
                continue
            try:
                scope |= self._descendant_ids(assigned)
            except PostLookupError:
                logger.warning(
                    "User %d is assigned to missing category %d; ignoring.",
                    viewer.id, assigned,
                )
        frozen = frozenset(scope)
        self._scopes[key] = frozen
        return frozen

    # -- checks ---------------------------------------------------------------
    def can_moderate_category(self, viewer: Viewer | None, category_id: int) -> bool:
        if viewer is None:
            return False
        if viewer.is_admin:
            return True
        if not viewer.is_moderator:
            return False
        return category_id in self.moderation_scope(viewer)

    def category_of(self, post: PostLike) -> int:
        """The category of *post*'s thread.

        Raises :class:`PostLookupError` when the thread or its category
        cannot be resolved.
        """
        return self._thread_category(post.thread_id)

    def acting_role(self, viewer: Viewer | None, post: PostLike) -> ActingRole | None:
        """The grant that lets *viewer* act on *post*, or ``None``.

        Raises :class:`PostLookupError` if the moderator path needs the
        post's category and it cannot be resolved.
        """
        if viewer is None:
            return None
        if post.author_id is not None and viewer.id == post.author_id:
            return ActingRole.AUTHOR
        if viewer.is_admin:
            return ActingRole.ADMIN
        if not viewer.is_moderator:
            return None
        category_id = self.category_of(post)
        if self.can_moderate_category(viewer, category_id):
            return ActingRole.MODERATOR
        return None

    def can_modify(self, viewer: Viewer | None, post: PostLike) -> bool:
        return self.acting_role(viewer, post) is not None

    def can_delete(self, viewer: Viewer | None, post: PostLike) -> bool:
        return self.can_modify(viewer, post)

    def can_restore(self, viewer: Viewer | None, post: PostLike) -> bool:
        return self.can_modify(viewer, post)

    # -- aggregate ------------------------------------------------------------
    def resolve_actions(self, viewer: Viewer | None, post: PostLike) -> PostActions:
        """Action set for *viewer* on *post*, failing closed on lookup errors.

        Soft-deleted posts only ever offer restore.
        """
        try:
            allowed = self.can_modify(viewer, post)
            moderates = viewer is not None and self.can_moderate_category(
                viewer, self.category_of(post)
            )
        except PostLookupError as exc:
            logger.warning("Denying actions on post %d: %s", post.id, exc)
            allowed = moderates = False

        if post.deleted_at is not None:
            return PostActions(
                can_view=True,
                can_modify=False,
                can_delete=False,
                can_restore=allowed,
                can_reply=False,
                can_moderate=moderates,
            )
        return PostActions(
            can_view=True,
            can_modify=allowed,
            can_delete=allowed,
            can_restore=False,
            can_reply=viewer is not None and post.depth < self.max_depth,
            can_moderate=moderates,
        )
