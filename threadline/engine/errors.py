"""
threadline.engine.errors — Typed Failures
==========================================

Every failure the core can produce is one of these.  The API layer maps
each to an HTTP status; nothing here is retried or swallowed.
"""

from __future__ import annotations

__all__ = [
    "ThreadlineError",
    "RetrievalError",
    "PostLookupError",
    "DepthExceededError",
    "ContentValidationError",
    "PermissionDeniedError",
    "InvalidStateError",
]


class ThreadlineError(Exception):
    """Base class for all Threadline failures."""


class RetrievalError(ThreadlineError):
    """A fetch for a tree level or a category expansion failed."""


class PostLookupError(ThreadlineError, LookupError):
    """A post, its thread, or the thread's category could not be resolved."""


class DepthExceededError(ThreadlineError, ValueError):
    """A reply would land deeper than the configured maximum depth."""

    def __init__(self, depth: int, max_depth: int) -> None:
        super().__init__(
            f"Reply depth {depth} exceeds the maximum of {max_depth}"
        )
        self.depth = depth
        self.max_depth = max_depth


class ContentValidationError(ThreadlineError, ValueError):
    """Post content is blank or too long."""


class PermissionDeniedError(ThreadlineError):
    """The actor holds none of author, moderator or admin rights for the post."""


class InvalidStateError(ThreadlineError):
    """The post is in the wrong soft-delete state for the requested action."""
