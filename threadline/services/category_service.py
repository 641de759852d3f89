"""
threadline.services.category_service — Category Tree & Moderators
==================================================================

Storage-side helpers for the category forest: loading the arena used for
descendant expansion, creating categories, and granting moderator scope.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from threadline.database.models import Category, ModeratorAssignment, User
from threadline.engine.categories import CategoryIndex
from threadline.engine.errors import PostLookupError, RetrievalError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_category_index(session: Session) -> CategoryIndex:
    """Read every ``(id, parent_id)`` pair into a :class:`CategoryIndex`."""
    try:
        rows = session.execute(select(Category.id, Category.parent_id)).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load category tree")
        raise RetrievalError("Could not load the category tree") from exc
    index = CategoryIndex((row.id, row.parent_id) for row in rows)
    logger.debug("Loaded %d categories", len(index))
    return index


def self_and_descendant_category_ids(engine, category_id: int) -> set[int]:
    """*category_id* plus all of its descendants.

    Raises :class:`PostLookupError` if the category does not exist.
    """
    with Session(engine) as session:
        return load_category_index(session).self_and_descendant_ids(category_id)


def list_moderators(engine, category_id: int) -> list[dict]:
    """Users assigned directly to *category_id* (not inherited ones)."""
    with Session(engine) as session:
        if session.get(Category, category_id) is None:
            raise PostLookupError(f"Unknown category {category_id}")
        rows = session.execute(
            select(User.id, User.username)
            .join(ModeratorAssignment, ModeratorAssignment.user_id == User.id)
            .where(ModeratorAssignment.category_id == category_id)
            .order_by(User.username)
        ).all()
    return [{"id": row.id, "username": row.username} for row in rows]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_category(
    engine,
    *,
    name: str,
    parent_id: int | None = None,
    description: str | None = None,
) -> Category:
    """Insert a category, optionally beneath *parent_id*.

    New categories are always leaves, so the forest stays acyclic.
    """
    with Session(engine, expire_on_commit=False) as session:
        if parent_id is not None and session.get(Category, parent_id) is None:
            raise PostLookupError(f"Unknown parent category {parent_id}")
        category = Category(name=name, parent_id=parent_id, description=description)
        session.add(category)
        session.commit()
        session.refresh(category)
        session.expunge(category)
    logger.info("Created category %d %r (parent=%s)", category.id, name, parent_id)
    return category


def assign_moderator(engine, *, user_id: int, category_id: int) -> bool:
    """Grant *user_id* moderation over *category_id* and its descendants.

    Returns ``False`` when the assignment already existed.
    """
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise PostLookupError(f"Unknown user {user_id}")
        if session.get(Category, category_id) is None:
            raise PostLookupError(f"Unknown category {category_id}")

        existing = session.scalar(
            select(ModeratorAssignment).where(
                ModeratorAssignment.user_id == user_id,
                ModeratorAssignment.category_id == category_id,
            )
        )
        if existing is not None:
            return False

        session.add(ModeratorAssignment(user_id=user_id, category_id=category_id))
        session.commit()
    logger.info("User %d now moderates category %d", user_id, category_id)
    return True
