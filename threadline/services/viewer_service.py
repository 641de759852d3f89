"""
threadline.services.viewer_service — Per-Request Viewer Context
================================================================

Loads the user behind a request together with their direct moderator
assignments and freezes them into a :class:`Viewer`.  The result is passed
explicitly into every authorization check for the rest of the request.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from threadline.database.models import ModeratorAssignment, User
from threadline.engine.authorization import Viewer
from threadline.engine.errors import RetrievalError

logger = logging.getLogger(__name__)


def load_viewer(session: Session, user_id: int) -> Viewer | None:
    """Return the :class:`Viewer` for *user_id*, or ``None`` if the user is gone."""
    try:
        user = session.get(User, user_id)
        if user is None:
            return None
        assigned = session.scalars(
            select(ModeratorAssignment.category_id).where(
                ModeratorAssignment.user_id == user_id
            )
        ).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load viewer %d", user_id)
        raise RetrievalError(f"Could not load user {user_id}") from exc

    return Viewer(
        id=user.id,
        is_admin=bool(user.is_admin),
        moderated_category_ids=frozenset(assigned),
        username=user.username,
    )
