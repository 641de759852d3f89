"""
tests/test_viewer_service.py — Viewer Context Loading Tests
=============================================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from threadline.engine.errors import RetrievalError
from threadline.services.viewer_service import load_viewer


class TestLoadViewer:

    def test_moderator_carries_direct_assignments_only(self, db_session, forum):
        viewer = load_viewer(db_session, forum.moderator)
        assert viewer.id == forum.moderator
        assert viewer.username == "moderator"
        assert viewer.moderated_category_ids == frozenset({forum.academics})
        assert viewer.is_moderator
        assert not viewer.is_admin

    def test_admin_flag(self, db_session, forum):
        viewer = load_viewer(db_session, forum.admin)
        assert viewer.is_admin
        assert not viewer.is_moderator

    def test_unknown_user(self, db_session, forum):
        assert load_viewer(db_session, 9999) is None

    def test_database_failure_becomes_retrieval_error(self):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("down"))
        with pytest.raises(RetrievalError):
            load_viewer(session, 1)
