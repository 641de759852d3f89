"""
tests/test_authorization.py — AuthorizationResolver Unit Tests
================================================================
Author / admin / moderator-scope checks against in-memory lookups.
"""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from threadline.database.models import ActingRole
from threadline.engine.authorization import AuthorizationResolver, Viewer
from threadline.engine.categories import CategoryIndex
from threadline.engine.errors import PostLookupError
from threadline.engine.reply_tree import PostNode

# Academics (10) ─── Mathematics (11) ─── Algebra (12)
# Social (20)
CATEGORIES = CategoryIndex([(10, None), (11, 10), (12, 11), (20, None)])
THREAD_CATEGORY = {1: 11, 2: 20}  # thread id → category id

AUTHOR_ID = 500


def _resolver(categories: CategoryIndex = CATEGORIES, max_depth: int = 3) -> AuthorizationResolver:
    def thread_category(thread_id: int) -> int:
        try:
            return THREAD_CATEGORY[thread_id]
        except KeyError:
            raise PostLookupError(f"Unknown thread {thread_id}") from None

    return AuthorizationResolver(
        categories.self_and_descendant_ids, thread_category, max_depth=max_depth
    )


def _post(thread_id: int = 1, depth: int = 0, author_id: int | None = AUTHOR_ID, deleted: bool = False) -> PostNode:
    return PostNode(
        id=77,
        thread_id=thread_id,
        parent_id=None if depth == 0 else 76,
        depth=depth,
        author_id=author_id,
        content="hello",
        deleted_at=datetime(2026, 3, 2) if deleted else None,
    )


AUTHOR = Viewer(id=AUTHOR_ID)
ADMIN = Viewer(id=1, is_admin=True)
ANCESTOR_MOD = Viewer(id=2, moderated_category_ids=frozenset({10}))
DIRECT_MOD = Viewer(id=3, moderated_category_ids=frozenset({11}))
CHILD_MOD = Viewer(id=4, moderated_category_ids=frozenset({12}))
SIBLING_MOD = Viewer(id=5, moderated_category_ids=frozenset({20}))
STRANGER = Viewer(id=6)


class TestCanModerateCategory:

    def test_ancestor_assignment_covers_descendant(self):
        assert _resolver().can_moderate_category(ANCESTOR_MOD, 11) is True
        assert _resolver().can_moderate_category(ANCESTOR_MOD, 12) is True

    def test_unrelated_sibling_assignment_denied(self):
        assert _resolver().can_moderate_category(SIBLING_MOD, 11) is False

    def test_child_assignment_does_not_cover_parent(self):
        assert _resolver().can_moderate_category(CHILD_MOD, 11) is False

    def test_admin_always(self):
        assert _resolver().can_moderate_category(ADMIN, 20) is True

    def test_no_assignments(self):
        assert _resolver().can_moderate_category(STRANGER, 11) is False

    def test_absent_viewer(self):
        assert _resolver().can_moderate_category(None, 11) is False

    def test_assignment_to_missing_category_ignored(self):
        viewer = Viewer(id=9, moderated_category_ids=frozenset({404, 11}))
        resolver = _resolver()
        assert resolver.can_moderate_category(viewer, 12) is True
        assert resolver.moderation_scope(viewer) == frozenset({11, 12})

    def test_scope_computed_once_per_viewer(self):
        lookup = MagicMock(side_effect=CATEGORIES.self_and_descendant_ids)
        resolver = AuthorizationResolver(lookup, THREAD_CATEGORY.__getitem__)

        for _ in range(5):
            resolver.can_moderate_category(ANCESTOR_MOD, 12)

        lookup.assert_called_once_with(10)


class TestModifyDeleteRestore:

    @pytest.mark.parametrize("viewer, expected", [
        (AUTHOR, True),
        (ADMIN, True),
        (ANCESTOR_MOD, True),
        (DIRECT_MOD, True),
        (CHILD_MOD, False),
        (SIBLING_MOD, False),
        (STRANGER, False),
        (None, False),
    ])
    def test_modify_delete_restore_share_one_rule(self, viewer, expected):
        resolver = _resolver()
        post = _post()
        assert resolver.can_modify(viewer, post) is expected
        assert resolver.can_delete(viewer, post) is expected
        assert resolver.can_restore(viewer, post) is expected

    def test_moderator_of_ancestor_may_modify_others_post(self):
        resolver = _resolver()
        post = _post(author_id=999)
        assert resolver.can_moderate_category(ANCESTOR_MOD, 11)
        assert resolver.can_modify(ANCESTOR_MOD, post) is True

    def test_absent_viewer_denied_for_every_post(self):
        resolver = _resolver()
        for post in (_post(), _post(thread_id=2), _post(author_id=None), _post(deleted=True)):
            assert resolver.can_modify(None, post) is False
            assert resolver.can_delete(None, post) is False

    def test_deleted_author_matches_nobody(self):
        resolver = _resolver()
        assert resolver.can_modify(STRANGER, _post(author_id=None)) is False

    @pytest.mark.parametrize("viewer, role", [
        (AUTHOR, ActingRole.AUTHOR),
        (ADMIN, ActingRole.ADMIN),
        (ANCESTOR_MOD, ActingRole.MODERATOR),
        (STRANGER, None),
    ])
    def test_acting_role(self, viewer, role):
        assert _resolver().acting_role(viewer, _post()) == role

    def test_moderator_path_raises_on_unknown_thread(self):
        with pytest.raises(PostLookupError):
            _resolver().can_modify(ANCESTOR_MOD, _post(thread_id=404))

    def test_author_and_admin_need_no_category_lookup(self):
        resolver = _resolver()
        assert resolver.can_modify(AUTHOR, _post(thread_id=404)) is True
        assert resolver.can_modify(ADMIN, _post(thread_id=404)) is True

    def test_category_of_resolves_thread(self):
        resolver = _resolver()
        assert resolver.category_of(_post(thread_id=2)) == 20
        with pytest.raises(PostLookupError):
            resolver.category_of(_post(thread_id=404))


class TestResolveActions:

    def test_active_post_for_moderator(self):
        actions = _resolver().resolve_actions(ANCESTOR_MOD, _post(author_id=999))
        assert actions.can_view
        assert actions.can_modify and actions.can_delete
        assert not actions.can_restore
        assert actions.can_reply
        assert actions.can_moderate

    def test_deleted_post_only_offers_restore(self):
        actions = _resolver().resolve_actions(AUTHOR, _post(deleted=True))
        assert actions.can_view
        assert not actions.can_modify
        assert not actions.can_delete
        assert not actions.can_reply
        assert actions.can_restore

    def test_deleted_post_for_stranger_offers_nothing(self):
        actions = _resolver().resolve_actions(STRANGER, _post(deleted=True))
        assert actions.to_dict() == {
            "can_view": True,
            "can_modify": False,
            "can_delete": False,
            "can_restore": False,
            "can_reply": False,
            "can_moderate": False,
        }

    def test_anonymous_can_only_view(self):
        actions = _resolver().resolve_actions(None, _post())
        assert actions.can_view
        assert not (actions.can_modify or actions.can_delete or actions.can_restore)
        assert not actions.can_reply

    @pytest.mark.parametrize("depth, can_reply", [(0, True), (2, True), (3, False)])
    def test_reply_offered_below_max_depth(self, depth, can_reply):
        actions = _resolver().resolve_actions(STRANGER, _post(depth=depth))
        assert actions.can_reply is can_reply

    def test_reply_limit_follows_configured_depth(self):
        actions = _resolver(max_depth=2).resolve_actions(STRANGER, _post(depth=2))
        assert actions.can_reply is False

    def test_unresolvable_thread_fails_closed(self):
        resolver = _resolver()
        for viewer in (AUTHOR, ADMIN, ANCESTOR_MOD):
            actions = resolver.resolve_actions(viewer, _post(thread_id=404))
            assert not actions.can_modify
            assert not actions.can_delete
            assert not actions.can_moderate
