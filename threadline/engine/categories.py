"""
threadline.engine.categories — Category Arena & Descendant Expansion
=====================================================================

Categories form a forest.  Rather than walking ORM object references, the
whole ``(id, parent_id)`` table is held in a flat arena with a
``children_by_parent`` index, and descendant sets are computed with an
iterative breadth-first walk.  Call depth stays constant no matter how deep
a pathological tree gets.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Iterable

from threadline.engine.errors import PostLookupError

logger = logging.getLogger(__name__)

__all__ = ["CategoryIndex"]


class CategoryIndex:
    """Parent-pointer table plus a parent → children index.

    Build one from ``(category_id, parent_id)`` pairs; ``parent_id`` is
    ``None`` for top-level categories.
    """

    def __init__(self, rows: Iterable[tuple[int, int | None]]) -> None:
        self._parent: dict[int, int | None] = {}
        self._children: dict[int, list[int]] = defaultdict(list)
        for category_id, parent_id in rows:
            self._parent[category_id] = parent_id
            if parent_id is not None:
                self._children[parent_id].append(category_id)

    def __len__(self) -> int:
        return len(self._parent)

    def self_and_descendant_ids(self, category_id: int) -> set[int]:
        """Return *category_id* plus every category beneath it.

        Raises :class:`PostLookupError` for an id not in the arena.  A
        ``seen`` set guards the walk, so a corrupted cyclic parent table
        still terminates.
        """
        if category_id not in self._parent:
            raise PostLookupError(f"Unknown category {category_id}")

        seen: set[int] = {category_id}
        queue: deque[int] = deque([category_id])
        while queue:
            current = queue.popleft()
            for child in self._children.get(current, ()):
                if child in seen:
                    logger.warning(
                        "Category cycle detected at %d (parent %d); skipping.",
                        child, current,
                    )
                    continue
                seen.add(child)
                queue.append(child)
        return seen
