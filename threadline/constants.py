"""
threadline.constants — Shared Constants
=========================================

Single source of truth for the reply depth ceiling and the labels shown in
place of removed authors and removed content.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Reply depth — roots sit at depth 0, the deepest reply at depth 3
# ---------------------------------------------------------------------------
MAX_REPLY_DEPTH = 3
ROOT_DEPTH = 0

# ---------------------------------------------------------------------------
# Presentation fallbacks
# ---------------------------------------------------------------------------
DELETED_USER_LABEL = "Deleted User"
DELETED_CONTENT_PLACEHOLDER = "[This post has been deleted]"

MAX_CONTENT_LENGTH = 10_000
