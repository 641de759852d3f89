"""
Threadline — Bounded-Depth Threaded Discussions with Category Moderation
=========================================================================
Renders a forum thread as a nested reply tree (at most three reply levels
deep) and decides, per viewer, who may edit, delete or restore each post.
Moderators are assigned to categories and inherit every sub-category below.

Package layout::

    threadline/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Depth ceiling, placeholder labels
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (users, categories, threads, posts)
    ├── engine/
    │   ├── errors.py        # Typed failures surfaced to the API layer
    │   ├── categories.py    # Category arena + breadth-first descendant walk
    │   ├── reply_tree.py    # Level-batched reply tree builder
    │   └── authorization.py # Author / admin / moderator-scope resolver
    ├── services/
    │   ├── post_service.py      # Listing, create, edit, soft delete, restore
    │   ├── category_service.py  # Category tree + moderator assignments
    │   └── viewer_service.py    # Load the per-request viewer context
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → viewer, engine, config
        └── routes/        # Thread, post and category endpoints
"""

__version__ = "0.1.0"
