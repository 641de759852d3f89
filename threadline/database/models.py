"""
threadline.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- users                  — Forum members (``is_admin`` grants global rights)
- categories             — Category forest (``parent_id`` self-reference)
- moderator_assignments  — (user, category) moderation grants
- threads                — Conversation threads, one category each
- posts                  — Root posts and replies, soft-deletable
- moderation_log         — Append-only audit trail of edits/deletes/restores

Posts reference their parent **by id only**.  There is deliberately no
``Post.parent`` / ``Post.replies`` relationship: the nested reply view is
built per read by :mod:`threadline.engine.reply_tree`.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from threadline.constants import MAX_REPLY_DEPTH


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Threadline ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ModerationAction(enum.StrEnum):
    """Post mutations recorded in moderation_log."""
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


class ActingRole(enum.StrEnum):
    """Which grant allowed the actor to touch the post."""
    AUTHOR = "AUTHOR"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    moderator_assignments: Mapped[list[ModeratorAssignment]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} admin={self.is_admin}>"


# ---------------------------------------------------------------------------
# Categories — a forest; descendants resolved by engine.categories
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("categories.id", ondelete="RESTRICT"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_categories_parent", "parent_id"),
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_categories_not_self_parent"),
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} parent={self.parent_id}>"


# ---------------------------------------------------------------------------
# ModeratorAssignment — scope over a category and all of its descendants
# ---------------------------------------------------------------------------
class ModeratorAssignment(Base):
    __tablename__ = "moderator_assignments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="moderator_assignments")

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_moderator_user_category"),
    )

    def __repr__(self) -> str:
        return f"<ModeratorAssignment user={self.user_id} category={self.category_id}>"


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------
class ForumThread(Base):
    __tablename__ = "threads"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    author_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_threads_category", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<ForumThread id={self.id} title={self.title!r} category={self.category_id}>"


# ---------------------------------------------------------------------------
# Posts — root posts (parent_id NULL, depth 0) and replies (depth 1..3)
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("posts.id", ondelete="RESTRICT"), default=None
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    author_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    # Many-to-one only; never a collection back to the children.
    thread: Mapped[ForumThread] = relationship()
    author: Mapped[User | None] = relationship()

    __table_args__ = (
        Index("ix_posts_thread_root", "thread_id", "parent_id", "created_at"),
        Index("ix_posts_parent_created", "parent_id", "created_at"),
        CheckConstraint(
            f"depth >= 0 AND depth <= {MAX_REPLY_DEPTH}", name="ck_posts_depth_range"
        ),
        CheckConstraint(
            "(parent_id IS NULL AND depth = 0) OR (parent_id IS NOT NULL AND depth > 0)",
            name="ck_posts_root_depth",
        ),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"<Post id={self.id} thread={self.thread_id} parent={self.parent_id} "
            f"depth={self.depth} deleted={self.is_deleted}>"
        )


# ---------------------------------------------------------------------------
# ModerationLog — append-only audit of post mutations
# ---------------------------------------------------------------------------
class ModerationLog(Base):
    __tablename__ = "moderation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    acted_as: Mapped[str] = mapped_column(String(20), nullable=False)
    post_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_moderation_log_post_time", "post_id", "timestamp"),
        Index("ix_moderation_log_actor_time", "actor_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<ModerationLog id={self.id} actor={self.actor_id} "
            f"action={self.action_type} post={self.post_id}>"
        )
