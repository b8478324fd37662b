"""
models/post.py — GroupPost and its engagement child tables.

No business logic. No imports from services or routes.

Engagement counters (likes_count, comments_count, shares_count) are stored
columns maintained by post_service with explicit increments/decrements next to
the child-row insert/delete. comments_count counts top-level comments only;
replies are comments with a parent_id.

`counted_in_stats` records whether this post is currently contributing to
Group.total_posts, so the counter can be adjusted exactly once per transition
into or out of the 'active' state.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fureverhome.app.extensions import db
from fureverhome.app.models.base import enum_column, utcnow


class PostStatus(str, enum.Enum):
    ACTIVE           = "active"
    PENDING_APPROVAL = "pending-approval"
    ARCHIVED         = "archived"
    REMOVED          = "removed"


class PostVisibility(str, enum.Enum):
    PUBLIC       = "public"
    MEMBERS_ONLY = "members-only"
    ADMINS_ONLY  = "admins-only"


class FlagStatus(str, enum.Enum):
    PENDING   = "pending"
    RESOLVED  = "resolved"
    DISMISSED = "dismissed"


POST_TYPES: tuple[str, ...] = (
    "text",
    "pet-share",
    "adoption-success",
    "help-request",
    "event",
    "resource",
)
POST_PRIORITIES: tuple[str, ...] = ("low", "normal", "high", "urgent")
SHARE_TARGETS: tuple[str, ...] = ("profile", "group", "external")
FLAG_REASONS: tuple[str, ...] = ("spam", "inappropriate", "misleading", "other")


class GroupPost(db.Model):
    __tablename__ = "group_posts"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(content)) > 0",
            name="ck_group_posts_content_nonempty",
        ),
        CheckConstraint("likes_count >= 0", name="ck_group_posts_likes_nonnegative"),
        CheckConstraint("comments_count >= 0", name="ck_group_posts_comments_nonnegative"),
        Index("idx_group_posts_group_status", "group_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type:    Mapped[str] = mapped_column(String(32), nullable=False, default="text")
    title:   Mapped[str | None] = mapped_column(String(200))
    content: Mapped[str] = mapped_column(Text, nullable=False)

    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    videos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    related_pet_id: Mapped[int | None] = mapped_column(
        ForeignKey("pets.id", ondelete="SET NULL"),
    )

    location: Mapped[str | None] = mapped_column(String(255))
    tags:     Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="normal")

    event_details: Mapped[dict | None] = mapped_column(JSON)
    help_request:  Mapped[dict | None] = mapped_column(JSON)

    visibility: Mapped[PostVisibility] = mapped_column(
        enum_column(PostVisibility, "post_visibility_enum"),
        nullable=False,
        default=PostVisibility.PUBLIC,
    )

    status: Mapped[PostStatus] = mapped_column(
        enum_column(PostStatus, "post_status_enum"),
        nullable=False,
        default=PostStatus.ACTIVE,
    )

    is_pinned:       Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_announcement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    views:          Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    likes_count:    Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shares_count:   Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    counted_in_stats: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    author: Mapped["User"] = relationship("User")  # noqa: F821

    related_pet: Mapped["Pet | None"] = relationship("Pet")  # noqa: F821

    likes: Mapped[list["PostLike"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
    )

    comments: Mapped[list["PostComment"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PostComment.created_at",
    )

    shares: Mapped[list["PostShare"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
    )

    flags: Mapped[list["PostFlag"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GroupPost id={self.id} group_id={self.group_id} status={self.status.value}>"


class PostLike(db.Model):
    __tablename__ = "post_likes"

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("group_posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    post: Mapped[GroupPost] = relationship(back_populates="likes")


class PostComment(db.Model):
    __tablename__ = "post_comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("group_posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL for top-level comments; replies point at their top-level comment.
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("post_comments.id", ondelete="CASCADE"),
        index=True,
    )
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    post: Mapped[GroupPost] = relationship(back_populates="comments")
    user: Mapped["User"] = relationship("User")  # noqa: F821

    replies: Mapped[list["PostComment"]] = relationship(
        "PostComment",
        cascade="all, delete-orphan",
        order_by="PostComment.created_at",
    )


class PostShare(db.Model):
    __tablename__ = "post_shares"

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("group_posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    shared_to: Mapped[str] = mapped_column(String(16), nullable=False, default="profile")
    target_group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    post: Mapped[GroupPost] = relationship(back_populates="shares")


class PostFlag(db.Model):
    __tablename__ = "post_flags"

    __table_args__ = (
        UniqueConstraint("post_id", "flagged_by_id", name="uq_post_flags_post_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("group_posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    flagged_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason:      Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    status: Mapped[FlagStatus] = mapped_column(
        enum_column(FlagStatus, "flag_status_enum"),
        nullable=False,
        default=FlagStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    post: Mapped[GroupPost] = relationship(back_populates="flags")
