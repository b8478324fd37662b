"""
models/group.py — Group table definition.

No business logic. No imports from services or routes.

The roster (group_members) is the authoritative membership record.
`member_count` is a stored counter maintained by group_service alongside every
roster transition; it always equals the number of active roster rows.
`admins` / `moderators` are not stored: they are derived from roster roles
(see services/permissions.py).

FK policy: created_by_id ON DELETE SET NULL — deleting the creator keeps the
(soft-deleted) group row for history; admin_service clears the pointer.
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
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fureverhome.app.extensions import db
from fureverhome.app.models.base import enum_column, utcnow


class GroupPrivacy(str, enum.Enum):
    PUBLIC  = "public"
    PRIVATE = "private"


# Descriptive classifications; validated by schemas, never branched on.
GROUP_TYPES: tuple[str, ...] = ("individual", "community", "ngo", "shelter", "rescue")
GROUP_CATEGORIES: tuple[str, ...] = (
    "general",
    "adoption",
    "rescue",
    "training",
    "health",
    "breed-specific",
    "local",
)


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
        CheckConstraint("member_count >= 0", name="ck_groups_member_count_nonnegative"),
        CheckConstraint("max_members_limit >= 0", name="ck_groups_max_members_nonnegative"),
        Index("idx_groups_type_category", "type", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name:        Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)

    type:     Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="general")

    privacy: Mapped[GroupPrivacy] = mapped_column(
        enum_column(GroupPrivacy, "group_privacy_enum"),
        nullable=False,
        default=GroupPrivacy.PUBLIC,
        index=True,
    )

    location_city:    Mapped[str | None] = mapped_column(String(100))
    location_state:   Mapped[str | None] = mapped_column(String(100))
    location_country: Mapped[str | None] = mapped_column(String(100))

    avatar:      Mapped[str | None] = mapped_column(String(1024))
    cover_image: Mapped[str | None] = mapped_column(String(1024))

    tags:         Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    rules:        Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    contact_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
    )

    # ── Settings ───────────────────────────────────────────────────────────
    allow_member_posts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    require_approval:   Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_invites:      Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_file_uploads: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # 0 means no limit.
    max_members_limit:  Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Counters ───────────────────────────────────────────────────────────
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Number of posts currently in the 'active' state.
    total_posts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pets_helped:    Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_adoptions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Soft delete flag; inactive groups behave as not found.
    is_active:   Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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

    creator: Mapped["User | None"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by_id],
    )

    members: Mapped[list["GroupMember"]] = relationship(  # noqa: F821
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.joined_at",
    )

    posts: Mapped[list["GroupPost"]] = relationship(  # noqa: F821
        "GroupPost",
        viewonly=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r} privacy={self.privacy.value}>"
