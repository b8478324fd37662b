"""
models/membership.py — Group roster and its per-user mirror.

Two tables carry the same (group, user) relationship:

  group_members          authoritative roster, owned by the Group
  user_group_memberships read-optimised mirror, owned by the User

group_service writes both inside one database transaction; the roster wins
whenever they disagree (see group_service.reconcile_memberships).

MemberRole / MemberStatus are defined once here and shared by both tables,
by the transition table in services/membership_machine.py, and by schemas.
Do not duplicate these as plain string constants anywhere else.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fureverhome.app.extensions import db
from fureverhome.app.models.base import enum_column, utcnow


class MemberRole(str, enum.Enum):
    MEMBER    = "member"
    MODERATOR = "moderator"
    ADMIN     = "admin"


class MemberStatus(str, enum.Enum):
    ACTIVE  = "active"
    PENDING = "pending"
    BANNED  = "banned"


class GroupMember(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        enum_column(MemberRole, "member_role_enum"),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    status: Mapped[MemberStatus] = mapped_column(
        enum_column(MemberStatus, "member_status_enum"),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="members",
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupMember group_id={self.group_id} user_id={self.user_id} "
            f"role={self.role.value} status={self.status.value}>"
        )


class UserGroupMembership(db.Model):
    __tablename__ = "user_group_memberships"

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_user_group_memberships_user_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        enum_column(MemberRole, "mirror_role_enum"),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    status: Mapped[MemberStatus] = mapped_column(
        enum_column(MemberStatus, "mirror_status_enum"),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship("User")  # noqa: F821

    group: Mapped["Group"] = relationship("Group")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<UserGroupMembership user_id={self.user_id} group_id={self.group_id} "
            f"role={self.role.value} status={self.status.value}>"
        )
