"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

Posted and adopted pets are not mirrored on the user row; they are the
reverse side of Pet.posted_by_id / Pet.adopted_by_id. Group membership is
mirrored in user_group_memberships (see models/membership.py).
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fureverhome.app.extensions import db
from fureverhome.app.models.base import enum_column, utcnow


class UserRole(str, enum.Enum):
    USER  = "user"
    ADMIN = "admin"


DEFAULT_NOTIFICATION_SETTINGS: dict[str, bool] = {
    "email_notifications": True,
    "push_notifications":  True,
    "adoption_updates":    True,
    "new_messages":        True,
    "community_updates":   False,
    "marketing_emails":    False,
}


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        # Also enforced by the marshmallow schema; the schema is the primary gate.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_users_name_nonempty",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    phone:    Mapped[str | None] = mapped_column(String(50))
    location: Mapped[str | None] = mapped_column(String(255))
    avatar:   Mapped[str | None] = mapped_column(String(1024))

    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role_enum"),
        nullable=False,
        default=UserRole.USER,
    )

    # Deactivated accounts cannot log in; rows are kept for history.
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    login_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login:  Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    notification_settings: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: dict(DEFAULT_NOTIFICATION_SETTINGS),
    )

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
    # Read-only navigation — no logic here.

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    posted_pets: Mapped[list["Pet"]] = relationship(  # noqa: F821
        "Pet",
        foreign_keys="[Pet.posted_by_id]",
        viewonly=True,
    )

    adopted_pets: Mapped[list["Pet"]] = relationship(  # noqa: F821
        "Pet",
        foreign_keys="[Pet.adopted_by_id]",
        viewonly=True,
    )

    # Denormalized mirror of the group rosters; group_service keeps it in sync.
    group_memberships: Mapped[list["UserGroupMembership"]] = relationship(  # noqa: F821
        "UserGroupMembership",
        viewonly=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r} role={self.role.value}>"
