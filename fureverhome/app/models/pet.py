"""
models/pet.py — Pet listing and its like/report child tables.

No business logic. No imports from services or routes.

Adoption fields move together: adopted_by_id is set ⇔ status = 'adopted'
⇔ adopted_at is set. pet_service._mark_adopted is the only writer.

FK policy:
  - posted_by_id  ON DELETE CASCADE  — a listing belongs to its poster.
  - adopted_by_id ON DELETE RESTRICT — adoption history blocks user deletion.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fureverhome.app.extensions import db
from fureverhome.app.models.base import enum_column, utcnow


class PetStatus(str, enum.Enum):
    AVAILABLE = "available"
    PENDING   = "pending"
    ADOPTED   = "adopted"


class OriginType(str, enum.Enum):
    OWNED = "owned"
    STRAY = "stray"


PET_CATEGORIES: tuple[str, ...] = ("dog", "cat", "bird", "rabbit", "other")
PET_SIZES: tuple[str, ...] = ("small", "medium", "large")
PET_GENDERS: tuple[str, ...] = ("male", "female")
URGENCY_LEVELS: tuple[str, ...] = ("low", "medium", "high")
ACTIVITY_LEVELS: tuple[str, ...] = ("low", "moderate", "high")
REPORT_REASONS: tuple[str, ...] = ("spam", "inappropriate", "scam", "duplicate", "other")


class Pet(db.Model):
    __tablename__ = "pets"

    __table_args__ = (
        CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_pets_name_nonempty"),
        CheckConstraint("age >= 0", name="ck_pets_age_nonnegative"),
        CheckConstraint("adoption_fee >= 0", name="ck_pets_fee_nonnegative"),
        CheckConstraint(
            "(status = 'adopted') = (adopted_by_id IS NOT NULL)",
            name="ck_pets_adoption_consistent",
        ),
        Index("idx_pets_status_category", "status", "category"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name:     Mapped[str] = mapped_column(String(100), nullable=False)
    breed:    Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    # Years; fractional ages are allowed for young animals.
    age:    Mapped[float] = mapped_column(Float, nullable=False)
    size:   Mapped[str] = mapped_column(String(16), nullable=False)
    color:  Mapped[str | None] = mapped_column(String(50))
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    weight: Mapped[float | None] = mapped_column(Float)

    vaccinated:     Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    neutered:       Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    health_details: Mapped[str | None] = mapped_column(String(1000))
    dietary_needs:  Mapped[str | None] = mapped_column(String(500))

    status: Mapped[PetStatus] = mapped_column(
        enum_column(PetStatus, "pet_status_enum"),
        nullable=False,
        default=PetStatus.AVAILABLE,
        index=True,
    )

    adoption_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    origin_type: Mapped[OriginType] = mapped_column(
        enum_column(OriginType, "origin_type_enum"),
        nullable=False,
        default=OriginType.OWNED,
    )
    found_location: Mapped[str | None] = mapped_column(String(255))
    found_date:     Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    urgency:        Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    posted_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    adopted_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        index=True,
    )
    adopted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    photos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    videos: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    location:       Mapped[str] = mapped_column(String(255), nullable=False)
    temperament:    Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    good_with:      Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    activity_level: Mapped[str | None] = mapped_column(String(16))
    special_needs:  Mapped[str | None] = mapped_column(String(500))
    description:    Mapped[str] = mapped_column(Text, nullable=False)

    contact_phone: Mapped[str | None] = mapped_column(String(50))
    contact_email: Mapped[str | None] = mapped_column(String(255))

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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

    poster: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[posted_by_id],
    )

    adopter: Mapped["User | None"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[adopted_by_id],
    )

    likes: Mapped[list["PetLike"]] = relationship(
        back_populates="pet",
        cascade="all, delete-orphan",
    )

    reports: Mapped[list["PetReport"]] = relationship(
        back_populates="pet",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Pet id={self.id} name={self.name!r} status={self.status.value}>"


class PetLike(db.Model):
    __tablename__ = "pet_likes"

    __table_args__ = (
        UniqueConstraint("pet_id", "user_id", name="uq_pet_likes_pet_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    pet_id: Mapped[int] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    pet: Mapped[Pet] = relationship(back_populates="likes")


class PetReport(db.Model):
    __tablename__ = "pet_reports"

    id: Mapped[int] = mapped_column(primary_key=True)
    pet_id: Mapped[int] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reported_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason:      Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    pet: Mapped[Pet] = relationship(back_populates="reports")
