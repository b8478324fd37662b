"""
models/base.py — Column helpers shared by every model module.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Enum


def utcnow() -> datetime:
    """Timezone-aware current time; Python-side default for timestamp columns."""
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'active'), not names ('ACTIVE')."""
    return [member.value for member in enum_cls]


def enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    """
    Non-native enum type: stored as VARCHAR with a CHECK constraint, so the
    same model runs unchanged on PostgreSQL and on SQLite in tests.
    """
    return Enum(
        enum_cls,
        name=name,
        values_callable=_enum_values,
        native_enum=False,
        create_constraint=True,
        length=32,
        validate_strings=True,
    )
