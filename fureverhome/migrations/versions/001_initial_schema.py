"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

This migration creates the complete FurEverHome v1 database schema.

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Enumerations (user role, member role/status, post status/visibility, flag
status, pet status, origin type) are stored as VARCHAR(32) with a CHECK
constraint, matching models/base.enum_column (native_enum=False). The same
schema therefore runs on PostgreSQL and on SQLite.

Creation order (FK dependency order):
  users → refresh_tokens → groups → group_members → user_group_memberships
  → pets → pet_likes → pet_reports → group_posts → post_likes
  → post_comments → post_shares → post_flags

ON DELETE policies:
  refresh_tokens.user_id        → CASCADE
  groups.created_by_id          → SET NULL  (group row kept, soft-deleted)
  group_members.*               → CASCADE
  user_group_memberships.*      → CASCADE
  pets.posted_by_id             → CASCADE
  pets.adopted_by_id            → RESTRICT  (adoption history blocks deletion)
  group_posts.related_pet_id    → SET NULL
  post_* / pet_* child rows     → CASCADE
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _enum_check(column: str, values: tuple[str, ...], name: str) -> sa.CheckConstraint:
    quoted = ", ".join(f"'{value}'" for value in values)
    return sa.CheckConstraint(f"{column} IN ({quoted})", name=name)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _false(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())


def _true(name: str) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true())


def _zero(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default=sa.text("0"))


def _json_list(name: str) -> sa.Column:
    return sa.Column(name, sa.JSON(), nullable=False, server_default=sa.text("'[]'"))


def _json_dict(name: str) -> sa.Column:
    return sa.Column(name, sa.JSON(), nullable=False, server_default=sa.text("'{}'"))


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("location", sa.String(255)),
        sa.Column("avatar", sa.String(1024)),
        sa.Column("role", sa.String(32), nullable=False, server_default="user"),
        _true("is_active"),
        _zero("login_count"),
        sa.Column("last_login", sa.DateTime(timezone=True)),
        _json_dict("notification_settings"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
        _enum_check("role", ("user", "admin"), "user_role_enum"),
    )

    # ── refresh_tokens ─────────────────────────────────────────────────────
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_refresh_tokens_user"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _false("revoked"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_hash"),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("category", sa.String(32), nullable=False, server_default="general"),
        sa.Column("privacy", sa.String(32), nullable=False, server_default="public"),
        sa.Column("location_city", sa.String(100)),
        sa.Column("location_state", sa.String(100)),
        sa.Column("location_country", sa.String(100)),
        sa.Column("avatar", sa.String(1024)),
        sa.Column("cover_image", sa.String(1024)),
        _json_list("tags"),
        _json_list("rules"),
        _json_dict("contact_info"),
        sa.Column(
            "created_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_groups_created_by"),
        ),
        _true("allow_member_posts"),
        _false("require_approval"),
        _true("allow_invites"),
        _true("allow_file_uploads"),
        _zero("max_members_limit"),
        _zero("member_count"),
        _zero("total_posts"),
        _zero("total_pets_helped"),
        _zero("successful_adoptions"),
        _true("is_active"),
        _false("is_verified"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
        sa.CheckConstraint("member_count >= 0", name="ck_groups_member_count_nonnegative"),
        sa.CheckConstraint("max_members_limit >= 0", name="ck_groups_max_members_nonnegative"),
        _enum_check("privacy", ("public", "private"), "group_privacy_enum"),
    )

    # ── group_members (authoritative roster) ───────────────────────────────
    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_members_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_group_members_user"),
            nullable=False,
        ),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
        _enum_check("role", ("member", "moderator", "admin"), "member_role_enum"),
        _enum_check("status", ("active", "pending", "banned"), "member_status_enum"),
    )

    # ── user_group_memberships (per-user mirror) ───────────────────────────
    op.create_table(
        "user_group_memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_user_group_memberships_user"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_user_group_memberships_group"),
            nullable=False,
        ),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_group_memberships"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_user_group_memberships_user_group"),
        _enum_check("role", ("member", "moderator", "admin"), "mirror_role_enum"),
        _enum_check("status", ("active", "pending", "banned"), "mirror_status_enum"),
    )

    # ── pets ───────────────────────────────────────────────────────────────
    op.create_table(
        "pets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("breed", sa.String(100), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("age", sa.Float(), nullable=False),
        sa.Column("size", sa.String(16), nullable=False),
        sa.Column("color", sa.String(50)),
        sa.Column("gender", sa.String(16), nullable=False),
        sa.Column("weight", sa.Float()),
        _false("vaccinated"),
        _false("neutered"),
        sa.Column("health_details", sa.String(1000)),
        sa.Column("dietary_needs", sa.String(500)),
        sa.Column("status", sa.String(32), nullable=False, server_default="available"),
        sa.Column("adoption_fee", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("origin_type", sa.String(32), nullable=False, server_default="owned"),
        sa.Column("found_location", sa.String(255)),
        sa.Column("found_date", sa.DateTime(timezone=True)),
        sa.Column("urgency", sa.String(16), nullable=False, server_default="medium"),
        sa.Column(
            "posted_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_pets_posted_by"),
            nullable=False,
        ),
        sa.Column(
            "adopted_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_pets_adopted_by"),
        ),
        sa.Column("adopted_at", sa.DateTime(timezone=True)),
        _json_list("photos"),
        _json_list("videos"),
        sa.Column("location", sa.String(255), nullable=False),
        _json_list("temperament"),
        _json_dict("good_with"),
        sa.Column("activity_level", sa.String(16)),
        sa.Column("special_needs", sa.String(500)),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("contact_phone", sa.String(50)),
        sa.Column("contact_email", sa.String(255)),
        _zero("views"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id", name="pk_pets"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_pets_name_nonempty"),
        sa.CheckConstraint("age >= 0", name="ck_pets_age_nonnegative"),
        sa.CheckConstraint("adoption_fee >= 0", name="ck_pets_fee_nonnegative"),
        sa.CheckConstraint(
            "(status = 'adopted') = (adopted_by_id IS NOT NULL)",
            name="ck_pets_adoption_consistent",
        ),
        _enum_check("status", ("available", "pending", "adopted"), "pet_status_enum"),
        _enum_check("origin_type", ("owned", "stray"), "origin_type_enum"),
    )

    op.create_table(
        "pet_likes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "pet_id",
            sa.Integer(),
            sa.ForeignKey("pets.id", ondelete="CASCADE", name="fk_pet_likes_pet"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_pet_likes_user"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_pet_likes"),
        sa.UniqueConstraint("pet_id", "user_id", name="uq_pet_likes_pet_user"),
    )

    op.create_table(
        "pet_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "pet_id",
            sa.Integer(),
            sa.ForeignKey("pets.id", ondelete="CASCADE", name="fk_pet_reports_pet"),
            nullable=False,
        ),
        sa.Column(
            "reported_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_pet_reports_user"),
            nullable=False,
        ),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("description", sa.String(500)),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_pet_reports"),
    )

    # ── group_posts ────────────────────────────────────────────────────────
    op.create_table(
        "group_posts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_posts_group"),
            nullable=False,
        ),
        sa.Column(
            "author_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_group_posts_author"),
            nullable=False,
        ),
        sa.Column("type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("title", sa.String(200)),
        sa.Column("content", sa.Text(), nullable=False),
        _json_list("images"),
        _json_list("videos"),
        sa.Column(
            "related_pet_id",
            sa.Integer(),
            sa.ForeignKey("pets.id", ondelete="SET NULL", name="fk_group_posts_related_pet"),
        ),
        sa.Column("location", sa.String(255)),
        _json_list("tags"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("event_details", sa.JSON()),
        sa.Column("help_request", sa.JSON()),
        sa.Column("visibility", sa.String(32), nullable=False, server_default="public"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        _false("is_pinned"),
        _false("is_announcement"),
        _zero("views"),
        _zero("likes_count"),
        _zero("comments_count"),
        _zero("shares_count"),
        _false("counted_in_stats"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint("id", name="pk_group_posts"),
        sa.CheckConstraint("LENGTH(TRIM(content)) > 0", name="ck_group_posts_content_nonempty"),
        sa.CheckConstraint("likes_count >= 0", name="ck_group_posts_likes_nonnegative"),
        sa.CheckConstraint("comments_count >= 0", name="ck_group_posts_comments_nonnegative"),
        _enum_check(
            "visibility",
            ("public", "members-only", "admins-only"),
            "post_visibility_enum",
        ),
        _enum_check(
            "status",
            ("active", "pending-approval", "archived", "removed"),
            "post_status_enum",
        ),
    )

    # ── post engagement ────────────────────────────────────────────────────
    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("group_posts.id", ondelete="CASCADE", name="fk_post_likes_post"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_post_likes_user"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_post_likes"),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )

    op.create_table(
        "post_comments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("group_posts.id", ondelete="CASCADE", name="fk_post_comments_post"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_post_comments_user"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("post_comments.id", ondelete="CASCADE", name="fk_post_comments_parent"),
        ),
        sa.Column("content", sa.String(1000), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_post_comments"),
    )

    op.create_table(
        "post_shares",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("group_posts.id", ondelete="CASCADE", name="fk_post_shares_post"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_post_shares_user"),
            nullable=False,
        ),
        sa.Column("shared_to", sa.String(16), nullable=False, server_default="profile"),
        sa.Column(
            "target_group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="SET NULL", name="fk_post_shares_target_group"),
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_post_shares"),
    )

    op.create_table(
        "post_flags",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "post_id",
            sa.Integer(),
            sa.ForeignKey("group_posts.id", ondelete="CASCADE", name="fk_post_flags_post"),
            nullable=False,
        ),
        sa.Column(
            "flagged_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_post_flags_user"),
            nullable=False,
        ),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("description", sa.String(500)),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_post_flags"),
        sa.UniqueConstraint("post_id", "flagged_by_id", name="uq_post_flags_post_user"),
        _enum_check("status", ("pending", "resolved", "dismissed"), "flag_status_enum"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    # Names follow SQLAlchemy's ix_<table>_<column> so autogenerate sees no drift.
    for table, column in _SINGLE_COLUMN_INDEXES:
        op.create_index(f"ix_{table}_{column}", table, [column])

    op.create_index("idx_groups_type_category", "groups", ["type", "category"])
    op.create_index("idx_pets_status_category", "pets", ["status", "category"])
    op.create_index("idx_group_posts_group_status", "group_posts", ["group_id", "status"])


_SINGLE_COLUMN_INDEXES: tuple[tuple[str, str], ...] = (
    ("refresh_tokens", "user_id"),
    ("groups", "privacy"),
    ("groups", "created_by_id"),
    ("groups", "is_active"),
    ("group_members", "group_id"),
    ("group_members", "user_id"),
    ("user_group_memberships", "user_id"),
    ("user_group_memberships", "group_id"),
    ("pets", "status"),
    ("pets", "posted_by_id"),
    ("pets", "adopted_by_id"),
    ("pet_likes", "pet_id"),
    ("pet_likes", "user_id"),
    ("pet_reports", "pet_id"),
    ("group_posts", "author_id"),
    ("post_likes", "post_id"),
    ("post_comments", "post_id"),
    ("post_comments", "parent_id"),
    ("post_shares", "post_id"),
    ("post_flags", "post_id"),
)


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.

    Provided for local development reset; production corrections go in a
    new migration.
    """
    op.drop_index("idx_group_posts_group_status", table_name="group_posts")
    op.drop_index("idx_pets_status_category", table_name="pets")
    op.drop_index("idx_groups_type_category", table_name="groups")
    for table, column in reversed(_SINGLE_COLUMN_INDEXES):
        op.drop_index(f"ix_{table}_{column}", table_name=table)

    op.drop_table("post_flags")
    op.drop_table("post_shares")
    op.drop_table("post_comments")
    op.drop_table("post_likes")
    op.drop_table("group_posts")
    op.drop_table("pet_reports")
    op.drop_table("pet_likes")
    op.drop_table("pets")
    op.drop_table("user_group_memberships")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
