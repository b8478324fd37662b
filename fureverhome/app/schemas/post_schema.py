"""
schemas/post_schema.py — Marshmallow schemas for group posts and their engagement.

Validation responsibility:
  - This file: field types, lengths, enum values.
  - services/post_service.py: membership, visibility and moderation rules,
    state transitions (INVALID_POST_TRANSITION), ALREADY_FLAGGED.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from datetime import datetime

from marshmallow import Schema, ValidationError, fields, post_load, validate, validates_schema

from fureverhome.app.models.post import (
    FLAG_REASONS,
    POST_PRIORITIES,
    POST_TYPES,
    SHARE_TARGETS,
    PostStatus,
    PostVisibility,
)
from fureverhome.app.schemas.common_schema import (
    PaginationQuerySchema,
    string_list,
    trimmed_text,
)
from fureverhome.app.services.post_service import POST_SORTS


# Removed posts are never listed, so `removed` is not a valid filter.
_LISTABLE_STATUSES = [s.value for s in PostStatus if s is not PostStatus.REMOVED]


def _isoformat_dates(data: dict) -> dict:
    """JSON columns cannot hold datetime objects; store ISO-8601 text."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in data.items()
    }


class EventDetailsSchema(Schema):
    start_date = fields.DateTime(allow_none=True)
    end_date = fields.DateTime(allow_none=True)
    venue = fields.Str(allow_none=True, validate=validate.Length(max=255))
    max_attendees = fields.Int(allow_none=True, validate=validate.Range(min=0))

    @post_load
    def dates_to_text(self, data: dict, **kwargs) -> dict:
        return _isoformat_dates(data)


class HelpRequestSchema(Schema):
    type = fields.Str(
        validate=validate.OneOf(("medical", "foster", "transport", "supplies", "other")),
    )
    urgency = fields.Str(validate=validate.OneOf(("low", "medium", "high", "critical")))
    deadline = fields.DateTime(allow_none=True)

    @post_load
    def dates_to_text(self, data: dict, **kwargs) -> dict:
        return _isoformat_dates(data)


class CreatePostSchema(Schema):
    """
    POST /groups/:id/posts

    Status is never accepted from the client: it is derived from the group's
    require_approval setting and the author's role.
    """

    type = fields.Str(validate=validate.OneOf(POST_TYPES))
    title = fields.Str(allow_none=True, validate=validate.Length(max=200))
    content = trimmed_text(5000)
    images = string_list(max_items=10, item_length=1024)
    videos = string_list(max_items=5, item_length=1024)
    related_pet_id = fields.Int(allow_none=True, strict=True, validate=validate.Range(min=1))
    location = fields.Str(allow_none=True, validate=validate.Length(max=255))
    tags = string_list(max_items=20, item_length=50)
    priority = fields.Str(validate=validate.OneOf(POST_PRIORITIES))
    event_details = fields.Nested(EventDetailsSchema, allow_none=True)
    help_request = fields.Nested(HelpRequestSchema, allow_none=True)
    visibility = fields.Str(validate=validate.OneOf([v.value for v in PostVisibility]))


class UpdatePostSchema(Schema):
    """PUT/PATCH /groups/posts/:id — only content fields; all optional."""

    title = fields.Str(allow_none=True, validate=validate.Length(max=200))
    content = trimmed_text(5000, required=False)
    images = string_list(max_items=10, item_length=1024)
    videos = string_list(max_items=5, item_length=1024)
    tags = string_list(max_items=20, item_length=50)
    priority = fields.Str(validate=validate.OneOf(POST_PRIORITIES))
    event_details = fields.Nested(EventDetailsSchema, allow_none=True)
    help_request = fields.Nested(HelpRequestSchema, allow_none=True)


class PostListQuerySchema(PaginationQuerySchema):
    """GET /groups/:id/posts"""

    type = fields.Str(validate=validate.OneOf(POST_TYPES))
    priority = fields.Str(validate=validate.OneOf(POST_PRIORITIES))
    status = fields.Str(validate=validate.OneOf(_LISTABLE_STATUSES))
    sort = fields.Str(load_default="newest", validate=validate.OneOf(tuple(POST_SORTS)))


class ModeratePostSchema(Schema):
    """POST /groups/posts/:id/moderate"""

    action = fields.Str(
        required=True,
        validate=validate.OneOf(("approve", "archive", "restore")),
    )


class CommentSchema(Schema):
    """POST /groups/posts/:id/comments — parent_id makes it a reply."""

    content = trimmed_text(1000)
    parent_id = fields.Int(allow_none=True, strict=True, validate=validate.Range(min=1))


class SharePostSchema(Schema):
    """POST /groups/posts/:id/share"""

    shared_to = fields.Str(required=True, validate=validate.OneOf(SHARE_TARGETS))
    target_group_id = fields.Int(allow_none=True, strict=True, validate=validate.Range(min=1))

    @validates_schema
    def validate_target(self, data: dict, **kwargs) -> None:
        if data.get("shared_to") == "group" and not data.get("target_group_id"):
            raise ValidationError(
                "target_group_id is required when sharing to a group.",
                "target_group_id",
            )


class FlagPostSchema(Schema):
    """POST /groups/posts/:id/flag"""

    reason = fields.Str(required=True, validate=validate.OneOf(FLAG_REASONS))
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))


class SharePetSchema(Schema):
    """POST /groups/:id/share-pet"""

    pet_id = fields.Int(required=True, strict=True, validate=validate.Range(min=1))
    message = fields.Str(allow_none=True, validate=validate.Length(max=5000))
