"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, enum values, non-empty checks.
  - services/group_service.py and services/permissions.py:
      - privacy gate, admin/creator checks (need the roster)
      - GROUP_NOT_FOUND / MEMBER_NOT_FOUND (need a DB lookup)
      - INVALID_ACTION for member management, so an unknown action gets its
        own error code instead of a generic INVALID_FIELD

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate

from fureverhome.app.models.group import GROUP_CATEGORIES, GROUP_TYPES, GroupPrivacy
from fureverhome.app.models.membership import MemberRole, MemberStatus
from fureverhome.app.schemas.common_schema import (
    PaginationQuerySchema,
    string_list,
    trimmed_text,
)
from fureverhome.app.services.group_service import GROUP_SORTS


_PRIVACY_VALUES = [p.value for p in GroupPrivacy]


class LocationSchema(Schema):
    city = fields.Str(allow_none=True, validate=validate.Length(max=100))
    state = fields.Str(allow_none=True, validate=validate.Length(max=100))
    country = fields.Str(allow_none=True, validate=validate.Length(max=100))


class RuleSchema(Schema):
    title = trimmed_text(100)
    description = fields.Str(validate=validate.Length(max=500))


class ContactInfoSchema(Schema):
    email = fields.Email(allow_none=True)
    phone = fields.Str(allow_none=True, validate=validate.Length(max=50))
    website = fields.Url(allow_none=True)


class GroupSettingsSchema(Schema):
    """
    Group settings. max_members_limit = 0 means no limit.
    """

    allow_member_posts = fields.Bool()
    require_approval = fields.Bool()
    allow_invites = fields.Bool()
    allow_file_uploads = fields.Bool()
    max_members_limit = fields.Int(strict=True, validate=validate.Range(min=0))


class CreateGroupSchema(Schema):
    """
    POST /groups

    name: non-empty after trim, max 100 chars. description: max 500 chars.
    The DB schema has CHECK(LENGTH(TRIM(name)) > 0); the schema is the
    primary gate, the DB constraint is the last resort.
    """

    name = trimmed_text(100)
    description = trimmed_text(500)
    type = fields.Str(required=True, validate=validate.OneOf(GROUP_TYPES))
    category = fields.Str(validate=validate.OneOf(GROUP_CATEGORIES))
    privacy = fields.Str(validate=validate.OneOf(_PRIVACY_VALUES))

    location = fields.Nested(LocationSchema)
    avatar = fields.Str(allow_none=True, validate=validate.Length(max=1024))
    cover_image = fields.Str(allow_none=True, validate=validate.Length(max=1024))
    tags = string_list(max_items=20, item_length=50)
    rules = fields.List(fields.Nested(RuleSchema), validate=validate.Length(max=20))
    contact_info = fields.Nested(ContactInfoSchema)
    settings = fields.Nested(GroupSettingsSchema)

    @post_load
    def lowercase_tags(self, data: dict, **kwargs) -> dict:
        if "tags" in data:
            data["tags"] = [tag.strip().lower() for tag in data["tags"] if tag.strip()]
        return data


class UpdateGroupSchema(CreateGroupSchema):
    """
    PUT/PATCH /groups/:id

    Same field rules as creation, every field optional. `type` is fixed at
    creation and is not accepted here.
    """

    class Meta:
        exclude = ("type",)

    name = trimmed_text(100, required=False)
    description = trimmed_text(500, required=False)


class GroupListQuerySchema(PaginationQuerySchema):
    """GET /groups"""

    type = fields.Str(validate=validate.OneOf(GROUP_TYPES))
    category = fields.Str(validate=validate.OneOf(GROUP_CATEGORIES))
    privacy = fields.Str(validate=validate.OneOf(_PRIVACY_VALUES))
    location = fields.Str(validate=validate.Length(max=100))
    search = fields.Str(validate=validate.Length(max=100))
    sort = fields.Str(load_default="newest", validate=validate.OneOf(tuple(GROUP_SORTS)))


class MembershipQuerySchema(PaginationQuerySchema):
    """GET /groups/my-groups and GET /groups/:id/members"""

    status = fields.Str(validate=validate.OneOf([s.value for s in MemberStatus]))


class ManageMemberSchema(Schema):
    """
    PATCH /groups/:id/members/:user_id

    action is checked by group_service (INVALID_ACTION); role only applies to
    promote/demote and defaults there to moderator/member respectively.
    """

    action = fields.Str(required=True)
    role = fields.Str(validate=validate.OneOf([r.value for r in MemberRole]))
