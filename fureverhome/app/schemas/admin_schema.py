"""
schemas/admin_schema.py — Marshmallow schemas for site administration endpoints.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from fureverhome.app.models.pet import PET_CATEGORIES, PetStatus
from fureverhome.app.models.user import UserRole
from fureverhome.app.schemas.common_schema import PaginationQuerySchema


_ROLE_VALUES = [r.value for r in UserRole]


class AdminUserQuerySchema(PaginationQuerySchema):
    """GET /admin/users"""

    search = fields.Str(validate=validate.Length(max=100))
    role = fields.Str(validate=validate.OneOf(_ROLE_VALUES))
    is_active = fields.Bool()


class AdminPetQuerySchema(PaginationQuerySchema):
    """GET /admin/pets — reported=true keeps only pets with at least one report."""

    search = fields.Str(validate=validate.Length(max=100))
    status = fields.Str(validate=validate.OneOf([s.value for s in PetStatus]))
    category = fields.Str(validate=validate.OneOf(PET_CATEGORIES))
    reported = fields.Bool()


class AdminUpdateUserSchema(Schema):
    """PATCH /admin/users/:id — at least one of role / is_active."""

    role = fields.Str(validate=validate.OneOf(_ROLE_VALUES))
    is_active = fields.Bool()

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Provide role or is_active.", "role")
