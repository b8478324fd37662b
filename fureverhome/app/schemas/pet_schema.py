"""
schemas/pet_schema.py — Marshmallow schemas for pet listing endpoints.

Validation responsibility:
  - This file: field types, ranges, enum values, required listing fields.
  - services/pet_service.py:
      - ownership (poster or site admin)
      - adoption rules: PET_ALREADY_ADOPTED, SELF_ADOPTION, status = adopted
        rejected outside the adopt endpoint
      - stray normalisation (fee forced to 0, found_location defaulted)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from fureverhome.app.models.pet import (
    ACTIVITY_LEVELS,
    PET_CATEGORIES,
    PET_GENDERS,
    PET_SIZES,
    REPORT_REASONS,
    URGENCY_LEVELS,
    OriginType,
    PetStatus,
)
from fureverhome.app.schemas.common_schema import (
    PaginationQuerySchema,
    string_list,
    trimmed_text,
)
from fureverhome.app.services.pet_service import PET_SORTS


_ORIGIN_VALUES = [o.value for o in OriginType]
_STATUS_VALUES = [s.value for s in PetStatus]


class PetCreateSchema(Schema):
    """
    POST /pets

    Required: name, breed, category, age, gender, location, description.
    size defaults to medium and origin_type to owned in the service.
    """

    name = trimmed_text(100)
    breed = trimmed_text(100)
    category = fields.Str(required=True, validate=validate.OneOf(PET_CATEGORIES))
    age = fields.Float(required=True, validate=validate.Range(min=0, max=50))
    size = fields.Str(validate=validate.OneOf(PET_SIZES))
    color = fields.Str(allow_none=True, validate=validate.Length(max=50))
    gender = fields.Str(required=True, validate=validate.OneOf(PET_GENDERS))
    weight = fields.Float(allow_none=True, validate=validate.Range(min=0))

    vaccinated = fields.Bool()
    neutered = fields.Bool()
    health_details = fields.Str(allow_none=True, validate=validate.Length(max=1000))
    dietary_needs = fields.Str(allow_none=True, validate=validate.Length(max=500))

    adoption_fee = fields.Decimal(places=2, validate=validate.Range(min=0))
    currency = fields.Str(validate=validate.Length(min=3, max=3))

    origin_type = fields.Str(validate=validate.OneOf(_ORIGIN_VALUES))
    found_location = fields.Str(allow_none=True, validate=validate.Length(max=255))
    found_date = fields.DateTime(allow_none=True)
    urgency = fields.Str(validate=validate.OneOf(URGENCY_LEVELS))

    photos = string_list(max_items=10, item_length=1024)
    videos = string_list(max_items=5, item_length=1024)

    location = trimmed_text(255)
    temperament = string_list(max_items=10, item_length=50)
    good_with = fields.Dict(keys=fields.Str(), values=fields.Bool())
    activity_level = fields.Str(allow_none=True, validate=validate.OneOf(ACTIVITY_LEVELS))
    special_needs = fields.Str(allow_none=True, validate=validate.Length(max=500))
    description = trimmed_text(5000)

    contact_phone = fields.Str(allow_none=True, validate=validate.Length(max=50))
    contact_email = fields.Email(allow_none=True)


class PetUpdateSchema(PetCreateSchema):
    """
    PUT/PATCH /pets/:id — every field optional.

    status accepts available/pending; adopted is refused by the service so the
    client gets a message pointing at the adopt endpoint.
    """

    name = trimmed_text(100, required=False)
    breed = trimmed_text(100, required=False)
    category = fields.Str(validate=validate.OneOf(PET_CATEGORIES))
    age = fields.Float(validate=validate.Range(min=0, max=50))
    gender = fields.Str(validate=validate.OneOf(PET_GENDERS))
    location = trimmed_text(255, required=False)
    description = trimmed_text(5000, required=False)

    status = fields.Str(validate=validate.OneOf(_STATUS_VALUES))


class PetListQuerySchema(PaginationQuerySchema):
    """GET /pets"""

    breed = fields.Str(validate=validate.Length(max=100))
    min_age = fields.Float(validate=validate.Range(min=0))
    max_age = fields.Float(validate=validate.Range(min=0))
    status = fields.Str(validate=validate.OneOf(_STATUS_VALUES))
    search = fields.Str(validate=validate.Length(max=100))
    location = fields.Str(validate=validate.Length(max=255))
    category = fields.Str(validate=validate.OneOf(PET_CATEGORIES))
    gender = fields.Str(validate=validate.OneOf(PET_GENDERS))
    size = fields.Str(validate=validate.OneOf(PET_SIZES))
    origin_type = fields.Str(validate=validate.OneOf(_ORIGIN_VALUES))
    sort = fields.Str(load_default="newest", validate=validate.OneOf(tuple(PET_SORTS)))

    @validates_schema
    def validate_age_range(self, data: dict, **kwargs) -> None:
        low, high = data.get("min_age"), data.get("max_age")
        if low is not None and high is not None and low > high:
            raise ValidationError("min_age must not be greater than max_age.", "min_age")


class PetSearchQuerySchema(PaginationQuerySchema):
    """GET /pets/search"""

    name = fields.Str(validate=validate.Length(max=100))
    breed = fields.Str(validate=validate.Length(max=100))
    category = fields.Str(validate=validate.OneOf(PET_CATEGORIES))
    origin_type = fields.Str(validate=validate.OneOf(_ORIGIN_VALUES))


class ReportPetSchema(Schema):
    """POST /pets/:id/report"""

    reason = fields.Str(required=True, validate=validate.OneOf(REPORT_REASONS))
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))


class NearbyPetsQuerySchema(Schema):
    """GET /pets/nearby"""

    class Meta:
        unknown = EXCLUDE

    lat = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    lon = fields.Float(required=True, validate=validate.Range(min=-180, max=180))
    radius = fields.Float(load_default=10, validate=validate.Range(min=0, min_inclusive=False, max=500))
