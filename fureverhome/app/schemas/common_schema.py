"""
schemas/common_schema.py — Validators and query schemas shared by every resource.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           Schemas must load without an application context so unit tests
           can exercise them on their own.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate


# ── Shared non-empty string validator ─────────────────────────────────────
#
# validate.Length(min=1) alone allows whitespace-only strings like "   ".
# This validator strips first then checks, mirroring the DB
# CHECK(LENGTH(TRIM(...)) > 0) constraints at the API layer.
# ──────────────────────────────────────────────────────────────────────────

def non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def trimmed_text(max_length: int, required: bool = True, **kwargs) -> fields.Str:
    """A string field that must be non-blank and at most `max_length` long."""
    return fields.Str(
        required=required,
        validate=[
            validate.Length(
                min=1,
                max=max_length,
                error=f"Must be between 1 and {max_length} characters.",
            ),
            non_empty_after_trim,
        ],
        **kwargs,
    )


def string_list(max_items: int = 20, item_length: int = 100) -> fields.List:
    return fields.List(
        fields.Str(validate=validate.Length(max=item_length)),
        validate=validate.Length(max=max_items),
    )


class PaginationQuerySchema(Schema):
    """
    ?page=&limit=

    Unknown query parameters are dropped rather than rejected. Missing or
    non-positive values are normalised by services/pagination.page_window.
    """

    class Meta:
        unknown = EXCLUDE

    page = fields.Int(load_default=None, validate=validate.Range(min=1))
    limit = fields.Int(load_default=None, validate=validate.Range(min=1))
