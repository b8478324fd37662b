"""
schemas/auth_schema.py — Marshmallow schemas for authentication and profile endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py: DUPLICATE_EMAIL and current-password checks
    (both need a DB lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from fureverhome.app.schemas.common_schema import trimmed_text


MIN_PASSWORD_LENGTH = 6


def _check_password(value: str) -> None:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      name     : 1–100 chars, not blank
      email    : valid email format, max 255
      password : min 6 chars

    Email uniqueness (case-insensitive) is enforced in auth_service.py.
    """

    name = trimmed_text(100)

    # marshmallow's Email field applies RFC-5322-compatible validation.
    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    phone = fields.Str(validate=validate.Length(max=50))
    location = fields.Str(validate=validate.Length(max=255))

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        _check_password(value)


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py
    (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """
    POST /auth/refresh, POST /auth/logout

    Token validity (revoked, expired, not found) is checked in
    auth_service.py (REFRESH_TOKEN_INVALID, 401).
    """

    refresh_token = fields.Str(required=True)


class UpdateProfileSchema(Schema):
    """PUT /auth/profile — every field optional; only given fields change."""

    name = trimmed_text(100, required=False)
    email = fields.Email(validate=validate.Length(max=255))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=50))
    location = fields.Str(allow_none=True, validate=validate.Length(max=255))
    avatar = fields.Str(allow_none=True, validate=validate.Length(max=1024))


class ChangePasswordSchema(Schema):
    """PUT /auth/password"""

    current_password = fields.Str(required=True, load_only=True)
    new_password = fields.Str(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value: str, **kwargs) -> None:
        _check_password(value)


class NotificationSettingsSchema(Schema):
    """PUT /auth/notifications — boolean switches, all optional."""

    email_notifications = fields.Bool()
    push_notifications = fields.Bool()
    adoption_updates = fields.Bool()
    new_messages = fields.Bool()
    community_updates = fields.Bool()
    marketing_emails = fields.Bool()
