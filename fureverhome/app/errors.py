"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the API uses a code defined here. Service and route
code raises one of the AppError subclasses below; the global handlers in
app/__init__.py turn them into a JSON body of the form

    {"message": "...", "code": "...", "field": "...", "fields": [...]}

where `field` / `fields` are present only when a request field is at fault.

Taxonomy → HTTP status:
  ValidationFailed  400  missing or malformed input
  Unauthenticated   401  no / bad / expired credentials
  Forbidden         403  authenticated, but the relationship or role is wrong
  NotFound          404  id absent or soft-deleted
  Conflict          409  state-machine precondition violated
  ServerError       500  storage or unexpected failure

Never conflate 401 (we do not know who you are) with 403 (we know, and the
answer is no).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            fields: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field    # which request field caused the error
        self.fields      = fields   # several offending fields at once

    def to_dict(self) -> dict:
        payload = {
            "message": self.message,
            "code":    self.code,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class _StatusError(AppError):
    """AppError with the HTTP status fixed by the subclass."""

    status: int = 500

    def __init__(
            self,
            code: str,
            message: str,
            field: str | None = None,
            fields: list[str] | None = None,
    ) -> None:
        super().__init__(code, message, self.status, field=field, fields=fields)


class ValidationFailed(_StatusError):
    status = 400


class Unauthenticated(_StatusError):
    status = 401


class Forbidden(_StatusError):
    status = 403


class NotFound(_StatusError):
    status = 404


class Conflict(_StatusError):
    status = 409


class ServerError(_StatusError):
    status = 500


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response; do not rename them.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_ACTION             = "INVALID_ACTION"
    INVALID_ROLE_CHANGE        = "INVALID_ROLE_CHANGE"
    INVALID_IMAGE              = "INVALID_IMAGE"
    NO_FILE                    = "NO_FILE"

    # ── Auth Errors ────────────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    ACCOUNT_DEACTIVATED        = "ACCOUNT_DEACTIVATED"    # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403
    MEMBER_BANNED              = "MEMBER_BANNED"          # 403
    PRIVATE_GROUP              = "PRIVATE_GROUP"          # 403

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    POST_NOT_FOUND             = "POST_NOT_FOUND"
    COMMENT_NOT_FOUND          = "COMMENT_NOT_FOUND"
    PET_NOT_FOUND              = "PET_NOT_FOUND"
    FILE_NOT_FOUND             = "FILE_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    MEMBERSHIP_PENDING         = "MEMBERSHIP_PENDING"
    GROUP_FULL                 = "GROUP_FULL"
    CREATOR_CANNOT_LEAVE       = "CREATOR_CANNOT_LEAVE"
    MEMBER_NOT_ACTIVE          = "MEMBER_NOT_ACTIVE"
    INVALID_POST_TRANSITION    = "INVALID_POST_TRANSITION"
    ALREADY_FLAGGED            = "ALREADY_FLAGGED"
    PET_ALREADY_ADOPTED        = "PET_ALREADY_ADOPTED"
    SELF_ADOPTION              = "SELF_ADOPTION"
    CANNOT_MODIFY_SELF         = "CANNOT_MODIFY_SELF"
    USER_HAS_ADOPTIONS         = "USER_HAS_ADOPTIONS"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
