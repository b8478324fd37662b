"""
middleware/auth_middleware.py — JWT authentication decorators.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature using HS256
  3. Checks token expiry
  4. Loads the user row: deleted or deactivated accounts are refused even
     while their access token is still unexpired
  5. Attaches user_id (int) and user_role (str, read from the DB) to flask.g

@optional_auth runs the same sequence only when an Authorization header is
present; anonymous requests get g.user_id = None. A header that is present
but invalid is still an error.

@require_admin runs @require_auth and then requires g.user_role == "admin".

Responsibility boundary:
  - Middleware = authentication (401) and the site-admin role check (403).
  - Group roles (admin/moderator/member) are authorization and belong in
    services/permissions.py. Services receive user_id as a plain integer.

Error codes:
  TOKEN_MISSING       (401) — no Authorization header
  TOKEN_INVALID       (401) — malformed header, bad signature, bad payload,
                              or the user no longer exists
  TOKEN_EXPIRED       (401) — valid token but exp claim is in the past
  ACCOUNT_DEACTIVATED (401) — the user has been deactivated
  FORBIDDEN           (403) — @require_admin only
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from fureverhome.app.errors import ErrorCode, Forbidden, Unauthenticated
from fureverhome.app.extensions import db
from fureverhome.app.models.user import User, UserRole


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Raises AppError for all auth failures — the global error handler converts
    these to the correct JSON response. Routes never catch AppError.

    Usage:
        @pets_bp.route("/<int:pet_id>/adopt", methods=["POST"])
        @require_auth
        def adopt(pet_id):
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def optional_auth(f: Callable) -> Callable:
    """Authenticates when a header is sent; otherwise g.user_id is None."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if request.headers.get("Authorization"):
            _authenticate_request()
        else:
            g.user_id = None
            g.user_role = None
        return f(*args, **kwargs)

    return decorated


def require_admin(f: Callable) -> Callable:
    """Site admins only (users.role = admin)."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        if g.user_role != UserRole.ADMIN.value:
            raise Forbidden(ErrorCode.FORBIDDEN, "Administrator access required.")
        return f(*args, **kwargs)

    return decorated


def _decode_user_id() -> int:
    """Steps 1–3: header → verified payload → integer user id."""
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise Unauthenticated(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        # Client should use POST /auth/refresh.
        raise Unauthenticated(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /api/auth/refresh to obtain a new one.",
        )
    except jwt.InvalidTokenError:
        raise Unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
        )


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets g.user_id / g.user_role.

    Separated from the decorator wrappers so tests can call it directly
    inside a request context.
    """
    user_id = _decode_user_id()

    # ── Step 4: The account must still exist and be active ────────────────
    user = db.session.get(User, user_id)
    if user is None:
        raise Unauthenticated(ErrorCode.TOKEN_INVALID, "The account for this token no longer exists.")
    if not user.is_active:
        raise Unauthenticated(ErrorCode.ACCOUNT_DEACTIVATED, "This account has been deactivated.")

    # ── Step 5: Attach identity to flask.g ────────────────────────────────
    # The role comes from the DB, so a demoted admin loses access at once.
    g.user_id = user.id
    g.user_role = user.role.value
