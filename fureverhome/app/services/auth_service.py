"""
services/auth_service.py — Accounts, credentials and tokens.

Responsibilities:
  - Registration, login by email, profile reads and updates
  - JWT access token creation (HS256) carrying the user id and site role
  - Refresh token lifecycle (creation, validation, revocation)
  - Password hashing (bcrypt), password change, account deactivation

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is read only for the JWT secret/expiry and bcrypt
    cost; every other input arrives as a plain argument.

Token design:
  - Access token: JWT, HS256, sub = user id (str), role = "user" | "admin"
  - Refresh token: random hex string, stored as its SHA-256 hash only.
    Revoked on logout and on account deactivation.

Password storage:
  - bcrypt with cost BCRYPT_LOG_ROUNDS; raw passwords are never stored or logged.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from fureverhome.app.errors import (
    Conflict,
    ErrorCode,
    NotFound,
    Unauthenticated,
    ValidationFailed,
)
from fureverhome.app.models.membership import MemberStatus, UserGroupMembership
from fureverhome.app.models.pet import Pet, PetStatus
from fureverhome.app.models.refresh_token import RefreshToken
from fureverhome.app.models.user import DEFAULT_NOTIFICATION_SETTINGS, User


logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("name", "email", "phone", "location", "avatar")


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string. Used for refresh token storage."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _create_access_token(user: User) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (user id as str), role, iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "iat": now,
        "exp": expiry,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _create_refresh_token(user_id: int, session: Session) -> str:
    """
    Stores the SHA-256 hash of a new refresh token and returns the raw
    value, which the client sees exactly once.
    """
    raw_token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]

    session.add(RefreshToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=expires_at,
        revoked=False,
    ))
    # flush so the row exists before we return; commit is the route's job
    session.flush()

    return raw_token


def _build_token_pair(user: User, session: Session) -> dict:
    return {
        "access_token": _create_access_token(user),
        "refresh_token": _create_refresh_token(user.id, session),
    }


def build_user_dict(user: User) -> dict:
    """Public profile of a user. Never includes the password hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "location": user.location,
        "avatar": user.avatar,
        "role": user.role.value,
        "is_active": user.is_active,
        "login_count": user.login_count,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return user


def _email_taken(email: str, session: Session, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return session.execute(stmt).first() is not None


def _revoke_all_tokens(user_id: int, session: Session) -> None:
    session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
    )


# ── Public service functions ───────────────────────────────────────────────

def register_user(data: dict, session: Session) -> dict:
    """
    Creates an account and issues an access + refresh token pair.

    Raises:
      Conflict(DUPLICATE_EMAIL) — email already registered (case-insensitive)

    Returns: {"user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    email = data["email"].strip().lower()
    if _email_taken(email, session):
        raise Conflict(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            field="email",
        )

    user = User(
        name=data["name"].strip(),
        email=email,
        password_hash=_hash_password(data["password"]),
        phone=data.get("phone"),
        location=data.get("location"),
        login_count=0,
        is_active=True,
        notification_settings=dict(DEFAULT_NOTIFICATION_SETTINGS),
    )
    session.add(user)
    session.flush()  # populate user.id before creating refresh token

    logger.info("User %s registered", user.id)
    return {"user": build_user_dict(user), **_build_token_pair(user, session)}


def login_user(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials, records the login and issues a token pair.

    Raises:
      Unauthenticated(INVALID_CREDENTIALS) — unknown email or wrong password
        (same error for both to avoid account enumeration)
      Unauthenticated(ACCOUNT_DEACTIVATED) — correct credentials, inactive account
    """
    user = session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()

    if user is None or not _check_password(password, user.password_hash):
        raise Unauthenticated(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
        )

    if not user.is_active:
        raise Unauthenticated(ErrorCode.ACCOUNT_DEACTIVATED, "This account has been deactivated.")

    user.login_count = (user.login_count or 0) + 1
    user.last_login = datetime.now(timezone.utc)
    session.flush()

    return {"user": build_user_dict(user), **_build_token_pair(user, session)}


def refresh_access_token(raw_refresh_token: str, session: Session) -> dict:
    """
    Exchanges a refresh token for a new access token. The refresh token is
    not rotated.

    Raises:
      Unauthenticated(REFRESH_TOKEN_INVALID) — unknown, revoked or expired
      Unauthenticated(ACCOUNT_DEACTIVATED)   — account deactivated since issue
    """
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if record is None or record.revoked or _as_utc(record.expires_at) <= now:
        raise Unauthenticated(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid, expired, or has been revoked.",
        )

    user = _get_user_or_404(record.user_id, session)
    if not user.is_active:
        raise Unauthenticated(ErrorCode.ACCOUNT_DEACTIVATED, "This account has been deactivated.")

    return {"access_token": _create_access_token(user)}


def logout_user(raw_refresh_token: str, user_id: int, session: Session) -> None:
    """
    Revokes one of the caller's refresh tokens.

    Raises:
      Unauthenticated(REFRESH_TOKEN_INVALID) — not found, already revoked,
        or issued to another user.
    """
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()

    if record is None or record.revoked or record.user_id != user_id:
        raise Unauthenticated(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid or has already been revoked.",
        )

    record.revoked = True
    session.flush()


def get_profile(user_id: int, session: Session) -> dict:
    """
    The caller's profile plus their group mirror and pet id lists.

    Raises NotFound(USER_NOT_FOUND) when the user was deleted after the token
    was issued.
    """
    user = _get_user_or_404(user_id, session)

    groups = session.execute(
        select(UserGroupMembership)
        .where(UserGroupMembership.user_id == user.id)
        .order_by(UserGroupMembership.joined_at.asc())
    ).scalars().all()

    posted = session.execute(
        select(Pet.id).where(Pet.posted_by_id == user.id).order_by(Pet.id)
    ).scalars().all()
    adopted = session.execute(
        select(Pet.id).where(Pet.adopted_by_id == user.id).order_by(Pet.id)
    ).scalars().all()

    result = build_user_dict(user)
    result["notification_settings"] = dict(user.notification_settings or {})
    result["groups"] = [
        {
            "group_id": m.group_id,
            "role": m.role.value,
            "status": m.status.value,
            "joined_at": m.joined_at.isoformat() if m.joined_at else None,
        }
        for m in groups
    ]
    result["posted_pets"] = list(posted)
    result["adopted_pets"] = list(adopted)
    return result


def update_profile(user_id: int, data: dict, session: Session) -> dict:
    """
    Updates name / email / phone / location / avatar.

    Raises Conflict(DUPLICATE_EMAIL) when the new email belongs to someone else.
    """
    user = _get_user_or_404(user_id, session)

    if "email" in data:
        data = {**data, "email": data["email"].strip().lower()}
        if _email_taken(data["email"], session, exclude_id=user.id):
            raise Conflict(
                ErrorCode.DUPLICATE_EMAIL,
                "Email already in use.",
                field="email",
            )

    for field in _PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])

    session.flush()
    return build_user_dict(user)


def update_notification_settings(user_id: int, settings: dict, session: Session) -> dict:
    """Merges the given switches into the stored notification settings."""
    user = _get_user_or_404(user_id, session)
    merged = dict(user.notification_settings or DEFAULT_NOTIFICATION_SETTINGS)
    merged.update(settings)
    # Reassign so SQLAlchemy sees the JSON column change.
    user.notification_settings = merged
    session.flush()
    return merged


def change_password(
        user_id: int,
        current_password: str,
        new_password: str,
        session: Session,
) -> None:
    """
    Raises ValidationFailed(INVALID_FIELD, field="current_password") when the
    current password does not match.
    """
    user = _get_user_or_404(user_id, session)
    if not _check_password(current_password, user.password_hash):
        raise ValidationFailed(
            ErrorCode.INVALID_FIELD,
            "Current password is incorrect.",
            field="current_password",
        )

    user.password_hash = _hash_password(new_password)
    session.flush()
    logger.info("User %s changed their password", user.id)


def deactivate_account(user_id: int, session: Session) -> None:
    """
    Soft-deletes the caller's account: login is refused from now on and every
    outstanding refresh token is revoked. Existing rows are kept.
    """
    user = _get_user_or_404(user_id, session)
    user.is_active = False
    _revoke_all_tokens(user.id, session)
    session.flush()
    logger.info("User %s deactivated their account", user.id)


def get_account_stats(user_id: int, session: Session) -> dict:
    user = _get_user_or_404(user_id, session)

    posted_total = session.execute(
        select(func.count(Pet.id)).where(Pet.posted_by_id == user.id)
    ).scalar_one()
    adopted_out = session.execute(
        select(func.count(Pet.id)).where(
            Pet.posted_by_id == user.id,
            Pet.status == PetStatus.ADOPTED,
        )
    ).scalar_one()
    active_groups = session.execute(
        select(func.count(UserGroupMembership.id)).where(
            UserGroupMembership.user_id == user.id,
            UserGroupMembership.status == MemberStatus.ACTIVE,
        )
    ).scalar_one()

    created_at = _as_utc(user.created_at)
    return {
        "total_pets_posted": posted_total,
        "successful_adoptions": adopted_out,
        "active_groups": active_groups,
        "login_count": user.login_count or 0,
        "last_login": user.last_login.isoformat() if user.last_login else None,
        "account_age_days": (datetime.now(timezone.utc) - created_at).days,
    }


def export_user_data(user_id: int, session: Session) -> dict:
    """Everything the user posted, as a JSON-ready dict."""
    user = _get_user_or_404(user_id, session)
    pets = session.execute(
        select(Pet).where(Pet.posted_by_id == user.id).order_by(Pet.created_at.asc())
    ).scalars().all()

    return {
        "profile": {
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "location": user.location,
            "role": user.role.value,
            "created_at": user.created_at.isoformat() if user.created_at else None,
        },
        "pets": [
            {
                "name": pet.name,
                "breed": pet.breed,
                "age": pet.age,
                "description": pet.description,
                "status": pet.status.value,
                "created_at": pet.created_at.isoformat() if pet.created_at else None,
            }
            for pet in pets
        ],
        "statistics": get_account_stats(user.id, session),
        "export_date": datetime.now(timezone.utc).isoformat(),
    }
