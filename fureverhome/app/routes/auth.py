"""
routes/auth.py — Authentication and account route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return {"message": ..., ...payload} for mutations, plain JSON for reads

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/api/auth):
  POST   /register              → 201
  POST   /login                 → 200
  POST   /refresh               → 200
  POST   /logout                → 200
  GET    /profile  (/me)        → 200
  PUT    /profile  (PATCH)      → 200
  PUT    /password              → 200
  PUT    /notifications         → 200
  GET    /stats                 → 200
  GET    /export                → 200
  DELETE /account               → 200  deactivate
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from fureverhome.app.extensions import db
from fureverhome.app.middleware.auth_middleware import require_auth
from fureverhome.app.routes.common import json_body, mutation
from fureverhome.app.schemas.auth_schema import (
    ChangePasswordSchema,
    LoginSchema,
    NotificationSettingsSchema,
    RefreshTokenSchema,
    RegisterSchema,
    UpdateProfileSchema,
)
from fureverhome.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return tokens. (No auth required.)"""
    data = RegisterSchema().load(json_body())
    result = auth_service.register_user(data=data, session=db.session)
    db.session.commit()
    return jsonify(mutation("User registered successfully", **result)), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate by email; return tokens. (No auth required.)"""
    data = LoginSchema().load(json_body())
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Login successful", **result)), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange a refresh token for a new access token."""
    data = RefreshTokenSchema().load(json_body())
    result = auth_service.refresh_access_token(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    return jsonify(mutation("Token refreshed", **result)), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Revoke the given refresh token."""
    data = RefreshTokenSchema().load(json_body())
    auth_service.logout_user(
        raw_refresh_token=data["refresh_token"],
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Successfully logged out.")), 200


@auth_bp.route("/profile", methods=["GET"])
@auth_bp.route("/me", methods=["GET"])
@require_auth
def profile():
    result = auth_service.get_profile(user_id=g.user_id, session=db.session)
    return jsonify(result), 200


@auth_bp.route("/profile", methods=["PUT", "PATCH"])
@require_auth
def update_profile():
    data = UpdateProfileSchema().load(json_body())
    result = auth_service.update_profile(
        user_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Profile updated successfully", user=result)), 200


@auth_bp.route("/password", methods=["PUT"])
@require_auth
def change_password():
    data = ChangePasswordSchema().load(json_body())
    auth_service.change_password(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Password updated successfully")), 200


@auth_bp.route("/notifications", methods=["PUT"])
@require_auth
def update_notifications():
    data = NotificationSettingsSchema().load(json_body())
    result = auth_service.update_notification_settings(
        user_id=g.user_id,
        settings=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Notification settings updated", notification_settings=result)), 200


@auth_bp.route("/stats", methods=["GET"])
@require_auth
def account_stats():
    return jsonify(auth_service.get_account_stats(user_id=g.user_id, session=db.session)), 200


@auth_bp.route("/export", methods=["GET"])
@require_auth
def export_data():
    return jsonify(auth_service.export_user_data(user_id=g.user_id, session=db.session)), 200


@auth_bp.route("/account", methods=["DELETE"])
@require_auth
def deactivate_account():
    """DELETE /auth/account — Deactivate; login is refused from now on."""
    auth_service.deactivate_account(user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify(mutation("Account deactivated successfully")), 200
