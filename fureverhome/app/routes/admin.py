"""
routes/admin.py — Site administration route handlers.

Every endpoint is wrapped in @require_admin (401 without a token, 403 for
non-admins).

Endpoints (url_prefix=/api/admin):
  GET    /users          → 200  list users (paginated)
  PATCH  /users/:id      → 200  change role / active flag
  DELETE /users/:id      → 200  hard delete
  GET    /pets           → 200  list pets with report counts (paginated)
  DELETE /pets/:id       → 200  hard delete
  GET    /stats          → 200  dashboard counts
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from fureverhome.app.extensions import db
from fureverhome.app.middleware.auth_middleware import require_admin
from fureverhome.app.routes.common import json_body, mutation, page_args
from fureverhome.app.schemas.admin_schema import (
    AdminPetQuerySchema,
    AdminUpdateUserSchema,
    AdminUserQuerySchema,
)
from fureverhome.app.services import admin_service

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/users", methods=["GET"])
@require_admin
def list_users():
    filters = AdminUserQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = admin_service.list_users(
        filters=filters,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@admin_bp.route("/users/<int:user_id>", methods=["PATCH"])
@require_admin
def update_user(user_id: int):
    data = AdminUpdateUserSchema().load(json_body())
    result = admin_service.update_user(
        actor_id=g.user_id,
        user_id=user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("User updated successfully", user=result)), 200


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@require_admin
def delete_user(user_id: int):
    admin_service.delete_user(
        actor_id=g.user_id,
        user_id=user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("User deleted successfully", user_id=user_id)), 200


@admin_bp.route("/pets", methods=["GET"])
@require_admin
def list_pets():
    filters = AdminPetQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = admin_service.list_pets(
        filters=filters,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@admin_bp.route("/pets/<int:pet_id>", methods=["DELETE"])
@require_admin
def delete_pet(pet_id: int):
    admin_service.delete_pet(
        actor_id=g.user_id,
        pet_id=pet_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet deleted successfully", pet_id=pet_id)), 200


@admin_bp.route("/stats", methods=["GET"])
@require_admin
def dashboard_stats():
    return jsonify(admin_service.get_dashboard_stats(db.session)), 200
