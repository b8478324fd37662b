"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/groups):
  POST   /                         → 201  create group (caller becomes admin)
  GET    /                         → 200  list groups (paginated)
  GET    /stats                    → 200  totals by type / category
  GET    /my-groups                → 200  caller's groups by status
  GET    /:id                      → 200  group detail, or summary if private
  PUT    /:id  (PATCH)             → 200  update group (group admin)
  DELETE /:id                      → 200  soft delete (creator)
  POST   /:id/join                 → 200  join or request to join
  POST   /:id/leave                → 200  leave
  GET    /:id/members              → 200  roster (paginated)
  PATCH  /:id/members/:uid  (PUT)  → 200  approve/reject/ban/unban/promote/demote
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from fureverhome.app.extensions import db
from fureverhome.app.middleware.auth_middleware import optional_auth, require_auth
from fureverhome.app.models.membership import MemberStatus
from fureverhome.app.routes.common import json_body, mutation, page_args
from fureverhome.app.schemas.group_schema import (
    CreateGroupSchema,
    GroupListQuerySchema,
    ManageMemberSchema,
    MembershipQuerySchema,
    UpdateGroupSchema,
)
from fureverhome.app.services import group_service
from fureverhome.app.services.membership_machine import PAST_TENSE, MemberAction

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group. The caller is enrolled as admin."""
    data = CreateGroupSchema().load(json_body())
    result = group_service.create_group(
        creator_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Group created successfully", group=result)), 201


@groups_bp.route("", methods=["GET"])
@optional_auth
def list_groups():
    """GET /groups — Active groups, filtered and sorted."""
    filters = GroupListQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = group_service.list_groups(
        filters=filters,
        caller_id=g.user_id,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@groups_bp.route("/stats", methods=["GET"])
def group_stats():
    return jsonify(group_service.get_group_stats(db.session)), 200


@groups_bp.route("/my-groups", methods=["GET"])
@require_auth
def my_groups():
    """GET /groups/my-groups?status=active|pending|banned"""
    query = MembershipQuerySchema().load(request.args)
    page, limit = page_args(query)
    result = group_service.list_user_groups(
        user_id=g.user_id,
        status=query.get("status") or MemberStatus.ACTIVE.value,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@optional_auth
def get_group(group_id: int):
    """GET /groups/:id — Non-members of a private group get the summary only."""
    result = group_service.get_group(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify(result), 200


@groups_bp.route("/<int:group_id>", methods=["PUT", "PATCH"])
@require_auth
def update_group(group_id: int):
    data = UpdateGroupSchema().load(json_body())
    result = group_service.update_group(
        group_id=group_id,
        actor_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Group updated successfully", group=result)), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    group_service.delete_group(
        group_id=group_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Group deleted successfully", group_id=group_id)), 200


@groups_bp.route("/<int:group_id>/join", methods=["POST"])
@require_auth
def join_group(group_id: int):
    """POST /groups/:id/join — active at once, or pending when approval is required."""
    result = group_service.join_group(
        group_id=group_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    if result["status"] == MemberStatus.PENDING.value:
        message = "Join request sent. Waiting for approval."
    else:
        message = "Successfully joined the group"
    return jsonify(mutation(message, **result)), 200


@groups_bp.route("/<int:group_id>/leave", methods=["POST"])
@require_auth
def leave_group(group_id: int):
    result = group_service.leave_group(
        group_id=group_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Successfully left the group", **result)), 200


@groups_bp.route("/<int:group_id>/members", methods=["GET"])
@optional_auth
def list_members(group_id: int):
    query = MembershipQuerySchema().load(request.args)
    page, limit = page_args(query)
    result = group_service.list_members(
        group_id=group_id,
        caller_id=g.user_id,
        status=query.get("status"),
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["PATCH", "PUT"])
@require_auth
def manage_member(group_id: int, target_uid: int):
    """PATCH /groups/:id/members/:uid — body {action, role?}."""
    data = ManageMemberSchema().load(json_body())
    result = group_service.manage_member(
        group_id=group_id,
        actor_id=g.user_id,
        target_user_id=target_uid,
        action=data["action"],
        role=data.get("role"),
        session=db.session,
    )
    db.session.commit()
    message = f"Member {PAST_TENSE[MemberAction(result['action'])]} successfully"
    return jsonify(mutation(message, **result)), 200
