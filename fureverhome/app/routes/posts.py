"""
routes/posts.py — Group post, comment and post-moderation route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/groups):
  POST   /:id/posts                      → 201  create post
  GET    /:id/posts                      → 200  list posts (paginated, pinned first)
  POST   /:id/share-pet                  → 201  share a pet listing as a post
  GET    /posts/:pid                     → 200  post with comments (counts a view)
  PUT    /posts/:pid  (PATCH)            → 200  edit (author or moderator)
  DELETE /posts/:pid                     → 200  soft delete (author or moderator)
  POST   /posts/:pid/moderate            → 200  approve / archive / restore
  POST   /posts/:pid/like                → 200  toggle like
  POST   /posts/:pid/pin                 → 200  toggle pin (moderator)
  POST   /posts/:pid/share               → 200  record a share
  POST   /posts/:pid/flag                → 201  flag for moderators
  POST   /posts/:pid/comments            → 201  comment or reply
  DELETE /posts/:pid/comments/:cid       → 200  delete comment
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from fureverhome.app.extensions import db
from fureverhome.app.middleware.auth_middleware import optional_auth, require_auth
from fureverhome.app.models.post import PostStatus
from fureverhome.app.routes.common import json_body, mutation, page_args
from fureverhome.app.schemas.post_schema import (
    CommentSchema,
    CreatePostSchema,
    FlagPostSchema,
    ModeratePostSchema,
    PostListQuerySchema,
    SharePetSchema,
    SharePostSchema,
    UpdatePostSchema,
)
from fureverhome.app.services import post_service

posts_bp = Blueprint("posts", __name__)


def _created_message(post: dict) -> str:
    if post["status"] == PostStatus.PENDING_APPROVAL.value:
        return "Post submitted for approval"
    return "Post created successfully"


@posts_bp.route("/<int:group_id>/posts", methods=["POST"])
@require_auth
def create_post(group_id: int):
    data = CreatePostSchema().load(json_body())
    result = post_service.create_post(
        group_id=group_id,
        author_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation(_created_message(result), post=result)), 201


@posts_bp.route("/<int:group_id>/posts", methods=["GET"])
@optional_auth
def list_posts(group_id: int):
    filters = PostListQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = post_service.list_posts(
        group_id=group_id,
        caller_id=g.user_id,
        filters=filters,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@posts_bp.route("/<int:group_id>/share-pet", methods=["POST"])
@require_auth
def share_pet(group_id: int):
    data = SharePetSchema().load(json_body())
    result = post_service.share_pet_to_group(
        group_id=group_id,
        author_id=g.user_id,
        pet_id=data["pet_id"],
        message=data.get("message"),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet shared to group successfully", post=result)), 201


@posts_bp.route("/posts/<int:post_id>", methods=["GET"])
@optional_auth
def get_post(post_id: int):
    result = post_service.get_post(
        post_id=post_id,
        caller_id=g.user_id,
        session=db.session,
    )
    # The view counter was incremented.
    db.session.commit()
    return jsonify({"post": result}), 200


@posts_bp.route("/posts/<int:post_id>", methods=["PUT", "PATCH"])
@require_auth
def update_post(post_id: int):
    data = UpdatePostSchema().load(json_body())
    result = post_service.update_post(
        post_id=post_id,
        actor_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Post updated successfully", post=result)), 200


@posts_bp.route("/posts/<int:post_id>", methods=["DELETE"])
@require_auth
def delete_post(post_id: int):
    post_service.delete_post(
        post_id=post_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Post deleted successfully", post_id=post_id)), 200


@posts_bp.route("/posts/<int:post_id>/moderate", methods=["POST"])
@require_auth
def moderate_post(post_id: int):
    data = ModeratePostSchema().load(json_body())
    result = post_service.moderate_post(
        post_id=post_id,
        actor_id=g.user_id,
        action=data["action"],
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation(f"Post {data['action']}d successfully", post=result)), 200


@posts_bp.route("/posts/<int:post_id>/like", methods=["POST"])
@require_auth
def toggle_like(post_id: int):
    result = post_service.toggle_like(
        post_id=post_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    message = "Post liked" if result["liked"] else "Post unliked"
    return jsonify(mutation(message, **result)), 200


@posts_bp.route("/posts/<int:post_id>/pin", methods=["POST"])
@require_auth
def toggle_pin(post_id: int):
    result = post_service.toggle_pin(
        post_id=post_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    message = "Post pinned" if result["is_pinned"] else "Post unpinned"
    return jsonify(mutation(message, **result)), 200


@posts_bp.route("/posts/<int:post_id>/share", methods=["POST"])
@require_auth
def share_post(post_id: int):
    data = SharePostSchema().load(json_body())
    result = post_service.share_post(
        post_id=post_id,
        user_id=g.user_id,
        shared_to=data["shared_to"],
        target_group_id=data.get("target_group_id"),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Post shared successfully", **result)), 200


@posts_bp.route("/posts/<int:post_id>/flag", methods=["POST"])
@require_auth
def flag_post(post_id: int):
    data = FlagPostSchema().load(json_body())
    result = post_service.flag_post(
        post_id=post_id,
        user_id=g.user_id,
        reason=data["reason"],
        description=data.get("description"),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Post flagged for review", **result)), 201


@posts_bp.route("/posts/<int:post_id>/comments", methods=["POST"])
@require_auth
def add_comment(post_id: int):
    data = CommentSchema().load(json_body())
    result = post_service.add_comment(
        post_id=post_id,
        user_id=g.user_id,
        content=data["content"],
        parent_id=data.get("parent_id"),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Comment added successfully", **result)), 201


@posts_bp.route("/posts/<int:post_id>/comments/<int:comment_id>", methods=["DELETE"])
@require_auth
def delete_comment(post_id: int, comment_id: int):
    result = post_service.delete_comment(
        post_id=post_id,
        comment_id=comment_id,
        actor_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Comment deleted successfully", **result)), 200
