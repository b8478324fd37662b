"""
services/admin_service.py — Site administration: users, pets, dashboard.

Every function here assumes the caller is a site admin; the route enforces
that with @require_admin.

Deleting a user is a hard delete. Before the user row goes:
  - groups they created are soft-deleted and lose their creator pointer
  - their roster/mirror pairs are removed and member_count is fixed
  - their posts, likes, comments, shares and flags are removed, and the
    counters on the remaining posts and groups are moved to match
  - their pets (with likes and reports) are deleted
A user who has adopted a pet cannot be deleted; the adoption record would
lose its adopter.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from fureverhome.app.errors import Conflict, ErrorCode, NotFound
from fureverhome.app.models.base import utcnow
from fureverhome.app.models.group import Group
from fureverhome.app.models.pet import Pet, PetLike, PetReport, PetStatus
from fureverhome.app.models.post import (
    GroupPost,
    PostComment,
    PostFlag,
    PostLike,
    PostShare,
    PostStatus,
)
from fureverhome.app.models.refresh_token import RefreshToken
from fureverhome.app.models.user import User, UserRole
from fureverhome.app.services import group_service, pet_service
from fureverhome.app.services.auth_service import build_user_dict
from fureverhome.app.services.pagination import paginate


logger = logging.getLogger(__name__)


RECENT_WINDOW_DAYS = 30


def _get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return user


def _admin_pet_dict(pet: Pet) -> dict:
    result = pet_service.pet_dict(pet)
    result["report_count"] = len(pet.reports)
    return result


def _drop_post_engagement(user_id: int, session: Session) -> None:
    """Removes the user's likes, comments, shares and flags on other posts."""
    for like in session.execute(
        select(PostLike).where(PostLike.user_id == user_id)
    ).scalars().all():
        like.post.likes_count -= 1
        session.delete(like)

    for comment in session.execute(
        select(PostComment).where(PostComment.user_id == user_id)
    ).scalars().all():
        if comment.parent_id is None:
            comment.post.comments_count -= 1
        session.delete(comment)

    for share in session.execute(
        select(PostShare).where(PostShare.user_id == user_id)
    ).scalars().all():
        share.post.shares_count -= 1
        session.delete(share)

    session.execute(delete(PostFlag).where(PostFlag.flagged_by_id == user_id))
    session.flush()


def _drop_posts(user_id: int, session: Session) -> int:
    posts = session.execute(
        select(GroupPost).where(GroupPost.author_id == user_id)
    ).scalars().all()

    for post in posts:
        if post.counted_in_stats:
            post.group.total_posts -= 1
        session.delete(post)
    session.flush()
    return len(posts)


# ── Public service functions ───────────────────────────────────────────────

def list_users(filters: dict, page: int, limit: int, session: Session) -> dict:
    """All accounts, newest first. Filters: search (name/email), role, is_active."""
    stmt = select(User)
    if filters.get("search"):
        pattern = f"%{filters['search']}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if filters.get("role"):
        stmt = stmt.where(User.role == UserRole(filters["role"]))
    if filters.get("is_active") is not None:
        stmt = stmt.where(User.is_active.is_(filters["is_active"]))

    stmt = stmt.order_by(User.created_at.desc(), User.id.desc())
    return paginate(session, stmt, page, limit, build_user_dict)


def list_pets(filters: dict, page: int, limit: int, session: Session) -> dict:
    """Every listing with its report count. Filters: search, status, category, reported."""
    stmt = select(Pet)
    if filters.get("search"):
        pattern = f"%{filters['search']}%"
        stmt = stmt.where(or_(Pet.name.ilike(pattern), Pet.breed.ilike(pattern)))
    if filters.get("status"):
        stmt = stmt.where(Pet.status == PetStatus(filters["status"]))
    if filters.get("category"):
        stmt = stmt.where(Pet.category == filters["category"])
    if filters.get("reported"):
        stmt = stmt.where(Pet.reports.any())

    stmt = stmt.order_by(Pet.created_at.desc(), Pet.id.desc())
    return paginate(session, stmt, page, limit, _admin_pet_dict)


def update_user(actor_id: int, user_id: int, data: dict, session: Session) -> dict:
    """
    Changes a user's role or active flag.

    Deactivating revokes every refresh token so the user is signed out.
    An admin cannot change their own role or deactivate themselves.
    """
    user = _get_user_or_404(user_id, session)
    if user.id == actor_id:
        raise Conflict(ErrorCode.CANNOT_MODIFY_SELF, "You cannot change your own account here.")

    if "role" in data:
        user.role = UserRole(data["role"])
    if "is_active" in data:
        user.is_active = data["is_active"]
        if not user.is_active:
            for token in user.refresh_tokens:
                token.revoked = True

    session.flush()
    logger.info("User %s updated by admin %s: %s", user.id, actor_id, sorted(data))
    return build_user_dict(user)


def delete_user(actor_id: int, user_id: int, session: Session) -> None:
    """
    Hard-deletes a user and everything they own.

    Raises:
      NotFound(USER_NOT_FOUND)
      Conflict(CANNOT_MODIFY_SELF)  — an admin cannot delete themselves
      Conflict(USER_HAS_ADOPTIONS)  — the user has adopted a pet
    """
    user = _get_user_or_404(user_id, session)
    if user.id == actor_id:
        raise Conflict(ErrorCode.CANNOT_MODIFY_SELF, "You cannot delete your own account here.")

    adoptions = session.execute(
        select(func.count(Pet.id)).where(Pet.adopted_by_id == user.id)
    ).scalar_one()
    if adoptions:
        raise Conflict(
            ErrorCode.USER_HAS_ADOPTIONS,
            "This user has adopted pets and cannot be deleted.",
        )

    retired = group_service.retire_created_groups(user.id, session)
    memberships = group_service.remove_user_memberships(user.id, session)
    _drop_post_engagement(user.id, session)
    posts = _drop_posts(user.id, session)

    pets = session.execute(select(Pet).where(Pet.posted_by_id == user.id)).scalars().all()
    for pet in pets:
        pet_service.delete_pet_row(pet, session)

    session.execute(delete(PetLike).where(PetLike.user_id == user.id))
    session.execute(delete(PetReport).where(PetReport.reported_by_id == user.id))
    session.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    session.expire(user, ["refresh_tokens"])

    session.delete(user)
    session.flush()

    logger.info(
        "User %s deleted by admin %s: %s groups retired, %s memberships, %s posts, %s pets",
        user_id, actor_id, retired, memberships, posts, len(pets),
    )


def delete_pet(actor_id: int, pet_id: int, session: Session) -> None:
    pet_service.delete_pet(pet_id, actor_id, True, session)


def get_dashboard_stats(session: Session) -> dict:
    """Site-wide counts for the admin dashboard."""
    since = utcnow() - timedelta(days=RECENT_WINDOW_DAYS)

    def _scalar(stmt) -> int:
        return session.execute(stmt).scalar_one()

    return {
        "users": {
            "total": _scalar(select(func.count(User.id))),
            "active": _scalar(select(func.count(User.id)).where(User.is_active.is_(True))),
            "admins": _scalar(select(func.count(User.id)).where(User.role == UserRole.ADMIN)),
            "new_last_30_days": _scalar(select(func.count(User.id)).where(User.created_at >= since)),
        },
        "pets": {
            "total": _scalar(select(func.count(Pet.id))),
            "available": _scalar(
                select(func.count(Pet.id)).where(Pet.status == PetStatus.AVAILABLE)
            ),
            "adopted": _scalar(
                select(func.count(Pet.id)).where(Pet.status == PetStatus.ADOPTED)
            ),
            "adopted_last_30_days": _scalar(
                select(func.count(Pet.id)).where(Pet.adopted_at >= since)
            ),
            "reported": _scalar(select(func.count(func.distinct(PetReport.pet_id)))),
        },
        "groups": {
            "total": _scalar(select(func.count(Group.id)).where(Group.is_active.is_(True))),
        },
        "posts": {
            "active": _scalar(
                select(func.count(GroupPost.id)).where(GroupPost.status == PostStatus.ACTIVE)
            ),
            "pending_approval": _scalar(
                select(func.count(GroupPost.id))
                .where(GroupPost.status == PostStatus.PENDING_APPROVAL)
            ),
            "flagged": _scalar(select(func.count(func.distinct(PostFlag.post_id)))),
        },
    }
