"""
services/post_service.py — Group posts, engagement and post moderation.

Post states:

    action    from               to
    ───────   ────────────────   ────────
    approve   pending-approval   active
    archive   active             archived
    restore   archived           active
    delete    any but removed    removed   (soft delete; author or moderator)

A new post is pending-approval when the group requires approval and the
author's role is exactly `member`; otherwise it is active.

Counters:
  - likes_count / comments_count / shares_count move by ±1 next to the
    child-row insert or delete. comments_count counts top-level comments.
  - Group.total_posts counts posts currently in the active state.
    `counted_in_stats` records whether a post is included, and
    _sync_post_stats() adjusts the group counter on every status change.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from fureverhome.app.errors import Conflict, ErrorCode, Forbidden, NotFound
from fureverhome.app.models.group import Group
from fureverhome.app.models.membership import MemberRole, MemberStatus
from fureverhome.app.models.pet import Pet
from fureverhome.app.models.post import (
    GroupPost,
    PostComment,
    PostFlag,
    PostLike,
    PostShare,
    PostStatus,
    PostVisibility,
)
from fureverhome.app.services import permissions
from fureverhome.app.services.group_service import (
    get_group_or_404,
    require_visible,
    user_brief,
)
from fureverhome.app.services.pagination import paginate, resolve_sort


logger = logging.getLogger(__name__)


POST_SORTS: dict[str, tuple] = {
    "newest": (
        GroupPost.is_pinned.desc(),
        GroupPost.created_at.desc(),
        GroupPost.id.desc(),
    ),
    "popular": (
        GroupPost.is_pinned.desc(),
        GroupPost.likes_count.desc(),
        GroupPost.created_at.desc(),
        GroupPost.id.desc(),
    ),
    "most-commented": (
        GroupPost.is_pinned.desc(),
        GroupPost.comments_count.desc(),
        GroupPost.created_at.desc(),
        GroupPost.id.desc(),
    ),
}

_MODERATION_TRANSITIONS: dict[tuple[str, PostStatus], PostStatus] = {
    ("approve", PostStatus.PENDING_APPROVAL): PostStatus.ACTIVE,
    ("archive", PostStatus.ACTIVE):           PostStatus.ARCHIVED,
    ("restore", PostStatus.ARCHIVED):         PostStatus.ACTIVE,
}

# Fields the author or a moderator may change through PUT/PATCH.
_UPDATABLE_FIELDS = (
    "title",
    "content",
    "images",
    "videos",
    "tags",
    "priority",
    "event_details",
    "help_request",
)

# Flags at or above this count are logged for site admins.
FLAG_ALERT_THRESHOLD = 3


# ── Serialisers ────────────────────────────────────────────────────────────

def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _pet_brief(pet: Pet | None) -> dict | None:
    if pet is None:
        return None
    return {
        "id": pet.id,
        "name": pet.name,
        "breed": pet.breed,
        "category": pet.category,
        "photos": list(pet.photos or []),
        "status": pet.status.value,
    }


def _comment_dict(comment: PostComment) -> dict:
    result = {
        "id": comment.id,
        "user": user_brief(comment.user),
        "content": comment.content,
        "parent_id": comment.parent_id,
        "created_at": _iso(comment.created_at),
    }
    if comment.parent_id is None:
        result["replies"] = [_comment_dict(reply) for reply in comment.replies]
    return result


def _is_liked(post_id: int, user_id: int | None, session: Session) -> bool:
    if user_id is None:
        return False
    return session.execute(
        select(PostLike.id).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
    ).first() is not None


def post_dict(
        post: GroupPost,
        session: Session,
        caller_id: int | None = None,
        include_comments: bool = False,
) -> dict:
    result = {
        "id": post.id,
        "group_id": post.group_id,
        "author": user_brief(post.author),
        "type": post.type,
        "title": post.title,
        "content": post.content,
        "images": list(post.images or []),
        "videos": list(post.videos or []),
        "related_pet": _pet_brief(post.related_pet),
        "location": post.location,
        "tags": list(post.tags or []),
        "priority": post.priority,
        "event_details": post.event_details,
        "help_request": post.help_request,
        "visibility": post.visibility.value,
        "status": post.status.value,
        "is_pinned": post.is_pinned,
        "is_announcement": post.is_announcement,
        "engagement": {
            "views": post.views,
            "likes_count": post.likes_count,
            "comments_count": post.comments_count,
            "shares_count": post.shares_count,
        },
        "is_liked": _is_liked(post.id, caller_id, session),
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
    }
    if include_comments:
        result["comments"] = [
            _comment_dict(c) for c in post.comments if c.parent_id is None
        ]
    return result


# ── Private helpers ────────────────────────────────────────────────────────

def _get_post_or_404(post_id: int, session: Session) -> tuple[GroupPost, Group]:
    """
    Returns (post, group). Removed posts and posts of soft-deleted groups
    raise POST_NOT_FOUND (404).
    """
    post = session.get(GroupPost, post_id)
    if post is None or post.status is PostStatus.REMOVED or not post.group.is_active:
        raise NotFound(ErrorCode.POST_NOT_FOUND, f"Post {post_id} does not exist.")
    return post, post.group


def _require_active_member(user_id: int, group: Group, action: str):
    member = permissions.find_member(group, user_id)
    if member is None or member.status is not MemberStatus.ACTIVE:
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            f"You must be an active member to {action} in this group.",
        )
    return member


def _require_viewable(post: GroupPost, group: Group, caller_id: int | None) -> None:
    require_visible(group, caller_id)
    if not permissions.can_view_post(caller_id, post, group):
        raise Forbidden(ErrorCode.FORBIDDEN, "You do not have access to this post.")


def _sync_post_stats(post: GroupPost, group: Group) -> None:
    """Keeps Group.total_posts equal to the number of active posts."""
    should_count = post.status is PostStatus.ACTIVE
    if should_count and not post.counted_in_stats:
        group.total_posts += 1
    elif not should_count and post.counted_in_stats:
        group.total_posts -= 1
    post.counted_in_stats = should_count


def _initial_status(group: Group, author_role: MemberRole) -> PostStatus:
    if group.require_approval and author_role is MemberRole.MEMBER:
        return PostStatus.PENDING_APPROVAL
    return PostStatus.ACTIVE


def _new_post(session: Session, group: Group, author_id: int, fields: dict) -> GroupPost:
    """
    Shared by create_post and share_pet_to_group: membership and posting
    checks, initial status and the total_posts counter.
    """
    member = _require_active_member(author_id, group, "post")
    if not group.allow_member_posts and member.role is MemberRole.MEMBER:
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            "Only admins and moderators can post in this group.",
        )

    post = GroupPost(
        group_id=group.id,
        author_id=author_id,
        status=_initial_status(group, member.role),
        counted_in_stats=False,
        **fields,
    )
    session.add(post)
    _sync_post_stats(post, group)
    session.flush()

    logger.info(
        "Post %s created in group %s by user %s (%s)",
        post.id, group.id, author_id, post.status.value,
    )
    return post


# ── Public service functions ───────────────────────────────────────────────

def create_post(group_id: int, author_id: int, data: dict, session: Session) -> dict:
    """
    Creates a post in a group.

    Raises:
      NotFound(GROUP_NOT_FOUND / PET_NOT_FOUND)
      Forbidden(FORBIDDEN) — not an active member, or member posts disabled
    """
    group = get_group_or_404(group_id, session)

    related_pet_id = data.get("related_pet_id")
    if related_pet_id is not None and session.get(Pet, related_pet_id) is None:
        raise NotFound(ErrorCode.PET_NOT_FOUND, f"Pet {related_pet_id} does not exist.")

    post = _new_post(session, group, author_id, {
        "type": data.get("type", "text"),
        "title": data.get("title"),
        "content": data["content"],
        "images": data.get("images", []),
        "videos": data.get("videos", []),
        "related_pet_id": related_pet_id,
        "location": data.get("location"),
        "tags": data.get("tags", []),
        "priority": data.get("priority", "normal"),
        "event_details": data.get("event_details"),
        "help_request": data.get("help_request"),
        "visibility": PostVisibility(data.get("visibility", PostVisibility.MEMBERS_ONLY.value)),
    })
    return post_dict(post, session, author_id)


def share_pet_to_group(
        group_id: int,
        author_id: int,
        pet_id: int,
        message: str | None,
        session: Session,
) -> dict:
    """Creates a pet-share post pointing at an existing pet listing."""
    group = get_group_or_404(group_id, session)

    pet = session.get(Pet, pet_id)
    if pet is None:
        raise NotFound(ErrorCode.PET_NOT_FOUND, f"Pet {pet_id} does not exist.")

    post = _new_post(session, group, author_id, {
        "type": "pet-share",
        "title": f"{pet.name} needs a loving home!",
        "content": message or f"Check out this adorable {pet.breed} looking for adoption.",
        "related_pet_id": pet.id,
        "images": list(pet.photos or []),
        "priority": "high" if pet.urgency == "high" else "normal",
        "visibility": PostVisibility.PUBLIC,
    })
    return post_dict(post, session, author_id)


def list_posts(
        group_id: int,
        caller_id: int | None,
        filters: dict,
        page: int,
        limit: int,
        session: Session,
) -> dict:
    """
    Posts of one group, pinned first, behind the privacy gate.

    status defaults to active. Moderators may list any non-removed status;
    other callers asking for a non-active status only see their own posts.
    Post visibility narrows the result to what the caller may read.
    """
    group = get_group_or_404(group_id, session)
    require_visible(group, caller_id)

    moderator = permissions.can_moderate(caller_id, group)
    status = PostStatus(filters.get("status") or PostStatus.ACTIVE.value)

    stmt = select(GroupPost).where(
        GroupPost.group_id == group.id,
        GroupPost.status == status,
    )

    if status is not PostStatus.ACTIVE and not moderator:
        if caller_id is None:
            raise Forbidden(ErrorCode.FORBIDDEN, "Sign in to view your own pending posts.")
        stmt = stmt.where(GroupPost.author_id == caller_id)

    if not moderator:
        visible = [PostVisibility.PUBLIC]
        if permissions.is_active_member(caller_id, group):
            visible.append(PostVisibility.MEMBERS_ONLY)
        stmt = stmt.where(or_(
            GroupPost.visibility.in_(visible),
            GroupPost.author_id == caller_id,
        ))

    if filters.get("type"):
        stmt = stmt.where(GroupPost.type == filters["type"])
    if filters.get("priority"):
        stmt = stmt.where(GroupPost.priority == filters["priority"])

    stmt = stmt.order_by(*resolve_sort(filters.get("sort"), POST_SORTS, "newest"))
    return paginate(session, stmt, page, limit, lambda p: post_dict(p, session, caller_id))


def get_post(post_id: int, caller_id: int | None, session: Session) -> dict:
    """Post detail with comments and replies. Each read counts one view."""
    post, group = _get_post_or_404(post_id, session)
    _require_viewable(post, group, caller_id)

    post.views += 1
    session.flush()
    return post_dict(post, session, caller_id, include_comments=True)


def update_post(post_id: int, actor_id: int, data: dict, session: Session) -> dict:
    """Author or group admin/moderator; only the allowed fields change."""
    post, group = _get_post_or_404(post_id, session)
    if not permissions.can_edit_post(actor_id, post, group):
        raise Forbidden(ErrorCode.FORBIDDEN, "You do not have permission to edit this post.")

    for field in _UPDATABLE_FIELDS:
        if field in data:
            setattr(post, field, data[field])

    session.flush()
    return post_dict(post, session, actor_id)


def delete_post(post_id: int, actor_id: int, session: Session) -> None:
    """Soft delete (status removed). Author or group admin/moderator."""
    post, group = _get_post_or_404(post_id, session)
    if not permissions.can_edit_post(actor_id, post, group):
        raise Forbidden(ErrorCode.FORBIDDEN, "You do not have permission to delete this post.")

    post.status = PostStatus.REMOVED
    _sync_post_stats(post, group)
    session.flush()
    logger.info("Post %s removed by user %s", post.id, actor_id)


def moderate_post(post_id: int, actor_id: int, action: str, session: Session) -> dict:
    """
    approve / archive / restore, for group admins and moderators.

    Raises Conflict(INVALID_POST_TRANSITION) when the post is not in the
    state the action starts from.
    """
    post, group = _get_post_or_404(post_id, session)
    permissions.require_moderator(actor_id, group)

    new_status = _MODERATION_TRANSITIONS.get((action, post.status))
    if new_status is None:
        raise Conflict(
            ErrorCode.INVALID_POST_TRANSITION,
            f"Cannot {action} a post that is {post.status.value}.",
        )

    post.status = new_status
    _sync_post_stats(post, group)
    session.flush()
    logger.info("Post %s %s by user %s", post.id, action, actor_id)
    return post_dict(post, session, actor_id)


def toggle_like(post_id: int, user_id: int, session: Session) -> dict:
    """Like or unlike. Returns {"liked", "likes_count"}."""
    post, group = _get_post_or_404(post_id, session)
    _require_viewable(post, group, user_id)
    _require_active_member(user_id, group, "like posts")

    like = session.execute(
        select(PostLike).where(PostLike.post_id == post.id, PostLike.user_id == user_id)
    ).scalar_one_or_none()

    if like is not None:
        post.likes.remove(like)
        post.likes_count -= 1
        liked = False
    else:
        post.likes.append(PostLike(user_id=user_id))
        post.likes_count += 1
        liked = True

    session.flush()
    return {"liked": liked, "likes_count": post.likes_count}


def add_comment(
        post_id: int,
        user_id: int,
        content: str,
        parent_id: int | None,
        session: Session,
) -> dict:
    """
    Adds a top-level comment, or a reply when parent_id is given.

    Replies are one level deep: replying to a reply attaches to its
    top-level comment. Only top-level comments move comments_count.
    """
    post, group = _get_post_or_404(post_id, session)
    _require_viewable(post, group, user_id)
    _require_active_member(user_id, group, "comment")

    parent = None
    if parent_id is not None:
        parent = session.get(PostComment, parent_id)
        if parent is None or parent.post_id != post.id:
            raise NotFound(ErrorCode.COMMENT_NOT_FOUND, f"Comment {parent_id} does not exist.")
        if parent.parent_id is not None:
            parent = session.get(PostComment, parent.parent_id)

    comment = PostComment(
        post_id=post.id,
        user_id=user_id,
        content=content,
        parent_id=parent.id if parent is not None else None,
    )
    session.add(comment)
    if parent is None:
        post.comments_count += 1
    session.flush()

    return {"comment": _comment_dict(comment), "comments_count": post.comments_count}


def delete_comment(post_id: int, comment_id: int, actor_id: int, session: Session) -> dict:
    """Comment author or group admin/moderator. Deleting a comment drops its replies."""
    post, group = _get_post_or_404(post_id, session)

    comment = session.get(PostComment, comment_id)
    if comment is None or comment.post_id != post.id:
        raise NotFound(ErrorCode.COMMENT_NOT_FOUND, f"Comment {comment_id} does not exist.")

    if comment.user_id != actor_id and not permissions.can_moderate(actor_id, group):
        raise Forbidden(ErrorCode.FORBIDDEN, "You do not have permission to delete this comment.")

    if comment.parent_id is None:
        post.comments_count -= 1
    session.delete(comment)
    session.flush()
    session.expire(post, ["comments"])

    return {"comments_count": post.comments_count}


def share_post(
        post_id: int,
        user_id: int,
        shared_to: str,
        target_group_id: int | None,
        session: Session,
) -> dict:
    """Records a share. Sharing into a group needs active membership there."""
    post, group = _get_post_or_404(post_id, session)
    _require_viewable(post, group, user_id)

    if shared_to == "group":
        target = get_group_or_404(target_group_id, session)
        _require_active_member(user_id, target, "share")
    else:
        target_group_id = None

    post.shares.append(PostShare(
        user_id=user_id,
        shared_to=shared_to,
        target_group_id=target_group_id,
    ))
    post.shares_count += 1
    session.flush()
    return {"shares_count": post.shares_count}


def flag_post(
        post_id: int,
        user_id: int,
        reason: str,
        description: str | None,
        session: Session,
) -> dict:
    """One flag per user per post; Conflict(ALREADY_FLAGGED) on repeats."""
    post, group = _get_post_or_404(post_id, session)
    _require_viewable(post, group, user_id)

    existing = session.execute(
        select(PostFlag.id).where(PostFlag.post_id == post.id, PostFlag.flagged_by_id == user_id)
    ).first()
    if existing is not None:
        raise Conflict(ErrorCode.ALREADY_FLAGGED, "You have already flagged this post.")

    post.flags.append(PostFlag(flagged_by_id=user_id, reason=reason, description=description))
    session.flush()

    flag_count = len(post.flags)
    if flag_count >= FLAG_ALERT_THRESHOLD:
        logger.warning("Post %s in group %s has %s flags", post.id, group.id, flag_count)
    return {"flag_count": flag_count}


def toggle_pin(post_id: int, actor_id: int, session: Session) -> dict:
    """Group admins and moderators only."""
    post, group = _get_post_or_404(post_id, session)
    if not permissions.can_moderate(actor_id, group):
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            "Only group admins and moderators can pin posts.",
        )

    post.is_pinned = not post.is_pinned
    session.flush()
    return {"is_pinned": post.is_pinned}
