"""
services/permissions.py — Authorization predicates over (actor id, group).

Pure functions. They read only `group.created_by_id` and `group.members`
(roster rows with user_id / role / status), so unit tests can pass a
SimpleNamespace in place of a Group.

Admins and moderators are derived from active roster rows; nothing stores
them separately, so a promote can never leave a duplicate entry behind.

Permission matrix for membership transitions:

    actor       approve/reject  ban/unban          promote/demote
    ─────────   ──────────────  ─────────────────  ──────────────────────────
    creator     yes             yes                yes
    admin       yes             not on an admin    moderator/member only
    moderator   yes             not on an admin    no
    member      no              no                 no

Nobody acts on the group creator or on themselves through member management.
"""

from __future__ import annotations

from fureverhome.app.errors import ErrorCode, Forbidden
from fureverhome.app.models.membership import MemberRole, MemberStatus
from fureverhome.app.models.post import PostStatus, PostVisibility
from fureverhome.app.services.membership_machine import ROLE_ACTIONS, MemberAction


def find_member(group, user_id: int | None):
    """Roster row for user_id, or None."""
    if user_id is None:
        return None
    for member in group.members:
        if member.user_id == user_id:
            return member
    return None


def _ids_with_role(group, role: MemberRole) -> set[int]:
    return {
        m.user_id
        for m in group.members
        if m.role is role and m.status is MemberStatus.ACTIVE
    }


def admin_ids(group) -> set[int]:
    return _ids_with_role(group, MemberRole.ADMIN)


def moderator_ids(group) -> set[int]:
    return _ids_with_role(group, MemberRole.MODERATOR)


def is_creator(actor_id: int | None, group) -> bool:
    return actor_id is not None and actor_id == group.created_by_id


def is_admin(actor_id: int | None, group) -> bool:
    return is_creator(actor_id, group) or actor_id in admin_ids(group)


def is_moderator(actor_id: int | None, group) -> bool:
    return actor_id in moderator_ids(group)


def can_moderate(actor_id: int | None, group) -> bool:
    """Admin (creator included) or moderator."""
    return is_admin(actor_id, group) or is_moderator(actor_id, group)


def is_active_member(actor_id: int | None, group) -> bool:
    member = find_member(group, actor_id)
    return member is not None and member.status is MemberStatus.ACTIVE


def can_manage_member(
        action: MemberAction,
        actor_id: int,
        target,
        group,
        requested_role: MemberRole | None = None,
) -> bool:
    """
    True when actor_id may apply `action` to the roster row `target`.

    requested_role only matters for promote/demote: granting or revoking
    admin is reserved for the creator.
    """
    if not can_moderate(actor_id, group):
        return False
    if target.user_id == actor_id or is_creator(target.user_id, group):
        return False

    creator = is_creator(actor_id, group)

    if action in ROLE_ACTIONS:
        if not is_admin(actor_id, group):
            return False
        touches_admin = (
            target.role is MemberRole.ADMIN or requested_role is MemberRole.ADMIN
        )
        return creator or not touches_admin

    if action in (MemberAction.BAN, MemberAction.UNBAN):
        return creator or target.role is not MemberRole.ADMIN

    return action in (MemberAction.APPROVE, MemberAction.REJECT)


def require_can_manage_member(
        action: MemberAction,
        actor_id: int,
        target,
        group,
        requested_role: MemberRole | None = None,
) -> None:
    """Raises Forbidden(FORBIDDEN) unless can_manage_member allows it."""
    if not can_manage_member(action, actor_id, target, group, requested_role):
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            f"You do not have permission to {action.value} this member.",
        )


def require_moderator(actor_id: int, group) -> None:
    if not can_moderate(actor_id, group):
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            "Only group admins and moderators can perform this action.",
        )


def require_admin(actor_id: int, group) -> None:
    if not is_admin(actor_id, group):
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            "Only group admins can perform this action.",
        )


def can_edit_post(actor_id: int, post, group) -> bool:
    """Post author, or a group admin/moderator."""
    return post.author_id == actor_id or can_moderate(actor_id, group)


def can_view_post(actor_id: int | None, post, group) -> bool:
    """
    Post-level visibility, applied after the group-level privacy gate.

    Posts that are not active are visible only to their author and to
    moderators; removed posts are never visible.
    """
    if post.status is PostStatus.REMOVED:
        return False

    moderator = can_moderate(actor_id, group)
    if post.status is not PostStatus.ACTIVE:
        return moderator or post.author_id == actor_id

    if post.visibility is PostVisibility.ADMINS_ONLY:
        return moderator
    if post.visibility is PostVisibility.MEMBERS_ONLY:
        return moderator or is_active_member(actor_id, group)
    return True
