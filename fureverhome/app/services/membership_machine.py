"""
services/membership_machine.py — Membership state machine for (group, user) pairs.

Pure functions only: no session, no Flask. group_service loads the roster row,
asks this module for the next status / role, then writes the result to both
the roster and the user's mirror row.

States are MemberStatus values plus None, which stands for "no roster row".

    action    from        to
    ───────   ─────────   ──────────────────────────────────────────
    join      none        active, or pending when approval is required
    join      active      Conflict ALREADY_MEMBER
    join      pending     Conflict MEMBERSHIP_PENDING
    join      banned      Forbidden MEMBER_BANNED
    approve   pending     active
    reject    pending     none
    ban       active      banned
    ban       pending     banned
    unban     banned      active
    leave     any         none

Any (action, state) pair not listed for approve/reject/ban/unban is a no-op:
the status is returned unchanged and the caller reports `changed: false`.
banned → active is reachable only through unban.

Role changes (promote/demote) are orthogonal to status and ranked
member < moderator < admin.
"""

from __future__ import annotations

import enum

from fureverhome.app.errors import Conflict, ErrorCode, Forbidden, ValidationFailed
from fureverhome.app.models.membership import MemberRole, MemberStatus


class MemberAction(str, enum.Enum):
    JOIN    = "join"
    APPROVE = "approve"
    REJECT  = "reject"
    BAN     = "ban"
    UNBAN   = "unban"
    PROMOTE = "promote"
    DEMOTE  = "demote"
    LEAVE   = "leave"


# Actions accepted by PATCH /groups/<id>/members/<user_id>.
MANAGE_ACTIONS: tuple[MemberAction, ...] = (
    MemberAction.APPROVE,
    MemberAction.REJECT,
    MemberAction.BAN,
    MemberAction.UNBAN,
    MemberAction.PROMOTE,
    MemberAction.DEMOTE,
)

ROLE_ACTIONS: frozenset[MemberAction] = frozenset({MemberAction.PROMOTE, MemberAction.DEMOTE})

# Past-tense verbs used in API messages ("Member approved").
PAST_TENSE: dict[MemberAction, str] = {
    MemberAction.JOIN:    "joined",
    MemberAction.APPROVE: "approved",
    MemberAction.REJECT:  "rejected",
    MemberAction.BAN:     "banned",
    MemberAction.UNBAN:   "unbanned",
    MemberAction.PROMOTE: "promoted",
    MemberAction.DEMOTE:  "demoted",
    MemberAction.LEAVE:   "left",
}

ROLE_RANK: dict[MemberRole, int] = {
    MemberRole.MEMBER:    0,
    MemberRole.MODERATOR: 1,
    MemberRole.ADMIN:     2,
}

_STATUS_TRANSITIONS: dict[tuple[MemberAction, MemberStatus | None], MemberStatus | None] = {
    (MemberAction.APPROVE, MemberStatus.PENDING): MemberStatus.ACTIVE,
    (MemberAction.REJECT,  MemberStatus.PENDING): None,
    (MemberAction.BAN,     MemberStatus.ACTIVE):  MemberStatus.BANNED,
    (MemberAction.BAN,     MemberStatus.PENDING): MemberStatus.BANNED,
    (MemberAction.UNBAN,   MemberStatus.BANNED):  MemberStatus.ACTIVE,
    (MemberAction.LEAVE,   MemberStatus.ACTIVE):  None,
    (MemberAction.LEAVE,   MemberStatus.PENDING): None,
    (MemberAction.LEAVE,   MemberStatus.BANNED):  None,
}

_JOIN_REJECTIONS = {
    MemberStatus.ACTIVE: (
        Conflict, ErrorCode.ALREADY_MEMBER, "You are already a member of this group.",
    ),
    MemberStatus.PENDING: (
        Conflict, ErrorCode.MEMBERSHIP_PENDING, "Your membership request is pending approval.",
    ),
    MemberStatus.BANNED: (
        Forbidden, ErrorCode.MEMBER_BANNED, "You are banned from this group.",
    ),
}


def next_status(
        action: MemberAction,
        current: MemberStatus | None,
        require_approval: bool = False,
) -> MemberStatus | None:
    """
    Returns the status the (group, user) pair moves to under `action`.

    Raises:
      Conflict(ALREADY_MEMBER)      — join while active
      Conflict(MEMBERSHIP_PENDING)  — join while pending
      Forbidden(MEMBER_BANNED)      — join while banned
      ValidationFailed(INVALID_ACTION) — action has no status semantics
    """
    if action is MemberAction.JOIN:
        if current is None:
            return MemberStatus.PENDING if require_approval else MemberStatus.ACTIVE
        error_cls, code, message = _JOIN_REJECTIONS[current]
        raise error_cls(code, message)

    if action in ROLE_ACTIONS:
        raise ValidationFailed(
            ErrorCode.INVALID_ACTION,
            f"'{action.value}' changes the role, not the status.",
            field="action",
        )

    return _STATUS_TRANSITIONS.get((action, current), current)


def active_delta(before: MemberStatus | None, after: MemberStatus | None) -> int:
    """Change in the group's active-member count caused by before → after."""
    was_active = before is MemberStatus.ACTIVE
    is_active = after is MemberStatus.ACTIVE
    return int(is_active) - int(was_active)


def next_role(
        action: MemberAction,
        current: MemberRole,
        requested: MemberRole | None = None,
) -> MemberRole:
    """
    Returns the role after promote/demote.

    promote defaults to moderator and demote to member. Asking for the role
    already held is a no-op. Promoting downwards or demoting upwards is
    rejected with ValidationFailed(INVALID_ROLE_CHANGE).
    """
    if action is MemberAction.PROMOTE:
        target = requested or MemberRole.MODERATOR
        if ROLE_RANK[target] < ROLE_RANK[current]:
            raise ValidationFailed(
                ErrorCode.INVALID_ROLE_CHANGE,
                f"Cannot promote a {current.value} to {target.value}.",
                field="role",
            )
        return target

    if action is MemberAction.DEMOTE:
        target = requested or MemberRole.MEMBER
        if ROLE_RANK[target] > ROLE_RANK[current]:
            raise ValidationFailed(
                ErrorCode.INVALID_ROLE_CHANGE,
                f"Cannot demote a {current.value} to {target.value}.",
                field="role",
            )
        return target

    raise ValidationFailed(
        ErrorCode.INVALID_ACTION,
        f"'{action.value}' does not change the role.",
        field="action",
    )
