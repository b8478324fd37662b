"""
services/group_service.py — Groups, membership transitions and the roster mirror.

The roster (group_members) is authoritative. Every transition writes the
roster row, the user's mirror row (user_group_memberships) and the stored
member_count in the same session, so they commit or roll back together.
Before each write the mirror is compared with the roster's previous state;
a missing or stale mirror row is logged at WARNING and repaired in place.
reconcile_memberships() runs the same repair across every group.

Authorization:
  - update group:  group admin (creator included)
  - delete group:  creator only
  - member management: see services/permissions.py
  - private groups: only active members see members and posts

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from fureverhome.app.errors import Conflict, ErrorCode, Forbidden, NotFound, ValidationFailed
from fureverhome.app.models.base import utcnow
from fureverhome.app.models.group import Group, GroupPrivacy
from fureverhome.app.models.membership import (
    GroupMember,
    MemberRole,
    MemberStatus,
    UserGroupMembership,
)
from fureverhome.app.models.user import User
from fureverhome.app.services import permissions
from fureverhome.app.services.membership_machine import (
    MANAGE_ACTIONS,
    ROLE_ACTIONS,
    MemberAction,
    active_delta,
    next_role,
    next_status,
)
from fureverhome.app.services.pagination import envelope, paginate, resolve_sort


logger = logging.getLogger(__name__)


GROUP_SORTS: dict[str, tuple] = {
    "newest":       (Group.created_at.desc(), Group.id.desc()),
    "oldest":       (Group.created_at.asc(), Group.id.asc()),
    "popular":      (Group.member_count.desc(), Group.created_at.desc(), Group.id.desc()),
    "members":      (Group.member_count.desc(), Group.id.desc()),
    "alphabetical": (Group.name.asc(), Group.id.asc()),
}

# Fields a group admin may change through PUT/PATCH /groups/<id>.
_UPDATABLE_FIELDS = (
    "name",
    "description",
    "category",
    "privacy",
    "tags",
    "rules",
    "contact_info",
    "avatar",
    "cover_image",
)

_SETTINGS_FIELDS = (
    "allow_member_posts",
    "require_approval",
    "allow_invites",
    "allow_file_uploads",
    "max_members_limit",
)


# ── Serialisers ────────────────────────────────────────────────────────────

def user_brief(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "avatar": user.avatar}


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _member_dict(member: GroupMember) -> dict:
    return {
        "user": user_brief(member.user),
        "role": member.role.value,
        "status": member.status.value,
        "joined_at": _iso(member.joined_at),
    }


def _membership_dict(member: GroupMember | None) -> dict | None:
    """The caller's own roster row, without the nested user."""
    if member is None:
        return None
    return {
        "role": member.role.value,
        "status": member.status.value,
        "joined_at": _iso(member.joined_at),
    }


def group_summary(group: Group) -> dict:
    """Minimal view shown to non-members of a private group. Never has members."""
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "type": group.type,
        "category": group.category,
        "privacy": group.privacy.value,
        "member_count": group.member_count,
        "created_by": user_brief(group.creator),
        "created_at": _iso(group.created_at),
        "is_private": True,
    }


def group_dict(group: Group) -> dict:
    """Full group metadata without the roster."""
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "type": group.type,
        "category": group.category,
        "privacy": group.privacy.value,
        "location": {
            "city": group.location_city,
            "state": group.location_state,
            "country": group.location_country,
        },
        "avatar": group.avatar,
        "cover_image": group.cover_image,
        "tags": list(group.tags or []),
        "rules": list(group.rules or []),
        "contact_info": dict(group.contact_info or {}),
        "settings": {field: getattr(group, field) for field in _SETTINGS_FIELDS},
        "member_count": group.member_count,
        "stats": {
            "total_posts": group.total_posts,
            "total_pets_helped": group.total_pets_helped,
            "successful_adoptions": group.successful_adoptions,
        },
        "created_by": user_brief(group.creator),
        "is_verified": group.is_verified,
        "is_private": group.privacy is GroupPrivacy.PRIVATE,
        "created_at": _iso(group.created_at),
        "updated_at": _iso(group.updated_at),
    }


# ── Private helpers ────────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the active Group or raises GROUP_NOT_FOUND (404). Soft-deleted groups are not found."""
    group = session.get(Group, group_id)
    if group is None or not group.is_active:
        raise NotFound(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.")
    return group


def require_visible(group: Group, caller_id: int | None) -> None:
    """
    Privacy gate for member and post data.

    Raises Forbidden(PRIVATE_GROUP) when the group is private and the caller
    is not an active member.
    """
    if group.privacy is GroupPrivacy.PRIVATE and not permissions.is_active_member(caller_id, group):
        raise Forbidden(
            ErrorCode.PRIVATE_GROUP,
            "You must be a member to view this private group.",
        )


def _get_mirror(user_id: int, group_id: int, session: Session) -> UserGroupMembership | None:
    return session.execute(
        select(UserGroupMembership).where(
            UserGroupMembership.user_id == user_id,
            UserGroupMembership.group_id == group_id,
        )
    ).scalar_one_or_none()


def _mirror_matches(
        mirror: UserGroupMembership | None,
        status: MemberStatus | None,
        role: MemberRole | None,
) -> bool:
    if status is None:
        return mirror is None
    return mirror is not None and mirror.status is status and mirror.role is role


def _check_capacity(group: Group) -> None:
    limit = group.max_members_limit
    if limit and group.member_count >= limit:
        raise Conflict(
            ErrorCode.GROUP_FULL,
            "Group has reached its maximum member limit.",
        )


def _soft_delete(group: Group, session: Session) -> int:
    """Deactivates the group and removes every mirror row pointing at it."""
    group.is_active = False
    removed = session.execute(
        delete(UserGroupMembership).where(UserGroupMembership.group_id == group.id)
    ).rowcount
    session.flush()
    return removed


def _write_membership(
        session: Session,
        group: Group,
        user_id: int,
        member: GroupMember | None,
        status: MemberStatus | None,
        role: MemberRole | None,
) -> GroupMember | None:
    """
    Applies one transition to the roster, the mirror and member_count.

    status=None removes the (group, user) pair from both tables.
    Returns the roster row after the write, or None when removed.
    """
    before_status = member.status if member is not None else None
    before_role = member.role if member is not None else None

    mirror = _get_mirror(user_id, group.id, session)
    if not _mirror_matches(mirror, before_status, before_role):
        logger.warning(
            "Membership mirror diverged for group=%s user=%s: roster=%s/%s mirror=%s/%s; repairing",
            group.id,
            user_id,
            before_status and before_status.value,
            before_role and before_role.value,
            mirror.status.value if mirror else None,
            mirror.role.value if mirror else None,
        )

    if status is None:
        if member is not None:
            group.members.remove(member)
        if mirror is not None:
            session.delete(mirror)
        result = None
    else:
        if member is None:
            member = GroupMember(
                group_id=group.id,
                user_id=user_id,
                role=role,
                status=status,
                joined_at=utcnow(),
            )
            group.members.append(member)
        else:
            member.role = role
            member.status = status

        if mirror is None:
            session.add(UserGroupMembership(
                user_id=user_id,
                group_id=group.id,
                role=role,
                status=status,
                joined_at=member.joined_at,
            ))
        else:
            mirror.role = role
            mirror.status = status
        result = member

    group.member_count += active_delta(before_status, status)
    session.flush()
    return result


# ── Public service functions ───────────────────────────────────────────────

def create_group(creator_id: int, data: dict, session: Session) -> dict:
    """
    Creates a group. The creator is enrolled as admin/active on both the
    roster and their mirror, so member_count starts at 1.

    Args:
        data: validated GroupCreateSchema output.
    """
    location = data.get("location") or {}
    settings = data.get("settings") or {}

    group = Group(
        name=data["name"],
        description=data["description"],
        type=data["type"],
        category=data.get("category", "general"),
        privacy=GroupPrivacy(data.get("privacy", GroupPrivacy.PUBLIC.value)),
        location_city=location.get("city"),
        location_state=location.get("state"),
        location_country=location.get("country"),
        avatar=data.get("avatar"),
        cover_image=data.get("cover_image"),
        tags=data.get("tags", []),
        rules=data.get("rules", []),
        contact_info=data.get("contact_info", {}),
        created_by_id=creator_id,
        allow_member_posts=settings.get("allow_member_posts", True),
        require_approval=settings.get("require_approval", False),
        allow_invites=settings.get("allow_invites", True),
        allow_file_uploads=settings.get("allow_file_uploads", True),
        max_members_limit=settings.get("max_members_limit", 0),
        member_count=0,
    )
    session.add(group)
    session.flush()  # populate group.id before enrolling the creator

    _write_membership(
        session, group, creator_id, None,
        status=MemberStatus.ACTIVE,
        role=MemberRole.ADMIN,
    )
    logger.info("Group %s created by user %s", group.id, creator_id)

    result = group_dict(group)
    result["membership"] = _membership_dict(permissions.find_member(group, creator_id))
    return result


def list_groups(
        filters: dict,
        caller_id: int | None,
        page: int,
        limit: int,
        session: Session,
) -> dict:
    """
    Active groups matching the filters, paginated. Never includes rosters.

    Private groups the caller is not an active member of are listed as
    summaries only, the same view get_group returns for them.
    """
    stmt = select(Group).where(Group.is_active.is_(True))

    for field in ("type", "category"):
        if filters.get(field):
            stmt = stmt.where(getattr(Group, field) == filters[field])
    if filters.get("privacy"):
        stmt = stmt.where(Group.privacy == GroupPrivacy(filters["privacy"]))
    if filters.get("location"):
        pattern = f"%{filters['location']}%"
        stmt = stmt.where(or_(
            Group.location_city.ilike(pattern),
            Group.location_state.ilike(pattern),
            Group.location_country.ilike(pattern),
        ))
    if filters.get("search"):
        pattern = f"%{filters['search']}%"
        stmt = stmt.where(or_(Group.name.ilike(pattern), Group.description.ilike(pattern)))

    def _listed(group: Group) -> dict:
        if group.privacy is GroupPrivacy.PRIVATE and not permissions.is_active_member(caller_id, group):
            return group_summary(group)
        return group_dict(group)

    stmt = stmt.order_by(*resolve_sort(filters.get("sort"), GROUP_SORTS, "newest"))
    return paginate(session, stmt, page, limit, _listed)


def get_group(group_id: int, caller_id: int | None, session: Session) -> dict:
    """
    Group detail behind the privacy gate.

    Private group and caller not an active member → {"group": summary,
    "membership": <caller's own row or None>}; the summary carries no roster.
    Otherwise the full group with its roster. Pending and banned rows are
    listed only for moderators and admins.
    """
    group = get_group_or_404(group_id, session)
    own = permissions.find_member(group, caller_id)

    if group.privacy is GroupPrivacy.PRIVATE and not permissions.is_active_member(caller_id, group):
        return {"group": group_summary(group), "membership": _membership_dict(own)}

    moderator = permissions.can_moderate(caller_id, group)
    members = [
        m for m in group.members
        if moderator or m.status is MemberStatus.ACTIVE
    ]

    result = group_dict(group)
    admins = permissions.admin_ids(group)
    if group.created_by_id is not None:
        admins.add(group.created_by_id)
    result["admins"] = sorted(admins)
    result["moderators"] = sorted(permissions.moderator_ids(group))
    result["members"] = [_member_dict(m) for m in members]
    return {"group": result, "membership": _membership_dict(own)}


def list_user_groups(
        user_id: int,
        status: str,
        page: int,
        limit: int,
        session: Session,
) -> dict:
    """The caller's groups read from their mirror rows, filtered by status."""
    stmt = (
        select(UserGroupMembership, Group)
        .join(Group, Group.id == UserGroupMembership.group_id)
        .where(
            UserGroupMembership.user_id == user_id,
            UserGroupMembership.status == MemberStatus(status),
            Group.is_active.is_(True),
        )
        .order_by(UserGroupMembership.joined_at.desc(), Group.id.desc())
    )

    total = session.execute(
        select(func.count())
        .select_from(UserGroupMembership)
        .join(Group, Group.id == UserGroupMembership.group_id)
        .where(
            UserGroupMembership.user_id == user_id,
            UserGroupMembership.status == MemberStatus(status),
            Group.is_active.is_(True),
        )
    ).scalar_one()

    rows = session.execute(stmt.offset((page - 1) * limit).limit(limit)).all()

    items = []
    for mirror, group in rows:
        item = group_dict(group)
        item["user_role"] = mirror.role.value
        item["user_status"] = mirror.status.value
        item["joined_at"] = _iso(mirror.joined_at)
        items.append(item)
    return envelope(items, total, page, limit)


def update_group(group_id: int, actor_id: int, data: dict, session: Session) -> dict:
    """Group admins only. Applies the allowed fields present in `data`."""
    group = get_group_or_404(group_id, session)
    permissions.require_admin(actor_id, group)

    for field in _UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "privacy":
            value = GroupPrivacy(value)
        setattr(group, field, value)

    if "location" in data:
        location = data["location"] or {}
        group.location_city = location.get("city")
        group.location_state = location.get("state")
        group.location_country = location.get("country")

    for field, value in (data.get("settings") or {}).items():
        if field in _SETTINGS_FIELDS:
            setattr(group, field, value)

    session.flush()
    logger.info("Group %s updated by user %s", group.id, actor_id)
    return group_dict(group)


def delete_group(group_id: int, actor_id: int, session: Session) -> None:
    """
    Creator only. Soft delete: the group row and its roster stay for history,
    every mirror row pointing at it is removed.
    """
    group = get_group_or_404(group_id, session)
    if not permissions.is_creator(actor_id, group):
        raise Forbidden(ErrorCode.FORBIDDEN, "Only the group creator can delete the group.")

    removed = _soft_delete(group, session)
    logger.info("Group %s deleted by user %s; %s mirror rows removed", group.id, actor_id, removed)


def join_group(group_id: int, user_id: int, session: Session) -> dict:
    """
    none → active, or none → pending when the group requires approval.

    Raises:
      Conflict(ALREADY_MEMBER / MEMBERSHIP_PENDING), Forbidden(MEMBER_BANNED)
      Conflict(GROUP_FULL) — max_members_limit reached
    """
    group = get_group_or_404(group_id, session)
    member = permissions.find_member(group, user_id)
    current = member.status if member is not None else None

    status = next_status(MemberAction.JOIN, current, require_approval=group.require_approval)
    _check_capacity(group)

    _write_membership(session, group, user_id, member, status=status, role=MemberRole.MEMBER)
    logger.info("User %s joined group %s as %s", user_id, group.id, status.value)

    return {"status": status.value, "member_count": group.member_count}


def leave_group(group_id: int, user_id: int, session: Session) -> dict:
    """
    any → none for everyone except the creator.

    Raises:
      Conflict(CREATOR_CANNOT_LEAVE) — the creator must delete the group instead
      NotFound(MEMBER_NOT_FOUND)     — caller has no roster row
    """
    group = get_group_or_404(group_id, session)

    if permissions.is_creator(user_id, group):
        raise Conflict(
            ErrorCode.CREATOR_CANNOT_LEAVE,
            "Group creator cannot leave. Transfer ownership or delete the group.",
        )

    member = permissions.find_member(group, user_id)
    if member is None:
        raise NotFound(ErrorCode.MEMBER_NOT_FOUND, "You are not a member of this group.")

    status = next_status(MemberAction.LEAVE, member.status)
    _write_membership(session, group, user_id, member, status=status, role=None)
    logger.info("User %s left group %s", user_id, group.id)

    return {"member_count": group.member_count}


def manage_member(
        group_id: int,
        actor_id: int,
        target_user_id: int,
        action: str,
        role: str | None,
        session: Session,
) -> dict:
    """
    Applies approve / reject / ban / unban / promote / demote to a roster row.

    A transition that leaves the row unchanged (approving an active member,
    promoting a moderator to moderator) is a no-op reported as changed=False.

    Raises:
      ValidationFailed(INVALID_ACTION)      — unknown action
      Forbidden(FORBIDDEN)                  — permission matrix refuses it
      NotFound(MEMBER_NOT_FOUND)            — target has no roster row
      Conflict(MEMBER_NOT_ACTIVE)           — role change on a non-active member
      ValidationFailed(INVALID_ROLE_CHANGE) — promote down / demote up
      Conflict(GROUP_FULL)                  — approve/unban past the limit
    """
    try:
        member_action = MemberAction(action)
    except ValueError:
        member_action = None
    if member_action not in MANAGE_ACTIONS:
        raise ValidationFailed(ErrorCode.INVALID_ACTION, f"Invalid action '{action}'.", field="action")

    requested_role = MemberRole(role) if role else None

    group = get_group_or_404(group_id, session)
    permissions.require_moderator(actor_id, group)

    target = permissions.find_member(group, target_user_id)
    if target is None:
        raise NotFound(ErrorCode.MEMBER_NOT_FOUND, f"User {target_user_id} is not in this group.")

    permissions.require_can_manage_member(member_action, actor_id, target, group, requested_role)

    if member_action in ROLE_ACTIONS:
        if target.status is not MemberStatus.ACTIVE:
            raise Conflict(
                ErrorCode.MEMBER_NOT_ACTIVE,
                "Only active members can have their role changed.",
            )
        new_role = next_role(member_action, target.role, requested_role)
        new_status = target.status
    else:
        new_role = target.role
        new_status = next_status(member_action, target.status)

    changed = new_role is not target.role or new_status is not target.status

    if changed:
        if active_delta(target.status, new_status) > 0:
            _check_capacity(group)
        target = _write_membership(
            session, group, target_user_id, target, status=new_status, role=new_role,
        )
        logger.info(
            "User %s applied %s to user %s in group %s",
            actor_id, member_action.value, target_user_id, group.id,
        )

    return {
        "action": member_action.value,
        "changed": changed,
        "member": _member_dict(target) if target is not None else None,
        "member_count": group.member_count,
    }


def list_members(
        group_id: int,
        caller_id: int | None,
        status: str | None,
        page: int,
        limit: int,
        session: Session,
) -> dict:
    """
    Roster listing, behind the privacy gate.

    Pending and banned rows are visible to admins and moderators only; other
    callers always get active members.
    """
    group = get_group_or_404(group_id, session)
    require_visible(group, caller_id)

    moderator = permissions.can_moderate(caller_id, group)
    if status and status != MemberStatus.ACTIVE.value and not moderator:
        raise Forbidden(
            ErrorCode.FORBIDDEN,
            "Only group admins and moderators can view pending or banned members.",
        )

    stmt = select(GroupMember).where(GroupMember.group_id == group.id)
    if status:
        stmt = stmt.where(GroupMember.status == MemberStatus(status))
    elif not moderator:
        stmt = stmt.where(GroupMember.status == MemberStatus.ACTIVE)
    stmt = stmt.order_by(GroupMember.joined_at.asc(), GroupMember.id.asc())

    return paginate(session, stmt, page, limit, _member_dict)


def get_group_stats(session: Session) -> dict:
    """Totals over active groups, broken down by type and category."""
    active = Group.is_active.is_(True)

    total = session.execute(select(func.count(Group.id)).where(active)).scalar_one()

    def _breakdown(column) -> list[dict]:
        rows = session.execute(
            select(column, func.count(Group.id)).where(active).group_by(column).order_by(column)
        ).all()
        return [{"value": value, "count": count} for value, count in rows]

    return {
        "total_groups": total,
        "by_type": _breakdown(Group.type),
        "by_category": _breakdown(Group.category),
    }


def remove_user_memberships(user_id: int, session: Session) -> int:
    """
    Drops every roster/mirror pair for `user_id` and fixes member_count.

    Used when an account is hard-deleted. Returns the number of pairs removed.
    """
    rows = session.execute(
        select(GroupMember).where(GroupMember.user_id == user_id)
    ).scalars().all()

    for member in rows:
        _write_membership(session, member.group, user_id, member, status=None, role=None)

    # Mirrors whose roster row is already gone.
    session.execute(delete(UserGroupMembership).where(UserGroupMembership.user_id == user_id))
    session.flush()
    return len(rows)


def retire_created_groups(user_id: int, session: Session) -> int:
    """
    Soft-deletes every group `user_id` created and clears the creator pointer.

    Used when an account is hard-deleted. Returns the number of groups touched.
    """
    groups = session.execute(
        select(Group).where(Group.created_by_id == user_id)
    ).scalars().all()

    for group in groups:
        if group.is_active:
            _soft_delete(group, session)
        group.created_by_id = None
    session.flush()
    return len(groups)


def reconcile_memberships(session: Session) -> dict:
    """
    Rebuilds every mirror row from the authoritative roster.

    Idempotent: a second run on a consistent database changes nothing.
    Each repair is logged at WARNING. member_count is recomputed from the
    roster as part of the same pass.

    Returns counts: {"created", "updated", "removed", "counts_fixed"}.
    """
    summary = {"created": 0, "updated": 0, "removed": 0, "counts_fixed": 0}

    active_groups = {
        g.id: g for g in session.execute(
            select(Group).where(Group.is_active.is_(True))
        ).scalars().all()
    }

    mirrors = {
        (m.user_id, m.group_id): m
        for m in session.execute(select(UserGroupMembership)).scalars().all()
    }

    expected: set[tuple[int, int]] = set()
    for group in active_groups.values():
        active_count = 0
        for member in group.members:
            key = (member.user_id, group.id)
            expected.add(key)
            active_count += member.status is MemberStatus.ACTIVE

            mirror = mirrors.get(key)
            if mirror is None:
                logger.warning(
                    "Missing mirror for group=%s user=%s; creating", group.id, member.user_id,
                )
                session.add(UserGroupMembership(
                    user_id=member.user_id,
                    group_id=group.id,
                    role=member.role,
                    status=member.status,
                    joined_at=member.joined_at,
                ))
                summary["created"] += 1
            elif mirror.role is not member.role or mirror.status is not member.status:
                logger.warning(
                    "Stale mirror for group=%s user=%s: %s/%s -> %s/%s",
                    group.id, member.user_id,
                    mirror.status.value, mirror.role.value,
                    member.status.value, member.role.value,
                )
                mirror.role = member.role
                mirror.status = member.status
                summary["updated"] += 1

        if group.member_count != active_count:
            logger.warning(
                "member_count drift for group=%s: stored=%s actual=%s",
                group.id, group.member_count, active_count,
            )
            group.member_count = active_count
            summary["counts_fixed"] += 1

    for key, mirror in mirrors.items():
        if key not in expected:
            logger.warning(
                "Orphan mirror for group=%s user=%s; removing", mirror.group_id, mirror.user_id,
            )
            session.delete(mirror)
            summary["removed"] += 1

    session.flush()
    logger.info("Membership reconciliation finished: %s", summary)
    return summary
