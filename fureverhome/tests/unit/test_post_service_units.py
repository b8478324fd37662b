"""
Unit tests for post_service status and counter rules.

These tests run DB-free with SimpleNamespace posts/groups.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from fureverhome.app.errors import AppError, ErrorCode
from fureverhome.app.models.membership import MemberRole, MemberStatus
from fureverhome.app.models.post import PostStatus
from fureverhome.app.services import post_service


def _group(require_approval=False, total_posts=0):
    return SimpleNamespace(
        id=1,
        created_by_id=100,
        require_approval=require_approval,
        total_posts=total_posts,
        members=[
            SimpleNamespace(user_id=100, role=MemberRole.ADMIN, status=MemberStatus.ACTIVE),
            SimpleNamespace(user_id=200, role=MemberRole.MEMBER, status=MemberStatus.ACTIVE),
        ],
    )


class TestInitialStatus:

    def test_member_post_needs_approval_when_required(self):
        group = _group(require_approval=True)
        assert post_service._initial_status(group, MemberRole.MEMBER) is PostStatus.PENDING_APPROVAL

    @pytest.mark.parametrize("role", [MemberRole.MODERATOR, MemberRole.ADMIN])
    def test_staff_post_is_active_even_when_approval_required(self, role):
        group = _group(require_approval=True)
        assert post_service._initial_status(group, role) is PostStatus.ACTIVE

    def test_no_approval_means_active(self):
        assert post_service._initial_status(_group(), MemberRole.MEMBER) is PostStatus.ACTIVE


class TestSyncPostStats:

    def test_counts_active_post_once(self):
        group = _group()
        post = SimpleNamespace(status=PostStatus.ACTIVE, counted_in_stats=False)

        post_service._sync_post_stats(post, group)
        post_service._sync_post_stats(post, group)

        assert group.total_posts == 1
        assert post.counted_in_stats is True

    def test_pending_post_is_not_counted(self):
        group = _group()
        post = SimpleNamespace(status=PostStatus.PENDING_APPROVAL, counted_in_stats=False)

        post_service._sync_post_stats(post, group)

        assert group.total_posts == 0

    def test_leaving_active_state_decrements(self):
        group = _group(total_posts=1)
        post = SimpleNamespace(status=PostStatus.ARCHIVED, counted_in_stats=True)

        post_service._sync_post_stats(post, group)

        assert group.total_posts == 0
        assert post.counted_in_stats is False


class TestModeration:

    @patch("fureverhome.app.services.post_service._get_post_or_404")
    def test_archiving_a_pending_post_is_invalid(self, mock_get_post):
        group = _group()
        post = SimpleNamespace(id=5, status=PostStatus.PENDING_APPROVAL, counted_in_stats=False)
        mock_get_post.return_value = (post, group)

        with pytest.raises(AppError) as exc_info:
            post_service.moderate_post(post_id=5, actor_id=100, action="archive", session=MagicMock())

        assert exc_info.value.code == ErrorCode.INVALID_POST_TRANSITION
        assert exc_info.value.http_status == 409

    @patch("fureverhome.app.services.post_service.post_dict")
    @patch("fureverhome.app.services.post_service._get_post_or_404")
    def test_approve_counts_the_post(self, mock_get_post, mock_post_dict):
        group = _group()
        post = SimpleNamespace(id=5, status=PostStatus.PENDING_APPROVAL, counted_in_stats=False)
        mock_get_post.return_value = (post, group)
        mock_post_dict.return_value = {}

        post_service.moderate_post(post_id=5, actor_id=100, action="approve", session=MagicMock())

        assert post.status is PostStatus.ACTIVE
        assert group.total_posts == 1

    @patch("fureverhome.app.services.post_service._get_post_or_404")
    def test_plain_member_cannot_moderate(self, mock_get_post):
        post = SimpleNamespace(id=5, status=PostStatus.PENDING_APPROVAL, counted_in_stats=False)
        mock_get_post.return_value = (post, _group())

        with pytest.raises(AppError) as exc_info:
            post_service.moderate_post(post_id=5, actor_id=200, action="approve", session=MagicMock())

        assert exc_info.value.code == ErrorCode.FORBIDDEN


def test_removed_post_is_not_found():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(
        status=PostStatus.REMOVED,
        group=SimpleNamespace(is_active=True),
    )

    with pytest.raises(AppError) as exc_info:
        post_service._get_post_or_404(5, session)

    assert exc_info.value.code == ErrorCode.POST_NOT_FOUND


def test_post_in_deleted_group_is_not_found():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(
        status=PostStatus.ACTIVE,
        group=SimpleNamespace(is_active=False),
    )

    with pytest.raises(AppError) as exc_info:
        post_service._get_post_or_404(5, session)

    assert exc_info.value.code == ErrorCode.POST_NOT_FOUND
