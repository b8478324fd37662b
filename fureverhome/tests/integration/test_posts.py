"""
tests/integration/test_posts.py — Integration tests for group posts and engagement.

Endpoints covered:
  POST   /groups/:id/posts
  GET    /groups/:id/posts
  POST   /groups/:id/share-pet
  GET    /groups/posts/:pid
  PUT    /groups/posts/:pid
  DELETE /groups/posts/:pid
  POST   /groups/posts/:pid/moderate
  POST   /groups/posts/:pid/like | pin | share | flag | comments
  DELETE /groups/posts/:pid/comments/:cid

Counters checked: likes_count, comments_count, shares_count, views and the
group's total_posts (active posts only).
"""

from __future__ import annotations

from .conftest import (
    auth_headers,
    group_state,
    join,
    make_group,
    make_pet,
    make_post,
    register,
)


def _setup(client, **group_kwargs):
    """alice creates the group, bob joins it, carol stays outside."""
    alice = register(client, "alice")
    bob = register(client, "bob")
    carol = register(client, "carol")
    group = make_group(client, alice["access_token"], **group_kwargs)
    join(client, bob["access_token"], group["id"])
    return alice, bob, carol, group


def _post(client, token, group_id, **extra) -> dict:
    resp = make_post(client, token, group_id, **extra)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["post"]


# ═══════════════════════════════════════════════════════════════════════════
# Creation and status
# ═══════════════════════════════════════════════════════════════════════════

class TestCreatePost:

    def test_member_post_is_active_and_counted(self, app, client):
        alice, bob, carol, group = _setup(client)

        resp = make_post(client, bob["access_token"], group["id"], title="Found a cat")

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["message"] == "Post created successfully"
        post = body["post"]
        assert post["status"] == "active"
        assert post["visibility"] == "members-only"
        assert post["type"] == "text"
        assert post["engagement"] == {
            "views": 0, "likes_count": 0, "comments_count": 0, "shares_count": 0,
        }
        assert group_state(app, group["id"])["total_posts"] == 1

    def test_member_post_waits_for_approval_when_required(self, app, client):
        alice, bob, carol, group = _setup(client, settings={"require_approval": True})
        manage_resp = client.patch(
            f"/api/groups/{group['id']}/members/{bob['user']['id']}",
            json={"action": "approve"},
            headers=auth_headers(alice["access_token"]),
        )
        assert manage_resp.status_code == 200

        resp = make_post(client, bob["access_token"], group["id"])

        body = resp.get_json()
        assert body["message"] == "Post submitted for approval"
        assert body["post"]["status"] == "pending-approval"
        assert group_state(app, group["id"])["total_posts"] == 0

    def test_admin_post_skips_approval(self, client):
        alice, bob, carol, group = _setup(client, settings={"require_approval": True})

        post = _post(client, alice["access_token"], group["id"])

        assert post["status"] == "active"

    def test_non_member_cannot_post(self, client):
        alice, bob, carol, group = _setup(client)

        resp = make_post(client, carol["access_token"], group["id"])

        assert resp.status_code == 403
        assert resp.get_json()["code"] == "FORBIDDEN"

    def test_member_posts_can_be_disabled(self, client):
        alice, bob, carol, group = _setup(client, settings={"allow_member_posts": False})

        assert make_post(client, bob["access_token"], group["id"]).status_code == 403
        assert make_post(client, alice["access_token"], group["id"]).status_code == 201

    def test_blank_content_is_rejected(self, client):
        alice, bob, carol, group = _setup(client)

        resp = make_post(client, bob["access_token"], group["id"], content="  ")

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "content"

    def test_related_pet_must_exist(self, client):
        alice, bob, carol, group = _setup(client)

        resp = make_post(client, bob["access_token"], group["id"], related_pet_id=999)

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "PET_NOT_FOUND"

    def test_share_pet_creates_public_pet_share_post(self, client):
        alice, bob, carol, group = _setup(client)
        pet = make_pet(client, carol["access_token"], name="Luna", urgency="high")

        resp = client.post(
            f"/api/groups/{group['id']}/share-pet",
            json={"pet_id": pet["id"]},
            headers=auth_headers(bob["access_token"]),
        )

        assert resp.status_code == 201
        post = resp.get_json()["post"]
        assert post["type"] == "pet-share"
        assert post["visibility"] == "public"
        assert post["priority"] == "high"
        assert post["title"] == "Luna needs a loving home!"
        assert post["related_pet"]["id"] == pet["id"]


# ═══════════════════════════════════════════════════════════════════════════
# Moderation
# ═══════════════════════════════════════════════════════════════════════════

class TestModeration:

    def test_approve_archive_restore_keep_total_posts_in_step(self, app, client):
        alice, bob, carol, group = _setup(client, settings={"require_approval": True})
        client.patch(
            f"/api/groups/{group['id']}/members/{bob['user']['id']}",
            json={"action": "approve"},
            headers=auth_headers(alice["access_token"]),
        )
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/moderate"
        headers = auth_headers(alice["access_token"])

        approved = client.post(url, json={"action": "approve"}, headers=headers)
        assert approved.status_code == 200
        assert approved.get_json()["message"] == "Post approved successfully"
        assert group_state(app, group["id"])["total_posts"] == 1

        client.post(url, json={"action": "archive"}, headers=headers)
        assert group_state(app, group["id"])["total_posts"] == 0

        restored = client.post(url, json={"action": "restore"}, headers=headers)
        assert restored.get_json()["post"]["status"] == "active"
        assert group_state(app, group["id"])["total_posts"] == 1

    def test_invalid_transition_is_409(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])

        resp = client.post(
            f"/api/groups/posts/{post['id']}/moderate",
            json={"action": "approve"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "INVALID_POST_TRANSITION"

    def test_plain_member_cannot_moderate(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, alice["access_token"], group["id"])

        resp = client.post(
            f"/api/groups/posts/{post['id']}/moderate",
            json={"action": "archive"},
            headers=auth_headers(bob["access_token"]),
        )

        assert resp.status_code == 403

    def test_pending_post_visible_to_author_and_moderators_only(self, client):
        alice, bob, carol, group = _setup(client, settings={"require_approval": True})
        join(client, carol["access_token"], group["id"])
        for user in (bob, carol):
            client.patch(
                f"/api/groups/{group['id']}/members/{user['user']['id']}",
                json={"action": "approve"},
                headers=auth_headers(alice["access_token"]),
            )
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}"

        assert client.get(url, headers=auth_headers(bob["access_token"])).status_code == 200
        assert client.get(url, headers=auth_headers(alice["access_token"])).status_code == 200
        assert client.get(url, headers=auth_headers(carol["access_token"])).status_code == 403

        listing = client.get(f"/api/groups/{group['id']}/posts", headers=auth_headers(carol["access_token"]))
        assert listing.get_json()["items"] == []

        own = client.get(
            f"/api/groups/{group['id']}/posts?status=pending-approval",
            headers=auth_headers(bob["access_token"]),
        )
        assert [p["id"] for p in own.get_json()["items"]] == [post["id"]]

    def test_delete_post_hides_it_and_uncounts_it(self, app, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])

        resp = client.delete(f"/api/groups/posts/{post['id']}", headers=auth_headers(bob["access_token"]))

        assert resp.status_code == 200
        assert group_state(app, group["id"])["total_posts"] == 0
        gone = client.get(f"/api/groups/posts/{post['id']}", headers=auth_headers(bob["access_token"]))
        assert gone.status_code == 404
        assert gone.get_json()["code"] == "POST_NOT_FOUND"

    def test_only_author_or_moderator_edits(self, client):
        alice, bob, carol, group = _setup(client)
        dave = register(client, "dave")
        join(client, dave["access_token"], group["id"])
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}"

        denied = client.put(url, json={"content": "edited"}, headers=auth_headers(dave["access_token"]))
        by_author = client.put(url, json={"content": "edited"}, headers=auth_headers(bob["access_token"]))
        by_admin = client.put(url, json={"title": "Tidy"}, headers=auth_headers(alice["access_token"]))

        assert denied.status_code == 403
        assert by_author.get_json()["post"]["content"] == "edited"
        assert by_admin.get_json()["post"]["title"] == "Tidy"


# ═══════════════════════════════════════════════════════════════════════════
# Visibility and listing
# ═══════════════════════════════════════════════════════════════════════════

class TestVisibility:

    def test_members_only_post_hidden_from_outsiders(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])

        resp = client.get(f"/api/groups/posts/{post['id']}", headers=auth_headers(carol["access_token"]))
        assert resp.status_code == 403

        listing = client.get(f"/api/groups/{group['id']}/posts").get_json()
        assert listing["items"] == []

    def test_public_post_visible_to_anyone(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"], visibility="public")

        resp = client.get(f"/api/groups/posts/{post['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["post"]["is_liked"] is False

    def test_private_group_posts_need_membership(self, client):
        alice, bob, carol, group = _setup(client, privacy="private")
        post = _post(client, alice["access_token"], group["id"], visibility="public")

        listing = client.get(f"/api/groups/{group['id']}/posts", headers=auth_headers(carol["access_token"]))
        detail = client.get(f"/api/groups/posts/{post['id']}", headers=auth_headers(carol["access_token"]))

        assert listing.status_code == 403
        assert listing.get_json()["code"] == "PRIVATE_GROUP"
        assert detail.status_code == 403

    def test_pinned_posts_come_first(self, client):
        alice, bob, carol, group = _setup(client)
        first = _post(client, bob["access_token"], group["id"], content="first")
        second = _post(client, bob["access_token"], group["id"], content="second")
        headers = auth_headers(bob["access_token"])

        before = client.get(f"/api/groups/{group['id']}/posts", headers=headers).get_json()
        assert [p["id"] for p in before["items"]] == [second["id"], first["id"]]

        pin = client.post(f"/api/groups/posts/{first['id']}/pin", headers=auth_headers(alice["access_token"]))
        assert pin.get_json()["is_pinned"] is True

        after = client.get(f"/api/groups/{group['id']}/posts", headers=headers).get_json()
        assert [p["id"] for p in after["items"]] == [first["id"], second["id"]]

    def test_plain_member_cannot_pin(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])

        resp = client.post(f"/api/groups/posts/{post['id']}/pin", headers=auth_headers(bob["access_token"]))

        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Engagement counters
# ═══════════════════════════════════════════════════════════════════════════

class TestEngagement:

    def test_like_toggles_and_counts(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/like"
        headers = auth_headers(alice["access_token"])

        liked = client.post(url, headers=headers).get_json()
        assert liked["liked"] is True
        assert liked["likes_count"] == 1
        assert liked["message"] == "Post liked"

        detail = client.get(f"/api/groups/posts/{post['id']}", headers=headers).get_json()["post"]
        assert detail["is_liked"] is True
        assert detail["engagement"]["likes_count"] == 1

        unliked = client.post(url, headers=headers).get_json()
        assert unliked["liked"] is False
        assert unliked["likes_count"] == 0

    def test_outsider_cannot_like(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"], visibility="public")

        resp = client.post(f"/api/groups/posts/{post['id']}/like", headers=auth_headers(carol["access_token"]))

        assert resp.status_code == 403

    def test_each_read_counts_a_view(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])
        headers = auth_headers(alice["access_token"])

        client.get(f"/api/groups/posts/{post['id']}", headers=headers)
        detail = client.get(f"/api/groups/posts/{post['id']}", headers=headers).get_json()["post"]

        assert detail["engagement"]["views"] == 2

    def test_comments_and_replies(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/comments"

        top = client.post(url, json={"content": "Nice"}, headers=auth_headers(alice["access_token"]))
        assert top.status_code == 201
        top_body = top.get_json()
        assert top_body["comments_count"] == 1
        comment_id = top_body["comment"]["id"]

        reply = client.post(
            url, json={"content": "Thanks", "parent_id": comment_id},
            headers=auth_headers(bob["access_token"]),
        ).get_json()
        assert reply["comments_count"] == 1
        assert reply["comment"]["parent_id"] == comment_id

        nested = client.post(
            url, json={"content": "Deeper", "parent_id": reply["comment"]["id"]},
            headers=auth_headers(alice["access_token"]),
        ).get_json()
        assert nested["comment"]["parent_id"] == comment_id

        detail = client.get(
            f"/api/groups/posts/{post['id']}", headers=auth_headers(bob["access_token"]),
        ).get_json()["post"]
        assert len(detail["comments"]) == 1
        assert len(detail["comments"][0]["replies"]) == 2

        deleted = client.delete(f"{url}/{comment_id}", headers=auth_headers(alice["access_token"]))
        assert deleted.status_code == 200
        assert deleted.get_json()["comments_count"] == 0

    def test_only_comment_author_or_moderator_deletes(self, client):
        alice, bob, carol, group = _setup(client)
        dave = register(client, "dave")
        join(client, dave["access_token"], group["id"])
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/comments"
        comment = client.post(
            url, json={"content": "Mine"}, headers=auth_headers(bob["access_token"]),
        ).get_json()["comment"]

        denied = client.delete(f"{url}/{comment['id']}", headers=auth_headers(dave["access_token"]))
        allowed = client.delete(f"{url}/{comment['id']}", headers=auth_headers(alice["access_token"]))

        assert denied.status_code == 403
        assert allowed.status_code == 200

    def test_unknown_parent_comment_is_404(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, bob["access_token"], group["id"])

        resp = client.post(
            f"/api/groups/posts/{post['id']}/comments",
            json={"content": "Hi", "parent_id": 999},
            headers=auth_headers(bob["access_token"]),
        )

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "COMMENT_NOT_FOUND"

    def test_share_counts_and_group_target_needs_membership(self, client):
        alice, bob, carol, group = _setup(client)
        other = make_group(client, carol["access_token"], name="Other")
        post = _post(client, bob["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/share"

        shared = client.post(url, json={"shared_to": "profile"}, headers=auth_headers(bob["access_token"]))
        assert shared.status_code == 200
        assert shared.get_json()["shares_count"] == 1

        refused = client.post(
            url, json={"shared_to": "group", "target_group_id": other["id"]},
            headers=auth_headers(bob["access_token"]),
        )
        assert refused.status_code == 403

        missing_target = client.post(url, json={"shared_to": "group"}, headers=auth_headers(bob["access_token"]))
        assert missing_target.status_code == 400
        assert missing_target.get_json()["field"] == "target_group_id"

    def test_flag_once_per_user(self, client):
        alice, bob, carol, group = _setup(client)
        post = _post(client, alice["access_token"], group["id"])
        url = f"/api/groups/posts/{post['id']}/flag"
        headers = auth_headers(bob["access_token"])

        first = client.post(url, json={"reason": "spam"}, headers=headers)
        second = client.post(url, json={"reason": "other"}, headers=headers)

        assert first.status_code == 201
        assert first.get_json()["flag_count"] == 1
        assert second.status_code == 409
        assert second.get_json()["code"] == "ALREADY_FLAGGED"
