"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against TEST_DATABASE_URL when set, otherwise in-memory SQLite.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in reverse FK order so tests are
    isolated, and the view debouncer is cleared.
  - Uploads go to a per-session temporary folder.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)      → dict with message + user + tokens
  - login(client, ...)         → dict with message + user + tokens
  - auth_headers(token)        → {"Authorization": "Bearer <token>"}
  - make_admin(app, user_id)   → promotes a user to site admin
  - make_group(client, ...)    → group dict
  - join(client, ...)          → HTTP response
  - manage(client, ...)        → HTTP response
  - make_post(client, ...)     → HTTP response
  - make_pet(client, ...)      → pet dict

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from fureverhome.app import create_app
from fureverhome.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Steps:
      1. Create app with TestingConfig.
      2. Point UPLOAD_FOLDER at a temporary directory.
      3. Run db.create_all() to create all tables.
      4. Yield the app for the test session.
      5. Drop all tables at teardown.
    """
    flask_app = create_app("testing")
    flask_app.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("uploads"))

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests, children before parents.

    autouse=True means this runs after EVERY test in the integration suite
    without needing to be declared in each test function.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()

    app.extensions["view_debouncer"].clear()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Registers a new user and returns the response body.
    Returns: {"message": ..., "user": {...}, "access_token": "...", "refresh_token": "..."}
    """
    if email is None:
        email = f"{name}@test.com"
    resp = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()


def login(client, email: str, password: str = "Password1") -> dict:
    """Logs in a user and returns the response body."""
    resp = client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_admin(app, user_id: int) -> None:
    """
    Promotes a user to site admin directly in the database.
    The middleware reads the role from the user row, so existing tokens
    pick up the change on their next request.
    """
    from fureverhome.app.models.user import User, UserRole

    with app.app_context():
        user = _db.session.get(User, user_id)
        user.role = UserRole.ADMIN
        _db.session.commit()


def make_group(
    client,
    token: str,
    name: str = "Austin Rescuers",
    privacy: str = "public",
    settings: dict | None = None,
    **extra,
) -> dict:
    """
    Creates a group and returns the group dict.
    The caller (token owner) becomes the creator, an admin and the first member.
    """
    payload = {
        "name": name,
        "description": "Helping pets find homes",
        "type": "rescue",
        "privacy": privacy,
        **extra,
    }
    if settings is not None:
        payload["settings"] = settings
    resp = client.post("/api/groups", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["group"]


def join(client, token: str, group_id: int):
    return client.post(f"/api/groups/{group_id}/join", headers=auth_headers(token))


def manage(client, token: str, group_id: int, user_id: int, action: str, role: str | None = None):
    payload = {"action": action}
    if role is not None:
        payload["role"] = role
    return client.patch(
        f"/api/groups/{group_id}/members/{user_id}",
        json=payload,
        headers=auth_headers(token),
    )


def make_post(client, token: str, group_id: int, content: str = "Hello group", **extra):
    return client.post(
        f"/api/groups/{group_id}/posts",
        json={"content": content, **extra},
        headers=auth_headers(token),
    )


def make_pet(client, token: str, **overrides) -> dict:
    """Creates a pet listing and returns the pet dict."""
    payload = {
        "name": "Rex",
        "breed": "Labrador",
        "category": "dog",
        "age": 2,
        "gender": "male",
        "location": "Austin",
        "description": "Friendly and playful",
        "adoption_fee": "100.00",
    }
    payload.update(overrides)
    resp = client.post("/api/pets", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_pet failed: {resp.get_json()}"
    return resp.get_json()["pet"]


def group_state(app, group_id: int) -> dict:
    """
    Reads the stored counters and both membership tables for one group.
    Returns {"member_count", "total_posts", "roster": {uid: (role, status)},
             "mirror": {uid: (role, status)}}.
    """
    from sqlalchemy import select

    from fureverhome.app.models.group import Group
    from fureverhome.app.models.membership import GroupMember, UserGroupMembership

    with app.app_context():
        group = _db.session.get(Group, group_id)
        roster = _db.session.execute(
            select(GroupMember).where(GroupMember.group_id == group_id)
        ).scalars().all()
        mirror = _db.session.execute(
            select(UserGroupMembership).where(UserGroupMembership.group_id == group_id)
        ).scalars().all()
        return {
            "member_count": group.member_count,
            "total_posts": group.total_posts,
            "roster": {m.user_id: (m.role.value, m.status.value) for m in roster},
            "mirror": {m.user_id: (m.role.value, m.status.value) for m in mirror},
        }


def assert_membership_consistent(app, group_id: int) -> None:
    """member_count equals the active roster size and the mirror matches the roster."""
    state = group_state(app, group_id)
    active = [uid for uid, (_, status) in state["roster"].items() if status == "active"]
    assert state["member_count"] == len(active)
    assert state["mirror"] == state["roster"]
