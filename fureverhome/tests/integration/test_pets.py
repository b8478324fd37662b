"""
tests/integration/test_pets.py — Integration tests for pet listing endpoints.

Endpoints covered:
  GET    /pets                 → 200
  POST   /pets                 → 201
  GET    /pets/search          → 200
  GET    /pets/nearby          → 200
  GET    /pets/stats           → 200
  GET    /pets/recommended     → 200
  GET    /pets/user/:kind      → 200
  GET    /pets/:id             → 200 (debounced view count)
  PUT    /pets/:id             → 200
  DELETE /pets/:id             → 200
  POST   /pets/:id/adopt       → 200
  POST   /pets/:id/like        → 200
  POST   /pets/:id/report      → 201

Error cases:
  PET_NOT_FOUND        404
  PET_ALREADY_ADOPTED  409 — adopt twice, or change an adopted pet's status
  SELF_ADOPTION        409 — poster adopts their own listing
  FORBIDDEN            403 — update/delete by someone else
"""

from __future__ import annotations

from decimal import Decimal

from .conftest import auth_headers, make_admin, make_pet, register


# ═══════════════════════════════════════════════════════════════════════════
# POST /pets
# ═══════════════════════════════════════════════════════════════════════════

class TestCreatePet:

    def test_create_returns_available_listing(self, client):
        alice = register(client, "alice")

        pet = make_pet(client, alice["access_token"], currency="eur")

        assert pet["status"] == "available"
        assert pet["origin_type"] == "owned"
        assert pet["size"] == "medium"
        assert pet["adoption_fee"] == "100.00"
        assert pet["currency"] == "EUR"
        assert pet["posted_by"]["id"] == alice["user"]["id"]
        assert pet["adopted_by"] is None
        assert pet["views"] == 0

    def test_stray_listing_is_free_with_found_location(self, client):
        alice = register(client, "alice")

        pet = make_pet(client, alice["access_token"], origin_type="stray", adoption_fee="80.00")

        assert Decimal(pet["adoption_fee"]) == 0
        assert pet["found_location"] == "Austin"

    def test_missing_required_fields(self, client):
        alice = register(client, "alice")
        resp = client.post("/api/pets", json={"name": "Rex"}, headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "MISSING_FIELD"
        assert body["fields"] == ["age", "breed", "category", "description", "gender", "location"]

    def test_requires_auth(self, client):
        resp = client.post("/api/pets", json={})
        assert resp.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# GET /pets, /pets/search, /pets/stats
# ═══════════════════════════════════════════════════════════════════════════

class TestListPets:

    def test_filters_and_pagination(self, client):
        alice = register(client, "alice")
        token = alice["access_token"]
        make_pet(client, token, name="Rex", age=1)
        make_pet(client, token, name="Max", age=5)
        make_pet(client, token, name="Tom", category="cat", breed="Siamese", age=3)

        dogs = client.get("/api/pets?category=dog").get_json()
        assert dogs["pagination"]["total"] == 2

        older = client.get("/api/pets?min_age=2&max_age=10&sort=oldest").get_json()
        assert [p["name"] for p in older["items"]] == ["Max", "Tom"]

        paged = client.get("/api/pets?limit=2&page=2").get_json()
        assert paged["pagination"] == {"total": 3, "page": 2, "pages": 2}
        assert len(paged["items"]) == 1

    def test_age_range_must_be_ordered(self, client):
        resp = client.get("/api/pets?min_age=5&max_age=1")
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "min_age"

    def test_urgency_sort_ranks_high_first(self, client):
        alice = register(client, "alice")
        token = alice["access_token"]
        make_pet(client, token, name="Low", urgency="low")
        make_pet(client, token, name="High", urgency="high")
        make_pet(client, token, name="Medium", urgency="medium")

        body = client.get("/api/pets?sort=urgency").get_json()

        assert [p["name"] for p in body["items"]] == ["High", "Medium", "Low"]

    def test_price_sort(self, client):
        alice = register(client, "alice")
        token = alice["access_token"]
        make_pet(client, token, name="Pricey", adoption_fee="300.00")
        make_pet(client, token, name="Cheap", adoption_fee="20.00")

        body = client.get("/api/pets?sort=price-low").get_json()

        assert [p["name"] for p in body["items"]] == ["Cheap", "Pricey"]

    def test_search_by_name_and_breed(self, client):
        alice = register(client, "alice")
        make_pet(client, alice["access_token"], name="Biscuit", breed="Beagle")
        make_pet(client, alice["access_token"], name="Shadow", breed="Husky")

        by_name = client.get("/api/pets/search?name=bisc").get_json()
        by_breed = client.get("/api/pets/search?breed=husk").get_json()

        assert [p["name"] for p in by_name["items"]] == ["Biscuit"]
        assert [p["name"] for p in by_breed["items"]] == ["Shadow"]

    def test_stats_report_adoption_rate(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        first = make_pet(client, alice["access_token"])
        make_pet(client, alice["access_token"], category="cat", breed="Siamese")
        make_pet(client, alice["access_token"], location="Dallas")
        make_pet(client, alice["access_token"])
        client.post(f"/api/pets/{first['id']}/adopt", headers=auth_headers(bob["access_token"]))

        stats = client.get("/api/pets/stats").get_json()

        assert stats["total"] == 4
        assert stats["available"] == 3
        assert stats["adopted"] == 1
        assert stats["adoption_rate"] == "25.00%"
        assert stats["categories"][0] == {"value": "dog", "count": 3}
        assert stats["locations"][0] == {"value": "Austin", "count": 3}

    def test_stats_with_no_pets(self, client):
        assert client.get("/api/pets/stats").get_json()["adoption_rate"] == "0.00%"


# ═══════════════════════════════════════════════════════════════════════════
# GET /pets/:id
# ═══════════════════════════════════════════════════════════════════════════

class TestGetPet:

    def test_detail_includes_similar_pets(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])
        similar = make_pet(client, alice["access_token"], name="Buddy")
        make_pet(client, alice["access_token"], name="Tom", category="cat", breed="Siamese")

        body = client.get(f"/api/pets/{pet['id']}").get_json()

        assert body["pet"]["id"] == pet["id"]
        assert [p["id"] for p in body["similar_pets"]] == [similar["id"]]
        assert body["is_liked"] is False

    def test_repeat_views_from_one_address_count_once(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])
        url = f"/api/pets/{pet['id']}"

        client.get(url)
        client.get(url)
        client.get(url, environ_base={"REMOTE_ADDR": "10.0.0.2"})
        body = client.get(url).get_json()

        assert body["pet"]["views"] == 2

    def test_unknown_pet_is_404(self, client):
        resp = client.get("/api/pets/9999")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "PET_NOT_FOUND"

    def test_missing_pet_does_not_open_a_view_window(self, app, client):
        client.get("/api/pets/9999")
        client.get("/api/pets/9998", environ_base={"REMOTE_ADDR": "10.0.0.3"})

        assert len(app.extensions["view_debouncer"]) == 0


class TestNearbyPets:

    def test_returns_available_pets_newest_first(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        older = make_pet(client, alice["access_token"], name="Old")
        newer = make_pet(client, alice["access_token"], name="New")
        adopted = make_pet(client, alice["access_token"], name="Gone")
        client.post(f"/api/pets/{adopted['id']}/adopt", headers=auth_headers(bob["access_token"]))

        resp = client.get("/api/pets/nearby?lat=30.27&lon=-97.74&radius=25")

        assert resp.status_code == 200
        assert [p["id"] for p in resp.get_json()["items"]] == [newer["id"], older["id"]]

    def test_coordinates_are_required(self, client):
        resp = client.get("/api/pets/nearby?lat=30.27")

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "MISSING_FIELD"
        assert resp.get_json()["field"] == "lon"

    def test_out_of_range_latitude_is_400(self, client):
        resp = client.get("/api/pets/nearby?lat=95&lon=10")

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_FIELD"


# ═══════════════════════════════════════════════════════════════════════════
# POST /pets/:id/adopt
# ═══════════════════════════════════════════════════════════════════════════

class TestAdopt:

    def test_adopt_sets_adopter_and_date(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])

        resp = client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(bob["access_token"]))

        assert resp.status_code == 200
        adopted = resp.get_json()["pet"]
        assert adopted["status"] == "adopted"
        assert adopted["adopted_by"]["id"] == bob["user"]["id"]
        assert adopted["adopted_at"] is not None

    def test_adopt_twice_is_409(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        carol = register(client, "carol")
        pet = make_pet(client, alice["access_token"])
        client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(bob["access_token"]))

        resp = client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(carol["access_token"]))

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "PET_ALREADY_ADOPTED"
        detail = client.get(f"/api/pets/{pet['id']}").get_json()["pet"]
        assert detail["adopted_by"]["id"] == bob["user"]["id"]

    def test_self_adoption_is_409(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])

        resp = client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "SELF_ADOPTION"

    def test_adopted_pets_are_listed_for_the_adopter(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])
        client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(bob["access_token"]))

        adopted = client.get("/api/pets/user/adopted", headers=auth_headers(bob["access_token"])).get_json()
        posted = client.get("/api/pets/user/posted", headers=auth_headers(alice["access_token"])).get_json()

        assert [p["id"] for p in adopted["items"]] == [pet["id"]]
        assert [p["id"] for p in posted["items"]] == [pet["id"]]

    def test_unknown_user_list_kind_is_400(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/pets/user/stolen", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# PUT / DELETE /pets/:id
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdateAndDelete:

    def test_poster_updates_listing(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])

        resp = client.put(
            f"/api/pets/{pet['id']}",
            json={"name": "Rexy", "status": "pending"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 200
        updated = resp.get_json()["pet"]
        assert updated["name"] == "Rexy"
        assert updated["status"] == "pending"

    def test_status_adopted_is_refused_on_update(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])

        resp = client.put(
            f"/api/pets/{pet['id']}",
            json={"status": "adopted"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "status"

    def test_adopted_status_is_frozen(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])
        client.post(f"/api/pets/{pet['id']}/adopt", headers=auth_headers(bob["access_token"]))

        resp = client.put(
            f"/api/pets/{pet['id']}",
            json={"status": "available"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "PET_ALREADY_ADOPTED"

    def test_switching_to_stray_zeroes_fee(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])

        updated = client.put(
            f"/api/pets/{pet['id']}",
            json={"origin_type": "stray"},
            headers=auth_headers(alice["access_token"]),
        ).get_json()["pet"]

        assert updated["origin_type"] == "stray"
        assert Decimal(updated["adoption_fee"]) == 0
        assert updated["found_location"] == "Austin"

    def test_stranger_cannot_update_or_delete(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])
        headers = auth_headers(bob["access_token"])

        assert client.put(f"/api/pets/{pet['id']}", json={"name": "X"}, headers=headers).status_code == 403
        assert client.delete(f"/api/pets/{pet['id']}", headers=headers).status_code == 403

    def test_site_admin_can_delete_any_pet(self, app, client):
        alice = register(client, "alice")
        admin = register(client, "root")
        make_admin(app, admin["user"]["id"])
        pet = make_pet(client, alice["access_token"])

        resp = client.delete(f"/api/pets/{pet['id']}", headers=auth_headers(admin["access_token"]))

        assert resp.status_code == 200
        assert client.get(f"/api/pets/{pet['id']}").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# Likes, reports and recommendations
# ═══════════════════════════════════════════════════════════════════════════

class TestEngagement:

    def test_like_toggles(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])
        url = f"/api/pets/{pet['id']}/like"
        headers = auth_headers(bob["access_token"])

        liked = client.post(url, headers=headers).get_json()
        assert liked == {"message": "Pet liked", "liked": True, "likes": 1}

        detail = client.get(f"/api/pets/{pet['id']}", headers=headers).get_json()
        assert detail["is_liked"] is True
        assert detail["pet"]["like_count"] == 1

        favorites = client.get("/api/pets/user/favorites", headers=headers).get_json()
        assert [p["id"] for p in favorites["items"]] == [pet["id"]]

        unliked = client.post(url, headers=headers).get_json()
        assert unliked["liked"] is False
        assert unliked["likes"] == 0

    def test_reports_accumulate(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        pet = make_pet(client, alice["access_token"])
        url = f"/api/pets/{pet['id']}/report"
        headers = auth_headers(bob["access_token"])

        first = client.post(url, json={"reason": "scam"}, headers=headers)
        second = client.post(url, json={"reason": "duplicate", "description": "Posted twice"}, headers=headers)

        assert first.status_code == 201
        assert second.get_json()["report_count"] == 2

    def test_report_reason_is_validated(self, client):
        alice = register(client, "alice")
        pet = make_pet(client, alice["access_token"])

        resp = client.post(
            f"/api/pets/{pet['id']}/report",
            json={"reason": "ugly"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "reason"

    def test_recommendations_follow_likes(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        token = alice["access_token"]
        liked = make_pet(client, token, name="Rex")
        same_breed = make_pet(client, token, name="Buddy")
        make_pet(client, token, name="Tom", category="cat", breed="Siamese")
        client.post(f"/api/pets/{liked['id']}/like", headers=auth_headers(bob["access_token"]))

        body = client.get("/api/pets/recommended", headers=auth_headers(bob["access_token"])).get_json()

        assert [p["id"] for p in body["items"]] == [same_breed["id"]]

    def test_recommendations_without_likes_fall_back_to_most_viewed(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        quiet = make_pet(client, alice["access_token"], name="Quiet")
        popular = make_pet(client, alice["access_token"], name="Popular")
        client.get(f"/api/pets/{popular['id']}")

        body = client.get("/api/pets/recommended", headers=auth_headers(bob["access_token"])).get_json()

        assert [p["id"] for p in body["items"]] == [popular["id"], quiet["id"]]
