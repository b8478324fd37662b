"""
Unit tests for pet_service rules that do not need a database.

These tests run DB-free with a mocked session.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from fureverhome.app.errors import AppError, ErrorCode
from fureverhome.app.models.pet import OriginType, PetStatus
from fureverhome.app.services import pet_service


def _pet(**overrides):
    fields = dict(
        id=1,
        posted_by_id=10,
        status=PetStatus.AVAILABLE,
        adopted_by_id=None,
        adopted_at=None,
        origin_type=OriginType.OWNED,
        found_location=None,
        location="Austin",
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _session_returning(pet) -> MagicMock:
    session = MagicMock()
    session.get.return_value = pet
    return session


class TestAdoption:

    def test_adopt_sets_all_three_fields(self, monkeypatch):
        monkeypatch.setattr(pet_service, "pet_dict", lambda p: {"status": p.status.value})
        pet = _pet()

        result = pet_service.adopt_pet(pet_id=1, user_id=20, session=_session_returning(pet))

        assert result == {"status": "adopted"}
        assert pet.status is PetStatus.ADOPTED
        assert pet.adopted_by_id == 20
        assert pet.adopted_at is not None

    def test_adopt_pending_pet_is_allowed(self, monkeypatch):
        monkeypatch.setattr(pet_service, "pet_dict", lambda p: {})
        pet = _pet(status=PetStatus.PENDING)

        pet_service.adopt_pet(pet_id=1, user_id=20, session=_session_returning(pet))

        assert pet.status is PetStatus.ADOPTED

    def test_adopt_twice_is_conflict(self):
        pet = _pet(status=PetStatus.ADOPTED, adopted_by_id=20)

        with pytest.raises(AppError) as exc_info:
            pet_service.adopt_pet(pet_id=1, user_id=30, session=_session_returning(pet))

        assert exc_info.value.code == ErrorCode.PET_ALREADY_ADOPTED
        assert exc_info.value.http_status == 409
        assert pet.adopted_by_id == 20

    def test_self_adoption_is_conflict(self):
        pet = _pet()

        with pytest.raises(AppError) as exc_info:
            pet_service.adopt_pet(pet_id=1, user_id=10, session=_session_returning(pet))

        assert exc_info.value.code == ErrorCode.SELF_ADOPTION
        assert pet.status is PetStatus.AVAILABLE

    def test_missing_pet_is_not_found(self):
        with pytest.raises(AppError) as exc_info:
            pet_service.adopt_pet(pet_id=404, user_id=10, session=_session_returning(None))

        assert exc_info.value.code == ErrorCode.PET_NOT_FOUND
        assert exc_info.value.http_status == 404


class TestUpdateRules:

    def test_update_cannot_set_adopted(self):
        with pytest.raises(AppError) as exc_info:
            pet_service.update_pet(
                pet_id=1, actor_id=10, is_site_admin=False,
                data={"status": "adopted"}, session=_session_returning(_pet()),
            )

        assert exc_info.value.code == ErrorCode.INVALID_FIELD
        assert exc_info.value.field == "status"

    def test_adopted_pet_status_is_frozen(self):
        pet = _pet(status=PetStatus.ADOPTED, adopted_by_id=20)

        with pytest.raises(AppError) as exc_info:
            pet_service.update_pet(
                pet_id=1, actor_id=10, is_site_admin=False,
                data={"status": "available"}, session=_session_returning(pet),
            )

        assert exc_info.value.code == ErrorCode.PET_ALREADY_ADOPTED

    def test_stranger_cannot_update(self):
        with pytest.raises(AppError) as exc_info:
            pet_service.update_pet(
                pet_id=1, actor_id=99, is_site_admin=False,
                data={"name": "Max"}, session=_session_returning(_pet()),
            )

        assert exc_info.value.code == ErrorCode.FORBIDDEN
        assert exc_info.value.http_status == 403

    def test_site_admin_can_delete_any_pet(self, monkeypatch):
        deleted = []
        monkeypatch.setattr(pet_service, "delete_pet_row", lambda pet, session: deleted.append(pet))
        pet = _pet()

        pet_service.delete_pet(pet_id=1, actor_id=99, is_site_admin=True, session=_session_returning(pet))

        assert deleted == [pet]


class TestStrayNormalisation:

    def test_stray_fee_forced_to_zero_and_location_defaulted(self):
        fields = {"origin_type": "stray", "adoption_fee": Decimal("50.00")}

        pet_service._normalise_origin(fields, "Austin")

        assert fields["adoption_fee"] == Decimal("0")
        assert fields["found_location"] == "Austin"

    def test_stray_keeps_explicit_found_location(self):
        fields = {"origin_type": "stray", "found_location": "5th Street"}

        pet_service._normalise_origin(fields, "Austin")

        assert fields["found_location"] == "5th Street"

    def test_owned_listing_is_untouched(self):
        fields = {"origin_type": "owned", "adoption_fee": Decimal("50.00")}

        pet_service._normalise_origin(fields, "Austin")

        assert fields == {"origin_type": "owned", "adoption_fee": Decimal("50.00")}

    def test_currency_is_uppercased(self):
        pet = SimpleNamespace()

        pet_service._apply_fields(pet, {"currency": "eur", "origin_type": "stray"})

        assert pet.currency == "EUR"
        assert pet.origin_type is OriginType.STRAY


def test_unknown_user_pet_list_is_rejected():
    with pytest.raises(AppError) as exc_info:
        pet_service.list_user_pets(user_id=1, kind="stolen", page=1, limit=12, session=MagicMock())

    assert exc_info.value.code == ErrorCode.INVALID_FIELD
    assert exc_info.value.field == "kind"
