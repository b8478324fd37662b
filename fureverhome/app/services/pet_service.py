"""
services/pet_service.py — Pet listings, adoption, likes, reports and stats.

Adoption:

    from                 to
    ──────────────────   ───────
    available / pending  adopted   (adopt_pet only; never through update_pet)

status, adopted_by_id and adopted_at are written together by _mark_adopted.
An adopted pet keeps its status for good; the poster cannot adopt their own
listing.

Stray listings (origin_type = stray) always carry adoption_fee = 0 and a
found_location, defaulting to the listing location.

Views: get_pet increments `views` only when the caller says so. The route
asks the ViewDebouncer first, so one address counts once per window.

Authorization:
  - update / delete: the poster, or a site admin (role = admin)

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from fureverhome.app.errors import Conflict, ErrorCode, Forbidden, NotFound, ValidationFailed
from fureverhome.app.models.base import utcnow
from fureverhome.app.models.pet import OriginType, Pet, PetLike, PetReport, PetStatus
from fureverhome.app.models.post import GroupPost
from fureverhome.app.services.group_service import user_brief
from fureverhome.app.services.pagination import paginate, resolve_sort


logger = logging.getLogger(__name__)


_URGENCY_RANK = case(
    {"high": 3, "medium": 2, "low": 1},
    value=Pet.urgency,
    else_=0,
)

PET_SORTS: dict[str, tuple] = {
    "newest":     (Pet.created_at.desc(), Pet.id.desc()),
    "oldest":     (Pet.created_at.asc(), Pet.id.asc()),
    "price-low":  (Pet.adoption_fee.asc(), Pet.id.asc()),
    "price-high": (Pet.adoption_fee.desc(), Pet.id.desc()),
    "urgency":    (_URGENCY_RANK.desc(), Pet.created_at.desc(), Pet.id.desc()),
}

SIMILAR_PETS_LIMIT = 4
RECOMMENDATION_LIMIT = 10
NEARBY_LIMIT = 20
REPORT_ALERT_THRESHOLD = 3

# Fields the poster (or a site admin) may change through PUT/PATCH /pets/<id>.
_UPDATABLE_FIELDS = (
    "name",
    "breed",
    "category",
    "age",
    "size",
    "color",
    "gender",
    "weight",
    "vaccinated",
    "neutered",
    "health_details",
    "dietary_needs",
    "adoption_fee",
    "currency",
    "origin_type",
    "found_location",
    "found_date",
    "urgency",
    "photos",
    "videos",
    "location",
    "temperament",
    "good_with",
    "activity_level",
    "special_needs",
    "description",
    "contact_phone",
    "contact_email",
)


# ── Serialisers ────────────────────────────────────────────────────────────

def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def pet_dict(pet: Pet) -> dict:
    return {
        "id": pet.id,
        "name": pet.name,
        "breed": pet.breed,
        "category": pet.category,
        "age": pet.age,
        "size": pet.size,
        "color": pet.color,
        "gender": pet.gender,
        "weight": pet.weight,
        "health": {
            "vaccinated": pet.vaccinated,
            "neutered": pet.neutered,
            "health_details": pet.health_details,
            "dietary_needs": pet.dietary_needs,
        },
        "status": pet.status.value,
        "adoption_fee": pet.adoption_fee,
        "currency": pet.currency,
        "origin_type": pet.origin_type.value,
        "found_location": pet.found_location,
        "found_date": _iso(pet.found_date),
        "urgency": pet.urgency,
        "posted_by": user_brief(pet.poster),
        "adopted_by": user_brief(pet.adopter),
        "adopted_at": _iso(pet.adopted_at),
        "photos": list(pet.photos or []),
        "videos": list(pet.videos or []),
        "location": pet.location,
        "temperament": list(pet.temperament or []),
        "good_with": dict(pet.good_with or {}),
        "activity_level": pet.activity_level,
        "special_needs": pet.special_needs,
        "description": pet.description,
        "contact": {"phone": pet.contact_phone, "email": pet.contact_email},
        "views": pet.views,
        "like_count": len(pet.likes),
        "created_at": _iso(pet.created_at),
        "updated_at": _iso(pet.updated_at),
    }


# ── Private helpers ────────────────────────────────────────────────────────

def _get_pet_or_404(pet_id: int, session: Session) -> Pet:
    pet = session.get(Pet, pet_id)
    if pet is None:
        raise NotFound(ErrorCode.PET_NOT_FOUND, f"Pet {pet_id} does not exist.")
    return pet


def _require_owner_or_admin(pet: Pet, actor_id: int, is_site_admin: bool, action: str) -> None:
    if pet.posted_by_id != actor_id and not is_site_admin:
        raise Forbidden(ErrorCode.FORBIDDEN, f"You are not allowed to {action} this pet.")


def _normalise_origin(fields: dict, location: str | None) -> None:
    """Stray listings are free and always have a found_location."""
    if fields.get("origin_type") == OriginType.STRAY.value:
        fields["adoption_fee"] = Decimal("0")
        fields["found_location"] = fields.get("found_location") or location


def _apply_fields(pet: Pet, fields: dict) -> None:
    for field, value in fields.items():
        if field == "origin_type":
            value = OriginType(value)
        elif field == "currency":
            value = value.upper()[:3]
        setattr(pet, field, value)


def _mark_adopted(pet: Pet, adopter_id: int) -> None:
    """The single writer of the three adoption fields."""
    pet.status = PetStatus.ADOPTED
    pet.adopted_by_id = adopter_id
    pet.adopted_at = utcnow()


def _is_liked(pet_id: int, user_id: int | None, session: Session) -> bool:
    if user_id is None:
        return False
    return session.execute(
        select(PetLike.id).where(PetLike.pet_id == pet_id, PetLike.user_id == user_id)
    ).first() is not None


def _similar_pets(pet: Pet, session: Session) -> list[dict]:
    rows = session.execute(
        select(Pet)
        .where(
            Pet.id != pet.id,
            Pet.status == PetStatus.AVAILABLE,
            or_(Pet.breed == pet.breed, Pet.category == pet.category),
        )
        .order_by(Pet.created_at.desc(), Pet.id.desc())
        .limit(SIMILAR_PETS_LIMIT)
    ).scalars().all()
    return [pet_dict(p) for p in rows]


def delete_pet_row(pet: Pet, session: Session) -> None:
    """Hard delete. Group posts pointing at the pet keep their text."""
    session.execute(
        update(GroupPost)
        .where(GroupPost.related_pet_id == pet.id)
        .values(related_pet_id=None)
    )
    session.delete(pet)
    session.flush()


# ── Public service functions ───────────────────────────────────────────────

def create_pet(user_id: int, data: dict, session: Session) -> dict:
    """
    Creates an available listing posted by `user_id`.

    Args:
        data: validated PetCreateSchema output.
    """
    fields = {k: v for k, v in data.items() if k in _UPDATABLE_FIELDS}
    fields.setdefault("size", "medium")
    fields.setdefault("origin_type", OriginType.OWNED.value)
    _normalise_origin(fields, data.get("location"))

    pet = Pet(posted_by_id=user_id, status=PetStatus.AVAILABLE)
    _apply_fields(pet, fields)
    session.add(pet)
    session.flush()

    logger.info("Pet %s listed by user %s (%s)", pet.id, user_id, pet.origin_type.value)
    return pet_dict(pet)


def list_pets(filters: dict, page: int, limit: int, session: Session) -> dict:
    """Pets matching the filters, paginated."""
    stmt = select(Pet)

    for field in ("category", "gender", "size"):
        if filters.get(field):
            stmt = stmt.where(getattr(Pet, field) == filters[field])
    if filters.get("status"):
        stmt = stmt.where(Pet.status == PetStatus(filters["status"]))
    if filters.get("origin_type"):
        stmt = stmt.where(Pet.origin_type == OriginType(filters["origin_type"]))
    if filters.get("breed"):
        stmt = stmt.where(Pet.breed.ilike(f"%{filters['breed']}%"))
    if filters.get("location"):
        stmt = stmt.where(Pet.location.ilike(f"%{filters['location']}%"))
    if filters.get("min_age") is not None:
        stmt = stmt.where(Pet.age >= filters["min_age"])
    if filters.get("max_age") is not None:
        stmt = stmt.where(Pet.age <= filters["max_age"])
    if filters.get("search"):
        pattern = f"%{filters['search']}%"
        stmt = stmt.where(or_(
            Pet.name.ilike(pattern),
            Pet.breed.ilike(pattern),
            Pet.description.ilike(pattern),
        ))

    stmt = stmt.order_by(*resolve_sort(filters.get("sort"), PET_SORTS, "newest"))
    return paginate(session, stmt, page, limit, pet_dict)


def search_pets(filters: dict, page: int, limit: int, session: Session) -> dict:
    """Name/breed substring search narrowed by category and origin_type."""
    stmt = select(Pet)
    if filters.get("name"):
        stmt = stmt.where(Pet.name.ilike(f"%{filters['name']}%"))
    if filters.get("breed"):
        stmt = stmt.where(Pet.breed.ilike(f"%{filters['breed']}%"))
    if filters.get("category"):
        stmt = stmt.where(Pet.category == filters["category"])
    if filters.get("origin_type"):
        stmt = stmt.where(Pet.origin_type == OriginType(filters["origin_type"]))

    stmt = stmt.order_by(Pet.created_at.desc(), Pet.id.desc())
    return paginate(session, stmt, page, limit, pet_dict)


def get_pet(
        pet_id: int,
        caller_id: int | None,
        session: Session,
        count_view: Callable[[], bool] | None = None,
) -> dict:
    """
    Pet detail with up to four similar available pets.

    `count_view` is asked only once the pet is known to exist, so a lookup
    of a missing pet never uses up a view window.

    Returns {"pet": ..., "similar_pets": [...], "is_liked": bool}.
    """
    pet = _get_pet_or_404(pet_id, session)
    if count_view is not None and count_view():
        pet.views += 1
        session.flush()

    return {
        "pet": pet_dict(pet),
        "similar_pets": _similar_pets(pet, session),
        "is_liked": _is_liked(pet.id, caller_id, session),
    }


def adopt_pet(pet_id: int, user_id: int, session: Session) -> dict:
    """
    available / pending → adopted.

    Raises:
      Conflict(PET_ALREADY_ADOPTED) — status is already adopted
      Conflict(SELF_ADOPTION)       — the poster cannot adopt their own pet
    """
    pet = _get_pet_or_404(pet_id, session)

    if pet.status is PetStatus.ADOPTED:
        raise Conflict(ErrorCode.PET_ALREADY_ADOPTED, "This pet has already been adopted.")
    if pet.posted_by_id == user_id:
        raise Conflict(ErrorCode.SELF_ADOPTION, "You cannot adopt your own pet.")

    _mark_adopted(pet, user_id)
    session.flush()

    logger.info("Pet %s adopted by user %s", pet.id, user_id)
    return pet_dict(pet)


def toggle_like(pet_id: int, user_id: int, session: Session) -> dict:
    """Like or unlike. Returns {"liked", "likes"}."""
    pet = _get_pet_or_404(pet_id, session)

    like = session.execute(
        select(PetLike).where(PetLike.pet_id == pet.id, PetLike.user_id == user_id)
    ).scalar_one_or_none()

    if like is not None:
        pet.likes.remove(like)
        liked = False
    else:
        pet.likes.append(PetLike(user_id=user_id))
        liked = True

    session.flush()
    return {"liked": liked, "likes": len(pet.likes)}


def update_pet(
        pet_id: int,
        actor_id: int,
        is_site_admin: bool,
        data: dict,
        session: Session,
) -> dict:
    """
    Poster or site admin. Adoption fields are never written here.

    Raises:
      Forbidden(FORBIDDEN)           — neither poster nor site admin
      Conflict(PET_ALREADY_ADOPTED)  — status change on an adopted pet
      ValidationFailed(INVALID_FIELD) — status set to adopted
    """
    pet = _get_pet_or_404(pet_id, session)
    _require_owner_or_admin(pet, actor_id, is_site_admin, "update")

    if "status" in data:
        if data["status"] == PetStatus.ADOPTED.value:
            raise ValidationFailed(
                ErrorCode.INVALID_FIELD,
                "Use the adopt endpoint to mark a pet as adopted.",
                field="status",
            )
        if pet.status is PetStatus.ADOPTED:
            raise Conflict(
                ErrorCode.PET_ALREADY_ADOPTED,
                "The status of an adopted pet cannot be changed.",
            )
        pet.status = PetStatus(data["status"])

    fields = {k: v for k, v in data.items() if k in _UPDATABLE_FIELDS}
    origin = fields.get("origin_type", pet.origin_type.value)
    if origin == OriginType.STRAY.value:
        fields["origin_type"] = origin
        fields.setdefault("found_location", pet.found_location)
    _normalise_origin(fields, fields.get("location", pet.location))
    _apply_fields(pet, fields)

    session.flush()
    logger.info("Pet %s updated by user %s", pet.id, actor_id)
    return pet_dict(pet)


def delete_pet(pet_id: int, actor_id: int, is_site_admin: bool, session: Session) -> None:
    """Poster or site admin. Hard delete with likes and reports."""
    pet = _get_pet_or_404(pet_id, session)
    _require_owner_or_admin(pet, actor_id, is_site_admin, "delete")

    delete_pet_row(pet, session)
    logger.info("Pet %s deleted by user %s", pet_id, actor_id)


def report_pet(
        pet_id: int,
        user_id: int,
        reason: str,
        description: str | None,
        session: Session,
) -> dict:
    """Records a report. Repeated reports from the same user are kept."""
    pet = _get_pet_or_404(pet_id, session)

    pet.reports.append(PetReport(reported_by_id=user_id, reason=reason, description=description))
    session.flush()

    report_count = len(pet.reports)
    if report_count >= REPORT_ALERT_THRESHOLD:
        logger.warning("Pet %s has %s reports", pet.id, report_count)
    return {"report_count": report_count}


def get_pet_stats(session: Session) -> dict:
    """
    Totals, adoption rate and the top-10 category/location distributions.

    adoption_rate is a percentage string with two decimals ("12.50%").
    """
    total = session.execute(select(func.count(Pet.id))).scalar_one()

    def _count_status(status: PetStatus) -> int:
        return session.execute(
            select(func.count(Pet.id)).where(Pet.status == status)
        ).scalar_one()

    available = _count_status(PetStatus.AVAILABLE)
    adopted = _count_status(PetStatus.ADOPTED)
    rate = (adopted / total * 100) if total else 0.0

    def _distribution(column) -> list[dict]:
        count = func.count(Pet.id)
        rows = session.execute(
            select(column, count).group_by(column).order_by(count.desc(), column).limit(10)
        ).all()
        return [{"value": value, "count": n} for value, n in rows]

    return {
        "total": total,
        "available": available,
        "adopted": adopted,
        "adoption_rate": f"{rate:.2f}%",
        "categories": _distribution(Pet.category),
        "locations": _distribution(Pet.location),
    }


def list_user_pets(user_id: int, kind: str, page: int, limit: int, session: Session) -> dict:
    """
    The caller's pets.

    kind: posted (listed by the user), adopted (adopted by the user) or
    favorites (liked by the user).
    """
    if kind == "posted":
        stmt = select(Pet).where(Pet.posted_by_id == user_id)
    elif kind == "adopted":
        stmt = select(Pet).where(Pet.adopted_by_id == user_id)
    elif kind == "favorites":
        stmt = (
            select(Pet)
            .join(PetLike, PetLike.pet_id == Pet.id)
            .where(PetLike.user_id == user_id)
        )
    else:
        raise ValidationFailed(ErrorCode.INVALID_FIELD, f"Unknown pet list '{kind}'.", field="kind")

    stmt = stmt.order_by(Pet.created_at.desc(), Pet.id.desc())
    return paginate(session, stmt, page, limit, pet_dict)


def recommend_pets(user_id: int, session: Session) -> list[dict]:
    """
    Available pets sharing a category or breed with the user's liked pets,
    excluding those already liked. Users with no likes get the most viewed
    available pets instead.
    """
    liked = session.execute(
        select(Pet)
        .join(PetLike, PetLike.pet_id == Pet.id)
        .where(PetLike.user_id == user_id)
    ).scalars().all()

    stmt = select(Pet).where(Pet.status == PetStatus.AVAILABLE)
    if liked:
        categories = {p.category for p in liked}
        breeds = {p.breed for p in liked}
        stmt = (
            stmt.where(
                or_(Pet.category.in_(categories), Pet.breed.in_(breeds)),
                Pet.id.not_in([p.id for p in liked]),
            )
            .order_by(Pet.created_at.desc(), Pet.id.desc())
        )
    else:
        stmt = stmt.order_by(Pet.views.desc(), Pet.id.desc())

    rows = session.execute(stmt.limit(RECOMMENDATION_LIMIT)).scalars().all()
    return [pet_dict(p) for p in rows]


def nearby_pets(lat: float, lon: float, radius_km: float, session: Session) -> list[dict]:
    """
    Available pets for the map view around (lat, lon).

    Listings carry a free-text location rather than coordinates, so every
    available pet is in range; the newest NEARBY_LIMIT are returned.
    """
    logger.debug("Nearby pets requested at (%s, %s) within %skm", lat, lon, radius_km)
    rows = session.execute(
        select(Pet)
        .where(Pet.status == PetStatus.AVAILABLE)
        .order_by(Pet.created_at.desc(), Pet.id.desc())
        .limit(NEARBY_LIMIT)
    ).scalars().all()
    return [pet_dict(p) for p in rows]
