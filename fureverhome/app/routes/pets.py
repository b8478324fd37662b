"""
routes/pets.py — Pet listing route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

The view debounce decision is made here, from the request address, because
it is request metadata; pet_service only receives the resulting flag.

Endpoints (url_prefix=/api/pets):
  GET    /                    → 200  list pets (filters, sort, paginated)
  POST   /                    → 201  create listing
  GET    /search              → 200  name / breed search
  GET    /stats               → 200  totals, adoption rate, distributions
  GET    /recommended         → 200  recommendations for the caller
  GET    /user/:kind          → 200  caller's posted / adopted / favorites
  GET    /:id                 → 200  detail + similar pets (debounced view)
  PUT    /:id  (PATCH)        → 200  update (poster or site admin)
  DELETE /:id                 → 200  delete (poster or site admin)
  POST   /:id/adopt           → 200  adopt
  POST   /:id/like            → 200  toggle like
  POST   /:id/report          → 201  report listing
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from fureverhome.app.extensions import db
from fureverhome.app.middleware.auth_middleware import optional_auth, require_auth
from fureverhome.app.models.user import UserRole
from fureverhome.app.routes.common import json_body, mutation, page_args
from fureverhome.app.schemas.common_schema import PaginationQuerySchema
from fureverhome.app.schemas.pet_schema import (
    NearbyPetsQuerySchema,
    PetCreateSchema,
    PetListQuerySchema,
    PetSearchQuerySchema,
    PetUpdateSchema,
    ReportPetSchema,
)
from fureverhome.app.services import pet_service

pets_bp = Blueprint("pets", __name__)


def _is_site_admin() -> bool:
    return g.user_role == UserRole.ADMIN.value


@pets_bp.route("", methods=["GET"])
def list_pets():
    filters = PetListQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = pet_service.list_pets(
        filters=filters,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@pets_bp.route("", methods=["POST"])
@require_auth
def create_pet():
    data = PetCreateSchema().load(json_body())
    result = pet_service.create_pet(
        user_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet listed successfully", pet=result)), 201


@pets_bp.route("/search", methods=["GET"])
def search_pets():
    filters = PetSearchQuerySchema().load(request.args)
    page, limit = page_args(filters)
    result = pet_service.search_pets(
        filters=filters,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@pets_bp.route("/nearby", methods=["GET"])
def nearby_pets():
    query = NearbyPetsQuerySchema().load(request.args)
    result = pet_service.nearby_pets(
        lat=query["lat"],
        lon=query["lon"],
        radius_km=query["radius"],
        session=db.session,
    )
    return jsonify({"items": result}), 200


@pets_bp.route("/stats", methods=["GET"])
def pet_stats():
    return jsonify(pet_service.get_pet_stats(db.session)), 200


@pets_bp.route("/recommended", methods=["GET"])
@require_auth
def recommended_pets():
    result = pet_service.recommend_pets(user_id=g.user_id, session=db.session)
    return jsonify({"items": result}), 200


@pets_bp.route("/user/<string:kind>", methods=["GET"])
@require_auth
def user_pets(kind: str):
    """GET /pets/user/posted | adopted | favorites"""
    query = PaginationQuerySchema().load(request.args)
    page, limit = page_args(query)
    result = pet_service.list_user_pets(
        user_id=g.user_id,
        kind=kind,
        page=page,
        limit=limit,
        session=db.session,
    )
    return jsonify(result), 200


@pets_bp.route("/<int:pet_id>", methods=["GET"])
@optional_auth
def get_pet(pet_id: int):
    """
    GET /pets/:id

    One address counts at most one view per pet per debounce window. The
    window is only opened for pets that exist.
    """
    debouncer = current_app.extensions["view_debouncer"]
    result = pet_service.get_pet(
        pet_id=pet_id,
        caller_id=g.user_id,
        session=db.session,
        count_view=lambda: debouncer.should_count(pet_id, request.remote_addr),
    )
    db.session.commit()
    return jsonify(result), 200


@pets_bp.route("/<int:pet_id>", methods=["PUT", "PATCH"])
@require_auth
def update_pet(pet_id: int):
    data = PetUpdateSchema().load(json_body())
    result = pet_service.update_pet(
        pet_id=pet_id,
        actor_id=g.user_id,
        is_site_admin=_is_site_admin(),
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet updated successfully", pet=result)), 200


@pets_bp.route("/<int:pet_id>", methods=["DELETE"])
@require_auth
def delete_pet(pet_id: int):
    pet_service.delete_pet(
        pet_id=pet_id,
        actor_id=g.user_id,
        is_site_admin=_is_site_admin(),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet deleted successfully", pet_id=pet_id)), 200


@pets_bp.route("/<int:pet_id>/adopt", methods=["POST"])
@require_auth
def adopt_pet(pet_id: int):
    result = pet_service.adopt_pet(
        pet_id=pet_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet adopted successfully", pet=result)), 200


@pets_bp.route("/<int:pet_id>/like", methods=["POST"])
@require_auth
def toggle_like(pet_id: int):
    result = pet_service.toggle_like(
        pet_id=pet_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    message = "Pet liked" if result["liked"] else "Pet unliked"
    return jsonify(mutation(message, **result)), 200


@pets_bp.route("/<int:pet_id>/report", methods=["POST"])
@require_auth
def report_pet(pet_id: int):
    data = ReportPetSchema().load(json_body())
    result = pet_service.report_pet(
        pet_id=pet_id,
        user_id=g.user_id,
        reason=data["reason"],
        description=data.get("description"),
        session=db.session,
    )
    db.session.commit()
    return jsonify(mutation("Pet reported successfully", **result)), 201
