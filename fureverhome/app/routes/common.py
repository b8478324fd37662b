"""
routes/common.py — Small helpers shared by the route modules.

Routes stay thin: these only read the request and app config, never the DB.
"""

from __future__ import annotations

from flask import current_app, request

from fureverhome.app.services.pagination import page_window


def json_body() -> dict:
    """The request's JSON object, or {} when the body is empty."""
    return request.get_json(force=True, silent=True) or {}


def page_args(query: dict) -> tuple[int, int]:
    """(page, limit) from a loaded query schema, bounded by app config."""
    return page_window(
        query.pop("page", None),
        query.pop("limit", None),
        current_app.config["DEFAULT_PAGE_SIZE"],
        current_app.config["MAX_PAGE_SIZE"],
    )


def mutation(message: str, **payload) -> dict:
    """Mutating endpoints answer {"message": ..., **payload}."""
    return {"message": message, **payload}
