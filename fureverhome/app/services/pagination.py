"""
services/pagination.py — page/limit windows, count queries and list envelopes.

Every list endpoint returns

    {"items": [...], "pagination": {"total": N, "page": P, "pages": K}}

`page` is 1-based. `limit` falls back to DEFAULT_PAGE_SIZE and is capped at
MAX_PAGE_SIZE; both come from app config and are passed in by the route.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


def page_window(
        page: int | None,
        limit: int | None,
        default_limit: int,
        max_limit: int,
) -> tuple[int, int]:
    """Normalises raw page/limit query values to a valid (page, limit) pair."""
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, min(limit, max_limit)


def count_rows(session: Session, stmt: Select) -> int:
    """COUNT(*) over `stmt` with its ORDER BY dropped."""
    subquery = stmt.order_by(None).subquery()
    return session.execute(select(func.count()).select_from(subquery)).scalar_one()


def envelope(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def paginate(
        session: Session,
        stmt: Select,
        page: int,
        limit: int,
        serialize: Callable[[Any], dict],
) -> dict:
    """
    Runs `stmt` for one page and wraps the serialised rows in the envelope.

    `stmt` must already carry its ORDER BY; pagination without a stable
    order returns overlapping pages.
    """
    total = count_rows(session, stmt)
    rows = session.execute(
        stmt.offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return envelope([serialize(row) for row in rows], total, page, limit)


def resolve_sort(sort: str | None, table: dict[str, tuple], default: str) -> tuple:
    """
    Maps a `sort` query value onto its ORDER BY clauses.

    Unknown keys fall back to `default`; the schemas reject them first, so
    this only matters for internal callers.
    """
    return table.get(sort or default, table[default])
