# Overview: Shared list paging and sorting for tenant-scoped queries.

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True)
class ListParams:
    page: int = 1
    limit: int = DEFAULT_LIMIT
    sort_by: str | None = None
    sort_order: str = "desc"


def _positive_int(raw, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def parse_list_params(args) -> ListParams:
    """
    Read page/limit/sort_by/sort_order from query args.

    Bad values fall back to defaults; limit is capped at MAX_LIMIT.
    """
    page = _positive_int(args.get("page"), 1)
    limit = min(_positive_int(args.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)
    sort_order = (args.get("sort_order") or "desc").lower()
    if sort_order not in ("asc", "desc"):
        sort_order = "desc"
    return ListParams(page=page, limit=limit, sort_by=args.get("sort_by"), sort_order=sort_order)


def paginate(query, params: ListParams, sort_fields: dict, default_sort: str) -> tuple[list, dict]:
    """
    Apply whitelisted sorting and paging.

    sort_fields maps public sort keys to columns; unknown sort_by values fall
    back to default_sort. Ties are broken by the same column's primary key
    order so pages are stable.

    Returns (rows, meta) where meta is {page, limit, total, totalPages}.
    """
    column = sort_fields.get(params.sort_by) or sort_fields[default_sort]
    ordering = column.asc() if params.sort_order == "asc" else column.desc()
    model = query.column_descriptions[0]["entity"]
    tiebreak = model.id.asc() if params.sort_order == "asc" else model.id.desc()

    total = query.order_by(None).count()
    rows = (
        query.order_by(ordering, tiebreak)
        .offset((params.page - 1) * params.limit)
        .limit(params.limit)
        .all()
    )
    total_pages = (total + params.limit - 1) // params.limit if total > 0 else 0
    return rows, {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "totalPages": total_pages,
    }
