# Overview: Query-string parsing shared by list and report routes.

from __future__ import annotations

from flask import request

from ..services.pagination import parse_list_params
from ..validation import ValidationError
from retailbooks.time_utils import parse_iso_date, day_bounds


def list_params():
    return parse_list_params(request.args)


def bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")


def date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)", details={name: "format"})


def date_range_args() -> tuple:
    """start/end query dates as (start_date, end_date)."""
    start, end = date_arg("start"), date_arg("end")
    if start and end and start > end:
        raise ValidationError("start must be on or before end")
    return start, end


def datetime_range_filters() -> dict:
    """start/end query dates as inclusive datetime bounds for list filters."""
    start, end = date_range_args()
    start_dt, end_dt = day_bounds(start, end)
    return {"start": start_dt, "end": end_dt}
