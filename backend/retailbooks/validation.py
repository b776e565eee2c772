from __future__ import annotations
from datetime import datetime, date
from retailbooks.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, Date, JSON
from sqlalchemy.orm import DeclarativeMeta

from .money import MAX_AMOUNT_CENTS, MAX_RATE_BPS


class DomainError(Exception):
    """Base for errors surfaced to API callers with a readable message."""
    status_code = 400
    code: str | None = None

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(DomainError, ValueError):
    """400-level input problem, raised before any write."""
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError, LookupError):
    """404: unknown id, or a row owned by another tenant."""
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(DomainError, ValueError):
    """409-level business rule conflict (duplicate, bad transition, stock)."""
    status_code = 409
    code = "CONFLICT"


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields / rate_fields: integer columns with range rules
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()
    money_fields: set[str] = frozenset()
    rate_fields: set[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and '1e3'."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
            return value.lower() in ("true", "1")
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, JSON):
        if not isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a JSON object")
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Unknown keys are ignored so clients may send whole objects back;
    tenant_id and other server-owned columns can never be written.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={f: "required" for f in missing},
            )

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={k: "null"})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", details={k: "blank"})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        if k in policy.money_fields:
            check_amount(k, val)
        if k in policy.rate_fields:
            check_rate(k, val)

        patch[k] = val

    return patch


def check_amount(key: str, value: int, *, minimum: int = 0) -> int:
    if value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}", details={key: "range"})
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}", details={key: "range"})
    return value


def check_rate(key: str, value: int) -> int:
    if value < 0 or value > MAX_RATE_BPS:
        raise ValidationError(f"{key} must be between 0 and {MAX_RATE_BPS}", details={key: "range"})
    return value


def require_choice(key: str, value: Any, choices: tuple[str, ...] | set[str], *, default: str | None = None) -> str:
    if value in (None, "") and default is not None:
        return default
    if value not in choices:
        raise ValidationError(
            f"{key} must be one of: {', '.join(sorted(choices))}",
            details={key: "choice"},
        )
    return value


def optional_int(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value in (None, ""):
        return None
    return coerce_int(key, value)


def require_int(payload: dict, key: str, *, minimum: int | None = None) -> int:
    value = payload.get(key)
    if value in (None, ""):
        raise ValidationError(f"{key} is required", details={key: "required"})
    result = coerce_int(key, value)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{key} must be >= {minimum}", details={key: "range"})
    return result


def parse_bool(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
        return value.lower() in ("true", "1")
    raise ValidationError("Expected a boolean value")


def require_items(payload: dict, key: str = "items") -> list[dict]:
    items = payload.get(key)
    if not isinstance(items, list) or not items:
        raise ValidationError(f"{key} must be a non-empty list", details={key: "required"})
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{key}[{i}] must be an object")
    return items
