from __future__ import annotations

from datetime import date

from fieldops.time_utils import parse_iso_date


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing entity (schedule, snapshot, user, store)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate schedule slot)."""


def require_int(value, field: str) -> int:
    """
    Coerce an id-like value to int.

    Rejects bools, floats, blanks and scientific notation the same way column
    coercion does for integer columns.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def require_id_list(value, field: str) -> list[int]:
    if not isinstance(value, (list, tuple)) or not value:
        raise ValidationError(f"{field} must be a non-empty list")
    ids: list[int] = []
    for raw in value:
        item = require_int(raw, field)
        if item not in ids:
            ids.append(item)
    return ids


def require_day_of_week(value) -> int:
    dow = require_int(value, "day_of_week")
    if dow < 0 or dow > 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    return dow


def require_date(value, field: str) -> date:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def optional_date(value, field: str) -> date | None:
    if value is None or value == "":
        return None
    return require_date(value, field)
