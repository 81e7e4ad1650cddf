"""Admin type helpers.

Admin types are a closed set. Requests may send a single string or a list;
`normalize_admin_types` turns either into a validated, ordered tuple.
"""
from typing import Iterable, List, Tuple, Union

import config as cfg

from .errors import ValidationError

CAMP = "camp"
ENROLL = "enroll"

# (value, label)
ADMIN_TYPE_OPTIONS: List[Tuple[str, str]] = [
    (CAMP, "Camp registration"),
    (ENROLL, "Enrollment"),
]

ADMIN_TYPES: Tuple[str, ...] = tuple(v for v, _ in ADMIN_TYPE_OPTIONS)


def is_admin_type(value) -> bool:
    return isinstance(value, str) and value in ADMIN_TYPES


def validate_admin_type(value) -> str:
    v = value.strip() if isinstance(value, str) else value
    if not is_admin_type(v):
        raise ValidationError(f"Invalid admin type: {value!r}")
    return v


def normalize_admin_types(value: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """Single value or collection -> non-empty tuple in enumeration order."""
    if value is None:
        raise ValidationError("Missing fields")
    if isinstance(value, str):
        items = [value]
    else:
        try:
            items = list(value)
        except TypeError:
            raise ValidationError(f"Invalid admin type: {value!r}") from None
    wanted = {validate_admin_type(v) for v in items}
    if not wanted:
        raise ValidationError("At least one admin type is required")
    return tuple(t for t in ADMIN_TYPES if t in wanted)


def admin_type_label(value: str) -> str:
    for v, label in ADMIN_TYPE_OPTIONS:
        if v == value:
            return label
    return value


def redirect_url(admin_type: str) -> str:
    """Where the login page should send an admin of this type ("" if unset)."""
    if admin_type == CAMP:
        return cfg.CAMP_ADMIN_URL
    if admin_type == ENROLL:
        return cfg.ENROLL_ADMIN_URL
    return ""
