"""
safetravels/services/validator.py — Submission validation and normalization
Pure functions: raw request body in, ValidatedReport out, or ClientInputError
naming the first field that failed. Check order is fixed:
location → safetyScore → tags → comment.
"""
from __future__ import annotations

import math
from typing import Any, Mapping

from safetravels.core.errors import ClientInputError
from safetravels.core.tag_catalog import TagCatalog
from safetravels.models import MAX_SAFETY_SCORE, MIN_SAFETY_SCORE, ValidatedReport
from safetravels.utils.sanitize import sanitize_text

MAX_COMMENT_LENGTH = 280
# Raw comments longer than limit * factor are rejected before sanitizing
RAW_COMMENT_FACTOR = 8


def _is_number(value: Any) -> bool:
    # bool is an int subclass; true/false are not coordinates
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_coordinate(raw: Mapping[str, Any], field: str, limit: float) -> float:
    if field not in raw or raw[field] is None:
        raise ClientInputError(field, f"{field} is required.")
    value = raw[field]
    if not _is_number(value) or (isinstance(value, float) and not math.isfinite(value)):
        raise ClientInputError(field, f"{field} must be a number.")
    # int vs float comparison is exact, so huge JSON integers never overflow here
    if not -limit <= value <= limit:
        raise ClientInputError(field, f"{field} must be between {-limit:g} and {limit:g}.")
    return float(value)


def validate_location(raw: Mapping[str, Any]) -> tuple[float, float]:
    """Return (latitude, longitude)."""
    latitude = _validate_coordinate(raw, "latitude", 90.0)
    longitude = _validate_coordinate(raw, "longitude", 180.0)
    return latitude, longitude


def validate_safety_score(raw: Mapping[str, Any]) -> int:
    value = raw.get("safetyScore")
    if value is None:
        raise ClientInputError("safetyScore", "safetyScore is required.")
    if not isinstance(value, int) or isinstance(value, bool):
        raise ClientInputError("safetyScore", "safetyScore must be an integer.")
    if not MIN_SAFETY_SCORE <= value <= MAX_SAFETY_SCORE:
        raise ClientInputError(
            "safetyScore",
            f"safetyScore must be between {MIN_SAFETY_SCORE} and {MAX_SAFETY_SCORE}.",
        )
    return value


def validate_tags(raw: Mapping[str, Any], catalog: TagCatalog) -> tuple[str, ...]:
    """
    Every tag must be in the catalog. Unknown tags reject the whole
    submission; they are never silently dropped. Duplicates are collapsed,
    first-seen order kept.
    """
    value = raw.get("tags")
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ClientInputError("tags", "tags must be a list of strings.")

    seen: dict[str, None] = {}
    for tag in value:
        if not isinstance(tag, str):
            raise ClientInputError("tags", "tags must be a list of strings.")
        if tag not in catalog:
            raise ClientInputError(
                "tags",
                f"Invalid tag {tag!r}. Allowed tags: {', '.join(catalog)}.",
            )
        seen.setdefault(tag, None)
    return tuple(seen)


def validate_comment(raw: Mapping[str, Any], max_length: int = MAX_COMMENT_LENGTH) -> str:
    value = raw.get("comment")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ClientInputError("comment", "comment must be a string.")
    too_long = f"comment must be {max_length} characters or less."
    if len(value) > max_length * RAW_COMMENT_FACTOR:
        raise ClientInputError("comment", too_long)
    cleaned = sanitize_text(value)
    if len(cleaned) > max_length:
        raise ClientInputError("comment", too_long)
    return cleaned


def validate(
    raw: Any,
    catalog: TagCatalog,
    max_comment_length: int = MAX_COMMENT_LENGTH,
) -> ValidatedReport:
    """Validate and normalize a raw submission body. First failure wins."""
    if not isinstance(raw, Mapping):
        raise ClientInputError("body", "Request body must be a JSON object.")

    latitude, longitude = validate_location(raw)
    safety_score = validate_safety_score(raw)
    tags = validate_tags(raw, catalog)
    comment = validate_comment(raw, max_comment_length)

    return ValidatedReport(
        latitude=latitude,
        longitude=longitude,
        safety_score=safety_score,
        tags=tags,
        comment=comment,
    )
