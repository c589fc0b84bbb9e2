"""
tests/test_validator.py — Unit tests for submission validation
"""
from __future__ import annotations

import pytest

from safetravels.core.errors import ClientInputError
from safetravels.services import validator
from safetravels.services.validator import validate


def _field_error(raw, catalog) -> str:
    with pytest.raises(ClientInputError) as exc_info:
        validate(raw, catalog)
    return exc_info.value.field


def test_valid_payload_normalized(valid_payload, catalog):
    result = validate(valid_payload, catalog)
    assert result.latitude == 43.6532
    assert result.longitude == -79.3832
    assert result.safety_score == 3
    assert result.tags == ("Harassment", "Police Presence")
    assert result.comment == "Test report"


def test_optional_fields_default_empty(catalog):
    result = validate({"latitude": 0, "longitude": 0, "safetyScore": 5}, catalog)
    assert result.tags == ()
    assert result.comment == ""


def test_null_comment_and_tags_treated_as_absent(catalog):
    raw = {"latitude": 1, "longitude": 1, "safetyScore": 1, "tags": None, "comment": None}
    result = validate(raw, catalog)
    assert result.tags == ()
    assert result.comment == ""


@pytest.mark.parametrize("lat,lon", [(-90, -180), (90, 180), (0, 0), (-89.999, 179.999)])
def test_boundary_coordinates_accepted(catalog, lat, lon):
    result = validate({"latitude": lat, "longitude": lon, "safetyScore": 2}, catalog)
    assert (result.latitude, result.longitude) == (lat, lon)


@pytest.mark.parametrize("lat", [-90.0001, 90.0001, 91, -1000, 10**400, -10**400])
def test_latitude_out_of_range(catalog, lat):
    assert _field_error({"latitude": lat, "longitude": 0, "safetyScore": 3}, catalog) == "latitude"


@pytest.mark.parametrize("lon", [-180.0001, 180.0001, 360, 10**400, -10**400])
def test_longitude_out_of_range(catalog, lon):
    assert _field_error({"latitude": 0, "longitude": lon, "safetyScore": 3}, catalog) == "longitude"


@pytest.mark.parametrize("value", [None, "43.6", True, float("nan"), float("inf"), [1]])
def test_latitude_must_be_numeric(catalog, value):
    assert _field_error({"latitude": value, "longitude": 0, "safetyScore": 3}, catalog) == "latitude"


def test_missing_longitude(catalog):
    assert _field_error({"latitude": 0, "safetyScore": 3}, catalog) == "longitude"


@pytest.mark.parametrize("score", [0, 6, -1, 3.0, 2.5, "3", True, None])
def test_invalid_safety_score(catalog, score):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": score}
    assert _field_error(raw, catalog) == "safetyScore"


@pytest.mark.parametrize("score", [1, 2, 3, 4, 5])
def test_every_score_in_range_accepted(catalog, score):
    assert validate({"latitude": 0, "longitude": 0, "safetyScore": score}, catalog).safety_score == score


def test_unknown_tag_rejects_whole_submission(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "tags": ["Quiet", "DROP TABLE"]}
    with pytest.raises(ClientInputError) as exc_info:
        validate(raw, catalog)
    assert exc_info.value.field == "tags"
    assert "DROP TABLE" in exc_info.value.message


@pytest.mark.parametrize("tags", ["Quiet", {"Quiet": 1}, ["Quiet", 7], [None]])
def test_tags_must_be_list_of_strings(catalog, tags):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "tags": tags}
    assert _field_error(raw, catalog) == "tags"


def test_duplicate_tags_collapsed_in_order(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3,
           "tags": ["Quiet", "Crowded", "Quiet", "Crowded", "Other"]}
    assert validate(raw, catalog).tags == ("Quiet", "Crowded", "Other")


def test_comment_markup_removed(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3,
           "comment": "<b>Dark</b> alley<script>steal()</script>"}
    assert validate(raw, catalog).comment == "Dark alley"


def test_comment_280_characters_accepted(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": "a" * 280}
    assert len(validate(raw, catalog).comment) == 280


def test_comment_281_characters_rejected(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": "a" * 281}
    assert _field_error(raw, catalog) == "comment"


def test_comment_length_measured_after_sanitization(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3,
           "comment": "<em>" + "a" * 280 + "</em>"}
    assert validate(raw, catalog).comment == "a" * 280


def test_oversized_raw_comment_rejected_before_sanitizing(catalog, monkeypatch):
    def fail(text):
        raise AssertionError("sanitizer should not run")

    monkeypatch.setattr(validator, "sanitize_text", fail)
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": "<b>" * 100_000}
    assert _field_error(raw, catalog) == "comment"


def test_markup_heavy_comment_within_raw_bound_is_sanitized(catalog):
    comment = "<b>a</b>" * 200
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": comment}
    assert len(comment) <= 280 * validator.RAW_COMMENT_FACTOR
    assert validate(raw, catalog).comment == "a" * 200


def test_comment_must_be_string(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": 42}
    assert _field_error(raw, catalog) == "comment"


def test_custom_comment_limit(catalog):
    raw = {"latitude": 0, "longitude": 0, "safetyScore": 3, "comment": "abcdef"}
    with pytest.raises(ClientInputError):
        validate(raw, catalog, max_comment_length=5)


def test_first_failure_wins(catalog):
    # Every field is bad; location is checked first
    raw = {"latitude": 200, "longitude": 0, "safetyScore": 9, "tags": ["Nope"], "comment": 1}
    assert _field_error(raw, catalog) == "latitude"
    raw["latitude"] = 0
    assert _field_error(raw, catalog) == "safetyScore"
    raw["safetyScore"] = 3
    assert _field_error(raw, catalog) == "tags"
    raw["tags"] = []
    assert _field_error(raw, catalog) == "comment"


@pytest.mark.parametrize("body", [None, [], "text", 5])
def test_body_must_be_object(catalog, body):
    assert _field_error(body, catalog) == "body"


def test_validate_does_not_mutate_input(valid_payload, catalog):
    snapshot = dict(valid_payload)
    validate(valid_payload, catalog)
    assert valid_payload == snapshot
