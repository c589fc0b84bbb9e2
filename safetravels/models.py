"""
safetravels/models.py — Pydantic data schemas
SafetyReport is the only persisted record. It carries no submitter field of
any kind and forbids extra fields, so identifying data cannot be attached
on construction or smuggled in through the durable log.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Bumped when the on-disk report log layout changes
CURRENT_SCHEMA_VERSION = "1.0"

MIN_SAFETY_SCORE = 1
MAX_SAFETY_SCORE = 5


# ──────────────────────────────────────────────────────────────────────────────
# Location — GeoJSON point, coordinates are [longitude, latitude]
# ──────────────────────────────────────────────────────────────────────────────

class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]

    @field_validator("coordinates")
    @classmethod
    def validate_bounds(cls, v: tuple[float, float]) -> tuple[float, float]:
        lon, lat = v
        if not -180.0 <= lon <= 180.0:
            raise ValueError("longitude out of range")
        if not -90.0 <= lat <= 90.0:
            raise ValueError("latitude out of range")
        return v

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


# ──────────────────────────────────────────────────────────────────────────────
# Validator output (in-flight, not persisted)
# ──────────────────────────────────────────────────────────────────────────────

class ValidatedReport(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    safety_score: int = Field(ge=MIN_SAFETY_SCORE, le=MAX_SAFETY_SCORE)
    tags: tuple[str, ...] = ()
    comment: str = ""


# ──────────────────────────────────────────────────────────────────────────────
# Stored report
# ──────────────────────────────────────────────────────────────────────────────

class SafetyReport(BaseModel):
    """
    Immutable stored report. Serialized with camelCase keys:
    {id, location, safetyScore, tags, comment, timestamp}.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    location: GeoPoint
    safety_score: int = Field(ge=MIN_SAFETY_SCORE, le=MAX_SAFETY_SCORE)
    tags: tuple[str, ...] = ()
    comment: str = ""
    timestamp: datetime

    def to_public_dict(self) -> dict:
        """JSON-ready dict of the public fields, as returned by the API."""
        return self.model_dump(mode="json", by_alias=True)


class ReportLogFile(BaseModel):
    """Layout of the durable report log."""
    schema_version: Optional[str] = CURRENT_SCHEMA_VERSION
    reports: list[SafetyReport] = []


# ──────────────────────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────────────────────

class ReportFilter(BaseModel):
    """Inclusive time range and bounding box. Unset bounds do not filter."""
    model_config = ConfigDict(frozen=True)

    since: Optional[datetime] = None
    until: Optional[datetime] = None
    min_latitude: Optional[float] = None
    max_latitude: Optional[float] = None
    min_longitude: Optional[float] = None
    max_longitude: Optional[float] = None

    def matches(self, report: SafetyReport) -> bool:
        if self.since is not None and report.timestamp < self.since:
            return False
        if self.until is not None and report.timestamp > self.until:
            return False
        lat = report.location.latitude
        lon = report.location.longitude
        if self.min_latitude is not None and lat < self.min_latitude:
            return False
        if self.max_latitude is not None and lat > self.max_latitude:
            return False
        if self.min_longitude is not None and lon < self.min_longitude:
            return False
        if self.max_longitude is not None and lon > self.max_longitude:
            return False
        return True


# ──────────────────────────────────────────────────────────────────────────────
# API responses
# ──────────────────────────────────────────────────────────────────────────────

class TagsResponse(BaseModel):
    success: bool = True
    tags: list[str]
