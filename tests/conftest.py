"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from safetravels.config import load_settings
from safetravels.core.rate_limiter import FixedWindowRateLimiter
from safetravels.core.tag_catalog import TagCatalog
from safetravels.main import create_app
from safetravels.services.report_store import InMemoryReportStore, JsonFileReportStore


class FakeClock:
    """Monotonic seconds, advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC datetimes, advanced by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def catalog() -> TagCatalog:
    return TagCatalog()


@pytest.fixture
def rate_limiter(clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(window_seconds=3600, quota=3, clock=clock)


@pytest.fixture
def memory_store(catalog, wall_clock) -> InMemoryReportStore:
    return InMemoryReportStore(catalog, clock=wall_clock)


@pytest.fixture
def reports_path(tmp_path):
    return tmp_path / "data" / "safety_reports.json"


@pytest.fixture
def file_store(reports_path, catalog, wall_clock) -> JsonFileReportStore:
    return JsonFileReportStore(reports_path, catalog, clock=wall_clock)


@pytest.fixture
def valid_payload() -> dict:
    return {
        "latitude": 43.6532,
        "longitude": -79.3832,
        "safetyScore": 3,
        "tags": ["Harassment", "Police Presence"],
        "comment": "Test report",
    }


@pytest.fixture
def settings(reports_path):
    return load_settings(
        environment="testing",
        reports_file=str(reports_path),
        rate_limit_prune_interval_seconds=0,
    )


@pytest.fixture
def client(settings, rate_limiter):
    app = create_app(settings=settings, submission_limiter=rate_limiter)
    with TestClient(app) as test_client:
        yield test_client
