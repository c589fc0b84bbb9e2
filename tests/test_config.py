"""
tests/test_config.py — Startup configuration validation
"""
from __future__ import annotations

import pytest

from safetravels.config import load_settings
from safetravels.core.errors import ConfigurationError
from safetravels.main import create_app


def test_defaults():
    settings = load_settings(environment="testing")
    assert settings.rate_limit_window_seconds == 3600
    assert settings.rate_limit_quota == 3
    assert settings.max_comment_length == 280
    assert settings.missing_identity_policy == "reject"
    assert settings.trusted_proxy_header is None


@pytest.mark.parametrize("overrides", [
    {"rate_limit_quota": 0},
    {"rate_limit_window_seconds": 0},
    {"rate_limit_window_seconds": -5},
    {"rate_limit_prune_interval_seconds": -1},
    {"missing_identity_policy": "guess"},
    {"environment": "staging"},
    {"max_comment_length": -1},
])
def test_invalid_settings_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError):
        load_settings(**overrides)


@pytest.mark.parametrize("tags", [[], ["Quiet", "Quiet"], ["Quiet", ""]])
def test_invalid_catalog_fails_app_construction(tmp_path, tags):
    settings = load_settings(
        environment="testing",
        reports_file=str(tmp_path / "reports.json"),
        allowed_tags=tags,
    )
    with pytest.raises(ConfigurationError):
        create_app(settings=settings)


def test_custom_catalog_is_served(tmp_path):
    from fastapi.testclient import TestClient

    settings = load_settings(
        environment="testing",
        reports_file=str(tmp_path / "reports.json"),
        allowed_tags=["Lit", "Dark"],
        rate_limit_prune_interval_seconds=0,
    )
    with TestClient(create_app(settings=settings)) as client:
        assert client.get("/api/reports/tags").json()["tags"] == ["Lit", "Dark"]


def test_corrupt_log_fails_startup(tmp_path):
    from fastapi.testclient import TestClient

    from safetravels.core.errors import StorageError

    log = tmp_path / "reports.json"
    log.write_text("not json", encoding="utf-8")
    settings = load_settings(environment="testing", reports_file=str(log))
    with pytest.raises(StorageError):
        with TestClient(create_app(settings=settings)):
            pass
