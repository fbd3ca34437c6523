# SPDX-License-Identifier: MIT
"""Tests for settings loading."""

from pipeline.config import APISettings, DataSourceSettings, PipelineSettings, Settings
from pipeline.sources import WorldHeritageSource


def test_source_settings_from_env(monkeypatch):
    monkeypatch.setenv("WHS_METHOD", "post")
    monkeypatch.setenv("WHS_TIMEOUT", "12")

    source = DataSourceSettings()
    assert source.method == "POST"
    assert source.timeout == 12


def test_source_uses_configured_timeout():
    source = WorldHeritageSource(url="https://sites.example.test/whs", timeout=7)
    assert source.timeout == 7
    assert source.client.timeout.read == 7


def test_every_setting_is_read():
    assert set(PipelineSettings.model_fields) == {"log_level", "log_file", "http_max_retries", "http_retry_delay"}
    assert set(APISettings.model_fields) == {"host", "port", "reload", "load_on_startup", "cors_origins"}


def test_cors_origins_list(monkeypatch):
    monkeypatch.setenv("API_CORS_ORIGINS", "https://a.example, https://b.example")
    assert APISettings().cors_origins_list == ["https://a.example", "https://b.example"]


def test_settings_groups():
    settings = Settings()
    assert settings.map.min_year == 1978
    assert settings.pipeline.http_max_retries == 1
