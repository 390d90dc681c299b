from __future__ import annotations

import pytest

from app.config import DevelopmentConfig, ProductionConfig, TestingConfig, get_config


def _clear(monkeypatch):
    for name in (
        "ENV",
        "APP_ENV",
        "DATABASE_URL",
        "CORS_ORIGINS",
        "EDIT_COMPLETED_DATE_PERMISSIONS",
        "ENFORCE_LEVEL_GATING",
        "SLOW_REQUEST_MS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_get_config_selects_by_env(monkeypatch):
    _clear(monkeypatch)
    assert isinstance(get_config(), DevelopmentConfig)

    monkeypatch.setenv("APP_ENV", "test")
    cfg = get_config()
    assert isinstance(cfg, TestingConfig)
    assert cfg.DATABASE_URL == "sqlite:///:memory:"


def test_env_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("EDIT_COMPLETED_DATE_PERMISSIONS", " Alice@Example.com, bob@example.com ,,")
    monkeypatch.setenv("ENFORCE_LEVEL_GATING", "false")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
    monkeypatch.setenv("SLOW_REQUEST_MS", "250")

    cfg = get_config()
    assert cfg.EDIT_COMPLETED_DATE_PERMISSIONS == ["alice@example.com", "bob@example.com"]
    assert cfg.ENFORCE_LEVEL_GATING is False
    assert cfg.CORS_ORIGINS == ["https://a.example.com", "https://b.example.com"]
    assert cfg.SLOW_REQUEST_MS == 250


def test_production_refuses_sqlite_and_wildcard_cors(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        get_config()

    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db.internal:5432/securecare")
    monkeypatch.setenv("CORS_ORIGINS", "*")
    with pytest.raises(RuntimeError):
        get_config()

    monkeypatch.setenv("CORS_ORIGINS", "https://securecare.example.com")
    cfg = get_config()
    assert isinstance(cfg, ProductionConfig)
    assert cfg.IS_PRODUCTION is True


def test_production_ignores_impersonation_headers(app_client):
    import dataclasses

    app, client = app_client
    app.config["CFG"] = dataclasses.replace(app.config["CFG"], ENV="production")

    res = client.post("/api/securecare/update-notes", headers={"X-User-Email": "a@example.com"}, json={"employeeId": 1})
    assert res.status_code == 401

    res = client.post(
        "/api/securecare/update-notes",
        headers={"X-MS-CLIENT-PRINCIPAL-NAME": "A@Example.com"},
        json={"employeeId": 1},
    )
    assert res.status_code == 404
