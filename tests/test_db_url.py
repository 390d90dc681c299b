from db import _normalize_database_url


def test_normalize_database_url_maps_postgres_schemes_to_psycopg():
    for raw in (
        "postgres://u:p@db.internal:5432/securecare",
        "postgresql://u:p@db.internal:5432/securecare",
        "postgresql+psycopg2://u:p@db.internal:5432/securecare",
        "postgresql+psycopg://u:p@db.internal:5432/securecare",
    ):
        assert _normalize_database_url(raw) == "postgresql+psycopg://u:p@db.internal:5432/securecare"


def test_normalize_database_url_strips_leading_key_prefix_before_url():
    raw = "DATABASE_URL=postgresql://u:p@db.internal:5432/securecare"
    assert _normalize_database_url(raw) == "postgresql+psycopg://u:p@db.internal:5432/securecare"


def test_normalize_database_url_leaves_sqlite_alone():
    assert _normalize_database_url("  sqlite:///./securecare.db ") == "sqlite:///./securecare.db"
    assert _normalize_database_url("") == ""


def _capture_engine_kwargs(monkeypatch):
    import db as dbmod

    captured = {}

    def fake_create_engine(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)

        class DummyEngine:
            pass

        return DummyEngine()

    monkeypatch.setattr(dbmod, "create_engine", fake_create_engine)
    monkeypatch.setattr(dbmod, "engine", dbmod.engine)
    monkeypatch.setattr(dbmod.SessionLocal, "configure", lambda **_kwargs: None)
    return dbmod, captured


def test_init_engine_sets_sslmode_for_postgres(monkeypatch):
    monkeypatch.setenv("DB_SSLMODE", "require")
    monkeypatch.setenv("DB_POOL_SIZE", "9")
    dbmod, captured = _capture_engine_kwargs(monkeypatch)

    dbmod.init_engine("postgres://u:p@db.internal:5432/securecare")

    assert captured["url"].startswith("postgresql+psycopg://")
    assert captured["connect_args"] == {"sslmode": "require"}
    assert captured["pool_size"] == 9


def test_init_engine_sqlite_allows_cross_thread_use(monkeypatch):
    monkeypatch.setenv("DB_SSLMODE", "require")
    dbmod, captured = _capture_engine_kwargs(monkeypatch)

    dbmod.init_engine("sqlite:///./x.db")

    assert captured["connect_args"] == {"check_same_thread": False}
    assert "pool_size" not in captured
