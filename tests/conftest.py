import sys
from pathlib import Path

import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture()
def app_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_path = tmp_path / "test.db"

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("EDIT_COMPLETED_DATE_PERMISSIONS", "Editor@Example.com")

    # Prevent accidental pollution from any existing env config.
    for name in (
        "APP_ENV",
        "CORS_ORIGINS",
        "ENFORCE_LEVEL_GATING",
        "RATE_LIMIT_GLOBAL",
        "RATE_LIMIT_DEFAULT",
        "RATE_LIMIT_MUTATION",
        "DB_SSLMODE",
        "CACHE_TTL_SECONDS",
        "CACHE_MAX_ITEMS",
    ):
        monkeypatch.delenv(name, raising=False)

    from app import create_app

    app = create_app()
    app.testing = True

    with app.test_client() as client:
        yield app, client
