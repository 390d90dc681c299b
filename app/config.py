from __future__ import annotations

import os
from dataclasses import dataclass, field


def _csv(value: str) -> list[str]:
    items: list[str] = []
    for part in (value or "").split(","):
        item = part.strip()
        if item:
            items.append(item)
    return items


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "") or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default) or default)


@dataclass(frozen=True)
class BaseConfig:
    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"
    TIMEZONE_DISPLAY: str = "America/New_York"

    DATABASE_URL: str = "sqlite:///./securecare.db"

    CORS_ORIGINS: list[str] | str = (
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"

    RATE_LIMIT_GLOBAL: str = "1200 per minute"
    RATE_LIMIT_DEFAULT: str = "300 per minute"
    RATE_LIMIT_MUTATION: str = "120 per minute"

    TRUST_PROXY_HEADERS: bool = True

    # Lower-cased user identifiers allowed to move a completed item back to scheduled.
    EDIT_COMPLETED_DATE_PERMISSIONS: list[str] = field(default_factory=list)
    # Refuse writes to a level while the previous level is not awarded.
    ENFORCE_LEVEL_GATING: bool = True
    SLOW_REQUEST_MS: int = 1000

    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ITEMS: int = 10000

    def __post_init__(self) -> None:
        object.__setattr__(self, "APP_VERSION", _env_str("APP_VERSION", self.APP_VERSION))
        object.__setattr__(self, "TIMEZONE_DISPLAY", _env_str("TIMEZONE_DISPLAY", self.TIMEZONE_DISPLAY))
        object.__setattr__(self, "DATABASE_URL", _env_str("DATABASE_URL", self.DATABASE_URL).strip())

        cors_raw = os.getenv("CORS_ORIGINS")
        if cors_raw is not None:
            cors_raw = str(cors_raw or "").strip()
            if cors_raw == "*":
                object.__setattr__(self, "CORS_ORIGINS", "*")
            else:
                object.__setattr__(self, "CORS_ORIGINS", _csv(cors_raw))
        else:
            object.__setattr__(self, "CORS_ORIGINS", _csv(str(self.CORS_ORIGINS)))

        object.__setattr__(
            self, "CORS_ALLOW_CREDENTIALS", _env_bool("CORS_ALLOW_CREDENTIALS", self.CORS_ALLOW_CREDENTIALS)
        )

        object.__setattr__(self, "LOG_LEVEL", _env_str("LOG_LEVEL", self.LOG_LEVEL).upper())

        object.__setattr__(self, "RATE_LIMIT_GLOBAL", _env_str("RATE_LIMIT_GLOBAL", self.RATE_LIMIT_GLOBAL))
        object.__setattr__(self, "RATE_LIMIT_DEFAULT", _env_str("RATE_LIMIT_DEFAULT", self.RATE_LIMIT_DEFAULT))
        object.__setattr__(self, "RATE_LIMIT_MUTATION", _env_str("RATE_LIMIT_MUTATION", self.RATE_LIMIT_MUTATION))

        object.__setattr__(self, "TRUST_PROXY_HEADERS", _env_bool("TRUST_PROXY_HEADERS", self.TRUST_PROXY_HEADERS))

        editors_raw = os.getenv("EDIT_COMPLETED_DATE_PERMISSIONS")
        editors = _csv(editors_raw) if editors_raw is not None else list(self.EDIT_COMPLETED_DATE_PERMISSIONS)
        object.__setattr__(self, "EDIT_COMPLETED_DATE_PERMISSIONS", [e.lower() for e in editors])

        object.__setattr__(self, "ENFORCE_LEVEL_GATING", _env_bool("ENFORCE_LEVEL_GATING", self.ENFORCE_LEVEL_GATING))
        object.__setattr__(self, "SLOW_REQUEST_MS", max(1, _env_int("SLOW_REQUEST_MS", self.SLOW_REQUEST_MS)))
        object.__setattr__(
            self, "CACHE_TTL_SECONDS", max(1, min(3600, _env_int("CACHE_TTL_SECONDS", self.CACHE_TTL_SECONDS)))
        )
        object.__setattr__(
            self, "CACHE_MAX_ITEMS", max(100, min(200_000, _env_int("CACHE_MAX_ITEMS", self.CACHE_MAX_ITEMS)))
        )

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    def validate(self) -> None:
        if not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL must be set")
        if self.IS_PRODUCTION and self.DATABASE_URL.startswith("sqlite"):
            raise RuntimeError("SQLite is not supported in production; set DATABASE_URL to Postgres")
        if self.IS_PRODUCTION and self.CORS_ORIGINS == "*":
            raise RuntimeError("CORS_ORIGINS must list explicit origins in production")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    DATABASE_URL: str = "sqlite:///:memory:"


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
