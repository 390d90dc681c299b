from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from app.config import get_config
from app.db import init_db
from app.middlewares.error_handler import init_error_handlers
from app.middlewares.logging import init_request_logging
from app.middlewares.performance import init_performance
from app.middlewares.rate_limit import init_rate_limiting
from app.middlewares.request_id import init_request_id
from app.middlewares.security_headers import init_security_headers
from app.utils.auth import PRINCIPAL_HEADER
from app.utils.logging import setup_logging
from cache_layer import ReadCache


def _register_blueprints(app: Flask) -> None:
    # Route modules pull in `actions`, which imports `app.utils`; keep them out of package import.
    from app.routes.analytics import analytics_bp
    from app.routes.core import core_bp
    from app.routes.reports import reports_bp
    from app.routes.securecare import securecare_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(securecare_bp, url_prefix="/api/securecare")
    app.register_blueprint(analytics_bp, url_prefix="/api/securecare/analytics")
    app.register_blueprint(reports_bp, url_prefix="/api/securecare/reports")


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    app = Flask(__name__)
    app.config["CFG"] = cfg

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "X-Request-ID", "X-User-Email", PRINCIPAL_HEADER],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "OPTIONS"],
        max_age=3600,
    )

    init_request_id(app)
    init_security_headers(app)
    init_rate_limiting(app)
    init_request_logging(app)
    init_performance(app)
    init_error_handlers(app)

    init_db(app)
    app.extensions["cache"] = ReadCache(ttl_seconds=cfg.CACHE_TTL_SECONDS, max_items=cfg.CACHE_MAX_ITEMS)

    _register_blueprints(app)
    return app
