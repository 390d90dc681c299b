from __future__ import annotations

import logging
from flask import Flask, current_app

import db as db_

log = logging.getLogger(__name__)


def init_db(app: Flask) -> None:
    cfg = app.config["CFG"]
    engine = db_.init_engine(cfg.DATABASE_URL)
    db_.create_schema(engine)
    app.extensions["db_engine"] = engine
    log.info("Database ready dialect=%s", engine.dialect.name)


def ping_db(app: Flask | None = None) -> bool:
    target = app or current_app
    return db_.ping(target.extensions.get("db_engine"))
