from __future__ import annotations

import argparse
import logging
import os

from dotenv import load_dotenv

import db as db_
from app.config import get_config
from app.utils.logging import setup_logging
from services.csv_import import import_rows, read_csv_rows


def main():
    parser = argparse.ArgumentParser(description="Import SecureCare employees from a CSV export (one row per level).")
    parser.add_argument("csv_path", help="Path to the CSV file.")
    parser.add_argument("--dry-run", action="store_true", help="Parse and validate every row, then roll back.")
    args = parser.parse_args()

    load_dotenv()
    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    path = os.path.abspath(args.csv_path)
    if not os.path.exists(path):
        raise SystemExit(f"File not found: {path}")

    engine = db_.init_engine(cfg.DATABASE_URL)
    db_.create_schema(engine)

    rows = read_csv_rows(path)
    logging.getLogger(__name__).info("Read %d rows from %s", len(rows), path)

    session = db_.SessionLocal()
    try:
        report = import_rows(session, rows)
        if args.dry_run:
            session.rollback()
        else:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    suffix = " (dry run, nothing written)" if args.dry_run else ""
    print(f"Inserted {report.inserted}, updated {report.updated}, failed {report.failed}{suffix}")


if __name__ == "__main__":
    main()
