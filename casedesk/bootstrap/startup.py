from __future__ import annotations

import logging
import os
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

from alembic import command
from alembic.config import Config

from casedesk.config import DB_FILE, LOG_DIR, settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "infrastructure" / "db" / "migrations"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(log_dir: Path = LOG_DIR, level: int = logging.INFO) -> Path:
    log_path = log_dir / "casedesk.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers:
        if isinstance(existing, RotatingFileHandler) and existing.baseFilename == os.path.abspath(log_path):
            return log_path
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root_logger.addHandler(handler)
    return log_path


def run_migrations(database_url: str, log_dir: Path = LOG_DIR, db_file: Path = DB_FILE) -> bool:
    logger = logging.getLogger(__name__)
    try:
        # no ini file: alembic's fileConfig would replace the logging set up above
        cfg = Config()
        cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
        cfg.set_main_option("sqlalchemy.url", database_url)
        command.upgrade(cfg, "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = log_dir / "migration_error.log"
            error_path.parent.mkdir(parents=True, exist_ok=True)
            with error_path.open("a", encoding="utf-8") as handle:
                handle.write("\n--- Migration error ---\n")
                handle.write(f"DB: {db_file}\n")
                handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
                handle.write(traceback.format_exc())
        except Exception:  # noqa: BLE001
            logger.exception("Failed to write migration error log")
        return False


def initialize_database(database_url: str | None = None) -> bool:
    url = database_url or settings.database_url
    if not MIGRATIONS_DIR.exists():
        logging.getLogger(__name__).error("Migrations directory is missing: %s", MIGRATIONS_DIR)
        return False
    return run_migrations(url)
