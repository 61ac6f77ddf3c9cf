import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from platformdirs import user_data_dir

APP_NAME = "casedesk"
APP_AUTHOR = "casedesk"

PatientIdStrategy = Literal["random", "stable"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_patient_id_strategy(name: str, default: PatientIdStrategy) -> PatientIdStrategy:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in {"random", "stable"}:
        return cast(PatientIdStrategy, raw)
    return default


def _resolve_data_dir() -> Path:
    env_dir = os.getenv("CASEDESK_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


DATA_DIR = _resolve_data_dir()
LOG_DIR = DATA_DIR / "logs"
BLOB_DIR = DATA_DIR / "blobs"
EXPORT_DIR = Path(os.getenv("CASEDESK_EXPORT_DIR") or (DATA_DIR / "exports"))
DB_FILE = Path(os.getenv("CASEDESK_DB_FILE") or (DATA_DIR / "cases.db"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
BLOB_DIR.mkdir(parents=True, exist_ok=True)
EXPORT_DIR.mkdir(parents=True, exist_ok=True)
DB_FILE.parent.mkdir(parents=True, exist_ok=True)


def default_database_url() -> str:
    # SQLite URL uses forward slashes; as_posix() keeps it cross-platform.
    return f"sqlite:///{DB_FILE.as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", default_database_url())
    echo_sql: bool = os.getenv("SQL_ECHO", "0") == "1"
    poll_interval_seconds: int = _env_int("CASEDESK_POLL_INTERVAL", 60)
    patient_id_strategy: PatientIdStrategy = _env_patient_id_strategy("CASEDESK_PATIENT_ID_STRATEGY", "random")
    blob_bucket: str = os.getenv("CASEDESK_BLOB_BUCKET", "medical-images")
    notify_case_alerts: bool = _env_bool("CASEDESK_CASE_ALERTS", True)
    export_dir: Path = EXPORT_DIR


settings = Settings()
