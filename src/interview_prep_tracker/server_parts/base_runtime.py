from __future__ import annotations

import json
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP
from interview_prep_tracker import __version__
from interview_prep_tracker.application_intake import (
    APPLICATION_STATUSES,
    merge_text,
    normalize_role_text,
    sanitize_company_name,
)

mcp = FastMCP("interview-prep-tracker")
logger = logging.getLogger("interview_prep_tracker.server")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DEFAULT_DB_PATH = os.getenv(
    "PREP_TRACKER_DB_PATH",
    "data/app/interview_prep.db",
)
DEFAULT_LOG_LEVEL = os.getenv("PREP_TRACKER_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
DEFAULT_ROLE = os.getenv("PREP_TRACKER_DEFAULT_ROLE", "Software Engineer").strip() or "Software Engineer"
DEFAULT_MAX_PAGE_SIZE = _env_int("PREP_TRACKER_MAX_PAGE_SIZE", 200)
DEFAULT_UPCOMING_WINDOW_DAYS = _env_int("PREP_TRACKER_UPCOMING_WINDOW_DAYS", 14)

CAPABILITIES_SCHEMA_VERSION = "1.0.0"
VALID_APPLICATION_STATUSES = set(APPLICATION_STATUSES)
_DB_READY_PATHS: set[str] = set()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _new_application_id() -> str:
    return uuid.uuid4().hex


def _require_user_id(user_id: str) -> str:
    uid = (user_id or "").strip()
    if not uid:
        raise ValueError("user_id is required")
    return uid


def _validate_status(status: str) -> str:
    clean = (status or "").strip().lower()
    if clean not in VALID_APPLICATION_STATUSES:
        raise ValueError(f"status must be one of {sorted(VALID_APPLICATION_STATUSES)}")
    return clean


def _page_bounds(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(int(limit), DEFAULT_MAX_PAGE_SIZE)), max(int(offset), 0)


def _db_path(path: str | None = None) -> str:
    return path or DEFAULT_DB_PATH


@contextmanager
def _db_conn(path: str | None = None):
    db_file = Path(_db_path(path))
    db_file.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_file)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn
        conn.commit()
    finally:
        conn.close()


def _ensure_db(path: str | None = None) -> None:
    with _db_conn(path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS applications (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              company TEXT NOT NULL,
              role TEXT NOT NULL DEFAULT '',
              status TEXT NOT NULL,
              application_date_utc TEXT,
              interview_date_utc TEXT,
              current_round TEXT,
              notes TEXT NOT NULL DEFAULT '',
              created_at_utc TEXT NOT NULL,
              updated_at_utc TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS interview_rounds (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              application_id TEXT NOT NULL,
              round_number INTEGER NOT NULL,
              round_type TEXT NOT NULL,
              scheduled_date_utc TEXT,
              notes TEXT NOT NULL DEFAULT '',
              questions_asked TEXT NOT NULL DEFAULT '[]',
              created_at_utc TEXT NOT NULL,
              updated_at_utc TEXT NOT NULL,
              UNIQUE(application_id, round_number),
              FOREIGN KEY(application_id) REFERENCES applications(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS application_events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id TEXT NOT NULL,
              application_id TEXT NOT NULL,
              from_status TEXT,
              to_status TEXT,
              reason TEXT NOT NULL DEFAULT '',
              note TEXT NOT NULL DEFAULT '',
              created_at_utc TEXT NOT NULL,
              FOREIGN KEY(application_id) REFERENCES applications(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_apps_user_status ON applications(user_id, status, updated_at_utc);
            CREATE INDEX IF NOT EXISTS idx_rounds_app ON interview_rounds(application_id, round_number);
            CREATE INDEX IF NOT EXISTS idx_events_user_created ON application_events(user_id, created_at_utc);
            """
        )


def _ensure_store_ready(path: str | None = None) -> dict[str, Any]:
    resolved = str(Path(_db_path(path)).expanduser().resolve())
    if resolved in _DB_READY_PATHS:
        return {"already_ready": True, "db_path": resolved}
    _ensure_db(resolved)
    _DB_READY_PATHS.add(resolved)
    return {"already_ready": False, "db_path": resolved}


def _row_to_dict(row: sqlite3.Row | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {key: row[key] for key in row.keys()}


def _round_row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    item = _row_to_dict(row) or {}
    try:
        questions = json.loads(item.get("questions_asked") or "[]")
    except json.JSONDecodeError:
        questions = []
    item["questions_asked"] = [str(q) for q in questions] if isinstance(questions, list) else []
    return item


def _upcoming_cutoff_iso(days: int = DEFAULT_UPCOMING_WINDOW_DAYS) -> tuple[str, str]:
    today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    return today.isoformat(), (today + timedelta(days=max(days, 0))).isoformat()
