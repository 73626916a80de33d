from __future__ import annotations

import argparse
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from . import server
from .date_parsing import try_parse_date_input


def _check(name: str, ok: bool, detail: str) -> dict[str, Any]:
    return {"name": name, "ok": bool(ok), "detail": detail}


def main() -> None:
    parser = argparse.ArgumentParser(description="Health checks for interview-prep-tracker")
    parser.add_argument("--user-id", default="", help="Optional user id to summarize tracked applications")
    parser.add_argument("--db-path", default="", help="Override PREP_TRACKER_DB_PATH for this run")
    args = parser.parse_args()

    checks: list[dict[str, Any]] = []

    db_path = Path(server._db_path(args.db_path or None))  # noqa: SLF001 - shared path resolution
    checks.append(
        _check(
            "db_parent_writable",
            db_path.parent.exists() or db_path.parent.parent.exists(),
            f"db_path={db_path}",
        )
    )

    init_error = ""
    try:
        server._ensure_store_ready(str(db_path))  # noqa: SLF001 - intentional startup parity check
    except (sqlite3.Error, OSError) as exc:
        init_error = str(exc)
    checks.append(
        _check(
            "db_initialized",
            db_path.exists() and not init_error,
            init_error or f"db_path={db_path}",
        )
    )

    base = datetime(2026, 2, 8)
    sample = try_parse_date_input("14th feb", base)
    checks.append(
        _check(
            "date_parser_functional",
            sample is not None and sample.date().isoformat() == "2026-02-14",
            f"'14th feb' -> {sample.isoformat() if sample else None}",
        )
    )

    user_id = args.user_id.strip()
    summary = None
    if user_id and not init_error:
        with server._db_conn(str(db_path)) as conn:  # noqa: SLF001 - summary against the checked path
            summary = {
                "user_id": user_id,
                **server._pipeline_summary_in_conn(conn, user_id),  # noqa: SLF001
                "db_path": str(db_path),
            }
        checks.append(
            _check(
                "user_has_applications",
                summary["total_applications"] > 0,
                f"status_counts={summary['status_counts']}",
            )
        )

    healthy = all(check["ok"] for check in checks)
    print(
        json.dumps(
            {
                "healthy": healthy,
                "checks": checks,
                "user_id": user_id or None,
                "summary": summary,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
