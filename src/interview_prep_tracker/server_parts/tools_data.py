from __future__ import annotations

from .base import *  # noqa: F401,F403
from interview_prep_tracker.schemas import SNAPSHOT_VERSION, validate_snapshot


def _export_application(conn: sqlite3.Connection, app: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": app["id"],
        "company": app["company"],
        "role": app["role"] or "",
        "status": app["status"],
        "application_date": app["application_date_utc"],
        "interview_date": app["interview_date_utc"],
        "current_round": app["current_round"],
        "notes": app["notes"] or "",
        "created_at_utc": app["created_at_utc"],
        "rounds": [
            {
                "round_number": int(r["round_number"]),
                "round_type": r["round_type"],
                "scheduled_date": r["scheduled_date_utc"],
                "notes": r["notes"] or "",
                "questions_asked": r["questions_asked"],
            }
            for r in _list_rounds_in_conn(conn, app["id"])
        ],
    }


def _delete_user_rows_in_conn(conn: sqlite3.Connection, user_id: str) -> dict[str, int]:
    counts_row = conn.execute(
        """
        SELECT
          (SELECT COUNT(*) FROM applications WHERE user_id = ?) AS applications_count,
          (SELECT COUNT(*) FROM interview_rounds r
             JOIN applications a ON a.id = r.application_id
             WHERE a.user_id = ?) AS rounds_count,
          (SELECT COUNT(*) FROM application_events WHERE user_id = ?) AS events_count
        """,
        (user_id, user_id, user_id),
    ).fetchone()
    conn.execute("DELETE FROM application_events WHERE user_id = ?", (user_id,))
    conn.execute(
        "DELETE FROM interview_rounds WHERE application_id IN (SELECT id FROM applications WHERE user_id = ?)",
        (user_id,),
    )
    conn.execute("DELETE FROM applications WHERE user_id = ?", (user_id,))
    return {
        "applications": int(counts_row["applications_count"]) if counts_row else 0,
        "interview_rounds": int(counts_row["rounds_count"]) if counts_row else 0,
        "events": int(counts_row["events_count"]) if counts_row else 0,
    }


@mcp.tool()
def export_user_data(user_id: str) -> dict[str, Any]:
    """Export every application, round and event for one user as a versioned snapshot."""
    uid = _require_user_id(user_id)
    _ensure_store_ready()

    with _db_conn() as conn:
        applications = [_export_application(conn, app) for app in _list_applications_in_conn(conn, uid)]
        event_rows = conn.execute(
            """
            SELECT application_id, from_status, to_status, reason, note, created_at_utc
            FROM application_events
            WHERE user_id = ?
            ORDER BY created_at_utc, id
            """,
            (uid,),
        ).fetchall()

    return {
        "version": SNAPSHOT_VERSION,
        "user_id": uid,
        "exported_at_utc": _utcnow_iso(),
        "applications": applications,
        "events": [_row_to_dict(row) for row in event_rows],
        "counts": {
            "applications": len(applications),
            "interview_rounds": sum(len(app["rounds"]) for app in applications),
            "events": len(event_rows),
        },
    }


@mcp.tool()
def import_user_data(user_id: str, snapshot: dict[str, Any], replace: bool = False) -> dict[str, Any]:
    """Restore an ``export_user_data`` snapshot into this user's records.

    The snapshot is validated strictly before anything is written. With
    ``replace=True`` the user's current records are deleted first; otherwise
    applications whose id the user already has are skipped. An id held by a
    different user is re-keyed.
    """
    uid = _require_user_id(user_id)
    parsed = validate_snapshot(snapshot)
    _ensure_store_ready()

    imported = {"applications": 0, "interview_rounds": 0, "events": 0}
    skipped: list[str] = []
    deleted: dict[str, int] | None = None
    id_map: dict[str, str] = {}
    with _db_conn() as conn:
        if replace:
            deleted = _delete_user_rows_in_conn(conn, uid)

        for app in parsed.applications:
            owner = conn.execute("SELECT user_id FROM applications WHERE id = ?", (app.id,)).fetchone()
            if owner and owner["user_id"] == uid:
                skipped.append(app.id)
                continue
            new_id = _new_application_id() if owner else app.id
            _insert_application_in_conn(
                conn,
                user_id=uid,
                company=app.company,
                role=app.role,
                status=app.status,
                application_date_utc=app.application_date,
                interview_date_utc=app.interview_date,
                current_round=app.current_round,
                notes=app.notes,
                application_id=new_id,
                created_at_utc=app.created_at_utc or "",
                reason="import_user_data",
            )
            for round_ in sorted(app.rounds, key=lambda r: r.round_number):
                _insert_round_in_conn(
                    conn,
                    application_id=new_id,
                    round_number=round_.round_number,
                    round_type=round_.round_type,
                    scheduled_date=round_.scheduled_date,
                    notes=round_.notes,
                    questions_asked=round_.questions_asked,
                )
                imported["interview_rounds"] += 1
            id_map[app.id] = new_id
            imported["applications"] += 1

        for event in parsed.events:
            application_id = id_map.get(str(event.get("application_id") or ""))
            if not application_id:
                continue
            conn.execute(
                """
                INSERT INTO application_events (user_id, application_id, from_status, to_status, reason, note, created_at_utc)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    uid,
                    application_id,
                    event.get("from_status"),
                    event.get("to_status"),
                    str(event.get("reason") or ""),
                    str(event.get("note") or ""),
                    str(event.get("created_at_utc") or _utcnow_iso()),
                ),
            )
            imported["events"] += 1

    logger.info("Imported %d applications for user_id=%s", imported["applications"], uid)
    return {
        "user_id": uid,
        "source_user_id": parsed.user_id,
        "replace": bool(replace),
        "imported": imported,
        "deleted": deleted,
        "skipped_application_ids": skipped,
        "rekeyed_application_ids": {old: new for old, new in id_map.items() if old != new},
        "db_path": _db_path(),
    }


@mcp.tool()
def delete_user_data(user_id: str, confirm: bool = False) -> dict[str, Any]:
    """Permanently delete all local records for one user."""
    uid = _require_user_id(user_id)
    if not confirm:
        raise ValueError("confirm=true is required to delete user data")
    _ensure_store_ready()

    with _db_conn() as conn:
        deleted = _delete_user_rows_in_conn(conn, uid)

    logger.info("Deleted local data for user_id=%s", uid)
    return {
        "user_id": uid,
        "deleted": deleted,
        "db_path": _db_path(),
    }
