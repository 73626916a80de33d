from __future__ import annotations

import asyncio

from .base_runtime import *  # noqa: F401,F403
from .base_runtime import (
    _db_conn,
    _ensure_store_ready,
    _new_application_id,
    _round_row_to_dict,
    _row_to_dict,
    _upcoming_cutoff_iso,
    _utcnow_iso,
    _validate_status,
)
from interview_prep_tracker.round_upsert import (
    ApplicationForRoundUpsert,
    InterviewRoundLite,
    RoundUpsertDeps,
)

APPLICATION_COLUMNS = (
    "id, user_id, company, role, status, application_date_utc, interview_date_utc, "
    "current_round, notes, created_at_utc, updated_at_utc"
)
ROUND_COLUMNS = (
    "id, application_id, round_number, round_type, scheduled_date_utc, notes, "
    "questions_asked, created_at_utc, updated_at_utc"
)


def _get_application_in_conn(
    conn: sqlite3.Connection,
    user_id: str,
    application_id: str,
) -> dict[str, Any] | None:
    row = conn.execute(
        f"SELECT {APPLICATION_COLUMNS} FROM applications WHERE user_id = ? AND id = ? LIMIT 1",
        (user_id, application_id.strip()),
    ).fetchone()
    return _row_to_dict(row)


def _require_application_in_conn(
    conn: sqlite3.Connection,
    user_id: str,
    application_id: str,
) -> dict[str, Any]:
    existing = _get_application_in_conn(conn, user_id, application_id)
    if not existing:
        raise ValueError(f"application_id='{application_id}' not found for user_id='{user_id}'")
    return existing


def _list_applications_in_conn(
    conn: sqlite3.Connection,
    user_id: str,
    status: str = "",
) -> list[dict[str, Any]]:
    if status:
        rows = conn.execute(
            f"""
            SELECT {APPLICATION_COLUMNS}
            FROM applications
            WHERE user_id = ? AND status = ?
            ORDER BY created_at_utc, rowid
            """,
            (user_id, status),
        ).fetchall()
    else:
        rows = conn.execute(
            f"""
            SELECT {APPLICATION_COLUMNS}
            FROM applications
            WHERE user_id = ?
            ORDER BY created_at_utc, rowid
            """,
            (user_id,),
        ).fetchall()
    return [_row_to_dict(row) or {} for row in rows]


def _list_rounds_in_conn(conn: sqlite3.Connection, application_id: str) -> list[dict[str, Any]]:
    rows = conn.execute(
        f"SELECT {ROUND_COLUMNS} FROM interview_rounds WHERE application_id = ? ORDER BY round_number",
        (application_id,),
    ).fetchall()
    return [_round_row_to_dict(row) for row in rows]


def _insert_event_in_conn(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    application_id: str,
    from_status: str | None,
    to_status: str | None,
    reason: str,
    note: str = "",
) -> dict[str, Any]:
    conn.execute(
        """
        INSERT INTO application_events (user_id, application_id, from_status, to_status, reason, note, created_at_utc)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (user_id, application_id, from_status, to_status, reason, note, _utcnow_iso()),
    )
    row = conn.execute(
        """
        SELECT id, user_id, application_id, from_status, to_status, reason, note, created_at_utc
        FROM application_events
        WHERE rowid = last_insert_rowid()
        """
    ).fetchone()
    return _row_to_dict(row) or {}


def _insert_application_in_conn(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    company: str,
    role: str,
    status: str = "applied",
    application_date_utc: str | None = None,
    interview_date_utc: str | None = None,
    current_round: str | None = None,
    notes: str = "",
    application_id: str = "",
    created_at_utc: str = "",
    reason: str = "add_application",
) -> dict[str, Any]:
    clean_company = company.strip()
    if not clean_company:
        raise ValueError("company is required")
    clean_status = _validate_status(status)
    now_utc = _utcnow_iso()
    app_id = application_id.strip() or _new_application_id()

    conn.execute(
        """
        INSERT INTO applications (
          id, user_id, company, role, status, application_date_utc, interview_date_utc,
          current_round, notes, created_at_utc, updated_at_utc
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            app_id,
            user_id,
            clean_company,
            role.strip(),
            clean_status,
            application_date_utc or now_utc,
            interview_date_utc,
            current_round,
            notes.strip(),
            created_at_utc or now_utc,
            now_utc,
        ),
    )
    _insert_event_in_conn(
        conn,
        user_id=user_id,
        application_id=app_id,
        from_status=None,
        to_status=clean_status,
        reason=reason,
        note=notes.strip(),
    )
    return _get_application_in_conn(conn, user_id, app_id) or {}


def _set_application_status_in_conn(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    application_id: str,
    status: str,
    reason: str = "status_update",
    note: str = "",
) -> tuple[dict[str, Any], dict[str, Any]]:
    existing = _require_application_in_conn(conn, user_id, application_id)
    clean_status = _validate_status(status)
    conn.execute(
        "UPDATE applications SET status = ?, updated_at_utc = ? WHERE user_id = ? AND id = ?",
        (clean_status, _utcnow_iso(), user_id, existing["id"]),
    )
    event = _insert_event_in_conn(
        conn,
        user_id=user_id,
        application_id=existing["id"],
        from_status=existing["status"],
        to_status=clean_status,
        reason=reason,
        note=note.strip(),
    )
    return _get_application_in_conn(conn, user_id, existing["id"]) or {}, event


def _update_application_fields_in_conn(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    application_id: str,
    data: dict[str, Any],
    reason: str,
) -> dict[str, Any]:
    existing = _require_application_in_conn(conn, user_id, application_id)
    status = _validate_status(str(data.get("status") or existing["status"]))
    interview_date = data.get("interview_date") or existing["interview_date_utc"]
    current_round = data.get("current_round") or existing["current_round"]
    role = str(data.get("role") or "").strip() or existing["role"]

    conn.execute(
        """
        UPDATE applications
        SET status = ?, interview_date_utc = ?, current_round = ?, role = ?, updated_at_utc = ?
        WHERE user_id = ? AND id = ?
        """,
        (status, interview_date, current_round, role, _utcnow_iso(), user_id, existing["id"]),
    )
    _insert_event_in_conn(
        conn,
        user_id=user_id,
        application_id=existing["id"],
        from_status=existing["status"],
        to_status=status,
        reason=reason,
        note=str(current_round or ""),
    )
    return _get_application_in_conn(conn, user_id, existing["id"]) or {}


def _append_application_note_in_conn(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    application_id: str,
    note: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    clean_note = note.strip()
    if not clean_note:
        raise ValueError("note is required")
    existing = _require_application_in_conn(conn, user_id, application_id)
    merged = merge_text(existing["notes"], clean_note) or ""
    conn.execute(
        "UPDATE applications SET notes = ?, updated_at_utc = ? WHERE user_id = ? AND id = ?",
        (merged, _utcnow_iso(), user_id, existing["id"]),
    )
    event = _insert_event_in_conn(
        conn,
        user_id=user_id,
        application_id=existing["id"],
        from_status=existing["status"],
        to_status=existing["status"],
        reason="note_added",
        note=clean_note,
    )
    return _get_application_in_conn(conn, user_id, existing["id"]) or {}, event


def _insert_round_in_conn(
    conn: sqlite3.Connection,
    *,
    application_id: str,
    round_number: int,
    round_type: str,
    scheduled_date: str | None,
    notes: str = "",
    questions_asked: list[str] | None = None,
) -> dict[str, Any]:
    if int(round_number) < 1:
        raise ValueError("round_number must be a positive integer")
    now_utc = _utcnow_iso()
    # UNIQUE(application_id, round_number) rejects duplicates with IntegrityError.
    conn.execute(
        """
        INSERT INTO interview_rounds (
          application_id, round_number, round_type, scheduled_date_utc, notes,
          questions_asked, created_at_utc, updated_at_utc
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            application_id,
            int(round_number),
            round_type,
            scheduled_date,
            notes,
            json.dumps(list(questions_asked or [])),
            now_utc,
            now_utc,
        ),
    )
    row = conn.execute(
        f"SELECT {ROUND_COLUMNS} FROM interview_rounds WHERE application_id = ? AND round_number = ?",
        (application_id, int(round_number)),
    ).fetchone()
    return _round_row_to_dict(row)


def _update_round_in_conn(
    conn: sqlite3.Connection,
    *,
    application_id: str,
    round_number: int,
    round_type: str,
    scheduled_date: str | None,
    notes: str,
) -> dict[str, Any]:
    cursor = conn.execute(
        """
        UPDATE interview_rounds
        SET round_type = ?, scheduled_date_utc = ?, notes = ?, updated_at_utc = ?
        WHERE application_id = ? AND round_number = ?
        """,
        (round_type, scheduled_date, notes, _utcnow_iso(), application_id, int(round_number)),
    )
    if cursor.rowcount == 0:
        raise ValueError(f"round {int(round_number)} not found for application_id='{application_id}'")
    row = conn.execute(
        f"SELECT {ROUND_COLUMNS} FROM interview_rounds WHERE application_id = ? AND round_number = ?",
        (application_id, int(round_number)),
    ).fetchone()
    return _round_row_to_dict(row)


def _pipeline_summary_in_conn(
    conn: sqlite3.Connection,
    user_id: str,
    window_days: int = DEFAULT_UPCOMING_WINDOW_DAYS,
) -> dict[str, Any]:
    """Counts by status, rounds scheduled within ``window_days`` and the last ten events."""
    today_iso, cutoff_iso = _upcoming_cutoff_iso(window_days)

    status_counts = {status: 0 for status in APPLICATION_STATUSES}
    rows = conn.execute(
        """
        SELECT status, COUNT(*) AS count
        FROM applications
        WHERE user_id = ?
        GROUP BY status
        """,
        (user_id,),
    ).fetchall()
    for row in rows:
        key = str(row["status"]).strip().lower()
        if key in status_counts:
            status_counts[key] = int(row["count"])

    upcoming_rows = conn.execute(
        """
        SELECT
          r.application_id,
          a.company,
          a.role,
          r.round_number,
          r.round_type,
          r.scheduled_date_utc
        FROM interview_rounds r
        JOIN applications a ON a.id = r.application_id
        WHERE a.user_id = ? AND r.scheduled_date_utc >= ? AND r.scheduled_date_utc <= ?
        ORDER BY r.scheduled_date_utc, a.company, r.round_number
        """,
        (user_id, today_iso, cutoff_iso),
    ).fetchall()

    recent_rows = conn.execute(
        """
        SELECT
          e.id AS event_id,
          e.application_id,
          a.company,
          e.from_status,
          e.to_status,
          e.reason,
          e.created_at_utc
        FROM application_events e
        JOIN applications a ON a.id = e.application_id AND a.user_id = e.user_id
        WHERE e.user_id = ?
        ORDER BY e.created_at_utc DESC, e.id DESC
        LIMIT 10
        """,
        (user_id,),
    ).fetchall()

    return {
        "status_counts": status_counts,
        "total_applications": sum(status_counts.values()),
        "upcoming_window_days": int(window_days),
        "upcoming_interviews": [_row_to_dict(row) for row in upcoming_rows],
        "recent_events": [_row_to_dict(row) for row in recent_rows],
    }


def _application_snapshot_in_conn(
    conn: sqlite3.Connection,
    user_id: str,
    application_id: str,
) -> dict[str, Any]:
    snapshot = _require_application_in_conn(conn, user_id, application_id)
    snapshot["rounds"] = _list_rounds_in_conn(conn, snapshot["id"])
    return snapshot


def _load_round_upsert_applications(user_id: str) -> list[ApplicationForRoundUpsert]:
    with _db_conn() as conn:
        out: list[ApplicationForRoundUpsert] = []
        for app in _list_applications_in_conn(conn, user_id):
            rounds = [
                InterviewRoundLite(
                    round_number=int(r["round_number"]),
                    round_type=str(r["round_type"]),
                    notes=str(r["notes"] or ""),
                )
                for r in _list_rounds_in_conn(conn, app["id"])
            ]
            out.append(
                ApplicationForRoundUpsert(
                    id=str(app["id"]),
                    company=str(app["company"]),
                    role=str(app["role"] or ""),
                    status=str(app["status"]),
                    rounds=rounds,
                )
            )
    return out


class SqliteRoundStore:
    """Binds the round upsert engine to one user's applications in the local database.

    ``get_applications`` serves a cached snapshot; every mutation reloads it so
    later updates in the same batch see rounds created earlier. The async
    methods run their sqlite work in a worker thread via ``asyncio.to_thread``
    so a batch does not block the server's event loop.
    """

    def __init__(self, user_id: str, reason: str = "upsert_interview_rounds") -> None:
        self.user_id = user_id
        self.reason = reason
        self.snapshot: list[ApplicationForRoundUpsert] = []
        self.reload()

    def reload(self) -> None:
        _ensure_store_ready()
        self.snapshot = _load_round_upsert_applications(self.user_id)

    def get_applications(self) -> list[ApplicationForRoundUpsert]:
        return self.snapshot

    async def refresh_applications(self) -> None:
        await asyncio.to_thread(self.reload)

    def _create_round_sync(self, application_id: str, data: dict[str, Any]) -> None:
        with _db_conn() as conn:
            _require_application_in_conn(conn, self.user_id, application_id)
            _insert_round_in_conn(
                conn,
                application_id=application_id,
                round_number=int(data["round_number"]),
                round_type=str(data["round_type"]),
                scheduled_date=data.get("scheduled_date"),
                notes=str(data.get("notes") or ""),
                questions_asked=list(data.get("questions_asked") or []),
            )
        self.reload()

    def _update_round_sync(self, application_id: str, round_number: int, data: dict[str, Any]) -> None:
        with _db_conn() as conn:
            _require_application_in_conn(conn, self.user_id, application_id)
            _update_round_in_conn(
                conn,
                application_id=application_id,
                round_number=round_number,
                round_type=str(data["round_type"]),
                scheduled_date=data.get("scheduled_date"),
                notes=str(data.get("notes") or ""),
            )
        self.reload()

    def _update_application_sync(self, application_id: str, data: dict[str, Any]) -> None:
        with _db_conn() as conn:
            _update_application_fields_in_conn(
                conn,
                user_id=self.user_id,
                application_id=application_id,
                data=data,
                reason=self.reason,
            )
        self.reload()

    async def create_round(self, application_id: str, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._create_round_sync, application_id, data)

    async def update_round(self, application_id: str, round_number: int, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._update_round_sync, application_id, round_number, data)

    async def update_application(self, application_id: str, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._update_application_sync, application_id, data)

    def deps(self) -> RoundUpsertDeps:
        return RoundUpsertDeps(
            get_applications=self.get_applications,
            refresh_applications=self.refresh_applications,
            create_round=self.create_round,
            update_round=self.update_round,
            update_application=self.update_application,
        )
