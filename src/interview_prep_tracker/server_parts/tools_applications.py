from __future__ import annotations

from .base import *  # noqa: F401,F403
from interview_prep_tracker.application_intake import roles_equivalent
from interview_prep_tracker.date_parsing import try_parse_date_input
from interview_prep_tracker.tool_inputs import (
    count_payload_items,
    normalize_new_applications_input,
    normalize_status_updates_input,
)


def _find_application_by_company(
    applications: list[dict[str, Any]],
    company: str,
) -> dict[str, Any] | None:
    key = sanitize_company_name(company).lower()
    if not key:
        return None
    return next(
        (app for app in applications if sanitize_company_name(app["company"]).lower() == key),
        None,
    )


@mcp.tool()
def add_applications(user_id: str, applications: Any) -> dict[str, Any]:
    """Track new job applications.

    Accepts a list of ``{company, role?, status?, notes?, application_date?}``
    objects or free-text strings such as "Google - SDE2 - notes: referral"
    or "applied to Stripe, Notion for the backend role". Entries without a
    usable company are skipped; an entry matching an existing company with an
    equivalent role is reported as a duplicate instead of being inserted twice.
    """
    uid = _require_user_id(user_id)
    entries = normalize_new_applications_input(applications)
    _ensure_store_ready()

    added: list[dict[str, Any]] = []
    duplicates: list[str] = []
    with _db_conn() as conn:
        existing = _list_applications_in_conn(conn, uid)
        for entry in entries:
            role = normalize_role_text(entry.get("role")) or DEFAULT_ROLE
            duplicate = next(
                (
                    app
                    for app in existing
                    if sanitize_company_name(app["company"]).lower() == entry["company"].lower()
                    and roles_equivalent(app["role"], role)
                ),
                None,
            )
            if duplicate:
                duplicates.append(duplicate["id"])
                continue

            application_date = None
            if entry.get("application_date"):
                parsed = try_parse_date_input(entry["application_date"])
                application_date = parsed.isoformat() if parsed else None

            created = _insert_application_in_conn(
                conn,
                user_id=uid,
                company=entry["company"],
                role=role,
                status=entry["status"],
                application_date_utc=application_date,
                notes=entry.get("notes", ""),
            )
            existing.append(created)
            added.append(created)

    logger.info("Added %d applications for user_id=%s", len(added), uid)
    return {
        "user_id": uid,
        "added": added,
        "count": len(added),
        "duplicate_application_ids": duplicates,
        "skipped_invalid": max(count_payload_items(applications) - len(entries), 0),
        "db_path": _db_path(),
    }


@mcp.tool()
def list_applications(
    user_id: str,
    status: str = "",
    limit: int = 50,
    offset: int = 0,
) -> dict[str, Any]:
    """List tracked applications, optionally filtered by status, with their rounds."""
    uid = _require_user_id(user_id)
    clean_status = _validate_status(status) if status.strip() else ""
    safe_limit, safe_offset = _page_bounds(limit, offset)
    _ensure_store_ready()

    with _db_conn() as conn:
        matching = _list_applications_in_conn(conn, uid, clean_status)
        page = matching[safe_offset : safe_offset + safe_limit]
        for app in page:
            app["rounds"] = _list_rounds_in_conn(conn, app["id"])

    return {
        "user_id": uid,
        "status": clean_status or None,
        "offset": safe_offset,
        "limit": safe_limit,
        "total_applications": len(matching),
        "returned_applications": len(page),
        "applications": page,
        "db_path": _db_path(),
    }


@mcp.tool()
def update_application_status(user_id: str, updates: Any) -> dict[str, Any]:
    """Move applications to a new status.

    Each update names an ``application_id`` or a company (first match wins)
    and a loosely spelled status such as "Rejected", "got an offer" or
    "Acme: shortlisted".
    """
    uid = _require_user_id(user_id)
    entries = normalize_status_updates_input(updates)
    _ensure_store_ready()

    updated: list[str] = []
    failed: list[str] = []
    events: list[dict[str, Any]] = []
    with _db_conn() as conn:
        applications = _list_applications_in_conn(conn, uid)
        for entry in entries:
            target = None
            if entry.get("application_id"):
                target = next((app for app in applications if app["id"] == entry["application_id"]), None)
            elif entry.get("company"):
                target = _find_application_by_company(applications, entry["company"])
            if target is None:
                failed.append(entry.get("application_id") or entry.get("company") or "unknown")
                continue
            application, event = _set_application_status_in_conn(
                conn,
                user_id=uid,
                application_id=target["id"],
                status=entry["new_status"],
                reason="update_application_status",
            )
            target.update(application)
            events.append(event)
            updated.append(f"{application['company']} -> {application['status']}")

    return {
        "user_id": uid,
        "updated": updated,
        "failed": failed,
        "count": len(updated),
        "events": events,
        "db_path": _db_path(),
    }


@mcp.tool()
def add_application_note(user_id: str, application_id: str, note: str) -> dict[str, Any]:
    """Append a note to an application, skipping text it already contains."""
    uid = _require_user_id(user_id)
    if not application_id.strip():
        raise ValueError("application_id is required")
    if not note.strip():
        raise ValueError("note is required")
    _ensure_store_ready()

    with _db_conn() as conn:
        _, event = _append_application_note_in_conn(
            conn,
            user_id=uid,
            application_id=application_id,
            note=note,
        )
        snapshot = _application_snapshot_in_conn(conn, uid, application_id)

    return {
        "user_id": uid,
        "application": snapshot,
        "event": event,
        "db_path": _db_path(),
    }


@mcp.tool()
def list_recent_application_events(
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> dict[str, Any]:
    """List recent status transitions, notes and round scheduling events for a user."""
    uid = _require_user_id(user_id)
    safe_limit, safe_offset = _page_bounds(limit, offset)
    _ensure_store_ready()

    with _db_conn() as conn:
        rows = conn.execute(
            """
            SELECT
              e.id AS event_id,
              e.user_id,
              e.application_id,
              a.company,
              a.role,
              e.from_status,
              e.to_status,
              e.reason,
              e.note,
              e.created_at_utc
            FROM application_events e
            JOIN applications a ON a.id = e.application_id AND a.user_id = e.user_id
            WHERE e.user_id = ?
            ORDER BY e.created_at_utc DESC, e.id DESC
            LIMIT ? OFFSET ?
            """,
            (uid, safe_limit, safe_offset),
        ).fetchall()
        total = conn.execute(
            "SELECT COUNT(*) AS count FROM application_events WHERE user_id = ?",
            (uid,),
        ).fetchone()

    return {
        "user_id": uid,
        "offset": safe_offset,
        "limit": safe_limit,
        "total_events": int(total["count"]) if total else 0,
        "returned_events": len(rows),
        "events": [_row_to_dict(row) for row in rows],
        "db_path": _db_path(),
    }


@mcp.tool()
def get_pipeline_summary(user_id: str) -> dict[str, Any]:
    """Return counts by status, upcoming interview rounds and recent events."""
    uid = _require_user_id(user_id)
    _ensure_store_ready()

    with _db_conn() as conn:
        summary = _pipeline_summary_in_conn(conn, uid, DEFAULT_UPCOMING_WINDOW_DAYS)

    return {
        "user_id": uid,
        **summary,
        "db_path": _db_path(),
    }
