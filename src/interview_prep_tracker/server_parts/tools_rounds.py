from __future__ import annotations

from .base import *  # noqa: F401,F403
from interview_prep_tracker.round_upsert import InterviewRoundUpdate, upsert_interview_rounds_batch
from interview_prep_tracker.tool_inputs import count_payload_items, normalize_round_updates_input


@mcp.tool()
async def upsert_interview_rounds(user_id: str, updates: Any) -> dict[str, Any]:
    """Schedule or reschedule interview rounds from loosely specified updates.

    Each update needs a date ("2026-03-02", "tomorrow", "in 3 days", "next
    friday", "14th feb"...) and may name an application id, a company, a
    role, a round number, a round type and notes. Updates apply in order,
    and one naming neither company nor role targets the application resolved
    by the update before it.
    """
    uid = _require_user_id(user_id)
    entries = normalize_round_updates_input(updates)
    store = SqliteRoundStore(uid)

    result = await upsert_interview_rounds_batch(
        [InterviewRoundUpdate(**entry) for entry in entries],
        store.deps(),
    )
    logger.info(
        "Round upsert for user_id=%s: %d updated, %d failed",
        uid,
        len(result.updated),
        len(result.failed),
    )
    return {
        "user_id": uid,
        **result.to_dict(),
        "skipped_invalid": max(count_payload_items(updates) - len(entries), 0),
        "db_path": _db_path(),
    }


@mcp.tool()
def list_interview_rounds(user_id: str, application_id: str) -> dict[str, Any]:
    """List interview rounds for one application in round order."""
    uid = _require_user_id(user_id)
    if not application_id.strip():
        raise ValueError("application_id is required")
    _ensure_store_ready()

    with _db_conn() as conn:
        snapshot = _application_snapshot_in_conn(conn, uid, application_id)

    rounds = snapshot.pop("rounds")
    return {
        "user_id": uid,
        "application": snapshot,
        "rounds": rounds,
        "total_rounds": len(rounds),
        "db_path": _db_path(),
    }
