from __future__ import annotations

from .base import *  # noqa: F401,F403
from interview_prep_tracker import __version__ as PACKAGE_VERSION
from interview_prep_tracker.round_upsert import INTERVIEW_ROUND_TYPES
from interview_prep_tracker.schemas import SNAPSHOT_VERSION


TOOL_DESCRIPTIONS: dict[str, str] = {
    "add_applications": "Track one or more job applications (company, role, status).",
    "list_applications": "List tracked applications with their interview rounds.",
    "update_application_status": "Move applications to a new status by id or company name.",
    "upsert_interview_rounds": "Schedule or reschedule interview rounds from loosely specified updates.",
    "list_interview_rounds": "List interview rounds for one application in round order.",
    "add_application_note": "Append a note to an application without duplicating known text.",
    "list_recent_application_events": "List recent status transitions and round scheduling events.",
    "get_pipeline_summary": "Summarize counts by status and upcoming interviews for one user.",
    "export_user_data": "Export all local records for a user as a versioned snapshot.",
    "import_user_data": "Restore a previously exported snapshot for a user.",
    "delete_user_data": "Permanently delete all local records for a user.",
}


def tool_contract_entry(
    *,
    name: str,
    required_inputs: list[str],
    optional_inputs: list[str] | None = None,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "name": name,
        "description": TOOL_DESCRIPTIONS.get(name, ""),
        "required_inputs": required_inputs,
    }
    if optional_inputs:
        entry["optional_inputs"] = optional_inputs
    return entry


@mcp.tool()
def get_mcp_capabilities() -> dict[str, Any]:
    """Return machine-readable MCP capability metadata for agents."""
    return {
        "server": "interview-prep-tracker",
        "version": PACKAGE_VERSION,
        "capabilities_schema_version": CAPABILITIES_SCHEMA_VERSION,
        "design_decisions": {
            "llm_runtime_inside_mcp": False,
            "agent_is_reasoning_layer": True,
            "local_sqlite_persistence": True,
            "loose_round_updates_accepted": True,
            "batch_failures_are_per_update": True,
        },
        "application_statuses": list(APPLICATION_STATUSES),
        "interview_round_types": list(INTERVIEW_ROUND_TYPES),
        "snapshot_version": SNAPSHOT_VERSION,
        "defaults": {
            "db_path": _db_path(),
            "default_role": DEFAULT_ROLE,
            "max_page_size": int(DEFAULT_MAX_PAGE_SIZE),
            "upcoming_window_days": int(DEFAULT_UPCOMING_WINDOW_DAYS),
            "unparseable_date_fallback": "rejected",
        },
        "tools": [
            tool_contract_entry(name="add_applications", required_inputs=["user_id", "applications"]),
            tool_contract_entry(
                name="list_applications",
                required_inputs=["user_id"],
                optional_inputs=["status", "limit", "offset"],
            ),
            tool_contract_entry(name="update_application_status", required_inputs=["user_id", "updates"]),
            tool_contract_entry(name="upsert_interview_rounds", required_inputs=["user_id", "updates"]),
            tool_contract_entry(name="list_interview_rounds", required_inputs=["user_id", "application_id"]),
            tool_contract_entry(
                name="add_application_note",
                required_inputs=["user_id", "application_id", "note"],
            ),
            tool_contract_entry(
                name="list_recent_application_events",
                required_inputs=["user_id"],
                optional_inputs=["limit", "offset"],
            ),
            tool_contract_entry(name="get_pipeline_summary", required_inputs=["user_id"]),
            tool_contract_entry(name="export_user_data", required_inputs=["user_id"]),
            tool_contract_entry(
                name="import_user_data",
                required_inputs=["user_id", "snapshot"],
                optional_inputs=["replace"],
            ),
            tool_contract_entry(name="delete_user_data", required_inputs=["user_id", "confirm"]),
        ],
        "round_update_contract": {
            "date_field": "scheduled_date accepts ISO dates, today/tomorrow, 'in N days', weekdays and free text",
            "targeting": "application_id, else company (+ role), else role, else the previous update's application",
            "round_selection": "round_number, else an existing round of the same type, else the next number",
            "notes": "merged into existing round notes without duplicating text",
        },
    }
