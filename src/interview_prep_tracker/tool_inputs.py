from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

from interview_prep_tracker.application_intake import (
    APPLICATION_STATUSES,
    normalize_applications_for_creation,
    sanitize_company_name,
)
from interview_prep_tracker.round_upsert import INTERVIEW_ROUND_TYPES

APPLICATION_ID_KEYS = ["applicationId", "application_id", "appId", "appID", "id"]
COMPANY_KEYS = ["company", "companyName", "company_name", "name", "employer"]
ROLE_KEYS = ["role", "position", "jobRole", "title"]
ROUND_TYPE_KEYS = ["roundType", "round_type", "type", "round", "interviewRound"]
ROUND_NUMBER_KEYS = ["roundNumber", "round_number", "roundNo", "round", "round_num"]
DATE_KEYS = [
    "scheduledDate",
    "scheduled_date",
    "date",
    "interviewDate",
    "interview_date",
    "scheduled_on",
    "scheduledOn",
]
NOTES_KEYS = ["notes", "note", "comment", "remarks"]
STATUS_KEYS = ["newStatus", "new_status", "status", "state"]

# Order matters: "technical round 1" must not fall through to "round 1".
_ROUND_TYPE_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("tech1", "technical1", "round1"), "TechnicalRound1"),
    (("tech2", "technical2", "round2"), "TechnicalRound2"),
    (("systemdesign", "sysdesign"), "SystemDesign"),
    (("manager",), "Managerial"),
    (("assignment", "takehome"), "Assignment"),
    (("final",), "Final"),
]
_ROUND_NUMBER_DEFAULTS = {
    1: "TechnicalRound1",
    2: "TechnicalRound2",
    3: "SystemDesign",
    4: "Managerial",
}


def _get_string_field(obj: dict[str, Any], keys: list[str]) -> str | None:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, (int, float)) and math.isfinite(value):
            return str(value)
    return None


def _unwrap_updates(payload: Any, *, allow_string: bool = False) -> list[Any]:
    if isinstance(payload, list):
        return list(payload)
    if allow_string and isinstance(payload, str):
        return [payload]
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get("updates"), list):
        return list(payload["updates"])
    if isinstance(payload.get("update"), list):
        return list(payload["update"])
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("updates"), list):
        return list(data["updates"])
    return [payload]


def normalize_status(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    normalized = raw.strip().lower()
    if not normalized:
        return None
    if normalized in APPLICATION_STATUSES:
        return normalized
    if "reject" in normalized:
        return "rejected"
    if "short" in normalized:
        return "shortlisted"
    if "interview" in normalized or "screen" in normalized:
        return "interview"
    if "offer" in normalized:
        return "offer"
    if "appl" in normalized:
        return "applied"
    return None


def _normalize_status_update(raw: Any) -> dict[str, Any] | None:
    if isinstance(raw, str):
        parts = re.split(r"[:|]", raw)
        if len(parts) < 2:
            return None
        company = sanitize_company_name(parts[0])
        if not company:
            return None
        return {"company": company, "new_status": normalize_status(parts[1]) or "applied"}

    if not isinstance(raw, dict):
        return None

    application_id = _get_string_field(raw, APPLICATION_ID_KEYS)
    company_raw = _get_string_field(raw, COMPANY_KEYS)
    company = sanitize_company_name(company_raw) if company_raw else ""
    new_status = normalize_status(_get_string_field(raw, STATUS_KEYS)) or "applied"

    if not application_id and not company:
        return None
    out: dict[str, Any] = {"new_status": new_status}
    if application_id:
        out["application_id"] = application_id
    if company:
        out["company"] = company
    return out


def normalize_status_updates_input(payload: Any) -> list[dict[str, Any]]:
    """Coerce a loose status-update payload into ``{application_id?, company?, new_status}`` dicts."""
    entries = (_normalize_status_update(item) for item in _unwrap_updates(payload, allow_string=True))
    return [entry for entry in entries if entry]


def normalize_round_type(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    normalized = raw.strip()
    if not normalized:
        return None
    if normalized in INTERVIEW_ROUND_TYPES:
        return normalized

    compact = re.sub(r"[\s_-]+", "", normalized.lower())
    for hints, tag in _ROUND_TYPE_HINTS:
        if any(hint in compact for hint in hints):
            return tag
    if compact == "hr" or "humanresources" in compact:
        return "HR"
    return None


def normalize_round_number(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or raw <= 0:
            return None
        return math.floor(raw) or None
    if not isinstance(raw, str):
        return None
    match = re.search(r"(\d+)", raw)
    if not match:
        return None
    parsed = int(match.group(1))
    return parsed if parsed > 0 else None


def infer_round_type_from_number(round_number: int | None) -> str | None:
    if not round_number:
        return None
    return _ROUND_NUMBER_DEFAULTS.get(round_number, "Final")


def _normalize_date_field(raw: Any) -> str | None:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    return None


def _normalize_round_update(raw: Any) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None

    scheduled_date = None
    for key in DATE_KEYS:
        scheduled_date = _normalize_date_field(raw.get(key))
        if scheduled_date:
            break
    if not scheduled_date:
        return None

    application_id = _get_string_field(raw, APPLICATION_ID_KEYS)
    company_raw = _get_string_field(raw, COMPANY_KEYS)
    company = sanitize_company_name(company_raw) if company_raw else ""
    role = _get_string_field(raw, ROLE_KEYS)
    round_number = normalize_round_number(_get_string_field(raw, ROUND_NUMBER_KEYS))
    round_type = normalize_round_type(_get_string_field(raw, ROUND_TYPE_KEYS))
    round_type = round_type or infer_round_type_from_number(round_number)
    notes = _get_string_field(raw, NOTES_KEYS)

    out: dict[str, Any] = {"scheduled_date": scheduled_date}
    if application_id:
        out["application_id"] = application_id
    if company:
        out["company"] = company
    if role:
        out["role"] = role
    if round_type:
        out["round_type"] = round_type
    if round_number:
        out["round_number"] = round_number
    if notes:
        out["notes"] = notes
    return out


def normalize_round_updates_input(payload: Any) -> list[dict[str, Any]]:
    """Coerce a loose LLM tool payload into round update dicts.

    Accepts a list, a single object, or ``updates``/``update``/``data.updates``
    wrappers, and tolerates common key aliases (``companyName``, ``round``,
    ``date``, ``scheduled_on``...). Entries without any date are dropped.
    """
    entries = (_normalize_round_update(item) for item in _unwrap_updates(payload))
    return [entry for entry in entries if entry]


APPLICATION_DATE_KEYS = ["applicationDate", "application_date", "appliedOn", "applied_on", "appliedDate"]


def _coerce_new_application(raw: Any) -> dict[str, Any] | None:
    if isinstance(raw, str):
        return {"company": raw, "status": "applied"} if raw.strip() else None
    if not isinstance(raw, dict):
        return None

    out: dict[str, Any] = {
        "company": _get_string_field(raw, COMPANY_KEYS) or "",
        "status": normalize_status(_get_string_field(raw, STATUS_KEYS)) or "applied",
    }
    role = _get_string_field(raw, ROLE_KEYS)
    if role:
        out["role"] = role
    notes = _get_string_field(raw, NOTES_KEYS)
    if notes:
        out["notes"] = notes
    for key in APPLICATION_DATE_KEYS:
        application_date = _normalize_date_field(raw.get(key))
        if application_date:
            out["application_date"] = application_date
            break
    return out


def normalize_new_applications_input(payload: Any) -> list[dict[str, Any]]:
    """Coerce new-application payloads into ``{company, status, role?, notes?, application_date?}`` dicts.

    Bare strings and company fields may carry free text such as
    ``"Google - SDE2 - notes: referral"`` or ``"applied to Stripe, Notion
    for the backend engineer role"``; see
    ``normalize_applications_for_creation``. One input entry can therefore
    yield several results.
    """
    if isinstance(payload, dict) and isinstance(payload.get("applications"), list):
        payload = payload["applications"]
    coerced = (_coerce_new_application(item) for item in _unwrap_updates(payload, allow_string=True))
    return normalize_applications_for_creation([entry for entry in coerced if entry])


def count_payload_items(payload: Any) -> int:
    if isinstance(payload, dict) and isinstance(payload.get("applications"), list):
        return len(payload["applications"])
    return len(_unwrap_updates(payload, allow_string=True))
