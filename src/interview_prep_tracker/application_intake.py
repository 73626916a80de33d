from __future__ import annotations

import re
from typing import Any

from interview_prep_tracker.date_parsing import try_parse_date_input

APPLICATION_STATUSES = ("applied", "shortlisted", "interview", "offer", "rejected")

GENERIC_ROLE_KEYS = {
    "software engineer",
    "software developer",
    "developer",
    "engineer",
    "sde",
    "swe",
}

LOWERCASE_CONNECTORS = {"of", "and", "for", "to"}
UPPERCASE_TOKENS = {"ml", "ai", "sde", "sdet", "ui", "ux", "qa"}

_STATUS_SUFFIX_RE = re.compile(
    r"\s*(applied|shortlisted|interview|offer|rejected|status)\s*$",
    re.IGNORECASE,
)
_NOTES_SUFFIX_RE = re.compile(r"\s+-\s*notes?\s*:.*$", re.IGNORECASE)
_LEVEL_TOKEN_RE = re.compile(r"^(sde|swe|l|e|ic)\d+$")


def _normalize_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _normalize_separator_dashes(value: str) -> str:
    return value.replace("–", "-").replace("—", "-")


def sanitize_company_name(name: str | None) -> str:
    """Clean a company name typed into free text.

    Drops everything after a pipe, a trailing ``- notes: ...`` segment, any
    extra `` - ``-delimited segments and a trailing status word.
    """
    if not name:
        return ""

    cleaned = _normalize_separator_dashes(_normalize_whitespace(str(name)))
    cleaned = cleaned.split("|", 1)[0].strip()
    cleaned = _NOTES_SUFFIX_RE.sub("", cleaned)

    segments = [_normalize_whitespace(s) for s in re.split(r"\s+-\s+", cleaned)]
    segments = [s for s in segments if s]
    if len(segments) >= 2:
        cleaned = segments[0]

    cleaned = _STATUS_SUFFIX_RE.sub("", cleaned).strip()
    return _normalize_whitespace(cleaned)


def role_key(role: str) -> str:
    return _normalize_whitespace(re.sub(r"[^a-z0-9]+", " ", role.lower()))


def roles_equivalent(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return role_key(a) == role_key(b)


def is_generic_role(role: str | None) -> bool:
    """True for placeholder roles that are safe to overwrite once the real role is known."""
    if not role:
        return True
    return role_key(role) in GENERIC_ROLE_KEYS


def _display_token(token: str) -> str:
    lower = token.lower()
    compact_level = lower.replace("-", "")
    if _LEVEL_TOKEN_RE.match(compact_level):
        return compact_level.upper()
    if lower == "dev":
        return "Developer"
    if lower == "devops":
        return "DevOps"
    if lower == "ios":
        return "iOS"
    if lower in UPPERCASE_TOKENS:
        return lower.upper()
    return lower[:1].upper() + lower[1:]


def _to_display_role(role: str) -> str:
    words = [w for w in role.split() if w]
    if not words:
        return role
    out: list[str] = []
    for index, word in enumerate(words):
        if index > 0 and word.lower() in LOWERCASE_CONNECTORS:
            out.append(word.lower())
        else:
            out.append(_display_token(word))
    return " ".join(out)


def normalize_role_text(role: str | None) -> str | None:
    if not role:
        return None

    cleaned = _normalize_whitespace(str(role))
    cleaned = re.sub(r"^[`\"'(\[{]+", "", cleaned)
    cleaned = re.sub(r"[`\"')\]}]+$", "", cleaned)
    cleaned = re.sub(r"^role\s+of\s+", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(
        r"^(?:for|as)\s+(?:an?\s+|the\s+)?(?:role\s+of\s+)?",
        "",
        cleaned,
        flags=re.IGNORECASE,
    )
    cleaned = re.sub(r"\s+(?:role|position)$", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\bdev\b", "developer", cleaned, flags=re.IGNORECASE)
    cleaned = _normalize_whitespace(cleaned)

    if not cleaned:
        return None
    return _to_display_role(cleaned)


def merge_text(existing: str | None, incoming: str | None) -> str | None:
    """Merge two free-text fragments without duplicating either one."""
    current = (existing or "").strip()
    nxt = (incoming or "").strip()

    if not nxt:
        return current or None
    if not current:
        return nxt

    if nxt.lower() in current.lower():
        return current
    if current.lower() in nxt.lower():
        return nxt
    return f"{current}. {nxt}"


# Free-text intake: agents often pack role, notes and dates into the company
# string ("Google - SDE2 - notes: referral", "applied to Stripe, Notion for
# the backend role"). The helpers below pull those fields back out.

ROLE_KEYWORD_RE = re.compile(
    r"\b(ml|machine learning|ai|data|software|sde|sde\d+|swe|swe\d+|sdet|developer|dev|engineer"
    r"|scientist|manager|architect|analyst|devops|frontend|backend|full stack|mobile|intern"
    r"|l\d+|e\d+|ic\d+)\b",
    re.IGNORECASE,
)
NON_COMPANY_WORD_RE = re.compile(
    r"\b(put|down|applied|apply|position|role|resume|notes?|just|sent|submitted|for|at|in|my|i|to)\b",
    re.IGNORECASE,
)

_WEEKDAYS = "sunday|monday|tuesday|wednesday|thursday|friday|saturday"
_ROLE_THEN_COMPANY_RES = (
    re.compile(r"for\s+(?:an?\s+|the\s+)?(.+?)\s+(?:position|role)\s+(?:at|in)\s+([^,.;]+)(.*)$", re.IGNORECASE),
    re.compile(r"as\s+(?:an?\s+|the\s+)?(.+?)\s+(?:position|role)\s+(?:at|in)\s+([^,.;]+)(.*)$", re.IGNORECASE),
)
_COMPANY_THEN_ROLE_RE = re.compile(
    r"(?:at|in)\s+([^,.;]+?)\s+(?:for|as)\s+(?:an?\s+|the\s+)?(.+?)\s+(?:position|role)(.*)$",
    re.IGNORECASE,
)
_ADD_APPLICATION_RE = re.compile(
    r"\badd\s+(?:an?\s+)?application\s+for\s+([^,.;]+)(?:,\s*([^.;]+))?(.*)$",
    re.IGNORECASE,
)
_ROLE_IN_TEXT_RES = (
    re.compile(r"(?:for|as)\s+(?:an?\s+|the\s+)?(?:role\s+of\s+)?([^,;|]+?)\s+(?:role|position)\b", re.IGNORECASE),
    re.compile(r"(?:for|as)\s+(?:an?\s+|the\s+)?([^,;|]+)$", re.IGNORECASE),
    re.compile(r"role\s+of\s+([^,;|]+)$", re.IGNORECASE),
    re.compile(r"-\s*([^,;|]+?)\s+(?:role|position)$", re.IGNORECASE),
)
_STANDALONE_ROLE_RES = (
    re.compile(r"\b((?:sde|swe)\s*-?\s*\d+)\b", re.IGNORECASE),
    re.compile(r"\b((?:l|e|ic)\s*-?\s*\d+)\b", re.IGNORECASE),
    re.compile(
        r"\b((?:frontend|backend|full stack|fullstack|ml|machine learning|data|devops|sdet|software)"
        r"\s+(?:engineer|developer|scientist|manager))\b",
        re.IGNORECASE,
    ),
)
_ROLE_SUFFIX_RES = (
    re.compile(r"^(.*?)\s+(?:for|as)\s+(?:an?\s+|the\s+)?(?:role\s+of\s+)?([^,;|]+?)\s+(?:role|position)\s*$", re.IGNORECASE),
    re.compile(r"^(.*?)\s*-\s*([^,;|]+?)\s+(?:role|position)\s*$", re.IGNORECASE),
    re.compile(r"^(.*?)\s+(?:for|as)\s+(?:an?\s+|the\s+)?(?:role\s+of\s+)?([^,;|]+)\s*$", re.IGNORECASE),
)
_NOTES_IN_TEXT_RE = re.compile(r"notes?\s*:\s*(.+)$", re.IGNORECASE)
_RESUME_NOTE_RE = re.compile(r"\b((?:just\s+)?(?:sent|submitted)\s+(?:my\s+)?resume(?:.*)?)$", re.IGNORECASE)
_APPLY_VERB_RE = re.compile(r"\b(applied|apply|submitted|sent(?:\s+my\s+resume)?)\b", re.IGNORECASE)
_DATE_TOKEN_RE = re.compile(
    rf"\b(yesterday|today|tomorrow|in\s+\d+\s+days?|next\s+(?:{_WEEKDAYS})|(?:{_WEEKDAYS}))\b",
    re.IGNORECASE,
)
_APPLIED_ON_RE = re.compile(
    r"\b(?:applied|apply|submitted|sent(?:\s+my\s+resume)?)\s+on\s+([^,.;!?]+)",
    re.IGNORECASE,
)
_LIST_LEAD_IN_RES = (
    re.compile(
        r"^(?:i\s+)?(?:have\s+)?(?:just\s+)?(?:applied|apply|submitted|sent)(?:\s+my\s+resume)?\s+(?:for|to)\s+",
        re.IGNORECASE,
    ),
    re.compile(r"^put\s+me\s+down\s+for\s+", re.IGNORECASE),
    re.compile(r"^add\s+(?:an?\s+)?application\s+for\s+", re.IGNORECASE),
)
_LIST_ROLE_TAIL_RE = re.compile(
    r"\s+(?:for|as)\s+(?:an?\s+|the\s+)?(?:role\s+of\s+)?[^,.;]+?\s+(?:role|position)\s*$",
    re.IGNORECASE,
)
_COMPANY_SEGMENT_CHARS_RE = re.compile(r"^[a-z0-9.&'/()\- ]+$", re.IGNORECASE)


def _compact(**fields: str | None) -> dict[str, str]:
    return {key: value for key, value in fields.items() if value}


def normalize_notes_text(notes: str | None) -> str | None:
    if not notes:
        return None
    cleaned = _normalize_whitespace(str(notes))
    cleaned = re.sub(r"^notes?\s*:\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"^[-,:;.\s]+", "", cleaned)
    return _normalize_whitespace(cleaned) or None


def looks_like_role_text(value: str) -> bool:
    return ROLE_KEYWORD_RE.search(value) is not None


def split_dash_segments(value: str) -> list[str]:
    segments = re.split(r"\s+-\s+", _normalize_separator_dashes(value))
    return [s for s in (_normalize_whitespace(segment) for segment in segments) if s]


def parse_dash_structured_fields(raw: str) -> dict[str, str]:
    """Split ``Company - Role - notes: ...`` into its fields.

    The first segment is the company. Of the rest, a ``notes:`` segment and
    then any segment that does not read like a role become the notes; the
    first role-like segment becomes the role.
    """
    segments = split_dash_segments(raw)
    if len(segments) < 2:
        return {}

    company, *tail = segments
    role: str | None = None
    notes: str | None = None
    for segment in tail:
        if not notes and re.match(r"^notes?\s*:", segment, re.IGNORECASE):
            notes = normalize_notes_text(segment)
        elif not role and looks_like_role_text(segment):
            role = normalize_role_text(segment)
        elif not notes:
            notes = normalize_notes_text(segment)
    return _compact(company=company, role=role, notes=notes)


def parse_position_sentence(raw: str) -> dict[str, str]:
    """Read "for the X role at Y" and "at Y as a X position" sentences."""
    text = _normalize_whitespace(raw)
    if not text:
        return {}

    for pattern in _ROLE_THEN_COMPANY_RES:
        match = pattern.search(text)
        if match:
            return _compact(
                role=normalize_role_text(match.group(1)),
                company=_normalize_whitespace(match.group(2)),
                notes=normalize_notes_text(match.group(3)),
            )

    match = _COMPANY_THEN_ROLE_RE.search(text)
    if match:
        return _compact(
            company=_normalize_whitespace(match.group(1)),
            role=normalize_role_text(match.group(2)),
            notes=normalize_notes_text(match.group(3)),
        )
    return {}


def parse_add_application_sentence(raw: str) -> dict[str, str]:
    text = _normalize_whitespace(raw)
    match = _ADD_APPLICATION_RE.search(text) if text else None
    if not match:
        return {}
    role = normalize_role_text(match.group(2))
    return _compact(
        company=_normalize_whitespace(match.group(1)),
        role=role if role and looks_like_role_text(role) else None,
        notes=normalize_notes_text(match.group(3)),
    )


def _first_role_match(text: str, patterns: tuple[re.Pattern[str], ...]) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        candidate = normalize_role_text(match.group(1)) if match else None
        if candidate and looks_like_role_text(candidate):
            return candidate
    return None


def extract_role_from_text(value: str | None) -> str | None:
    text = _normalize_whitespace(value or "")
    return _first_role_match(text, _ROLE_IN_TEXT_RES) if text else None


def extract_standalone_role_from_text(value: str | None) -> str | None:
    text = _normalize_whitespace(value or "")
    return _first_role_match(text, _STANDALONE_ROLE_RES) if text else None


def strip_role_suffix_from_company(raw_company: str) -> str:
    text = _normalize_whitespace(raw_company)
    for pattern in _ROLE_SUFFIX_RES:
        match = pattern.match(text)
        if not match:
            continue
        role = normalize_role_text(match.group(2))
        if role and looks_like_role_text(role):
            return _normalize_whitespace(match.group(1))
    return text


def extract_notes_from_text(value: str | None) -> str | None:
    text = _normalize_whitespace(value or "")
    if not text:
        return None
    match = _NOTES_IN_TEXT_RE.search(text) or _RESUME_NOTE_RE.search(text)
    return normalize_notes_text(match.group(1)) if match else None


def extract_application_date_text(value: str | None) -> str | None:
    """Return the date phrase of an "applied yesterday" / "applied on 3rd feb" sentence."""
    text = _normalize_whitespace(value or "")
    if not text or not _APPLY_VERB_RE.search(text):
        return None

    for pattern in (_DATE_TOKEN_RE, _APPLIED_ON_RE):
        match = pattern.search(text)
        if match:
            phrase = _normalize_whitespace(match.group(1))
            if try_parse_date_input(phrase) is not None:
                return phrase
    return None


def _unique_roles(roles: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for role in roles:
        key = role_key(role)
        if key not in seen:
            seen.add(key)
            out.append(role)
    return out


def _is_likely_company_segment(part: str) -> bool:
    cleaned = sanitize_company_name(strip_role_suffix_from_company(part))
    if not cleaned:
        return False
    if NON_COMPANY_WORD_RE.search(cleaned.lower()):
        return False
    if len(cleaned.split()) > 5:
        return False
    return _COMPANY_SEGMENT_CHARS_RE.match(cleaned) is not None


def _company_list_candidate(raw_company: str) -> str:
    candidate = _normalize_whitespace(raw_company)
    for lead_in in _LIST_LEAD_IN_RES:
        candidate = lead_in.sub("", candidate)
    candidate = _LIST_ROLE_TAIL_RE.sub("", candidate)
    return _normalize_whitespace(candidate)


def _split_company_list(raw_company: str) -> list[str]:
    candidate = _company_list_candidate(raw_company)
    if "," not in candidate:
        return []
    parts = [part.strip() for part in candidate.split(",") if part.strip()]
    if len(parts) <= 1 or not all(_is_likely_company_segment(part) for part in parts):
        return []
    return parts


def expand_company_list(apps: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Split a lone "Google, Meta, Stripe" entry into one entry per company.

    Every resulting entry shares the role, notes and application date found
    on the original entry or inside its company text.
    """
    if len(apps) != 1:
        return apps
    single = apps[0]
    raw_company = single.get("company") or ""
    companies = _split_company_list(raw_company)
    if not companies:
        return apps

    shared = {
        "role": normalize_role_text(single.get("role"))
        or extract_role_from_text(raw_company)
        or extract_standalone_role_from_text(raw_company),
        "notes": normalize_notes_text(single.get("notes")) or extract_notes_from_text(raw_company),
        "application_date": single.get("application_date")
        or extract_application_date_text(raw_company)
        or extract_application_date_text(single.get("notes")),
    }
    return [{**single, **shared, "company": company} for company in companies]


def _normalize_intake_entry(app: dict[str, Any]) -> dict[str, Any]:
    raw_company = app.get("company") or ""
    raw_notes = app.get("notes") or ""
    dash_fields = parse_dash_structured_fields(raw_company)
    sentence_fields = parse_position_sentence(raw_company)
    add_fields = parse_add_application_sentence(raw_company)

    company = sanitize_company_name(
        add_fields.get("company")
        or sentence_fields.get("company")
        or dash_fields.get("company")
        or strip_role_suffix_from_company(raw_company)
    )

    role_candidates = [
        role
        for role in (
            normalize_role_text(app.get("role")),
            add_fields.get("role"),
            sentence_fields.get("role"),
            dash_fields.get("role"),
            extract_role_from_text(raw_company),
            extract_standalone_role_from_text(raw_company),
            extract_role_from_text(raw_notes),
            extract_standalone_role_from_text(raw_notes),
        )
        if role
    ]
    role = role_candidates[0] if role_candidates else None
    if role and is_generic_role(role):
        role = next((r for r in role_candidates if not is_generic_role(r)), role)

    notes = normalize_notes_text(app.get("notes"))
    for extra in (
        add_fields.get("notes"),
        sentence_fields.get("notes"),
        dash_fields.get("notes"),
        extract_notes_from_text(raw_company),
    ):
        notes = merge_text(notes, extra)

    application_date = (
        app.get("application_date")
        or extract_application_date_text(raw_company)
        or extract_application_date_text(raw_notes)
    )
    return {**app, "company": company, "role": role, "notes": notes, "application_date": application_date}


def normalize_applications_for_creation(apps: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Clean new-application entries written as free text.

    Expands a single comma-separated company list, pulls role, notes and
    application date out of the company text, and when the batch names
    exactly one specific role, gives it to entries that have none or only a
    generic one. Entries left without a company are dropped; ``None`` fields
    are removed from the result.
    """
    normalized = [_normalize_intake_entry(app) for app in expand_company_list(apps)]
    normalized = [app for app in normalized if app["company"]]

    if len(normalized) > 1:
        defined_roles = [app["role"] for app in normalized if app["role"]]
        specific_roles = _unique_roles([role for role in defined_roles if not is_generic_role(role)])
        if len(specific_roles) == 1:
            for app in normalized:
                if is_generic_role(app["role"]):
                    app["role"] = specific_roles[0]
        elif not specific_roles:
            unique_defined = _unique_roles(defined_roles)
            if len(unique_defined) == 1 and len(defined_roles) < len(normalized):
                for app in normalized:
                    app["role"] = app["role"] or unique_defined[0]

    return [{key: value for key, value in app.items() if value is not None} for app in normalized]
