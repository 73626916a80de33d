from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from interview_prep_tracker.application_intake import (
    is_generic_role,
    merge_text,
    normalize_role_text,
    roles_equivalent,
    sanitize_company_name,
)
from interview_prep_tracker.date_parsing import try_parse_date_input

logger = logging.getLogger(__name__)

INTERVIEW_ROUND_TYPES = (
    "HR",
    "TechnicalRound1",
    "TechnicalRound2",
    "SystemDesign",
    "Managerial",
    "Assignment",
    "Final",
)

# Evaluated top-to-bottom against the lowercased input with spaces, hyphens
# and underscores removed.
ROUND_TYPE_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^hr(?:round|screen|interview)?$|humanresources"), "HR"),
    (re.compile(r"technicalround1|techround1|technical1|tech1"), "TechnicalRound1"),
    (re.compile(r"technicalround2|techround2|technical2|tech2"), "TechnicalRound2"),
    (re.compile(r"systemdesign|sysdesign"), "SystemDesign"),
    (re.compile(r"managerial|managerround|hiringmanager"), "Managerial"),
    (re.compile(r"assignment|takehome"), "Assignment"),
    (re.compile(r"final"), "Final"),
]
_NUMBERED_ROUND_RE = re.compile(r"^round(\d+)$")


@dataclass
class InterviewRoundLite:
    round_number: int
    round_type: str
    notes: str = ""


@dataclass
class ApplicationForRoundUpsert:
    id: str
    company: str
    role: str
    status: str | None = None
    rounds: list[InterviewRoundLite] = field(default_factory=list)


@dataclass
class InterviewRoundUpdate:
    scheduled_date: str
    application_id: str | None = None
    company: str | None = None
    role: str | None = None
    round_type: str | None = None
    round_number: int | float | None = None
    notes: str | None = None


@dataclass
class RoundUpsertDeps:
    get_applications: Callable[[], list[ApplicationForRoundUpsert]]
    create_round: Callable[[str, dict[str, Any]], Awaitable[None]]
    update_round: Callable[[str, int, dict[str, Any]], Awaitable[None]]
    update_application: Callable[[str, dict[str, Any]], Awaitable[None]]
    refresh_applications: Callable[[], Awaitable[None]] | None = None


@dataclass
class ResolutionContext:
    last_resolved_application_id: str | None = None


@dataclass
class RoundUpsertResult:
    updated: list[str]
    failed: list[str]
    count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def merge_notes(existing: str | None, incoming: str | None) -> str | None:
    return merge_text(existing, incoming)


def _to_round_type_label(value: str) -> str:
    text = re.sub(r"[_-]+", " ", value)
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    tokens = re.sub(r"\s+", " ", text).strip().split(" ")
    out: list[str] = []
    for token in tokens:
        if token.isdigit():
            out.append(token)
        elif token.lower() == "hr":
            out.append("HR")
        else:
            out.append(token[:1].upper() + token[1:].lower())
    return " ".join(out)


def parse_interview_round_type(value: str | None) -> str | None:
    if not value:
        return None
    normalized = value.strip()
    if not normalized:
        return None

    compact = re.sub(r"[\s_-]+", "", normalized.lower())
    for pattern, tag in ROUND_TYPE_RULES:
        if pattern.search(compact):
            return tag

    numbered = _NUMBERED_ROUND_RE.match(compact)
    if numbered:
        return f"Round {int(numbered.group(1))}"

    return _to_round_type_label(normalized)


def infer_round_type_from_number(round_number: int) -> str:
    return f"Round {round_number}"


def _positive_round_number(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    number = math.floor(value)
    return number if number >= 1 else None


def _unique(candidates: Sequence[ApplicationForRoundUpsert]) -> ApplicationForRoundUpsert | None:
    return candidates[0] if len(candidates) == 1 else None


def _pick_preferred_candidate(
    matches: Sequence[ApplicationForRoundUpsert],
) -> ApplicationForRoundUpsert | None:
    if not matches:
        return None
    if len(matches) == 1:
        return matches[0]

    canonical = [
        candidate
        for candidate in matches
        if (candidate.company or "").strip()
        and sanitize_company_name(candidate.company).lower() == candidate.company.strip().lower()
    ]
    return _unique(canonical)


def pick_application_for_upsert(
    matches: Sequence[ApplicationForRoundUpsert],
    incoming_role: str | None,
) -> ApplicationForRoundUpsert | None:
    """Pick one application among same-company matches.

    Role-equivalent beats generic-role beats a lone or canonical-name match.
    """
    if not matches:
        return None

    if incoming_role:
        exact = _pick_preferred_candidate(
            [c for c in matches if roles_equivalent(c.role, incoming_role)]
        )
        if exact:
            return exact
        generic = _pick_preferred_candidate([c for c in matches if is_generic_role(c.role)])
        if generic:
            return generic

    return _pick_preferred_candidate(matches)


def _pick_by_status_or_rounds(
    matches: Sequence[ApplicationForRoundUpsert],
) -> ApplicationForRoundUpsert | None:
    interviewing = _unique([c for c in matches if c.status == "interview"])
    if interviewing:
        return interviewing
    return _unique([c for c in matches if c.rounds])


def _find_applications_by_role(
    applications: Sequence[ApplicationForRoundUpsert],
    incoming_role: str,
) -> list[ApplicationForRoundUpsert]:
    exact = [c for c in applications if roles_equivalent(c.role, incoming_role)]
    if exact:
        return exact
    # Older cards may still carry a placeholder role.
    return [c for c in applications if is_generic_role(c.role)]


def resolve_target_application(
    update: InterviewRoundUpdate,
    applications: Sequence[ApplicationForRoundUpsert],
    context: ResolutionContext,
) -> ApplicationForRoundUpsert | None:
    incoming_role = normalize_role_text(update.role)
    explicit_company = sanitize_company_name(update.company)

    if update.application_id:
        return next((c for c in applications if c.id == update.application_id), None)

    if explicit_company:
        key = explicit_company.lower()
        company_matches = [
            c for c in applications if sanitize_company_name(c.company).lower() == key
        ]
        if incoming_role:
            picked = pick_application_for_upsert(company_matches, incoming_role)
            if picked:
                return picked
        elif len(company_matches) == 1:
            return company_matches[0]
        return _pick_by_status_or_rounds(company_matches)

    if incoming_role:
        by_role = _unique(_find_applications_by_role(applications, incoming_role))
        if by_role:
            return by_role
    elif context.last_resolved_application_id:
        previous = next(
            (c for c in applications if c.id == context.last_resolved_application_id),
            None,
        )
        if previous:
            return previous

    # Cross-turn fallback: a single card in interview is the implied target.
    return _unique([c for c in applications if c.status == "interview"])


async def _upsert_one(
    update: InterviewRoundUpdate,
    deps: RoundUpsertDeps,
    context: ResolutionContext,
) -> tuple[bool, str]:
    incoming_role = normalize_role_text(update.role)
    explicit_company = sanitize_company_name(update.company)

    target = resolve_target_application(update, deps.get_applications(), context)
    if target is None and deps.refresh_applications is not None:
        await deps.refresh_applications()
        target = resolve_target_application(update, deps.get_applications(), context)

    if target is None:
        return False, update.application_id or explicit_company or incoming_role or "unknown"

    context.last_resolved_application_id = target.id
    company_name = sanitize_company_name(target.company) or explicit_company

    parsed_date = try_parse_date_input(update.scheduled_date)
    if parsed_date is None:
        logger.info("Unparseable scheduled date %r for %s", update.scheduled_date, company_name)
        return False, company_name or incoming_role or "unknown"
    scheduled_iso = parsed_date.isoformat()

    latest = next((c for c in deps.get_applications() if c.id == target.id), target)
    existing_rounds = sorted(latest.rounds or [], key=lambda r: r.round_number)

    provided_number = _positive_round_number(update.round_number)
    provided_type = parse_interview_round_type(update.round_type)
    next_number = max((r.round_number for r in existing_rounds), default=0) + 1

    target_number = provided_number
    if target_number is None and provided_type:
        target_number = next(
            (r.round_number for r in existing_rounds if r.round_type == provided_type),
            None,
        )
    if target_number is None:
        target_number = next_number
    target_type = provided_type or infer_round_type_from_number(target_number)

    existing_round = next((r for r in existing_rounds if r.round_number == target_number), None)
    merged_notes = merge_notes(existing_round.notes if existing_round else None, update.notes) or ""

    try:
        if existing_round:
            await deps.update_round(
                latest.id,
                target_number,
                {
                    "round_type": target_type,
                    "scheduled_date": scheduled_iso,
                    "notes": merged_notes,
                },
            )
        else:
            await deps.create_round(
                latest.id,
                {
                    "round_number": target_number,
                    "round_type": target_type,
                    "scheduled_date": scheduled_iso,
                    "notes": merged_notes,
                    "questions_asked": [],
                },
            )

        application_update: dict[str, Any] = {
            "status": "interview",
            "interview_date": scheduled_iso,
            "current_round": target_type,
        }
        if incoming_role and (
            is_generic_role(latest.role) or not roles_equivalent(latest.role, incoming_role)
        ):
            application_update["role"] = incoming_role
        await deps.update_application(latest.id, application_update)
    except Exception:
        logger.exception("Failed to upsert round for %s", company_name)
        return False, company_name or incoming_role or "unknown"

    return True, (
        f"{company_name or 'unknown'} -> Round {target_number} ({target_type}) "
        f"on {scheduled_iso[:10]}"
    )


async def upsert_interview_rounds_batch(
    updates: Sequence[InterviewRoundUpdate],
    deps: RoundUpsertDeps,
) -> RoundUpsertResult:
    """Resolve and persist a batch of loosely specified interview round updates.

    Updates run strictly in order: a later update without company or role
    falls back to the application resolved just before it. Failures are
    collected per update and never abort the batch.
    """
    updated: list[str] = []
    failed: list[str] = []
    context = ResolutionContext()

    for update in updates:
        try:
            ok, text = await _upsert_one(update, deps, context)
        except Exception:
            logger.exception("Unexpected error while resolving round update %r", update)
            ok = False
            text = update.application_id or sanitize_company_name(update.company) or (
                normalize_role_text(update.role) or "unknown"
            )
        if ok:
            updated.append(text)
        else:
            failed.append(text)

    return RoundUpsertResult(updated=updated, failed=failed, count=len(updated))
