from __future__ import annotations

import asyncio
from typing import Any

import pytest

from interview_prep_tracker.round_upsert import (
    ApplicationForRoundUpsert,
    InterviewRoundLite,
    InterviewRoundUpdate,
    ResolutionContext,
    RoundUpsertDeps,
    parse_interview_round_type,
    pick_application_for_upsert,
    resolve_target_application,
    upsert_interview_rounds_batch,
)


class FakeStore:
    def __init__(self, applications: list[ApplicationForRoundUpsert]) -> None:
        self.applications = applications
        self.calls: list[tuple[str, str, Any]] = []
        self.fail_for: set[str] = set()

    def _app(self, application_id: str) -> ApplicationForRoundUpsert:
        return next(app for app in self.applications if app.id == application_id)

    def get_applications(self) -> list[ApplicationForRoundUpsert]:
        return self.applications

    async def create_round(self, application_id: str, data: dict[str, Any]) -> None:
        if application_id in self.fail_for:
            raise RuntimeError("disk full")
        self.calls.append(("create_round", application_id, data))
        self._app(application_id).rounds.append(
            InterviewRoundLite(data["round_number"], data["round_type"], data["notes"])
        )

    async def update_round(self, application_id: str, round_number: int, data: dict[str, Any]) -> None:
        self.calls.append(("update_round", application_id, {"round_number": round_number, **data}))
        round_ = next(r for r in self._app(application_id).rounds if r.round_number == round_number)
        round_.round_type = data["round_type"]
        round_.notes = data["notes"]

    async def update_application(self, application_id: str, data: dict[str, Any]) -> None:
        self.calls.append(("update_application", application_id, data))
        app = self._app(application_id)
        app.status = data["status"]
        app.role = data.get("role", app.role)

    def deps(self, refresh=None) -> RoundUpsertDeps:
        return RoundUpsertDeps(
            get_applications=self.get_applications,
            create_round=self.create_round,
            update_round=self.update_round,
            update_application=self.update_application,
            refresh_applications=refresh,
        )


def _run(updates: list[InterviewRoundUpdate], store: FakeStore, refresh=None):
    return asyncio.run(upsert_interview_rounds_batch(updates, store.deps(refresh)))


def _app(app_id: str, company: str, role: str = "Software Engineer", status: str = "applied", rounds=None):
    return ApplicationForRoundUpsert(id=app_id, company=company, role=role, status=status, rounds=rounds or [])


def test_company_only_update_creates_first_round() -> None:
    store = FakeStore([_app("a1", "Acme")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="acme")], store)

    assert result.updated == ["Acme -> Round 1 (Round 1) on 2026-03-02"]
    assert result.failed == []
    assert result.count == 1
    kind, app_id, data = store.calls[0]
    assert (kind, app_id) == ("create_round", "a1")
    assert data == {
        "round_number": 1,
        "round_type": "Round 1",
        "scheduled_date": "2026-03-02T00:00:00",
        "notes": "",
        "questions_asked": [],
    }
    assert store.calls[1] == (
        "update_application",
        "a1",
        {"status": "interview", "interview_date": "2026-03-02T00:00:00", "current_round": "Round 1"},
    )


def test_every_update_is_accounted_for() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Globex")])
    updates = [
        InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", round_type="HR"),
        InterviewRoundUpdate(scheduled_date="2026-03-03", company="Nowhere Corp"),
        InterviewRoundUpdate(scheduled_date="xyzzy", company="Globex"),
        InterviewRoundUpdate(scheduled_date="2026-03-04", application_id="a2"),
    ]

    result = _run(updates, store)

    assert result.count == len(result.updated) == 2
    assert len(result.updated) + len(result.failed) == len(updates)
    assert result.failed == ["Nowhere Corp", "Globex"]


def test_repeating_the_same_note_does_not_duplicate_it() -> None:
    store = FakeStore([_app("a1", "Acme")])
    update = InterviewRoundUpdate(
        scheduled_date="2026-03-02",
        company="Acme",
        round_type="system design",
        notes="Review caching strategies",
    )

    _run([update], store)
    _run([update], store)

    rounds = store.applications[0].rounds
    assert len(rounds) == 1
    assert rounds[0].notes == "Review caching strategies"
    assert rounds[0].round_type == "SystemDesign"
    assert [call[0] for call in store.calls] == [
        "create_round",
        "update_application",
        "update_round",
        "update_application",
    ]


def test_new_notes_are_appended_to_existing_round() -> None:
    store = FakeStore([_app("a1", "Acme", rounds=[InterviewRoundLite(1, "HR", "Bring ID")])])

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", round_number=1, notes="Ask about team")], store)

    assert store.applications[0].rounds[0].notes == "Bring ID. Ask about team"
    # No round type given: the existing round is relabelled from its number.
    assert store.applications[0].rounds[0].round_type == "Round 1"


def test_later_update_without_company_targets_previous_application() -> None:
    store = FakeStore(
        [
            _app("a1", "Acme", status="interview"),
            _app("a2", "Globex", status="interview"),
        ]
    )
    updates = [
        InterviewRoundUpdate(scheduled_date="2026-03-02", company="Globex", round_type="HR"),
        InterviewRoundUpdate(scheduled_date="2026-03-05", round_type="technical round 1"),
    ]

    result = _run(updates, store)

    assert result.updated == [
        "Globex -> Round 1 (HR) on 2026-03-02",
        "Globex -> Round 2 (TechnicalRound1) on 2026-03-05",
    ]
    assert store.applications[0].rounds == []


def test_duplicate_company_prefers_application_in_interview() -> None:
    store = FakeStore(
        [
            _app("a1", "Acme", status="applied"),
            _app("a2", "Acme", status="interview"),
        ]
    )

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme")], store)

    assert result.count == 1
    assert store.calls[0][1] == "a2"


def test_duplicate_company_prefers_equivalent_role() -> None:
    store = FakeStore(
        [
            _app("a1", "Acme", role="Data Scientist"),
            _app("a2", "Acme", role="Backend Engineer"),
        ]
    )

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", role="backend engineer")], store)

    assert store.calls[0][1] == "a2"


def test_ambiguous_duplicate_company_fails() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Acme")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme")], store)

    assert result.updated == []
    assert result.failed == ["Acme"]
    assert store.calls == []


def test_duplicate_company_prefers_the_one_with_rounds() -> None:
    store = FakeStore(
        [
            _app("a1", "Acme"),
            _app("a2", "Acme", rounds=[InterviewRoundLite(1, "HR", "")]),
        ]
    )

    result = _run(
        [InterviewRoundUpdate(scheduled_date="2026-03-05", company="Acme", round_type="technical round 1")],
        store,
    )

    assert result.updated == ["Acme -> Round 2 (TechnicalRound1) on 2026-03-05"]
    assert store.calls[0][1] == "a2"


def test_duplicate_company_with_rounds_on_both_fails() -> None:
    store = FakeStore(
        [
            _app("a1", "Acme", rounds=[InterviewRoundLite(1, "HR", "")]),
            _app("a2", "Acme", rounds=[InterviewRoundLite(1, "HR", "")]),
        ]
    )

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-05", company="Acme")], store)

    assert result.failed == ["Acme"]
    assert store.calls == []


def test_company_and_unmatched_role_fall_back_to_application_in_interview() -> None:
    apps = [
        _app("a1", "Acme", role="Data Scientist"),
        _app("a2", "Acme", role="Product Manager", status="interview"),
    ]
    update = InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", role="Backend Engineer")

    # Neither role matches, neither is generic and both names are canonical.
    assert pick_application_for_upsert(apps, "Backend Engineer") is None
    assert resolve_target_application(update, apps, ResolutionContext()) is apps[1]

    apps[1].status = "applied"
    assert resolve_target_application(update, apps, ResolutionContext()) is None


def test_application_id_is_used_directly() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Acme")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", application_id="a1")], store)

    assert result.count == 1
    assert store.calls[0][1] == "a1"


def test_unknown_application_id_does_not_fall_back() -> None:
    store = FakeStore([_app("a1", "Acme", status="interview")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", application_id="missing")], store)

    assert result.failed == ["missing"]
    assert store.calls == []


def test_unparseable_date_touches_nothing() -> None:
    store = FakeStore([_app("a1", "Acme")])

    result = _run([InterviewRoundUpdate(scheduled_date="xyzzy", company="Acme")], store)

    assert result.failed == ["Acme"]
    assert result.count == 0
    assert store.calls == []


def test_persistence_failure_does_not_abort_batch() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Globex")])
    store.fail_for.add("a1")

    result = _run(
        [
            InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme"),
            InterviewRoundUpdate(scheduled_date="2026-03-03", company="Globex"),
        ],
        store,
    )

    assert result.failed == ["Acme"]
    assert result.updated == ["Globex -> Round 1 (Round 1) on 2026-03-03"]


def test_refresh_is_tried_once_before_failing() -> None:
    store = FakeStore([])
    refreshes: list[int] = []

    async def refresh() -> None:
        refreshes.append(1)
        store.applications = [_app("a1", "Acme")]

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme")], store, refresh)

    assert refreshes == [1]
    assert result.count == 1


def test_existing_round_of_same_type_is_rescheduled() -> None:
    store = FakeStore(
        [
            _app(
                "a1",
                "Acme",
                status="interview",
                rounds=[InterviewRoundLite(1, "HR"), InterviewRoundLite(2, "TechnicalRound1")],
            )
        ]
    )

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-09", company="Acme", round_type="tech round 1")], store)

    assert result.updated == ["Acme -> Round 2 (TechnicalRound1) on 2026-03-09"]
    assert store.calls[0][0] == "update_round"


def test_new_round_type_gets_next_number() -> None:
    store = FakeStore(
        [_app("a1", "Acme", rounds=[InterviewRoundLite(1, "HR"), InterviewRoundLite(2, "TechnicalRound1")])]
    )

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-09", company="Acme", round_type="culture fit")], store)

    assert result.updated == ["Acme -> Round 3 (Culture Fit) on 2026-03-09"]


@pytest.mark.parametrize(("raw_number", "expected"), [(2.7, 2), (0, 1), (-3, 1), (True, 1)])
def test_round_number_is_floored_and_must_be_positive(raw_number, expected: int) -> None:
    store = FakeStore([_app("a1", "Acme")])

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", round_number=raw_number)], store)

    assert store.calls[0][2]["round_number"] == expected


def test_generic_role_is_replaced_by_incoming_role() -> None:
    store = FakeStore([_app("a1", "Acme", role="Software Engineer")])

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", role="backend dev")], store)

    assert store.calls[1][2]["role"] == "Backend Developer"
    assert store.applications[0].role == "Backend Developer"


def test_equivalent_role_is_left_alone() -> None:
    store = FakeStore([_app("a1", "Acme", role="Backend Engineer")])

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", role="backend engineer")], store)

    assert "role" not in store.calls[1][2]


def test_role_only_update_resolves_unique_role_match() -> None:
    store = FakeStore([_app("a1", "Acme", role="Data Scientist"), _app("a2", "Globex", role="Backend Engineer")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02", role="Backend Engineer")], store)

    assert result.updated == ["Globex -> Round 1 (Round 1) on 2026-03-02"]


def test_second_call_falls_back_to_single_interview_application() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Globex")])

    _run([InterviewRoundUpdate(scheduled_date="2026-03-02", company="Globex", round_type="HR")], store)
    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-06", round_type="technical round 1")], store)

    assert result.updated == ["Globex -> Round 2 (TechnicalRound1) on 2026-03-06"]


def test_no_target_without_context_or_unique_interview_application() -> None:
    store = FakeStore([_app("a1", "Acme", status="interview"), _app("a2", "Globex", status="interview")])

    result = _run([InterviewRoundUpdate(scheduled_date="2026-03-02")], store)

    assert result.failed == ["unknown"]


def test_resolve_uses_last_resolved_before_interview_fallback() -> None:
    apps = [_app("a1", "Acme", status="interview"), _app("a2", "Globex")]
    context = ResolutionContext(last_resolved_application_id="a2")

    target = resolve_target_application(InterviewRoundUpdate(scheduled_date="today"), apps, context)

    assert target is apps[1]


def test_pick_prefers_canonical_company_name() -> None:
    apps = [_app("a1", "Acme - Platform"), _app("a2", "Acme")]

    assert pick_application_for_upsert(apps, None) is apps[1]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("HR screen", "HR"),
        ("Technical Round 1", "TechnicalRound1"),
        ("tech-2", "TechnicalRound2"),
        ("sys design", "SystemDesign"),
        ("hiring manager", "Managerial"),
        ("take-home", "Assignment"),
        ("Final round", "Final"),
        ("round 3", "Round 3"),
        ("behavioral_round", "Behavioral Round"),
        ("cultureFit", "Culture Fit"),
        ("", None),
        (None, None),
    ],
)
def test_parse_interview_round_type(raw: str | None, expected: str | None) -> None:
    assert parse_interview_round_type(raw) == expected


def test_explicit_round_numbers_with_company_only_on_first_update() -> None:
    store = FakeStore([_app("a1", "Acme"), _app("a2", "Globex", status="interview")])

    result = _run(
        [
            InterviewRoundUpdate(scheduled_date="2026-03-02", company="Acme", round_number=1),
            InterviewRoundUpdate(scheduled_date="2026-03-04", round_number=2),
        ],
        store,
    )

    assert result.count == 2
    assert [r.round_number for r in store.applications[0].rounds] == [1, 2]
    assert store.applications[1].rounds == []
