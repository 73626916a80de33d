from __future__ import annotations

from datetime import date

from interview_prep_tracker.round_upsert import InterviewRoundUpdate
from interview_prep_tracker.tool_inputs import (
    count_payload_items,
    normalize_new_applications_input,
    normalize_round_number,
    normalize_round_type,
    normalize_round_updates_input,
    normalize_status,
    normalize_status_updates_input,
)


def test_round_updates_accept_aliases_and_wrappers() -> None:
    payload = {
        "updates": [
            {"companyName": "Acme | platform", "date": "tomorrow", "roundType": "tech round 2", "note": "graphs"},
            {"appId": "a1", "scheduled_on": "2026-03-02", "round": "Round 4"},
        ]
    }

    entries = normalize_round_updates_input(payload)

    assert entries == [
        {
            "scheduled_date": "tomorrow",
            "company": "Acme",
            "round_type": "TechnicalRound2",
            "notes": "graphs",
        },
        {
            "scheduled_date": "2026-03-02",
            "application_id": "a1",
            "round_type": "Managerial",
            "round_number": 4,
        },
    ]
    # Entries map straight onto the resolver's input type.
    assert InterviewRoundUpdate(**entries[0]).company == "Acme"


def test_round_updates_drop_entries_without_a_date() -> None:
    payload = [{"company": "Acme"}, {"company": "Globex", "interviewDate": date(2026, 3, 2)}, "junk"]

    entries = normalize_round_updates_input(payload)

    assert entries == [{"scheduled_date": "2026-03-02", "company": "Globex"}]
    assert count_payload_items(payload) - len(entries) == 2


def test_single_object_and_data_wrapper() -> None:
    assert normalize_round_updates_input({"company": "Acme", "date": "friday"}) == [
        {"scheduled_date": "friday", "company": "Acme"}
    ]
    assert normalize_round_updates_input({"data": {"updates": [{"company": "Acme", "date": "today"}]}}) == [
        {"scheduled_date": "today", "company": "Acme"}
    ]
    assert normalize_round_updates_input(None) == []


def test_normalize_round_type_hints() -> None:
    assert normalize_round_type("SystemDesign") == "SystemDesign"
    assert normalize_round_type("technical round 1") == "TechnicalRound1"
    assert normalize_round_type("hiring manager chat") == "Managerial"
    assert normalize_round_type("hr") == "HR"
    assert normalize_round_type("coffee chat") is None
    assert normalize_round_type(3) is None


def test_normalize_round_number() -> None:
    assert normalize_round_number("round 3") == 3
    assert normalize_round_number(2.9) == 2
    assert normalize_round_number(0) is None
    assert normalize_round_number(True) is None
    assert normalize_round_number("final") is None


def test_round_number_alone_infers_conventional_type() -> None:
    assert normalize_round_updates_input([{"company": "Acme", "date": "today", "roundNumber": 3}]) == [
        {"scheduled_date": "today", "company": "Acme", "round_type": "SystemDesign", "round_number": 3}
    ]
    entries = normalize_round_updates_input([{"company": "Acme", "date": "today", "roundNumber": 7}])
    assert entries[0]["round_type"] == "Final"


def test_normalize_status() -> None:
    assert normalize_status("Rejected :(") == "rejected"
    assert normalize_status("got an offer") == "offer"
    assert normalize_status("phone screen") == "interview"
    assert normalize_status("SHORTLISTED") == "shortlisted"
    assert normalize_status("ghosted") is None
    assert normalize_status(None) is None


def test_status_updates_from_strings_and_objects() -> None:
    entries = normalize_status_updates_input(["Acme: offer", {"id": "a9", "state": "rejected"}, {"status": "offer"}])

    assert entries == [
        {"company": "Acme", "new_status": "offer"},
        {"application_id": "a9", "new_status": "rejected"},
    ]


def test_new_applications_default_status_and_skip_missing_company() -> None:
    entries = normalize_new_applications_input(
        {
            "applications": [
                {"company": "Acme - notes: referral", "position": "backend dev", "applied_on": "2026-01-20"},
                {"role": "Data Scientist"},
                "Globex",
            ]
        }
    )

    assert entries == [
        {
            "company": "Acme",
            "status": "applied",
            "role": "Backend Developer",
            "notes": "referral",
            "application_date": "2026-01-20",
        },
        # The batch names one specific role, so Globex shares it.
        {"company": "Globex", "status": "applied", "role": "Backend Developer"},
    ]


def test_new_application_dash_string_splits_role_and_notes() -> None:
    assert normalize_new_applications_input(["Google - SDE2 - notes: referral from Sam"]) == [
        {"company": "Google", "status": "applied", "role": "SDE2", "notes": "referral from Sam"}
    ]


def test_new_application_comma_list_shares_role_notes_and_date() -> None:
    entries = normalize_new_applications_input(
        [
            {
                "company": "Stripe, Notion, Airbnb",
                "role": "backend engineer",
                "notes": "via referrals",
                "appliedOn": "yesterday",
            }
        ]
    )

    assert [entry["company"] for entry in entries] == ["Stripe", "Notion", "Airbnb"]
    for entry in entries:
        assert entry == {
            "company": entry["company"],
            "status": "applied",
            "role": "Backend Engineer",
            "notes": "via referrals",
            "application_date": "yesterday",
        }
    assert count_payload_items([{"company": "Stripe, Notion, Airbnb"}]) == 1


def test_new_application_sentence_list_takes_role_from_text() -> None:
    entries = normalize_new_applications_input("Just applied to Google, Meta for the ML engineer role")

    assert entries == [
        {"company": "Google", "status": "applied", "role": "ML Engineer"},
        {"company": "Meta", "status": "applied", "role": "ML Engineer"},
    ]


def test_new_application_position_sentence() -> None:
    assert normalize_new_applications_input(["Applied for the data scientist role at Globex, referral from Kim"]) == [
        {"company": "Globex", "status": "applied", "role": "Data Scientist", "notes": "referral from Kim"}
    ]


def test_new_applications_backfill_single_specific_role() -> None:
    assert normalize_new_applications_input(["Google - backend engineer", "Meta"]) == [
        {"company": "Google", "status": "applied", "role": "Backend Engineer"},
        {"company": "Meta", "status": "applied", "role": "Backend Engineer"},
    ]
    # Two different specific roles leave entries without a role alone.
    entries = normalize_new_applications_input(["Google - backend engineer", "Meta - data scientist", "Initech"])
    assert [entry.get("role") for entry in entries] == ["Backend Engineer", "Data Scientist", None]
