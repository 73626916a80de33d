from __future__ import annotations

import asyncio
import copy
from pathlib import Path

import pytest

from interview_prep_tracker import server
from interview_prep_tracker.schemas import validate_snapshot
from interview_prep_tracker.server_parts import base_runtime


@pytest.fixture(autouse=True)
def _isolated_db(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(base_runtime, "DEFAULT_DB_PATH", str(tmp_path / "interview_prep.db"))
    base_runtime._DB_READY_PATHS.clear()


def _seed(user_id: str = "u1") -> dict:
    server.add_applications(
        user_id=user_id,
        applications=[{"company": "Acme", "role": "Backend Engineer"}, {"company": "Globex"}],
    )
    asyncio.run(
        server.upsert_interview_rounds(
            user_id=user_id,
            updates=[
                {"company": "Acme", "date": "2026-03-02", "roundType": "HR", "notes": "Bring ID"},
                {"company": "Acme", "date": "2026-03-09", "roundType": "system design"},
            ],
        )
    )
    return server.export_user_data(user_id=user_id)


def test_export_user_data_is_versioned_and_complete() -> None:
    snapshot = _seed()

    assert snapshot["version"] == 1
    assert snapshot["user_id"] == "u1"
    assert snapshot["counts"] == {"applications": 2, "interview_rounds": 2, "events": 4}
    acme = snapshot["applications"][0]
    assert acme["company"] == "Acme"
    assert acme["status"] == "interview"
    assert [(r["round_number"], r["round_type"]) for r in acme["rounds"]] == [(1, "HR"), (2, "SystemDesign")]
    assert acme["rounds"][0]["notes"] == "Bring ID"
    validate_snapshot(snapshot)


def test_import_into_another_user_rekeys_ids() -> None:
    snapshot = _seed("u1")

    result = server.import_user_data(user_id="u2", snapshot=snapshot)

    assert result["imported"] == {"applications": 2, "interview_rounds": 2, "events": 4}
    assert result["source_user_id"] == "u1"
    assert len(result["rekeyed_application_ids"]) == 2
    copied = server.export_user_data(user_id="u2")
    assert [app["company"] for app in copied["applications"]] == ["Acme", "Globex"]
    assert copied["applications"][0]["rounds"][1]["scheduled_date"] == "2026-03-09T00:00:00"
    # The source user is untouched.
    assert server.export_user_data(user_id="u1")["counts"]["applications"] == 2


def test_import_skips_known_ids_unless_replacing() -> None:
    snapshot = _seed("u1")

    merged = server.import_user_data(user_id="u1", snapshot=snapshot)
    assert merged["imported"]["applications"] == 0
    assert len(merged["skipped_application_ids"]) == 2

    replaced = server.import_user_data(user_id="u1", snapshot=snapshot, replace=True)
    assert replaced["deleted"] == {"applications": 2, "interview_rounds": 2, "events": 4}
    assert replaced["imported"]["applications"] == 2
    assert replaced["rekeyed_application_ids"] == {}
    assert server.export_user_data(user_id="u1")["counts"]["interview_rounds"] == 2


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s: s.update(version=2),
        lambda s: s.update(unexpected=True),
        lambda s: s["applications"][0].update(status="ghosted"),
        lambda s: s["applications"][0]["rounds"].append(copy.deepcopy(s["applications"][0]["rounds"][0])),
        lambda s: s["applications"][0]["rounds"][0].update(round_number=0),
    ],
)
def test_import_rejects_invalid_snapshots(mutate) -> None:
    snapshot = _seed("u1")
    broken = copy.deepcopy(snapshot)
    mutate(broken)

    with pytest.raises(ValueError, match="Invalid snapshot"):
        server.import_user_data(user_id="u2", snapshot=broken)
    assert server.export_user_data(user_id="u2")["counts"]["applications"] == 0


def test_delete_user_data_requires_confirm() -> None:
    _seed("u1")
    _seed("u2")

    with pytest.raises(ValueError, match="confirm=true"):
        server.delete_user_data(user_id="u1")

    result = server.delete_user_data(user_id="u1", confirm=True)

    assert result["deleted"] == {"applications": 2, "interview_rounds": 2, "events": 4}
    assert server.list_applications(user_id="u1")["total_applications"] == 0
    assert server.list_applications(user_id="u2")["total_applications"] == 2
