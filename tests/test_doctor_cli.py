from __future__ import annotations

import json
from pathlib import Path

import pytest

from interview_prep_tracker import doctor_cli, server, server_cli
from interview_prep_tracker.server_parts import base_runtime
from interview_prep_tracker.server_parts.base_store import _insert_application_in_conn


@pytest.fixture(autouse=True)
def _isolated_db(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(base_runtime, "DEFAULT_DB_PATH", str(tmp_path / "interview_prep.db"))
    base_runtime._DB_READY_PATHS.clear()


def test_doctor_cli_reports_checks(monkeypatch, capsys) -> None:
    server.add_applications(user_id="alice", applications=[{"company": "Acme"}])
    monkeypatch.setattr("sys.argv", ["interview-prep-doctor", "--user-id", "alice"])

    doctor_cli.main()
    payload = json.loads(capsys.readouterr().out)

    check_names = {c["name"] for c in payload["checks"]}
    assert check_names == {
        "db_parent_writable",
        "db_initialized",
        "date_parser_functional",
        "user_has_applications",
    }
    assert payload["healthy"] is True
    assert payload["summary"]["status_counts"]["applied"] == 1


def test_doctor_cli_initializes_custom_db_path(monkeypatch, tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "nested" / "custom.db"
    monkeypatch.setattr("sys.argv", ["interview-prep-doctor", "--db-path", str(db_path)])

    doctor_cli.main()
    payload = json.loads(capsys.readouterr().out)

    assert db_path.exists()
    assert payload["user_id"] is None
    assert payload["summary"] is None
    assert all(check["ok"] for check in payload["checks"])


def test_doctor_cli_summarizes_custom_db_without_rebinding_default(monkeypatch, tmp_path: Path, capsys) -> None:
    default_path = base_runtime.DEFAULT_DB_PATH
    custom_path = str(tmp_path / "other" / "custom.db")
    base_runtime._ensure_store_ready(custom_path)
    with base_runtime._db_conn(custom_path) as conn:
        _insert_application_in_conn(conn, user_id="bob", company="Globex", role="Software Engineer")
    monkeypatch.setattr("sys.argv", ["interview-prep-doctor", "--db-path", custom_path, "--user-id", "bob"])

    doctor_cli.main()
    payload = json.loads(capsys.readouterr().out)

    assert payload["healthy"] is True
    assert payload["summary"]["total_applications"] == 1
    assert payload["summary"]["db_path"] == custom_path
    assert base_runtime.DEFAULT_DB_PATH == default_path
    assert server.get_pipeline_summary(user_id="bob")["total_applications"] == 0


def test_server_cli_version(monkeypatch, capsys) -> None:
    monkeypatch.setattr("sys.argv", ["interview-prep-tracker", "--version"])

    with pytest.raises(SystemExit) as exc:
        server_cli.main()

    assert exc.value.code == 0
    assert "interview-prep-tracker" in capsys.readouterr().out
