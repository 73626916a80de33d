from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

SNAPSHOT_VERSION = 1

ApplicationStatus = Literal["applied", "shortlisted", "interview", "offer", "rejected"]


class RoundSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    round_number: int = Field(gt=0)
    round_type: str = Field(min_length=1)
    scheduled_date: str | None = None
    notes: str = ""
    questions_asked: list[str] = Field(default_factory=list)


class ApplicationSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    company: str = Field(min_length=1)
    role: str
    status: ApplicationStatus
    application_date: str | None = None
    interview_date: str | None = None
    current_round: str | None = None
    notes: str = ""
    created_at_utc: str | None = None
    rounds: list[RoundSnapshot] = Field(default_factory=list)

    @field_validator("rounds")
    @classmethod
    def _unique_round_numbers(cls, rounds: list[RoundSnapshot]) -> list[RoundSnapshot]:
        numbers = [r.round_number for r in rounds]
        if len(numbers) != len(set(numbers)):
            raise ValueError("round_number must be unique within an application")
        return rounds


class UserDataSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1]
    user_id: str
    exported_at_utc: str
    applications: list[ApplicationSnapshot] = Field(default_factory=list)
    events: list[dict[str, Any]] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)


def validate_snapshot(raw: Any) -> UserDataSnapshot:
    """Strictly validate an exported snapshot, raising ValueError on any mismatch."""
    if not isinstance(raw, dict):
        raise ValueError("snapshot must be a JSON object")
    try:
        return UserDataSnapshot.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid snapshot: {exc}") from exc
