"""Pydantic models mirroring the SQLite schema."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Participant(BaseModel):
    """Row in the ``people`` table."""

    slack_id: str
    fullname: str
    username: str = ""
    active: bool = True


class MeetingRecord(BaseModel):
    """Row in the ``records`` table.

    Records are directional: ``(A, B)`` means *A* reported meeting *B*.
    """

    id: int | None = None
    initiator_id: str
    partner_id: str
    completed_at: datetime = Field(default_factory=_utcnow)
    comment: str = ""


class Assignment(BaseModel):
    """Row in the ``weekly`` table: *subject* is recommended to meet *partner*."""

    subject_id: str
    partner_id: str

    def as_pair(self) -> tuple[str, str]:
        return (self.subject_id, self.partner_id)


class LeaderboardEntry(BaseModel):
    """Mutual meeting count for one participant."""

    slack_id: str
    fullname: str
    username: str = ""
    completed: int


class CompletedMeeting(BaseModel):
    """A meeting the user reported, and whether the partner reported it too."""

    partner_id: str
    also_recorded: bool = False
