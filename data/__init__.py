"""Data layer – SQLite storage and Pydantic models."""

from data.models import (
    Assignment,
    CompletedMeeting,
    LeaderboardEntry,
    MeetingRecord,
    Participant,
)
from data.database import DataAccessError, OneOnOneDatabase, SelfPairingError
from data.store import PairingStore

__all__ = [
    "Assignment",
    "CompletedMeeting",
    "DataAccessError",
    "LeaderboardEntry",
    "MeetingRecord",
    "OneOnOneDatabase",
    "PairingStore",
    "Participant",
    "SelfPairingError",
]
