"""Storage interface consumed by the weekly assignment engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from data.models import Participant


class PairingStore(ABC):
    """Roster, meeting ledger and assignment store as seen by the engine."""

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_active_participants(self) -> list[Participant]:
        """Active participants ordered by display name."""
        ...

    # ------------------------------------------------------------------
    # Meeting ledger
    # ------------------------------------------------------------------

    @abstractmethod
    async def count_meetings_initiated_by(self, slack_id: str) -> int:
        ...

    @abstractmethod
    async def has_any_meeting_record(self, slack_id: str) -> bool:
        """True if *slack_id* appears in any record, in either role."""
        ...

    @abstractmethod
    async def has_meeting_between(self, first_id: str, second_id: str) -> bool:
        """True if a record exists for the pair in either direction."""
        ...

    # ------------------------------------------------------------------
    # Assignment store
    # ------------------------------------------------------------------

    @abstractmethod
    async def clear_assignments(self) -> None:
        ...

    @abstractmethod
    async def insert_assignment(self, subject_id: str, partner_id: str) -> None:
        ...

    @abstractmethod
    async def count_assignments_for_subject(self, slack_id: str) -> int:
        ...

    @abstractmethod
    async def list_assignments_for_subject(self, slack_id: str) -> list[str]:
        ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Group writes so they commit together or roll back together."""
        ...
