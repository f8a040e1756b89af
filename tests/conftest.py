"""Shared fixtures for the test suite.

Provides an in-memory PairingStore, a recording Dispatcher and a fake Slack
client so the engine and command handler run without SQLite or network
calls, plus a temporary-file database for integration tests.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio

from data.database import DataAccessError, OneOnOneDatabase
from data.models import Assignment, Participant
from data.store import PairingStore
from messaging.dispatcher import Dispatcher


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryStore(PairingStore):
    """Dict-and-list backed store with the same semantics as the database."""

    def __init__(
        self,
        participants: list[Participant] | None = None,
        records: list[tuple[str, str]] | None = None,
    ) -> None:
        self.participants = list(participants or [])
        self.records: list[tuple[str, str]] = list(records or [])
        self.assignments: list[tuple[str, str]] = []
        self.unreachable = False

    def _check(self) -> None:
        if self.unreachable:
            raise DataAccessError("store unreachable")

    async def list_active_participants(self) -> list[Participant]:
        self._check()
        return sorted(
            (p for p in self.participants if p.active),
            key=lambda p: (p.fullname, p.slack_id),
        )

    async def count_meetings_initiated_by(self, slack_id: str) -> int:
        self._check()
        return sum(1 for a, _ in self.records if a == slack_id)

    async def has_any_meeting_record(self, slack_id: str) -> bool:
        self._check()
        return any(slack_id in pair for pair in self.records)

    async def has_meeting_between(self, first_id: str, second_id: str) -> bool:
        self._check()
        return (first_id, second_id) in self.records or (second_id, first_id) in self.records

    async def clear_assignments(self) -> None:
        self._check()
        self.assignments.clear()

    async def insert_assignment(self, subject_id: str, partner_id: str) -> None:
        self._check()
        self.assignments.append((subject_id, partner_id))

    async def count_assignments_for_subject(self, slack_id: str) -> int:
        self._check()
        return sum(1 for s, _ in self.assignments if s == slack_id)

    async def list_assignments_for_subject(self, slack_id: str) -> list[str]:
        self._check()
        return [p for s, p in self.assignments if s == slack_id]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = list(self.assignments)
        try:
            yield
        except BaseException:
            self.assignments = snapshot
            raise

    def assignment_models(self) -> list[Assignment]:
        return [Assignment(subject_id=s, partner_id=p) for s, p in self.assignments]


# ---------------------------------------------------------------------------
# Delivery doubles
# ---------------------------------------------------------------------------

class RecordingDispatcher(Dispatcher):
    """Remembers every send; raises for ids listed in *fail_for*."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.sent: list[tuple[str, list[str]]] = []

    async def send_recommendations(self, participant_id: str, partner_ids: list[str]) -> None:
        if participant_id in self.fail_for:
            raise RuntimeError(f"delivery to {participant_id} failed")
        self.sent.append((participant_id, list(partner_ids)))


class FakeSlackClient:
    """Stands in for SlackClient; records every Web API call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def post_message(self, channel: str, text: str) -> dict[str, Any]:
        self.calls.append(("chat.postMessage", {"channel": channel, "text": text}))
        return {"ok": True}

    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict[str, Any]:
        self.calls.append(
            ("chat.postEphemeral", {"channel": channel, "user": user, "text": text})
        )
        return {"ok": True}

    async def send_dm(self, user: str, text: str) -> dict[str, Any]:
        return await self.post_message(user, text)

    async def open_dialog(self, trigger_id: str, dialog: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("dialog.open", {"trigger_id": trigger_id, "dialog": dialog}))
        return {"ok": True}

    async def close(self) -> None:
        self.closed = True

    def texts(self, method: str) -> list[str]:
        return [payload["text"] for m, payload in self.calls if m == method]


# ---------------------------------------------------------------------------
# Helpers & fixtures
# ---------------------------------------------------------------------------

def make_people(*names: str, inactive: tuple[str, ...] = ()) -> list[Participant]:
    """Participants whose slack id is the upper-cased name."""
    return [
        Participant(slack_id=name.upper(), fullname=name, active=name not in inactive)
        for name in names
    ]


@pytest.fixture
def three_people() -> list[Participant]:
    return make_people("Alice", "Bob", "Carol")


@pytest.fixture
def four_people() -> list[Participant]:
    return make_people("Alice", "Bob", "Carol", "Dave")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def fake_slack() -> FakeSlackClient:
    return FakeSlackClient()


@pytest_asyncio.fixture
async def test_db(tmp_path) -> OneOnOneDatabase:
    """Temporary-file SQLite database for testing."""
    db = OneOnOneDatabase(db_path=tmp_path / "test_oneonones.db")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def seeded_db(test_db: OneOnOneDatabase) -> OneOnOneDatabase:
    """Database with Alice, Bob, Carol and Dave on the roster."""
    for person in make_people("Alice", "Bob", "Carol", "Dave"):
        await test_db.upsert_participant(person)
    return test_db
