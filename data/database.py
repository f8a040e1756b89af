"""Async SQLite database layer using aiosqlite.

Handles schema creation, the roster (``people``), the meeting ledger
(``records``) and the weekly assignment store (``weekly``), plus the helper
queries behind the slash commands.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from data.models import (
    Assignment,
    CompletedMeeting,
    LeaderboardEntry,
    MeetingRecord,
    Participant,
)
from data.store import PairingStore

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS people (
    slack_id    TEXT    PRIMARY KEY,
    fullname    TEXT    NOT NULL,
    username    TEXT    NOT NULL DEFAULT '',
    active      INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS records (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    initiator_id TEXT    NOT NULL,
    partner_id   TEXT    NOT NULL,
    completed_at TEXT    NOT NULL,
    comment      TEXT    NOT NULL DEFAULT '',
    UNIQUE (initiator_id, partner_id)
);

CREATE TABLE IF NOT EXISTS weekly (
    subject_id  TEXT    NOT NULL,
    partner_id  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS weekly_subject ON weekly (subject_id);
"""


class DataAccessError(RuntimeError):
    """The database is unreachable or a query failed."""


class SelfPairingError(ValueError):
    """A participant tried to record a one-on-one with themself."""


class OneOnOneDatabase(PairingStore):
    """Async wrapper around an SQLite database for one-on-one tracking."""

    def __init__(self, db_path: str | Path = "data/oneonones.db") -> None:
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._in_transaction = False
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open connection and ensure schema exists."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self.db_path))
            self._conn.row_factory = aiosqlite.Row
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise DataAccessError(f"Cannot open database {self.db_path}: {exc}") from exc
        logger.info("Database connected: %s", self.db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise DataAccessError("Database not connected. Call connect() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Commit every write in the block at once, or roll all of them back.

        The connection is held for the whole block: queries and writes from
        other coroutines wait until it commits or rolls back.
        """
        if self._owner is asyncio.current_task():
            yield
            return

        async with self._session() as conn:
            self._in_transaction = True
            try:
                yield
            except BaseException:
                await conn.rollback()
                logger.warning("Transaction rolled back")
                raise
            else:
                try:
                    await conn.commit()
                except aiosqlite.Error as exc:
                    raise DataAccessError(f"Commit failed: {exc}") from exc
            finally:
                self._in_transaction = False

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive use of the connection by the current task; re-entrant."""
        if self._owner is asyncio.current_task():
            yield self.conn
            return

        async with self._lock:
            conn = self.conn
            self._owner = asyncio.current_task()
            try:
                yield conn
            finally:
                self._owner = None

    async def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        try:
            return await self.conn.execute(sql, params)
        except aiosqlite.Error as exc:
            raise DataAccessError(f"Query failed: {exc}") from exc

    async def _write(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        async with self._session():
            cur = await self._execute(sql, params)
            await self._commit()
            return cur

    async def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        async with self._session():
            cur = await self._execute(sql, params)
            try:
                return list(await cur.fetchall())
            except aiosqlite.Error as exc:
                raise DataAccessError(f"Query failed: {exc}") from exc

    async def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Row | None:
        async with self._session():
            cur = await self._execute(sql, params)
            try:
                return await cur.fetchone()
            except aiosqlite.Error as exc:
                raise DataAccessError(f"Query failed: {exc}") from exc

    async def _commit(self) -> None:
        # Writes inside transaction() are committed when the block exits
        if self._in_transaction:
            return
        try:
            await self.conn.commit()
        except aiosqlite.Error as exc:
            raise DataAccessError(f"Commit failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    async def upsert_participant(self, participant: Participant) -> None:
        """Insert a participant or update the existing row with the same id."""
        await self._write(
            "INSERT INTO people (slack_id, fullname, username, active) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(slack_id) DO UPDATE SET "
            "fullname = excluded.fullname, username = excluded.username, "
            "active = excluded.active",
            (
                participant.slack_id,
                participant.fullname,
                participant.username,
                int(participant.active),
            ),
        )

    async def set_active(self, slack_id: str, active: bool) -> bool:
        """Flip the active flag. Returns False if the participant is unknown."""
        cur = await self._write(
            "UPDATE people SET active = ? WHERE slack_id = ?", (int(active), slack_id)
        )
        return cur.rowcount > 0

    async def get_participant(self, slack_id: str) -> Participant | None:
        row = await self._fetchone("SELECT * FROM people WHERE slack_id = ?", (slack_id,))
        if row is None:
            return None
        return _participant_from_row(row)

    async def list_participants(self) -> list[Participant]:
        rows = await self._fetchall("SELECT * FROM people ORDER BY fullname, slack_id")
        return [_participant_from_row(r) for r in rows]

    async def list_active_participants(self) -> list[Participant]:
        rows = await self._fetchall(
            "SELECT * FROM people WHERE active = 1 ORDER BY fullname, slack_id"
        )
        return [_participant_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Meeting ledger
    # ------------------------------------------------------------------

    async def record_meeting(
        self,
        initiator_id: str,
        partner_id: str,
        comment: str = "",
    ) -> MeetingRecord | None:
        """Record that *initiator_id* met *partner_id*.

        Returns the stored record, or None when the same direction was
        already recorded. Raises ``SelfPairingError`` for a self-meeting.
        """
        if initiator_id == partner_id:
            raise SelfPairingError(f"{initiator_id} cannot record a one-on-one with themself")

        async with self._session():
            existing = await self._fetchone(
                "SELECT id FROM records WHERE initiator_id = ? AND partner_id = ?",
                (initiator_id, partner_id),
            )
            if existing is not None:
                return None

            record = MeetingRecord(
                initiator_id=initiator_id, partner_id=partner_id, comment=comment
            )
            cur = await self._write(
                "INSERT INTO records (initiator_id, partner_id, completed_at, comment) "
                "VALUES (?, ?, ?, ?)",
                (
                    record.initiator_id,
                    record.partner_id,
                    record.completed_at.isoformat(),
                    record.comment,
                ),
            )
        record.id = cur.lastrowid
        logger.info("Recorded one-on-one %s -> %s", initiator_id, partner_id)
        return record

    async def list_records(self) -> list[MeetingRecord]:
        rows = await self._fetchall("SELECT * FROM records ORDER BY id")
        return [
            MeetingRecord(
                id=r["id"],
                initiator_id=r["initiator_id"],
                partner_id=r["partner_id"],
                completed_at=r["completed_at"],
                comment=r["comment"],
            )
            for r in rows
        ]

    async def count_meetings_initiated_by(self, slack_id: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) AS cnt FROM records WHERE initiator_id = ?", (slack_id,)
        )
        return row["cnt"] if row else 0

    async def has_any_meeting_record(self, slack_id: str) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM records WHERE initiator_id = ? OR partner_id = ? LIMIT 1",
            (slack_id, slack_id),
        )
        return row is not None

    async def has_meeting_between(self, first_id: str, second_id: str) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM records "
            "WHERE (initiator_id = ? AND partner_id = ?) "
            "OR (initiator_id = ? AND partner_id = ?) LIMIT 1",
            (first_id, second_id, second_id, first_id),
        )
        return row is not None

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Participants ranked by mutually confirmed meetings, most first."""
        rows = await self._fetchall(
            "SELECT p.slack_id, p.fullname, p.username, COUNT(r1.id) AS n "
            "FROM people p "
            "JOIN records r1 ON r1.initiator_id = p.slack_id "
            "JOIN records r2 ON r2.initiator_id = r1.partner_id "
            "AND r2.partner_id = r1.initiator_id "
            "GROUP BY p.slack_id ORDER BY n DESC, p.fullname ASC LIMIT ?",
            (limit,),
        )
        return [
            LeaderboardEntry(
                slack_id=r["slack_id"],
                fullname=r["fullname"],
                username=r["username"],
                completed=r["n"],
            )
            for r in rows
        ]

    async def get_unmet(self, slack_id: str) -> list[str]:
        """Active people with no record in either direction with *slack_id*."""
        rows = await self._fetchall(
            "SELECT slack_id FROM people "
            "WHERE active = 1 AND slack_id != ? "
            "AND slack_id NOT IN (SELECT partner_id FROM records WHERE initiator_id = ?) "
            "AND slack_id NOT IN (SELECT initiator_id FROM records WHERE partner_id = ?) "
            "ORDER BY fullname ASC",
            (slack_id, slack_id, slack_id),
        )
        return [r["slack_id"] for r in rows]

    async def get_completed(self, slack_id: str) -> list[CompletedMeeting]:
        """Meetings *slack_id* reported, flagged when the partner reported too."""
        rows = await self._fetchall(
            "SELECT r.partner_id, EXISTS ("
            "  SELECT 1 FROM records r2 "
            "  WHERE r2.initiator_id = r.partner_id AND r2.partner_id = r.initiator_id"
            ") AS also_recorded "
            "FROM records r WHERE r.initiator_id = ? ORDER BY r.id",
            (slack_id,),
        )
        return [
            CompletedMeeting(
                partner_id=r["partner_id"], also_recorded=bool(r["also_recorded"])
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Weekly assignments
    # ------------------------------------------------------------------

    async def clear_assignments(self) -> None:
        await self._write("DELETE FROM weekly")

    async def insert_assignment(self, subject_id: str, partner_id: str) -> None:
        await self._write(
            "INSERT INTO weekly (subject_id, partner_id) VALUES (?, ?)",
            (subject_id, partner_id),
        )

    async def count_assignments_for_subject(self, slack_id: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) AS cnt FROM weekly WHERE subject_id = ?", (slack_id,)
        )
        return row["cnt"] if row else 0

    async def list_assignments_for_subject(self, slack_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT partner_id FROM weekly WHERE subject_id = ? ORDER BY rowid",
            (slack_id,),
        )
        return [r["partner_id"] for r in rows]

    async def list_assignments(self) -> list[Assignment]:
        rows = await self._fetchall("SELECT * FROM weekly ORDER BY rowid")
        return [
            Assignment(subject_id=r["subject_id"], partner_id=r["partner_id"])
            for r in rows
        ]


def _participant_from_row(row: aiosqlite.Row) -> Participant:
    return Participant(
        slack_id=row["slack_id"],
        fullname=row["fullname"],
        username=row["username"],
        active=bool(row["active"]),
    )
