"""Slash command and dialog handling.

``/record`` opens the record dialog, ``/oneonones`` shows the leaderboard,
``/whonext`` lists people the user has not met and ``/completed`` shows
which of the user's meetings the partner confirmed. Every reply is an
ephemeral message in the channel the command came from.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from data.database import OneOnOneDatabase, SelfPairingError
from data.models import CompletedMeeting, LeaderboardEntry
from messaging.slack_client import SlackClient

logger = logging.getLogger(__name__)

RECORD_CALLBACK_ID = "oneonone_submit"

RECORD_DIALOG: dict[str, Any] = {
    "callback_id": RECORD_CALLBACK_ID,
    "title": "Record one-on-one",
    "submit_label": "Record",
    "elements": [
        {
            "type": "select",
            "label": "Partner",
            "name": "user",
            "data_source": "users",
            "placeholder": "Who you did your one-on-one with",
        },
        {
            "type": "text",
            "label": "comment",
            "name": "comment",
            "placeholder": "From Seattle, played guitar in high school, chemistry major.",
            "hint": "Write down a couple of things you learned about them.",
            "optional": True,
        },
    ],
}

LEADERBOARD_SIZE = 10


class SlashCommand(BaseModel):
    """Form fields Slack posts for a slash command."""

    command: str
    user_id: str
    channel_id: str
    user_name: str = ""
    text: str = ""
    trigger_id: str = ""


class DialogSubmission(BaseModel):
    """The parts of a dialog submission payload the bot uses."""

    callback_id: str
    user_id: str
    channel_id: str
    submission: dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DialogSubmission":
        return cls(
            callback_id=payload.get("callback_id", ""),
            user_id=payload.get("user", {}).get("id", ""),
            channel_id=payload.get("channel", {}).get("id", ""),
            submission=payload.get("submission") or {},
        )


# ---------------------------------------------------------------------------
# Reply formatting
# ---------------------------------------------------------------------------

def format_leaderboard(entries: list[LeaderboardEntry]) -> str:
    lines = ["```Rank   Name             Completed 1-on-1s"]
    for rank, entry in enumerate(entries, start=1):
        lines.append(f"{f'{rank}.':<7}{entry.fullname:<17}{entry.completed}")
    return "\n".join(lines) + "\n```"


def format_unmet(slack_ids: list[str]) -> str:
    if not slack_ids:
        return "You have had a one-on-one with everyone!"
    lines = ["You have not had a one-on-one with:"]
    lines.extend(f"- <@{slack_id}>" for slack_id in slack_ids)
    return "\n".join(lines)


def format_completed(meetings: list[CompletedMeeting]) -> str:
    if not meetings:
        return "You have not completed any one-on-ones."
    lines = [
        "You have had one-on-ones with the following. "
        "There is a check if they have recorded and an X if not."
    ]
    for meeting in meetings:
        mark = "✔️" if meeting.also_recorded else "❌"
        lines.append(f"- <@{meeting.partner_id}> {mark}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------

class CommandHandler:
    """Routes slash commands and dialog submissions to ledger queries."""

    def __init__(
        self,
        db: OneOnOneDatabase,
        slack: SlackClient,
        admin_user_id: str = "",
    ) -> None:
        self.db = db
        self.slack = slack
        self.admin_user_id = admin_user_id
        self._commands: dict[str, Callable[[SlashCommand], Awaitable[None]]] = {
            "/record": self._open_record_dialog,
            "/oneonones": self._leaderboard,
            "/whonext": self._who_next,
            "/completed": self._completed,
        }

    async def handle_command(self, cmd: SlashCommand) -> None:
        handler = self._commands.get(cmd.command)
        if handler is None:
            logger.info("Ignoring unknown command %r from %s", cmd.command, cmd.user_id)
            return
        logger.info("Command %s from %s", cmd.command, cmd.user_id)
        await handler(cmd)

    async def handle_dialog(self, payload: dict[str, Any]) -> None:
        submission = DialogSubmission.from_payload(payload)
        if submission.callback_id != RECORD_CALLBACK_ID:
            logger.info("Ignoring dialog callback %r", submission.callback_id)
            return

        partner_id = submission.submission.get("user", "")
        comment = submission.submission.get("comment") or ""
        text = await self.record(submission.user_id, partner_id, comment)
        await self.slack.post_ephemeral(submission.channel_id, submission.user_id, text)

    async def record(self, user_id: str, partner_id: str, comment: str = "") -> str:
        """Record a meeting and return the reply for the reporting user."""
        try:
            record = await self.db.record_meeting(user_id, partner_id, comment)
        except SelfPairingError:
            return "You cannot record an one-on-one with yourself!"

        if record is None:
            contact = f"<@{self.admin_user_id}>" if self.admin_user_id else "an admin"
            return (
                f"It looks like you already logged your one-on-one with <@{partner_id}>. "
                f"If this seems like an error please contact {contact}."
            )
        return f"Successfully logged your one-on-one with <@{partner_id}>!"

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _open_record_dialog(self, cmd: SlashCommand) -> None:
        await self.slack.open_dialog(cmd.trigger_id, RECORD_DIALOG)

    async def _leaderboard(self, cmd: SlashCommand) -> None:
        entries = await self.db.get_leaderboard(limit=LEADERBOARD_SIZE)
        await self._reply(cmd, format_leaderboard(entries))

    async def _who_next(self, cmd: SlashCommand) -> None:
        unmet = await self.db.get_unmet(cmd.user_id)
        await self._reply(cmd, format_unmet(unmet))

    async def _completed(self, cmd: SlashCommand) -> None:
        meetings = await self.db.get_completed(cmd.user_id)
        await self._reply(cmd, format_completed(meetings))

    async def _reply(self, cmd: SlashCommand, text: str) -> None:
        await self.slack.post_ephemeral(cmd.channel_id, cmd.user_id, text)
