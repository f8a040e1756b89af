"""Delivery of weekly recommendations to participants."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from messaging.slack_client import SlackClient

logger = logging.getLogger(__name__)

_FOOTER = (
    "Again, there are no consequences for not completing these. "
    "These are just to help you decide who to do a one-on-one with next!"
)


def compose_recommendation_message(
    participant_id: str,
    partner_ids: list[str],
    admin_user_id: str = "",
) -> str:
    """Build the weekly DM for *participant_id*."""
    if partner_ids:
        lines = [f"Hi <@{participant_id}>! This week your recommended one-on-ones are with:"]
        lines.extend(f"- <@{partner_id}>" for partner_id in partner_ids)
    else:
        lines = [f"Hi <@{participant_id}>! You do not have any recommended one-on-ones this week!"]

    lines.append(_FOOTER)
    if admin_user_id:
        lines.append(
            f"Please let <@{admin_user_id}> know if there are any issues "
            "(for example, if you were assigned someone you already did a one-on-one with)."
        )
    return "\n".join(lines)


class Dispatcher(ABC):
    """Sends one participant their recommended partners."""

    @abstractmethod
    async def send_recommendations(self, participant_id: str, partner_ids: list[str]) -> None:
        ...


class SlackDispatcher(Dispatcher):
    """Delivers recommendations as Slack direct messages."""

    def __init__(self, slack: SlackClient, admin_user_id: str = "") -> None:
        self.slack = slack
        self.admin_user_id = admin_user_id

    async def send_recommendations(self, participant_id: str, partner_ids: list[str]) -> None:
        text = compose_recommendation_message(participant_id, partner_ids, self.admin_user_id)
        await self.slack.send_dm(participant_id, text)
        logger.debug("Sent %d recommendation(s) to %s", len(partner_ids), participant_id)
