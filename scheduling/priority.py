"""Processing priority and candidate selection for the weekly pass.

The order decides who gets first pick: people with no meeting history at
all go first (by name), then everyone else by how few meetings they have
initiated. Later participants only see the assignment state left behind by
earlier ones.
"""

from __future__ import annotations

import logging

from data.models import Participant
from data.store import PairingStore

logger = logging.getLogger(__name__)


async def processing_order(store: PairingStore) -> list[Participant]:
    """Return active participants in the order the weekly pass handles them."""
    actives = await store.list_active_participants()

    zero_history: list[Participant] = []
    some_history: list[tuple[int, Participant]] = []
    for participant in actives:
        if await store.has_any_meeting_record(participant.slack_id):
            initiated = await store.count_meetings_initiated_by(participant.slack_id)
            some_history.append((initiated, participant))
        else:
            zero_history.append(participant)

    zero_history.sort(key=lambda p: (p.fullname, p.slack_id))
    some_history.sort(key=lambda item: (item[0], item[1].fullname, item[1].slack_id))

    logger.debug(
        "Priority groups: %d without history, %d with history",
        len(zero_history),
        len(some_history),
    )
    return zero_history + [p for _, p in some_history]


async def eligible_candidates(
    store: PairingStore,
    subject_id: str,
    roster: list[Participant],
    max_per_subject: int = 2,
) -> list[str]:
    """Ids from *roster* that *subject_id* may be paired with right now.

    A candidate must not be the subject, must not already be one of the
    subject's partners this cycle, must have no meeting record with the
    subject in either direction, and must still be under the cap.
    """
    current = set(await store.list_assignments_for_subject(subject_id))
    candidates: list[str] = []
    for other in roster:
        if other.slack_id == subject_id or other.slack_id in current:
            continue
        if await store.has_meeting_between(subject_id, other.slack_id):
            continue
        if await store.count_assignments_for_subject(other.slack_id) >= max_per_subject:
            continue
        candidates.append(other.slack_id)
    return candidates
