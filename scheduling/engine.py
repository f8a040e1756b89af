"""WeeklyAssignmentEngine – builds and delivers the weekly recommendations.

``generate`` wipes the assignment store and greedily pairs every active
participant with up to two people they have never met. ``dispatch`` sends
each participant their partners, one message at a time.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

from data.database import DataAccessError
from data.models import Assignment, Participant
from data.store import PairingStore
from evaluation.validators import AssignmentValidator, ValidationResult
from messaging.dispatcher import Dispatcher
from scheduling.priority import eligible_candidates, processing_order

logger = logging.getLogger(__name__)

MAX_ASSIGNMENTS_PER_CYCLE = 2
DEFAULT_SEND_INTERVAL = 2.0


@dataclass
class GenerationResult:
    """Outcome of one ``generate`` pass."""

    order: list[str]
    pairs: list[tuple[str, str]]
    status: str = "generated"
    validation: ValidationResult | None = None

    @property
    def assignments(self) -> list[Assignment]:
        """Every stored row, both directions of each pair."""
        rows: list[Assignment] = []
        for subject, partner in self.pairs:
            rows.append(Assignment(subject_id=subject, partner_id=partner))
            rows.append(Assignment(subject_id=partner, partner_id=subject))
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "participants": len(self.order),
            "pairs": [list(p) for p in self.pairs],
            "valid": self.validation.valid if self.validation else None,
        }


@dataclass
class DispatchReport:
    """Outcome of one ``dispatch`` run."""

    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    status: str = "sent"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "sent": len(self.sent), "failed": self.failed}


class WeeklyAssignmentEngine:
    """Generates and dispatches the weekly one-on-one recommendations.

    Parameters
    ----------
    store : PairingStore
        Roster, meeting ledger and assignment store.
    dispatcher : Dispatcher | None
        Delivery channel; only ``dispatch`` needs it.
    send_interval : float
        Seconds to wait between consecutive sends.
    max_per_subject : int
        Per-cycle cap on recommendations for one participant.
    rng : random.Random | None
        Source of randomness for partner selection.
    """

    def __init__(
        self,
        store: PairingStore,
        dispatcher: Dispatcher | None = None,
        *,
        send_interval: float = DEFAULT_SEND_INTERVAL,
        max_per_subject: int = MAX_ASSIGNMENTS_PER_CYCLE,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.send_interval = send_interval
        self.max_per_subject = max_per_subject
        self._rng = rng or random.Random()
        self._validator = AssignmentValidator(max_per_subject=max_per_subject)
        self._generate_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(self) -> GenerationResult:
        """Replace the assignment store with a fresh set of recommendations."""
        async with self._generate_lock:
            async with self.store.transaction():
                await self.store.clear_assignments()
                order = await processing_order(self.store)
                pairs = await self._assign(order)

            result = GenerationResult(
                order=[p.slack_id for p in order],
                pairs=pairs,
            )
            result.validation = await self._validate(result)

        logger.info(
            "Generated %d pair(s) for %d active participant(s)",
            len(pairs),
            len(order),
        )
        return result

    async def dispatch(self) -> DispatchReport:
        """Send every active participant their recommendations, in roster order."""
        if self.dispatcher is None:
            raise RuntimeError("No dispatcher configured for this engine.")

        # One snapshot read before any send; a concurrent generate is either
        # fully visible or not at all
        async with self.store.transaction():
            participants = await self.store.list_active_participants()
            outbox = [
                (p.slack_id, await self.store.list_assignments_for_subject(p.slack_id))
                for p in participants
            ]

        report = DispatchReport()
        for index, (participant_id, partner_ids) in enumerate(outbox):
            if index > 0:
                await asyncio.sleep(self.send_interval)
            try:
                await self.dispatcher.send_recommendations(participant_id, partner_ids)
            except DataAccessError:
                raise
            except Exception:
                logger.exception("Failed to send recommendations to %s", participant_id)
                report.failed.append(participant_id)
            else:
                report.sent.append(participant_id)

        logger.info(
            "Dispatched recommendations: %d sent, %d failed",
            len(report.sent),
            len(report.failed),
        )
        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _assign(self, order: list[Participant]) -> list[tuple[str, str]]:
        """Walk *order* and pick partners for each participant in turn."""
        pairs: list[tuple[str, str]] = []
        for participant in order:
            subject_id = participant.slack_id
            already = await self.store.count_assignments_for_subject(subject_id)
            needed = self.max_per_subject - already
            if needed <= 0:
                logger.debug("%s already has %d assignment(s); skipping", subject_id, already)
                continue

            candidates = await eligible_candidates(
                self.store, subject_id, order, self.max_per_subject
            )
            chosen = self._rng.sample(candidates, min(needed, len(candidates)))
            for partner_id in chosen:
                await self.store.insert_assignment(subject_id, partner_id)
                await self.store.insert_assignment(partner_id, subject_id)
                pairs.append((subject_id, partner_id))

            logger.debug(
                "%s: %d needed, %d eligible, %d chosen",
                subject_id,
                needed,
                len(candidates),
                len(chosen),
            )
        return pairs

    async def _validate(self, result: GenerationResult) -> ValidationResult:
        met = {
            frozenset(pair)
            for pair in result.pairs
            if await self.store.has_meeting_between(*pair)
        }
        return self._validator.validate(result.assignments, met_pairs=met)
