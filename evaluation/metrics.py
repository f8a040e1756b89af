"""Cycle metrics – how recommendations and meetings are spread over the roster."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from data.models import Assignment, MeetingRecord, Participant
from evaluation.validators import met_pairs_from_records


@dataclass
class CycleMetrics:
    """Summary of one weekly cycle."""

    participants: int = 0
    assignment_pairs: int = 0
    # recommendations received -> number of participants
    load_distribution: dict[int, int] = field(default_factory=dict)
    mutual_meetings: int = 0
    one_sided_meetings: int = 0
    pair_coverage: float = 0.0

    @property
    def without_recommendations(self) -> int:
        return self.load_distribution.get(0, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "participants": self.participants,
            "assignment_pairs": self.assignment_pairs,
            "load_distribution": dict(sorted(self.load_distribution.items())),
            "without_recommendations": self.without_recommendations,
            "mutual_meetings": self.mutual_meetings,
            "one_sided_meetings": self.one_sided_meetings,
            "pair_coverage": round(self.pair_coverage, 3),
        }


def assignment_load(
    participants: list[Participant],
    assignments: list[Assignment],
) -> dict[str, int]:
    """Recommendations received per participant, zero-filled for the roster."""
    counts = Counter(a.subject_id for a in assignments)
    return {p.slack_id: counts.get(p.slack_id, 0) for p in participants}


def compute_cycle_metrics(
    participants: list[Participant],
    assignments: list[Assignment],
    records: list[MeetingRecord],
) -> CycleMetrics:
    """Compute metrics for the active *participants* of the current cycle."""
    load = assignment_load(participants, assignments)
    distribution = Counter(load.values())

    directed = {(r.initiator_id, r.partner_id) for r in records}
    mutual = sum(1 for a, b in directed if a < b and (b, a) in directed)
    one_sided = sum(1 for a, b in directed if (b, a) not in directed)

    roster = {p.slack_id for p in participants}
    possible = len(roster) * (len(roster) - 1) // 2
    met_in_roster = {
        pair for pair in met_pairs_from_records(records)
        if len(pair) == 2 and pair <= roster
    }

    return CycleMetrics(
        participants=len(participants),
        assignment_pairs=len(assignments) // 2,
        load_distribution=dict(distribution),
        mutual_meetings=mutual,
        one_sided_meetings=one_sided,
        pair_coverage=len(met_in_roster) / possible if possible else 0.0,
    )
