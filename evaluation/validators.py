"""Validators for generated assignment sets."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from data.models import Assignment, MeetingRecord

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    issues: list[str]

    def __bool__(self) -> bool:
        return self.valid


def met_pairs_from_records(records: Iterable[MeetingRecord]) -> set[frozenset[str]]:
    """Unordered pairs that have a record in at least one direction."""
    return {frozenset((r.initiator_id, r.partner_id)) for r in records}


class AssignmentValidator:
    """Checks an assignment set against the weekly pairing rules."""

    def __init__(self, max_per_subject: int = 2) -> None:
        self.max_per_subject = max_per_subject

    def validate(
        self,
        assignments: Iterable[Assignment],
        met_pairs: set[frozenset[str]] | None = None,
    ) -> ValidationResult:
        """Check symmetry, the per-subject cap, self-pairing and repeats.

        *met_pairs* holds unordered pairs that already met; when omitted the
        repeat check is skipped.
        """
        pairs = [a.as_pair() for a in assignments]
        pair_set = set(pairs)
        issues: list[str] = []

        if len(pair_set) != len(pairs):
            dupes = sorted(p for p, n in Counter(pairs).items() if n > 1)
            issues.append(f"Duplicate assignments: {dupes}")

        for subject, partner in sorted(pair_set):
            if subject == partner:
                issues.append(f"Self-assignment for {subject}")
            if (partner, subject) not in pair_set:
                issues.append(f"Missing reverse of ({subject}, {partner})")
            if met_pairs is not None and frozenset((subject, partner)) in met_pairs:
                issues.append(f"{subject} and {partner} already have a meeting record")

        per_subject = Counter(subject for subject, _ in pairs)
        for subject, count in sorted(per_subject.items()):
            if count > self.max_per_subject:
                issues.append(
                    f"{subject} has {count} assignments "
                    f"(maximum {self.max_per_subject})"
                )

        if issues:
            logger.warning("Assignment validation failed: %s", "; ".join(issues))

        return ValidationResult(valid=len(issues) == 0, issues=issues)
