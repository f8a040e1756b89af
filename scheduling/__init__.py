"""Scheduling layer – weekly assignment engine and priority ordering."""

from scheduling.engine import (
    DispatchReport,
    GenerationResult,
    MAX_ASSIGNMENTS_PER_CYCLE,
    WeeklyAssignmentEngine,
)
from scheduling.priority import eligible_candidates, processing_order

__all__ = [
    "DispatchReport",
    "GenerationResult",
    "MAX_ASSIGNMENTS_PER_CYCLE",
    "WeeklyAssignmentEngine",
    "eligible_candidates",
    "processing_order",
]
