"""Evaluation framework – assignment validators and cycle metrics."""

from evaluation.metrics import CycleMetrics, assignment_load, compute_cycle_metrics
from evaluation.validators import (
    AssignmentValidator,
    ValidationResult,
    met_pairs_from_records,
)

__all__ = [
    "AssignmentValidator",
    "CycleMetrics",
    "ValidationResult",
    "assignment_load",
    "compute_cycle_metrics",
    "met_pairs_from_records",
]
