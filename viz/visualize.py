"""Cycle visualization – charts and a plain-text report.

Generates matplotlib charts for the leaderboard and the weekly assignment
load, and exports a text report listing every participant's partners.
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from data.models import Assignment, LeaderboardEntry, Participant
from evaluation.metrics import CycleMetrics, assignment_load

logger = logging.getLogger(__name__)

# Bar colour per number of recommendations received
_LOAD_COLOURS: dict[int, str] = {
    0: "#F44336",
    1: "#FF9800",
    2: "#4CAF50",
}


class CycleVisualizer:
    """Generate charts and reports for the current weekly cycle."""

    def __init__(self, output_dir: str | Path = "viz/output") -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_all(
        self,
        participants: list[Participant],
        assignments: list[Assignment],
        leaderboard: list[LeaderboardEntry],
        metrics: CycleMetrics,
    ) -> list[Path]:
        """Generate both charts and the text report. Returns file paths."""
        return [
            self.plot_leaderboard(leaderboard),
            self.plot_assignment_load(participants, assignments),
            self.export_report(participants, assignments, metrics),
        ]

    # ------------------------------------------------------------------
    # Charts
    # ------------------------------------------------------------------

    def plot_leaderboard(self, entries: list[LeaderboardEntry]) -> Path:
        """Horizontal bar chart of mutually confirmed one-on-ones."""
        fig, ax = plt.subplots(figsize=(8, max(3, 0.4 * len(entries) + 1)))
        names = [e.fullname for e in reversed(entries)]
        values = [e.completed for e in reversed(entries)]

        ax.barh(names, values, color="#1976D2")
        ax.set_xlabel("Completed 1-on-1s")
        ax.set_title("One-on-One Leaderboard")
        ax.xaxis.set_major_locator(ticker.MaxNLocator(integer=True))
        plt.tight_layout()

        path = self.output_dir / "leaderboard.png"
        fig.savefig(path, dpi=150)
        plt.close(fig)
        logger.info("Saved %s", path)
        return path

    def plot_assignment_load(
        self,
        participants: list[Participant],
        assignments: list[Assignment],
    ) -> Path:
        """Bar chart of recommendations received per participant."""
        load = assignment_load(participants, assignments)
        names = {p.slack_id: p.fullname for p in participants}

        fig, ax = plt.subplots(figsize=(max(6, 0.5 * len(load) + 2), 4))
        labels = [names[slack_id] for slack_id in load]
        values = list(load.values())
        colours = [_LOAD_COLOURS.get(v, "#607D8B") for v in values]

        ax.bar(labels, values, color=colours)
        ax.set_ylabel("Recommendations")
        ax.set_title("Weekly Assignment Load")
        ax.yaxis.set_major_locator(ticker.MaxNLocator(integer=True))
        plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
        plt.tight_layout()

        path = self.output_dir / "assignment_load.png"
        fig.savefig(path, dpi=150)
        plt.close(fig)
        logger.info("Saved %s", path)
        return path

    # ------------------------------------------------------------------
    # Text report
    # ------------------------------------------------------------------

    def export_report(
        self,
        participants: list[Participant],
        assignments: list[Assignment],
        metrics: CycleMetrics,
    ) -> Path:
        """Export a plain-text report of the cycle."""
        names = {p.slack_id: p.fullname for p in participants}
        partners: dict[str, list[str]] = {p.slack_id: [] for p in participants}
        for a in assignments:
            partners.setdefault(a.subject_id, []).append(a.partner_id)

        lines = [
            f"{'=' * 72}",
            "  WEEKLY ONE-ON-ONE RECOMMENDATIONS",
            f"{'=' * 72}",
            "",
        ]
        for slack_id, partner_ids in partners.items():
            name = names.get(slack_id, slack_id)
            if partner_ids:
                joined = ", ".join(names.get(pid, pid) for pid in partner_ids)
                lines.append(f"  {name:<24} -> {joined}")
            else:
                lines.append(f"  {name:<24} -> (no recommendations)")

        lines.append("")
        lines.append(f"{'─' * 72}")
        for key, value in metrics.to_dict().items():
            lines.append(f"  {key:<24}: {value}")
        lines.append(f"{'=' * 72}")

        path = self.output_dir / "cycle_report.txt"
        path.write_text("\n".join(lines), encoding="utf-8")
        logger.info("Saved %s", path)
        return path
