#!/usr/bin/env python3
"""Command-line interface for the one-on-one bot.

Usage examples:
    python cli.py add-person --slack-id U123 --name "Ada Lovelace"
    python cli.py generate
    python cli.py dispatch --interval 2
    python cli.py leaderboard
    python cli.py visualize
    python cli.py serve --port 25118
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
import yaml

from commands.handlers import LEADERBOARD_SIZE, format_leaderboard
from data.database import DataAccessError, OneOnOneDatabase
from data.models import Participant
from evaluation.metrics import compute_cycle_metrics
from messaging.dispatcher import SlackDispatcher
from messaging.slack_client import SlackClient
from scheduling.engine import DEFAULT_SEND_INTERVAL, WeeklyAssignmentEngine
from viz.visualize import CycleVisualizer


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(config_path: str = "config/default.yaml") -> dict[str, Any]:
    """Load and return the YAML config."""
    p = Path(config_path)
    if not p.exists():
        click.echo(f"Config not found: {p}. Using defaults.", err=True)
        return {}
    with open(p) as f:
        return yaml.safe_load(f) or {}


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _run_with_db(
    cfg: dict[str, Any],
    body: Callable[[OneOnOneDatabase], Awaitable[None]],
) -> None:
    """Open the configured database, run *body* against it, and close it."""

    async def _run() -> None:
        db_path = cfg.get("database", {}).get("path", "data/oneonones.db")
        db = OneOnOneDatabase(db_path)
        await db.connect()
        try:
            await body(db)
        finally:
            await db.close()

    try:
        asyncio.run(_run())
    except DataAccessError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_slack(cfg: dict[str, Any]) -> SlackClient:
    try:
        return SlackClient.from_config(cfg)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", default="config/default.yaml", help="Path to YAML config")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """One-on-One Bot – weekly one-on-one recommendations from the command line."""
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = _load_config(config)
    ctx.obj["config_path"] = config


# ---- roster ---------------------------------------------------------------

@cli.command("add-person")
@click.option("--slack-id", required=True, help="Slack user id")
@click.option("--name", "fullname", required=True, help="Display name")
@click.option("--username", default="", help="Slack handle")
@click.option("--inactive", is_flag=True, help="Add without enrolling in weekly pairing")
@click.pass_context
def add_person(
    ctx: click.Context,
    slack_id: str,
    fullname: str,
    username: str,
    inactive: bool,
) -> None:
    """Add a participant to the roster, or update an existing one."""

    async def _body(db: OneOnOneDatabase) -> None:
        await db.upsert_participant(
            Participant(
                slack_id=slack_id,
                fullname=fullname,
                username=username,
                active=not inactive,
            )
        )
        click.echo(f"Saved {fullname} ({slack_id}).")

    _run_with_db(ctx.obj["config"], _body)


@cli.command()
@click.option("--slack-id", required=True, help="Slack user id")
@click.pass_context
def deactivate(ctx: click.Context, slack_id: str) -> None:
    """Remove a participant from future weekly pairing."""

    async def _body(db: OneOnOneDatabase) -> None:
        if await db.set_active(slack_id, False):
            click.echo(f"Deactivated {slack_id}.")
        else:
            click.echo(f"Participant {slack_id} not found.", err=True)

    _run_with_db(ctx.obj["config"], _body)


# ---- weekly cycle ---------------------------------------------------------

@cli.command()
@click.pass_context
def generate(ctx: click.Context) -> None:
    """Regenerate this week's recommendations."""

    async def _body(db: OneOnOneDatabase) -> None:
        engine = WeeklyAssignmentEngine(db)
        result = await engine.generate()

        names = {p.slack_id: p.fullname for p in await db.list_participants()}
        click.echo(f"\n{'=' * 60}")
        click.echo(f"  WEEKLY ASSIGNMENTS – {result.status.upper()}")
        click.echo(f"{'=' * 60}")
        if not result.pairs:
            click.echo("  No pairs generated.")
        for subject, partner in result.pairs:
            click.echo(f"  {names.get(subject, subject):<25} <-> {names.get(partner, partner)}")

        metrics = compute_cycle_metrics(
            await db.list_active_participants(),
            await db.list_assignments(),
            await db.list_records(),
        )
        click.echo()
        for k, v in metrics.to_dict().items():
            click.echo(f"    {k:25s}: {v}")
        if result.validation and not result.validation.valid:
            for issue in result.validation.issues:
                click.echo(f"  WARNING: {issue}", err=True)

    _run_with_db(ctx.obj["config"], _body)


@cli.command()
@click.option("--interval", type=float, default=None, help="Seconds between messages")
@click.pass_context
def dispatch(ctx: click.Context, interval: float | None) -> None:
    """Send this week's recommendations to every active participant."""
    cfg = ctx.obj["config"]
    if interval is None:
        interval = cfg.get("dispatch", {}).get("send_interval", DEFAULT_SEND_INTERVAL)
    admin_user_id = cfg.get("slack", {}).get("admin_user_id", "")

    async def _body(db: OneOnOneDatabase) -> None:
        slack = _build_slack(cfg)
        try:
            engine = WeeklyAssignmentEngine(
                db,
                SlackDispatcher(slack, admin_user_id=admin_user_id),
                send_interval=interval,
            )
            report = await engine.dispatch()
        finally:
            await slack.close()
        click.echo(f"Sent {len(report.sent)} message(s), {len(report.failed)} failed.")
        for slack_id in report.failed:
            click.echo(f"  failed: {slack_id}", err=True)

    _run_with_db(cfg, _body)


@cli.command()
@click.pass_context
def assignments(ctx: click.Context) -> None:
    """List the current cycle's assignments."""

    async def _body(db: OneOnOneDatabase) -> None:
        participants = await db.list_active_participants()
        if not participants:
            click.echo("No active participants.")
            return

        click.echo(f"{'Name':<25} {'Recommended partners'}")
        click.echo(f"{'─' * 25} {'─' * 40}")
        names = {p.slack_id: p.fullname for p in await db.list_participants()}
        for p in participants:
            partners = await db.list_assignments_for_subject(p.slack_id)
            joined = ", ".join(names.get(pid, pid) for pid in partners) or "-"
            click.echo(f"{p.fullname:<25} {joined}")

    _run_with_db(ctx.obj["config"], _body)


@cli.command()
@click.option("--limit", default=LEADERBOARD_SIZE, type=int, help="Rows to show")
@click.pass_context
def leaderboard(ctx: click.Context, limit: int) -> None:
    """Show who has completed the most mutually confirmed one-on-ones."""

    async def _body(db: OneOnOneDatabase) -> None:
        entries = await db.get_leaderboard(limit=limit)
        if not entries:
            click.echo("No completed one-on-ones yet.")
            return
        click.echo(format_leaderboard(entries).strip("`"))

    _run_with_db(ctx.obj["config"], _body)


# ---- visualize ------------------------------------------------------------

@cli.command()
@click.option("--output-dir", default="viz/output", help="Where to write charts")
@click.pass_context
def visualize(ctx: click.Context, output_dir: str) -> None:
    """Generate charts and a text report for the current cycle."""

    async def _body(db: OneOnOneDatabase) -> None:
        participants = await db.list_active_participants()
        current = await db.list_assignments()
        metrics = compute_cycle_metrics(participants, current, await db.list_records())

        viz = CycleVisualizer(output_dir)
        paths = viz.generate_all(
            participants, current, await db.get_leaderboard(), metrics
        )
        click.echo(f"Generated {len(paths)} files in {viz.output_dir}/:")
        for p in paths:
            click.echo(f"  - {p.name}")

    _run_with_db(ctx.obj["config"], _body)


# ---- serve ----------------------------------------------------------------

@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HTTP server for Slack commands and weekly triggers."""
    import uvicorn

    from api.server import create_app

    cfg = ctx.obj["config"]
    server_cfg = cfg.get("server", {})
    try:
        app = create_app(cfg)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    uvicorn.run(
        app,
        host=host or server_cfg.get("host", "0.0.0.0"),
        port=port or server_cfg.get("port", 25118),
    )


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
