"""FastAPI server exposing the weekly triggers and the Slack endpoints.

Run with: python cli.py serve
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.security import verify_bearer_token, verify_slack_signature
from commands.handlers import CommandHandler, SlashCommand
from data.database import DataAccessError, OneOnOneDatabase
from messaging.dispatcher import SlackDispatcher
from messaging.slack_client import SlackClient
from scheduling.engine import DEFAULT_SEND_INTERVAL, WeeklyAssignmentEngine

logger = logging.getLogger(__name__)


def create_app(
    config: dict[str, Any] | None = None,
    *,
    db: OneOnOneDatabase | None = None,
    slack: SlackClient | None = None,
) -> FastAPI:
    """Wire the database, Slack client, engine and command handler into an app.

    A *db* or *slack* passed in is left open on shutdown; ones built here
    from *config* are closed. The Slack signing secret and the trigger
    token are read from the environment variables named in the config;
    when one is unset the matching endpoints accept unauthenticated
    requests.
    """
    cfg = config or {}
    slack_cfg = cfg.get("slack", {})
    server_cfg = cfg.get("server", {})
    admin_user_id = slack_cfg.get("admin_user_id", "")
    send_interval = cfg.get("dispatch", {}).get("send_interval", DEFAULT_SEND_INTERVAL)
    signing_secret = os.getenv(slack_cfg.get("signing_secret_env", "SLACK_SIGNING_SECRET") or "")
    trigger_token = os.getenv(server_cfg.get("trigger_token_env", "ONEONONE_TRIGGER_TOKEN") or "")

    if not signing_secret:
        logger.warning("No Slack signing secret set; /command and /actions are unverified")
    if not trigger_token:
        logger.warning("No trigger token set; /genWeekly and /sendWeekly are open")

    owns_db = db is None
    owns_slack = slack is None
    database = db or OneOnOneDatabase(cfg.get("database", {}).get("path", "data/oneonones.db"))
    client = slack or SlackClient.from_config(cfg)

    engine = WeeklyAssignmentEngine(
        database,
        SlackDispatcher(client, admin_user_id=admin_user_id),
        send_interval=send_interval,
    )
    commands = CommandHandler(database, client, admin_user_id=admin_user_id)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not database.connected:
            await database.connect()
        try:
            yield
        finally:
            if owns_db:
                await database.close()
            if owns_slack:
                await client.close()

    async def require_slack_signature(request: Request) -> None:
        if not signing_secret:
            return
        body = await request.body()
        if not verify_slack_signature(
            signing_secret,
            request.headers.get("X-Slack-Request-Timestamp", ""),
            body,
            request.headers.get("X-Slack-Signature", ""),
        ):
            logger.warning("Rejected unsigned request to %s", request.url.path)
            raise HTTPException(status_code=401, detail="Invalid Slack signature")

    async def require_trigger_token(request: Request) -> None:
        if not trigger_token:
            return
        if not verify_bearer_token(trigger_token, request.headers.get("Authorization", "")):
            logger.warning("Rejected unauthenticated trigger %s", request.url.path)
            raise HTTPException(status_code=401, detail="Invalid trigger token")

    app = FastAPI(title="One-on-One Bot", lifespan=lifespan)
    app.state.db = database
    app.state.slack = client
    app.state.engine = engine
    app.state.commands = commands

    @app.exception_handler(DataAccessError)
    async def data_access_error(request: Request, exc: DataAccessError) -> JSONResponse:
        logger.error("Data access failed on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"status": "error", "detail": str(exc)})

    @app.get("/")
    def root() -> dict[str, str]:
        return {"status": "ok", "message": "One-on-One Bot"}

    @app.get("/genWeekly", dependencies=[Depends(require_trigger_token)])
    async def gen_weekly() -> dict[str, Any]:
        """Regenerate this week's recommendations."""
        result = await engine.generate()
        return result.to_dict()

    @app.get("/sendWeekly", dependencies=[Depends(require_trigger_token)])
    async def send_weekly() -> dict[str, Any]:
        """Send this week's recommendations to every active participant."""
        report = await engine.dispatch()
        return report.to_dict()

    @app.post("/command", dependencies=[Depends(require_slack_signature)])
    async def command(request: Request) -> Response:
        form = await request.form()
        try:
            cmd = SlashCommand.model_validate({k: str(v) for k, v in form.items()})
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="Malformed slash command") from exc
        await commands.handle_command(cmd)
        return Response(status_code=200)

    @app.post("/actions", dependencies=[Depends(require_slack_signature)])
    async def actions(request: Request) -> Response:
        form = await request.form()
        try:
            payload = json.loads(str(form.get("payload", "")))
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=400, detail="Malformed payload") from exc
        await commands.handle_dialog(payload)
        return Response(status_code=200)

    return app
