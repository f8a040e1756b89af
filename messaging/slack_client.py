"""Async client for the Slack Web API.

Wraps ``httpx.AsyncClient`` with token resolution, retry logic for
transient transport failures, and Slack's ``{"ok": false}`` error envelope.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://slack.com/api/"


class SlackApiError(RuntimeError):
    """Slack answered a Web API call with ``ok: false``."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API {method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    """Minimal Slack Web API client used for messages and dialogs.

    Parameters
    ----------
    token : str | None
        Bot token; falls back to the environment variable *token_env*.
    token_env : str
        Name of the environment variable holding the token.
    base_url : str
        Web API root, overridable for tests or proxies.
    timeout : float
        Per-request timeout in seconds.
    max_retries : int
        Attempts per call for transport errors and non-2xx statuses.
    transport : httpx.AsyncBaseTransport | None
        Optional transport, e.g. ``httpx.MockTransport`` in tests.
    """

    name = "slack"

    def __init__(
        self,
        token: str | None = None,
        token_env: str = "SLACK_BOT_TOKEN",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        # Resolve token: explicit > env var > raise
        self.token = token or os.getenv(token_env or "")
        if not self.token:
            raise ValueError(
                f"No Slack token. Set {token_env!r} or pass token explicitly."
            )

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {self.token}"},
        )

    @classmethod
    def from_config(cls, cfg: dict[str, Any], **kwargs: Any) -> "SlackClient":
        """Build a client from the ``slack`` section of the YAML config."""
        slack_cfg = cfg.get("slack", {})
        kwargs.setdefault("token_env", slack_cfg.get("token_env", "SLACK_BOT_TOKEN"))
        kwargs.setdefault("base_url", slack_cfg.get("base_url", DEFAULT_BASE_URL))
        kwargs.setdefault("timeout", slack_cfg.get("timeout", 30))
        kwargs.setdefault("max_retries", slack_cfg.get("max_retries", 3))
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Invoke a Web API *method*, retrying transient failures."""
        last_exc: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                start = time.perf_counter()
                data = await self._call_api(method, payload)
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug("[slack] %s ok (%.0f ms)", method, elapsed)
                return data
            except httpx.HTTPError as exc:
                last_exc = exc
                if attempt == self.max_retries:
                    break
                wait = min(2**attempt, 16)
                logger.warning(
                    "[slack] %s attempt %d/%d failed (%s). Retrying in %ds …",
                    method,
                    attempt,
                    self.max_retries,
                    exc,
                    wait,
                )
                await asyncio.sleep(wait)

        raise SlackApiError(
            method, f"all {self.max_retries} attempts failed ({last_exc})"
        ) from last_exc

    async def post_message(self, channel: str, text: str) -> dict[str, Any]:
        return await self.call("chat.postMessage", {"channel": channel, "text": text})

    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict[str, Any]:
        return await self.call(
            "chat.postEphemeral", {"channel": channel, "user": user, "text": text}
        )

    async def send_dm(self, user: str, text: str) -> dict[str, Any]:
        """Direct-message *user*; posting to a user id opens the DM channel."""
        return await self.call("chat.postMessage", {"channel": user, "text": text})

    async def open_dialog(self, trigger_id: str, dialog: dict[str, Any]) -> dict[str, Any]:
        return await self.call(
            "dialog.open", {"trigger_id": trigger_id, "dialog": json.dumps(dialog)}
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _call_api(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(method, json=payload)
        response.raise_for_status()
        data = response.json()
        if not data.get("ok", False):
            raise SlackApiError(method, data.get("error", "unknown_error"))
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={str(self._client.base_url)!r})"
