"""Tests for messaging.slack_client and messaging.dispatcher."""

from __future__ import annotations

import json

import httpx
import pytest

from messaging.dispatcher import SlackDispatcher, compose_recommendation_message
from messaging.slack_client import SlackApiError, SlackClient
from tests.conftest import FakeSlackClient


def _client(handler, **kwargs) -> SlackClient:
    return SlackClient(
        token="xoxb-test",
        base_url="https://slack.test/api/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSlackClient:
    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("SLACK_BOT_TOKEN", raising=False)
        with pytest.raises(ValueError, match="No Slack token"):
            SlackClient()

    def test_token_from_env(self, monkeypatch):
        monkeypatch.setenv("CUSTOM_SLACK_TOKEN", "xoxb-env")
        client = SlackClient(token_env="CUSTOM_SLACK_TOKEN")
        assert client.token == "xoxb-env"

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "xoxb-cfg")
        client = SlackClient.from_config(
            {"slack": {"token_env": "BOT_TOKEN", "max_retries": 5, "timeout": 7}}
        )
        assert client.token == "xoxb-cfg"
        assert client.max_retries == 5
        assert client.timeout == 7

    @pytest.mark.asyncio
    async def test_post_message_sends_json_with_bearer(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "ts": "1.0"})

        client = _client(handler)
        data = await client.post_message("C1", "hello")
        await client.close()

        assert data["ok"] is True
        assert seen[0].url.path == "/api/chat.postMessage"
        assert seen[0].headers["Authorization"] == "Bearer xoxb-test"
        assert json.loads(seen[0].content) == {"channel": "C1", "text": "hello"}

    @pytest.mark.asyncio
    async def test_ephemeral_and_dialog_payloads(self):
        bodies: dict[str, dict] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            bodies[request.url.path.rsplit("/", 1)[-1]] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        client = _client(handler)
        await client.post_ephemeral("C1", "U1", "psst")
        await client.open_dialog("T1", {"callback_id": "cb"})
        await client.close()

        assert bodies["chat.postEphemeral"] == {"channel": "C1", "user": "U1", "text": "psst"}
        assert bodies["dialog.open"]["trigger_id"] == "T1"
        assert json.loads(bodies["dialog.open"]["dialog"]) == {"callback_id": "cb"}

    @pytest.mark.asyncio
    async def test_api_error_not_retried(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json={"ok": False, "error": "channel_not_found"})

        client = _client(handler, max_retries=3)
        with pytest.raises(SlackApiError, match="channel_not_found") as exc_info:
            await client.send_dm("U404", "hi")
        await client.close()

        assert exc_info.value.error == "channel_not_found"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_transport_errors_retried(self, monkeypatch):
        waits: list[float] = []

        async def fake_sleep(delay: float) -> None:
            waits.append(delay)

        monkeypatch.setattr("messaging.slack_client.asyncio.sleep", fake_sleep)
        responses = iter([
            httpx.Response(500),
            httpx.Response(429),
            httpx.Response(200, json={"ok": True}),
        ])

        client = _client(lambda request: next(responses), max_retries=3)
        data = await client.post_message("C1", "retry me")
        await client.close()

        assert data == {"ok": True}
        assert waits == [2, 4]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, monkeypatch):
        async def fake_sleep(delay: float) -> None:
            return None

        monkeypatch.setattr("messaging.slack_client.asyncio.sleep", fake_sleep)
        client = _client(lambda request: httpx.Response(503), max_retries=2)
        with pytest.raises(SlackApiError, match="all 2 attempts failed"):
            await client.post_message("C1", "never")
        await client.close()


class TestRecommendationMessage:
    def test_with_partners(self):
        text = compose_recommendation_message("U1", ["U2", "U3"], admin_user_id="UADMIN")
        lines = text.splitlines()
        assert lines[0] == "Hi <@U1>! This week your recommended one-on-ones are with:"
        assert lines[1:3] == ["- <@U2>", "- <@U3>"]
        assert "no consequences" in text
        assert "<@UADMIN>" in text

    def test_without_partners(self):
        text = compose_recommendation_message("U1", [])
        assert text.startswith("Hi <@U1>! You do not have any recommended one-on-ones this week!")
        assert "- <@" not in text
        assert "Please let" not in text


class TestSlackDispatcher:
    @pytest.mark.asyncio
    async def test_sends_direct_message(self, fake_slack: FakeSlackClient):
        dispatcher = SlackDispatcher(fake_slack, admin_user_id="UADMIN")  # type: ignore[arg-type]
        await dispatcher.send_recommendations("U1", ["U2"])

        method, payload = fake_slack.calls[0]
        assert method == "chat.postMessage"
        assert payload["channel"] == "U1"
        assert "- <@U2>" in payload["text"]
