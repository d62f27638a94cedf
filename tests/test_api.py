"""Tests for the Slack Web API client."""

from __future__ import annotations

import json
from collections.abc import Callable
from urllib.parse import parse_qs

import httpx
import pytest

from slack_robot.api import SlackApi, SlackApiError, SlackRetryAfter, is_stream


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def _api(handler: Callable[[httpx.Request], httpx.Response]) -> SlackApi:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SlackApi("xoxb-secret", client=client, base_url="https://slack.test/api")


class TestCall:
    """Tests for SlackApi.call."""

    @pytest.mark.anyio
    async def test_posts_form_with_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "user_id": "UBOT"})

        api = _api(handler)
        payload = await api.call("auth.test", {"flag": True, "skip": None})

        assert payload == {"ok": True, "user_id": "UBOT"}
        assert str(seen[0].url) == "https://slack.test/api/auth.test"
        assert seen[0].headers["Authorization"] == "Bearer xoxb-secret"
        assert _form(seen[0]) == {"flag": "true"}

    @pytest.mark.anyio
    async def test_error_envelope_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False, "error": "channel_not_found"})

        with pytest.raises(SlackApiError) as exc_info:
            await _api(handler).call("chat.postMessage", {"channel": "C404"})
        assert exc_info.value.error == "channel_not_found"
        assert exc_info.value.response["ok"] is False

    @pytest.mark.anyio
    async def test_rate_limit_raises_retry_after(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "7"}, json={"ok": False})

        with pytest.raises(SlackRetryAfter) as exc_info:
            await _api(handler).call("chat.postMessage")
        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.error == "ratelimited"

    @pytest.mark.anyio
    async def test_transport_error_propagates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(httpx.ConnectError):
            await _api(handler).call("auth.test")


class TestMethods:
    """Tests for the typed Web API methods."""

    @pytest.mark.anyio
    async def test_users_list_follows_cursor(self) -> None:
        cursors: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            cursor = _form(request).get("cursor")
            cursors.append(cursor)
            if cursor is None:
                return httpx.Response(
                    200,
                    json={
                        "ok": True,
                        "members": [{"id": "U1", "name": "alice"}],
                        "response_metadata": {"next_cursor": "page2"},
                    },
                )
            return httpx.Response(
                200,
                json={
                    "ok": True,
                    "members": [{"id": "U2", "name": "bob"}],
                    "response_metadata": {"next_cursor": ""},
                },
            )

        members = await _api(handler).users_list()
        assert [m["id"] for m in members] == ["U1", "U2"]
        assert cursors == [None, "page2"]

    @pytest.mark.anyio
    async def test_post_message_encodes_attachments(self) -> None:
        forms: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            forms.append(_form(request))
            return httpx.Response(200, json={"ok": True})

        await _api(handler).post_message("C1", attachments=[{"title": "t"}])
        assert forms[0]["channel"] == "C1"
        assert forms[0]["as_user"] == "true"
        assert "text" not in forms[0]
        assert json.loads(forms[0]["attachments"]) == [{"title": "t"}]

    @pytest.mark.anyio
    async def test_open_direct_returns_channel_id(self) -> None:
        forms: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            forms.append(_form(request))
            return httpx.Response(200, json={"ok": True, "channel": {"id": "D9"}})

        api = _api(handler)
        assert await api.open_direct("U1") == "D9"
        assert await api.open_multiparty(["U1", "U2"]) == "D9"
        assert forms == [{"users": "U1"}, {"users": "U1,U2"}]

    @pytest.mark.anyio
    async def test_upload_text_is_url_encoded(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        await _api(handler).upload_file("C1", "notes.txt", "hello")
        assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"
        assert _form(seen[0]) == {"channels": "C1", "filename": "notes.txt", "content": "hello"}

    @pytest.mark.anyio
    async def test_upload_bytes_is_multipart(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        await _api(handler).upload_file("C1", "logo.png", b"\x89PNG")
        assert seen[0].headers["content-type"].startswith("multipart/form-data")
        assert b'name="file"; filename="logo.png"' in seen[0].content
        assert b"\x89PNG" in seen[0].content


class TestIsStream:
    """Tests for is_stream function."""

    def test_text_is_not_stream(self) -> None:
        assert is_stream("text") is False

    def test_bytes_is_stream(self) -> None:
        assert is_stream(b"data") is True
