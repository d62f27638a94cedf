"""Slack Web API client.

Every call is a form-encoded POST answered with an ``{"ok": ..., "error": ...}``
envelope. Requests share one ``httpx.AsyncClient`` and are bounded by a
capacity limiter so a burst of responses cannot exceed the configured number
of in-flight requests. Nothing is retried here: a rate-limited call raises
``SlackRetryAfter`` and the caller decides what to do.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import IO, Any, Protocol

import anyio
import httpx

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://slack.com/api/"
CONVERSATION_TYPES = "public_channel,private_channel,mpim,im"

UploadContent = str | bytes | IO[bytes]


class SlackApiError(RuntimeError):
    """The Web API answered ``ok: false``."""

    def __init__(self, error: str, response: dict[str, Any] | None = None) -> None:
        super().__init__(error)
        self.error = error
        self.response = response or {}


class SlackRetryAfter(SlackApiError):
    def __init__(self, retry_after: float) -> None:
        super().__init__("ratelimited")
        self.retry_after = retry_after


class WebApi(Protocol):
    """The part of the Web API the robot and its responses call."""

    async def auth_test(self) -> dict[str, Any]: ...

    async def users_list(self) -> list[dict[str, Any]]: ...

    async def conversations_list(self) -> list[dict[str, Any]]: ...

    async def post_message(
        self,
        channel: str,
        *,
        text: str | None = None,
        attachments: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]: ...

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> dict[str, Any]: ...

    async def get_reactions(self, channel: str, timestamp: str) -> dict[str, Any]: ...

    async def open_direct(self, user: str) -> str: ...

    async def open_multiparty(self, users: Sequence[str]) -> str: ...

    async def upload_file(
        self, channels: str, filename: str, content: UploadContent
    ) -> dict[str, Any]: ...

    async def close(self) -> None: ...


def retry_after_from_response(response: httpx.Response) -> float:
    try:
        return float(response.headers.get("Retry-After", "1"))
    except ValueError:
        return 1.0


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_stream(content: UploadContent) -> bool:
    return not isinstance(content, str)


class SlackApi:
    def __init__(
        self,
        token: str,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_BASE_URL,
        max_request_concurrency: int = 5,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/") + "/"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0)
        self.max_request_concurrency = max_request_concurrency
        self._limiter: anyio.CapacityLimiter | None = None

    def _get_limiter(self) -> anyio.CapacityLimiter:
        # created lazily: a limiter belongs to the event loop that first uses it
        if self._limiter is None:
            self._limiter = anyio.CapacityLimiter(self.max_request_concurrency)
        return self._limiter

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = {k: _form_value(v) for k, v in (params or {}).items() if v is not None}
        headers = {"Authorization": f"Bearer {self._token}"}

        async with self._get_limiter():
            try:
                response = await self._client.post(
                    self._base_url + method,
                    data=data,
                    files=files,
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.warning("api.request_failed", method=method, error=str(exc))
                raise

        if response.status_code == 429:
            retry_after = retry_after_from_response(response)
            logger.warning("api.rate_limited", method=method, retry_after=retry_after)
            raise SlackRetryAfter(retry_after)

        payload = response.json()
        if not payload.get("ok"):
            error = payload.get("error") or "unknown_error"
            logger.warning("api.call_failed", method=method, error=error)
            raise SlackApiError(error, payload)

        logger.debug("api.call", method=method)
        return payload

    async def _paginate(self, method: str, key: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            payload = await self.call(method, {**params, "cursor": cursor})
            items.extend(payload.get(key) or [])
            cursor = (payload.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return items

    async def auth_test(self) -> dict[str, Any]:
        return await self.call("auth.test")

    async def users_list(self) -> list[dict[str, Any]]:
        return await self._paginate("users.list", "members", {"limit": 200})

    async def conversations_list(self) -> list[dict[str, Any]]:
        return await self._paginate(
            "conversations.list",
            "channels",
            {"limit": 200, "types": CONVERSATION_TYPES},
        )

    async def post_message(
        self,
        channel: str,
        *,
        text: str | None = None,
        attachments: Sequence[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"channel": channel, "text": text, "as_user": True}
        if attachments is not None:
            params["attachments"] = json.dumps(list(attachments))
        return await self.call("chat.postMessage", params)

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> dict[str, Any]:
        return await self.call(
            "reactions.add",
            {"channel": channel, "timestamp": timestamp, "name": name},
        )

    async def get_reactions(self, channel: str, timestamp: str) -> dict[str, Any]:
        return await self.call("reactions.get", {"channel": channel, "timestamp": timestamp})

    async def open_direct(self, user: str) -> str:
        payload = await self.call("conversations.open", {"users": user})
        return payload["channel"]["id"]

    async def open_multiparty(self, users: Sequence[str]) -> str:
        payload = await self.call("conversations.open", {"users": ",".join(users)})
        return payload["channel"]["id"]

    async def upload_file(
        self, channels: str, filename: str, content: UploadContent
    ) -> dict[str, Any]:
        """Upload a file or a text snippet.

        Text content goes url-encoded in the ``content`` field; bytes and
        binary streams go multipart in the ``file`` field.
        """
        params = {"channels": channels, "filename": filename}
        if is_stream(content):
            return await self.call("files.upload", params, files={"file": (filename, content)})
        return await self.call("files.upload", {**params, "content": content})
