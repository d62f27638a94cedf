"""The robot: turns raw Slack events into listener invocations.

For each event the robot resolves sender and channel, drops its own messages
and ignored channels, finds the first matching listener, runs the listener's
ACLs and finally the handler. Every outcome is reported as an event::

    robot = Robot(token)
    robot.listen("hello :name([a-z]+)", greet)
    robot.on("error", report)
    await robot.start(events)
"""

from __future__ import annotations

import inspect
import re
from collections.abc import AsyncIterable, Sequence
from typing import TYPE_CHECKING, Any

import anyio
import httpx

from . import acls
from .api import SlackApi, SlackApiError, WebApi
from .events import EventEmitter, ResponseEvent, RobotEvent
from .listener import Acl, Handler, Listener, Listeners
from .logging import get_logger
from .message import MESSAGE, REACTION_ADDED, Message
from .pattern import Pattern
from .plugins import Plugin, help_generator
from .reconciler import EventReconciler
from .request import Request
from .response import OutboundResponse, Response
from .settings import ConfigError
from .store import Channel, DataStore, MemoryDataStore, User

if TYPE_CHECKING:
    from .settings import RobotSettings

logger = get_logger(__name__)


class Robot(EventEmitter):
    def __init__(
        self,
        token: str,
        *,
        api: WebApi | None = None,
        store: DataStore | None = None,
        concurrency: int = 1,
        max_pending_reactions: int | None = None,
    ) -> None:
        if not token:
            raise ConfigError("Invalid slack access token")

        super().__init__()
        self.bot: User | None = None
        self.acls = acls
        # per-robot plugin state, keyed by plugin
        self.state: dict[str, Any] = {}

        self._token = token
        self._vars: dict[str, Any] = {"concurrency": concurrency, "help_generator": False}
        self._plugins: list[Plugin] = []
        self._ignored_channels: list[str] = []
        self._api: WebApi = api or SlackApi(token)
        self._store: DataStore = store or MemoryDataStore()
        self._listeners = Listeners()
        self._reconciler = EventReconciler(max_pending=max_pending_reactions)
        self._logged_in: anyio.Event | None = None

    def _login_event(self) -> anyio.Event:
        # created lazily: robots are often built before the event loop starts
        if self._logged_in is None:
            self._logged_in = anyio.Event()
        return self._logged_in

    @classmethod
    def from_settings(cls, settings: "RobotSettings") -> "Robot":
        token = settings.token.get_secret_value()
        robot = cls(
            token,
            api=SlackApi(
                token,
                base_url=settings.api.base_url,
                max_request_concurrency=settings.api.max_request_concurrency,
            ),
            concurrency=settings.concurrency,
            max_pending_reactions=settings.max_pending_reactions,
        )
        robot.ignore(*settings.ignored_channels)
        robot.set("help_generator", settings.help_generator or None)
        return robot

    # Listener registration

    def listen(self, pattern: Pattern, callback: Handler) -> Listener:
        """Listen to text messages; shortcut for ``when("message", ...)``."""
        return self.when(MESSAGE, pattern, callback)

    def when(self, kind: str, pattern: Pattern, callback: Handler) -> Listener:
        if not kind or not isinstance(kind, str):
            raise TypeError("Invalid listener type")
        if not pattern or not isinstance(pattern, (str, re.Pattern)):
            raise TypeError("Invalid message to listen")
        if not callable(callback):
            raise TypeError("Callback must be a function")

        listener = self._listeners.add(kind, pattern, callback)
        logger.debug("robot.listener_added", listener=listener.id, kind=kind)
        return listener

    def get_all_listeners(self) -> list[Listener]:
        return self._listeners.get()  # type: ignore[return-value]

    def get_listener(self, listener_id: str) -> Listener | None:
        if not listener_id:
            return None
        return self._listeners.get(listener_id)  # type: ignore[return-value]

    def remove_listener(self, listener_id: str) -> bool:
        return self._listeners.remove(listener_id)

    # Configuration

    def ignore(self, *channels: str) -> None:
        """Never dispatch events from these channels, whatever the listener."""
        for channel in channels:
            if channel not in self._ignored_channels:
                self._ignored_channels.append(channel)

    def use(self, plugin: Plugin) -> None:
        if not callable(plugin):
            raise TypeError("Invalid plugin type")
        if plugin not in self._plugins:
            plugin(self)
            self._plugins.append(plugin)

    def set(self, name: str, value: Any) -> None:
        if value is None:
            return
        if name == "help_generator":
            self.use(help_generator(enable=bool(value)))
        self._vars[name] = value

    def get(self, name: str) -> Any:
        return self._vars.get(name)

    # Outbound without a listener

    async def to(self, target: str) -> OutboundResponse:
        """Return a response addressed to ``target`` once the robot is logged in.

        ``reaction`` and ``defer`` are unavailable: there is no message to
        react to.
        """
        await self._login_event().wait()
        return OutboundResponse(
            self._api,
            self._store,
            default_target=target,
            concurrency=self.get("concurrency"),
        )

    # Connection

    async def login(self) -> User:
        auth = await self._api.auth_test()
        if isinstance(self._store, MemoryDataStore):
            self._store.load(
                await self._api.users_list(),
                await self._api.conversations_list(),
            )

        bot = self._store.get_user_by_id(auth["user_id"])
        if bot is None:
            bot = User(id=auth["user_id"], name=auth.get("user", ""))
        self.bot = bot
        self._reconciler.bot_id = bot.id
        self._login_event().set()
        logger.info("robot.logged_in", name=bot.name, id=bot.id)
        return bot

    async def start(self, events: AsyncIterable[dict[str, Any]]) -> None:
        """Log in, then handle each raw event concurrently until the stream ends."""
        await self.login()
        async with anyio.create_task_group() as tg:
            async for raw in events:
                tg.start_soon(self.receive, raw)

    async def close(self) -> None:
        await self._api.close()

    # Inbound

    async def receive(self, raw: dict[str, Any]) -> None:
        """Route one raw event from the stream."""
        kind = raw.get("type")

        if kind == MESSAGE and raw.get("subtype") == "message_changed":
            reconciled = self._reconciler.match(raw)
            if reconciled is not None:
                await self.dispatch(reconciled)
            return

        if kind == REACTION_ADDED:
            item = raw.get("item") or {}
            # reactions on files carry no channel until the file message is edited
            if item.get("type") != "message":
                self._reconciler.hold(raw)
                return
            if not await self._reacted_to_own_message(item):
                return
        elif kind != MESSAGE:
            logger.debug("robot.receive.skipped", kind=kind)
            return

        await self.dispatch(raw)

    async def dispatch(self, raw: dict[str, Any]) -> None:
        message = Message.parse(self.bot, self._store, raw)

        if message.from_ is None:
            self.emit(RobotEvent.MESSAGE_NO_SENDER, raw)
            return
        if message.to is None:
            self.emit(RobotEvent.MESSAGE_NO_CHANNEL, raw)
            return
        if self.bot is not None and message.from_.id == self.bot.id:
            self.emit(RobotEvent.OWN_MESSAGE, message)
            return
        if self._is_ignored(message.to):
            self.emit(RobotEvent.IGNORED_CHANNEL, message)
            return

        listener = self._listeners.find(message)
        if listener is None:
            self.emit(RobotEvent.NO_LISTENER_MATCH, message)
            return

        logger.info(
            "robot.dispatch",
            listener=listener.id,
            kind=message.type,
            user=message.from_.name,
            channel=message.to.id,
        )
        request = Request.build(message, listener)
        response = Response(
            self._api,
            self._store,
            default_target=message.to.id,
            message_timestamp=message.timestamp,
            concurrency=self.get("concurrency"),
        )
        response.on(
            ResponseEvent.TASK_ERROR,
            lambda err: self.emit(RobotEvent.RESPONSE_FAILED, err),
        )

        try:
            allowed = await self._check_acls(listener.acls, request, response)
        except Exception as exc:
            logger.error("robot.acl_failed", listener=listener.id, error=str(exc))
            self.emit(RobotEvent.ERROR, exc)
            return
        if not allowed:
            logger.debug("robot.dispatch.denied", listener=listener.id)
            return

        await self._handle_request(request, response, listener)

    def _is_ignored(self, channel: Channel) -> bool:
        if not channel.name:
            return False
        return any(channel.name in ignored for ignored in self._ignored_channels)

    async def _reacted_to_own_message(self, item: dict[str, Any]) -> bool:
        """Reaction events fire for any message; only the bot's own count."""
        if self.bot is None:
            return False
        try:
            payload = await self._api.get_reactions(item.get("channel", ""), item.get("ts", ""))
        except (SlackApiError, httpx.HTTPError) as exc:
            logger.debug("robot.reaction_lookup_failed", error=str(exc))
            return False
        return (payload.get("message") or {}).get("user") == self.bot.id

    async def _check_acls(
        self, acl_chain: Sequence[Acl], request: Request, response: Response
    ) -> bool:
        for acl in acl_chain:
            advanced = False

            def next_() -> None:
                nonlocal advanced
                advanced = True

            result = acl(request, response, next_)
            if inspect.isawaitable(result):
                await result
            if not advanced:
                return False
        return True

    async def _handle_request(
        self, request: Request, response: Response, listener: Listener
    ) -> None:
        try:
            result = listener.callback(request, response)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(
                "robot.handler_failed",
                listener=listener.id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self.emit(RobotEvent.ERROR, exc)
            return

        self.emit(RobotEvent.REQUEST_HANDLED, request)
