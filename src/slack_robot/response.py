"""Per-request outbound task queue.

Handlers describe what to send with ``text``, ``attachment``, ``upload`` and
``reaction``; every call only queues tasks. Nothing reaches Slack until
``send()`` flushes the queue, running at most ``concurrency`` tasks at a time.

Targets given by name are resolved when the task is queued. A user (or a list
of users) cannot be posted to directly: the task carries a ``DirectTarget`` or
``MultiPartyTarget`` and the conversation is opened right before the task
runs, after which the task is replaced by a copy addressed to the opened
conversation.
"""

from __future__ import annotations

import inspect
from collections import deque
from collections.abc import Awaitable, Callable, Generator, Sequence
from dataclasses import dataclass, replace
from typing import Any, Literal

import anyio

from .api import UploadContent, WebApi
from .events import EventEmitter, ResponseEvent
from .logging import get_logger
from .message import format_mentions
from .store import DataStore
from .util import strip_emoji

logger = get_logger(__name__)

TaskType = Literal["text", "attachment", "upload", "reaction"]

# C: public channel, G: private group or multi-party DM, D: direct message
ADDRESS_PREFIXES = ("C", "G", "D")
# U: user, W: enterprise grid user
USER_PREFIXES = ("U", "W")


@dataclass(frozen=True, slots=True)
class DirectTarget:
    """A user whose direct message conversation must be opened first."""

    user: str


@dataclass(frozen=True, slots=True)
class MultiPartyTarget:
    """Users whose multi-party direct message must be opened first."""

    users: tuple[str, ...]


Target = str | DirectTarget | MultiPartyTarget
TargetSpec = str | Sequence[str]


@dataclass(frozen=True, slots=True)
class Task:
    target: Target
    type: str
    value: Any

    @property
    def resolved(self) -> bool:
        return isinstance(self.target, str)


def is_address(target: str) -> bool:
    return target[:1] in ADDRESS_PREFIXES


def is_user_id(target: str) -> bool:
    return target[:1] in USER_PREFIXES


class DeferredWork:
    """Asynchronous work started from a handler before responding.

    Awaiting it runs the work once; ``send()`` runs it and then flushes the
    response. If the work fails the exception propagates and nothing is sent.
    """

    def __init__(self, response: "Response", work: Callable[[], Awaitable[Any] | Any]) -> None:
        self._response = response
        self._work = work
        self._finished = False
        self._result: Any = None

    async def _run(self) -> Any:
        if not self._finished:
            result = self._work()
            if inspect.isawaitable(result):
                result = await result
            self._result = result
            self._finished = True
        return self._result

    def __await__(self) -> Generator[Any, None, Any]:
        return self._run().__await__()

    async def send(self) -> None:
        await self._run()
        await self._response.send()


class Response(EventEmitter):
    def __init__(
        self,
        api: WebApi,
        store: DataStore,
        *,
        default_target: str,
        message_timestamp: str | None = None,
        concurrency: int = 1,
    ) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError("Concurrency must be a positive integer")
        super().__init__()
        self._api = api
        self._store = store
        self.default_target = default_target
        self.message_timestamp = message_timestamp
        self.concurrency = concurrency
        self.paused = True
        self._queue: deque[Task] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._queue)

    def text(self, value: str, *targets: TargetSpec) -> "Response":
        return self._enqueue("text", value, targets)

    def attachment(self, *args: Any) -> "Response":
        """Queue a message with attachments.

        ``attachment(text, body, *targets)`` or, without text,
        ``attachment(body, *targets)``. ``body`` is one attachment dict or a
        list of them.
        """
        if not args:
            raise TypeError("attachment() needs an attachment body")
        if isinstance(args[0], str):
            if len(args) < 2:
                raise TypeError("attachment() needs an attachment body")
            text, body, targets = args[0], args[1], args[2:]
        else:
            text, body, targets = None, args[0], args[1:]

        attachments = list(body) if isinstance(body, (list, tuple)) else [body]
        return self._enqueue("attachment", {"text": text, "attachments": attachments}, targets)

    def upload(self, filename: str, content: UploadContent, *targets: TargetSpec) -> "Response":
        return self._enqueue("upload", {"filename": filename, "content": content}, targets)

    def reaction(self, emoji: str) -> "Response":
        """React to the message being handled. Reactions always target it."""
        value = {
            "emoji": strip_emoji(emoji),
            "channel": self.default_target,
            "timestamp": self.message_timestamp,
        }
        self.add_task(Task(target=self.default_target, type="reaction", value=value))
        return self

    def defer(self, work: Callable[[], Awaitable[Any] | Any]) -> DeferredWork:
        return DeferredWork(self, work)

    def add_task(self, task: Task) -> None:
        self._queue.append(task)
        self.paused = True

    async def send(self) -> None:
        """Flush every queued task.

        Returns once each task has either finished or failed; failures are
        reported through ``task_error`` and never raised here.
        """
        self.paused = False
        tasks = list(self._queue)
        self._queue.clear()
        logger.debug("response.flush", tasks=len(tasks), concurrency=self.concurrency)

        limiter = anyio.CapacityLimiter(self.concurrency)
        async with anyio.create_task_group() as tg:
            for task in tasks:
                # tokens are taken here so tasks start in submission order
                borrower = object()
                await limiter.acquire_on_behalf_of(borrower)
                tg.start_soon(self._run_and_release, limiter, borrower, task)

    def _enqueue(self, task_type: TaskType, value: Any, targets: Sequence[TargetSpec]) -> "Response":
        for target in self._resolve_targets(targets):
            self.add_task(Task(target=target, type=task_type, value=value))
        return self

    def _resolve_targets(self, targets: Sequence[TargetSpec]) -> list[Target]:
        if not targets:
            return [self.default_target]

        resolved: list[Target] = []
        for target in targets:
            if isinstance(target, str):
                found = self._resolve_target(target)
            else:
                found = self._resolve_multiparty(target)
            if found is None:
                logger.debug("response.target_dropped", target=target)
                continue
            resolved.append(found)
        return resolved

    def _resolve_target(self, target: str) -> Target | None:
        if not target:
            return None
        if is_address(target):
            return target
        if is_user_id(target):
            return DirectTarget(target)

        if not target.startswith("@"):
            channel = self._store.get_channel_or_group_by_name(target)
            if channel is not None:
                return channel.id

        user = self._store.get_user_by_name(target.lstrip("@#"))
        if user is not None:
            return DirectTarget(user.id)
        return None

    def _resolve_multiparty(self, entries: Sequence[str]) -> MultiPartyTarget | None:
        users: list[str] = []
        for entry in entries:
            if not entry:
                continue
            if is_user_id(entry):
                users.append(entry)
            elif entry.startswith("D"):
                dm = self._store.get_dm_by_id(entry)
                if dm is not None and dm.user:
                    users.append(dm.user)
            elif not is_address(entry):
                user = self._store.get_user_by_name(entry.lstrip("@"))
                if user is not None:
                    users.append(user.id)
        if not users:
            return None
        return MultiPartyTarget(tuple(users))

    async def _run_and_release(
        self, limiter: anyio.CapacityLimiter, borrower: object, task: Task
    ) -> None:
        try:
            await self._run_task(task)
        finally:
            limiter.release_on_behalf_of(borrower)

    async def _run_task(self, task: Task) -> None:
        try:
            task = await self._open_target(task)
            result = await self._send_task(task)
        except Exception as exc:
            logger.warning(
                "response.task_error",
                task_type=task.type,
                target=str(task.target),
                error=str(exc),
            )
            self._notify(ResponseEvent.TASK_ERROR, exc)
            return

        logger.debug("response.task_finished", task_type=task.type, target=task.target)
        self._notify(ResponseEvent.TASK_FINISHED, task, result)

    def _notify(self, event: ResponseEvent, *args: Any) -> None:
        # a failing listener must not cancel the sibling tasks
        try:
            self.emit(event, *args)
        except Exception as exc:
            logger.error("response.listener_failed", response_event=str(event), error=str(exc))

    async def _open_target(self, task: Task) -> Task:
        match task.target:
            case DirectTarget(user=user):
                address = await self._api.open_direct(user)
            case MultiPartyTarget(users=users):
                address = await self._api.open_multiparty(users)
            case _:
                return task
        return replace(task, target=address)

    async def _send_task(self, task: Task) -> Any:
        target = str(task.target)
        value = task.value
        match task.type:
            case "text":
                return await self._api.post_message(
                    target, text=format_mentions(self._store, value)
                )
            case "attachment":
                text = value["text"]
                return await self._api.post_message(
                    target,
                    text=format_mentions(self._store, text) if text else text,
                    attachments=value["attachments"],
                )
            case "upload":
                return await self._api.upload_file(target, value["filename"], value["content"])
            case "reaction":
                return await self._api.add_reaction(
                    value["channel"], value["timestamp"], value["emoji"]
                )
            case _:
                return {"message": f"Unknown task type {task.type}"}


class OutboundResponse(Response):
    """Response created by ``Robot.to`` with no message to react to."""

    def reaction(self, emoji: str) -> "Response":
        raise RuntimeError("Cannot use method .reaction() in robot.to()")

    def defer(self, work: Callable[[], Awaitable[Any] | Any]) -> DeferredWork:
        raise RuntimeError("Cannot use method .defer() in robot.to()")
