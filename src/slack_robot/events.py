"""Lifecycle event names and a minimal synchronous event emitter."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

Callback = Callable[..., Any]


class RobotEvent(StrEnum):
    """Events emitted by the robot while dispatching a raw event."""

    MESSAGE_NO_SENDER = "message_no_sender"
    MESSAGE_NO_CHANNEL = "message_no_channel"
    OWN_MESSAGE = "own_message"
    IGNORED_CHANNEL = "ignored_channel"
    NO_LISTENER_MATCH = "no_listener_match"
    RESPONSE_FAILED = "response_failed"
    REQUEST_HANDLED = "request_handled"
    ERROR = "error"


class ResponseEvent(StrEnum):
    """Events emitted by a response while flushing its task queue."""

    TASK_ERROR = "task_error"
    TASK_FINISHED = "task_finished"


class EventEmitter:
    """Publish/subscribe by event name.

    Listeners run synchronously, in subscription order, inside ``emit``.
    An exception raised by a listener propagates to the emitter's caller.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[tuple[Callback, bool]]] = {}

    def on(self, event: str, fn: Callback) -> "EventEmitter":
        self._handlers.setdefault(str(event), []).append((fn, False))
        return self

    def once(self, event: str, fn: Callback) -> "EventEmitter":
        self._handlers.setdefault(str(event), []).append((fn, True))
        return self

    def off(self, event: str, fn: Callback | None = None) -> "EventEmitter":
        key = str(event)
        if fn is None:
            self._handlers.pop(key, None)
            return self
        self._handlers[key] = [
            (handler, once) for handler, once in self._handlers.get(key, []) if handler != fn
        ]
        return self

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(str(event), []))

    def emit(self, event: str, *args: Any) -> bool:
        key = str(event)
        handlers = self._handlers.get(key)
        if not handlers:
            logger.debug("events.unhandled", event_name=key)
            return False

        # copy so listeners may subscribe/unsubscribe while being called
        for fn, once in list(handlers):
            if once:
                self.off(key, fn)
            fn(*args)
        return True
