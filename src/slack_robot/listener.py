"""Listeners and the insertion-ordered listener registry."""

from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from .pattern import Pattern, command_info, compile_pattern

if TYPE_CHECKING:
    from .message import Message
    from .request import Request
    from .response import Response

Handler = Callable[["Request", "Response"], Awaitable[Any] | Any]
Next = Callable[[], None]
Acl = Callable[["Request", "Response", Next], Awaitable[Any] | Any]


class Listener:
    """A pattern, handler and authorization chain for one event kind.

    ``desc`` and ``acl`` configure the listener fluently::

        robot.listen("deploy :env([a-z]+)", deploy).desc("Deploy").acl(admins_only)
    """

    def __init__(self, type: str, value: Pattern | None, callback: Handler) -> None:
        compiled = compile_pattern(type, value)
        self.id: str = uuid.uuid4().hex
        self.type = type
        self.value = compiled.value
        self.matcher: re.Pattern[str] | None = compiled.matcher
        self.param_names = compiled.param_names
        self.command_info = command_info(compiled.value)
        self.callback = callback
        self.description = ""
        self.acls: list[Acl] = []

    def __repr__(self) -> str:
        return f"Listener(id={self.id!r}, type={self.type!r}, value={self.value!r})"

    def desc(self, description: str) -> "Listener":
        if not isinstance(description, str) or not description:
            raise TypeError("Description must be non-empty string")
        self.description = description
        return self

    def acl(self, *acls: Acl) -> "Listener":
        for fn in acls:
            if not callable(fn):
                raise TypeError("ACL callback must be a function")
        self.acls.extend(acls)
        return self

    def accepts(self, value: str) -> bool:
        return self.matcher is None or self.matcher.search(value) is not None


def _comparison_value(message: "Message") -> str:
    if message.type == "message":
        return message.value.get("text") or ""
    if message.type == "reaction_added":
        return message.value.get("emoji") or ""
    return ""


class Listeners:
    def __init__(self) -> None:
        self._entries: list[Listener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, type: str, value: Pattern | None, callback: Handler) -> Listener:
        entry = Listener(type, value, callback)
        self._entries.append(entry)
        return entry

    def get(self, id: str | None = None) -> Listener | list[Listener] | None:
        """Return the listener with ``id``, or every listener when no id is given."""
        if not id:
            return self._entries
        for entry in self._entries:
            if entry.id == id:
                return entry
        return None

    def remove(self, id: str) -> bool:
        for index, entry in enumerate(self._entries):
            if entry.id == id:
                del self._entries[index]
                return True
        return False

    def find(self, message: "Message") -> Listener | None:
        """First listener of the message's kind that accepts it, in insertion order."""
        value = _comparison_value(message)
        for entry in self._entries:
            if entry.type == message.type and entry.accepts(value):
                return entry
        return None
