"""Read-only request handed to ACLs and handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .message import MESSAGE, Message
from .store import Channel, User

if TYPE_CHECKING:
    from .listener import Listener


@dataclass(frozen=True, slots=True)
class RequestMessage:
    type: str
    value: dict[str, Any]
    timestamp: str | None = None


@dataclass(frozen=True, slots=True)
class Request:
    """A matched message plus the parameters its listener extracted.

    ``params`` is filled when the listener pattern declares named groups,
    ``matches`` when it is a raw regular expression with capture groups.
    Only text messages produce either; they are never both non-empty.
    """

    message: RequestMessage
    from_: User | None = None
    to: Channel | None = None
    params: dict[str, str] = field(default_factory=dict)
    matches: list[str | None] = field(default_factory=list)

    # Older handlers read req.user / req.channel
    @property
    def user(self) -> User | None:
        return self.from_

    @property
    def channel(self) -> Channel | None:
        return self.to

    @classmethod
    def build(cls, message: Message, listener: "Listener") -> "Request":
        params: dict[str, str] = {}
        matches: list[str | None] = []

        if message.type == MESSAGE and listener.matcher is not None:
            found = listener.matcher.search(message.value.get("text") or "")
            if found is not None:
                if listener.param_names:
                    groups = found.groups()
                    params = {
                        name: (groups[index] if index < len(groups) else None) or ""
                        for index, name in enumerate(listener.param_names)
                    }
                else:
                    matches = list(found.groups())

        return cls(
            message=RequestMessage(
                type=message.type,
                value=dict(message.value),
                timestamp=message.timestamp,
            ),
            from_=message.from_,
            to=message.to,
            params=params,
            matches=matches,
        )
