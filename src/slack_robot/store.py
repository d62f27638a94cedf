"""User and conversation lookups used to resolve ids and names.

The robot only needs read access by id or by name. ``MemoryDataStore`` keeps
everything in dictionaries and is filled from ``users.list`` and
``conversations.list`` payloads at login.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

ChannelType = Literal["channel", "group", "dm", "mpim"]


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class Channel:
    """A channel, private group, direct message or multi-party DM.

    ``user`` is the counterpart's user id for direct messages.
    """

    id: str
    name: str | None = None
    type: ChannelType = "channel"
    user: str | None = None


class DataStore(Protocol):
    """Lookups the robot performs against the platform's data store."""

    def get_user_by_id(self, user_id: str) -> User | None: ...

    def get_user_by_name(self, name: str) -> User | None: ...

    def get_channel_by_id(self, channel_id: str) -> Channel | None: ...

    def get_channel_or_group_by_name(self, name: str) -> Channel | None: ...

    def get_channel_group_or_dm_by_id(self, channel_id: str) -> Channel | None: ...

    def get_dm_by_id(self, dm_id: str) -> Channel | None: ...


def _bare_name(name: str) -> str:
    return name.lstrip("#@")


class MemoryDataStore:
    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._channels: dict[str, Channel] = {}

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

    def add_channel(self, channel: Channel) -> None:
        self._channels[channel.id] = channel

    def load(
        self,
        users: Iterable[dict[str, Any]],
        conversations: Iterable[dict[str, Any]],
    ) -> None:
        """Load raw Web API ``users.list`` members and ``conversations.list`` channels."""
        for raw in users:
            if raw.get("id") and raw.get("name"):
                self.add_user(User(id=raw["id"], name=raw["name"]))
        for raw in conversations:
            if raw.get("id"):
                self.add_channel(_channel_from_payload(raw))

    def get_user_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def get_user_by_name(self, name: str) -> User | None:
        bare = _bare_name(name)
        for user in self._users.values():
            if user.name == bare:
                return user
        return None

    def get_channel_by_id(self, channel_id: str) -> Channel | None:
        channel = self._channels.get(channel_id)
        if channel is not None and channel.type == "channel":
            return channel
        return None

    def get_channel_or_group_by_name(self, name: str) -> Channel | None:
        bare = _bare_name(name)
        for channel in self._channels.values():
            if channel.type in ("channel", "group") and channel.name == bare:
                return channel
        return None

    def get_channel_group_or_dm_by_id(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    def get_dm_by_id(self, dm_id: str) -> Channel | None:
        channel = self._channels.get(dm_id)
        if channel is not None and channel.type == "dm":
            return channel
        return None


def _channel_from_payload(raw: dict[str, Any]) -> Channel:
    if raw.get("is_im"):
        kind: ChannelType = "dm"
    elif raw.get("is_mpim"):
        kind = "mpim"
    elif raw.get("is_group") or raw.get("is_private"):
        kind = "group"
    else:
        kind = "channel"
    return Channel(id=raw["id"], name=raw.get("name"), type=kind, user=raw.get("user"))
