"""Normalize raw Slack events into messages the registry can match."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .store import Channel, DataStore, User
from .util import strip_emoji

MESSAGE = "message"
REACTION_ADDED = "reaction_added"

# <@U123>, <@U123|name>, <#C123|general>, <!channel>, <http://x|label>
LINK_RE = re.compile(r"<([@#!])?([^>|]+)(?:\|([^>]+))?>")
PROTOCOL_RE = re.compile(r"https?://")
MENTION_RE = re.compile(r"(?<!\S)([@#])([a-z0-9][a-z0-9._-]*)")
BROADCASTS = ("channel", "group", "everyone")


@dataclass(frozen=True, slots=True)
class Message:
    """A raw event reduced to sender, destination, timestamp and value.

    ``value`` is ``{"text", "mentioned"}`` for text messages and
    ``{"emoji"}`` for reactions; other kinds carry an empty value.
    """

    type: str
    from_: User | None = None
    to: Channel | None = None
    timestamp: str | None = None
    value: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, bot: User | None, store: DataStore, raw: dict[str, Any]) -> "Message":
        kind = raw.get("type", "")
        channel_id: str | None = None
        timestamp: str | None = None
        value: dict[str, Any] = {}

        if kind == MESSAGE:
            channel_id = raw.get("channel")
            timestamp = raw.get("ts")
            value = parse_text(store, bot.name if bot else None, raw.get("text"))
        elif kind == REACTION_ADDED:
            item = raw.get("item") or {}
            channel_id = item.get("channel")
            timestamp = item.get("ts")
            value = {"emoji": strip_emoji(raw.get("reaction", ""))}

        sender = store.get_user_by_id(raw["user"]) if raw.get("user") else None
        to = store.get_channel_group_or_dm_by_id(channel_id) if channel_id else None
        return cls(type=kind, from_=sender, to=to, timestamp=timestamp, value=value)


def _format_link(store: DataStore, match: re.Match[str]) -> str:
    kind, link, label = match.group(1), match.group(2), match.group(3)

    # unresolved mentions fall through to the next, more generic, rule
    if kind == "@":
        if label:
            return f"@{label}"
        user = store.get_user_by_id(link)
        if user is not None:
            return f"@{user.name}"
    if kind in ("@", "#"):
        if label:
            return f"#{label}"
        channel = store.get_channel_by_id(link)
        if channel is not None:
            return f"#{channel.name}"
    if kind in ("@", "#", "!") and link in BROADCASTS:
        return f"@{link}"

    link = link.removeprefix("mailto:")
    if label and label not in link:
        return f"{label}({link})"
    return PROTOCOL_RE.sub("", link, count=1)


def parse_text(store: DataStore, bot_name: str | None, text: str | None) -> dict[str, Any]:
    """Rewrite Slack markup to plain text and detect a mention of the bot.

    A soft mention (the bot's name without ``@``) counts as a mention; the
    mention itself is removed from the returned text.
    """
    formatted = LINK_RE.sub(lambda m: _format_link(store, m), text or "")
    formatted = " ".join(part for part in formatted.split(" ") if part)
    formatted = formatted.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")

    mentioned = False
    if bot_name:
        bot_re = re.compile(f"@?{re.escape(bot_name)}:?")
        if bot_re.search(formatted):
            mentioned = True
            formatted = " ".join(part.strip() for part in bot_re.split(formatted)).strip()

    return {"text": formatted, "mentioned": mentioned}


def format_mentions(store: DataStore, text: str) -> str:
    """Turn ``@name``, ``#channel`` and ``@channel`` back into Slack markup.

    Names the store does not know are left as typed.
    """

    def replace(match: re.Match[str]) -> str:
        tag, name = match.group(1), match.group(2)
        if tag == "@" and name in BROADCASTS:
            return f"<!{name}>"
        if tag == "@":
            user = store.get_user_by_name(name)
            return f"<@{user.id}>" if user is not None else match.group(0)
        channel = store.get_channel_or_group_by_name(name)
        return f"<#{channel.id}>" if channel is not None else match.group(0)

    return MENTION_RE.sub(replace, text)
