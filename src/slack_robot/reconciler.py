"""Pair file reactions with the edit event that tells us their channel.

A ``reaction_added`` event on a file or file comment carries no channel, so
the robot cannot answer it. Slack follows it with a ``message_changed`` event
on the bot's file-share message, which does carry the channel. Reactions are
held here until that edit arrives and are then turned back into an ordinary
reaction event on a message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

FILE_ITEM_TYPES = ("file", "file_comment")


@dataclass(frozen=True, slots=True)
class QueueEntry:
    id: str
    user: str | None
    type: str
    reaction: str
    original_type: str


class EventReconciler:
    def __init__(self, bot_id: str | None = None, *, max_pending: int | None = None) -> None:
        self.bot_id = bot_id
        self.max_pending = max_pending
        self._pending: list[QueueEntry] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> tuple[QueueEntry, ...]:
        return tuple(self._pending)

    def hold(self, raw: dict[str, Any]) -> QueueEntry | None:
        entry = self._entry_for(raw)
        if entry is None:
            return None

        self._pending.append(entry)
        if self.max_pending is not None and len(self._pending) > self.max_pending:
            dropped = self._pending.pop(0)
            logger.warning("reconciler.dropped", file_id=dropped.id, reaction=dropped.reaction)
        logger.debug("reconciler.held", file_id=entry.id, reaction=entry.reaction)
        return entry

    def match(self, raw: dict[str, Any]) -> dict[str, Any] | None:
        """Return the reaction event completed by this ``message_changed`` event.

        The matched entry is removed; ``None`` means nothing was waiting on
        this edit.
        """
        edited = raw.get("message") or {}
        if edited.get("user") != self.bot_id:
            return None
        file_id = (edited.get("file") or {}).get("id")
        if not file_id:
            return None

        for index, entry in enumerate(self._pending):
            if entry.id != file_id:
                continue
            del self._pending[index]
            logger.debug("reconciler.matched", file_id=file_id, channel=raw.get("channel"))
            return {
                "type": entry.original_type,
                "user": entry.user,
                "reaction": entry.reaction,
                "item": {
                    "type": "message",
                    "channel": raw.get("channel"),
                    "ts": edited.get("ts"),
                },
                "event_ts": raw.get("event_ts"),
                "ts": raw.get("ts"),
            }
        return None

    def _entry_for(self, raw: dict[str, Any]) -> QueueEntry | None:
        item = raw.get("item") or {}
        if raw.get("type") != "reaction_added" or item.get("type") not in FILE_ITEM_TYPES:
            return None
        return QueueEntry(
            id=item.get("file", ""),
            user=raw.get("user"),
            type=item["type"],
            reaction=raw.get("reaction", ""),
            original_type=raw["type"],
        )
