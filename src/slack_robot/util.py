"""Small string helpers shared by listeners, messages and responses."""

from __future__ import annotations

import re

_EMOJI_TAG_RE = re.compile(r":?([^:]+):?")
_SKIN_TONE_RE = re.compile(r":+skin-tone.*")
_EXTENSION_RE = re.compile(r".*\.([a-z0-9]+)$")


def strip_emoji(emoji: str) -> str:
    """Strip ``:`` delimiters and skin-tone modifiers from an emoji name.

    Examples:
        ":thumbsup:" -> "thumbsup"
        ":+1::skin-tone-4:" -> "+1"
    """
    no_tag = _EMOJI_TAG_RE.sub(r"\1", emoji, count=1)
    return _SKIN_TONE_RE.sub("", no_tag)


def get_file_extension(filename: str) -> str:
    return _EXTENSION_RE.sub(r"\1", filename)
