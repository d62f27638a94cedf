"""Tests for slack_robot.request module."""

from __future__ import annotations

import re

from factories import ALICE, GENERAL

from slack_robot.listener import Listener
from slack_robot.message import Message
from slack_robot.request import Request


def _handler(req, res) -> None:
    return None


def _message(text: str) -> Message:
    return Message(
        type="message",
        from_=ALICE,
        to=GENERAL,
        timestamp="1.0",
        value={"text": text, "mentioned": False},
    )


class TestRequestBuild:
    """Tests for Request.build."""

    def test_named_params(self) -> None:
        listener = Listener("message", "deploy :app([a-z]+) to :env(prod|dev)", _handler)
        req = Request.build(_message("deploy api to prod"), listener)
        assert req.params == {"app": "api", "env": "prod"}
        assert req.matches == []

    def test_regex_matches(self) -> None:
        listener = Listener("message", re.compile(r"add (\d+) and (\d+)"), _handler)
        req = Request.build(_message("please add 1 and 2"), listener)
        assert req.params == {}
        assert req.matches == ["1", "2"]

    def test_plain_pattern_has_no_params(self) -> None:
        listener = Listener("message", "hello", _handler)
        req = Request.build(_message("hello"), listener)
        assert req.params == {}
        assert req.matches == []

    def test_optional_group_becomes_empty_string(self) -> None:
        listener = Listener("message", "greet ?:name([a-z]+)?", _handler)
        req = Request.build(_message("greet "), listener)
        assert req.params == {"name": ""}

    def test_copies_message_fields(self) -> None:
        listener = Listener("message", None, _handler)
        req = Request.build(_message("anything"), listener)
        assert req.user == ALICE
        assert req.channel == GENERAL
        assert req.from_ == ALICE
        assert req.to == GENERAL
        assert req.message.type == "message"
        assert req.message.timestamp == "1.0"
        assert req.message.value == {"text": "anything", "mentioned": False}

    def test_reactions_have_no_params(self) -> None:
        listener = Listener("reaction_added", "+1", _handler)
        message = Message(type="reaction_added", from_=ALICE, to=GENERAL, value={"emoji": "+1"})
        req = Request.build(message, listener)
        assert req.params == {}
        assert req.matches == []
        assert req.message.value == {"emoji": "+1"}
