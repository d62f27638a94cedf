"""Tests for slack_robot.listener module."""

from __future__ import annotations

import re

import pytest

from slack_robot.listener import Listener, Listeners
from slack_robot.message import Message


def _handler(req, res) -> None:
    return None


def _text(text: str) -> Message:
    return Message(type="message", value={"text": text, "mentioned": False})


def _reaction(emoji: str) -> Message:
    return Message(type="reaction_added", value={"emoji": emoji})


class TestListener:
    """Tests for Listener class."""

    def test_compiles_pattern(self) -> None:
        listener = Listener("message", "hello :name([a-z]+)", _handler)
        assert listener.type == "message"
        assert listener.value == "hello :name([a-z]+)"
        assert listener.param_names == ("name",)
        assert listener.command_info == "hello :name"
        assert listener.description == ""
        assert listener.acls == []

    def test_ids_are_unique(self) -> None:
        first = Listener("message", "a", _handler)
        second = Listener("message", "a", _handler)
        assert first.id != second.id

    def test_desc_is_fluent(self) -> None:
        listener = Listener("message", "a", _handler)
        assert listener.desc("Say a") is listener
        assert listener.description == "Say a"

    @pytest.mark.parametrize("description", ["", None, 3])
    def test_desc_rejects_invalid(self, description) -> None:
        listener = Listener("message", "a", _handler)
        with pytest.raises(TypeError, match="Description must be non-empty string"):
            listener.desc(description)

    def test_acl_appends_in_order(self) -> None:
        def first(req, res, next) -> None:
            next()

        def second(req, res, next) -> None:
            next()

        listener = Listener("message", "a", _handler).acl(first).acl(second)
        assert listener.acls == [first, second]

    def test_acl_rejects_non_callable(self) -> None:
        listener = Listener("message", "a", _handler)
        with pytest.raises(TypeError, match="ACL callback must be a function"):
            listener.acl("nope")  # type: ignore[arg-type]
        assert listener.acls == []

    def test_wildcard_accepts_anything(self) -> None:
        listener = Listener("message", None, _handler)
        assert listener.accepts("")
        assert listener.accepts("whatever")


class TestListeners:
    """Tests for Listeners registry."""

    def test_add_and_get(self) -> None:
        registry = Listeners()
        listener = registry.add("message", "hi", _handler)
        assert len(registry) == 1
        assert registry.get(listener.id) is listener
        assert registry.get() == [listener]
        assert registry.get("missing") is None

    def test_remove(self) -> None:
        registry = Listeners()
        listener = registry.add("message", "hi", _handler)
        assert registry.remove(listener.id) is True
        assert registry.remove(listener.id) is False
        assert len(registry) == 0

    def test_find_first_match_in_insertion_order(self) -> None:
        registry = Listeners()
        greedy = registry.add("message", re.compile("hello"), _handler)
        registry.add("message", "hello", _handler)
        assert registry.find(_text("hello")) is greedy

    def test_find_respects_type(self) -> None:
        registry = Listeners()
        message = registry.add("message", r"\+1", _handler)
        reaction = registry.add("reaction_added", "+1", _handler)
        assert registry.find(_reaction("+1")) is reaction
        assert registry.find(_text("+1")) is message

    def test_find_anchored_string(self) -> None:
        registry = Listeners()
        registry.add("message", "hello", _handler)
        assert registry.find(_text("hello world")) is None

    def test_find_regex_searches(self) -> None:
        registry = Listeners()
        listener = registry.add("message", re.compile(r"deploy (\w+)"), _handler)
        assert registry.find(_text("please deploy api")) is listener

    def test_find_returns_none_for_other_kinds(self) -> None:
        registry = Listeners()
        registry.add("message", None, _handler)
        assert registry.find(Message(type="presence_change")) is None
