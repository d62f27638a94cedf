"""Tests for slack_robot.pattern module."""

from __future__ import annotations

import re

from slack_robot.pattern import command_info, compile_pattern, escape_reaction


class TestCompilePattern:
    """Tests for compile_pattern function."""

    def test_none_is_wildcard(self) -> None:
        compiled = compile_pattern("message", None)
        assert compiled.matcher is None
        assert compiled.param_names == ()
        assert compiled.value is None

    def test_plain_string_is_anchored(self) -> None:
        compiled = compile_pattern("message", "hello")
        assert compiled.matcher is not None
        assert compiled.matcher.search("hello")
        assert not compiled.matcher.search("hello there")
        assert not compiled.matcher.search("oh hello")

    def test_named_groups_become_captures(self) -> None:
        compiled = compile_pattern("message", "deploy :branch([a-z]+) to :env(prod|dev)")
        assert compiled.param_names == ("branch", "env")
        assert compiled.matcher is not None
        assert compiled.matcher.pattern == "^deploy ([a-z]+) to (prod|dev)$"
        found = compiled.matcher.search("deploy main to prod")
        assert found is not None
        assert found.groups() == ("main", "prod")

    def test_regex_is_kept_unanchored(self) -> None:
        pattern = re.compile(r"ping (\d+)")
        compiled = compile_pattern("message", pattern)
        assert compiled.matcher is pattern
        assert compiled.value is pattern
        assert compiled.param_names == ()
        assert compiled.matcher.search("please ping 3 times")

    def test_reaction_is_stripped_and_escaped(self) -> None:
        compiled = compile_pattern("reaction_added", ":+1:")
        assert compiled.value == "\\+1"
        assert compiled.matcher is not None
        assert compiled.matcher.search("+1")
        assert not compiled.matcher.search("1")

    def test_plus_is_not_escaped_for_messages(self) -> None:
        compiled = compile_pattern("message", "a+")
        assert compiled.matcher is not None
        assert compiled.matcher.search("aaa")


class TestEscapeReaction:
    """Tests for escape_reaction function."""

    def test_escapes_plus(self) -> None:
        assert escape_reaction("+1") == "\\+1"

    def test_strips_skin_tone(self) -> None:
        assert escape_reaction(":wave::skin-tone-3:") == "wave"


class TestCommandInfo:
    """Tests for command_info function."""

    def test_named_groups_are_shortened(self) -> None:
        assert command_info("deploy :branch([a-z]+) now") == "deploy :branch now"

    def test_regex_is_slash_delimited(self) -> None:
        assert command_info(re.compile("help")) == "/help/"

    def test_none_is_empty(self) -> None:
        assert command_info(None) == ""
