"""Built-in plugins.

A plugin is a callable taking the robot; ``Robot.use`` applies each one once.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .acls import dynamic_mention
from .logging import get_logger
from .pattern import REACTION_KIND

if TYPE_CHECKING:
    from .listener import Listener
    from .request import Request
    from .response import Response
    from .robot import Robot

logger = get_logger(__name__)

Plugin = Callable[["Robot"], None]

HELP_FILENAME = "command-list.txt"
HELP_DESCRIPTION = "Show this message"
HELP_PATTERN = re.compile("help")
HELP_STATE_KEY = "help_generator.listener_id"


def _describe_value(listener: "Listener") -> str:
    value = listener.value
    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/"
    if value is None:
        return "*"
    if listener.type == REACTION_KIND:
        return value.replace("\\", "")
    return value


def generate_help(listeners: Iterable["Listener"]) -> str:
    blocks = []
    for listener in listeners:
        kind = listener.type
        if isinstance(listener.value, re.Pattern):
            kind = f"{kind} (regex)"
        blocks.append(
            f"type: {kind}\n"
            f"command: {_describe_value(listener)}\n"
            f"description: {listener.description or '-'}"
        )
    return "\n\n".join(blocks)


def help_generator(*, enable: bool) -> Plugin:
    """Add (or remove) a ``help`` command that uploads the listener list."""

    def plugin(robot: "Robot") -> None:
        existing = robot.state.get(HELP_STATE_KEY)

        if not enable:
            if existing is not None:
                robot.remove_listener(existing)
                del robot.state[HELP_STATE_KEY]
                logger.debug("plugins.help_generator.disabled")
            return

        if existing is not None and robot.get_listener(existing) is not None:
            return

        async def show_help(req: "Request", res: "Response") -> None:
            await res.upload(HELP_FILENAME, generate_help(robot.get_all_listeners())).send()

        listener = (
            robot.listen(HELP_PATTERN, show_help)
            .desc(HELP_DESCRIPTION)
            .acl(dynamic_mention)
        )
        robot.state[HELP_STATE_KEY] = listener.id
        logger.debug("plugins.help_generator.enabled", listener=listener.id)

    return plugin
