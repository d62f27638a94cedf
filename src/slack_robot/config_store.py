"""Raw TOML configuration I/O.

Keeps file handling apart from validation so ``settings`` only ever sees
plain dictionaries.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

CONFIG_FILE = "robot.toml"


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Walk up from ``start_path`` (default: cwd) looking for ``robot.toml``."""
    current = (start_path or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE
        if candidate.exists():
            return candidate
    return None


def read_raw_toml(path: Path) -> dict[str, Any]:
    """Read raw TOML data from a file.

    Raises:
        FileNotFoundError: If the file does not exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def write_raw_toml(data: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(data))


def starter_config(token: str = "") -> tomlkit.TOMLDocument:
    """A commented ``robot.toml`` for ``slack-robot init``."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("slack-robot configuration"))
    doc.add(tomlkit.comment("Values set here take precedence over SLACK_ROBOT__* variables."))
    doc.add(tomlkit.nl())

    robot = tomlkit.table()
    robot.add("token", token)
    robot.add("concurrency", 1)
    robot.add("help_generator", False)
    robot.add("ignored_channels", tomlkit.array())
    doc.add("robot", robot)

    api = tomlkit.table()
    api.add("max_request_concurrency", 5)
    doc.add("api", api)
    return doc
