"""Pattern-routed Slack bots."""

from .api import SlackApi, SlackApiError, SlackRetryAfter
from .events import ResponseEvent, RobotEvent
from .listener import Listener
from .request import Request
from .response import Response
from .robot import Robot
from .settings import ConfigError, RobotSettings, load_settings
from .store import Channel, MemoryDataStore, User

__version__ = "0.1.0"

__all__ = [
    "Channel",
    "ConfigError",
    "Listener",
    "MemoryDataStore",
    "Request",
    "Response",
    "ResponseEvent",
    "Robot",
    "RobotEvent",
    "RobotSettings",
    "SlackApi",
    "SlackApiError",
    "SlackRetryAfter",
    "User",
    "__version__",
    "load_settings",
]
