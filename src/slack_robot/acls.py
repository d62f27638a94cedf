"""Built-in ACLs.

An ACL is called as ``acl(request, response, next)`` and lets the request
through by calling ``next()``. Not calling it drops the request silently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .listener import Next
    from .request import Request
    from .response import Response


def dynamic_mention(req: "Request", res: "Response", next: "Next") -> None:
    """Require a mention of the bot everywhere except direct messages."""
    if req.channel is not None and req.channel.type == "dm":
        next()
        return

    if req.message.value.get("mentioned"):
        next()
