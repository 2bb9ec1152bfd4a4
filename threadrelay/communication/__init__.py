"""Communication layer — everything that talks to Slack.

- Slack: Web API adapter (directory lookups, sends, permalinks, names)
- Formatting: text of routed messages, mirrored replies and notices
"""

from .slack import SlackClient
from . import formatting

__all__ = [
    "SlackClient",
    "formatting",
]
