"""Recipient extraction from free-text origin messages.

Only email-shaped tokens inside the block between the start marker
("Email Recipients") and the end marker ("Email Subject") count. Tokens
outside the block are ignored so a quoted address in the body never
becomes a recipient.
"""

import re

DEFAULT_START_MARKER = "Email Recipients"
DEFAULT_END_MARKER = "Email Subject"

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def recipient_block(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> str | None:
    """Return the text between the markers, or None if either is missing."""
    if not text:
        return None
    pattern = re.compile(
        re.escape(start_marker) + r"\s*(.*?)\s*" + re.escape(end_marker),
        re.IGNORECASE | re.DOTALL,
    )
    m = pattern.search(text)
    if not m:
        return None
    return m.group(1)


def extract_recipients(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> set[str]:
    """Extract the normalized recipient set from an origin message.

    Returns an empty set when the message is not a routable origin.
    """
    block = recipient_block(text, start_marker, end_marker)
    if block is None:
        return set()
    return {m.lower() for m in _EMAIL_RE.findall(block)}
