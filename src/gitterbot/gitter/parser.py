"""Directed-message parsing — splits a leading @-mention off a chat message."""

from __future__ import annotations

import re
from typing import Any, NamedTuple

# Gitter usernames: letters, digits, dashes and underscores.
_MENTION = re.compile(r"^\s*@([A-Za-z0-9_][A-Za-z0-9_\-]*)(?:\s+|$)")


class ParsedMessage(NamedTuple):
    addressee: str | None
    text: str


def parse(text: Any) -> ParsedMessage:
    """Split `text` into (addressee, body).

    "@alice hello there" -> ("alice", "hello there")
    "hello there"        -> (None, "hello there")

    When a message starts with several mentions ("@alice @bob hi") the first
    is the addressee and all of them are stripped, so parsing the returned
    body again never finds another addressee. Never raises.
    """
    if text is None:
        return ParsedMessage(None, "")
    if not isinstance(text, str):
        return ParsedMessage(None, str(text))

    match = _MENTION.match(text)
    if match is None:
        return ParsedMessage(None, text)

    addressee = match.group(1)
    rest = text[match.end():]
    while True:
        match = _MENTION.match(rest)
        if match is None:
            break
        rest = rest[match.end():]
    return ParsedMessage(addressee, rest)
