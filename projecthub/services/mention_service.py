"""Mention resolution for free-text comment and reply bodies.

Pure functions, no I/O:
- Extracting ``@token`` mentions from plain text
- Resolving tokens against a project roster by display name
- Expanding the ``@All`` broadcast to every member except the author
- Stripping mentions to build notification previews

Tokens are matched against the member's *current* display name. Two members
sharing a display name both match, and renaming a member breaks matches for
text written before the rename.
"""

import re
from typing import Iterable, List, Optional, Set

from ..schemas.member import RosterMember

# Case-sensitive broadcast marker, written as "@All"
BROADCAST_TOKEN = "All"

# "@" followed by a maximal run of characters that are neither whitespace nor "@"
MENTION_PATTERN = re.compile(r"@([^\s@]+)")


def extract_mention_tokens(text: Optional[str]) -> List[str]:
    """
    Extract mention tokens from plain text, in order of appearance.

    Args:
        text: Free text, may be None

    Returns:
        List of tokens without the leading "@"
    """
    if not isinstance(text, str) or not text:
        return []
    return MENTION_PATTERN.findall(text)


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def resolve_mentions(
    text: Optional[str],
    roster: Iterable[RosterMember],
    actor_id: Optional[str],
) -> Set[str]:
    """
    Resolve the members mentioned in a text.

    A token equal to ``All`` requests a broadcast: every roster member except
    ``actor_id`` is added. Any other token is compared case-insensitively with
    each member's trimmed display name. Unmatched tokens are ignored, and
    missing or non-string text resolves to no mentions.

    Args:
        text: Comment or reply body
        roster: Project members at the time of resolution
        actor_id: The author, excluded from the broadcast

    Returns:
        Set of mentioned member ids
    """
    tokens = extract_mention_tokens(text)
    if not tokens:
        return set()

    members = list(roster)
    mentioned: Set[str] = set()
    broadcast = False

    for token in tokens:
        if token == BROADCAST_TOKEN:
            broadcast = True
            continue

        wanted = _normalize(token)
        for member in members:
            name = _normalize(member.display_name)
            if name and name == wanted:
                mentioned.add(member.uid)

    if broadcast:
        mentioned.update(m.uid for m in members if m.uid != actor_id)

    return mentioned


def strip_mentions(text: Optional[str]) -> str:
    """Remove every ``@token`` from a text and trim the result."""
    if not isinstance(text, str):
        return ""
    return MENTION_PATTERN.sub("", text).strip()


def build_preview(text: Optional[str], length: int = 100) -> str:
    """Mention-free preview of a body, truncated with an ellipsis."""
    stripped = strip_mentions(text)
    if len(stripped) > length:
        return f"{stripped[:length]}..."
    return stripped
