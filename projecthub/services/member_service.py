"""Membership roster lookup.

Resolves a project's member id array into ``RosterMember`` entries using the
``users/{uid}`` profile documents. Members without a profile document are
left out of the roster, so they can never be matched by a mention.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from ..schemas.member import RosterMember
from .document_store import DocumentStore
from .graph_paths import user_path

logger = logging.getLogger(__name__)


class RosterLookup(Protocol):
    """Anything that can turn member ids into roster entries."""

    async def get_roster(self, member_ids: Sequence[str]) -> List[RosterMember]: ...


class StoreRosterLookup:
    """Roster lookup reading user profiles from the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get_roster(self, member_ids: Sequence[str]) -> List[RosterMember]:
        roster: List[RosterMember] = []

        for uid in dict.fromkeys(member_ids):
            snapshot = await self._store.get(user_path(uid))
            if snapshot is None:
                logger.debug(f"Roster lookup: no profile for member {uid}")
                continue
            roster.append(
                RosterMember(
                    uid=uid,
                    display_name=snapshot.data.get("displayName"),
                    email=snapshot.data.get("email"),
                )
            )

        return roster


def project_members(project_data: Optional[dict]) -> List[str]:
    """Member ids of a project document, creator first if missing."""
    if not project_data:
        return []
    members = [m for m in project_data.get("members") or [] if isinstance(m, str)]
    creator = project_data.get("createdBy")
    if creator and creator not in members:
        members.insert(0, creator)
    return list(dict.fromkeys(members))
