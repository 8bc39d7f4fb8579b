"""Pydantic schemas for project membership rosters."""

from typing import Optional

from pydantic import Field

from .project import DocumentModel


class RosterMember(DocumentModel):
    """A project member resolved from a user profile at a point in time."""

    uid: str = Field(..., description="Member id")
    display_name: Optional[str] = Field(None, description="Current display name")
    email: Optional[str] = Field(None, description="Email address")
