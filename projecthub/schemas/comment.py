"""Pydantic schemas for Comment and Reply documents."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .project import DocumentModel


class CommentAuthor(DocumentModel):
    """Author snapshot stored on comments and replies."""

    id: str = Field(..., description="Author id")
    display_name: str = Field("", description="Author display name at posting time")


class Comment(DocumentModel):
    """Comment document, child of a project."""

    id: Optional[str] = Field(None, description="Document id")
    author: CommentAuthor
    content: str = Field(..., description="Comment text")
    created_at: datetime = Field(..., description="When the comment was posted")
    mentions: List[str] = Field(default_factory=list, description="Resolved mention ids")
    likes: List[str] = Field(default_factory=list, description="Ids of members who liked it")


class Reply(DocumentModel):
    """Reply document, child of a comment."""

    id: Optional[str] = Field(None, description="Document id")
    author: CommentAuthor
    content: str = Field(..., description="Reply text")
    created_at: datetime = Field(..., description="When the reply was posted")


class CommentCreate(BaseModel):
    """Schema for posting a comment or a reply."""

    content: str = Field(
        ...,
        min_length=1,
        max_length=50000,
        description="Plain text content, may contain @mentions",
    )


class CommentPostResponse(BaseModel):
    """Schema for a posted comment or reply and its notification side effect."""

    project_id: str
    comment: Optional[Comment] = None
    reply: Optional[Reply] = None
    notified: List[str] = Field(default_factory=list)
    notification_failures: int = 0
