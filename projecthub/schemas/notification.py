"""Pydantic schemas for Notification documents."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .project import DocumentModel


class NotificationType(str, Enum):
    """Notification type enumeration."""

    MENTION = "mention"
    COMMENT_REPLY = "comment_reply"
    ISSUE_ASSIGNED = "issue_assigned"
    TODO_ASSIGNED = "todo_assigned"
    DEADLINE = "deadline"
    MEMBER_ADDED = "member_added"
    SYSTEM = "system"


class NotificationCorrelation(DocumentModel):
    """Optional ids used for deduplication and deep-linking."""

    project_id: Optional[str] = Field(None, description="Related project id")
    issue_id: Optional[str] = Field(None, description="Related issue id")
    todo_id: Optional[str] = Field(None, description="Related todo id")

    def to_fields(self) -> dict:
        """Only the correlation ids that are set, camelCased."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Notification(DocumentModel):
    """Notification document stored under ``notifications/{id}``."""

    id: Optional[str] = Field(None, description="Document id")
    type: NotificationType = Field(NotificationType.SYSTEM, description="Type of notification")
    recipients: List[str] = Field(
        ...,
        min_length=1,
        description="Recipient ids (fanned out one per document)",
    )
    message: str = Field(..., description="Notification message")
    read: bool = Field(False, description="Whether the notification has been read")
    hidden: bool = Field(False, description="Client-side soft delete flag")
    project_id: Optional[str] = Field(None, description="Related project id")
    issue_id: Optional[str] = Field(None, description="Related issue id")
    todo_id: Optional[str] = Field(None, description="Related todo id")
    created_at: datetime = Field(..., description="When the notification was created")

    @field_validator("recipients")
    @classmethod
    def unique_recipients(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    def to_document(self) -> dict:
        # Absent correlation ids are left out rather than stored as null
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)


class NotificationCount(BaseModel):
    """Schema for notification count response."""

    total: int = Field(..., ge=0, description="Total number of visible notifications")
    unread: int = Field(..., ge=0, description="Number of unread visible notifications")


class MarkAllReadResponse(BaseModel):
    """Schema for the mark-all-as-read response."""

    updated: int = Field(..., ge=0, description="Number of notifications marked as read")
