"""Pydantic schemas for Project, Issue and Todo documents.

Stored field names are camelCase; the schemas accept either spelling and
dump with ``by_alias=True`` when writing to the document store.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Sentinel assignee meaning "nobody"; never notified
UNASSIGNED = "unassigned"


class DocumentModel(BaseModel):
    """Base for schemas mirrored to camelCase document fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_document(self) -> dict:
        """Field map for the document store (id lives in the path)."""
        return self.model_dump(by_alias=True, exclude={"id"})


class IssueStatus(str, Enum):
    """Issue workflow status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    DONE = "done"


class IssuePriority(str, Enum):
    """Issue priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Project(DocumentModel):
    """Project root document."""

    id: Optional[str] = Field(None, description="Document id")
    title: str = Field(..., min_length=1, max_length=255, description="Project title")
    description: str = Field("", description="Project description")
    members: List[str] = Field(
        default_factory=list,
        description="Member ids, unique, creator always included",
    )
    created_by: str = Field(..., description="Creator id")
    due_date: Optional[datetime] = Field(None, description="Optional due timestamp")
    created_at: Optional[datetime] = Field(None, description="When the project was created")
    updated_at: Optional[datetime] = Field(None, description="When the project was last updated")
    color: str = Field("#4a90d9", description="Display color")
    archived: bool = Field(False, description="Whether the project is archived")

    @model_validator(mode="after")
    def normalize_members(self) -> "Project":
        """Drop duplicate members and make sure the creator is one of them."""
        members = list(dict.fromkeys(self.members))
        if self.created_by not in members:
            members.insert(0, self.created_by)
        self.members = members
        return self


class Issue(DocumentModel):
    """Issue document, child of a project."""

    id: Optional[str] = Field(None, description="Document id")
    title: str = Field(..., min_length=1, max_length=255, description="Issue title")
    memo: str = Field("", description="Free-text memo")
    status: IssueStatus = Field(IssueStatus.NOT_STARTED, description="Workflow status")
    priority: IssuePriority = Field(IssuePriority.MEDIUM, description="Priority")
    start_date: Optional[datetime] = Field(None, description="Start timestamp")
    due_date: Optional[datetime] = Field(None, description="Due timestamp")
    assignees: List[str] = Field(
        default_factory=list,
        description="Assignee ids; may be empty or hold the 'unassigned' sentinel",
    )
    color: Optional[str] = Field(None, description="Color inherited from the project")
    created_at: Optional[datetime] = Field(None, description="When the issue was created")
    updated_at: Optional[datetime] = Field(None, description="When the issue was last updated")


class Todo(DocumentModel):
    """
    Todo document, child of an issue.

    ``completed_at`` is set if and only if ``completed`` is true.
    """

    id: Optional[str] = Field(None, description="Document id")
    title: str = Field(..., min_length=1, max_length=255, description="Todo title")
    assignee: str = Field(UNASSIGNED, description="Assignee id")
    due_date: Optional[datetime] = Field(None, description="Due timestamp")
    completed: bool = Field(False, description="Completion flag")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    project_title: str = Field("", description="Denormalized project title")
    issue_title: str = Field("", description="Denormalized issue title")
    color: Optional[str] = Field(None, description="Color inherited from the project")

    @model_validator(mode="after")
    def check_completion(self) -> "Todo":
        if self.completed and self.completed_at is None:
            raise ValueError("completedAt is required when completed is true")
        if not self.completed and self.completed_at is not None:
            raise ValueError("completedAt must be empty when completed is false")
        return self


# ============================================================================
# Input schemas
# ============================================================================


class TodoCreate(BaseModel):
    """Schema for a todo created together with its issue."""

    title: str = Field(..., min_length=1, max_length=255)
    assignee: str = Field(UNASSIGNED)
    due_date: Optional[datetime] = Field(None)
    completed: bool = Field(False)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class IssueCreate(BaseModel):
    """Schema for creating an issue with its initial todos."""

    title: str = Field(..., min_length=1, max_length=255)
    memo: str = Field("")
    status: IssueStatus = Field(IssueStatus.NOT_STARTED)
    priority: IssuePriority = Field(IssuePriority.MEDIUM)
    start_date: Optional[datetime] = Field(None)
    due_date: Optional[datetime] = Field(None)
    assignees: List[str] = Field(default_factory=list)
    todos: List[TodoCreate] = Field(default_factory=list, max_length=200)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class IssueWithTodosResponse(BaseModel):
    """Schema for the created issue and its todos."""

    project_id: str
    issue: Issue
    todos: List[Todo]
    notifications_created: int = 0
    notification_failures: int = 0
