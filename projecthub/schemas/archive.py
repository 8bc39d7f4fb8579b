"""Pydantic schemas for archive, restore and purge reports."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TransferStage(str, Enum):
    """Units of work of an archive, restore or purge run."""

    ROOT = "root"
    COMMENTS = "comments"
    ISSUES = "issues"
    PROJECT = "project"


class TransferDirection(str, Enum):
    ARCHIVE = "archive"
    RESTORE = "restore"
    PURGE = "purge"


class StageReport(BaseModel):
    """What one stage moved and how its chunked commit ended."""

    stage: TransferStage
    state: str = Field(..., description="Final commit state of the stage")
    parents: int = Field(0, ge=0, description="Issues or comments handled")
    children: int = Field(0, ge=0, description="Todos or replies handled")
    operations: int = Field(0, ge=0, description="Staged writes and deletes")
    total_chunks: int = Field(0, ge=0)
    chunks_committed: int = Field(0, ge=0)


class TransferReport(BaseModel):
    """Summary of a completed archive, restore or purge."""

    project_id: str
    direction: TransferDirection
    stages: List[StageReport] = Field(default_factory=list)
    completed_at: datetime

    def stage(self, stage: TransferStage) -> Optional[StageReport]:
        for report in self.stages:
            if report.stage == stage:
                return report
        return None


class ArchivedProjectSummary(BaseModel):
    """An archived project as listed for one of its members."""

    id: str
    title: Optional[str] = None
    created_by: Optional[str] = None
    members: List[str] = Field(default_factory=list)
    deleted_at: Optional[datetime] = None
