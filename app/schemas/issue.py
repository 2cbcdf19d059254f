from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.time import ensure_utc


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class IssueStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class IssueDraft(BaseModel):
    """Form state for an issue that has not been written yet."""

    title: str = ""
    description: str = ""
    priority: Priority = Priority.MEDIUM
    assigned_to: str | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        return value.strip()

    @field_validator("assigned_to")
    @classmethod
    def _normalize_assignee(cls, value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        return value.strip().lower()


class IssueDocument(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN
    assigned_to: str | None = None
    created_by: str
    keywords: list[str] = Field(default_factory=list)


class IssueRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    priority: Priority
    status: IssueStatus
    assigned_to: str | None = None
    created_by: str
    created_at: datetime
    keywords: list[str] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SimilarityCandidate(BaseModel):
    issue: IssueRead
    score: float


class DuplicateCheckResult(BaseModel):
    has_duplicates: bool = False
    candidates: list[SimilarityCandidate] = Field(default_factory=list)


class CreateIssuePayload(IssueDraft):
    force: bool = False

    @field_validator("title")
    @classmethod
    def _ensure_title(cls, value: str) -> str:
        if not value:
            raise ValueError("title is required")
        return value


class CreateIssueResponse(BaseModel):
    state: str
    issue_id: str | None = None
    candidates: list[SimilarityCandidate] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    error: str | None = None


class DuplicateCheckPayload(BaseModel):
    title: str


class StatusUpdatePayload(BaseModel):
    status: IssueStatus
