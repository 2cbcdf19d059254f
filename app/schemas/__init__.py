from .issue import (
    CreateIssuePayload,
    CreateIssueResponse,
    DuplicateCheckPayload,
    DuplicateCheckResult,
    IssueDocument,
    IssueDraft,
    IssueRead,
    IssueStatus,
    Priority,
    SimilarityCandidate,
    StatusUpdatePayload,
)
from .user import RegisterUserPayload, UserRead

__all__ = [
    "CreateIssuePayload",
    "CreateIssueResponse",
    "DuplicateCheckPayload",
    "DuplicateCheckResult",
    "IssueDocument",
    "IssueDraft",
    "IssueRead",
    "IssueStatus",
    "Priority",
    "SimilarityCandidate",
    "StatusUpdatePayload",
    "RegisterUserPayload",
    "UserRead",
]
