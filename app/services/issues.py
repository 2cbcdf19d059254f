from __future__ import annotations

from loguru import logger

from app.schemas.issue import IssueRead, IssueStatus, Priority
from app.schemas.user import UserRead
from app.services.store import IssueStore


class IssueNotFoundError(LookupError):
    def __init__(self, issue_id: str) -> None:
        super().__init__(f"Issue {issue_id} not found")
        self.issue_id = issue_id


class InvalidStatusTransition(ValueError):
    pass


def check_status_transition(current: IssueStatus, new: IssueStatus) -> None:
    # Work has to be picked up before it can be finished.
    if current == IssueStatus.OPEN and new == IssueStatus.DONE:
        raise InvalidStatusTransition("Move the issue to 'In Progress' before marking it Done")


class IssueService:
    def __init__(self, store: IssueStore) -> None:
        self.store = store

    def list_issues(
        self,
        *,
        status: IssueStatus | None = None,
        priority: Priority | None = None,
        order: str = "desc",
    ) -> list[IssueRead]:
        if order not in {"asc", "desc"}:
            raise ValueError(f"Unsupported order: {order}")
        return self.store.list_issues(status=status, priority=priority, order=order)

    def get_issue(self, issue_id: str) -> IssueRead:
        issue = self.store.get_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    def update_status(self, issue_id: str, status: IssueStatus) -> IssueRead:
        updated = self.store.update_status(issue_id, status, check=check_status_transition)
        if updated is None:
            raise IssueNotFoundError(issue_id)
        return updated

    def list_users(self) -> list[UserRead]:
        return self.store.list_users()

    def register_user(self, *, email: str, name: str | None = None) -> UserRead:
        logger.debug("Registering user {email}", email=email)
        return self.store.upsert_user(email=email, name=name)


def get_issue_service(store: IssueStore) -> IssueService:
    return IssueService(store=store)
