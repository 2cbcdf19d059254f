from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator, Iterable

from loguru import logger
from nanoid import generate
from sqlalchemy import select
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.models.issue import Issue, IssueKeyword
from app.models.user import AppUser
from app.schemas.issue import IssueDocument, IssueRead, IssueStatus, Priority
from app.schemas.user import UserRead
from app.services.db import SessionScope
from app.utils.time import utc_now

ISSUE_ID_SIZE = 20

_PERMISSION_MARKERS = ("readonly", "read-only", "permission denied", "access denied", "not authorized")


class StoreError(Exception):
    code = "unknown"


class StorePermissionDenied(StoreError):
    code = "permission-denied"


class StoreUnavailable(StoreError):
    code = "unavailable"


def classify_error(exc: SQLAlchemyError) -> StoreError:
    message = str(getattr(exc, "orig", None) or exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return StorePermissionDenied(message)
    if isinstance(exc, (OperationalError, DisconnectionError, InterfaceError, PoolTimeoutError)):
        return StoreUnavailable(message)
    return StoreError(message)


class IssueStore:
    """Issue and user documents kept in SQL tables.

    Every SQLAlchemy failure leaves this class as a ``StoreError`` subclass so
    callers can tell a permission problem from an outage. Committed writes are
    announced to listeners registered with ``add_change_listener``.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        *,
        allow_anonymous_writes: bool = True,
        anonymous_marker: str = "Anonymous",
    ) -> None:
        self.session_scope = session_scope
        self.allow_anonymous_writes = allow_anonymous_writes
        self.anonymous_marker = anonymous_marker
        self._change_listeners: list[Callable[[], None]] = []

    def add_change_listener(self, listener: Callable[[], None]) -> None:
        self._change_listeners.append(listener)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        try:
            with self.session_scope() as session:
                yield session
        except SQLAlchemyError as exc:
            raise classify_error(exc) from exc

    def _notify_changed(self) -> None:
        for listener in list(self._change_listeners):
            try:
                listener()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Change listener failed: {error}", error=exc)

    def find_by_any_keyword(self, keywords: Iterable[str]) -> list[IssueRead]:
        terms = sorted(set(keywords))
        if not terms:
            return []
        matching_ids = select(IssueKeyword.issue_id).where(IssueKeyword.keyword.in_(terms))
        stmt = select(Issue).where(Issue.id.in_(matching_ids)).order_by(Issue.created_at.desc())
        with self._session() as session:
            issues = [IssueRead.model_validate(issue) for issue in session.scalars(stmt)]
        logger.debug("Keyword lookup terms={terms} matched={count}", terms=terms, count=len(issues))
        return issues

    def insert_issue(self, document: IssueDocument) -> IssueRead:
        if not self.allow_anonymous_writes and document.created_by == self.anonymous_marker:
            raise StorePermissionDenied("anonymous users cannot create issues")

        issue = Issue(
            id=generate(size=ISSUE_ID_SIZE),
            title=document.title,
            description=document.description,
            priority=document.priority.value,
            status=document.status.value,
            assigned_to=document.assigned_to,
            created_by=document.created_by,
            created_at=utc_now(),
            keywords=list(document.keywords),
            keyword_index=[IssueKeyword(keyword=keyword) for keyword in dict.fromkeys(document.keywords)],
        )
        with self._session() as session:
            session.add(issue)
            session.flush()
            created = IssueRead.model_validate(issue)
        logger.info("Created issue id={issue_id} title={title}", issue_id=created.id, title=created.title)
        self._notify_changed()
        return created

    def list_issues(
        self,
        *,
        status: IssueStatus | None = None,
        priority: Priority | None = None,
        order: str = "desc",
    ) -> list[IssueRead]:
        stmt = select(Issue)
        if status is not None:
            stmt = stmt.where(Issue.status == status.value)
        if priority is not None:
            stmt = stmt.where(Issue.priority == priority.value)
        if order == "asc":
            stmt = stmt.order_by(Issue.created_at.asc(), Issue.id.asc())
        else:
            stmt = stmt.order_by(Issue.created_at.desc(), Issue.id.desc())
        with self._session() as session:
            return [IssueRead.model_validate(issue) for issue in session.scalars(stmt)]

    def get_issue(self, issue_id: str) -> IssueRead | None:
        with self._session() as session:
            issue = session.get(Issue, issue_id)
            return IssueRead.model_validate(issue) if issue else None

    def update_status(
        self,
        issue_id: str,
        status: IssueStatus,
        *,
        check: Callable[[IssueStatus, IssueStatus], None] | None = None,
    ) -> IssueRead | None:
        with self._session() as session:
            issue = session.get(Issue, issue_id)
            if issue is None:
                return None
            if check is not None:
                check(IssueStatus(issue.status), status)
            issue.status = status.value
            session.flush()
            updated = IssueRead.model_validate(issue)
        logger.info("Issue id={issue_id} status={status}", issue_id=issue_id, status=status.value)
        self._notify_changed()
        return updated

    def list_users(self) -> list[UserRead]:
        with self._session() as session:
            users = session.scalars(select(AppUser).order_by(AppUser.email))
            return [UserRead.model_validate(user) for user in users]

    def upsert_user(self, *, email: str, name: str | None = None) -> UserRead:
        with self._session() as session:
            user = session.scalars(select(AppUser).where(AppUser.email == email)).first()
            if user:
                if name:
                    user.name = name
                logger.info("Updated user {email}", email=email)
            else:
                user = AppUser(email=email, name=name or email.split("@", 1)[0], created_at=utc_now())
                session.add(user)
                logger.info("Registered user {email}", email=email)
            session.flush()
            return UserRead.model_validate(user)
