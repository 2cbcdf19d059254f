from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache

from app.core.config import AppConfig, get_settings
from app.services.creation import IssueCreationFlow
from app.services.db import SessionScope, get_session_scope, init_db
from app.services.duplicates import DuplicateDetector
from app.services.feed import IssueFeed
from app.services.issues import IssueService, get_issue_service
from app.services.notifications import Notifier
from app.services.retriever import CandidateRetriever
from app.services.store import IssueStore


@dataclass
class Board:
    """Everything one running service shares across requests."""

    settings: AppConfig
    store: IssueStore
    feed: IssueFeed
    issues: IssueService
    detector: DuplicateDetector
    executor: Executor

    def creation_flow(self, *, user: str | None = None, notifier: Notifier | None = None) -> IssueCreationFlow:
        return IssueCreationFlow(
            store=self.store,
            detector=self.detector,
            executor=self.executor,
            notifier=notifier,
            user=user,
            check_enabled=self.settings.duplicate_check_enabled,
            timeout_sec=self.settings.creation_timeout_sec,
            anonymous_marker=self.settings.anonymous_marker,
        )

    def close(self) -> None:
        self.executor.shutdown(wait=True)


def build_board(
    settings: AppConfig,
    session_scope: SessionScope,
    *,
    executor: Executor | None = None,
) -> Board:
    store = IssueStore(
        session_scope,
        allow_anonymous_writes=settings.allow_anonymous_writes,
        anonymous_marker=settings.anonymous_marker,
    )
    detector = DuplicateDetector(
        CandidateRetriever(store),
        threshold=settings.duplicate_threshold,
        min_title_length=settings.duplicate_min_title_length,
    )
    return Board(
        settings=settings,
        store=store,
        feed=IssueFeed(store),
        issues=get_issue_service(store),
        detector=detector,
        executor=executor or ThreadPoolExecutor(max_workers=settings.write_workers, thread_name_prefix="issue-write"),
    )


@lru_cache
def get_board() -> Board:
    init_db()
    return build_board(get_settings(), get_session_scope())
