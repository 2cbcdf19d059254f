"""Shared pytest fixtures for issue board tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool

from app.core.config import AppConfig
from app.schemas.issue import IssueDocument, IssueRead, IssueStatus, Priority
from app.services.board import Board, build_board, get_board
from app.services.db import SessionScope, build_engine, init_db, make_session_scope
from app.services.keywords import extract_keywords
from app.services.store import IssueStore
from tests._helpers import ImmediateExecutor, StepClock


@pytest.fixture(autouse=True)
def clock(monkeypatch: pytest.MonkeyPatch) -> StepClock:
    step = StepClock()
    monkeypatch.setattr("app.services.store.utc_now", step)
    return step


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = build_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_scope(engine: Engine) -> SessionScope:
    return make_session_scope(engine)


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig(_env_file=None)


@pytest.fixture
def check_settings() -> AppConfig:
    return AppConfig(_env_file=None, DUPLICATE_CHECK_ENABLED=True)


@pytest.fixture
def store(session_scope: SessionScope) -> IssueStore:
    return IssueStore(session_scope)


@pytest.fixture
def board(settings: AppConfig, session_scope: SessionScope) -> Board:
    return build_board(settings, session_scope, executor=ImmediateExecutor())


@pytest.fixture
def checking_board(check_settings: AppConfig, session_scope: SessionScope) -> Board:
    return build_board(check_settings, session_scope, executor=ImmediateExecutor())


def add_issue(
    store: IssueStore,
    title: str,
    *,
    priority: Priority = Priority.MEDIUM,
    status: IssueStatus = IssueStatus.OPEN,
    created_by: str = "dev@example.com",
    keywords: list[str] | None = None,
) -> IssueRead:
    return store.insert_issue(
        IssueDocument(
            title=title,
            priority=priority,
            status=status,
            created_by=created_by,
            keywords=extract_keywords(title) if keywords is None else keywords,
        )
    )


@pytest.fixture
def make_issue(store: IssueStore):
    def _make(title: str, **kwargs) -> IssueRead:
        return add_issue(store, title, **kwargs)

    return _make


def _client_for(board: Board) -> Generator[TestClient, None, None]:
    from app.main import app

    app.dependency_overrides[get_board] = lambda: board
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(board: Board) -> Generator[TestClient, None, None]:
    yield from _client_for(board)


@pytest.fixture
def checking_client(checking_board: Board) -> Generator[TestClient, None, None]:
    yield from _client_for(checking_board)
