from __future__ import annotations

import asyncio
import json
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger

from app.schemas import (
    CreateIssuePayload,
    CreateIssueResponse,
    DuplicateCheckPayload,
    DuplicateCheckResult,
    IssueRead,
    IssueStatus,
    Priority,
    RegisterUserPayload,
    StatusUpdatePayload,
    UserRead,
)
from app.services.board import Board, get_board
from app.services.creation import IssueCreationFlow
from app.services.identity import get_current_user
from app.services.issues import InvalidStatusTransition, IssueNotFoundError
from app.services.notifications import CollectingNotifier, FanoutNotifier, LogNotifier
from app.services.store import StoreError

router = APIRouter()

STREAM_KEEPALIVE_SEC = 15.0
STREAM_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

FAILURE_STATUS = {
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "permission-denied": status.HTTP_403_FORBIDDEN,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _store_http_error(exc: StoreError) -> HTTPException:
    code = FAILURE_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=str(exc))


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _written_issue_id(flow: IssueCreationFlow) -> str | None:
    # The write is never awaited; report the id only if it already landed.
    future = flow.pending_write
    if future is None or not future.done() or future.cancelled() or future.exception() is not None:
        return None
    return future.result().id


@router.post("/issues", status_code=status.HTTP_201_CREATED)
async def create_issue(
    payload: CreateIssuePayload,
    board: Board = Depends(get_board),
    user: str | None = Depends(get_current_user),
):
    collected = CollectingNotifier()
    flow = board.creation_flow(user=user, notifier=FanoutNotifier(collected, LogNotifier()))
    flow.update_draft(**payload.model_dump(exclude={"force"}))

    state = await run_in_threadpool(flow.submit, force=payload.force)

    response = CreateIssueResponse(
        state=state,
        issue_id=_written_issue_id(flow),
        candidates=flow.candidates,
        messages=collected.texts(),
        error=flow.error,
    )
    if state == "warning":
        code = status.HTTP_409_CONFLICT
    elif state == "failed":
        code = FAILURE_STATUS.get(flow.error_kind or "", status.HTTP_500_INTERNAL_SERVER_ERROR)
    else:
        code = status.HTTP_201_CREATED
    return JSONResponse(status_code=code, content=response.model_dump(mode="json"))


@router.post("/issues/duplicates", response_model=DuplicateCheckResult)
async def check_duplicates(payload: DuplicateCheckPayload, board: Board = Depends(get_board)):
    return await run_in_threadpool(board.detector.detect, payload.title)


@router.get("/issues", response_model=list[IssueRead])
async def list_issues(
    status_filter: IssueStatus | None = Query(default=None, alias="status"),
    priority: Priority | None = None,
    order: Literal["asc", "desc"] = "desc",
    board: Board = Depends(get_board),
):
    try:
        return board.issues.list_issues(status=status_filter, priority=priority, order=order)
    except StoreError as exc:
        logger.warning("Listing issues failed: {error}", error=exc)
        raise _store_http_error(exc) from exc


@router.get("/issues/stream")
async def stream_issues(request: Request, board: Board = Depends(get_board)):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push(item) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, item)

    subscription = await run_in_threadpool(board.feed.subscribe, push, on_error=push)

    async def events():
        try:
            while not await request.is_disconnected():
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=STREAM_KEEPALIVE_SEC)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                if isinstance(item, Exception):
                    yield format_sse("error", {"message": "Failed to load issues"})
                    continue
                yield format_sse("snapshot", [issue.model_dump(mode="json") for issue in item])
        finally:
            subscription.close()

    return StreamingResponse(events(), media_type="text/event-stream", headers=STREAM_HEADERS)


@router.get("/issues/{issue_id}", response_model=IssueRead)
async def get_issue(issue_id: str, board: Board = Depends(get_board)):
    try:
        return board.issues.get_issue(issue_id)
    except IssueNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreError as exc:
        logger.warning("Loading issue {issue_id} failed: {error}", issue_id=issue_id, error=exc)
        raise _store_http_error(exc) from exc


@router.patch("/issues/{issue_id}/status", response_model=IssueRead)
async def update_status(issue_id: str, payload: StatusUpdatePayload, board: Board = Depends(get_board)):
    try:
        return board.issues.update_status(issue_id, payload.status)
    except IssueNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStatusTransition as exc:
        logger.info("Rejected status change for {issue_id}: {error}", issue_id=issue_id, error=exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StoreError as exc:
        logger.warning("Status update for {issue_id} failed: {error}", issue_id=issue_id, error=exc)
        raise _store_http_error(exc) from exc


@router.get("/users", response_model=list[UserRead])
async def list_users(board: Board = Depends(get_board)):
    try:
        return board.issues.list_users()
    except StoreError as exc:
        raise _store_http_error(exc) from exc


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(payload: RegisterUserPayload, board: Board = Depends(get_board)):
    try:
        return board.issues.register_user(email=payload.email, name=payload.name)
    except StoreError as exc:
        logger.warning("Registering {email} failed: {error}", email=payload.email, error=exc)
        raise _store_http_error(exc) from exc


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
