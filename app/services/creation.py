"""Issue creation flow.

One ``IssueCreationFlow`` drives a single create-issue form through

    editing -> checking -> warning | submitting -> created | failed

with ``warning -> editing`` (user goes back to edit) and ``warning ->
submitting`` (user creates anyway, no second check).

The write itself is optimistic: submitting dispatches the insert to an
executor and reports success straight away. A write that later fails is logged
and reported through the notifier, but the flow stays ``created``; nothing is
retried or rolled back. The safety timeout only stops the flow from waiting, it
does not cancel the work it gave up on, so a flow can end ``failed`` while the
store later completes the operation anyway.
"""

from __future__ import annotations

import time
from concurrent.futures import Executor, Future
from concurrent.futures import TimeoutError as FutureTimeoutError

from loguru import logger
from transitions import Machine, MachineError

from app.schemas.issue import DuplicateCheckResult, IssueDocument, IssueDraft, IssueRead, IssueStatus
from app.services.duplicates import DuplicateDetector
from app.services.keywords import extract_keywords
from app.services.notifications import Notifier, notify
from app.services.store import IssueStore

DEFAULT_TIMEOUT_SEC = 10.0

SUCCESS_MESSAGE = "Issue created!"
TIMEOUT_MESSAGE = "Request timed out. Please check your internet connection."
ERROR_MESSAGES = {
    "timeout": TIMEOUT_MESSAGE,
    "permission-denied": "You do not have permission to create issues.",
    "unavailable": "Network unavailable. Check your connection.",
}

STATES = ["editing", "checking", "warning", "submitting", "created", "failed"]

TRANSITIONS = [
    {"trigger": "start_check", "source": "editing", "dest": "checking"},
    {"trigger": "skip_check", "source": "editing", "dest": "submitting"},
    {"trigger": "flag_duplicates", "source": "checking", "dest": "warning"},
    {"trigger": "clear_check", "source": "checking", "dest": "submitting"},
    {"trigger": "edit_again", "source": "warning", "dest": "editing", "after": "_discard_check"},
    {"trigger": "confirm_create", "source": "warning", "dest": "submitting"},
    {"trigger": "mark_created", "source": "submitting", "dest": "created"},
    {"trigger": "mark_failed", "source": ["checking", "submitting"], "dest": "failed"},
    {"trigger": "start_over", "source": ["editing", "warning", "created", "failed"], "dest": "editing", "after": "_clear_form"},
]


class EmptyTitleError(ValueError):
    """Raised when a draft without a title is submitted."""


class CreationTimeoutError(TimeoutError):
    """Stands in for a result when the safety timer expires."""

    code = "timeout"


def describe_write_error(exc: BaseException) -> str:
    code = getattr(exc, "code", "unknown")
    return ERROR_MESSAGES.get(code, f"Failed to create issue: {exc}")


class IssueCreationFlow:
    def __init__(
        self,
        *,
        store: IssueStore,
        detector: DuplicateDetector,
        executor: Executor,
        notifier: Notifier | None = None,
        user: str | None = None,
        check_enabled: bool = False,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        anonymous_marker: str = "Anonymous",
    ) -> None:
        self.store = store
        self.detector = detector
        self.executor = executor
        self.notifier = notifier
        self.user = user
        self.check_enabled = check_enabled
        self.timeout_sec = timeout_sec
        self.anonymous_marker = anonymous_marker

        self.draft = IssueDraft()
        self.check_result = DuplicateCheckResult()
        self.pending_write: Future[IssueRead] | None = None
        self.error: str | None = None
        self.error_kind: str | None = None

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="editing",
            auto_transitions=False,
            send_event=True,
            after_state_change="_on_state_change",
        )

    def _on_state_change(self, event) -> None:
        logger.info(
            "Issue creation {source} -> {dest} ({trigger})",
            source=event.transition.source,
            dest=event.transition.dest,
            trigger=event.event.name,
        )

    def _discard_check(self, event) -> None:
        self.check_result = DuplicateCheckResult()

    def _clear_form(self, event) -> None:
        self.draft = IssueDraft()
        self.check_result = DuplicateCheckResult()
        self.pending_write = None
        self.error = None
        self.error_kind = None

    @property
    def candidates(self):
        return self.check_result.candidates

    def update_draft(self, **fields) -> IssueDraft:
        if self.state != "editing":
            raise MachineError(f"Cannot edit the draft while {self.state}")
        self.draft = IssueDraft.model_validate({**self.draft.model_dump(), **fields})
        return self.draft

    def submit(self, *, force: bool = False) -> str:
        """Run one submit attempt from ``editing`` and return the resulting state."""
        if self.state != "editing":
            raise MachineError(f"Cannot submit while {self.state}")
        if not self.draft.title:
            raise EmptyTitleError("title is required")
        deadline = time.monotonic() + self.timeout_sec

        if not self.check_enabled or force:
            self.skip_check()
            self._write(deadline)
            return self.state

        self.start_check()
        future = self.executor.submit(self.detector.detect, self.draft.title)
        try:
            result = future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            self._time_out()
            return self.state
        except Exception:  # noqa: BLE001
            logger.exception("Duplicate check raised; continuing without it")
            result = DuplicateCheckResult()

        if result.has_duplicates:
            self.check_result = result
            self.flag_duplicates()
            return self.state

        self.clear_check()
        self._write(deadline)
        return self.state

    def back_to_edit(self) -> str:
        self.edit_again()
        return self.state

    def force_create(self) -> str:
        deadline = time.monotonic() + self.timeout_sec
        self.confirm_create()
        self._write(deadline)
        return self.state

    def reset(self) -> str:
        self.start_over()
        return self.state

    def build_document(self) -> IssueDocument:
        return IssueDocument(
            title=self.draft.title,
            description=self.draft.description,
            priority=self.draft.priority,
            status=IssueStatus.OPEN,
            assigned_to=self.draft.assigned_to,
            created_by=self.user or self.anonymous_marker,
            keywords=extract_keywords(self.draft.title),
        )

    def _write(self, deadline: float) -> None:
        if time.monotonic() >= deadline:
            self._time_out()
            return
        try:
            document = self.build_document()
            future = self.executor.submit(self.store.insert_issue, document)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc)
            return

        self.pending_write = future
        notify(self.notifier, "success", SUCCESS_MESSAGE)
        self.mark_created()
        future.add_done_callback(self._on_write_done)

    def _on_write_done(self, future: Future) -> None:
        if future.cancelled():
            logger.warning("Background issue write was cancelled title={title}", title=self.draft.title)
            return
        exc = future.exception()
        if exc is None:
            logger.debug("Background issue write confirmed id={issue_id}", issue_id=future.result().id)
            return
        logger.error("Background issue write failed: {error}", error=exc)
        notify(self.notifier, "error", describe_write_error(exc))

    def _fail(self, exc: Exception) -> None:
        logger.error("Issue creation failed in state {state}: {error}", state=self.state, error=exc)
        self.error_kind = getattr(exc, "code", "unknown")
        self.error = describe_write_error(exc)
        notify(self.notifier, "error", self.error)
        self.mark_failed()

    def _time_out(self) -> None:
        self._fail(CreationTimeoutError(f"no result within {self.timeout_sec}s"))
