from __future__ import annotations

import threading
from typing import Callable

from loguru import logger

from app.schemas.issue import IssueRead
from app.services.store import IssueStore

Snapshot = list[IssueRead]
SnapshotListener = Callable[[Snapshot], None]
ErrorListener = Callable[[Exception], None]


class Subscription:
    """Handle returned by ``IssueFeed.subscribe``; closing it stops delivery."""

    def __init__(self, feed: IssueFeed, listener: SnapshotListener, on_error: ErrorListener | None) -> None:
        self._feed = feed
        self._listener = listener
        self._on_error = on_error
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _push(self, snapshot: Snapshot) -> None:
        if not self._active:
            return
        try:
            self._listener(list(snapshot))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Issue feed listener failed: {error}", error=exc)

    def _fail(self, error: Exception) -> None:
        if not self._active or self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Issue feed error handler failed: {error}", error=exc)


class IssueFeed:
    """Push-based view of the issue board, newest issue first.

    Subscribers get the current snapshot on subscribe and a fresh one after
    every committed write to the store. Snapshots are delivered one at a time,
    so each subscriber sees them in commit order.
    """

    def __init__(self, store: IssueStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._deliver_lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        store.add_change_listener(self.notify_changed)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, listener: SnapshotListener, on_error: ErrorListener | None = None) -> Subscription:
        subscription = Subscription(self, listener, on_error)
        with self._lock:
            self._subscriptions.append(subscription)
        self._deliver([subscription])
        return subscription

    def notify_changed(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        if subscriptions:
            self._deliver(subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _deliver(self, subscriptions: list[Subscription]) -> None:
        with self._deliver_lock:
            try:
                snapshot = self._store.list_issues()
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to load issue snapshot: {error}", error=exc)
                for subscription in subscriptions:
                    subscription._fail(exc)
                return
            for subscription in subscriptions:
                subscription._push(snapshot)
