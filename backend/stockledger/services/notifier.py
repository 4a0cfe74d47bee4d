# Overview: In-process change broadcaster; tells subscribers which table changed after a commit.

from __future__ import annotations

import threading
from collections import deque
from typing import Callable

from flask import current_app

from stockledger.time_utils import utcnow, to_utc_z


Subscriber = Callable[[str], None]


class ChangeBroadcaster:
    """
    Fire-and-forget "table X changed" notifications.

    Workflows call notify_changed() only after their transaction committed.
    A failing subscriber is logged and skipped; it never fails the workflow.
    """

    def __init__(self, history_size: int = 200):
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self.recent: deque = deque(maxlen=history_size)

    def subscribe(self, callback: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def notify_changed(self, table: str) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            self.recent.append({"table": table, "at": to_utc_z(utcnow())})

        for callback in subscribers:
            try:
                callback(table)
            except Exception:
                current_app.logger.exception("Change subscriber failed for table %s", table)
