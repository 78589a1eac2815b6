"""
Change notification channel for match data.

Subscribers register per match id and are told *that* something changed; they
re-fetch and recompute from the store rather than trusting the notice payload.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeNotice:
    """Describes a single row change on a match-scoped table."""
    match_id: str
    table: str
    action: str
    row_id: Optional[str] = None


Subscriber = Callable[[ChangeNotice], None]


class ChangeFeed:
    """In-process publish/subscribe keyed by match id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscriber]] = {}

    def subscribe(self, match_id: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register ``callback`` for changes on ``match_id``.

        Returns:
            A function that removes the subscription when called
        """
        with self._lock:
            self._subscribers.setdefault(match_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(match_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(match_id, None)

        return unsubscribe

    def subscriber_count(self, match_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(match_id, []))

    def publish(self, notice: ChangeNotice) -> None:
        """Deliver ``notice`` to every subscriber of its match."""
        with self._lock:
            callbacks = list(self._subscribers.get(notice.match_id, []))

        for callback in callbacks:
            try:
                callback(notice)
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception(
                    "Change subscriber failed for match %s (%s %s)",
                    notice.match_id, notice.table, notice.action,
                )
