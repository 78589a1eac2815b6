"""
Event log for a single match.

Append-only ordered record of everything that happened in a match and the
single source of truth for every derived view. Only structural checks happen
here; business rules live in the live match session.
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Callable, List

from ..models import MatchEvent
from ..utils import now_ts
from .change_feed import ChangeNotice
from .errors import NotFoundError, ValidationError
from .persistence_service import MatchStore

logger = logging.getLogger(__name__)


def new_event_id() -> str:
    return uuid.uuid4().hex


class EventLog:
    """Event log view over a store, scoped to one match."""

    def __init__(self, store: MatchStore, match_id: str):
        self.store = store
        self.match_id = match_id

    def append(self, event: MatchEvent) -> str:
        """
        Persist ``event`` and return its id.

        An empty id is replaced with a fresh one; the store assigns the
        creation sequence.

        Raises:
            ValidationError: If the event belongs to another match
            StoreError: If the store fails
        """
        if event.match_id != self.match_id:
            raise ValidationError(
                f"Event for match {event.match_id} cannot be added to match {self.match_id}"
            )
        if not event.id:
            event = dataclasses.replace(event, id=new_event_id())
        if event.created_ts is None:
            event = dataclasses.replace(event, created_ts=now_ts())

        stored = self.store.insert_event(event)
        logger.debug("Appended %s event %s at minute %d", stored.type.value, stored.id, stored.minute)
        return stored.id

    def remove(self, event_id: str) -> None:
        """
        Delete an event wholesale. Deletion is the only correction the log allows.

        Raises:
            NotFoundError: If no such event exists
        """
        if not self.store.delete_event(self.match_id, event_id):
            raise NotFoundError(f"Event not found: {event_id}")
        logger.debug("Removed event %s", event_id)

    def list(self) -> List[MatchEvent]:
        """Events oldest first, the order used for replay."""
        return self.store.list_events(self.match_id)

    def list_newest_first(self) -> List[MatchEvent]:
        return list(reversed(self.list()))

    def get(self, event_id: str) -> MatchEvent:
        for event in self.list():
            if event.id == event_id:
                return event
        raise NotFoundError(f"Event not found: {event_id}")

    def subscribe(self, callback: Callable[[ChangeNotice], None]) -> Callable[[], None]:
        """Call ``callback`` whenever the log changes; returns an unsubscribe function."""
        return self.store.change_feed.subscribe(self.match_id, callback)
