"""
Persistence layer for the live match tracker.

This module defines the store contract the live services depend on and two
implementations: an in-memory store and a JSON-file store that keeps one
document per match.
"""
from __future__ import annotations

import copy
import dataclasses
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterable, Iterator, List, Optional, Protocol

from ..models import (
    BenchEntry, MatchEvent, MatchRecord, Participant, ParticipantStatsRow, StartingLineup
)
from .change_feed import ChangeFeed, ChangeNotice
from .errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

EVENTS_TABLE = "match_events"


class MatchStore(Protocol):
    """Storage contract consumed by the live match services."""

    change_feed: ChangeFeed

    def get_match(self, match_id: str) -> MatchRecord:
        ...

    def save_match(self, match: MatchRecord) -> None:
        ...

    def list_matches(self) -> List[MatchRecord]:
        ...

    def insert_event(self, event: MatchEvent) -> MatchEvent:
        ...

    def delete_event(self, match_id: str, event_id: str) -> bool:
        ...

    def list_events(self, match_id: str) -> List[MatchEvent]:
        ...

    def get_lineup(self, match_id: str) -> Optional[StartingLineup]:
        ...

    def save_lineup(self, lineup: StartingLineup) -> None:
        ...

    def list_bench(self, match_id: str) -> List[BenchEntry]:
        ...

    def save_bench(self, match_id: str, entries: Iterable[BenchEntry]) -> None:
        ...

    def add_to_bench(self, match_id: str, entry: BenchEntry) -> None:
        ...

    def remove_from_bench(self, match_id: str, participant_id: str) -> bool:
        ...

    def upsert_participant_stats(self, match_id: str, rows: Iterable[ParticipantStatsRow]) -> None:
        ...

    def list_participant_stats(self, match_id: str) -> List[ParticipantStatsRow]:
        ...

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        ...

    def list_participants(self) -> List[Participant]:
        ...

    def save_participant(self, participant: Participant) -> None:
        ...

    def transaction(self, match_id: str) -> ContextManager[None]:
        ...


class InMemoryMatchStore:
    """
    Dict-backed store.

    Writes made inside :meth:`transaction` are all-or-nothing: the match-scoped
    data is snapshotted on entry and restored if the block raises. Change
    notices raised inside a transaction are delivered only after commit.
    """

    def __init__(self, change_feed: Optional[ChangeFeed] = None):
        self.change_feed = change_feed or ChangeFeed()
        self._lock = threading.RLock()
        self._matches: Dict[str, MatchRecord] = {}
        self._events: Dict[str, List[MatchEvent]] = {}
        self._lineups: Dict[str, StartingLineup] = {}
        self._bench: Dict[str, List[BenchEntry]] = {}
        self._stats: Dict[str, Dict[str, ParticipantStatsRow]] = {}
        self._participants: Dict[str, Participant] = {}
        self._sequence = 0
        self._tx_depth = 0
        self._deferred_notices: List[ChangeNotice] = []
        self._dirty_matches: set = set()

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------
    def get_match(self, match_id: str) -> MatchRecord:
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                raise NotFoundError(f"Match not found: {match_id}")
            return copy.deepcopy(match)

    def save_match(self, match: MatchRecord) -> None:
        with self._lock:
            self._matches[match.id] = copy.deepcopy(match)
            self._events.setdefault(match.id, [])
            self._bench.setdefault(match.id, [])
            self._stats.setdefault(match.id, {})
            notices = self._changed(match.id)
        self._publish(notices)

    def list_matches(self) -> List[MatchRecord]:
        with self._lock:
            return [copy.deepcopy(m) for m in self._matches.values()]

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------
    def insert_event(self, event: MatchEvent) -> MatchEvent:
        with self._lock:
            self._require_match(event.match_id)
            events = self._events.setdefault(event.match_id, [])
            if any(existing.id == event.id for existing in events):
                raise StoreError(f"Duplicate event id: {event.id}", operation="insert_event")
            self._sequence = max(self._sequence, self._max_sequence()) + 1
            stored = dataclasses.replace(event, sequence=self._sequence)
            events.append(stored)
            notices = self._changed(
                event.match_id, ChangeNotice(event.match_id, EVENTS_TABLE, "insert", stored.id)
            )
        self._publish(notices)
        return stored

    def delete_event(self, match_id: str, event_id: str) -> bool:
        with self._lock:
            events = self._events.get(match_id, [])
            remaining = [event for event in events if event.id != event_id]
            if len(remaining) == len(events):
                return False
            self._events[match_id] = remaining
            notices = self._changed(match_id, ChangeNotice(match_id, EVENTS_TABLE, "delete", event_id))
        self._publish(notices)
        return True

    def list_events(self, match_id: str) -> List[MatchEvent]:
        with self._lock:
            return sorted(self._events.get(match_id, []), key=lambda e: e.sequence)

    # ------------------------------------------------------------------
    # Lineup and bench
    # ------------------------------------------------------------------
    def get_lineup(self, match_id: str) -> Optional[StartingLineup]:
        with self._lock:
            lineup = self._lineups.get(match_id)
            return copy.deepcopy(lineup) if lineup else None

    def save_lineup(self, lineup: StartingLineup) -> None:
        with self._lock:
            self._require_match(lineup.match_id)
            self._lineups[lineup.match_id] = copy.deepcopy(lineup)
            notices = self._changed(lineup.match_id)
        self._publish(notices)

    def list_bench(self, match_id: str) -> List[BenchEntry]:
        with self._lock:
            return copy.deepcopy(self._bench.get(match_id, []))

    def save_bench(self, match_id: str, entries: Iterable[BenchEntry]) -> None:
        with self._lock:
            self._require_match(match_id)
            unique: Dict[str, BenchEntry] = {}
            for entry in entries:
                unique.setdefault(entry.participant_id, copy.deepcopy(entry))
            self._bench[match_id] = list(unique.values())
            notices = self._changed(match_id)
        self._publish(notices)

    def add_to_bench(self, match_id: str, entry: BenchEntry) -> None:
        with self._lock:
            self._require_match(match_id)
            bench = self._bench.setdefault(match_id, [])
            if all(existing.participant_id != entry.participant_id for existing in bench):
                bench.append(copy.deepcopy(entry))
            notices = self._changed(match_id)
        self._publish(notices)

    def remove_from_bench(self, match_id: str, participant_id: str) -> bool:
        with self._lock:
            bench = self._bench.get(match_id, [])
            remaining = [entry for entry in bench if entry.participant_id != participant_id]
            if len(remaining) == len(bench):
                return False
            self._bench[match_id] = remaining
            notices = self._changed(match_id)
        self._publish(notices)
        return True

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def upsert_participant_stats(self, match_id: str, rows: Iterable[ParticipantStatsRow]) -> None:
        with self._lock:
            self._require_match(match_id)
            table = self._stats.setdefault(match_id, {})
            for row in rows:
                table[row.participant_id] = copy.deepcopy(row)
            notices = self._changed(match_id)
        self._publish(notices)

    def list_participant_stats(self, match_id: str) -> List[ParticipantStatsRow]:
        with self._lock:
            return copy.deepcopy(list(self._stats.get(match_id, {}).values()))

    # ------------------------------------------------------------------
    # Participant directory
    # ------------------------------------------------------------------
    def get_participant(self, participant_id: str) -> Optional[Participant]:
        with self._lock:
            participant = self._participants.get(participant_id)
            return copy.deepcopy(participant) if participant else None

    def list_participants(self) -> List[Participant]:
        with self._lock:
            return copy.deepcopy(list(self._participants.values()))

    def save_participant(self, participant: Participant) -> None:
        with self._lock:
            self._participants[participant.id] = copy.deepcopy(participant)
            self._flush_participants()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self, match_id: str) -> Iterator[None]:
        """Make every write inside the block all-or-nothing for ``match_id``."""
        with self._lock:
            if self._tx_depth:
                # Nested blocks join the outer transaction
                self._tx_depth += 1
                try:
                    yield
                finally:
                    self._tx_depth -= 1
                return

            snapshot = self._snapshot(match_id)
            self._tx_depth = 1
            try:
                yield
                for dirty in sorted(self._dirty_matches):
                    self._flush(dirty)
            except BaseException:
                self._restore(match_id, snapshot)
                self._deferred_notices = []
                self._dirty_matches = set()
                logger.debug("Rolled back transaction for match %s", match_id)
                raise
            finally:
                self._tx_depth = 0
            notices, self._deferred_notices = self._deferred_notices, []
            self._dirty_matches = set()
        self._publish(notices)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_match(self, match_id: str) -> None:
        if match_id not in self._matches:
            raise NotFoundError(f"Match not found: {match_id}")

    def _max_sequence(self) -> int:
        return max((e.sequence for events in self._events.values() for e in events), default=0)

    def _changed(self, match_id: str, notice: Optional[ChangeNotice] = None) -> List[ChangeNotice]:
        """Record a write; returns the notices to publish now (none inside a transaction)."""
        if self._tx_depth:
            self._dirty_matches.add(match_id)
            if notice is not None:
                self._deferred_notices.append(notice)
            return []
        self._flush(match_id)
        return [notice] if notice is not None else []

    def _publish(self, notices: List[ChangeNotice]) -> None:
        for notice in notices:
            self.change_feed.publish(notice)

    def _snapshot(self, match_id: str) -> dict:
        return {
            "match": copy.deepcopy(self._matches.get(match_id)),
            "events": list(self._events.get(match_id, [])),
            "lineup": copy.deepcopy(self._lineups.get(match_id)),
            "bench": copy.deepcopy(self._bench.get(match_id, [])),
            "stats": copy.deepcopy(self._stats.get(match_id, {})),
        }

    def _restore(self, match_id: str, snapshot: dict) -> None:
        if snapshot["match"] is None:
            self._matches.pop(match_id, None)
        else:
            self._matches[match_id] = snapshot["match"]
        self._events[match_id] = snapshot["events"]
        if snapshot["lineup"] is None:
            self._lineups.pop(match_id, None)
        else:
            self._lineups[match_id] = snapshot["lineup"]
        self._bench[match_id] = snapshot["bench"]
        self._stats[match_id] = snapshot["stats"]

    def _flush(self, match_id: str) -> None:
        """Hook for durable stores; the in-memory store keeps nothing else."""

    def _flush_participants(self) -> None:
        """Hook for durable stores; the in-memory store keeps nothing else."""

    def _match_document(self, match_id: str) -> dict:
        lineup = self._lineups.get(match_id)
        return {
            "match": self._matches[match_id].to_json(),
            "events": [e.to_json() for e in sorted(self._events.get(match_id, []), key=lambda e: e.sequence)],
            "lineup": lineup.to_json() if lineup else None,
            "bench": [entry.to_json() for entry in self._bench.get(match_id, [])],
            "stats": [row.to_dict() for row in self._stats.get(match_id, {}).values()],
        }

    def _load_match_document(self, data: dict) -> None:
        match = MatchRecord.from_json(data["match"])
        self._matches[match.id] = match
        self._events[match.id] = [MatchEvent.from_json(e) for e in data.get("events", [])]
        if data.get("lineup"):
            self._lineups[match.id] = StartingLineup.from_json(data["lineup"])
        self._bench[match.id] = [BenchEntry.from_json(b) for b in data.get("bench", [])]
        self._stats[match.id] = {
            row["participant_id"]: ParticipantStatsRow.from_dict(row) for row in data.get("stats", [])
        }
        self._sequence = max(self._sequence, self._max_sequence())


class JsonFileMatchStore(InMemoryMatchStore):
    """
    Store that persists each match to ``<data_dir>/match_<id>.json``.

    The participant directory is kept in ``<data_dir>/participants.json``.
    Files are rewritten whole on every committed change.
    """

    MATCH_FILE_PREFIX = "match_"
    PARTICIPANTS_FILE = "participants.json"

    def __init__(self, data_dir: str, change_feed: Optional[ChangeFeed] = None):
        super().__init__(change_feed)
        self.data_dir = data_dir
        self._load_all()

    def _match_path(self, match_id: str) -> str:
        return os.path.join(self.data_dir, f"{self.MATCH_FILE_PREFIX}{match_id}.json")

    def _flush(self, match_id: str) -> None:
        if match_id not in self._matches:
            return
        self._write_json(self._match_path(match_id), self._match_document(match_id))

    def _flush_participants(self) -> None:
        self._write_json(
            os.path.join(self.data_dir, self.PARTICIPANTS_FILE),
            {"participants": [p.to_dict() for p in self._participants.values()]},
        )

    def _write_json(self, file_path: str, payload: dict) -> None:
        try:
            # Ensure directory exists
            directory = os.path.dirname(file_path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory)

            # Swap a finished temp file into place
            fd, tmp_path = tempfile.mkstemp(prefix=".writing-", suffix=".part", dir=directory or None)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as exc:
            logger.error("Failed to write %s: %s", file_path, exc)
            raise StoreError(f"Could not write {file_path}: {exc}", operation="write") from exc

    def _load_all(self) -> None:
        if not os.path.exists(self.data_dir):
            return

        participants_path = os.path.join(self.data_dir, self.PARTICIPANTS_FILE)
        if os.path.isfile(participants_path):
            with open(participants_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for pdata in data.get("participants", []):
                participant = Participant.from_dict(pdata)
                self._participants[participant.id] = participant

        for filename in sorted(os.listdir(self.data_dir)):
            if not (filename.startswith(self.MATCH_FILE_PREFIX) and filename.endswith(".json")):
                continue
            with open(os.path.join(self.data_dir, filename), "r", encoding="utf-8") as f:
                self._load_match_document(json.load(f))
        logger.info("Loaded %d matches from %s", len(self._matches), self.data_dir)
