"""
Service factory for the live match tracker.

Builds the store and per-match sessions from one explicit configuration so
nothing in the core reaches for process-wide state.
"""
import logging
import threading
from typing import Dict, Optional

from ..models import FormationCatalog
from ..utils import LiveMatchConfig
from .change_feed import ChangeFeed
from .live_match import LiveMatchSession
from .persistence_service import InMemoryMatchStore, JsonFileMatchStore, MatchStore
from .stats_finalizer import StatsFinalizer, StatsReportExporter

logger = logging.getLogger(__name__)


class ServiceFactory:
    """
    Factory for creating service instances with their dependencies injected.

    Sessions are cached per match id so every request for the same match sees
    the same optimistic overlay and command history.
    """

    def __init__(
        self,
        config: Optional[LiveMatchConfig] = None,
        store: Optional[MatchStore] = None,
        formations: Optional[FormationCatalog] = None,
    ):
        self.config = config or LiveMatchConfig()
        self._store = store
        self._formations = formations
        self._exporter: Optional[StatsReportExporter] = None
        self._sessions: Dict[str, LiveMatchSession] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> MatchStore:
        """Get singleton store, created from the configuration on first use."""
        if self._store is None:
            if self.config.data_dir:
                logger.info("Using JSON match store in %s", self.config.data_dir)
                self._store = JsonFileMatchStore(self.config.data_dir, ChangeFeed())
            else:
                self._store = InMemoryMatchStore(ChangeFeed())
        return self._store

    @property
    def formations(self) -> FormationCatalog:
        """Get singleton formation catalog."""
        if self._formations is None:
            self._formations = FormationCatalog()
        return self._formations

    @property
    def exporter(self) -> StatsReportExporter:
        """Get singleton statistics exporter."""
        if self._exporter is None:
            self._exporter = StatsReportExporter()
        return self._exporter

    def create_finalizer(self) -> StatsFinalizer:
        return StatsFinalizer(self.store, self.config)

    def create_session(self, match_id: str) -> LiveMatchSession:
        """Create a fresh session for ``match_id`` (not cached)."""
        return LiveMatchSession(
            match_id,
            self.store,
            config=self.config,
            formations=self.formations,
            finalizer=self.create_finalizer(),
        )

    def get_session(self, match_id: str) -> LiveMatchSession:
        """Return the cached session for ``match_id``, creating it on first use."""
        with self._lock:
            session = self._sessions.get(match_id)
            if session is None:
                session = self.create_session(match_id)
                self._sessions[match_id] = session
            return session

    def close_all(self) -> None:
        with self._lock:
            for session in self._sessions.values():
                session.close()
            self._sessions.clear()
