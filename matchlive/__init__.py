"""
Match Live

Live match event engine: a persisted, resumable match clock, an append-only
event log, roster and score projections replayed from that log, and a one-off
statistics finalizer, served to operators through a Flask JSON API.
"""
from .models import MatchEvent, MatchRecord, StartingLineup
from .services import LiveMatchSession, ServiceFactory, InMemoryMatchStore
from .ui import create_app, run_web_app
from .utils import fmt_mmss, now_ts, APP_TITLE, LiveMatchConfig

__version__ = "1.0.0"

__all__ = [
    "MatchEvent", "MatchRecord", "StartingLineup", "LiveMatchSession", "ServiceFactory",
    "InMemoryMatchStore", "create_app", "run_web_app", "fmt_mmss", "now_ts",
    "APP_TITLE", "LiveMatchConfig"
]
