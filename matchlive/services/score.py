"""Scoreline projection over the event log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import MatchEvent, Team
from ..utils.constants import OWN_GOAL_EVENT_TYPES, SCORING_EVENT_TYPES


@dataclass(frozen=True)
class Score:
    """Goals for each side."""
    us: int = 0
    opponent: int = 0

    def __add__(self, other: "Score") -> "Score":
        return Score(self.us + other.us, self.opponent + other.opponent)

    def __sub__(self, other: "Score") -> "Score":
        return Score(self.us - other.us, self.opponent - other.opponent)

    def to_dict(self) -> dict:
        return {"us": self.us, "opponent": self.opponent}


def _credit(team: Team) -> Score:
    return Score(us=1) if team is Team.US else Score(opponent=1)


def score_contribution(event: MatchEvent) -> Score:
    """Score change caused by a single event. Own goals credit the other team."""
    if event.type.value in SCORING_EVENT_TYPES:
        return _credit(event.team)
    if event.type.value in OWN_GOAL_EVENT_TYPES:
        return _credit(event.team.other())
    return Score()


def project_score(events: Iterable[MatchEvent]) -> Score:
    """Fold the whole event log into a scoreline. Recompute on every log change."""
    total = Score()
    for event in events:
        total = total + score_contribution(event)
    return total
