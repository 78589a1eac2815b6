"""
Constants for the live match tracker.

This module contains rule and configuration constants used throughout the application.
"""

# Application metadata
APP_TITLE = "Match Live"

# A match cannot be tracked without a complete starting eleven
MIN_LINEUP_SIZE = 11

# Floor for the match end minute used when computing minutes played
MIN_MATCH_END_MINUTE = 90

# Web server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7122

# Event types that move the scoreline (own goals credit the other team)
SCORING_EVENT_TYPES = ("goal", "pen_scored")
OWN_GOAL_EVENT_TYPES = ("own_goal",)

# Event type -> statistics field tallied for the attributed participant
STAT_FIELD_BY_EVENT_TYPE = {
    "goal": "goals",
    "pen_scored": "goals",
    "assist": "assists",
    "yellow_card": "yellow_cards",
    "red_card": "red_cards",
    "foul": "fouls_committed",
    "save": "saves",
}

# Short labels used in the event timeline
EVENT_LABELS = {
    "goal": "Goal",
    "own_goal": "Own goal",
    "pen_scored": "Penalty scored",
    "pen_missed": "Penalty missed",
    "assist": "Assist",
    "yellow_card": "Yellow card",
    "red_card": "Red card",
    "foul": "Foul",
    "save": "Save",
    "note": "Note",
    "substitution": "Substitution",
}
