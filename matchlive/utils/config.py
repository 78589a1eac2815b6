"""
Runtime configuration for the live match tracker.

The core never reads process-wide state on its own: a :class:`LiveMatchConfig`
is built once by the entry point and passed into the services explicitly.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import MIN_LINEUP_SIZE, MIN_MATCH_END_MINUTE

ENV_PREFIX = "MATCHLIVE_"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class LiveMatchConfig:
    """
    Settings shared by every live match session.

    Attributes:
        team_id: Identifier of the team whose matches are tracked
        operator_role: Role of the operator using this process (coach, admin, ...)
        min_lineup_size: Assigned starting slots required before tracking is enabled
        min_match_end_minute: Floor for the match end minute in minutes played
        data_dir: Directory for the JSON match store (None keeps data in memory)
        log_level: Logging level name for the web entry point
    """

    team_id: Optional[str] = None
    operator_role: str = "coach"
    min_lineup_size: int = MIN_LINEUP_SIZE
    min_match_end_minute: int = MIN_MATCH_END_MINUTE
    data_dir: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "LiveMatchConfig":
        """
        Build a configuration from ``MATCHLIVE_*`` environment variables.

        A ``.env`` file in the working directory (or ``env_file``) is read first;
        variables already present in the environment win.
        """
        load_dotenv(dotenv_path=Path(env_file) if env_file else Path.cwd() / ".env", override=False)

        return cls(
            team_id=os.getenv(ENV_PREFIX + "TEAM_ID") or None,
            operator_role=os.getenv(ENV_PREFIX + "OPERATOR_ROLE", "coach"),
            min_lineup_size=_env_int("MIN_LINEUP_SIZE", MIN_LINEUP_SIZE),
            min_match_end_minute=_env_int("MIN_MATCH_END_MINUTE", MIN_MATCH_END_MINUTE),
            data_dir=os.getenv(ENV_PREFIX + "DATA_DIR") or None,
            log_level=os.getenv(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
        )
