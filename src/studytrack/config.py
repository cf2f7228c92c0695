from __future__ import annotations

import os
from dataclasses import dataclass, field


def _default_data_dir() -> str:
    return os.path.join(os.path.expanduser("~"), ".studytrack")


@dataclass
class StudyTrackConfig:
    # Storage
    data_dir: str = field(default_factory=_default_data_dir)
    default_user: str = "local"

    # Scheduling
    deadline_lead_hours: int = 24   # deadline alerts fire this long before the deadline
    daily_tip_hour: int = 9         # local hour for the daily motivational tip

    # Analytics
    recent_limit: int = 10
    streak_max_days: int = 365

    # Delivery
    notification_timeout_s: int = 10
    app_name: str = "StudyTrack"

    @classmethod
    def from_env(cls) -> "StudyTrackConfig":
        """Build a config, letting STUDYTRACK_HOME and STUDYTRACK_USER override defaults."""
        cfg = cls()
        home = os.environ.get("STUDYTRACK_HOME", "").strip()
        if home:
            cfg.data_dir = os.path.expanduser(home)
        user = os.environ.get("STUDYTRACK_USER", "").strip()
        if user:
            cfg.default_user = user
        return cfg


__all__ = ["StudyTrackConfig"]
