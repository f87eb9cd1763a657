from __future__ import annotations

import copy
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tools import MathTools

# Flat store keys. Exercise-scoped keys are built with best_key/history_key.
TOTAL_XP = "total_xp"
TOTAL_REPS = "total_reps"
DAILY_TOTAL = "daily_total"
MUSCLE_TOTALS = "muscle_totals"
STREAK = "streak"
LAST_WORKOUT_DATE = "last_workout_date"
TROPHIES = "trophies"
ACTIVITY_CALENDAR = "activity_calendar"
CHALLENGES_COMPLETED = "challenges_completed"
ROUTINES_COMPLETED = "routines_completed"

INT_KEYS = (
    TOTAL_XP,
    TOTAL_REPS,
    DAILY_TOTAL,
    STREAK,
    CHALLENGES_COMPLETED,
    ROUTINES_COMPLETED,
)
GLOBAL_KEYS = INT_KEYS + (
    MUSCLE_TOTALS,
    LAST_WORKOUT_DATE,
    TROPHIES,
    ACTIVITY_CALENDAR,
)


def best_key(exercise: str) -> str:
    return f"best_{exercise}"


def history_key(exercise: str) -> str:
    return f"history_{exercise}"


@dataclass(frozen=True)
class SetRecord:
    reps: int
    completed_at: datetime.datetime
    exercise: str
    mode: str = "standard"

    def to_dict(self) -> dict:
        return {
            "reps": self.reps,
            "time": self.completed_at.isoformat(timespec="seconds"),
            "exercise": self.exercise,
            "mode": self.mode,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SetRecord":
        return cls(
            reps=int(data["reps"]),
            completed_at=datetime.datetime.fromisoformat(data["time"]),
            exercise=str(data["exercise"]),
            mode=str(data.get("mode", "standard")),
        )


@dataclass
class ProgressionLedger:
    """In-memory view of everything persisted about a user's progress."""

    xp: int = 0
    total_reps: int = 0
    best: Dict[str, int] = field(default_factory=dict)
    history: Dict[str, List[SetRecord]] = field(default_factory=dict)
    daily_total: int = 0
    muscle_totals: Dict[str, int] = field(default_factory=dict)
    streak: int = 0
    last_workout_date: Optional[datetime.date] = None
    trophies: List[str] = field(default_factory=list)
    calendar: Dict[str, bool] = field(default_factory=dict)
    challenges_completed: int = 0
    routines_completed: int = 0

    @property
    def level(self) -> int:
        return MathTools.level(self.xp)

    @property
    def progress_to_next_level(self) -> int:
        return MathTools.progress_to_next_level(self.xp)

    def copy(self) -> "ProgressionLedger":
        return copy.deepcopy(self)

    def history_for(self, exercise: str) -> List[SetRecord]:
        return list(self.history.get(exercise, []))

    def to_dict(self) -> dict:
        return {
            "xp": self.xp,
            "level": self.level,
            "progress_to_next_level": self.progress_to_next_level,
            "total_reps": self.total_reps,
            "best": dict(self.best),
            "daily_total": self.daily_total,
            "muscle_totals": dict(self.muscle_totals),
            "streak": self.streak,
            "last_workout_date": (
                self.last_workout_date.isoformat() if self.last_workout_date else None
            ),
            "trophies": list(self.trophies),
            "challenges_completed": self.challenges_completed,
            "routines_completed": self.routines_completed,
        }
