from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Set

from tools import MathTools


@dataclass(frozen=True)
class Trophy:
    id: str
    name: str
    description: str
    predicate: Callable[[Any], bool]


def _muscle(snapshot, group: str) -> int:
    return int(snapshot.muscle_totals.get(group, 0))


TROPHIES: tuple[Trophy, ...] = (
    Trophy("first_rep", "First Rep", "Finish your first set.",
           lambda s: s.total_reps >= 1),
    Trophy("century", "Century", "Log 100 reps in total.",
           lambda s: s.total_reps >= 100),
    Trophy("thousand_club", "Thousand Club", "Log 1000 reps in total.",
           lambda s: s.total_reps >= 1000),
    Trophy("arm_day", "Arm Day", "50 arm reps in a single day.",
           lambda s: _muscle(s, "arms") >= 50),
    Trophy("leg_day", "Leg Day", "50 leg reps in a single day.",
           lambda s: _muscle(s, "legs") >= 50),
    Trophy("core_crusher", "Core Crusher", "50 core reps in a single day.",
           lambda s: _muscle(s, "core") >= 50),
    Trophy("goal_getter", "Goal Getter", "Reach 50 reps in one day.",
           lambda s: s.daily_total >= 50),
    Trophy("streak_3", "On a Roll", "Train three days in a row.",
           lambda s: s.streak >= 3),
    Trophy("streak_7", "Week Warrior", "Train seven days in a row.",
           lambda s: s.streak >= 7),
    Trophy("level_5", "Level 5", "Reach level 5.",
           lambda s: MathTools.level(s.xp) >= 5),
    Trophy("level_10", "Level 10", "Reach level 10.",
           lambda s: MathTools.level(s.xp) >= 10),
    Trophy("challenger", "Challenger", "Complete a timed challenge.",
           lambda s: s.challenges_completed >= 1),
    Trophy("routine_master", "Routine Master", "Complete the daily routine.",
           lambda s: s.routines_completed >= 1),
)

TROPHY_IDS = tuple(t.id for t in TROPHIES)


def evaluate_trophies(snapshot) -> Set[str]:
    """Return the ids of every trophy whose predicate holds for ``snapshot``."""
    return {t.id for t in TROPHIES if t.predicate(snapshot)}


def newly_unlocked(snapshot, unlocked: Iterable[str]) -> List[Trophy]:
    """Return satisfied trophies not yet in ``unlocked``, in registry order."""
    earned = evaluate_trophies(snapshot)
    have = set(unlocked)
    return [t for t in TROPHIES if t.id in earned and t.id not in have]
