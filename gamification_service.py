import datetime
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from db import LedgerRepository
from exercise_catalog import MuscleGroup, get_profile
from ledger import ProgressionLedger, SetRecord
from settings_schema import validate_ledger_document
from tools import MathTools
from trophies import Trophy, newly_unlocked

logger = logging.getLogger(__name__)

CHALLENGE_MODE = "challenge"
STANDARD_MODE = "standard"


@dataclass
class FinalizeResult:
    record: SetRecord
    xp_gained: int
    new_best: bool
    unlocked: List[Trophy] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "record": self.record.to_dict(),
            "xp_gained": self.xp_gained,
            "new_best": self.new_best,
            "unlocked": [t.id for t in self.unlocked],
        }


class GamificationService:
    """Owns the progression ledger and is the only code that mutates it."""

    def __init__(self, repo: LedgerRepository) -> None:
        self.repo = repo
        self._ledger = repo.load()

    @property
    def ledger(self) -> ProgressionLedger:
        return self._ledger

    def reload(self) -> None:
        self._ledger = self.repo.load()

    def level(self) -> int:
        return self._ledger.level

    def best(self, exercise: str) -> int:
        return self._ledger.best.get(exercise, 0)

    def _commit(self, state: ProgressionLedger) -> None:
        # swap only after the store accepted the write
        self.repo.save(state)
        self._ledger = state

    @staticmethod
    def _unlock(state: ProgressionLedger) -> List[Trophy]:
        unlocked = newly_unlocked(state, state.trophies)
        state.trophies.extend(t.id for t in unlocked)
        return unlocked

    def finalize_set(
        self,
        exercise: str,
        reps: int,
        mode: str = STANDARD_MODE,
        today: Optional[datetime.date] = None,
        now: Optional[datetime.datetime] = None,
    ) -> Optional[FinalizeResult]:
        """Record a finished set and return what changed.

        A set with no reps changes nothing and returns ``None``.
        """
        if reps <= 0:
            return None
        profile = get_profile(exercise)
        now = now or datetime.datetime.now()
        today = today or now.date()
        state = self._ledger.copy()

        record = SetRecord(reps=reps, completed_at=now, exercise=exercise, mode=mode)
        state.history.setdefault(exercise, []).append(record)

        if state.last_workout_date != today:
            state.daily_total = 0
            state.muscle_totals = {g.value: 0 for g in MuscleGroup}
        state.daily_total += reps
        group = profile.muscle_group.value
        state.muscle_totals[group] = state.muscle_totals.get(group, 0) + reps
        state.total_reps += reps

        state.calendar[today.isoformat()] = True

        previous = state.last_workout_date
        if previous == today - datetime.timedelta(days=1):
            state.streak += 1
        elif previous != today:
            state.streak = 1
        state.last_workout_date = today

        xp = MathTools.set_xp(reps)
        state.xp += xp
        new_best = False
        if mode == CHALLENGE_MODE:
            state.challenges_completed += 1
        elif reps > state.best.get(exercise, 0):
            state.best[exercise] = reps
            new_best = True

        unlocked = self._unlock(state)
        self._commit(state)
        logger.info(
            "Set finalized: %s x%d (%s), +%d XP, streak %d",
            exercise,
            reps,
            mode,
            xp,
            state.streak,
        )
        for trophy in unlocked:
            logger.info("Trophy unlocked: %s", trophy.id)
        return FinalizeResult(record, xp, new_best, unlocked)

    def grant_bonus(self, xp: int, routine: bool = False) -> List[Trophy]:
        """Award bonus experience, optionally counting a completed routine."""
        if xp < 0:
            raise ValueError("bonus xp must be non-negative")
        state = self._ledger.copy()
        state.xp += xp
        if routine:
            state.routines_completed += 1
        unlocked = self._unlock(state)
        self._commit(state)
        logger.info("Bonus granted: +%d XP", xp)
        return unlocked

    def daily_progress(
        self, goal: int, today: Optional[datetime.date] = None
    ) -> Dict[str, int | bool]:
        today = today or datetime.date.today()
        total = self._ledger.daily_total if self._ledger.last_workout_date == today else 0
        return {"total": total, "goal": goal, "completed": total >= goal}

    def muscle_totals(self, today: Optional[datetime.date] = None) -> Dict[str, int]:
        today = today or datetime.date.today()
        current = self._ledger.last_workout_date == today
        return {
            g.value: (self._ledger.muscle_totals.get(g.value, 0) if current else 0)
            for g in MuscleGroup
        }

    def export_document(self) -> Dict[str, str]:
        return self.repo.export_document()

    def import_document(self, doc) -> List[str]:
        """Overwrite the keys present in ``doc`` and reload the ledger.

        Raises ``LedgerImportError`` without touching the store when any
        entry is invalid.
        """
        clean = validate_ledger_document(doc)
        self.repo.set_many(clean)
        self.reload()
        logger.info("Imported %d ledger keys", len(clean))
        return sorted(clean)
