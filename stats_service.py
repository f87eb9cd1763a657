from __future__ import annotations
import datetime
from typing import Dict, List, Optional

import pandas as pd

from exercise_catalog import EXERCISES, get_profile
from gamification_service import GamificationService
from tools import MathTools
from trophies import TROPHIES


class StatisticsService:
    """Compute read-only summaries of the progression ledger."""

    def __init__(
        self,
        gamification: GamificationService,
        user_weight: float = MathTools.REFERENCE_WEIGHT,
    ) -> None:
        self.gamification = gamification
        self.user_weight = user_weight

    def _frame(self, exercise: Optional[str] = None) -> pd.DataFrame:
        ledger = self.gamification.ledger
        names = [exercise] if exercise else list(EXERCISES)
        rows = [
            {
                "exercise": r.exercise,
                "reps": r.reps,
                "mode": r.mode,
                "time": r.completed_at,
            }
            for name in names
            for r in ledger.history_for(name)
        ]
        return pd.DataFrame(rows, columns=["exercise", "reps", "mode", "time"])

    def exercise_summary(self, exercise: str) -> Dict[str, float | int | str | None]:
        """Return set count, rep totals and best for ``exercise``."""
        profile = get_profile(exercise)
        df = self._frame(exercise)
        best = self.gamification.best(exercise)
        if df.empty:
            return {
                "exercise": exercise,
                "sets": 0,
                "total_reps": 0,
                "avg_reps": 0.0,
                "best": best,
                "challenge_sets": 0,
                "calories": 0.0,
                "last_set": None,
            }
        total = int(df["reps"].sum())
        return {
            "exercise": exercise,
            "sets": int(len(df)),
            "total_reps": total,
            "avg_reps": round(float(df["reps"].mean()), 1),
            "best": best,
            "challenge_sets": int((df["mode"] == "challenge").sum()),
            "calories": MathTools.round1(
                total * MathTools.rep_calories(profile.cal_per_rep, self.user_weight)
            ),
            "last_set": df["time"].max().isoformat(timespec="seconds"),
        }

    def trend(self, exercise: str) -> List[Dict[str, int | str]]:
        """Reps per set in insertion order, for the performance chart."""
        return [
            {"set": idx + 1, "reps": r.reps, "time": r.completed_at.strftime("%H:%M")}
            for idx, r in enumerate(self.gamification.ledger.history_for(exercise))
        ]

    def daily_reps(self, days: int = 7, today: Optional[datetime.date] = None) -> List[Dict[str, int | str]]:
        """Return total reps per calendar day for the last ``days`` days."""
        today = today or datetime.date.today()
        start = today - datetime.timedelta(days=days - 1)
        index = pd.date_range(start, today, freq="D")
        df = self._frame()
        if df.empty:
            per_day = pd.Series(0, index=index)
        else:
            df["date"] = pd.to_datetime(df["time"]).dt.normalize()
            per_day = df.groupby("date")["reps"].sum().reindex(index, fill_value=0)
        return [
            {"date": ts.date().isoformat(), "reps": int(v)} for ts, v in per_day.items()
        ]

    def calendar(self, year: int, month: int) -> List[Dict[str, bool | str]]:
        """Return one entry per day of ``month`` flagged with activity."""
        first = datetime.date(year, month, 1)
        end = pd.Timestamp(first) + pd.offsets.MonthEnd(0)
        days = pd.date_range(first, end, freq="D")
        marks = self.gamification.ledger.calendar
        return [
            {"date": d.date().isoformat(), "active": bool(marks.get(d.date().isoformat()))}
            for d in days
        ]

    def trophy_board(self) -> List[Dict[str, bool | str]]:
        unlocked = set(self.gamification.ledger.trophies)
        return [
            {
                "id": t.id,
                "name": t.name,
                "description": t.description,
                "unlocked": t.id in unlocked,
            }
            for t in TROPHIES
        ]
