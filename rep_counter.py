from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from exercise_catalog import ExerciseProfile, KinematicType, Thresholds
from tools import MathTools


class RepState(str, Enum):
    REST = "rest"
    DESCENDING = "descending"
    ACTIVE = "active"


@dataclass(frozen=True)
class RepCompleted:
    pass


@dataclass(frozen=True)
class FormWarning:
    reason: str


INCOMPLETE_RANGE = "incomplete range"

RepEvent = Union[RepCompleted, FormWarning]


class RepetitionStateMachine:
    """Two-threshold rep detector for a single selected exercise.

    Contracting exercises count a rep when the angle returns past the rest
    threshold after reaching the active zone, and warn when the joint leaves
    rest without reaching the active zone. Extending exercises count on
    entering the active zone and never warn.
    """

    def __init__(self) -> None:
        self.state = RepState.REST

    def reset(self) -> None:
        self.state = RepState.REST

    def update(
        self, angle: float, thresholds: Thresholds, kind: KinematicType
    ) -> Optional[RepEvent]:
        if kind is KinematicType.CONTRACT:
            return self._update_contract(angle, thresholds)
        return self._update_extend(angle, thresholds)

    def _update_contract(self, angle: float, th: Thresholds) -> Optional[RepEvent]:
        if self.state is RepState.REST:
            if angle < th.active:
                self.state = RepState.ACTIVE
            elif angle < th.rest:
                self.state = RepState.DESCENDING
            return None
        if self.state is RepState.DESCENDING:
            if angle < th.active:
                self.state = RepState.ACTIVE
            elif angle >= th.rest:
                self.state = RepState.REST
                return FormWarning(INCOMPLETE_RANGE)
            return None
        if angle >= th.rest:
            self.state = RepState.REST
            return RepCompleted()
        return None

    def _update_extend(self, angle: float, th: Thresholds) -> Optional[RepEvent]:
        if self.state is RepState.ACTIVE:
            if angle < th.rest:
                self.state = RepState.REST
            return None
        if angle > th.active:
            self.state = RepState.ACTIVE
            return RepCompleted()
        return None


class SessionCounter:
    """Current-set repetition count and calorie estimate."""

    def __init__(self) -> None:
        self.count = 0
        self.calories = 0.0
        self.record_announced = False

    def reset(self) -> None:
        self.count = 0
        self.calories = 0.0
        self.record_announced = False

    def record_rep(self, profile: ExerciseProfile, user_weight: float) -> int:
        """Count one rep and return the new set total."""
        self.count += 1
        self.calories = MathTools.round1(
            self.calories + MathTools.rep_calories(profile.cal_per_rep, user_weight)
        )
        return self.count

    def to_dict(self) -> dict:
        return {"count": self.count, "calories": self.calories}
