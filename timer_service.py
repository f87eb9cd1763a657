from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class Mode(str, Enum):
    STANDARD = "standard"
    CHALLENGE = "challenge"
    GAME_OVER = "game_over"


class ChallengeTimer:
    """Fixed-duration countdown for challenge mode."""

    def __init__(self, duration: int = 60) -> None:
        self.duration = duration
        self.remaining = duration
        self.running = False

    def start(self) -> None:
        self.remaining = self.duration
        self.running = True

    def reset(self) -> None:
        self.remaining = self.duration
        self.running = False

    def tick(self) -> bool:
        """Advance one second and return ``True`` on the tick that expires."""
        if not self.running or self.remaining <= 0:
            return False
        self.remaining -= 1
        if self.remaining == 0:
            self.running = False
            return True
        return False


class RestTimer:
    """Countdown started after a standard set; inert at zero."""

    def __init__(self, duration: int = 45) -> None:
        self.duration = duration
        self.remaining = 0

    @property
    def active(self) -> bool:
        return self.remaining > 0

    def start(self) -> None:
        self.remaining = self.duration

    def skip(self) -> bool:
        if not self.active:
            return False
        self.remaining = 0
        return True

    def tick(self) -> bool:
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        return self.remaining == 0


@dataclass(frozen=True)
class RoutineStep:
    exercise: str
    target: int
    label: str


DEFAULT_ROUTINE: tuple[RoutineStep, ...] = (
    RoutineStep("squat", 10, "Warm-up squats"),
    RoutineStep("left_curl", 10, "Left curls"),
    RoutineStep("right_curl", 10, "Right curls"),
    RoutineStep("jumping_jack", 20, "Cardio finisher"),
)


class DailyRoutine:
    """Ordered steps completed back-to-back in one session."""

    def __init__(self, steps: Sequence[RoutineStep] = DEFAULT_ROUTINE) -> None:
        if not steps:
            raise ValueError("a routine needs at least one step")
        self.steps = tuple(steps)
        self.index = 0
        self.active = False

    def start(self) -> RoutineStep:
        self.index = 0
        self.active = True
        return self.steps[0]

    def stop(self) -> None:
        self.active = False
        self.index = 0

    @property
    def current(self) -> Optional[RoutineStep]:
        if not self.active:
            return None
        return self.steps[self.index]

    def advance(self) -> Optional[RoutineStep]:
        """Move to the next step, returning ``None`` once the routine is done."""
        if not self.active:
            return None
        if self.index + 1 < len(self.steps):
            self.index += 1
            return self.steps[self.index]
        self.active = False
        return None

    def to_dict(self) -> dict:
        step = self.current
        return {
            "active": self.active,
            "index": self.index,
            "total": len(self.steps),
            "step": (
                {"exercise": step.exercise, "target": step.target, "label": step.label}
                if step
                else None
            ),
        }
