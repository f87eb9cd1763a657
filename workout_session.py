from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from exercise_catalog import (
    DEFAULT_EXERCISE,
    Difficulty,
    ExerciseProfile,
    get_profile,
    parse_difficulty,
    resolve_thresholds,
)
from gamification_service import (
    CHALLENGE_MODE,
    STANDARD_MODE,
    FinalizeResult,
    GamificationService,
)
from rep_counter import (
    FormWarning,
    RepCompleted,
    RepetitionStateMachine,
    SessionCounter,
)
from timer_service import ChallengeTimer, DailyRoutine, Mode, RestTimer
from tools import MathTools
from trophies import Trophy

logger = logging.getLogger(__name__)


class Notifier:
    """Fire-and-forget sink for spoken feedback."""

    def notify(self, message: str) -> None:
        raise NotImplementedError()


class LogNotifier(Notifier):
    def notify(self, message: str) -> None:
        logger.info("Voice: %s", message)


class MemoryNotifier(Notifier):
    """Keeps the most recent messages for clients that poll."""

    def __init__(self, maxlen: int = 100) -> None:
        self.messages: deque[str] = deque(maxlen=maxlen)

    def notify(self, message: str) -> None:
        self.messages.append(message)

    def drain(self) -> List[str]:
        out = list(self.messages)
        self.messages.clear()
        return out


@dataclass(frozen=True)
class Keypoint:
    name: str
    x: float
    y: float
    score: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Keypoint":
        return cls(
            name=str(data["name"]),
            x=float(data["x"]),
            y=float(data["y"]),
            score=float(data.get("score", 0.0)),
        )


# Events handled by dispatch(). Timer ticks share the queue with pose frames.


@dataclass(frozen=True)
class PoseFrame:
    keypoints: tuple


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class FinishSet:
    pass


@dataclass(frozen=True)
class SelectExercise:
    exercise: str


@dataclass(frozen=True)
class SetDifficulty:
    difficulty: str


@dataclass(frozen=True)
class StartChallenge:
    pass


@dataclass(frozen=True)
class ExitChallenge:
    pass


@dataclass(frozen=True)
class SkipRest:
    pass


@dataclass(frozen=True)
class StartRoutine:
    pass


@dataclass(frozen=True)
class StopRoutine:
    pass


class WorkoutSession:
    """Everything that changes while a user trains in front of the camera."""

    def __init__(
        self,
        gamification: GamificationService,
        notifier: Optional[Notifier] = None,
        exercise: str = DEFAULT_EXERCISE,
        difficulty: Difficulty | str = Difficulty.NORMAL,
        user_weight: float = MathTools.REFERENCE_WEIGHT,
        confidence_threshold: float = 0.3,
        challenge_duration: int = 60,
        rest_duration: int = 45,
        voice_enabled: bool = True,
        routine: Optional[DailyRoutine] = None,
    ) -> None:
        self.gamification = gamification
        self.notifier = notifier or LogNotifier()
        self.user_weight = user_weight
        self.confidence_threshold = confidence_threshold
        self.voice_enabled = voice_enabled
        self.difficulty = parse_difficulty(difficulty)
        self.machine = RepetitionStateMachine()
        self.counter = SessionCounter()
        self.mode = Mode.STANDARD
        self.challenge = ChallengeTimer(challenge_duration)
        self.rest = RestTimer(rest_duration)
        self.routine = routine or DailyRoutine()
        self.last_angle: Optional[float] = None
        self.profile: ExerciseProfile = get_profile(exercise)
        self.thresholds = resolve_thresholds(self.profile, self.difficulty)

    @classmethod
    def from_settings(cls, settings, gamification, notifier=None) -> "WorkoutSession":
        return cls(
            gamification,
            notifier=notifier,
            exercise=settings.get_text("default_exercise", DEFAULT_EXERCISE),
            difficulty=settings.get_text("difficulty", "normal"),
            user_weight=settings.get_float("user_weight", MathTools.REFERENCE_WEIGHT),
            confidence_threshold=settings.get_float("confidence_threshold", 0.3),
            challenge_duration=settings.get_int("challenge_duration", 60),
            rest_duration=settings.get_int("rest_duration", 45),
            voice_enabled=settings.get_bool("voice_enabled", True),
        )

    def say(self, message: str) -> None:
        if self.voice_enabled:
            self.notifier.notify(message)

    @property
    def timers_active(self) -> bool:
        return (self.mode is Mode.CHALLENGE and self.challenge.running) or self.rest.active

    def _reset_set(self) -> None:
        self.machine.reset()
        self.counter.reset()
        self.last_angle = None

    def select_exercise(self, exercise: str) -> None:
        self.profile = get_profile(exercise)
        self.thresholds = resolve_thresholds(self.profile, self.difficulty)
        self._reset_set()

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        self.difficulty = parse_difficulty(difficulty)
        self.thresholds = resolve_thresholds(self.profile, self.difficulty)
        self.machine.reset()

    def _joints(self, keypoints: Iterable) -> Optional[list]:
        found = {}
        for kp in keypoints:
            if isinstance(kp, Mapping):
                kp = Keypoint.from_dict(kp)
            found[kp.name] = kp
        points = []
        for name in self.profile.joints:
            kp = found.get(name)
            if kp is None or kp.score <= self.confidence_threshold:
                return None
            if not (MathTools.is_finite(kp.x) and MathTools.is_finite(kp.y)):
                return None
            points.append(kp)
        return points

    def handle_pose(self, keypoints: Iterable):
        """Feed one frame of keypoints; returns the rep event if any."""
        if self.mode is Mode.GAME_OVER:
            return None
        points = self._joints(keypoints)
        if points is None:
            logger.debug("Skipped frame for %s: joints missing", self.profile.id)
            return None
        angle = MathTools.joint_angle(*points)
        self.last_angle = angle
        event = self.machine.update(angle, self.thresholds, self.profile.kind)
        if isinstance(event, RepCompleted):
            self._on_rep()
        elif isinstance(event, FormWarning):
            self.say("Go deeper!")
        return event

    def _on_rep(self) -> None:
        count = self.counter.record_rep(self.profile, self.user_weight)
        best = self.gamification.best(self.profile.id)
        if (
            self.mode is Mode.STANDARD
            and count > best
            and not self.counter.record_announced
        ):
            self.counter.record_announced = True
            self.say("New record!")
        else:
            self.say(str(count))
        step = self.routine.current
        if step is not None and step.exercise == self.profile.id and count >= step.target:
            self.finish_set()

    def _announce(self, trophies: List[Trophy]) -> None:
        for trophy in trophies:
            self.say(f"Trophy unlocked: {trophy.name}")

    def finish_set(self) -> Optional[FinalizeResult]:
        if self.mode is Mode.GAME_OVER:
            return None
        if self.mode is Mode.CHALLENGE:
            return self._end_challenge()
        reps = self.counter.count
        if reps == 0 and not self.routine.active:
            return None
        result = self.gamification.finalize_set(self.profile.id, reps, STANDARD_MODE)
        self._reset_set()
        if result is not None:
            self._announce(result.unlocked)
        if self.routine.active:
            self._advance_routine()
        else:
            self.say("Set saved.")
            self.rest.start()
        return result

    def _advance_routine(self) -> None:
        step = self.routine.advance()
        if step is not None:
            self.select_exercise(step.exercise)
            self.say(f"Next: {step.label}, {step.target} reps.")
            return
        unlocked = self.gamification.grant_bonus(MathTools.ROUTINE_BONUS_XP, routine=True)
        logger.info("Daily routine complete")
        self.say("Daily routine complete!")
        self._announce(unlocked)

    def _end_challenge(self) -> Optional[FinalizeResult]:
        reps = self.counter.count
        result = self.gamification.finalize_set(self.profile.id, reps, CHALLENGE_MODE)
        self.challenge.running = False
        self.machine.reset()
        self.mode = Mode.GAME_OVER
        logger.info("Challenge over with %d reps", reps)
        self.say(f"Time's up! {reps} reps.")
        if result is not None:
            self._announce(result.unlocked)
        return result

    def start_challenge(self) -> None:
        if self.mode is not Mode.STANDARD:
            return
        self.routine.stop()
        self.rest.skip()
        self._reset_set()
        self.mode = Mode.CHALLENGE
        self.challenge.start()
        self.say(f"Challenge started! {self.challenge.duration} seconds.")

    def exit_challenge(self) -> None:
        if self.mode is Mode.STANDARD:
            return
        self.mode = Mode.STANDARD
        self.challenge.reset()
        self._reset_set()

    def skip_rest(self) -> None:
        self.rest.skip()

    def start_routine(self) -> None:
        if self.mode is not Mode.STANDARD:
            return
        step = self.routine.start()
        self.rest.skip()
        self.select_exercise(step.exercise)
        self.say(f"Daily routine: {step.label}, {step.target} reps.")

    def stop_routine(self) -> None:
        self.routine.stop()

    def tick(self) -> Optional[FinalizeResult]:
        result = None
        if self.mode is Mode.CHALLENGE and self.challenge.tick():
            result = self._end_challenge()
        if self.rest.tick():
            self.say("Rest over. Let's go!")
        return result

    def to_dict(self) -> dict:
        return {
            "exercise": self.profile.id,
            "difficulty": self.difficulty.value,
            "thresholds": self.thresholds.to_dict(),
            "rep_state": self.machine.state.value,
            "count": self.counter.count,
            "calories": self.counter.calories,
            "angle": self.last_angle,
            "mode": self.mode.value,
            "challenge_remaining": self.challenge.remaining,
            "rest_remaining": self.rest.remaining,
            "routine": self.routine.to_dict(),
            "best": self.gamification.best(self.profile.id),
            "xp": self.gamification.ledger.xp,
            "level": self.gamification.level(),
        }


def dispatch(session: WorkoutSession, event) -> Any:
    """Apply a single event to ``session``."""
    if isinstance(event, PoseFrame):
        return session.handle_pose(event.keypoints)
    if isinstance(event, Tick):
        return session.tick()
    if isinstance(event, FinishSet):
        return session.finish_set()
    if isinstance(event, SelectExercise):
        return session.select_exercise(event.exercise)
    if isinstance(event, SetDifficulty):
        return session.set_difficulty(event.difficulty)
    if isinstance(event, StartChallenge):
        return session.start_challenge()
    if isinstance(event, ExitChallenge):
        return session.exit_challenge()
    if isinstance(event, SkipRest):
        return session.skip_rest()
    if isinstance(event, StartRoutine):
        return session.start_routine()
    if isinstance(event, StopRoutine):
        return session.stop_routine()
    raise TypeError(f"unsupported event: {type(event).__name__}")


class EventQueue:
    """Serializes pose frames, timer ticks and user actions.

    Producers may call :meth:`put` from any thread; :meth:`process` applies
    pending events one at a time so no two handlers ever interleave.
    """

    def __init__(self) -> None:
        self._events: deque = deque()
        self._put_lock = threading.Lock()
        self._run_lock = threading.Lock()

    def put(self, event) -> None:
        with self._put_lock:
            self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def _pop(self):
        with self._put_lock:
            return self._events.popleft() if self._events else None

    def _drain(self, session: WorkoutSession, target=None) -> tuple[list, Any]:
        results = []
        target_result = None
        while True:
            event = self._pop()
            if event is None:
                break
            value = dispatch(session, event)
            results.append(value)
            if event is target:
                target_result = value
        return results, target_result

    def process(self, session: WorkoutSession) -> list:
        """Drain the queue and return each event's result in order."""
        with self._run_lock:
            results, _ = self._drain(session)
        return results

    def submit(self, session: WorkoutSession, event) -> Any:
        """Enqueue ``event``, drain the queue and return ``event``'s result."""
        with self._run_lock:
            self.put(event)
            _, result = self._drain(session, event)
        return result
