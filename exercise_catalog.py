from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class KinematicType(str, Enum):
    """Direction the tracked angle moves to reach the active position."""

    CONTRACT = "contract"
    EXTEND = "extend"


class MuscleGroup(str, Enum):
    ARMS = "arms"
    LEGS = "legs"
    CORE = "core"


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


@dataclass(frozen=True)
class Thresholds:
    """Resolved hysteresis pair in degrees."""

    active: float
    rest: float

    def validate(self, kind: KinematicType) -> "Thresholds":
        if kind is KinematicType.CONTRACT and not self.active < self.rest:
            raise ValueError("contracting exercises need active < rest")
        if kind is KinematicType.EXTEND and not self.active > self.rest:
            raise ValueError("extending exercises need active > rest")
        return self

    def to_dict(self) -> dict[str, float]:
        return {"active": self.active, "rest": self.rest}


@dataclass(frozen=True)
class ExerciseProfile:
    id: str
    name: str
    joints: tuple[str, str, str]
    kind: KinematicType
    thresholds: Thresholds
    cal_per_rep: float
    muscle_group: MuscleGroup

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "joints": list(self.joints),
            "type": self.kind.value,
            "thresholds": self.thresholds.to_dict(),
            "cal_per_rep": self.cal_per_rep,
            "muscle_group": self.muscle_group.value,
        }


_PROFILES = (
    ExerciseProfile(
        "left_curl",
        "Left Bicep Curl",
        ("left_shoulder", "left_elbow", "left_wrist"),
        KinematicType.CONTRACT,
        Thresholds(active=60, rest=140),
        0.5,
        MuscleGroup.ARMS,
    ),
    ExerciseProfile(
        "right_curl",
        "Right Bicep Curl",
        ("right_shoulder", "right_elbow", "right_wrist"),
        KinematicType.CONTRACT,
        Thresholds(active=60, rest=140),
        0.5,
        MuscleGroup.ARMS,
    ),
    ExerciseProfile(
        "squat",
        "Squat",
        ("left_hip", "left_knee", "left_ankle"),
        KinematicType.CONTRACT,
        Thresholds(active=100, rest=160),
        1.2,
        MuscleGroup.LEGS,
    ),
    # hip -> shoulder -> elbow, arms go up past the active angle
    ExerciseProfile(
        "jumping_jack",
        "Jumping Jacks",
        ("right_hip", "right_shoulder", "right_elbow"),
        KinematicType.EXTEND,
        Thresholds(active=140, rest=30),
        0.8,
        MuscleGroup.CORE,
    ),
)

EXERCISES: dict[str, ExerciseProfile] = {p.id: p for p in _PROFILES}

DEFAULT_EXERCISE = "left_curl"

# (active offset, rest offset); subtracted for extending exercises
DIFFICULTY_OFFSETS: dict[Difficulty, tuple[float, float]] = {
    Difficulty.EASY: (20, -20),
    Difficulty.NORMAL: (0, 0),
    Difficulty.HARD: (-20, 10),
}


def get_profile(exercise_id: str) -> ExerciseProfile:
    try:
        return EXERCISES[exercise_id]
    except KeyError:
        raise KeyError(f"unknown exercise: {exercise_id}") from None


def parse_difficulty(value: str | Difficulty) -> Difficulty:
    """Return ``value`` as a :class:`Difficulty`, raising ``ValueError`` if unknown."""
    if isinstance(value, Difficulty):
        return value
    try:
        return Difficulty(str(value).lower())
    except ValueError:
        raise ValueError(f"unknown difficulty: {value}") from None


def difficulty_offsets(
    difficulty: Difficulty, kind: KinematicType
) -> tuple[float, float]:
    active, rest = DIFFICULTY_OFFSETS[difficulty]
    if kind is KinematicType.EXTEND:
        return -active, -rest
    return active, rest


def resolve_thresholds(
    profile: ExerciseProfile, difficulty: Difficulty | str = Difficulty.NORMAL
) -> Thresholds:
    """Apply the difficulty offsets to the profile's base thresholds."""
    d_active, d_rest = difficulty_offsets(parse_difficulty(difficulty), profile.kind)
    base = profile.thresholds
    return Thresholds(
        active=base.active + d_active, rest=base.rest + d_rest
    ).validate(profile.kind)
