import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from exercise_catalog import (
    EXERCISES,
    Difficulty,
    KinematicType,
    MuscleGroup,
    Thresholds,
    difficulty_offsets,
    get_profile,
    parse_difficulty,
    resolve_thresholds,
)


class ExerciseCatalogTest(unittest.TestCase):
    def test_registry_contents(self) -> None:
        self.assertEqual(
            list(EXERCISES), ["left_curl", "right_curl", "squat", "jumping_jack"]
        )
        squat = get_profile("squat")
        self.assertEqual(squat.joints, ("left_hip", "left_knee", "left_ankle"))
        self.assertIs(squat.kind, KinematicType.CONTRACT)
        self.assertIs(squat.muscle_group, MuscleGroup.LEGS)
        self.assertAlmostEqual(squat.cal_per_rep, 1.2)
        self.assertIs(get_profile("jumping_jack").kind, KinematicType.EXTEND)

    def test_unknown_exercise(self) -> None:
        with self.assertRaises(KeyError):
            get_profile("burpee")

    def test_squat_normal_thresholds(self) -> None:
        th = resolve_thresholds(get_profile("squat"), "normal")
        self.assertEqual(th, Thresholds(active=100, rest=160))

    def test_contract_offsets_add(self) -> None:
        curl = get_profile("left_curl")
        self.assertEqual(resolve_thresholds(curl, Difficulty.EASY), Thresholds(80, 120))
        self.assertEqual(resolve_thresholds(curl, Difficulty.HARD), Thresholds(40, 150))

    def test_extend_offsets_subtract(self) -> None:
        jack = get_profile("jumping_jack")
        self.assertEqual(difficulty_offsets(Difficulty.HARD, jack.kind), (20, -10))
        self.assertEqual(resolve_thresholds(jack, Difficulty.EASY), Thresholds(120, 50))
        self.assertEqual(resolve_thresholds(jack, Difficulty.HARD), Thresholds(160, 20))

    def test_every_profile_valid_at_every_difficulty(self) -> None:
        for profile in EXERCISES.values():
            for difficulty in Difficulty:
                th = resolve_thresholds(profile, difficulty)
                if profile.kind is KinematicType.CONTRACT:
                    self.assertLess(th.active, th.rest)
                else:
                    self.assertGreater(th.active, th.rest)

    def test_threshold_validation(self) -> None:
        with self.assertRaises(ValueError):
            Thresholds(active=150, rest=100).validate(KinematicType.CONTRACT)
        with self.assertRaises(ValueError):
            Thresholds(active=30, rest=140).validate(KinematicType.EXTEND)

    def test_parse_difficulty(self) -> None:
        self.assertIs(parse_difficulty("HARD"), Difficulty.HARD)
        with self.assertRaises(ValueError):
            parse_difficulty("brutal")


if __name__ == "__main__":
    unittest.main()
