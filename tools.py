import math

import numpy as np


class MathTools:
    """Provides essential mathematical utilities for rep and progress calculations."""

    XP_PER_REP: int = 10
    XP_PER_LEVEL: int = 100
    REFERENCE_WEIGHT: float = 70.0
    ROUTINE_BONUS_XP: int = 50

    @staticmethod
    def _xy(point) -> tuple[float, float]:
        if hasattr(point, "x") and hasattr(point, "y"):
            return float(point.x), float(point.y)
        x, y = point[0], point[1]
        return float(x), float(y)

    @classmethod
    def joint_angle(cls, a, b, c) -> float:
        """Return the unsigned angle ``abc`` in degrees within [0, 180].

        ``b`` is the vertex joint. Points may be keypoints with ``x``/``y``
        attributes or plain ``(x, y)`` pairs.
        """
        ax, ay = cls._xy(a)
        bx, by = cls._xy(b)
        cx, cy = cls._xy(c)
        radians = np.arctan2(cy - by, cx - bx) - np.arctan2(ay - by, ax - bx)
        angle = float(abs(np.degrees(radians)))
        if angle > 180.0:
            angle = 360.0 - angle
        return angle

    @classmethod
    def level(cls, xp: int) -> int:
        """Return the level reached with ``xp`` experience points."""
        if xp < 0:
            raise ValueError("xp must be non-negative")
        return xp // cls.XP_PER_LEVEL + 1

    @classmethod
    def progress_to_next_level(cls, xp: int) -> int:
        return xp % cls.XP_PER_LEVEL

    @classmethod
    def set_xp(cls, reps: int) -> int:
        """Return the experience awarded for a finished set."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        return cls.XP_PER_REP * reps

    @classmethod
    def rep_calories(cls, cal_per_rep: float, user_weight: float) -> float:
        """Scale the per-rep coefficient from the reference body weight."""
        if user_weight <= 0:
            raise ValueError("user_weight must be positive")
        return cal_per_rep * (user_weight / cls.REFERENCE_WEIGHT)

    @staticmethod
    def round1(value: float) -> float:
        return round(value, 1)

    @staticmethod
    def is_finite(value: float) -> bool:
        return not (math.isnan(value) or math.isinf(value))
