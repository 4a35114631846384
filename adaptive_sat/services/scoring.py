"""Adaptive tier selection and section score scaling.

No psychometric model here: the scaled score is a fixed linear blend of the
two module percentages, standing in for a real concordance table.
"""

import math
import warnings

from adaptive_sat.models.exam import Difficulty

# Accuracy thresholds for routing into module 2
MEDIUM_THRESHOLD = 0.40
HARD_THRESHOLD = 0.75

# Module 2 is targeted to the test-taker's level, so it weighs more
MODULE1_WEIGHT = 0.4
MODULE2_WEIGHT = 0.6

DIFFICULTY_ADJUSTMENT = {
    Difficulty.EASY: -0.03,
    Difficulty.MEDIUM: 0.0,
    Difficulty.HARD: 0.03,
}

SECTION_MIN = 200
SECTION_MAX = 800


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def percent_to_score(percent: float) -> int:
    """Fractional accuracy to the integer percent stored on the session."""
    return round_half_up(percent * 100)


def select_difficulty(percent: float) -> Difficulty:
    """Pick the module 2 tier from module 1 accuracy (0.0-1.0)."""
    if percent < MEDIUM_THRESHOLD:
        return Difficulty.EASY
    if percent < HARD_THRESHOLD:
        return Difficulty.MEDIUM
    return Difficulty.HARD


def scale_section(
    module1_percent: float,
    module2_percent: float,
    module2_difficulty: Difficulty,
) -> int:
    """Scale two module accuracies onto the 200-800 section band."""
    combined = (
        MODULE1_WEIGHT * module1_percent
        + MODULE2_WEIGHT * module2_percent
        + DIFFICULTY_ADJUSTMENT[module2_difficulty]
    )
    combined = min(max(combined, 0.0), 1.0)
    return round_half_up(SECTION_MIN + (SECTION_MAX - SECTION_MIN) * combined)


def scale_linear(percent: float) -> int:
    """Straight percent x 800 scaling used by the old finalize flow.

    Deprecated: ignores module weighting and the adaptive tier, and can
    disagree with `scale_section` for the same session.
    """
    warnings.warn(
        "scale_linear is deprecated; use scale_section",
        DeprecationWarning,
        stacklevel=2,
    )
    return round_half_up(min(max(percent * SECTION_MAX, 0), SECTION_MAX))
