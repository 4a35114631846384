"""Tests for tier selection and section scaling."""

import pytest

from adaptive_sat.models.exam import Difficulty
from adaptive_sat.services.scoring import (
    percent_to_score,
    round_half_up,
    scale_linear,
    scale_section,
    select_difficulty,
)


class TestSelectDifficulty:
    @pytest.mark.parametrize(
        "percent, expected",
        [
            (0.0, Difficulty.EASY),
            (0.39999, Difficulty.EASY),
            (0.40, Difficulty.MEDIUM),
            (0.74999, Difficulty.MEDIUM),
            (0.75, Difficulty.HARD),
            (1.0, Difficulty.HARD),
        ],
    )
    def test_thresholds(self, percent, expected):
        assert select_difficulty(percent) is expected

    def test_lower_accuracy_never_routes_harder(self):
        order = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]
        tiers = [order.index(select_difficulty(p / 100)) for p in range(101)]
        assert tiers == sorted(tiers)


class TestScaleSection:
    def test_worked_example(self):
        # 0.4*0.5 + 0.6*0.8 - 0.03 = 0.65 -> 200 + 390
        assert scale_section(0.5, 0.8, Difficulty.EASY) == 590

    def test_perfect_hard_is_capped(self):
        assert scale_section(1.0, 1.0, Difficulty.HARD) == 800

    def test_zero_easy_is_floored(self):
        assert scale_section(0.0, 0.0, Difficulty.EASY) == 200

    def test_tier_adjustment(self):
        easy = scale_section(0.6, 0.6, Difficulty.EASY)
        medium = scale_section(0.6, 0.6, Difficulty.MEDIUM)
        hard = scale_section(0.6, 0.6, Difficulty.HARD)
        assert easy < medium < hard
        assert medium == 560

    def test_module2_weighs_more(self):
        assert scale_section(0.0, 1.0, Difficulty.MEDIUM) > scale_section(
            1.0, 0.0, Difficulty.MEDIUM
        )

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_monotonic_in_module2(self, difficulty):
        scores = [scale_section(0.5, p / 20, difficulty) for p in range(21)]
        assert scores == sorted(scores)
        assert all(200 <= s <= 800 for s in scores)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.4999) == 2

    def test_percent_to_score(self):
        assert percent_to_score(0.5) == 50
        assert percent_to_score(2 / 3) == 67
        assert percent_to_score(0.125) == 13
        assert percent_to_score(1.0) == 100


class TestScaleLinear:
    def test_warns_and_scales(self):
        with pytest.warns(DeprecationWarning):
            assert scale_linear(0.5) == 400
        with pytest.warns(DeprecationWarning):
            assert scale_linear(1.0) == 800

    def test_clamped(self):
        with pytest.warns(DeprecationWarning):
            assert scale_linear(1.5) == 800
        with pytest.warns(DeprecationWarning):
            assert scale_linear(-0.1) == 0


class TestScaleSectionModule1:
    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_monotonic_in_module1(self, difficulty):
        scores = [scale_section(p / 20, 0.5, difficulty) for p in range(21)]
        assert scores == sorted(scores)
        assert all(200 <= s <= 800 for s in scores)
