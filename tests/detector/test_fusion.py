"""Tests for score fusion and severity levels."""

import pytest

from polymarket_insider_scanner.detector.fusion import clamp_score, fuse, merge_factors
from polymarket_insider_scanner.detector.models import SuspicionLevel, level_for_score


class TestLevelForScore:
    """Tests for score-to-level mapping."""

    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (0, SuspicionLevel.LOW),
            (40, SuspicionLevel.LOW),
            (41, SuspicionLevel.MEDIUM),
            (65, SuspicionLevel.MEDIUM),
            (66, SuspicionLevel.HIGH),
            (85, SuspicionLevel.HIGH),
            (86, SuspicionLevel.CRITICAL),
            (100, SuspicionLevel.CRITICAL),
        ],
    )
    def test_thresholds_are_exclusive(self, score: int, level: SuspicionLevel) -> None:
        """Test each band starts strictly above its threshold."""
        assert level_for_score(score) == level

    def test_levels_are_ordered(self) -> None:
        """Test the severity order."""
        assert SuspicionLevel.CRITICAL.at_least(SuspicionLevel.HIGH)
        assert SuspicionLevel.MEDIUM.at_least(SuspicionLevel.MEDIUM)
        assert not SuspicionLevel.LOW.at_least(SuspicionLevel.MEDIUM)
        assert SuspicionLevel.LOW.rank < SuspicionLevel.CRITICAL.rank


class TestFuse:
    """Tests for fuse()."""

    def test_mean_of_scores(self) -> None:
        """Test the final score is the mean of both inputs."""
        assert fuse(60, 80) == (70, SuspicionLevel.HIGH)

    def test_all_zero(self) -> None:
        """Test the lower bound."""
        assert fuse(0, 0) == (0, SuspicionLevel.LOW)

    def test_all_max(self) -> None:
        """Test the upper bound."""
        assert fuse(100, 100) == (100, SuspicionLevel.CRITICAL)

    def test_rounds_half_up(self) -> None:
        """Test .5 means round up."""
        assert fuse(35, 46) == (41, SuspicionLevel.MEDIUM)

    def test_clamped_to_100(self) -> None:
        """Test an unclamped heuristic score cannot push past 100."""
        score, level = fuse(175, 90)
        assert score == 100
        assert level == SuspicionLevel.CRITICAL

    def test_saturated_base_forces_critical(self) -> None:
        """Test a saturated heuristic score wins over a dismissive analyzer."""
        score, level = fuse(130, 10)
        assert score == 70
        assert level == SuspicionLevel.CRITICAL

    def test_deterministic(self) -> None:
        """Test identical inputs give identical outputs."""
        assert fuse(57, 33.3) == fuse(57, 33.3)

    def test_clamp_score(self) -> None:
        """Test clamping and rounding helpers."""
        assert clamp_score(-5) == 0
        assert clamp_score(100.4) == 100
        assert clamp_score(41.5) == 42


class TestMergeFactors:
    """Tests for merge_factors()."""

    def test_order_preserving_union(self) -> None:
        """Test duplicates collapse and first-seen order is kept."""
        merged = merge_factors(("a", "b"), ["b", "c"], ("a", "d"))
        assert merged == ("a", "b", "c", "d")

    def test_blank_tags_dropped(self) -> None:
        """Test empty tags are ignored."""
        assert merge_factors(("a", ""), ("",)) == ("a",)
