"""
Unit tests for relevance score validation.
"""

import pytest

from research_match.utils.scoring import validate_score


class TestValidateScore:
    """Test cases for validate_score."""

    @pytest.mark.parametrize(
        "raw,expected",
        [(85, 85.0), (72.46, 72.5), ("64", 64.0), (" 90% ", 90.0), (0, 0.0), (100, 100.0)],
    )
    def test_valid_scores(self, raw, expected):
        score, flags = validate_score(raw, "opp-1", "test-corr")
        assert score == expected
        assert flags == []

    @pytest.mark.parametrize("raw,expected", [(150, 100.0), (-3, 0.0)])
    def test_out_of_range_clamped(self, raw, expected):
        """Test that out-of-range values are clamped and flagged."""
        # Act
        score, flags = validate_score(raw, "opp-1", "test-corr")

        # Assert
        assert score == expected
        assert flags == ["score_out_of_range"]

    @pytest.mark.parametrize("raw", [None, True, "high", float("nan"), [80], {"score": 80}])
    def test_invalid_values_raise(self, raw):
        with pytest.raises(ValueError):
            validate_score(raw, "opp-1", "test-corr")
