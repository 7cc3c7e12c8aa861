# SPDX-License-Identifier: MIT
"""Tests for field comparison primitives."""

import math

import pytest

from fingerprint.matching.normalize import (
    jaccard,
    mean_score,
    numeric_score,
    range_score,
    string_score,
)


class TestStringScore:
    """Test case-insensitive string equality."""

    def test_equal_ignoring_case(self):
        """Case should not matter."""
        assert string_score("Linux x86_64", "linux X86_64") == 1.0

    def test_surrounding_whitespace_significant(self):
        """Values are compared as sent, without trimming."""
        assert string_score(" en-US", "en-US") == 0.0
        assert string_score("wifi ", "WIFI ") == 1.0

    def test_different_values(self):
        """Different values should score 0."""
        assert string_score("wifi", "4g") == 0.0

    @pytest.mark.parametrize("a,b", [(None, "x"), ("x", None), (None, None), ("", ""), ("  ", "  ")])
    def test_missing_or_blank(self, a, b):
        """Missing or blank values are not evidence of agreement."""
        assert string_score(a, b) == 0.0


class TestNumericScore:
    """Test exact integral comparison."""

    def test_equal(self):
        """Equal values should score 1."""
        assert numeric_score(8, 8) == 1.0

    def test_off_by_one(self):
        """Any difference should score 0."""
        assert numeric_score(8, 7) == 0.0

    def test_fractional_values_not_truncated(self):
        """8.5 is not the same as 8."""
        assert numeric_score(8.5, 8) == 0.0

    def test_missing(self):
        """Missing values should score 0."""
        assert numeric_score(None, 8) == 0.0
        assert numeric_score(4, None) == 0.0

    def test_garbage_never_raises(self):
        """Unparseable values should score 0 rather than raise."""
        assert numeric_score("eight", 8) == 0.0
        assert numeric_score(float("inf"), 8) == 0.0


class TestRangeScore:
    """Test bounded-tolerance comparison."""

    def test_within_epsilon(self):
        """Negligible differences count as exact."""
        assert range_score(10.0, 10.00001, 5.0) == 1.0

    def test_linear_falloff(self):
        """Differences inside the window fall off linearly."""
        assert range_score(10.0, 12.0, 5.0) == pytest.approx(0.6)

    def test_at_tolerance(self):
        """A difference equal to the tolerance scores 0."""
        assert range_score(10.0, 15.0, 5.0) == pytest.approx(0.0)

    def test_beyond_tolerance(self):
        """Differences past the window score 0."""
        assert range_score(120.0, 130.0, 5.0) == 0.0

    def test_missing_and_nan(self):
        """Missing or NaN values score 0."""
        assert range_score(None, 1.0, 5.0) == 0.0
        assert range_score(math.nan, 1.0, 5.0) == 0.0


class TestJaccard:
    """Test set similarity."""

    def test_identical_sets(self):
        """Identical non-empty sets score 1."""
        assert jaccard(["a", "b"], ("b", "a")) == 1.0

    def test_disjoint_sets(self):
        """Disjoint non-empty sets score 0."""
        assert jaccard(["a"], ["b"]) == 0.0

    def test_partial_overlap(self):
        """Score is intersection over union."""
        assert jaccard(["a", "b", "c"], ["b", "c", "d"]) == pytest.approx(0.5)

    def test_duplicates_collapse(self):
        """Collections are compared as sets."""
        assert jaccard(["a", "a", "b"], ["a", "b"]) == 1.0

    def test_blank_entries_ignored(self):
        """Null and blank entries are excluded before comparing."""
        assert jaccard(["a", None, " "], ["a"]) == 1.0

    def test_empty_or_missing(self):
        """Empty or missing collections score 0, not 1."""
        assert jaccard([], []) == 0.0
        assert jaccard(None, ["a"]) == 0.0
        assert jaccard(["a"], [None, ""]) == 0.0


class TestMeanScore:
    """Test averaging of field scores."""

    def test_mean(self):
        """Mean of defined values."""
        assert mean_score([1.0, 0.0, 0.5]) == pytest.approx(0.5)

    def test_undefined_values_skipped(self):
        """None and NaN entries do not count."""
        assert mean_score([1.0, None, math.nan]) == 1.0

    def test_empty(self):
        """No defined values gives 0."""
        assert mean_score([]) == 0.0
