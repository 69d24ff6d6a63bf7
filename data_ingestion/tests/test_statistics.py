from datetime import datetime

import pytest

from data_ingestion.statistics import (
    column_profile,
    date_statistics,
    detect_patterns,
    numeric_statistics,
    text_statistics,
)


def test_numeric_statistics_with_outlier():
    stats = numeric_statistics([1.0, 2.0, 3.0, 4.0, 100.0, None])
    assert stats.count == 5
    assert stats.min == 1.0
    assert stats.max == 100.0
    assert stats.mean == pytest.approx(22.0)
    assert stats.median == 3.0
    assert stats.quartiles == (2.0, 3.0, 4.0)
    assert stats.iqr == 2.0
    assert stats.outliers == 1
    assert stats.distribution == "skewed"
    # population standard deviation
    assert stats.std == pytest.approx(39.0128, rel=1e-4)


def test_numeric_statistics_symmetric_and_small_inputs():
    stats = numeric_statistics([1.0, 2.0, 3.0])
    assert stats.distribution == "normal"
    assert stats.outliers == 0
    assert numeric_statistics([1.0, 2.0]).distribution == "unknown"
    assert numeric_statistics([5.0]) is None
    assert numeric_statistics([None, None]) is None


def test_numeric_statistics_ignores_non_numbers():
    stats = numeric_statistics([1.0, True, "7", 3.0])
    assert stats.count == 2
    assert stats.max == 3.0


def test_text_statistics():
    stats = text_statistics(["a", "bb", "a", "", None])
    assert stats.count == 3
    assert stats.min_length == 1
    assert stats.max_length == 2
    assert stats.avg_length == pytest.approx(1.33)
    assert stats.unique_count == 2
    assert stats.common_values[0].value == "a"
    assert stats.common_values[0].count == 2
    assert stats.common_values[0].percentage == pytest.approx(66.67)
    assert stats.entropy == pytest.approx(0.9183, abs=1e-4)
    assert text_statistics(["only"]) is None


def test_text_statistics_caps_common_values():
    values = [f"v{i}" for i in range(30)]
    stats = text_statistics(values)
    assert len(stats.common_values) == 10
    assert stats.cardinality == "high"


def test_cardinality_labels():
    assert text_statistics(["x"] * 20 + ["y"]).cardinality == "low"
    assert text_statistics(["x", "y", "z"] * 3 + ["x"]).cardinality == "medium"


def test_detect_patterns():
    assert detect_patterns(["123", "456", "abc"]) == ["digits"]
    assert detect_patterns(["AB12", "CD-34"]) == ["code"]
    assert detect_patterns(["a@b.com", "c@d.org"]) == ["email"]
    assert detect_patterns(["2024-01-01", "01/02/2024"]) == ["date"]
    assert detect_patterns(["hello", "world"]) == []


def test_date_statistics_granularity():
    day = date_statistics([datetime(2024, 1, 1), datetime(2024, 3, 1)], ["YYYY-MM-DD"])
    assert day.date_range == 60
    assert day.granularity == "day"
    assert day.formats == ["YYYY-MM-DD"]
    assert date_statistics([datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 17)]).granularity == "hour"
    assert date_statistics([datetime(2024, 1, 1), datetime(2025, 6, 1)]).granularity == "month"
    assert date_statistics([datetime(2020, 1, 1), datetime(2024, 1, 1)]).granularity == "year"
    assert date_statistics([datetime(2024, 1, 1), None]) is None


def test_column_profile():
    profile = column_profile(["a", "", None, "a", "b"])
    assert profile.count == 3
    assert profile.null_count == 2
    assert profile.unique_count == 2
    assert profile.null_rate == 40.0
    assert profile.unique_rate == 40.0
    empty = column_profile([])
    assert empty.null_rate == 0.0
