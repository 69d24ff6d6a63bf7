import math
from datetime import datetime, timezone

import pandas as pd

from data_ingestion.cleaning_utils import (
    clean_rows,
    coerce_row,
    coerce_series,
    coerce_value,
    normalize_numeric_series,
    parse_date,
)
from data_ingestion.models import Column


def test_numeric_normalization():
    raw = pd.Series(
        ["$1,200", "1.234,56", "(45)", "12-", "15%", "2.5K", "3M", "− 7", "n/a", "", "abc"],
        dtype=object,
    )
    out = normalize_numeric_series(raw).tolist()
    assert out[0] == 1200.0
    assert out[1] == 1234.56
    assert out[2] == -45.0
    assert out[3] == -12.0
    assert out[4] == 0.15
    assert out[5] == 2500.0
    assert out[6] == 3_000_000.0
    assert out[7] == -7.0
    assert all(math.isnan(v) for v in out[8:])


def test_thousands_dot_grouping_and_plain_decimals():
    out = normalize_numeric_series(pd.Series(["1.234.567", "3.14", "-0.5", "1e3"], dtype=object))
    assert out.tolist() == [1234567.0, 3.14, -0.5, 1000.0]


def test_number_coercion_is_finite_or_none():
    values = coerce_series(pd.Series(["1", "inf", "-inf", "nan", "", 2, 2.5], dtype=object), "number")
    assert values == [1.0, None, None, None, None, 2.0, 2.5]


def test_date_coercion():
    assert parse_date("2024-03-01") == datetime(2024, 3, 1)
    assert parse_date("2024/3/1 10:15") == datetime(2024, 3, 1, 10, 15)
    assert parse_date(datetime(2024, 3, 1, 12, tzinfo=timezone.utc)) == datetime(2024, 3, 1, 12)
    assert parse_date("2024-03-01T10:00:00+02:00") == datetime(2024, 3, 1, 8)
    assert parse_date("not a date") is None
    assert parse_date("") is None
    assert parse_date(45000) is None


def test_boolean_and_string_coercion():
    assert coerce_value("YES", "boolean") is True
    assert coerce_value("否", "boolean") is False
    assert coerce_value(0, "boolean") is False
    assert coerce_value("maybe", "boolean") is None
    assert coerce_value("  padded  ", "string") == "padded"
    assert coerce_value(None, "string") == ""
    assert coerce_value(float("nan"), "string") == ""
    assert coerce_value(30.0, "string") == "30"


def test_coercion_never_raises_on_odd_input():
    odd = [object(), [1, 2], {"a": 1}, b"bytes"]
    for value in odd:
        for col_type in ("number", "date", "boolean", "string"):
            coerce_value(value, col_type)


def test_clean_rows_carries_sheet_tag():
    frame = pd.DataFrame(
        {"n": ["1", "x"], "s": ["a", ""], "_sheet_source": ["S1", "S2"]}, dtype=object
    )
    columns = [Column("n", "number"), Column("s", "string")]
    rows = clean_rows(frame, columns)
    assert rows == [
        {"n": 1.0, "s": "a", "_sheet_source": "S1"},
        {"n": None, "s": "", "_sheet_source": "S2"},
    ]


def test_coerce_row_fills_absent_columns():
    columns = [Column("n", "number"), Column("s", "string"), Column("d", "date")]
    assert coerce_row({"n": "5"}, columns) == {"n": 5.0, "s": "", "d": None}
