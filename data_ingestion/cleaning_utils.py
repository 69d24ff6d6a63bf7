"""Cell coercion for the cleaning stage.

Every cell is coerced to its column's inferred type:
  - number  -> finite float, or None (currency, separators, %, K/M/B handled)
  - date    -> naive datetime, or None
  - boolean -> True/False from a fixed literal set, or None
  - string  -> trimmed text, "" for missing

The functions here are total: malformed input becomes the null marker and
nothing is raised to the caller.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import BOOLEAN_FALSE_TOKENS, BOOLEAN_TRUE_TOKENS, SHEET_SOURCE_KEY
from .models import CellValue, Column, Row

# -----------------------------
# Null tokens (lowercased set)
# -----------------------------
NULL_TOKENS = {
    "",
    "-",
    "--",
    "—",
    "–",
    "n/a",
    "n.a.",
    "na",
    "nan",
    "none",
    "null",
    "nil",
    "#n/a",
    "#null!",
    "#div/0!",
    "#value!",
    "#ref!",
    "#name?",
    "#num!",
    "(null)",
    "(empty)",
    "(blank)",
}
_NULL_TOKENS_LOWER = {t.lower() for t in NULL_TOKENS}

CURRENCY_PATTERN = re.compile(
    r"(?:\$|€|£|¥|￥|₺|₩|₹|₦|₽|₫|₪|₴|₱|R\$|C\$|A\$|CHF|RMB)"
)
SEPARATORS_PATTERN = re.compile(r"[\u00A0\u2000-\u200B'\s]+")
KMB_SUFFIX_PATTERN = re.compile(r"\s*([kKmMbB])\s*$")


def is_blank_cell(value: Any) -> bool:
    """True for None/NaN and for text that is empty after trimming."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def cell_text(value: Any) -> str:
    """Render a raw cell as trimmed text; integral floats lose their ``.0``."""
    if is_blank_cell(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.isoformat(sep=" ")
    return str(value).strip()


def boolean_token(value: Any) -> str:
    return cell_text(value).lower()


def _normalize_whitespace_and_minus(series: pd.Series) -> pd.Series:
    s = series.astype(str)
    s = s.str.replace("\u2212", "-", regex=False)
    s = s.str.replace("\u00a0", " ", regex=False)
    s = s.str.replace(r"[\u2000-\u200B]", " ", regex=True)
    return s


def _handle_percent(series: pd.Series):
    mask = series.str.contains("%", na=False)
    return series.str.replace("%", "", regex=False), mask


def _detect_negatives(series: pd.Series):
    s = series
    mask_paren = s.str.match(r"^\(.*\)$", na=False)
    s = s.mask(mask_paren, s.str.replace(r"^[\(](.*)[\)]$", r"\1", regex=True))
    mask_trail = s.str.endswith("-", na=False) & (s.str.len() > 1)
    s = s.mask(mask_trail, s.str[:-1])
    return s, mask_paren | mask_trail


def _extract_kmb_multiplier(series: pd.Series):
    suffix = series.str.extract(KMB_SUFFIX_PATTERN.pattern)[0].fillna("").str.lower()
    mult = pd.Series(1.0, index=series.index, dtype=float)
    mult = mult.mask(suffix == "k", 1e3)
    mult = mult.mask(suffix == "m", 1e6)
    mult = mult.mask(suffix == "b", 1e9)
    cleaned = series.str.replace(KMB_SUFFIX_PATTERN.pattern, "", regex=True)
    return cleaned, mult


def _strip_currency_and_separators(series: pd.Series) -> pd.Series:
    s = series.str.replace(CURRENCY_PATTERN.pattern, "", regex=True)
    return s.str.replace(SEPARATORS_PATTERN.pattern, "", regex=True)


def _normalize_decimal_thousands(series: pd.Series) -> pd.Series:
    """Resolve ``1.234,5`` / ``1,234.5`` / ``1,5`` into a dot-decimal string."""
    s = series
    has_dot = s.str.contains(r"\.", na=False)
    has_comma = s.str.contains(",", na=False)
    both = has_dot & has_comma
    last_dot = s.str.rfind(".")
    last_comma = s.str.rfind(",")

    out = s.mask(both & (last_dot > last_comma), s.str.replace(",", "", regex=False))
    comma_decimal = both & (last_comma > last_dot)
    out = out.mask(
        comma_decimal,
        out.str.replace(".", "", regex=False).str.replace(",", ".", regex=False),
    )

    only_comma = has_comma & ~has_dot
    looks_decimal_comma = only_comma & s.str.contains(r",\d{1,2}$", na=False)
    out = out.mask(looks_decimal_comma, out.str.replace(",", ".", regex=False))
    out = out.mask(
        only_comma & ~looks_decimal_comma, out.str.replace(",", "", regex=False)
    )

    only_dot = has_dot & ~has_comma
    looks_decimal_dot = only_dot & s.str.contains(
        r"^[-+]?\d*\.\d+(?:[eE][-+]?\d+)?$", na=False
    )
    out = out.mask(
        only_dot & ~looks_decimal_dot & s.str.contains(r"^[-+]?\d{1,3}(?:\.\d{3})+$", na=False),
        out.str.replace(".", "", regex=False),
    )
    return out


def _is_native_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(
        value, (bool, np.bool_)
    )


def normalize_numeric_series(series: pd.Series) -> pd.Series:
    """Parse a raw series into floats; anything unparsable becomes NaN."""
    s = series.astype(object)
    native = s.map(_is_native_number).astype(bool)
    out = pd.Series(np.nan, index=s.index, dtype=float)
    if native.any():
        out[native] = pd.to_numeric(s[native], errors="coerce").astype(float)

    text = s[~native].map(cell_text)
    if not text.empty:
        text = _normalize_whitespace_and_minus(text).str.strip()
        text = text.mask(text.str.lower().isin(_NULL_TOKENS_LOWER), "")
        text, percent_mask = _handle_percent(text)
        text, negative_mask = _detect_negatives(text)
        text, kmb_multiplier = _extract_kmb_multiplier(text)
        text = _strip_currency_and_separators(text)
        text = _normalize_decimal_thousands(text)
        nums = pd.to_numeric(text, errors="coerce").astype(float)
        nums = nums * kmb_multiplier
        nums = nums.mask(negative_mask, -nums)
        nums = nums.mask(percent_mask, nums / 100.0)
        out[~native] = nums

    return out.replace([np.inf, -np.inf], np.nan)


def parse_date(value: Any) -> Optional[datetime]:
    """Parse one raw cell into a naive datetime (UTC for aware inputs)."""
    if is_blank_cell(value) or isinstance(value, (bool, int, float, np.number)):
        return None
    try:
        if isinstance(value, (datetime, date)):
            ts = pd.Timestamp(value)
        else:
            text = str(value).strip()
            if text.lower() in _NULL_TOKENS_LOWER:
                return None
            ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def coerce_boolean(value: Any) -> Optional[bool]:
    token = boolean_token(value)
    if token in BOOLEAN_TRUE_TOKENS:
        return True
    if token in BOOLEAN_FALSE_TOKENS:
        return False
    return None


def coerce_number(value: Any) -> Optional[float]:
    parsed = normalize_numeric_series(pd.Series([value], dtype=object)).iloc[0]
    return None if pd.isna(parsed) else float(parsed)


def coerce_string(value: Any) -> str:
    return cell_text(value)


def coerce_value(value: Any, col_type: str) -> CellValue:
    """Coerce one raw cell to ``col_type``. Never raises."""
    try:
        if col_type == "number":
            return coerce_number(value)
        if col_type == "date":
            return parse_date(value)
        if col_type == "boolean":
            return coerce_boolean(value)
        return coerce_string(value)
    except (ValueError, TypeError, OverflowError, AttributeError):
        return "" if col_type == "string" else None


def coerce_series(series: pd.Series, col_type: str) -> List[CellValue]:
    """Vectorized coercion of a whole column, falling back to per-cell on error."""
    if col_type == "number":
        try:
            nums = normalize_numeric_series(series)
            return [None if pd.isna(v) else float(v) for v in nums]
        except (ValueError, TypeError, OverflowError, AttributeError):
            pass
    return [coerce_value(v, col_type) for v in series.tolist()]


def clean_rows(frame: pd.DataFrame, columns: Sequence[Column]) -> List[Row]:
    """Coerce every cell of ``frame`` to its column's type, row by row.

    The sheet-origin tag column, when present, is carried through unchanged.
    """
    cleaned: Dict[str, List[CellValue]] = {}
    for col in columns:
        if col.name in frame.columns:
            cleaned[col.name] = coerce_series(frame[col.name], col.type)
        else:
            cleaned[col.name] = [coerce_value("", col.type)] * len(frame)

    tags = frame[SHEET_SOURCE_KEY].tolist() if SHEET_SOURCE_KEY in frame.columns else None
    rows: List[Row] = []
    for i in range(len(frame)):
        row: Row = {col.name: cleaned[col.name][i] for col in columns}
        if tags is not None:
            row[SHEET_SOURCE_KEY] = tags[i]
        rows.append(row)
    return rows


def coerce_row(values: Dict[str, Any], columns: Sequence[Column]) -> Row:
    """Coerce a user-supplied mapping onto ``columns``; absent keys become blank."""
    row: Row = {col.name: coerce_value(values.get(col.name), col.type) for col in columns}
    if SHEET_SOURCE_KEY in values:
        row[SHEET_SOURCE_KEY] = values[SHEET_SOURCE_KEY]
    return row


__all__ = [
    "NULL_TOKENS",
    "boolean_token",
    "cell_text",
    "clean_rows",
    "coerce_row",
    "coerce_series",
    "coerce_value",
    "is_blank_cell",
    "normalize_numeric_series",
    "parse_date",
]
