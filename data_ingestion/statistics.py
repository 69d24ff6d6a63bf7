"""Descriptive statistics per column: numeric, text and date.

Every function takes a column's cleaned values and returns ``None`` when
fewer than two usable values exist ("statistics unavailable").
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import (
    DATE_SHAPE_PATTERN,
    DAY_GRANULARITY_MAX_DAYS,
    HIGH_CARDINALITY_RATIO,
    HOUR_GRANULARITY_MAX_DAYS,
    IQR_FENCE_MULTIPLIER,
    LOW_CARDINALITY_RATIO,
    MONTH_GRANULARITY_MAX_DAYS,
    PATTERN_MATCH_RATIO,
    SKEWED_THRESHOLD,
    TOP_VALUES_LIMIT,
)
from .models import CellValue, is_missing

TEXT_PATTERNS: Dict[str, re.Pattern] = {
    "digits": re.compile(r"^\d+$"),
    "code": re.compile(r"^(?=.*[A-Z])(?=.*\d)[A-Z0-9][A-Z0-9_-]*$"),
    "email": re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$"),
    "date": re.compile(DATE_SHAPE_PATTERN.pattern + r"|^\d{1,2}[-/.]\d{1,2}[-/.]\d{2,4}$"),
}


@dataclass
class ColumnProfile:
    count: int
    null_count: int
    unique_count: int
    null_rate: float
    unique_rate: float


@dataclass
class NumericStats:
    count: int
    min: float
    max: float
    mean: float
    median: float
    std: float
    quartiles: Tuple[float, float, float]
    iqr: float
    lower_fence: float
    upper_fence: float
    outliers: int
    distribution: str
    skewness: Optional[float] = None


@dataclass
class ValueCount:
    value: str
    count: int
    percentage: float


@dataclass
class TextStats:
    count: int
    min_length: int
    max_length: int
    avg_length: float
    unique_count: int
    common_values: List[ValueCount]
    entropy: float
    cardinality: str
    patterns: List[str] = field(default_factory=list)


@dataclass
class DateStats:
    count: int
    min_date: datetime
    max_date: datetime
    date_range: int
    granularity: str
    formats: List[str] = field(default_factory=list)


def column_profile(values: Sequence[CellValue]) -> ColumnProfile:
    total = len(values)
    present = [v for v in values if not is_missing(v)]
    unique_count = len({(type(v).__name__, v) for v in present})
    return ColumnProfile(
        count=len(present),
        null_count=total - len(present),
        unique_count=unique_count,
        null_rate=round((total - len(present)) / total * 100, 2) if total else 0.0,
        unique_rate=round(unique_count / total * 100, 2) if total else 0.0,
    )


def _finite_numbers(values: Sequence[CellValue]) -> pd.Series:
    nums = [
        float(v)
        for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]
    return pd.Series(nums, dtype=float)


def numeric_statistics(
    values: Sequence[CellValue], iqr_multiplier: float = IQR_FENCE_MULTIPLIER
) -> Optional[NumericStats]:
    """min/max/mean/median, population std, quartiles and IQR outliers."""
    clean = _finite_numbers(values)
    if len(clean) < 2:
        return None

    q1, q2, q3 = (float(q) for q in clean.quantile([0.25, 0.5, 0.75], interpolation="linear"))
    iqr = q3 - q1
    lower = q1 - iqr_multiplier * iqr
    upper = q3 + iqr_multiplier * iqr
    outliers = int(((clean < lower) | (clean > upper)).sum())

    skewness: Optional[float] = None
    distribution = "unknown"
    if len(clean) >= 3:
        skew = clean.skew()
        if not pd.isna(skew):
            skewness = round(float(skew), 4)
            distribution = "skewed" if abs(skewness) > SKEWED_THRESHOLD else "normal"

    return NumericStats(
        count=int(len(clean)),
        min=float(clean.min()),
        max=float(clean.max()),
        mean=float(clean.mean()),
        median=q2,
        std=float(clean.std(ddof=0)),
        quartiles=(q1, q2, q3),
        iqr=float(iqr),
        lower_fence=float(lower),
        upper_fence=float(upper),
        outliers=outliers,
        distribution=distribution,
        skewness=skewness,
    )


def _cardinality(unique_count: int, total: int) -> str:
    ratio = unique_count / total if total else 0.0
    if ratio < LOW_CARDINALITY_RATIO:
        return "low"
    if ratio < HIGH_CARDINALITY_RATIO:
        return "medium"
    return "high"


def detect_patterns(texts: Sequence[str]) -> List[str]:
    """Shape patterns shared by at least ``PATTERN_MATCH_RATIO`` of the values."""
    if not texts:
        return []
    found = []
    for label, pattern in TEXT_PATTERNS.items():
        hits = sum(1 for t in texts if pattern.match(t))
        if hits / len(texts) >= PATTERN_MATCH_RATIO:
            found.append(label)
    return found


def text_statistics(values: Sequence[CellValue]) -> Optional[TextStats]:
    """Length stats, most frequent values, entropy and shape patterns."""
    texts = [
        ("true" if v else "false") if isinstance(v, bool) else str(v)
        for v in values
        if not is_missing(v)
    ]
    if len(texts) < 2:
        return None

    series = pd.Series(texts, dtype=object)
    lengths = series.str.len()
    counts = series.value_counts()
    total = len(series)
    probs = counts.to_numpy(dtype=float) / total

    return TextStats(
        count=total,
        min_length=int(lengths.min()),
        max_length=int(lengths.max()),
        avg_length=round(float(lengths.mean()), 2),
        unique_count=int(len(counts)),
        common_values=[
            ValueCount(value=str(value), count=int(count), percentage=round(count / total * 100, 2))
            for value, count in counts.head(TOP_VALUES_LIMIT).items()
        ],
        entropy=round(float(-(probs * np.log2(probs)).sum()), 4),
        cardinality=_cardinality(len(counts), total),
        patterns=detect_patterns(texts),
    )


def date_granularity(span: timedelta) -> str:
    days = span.total_seconds() / 86400
    if days < HOUR_GRANULARITY_MAX_DAYS:
        return "hour"
    if days <= DAY_GRANULARITY_MAX_DAYS:
        return "day"
    if days <= MONTH_GRANULARITY_MAX_DAYS:
        return "month"
    return "year"


def date_statistics(
    values: Sequence[CellValue], formats: Sequence[str] = ()
) -> Optional[DateStats]:
    dates = [v for v in values if isinstance(v, datetime)]
    if len(dates) < 2:
        return None
    lo, hi = min(dates), max(dates)
    return DateStats(
        count=len(dates),
        min_date=lo,
        max_date=hi,
        date_range=(hi - lo).days,
        granularity=date_granularity(hi - lo),
        formats=list(formats),
    )
