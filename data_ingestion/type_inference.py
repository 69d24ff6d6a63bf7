"""Column type inference: boolean, number, date or string.

Each column is classified from a capped sample of its non-empty values. The
candidate types are tried in a fixed precedence and the first one matching
strictly more than ``TYPE_MATCH_THRESHOLD`` of the sample wins.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .cleaning_utils import boolean_token, cell_text, is_blank_cell, normalize_numeric_series, parse_date
from .config import (
    BOOLEAN_TOKENS,
    DATE_FORMAT_LIMIT,
    DATE_FORMAT_SAMPLE,
    DATE_SHAPE_PATTERN,
    SHEET_SOURCE_KEY,
    TYPE_MATCH_THRESHOLD,
    TYPE_PRECEDENCE,
    TYPE_SAMPLE_SIZE,
)

logger = logging.getLogger(__name__)

_DATE_PARTS = re.compile(
    r"^(\d{4})([-/])(\d{1,2})\2(\d{1,2})"
    r"(?:([ T])(\d{1,2}):(\d{2})(?::(\d{2}))?)?"
)


def is_date_like(value: Any) -> bool:
    """Date-shaped text that also parses to a real date."""
    text = cell_text(value)
    return bool(DATE_SHAPE_PATTERN.match(text)) and parse_date(value) is not None


def date_format_label(text: str) -> Optional[str]:
    """Literal format of a date string, e.g. ``YYYY/M/D`` or ``YYYY-MM-DD HH:mm``."""
    m = _DATE_PARTS.match(text.strip())
    if not m:
        return None
    year, sep, month, day, time_sep, hour, minute, second = m.groups()
    label = f"YYYY{sep}{'MM' if len(month) == 2 else 'M'}{sep}{'DD' if len(day) == 2 else 'D'}"
    if hour is not None:
        label += f"{time_sep}{'HH' if len(hour) == 2 else 'H'}:mm"
        if second is not None:
            label += ":ss"
    return label


def detect_date_formats(samples: Sequence[Any]) -> List[str]:
    formats: List[str] = []
    for value in list(samples)[:DATE_FORMAT_SAMPLE]:
        label = date_format_label(cell_text(value))
        if label and label not in formats:
            formats.append(label)
        if len(formats) >= DATE_FORMAT_LIMIT:
            break
    return formats


class TypeInferencer:
    """Infers one of string/number/date/boolean for each column of a raw frame."""

    def __init__(
        self,
        sample_size: int = TYPE_SAMPLE_SIZE,
        threshold: float = TYPE_MATCH_THRESHOLD,
    ):
        self.sample_size = sample_size
        self.threshold = threshold

    def sample(self, values: Sequence[Any]) -> List[Any]:
        out: List[Any] = []
        for v in values:
            if is_blank_cell(v):
                continue
            out.append(v)
            if len(out) >= self.sample_size:
                break
        return out

    def match_ratios(self, sample: Sequence[Any]) -> Dict[str, float]:
        """Share of the sample matching each candidate type, counted independently."""
        total = len(sample)
        if total == 0:
            return {"boolean": 0.0, "number": 0.0, "date": 0.0}
        boolean_hits = sum(1 for v in sample if boolean_token(v) in BOOLEAN_TOKENS)
        number_hits = int(
            normalize_numeric_series(pd.Series(list(sample), dtype=object)).notna().sum()
        )
        date_hits = sum(1 for v in sample if is_date_like(v))
        return {
            "boolean": boolean_hits / total,
            "number": number_hits / total,
            "date": date_hits / total,
        }

    def infer_column_type(self, values: Sequence[Any]) -> Tuple[str, float]:
        """Return ``(type, confidence)`` for a column's values.

        Values are sampled (blanks skipped, capped at ``sample_size``); an
        empty sample defaults to string.
        """
        sample = self.sample(values)
        if not sample:
            return "string", 0.0
        ratios = self.match_ratios(sample)
        for candidate in TYPE_PRECEDENCE:
            if candidate == "string":
                break
            if ratios[candidate] > self.threshold:
                return candidate, round(ratios[candidate], 4)
        return "string", round(1.0 - max(ratios.values()), 4)

    def infer_column(self, series: pd.Series) -> Dict[str, Any]:
        values = series.tolist()
        sample = self.sample(values)
        detected, confidence = self.infer_column_type(sample)
        info: Dict[str, Any] = {
            "detected_type": detected,
            "confidence_score": confidence,
            "sample_size": len(sample),
            "date_formats": detect_date_formats(sample) if detected == "date" else [],
        }
        return info

    def infer_types(self, frame: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
        """Infer a type for every column of ``frame`` (the sheet tag is skipped)."""
        type_info: Dict[str, Dict[str, Any]] = {}
        for column in frame.columns:
            if column == SHEET_SOURCE_KEY:
                continue
            type_info[column] = self.infer_column(frame[column])
            logger.debug(
                f"Column '{column}': type={type_info[column]['detected_type']}, "
                f"confidence={type_info[column]['confidence_score']}"
            )
        return type_info
