"""Named thresholds and tunables shared by every pipeline stage.

Algorithm modules import these names rather than repeating literals, so a
threshold can be tuned here (or through ``IngestConfig``) without touching
the code that applies it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple

# -----------------------------
# Upload validation
# -----------------------------
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MiB
SUPPORTED_EXTENSIONS: Tuple[str, ...] = (".csv", ".xlsx", ".xls")
CSV_ENCODINGS: Tuple[str, ...] = ("utf-8-sig", "utf-8", "gb18030", "latin-1")

# Hidden per-row tag naming the sheet a combined row came from.
SHEET_SOURCE_KEY = "_sheet_source"

# -----------------------------
# Type inference
# -----------------------------
TYPE_SAMPLE_SIZE = 100
# A type wins when strictly more than this share of the sample matches it.
TYPE_MATCH_THRESHOLD = 0.8
TYPE_PRECEDENCE: Tuple[str, ...] = ("boolean", "number", "date", "string")

BOOLEAN_TRUE_TOKENS = frozenset({"true", "yes", "是", "1"})
BOOLEAN_FALSE_TOKENS = frozenset({"false", "no", "否", "0"})
BOOLEAN_TOKENS = BOOLEAN_TRUE_TOKENS | BOOLEAN_FALSE_TOKENS

# YYYY-M-D / YYYY/M/D, optionally followed by a time part.
DATE_SHAPE_PATTERN = re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}(?:[ T].*)?$")
DATE_FORMAT_SAMPLE = 10
DATE_FORMAT_LIMIT = 3

# -----------------------------
# Statistics
# -----------------------------
IQR_FENCE_MULTIPLIER = 1.5
SKEWED_THRESHOLD = 1.0
TOP_VALUES_LIMIT = 10
EXAMPLE_LIMIT = 5
PATTERN_MATCH_RATIO = 0.5
LOW_CARDINALITY_RATIO = 0.1
HIGH_CARDINALITY_RATIO = 0.5
# Date range (in days) upper bounds for each granularity label.
HOUR_GRANULARITY_MAX_DAYS = 1
DAY_GRANULARITY_MAX_DAYS = 90
MONTH_GRANULARITY_MAX_DAYS = 730

# -----------------------------
# Quality scoring (percentages)
# -----------------------------
MISSING_ISSUE_THRESHOLD = 10.0
MISSING_HIGH_THRESHOLD = 30.0
DUPLICATE_HIGH_THRESHOLD = 10.0
MISSING_PENALTY_CAP = 30.0
DUPLICATE_PENALTY_CAP = 20.0

# -----------------------------
# Semantics and visualization
# -----------------------------
IDENTIFIER_UNIQUE_RATIO = 0.95
DIMENSION_UNIQUE_RATIO = 0.10
SEMANTIC_CONFIDENCE_BOOST = 0.15
PIE_MAX_CATEGORIES = 8
KEY_NUMERIC_COLUMNS = 3
CORRELATION_THRESHOLD = 0.7

# -----------------------------
# Preview
# -----------------------------
PREVIEW_SIZE = 5
RANDOM_SEED = 42


@dataclass(frozen=True)
class IngestConfig:
    """Tunable subset of the constants above, passed by value through the pipeline."""

    max_file_size: int = MAX_FILE_SIZE
    supported_extensions: Tuple[str, ...] = SUPPORTED_EXTENSIONS
    sample_size: int = TYPE_SAMPLE_SIZE
    type_match_threshold: float = TYPE_MATCH_THRESHOLD
    iqr_multiplier: float = IQR_FENCE_MULTIPLIER
    preview_size: int = PREVIEW_SIZE
    random_seed: Optional[int] = RANDOM_SEED

    @classmethod
    def from_mapping(cls, config: Optional[Mapping[str, Any]]) -> "IngestConfig":
        """Build a config from a plain dict, ignoring keys it does not know."""
        if not config:
            return cls()
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {k: v for k, v in config.items() if k in known}
        if "supported_extensions" in values:
            values["supported_extensions"] = tuple(
                e.lower() for e in values["supported_extensions"]
            )
        return cls(**values)


def resolve_config(config: Any = None) -> IngestConfig:
    """Accept an ``IngestConfig``, a dict, or ``None``."""
    if isinstance(config, IngestConfig):
        return config
    return IngestConfig.from_mapping(config)


DEFAULT_CONFIG = IngestConfig()
