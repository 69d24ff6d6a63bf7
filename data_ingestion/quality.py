"""Dataset-level quality metrics: completeness, uniqueness, issues and a score."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from .config import (
    DUPLICATE_HIGH_THRESHOLD,
    DUPLICATE_PENALTY_CAP,
    EXAMPLE_LIMIT,
    MISSING_HIGH_THRESHOLD,
    MISSING_ISSUE_THRESHOLD,
    MISSING_PENALTY_CAP,
)
from .models import Column, Row, count_duplicate_rows, is_missing
from .statistics import NumericStats

logger = logging.getLogger(__name__)


@dataclass
class QualityIssue:
    type: str  # missing_values | duplicates | outliers
    description: str
    count: int
    severity: str  # low | medium | high
    column: Optional[str] = None
    examples: List[Any] = field(default_factory=list)


@dataclass
class Completeness:
    total_cells: int
    filled_cells: int
    empty_cells: int
    completeness_rate: float


@dataclass
class Uniqueness:
    total_rows: int
    unique_rows: int
    duplicate_rows: int
    duplicate_rate: float


@dataclass
class Consistency:
    issues: List[QualityIssue]
    score: float


@dataclass
class QualityReport:
    completeness: Completeness
    uniqueness: Uniqueness
    consistency: Consistency


def quality_score(missing_pct: float, duplicate_pct: float) -> float:
    """``100 - min(30, missing%) - min(20, duplicate%)``, floored at 0."""
    score = 100.0 - min(MISSING_PENALTY_CAP, missing_pct) - min(DUPLICATE_PENALTY_CAP, duplicate_pct)
    return round(max(0.0, score), 2)


def _completeness(columns: Sequence[Column], rows: Sequence[Row]) -> Completeness:
    total = len(rows) * len(columns)
    empty = sum(1 for row in rows for col in columns if is_missing(row.get(col.name)))
    rate = round((total - empty) / total * 100, 2) if total else 100.0
    return Completeness(
        total_cells=total,
        filled_cells=total - empty,
        empty_cells=empty,
        completeness_rate=rate,
    )


def _uniqueness(columns: Sequence[Column], rows: Sequence[Row]) -> Uniqueness:
    duplicates = count_duplicate_rows(rows, [c.name for c in columns])
    total = len(rows)
    return Uniqueness(
        total_rows=total,
        unique_rows=total - duplicates,
        duplicate_rows=duplicates,
        duplicate_rate=round(duplicates / total * 100, 2) if total else 0.0,
    )


def _columns_with_missing(columns: Sequence[Column], rows: Sequence[Row]) -> List[str]:
    counts = {
        col.name: sum(1 for row in rows if is_missing(row.get(col.name))) for col in columns
    }
    ranked = sorted((name for name, n in counts.items() if n), key=lambda n: -counts[n])
    return ranked[:EXAMPLE_LIMIT]


def _outlier_issues(
    rows: Sequence[Row], numeric_stats: Mapping[str, Optional[NumericStats]]
) -> List[QualityIssue]:
    issues: List[QualityIssue] = []
    for name, stats in numeric_stats.items():
        if stats is None or stats.outliers <= 0:
            continue
        examples = [
            v
            for v in (row.get(name) for row in rows)
            if isinstance(v, float) and (v < stats.lower_fence or v > stats.upper_fence)
        ][:EXAMPLE_LIMIT]
        issues.append(
            QualityIssue(
                type="outliers",
                column=name,
                description=f"Column '{name}' has {stats.outliers} value(s) outside the IQR fences",
                count=stats.outliers,
                severity="low",
                examples=examples,
            )
        )
    return issues


def analyze_quality(
    columns: Sequence[Column],
    rows: Sequence[Row],
    numeric_stats: Optional[Mapping[str, Optional[NumericStats]]] = None,
) -> QualityReport:
    """Score a table and list its quality issues.

    Outlier issues are informational and never lower the score.
    """
    completeness = _completeness(columns, rows)
    uniqueness = _uniqueness(columns, rows)
    total_cells = completeness.total_cells
    missing_pct = completeness.empty_cells / total_cells * 100 if total_cells else 0.0

    issues: List[QualityIssue] = []
    if missing_pct > MISSING_ISSUE_THRESHOLD:
        issues.append(
            QualityIssue(
                type="missing_values",
                description=f"{completeness.empty_cells} empty cell(s) ({missing_pct:.2f}% of all cells)",
                count=completeness.empty_cells,
                severity="high" if missing_pct > MISSING_HIGH_THRESHOLD else "medium",
                examples=_columns_with_missing(columns, rows),
            )
        )
    if uniqueness.duplicate_rows > 0:
        issues.append(
            QualityIssue(
                type="duplicates",
                description=(
                    f"{uniqueness.duplicate_rows} duplicate row(s) "
                    f"({uniqueness.duplicate_rate:.2f}% of all rows)"
                ),
                count=uniqueness.duplicate_rows,
                severity="medium" if uniqueness.duplicate_rate > DUPLICATE_HIGH_THRESHOLD else "low",
            )
        )
    issues.extend(_outlier_issues(rows, numeric_stats or {}))

    score = quality_score(missing_pct, uniqueness.duplicate_rate)
    logger.debug(
        f"Quality: score={score}, missing={missing_pct:.2f}%, duplicates={uniqueness.duplicate_rows}"
    )
    return QualityReport(
        completeness=completeness,
        uniqueness=uniqueness,
        consistency=Consistency(issues=issues, score=score),
    )
