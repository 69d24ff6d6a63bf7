"""Metadata bundle for a Dataset: structure, statistics, quality, semantics,
sheet layout, preview rows and visualization hints.

Everything here is derived from ``dataset.columns`` + ``dataset.rows`` and can
be recomputed at any time. ``build_llm_payload`` condenses a bundle into the
compact dict handed to a prompt builder.
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import (
    CORRELATION_THRESHOLD,
    KEY_NUMERIC_COLUMNS,
    PIE_MAX_CATEGORIES,
    SHEET_SOURCE_KEY,
    resolve_config,
)
from .file_parser import file_extension, format_size
from .models import COLUMN_TYPES, Column, Dataset, Row, Sheet, is_missing
from .quality import QualityReport, analyze_quality
from .semantics import SemanticType, Semantics, annotate_column, build_semantics, keyword_matches
from .statistics import (
    ColumnProfile,
    DateStats,
    NumericStats,
    TextStats,
    column_profile,
    date_statistics,
    numeric_statistics,
    text_statistics,
)

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = "v1"

SHEET_PURPOSE_KEYWORDS = {
    "summary": ("summary", "total", "overview", "汇总", "统计", "总计"),
    "detail": ("detail", "record", "log", "明细", "记录"),
    "reference": ("config", "setting", "lookup", "dict", "mapping", "配置", "参数", "字典"),
}


@dataclass(frozen=True)
class BasicInfo:
    id: str
    name: str
    description: str
    created_at: datetime
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class FileInfo:
    file_name: str
    file_size: int
    file_size_formatted: str
    file_type: str
    file_extension: str
    upload_time: datetime
    processing_time_ms: Optional[float] = None


@dataclass(frozen=True)
class StructureInfo:
    total_rows: int
    total_columns: int
    actual_data_rows: int
    column_types: Dict[str, int]


@dataclass(frozen=True)
class EnhancedColumn:
    name: str
    type: str
    nullable: bool
    unique: bool
    examples: List[Any]
    statistics: ColumnProfile
    semantic_type: SemanticType
    numeric_stats: Optional[NumericStats] = None
    text_stats: Optional[TextStats] = None
    date_stats: Optional[DateStats] = None


@dataclass(frozen=True)
class StatisticsBundle:
    numeric_columns: Dict[str, NumericStats] = field(default_factory=dict)
    categorical_columns: Dict[str, TextStats] = field(default_factory=dict)
    date_columns: Dict[str, DateStats] = field(default_factory=dict)


@dataclass(frozen=True)
class SheetInfo:
    name: str
    rows: int
    columns: int
    dominant_type: str
    purpose: str
    key_columns: List[str]


@dataclass(frozen=True)
class SheetsInfo:
    total_sheets: int
    sheets: List[SheetInfo]
    row_distribution: Dict[str, Dict[str, float]]
    cross_sheet_relations: List[str]


@dataclass(frozen=True)
class Preview:
    sample_rows: List[Row]
    sample_size: int
    random_sample: List[Row]
    representative_rows: List[Row]


@dataclass(frozen=True)
class Visualization:
    recommended_chart_types: List[str]
    key_columns: List[str]
    trends: List[str]
    correlations: List[str]


@dataclass(frozen=True)
class DatasetMetadata:
    basic: BasicInfo
    file: FileInfo
    structure: StructureInfo
    columns: List[EnhancedColumn]
    quality: QualityReport
    statistics: StatisticsBundle
    preview: Preview
    semantics: Semantics
    visualization: Visualization
    sheets: Optional[SheetsInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, default=str)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and not np.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _visible(row: Row) -> Row:
    return {k: v for k, v in row.items() if k != SHEET_SOURCE_KEY}


def _filled_cells(row: Row, columns: Sequence[Column]) -> int:
    return sum(1 for c in columns if not is_missing(row.get(c.name)))


def build_structure(columns: Sequence[Column], rows: Sequence[Row]) -> StructureInfo:
    counts = Counter(c.type for c in columns)
    return StructureInfo(
        total_rows=len(rows),
        total_columns=len(columns),
        actual_data_rows=sum(1 for r in rows if _filled_cells(r, columns) > 0),
        column_types={t: counts.get(t, 0) for t in COLUMN_TYPES},
    )


def build_preview(
    columns: Sequence[Column], rows: Sequence[Row], size: int, seed: Optional[int]
) -> Preview:
    """Head rows, a seeded random sample and the most complete rows."""
    size = max(0, min(size, len(rows)))
    rng = np.random.default_rng(seed)
    picked = sorted(rng.choice(len(rows), size=size, replace=False).tolist()) if size else []
    ranked = sorted(range(len(rows)), key=lambda i: -_filled_cells(rows[i], columns))
    return Preview(
        sample_rows=[_visible(r) for r in rows[:size]],
        sample_size=size,
        random_sample=[_visible(rows[i]) for i in picked],
        representative_rows=[_visible(rows[i]) for i in ranked[:size]],
    )


def _dominant_type(columns: Sequence[Column]) -> str:
    if not columns:
        return "string"
    counts = Counter(c.type for c in columns)
    return max(COLUMN_TYPES, key=lambda t: (counts.get(t, 0), -COLUMN_TYPES.index(t)))


def infer_sheet_purpose(sheet: Sheet) -> str:
    for purpose, keywords in SHEET_PURPOSE_KEYWORDS.items():
        if any(k in sheet.name.lower() for k in keywords):
            return purpose
    types = {c.type for c in sheet.columns}
    if "date" in types and "number" in types:
        return "transactions"
    if types == {"string"}:
        return "master data"
    return "data"


def _sheet_key_columns(sheet: Sheet) -> List[str]:
    return [
        c.name
        for c in sheet.columns
        if (c.unique and not c.nullable and sheet.rows)
        or any(keyword_matches(c.name, k) for k in ("id", "key", "code", "编号"))
    ]


def build_sheets_info(sheets: Sequence[Sheet]) -> SheetsInfo:
    total_rows = sum(len(s.rows) for s in sheets)
    distribution = {
        s.name: {
            "count": len(s.rows),
            "percentage": round(len(s.rows) / total_rows * 100, 2) if total_rows else 0.0,
        }
        for s in sheets
    }
    relations = []
    for a, b in combinations(sheets, 2):
        other = {c.name for c in b.columns}
        shared = [c.name for c in a.columns if c.name in other]
        if shared:
            relations.append(f"'{a.name}' and '{b.name}' share columns: {', '.join(shared)}")
    return SheetsInfo(
        total_sheets=len(sheets),
        sheets=[
            SheetInfo(
                name=s.name,
                rows=len(s.rows),
                columns=len(s.columns),
                dominant_type=_dominant_type(s.columns),
                purpose=infer_sheet_purpose(s),
                key_columns=_sheet_key_columns(s),
            )
            for s in sheets
        ],
        row_distribution=distribution,
        cross_sheet_relations=relations,
    )


def _categorical_columns(
    columns: Sequence[Column], semantic_types: Dict[str, SemanticType]
) -> List[Column]:
    return [
        c
        for c in columns
        if c.type == "boolean" or (c.type == "string" and semantic_types[c.name].category == "dimension")
    ]


def find_correlations(
    columns: Sequence[Column], rows: Sequence[Row], threshold: float = CORRELATION_THRESHOLD
) -> List[str]:
    """Pairs of numeric columns whose Pearson |r| reaches ``threshold``."""
    numeric = [c.name for c in columns if c.type == "number"]
    if len(numeric) < 2 or len(rows) < 3:
        return []
    frame = pd.DataFrame(
        {n: [r.get(n) if isinstance(r.get(n), float) else np.nan for r in rows] for n in numeric},
        dtype=float,
    )
    corr = frame.corr(method="pearson", min_periods=3)
    found = []
    for a, b in combinations(numeric, 2):
        r = corr.loc[a, b]
        if pd.notna(r) and abs(r) >= threshold:
            direction = "positive" if r > 0 else "negative"
            found.append(f"{a} and {b}: strong {direction} correlation (r={r:.2f})")
    return found


def build_visualization(
    columns: Sequence[Column], rows: Sequence[Row], semantic_types: Dict[str, SemanticType]
) -> Visualization:
    numeric = [c.name for c in columns if c.type == "number"]
    dates = [c.name for c in columns if c.type == "date"]
    categorical = _categorical_columns(columns, semantic_types)

    charts: List[str] = []
    if dates and numeric:
        charts.extend(["line", "area"])
    if categorical and numeric:
        charts.append("bar")
        distinct = [
            len({r.get(c.name) for r in rows if not is_missing(r.get(c.name))}) for c in categorical
        ]
        if any(1 < n <= PIE_MAX_CATEGORIES for n in distinct):
            charts.append("pie")
    if len(numeric) >= 2:
        charts.append("scatter")
    if not charts:
        charts.append("table")

    key_columns: List[str] = []
    for name in [c.name for c in columns if c.unique] + dates + numeric[:KEY_NUMERIC_COLUMNS]:
        if name not in key_columns:
            key_columns.append(name)

    trends = [f"{measure} over {date}" for date in dates for measure in numeric[:KEY_NUMERIC_COLUMNS]]
    return Visualization(
        recommended_chart_types=charts,
        key_columns=key_columns,
        trends=trends,
        correlations=find_correlations(columns, rows),
    )


def enhance_column(
    column: Column, values: Sequence[Any], semantic: SemanticType, iqr_multiplier: float
) -> EnhancedColumn:
    numeric_stats = text_stats = date_stats = None
    if column.type == "number":
        numeric_stats = numeric_statistics(values, iqr_multiplier)
    elif column.type == "date":
        date_stats = date_statistics(values, column.date_formats)
    else:
        text_stats = text_statistics(values)
    return EnhancedColumn(
        name=column.name,
        type=column.type,
        nullable=column.nullable,
        unique=column.unique,
        examples=list(column.examples),
        statistics=column_profile(values),
        semantic_type=semantic,
        numeric_stats=numeric_stats,
        text_stats=text_stats,
        date_stats=date_stats,
    )


def assemble_metadata(
    dataset: Dataset, file_size: int = 0, config: Any = None
) -> DatasetMetadata:
    """Build the full metadata bundle for ``dataset``."""
    started = time.perf_counter()
    cfg = resolve_config(config)
    columns, rows = dataset.columns, dataset.rows

    values = {c.name: [r.get(c.name) for r in rows] for c in columns}
    semantic_types = {c.name: annotate_column(c, values[c.name]) for c in columns}
    enhanced = [
        enhance_column(c, values[c.name], semantic_types[c.name], cfg.iqr_multiplier)
        for c in columns
    ]
    statistics = StatisticsBundle(
        numeric_columns={e.name: e.numeric_stats for e in enhanced if e.numeric_stats},
        categorical_columns={e.name: e.text_stats for e in enhanced if e.text_stats},
        date_columns={e.name: e.date_stats for e in enhanced if e.date_stats},
    )
    quality = analyze_quality(
        columns, rows, {e.name: e.numeric_stats for e in enhanced if e.type == "number"}
    )
    sheets = (
        build_sheets_info(dataset.sheets) if dataset.sheets and len(dataset.sheets) > 1 else None
    )
    ext = file_extension(dataset.file_name)

    metadata = DatasetMetadata(
        basic=BasicInfo(
            id=dataset.id,
            name=dataset.name,
            description=dataset.description,
            created_at=dataset.created_at,
            updated_at=dataset.updated_at,
        ),
        file=FileInfo(
            file_name=dataset.file_name,
            file_size=file_size,
            file_size_formatted=format_size(file_size),
            file_type="csv" if ext == ".csv" else ("excel" if ext in (".xlsx", ".xls") else "unknown"),
            file_extension=ext,
            upload_time=dataset.created_at,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
        ),
        structure=build_structure(columns, rows),
        columns=enhanced,
        quality=quality,
        statistics=statistics,
        preview=build_preview(columns, rows, cfg.preview_size, cfg.random_seed),
        semantics=build_semantics(columns, rows, semantic_types),
        visualization=build_visualization(columns, rows, semantic_types),
        sheets=sheets,
    )
    logger.info(
        f"Metadata for '{dataset.name}': {len(columns)} columns, quality score "
        f"{quality.consistency.score}"
    )
    return metadata


# ---------------------------------------------------------------------------
# Prompt payload
# ---------------------------------------------------------------------------

_SLIM_NUMERIC_KEYS = ("min", "max", "mean", "median", "std", "outliers", "distribution")
_SLIM_TEXT_KEYS = ("min_length", "max_length", "avg_length", "cardinality", "patterns")
_SLIM_DATE_KEYS = ("min_date", "max_date", "date_range", "granularity", "formats")


def _slim(stats: Any, keys: Sequence[str]) -> Dict[str, Any]:
    if stats is None:
        return {}
    data = asdict(stats)
    return {k: data[k] for k in keys if k in data}


def build_llm_payload(metadata: DatasetMetadata, mode: str = "full") -> Dict[str, Any]:
    """Compact, JSON-ready summary of ``metadata``.

    ``schema_only`` keeps the table shape and column types; ``full`` adds
    column statistics, quality, semantics, chart hints and sample rows.
    """
    if mode not in ("full", "schema_only"):
        raise ValueError("mode must be 'full' or 'schema_only'")

    dataset_section: Dict[str, Any] = {
        "name": metadata.basic.name,
        "rows": metadata.structure.total_rows,
        "columns": metadata.structure.total_columns,
        "column_names": [c.name for c in metadata.columns],
    }
    if metadata.sheets is not None:
        dataset_section["sheets"] = [s.name for s in metadata.sheets.sheets]

    if mode == "schema_only":
        return _jsonable(
            {
                "dataset": dataset_section,
                "columns": {c.name: {"type": c.type} for c in metadata.columns},
                "mode": mode,
                "version": PAYLOAD_VERSION,
            }
        )

    col_summaries: Dict[str, Any] = {}
    for c in metadata.columns:
        stats = {
            **_slim(c.numeric_stats, _SLIM_NUMERIC_KEYS),
            **_slim(c.text_stats, _SLIM_TEXT_KEYS),
            **_slim(c.date_stats, _SLIM_DATE_KEYS),
        }
        top_values = (
            [{"value": v.value, "percentage": v.percentage} for v in c.text_stats.common_values[:5]]
            if c.text_stats
            else []
        )
        col_summaries[c.name] = {
            "type": c.type,
            "semantic": c.semantic_type.category,
            "null_pct": c.statistics.null_rate,
            "unique_pct": c.statistics.unique_rate,
            "top_values": top_values,
            "stats": stats,
        }

    payload: Dict[str, Any] = {
        "dataset": dataset_section,
        "columns": col_summaries,
        "quality": {
            "score": metadata.quality.consistency.score,
            "completeness_rate": metadata.quality.completeness.completeness_rate,
            "duplicate_rows": metadata.quality.uniqueness.duplicate_rows,
            "issues": [
                f"{i.description} ({i.severity})" for i in metadata.quality.consistency.issues
            ],
        },
        "semantics": asdict(metadata.semantics),
        "visualization": asdict(metadata.visualization),
        "sample_rows": metadata.preview.sample_rows,
        "mode": mode,
        "version": PAYLOAD_VERSION,
    }
    if metadata.sheets is not None:
        payload["sheets"] = {
            "distribution": metadata.sheets.row_distribution,
            "relations": metadata.sheets.cross_sheet_relations,
        }
    return _jsonable(payload)
