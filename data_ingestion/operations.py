"""Structural edits, sheet switching and keyword search over a Dataset.

Every operation returns a new Dataset; the input is never mutated. Column
flags and the Summary are re-derived after each edit. Invalid edits raise
``DatasetEditError``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .cleaning_utils import cell_text, coerce_row, coerce_value
from .config import SHEET_SOURCE_KEY
from .errors import DatasetEditError
from .models import (
    COLUMN_TYPES,
    Column,
    Dataset,
    Row,
    Sheet,
    build_summary,
    new_dataset_id,
    refresh_columns,
)
from .schema_unifier import combine_sheet_snapshots

logger = logging.getLogger(__name__)


def _commit(
    dataset: Dataset, columns: List[Column], rows: List[Row], **changes: Any
) -> Dataset:
    """Re-derive column flags and Summary, and write a sheet view back to its snapshot."""
    columns = refresh_columns(columns, rows)
    summary = build_summary(rows, columns)
    sheets = dataset.sheets
    index = changes.get("active_sheet_index", dataset.active_sheet_index)
    if sheets and index is not None and "active_sheet_index" not in changes:
        sheets = list(sheets)
        sheets[index] = Sheet(
            name=sheets[index].name, columns=columns, rows=rows, summary=summary
        )
    changes.setdefault("sheets", sheets)
    return replace(
        dataset,
        columns=columns,
        rows=rows,
        summary=summary,
        updated_at=datetime.now(),
        **changes,
    )


def _check_type(col_type: str) -> None:
    if col_type not in COLUMN_TYPES:
        raise DatasetEditError(
            f"Unknown column type '{col_type}'; expected one of {', '.join(COLUMN_TYPES)}"
        )


def _check_new_name(dataset: Dataset, name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise DatasetEditError("Column name must not be empty")
    if name == SHEET_SOURCE_KEY:
        raise DatasetEditError(f"'{SHEET_SOURCE_KEY}' is a reserved column name")
    if dataset.column(name) is not None:
        raise DatasetEditError(f"Column '{name}' already exists")
    return name


def _require_column(dataset: Dataset, name: str) -> Column:
    col = dataset.column(name)
    if col is None:
        raise DatasetEditError(f"Column '{name}' does not exist")
    return col


def _check_row_index(dataset: Dataset, index: int) -> None:
    if not 0 <= index < len(dataset.rows):
        raise DatasetEditError(
            f"Row index {index} out of range (dataset has {len(dataset.rows)} rows)"
        )


def _check_known_keys(dataset: Dataset, values: Mapping[str, Any]) -> None:
    unknown = [k for k in values if k != SHEET_SOURCE_KEY and dataset.column(k) is None]
    if unknown:
        raise DatasetEditError(f"Unknown column(s): {', '.join(unknown)}")


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def create_dataset(
    name: str,
    description: str = "",
    columns: Optional[Sequence[Tuple[str, str]]] = None,
    rows: Optional[Sequence[Mapping[str, Any]]] = None,
) -> Dataset:
    """Create a dataset by hand.

    Without ``columns`` the dataset starts with a single string column; without
    ``rows`` it starts with one blank row.
    """
    name = (name or "").strip()
    if not name:
        raise DatasetEditError("Dataset name must not be empty")
    specs = list(columns or [("Column_1", "string")])
    names = [n for n, _ in specs]
    if len(set(names)) != len(names):
        raise DatasetEditError("Column names must be unique")
    for _, col_type in specs:
        _check_type(col_type)

    cols = [Column(name=n, type=t) for n, t in specs]
    cleaned = [coerce_row(dict(r), cols) for r in (rows or [{}])]
    cols = refresh_columns(cols, cleaned)
    dataset = Dataset(
        id=new_dataset_id(),
        name=name,
        file_name=f"{name}.csv",
        description=description or f"Manually created dataset: {name}",
        columns=cols,
        rows=cleaned,
        summary=build_summary(cleaned, cols),
        size=len(cleaned),
    )
    logger.info(f"Created dataset '{name}' with {len(cols)} column(s)")
    return dataset


# ---------------------------------------------------------------------------
# Column edits
# ---------------------------------------------------------------------------


def add_column(
    dataset: Dataset, name: str, col_type: str = "string", default: Any = None
) -> Dataset:
    """Append a column; every existing row gets ``default`` coerced to ``col_type``."""
    _check_type(col_type)
    name = _check_new_name(dataset, name)
    value = coerce_value(default, col_type)
    columns = list(dataset.columns) + [Column(name=name, type=col_type)]
    rows = [{**row, name: value} for row in dataset.rows]
    logger.debug(f"Added column '{name}' ({col_type}) to '{dataset.name}'")
    return _commit(dataset, columns, rows)


def rename_column(dataset: Dataset, old_name: str, new_name: str) -> Dataset:
    col = _require_column(dataset, old_name)
    if (new_name or "").strip() == old_name:
        return dataset
    new_name = _check_new_name(dataset, new_name)
    columns = [replace(c, name=new_name) if c is col else c for c in dataset.columns]
    rows = [
        {(new_name if k == old_name else k): v for k, v in row.items()} for row in dataset.rows
    ]
    logger.debug(f"Renamed column '{old_name}' to '{new_name}' in '{dataset.name}'")
    return _commit(dataset, columns, rows)


def delete_column(dataset: Dataset, name: str) -> Dataset:
    _require_column(dataset, name)
    if len(dataset.columns) <= 1:
        raise DatasetEditError("A dataset must keep at least one column")
    columns = [c for c in dataset.columns if c.name != name]
    rows = [{k: v for k, v in row.items() if k != name} for row in dataset.rows]
    logger.debug(f"Deleted column '{name}' from '{dataset.name}'")
    return _commit(dataset, columns, rows)


# ---------------------------------------------------------------------------
# Row edits
# ---------------------------------------------------------------------------


def _append_to_sheet(
    sheets: List[Sheet], sheet_name: Any, values: Mapping[str, Any]
) -> List[Sheet]:
    names = [s.name for s in sheets]
    if sheet_name not in names:
        raise DatasetEditError(
            f"Rows added to the combined view need '{SHEET_SOURCE_KEY}' set to one of: "
            f"{', '.join(names)}"
        )
    index = names.index(sheet_name)
    sheet = sheets[index]
    cells = {k: v for k, v in values.items() if k != SHEET_SOURCE_KEY}
    rows = list(sheet.rows) + [coerce_row(cells, sheet.columns)]
    columns = refresh_columns(sheet.columns, rows)
    updated = list(sheets)
    updated[index] = Sheet(
        name=sheet.name, columns=columns, rows=rows, summary=build_summary(rows, columns)
    )
    return updated


def add_row(dataset: Dataset, values: Optional[Mapping[str, Any]] = None) -> Dataset:
    """Append a row; absent columns become ``None`` (``""`` for string columns).

    In the combined view of a multi-sheet dataset the row must carry
    ``_sheet_source``; it is also appended to that sheet's snapshot.
    """
    values = dict(values or {})
    _check_known_keys(dataset, values)
    rows = list(dataset.rows) + [coerce_row(values, dataset.columns)]
    if dataset.sheets and dataset.active_sheet_index is None:
        sheets = _append_to_sheet(dataset.sheets, values.get(SHEET_SOURCE_KEY), values)
        return _commit(dataset, list(dataset.columns), rows, sheets=sheets)
    return _commit(dataset, list(dataset.columns), rows)


def update_row(dataset: Dataset, index: int, values: Mapping[str, Any]) -> Dataset:
    """Overwrite the given cells of row ``index``; other cells are kept."""
    _check_row_index(dataset, index)
    _check_known_keys(dataset, values)
    types = {c.name: c.type for c in dataset.columns}
    updated = dict(dataset.rows[index])
    for key, value in values.items():
        updated[key] = value if key == SHEET_SOURCE_KEY else coerce_value(value, types[key])
    rows = list(dataset.rows)
    rows[index] = updated
    return _commit(dataset, list(dataset.columns), rows)


def delete_row(dataset: Dataset, index: int) -> Dataset:
    if len(dataset.rows) <= 1:
        raise DatasetEditError("A dataset must keep at least one row")
    _check_row_index(dataset, index)
    rows = [row for i, row in enumerate(dataset.rows) if i != index]
    return _commit(dataset, list(dataset.columns), rows)


# ---------------------------------------------------------------------------
# Sheets
# ---------------------------------------------------------------------------


def sheet_names(dataset: Dataset) -> List[str]:
    return [s.name for s in dataset.sheets or []]


def switch_sheet(dataset: Dataset, index: Optional[int]) -> Dataset:
    """Make sheet ``index`` the active view; ``None`` restores the combined view."""
    if not dataset.sheets:
        raise DatasetEditError(f"Dataset '{dataset.name}' has no sheets")
    if index is None:
        columns, rows = combine_sheet_snapshots(dataset.sheets)
        logger.info(f"Switched '{dataset.name}' to the combined view of {len(dataset.sheets)} sheets")
    else:
        if not 0 <= index < len(dataset.sheets):
            raise DatasetEditError(
                f"Sheet index {index} out of range (dataset has {len(dataset.sheets)} sheets)"
            )
        sheet = dataset.sheets[index]
        columns = list(sheet.columns)
        rows = [dict(r) for r in sheet.rows]
        logger.info(f"Switched '{dataset.name}' to sheet '{sheet.name}'")
    return _commit(dataset, columns, rows, active_sheet_index=index)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@dataclass
class QueryResult:
    rows: List[Row]
    columns: List[str]
    row_count: int
    execution_time_ms: float


def query_rows(dataset: Dataset, query: str) -> QueryResult:
    """Rows where any whitespace-separated keyword occurs in any cell (case-insensitive)."""
    started = time.perf_counter()
    keywords = [k for k in (query or "").lower().split() if k]
    names = dataset.column_names
    if not keywords:
        matched = list(dataset.rows)
    else:
        matched = [
            row
            for row in dataset.rows
            if any(k in cell_text(row.get(n)).lower() for k in keywords for n in names)
        ]
    return QueryResult(
        rows=matched,
        columns=names,
        row_count=len(matched),
        execution_time_ms=round((time.perf_counter() - started) * 1000, 3),
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class DatasetRegistry:
    """In-memory collection of datasets keyed by id."""

    def __init__(self):
        self._datasets: Dict[str, Dataset] = {}

    def add(self, dataset: Dataset) -> Dataset:
        self._datasets[dataset.id] = dataset
        return dataset

    def get(self, dataset_id: str) -> Optional[Dataset]:
        return self._datasets.get(dataset_id)

    def require(self, dataset_id: str) -> Dataset:
        dataset = self._datasets.get(dataset_id)
        if dataset is None:
            raise DatasetEditError(f"Dataset '{dataset_id}' does not exist")
        return dataset

    def list(self) -> List[Dataset]:
        return sorted(self._datasets.values(), key=lambda d: d.created_at)

    def delete(self, dataset_id: str) -> bool:
        removed = self._datasets.pop(dataset_id, None)
        if removed is not None:
            logger.info(f"Deleted dataset '{removed.name}'")
        return removed is not None

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._datasets

    def __len__(self) -> int:
        return len(self._datasets)

    def __iter__(self) -> Iterator[Dataset]:
        return iter(self.list())
