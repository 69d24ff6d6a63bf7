"""Core data model: Column, Summary, Sheet and Dataset.

Rows are plain dicts mapping a column name to a typed cell value. ``None`` is
the null marker and is kept distinct from the empty string, which string
columns use for blank cells.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .config import EXAMPLE_LIMIT, SHEET_SOURCE_KEY

CellValue = Union[str, float, datetime, bool, None]
Row = Dict[str, CellValue]

COLUMN_TYPES = ("string", "number", "date", "boolean")


def is_missing(value: CellValue) -> bool:
    return value is None or value == ""


@dataclass
class Column:
    name: str
    type: str
    nullable: bool = True
    unique: bool = False
    examples: List[CellValue] = field(default_factory=list)
    date_formats: List[str] = field(default_factory=list)


@dataclass
class Summary:
    total_rows: int
    total_columns: int
    numeric_columns: int
    string_columns: int
    date_columns: int
    boolean_columns: int
    missing_values: int
    duplicate_rows: int


@dataclass
class Sheet:
    name: str
    columns: List[Column]
    rows: List[Row]
    summary: Summary


@dataclass
class Dataset:
    id: str
    name: str
    file_name: str
    columns: List[Column]
    rows: List[Row]
    summary: Summary
    description: str = ""
    sheets: Optional[List[Sheet]] = None
    active_sheet_index: Optional[int] = None
    size: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible primitives for an opaque blob store."""
        return {
            "id": self.id,
            "name": self.name,
            "file_name": self.file_name,
            "description": self.description,
            "columns": [_column_to_dict(c) for c in self.columns],
            "rows": [_row_to_dict(r) for r in self.rows],
            "summary": asdict(self.summary),
            "sheets": (
                [
                    {
                        "name": s.name,
                        "columns": [_column_to_dict(c) for c in s.columns],
                        "rows": [_row_to_dict(r) for r in s.rows],
                        "summary": asdict(s.summary),
                    }
                    for s in self.sheets
                ]
                if self.sheets
                else None
            ),
            "active_sheet_index": self.active_sheet_index,
            "size": self.size,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Dataset":
        columns = [_column_from_dict(c) for c in data["columns"]]
        sheets = None
        if data.get("sheets"):
            sheets = []
            for s in data["sheets"]:
                sheet_cols = [_column_from_dict(c) for c in s["columns"]]
                sheets.append(
                    Sheet(
                        name=s["name"],
                        columns=sheet_cols,
                        rows=[_row_from_dict(r, sheet_cols) for r in s["rows"]],
                        summary=Summary(**s["summary"]),
                    )
                )
        updated_at = data.get("updated_at")
        return cls(
            id=data["id"],
            name=data["name"],
            file_name=data["file_name"],
            description=data.get("description", ""),
            columns=columns,
            rows=[_row_from_dict(r, columns) for r in data["rows"]],
            summary=Summary(**data["summary"]),
            sheets=sheets,
            active_sheet_index=data.get("active_sheet_index"),
            size=int(data.get("size", 0)),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


def new_dataset_id() -> str:
    return uuid.uuid4().hex


def _serialize_value(value: CellValue) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _column_to_dict(col: Column) -> Dict[str, Any]:
    out = asdict(col)
    out["examples"] = [_serialize_value(v) for v in col.examples]
    return out


def _row_to_dict(row: Row) -> Dict[str, Any]:
    return {k: _serialize_value(v) for k, v in row.items()}


def _restore_value(value: Any, col_type: Optional[str]) -> CellValue:
    if value is None:
        return None
    if col_type == "date" and isinstance(value, str):
        return datetime.fromisoformat(value) if value else None
    if col_type == "number" and not isinstance(value, bool):
        return float(value)
    return value


def _column_from_dict(data: Dict[str, Any]) -> Column:
    col = Column(
        name=data["name"],
        type=data["type"],
        nullable=data.get("nullable", True),
        unique=data.get("unique", False),
        date_formats=list(data.get("date_formats", [])),
    )
    col.examples = [_restore_value(v, col.type) for v in data.get("examples", [])]
    return col


def _row_from_dict(data: Dict[str, Any], columns: Sequence[Column]) -> Row:
    types = {c.name: c.type for c in columns}
    return {k: _restore_value(v, types.get(k)) for k, v in data.items()}


# ---------------------------------------------------------------------------
# Derived facts
# ---------------------------------------------------------------------------


def count_missing(rows: Iterable[Row], column_names: Sequence[str]) -> int:
    missing = 0
    for row in rows:
        for name in column_names:
            if is_missing(row.get(name)):
                missing += 1
    return missing


def count_duplicate_rows(rows: Sequence[Row], column_names: Sequence[str]) -> int:
    """Count rows identical to an earlier row.

    Rows are compared on their values in sorted column-name order so that key
    insertion order never matters; the sheet-origin tag is not compared.
    """
    if not rows or not column_names:
        return 0
    ordered = sorted(n for n in column_names if n != SHEET_SOURCE_KEY)
    if not ordered:
        return 0
    frame = pd.DataFrame([[row.get(n) for n in ordered] for row in rows], dtype=object)
    frame = frame.apply(lambda s: s.map(_hashable_cell))
    return int(frame.duplicated(keep="first").sum())


def _hashable_cell(value: CellValue) -> Any:
    # Keep the null marker and the empty string apart; tag types so 1.0 != True.
    if value is None:
        return ("null",)
    return (type(value).__name__, value)


def build_summary(rows: Sequence[Row], columns: Sequence[Column]) -> Summary:
    names = [c.name for c in columns]
    return Summary(
        total_rows=len(rows),
        total_columns=len(columns),
        numeric_columns=sum(1 for c in columns if c.type == "number"),
        string_columns=sum(1 for c in columns if c.type == "string"),
        date_columns=sum(1 for c in columns if c.type == "date"),
        boolean_columns=sum(1 for c in columns if c.type == "boolean"),
        missing_values=count_missing(rows, names),
        duplicate_rows=count_duplicate_rows(rows, names),
    )


def describe_column(
    name: str,
    col_type: str,
    values: Sequence[CellValue],
    date_formats: Optional[Sequence[str]] = None,
) -> Column:
    """Build a Column from its cleaned values (nullable/unique flags + examples)."""
    present = [v for v in values if not is_missing(v)]
    distinct = {_hashable_cell(v) for v in present}
    return Column(
        name=name,
        type=col_type,
        nullable=len(present) < len(values),
        unique=bool(present) and len(distinct) == len(present),
        examples=present[:EXAMPLE_LIMIT],
        date_formats=list(date_formats or []),
    )


def refresh_columns(columns: Sequence[Column], rows: Sequence[Row]) -> List[Column]:
    return [
        describe_column(
            c.name, c.type, [r.get(c.name) for r in rows], c.date_formats
        )
        for c in columns
    ]
