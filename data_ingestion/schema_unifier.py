"""Multi-sheet schema unification.

The combined view of a workbook uses the union of every sheet's column names
(first-seen order). Each sheet's rows are re-projected onto that union, absent
columns filled with ``""``, and tagged with the name of their origin sheet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from .cleaning_utils import coerce_value
from .config import SHEET_SOURCE_KEY
from .file_parser import RawSheet
from .models import Column, Row, Sheet, describe_column

logger = logging.getLogger(__name__)


@dataclass
class UnifiedSchema:
    headers: List[str]
    frame: pd.DataFrame
    sheets: List[RawSheet]

    @property
    def is_multi_sheet(self) -> bool:
        return len(self.sheets) > 1


def union_columns(header_lists: Iterable[Sequence[str]]) -> List[str]:
    seen = set()
    union: List[str] = []
    for headers in header_lists:
        for name in headers:
            if name not in seen:
                seen.add(name)
                union.append(name)
    return union


def reproject(sheet: RawSheet, headers: Sequence[str]) -> pd.DataFrame:
    """Rows of ``sheet`` laid out on ``headers`` and tagged with the sheet name."""
    frame = sheet.frame.reindex(columns=list(headers), fill_value="")
    frame[SHEET_SOURCE_KEY] = sheet.name
    return frame


def unify_sheets(sheets: Sequence[RawSheet]) -> UnifiedSchema:
    if len(sheets) == 1:
        only = sheets[0]
        return UnifiedSchema(headers=list(only.headers), frame=only.frame, sheets=list(sheets))

    headers = union_columns(s.headers for s in sheets)
    frames = [reproject(s, headers) for s in sheets]
    combined = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=headers)
    logger.info(
        f"Unified {len(sheets)} sheets into {len(headers)} columns, {len(combined)} rows"
    )
    return UnifiedSchema(headers=headers, frame=combined, sheets=list(sheets))


def merged_column_type(types: Sequence[str]) -> str:
    distinct = set(types)
    return distinct.pop() if len(distinct) == 1 else "string"


def combine_sheet_snapshots(sheets: Sequence[Sheet]) -> Tuple[List[Column], List[Row]]:
    """Rebuild the combined view from cleaned per-sheet snapshots.

    A column keeps its type when every sheet holding it agrees, otherwise it
    becomes ``string``; cells are re-coerced to the merged type and tagged
    with their sheet of origin.
    """
    headers = union_columns([c.name for c in s.columns] for s in sheets)
    types: Dict[str, List[str]] = {name: [] for name in headers}
    formats: Dict[str, List[str]] = {name: [] for name in headers}
    for sheet in sheets:
        for col in sheet.columns:
            types[col.name].append(col.type)
            for fmt in col.date_formats:
                if fmt not in formats[col.name]:
                    formats[col.name].append(fmt)
    merged = {name: merged_column_type(types[name]) for name in headers}

    rows: List[Row] = []
    for sheet in sheets:
        for source in sheet.rows:
            row: Row = {name: coerce_value(source.get(name), merged[name]) for name in headers}
            row[SHEET_SOURCE_KEY] = sheet.name
            rows.append(row)

    columns = [
        describe_column(
            name,
            merged[name],
            [r.get(name) for r in rows],
            formats[name] if merged[name] == "date" else None,
        )
        for name in headers
    ]
    return columns, rows
