"""Raw grid extraction from CSV and spreadsheet bytes.

Produces one ``RawSheet`` per source sheet: trimmed header names plus a data
block whose cells are still untyped (text for CSV, native cell objects for
spreadsheets, ``""`` for blanks).
"""

from __future__ import annotations

import io
import logging
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .cleaning_utils import cell_text, is_blank_cell
from .config import CSV_ENCODINGS, SHEET_SOURCE_KEY, IngestConfig, resolve_config
from .errors import (
    EmptyDataset,
    EmptyFile,
    FileTooLarge,
    IngestionError,
    NoValidHeaders,
    SheetParseFailure,
    UnreadableFile,
    UnsupportedFormat,
)

logger = logging.getLogger(__name__)

DELIMITERS_TO_TRY = [",", ";", "\t", "|"]


@dataclass
class RawSheet:
    name: str
    headers: List[str]
    frame: pd.DataFrame
    raw_row_count: int = 0


@dataclass
class ParseOutcome:
    sheets: List[RawSheet]
    file_kind: str
    warnings: List[str] = field(default_factory=list)


def file_extension(file_name: str) -> str:
    return Path(file_name).suffix.lower()


def format_size(num_bytes: int) -> str:
    """Human-readable size: ``0 B``, ``1.5 KB``, ``50 MB``."""
    if num_bytes <= 0:
        return "0 B"
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            text = f"{size:.2f}".rstrip("0").rstrip(".")
            return f"{text} {unit}"
        size /= 1024
    return f"{num_bytes} B"  # pragma: no cover


def validate_file(size: int, file_name: str, config: Optional[IngestConfig] = None) -> str:
    """Check size and extension before any parsing; returns the extension."""
    cfg = config or IngestConfig()
    if size > cfg.max_file_size:
        raise FileTooLarge(
            f"File size {format_size(size)} exceeds the limit of "
            f"{format_size(cfg.max_file_size)}"
        )
    ext = file_extension(file_name)
    if ext not in cfg.supported_extensions:
        raise UnsupportedFormat(
            f"Unsupported file format: {ext or '(none)'}. "
            f"Supported formats: {', '.join(cfg.supported_extensions)}"
        )
    return ext


# ---------------------------------------------------------------------------
# Grid helpers
# ---------------------------------------------------------------------------


def _normalize_cell(value: Any) -> Any:
    if is_blank_cell(value):
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


def _normalize_cells(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    return df.astype(object).apply(lambda s: s.map(_normalize_cell))


def _drop_fully_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    is_blank = df.apply(lambda s: s.map(is_blank_cell))
    keep_mask = ~is_blank.all(axis=1)
    return df.loc[keep_mask].reset_index(drop=True)


def _dedupe_headers(headers: List[str]) -> List[str]:
    seen: Dict[str, int] = {SHEET_SOURCE_KEY: 0}
    out: List[str] = []
    for h in headers:
        if h in seen:
            seen[h] += 1
            candidate = f"{h}_{seen[h]}"
            while candidate in seen:
                seen[h] += 1
                candidate = f"{h}_{seen[h]}"
            seen[candidate] = 0
            out.append(candidate)
        else:
            seen[h] = 0
            out.append(h)
    return out


def build_headers(row: Sequence[Any]) -> List[str]:
    headers: List[str] = []
    for i, val in enumerate(row):
        name = re.sub(r"\s+", " ", cell_text(val))
        headers.append(name or f"Column_{i + 1}")
    return _dedupe_headers(headers)


def parse_grid(name: str, raw: pd.DataFrame, *, header_is_first_row: bool = False) -> RawSheet:
    """Split one sheet's raw grid into headers and a data block.

    CSV grids take their literal first row as header; spreadsheet grids take
    the first non-blank row. Fully blank data rows are dropped for both.
    """
    grid = _normalize_cells(raw.reset_index(drop=True))
    raw_row_count = int(grid.shape[0])
    if header_is_first_row and not grid.empty:
        header_cells = grid.iloc[0].tolist()
        body = _drop_fully_blank_rows(grid.iloc[1:].reset_index(drop=True))
    else:
        grid = _drop_fully_blank_rows(grid)
        if grid.empty:
            raise EmptyFile(f"Sheet '{name}' has no extractable rows")
        header_cells = grid.iloc[0].tolist()
        body = grid.iloc[1:].reset_index(drop=True)
    if grid.empty:
        raise EmptyFile(f"Sheet '{name}' has no extractable rows")
    if all(is_blank_cell(h) for h in header_cells):
        raise NoValidHeaders(f"Sheet '{name}' has no valid column names in its header row")

    # Unnamed columns with no data are layout padding, not columns.
    keep = [
        i
        for i, h in enumerate(header_cells)
        if not is_blank_cell(h) or not body.iloc[:, i].map(is_blank_cell).all()
    ]
    header_cells = [header_cells[i] for i in keep]
    body = body.iloc[:, keep].copy()
    headers = build_headers(header_cells)
    body.columns = headers
    return RawSheet(name=name, headers=headers, frame=body, raw_row_count=raw_row_count)


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


def decode_text(data: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnreadableFile("Could not decode CSV text with any supported encoding")


def detect_delimiter(text: str) -> str:
    """Pick the delimiter giving the most, and most consistent, fields per line.

    Only delimiters present in the header line are considered.
    """
    sample_lines = [line for line in text.splitlines()[:5] if line.strip()]
    if not sample_lines:
        return ","
    best_delimiter = ","
    best_score = 0.0
    for delimiter in DELIMITERS_TO_TRY:
        if delimiter not in sample_lines[0]:
            continue
        counts = [len(line.split(delimiter)) for line in sample_lines]
        avg_cols = sum(counts) / len(counts)
        consistency = 1 - (max(counts) - min(counts)) / max(max(counts), 1)
        score = avg_cols * consistency
        if score > best_score and avg_cols > 1:
            best_score = score
            best_delimiter = delimiter
    return best_delimiter


def _read_csv_grid(data: bytes, file_name: str) -> pd.DataFrame:
    text = decode_text(data)
    if not text.strip():
        raise EmptyFile(f"File '{file_name}' is empty")
    long_lines: List[List[str]] = []

    def _record_long_line(fields: List[str]) -> List[str]:
        long_lines.append(fields)
        return fields

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            df = pd.read_csv(
                io.StringIO(text),
                header=None,
                dtype=str,
                keep_default_na=False,
                sep=detect_delimiter(text),
                engine="python",
                on_bad_lines=_record_long_line,
            )
    except pd.errors.EmptyDataError as e:
        raise EmptyFile(f"File '{file_name}' is empty") from e
    except pd.errors.ParserError as e:
        raise UnreadableFile(f"Failed to parse CSV file '{file_name}': {e}") from e
    if long_lines:
        logger.warning(
            f"{len(long_lines)} row(s) in '{file_name}' had more fields than the header; extras dropped"
        )
    return df


def _read_workbook(data: bytes, file_name: str) -> Dict[str, pd.DataFrame]:
    try:
        return pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=object)
    except ImportError as e:
        raise UnreadableFile(
            f"Failed to load '{file_name}': missing spreadsheet engine: {e}"
        ) from e
    except Exception as e:
        raise UnreadableFile(f"Failed to open spreadsheet '{file_name}': {e}") from e


def parse_file(data: bytes, file_name: str, config: Any = None) -> ParseOutcome:
    """Validate, then extract one ``RawSheet`` per sheet of the upload.

    Raises
    ------
    FileTooLarge, UnsupportedFormat
        Validation failures, detected before any parsing.
    EmptyFile, NoValidHeaders
        CSV (single sheet) failures.
    EmptyDataset
        Every sheet of a workbook failed to parse.
    UnreadableFile
        The bytes could not be opened as the declared format.
    """
    cfg = resolve_config(config)
    ext = validate_file(len(data), file_name, cfg)
    if not data:
        raise EmptyFile(f"File '{file_name}' is empty")

    if ext == ".csv":
        grid = _read_csv_grid(data, file_name)
        sheet = parse_grid(Path(file_name).stem or "Sheet1", grid, header_is_first_row=True)
        logger.info(
            f"Parsed CSV '{file_name}': {sheet.frame.shape[0]} data rows, {len(sheet.headers)} columns"
        )
        return ParseOutcome(sheets=[sheet], file_kind="csv")

    workbook = _read_workbook(data, file_name)
    sheets: List[RawSheet] = []
    skipped: List[str] = []
    for sheet_name, raw in workbook.items():
        try:
            sheets.append(parse_grid(str(sheet_name), raw))
        except (IngestionError, ValueError, TypeError, IndexError) as exc:
            failure = SheetParseFailure(str(sheet_name), str(exc))
            logger.warning(str(failure))
            skipped.append(str(failure))

    if not sheets:
        raise EmptyDataset(f"No sheet in '{file_name}' could be parsed")
    logger.info(
        f"Parsed workbook '{file_name}': {len(sheets)} sheet(s) kept, {len(skipped)} skipped"
    )
    return ParseOutcome(sheets=sheets, file_kind="excel", warnings=skipped)
