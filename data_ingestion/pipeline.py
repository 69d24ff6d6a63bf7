import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .cleaning_utils import clean_rows
from .config import IngestConfig, resolve_config
from .errors import EmptyDataset, IngestionError, UnreadableFile, UploadResult
from .file_parser import ParseOutcome, RawSheet, parse_file
from .metadata import DatasetMetadata, assemble_metadata, build_llm_payload
from .models import Column, Dataset, Row, Sheet, build_summary, new_dataset_id, refresh_columns
from .schema_unifier import unify_sheets
from .type_inference import TypeInferencer

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# ---------------------------------------------------------------------------
# Internal helpers: raw grid -> typed table
# ---------------------------------------------------------------------------


def _build_table(
    frame: pd.DataFrame, headers: Sequence[str], inferencer: TypeInferencer
) -> Tuple[List[Column], List[Row]]:
    """Infer a type per column, coerce every cell, then describe the columns."""
    type_info = inferencer.infer_types(frame)
    columns = [
        Column(
            name=h,
            type=type_info[h]["detected_type"],
            date_formats=list(type_info[h]["date_formats"]),
        )
        for h in headers
    ]
    rows = clean_rows(frame, columns)
    return refresh_columns(columns, rows), rows


def _build_sheet(raw: RawSheet, inferencer: TypeInferencer) -> Sheet:
    columns, rows = _build_table(raw.frame, raw.headers, inferencer)
    return Sheet(name=raw.name, columns=columns, rows=rows, summary=build_summary(rows, columns))


def build_dataset(
    outcome: ParseOutcome, file_name: str, config: Optional[IngestConfig] = None
) -> Dataset:
    """Unify -> infer types -> clean -> summarize.

    Multi-sheet sources keep one cleaned ``Sheet`` snapshot per source sheet
    next to the combined view.
    """
    cfg = config or IngestConfig()
    inferencer = TypeInferencer(cfg.sample_size, cfg.type_match_threshold)

    unified = unify_sheets(outcome.sheets)
    columns, rows = _build_table(unified.frame, unified.headers, inferencer)
    if not rows:
        raise EmptyDataset(f"'{file_name}' contains no data rows")

    sheets = [_build_sheet(s, inferencer) for s in unified.sheets] if unified.is_multi_sheet else None
    dataset = Dataset(
        id=new_dataset_id(),
        name=Path(file_name).stem,
        file_name=file_name,
        description=f"Uploaded from {file_name}",
        columns=columns,
        rows=rows,
        summary=build_summary(rows, columns),
        sheets=sheets,
        size=sum(s.raw_row_count for s in unified.sheets),
    )
    logger.info(
        f"Built dataset '{dataset.name}': {dataset.summary.total_rows} rows, "
        f"{dataset.summary.total_columns} columns"
    )
    return dataset


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def upload(data: bytes, file_name: str, *, config: Any = None) -> UploadResult:
    """Turn uploaded bytes into a Dataset.

    Never raises for ingestion problems: failures come back as an
    ``UploadResult`` with ``success=False`` and the error kind.
    """
    warnings: List[str] = []
    try:
        cfg = resolve_config(config)
        outcome = parse_file(data, file_name, cfg)
        warnings = list(outcome.warnings)
        dataset = build_dataset(outcome, file_name, cfg)
    except IngestionError as exc:
        logger.warning(f"Upload of '{file_name}' failed ({exc.kind}): {exc}")
        return UploadResult.failure(exc, warnings)
    return UploadResult.ok(dataset, warnings)


def upload_file(path: PathLike, *, config: Any = None) -> UploadResult:
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        err = UnreadableFile(f"Could not read '{path}': {exc}")
        logger.warning(str(err))
        return UploadResult.failure(err)
    return upload(data, path.name, config=config)


async def upload_file_async(path: PathLike, *, config: Any = None) -> UploadResult:
    """Read the file in a worker thread, then run the synchronous pipeline."""
    path = Path(path)
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        err = UnreadableFile(f"Could not read '{path}': {exc}")
        logger.warning(str(err))
        return UploadResult.failure(err)
    return upload(data, path.name, config=config)


def profile(dataset: Dataset, original_file_size: int = 0, *, config: Any = None) -> DatasetMetadata:
    """Compute the metadata bundle (statistics, quality, semantics, ...) of ``dataset``."""
    return assemble_metadata(dataset, original_file_size, resolve_config(config))


def run_processing_pipeline(
    file_path: PathLike, *, mode: str = "full", config: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Primary orchestrator: load -> parse -> infer types -> clean -> profile -> payload.

    Parameters
    ----------
    file_path : str or Path
        Path to a CSV or spreadsheet (.xlsx / .xls) file.
    mode : str
        'full' or 'schema_only'.
    config : dict, optional
        Overrides for ``IngestConfig`` fields (sample_size, preview_size, ...).

    Returns
    -------
    dict with keys: dataset, metadata, payload, warnings

    Raises
    ------
    IngestionError
        The file could not be turned into a dataset.
    """
    if mode not in ("full", "schema_only"):
        raise ValueError("mode must be 'full' or 'schema_only'")
    cfg = resolve_config(config)
    started = time.perf_counter()
    path = Path(file_path)

    data = path.read_bytes()
    outcome = parse_file(data, path.name, cfg)
    dataset = build_dataset(outcome, path.name, cfg)
    metadata = profile(dataset, len(data), config=cfg)
    payload = build_llm_payload(metadata, mode)
    logger.info(
        f"Processed '{path.name}' in {(time.perf_counter() - started) * 1000:.1f} ms"
    )
    return {
        "dataset": dataset,
        "metadata": metadata,
        "payload": payload,
        "warnings": outcome.warnings,
    }
