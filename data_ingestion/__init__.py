"""Tabular ingestion package: parsing, schema unification, type inference,
cleaning, profiling and an orchestrated pipeline.

Public entry points:
    upload(data: bytes, file_name: str, *, config=None) -> UploadResult
    profile(dataset, original_file_size, *, config=None) -> DatasetMetadata
    run_processing_pipeline(file_path, *, mode="full", config=None) -> dict

Modes:
    full         -> column statistics, quality, semantics, chart hints, sample rows
    schema_only  -> only dataset + column type schema (lightweight for LLM)
"""

from .config import IngestConfig
from .errors import DatasetEditError, IngestionError, UploadResult
from .metadata import DatasetMetadata, build_llm_payload
from .models import Column, Dataset, Sheet, Summary
from .operations import (
    DatasetRegistry,
    add_column,
    add_row,
    create_dataset,
    delete_column,
    delete_row,
    query_rows,
    rename_column,
    sheet_names,
    switch_sheet,
    update_row,
)
from .pipeline import (
    profile,
    run_processing_pipeline,
    upload,
    upload_file,
    upload_file_async,
)

__all__ = [
    "Column",
    "Dataset",
    "DatasetEditError",
    "DatasetMetadata",
    "DatasetRegistry",
    "IngestConfig",
    "IngestionError",
    "Sheet",
    "Summary",
    "UploadResult",
    "add_column",
    "add_row",
    "build_llm_payload",
    "create_dataset",
    "delete_column",
    "delete_row",
    "profile",
    "query_rows",
    "rename_column",
    "run_processing_pipeline",
    "sheet_names",
    "switch_sheet",
    "update_row",
    "upload",
    "upload_file",
    "upload_file_async",
]
