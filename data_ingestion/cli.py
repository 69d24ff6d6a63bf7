"""Command-line interface for the ingestion and profiling pipeline.

Usage (examples):
    python -m data_ingestion.cli path/to/file.csv
    python -m data_ingestion.cli path/to/file.xlsx --mode schema_only
    python -m data_ingestion.cli path/to/file.csv --json --output result.json

The CLI prints a concise human-readable summary by default; use --json for the full payload.
"""

from __future__ import annotations

import argparse
import json
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import IngestionError
from .log import setup_logging
from .pipeline import run_processing_pipeline


def _summarize(payload: Dict[str, Any]) -> str:
    dataset = payload.get("dataset", {})
    cols = dataset.get("column_names", [])
    preview_cols = cols[:8]
    more = "" if len(cols) <= 8 else f" (+{len(cols)-8} more)"
    lines = [
        f"Dataset: {dataset.get('name')}",
        f"Rows: {dataset.get('rows')}  Columns: {dataset.get('columns')}",
        f"Columns: {', '.join(preview_cols)}{more}",
    ]
    if dataset.get("sheets"):
        lines.append(f"Sheets: {', '.join(dataset['sheets'])}")
    lines.append(f"Mode: {payload.get('mode')}  Version: {payload.get('version')}")
    if payload.get("mode") == "full":
        quality = payload.get("quality", {})
        lines.append(
            f"Quality score: {quality.get('score')}  "
            f"Completeness: {quality.get('completeness_rate')}%  "
            f"Duplicate rows: {quality.get('duplicate_rows')}"
        )
        for issue in quality.get("issues", []):
            lines.append(f"  ! {issue}")
        col_summaries = payload.get("columns", {})
        for k in list(col_summaries.keys())[:5]:
            c = col_summaries[k]
            lines.append(
                f"  - {k}: type={c.get('type')} semantic={c.get('semantic')} "
                f"null%={c.get('null_pct'):.2f} unique%={c.get('unique_pct'):.2f}"
            )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Ingest and profile a CSV or spreadsheet file."
    )
    parser.add_argument("file", help="Path to input CSV or Excel file")
    parser.add_argument(
        "--mode",
        choices=["full", "schema_only"],
        default="full",
        help="Payload detail level (default: full)",
    )
    parser.add_argument(
        "--preview-size",
        type=int,
        default=5,
        help="Number of preview rows in the metadata bundle (default: 5)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print full JSON payload to stdout (in addition to summary)",
    )
    parser.add_argument(
        "--output",
        help="Optional path to write full JSON payload (pretty-printed)",
    )
    parser.add_argument(
        "--suppress-warnings",
        action="store_true",
        help="Suppress runtime warnings (e.g., date parsing).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log pipeline progress at DEBUG level"
    )
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)

    path = Path(args.file)
    if not path.exists():
        raise SystemExit(f"File not found: {path}")

    if args.suppress_warnings:
        warnings.filterwarnings(
            "ignore", message="Could not infer format", category=UserWarning
        )
        warnings.filterwarnings(
            "ignore",
            message="Parsing dates in .* format when dayfirst",
            category=UserWarning,
        )

    config = {"preview_size": args.preview_size}
    try:
        result = run_processing_pipeline(str(path), mode=args.mode, config=config)
    except IngestionError as exc:
        raise SystemExit(f"Error ({exc.kind}): {exc}")
    payload = result["payload"]

    print(_summarize(payload))
    for warning in result["warnings"]:
        print(f"Warning: {warning}")

    if args.json:
        print("\n=== JSON Payload ===")
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8"
        )
        print(f"\nSaved JSON payload to {out_path}")


if __name__ == "__main__":  # pragma: no cover
    main()
