"""Error kinds raised by the ingestion pipeline and the upload result wrapper."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import Dataset, Sheet


class IngestionError(Exception):
    """Base class for failures while turning an uploaded file into a Dataset."""

    kind = "IngestionError"


class FileTooLarge(IngestionError):
    """Raised when the upload exceeds the configured size limit."""

    kind = "FileTooLarge"


class UnsupportedFormat(IngestionError):
    """Raised when the file extension is not on the allow-list."""

    kind = "UnsupportedFormat"


class EmptyFile(IngestionError):
    """Raised when a file or sheet has zero extractable rows."""

    kind = "EmptyFile"


class NoValidHeaders(IngestionError):
    """Raised when a header row has no non-blank column names."""

    kind = "NoValidHeaders"


class SheetParseFailure(IngestionError):
    """A single sheet could not be parsed; the sheet is skipped."""

    kind = "SheetParseFailure"

    def __init__(self, sheet_name: str, reason: str):
        super().__init__(f"Sheet '{sheet_name}' skipped: {reason}")
        self.sheet_name = sheet_name
        self.reason = reason


class EmptyDataset(IngestionError):
    """Raised when no sheet survives parsing or the result has zero rows."""

    kind = "EmptyDataset"


class UnreadableFile(IngestionError):
    """Raised when the file bytes cannot be opened as the declared format."""

    kind = "UnreadableFile"


class DatasetEditError(Exception):
    """Raised when a structural edit of a Dataset is rejected."""

    pass


@dataclass
class UploadResult:
    """Discriminated success/failure result returned by ``upload``."""

    success: bool
    dataset: Optional["Dataset"] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def sheets(self) -> List["Sheet"]:
        if self.dataset is None or not self.dataset.sheets:
            return []
        return list(self.dataset.sheets)

    @classmethod
    def ok(cls, dataset: "Dataset", warnings: Optional[List[str]] = None) -> "UploadResult":
        return cls(success=True, dataset=dataset, warnings=list(warnings or []))

    @classmethod
    def failure(
        cls, exc: IngestionError, warnings: Optional[List[str]] = None
    ) -> "UploadResult":
        return cls(
            success=False,
            error=str(exc),
            error_kind=exc.kind,
            warnings=list(warnings or []),
        )
