"""
Error types raised or recorded by the pipeline.

Fatal conditions are raised. Per-record and per-cell problems are recorded
on the ingestion report instead, so a single corrupt line or cell never
discards a whole period.
"""

from pathlib import Path


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class FileAccessError(PipelineError, OSError):
    """An input file is missing or cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class RecordArityError(PipelineError):
    """A data line has a different number of fields than the header."""

    def __init__(self, line_number: int, expected: int, actual: int) -> None:
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Line {line_number}: expected {expected} fields, got {actual}"
        )


class FieldCoercionError(PipelineError):
    """A single cell could not be parsed into its declared type."""

    def __init__(self, field: str, row: int, raw_value: str) -> None:
        self.field = field
        self.row = row
        self.raw_value = raw_value
        super().__init__(f"Row {row}: cannot coerce {field}={raw_value!r}")


class SchemaBindingError(PipelineError, ValueError):
    """A header does not provide the fields the pipeline needs."""


class SchemaMismatchError(PipelineError, ValueError):
    """Datasets with different schemas were passed to the merger."""


class PeriodTagError(PipelineError, ValueError):
    """A dataset is missing its period tag or reuses another dataset's tag."""
