"""
Schema binding: from raw string records to typed observations.

The coercion rule for every canonical field is declared once in
``FIELD_KINDS``. A cell that fails coercion becomes missing and is counted;
the rest of its row is kept.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import NamedTuple

import numpy as np
import pandas as pd

from pm25trend.exceptions import FieldCoercionError
from pm25trend.ingestion.reader import RawRecord, ReadStats
from pm25trend.normalization.columns import (
    COUNTY_CODE,
    DATE,
    SITE_ID,
    STATE_CODE,
    VALUE,
    canonical_names,
    normalize_columns,
    sanitize_header,
    validate_required_columns,
)
from pm25trend.normalization.temporal import parse_dates
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

# Coercion failures kept verbatim for auditing; all failures are counted.
MAX_COERCION_SAMPLES = 50


class FieldKind(Enum):
    """How a column is typed during binding."""

    CODE = "code"
    DATE = "date"
    MEASUREMENT = "measurement"
    TEXT = "text"


FIELD_KINDS: dict[str, FieldKind] = {
    STATE_CODE: FieldKind.CODE,
    COUNTY_CODE: FieldKind.CODE,
    SITE_ID: FieldKind.CODE,
    DATE: FieldKind.DATE,
    VALUE: FieldKind.MEASUREMENT,
}


class SiteKey(NamedTuple):
    """Composite identifier of one physical monitor."""

    state_code: int
    county_code: int
    site_id: int


@dataclass(frozen=True)
class Schema:
    """
    Ordered field names of one input file.

    ``names`` are the sanitized header labels in file order. Two schemas are
    equal only if their names and order are identical.
    """

    names: tuple[str, ...]

    @classmethod
    def from_header(cls, header: list[str]) -> "Schema":
        """Build a schema from raw header labels."""
        return cls(tuple(sanitize_header(header)))

    @property
    def arity(self) -> int:
        """Number of fields every record must have."""
        return len(self.names)

    @property
    def rename(self) -> dict[str, str]:
        """Source name to canonical name, for the columns that have one."""
        return canonical_names(list(self.names))

    @property
    def columns(self) -> list[str]:
        """Column names after canonical renaming."""
        rename = self.rename
        return [rename.get(name, name) for name in self.names]

    def kind(self, column: str) -> FieldKind:
        """Coercion rule for a (canonical) column."""
        return FIELD_KINDS.get(column, FieldKind.TEXT)

    def validate(self) -> None:
        """
        Check the schema provides every canonical field.

        Raises:
            SchemaBindingError: If a required field has no source column.
        """
        validate_required_columns(self.columns)


@dataclass(frozen=True)
class MonitoringObservation:
    """One typed measurement row."""

    state_code: int | None
    county_code: int | None
    site_id: int | None
    date: date | None
    value: float | None
    period: int | None = None

    @property
    def site_key(self) -> SiteKey | None:
        """Monitor identifier, or None if any code is missing."""
        if self.state_code is None or self.county_code is None or self.site_id is None:
            return None
        return SiteKey(self.state_code, self.county_code, self.site_id)

    @property
    def is_missing(self) -> bool:
        """Whether the measurement value is absent."""
        return self.value is None

    @property
    def is_negative(self) -> bool:
        """Whether the measurement is present and below zero."""
        return self.value is not None and self.value < 0


@dataclass
class IngestionReport:
    """
    Data-quality accounting for one bound dataset.

    Attributes:
        read: Line statistics from the reader, if the data came from a file.
        rows: Number of bound rows.
        coercion_failures: Cells per column that could not be typed.
        samples: The first failures, for inspection.
    """

    read: ReadStats | None
    rows: int
    coercion_failures: dict[str, int] = field(default_factory=dict)
    samples: list[FieldCoercionError] = field(default_factory=list)

    @property
    def rejected_records(self) -> int:
        """Data lines skipped for arity mismatch."""
        return self.read.n_rejected if self.read is not None else 0

    @property
    def coerced_to_missing(self) -> int:
        """Total cells set to missing by failed coercion."""
        return sum(self.coercion_failures.values())


def missing_proportion(frame: pd.DataFrame, column: str) -> float | None:
    """
    Share of rows whose ``column`` is explicitly missing.

    Args:
        frame: Observation table.
        column: Column to audit.

    Returns:
        Missing count divided by row count, or None for an empty table.
    """
    total = len(frame)
    if total == 0:
        return None
    return int(frame[column].isna().sum()) / total


def _na_to_none(value: object) -> object:
    return None if pd.isna(value) else value


def iter_observations(
    frame: pd.DataFrame, period: int | None = None
) -> Iterator[MonitoringObservation]:
    """
    Yield typed rows from an observation table.

    Args:
        frame: Table with the canonical columns (and optionally ``period``).
        period: Tag for rows of a table without a ``period`` column.

    Yields:
        One immutable observation per row, in row order.
    """
    has_period = "period" in frame.columns
    columns = [STATE_CODE, COUNTY_CODE, SITE_ID, DATE, VALUE]
    if has_period:
        columns.append("period")

    for row in frame[columns].itertuples(index=False, name=None):
        state, county, site, day, value = (_na_to_none(v) for v in row[:5])
        yield MonitoringObservation(
            state_code=int(state) if state is not None else None,
            county_code=int(county) if county is not None else None,
            site_id=int(site) if site is not None else None,
            date=pd.Timestamp(day).date() if day is not None else None,
            value=float(value) if value is not None else None,
            period=int(row[5]) if has_period else period,
        )


@dataclass(frozen=True, eq=False)
class BoundDataset:
    """
    One period's typed observations.

    Attributes:
        frame: Typed observation table (see MonitoringObservationSchema).
        schema: Field names of the source file.
        period: Period tag, or None for untagged data.
        report: Ingestion accounting.
    """

    frame: pd.DataFrame
    schema: Schema
    period: int | None
    report: IngestionReport

    def __len__(self) -> int:
        return len(self.frame)

    def observations(self) -> Iterator[MonitoringObservation]:
        """Typed rows in source order."""
        return iter_observations(self.frame, self.period)

    def missing_proportion(self, column: str = VALUE) -> float | None:
        """Share of rows whose ``column`` is missing."""
        return missing_proportion(self.frame, column)


def _coerce_code(values: pd.Series) -> pd.Series:
    numbers = pd.to_numeric(values, errors="coerce").astype(float)
    valid = (numbers >= 0) & (numbers == np.floor(numbers))
    return numbers.where(valid).astype("Int64")


def _coerce_measurement(values: pd.Series) -> pd.Series:
    numbers = pd.to_numeric(values, errors="coerce").astype(float)
    return numbers.where(np.isfinite(numbers))


_COERCERS = {
    FieldKind.CODE: _coerce_code,
    FieldKind.DATE: parse_dates,
    FieldKind.MEASUREMENT: _coerce_measurement,
}


def bind_records(
    schema: Schema,
    records: Iterable[RawRecord],
    *,
    period: int | None = None,
    read_stats: ReadStats | None = None,
) -> BoundDataset:
    """
    Attach field names to raw records and coerce typed fields.

    Args:
        schema: Field names of the source file.
        records: Raw records, each with ``schema.arity`` fields.
        period: Optional period tag carried to the merger.
        read_stats: Reader statistics to include in the report.

    Returns:
        BoundDataset with a typed observation table.

    Raises:
        SchemaBindingError: If the schema lacks a required field.
    """
    schema.validate()

    raw = pd.DataFrame.from_records(list(records), columns=list(schema.names))
    frame = normalize_columns(raw)

    failures: dict[str, int] = {}
    samples: list[FieldCoercionError] = []

    for column in schema.columns:
        kind = schema.kind(column)
        if kind is FieldKind.TEXT:
            continue

        source = frame[column]
        coerced = _COERCERS[kind](source)
        failed = source.notna() & coerced.isna()
        n_failed = int(failed.sum())

        if n_failed:
            failures[column] = n_failed
            for row in failed[failed].index[: MAX_COERCION_SAMPLES - len(samples)]:
                samples.append(FieldCoercionError(column, int(row), str(source[row])))

        frame[column] = coerced

    if failures:
        log.warning("Cells coerced to missing", period=period, failures=failures)

    report = IngestionReport(
        read=read_stats,
        rows=len(frame),
        coercion_failures=failures,
        samples=samples,
    )
    log.info(
        "Bound records",
        period=period,
        rows=len(frame),
        missing_values=int(frame[VALUE].isna().sum()),
    )

    return BoundDataset(frame=frame, schema=schema, period=period, report=report)
