"""
Dataset merging.

Unions bound period datasets with identical schemas into one table,
tagging every row with its period. No deduplication and no joins.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

import pandas as pd

from pm25trend.exceptions import PeriodTagError, SchemaMismatchError
from pm25trend.ingestion.binding import (
    BoundDataset,
    IngestionReport,
    MonitoringObservation,
    Schema,
    SiteKey,
    iter_observations,
    missing_proportion,
)
from pm25trend.normalization.columns import (
    COUNTY_CODE,
    PERIOD,
    SITE_ID,
    SITE_KEY_COLUMNS,
    STATE_CODE,
    VALUE,
)
from pm25trend.schemas.monitoring import MergedObservationSchema
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class MergedDataset:
    """
    Observations from several periods in one table.

    Rows are ordered by period (in the order the periods were merged) and
    then by source row. The table is never modified after construction:
    every filter returns a new MergedDataset.

    Attributes:
        frame: Observation table with a ``period`` column.
        schema: Field names shared by all source files.
        periods: Period labels in merge order.
        reports: Ingestion accounting per period.
    """

    frame: pd.DataFrame
    schema: Schema
    periods: tuple[int, ...]
    reports: dict[int, IngestionReport]

    def __len__(self) -> int:
        return len(self.frame)

    def where(self, mask: pd.Series) -> "MergedDataset":
        """
        Rows selected by a boolean mask, as a new dataset.

        Args:
            mask: Boolean Series aligned with ``frame``.

        Returns:
            Filtered dataset with the same schema, periods and reports.
        """
        subset = self.frame.loc[mask.fillna(False).astype(bool)].reset_index(drop=True)
        return MergedDataset(
            frame=subset, schema=self.schema, periods=self.periods, reports=self.reports
        )

    def for_periods(self, periods: Iterable[int]) -> "MergedDataset":
        """Rows from the given periods."""
        return self.where(self.frame[PERIOD].isin(list(periods)))

    def for_state(self, state_code: int) -> "MergedDataset":
        """Rows from one state."""
        return self.where(self.frame[STATE_CODE] == state_code)

    def for_site(self, site: SiteKey) -> "MergedDataset":
        """Rows from one monitor."""
        mask = (
            (self.frame[STATE_CODE] == site.state_code)
            & (self.frame[COUNTY_CODE] == site.county_code)
            & (self.frame[SITE_ID] == site.site_id)
        )
        return self.where(mask)

    def site_keys(self, period: int | None = None) -> frozenset[SiteKey]:
        """
        Distinct monitors with at least one row.

        Rows with any missing code are ignored.

        Args:
            period: Restrict to one period.

        Returns:
            Set of site keys.
        """
        frame = self.frame if period is None else self.frame[self.frame[PERIOD] == period]
        keys = frame[SITE_KEY_COLUMNS].dropna().drop_duplicates()
        return frozenset(
            SiteKey(int(s), int(c), int(i))
            for s, c, i in keys.itertuples(index=False, name=None)
        )

    def observations(self) -> Iterator[MonitoringObservation]:
        """Typed rows in merged order."""
        return iter_observations(self.frame)

    def missing_proportion(self, column: str = VALUE) -> float | None:
        """Share of rows whose ``column`` is missing."""
        return missing_proportion(self.frame, column)


def _describe_mismatch(expected: Schema, actual: Schema) -> str:
    missing = [n for n in expected.names if n not in actual.names]
    extra = [n for n in actual.names if n not in expected.names]
    if missing or extra:
        return f"missing {missing}, unexpected {extra}"
    return "same fields in a different order"


def merge_datasets(datasets: Sequence[BoundDataset]) -> MergedDataset:
    """
    Concatenate period datasets into one tagged table.

    Args:
        datasets: Bound datasets in the desired period order. Each must carry
            a distinct period tag and all must share one schema.

    Returns:
        MergedDataset validated by MergedObservationSchema.

    Raises:
        ValueError: If no datasets are given.
        PeriodTagError: If a period tag is missing or repeated.
        SchemaMismatchError: If schemas differ in names or order.
    """
    if not datasets:
        msg = "At least one dataset is required to merge"
        raise ValueError(msg)

    seen: set[int] = set()
    for dataset in datasets:
        if dataset.period is None:
            msg = "Every dataset must be tagged with a period before merging"
            raise PeriodTagError(msg)
        if dataset.period in seen:
            msg = f"Period {dataset.period} appears more than once"
            raise PeriodTagError(msg)
        seen.add(dataset.period)

    schema = datasets[0].schema
    for dataset in datasets[1:]:
        if dataset.schema != schema:
            msg = (
                f"Schema of period {dataset.period} differs from period "
                f"{datasets[0].period}: {_describe_mismatch(schema, dataset.schema)}"
            )
            raise SchemaMismatchError(msg)

    frames = [dataset.frame.assign(**{PERIOD: dataset.period}) for dataset in datasets]
    merged = pd.concat(frames, ignore_index=True)
    merged[PERIOD] = merged[PERIOD].astype("int64")
    merged = MergedObservationSchema.validate(merged)

    log.info(
        "Merged periods",
        periods=[d.period for d in datasets],
        rows={d.period: len(d) for d in datasets},
        total=len(merged),
    )

    return MergedDataset(
        frame=merged,
        schema=schema,
        periods=tuple(d.period for d in datasets),
        reports={d.period: d.report for d in datasets},
    )
