"""
Grouped summary statistics over observation tables.

Statistics follow box-plot conventions: count, mean, median, quartiles and
extremes over present values, plus missing and negative proportions.
Negative values take part in every numeric aggregate; only explicitly
missing values are excluded.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import pandas as pd

from pm25trend.etl.merge import MergedDataset
from pm25trend.ingestion.binding import BoundDataset
from pm25trend.normalization.columns import MONTH, PERIOD, SITE_KEY_COLUMNS, STATE_CODE, VALUE
from pm25trend.normalization.temporal import add_month
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_QUANTILES: tuple[float, float] = (0.25, 0.75)


class GroupKey(str, Enum):
    """Dimensions observations can be grouped by."""

    PERIOD = "period"
    STATE = "state"
    SITE = "site"
    MONTH = "month"


KEY_COLUMNS: dict[GroupKey, list[str]] = {
    GroupKey.PERIOD: [PERIOD],
    GroupKey.STATE: [STATE_CODE],
    GroupKey.SITE: SITE_KEY_COLUMNS,
    GroupKey.MONTH: [MONTH],
}

COUNT_COLUMNS: list[str] = ["n_rows", "count", "n_missing"]
RATE_COLUMNS: list[str] = [
    "missing_rate",
    "mean",
    "median",
    "min",
    "q1",
    "q3",
    "max",
    "negative_rate",
]
STATISTICS: list[str] = [*COUNT_COLUMNS, *RATE_COLUMNS]


@dataclass(frozen=True)
class GroupStatistics:
    """
    Summary of one group's values.

    Numeric statistics are None when the group has no present values.

    Attributes:
        n_rows: Rows in the group.
        count: Rows with a present value.
        n_missing: Rows with an explicitly missing value.
        missing_rate: n_missing / n_rows.
        mean: Arithmetic mean of present values.
        median: Median of present values.
        min: Smallest present value.
        q1: Lower box quantile.
        q3: Upper box quantile.
        max: Largest present value.
        negative_rate: Share of present values below zero.
    """

    n_rows: int
    count: int
    n_missing: int
    missing_rate: float | None
    mean: float | None
    median: float | None
    min: float | None
    q1: float | None
    q3: float | None
    max: float | None
    negative_rate: float | None

    @property
    def is_empty(self) -> bool:
        """Whether the group has no present values."""
        return self.count == 0

    @property
    def five_number(self) -> tuple[float, float, float, float, float] | None:
        """(min, q1, median, q3, max), or None for an empty group."""
        if self.is_empty:
            return None
        return (self.min, self.q1, self.median, self.q3, self.max)  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def describe(
    values: pd.Series,
    quantiles: tuple[float, float] = DEFAULT_QUANTILES,
) -> GroupStatistics:
    """
    Summarize one group of measurement values.

    Args:
        values: Values of the group, NaN for missing.
        quantiles: Lower and upper box quantiles.

    Returns:
        GroupStatistics; numeric fields are None if no value is present.
    """
    n_rows = len(values)
    present = values.dropna().astype(float)
    count = len(present)
    n_missing = n_rows - count
    missing_rate = n_missing / n_rows if n_rows else None

    if count == 0:
        return GroupStatistics(
            n_rows=n_rows,
            count=0,
            n_missing=n_missing,
            missing_rate=missing_rate,
            mean=None,
            median=None,
            min=None,
            q1=None,
            q3=None,
            max=None,
            negative_rate=None,
        )

    low, high = quantiles
    return GroupStatistics(
        n_rows=n_rows,
        count=count,
        n_missing=n_missing,
        missing_rate=missing_rate,
        mean=float(present.mean()),
        median=float(present.median()),
        min=float(present.min()),
        q1=float(present.quantile(low)),
        q3=float(present.quantile(high)),
        max=float(present.max()),
        negative_rate=int((present < 0).sum()) / count,
    )


def _clean_key_value(value: Any) -> Any:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


def _flatten_key(key: Any) -> tuple[Any, ...]:
    if not isinstance(key, tuple):
        return (key,)
    flat: list[Any] = []
    for part in key:
        flat.extend(_flatten_key(part))
    return tuple(flat)


def _none_if_nan(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


@dataclass(frozen=True, eq=False)
class GroupSummary:
    """
    Statistics per group, sorted by key.

    Attributes:
        by: Grouping dimensions, in key order.
        field: Column that was summarized.
        table: One row per group: key columns followed by STATISTICS.
    """

    by: tuple[GroupKey, ...]
    field: str
    table: pd.DataFrame

    @property
    def key_columns(self) -> list[str]:
        """Columns that make up a group key."""
        return [column for key in self.by for column in KEY_COLUMNS[key]]

    def __len__(self) -> int:
        return len(self.table)

    def keys(self) -> list[tuple[Any, ...]]:
        """Group keys in table order (empty tuple for an ungrouped summary)."""
        columns = self.key_columns
        if not columns:
            return [() for _ in range(len(self.table))]
        return [
            tuple(_clean_key_value(v) for v in row)
            for row in self.table[columns].itertuples(index=False, name=None)
        ]

    def get(self, key: Any = ()) -> GroupStatistics:
        """
        Statistics of one group.

        Args:
            key: Group key. A scalar is accepted for single-column keys, and
                site keys may be passed nested, e.g. ``(1999, SiteKey(...))``.

        Returns:
            GroupStatistics of the group.

        Raises:
            KeyError: If no such group exists.
        """
        wanted = _flatten_key(key)
        for position, candidate in enumerate(self.keys()):
            if candidate == wanted:
                row = self.table.iloc[position]
                values = {name: _none_if_nan(row[name]) for name in STATISTICS}
                for name in COUNT_COLUMNS:
                    values[name] = int(values[name])
                for name in RATE_COLUMNS:
                    if values[name] is not None:
                        values[name] = float(values[name])
                return GroupStatistics(**values)
        msg = f"No group {wanted!r} in summary by {[k.value for k in self.by]}"
        raise KeyError(msg)

    def items(self) -> list[tuple[tuple[Any, ...], GroupStatistics]]:
        """(key, statistics) pairs in table order."""
        return [(key, self.get(key)) for key in self.keys()]

    def to_frame(self) -> pd.DataFrame:
        """Copy of the statistics table."""
        return self.table.copy()

    def to_long(self) -> pd.DataFrame:
        """
        Long view for chart collaborators.

        Returns:
            DataFrame with the key columns, ``statistic`` and ``value``.
        """
        return self.table.melt(
            id_vars=self.key_columns,
            value_vars=STATISTICS,
            var_name="statistic",
            value_name="value",
        )


def _frame_of(data: MergedDataset | BoundDataset | pd.DataFrame) -> pd.DataFrame:
    if isinstance(data, MergedDataset):
        return data.frame
    if isinstance(data, BoundDataset):
        if data.period is not None and PERIOD not in data.frame.columns:
            return data.frame.assign(**{PERIOD: data.period})
        return data.frame
    return data


def summarize(
    data: MergedDataset | BoundDataset | pd.DataFrame,
    by: Iterable[GroupKey | str] = (),
    field: str = VALUE,
    quantiles: tuple[float, float] = DEFAULT_QUANTILES,
    periods: Sequence[int] = (),
) -> GroupSummary:
    """
    Compute grouped statistics of a numeric column.

    Args:
        data: Observations to summarize. Never modified.
        by: Grouping dimensions; empty for one whole-table group.
        field: Numeric column to summarize.
        quantiles: Lower and upper box quantiles.
        periods: Periods that get a group even without rows, e.g.
            ``merged.periods`` so a header-only file still shows up.
            Ignored unless ``by`` includes the period.

    Returns:
        GroupSummary sorted by key, missing keys last.

    Raises:
        KeyError: If ``field`` or a key column is not in the table.
    """
    keys = tuple(GroupKey(k) for k in by)
    frame = _frame_of(data)
    if GroupKey.MONTH in keys:
        frame = add_month(frame)

    columns = [column for key in keys for column in KEY_COLUMNS[key]]
    absent = [c for c in [*columns, field] if c not in frame.columns]
    if absent:
        msg = f"Columns not in table: {absent}"
        raise KeyError(msg)

    rows: list[dict[str, Any]] = []
    if not columns:
        rows.append(describe(frame[field], quantiles).to_dict())
    else:
        grouped = frame.groupby(columns, sort=True, dropna=False)[field]
        for key, values in grouped:
            key_values = key if isinstance(key, tuple) else (key,)
            row = dict(zip(columns, (_clean_key_value(v) for v in key_values)))
            row.update(describe(values, quantiles).to_dict())
            rows.append(row)

    filled = 0
    if GroupKey.PERIOD in keys:
        seen = {row[PERIOD] for row in rows}
        for period in periods:
            if period in seen:
                continue
            row = dict.fromkeys(columns)
            row[PERIOD] = period
            row.update(describe(pd.Series([], dtype=float), quantiles).to_dict())
            rows.append(row)
            filled += 1

    table = pd.DataFrame(rows, columns=[*columns, *STATISTICS])
    # All key dimensions are integer codes; Int64 keeps them integral next to NA.
    for column in columns:
        table[column] = table[column].astype("Int64")
    table[COUNT_COLUMNS] = table[COUNT_COLUMNS].astype("int64")
    table[RATE_COLUMNS] = table[RATE_COLUMNS].astype(float)
    if filled:
        table = table.sort_values(columns, na_position="last", kind="stable").reset_index(
            drop=True
        )

    empty_groups = int((table["count"] == 0).sum())
    log.debug(
        "Summarized",
        by=[k.value for k in keys],
        field=field,
        groups=len(table),
        empty_groups=empty_groups,
    )

    return GroupSummary(by=keys, field=field, table=table)
