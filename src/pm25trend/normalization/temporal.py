"""
Date parsing and calendar helpers.

EPA raw data stores sample dates as compact ``YYYYMMDD`` strings;
daily summary files use ISO ``YYYY-MM-DD``. Both are accepted.
"""

import pandas as pd

from pm25trend.normalization.columns import DATE, MONTH
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

DATE_FORMATS: tuple[str, ...] = ("%Y%m%d", "%Y-%m-%d")


def parse_dates(values: pd.Series) -> pd.Series:
    """
    Parse date strings, leaving unparsable or missing cells as NaT.

    Each format is tried in turn on the cells no earlier format could parse.

    Args:
        values: Series of date strings (None for missing).

    Returns:
        datetime64 Series aligned with ``values``.
    """
    text = values.astype("string").str.strip()
    parsed = pd.Series(pd.NaT, index=values.index, dtype="datetime64[ns]")

    for fmt in DATE_FORMATS:
        pending = parsed.isna() & text.notna()
        if not pending.any():
            break
        parsed.loc[pending] = pd.to_datetime(
            text[pending], format=fmt, errors="coerce"
        ).astype("datetime64[ns]")

    return parsed


def add_month(df: pd.DataFrame, date_column: str = DATE) -> pd.DataFrame:
    """
    Return a copy of ``df`` with the calendar month of ``date_column``.

    Rows without a date get a missing month.

    Args:
        df: DataFrame with a datetime column.
        date_column: Name of date column.

    Returns:
        New DataFrame with an Int64 ``month`` column.
    """
    if date_column not in df.columns:
        log.warning("Date column not found, month left missing", column=date_column)
        return df.assign(**{MONTH: pd.array([pd.NA] * len(df), dtype="Int64")})

    months = pd.to_datetime(df[date_column]).dt.month.astype("Int64")
    return df.assign(**{MONTH: months})
