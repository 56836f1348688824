"""
Pandera schemas for PM2.5 monitoring observations.

Site codes are stored as nullable integers: they are compared as parts of
a composite key and never formatted, so zero-padding need not survive.
"""

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series


class MonitoringObservationSchema(pa.DataFrameModel):
    """
    Schema for one period's bound observations.

    Every typed field is nullable: cells that fail coercion become missing
    instead of discarding the row. Negative values are valid measurements.
    """

    state_code: Series[pd.Int64Dtype] = pa.Field(
        ge=0,
        nullable=True,
        description="State FIPS code",
    )
    county_code: Series[pd.Int64Dtype] = pa.Field(
        ge=0,
        nullable=True,
        description="County code within the state",
    )
    site_id: Series[pd.Int64Dtype] = pa.Field(
        ge=0,
        nullable=True,
        description="Site number within the county",
    )
    date: Series[pa.DateTime] = pa.Field(
        nullable=True,
        description="Sample date",
    )
    value: Series[float] = pa.Field(
        nullable=True,
        description="PM2.5 concentration (may be slightly negative near zero)",
    )

    class Config:
        """Schema configuration."""

        name = "MonitoringObservationSchema"
        strict = False  # Keep the remaining source columns
        coerce = True


class MergedObservationSchema(MonitoringObservationSchema):
    """Schema for observations from several periods after merging."""

    period: Series[int] = pa.Field(
        description="Period the row's source file belongs to",
    )

    class Config:
        """Schema configuration."""

        name = "MergedObservationSchema"
        strict = False
        coerce = True
