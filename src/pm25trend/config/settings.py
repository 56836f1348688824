"""
Typed configuration models using Pydantic.

All configuration is defined here with explicit typing and validation.
Period labels, thresholds and site choices never live in processing code.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class HeaderPolicy(str, Enum):
    """Where the column header lives in an input file."""

    FIRST_NON_COMMENT = "first_non_comment"  # plain delimited files
    LEADING_COMMENT = "leading_comment"  # EPA raw data: "# RD|Action Code|..."


class DialectConfig(BaseModel):
    """Delimited text format of the input files."""

    model_config = ConfigDict(frozen=True)

    delimiter: str = Field(default="|", min_length=1, max_length=1)
    comment: str = Field(default="#", min_length=1, max_length=1)
    missing_token: str = Field(
        default="", description="Field value that denotes an absent measurement"
    )
    header: HeaderPolicy = Field(default=HeaderPolicy.FIRST_NON_COMMENT)
    encoding: str = Field(default="utf-8")

    @model_validator(mode="after")
    def validate_distinct_markers(self) -> "DialectConfig":
        """Delimiter and comment prefix must differ."""
        if self.delimiter == self.comment:
            msg = f"Delimiter and comment prefix must differ, both are {self.delimiter!r}"
            raise ValueError(msg)
        return self


class PeriodSource(BaseModel):
    """One period's input file."""

    model_config = ConfigDict(frozen=True)

    period: int = Field(description="Period label, e.g. the extract's year")
    path: Path = Field(description="Path to the delimited file (relative to data_root)")


class DataPathsConfig(BaseModel):
    """Input file locations.

    Periods are processed and merged in the order listed here.
    """

    model_config = ConfigDict(frozen=True)

    data_root: Path = Field(
        default=Path("./data"), description="Root directory for all data files"
    )
    periods: list[PeriodSource] = Field(min_length=1)

    @field_validator("periods")
    @classmethod
    def validate_distinct_periods(cls, v: list[PeriodSource]) -> list[PeriodSource]:
        """Each period label may appear only once."""
        labels = [source.period for source in v]
        duplicates = sorted({p for p in labels if labels.count(p) > 1})
        if duplicates:
            msg = f"Period labels must be distinct, duplicated: {duplicates}"
            raise ValueError(msg)
        return v

    @property
    def period_labels(self) -> list[int]:
        """Period labels in processing order."""
        return [source.period for source in self.periods]

    def resolve(self, source: PeriodSource) -> Path:
        """Resolve a period's path against data_root."""
        if source.path.is_absolute():
            return source.path
        return self.data_root / source.path


class QualityPolicy(BaseModel):
    """Acceptable data-quality rates.

    A threshold of None means the rate is reported but never judged.
    """

    model_config = ConfigDict(frozen=True)

    max_missing_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    max_negative_rate: float | None = Field(default=None, ge=0.0, le=1.0)


class SiteSelection(BaseModel):
    """A monitor chosen by the analyst for the before/after comparison."""

    model_config = ConfigDict(frozen=True)

    state_code: int = Field(ge=0)
    county_code: int = Field(ge=0)
    site_id: int = Field(ge=0)


class AnalysisConfig(BaseModel):
    """Aggregation and overlap settings."""

    model_config = ConfigDict(frozen=True)

    value_field: str = Field(default="value")
    quantiles: tuple[float, float] = Field(
        default=(0.25, 0.75), description="Lower and upper box quantiles around the median"
    )
    overlap_state: int | None = Field(
        default=None, description="State code whose monitors are compared across periods"
    )
    overlap_periods: tuple[int, int] | None = Field(
        default=None, description="Periods to intersect (defaults to first and last)"
    )
    site: SiteSelection | None = Field(default=None)

    @field_validator("quantiles")
    @classmethod
    def validate_quantiles(cls, v: tuple[float, float]) -> tuple[float, float]:
        """Quantiles must bracket the median."""
        low, high = v
        if not 0.0 <= low <= 0.5 <= high <= 1.0:
            msg = f"Quantiles must satisfy 0 <= low <= 0.5 <= high <= 1, got {v}"
            raise ValueError(msg)
        return v


class OutputConfig(BaseModel):
    """Output paths configuration."""

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'pm25-1999-2012')")

    dialect: DialectConfig = Field(default_factory=DialectConfig)
    data_paths: DataPathsConfig
    quality: QualityPolicy = Field(default_factory=QualityPolicy)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    parallel_loading: bool = Field(default=False)
    allow_partial: bool = Field(
        default=False, description="Continue when some period files cannot be read"
    )

    @model_validator(mode="after")
    def validate_overlap_periods(self) -> "PipelineConfig":
        """Overlap periods must be configured periods."""
        periods = self.analysis.overlap_periods
        if periods is not None:
            unknown = [p for p in periods if p not in self.data_paths.period_labels]
            if unknown:
                msg = f"Overlap periods {unknown} are not configured periods"
                raise ValueError(msg)
        return self

    @property
    def periods(self) -> list[int]:
        """Period labels in processing order."""
        return self.data_paths.period_labels

    @property
    def comparison_periods(self) -> tuple[int, int]:
        """Periods used for overlap and site comparison."""
        if self.analysis.overlap_periods is not None:
            return self.analysis.overlap_periods
        return self.periods[0], self.periods[-1]

    @property
    def results_dir(self) -> Path:
        """Path to summary output directory."""
        return self.output.output_root / self.project
