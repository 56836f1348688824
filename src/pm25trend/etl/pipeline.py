"""
Analysis pipeline implementation.

Orchestrates period loading, merging, grouped summaries, quality
assessment and site overlap to produce the values a trend report needs.
"""

import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from pm25trend.analysis.aggregate import GroupKey, GroupSummary, summarize
from pm25trend.analysis.overlap import SiteOverlap, resolve_site_overlap, site_comparison
from pm25trend.analysis.quality import QualityAssessment, assess_quality
from pm25trend.config.settings import PeriodSource, PipelineConfig
from pm25trend.etl.merge import MergedDataset, merge_datasets
from pm25trend.exceptions import FileAccessError
from pm25trend.ingestion.binding import BoundDataset, SiteKey
from pm25trend.ingestion.monitoring import load_period
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

Scalar = int | float | None


@dataclass
class AnalysisResult:
    """
    Result of an analysis run.

    Attributes:
        merged: All loaded periods in one table.
        by_period: Statistics per period.
        by_state: Statistics per (period, state).
        by_month: Statistics per (period, month).
        quality: Missing and negative rates against the policy.
        overlap: Sites shared by the comparison periods (if a state is configured).
        site_summary: Per-period statistics of the configured site (if any).
        failed_periods: Periods whose files could not be read, with the reason.
    """

    merged: MergedDataset
    by_period: GroupSummary
    by_state: GroupSummary
    by_month: GroupSummary
    quality: QualityAssessment
    overlap: SiteOverlap | None = None
    site_summary: GroupSummary | None = None
    failed_periods: dict[int, str] = field(default_factory=dict)

    @property
    def scalars(self) -> dict[str, Scalar]:
        """Named values for narrative text, e.g. ``median.1999``."""
        values: dict[str, Scalar] = {}
        for period in self.merged.periods:
            stats = self.by_period.get(period)
            report = self.merged.reports[period]
            values[f"rows.{period}"] = stats.n_rows
            values[f"mean.{period}"] = stats.mean
            values[f"median.{period}"] = stats.median
            values[f"missing_rate.{period}"] = stats.missing_rate
            values[f"negative_rate.{period}"] = stats.negative_rate
            values[f"rejected.{period}"] = report.rejected_records
            values[f"coerced.{period}"] = report.coerced_to_missing

        if self.overlap is not None:
            values["overlap.size"] = len(self.overlap)

        if self.site_summary is not None:
            for (period,), stats in self.site_summary.items():
                values[f"site.median.{period}"] = stats.median
                values[f"site.mean.{period}"] = stats.mean

        return values

    def scalar(self, name: str) -> Scalar:
        """
        Look up one named value.

        Raises:
            KeyError: If no value has that name.
        """
        values = self.scalars
        if name not in values:
            msg = f"Unknown value '{name}'. Available: {', '.join(sorted(values))}"
            raise KeyError(msg)
        return values[name]

    def save(self, output_dir: Path) -> list[Path]:
        """
        Write summary tables as CSV and named values as JSON.

        Args:
            output_dir: Directory to write into (created if needed).

        Returns:
            Paths of the written files.
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        tables = {
            "summary_by_period.csv": self.by_period.to_frame(),
            "summary_by_state.csv": self.by_state.to_frame(),
            "summary_by_month.csv": self.by_month.to_frame(),
        }
        if self.overlap is not None:
            tables["overlap_candidates.csv"] = self.overlap.candidates
        if self.site_summary is not None:
            tables["site_summary.csv"] = self.site_summary.to_frame()

        written: list[Path] = []
        for name, table in tables.items():
            path = output_dir / name
            table.to_csv(path, index=False)
            written.append(path)

        scalars_path = output_dir / "values.json"
        with scalars_path.open("w", encoding="utf-8") as f:
            json.dump(self.scalars, f, indent=2)
        written.append(scalars_path)

        log.info("Saved results", output_dir=str(output_dir), files=len(written))
        return written


class AnalysisPipeline:
    """
    Trend analysis pipeline for PM2.5 monitoring extracts.

    Loads every configured period, merges them in configured order and
    computes the summaries. Periods are independent until the merge, so
    they can be loaded in parallel.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        parallel_loading: bool | None = None,
        max_workers: int = 4,
    ) -> None:
        """
        Initialize analysis pipeline.

        Args:
            config: Pipeline configuration.
            parallel_loading: Load period files in threads (defaults to config).
            max_workers: Maximum number of parallel workers for loading.
        """
        self.config = config
        self.parallel_loading = (
            config.parallel_loading if parallel_loading is None else parallel_loading
        )
        self.max_workers = max_workers

    def load_periods(self) -> tuple[list[BoundDataset], dict[int, str]]:
        """
        Load all configured periods.

        Returns:
            Loaded datasets in configured order, and failed periods with reasons.

        Raises:
            FileAccessError: If a file cannot be read and partial runs are not allowed.
            ValueError: If no period could be loaded.
        """
        sources = self.config.data_paths.periods
        if self.parallel_loading and len(sources) > 1:
            loaded, failed = self._load_parallel(sources)
        else:
            loaded, failed = self._load_sequential(sources)

        if failed and not self.config.allow_partial:
            first_failure = next(s.period for s in sources if s.period in failed)
            raise failed[first_failure]

        if not loaded:
            msg = "No period could be loaded"
            raise ValueError(msg)

        datasets = [loaded[s.period] for s in sources if s.period in loaded]
        return datasets, {p: str(e) for p, e in failed.items()}

    def _load_sequential(
        self, sources: list[PeriodSource]
    ) -> tuple[dict[int, BoundDataset], dict[int, FileAccessError]]:
        loaded: dict[int, BoundDataset] = {}
        failed: dict[int, FileAccessError] = {}
        for source in sources:
            try:
                loaded[source.period] = load_period(self.config, source)
            except FileAccessError as e:
                log.error("Failed to load period", period=source.period, error=str(e))
                failed[source.period] = e
        return loaded, failed

    def _load_parallel(
        self, sources: list[PeriodSource]
    ) -> tuple[dict[int, BoundDataset], dict[int, FileAccessError]]:
        log.info("Loading periods in parallel", workers=self.max_workers)

        loaded: dict[int, BoundDataset] = {}
        failed: dict[int, FileAccessError] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(load_period, self.config, source): source.period
                for source in sources
            }
            for future in as_completed(futures):
                period = futures[future]
                try:
                    loaded[period] = future.result()
                    log.debug("Loaded period", period=period)
                except FileAccessError as e:
                    log.error("Failed to load period", period=period, error=str(e))
                    failed[period] = e

        return loaded, failed

    def run(self, output_dir: Path | None = None) -> AnalysisResult:
        """
        Run the full analysis.

        Args:
            output_dir: Optional directory to save tables and values to.

        Returns:
            AnalysisResult with summaries and named values.
        """
        analysis = self.config.analysis
        log.info(
            "Starting analysis",
            project=self.config.project,
            periods=self.config.periods,
            parallel=self.parallel_loading,
        )

        datasets, failed = self.load_periods()
        merged = merge_datasets(datasets)

        quantiles = analysis.quantiles
        field_name = analysis.value_field
        by_period = summarize(
            merged,
            by=(GroupKey.PERIOD,),
            field=field_name,
            quantiles=quantiles,
            periods=merged.periods,
        )
        by_state = summarize(
            merged, by=(GroupKey.PERIOD, GroupKey.STATE), field=field_name, quantiles=quantiles
        )
        by_month = summarize(
            merged, by=(GroupKey.PERIOD, GroupKey.MONTH), field=field_name, quantiles=quantiles
        )

        quality = assess_quality(merged, self.config.quality, field=field_name)

        comparison = self.config.comparison_periods
        comparable = comparison[0] != comparison[1] and all(
            p in merged.periods for p in comparison
        )

        overlap = None
        if analysis.overlap_state is not None:
            if comparable:
                overlap = resolve_site_overlap(merged, analysis.overlap_state, comparison)
            else:
                log.warning(
                    "Skipping site overlap, comparison periods not loaded",
                    periods=list(comparison),
                )

        site_summary = None
        if analysis.site is not None:
            site = SiteKey(
                analysis.site.state_code, analysis.site.county_code, analysis.site.site_id
            )
            site_summary = site_comparison(
                merged, site, comparison if comparable else None, quantiles=quantiles
            )

        result = AnalysisResult(
            merged=merged,
            by_period=by_period,
            by_state=by_state,
            by_month=by_month,
            quality=quality,
            overlap=overlap,
            site_summary=site_summary,
            failed_periods=failed,
        )

        if output_dir is not None:
            result.save(output_dir)

        log.info("Analysis complete", rows=len(merged), periods=list(merged.periods))
        return result


def run_analysis(
    config: PipelineConfig,
    output_dir: Path | None = None,
) -> AnalysisResult:
    """
    Convenience function to run the analysis pipeline.

    Args:
        config: Pipeline configuration.
        output_dir: Optional directory to save tables and values to.

    Returns:
        AnalysisResult with summaries and named values.
    """
    pipeline = AnalysisPipeline(config)
    return pipeline.run(output_dir=output_dir)
