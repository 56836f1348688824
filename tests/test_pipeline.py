"""Integration tests for the analysis pipeline."""

import json
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from pm25trend.config import AnalysisConfig, PipelineConfig, SiteSelection, config_from_paths
from pm25trend.etl.pipeline import AnalysisPipeline, run_analysis
from pm25trend.exceptions import FileAccessError, SchemaMismatchError
from pm25trend.ingestion.binding import SiteKey


class TestAnalysisPipeline:
    """End-to-end tests over the two-period scenario."""

    def test_run(self, scenario_config: PipelineConfig) -> None:
        """Merged rows, medians and overlap of the scenario."""
        result = run_analysis(scenario_config)

        assert len(result.merged) == 6
        assert result.merged.periods == (1999, 2012)
        assert result.by_period.get(1999).median == 10.0
        assert result.by_period.get(2012).median == 3.0
        assert result.overlap is not None
        assert result.overlap.sites == {SiteKey(36, 63, 2008)}
        assert result.site_summary is None
        assert result.failed_periods == {}

    def test_scalars(self, scenario_config: PipelineConfig) -> None:
        """Named values for report text."""
        result = run_analysis(scenario_config)

        assert result.scalar("rows.1999") == 3
        assert result.scalar("median.2012") == 3.0
        assert result.scalar("missing_rate.2012") == pytest.approx(1 / 3)
        assert result.scalar("missing_rate.1999") == 0.0
        assert result.scalar("rejected.1999") == 0
        assert result.scalar("overlap.size") == 1

    def test_unknown_scalar(self, scenario_config: PipelineConfig) -> None:
        """Unknown names raise KeyError listing the available ones."""
        result = run_analysis(scenario_config)
        with pytest.raises(KeyError, match="median.1999"):
            result.scalar("median.2020")

    def test_by_month(self, scenario_config: PipelineConfig) -> None:
        """Monthly groups come from the sample dates."""
        result = run_analysis(scenario_config)
        assert result.by_month.keys() == [
            (1999, 7),
            (1999, 10),
            (1999, 12),
            (2012, 1),
            (2012, 3),
            (2012, 4),
        ]

    def test_save(self, scenario_config: PipelineConfig, tmp_path: Path) -> None:
        """Tables and values are written to the output directory."""
        output_dir = tmp_path / "results"
        run_analysis(scenario_config, output_dir=output_dir)

        names = {path.name for path in output_dir.iterdir()}
        assert names == {
            "summary_by_period.csv",
            "summary_by_state.csv",
            "summary_by_month.csv",
            "overlap_candidates.csv",
            "values.json",
        }

        by_period = pd.read_csv(output_dir / "summary_by_period.csv")
        assert list(by_period["median"]) == [10.0, 3.0]

        values = json.loads((output_dir / "values.json").read_text(encoding="utf-8"))
        assert values["median.1999"] == 10.0
        assert values["overlap.size"] == 1

    def test_site_summary(self, period_1999_file: Path, period_2012_file: Path) -> None:
        """A configured site is summarized per compared period."""
        config = config_from_paths(
            [period_1999_file, period_2012_file],
            [1999, 2012],
            analysis=AnalysisConfig(
                site=SiteSelection(state_code=36, county_code=63, site_id=2008)
            ),
        )
        result = run_analysis(config)

        assert result.overlap is None
        assert result.site_summary is not None
        assert result.scalar("site.median.1999") == 10.0
        assert result.scalar("site.mean.2012") == 3.0

    def test_parallel_loading(self, scenario_config: PipelineConfig) -> None:
        """Parallel loading keeps configured period order."""
        result = AnalysisPipeline(scenario_config, parallel_loading=True).run()
        assert result.merged.periods == (1999, 2012)
        assert list(result.merged.frame["period"]) == [1999] * 3 + [2012] * 3

    def test_missing_file_fails(self, period_1999_file: Path, tmp_path: Path) -> None:
        """An unreadable period aborts the run by default."""
        config = config_from_paths([period_1999_file, tmp_path / "absent.txt"], [1999, 2012])
        with pytest.raises(FileAccessError, match="absent.txt"):
            run_analysis(config)

    def test_allow_partial(self, period_1999_file: Path, tmp_path: Path) -> None:
        """With allow_partial the readable periods are analyzed."""
        config = config_from_paths(
            [period_1999_file, tmp_path / "absent.txt"],
            [1999, 2012],
            analysis=AnalysisConfig(overlap_state=36),
        ).model_copy(update={"allow_partial": True})

        result = run_analysis(config)

        assert result.merged.periods == (1999,)
        assert set(result.failed_periods) == {2012}
        assert result.overlap is None

    def test_nothing_loaded(self, tmp_path: Path) -> None:
        """A run with no readable period fails even when partial runs are allowed."""
        config = config_from_paths([tmp_path / "absent.txt"], [1999]).model_copy(
            update={"allow_partial": True}
        )
        with pytest.raises(ValueError, match="No period"):
            AnalysisPipeline(config).load_periods()

    def test_schema_mismatch(
        self, period_1999_file: Path, write_file: Callable[[str, str], Path]
    ) -> None:
        """Period files with different headers cannot be merged."""
        other = write_file(
            "pm25_2012_other.txt",
            "State Code|County Code|Site ID|Date|Sample Value|Method\n"
            "36|063|2008|20120115|2|120\n",
        )
        config = config_from_paths([period_1999_file, other], [1999, 2012])
        with pytest.raises(SchemaMismatchError):
            run_analysis(config)


class TestEmptyPeriods:
    """Periods whose files load without any data rows."""

    @pytest.mark.parametrize(
        "body",
        ["", "36|063|2008|20120115\n"],
        ids=["header_only", "all_lines_rejected"],
    )
    def test_empty_period_reported(
        self,
        period_1999_file: Path,
        write_file: Callable[[str, str], Path],
        tmp_path: Path,
        body: str,
    ) -> None:
        """The empty period gets no-data statistics instead of failing the run."""
        empty = write_file(
            "pm25_2012_empty.txt",
            "State Code|County Code|Site ID|Date|Sample Value\n" + body,
        )
        config = config_from_paths(
            [period_1999_file, empty],
            [1999, 2012],
            analysis=AnalysisConfig(overlap_state=36),
        )

        result = run_analysis(config, output_dir=tmp_path / "results")

        assert result.merged.periods == (1999, 2012)
        assert result.by_period.keys() == [(1999,), (2012,)]
        stats = result.by_period.get(2012)
        assert stats.n_rows == 0
        assert stats.median is None
        assert stats.missing_rate is None
        assert result.scalar("rows.2012") == 0
        assert result.scalar("median.2012") is None
        assert result.scalar("median.1999") == 10.0
        assert result.scalar("rejected.2012") == (1 if body else 0)
        assert [finding.key for finding in result.quality.findings] == [(1999,), (2012,)]
        assert result.overlap is not None
        assert len(result.overlap) == 0

        values = json.loads(
            (tmp_path / "results" / "values.json").read_text(encoding="utf-8")
        )
        assert values["median.2012"] is None
