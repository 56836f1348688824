"""Tests for configuration models and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pm25trend.config import (
    AnalysisConfig,
    DataPathsConfig,
    DialectConfig,
    PipelineConfig,
    QualityPolicy,
    config_from_paths,
    load_config,
)
from pm25trend.config.loader import _expand_env, _overlay
from pm25trend.config.settings import HeaderPolicy, PeriodSource


def _data_paths(*periods: int) -> DataPathsConfig:
    return DataPathsConfig(
        periods=[PeriodSource(period=p, path=Path(f"pm25_{p}.txt")) for p in periods]
    )


class TestDialectConfig:
    """Tests for the delimited-format settings."""

    def test_defaults(self) -> None:
        """Default dialect is pipe-delimited with # comments."""
        dialect = DialectConfig()
        assert dialect.delimiter == "|"
        assert dialect.comment == "#"
        assert dialect.missing_token == ""
        assert dialect.header is HeaderPolicy.FIRST_NON_COMMENT

    def test_delimiter_must_differ_from_comment(self) -> None:
        """A delimiter equal to the comment prefix is rejected."""
        with pytest.raises(ValidationError, match="must differ"):
            DialectConfig(delimiter="#", comment="#")

    def test_multi_character_delimiter_rejected(self) -> None:
        """Delimiter is a single character."""
        with pytest.raises(ValidationError):
            DialectConfig(delimiter="||")


class TestDataPathsConfig:
    """Tests for period source configuration."""

    def test_period_labels_keep_order(self) -> None:
        """Labels are returned in configured order, not sorted."""
        paths = _data_paths(2012, 1999)
        assert paths.period_labels == [2012, 1999]

    def test_duplicate_periods_rejected(self) -> None:
        """The same label may not be configured twice."""
        with pytest.raises(ValidationError, match="distinct"):
            _data_paths(1999, 1999)

    def test_at_least_one_period(self) -> None:
        """An empty period list is rejected."""
        with pytest.raises(ValidationError):
            DataPathsConfig(periods=[])

    def test_resolve_relative_and_absolute(self, tmp_path: Path) -> None:
        """Relative paths resolve against data_root, absolute ones are kept."""
        paths = DataPathsConfig(
            data_root=Path("/data"),
            periods=[
                PeriodSource(period=1999, path=Path("a.txt")),
                PeriodSource(period=2012, path=tmp_path / "b.txt"),
            ],
        )
        assert paths.resolve(paths.periods[0]) == Path("/data/a.txt")
        assert paths.resolve(paths.periods[1]) == tmp_path / "b.txt"


class TestAnalysisConfig:
    """Tests for aggregation settings."""

    def test_default_quantiles(self) -> None:
        """Default box quantiles are the quartiles."""
        assert AnalysisConfig().quantiles == (0.25, 0.75)

    def test_quantiles_must_bracket_median(self) -> None:
        """A lower quantile above the median is rejected."""
        with pytest.raises(ValidationError, match="Quantiles"):
            AnalysisConfig(quantiles=(0.6, 0.9))


class TestQualityPolicy:
    """Tests for quality thresholds."""

    def test_thresholds_default_to_none(self) -> None:
        """No threshold is built in."""
        policy = QualityPolicy()
        assert policy.max_missing_rate is None
        assert policy.max_negative_rate is None

    def test_threshold_out_of_range(self) -> None:
        """Rates are proportions."""
        with pytest.raises(ValidationError):
            QualityPolicy(max_missing_rate=1.5)


class TestPipelineConfig:
    """Tests for the complete configuration."""

    def test_comparison_defaults_to_first_and_last(self) -> None:
        """Without overlap_periods the first and last periods are compared."""
        config = PipelineConfig(project="t", data_paths=_data_paths(1999, 2005, 2012))
        assert config.comparison_periods == (1999, 2012)

    def test_explicit_overlap_periods(self) -> None:
        """Configured overlap periods take precedence."""
        config = PipelineConfig(
            project="t",
            data_paths=_data_paths(1999, 2005, 2012),
            analysis=AnalysisConfig(overlap_periods=(1999, 2005)),
        )
        assert config.comparison_periods == (1999, 2005)

    def test_unknown_overlap_period_rejected(self) -> None:
        """Overlap periods must be configured."""
        with pytest.raises(ValidationError, match="not configured"):
            PipelineConfig(
                project="t",
                data_paths=_data_paths(1999, 2012),
                analysis=AnalysisConfig(overlap_periods=(1999, 2020)),
            )

    def test_results_dir(self) -> None:
        """Results go to output_root/project."""
        config = PipelineConfig(project="pm25-test", data_paths=_data_paths(1999))
        assert config.results_dir == Path("./output") / "pm25-test"

    def test_frozen(self) -> None:
        """Configuration cannot be mutated."""
        config = PipelineConfig(project="t", data_paths=_data_paths(1999))
        with pytest.raises(ValidationError):
            config.project = "other"  # type: ignore[misc]


class TestConfigHelpers:
    """Tests for env interpolation and merging."""

    def test_env_var_with_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables fall back to their default."""
        monkeypatch.delenv("PM25_DATA", raising=False)
        assert _expand_env("${PM25_DATA:/srv/pm25}/raw") == "/srv/pm25/raw"

    def test_env_var_set(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Set variables are substituted."""
        monkeypatch.setenv("PM25_DATA", "/mnt/epa")
        assert _expand_env("${PM25_DATA:/srv/pm25}") == "/mnt/epa"

    def test_overlay(self) -> None:
        """Nested dictionaries merge, override wins."""
        base = {"dialect": {"delimiter": "|", "comment": "#"}, "project": "base"}
        override = {"dialect": {"delimiter": ","}, "project": "child"}
        assert _overlay(base, override) == {
            "dialect": {"delimiter": ",", "comment": "#"},
            "project": "child",
        }


class TestLoadConfig:
    """Tests for loading YAML configuration."""

    def test_minimal_config(self, tmp_path: Path) -> None:
        """Project and periods are enough."""
        config_path = tmp_path / "pm25.yaml"
        config_path.write_text(
            "project: pm25-ny\n"
            "data:\n"
            "  root: /data/epa\n"
            "  periods:\n"
            "    1999: RD_501_88101_1999-0.txt\n"
            "    2012: RD_501_88101_2012-0.txt\n",
            encoding="utf-8",
        )

        config = load_config(config_path)

        assert config.project == "pm25-ny"
        assert config.periods == [1999, 2012]
        assert config.data_paths.resolve(config.data_paths.periods[1]) == Path(
            "/data/epa/RD_501_88101_2012-0.txt"
        )
        assert config.allow_partial is False

    def test_inherits_base_yaml(self, tmp_path: Path) -> None:
        """A sibling base.yaml supplies defaults."""
        (tmp_path / "base.yaml").write_text(
            "dialect:\n"
            "  header: leading_comment\n"
            "quality:\n"
            "  max_missing_rate: 0.2\n",
            encoding="utf-8",
        )
        config_path = tmp_path / "ny.yaml"
        config_path.write_text(
            "project: ny\n"
            "data:\n"
            "  periods:\n"
            "    - {period: 1999, path: a.txt}\n"
            "    - {period: 2012, path: b.txt}\n"
            "analysis:\n"
            "  overlap_state: 36\n"
            "  quantiles: [0.1, 0.9]\n"
            "  site: {state_code: 36, county_code: 63, site_id: 2008}\n",
            encoding="utf-8",
        )

        config = load_config(config_path)

        assert config.dialect.header is HeaderPolicy.LEADING_COMMENT
        assert config.quality.max_missing_rate == 0.2
        assert config.analysis.overlap_state == 36
        assert config.analysis.quantiles == (0.1, 0.9)
        assert config.analysis.site is not None
        assert config.analysis.site.site_id == 2008

    def test_missing_project(self, tmp_path: Path) -> None:
        """A config without a project name is rejected."""
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("data:\n  periods:\n    1999: a.txt\n", encoding="utf-8")
        with pytest.raises(ValueError, match="project"):
            load_config(config_path)

    def test_missing_periods(self, tmp_path: Path) -> None:
        """A config without periods is rejected."""
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("project: x\n", encoding="utf-8")
        with pytest.raises(ValueError, match="data.periods"):
            load_config(config_path)


class TestConfigFromPaths:
    """Tests for building configuration from file arguments."""

    def test_pairs_paths_with_periods(self, tmp_path: Path) -> None:
        """Each path gets its label, in order."""
        config = config_from_paths([tmp_path / "a.txt", tmp_path / "b.txt"], [1999, 2012])
        assert config.periods == [1999, 2012]
        assert config.data_paths.periods[0].path == (tmp_path / "a.txt").resolve()

    def test_length_mismatch(self, tmp_path: Path) -> None:
        """Every path needs a label."""
        with pytest.raises(ValueError, match="period labels"):
            config_from_paths([tmp_path / "a.txt"], [1999, 2012])


class TestExampleConfig:
    """The shipped example configuration stays loadable."""

    def test_example_yaml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Example config parses with the default data root."""
        monkeypatch.delenv("PM25_DATA", raising=False)
        config = load_config(Path(__file__).parent.parent / "configs" / "example.yaml")

        assert config.project == "pm25-ny"
        assert config.periods == [1999, 2012]
        assert config.data_paths.data_root == Path("./data")
        assert config.dialect.header is HeaderPolicy.LEADING_COMMENT
        assert config.analysis.site is not None
        assert config.parallel_loading is True
