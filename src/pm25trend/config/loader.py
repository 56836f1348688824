"""
Load pipeline configuration from YAML.

A config file may sit next to a ``base.yaml`` holding shared settings
(dialect, quality thresholds, output root); the file's own values win.
String values may reference the environment as ``${VAR}`` or
``${VAR:default}``, e.g. ``root: ${PM25_DATA:./data}``.

Minimal config::

    project: pm25-ny
    data:
      periods:
        1999: RD_501_88101_1999-0.txt
        2012: RD_501_88101_2012-0.txt
"""

import os
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from pm25trend.config.settings import (
    AnalysisConfig,
    DataPathsConfig,
    DialectConfig,
    OutputConfig,
    PeriodSource,
    PipelineConfig,
    QualityPolicy,
    SiteSelection,
)

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")

# Analysis keys that YAML gives as lists but the models hold as tuples.
_TUPLE_KEYS = ("quantiles", "overlap_periods")


def _expand_env(obj: Any) -> Any:
    """Replace ``${VAR}`` references in every string of a parsed document."""
    if isinstance(obj, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj
        )
    if isinstance(obj, dict):
        return {key: _expand_env(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(item) for item in obj]
    return obj


def _overlay(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``; nested mappings are merged."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _overlay(current, value)
        else:
            merged[key] = value
    return merged


def _parse_periods(data: Any) -> list[PeriodSource]:
    """
    Parse period sources.

    Accepts either a mapping ``{1999: path, 2012: path}`` or a list of
    ``{period: ..., path: ...}`` entries. Mapping order is processing order.
    """
    if isinstance(data, dict):
        return [PeriodSource(period=int(k), path=Path(v)) for k, v in data.items()]
    if isinstance(data, list):
        return [
            PeriodSource(period=int(item["period"]), path=Path(item["path"]))
            for item in data
        ]
    msg = f"'data.periods' must be a mapping or a list, got {type(data).__name__}"
    raise ValueError(msg)


def _parse_analysis(data: dict[str, Any]) -> AnalysisConfig:
    values = dict(data)
    if values.get("site"):
        values["site"] = SiteSelection(**values["site"])
    for key in _TUPLE_KEYS:
        if values.get(key):
            values[key] = tuple(values[key])
    return AnalysisConfig(**values)


def load_yaml(path: Path) -> dict[str, Any]:
    """Read one YAML file with environment references expanded."""
    with path.open(encoding="utf-8") as f:
        document = yaml.safe_load(f)
    return _expand_env(document) if document else {}


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from YAML file(s).

    Args:
        config_path: Path to the main configuration file.
        base_path: Shared settings to inherit from. Defaults to a
            ``base.yaml`` in the same directory, if there is one.

    Returns:
        Fully validated PipelineConfig instance.

    Raises:
        ValueError: If ``project`` or ``data.periods`` is missing.
        pydantic.ValidationError: If a value is out of range.
    """
    if base_path is None:
        sibling = config_path.parent / "base.yaml"
        if sibling.exists() and sibling.resolve() != config_path.resolve():
            base_path = sibling

    document = load_yaml(config_path)
    if base_path is not None:
        document = _overlay(load_yaml(base_path), document)

    project = document.get("project")
    if not project:
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    data = document.get("data", {})
    if not data.get("periods"):
        msg = "Config must specify 'data.periods'"
        raise ValueError(msg)

    output = document.get("output", {})

    return PipelineConfig(
        project=project,
        dialect=DialectConfig(**document.get("dialect", {})),
        data_paths=DataPathsConfig(
            data_root=Path(data.get("root", "./data")),
            periods=_parse_periods(data["periods"]),
        ),
        quality=QualityPolicy(**document.get("quality", {})),
        analysis=_parse_analysis(document.get("analysis", {})),
        output=OutputConfig(output_root=Path(output.get("root", "./output"))),
        parallel_loading=document.get("parallel_loading", False),
        allow_partial=document.get("allow_partial", False),
    )


def config_from_paths(
    paths: Sequence[Path],
    periods: Sequence[int],
    *,
    project: str = "pm25",
    dialect: DialectConfig | None = None,
    analysis: AnalysisConfig | None = None,
    quality: QualityPolicy | None = None,
) -> PipelineConfig:
    """
    Build a configuration directly from file paths.

    Args:
        paths: One input file per period, in processing order.
        periods: Period labels matching ``paths``.
        project: Project identifier for output paths.
        dialect: Input format (defaults to pipe-delimited, ``#`` comments).
        analysis: Aggregation and overlap settings.
        quality: Quality thresholds.

    Returns:
        Validated PipelineConfig.
    """
    if len(paths) != len(periods):
        msg = f"Got {len(paths)} paths but {len(periods)} period labels"
        raise ValueError(msg)

    sources = [
        PeriodSource(period=period, path=Path(path).resolve())
        for period, path in zip(periods, paths)
    ]
    return PipelineConfig(
        project=project,
        dialect=dialect or DialectConfig(),
        data_paths=DataPathsConfig(periods=sources),
        analysis=analysis or AnalysisConfig(),
        quality=quality or QualityPolicy(),
    )
