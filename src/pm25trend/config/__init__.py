"""
Configuration management with typed Pydantic models.

Provides explicit period parameterization and
environment-aware configuration loading.
"""

from pm25trend.config.loader import config_from_paths, load_config
from pm25trend.config.settings import (
    AnalysisConfig,
    DataPathsConfig,
    DialectConfig,
    HeaderPolicy,
    OutputConfig,
    PeriodSource,
    PipelineConfig,
    QualityPolicy,
    SiteSelection,
)

__all__ = [
    "AnalysisConfig",
    "DataPathsConfig",
    "DialectConfig",
    "HeaderPolicy",
    "OutputConfig",
    "PeriodSource",
    "PipelineConfig",
    "QualityPolicy",
    "SiteSelection",
    "config_from_paths",
    "load_config",
]
