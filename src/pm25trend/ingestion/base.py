"""
Base classes and utilities for period data ingestion.

Provides common functionality for all period loaders.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Generic, TypeVar

import pandera.pandas as pa

from pm25trend.config.settings import PeriodSource, PipelineConfig
from pm25trend.ingestion.binding import BoundDataset
from pm25trend.utils.logging import get_logger, log_context

log = get_logger(__name__)

T = TypeVar("T", bound=pa.DataFrameModel)


class DataLoader(ABC, Generic[T]):
    """
    Abstract base class for period loaders.

    Every loader returns one period's BoundDataset and validates its table
    against a pandera schema at the system boundary.
    """

    def __init__(
        self, config: PipelineConfig, source: PeriodSource, schema: type[T]
    ) -> None:
        """
        Initialize data loader.

        Args:
            config: Pipeline configuration.
            source: The period and file to load.
            schema: Pandera schema for validation.
        """
        self.config = config
        self.source = source
        self.schema = schema

    @property
    def period(self) -> int:
        """Period label of the loaded data."""
        return self.source.period

    @property
    def path(self) -> Path:
        """Resolved input file path."""
        return self.config.data_paths.resolve(self.source)

    @abstractmethod
    def _load_raw(self) -> BoundDataset:
        """Read and bind the period file. Implemented by subclasses."""
        ...

    def load(self, *, validate: bool = True) -> BoundDataset:
        """
        Load and optionally validate one period.

        Args:
            validate: Whether to validate against schema.

        Returns:
            Bound dataset tagged with the period.

        Raises:
            FileAccessError: If the data file cannot be read.
            SchemaBindingError: If the header lacks required fields.
            pandera.errors.SchemaError: If validation fails.
        """
        with log_context(period=self.period):
            log.info("Loading period", loader=self.__class__.__name__, path=str(self.path))

            dataset = self._load_raw()

            if validate:
                dataset = replace(dataset, frame=self.schema.validate(dataset.frame))
                log.info("Schema validation passed", rows=len(dataset))

        return dataset
