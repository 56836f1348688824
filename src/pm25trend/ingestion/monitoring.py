"""
PM2.5 monitoring file ingestion.

Reads one period's delimited extract and binds it to typed observations.
"""

from pm25trend.config.settings import PeriodSource, PipelineConfig
from pm25trend.ingestion.base import DataLoader
from pm25trend.ingestion.binding import BoundDataset, Schema, bind_records
from pm25trend.ingestion.reader import DelimitedRecordReader
from pm25trend.schemas.monitoring import MonitoringObservationSchema
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)


class MonitoringFileLoader(DataLoader[MonitoringObservationSchema]):
    """Loader for one period's delimited monitoring extract."""

    def __init__(self, config: PipelineConfig, source: PeriodSource) -> None:
        """Initialize monitoring file loader."""
        super().__init__(config, source, MonitoringObservationSchema)

    def _load_raw(self) -> BoundDataset:
        """Read the header, then bind the data records under it."""
        reader = DelimitedRecordReader(self.path, self.config.dialect)
        schema = Schema.from_header(reader.header())
        log.debug("Header parsed", fields=schema.arity, columns=list(schema.names))

        # The binder consumes the generator fully, so stats are final afterwards.
        dataset = bind_records(
            schema, reader.records(schema.arity), period=self.period
        )
        dataset.report.read = reader.stats

        return dataset


def load_period(
    config: PipelineConfig, source: PeriodSource, *, validate: bool = True
) -> BoundDataset:
    """
    Convenience function to load one period.

    Args:
        config: Pipeline configuration.
        source: The period and file to load.
        validate: Whether to validate against schema.

    Returns:
        Bound dataset tagged with ``source.period``.
    """
    loader = MonitoringFileLoader(config, source)
    return loader.load(validate=validate)
