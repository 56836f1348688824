"""Pytest configuration and shared fixtures."""

import logging
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog

from pm25trend.config import AnalysisConfig, PipelineConfig, config_from_paths
from pm25trend.ingestion.binding import BoundDataset, Schema, bind_records

HEADER = ["State Code", "County Code", "Site ID", "Date", "Sample Value"]

PERIOD_1999_TEXT = """\
# PM2.5 raw data extract, 1999
# generated for tests
State Code|County Code|Site ID|Date|Sample Value
36|063|2008|19990701|5
36|063|2008|19991001|10
36|063|2008|19991201|15
"""

PERIOD_2012_TEXT = """\
# PM2.5 raw data extract, 2012
State Code|County Code|Site ID|Date|Sample Value
36|063|2008|20120115|2
36|063|2008|20120301|4
36|063|2008|20120420|
"""

# EPA raw-data layout: the header is the first line and is itself a comment.
EPA_RAW_TEXT = """\
# RD|Action Code|State Code|County Code|Site ID|Parameter|POC|Sample Duration|Unit|Method|Date|Start Time|Sample Value|Null Data Code
# RC|Action Code|State Code|County Code|Site ID|Parameter|POC|Unit|Method|Year|Period|Number of Samples
RD|I|01|027|0001|88101|1|7|105|120|19990103|00:00||AS
RD|I|01|027|0001|88101|1|7|105|120|19990106|00:00|12.5|
RD|I|01|027|0001|88101|1|7|105|120|19990109|00:00|-0.4|
"""

Row = tuple[str | None, ...]


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo CLI logging setup so later tests don't write to a closed captured stream."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    structlog.reset_defaults()
    # Module-level proxies cache a logger bound to the stream of the test
    # that first used them; drop those caches.
    for name, module in list(sys.modules.items()):
        if name.startswith("pm25trend"):
            for value in vars(module).values():
                if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                    vars(value).pop("bind", None)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write text to a file under tmp_path and return its path."""

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def period_1999_file(write_file: Callable[[str, str], Path]) -> Path:
    """Three 1999 observations at site 36-063-2008."""
    return write_file("pm25_1999.txt", PERIOD_1999_TEXT)


@pytest.fixture
def period_2012_file(write_file: Callable[[str, str], Path]) -> Path:
    """Three 2012 observations at site 36-063-2008, one missing."""
    return write_file("pm25_2012.txt", PERIOD_2012_TEXT)


@pytest.fixture
def epa_raw_file(write_file: Callable[[str, str], Path]) -> Path:
    """EPA raw-data extract with the header in the first comment line."""
    return write_file("RD_501_88101_1999-0.txt", EPA_RAW_TEXT)


@pytest.fixture
def header() -> list[str]:
    """Column labels of the scenario files."""
    return list(HEADER)


@pytest.fixture
def scenario_config(period_1999_file: Path, period_2012_file: Path) -> PipelineConfig:
    """Configuration for the two-period scenario, overlap in state 36."""
    return config_from_paths(
        [period_1999_file, period_2012_file],
        [1999, 2012],
        analysis=AnalysisConfig(overlap_state=36),
    )


@pytest.fixture
def make_dataset() -> Callable[..., BoundDataset]:
    """Build a bound dataset from rows of (state, county, site, date, value) strings."""

    def _make(
        rows: list[Row],
        period: int | None = None,
        header: list[str] | None = None,
    ) -> BoundDataset:
        schema = Schema.from_header(header or HEADER)
        return bind_records(schema, rows, period=period)

    return _make
