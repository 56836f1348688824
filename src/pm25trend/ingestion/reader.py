"""
Delimited-record reader.

Parses pipe-delimited text with a leading block of comment lines and a
header line into raw records. Header extraction is separate from data
iteration so the header row is never counted as data.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from pm25trend.config.settings import DialectConfig, HeaderPolicy
from pm25trend.exceptions import FileAccessError, RecordArityError, SchemaBindingError
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

# One string per column; None marks an explicitly missing field.
RawRecord = tuple[str | None, ...]


@dataclass
class ReadStats:
    """
    Line accounting for one file.

    Attributes:
        path: File that was read.
        data_lines: Lines that were neither comment, blank nor header.
        accepted: Data lines returned as records.
        rejected: Arity errors for data lines that were skipped.
        comment_lines: Comment lines skipped (header excluded).
        blank_lines: Whitespace-only lines skipped.
    """

    path: Path
    data_lines: int = 0
    accepted: int = 0
    rejected: list[RecordArityError] = field(default_factory=list)
    comment_lines: int = 0
    blank_lines: int = 0

    @property
    def n_rejected(self) -> int:
        """Number of data lines skipped for arity mismatch."""
        return len(self.rejected)


def _open(path: Path, encoding: str) -> TextIO:
    try:
        return path.open(encoding=encoding, newline="")
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e)) from e


def _is_comment(line: str, prefix: str) -> bool:
    return line.lstrip().startswith(prefix)


def split_line(line: str, dialect: DialectConfig) -> RawRecord:
    """
    Split one line into fields.

    Args:
        line: Text line, with or without its line terminator.
        dialect: Delimiter and missing-value token.

    Returns:
        Tuple of fields with the missing token replaced by None.
    """
    fields = line.rstrip("\r\n").split(dialect.delimiter)
    return tuple(None if f == dialect.missing_token else f for f in fields)


def read_header(path: Path, dialect: DialectConfig) -> list[str]:
    """
    Read the column names of a file.

    Args:
        path: Delimited text file.
        dialect: Input format, including where the header lives.

    Returns:
        Raw column names in file order.

    Raises:
        FileAccessError: If the file cannot be opened.
        SchemaBindingError: If the file has no header line.
    """
    with _open(path, dialect.encoding) as f:
        for line in f:
            if not line.strip():
                continue
            if dialect.header is HeaderPolicy.LEADING_COMMENT:
                if not _is_comment(line, dialect.comment):
                    break
                text = line.lstrip()[len(dialect.comment) :].lstrip()
                return [name.strip() for name in text.rstrip("\r\n").split(dialect.delimiter)]
            if _is_comment(line, dialect.comment):
                continue
            return [name.strip() for name in line.rstrip("\r\n").split(dialect.delimiter)]

    msg = f"No header line found in {path} (policy: {dialect.header.value})"
    raise SchemaBindingError(msg)


class DelimitedRecordReader:
    """
    Lazy reader over the data lines of one delimited file.

    Statistics are accumulated on ``stats`` while ``records`` is consumed,
    so they are complete once the generator is exhausted.
    """

    def __init__(self, path: Path, dialect: DialectConfig) -> None:
        """
        Initialize reader.

        Args:
            path: Delimited text file.
            dialect: Input format.
        """
        self.path = path
        self.dialect = dialect
        self.stats = ReadStats(path=path)

    def header(self) -> list[str]:
        """Column names of the file."""
        return read_header(self.path, self.dialect)

    def records(self, arity: int) -> Iterator[RawRecord]:
        """
        Yield data records with exactly ``arity`` fields.

        Args:
            arity: Expected number of fields (the header width).

        Yields:
            Raw records in file order.

        Raises:
            FileAccessError: If the file cannot be opened or decoded.
        """
        self.stats = stats = ReadStats(path=self.path)
        header_pending = True

        with _open(self.path, self.dialect.encoding) as f:
            try:
                for line_number, line in enumerate(f, start=1):
                    if not line.strip():
                        stats.blank_lines += 1
                        continue

                    if _is_comment(line, self.dialect.comment):
                        if header_pending and self.dialect.header is HeaderPolicy.LEADING_COMMENT:
                            header_pending = False
                        else:
                            stats.comment_lines += 1
                        continue

                    if header_pending:
                        header_pending = False
                        if self.dialect.header is HeaderPolicy.FIRST_NON_COMMENT:
                            continue

                    stats.data_lines += 1
                    record = split_line(line, self.dialect)
                    if len(record) != arity:
                        error = RecordArityError(line_number, arity, len(record))
                        stats.rejected.append(error)
                        log.debug("Rejected record", line=line_number, fields=len(record))
                        continue

                    stats.accepted += 1
                    yield record
            except UnicodeDecodeError as e:
                raise FileAccessError(self.path, f"not {self.dialect.encoding} text") from e

        log.info(
            "Read records",
            path=str(self.path),
            data_lines=stats.data_lines,
            accepted=stats.accepted,
            rejected=stats.n_rejected,
            comment_lines=stats.comment_lines,
        )
