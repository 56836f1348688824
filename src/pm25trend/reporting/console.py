"""
Console reporter for analysis results.

Formats summaries, ingestion counts and overlap candidates using Rich.
"""

from rich.console import Console
from rich.table import Table

from pm25trend.analysis.aggregate import GroupSummary
from pm25trend.analysis.overlap import SiteOverlap
from pm25trend.analysis.quality import QualityAssessment
from pm25trend.ingestion.binding import IngestionReport


def _fmt(value: float | int | None, format_spec: str = ".2f") -> str:
    if value is None:
        return "[dim]n/a[/dim]"
    if isinstance(value, int):
        return str(value)
    return format(value, format_spec)


def _fmt_rate(value: float | None) -> str:
    return _fmt(value, ".2%")


class ConsoleReporter:
    """Formats and displays analysis results to the console."""

    def __init__(self, console: Console) -> None:
        """
        Initialize console reporter.

        Args:
            console: Rich Console instance for output.
        """
        self.console = console

    def print_ingestion(self, reports: dict[int, IngestionReport]) -> None:
        """
        Print line and cell accounting per period.

        Args:
            reports: Ingestion reports keyed by period.
        """
        table = Table(title="Ingestion", show_header=True)
        table.add_column("Period", style="cyan", no_wrap=True)
        table.add_column("Data lines", justify="right")
        table.add_column("Rows", justify="right")
        table.add_column("Rejected", justify="right")
        table.add_column("Coerced to missing", justify="right")

        for period, report in reports.items():
            data_lines = report.read.data_lines if report.read is not None else None
            rejected = report.rejected_records
            table.add_row(
                str(period),
                _fmt(data_lines),
                str(report.rows),
                f"[red]{rejected}[/red]" if rejected else "0",
                str(report.coerced_to_missing),
            )

        self.console.print(table)

    def print_summary(self, summary: GroupSummary, title: str) -> None:
        """
        Print a grouped summary as a table.

        Args:
            summary: Statistics to print.
            title: Table title.
        """
        table = Table(title=title, show_header=True)
        for column in summary.key_columns:
            table.add_column(column, style="cyan", no_wrap=True)
        for column in ["n", "missing", "mean", "min", "q1", "median", "q3", "max", "neg."]:
            table.add_column(column, justify="right")

        for key, stats in summary.items():
            table.add_row(
                *(_fmt(part) for part in key),
                str(stats.count),
                _fmt_rate(stats.missing_rate),
                _fmt(stats.mean),
                _fmt(stats.min),
                _fmt(stats.q1),
                _fmt(stats.median),
                _fmt(stats.q3),
                _fmt(stats.max),
                _fmt_rate(stats.negative_rate),
            )

        self.console.print(table)

    def print_quality(self, assessment: QualityAssessment) -> None:
        """
        Print quality rates and their verdicts.

        Args:
            assessment: Quality assessment to print.
        """
        table = Table(title="Data Quality", show_header=True)
        table.add_column("Group", style="cyan", no_wrap=True)
        table.add_column("Rows", justify="right")
        table.add_column("Missing", justify="right")
        table.add_column("Negative", justify="right")
        table.add_column("Status", justify="center")

        for finding in assessment.findings:
            table.add_row(
                " / ".join(_fmt(part) for part in finding.key) or "all",
                str(finding.n_rows),
                _fmt_rate(finding.missing_rate),
                _fmt_rate(finding.negative_rate),
                self._format_status(finding.missing_ok, finding.negative_ok),
            )

        self.console.print(table)

        policy = assessment.policy
        self.console.print(
            f"[dim]Thresholds: missing <= {_fmt_rate(policy.max_missing_rate)}, "
            f"negative <= {_fmt_rate(policy.max_negative_rate)}[/dim]"
        )

    def _format_status(self, missing_ok: bool | None, negative_ok: bool | None) -> str:
        if missing_ok is False or negative_ok is False:
            return "[red]Fail[/red]"
        if missing_ok is None and negative_ok is None:
            return "[yellow]Not judged[/yellow]"
        return "[green]Pass[/green]"

    def print_overlap(self, overlap: SiteOverlap, limit: int = 10) -> None:
        """
        Print ranked overlap candidates.

        Args:
            overlap: Site overlap result.
            limit: Maximum number of candidates to show.
        """
        first, second = overlap.periods
        table = Table(
            title=f"Sites in state {overlap.state_code} reporting in {first} and {second}",
            show_header=True,
        )
        table.add_column("Rank", justify="right")
        table.add_column("County", style="cyan")
        table.add_column("Site", style="cyan")
        table.add_column(f"Rows {first}", justify="right")
        table.add_column(f"Rows {second}", justify="right")
        table.add_column("Total", justify="right", style="green")

        for values in overlap.candidates.head(limit).to_dict("records"):
            table.add_row(
                str(values["rank"]),
                str(values["county_code"]),
                str(values["site_id"]),
                str(values[f"n_{first}"]),
                str(values[f"n_{second}"]),
                str(values["total"]),
            )

        self.console.print(table)
        if len(overlap) > limit:
            self.console.print(f"[dim]... {len(overlap) - limit} more[/dim]")
