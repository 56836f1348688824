"""Command-line interface for the pm25trend pipeline."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from pm25trend.config.settings import PipelineConfig

app = typer.Typer(
    name="pm25trend",
    help="Merge yearly PM2.5 monitoring extracts and summarize the change between them.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]
FilesArgument = Annotated[
    list[Path] | None,
    typer.Argument(help="Period files in period order (instead of --config)."),
]
PeriodOption = Annotated[
    list[int] | None,
    typer.Option("--period", "-p", help="Period label per file, e.g. -p 1999 -p 2012."),
]
JsonLogsOption = Annotated[
    bool, typer.Option("--log-json", help="Write log events to stderr as JSON lines.")
]
LogLevelOption = Annotated[
    str, typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR).")
]


def _parse_site(text: str) -> tuple[int, int, int]:
    parts = text.replace(":", "-").split("-")
    if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
        msg = f"Site must look like STATE-COUNTY-SITE (e.g. 36-063-2008), got {text!r}"
        raise typer.BadParameter(msg)
    state, county, site = (int(p) for p in parts)
    return state, county, site


def _build_config(
    config: Path | None,
    files: list[Path] | None,
    periods: list[int] | None,
    *,
    state: int | None = None,
    site: str | None = None,
    allow_partial: bool = False,
) -> "PipelineConfig":
    """Build the pipeline config from a YAML file or from file arguments."""
    from pm25trend.config.loader import config_from_paths, load_config
    from pm25trend.config.settings import AnalysisConfig, SiteSelection

    if config is not None:
        if files:
            console.print("[red]Error: Pass either --config or file paths, not both.[/red]")
            raise typer.Exit(code=1)
        console.print(f"[blue]Loading configuration from {config}[/blue]")
        pipeline_config = load_config(config)
    else:
        if not files:
            console.print("[red]Error: Pass --config or at least one file path.[/red]")
            raise typer.Exit(code=1)
        if not periods or len(periods) != len(files):
            console.print(
                f"[red]Error: Give one --period per file ({len(files)} files, "
                f"{len(periods or [])} periods).[/red]"
            )
            raise typer.Exit(code=1)
        pipeline_config = config_from_paths(files, periods)

    updates: dict[str, object] = {}
    analysis_updates: dict[str, object] = {}
    if state is not None:
        analysis_updates["overlap_state"] = state
    if site is not None:
        s, c, i = _parse_site(site)
        analysis_updates["site"] = SiteSelection(state_code=s, county_code=c, site_id=i)
    if analysis_updates:
        updates["analysis"] = AnalysisConfig(
            **{**pipeline_config.analysis.model_dump(), **analysis_updates}
        )
    if allow_partial:
        updates["allow_partial"] = True

    return pipeline_config.model_copy(update=updates) if updates else pipeline_config


def _resolve_config(
    config: Path | None,
    files: list[Path] | None,
    periods: list[int] | None,
    **overrides: object,
) -> "PipelineConfig":
    """Build the pipeline config, exiting with an error line if it is invalid."""
    import yaml

    try:
        return _build_config(config, files, periods, **overrides)  # type: ignore[arg-type]
    except (ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error: Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def run(
    files: FilesArgument = None,
    config: ConfigOption = None,
    period: PeriodOption = None,
    state: Annotated[
        int | None,
        typer.Option("--state", "-s", help="State code for the site overlap."),
    ] = None,
    site: Annotated[
        str | None,
        typer.Option("--site", help="Site to compare across periods: STATE-COUNTY-SITE."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Directory for summary CSVs and values.json."),
    ] = None,
    allow_partial: Annotated[
        bool,
        typer.Option("--allow-partial", help="Continue if some period files are unreadable."),
    ] = False,
    log_level: LogLevelOption = "WARNING",
    log_json: JsonLogsOption = False,
) -> None:
    """Run the full analysis: load, merge, summarize and resolve site overlap."""
    from pm25trend.etl.pipeline import AnalysisPipeline
    from pm25trend.exceptions import PipelineError
    from pm25trend.reporting import ConsoleReporter
    from pm25trend.utils.logging import configure_logging

    configure_logging(level=log_level, json_output=log_json)
    pipeline_config = _resolve_config(
        config, files, period, state=state, site=site, allow_partial=allow_partial
    )

    console.print(f"[blue]Analyzing periods {pipeline_config.periods}[/blue]")

    try:
        result = AnalysisPipeline(pipeline_config).run(output_dir=output)
    except (PipelineError, OSError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Analysis failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    reporter = ConsoleReporter(console)
    reporter.print_ingestion(result.merged.reports)
    reporter.print_summary(result.by_period, "PM2.5 by period")
    reporter.print_quality(result.quality)
    if result.overlap is not None:
        reporter.print_overlap(result.overlap)
    chosen = pipeline_config.analysis.site
    if result.site_summary is not None and chosen is not None:
        label = f"{chosen.state_code}-{chosen.county_code:03d}-{chosen.site_id:04d}"
        reporter.print_summary(result.site_summary, f"Site {label} by period")

    for failed, reason in result.failed_periods.items():
        console.print(f"[yellow]⚠ Period {failed} skipped: {reason}[/yellow]")

    table = Table(title="Values")
    table.add_column("Name", style="cyan")
    table.add_column("Value", style="green")
    for name, value in result.scalars.items():
        if value is None:
            text = "n/a"
        elif isinstance(value, int):
            text = str(value)
        else:
            text = f"{value:.4g}"
        table.add_row(name, text)
    console.print(table)

    if output is not None:
        console.print(f"\n[green]Saved to: {output}[/green]")


@app.command()
def audit(
    files: FilesArgument = None,
    config: ConfigOption = None,
    period: PeriodOption = None,
    log_level: LogLevelOption = "WARNING",
    log_json: JsonLogsOption = False,
) -> None:
    """Read and bind the period files, then report data-quality counts only."""
    from pm25trend.analysis.quality import assess_quality
    from pm25trend.etl.merge import merge_datasets
    from pm25trend.etl.pipeline import AnalysisPipeline
    from pm25trend.exceptions import PipelineError
    from pm25trend.reporting import ConsoleReporter
    from pm25trend.utils.logging import configure_logging

    configure_logging(level=log_level, json_output=log_json)
    pipeline_config = _resolve_config(config, files, period, allow_partial=True)

    try:
        datasets, failed = AnalysisPipeline(pipeline_config).load_periods()
        merged = merge_datasets(datasets)
    except (PipelineError, OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    assessment = assess_quality(merged, pipeline_config.quality)

    reporter = ConsoleReporter(console)
    reporter.print_ingestion(merged.reports)
    reporter.print_quality(assessment)

    for failed_period, reason in failed.items():
        console.print(f"[yellow]⚠ Period {failed_period} skipped: {reason}[/yellow]")

    if failed or not assessment.passed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
