"""Command-line interface for the telemetry series pipeline.

Usage:
    telemetry-series load data/
    telemetry-series aggregate data/ --kind metric_container --entity db-1
    telemetry-series series data/ --kind log --max-points 500 --output log.csv
    telemetry-series summary data/ --kind trace --date 2021_03_04
    telemetry-series info data/
    telemetry-series --freq 5min --origin epoch aggregate data/ --kind log
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import typer

from .aggregate.filters import TimeWindow, clamp_window, data_time_range
from .config import PipelineConfig, load_config
from .ingest.file_scanner import FileScanner
from .ingest.pipeline import IngestPipeline, LoadResult
from .preview import file_listing, filter_datasets, search_rows, summarize
from .schema.records import TIMED_KINDS, RecordKind

app = typer.Typer(
    name="telemetry-series",
    help="Telemetry CSV ingestion, aggregation and downsampling",
    add_completion=False,
)


@app.callback()
def configure(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file (defaults apply when omitted)",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
    freq: Optional[str] = typer.Option(None, "--freq", help="Bucket width, e.g. 1min or 30s"),
    tz: Optional[str] = typer.Option(None, "--tz", help="Timezone for bucket labels"),
    origin: Optional[str] = typer.Option(None, "--origin", help="Bucket grid anchor: start or epoch"),
):
    """Load configuration and set up logging for every command."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(levelname)s %(message)s",
    )
    try:
        cfg = load_config(config) if config else PipelineConfig()
    except (OSError, ValueError) as e:
        raise typer.BadParameter(str(e), param_hint="--config") from e
    try:
        cfg = cfg.with_overrides(bucket_freq=freq, timezone=tz, bucket_origin=origin)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--freq/--tz/--origin") from e
    ctx.obj = cfg


def _parse_kind(kind: str, timed: bool = False) -> RecordKind:
    try:
        parsed = RecordKind.parse(kind)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--kind") from e
    if timed and parsed not in TIMED_KINDS:
        valid = ", ".join(k.value for k in TIMED_KINDS)
        raise typer.BadParameter(f"'{parsed}' cannot be aggregated (expected one of: {valid})", param_hint="--kind")
    return parsed


def _load(pipeline: IngestPipeline, path: str) -> LoadResult:
    """Load a file or directory; exit with code 1 when nothing loads."""
    try:
        result = pipeline.load_directory(path)
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    for name, message in result.failures.items():
        typer.echo(f"  FAILED {name}: {message}", err=True)
    if not result.datasets:
        typer.echo("No data could be loaded", err=True)
        raise typer.Exit(code=1)
    return result


def _resolve_window(
    pipeline: IngestPipeline,
    result: LoadResult,
    start: Optional[str],
    end: Optional[str],
) -> Optional[TimeWindow]:
    """Window from --start/--end; a missing side defaults to the data range."""
    if start is None and end is None:
        return None

    data_range = data_time_range(result.datasets)
    low, high = data_range or (0.0, 0.0)
    try:
        window = pipeline.window(
            start if start is not None else low,
            end if end is not None else high,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--start/--end") from e
    return clamp_window(window, data_range)


def _emit(frame: pd.DataFrame, output: Optional[str], limit: int) -> None:
    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(out_path, index=False)
        typer.echo(f"Wrote {len(frame):,} rows to {out_path}")
    elif frame.empty:
        typer.echo("No points")
    else:
        typer.echo(frame.head(limit).to_string(index=False))
        if len(frame) > limit:
            typer.echo(f"... {len(frame) - limit:,} more rows")


@app.command()
def load(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="CSV file or directory"),
):
    """Load CSV files and report per-file results."""
    pipeline = IngestPipeline(ctx.obj)
    result = _load(pipeline, path)

    for dataset in result.datasets:
        report = dataset.report
        typer.echo(
            f"  {dataset.file_name}: {dataset.kind} date={dataset.date or '-'} "
            f"rows={dataset.row_count:,} errors={len(report.errors)}"
        )
    for name in result.skipped:
        typer.echo(f"  SKIPPED {name}: unknown file type")

    stats = result.summary()
    typer.echo(f"\nFiles loaded: {stats['files_loaded']}")
    typer.echo(f"Files failed: {stats['files_failed']}")
    typer.echo(f"Files skipped: {stats['files_skipped']}")
    typer.echo(f"Total rows: {stats['total_rows']:,}")
    typer.echo(f"Dropped empty rows: {stats['dropped_empty_rows']:,}")
    typer.echo(f"Critical parse errors: {stats['parse_errors']}")


@app.command()
def aggregate(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="CSV file or directory"),
    kind: str = typer.Option(..., "--kind", "-k", help="log, metric_app, metric_container or trace_span"),
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Service or component id ('all' = every one)"),
    start: Optional[str] = typer.Option(None, "--start", help="Window start (ISO time or epoch seconds)"),
    end: Optional[str] = typer.Option(None, "--end", help="Window end (ISO time or epoch seconds)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write points to this CSV"),
    limit: int = typer.Option(20, "--limit", help="Rows to print when not writing a file"),
):
    """Aggregate one kind into time-bucketed points."""
    record_kind = _parse_kind(kind, timed=True)
    pipeline = IngestPipeline(ctx.obj)
    result = _load(pipeline, path)

    window = _resolve_window(pipeline, result, start, end)
    if window is not None:
        typer.echo(f"Window: {window.describe(pipeline.config.timezone)}")

    points = pipeline.aggregate(result.datasets, record_kind, entity=entity, window=window)
    typer.echo(f"{record_kind}: {len(points):,} points")
    _emit(points, output, limit)


@app.command()
def series(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="CSV file or directory"),
    kind: str = typer.Option(..., "--kind", "-k", help="log, metric_app, metric_container or trace_span"),
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Service or component id ('all' = every one)"),
    start: Optional[str] = typer.Option(None, "--start", help="Window start (ISO time or epoch seconds)"),
    end: Optional[str] = typer.Option(None, "--end", help="Window end (ISO time or epoch seconds)"),
    kpis: Optional[str] = typer.Option(None, "--kpis", help="Comma-separated KPI allow-list (metric_container)"),
    max_points: Optional[int] = typer.Option(None, "--max-points", help="Point budget per series"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the chart frame to this CSV"),
    limit: int = typer.Option(20, "--limit", help="Rows to print when not writing a file"),
):
    """Build a downsampled, chart-ready series for one kind."""
    record_kind = _parse_kind(kind, timed=True)
    if max_points is not None and max_points < 2:
        raise typer.BadParameter("must be at least 2", param_hint="--max-points")

    pipeline = IngestPipeline(ctx.obj)
    result = _load(pipeline, path)
    window = _resolve_window(pipeline, result, start, end)

    kpi_list = [k.strip() for k in kpis.split(",") if k.strip()] if kpis else None
    built = pipeline.build_series(
        result.datasets,
        record_kind,
        entity=entity,
        window=window,
        kpis=kpi_list,
        max_points=max_points,
    )

    typer.echo(f"{record_kind}: {len(built.chart):,} of {built.total_points:,} points")
    if built.sampled:
        typer.echo("(sampled)")
    _emit(built.chart, output, limit)


@app.command()
def summary(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="CSV file or directory"),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Only this kind ('all' = every kind)"),
    date: Optional[str] = typer.Option(None, "--date", "-d", help="Only this YYYY_MM_DD label"),
    search: Optional[str] = typer.Option(None, "--search", help="Count rows containing this text"),
):
    """Show preview statistics for loaded files."""
    if kind is not None and kind != "all":
        _parse_kind(kind)

    pipeline = IngestPipeline(ctx.obj)
    result = _load(pipeline, path)
    datasets = filter_datasets(result.datasets, kind=kind, date=date)

    stats = summarize(datasets)
    typer.echo(f"Files: {stats['total_files']}")
    typer.echo(f"Rows: {stats['total_rows']:,}")
    for name, rows in stats["rows_by_kind"].items():
        typer.echo(f"  {name}: {rows:,}")

    if datasets:
        typer.echo("")
        typer.echo(file_listing(datasets).to_string(index=False))

    if search:
        typer.echo(f"\nRows containing '{search}':")
        for dataset in datasets:
            typer.echo(f"  {dataset.file_name}: {len(search_rows(dataset, search)):,}")


@app.command()
def info(
    path: str = typer.Argument(..., help="CSV file or directory"),
):
    """Show information about available files without parsing them."""
    scanner = FileScanner(path)
    try:
        stats = scanner.get_file_stats()
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    typer.echo(f"\nData under {stats['root']}:")
    typer.echo(f"  Files: {stats['file_count']}")
    typer.echo(f"  Size: {stats['total_size_mb']:.1f} MB")

    for name, count in stats["by_kind"].items():
        typer.echo(f"  {name}: {count}")

    dates = stats["dates"]
    if dates:
        typer.echo(f"  Dates: {dates[0]} - {dates[-1]}")

    if stats["undetected"]:
        typer.echo(f"  Unknown file types: {', '.join(stats['undetected'])}")


def main() -> None:
    """Entrypoint for the console script."""
    app()


if __name__ == "__main__":
    main()
