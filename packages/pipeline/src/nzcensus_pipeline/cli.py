"""
cli.py — Click CLI entrypoint for the density pipeline.

Usage:
    nzcensus run
    nzcensus run --measure male_density_2006 --output maps/nz.html
    nzcensus run --allow-unmatched --log-format json
    nzcensus check-regions
"""

from __future__ import annotations

import asyncio

import click
import structlog

from nzcensus_shared.config import settings
from nzcensus_shared.constants import DENSITY_COLUMNS
from nzcensus_shared.errors import PipelineError
from nzcensus_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["console", "json"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """New Zealand census population-density map pipeline."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
@click.option(
    "--output",
    "output_path",
    default=settings.output_html,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="HTML file to write",
)
@click.option(
    "--measure",
    default=settings.map_measure,
    show_default=True,
    type=click.Choice(list(DENSITY_COLUMNS)),
    help="Density column to colour the map by",
)
@click.option(
    "--allow-unmatched/--no-allow-unmatched",
    default=settings.allow_unmatched_regions,
    show_default=True,
    help="Map unmatched regions without data instead of failing",
)
def run(output_path: str, measure: str, allow_unmatched: bool) -> None:
    """Download, clean, join and render the density map."""
    from nzcensus_pipeline.pipelines.region_density import run as run_pipeline

    try:
        result = asyncio.run(
            run_pipeline(
                output_path=output_path,
                measure=measure,
                allow_unmatched=allow_unmatched,
            )
        )
    except PipelineError as exc:
        log.error("pipeline_failed", error=str(exc), error_type=type(exc).__name__)
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Map written to {result.output_path}")
    click.echo(
        f"  {result.regions} regions, {result.vertices} vertices, "
        f"{result.tidy_rows} census rows, {result.duration_ms} ms"
    )
    if result.unmatched_regions:
        click.echo(f"  unmatched regions: {', '.join(result.unmatched_regions)}")
    if result.totals_discrepancies:
        click.echo(
            f"  {len(result.totals_discrepancies)} age-group sums differ from Total rows"
        )


@main.command("check-regions")
def check_regions() -> None:
    """Report region names that differ between the census and the boundaries."""
    from nzcensus_pipeline.pipelines.region_density import check_regions as check

    try:
        mismatch = asyncio.run(check())
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc

    if mismatch.is_empty:
        click.echo("All census regions match a boundary.")
        return
    for name in mismatch.census_only:
        hint = mismatch.suggestions.get(name)
        suffix = f"  (did you mean {hint!r}?)" if hint else ""
        click.echo(f"census only:   {name}{suffix}")
    for name in mismatch.geometry_only:
        click.echo(f"geometry only: {name}")
    raise SystemExit(1)


if __name__ == "__main__":
    main()
