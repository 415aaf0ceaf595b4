"""
pipelines/region_density.py — Census + boundaries → density choropleth pipeline.

Orchestrates:
  1. CensusWorkbookSource  → tidy (region, age_group) counts
  2. RegionBoundarySource  → region polygons in EPSG:4326 with area_sq_km
  3. Flatten geometry      → one row per boundary vertex
  4. Aggregate + alias     → one row of counts per region
  5. Join + derive         → vertex table with male/female density per year
  6. Render                → interactive HTML choropleth

Usage:
    from nzcensus_pipeline.pipelines.region_density import run
    result = asyncio.run(run(measure="male_density_2013"))
    print(result.output_path, result.vertices)

    # Region name diagnostics only (no rendering, never raises on mismatch):
    mismatch = asyncio.run(check_regions())
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import geopandas as gpd
import polars as pl

from nzcensus_shared.config import settings
from nzcensus_shared.constants import REGION_COLUMN, DensityMeasure
from nzcensus_shared.geo import apply_region_aliases
from nzcensus_shared.models import RegionMismatch, TotalsDiscrepancy
from nzcensus_pipeline.render.choropleth import render_choropleth
from nzcensus_pipeline.sources.boundaries import RegionBoundarySource
from nzcensus_pipeline.sources.census import CensusWorkbookSource
from nzcensus_pipeline.transforms.join import (
    add_density_columns,
    aggregate_by_region,
    check_region_match,
    join_census_to_geometry,
)
from nzcensus_pipeline.transforms.spatial import flatten_geometry, region_attribute_table
from nzcensus_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="region_density")


@dataclass
class PipelineResult:
    """Summary of one pipeline run."""

    output_path: Path
    measure: DensityMeasure
    regions: int = 0
    vertices: int = 0
    tidy_rows: int = 0
    mismatch: RegionMismatch = field(default_factory=RegionMismatch)
    totals_discrepancies: list[TotalsDiscrepancy] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def unmatched_regions(self) -> list[str]:
        return [*self.mismatch.census_only, *self.mismatch.geometry_only]


def region_counts(tidy: pl.DataFrame, aliases: Mapping[str, str]) -> pl.DataFrame:
    """Per-region count totals with census names rewritten to boundary names."""
    return apply_region_aliases(aggregate_by_region(tidy), REGION_COLUMN, aliases)


def derive_density_table(
    tidy: pl.DataFrame,
    boundaries: gpd.GeoDataFrame,
    *,
    aliases: Mapping[str, str],
    allow_unmatched: bool = False,
) -> tuple[pl.DataFrame, RegionMismatch]:
    """
    Join census counts onto flattened boundaries and add density columns.

    Args:
        tidy:            Output of CensusWorkbookSource.
        boundaries:      Output of RegionBoundarySource (target CRS).
        aliases:         Census → boundary region name corrections.
        allow_unmatched: Keep unmatched polygons with null densities
                         instead of raising JoinMismatchError.

    Returns:
        (density table, region mismatch)
    """
    flat = flatten_geometry(boundaries)
    attributes = region_attribute_table(boundaries)
    counts = region_counts(tidy, aliases)
    joined, mismatch = join_census_to_geometry(
        flat, attributes, counts, allow_unmatched=allow_unmatched
    )
    return add_density_columns(joined), mismatch


async def run(
    *,
    output_path: str | Path | None = None,
    measure: DensityMeasure | None = None,
    allow_unmatched: bool | None = None,
    census_source: CensusWorkbookSource | None = None,
    boundary_source: RegionBoundarySource | None = None,
) -> PipelineResult:
    """
    Run the pipeline end-to-end and write the HTML map.

    Args:
        output_path:     HTML destination (default settings.output_html).
        measure:         Density column to map (default settings.map_measure).
        allow_unmatched: Override settings.allow_unmatched_regions.
        census_source:   Pre-built source (tests, custom URLs).
        boundary_source: Pre-built source (tests, custom URLs).

    Returns:
        PipelineResult describing the run.

    Raises:
        PipelineError subclasses from any stage.
    """
    t0 = time.monotonic()
    output_path = Path(output_path or settings.output_html)
    measure = measure or settings.map_measure
    if allow_unmatched is None:
        allow_unmatched = settings.allow_unmatched_regions

    log.info(
        "region_density_start",
        output=str(output_path),
        measure=measure,
        allow_unmatched=allow_unmatched,
    )

    census = census_source or CensusWorkbookSource()
    boundaries_source = boundary_source or RegionBoundarySource()

    tidy = await census.run()
    boundaries = await boundaries_source.run()

    dense, mismatch = derive_density_table(
        tidy,
        boundaries,
        aliases=settings.region_aliases,
        allow_unmatched=allow_unmatched,
    )

    path = render_choropleth(
        dense,
        measure,
        output_path,
        title=settings.map_title,
        self_contained=settings.html_self_contained,
    )

    result = PipelineResult(
        output_path=path,
        measure=measure,
        regions=len(boundaries),
        vertices=dense.height,
        tidy_rows=tidy.height,
        mismatch=mismatch,
        totals_discrepancies=list(census.discrepancies),
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    log.info(
        "region_density_complete",
        output=str(path),
        regions=result.regions,
        vertices=result.vertices,
        unmatched=result.unmatched_regions,
        duration_ms=result.duration_ms,
    )
    return result


async def check_regions(
    *,
    census_source: CensusWorkbookSource | None = None,
    boundary_source: RegionBoundarySource | None = None,
) -> RegionMismatch:
    """Download and clean both datasets and report region name differences."""
    census = census_source or CensusWorkbookSource()
    boundaries_source = boundary_source or RegionBoundarySource()

    tidy = await census.run()
    boundaries = await boundaries_source.run()

    counts = region_counts(tidy, settings.region_aliases)
    return check_region_match(
        counts, region_attribute_table(boundaries), allow_unmatched=True
    )
