"""
transforms/join.py — Attach census counts to flattened boundaries and derive density.

Geometry is per region while the tidy census table is per (region, age_group),
so counts are summed per region before the merge. Region names are matched
exactly after the alias table has been applied; any name left over on either
side is reported through JoinMismatchError rather than patched.

Usage:
    counts = aggregate_by_region(tidy)
    counts = apply_region_aliases(counts, "region", settings.region_aliases)
    joined = join_census_to_geometry(flat, attrs, counts)
    dense = add_density_columns(joined)
"""

from __future__ import annotations

import polars as pl
import structlog

from nzcensus_shared.constants import (
    AREA_COLUMN,
    COUNT_COLUMNS,
    DENSITY_COLUMNS,
    REGION_COLUMN,
)
from nzcensus_shared.errors import JoinMismatchError, StructuralAssumptionError
from nzcensus_shared.geo import region_name_mismatch
from nzcensus_shared.models import RegionMismatch

log = structlog.get_logger(__name__)


def aggregate_by_region(tidy: pl.DataFrame) -> pl.DataFrame:
    """
    Sum the count columns over age groups: one row per region.

    A region whose age-group counts are all null keeps a null total, so it
    is mapped as missing rather than as zero. Regions with only some null
    age groups are summed over the known values and logged.
    """
    partial = (
        tidy.group_by(REGION_COLUMN, maintain_order=True)
        .agg(
            [
                (pl.col(c).is_null().any() & pl.col(c).is_not_null().any()).alias(c)
                for c in COUNT_COLUMNS
            ]
        )
        .filter(pl.any_horizontal(list(COUNT_COLUMNS)))
    )
    if partial.height:
        log.warning(
            "partial_region_counts",
            regions=partial.get_column(REGION_COLUMN).to_list(),
        )

    return tidy.group_by(REGION_COLUMN, maintain_order=True).agg(
        [
            pl.when(pl.col(c).is_not_null().any()).then(pl.col(c).sum()).alias(c)
            for c in COUNT_COLUMNS
        ]
    )


def check_region_match(
    counts: pl.DataFrame,
    attributes: pl.DataFrame,
    *,
    allow_unmatched: bool = False,
) -> RegionMismatch:
    """
    Compare region names of the per-region counts and the boundary attributes.

    Args:
        counts:          Output of aggregate_by_region() with aliases applied.
        attributes:      Output of region_attribute_table().
        allow_unmatched: Log the mismatch instead of raising.

    Returns:
        The RegionMismatch (empty when every name matches).

    Raises:
        JoinMismatchError: names differ and allow_unmatched is False.
    """
    mismatch = region_name_mismatch(
        counts.get_column(REGION_COLUMN).to_list(),
        attributes.get_column(REGION_COLUMN).to_list(),
    )
    if mismatch.is_empty:
        log.info("regions_matched", regions=attributes.height)
        return mismatch

    log.warning("region_mismatch", **mismatch.to_log_dict())
    if not allow_unmatched:
        raise JoinMismatchError(
            mismatch.census_only, mismatch.geometry_only, mismatch.suggestions
        )
    return mismatch


def join_census_to_geometry(
    flat: pl.DataFrame,
    attributes: pl.DataFrame,
    counts: pl.DataFrame,
    *,
    allow_unmatched: bool = False,
) -> tuple[pl.DataFrame, RegionMismatch]:
    """
    Merge boundary attributes and per-region counts onto every vertex.

    Attributes are joined on `id`, counts on `region`. Polygons whose
    region has no census counts keep null count columns (only possible
    with allow_unmatched=True).

    Args:
        flat:            Output of flatten_geometry().
        attributes:      Output of region_attribute_table().
        counts:          Per-region counts, aliases applied.
        allow_unmatched: Continue with nulls instead of raising on mismatch.

    Returns:
        (joined, mismatch) — joined has one row per input vertex.

    Raises:
        JoinMismatchError: region names differ and allow_unmatched is False.
        StructuralAssumptionError: the merge changed the vertex count.
    """
    duplicated = (
        counts.group_by(REGION_COLUMN).len().filter(pl.col("len") > 1)
        .get_column(REGION_COLUMN).to_list()
    )
    if duplicated:
        raise StructuralAssumptionError(f"Census counts repeat regions: {sorted(duplicated)}")

    mismatch = check_region_match(counts, attributes, allow_unmatched=allow_unmatched)

    joined = (
        flat.join(attributes, on="id", how="left", maintain_order="left")
        .join(
            counts.select([REGION_COLUMN, *COUNT_COLUMNS]),
            on=REGION_COLUMN,
            how="left",
            maintain_order="left",
        )
    )
    if joined.height != flat.height:
        raise StructuralAssumptionError(
            f"Join changed the vertex count from {flat.height} to {joined.height}"
        )

    log.info(
        "census_joined",
        vertices=joined.height,
        unmatched_vertices=int(joined.get_column(COUNT_COLUMNS[0]).null_count()),
    )
    return joined, mismatch


def add_density_columns(df: pl.DataFrame) -> pl.DataFrame:
    """
    Add male/female density per census year: count / area_sq_km.

    Density is null where the count is null or the area is null or not
    positive, so every non-null density is finite.
    """
    area = pl.col(AREA_COLUMN)
    bad_area = df.filter(area.is_null() | (area <= 0)).get_column("id").unique().to_list()
    if bad_area:
        log.warning("non_positive_area", feature_ids=sorted(bad_area))

    return df.with_columns(
        [
            pl.when(area > 0).then(pl.col(count_col) / area).otherwise(None).alias(density_col)
            for density_col, count_col in DENSITY_COLUMNS.items()
        ]
    )
