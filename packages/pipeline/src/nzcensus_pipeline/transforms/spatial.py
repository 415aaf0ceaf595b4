"""
transforms/spatial.py — Boundary preparation: attributes, area, CRS, flattening.

Takes the GeoDataFrame read from the regional boundary shapefile and
produces the two tables the join stage needs:

  region_attribute_table()  — (id, region, area_sq_km), one row per feature
  flatten_geometry()        — one row per boundary vertex, ordered

The `id` column is the feature's position after standardize_region_attributes()
and is the only link between the two tables once the geometry is flattened.

Usage:
    gdf = standardize_region_attributes(raw, name_column="REGC2014_N")
    gdf = reproject(gdf, "EPSG:4326")
    flat = flatten_geometry(gdf)
    attrs = region_attribute_table(gdf)
"""

from __future__ import annotations

import geopandas as gpd
import numpy as np
import pandas as pd
import polars as pl
import structlog
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from nzcensus_shared.constants import (
    AREA_COLUMN,
    EQUAL_AREA_CRS,
    FLAT_GEOMETRY_COLUMNS,
    REGION_COLUMN,
    SQ_METRES_PER_SQ_KM,
)
from nzcensus_shared.errors import StructuralAssumptionError

log = structlog.get_logger(__name__)


def _area_sq_km(geometry: gpd.GeoSeries) -> pd.Series:
    """Planar area in km², measured in an equal-area CRS if the input is lon/lat."""
    if not geometry.crs.is_projected:
        geometry = geometry.to_crs(EQUAL_AREA_CRS)
    metres_per_unit = geometry.crs.axis_info[0].unit_conversion_factor
    return geometry.area * (metres_per_unit ** 2) / SQ_METRES_PER_SQ_KM


def standardize_region_attributes(
    gdf: gpd.GeoDataFrame,
    name_column: str,
    area_column: str | None = None,
) -> gpd.GeoDataFrame:
    """
    Reduce the boundary layer to region name, area and geometry.

    Args:
        gdf:         Boundary layer as read from the shapefile.
        name_column: Attribute holding the region name.
        area_column: Attribute holding area in km²; when None the area is
                     computed from the geometry in its native CRS.

    Returns:
        GeoDataFrame with columns region, area_sq_km, geometry and a
        0-based RangeIndex (the feature id).

    Raises:
        StructuralAssumptionError: missing CRS or columns, empty geometry,
        or a region name used by more than one feature.
    """
    if gdf.crs is None:
        raise StructuralAssumptionError("Boundary layer has no coordinate reference system")
    for col in (name_column, area_column):
        if col is not None and col not in gdf.columns:
            raise StructuralAssumptionError(
                f"Boundary layer has no column {col!r}; columns: {list(gdf.columns)}"
            )

    gdf = gdf.reset_index(drop=True)
    empty = gdf.geometry.isna() | gdf.geometry.is_empty
    if empty.any():
        raise StructuralAssumptionError(
            f"Empty geometry for regions: {gdf.loc[empty, name_column].tolist()}"
        )

    names = gdf[name_column].astype(str).str.strip()
    duplicated = names[names.duplicated()].unique().tolist()
    if duplicated:
        raise StructuralAssumptionError(f"Region names used by several features: {duplicated}")

    if area_column is not None:
        area = pd.to_numeric(gdf[area_column], errors="coerce")
    else:
        area = _area_sq_km(gdf.geometry)

    out = gpd.GeoDataFrame(
        {REGION_COLUMN: names, AREA_COLUMN: area.astype(float)},
        geometry=gdf.geometry,
        crs=gdf.crs,
    )
    log.info(
        "boundaries_standardized",
        features=len(out),
        crs=str(out.crs),
        area_source=area_column or "geometry",
    )
    return out


def simplify_boundaries(gdf: gpd.GeoDataFrame, tolerance: float) -> gpd.GeoDataFrame:
    """Simplify boundaries (tolerance in native CRS units), preserving topology."""
    out = gdf.copy()
    out.geometry = gdf.geometry.simplify(tolerance, preserve_topology=True)
    log.info("boundaries_simplified", tolerance=tolerance)
    return out


def reproject(gdf: gpd.GeoDataFrame, target_crs: str) -> gpd.GeoDataFrame:
    """Transform coordinates to *target_crs*; attribute columns are untouched."""
    if gdf.crs is None:
        raise StructuralAssumptionError("Cannot reproject a layer without a CRS")
    out = gdf.to_crs(target_crs)
    log.info("reprojected", source_crs=str(gdf.crs), target_crs=str(out.crs), features=len(out))
    return out


def _polygons(geom: BaseGeometry, feature_id: int) -> list[Polygon]:
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    raise StructuralAssumptionError(
        f"Feature {feature_id} has unsupported geometry type {geom.geom_type}"
    )


def flatten_geometry(gdf: gpd.GeoDataFrame) -> pl.DataFrame:
    """
    Flatten polygons into one row per boundary vertex.

    Every ring (exterior or hole) of every polygon part becomes a `piece`
    numbered from 1 within its feature; `group` is "<id>.<piece>". `order`
    numbers the vertices of a feature from 1 in boundary order, so sorting
    by (id, order) restores each ring exactly. Closing vertices are kept.

    Args:
        gdf: Polygon/MultiPolygon layer with a 0-based RangeIndex.

    Returns:
        polars DataFrame: id, piece, group, order, hole, long, lat.

    Raises:
        StructuralAssumptionError: empty or non-polygon geometry.
    """
    ids: list[np.ndarray] = []
    pieces: list[np.ndarray] = []
    holes: list[np.ndarray] = []
    orders: list[np.ndarray] = []
    coords: list[np.ndarray] = []

    for feature_id, geom in enumerate(gdf.geometry):
        if geom is None or geom.is_empty:
            raise StructuralAssumptionError(f"Feature {feature_id} has empty geometry")
        piece = 0
        order = 0
        for polygon in _polygons(geom, feature_id):
            rings = [(polygon.exterior, False), *((r, True) for r in polygon.interiors)]
            for ring, is_hole in rings:
                xy = np.asarray(ring.coords)[:, :2]
                n = len(xy)
                piece += 1
                ids.append(np.full(n, feature_id, dtype=np.int64))
                pieces.append(np.full(n, piece, dtype=np.int64))
                holes.append(np.full(n, is_hole, dtype=bool))
                orders.append(np.arange(order + 1, order + n + 1, dtype=np.int64))
                coords.append(xy)
                order += n

    if not coords:
        return pl.DataFrame(
            schema={
                "id": pl.Int64,
                "piece": pl.Int64,
                "group": pl.String,
                "order": pl.Int64,
                "hole": pl.Boolean,
                "long": pl.Float64,
                "lat": pl.Float64,
            }
        )

    xy = np.concatenate(coords)
    flat = pl.DataFrame(
        {
            "id": np.concatenate(ids),
            "piece": np.concatenate(pieces),
            "order": np.concatenate(orders),
            "hole": np.concatenate(holes),
            "long": xy[:, 0],
            "lat": xy[:, 1],
        }
    ).with_columns(
        pl.format("{}.{}", pl.col("id"), pl.col("piece")).alias("group")
    ).select(list(FLAT_GEOMETRY_COLUMNS))

    log.info("geometry_flattened", features=len(gdf), vertices=flat.height)
    return flat


def region_attribute_table(gdf: gpd.GeoDataFrame) -> pl.DataFrame:
    """Return (id, region, area_sq_km) for each feature, id = feature position."""
    return pl.DataFrame(
        {
            "id": np.arange(len(gdf), dtype=np.int64),
            REGION_COLUMN: gdf[REGION_COLUMN].astype(str).tolist(),
            AREA_COLUMN: gdf[AREA_COLUMN].astype(float).to_numpy(),
        },
        schema={"id": pl.Int64, REGION_COLUMN: pl.String, AREA_COLUMN: pl.Float64},
    ).with_columns(pl.col(AREA_COLUMN).fill_nan(None))
