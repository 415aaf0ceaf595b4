"""
sources/boundaries.py — Regional council boundary shapefile source.

Downloads the zipped digital boundary bundle, extracts the regional
council shapefile (with its .shx/.dbf/.prj sidecars) into a temporary
directory, loads it into memory, and prepares it for the join:

  - keep region name + area (km², from the native projected CRS unless an
    area attribute is configured)
  - optionally simplify boundaries
  - reproject to settings.target_crs (EPSG:4326)

Usage:
    source = RegionBoundarySource()
    gdf = await source.run()
    # columns: region, area_sq_km, geometry   (CRS EPSG:4326)
"""

from __future__ import annotations

import tempfile
from typing import Any

import geopandas as gpd

from nzcensus_shared.config import settings
from nzcensus_shared.errors import AcquisitionError
from nzcensus_pipeline.sources.base import BaseSource
from nzcensus_pipeline.sources.download import downloaded, extract_archive_member
from nzcensus_pipeline.transforms.spatial import (
    reproject,
    simplify_boundaries,
    standardize_region_attributes,
)


class RegionBoundarySource(BaseSource[gpd.GeoDataFrame, gpd.GeoDataFrame]):
    """Downloads and prepares regional council boundaries."""

    name = "StatsNZBoundaries"

    def __init__(
        self,
        *,
        url: str | None = None,
        entry_name: str | None = None,
        name_column: str | None = None,
        area_column: str | None = None,
        target_crs: str | None = None,
        simplify_tolerance: float | None = None,
    ) -> None:
        super().__init__()
        self._url = url or settings.boundaries_archive_url
        self._entry_name = entry_name or settings.boundaries_entry_name
        self._name_column = name_column or settings.boundaries_name_column
        self._area_column = area_column or settings.boundaries_area_column
        self._target_crs = target_crs or settings.target_crs
        self._simplify_tolerance = simplify_tolerance or settings.simplify_tolerance

    async def extract(self, **kwargs: Any) -> gpd.GeoDataFrame:
        """Download the archive, extract the shapefile and read it."""
        async with downloaded(self._url, suffix=".zip") as zip_path:
            with tempfile.TemporaryDirectory(prefix="nzcensus_shp_") as tmp:
                shp_path = extract_archive_member(zip_path, self._entry_name, tmp)
                try:
                    gdf = gpd.read_file(shp_path)
                except Exception as exc:
                    raise AcquisitionError(
                        f"Could not read shapefile {self._entry_name}: {exc}", url=self._url
                    ) from exc
        self._log.info("shapefile_read", features=len(gdf), crs=str(gdf.crs))
        return gdf

    def transform(self, raw: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """
        Standardize attributes, optionally simplify, and reproject.

        Raises:
            StructuralAssumptionError: missing CRS/columns, empty or
            duplicated regions.
        """
        gdf = standardize_region_attributes(raw, self._name_column, self._area_column)
        if self._simplify_tolerance:
            gdf = simplify_boundaries(gdf, self._simplify_tolerance)
        return reproject(gdf, self._target_crs)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self._url,
            "entry": self._entry_name,
            "description": "Stats NZ regional council digital boundaries (generalised, clipped)",
            "target_crs": self._target_crs,
        }
