"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  make_raw_sheet()      — builds a header-less 7-column census sheet from blocks
  synthetic_sheet       — 3 regions, 5-row blocks, 2 header + 1 footer rows
  make_sheet            — factory for synthetic sheets with other header/filler rows
  region_polygons       — two NZTM polygons with 4 and 6 boundary vertices
  boundaries_gdf        — GeoDataFrame shaped like the shapefile attribute table
  boundary_zip          — zipped shapefile bundle holding boundaries_gdf
  tidy_df               — tidy census table matching region_polygons
  mock_http             — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import io
import zipfile

import geopandas as gpd
import polars as pl
import pytest
import respx
from shapely.geometry import Polygon

NZTM = "EPSG:2193"

SYNTHETIC_BLOCK_SIZE = 5
SYNTHETIC_HEADER_ROWS = 2

# label, male 2006, female 2006, male 2013, female 2013
SYNTHETIC_REGIONS: dict[str, list[tuple[str, int, int, int, int]]] = {
    "Northland Region": [
        ("0-4 Years", 100, 110, 120, 130),
        ("5-9 Years", 200, 210, 220, 230),
    ],
    "Hawke's Bay Region": [
        ("0-4 Years", 300, 310, 320, 330),
        ("5-9 Years", 400, 410, 420, 430),
    ],
    "Manawatu-Wanganui Region": [
        ("0-4 Years", 500, 510, 520, 530),
        ("5-9 Years", 600, 610, 620, 630),
    ],
}


def _row(label: str | None, counts: tuple[int, int, int, int] | None = None) -> list[str | None]:
    if counts is None:
        return [label, None, None, None, None, None, None]
    m06, f06, m13, f13 = counts
    return [label, str(m06), str(f06), str(m06 + f06), str(m13), str(f13), str(m13 + f13)]


def make_raw_sheet(
    regions: dict[str, list[tuple[str, int, int, int, int]]],
    *,
    header_rows: int = SYNTHETIC_HEADER_ROWS,
    footer_rows: int = 1,
    trailing: str = "repeat",
) -> pl.DataFrame:
    """
    Build a raw sheet: header rows, then per region
    [region label, age rows..., Total, filler], then footer rows.

    trailing="repeat" repeats the region label as the filler row,
    trailing="blank" leaves it empty.
    """
    rows: list[list[str | None]] = []
    for i in range(header_rows):
        rows.append(_row(f"Header line {i}"))
    for region, ages in regions.items():
        rows.append(_row(region))
        for label, *counts in ages:
            rows.append(_row(label, tuple(counts)))
        totals = tuple(sum(a[i] for a in ages) for i in range(1, 5))
        rows.append(_row("Total", totals))
        rows.append(_row(region if trailing == "repeat" else None))
    for i in range(footer_rows):
        rows.append(_row(f"Footnote {i}"))

    columns = [f"column_{i}" for i in range(1, 8)]
    return pl.DataFrame(
        {col: [r[i] for r in rows] for i, col in enumerate(columns)},
        schema={col: pl.String for col in columns},
    )


@pytest.fixture
def synthetic_sheet() -> pl.DataFrame:
    return make_raw_sheet(SYNTHETIC_REGIONS)


@pytest.fixture
def make_sheet():
    """Factory fixture wrapping make_raw_sheet() for layout variations."""
    def _make(**kwargs) -> pl.DataFrame:
        return make_raw_sheet(SYNTHETIC_REGIONS, **kwargs)
    return _make


@pytest.fixture
def synthetic_layout() -> dict[str, int]:
    return {
        "block_size": SYNTHETIC_BLOCK_SIZE,
        "row_start": SYNTHETIC_HEADER_ROWS,
        "row_count": SYNTHETIC_BLOCK_SIZE * len(SYNTHETIC_REGIONS),
    }


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@pytest.fixture
def region_polygons() -> list[Polygon]:
    """Triangle (4 ring vertices, 50 km²) and pentagon (6 ring vertices, 125 km²)."""
    triangle = Polygon(
        [(1_600_000, 5_900_000), (1_610_000, 5_900_000), (1_600_000, 5_910_000)]
    )
    pentagon = Polygon(
        [
            (1_700_000, 5_800_000),
            (1_710_000, 5_800_000),
            (1_715_000, 5_805_000),
            (1_710_000, 5_810_000),
            (1_700_000, 5_810_000),
        ]
    )
    return [triangle, pentagon]


@pytest.fixture
def boundaries_gdf(region_polygons: list[Polygon]) -> gpd.GeoDataFrame:
    """Raw boundary layer in NZTM with the shapefile's name column."""
    return gpd.GeoDataFrame(
        {"REGC2014_N": ["Northland Region", "Hawke's Bay Region"], "REGC2014_V": ["01", "06"]},
        geometry=region_polygons,
        crs=NZTM,
    )


@pytest.fixture
def prepared_gdf(region_polygons: list[Polygon]) -> gpd.GeoDataFrame:
    """Boundaries after standardize_region_attributes (native CRS)."""
    return gpd.GeoDataFrame(
        {
            "region": ["Northland Region", "Hawke's Bay Region"],
            "area_sq_km": [50.0, 125.0],
        },
        geometry=region_polygons,
        crs=NZTM,
    )


@pytest.fixture
def boundary_zip(boundaries_gdf: gpd.GeoDataFrame, tmp_path) -> bytes:
    """Zip bytes laid out like the boundary download: one folder, shapefile + sidecars."""
    shp_dir = tmp_path / "shp"
    shp_dir.mkdir()
    boundaries_gdf.to_file(shp_dir / "REGC2014_GV_Clipped.shp")
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for f in sorted(shp_dir.iterdir()):
            zf.write(f, f"2014 Digital Boundaries Generalised Clipped/{f.name}")
        zf.writestr("2014 Digital Boundaries Generalised Clipped/README.txt", "boundaries")
    return buf.getvalue()


@pytest.fixture
def tidy_df() -> pl.DataFrame:
    """Tidy census table whose regions match prepared_gdf after aliasing."""
    return pl.DataFrame(
        {
            "region": [
                "Northland Region",
                "Northland Region",
                "Hawketos Bay Region",
                "Hawketos Bay Region",
            ],
            "age_group": ["0to4 Years", "5to9 Years", "0to4 Years", "5to9 Years"],
            "male_2006": [100.0, 200.0, 300.0, 400.0],
            "female_2006": [110.0, 210.0, 310.0, 410.0],
            "male_2013": [120.0, 220.0, 320.0, 420.0],
            "female_2013": [130.0, 230.0, 330.0, 430.0],
        }
    )


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, content=b"..."))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
