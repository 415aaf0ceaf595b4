"""
constants.py — shared constants used across the pipeline.

Positional layout of the census workbook, the tidy/derived column schema,
region alias corrections and typed literals are defined here so they stay
in sync between the transforms, the renderer and the settings defaults.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Census workbook layout
# ---------------------------------------------------------------------------

# Rows per region block: region label, 18 age groups, Total row, spacers.
CENSUS_BLOCK_SIZE: Final[int] = 23

# First data row (0-based) of the sheet and the number of data rows that
# follow it. Everything outside [start, start + count) is header/footer text.
CENSUS_ROW_START: Final[int] = 8
CENSUS_ROW_COUNT: Final[int] = 17 * CENSUS_BLOCK_SIZE

# Raw sheet columns:
#   0 label | 1 male 2006 | 2 female 2006 | 3 total 2006
#           | 4 male 2013 | 5 female 2013 | 6 total 2013
CENSUS_RAW_WIDTH: Final[int] = 7
DROPPED_COLUMN_POSITIONS: Final[tuple[int, ...]] = (3, 6)

AGE_GROUP_COLUMN: Final[str] = "age_group"
REGION_COLUMN: Final[str] = "region"

COUNT_COLUMNS: Final[tuple[str, ...]] = (
    "male_2006",
    "female_2006",
    "male_2013",
    "female_2013",
)

# Column names after dropping DROPPED_COLUMN_POSITIONS, in sheet order
CENSUS_COLUMNS: Final[tuple[str, ...]] = (AGE_GROUP_COLUMN, *COUNT_COLUMNS)

TIDY_COLUMNS: Final[tuple[str, ...]] = (REGION_COLUMN, AGE_GROUP_COLUMN, *COUNT_COLUMNS)

# Substring marking subtotal rows inside a region block
TOTAL_MARKER: Final[str] = "Total"

# Replacement for every punctuation character in age-group labels
PUNCTUATION_REPLACEMENT: Final[str] = "to"

# ---------------------------------------------------------------------------
# Region name corrections: census label (after punctuation replacement)
# -> boundary dataset name
# ---------------------------------------------------------------------------
REGION_ALIASES: Final[dict[str, str]] = {
    "Hawketos Bay Region": "Hawke's Bay Region",
    "ManawatutoWanganui Region": "Manawatu-Wanganui Region",
}

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------
TARGET_CRS: Final[str] = "EPSG:4326"

# World Cylindrical Equal Area; used to measure area of lon/lat input
EQUAL_AREA_CRS: Final[str] = "EPSG:6933"

SQ_METRES_PER_SQ_KM: Final[float] = 1_000_000.0

AREA_COLUMN: Final[str] = "area_sq_km"

FLAT_GEOMETRY_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "piece",
    "group",
    "order",
    "hole",
    "long",
    "lat",
)

# Sidecar files that travel with a .shp entry inside an archive
SHAPEFILE_SIDECARS: Final[tuple[str, ...]] = (".shp", ".shx", ".dbf", ".prj", ".cpg")

# ---------------------------------------------------------------------------
# Derived measures
# ---------------------------------------------------------------------------
DENSITY_COLUMNS: Final[dict[str, str]] = {
    "male_density_2006": "male_2006",
    "female_density_2006": "female_2006",
    "male_density_2013": "male_2013",
    "female_density_2013": "female_2013",
}

DensityMeasure = Literal[
    "male_density_2006",
    "female_density_2006",
    "male_density_2013",
    "female_density_2013",
]
