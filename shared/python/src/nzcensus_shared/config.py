"""
config.py — pydantic-settings Settings class.

All environment variables for the nzcensus pipeline are declared here.
The pipeline and the CLI import `settings` from this module.

Usage:
    from nzcensus_shared.config import settings
    print(settings.census_workbook_url)

Every field can be overridden with an environment variable of the same
name (case-insensitive) or from a .env file, e.g.:

    CENSUS_ROW_START=9
    ALLOW_UNMATCHED_REGIONS=true
    REGION_ALIASES='{"ManawatutoWanganui Region": "Manawatu-Wanganui Region"}'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nzcensus_shared.constants import (
    CENSUS_BLOCK_SIZE,
    CENSUS_ROW_COUNT,
    CENSUS_ROW_START,
    REGION_ALIASES,
    TARGET_CRS,
    DensityMeasure,
)


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Census workbook
    # -------------------------------------------------------------------------
    census_workbook_url: str = Field(
        default=(
            "http://www.stats.govt.nz/~/media/Statistics/Census/2013%20Census/"
            "data-tables/population-dwelling-tables/regional-council.xls"
        )
    )
    census_sheet_name: str = Field(default="Table 1")
    census_block_size: int = Field(default=CENSUS_BLOCK_SIZE, gt=0)
    census_row_start: int = Field(default=CENSUS_ROW_START, ge=0)
    census_row_count: int = Field(default=CENSUS_ROW_COUNT, gt=0)
    strict_totals: bool = Field(default=False)

    # -------------------------------------------------------------------------
    # Regional boundaries
    # -------------------------------------------------------------------------
    boundaries_archive_url: str = Field(
        default=(
            "http://www3.stats.govt.nz/digitalboundaries/annual/"
            "ESRI_Shapefile_Digital_Boundaries_2014_Generalised_Clipped.zip"
        )
    )
    boundaries_entry_name: str = Field(default="REGC2014_GV_Clipped.shp")
    boundaries_name_column: str = Field(default="REGC2014_N")
    boundaries_area_column: str | None = Field(default=None)
    target_crs: str = Field(default=TARGET_CRS)
    simplify_tolerance: float | None = Field(default=None, gt=0)

    # -------------------------------------------------------------------------
    # Join
    # -------------------------------------------------------------------------
    region_aliases: dict[str, str] = Field(default_factory=lambda: dict(REGION_ALIASES))
    allow_unmatched_regions: bool = Field(default=False)

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    download_timeout: float = Field(default=120.0, gt=0)
    download_attempts: int = Field(default=1, ge=1)

    # -------------------------------------------------------------------------
    # Map output
    # -------------------------------------------------------------------------
    output_html: str = Field(default="nz_population_density.html")
    map_measure: DensityMeasure = Field(default="female_density_2013")
    map_title: str = Field(default="Population density by region (persons per km²)")
    html_self_contained: bool = Field(default=True)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("census_workbook_url", "boundaries_archive_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton: import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
