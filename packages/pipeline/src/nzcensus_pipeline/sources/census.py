"""
sources/census.py — Census age/sex workbook source.

Downloads the regional-council census workbook, reads one sheet with no
header row (every cell kept in its sheet position), and cleans it into the
tidy (region, age_group) table.

Workbook layout notes:
  - 7 columns: label, male/female/total 2006, male/female/total 2013
  - Data rows start at settings.census_row_start; above them are title and
    header rows, below them footnotes
  - One 23-row block per region (label row, age groups, Total, spacers)
  - Empty spacer rows are significant: the sheet is read with
    drop_empty_rows=False so row positions never shift

Usage:
    source = CensusWorkbookSource()
    tidy = await source.run()
    # columns: region, age_group, male_2006, female_2006, male_2013, female_2013
    source.discrepancies  # Total-row check results from the last transform
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import urlparse

import polars as pl

from nzcensus_shared.config import settings
from nzcensus_shared.errors import StructuralAssumptionError
from nzcensus_shared.models import TotalsDiscrepancy
from nzcensus_pipeline.sources.base import BaseSource
from nzcensus_pipeline.sources.download import downloaded
from nzcensus_pipeline.transforms.census import (
    extract_region_totals,
    prepare_region_blocks,
    tidy_from_blocks,
    verify_region_totals,
)


def read_census_sheet(path: str | Path, sheet_name: str) -> pl.DataFrame:
    """
    Read *sheet_name* from a workbook without a header row.

    Raises:
        StructuralAssumptionError: the file or sheet cannot be read.
    """
    try:
        return pl.read_excel(
            path,
            sheet_name=sheet_name,
            engine="calamine",
            has_header=False,
            drop_empty_rows=False,
            drop_empty_cols=False,
        )
    except Exception as exc:
        raise StructuralAssumptionError(
            f"Could not read sheet {sheet_name!r} from {Path(path).name}: {exc}"
        ) from exc


class CensusWorkbookSource(BaseSource[pl.DataFrame, pl.DataFrame]):
    """Downloads the census workbook and cleans the age/sex sheet."""

    name = "StatsNZCensus"

    def __init__(
        self,
        *,
        url: str | None = None,
        sheet_name: str | None = None,
        block_size: int | None = None,
        row_start: int | None = None,
        row_count: int | None = None,
        strict_totals: bool | None = None,
    ) -> None:
        super().__init__()
        self._url = url or settings.census_workbook_url
        self._sheet_name = sheet_name or settings.census_sheet_name
        self._block_size = block_size or settings.census_block_size
        self._row_start = row_start if row_start is not None else settings.census_row_start
        self._row_count = row_count or settings.census_row_count
        self._strict_totals = (
            strict_totals if strict_totals is not None else settings.strict_totals
        )
        self.discrepancies: list[TotalsDiscrepancy] = []

    def _suffix(self) -> str:
        return PurePosixPath(urlparse(self._url).path).suffix or ".xls"

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """Download the workbook and return the raw sheet (header-less)."""
        async with downloaded(self._url, suffix=self._suffix()) as path:
            raw = read_census_sheet(path, self._sheet_name)
        self._log.info("sheet_read", sheet=self._sheet_name, rows=raw.height, cols=raw.width)
        return raw

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Clean the raw sheet and check age-group sums against Total rows.

        Output columns:
            region       String   — region label (punctuation replaced)
            age_group    String   — e.g. "0to4 Years"
            male_2006 … female_2013  Float64 — null where not numeric

        Raises:
            StructuralAssumptionError: sheet does not match the block layout.
            TotalsMismatchError: sums disagree and strict_totals is set.
        """
        blocks, regions = prepare_region_blocks(
            raw,
            block_size=self._block_size,
            row_start=self._row_start,
            row_count=self._row_count,
        )
        tidy = tidy_from_blocks(blocks, regions)
        self.discrepancies = verify_region_totals(
            tidy, extract_region_totals(blocks), strict=self._strict_totals
        )
        self._log.debug("transform_stats", regions=len(regions), output_rows=tidy.height)
        return tidy

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "url": self._url,
            "sheet": self._sheet_name,
            "description": "Stats NZ census usually resident population by region, age and sex",
            "block_size": self._block_size,
        }
