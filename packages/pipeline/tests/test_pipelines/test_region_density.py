"""
tests/test_pipelines/test_region_density.py — Tests for the density pipeline orchestrator.

Most tests inject sources whose run() is an AsyncMock; the end-to-end test
serves both downloads through respx and patches only the workbook reader.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import polars as pl
import pytest

from nzcensus_shared.errors import JoinMismatchError
from nzcensus_pipeline.pipelines.region_density import (
    PipelineResult,
    check_regions,
    derive_density_table,
    region_counts,
    run,
)
from nzcensus_pipeline.sources.boundaries import RegionBoundarySource
from nzcensus_pipeline.sources.census import CensusWorkbookSource

CENSUS_URL = "https://example.test/census/regional-council.xls"
BOUNDARY_URL = "https://example.test/boundaries/regions.zip"


def _mock_census(tidy: pl.DataFrame) -> MagicMock:
    source = MagicMock()
    source.run = AsyncMock(return_value=tidy)
    source.discrepancies = []
    return source


def _mock_boundaries(gdf) -> MagicMock:
    source = MagicMock()
    source.run = AsyncMock(return_value=gdf)
    return source


def _with_waikato(tidy: pl.DataFrame) -> pl.DataFrame:
    extra = tidy.head(1).with_columns(pl.lit("Waikato Region").alias("region"))
    return pl.concat([tidy, extra])


@pytest.fixture
def boundaries_4326(prepared_gdf):
    return prepared_gdf.to_crs("EPSG:4326")


class TestRegionCounts:
    def test_aliases_applied_after_aggregation(self, tidy_df):
        counts = region_counts(tidy_df, {"Hawketos Bay Region": "Hawke's Bay Region"})
        assert counts["region"].to_list() == ["Northland Region", "Hawke's Bay Region"]
        assert counts["male_2013"].to_list() == [340.0, 740.0]


class TestDeriveDensityTable:
    def test_vertex_table_with_density(self, tidy_df, boundaries_4326):
        dense, mismatch = derive_density_table(
            tidy_df, boundaries_4326, aliases={"Hawketos Bay Region": "Hawke's Bay Region"}
        )
        assert mismatch.is_empty
        assert dense.height == 10
        for col in ("male_density_2006", "female_density_2006", "male_density_2013", "female_density_2013"):
            assert dense[col].null_count() == 0

    def test_without_aliases_raises(self, tidy_df, boundaries_4326):
        with pytest.raises(JoinMismatchError):
            derive_density_table(tidy_df, boundaries_4326, aliases={})


class TestRun:
    @pytest.mark.asyncio
    async def test_writes_map(self, tidy_df, boundaries_4326, tmp_path):
        result = await run(
            output_path=tmp_path / "map.html",
            measure="male_density_2013",
            census_source=_mock_census(tidy_df),
            boundary_source=_mock_boundaries(boundaries_4326),
        )
        assert isinstance(result, PipelineResult)
        assert result.output_path.exists()
        assert result.measure == "male_density_2013"
        assert result.regions == 2
        assert result.vertices == 10
        assert result.tidy_rows == 4
        assert result.unmatched_regions == []

    @pytest.mark.asyncio
    async def test_unmatched_region_stops_run(self, tidy_df, boundaries_4326, tmp_path):
        out = tmp_path / "map.html"
        with pytest.raises(JoinMismatchError) as exc_info:
            await run(
                output_path=out,
                allow_unmatched=False,
                census_source=_mock_census(_with_waikato(tidy_df)),
                boundary_source=_mock_boundaries(boundaries_4326),
            )
        assert exc_info.value.census_only == ["Waikato Region"]
        assert not out.exists()

    @pytest.mark.asyncio
    async def test_allow_unmatched_reports_regions(self, tidy_df, boundaries_4326, tmp_path):
        result = await run(
            output_path=tmp_path / "map.html",
            allow_unmatched=True,
            census_source=_mock_census(_with_waikato(tidy_df)),
            boundary_source=_mock_boundaries(boundaries_4326),
        )
        assert result.output_path.exists()
        assert result.vertices == 10
        assert result.unmatched_regions == ["Waikato Region"]

    @pytest.mark.asyncio
    async def test_end_to_end_over_http(
        self, mock_http, synthetic_sheet, synthetic_layout, boundary_zip, tmp_path
    ):
        mock_http.get(CENSUS_URL).mock(return_value=httpx.Response(200, content=b"xls"))
        mock_http.get(BOUNDARY_URL).mock(return_value=httpx.Response(200, content=boundary_zip))
        census = CensusWorkbookSource(url=CENSUS_URL, **synthetic_layout)
        boundaries = RegionBoundarySource(url=BOUNDARY_URL)

        with patch(
            "nzcensus_pipeline.sources.census.read_census_sheet", return_value=synthetic_sheet
        ):
            result = await run(
                output_path=tmp_path / "nz.html",
                allow_unmatched=True,
                census_source=census,
                boundary_source=boundaries,
            )

        assert result.output_path.exists()
        assert result.regions == 2
        assert result.tidy_rows == 6
        # Manawatu-Wanganui has census counts but no polygon in the fixture
        assert result.mismatch.census_only == ["Manawatu-Wanganui Region"]
        assert result.mismatch.geometry_only == []
        assert result.totals_discrepancies == []


class TestCheckRegions:
    @pytest.mark.asyncio
    async def test_no_mismatch(self, tidy_df, boundaries_4326):
        mismatch = await check_regions(
            census_source=_mock_census(tidy_df),
            boundary_source=_mock_boundaries(boundaries_4326),
        )
        assert mismatch.is_empty

    @pytest.mark.asyncio
    async def test_reports_without_raising(self, tidy_df, boundaries_4326):
        mismatch = await check_regions(
            census_source=_mock_census(_with_waikato(tidy_df)),
            boundary_source=_mock_boundaries(boundaries_4326.iloc[[0]]),
        )
        assert mismatch.census_only == ["Hawke's Bay Region", "Waikato Region"]
        assert mismatch.geometry_only == []
