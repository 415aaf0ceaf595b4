"""
tests/test_sources/test_census_source.py — Unit tests for CensusWorkbookSource.

HTTP is mocked via respx and the workbook reader is patched to return a
synthetic sheet, so no spreadsheet file is needed.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import httpx
import polars as pl
import pytest
from structlog.testing import capture_logs

from nzcensus_shared.errors import (
    AcquisitionError,
    StructuralAssumptionError,
    TotalsMismatchError,
)
from nzcensus_pipeline.sources.census import CensusWorkbookSource, read_census_sheet

URL = "https://example.test/census/regional-council.xls"


def _source(layout: dict[str, int], **kwargs) -> CensusWorkbookSource:
    return CensusWorkbookSource(url=URL, **layout, **kwargs)


def _tamper_total(sheet: pl.DataFrame, row: int, value: str) -> pl.DataFrame:
    return sheet.with_columns(
        pl.when(pl.int_range(pl.len()) == row)
        .then(pl.lit(value))
        .otherwise(pl.col("column_2"))
        .alias("column_2")
    )


class TestCensusWorkbookSource:
    @pytest.mark.asyncio
    async def test_run_returns_tidy_table(self, mock_http, synthetic_sheet, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(200, content=b"xls bytes"))
        source = _source(synthetic_layout)
        with patch(
            "nzcensus_pipeline.sources.census.read_census_sheet", return_value=synthetic_sheet
        ) as reader:
            tidy = await source.run()

        assert tidy.height == 6
        assert tidy["region"].unique(maintain_order=True).to_list() == [
            "Northland Region",
            "Hawketos Bay Region",
            "ManawatutoWanganui Region",
        ]
        assert source.discrepancies == []

        path, sheet_name = reader.call_args.args
        assert Path(path).suffix == ".xls"
        assert sheet_name == "Table 1"
        assert not Path(path).exists()

    @pytest.mark.asyncio
    async def test_totals_mismatch_recorded(self, mock_http, synthetic_sheet, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(200, content=b"xls bytes"))
        # Northland's Total row sits at sheet row 5 (2 header rows + label + 2 ages)
        sheet = _tamper_total(synthetic_sheet, 5, "999")
        source = _source(synthetic_layout, strict_totals=False)
        with patch("nzcensus_pipeline.sources.census.read_census_sheet", return_value=sheet):
            tidy = await source.run()

        assert tidy.height == 6
        assert len(source.discrepancies) == 1
        assert source.discrepancies[0].region == "Northland Region"
        assert source.discrepancies[0].column == "male_2006"
        assert source.discrepancies[0].reported_total == 999.0

    @pytest.mark.asyncio
    async def test_strict_totals_raise(self, mock_http, synthetic_sheet, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(200, content=b"xls bytes"))
        sheet = _tamper_total(synthetic_sheet, 5, "999")
        source = _source(synthetic_layout, strict_totals=True)
        with patch("nzcensus_pipeline.sources.census.read_census_sheet", return_value=sheet):
            with pytest.raises(TotalsMismatchError):
                await source.run()

    @pytest.mark.asyncio
    async def test_layout_mismatch_raises(self, mock_http, synthetic_sheet, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(200, content=b"xls bytes"))
        source = _source({**synthetic_layout, "block_size": 4})
        with patch(
            "nzcensus_pipeline.sources.census.read_census_sheet", return_value=synthetic_sheet
        ):
            with pytest.raises(StructuralAssumptionError):
                await source.run()

    @pytest.mark.asyncio
    async def test_download_failure_raises(self, mock_http, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(500))
        with pytest.raises(AcquisitionError, match="HTTP 500"):
            await _source(synthetic_layout).run()

    @pytest.mark.asyncio
    async def test_run_logs_metadata_on_start(self, mock_http, synthetic_sheet, synthetic_layout):
        mock_http.get(URL).mock(return_value=httpx.Response(200, content=b"xls bytes"))
        with patch(
            "nzcensus_pipeline.sources.census.read_census_sheet", return_value=synthetic_sheet
        ):
            with capture_logs() as logs:
                await _source(synthetic_layout).run()

        start = next(e for e in logs if e["event"] == "source_run_start")
        assert start["url"] == URL
        assert start["sheet"] == "Table 1"
        assert start["block_size"] == 5

    @pytest.mark.asyncio
    async def test_metadata(self, synthetic_layout):
        meta = await _source(synthetic_layout).get_metadata()
        assert meta["source_name"] == "StatsNZCensus"
        assert meta["url"] == URL
        assert meta["block_size"] == 5

    def test_defaults_from_settings(self):
        source = CensusWorkbookSource()
        assert source._block_size == 23
        assert source._row_start == 8
        assert source._row_count == 17 * 23


class TestReadCensusSheet:
    def test_unreadable_file_raises(self, tmp_path):
        bogus = tmp_path / "regional-council.xls"
        bogus.write_bytes(b"<html>not a workbook</html>")
        with pytest.raises(StructuralAssumptionError, match="Table 1"):
            read_census_sheet(bogus, "Table 1")
