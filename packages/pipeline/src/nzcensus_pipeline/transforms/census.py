"""
transforms/census.py — Positional cleaning of the census age/sex sheet.

The raw sheet is a stack of fixed-size region blocks:

    row 0       region label            ("Northland Region")
    rows 1..    age-group rows          ("0-4 Years", "5-9 Years", ...)
    one row     subtotal                ("Total")
    remaining   spacers / repeats       (blank, region label again)

The cleaning steps below turn that into one row per (region, age_group)
with four numeric count columns. Each step is a plain function so tests can
exercise them in isolation; clean_census_sheet() chains them in order.

Usage:
    from nzcensus_pipeline.transforms.census import clean_census_sheet

    tidy = clean_census_sheet(raw, block_size=23, row_start=8, row_count=391)
    # columns: region, age_group, male_2006, female_2006, male_2013, female_2013
"""

from __future__ import annotations

import polars as pl
import structlog

from nzcensus_shared.constants import (
    AGE_GROUP_COLUMN,
    CENSUS_COLUMNS,
    CENSUS_RAW_WIDTH,
    COUNT_COLUMNS,
    DROPPED_COLUMN_POSITIONS,
    PUNCTUATION_REPLACEMENT,
    REGION_COLUMN,
    TIDY_COLUMNS,
    TOTAL_MARKER,
)
from nzcensus_shared.errors import StructuralAssumptionError, TotalsMismatchError
from nzcensus_shared.models import TotalsDiscrepancy

log = structlog.get_logger(__name__)

# ASCII punctuation and symbols plus Unicode punctuation (en-dash, curly quotes)
_PUNCTUATION_PATTERN = r"[[:punct:]\p{P}]"


def select_census_columns(raw: pl.DataFrame) -> pl.DataFrame:
    """
    Drop the redundant total columns by position and apply the fixed schema.

    Every cell is cast to text so that later steps see the sheet exactly as
    labelled, whatever types the spreadsheet reader inferred.

    Raises:
        StructuralAssumptionError: sheet width differs from the expected layout.
    """
    if raw.width != CENSUS_RAW_WIDTH:
        raise StructuralAssumptionError(
            f"Census sheet has {raw.width} columns, expected {CENSUS_RAW_WIDTH}"
        )
    keep = [c for i, c in enumerate(raw.columns) if i not in DROPPED_COLUMN_POSITIONS]
    df = raw.select(keep)
    df = df.rename(dict(zip(df.columns, CENSUS_COLUMNS)))
    return df.with_columns(pl.all().cast(pl.String))


def normalize_age_labels(df: pl.DataFrame) -> pl.DataFrame:
    """Replace every punctuation character in the label column with "to"."""
    return df.with_columns(
        pl.col(AGE_GROUP_COLUMN)
        .str.strip_chars()
        .str.replace_all(_PUNCTUATION_PATTERN, PUNCTUATION_REPLACEMENT)
        .alias(AGE_GROUP_COLUMN)
    )


def slice_data_rows(df: pl.DataFrame, row_start: int, row_count: int) -> pl.DataFrame:
    """
    Keep rows [row_start, row_start + row_count) and discard the boilerplate.

    Raises:
        StructuralAssumptionError: the sheet is too short for the range.
    """
    if row_start < 0 or row_count <= 0:
        raise StructuralAssumptionError(
            f"Invalid data row range: start={row_start}, count={row_count}"
        )
    if df.height < row_start + row_count:
        raise StructuralAssumptionError(
            f"Census sheet has {df.height} rows; data range needs "
            f"{row_start + row_count} (start={row_start}, count={row_count})"
        )
    sliced = df.slice(row_start, row_count)
    log.debug("sheet_sliced", row_start=row_start, rows=sliced.height)
    return sliced


def check_block_alignment(height: int, block_size: int) -> int:
    """
    Return the number of region blocks in *height* rows.

    Raises:
        StructuralAssumptionError: height is not a whole number of blocks.
    """
    if block_size <= 0:
        raise StructuralAssumptionError(f"Block size must be positive, got {block_size}")
    blocks, remainder = divmod(height, block_size)
    if remainder or blocks == 0:
        raise StructuralAssumptionError(
            f"{height} data rows is not a whole number of {block_size}-row region blocks "
            f"({remainder} rows left over)"
        )
    return blocks


def extract_region_names(df: pl.DataFrame, block_size: int) -> list[str]:
    """
    Read the region label at rows 0, N, 2N, ... (N = block_size).

    Raises:
        StructuralAssumptionError: misaligned blocks or a blank anchor row.
    """
    blocks = check_block_alignment(df.height, block_size)
    anchors = df.get_column(AGE_GROUP_COLUMN).gather_every(block_size).to_list()
    blank = [i * block_size for i, name in enumerate(anchors) if not name or not name.strip()]
    if blank:
        raise StructuralAssumptionError(
            f"Region anchor rows {blank} are blank; block layout does not match the sheet"
        )
    log.debug("regions_extracted", regions=blocks)
    return [name.strip() for name in anchors]


def broadcast_region_names(
    df: pl.DataFrame,
    regions: list[str],
    block_size: int,
) -> pl.DataFrame:
    """Add a region column holding each block's name on every row of the block."""
    if len(regions) * block_size != df.height:
        raise StructuralAssumptionError(
            f"{len(regions)} regions x {block_size} rows does not cover {df.height} rows"
        )
    region_values = [name for name in regions for _ in range(block_size)]
    return df.with_columns(
        pl.Series(REGION_COLUMN, region_values, dtype=pl.String)
    ).select([REGION_COLUMN, *CENSUS_COLUMNS])


def drop_total_rows(df: pl.DataFrame) -> pl.DataFrame:
    """Drop subtotal rows: any label containing "Total"."""
    is_total = (
        pl.col(AGE_GROUP_COLUMN)
        .str.contains(TOTAL_MARKER, literal=True)
        .fill_null(False)
    )
    return df.filter(~is_total)


def drop_region_label_rows(df: pl.DataFrame, regions: list[str]) -> pl.DataFrame:
    """Drop rows labelled with a region name, and blank spacer rows."""
    label = pl.col(AGE_GROUP_COLUMN)
    return df.filter(
        label.is_not_null()
        & (label.str.strip_chars() != "")
        & ~label.is_in(regions)
    )


def cast_count_columns(df: pl.DataFrame) -> pl.DataFrame:
    """Cast the count columns to Float64; non-numeric text becomes null."""
    return df.with_columns(
        [
            pl.col(c).cast(pl.String).str.strip_chars().cast(pl.Float64, strict=False)
            for c in COUNT_COLUMNS
        ]
    )


# ---------------------------------------------------------------------------
# Composed steps
# ---------------------------------------------------------------------------


def prepare_region_blocks(
    raw: pl.DataFrame,
    *,
    block_size: int,
    row_start: int,
    row_count: int,
) -> tuple[pl.DataFrame, list[str]]:
    """
    Run the positional steps: columns, labels, slice, anchors, broadcast.

    Returns:
        (blocks, regions) — every sliced row with its region name, still
        including Total and spacer rows, plus the ordered region names.
    """
    df = select_census_columns(raw)
    df = normalize_age_labels(df)
    df = slice_data_rows(df, row_start, row_count)
    regions = extract_region_names(df, block_size)
    blocks = broadcast_region_names(df, regions, block_size)
    return blocks, regions


def tidy_from_blocks(blocks: pl.DataFrame, regions: list[str]) -> pl.DataFrame:
    """Filter Total/region/spacer rows and parse counts."""
    df = drop_total_rows(blocks)
    df = drop_region_label_rows(df, regions)
    df = cast_count_columns(df)
    return df.select(list(TIDY_COLUMNS))


def clean_census_sheet(
    raw: pl.DataFrame,
    *,
    block_size: int,
    row_start: int,
    row_count: int,
) -> pl.DataFrame:
    """
    Turn the raw census sheet into the tidy (region, age_group) table.

    Args:
        raw:        Sheet as read, no header row, 7 positional columns.
        block_size: Rows per region block.
        row_start:  First data row (0-based).
        row_count:  Number of data rows; must be a multiple of block_size.

    Returns:
        DataFrame with columns region, age_group, male_2006, female_2006,
        male_2013, female_2013.

    Raises:
        StructuralAssumptionError: the sheet does not have the expected layout.
    """
    blocks, regions = prepare_region_blocks(
        raw, block_size=block_size, row_start=row_start, row_count=row_count
    )
    tidy = tidy_from_blocks(blocks, regions)
    log.info(
        "census_cleaned",
        regions=len(regions),
        rows=tidy.height,
        null_counts=int(sum(tidy[c].null_count() for c in COUNT_COLUMNS)),
    )
    return tidy


# ---------------------------------------------------------------------------
# Totals check
# ---------------------------------------------------------------------------


def extract_region_totals(blocks: pl.DataFrame) -> pl.DataFrame:
    """
    Return the first Total row of each region block with parsed counts.

    Args:
        blocks: Output of prepare_region_blocks() (Total rows still present).

    Returns:
        DataFrame: region + the four count columns.
    """
    totals = blocks.filter(
        pl.col(AGE_GROUP_COLUMN).str.contains(TOTAL_MARKER, literal=True).fill_null(False)
    )
    totals = cast_count_columns(totals)
    return (
        totals.group_by(REGION_COLUMN, maintain_order=True)
        .first()
        .select([REGION_COLUMN, *COUNT_COLUMNS])
    )


def verify_region_totals(
    tidy: pl.DataFrame,
    totals: pl.DataFrame,
    *,
    strict: bool = False,
    tolerance: float = 0.0,
) -> list[TotalsDiscrepancy]:
    """
    Compare per-region age-group sums against the sheet's Total rows.

    Census counts are randomly rounded, so small differences are expected
    in real data; they are logged rather than raised unless *strict*.

    Args:
        tidy:      Output of clean_census_sheet().
        totals:    Output of extract_region_totals().
        strict:    Raise TotalsMismatchError on any discrepancy.
        tolerance: Absolute difference ignored per column.

    Returns:
        List of discrepancies (empty when everything reconciles).
    """
    sums = tidy.group_by(REGION_COLUMN, maintain_order=True).agg(
        [pl.col(c).sum() for c in COUNT_COLUMNS]
    )
    joined = totals.join(sums, on=REGION_COLUMN, how="left", suffix="_sum", maintain_order="left")

    discrepancies: list[TotalsDiscrepancy] = []
    for row in joined.iter_rows(named=True):
        for col in COUNT_COLUMNS:
            reported = row[col]
            summed = row[f"{col}_sum"]
            if reported is None:
                continue
            summed = summed or 0.0
            if abs(summed - reported) > tolerance:
                discrepancies.append(
                    TotalsDiscrepancy(
                        region=row[REGION_COLUMN],
                        column=col,
                        reported_total=reported,
                        age_group_sum=summed,
                    )
                )

    if discrepancies:
        log.warning(
            "totals_mismatch",
            count=len(discrepancies),
            regions=sorted({d.region for d in discrepancies}),
        )
        if strict:
            by_region: dict[str, dict[str, float]] = {}
            for d in discrepancies:
                by_region.setdefault(d.region, {})[d.column] = d.difference
            raise TotalsMismatchError(by_region)
    else:
        log.info("totals_verified", regions=totals.height)
    return discrepancies
