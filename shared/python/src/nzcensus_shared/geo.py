"""
geo.py — Region name alias and matching helpers.

The census workbook and the boundary dataset spell a few region names
differently (apostrophes and hyphens in the census labels are replaced by
"to" during cleaning, e.g. "Hawketos Bay Region"). These helpers apply the
explicit alias table and report any names still left unmatched.

Usage:
    from nzcensus_shared.geo import apply_region_aliases, region_name_mismatch

    df = apply_region_aliases(df, "region", settings.region_aliases)
    mismatch = region_name_mismatch(census_names, geometry_names)
    if not mismatch.is_empty:
        print(mismatch.census_only, mismatch.suggestions)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from difflib import get_close_matches

import polars as pl

from nzcensus_shared.models.regions import RegionMismatch


def apply_region_aliases(
    df: pl.DataFrame,
    region_col: str,
    aliases: Mapping[str, str],
) -> pl.DataFrame:
    """
    Rewrite region names in *region_col* through the alias table.

    Names without an alias are stripped of surrounding whitespace and
    otherwise left unchanged.

    Args:
        df:         Input DataFrame.
        region_col: Column holding region names.
        aliases:    Mapping of census spelling -> boundary spelling.

    Returns:
        DataFrame with *region_col* rewritten.
    """
    col = pl.col(region_col).str.strip_chars()
    if not aliases:
        return df.with_columns(col.alias(region_col))
    return df.with_columns(
        col.replace(dict(aliases)).alias(region_col)
    )


def suggest_aliases(
    unmatched: Iterable[str],
    candidates: Iterable[str],
    *,
    cutoff: float = 0.75,
) -> dict[str, str]:
    """Suggest the closest candidate spelling for each unmatched name."""
    pool = list(candidates)
    suggestions: dict[str, str] = {}
    for name in unmatched:
        matches = get_close_matches(name, pool, n=1, cutoff=cutoff)
        if matches:
            suggestions[name] = matches[0]
    return suggestions


def region_name_mismatch(
    census_names: Iterable[str],
    geometry_names: Iterable[str],
) -> RegionMismatch:
    """
    Compare the census and geometry region name sets.

    Args:
        census_names:   Region names from the tidy census table (aliases applied).
        geometry_names: Region names from the boundary dataset.

    Returns:
        RegionMismatch with the names present on one side only and
        difflib suggestions for census names that have a near miss.
    """
    census = {n for n in census_names if n is not None}
    geometry = {n for n in geometry_names if n is not None}
    census_only = census - geometry
    geometry_only = geometry - census
    return RegionMismatch(
        census_only=sorted(census_only),
        geometry_only=sorted(geometry_only),
        suggestions=suggest_aliases(sorted(census_only), sorted(geometry_only)),
    )
