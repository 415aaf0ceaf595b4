"""
models/regions.py — Pydantic models for region matching and totals checks.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RegionMismatch(BaseModel):
    """Region names present in only one of the census and boundary datasets."""

    census_only: list[str] = Field(default_factory=list)
    geometry_only: list[str] = Field(default_factory=list)
    suggestions: dict[str, str] = Field(default_factory=dict)   # census name -> closest geometry name

    @property
    def is_empty(self) -> bool:
        return not self.census_only and not self.geometry_only

    @property
    def missing_count(self) -> int:
        return len(self.census_only) + len(self.geometry_only)

    def to_log_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_defaults=True)


class TotalsDiscrepancy(BaseModel):
    """One count column whose age-group sum differs from the sheet's Total row."""

    region: str
    column: str                      # "male_2006", "female_2013", ...
    reported_total: float
    age_group_sum: float

    @property
    def difference(self) -> float:
        return self.age_group_sum - self.reported_total
