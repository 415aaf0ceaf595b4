"""
nzcensus_shared.models — Pydantic models shared by the pipeline and the CLI.

  RegionMismatch     — census/boundary region name set difference
  TotalsDiscrepancy  — age-group sum vs reported Total row disagreement
"""

from nzcensus_shared.models.regions import RegionMismatch, TotalsDiscrepancy

__all__ = [
    "RegionMismatch",
    "TotalsDiscrepancy",
]
