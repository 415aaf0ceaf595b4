"""
nzcensus_pipeline.sources — data source adapters.

Each source wraps one remote dataset:
  CensusWorkbookSource — Stats NZ census age/sex workbook (one sheet)
  RegionBoundarySource — Stats NZ regional council boundary shapefile (zip)
"""

from nzcensus_pipeline.sources.boundaries import RegionBoundarySource
from nzcensus_pipeline.sources.census import CensusWorkbookSource

__all__ = [
    "CensusWorkbookSource",
    "RegionBoundarySource",
]
