"""
nzcensus_shared — shared configuration, constants, errors and models for the
nzcensus population-density pipeline.

Usage:
    from nzcensus_shared.config import settings
    from nzcensus_shared.constants import COUNT_COLUMNS, DENSITY_COLUMNS
    from nzcensus_shared.errors import StructuralAssumptionError
    from nzcensus_shared.geo import apply_region_aliases, region_name_mismatch
    from nzcensus_shared.models import RegionMismatch
"""

__version__ = "0.1.0"
