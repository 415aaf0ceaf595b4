"""
nzcensus_pipeline — census population-density map pipeline.

Architecture:
  sources/     — census workbook and boundary shapefile adapters (download + read)
  transforms/  — positional sheet cleaning, boundary preparation, join and density
  render/      — plotly choropleth written as HTML
  pipelines/   — orchestrator wiring sources -> transforms -> render
  utils/       — structlog configuration, optional retry decorator

Quick start:
    from nzcensus_pipeline.pipelines.region_density import run
    import asyncio
    result = asyncio.run(run(measure="female_density_2013"))

CLI:
    nzcensus run
    nzcensus check-regions

Shared code from nzcensus_shared:
    from nzcensus_shared.config import settings
    from nzcensus_shared.constants import COUNT_COLUMNS, DENSITY_COLUMNS
    from nzcensus_shared.errors import PipelineError
    from nzcensus_shared.geo import apply_region_aliases
"""

__version__ = "0.1.0"
