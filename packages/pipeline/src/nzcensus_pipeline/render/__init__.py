"""
nzcensus_pipeline.render — HTML map output.

  render_choropleth — write the density choropleth as an interactive HTML file
"""

from nzcensus_pipeline.render.choropleth import build_figure, render_choropleth

__all__ = ["build_figure", "render_choropleth"]
