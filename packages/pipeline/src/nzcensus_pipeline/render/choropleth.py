"""
render/choropleth.py — Interactive choropleth from the flattened vertex table.

Each region is drawn as one filled plotly scatter trace built from its
vertex lists (pieces separated by gaps), coloured by a density measure on
a continuous colourscale. Holes are painted with the background colour and
regions without a value are grey.

Usage:
    from nzcensus_pipeline.render.choropleth import render_choropleth

    path = render_choropleth(dense, "female_density_2013", "map.html",
                             title="Female population density, 2013")
"""

from __future__ import annotations

import math
from pathlib import Path

import plotly.graph_objects as go
import polars as pl
import structlog
from plotly.colors import sample_colorscale, sequential

from nzcensus_shared.constants import DENSITY_COLUMNS, REGION_COLUMN, DensityMeasure

log = structlog.get_logger(__name__)

COLORSCALE = "YlOrRd"
COLORSCALE_COLORS = sequential.YlOrRd
BACKGROUND = "white"
MISSING_COLOR = "lightgrey"


def _label(measure: str) -> str:
    sex, _, year = measure.split("_")
    return f"{sex.capitalize()} density {year} (per km²)"


def _value_range(values: list[float | None]) -> tuple[float, float]:
    finite = [v for v in values if v is not None and math.isfinite(v)]
    if not finite:
        return 0.0, 1.0
    return min(finite), max(finite)


def _ring_coords(part: pl.DataFrame) -> tuple[list, list, list, list]:
    """Outer and hole coordinates for one feature, pieces separated by None."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    hole_xs: list[float | None] = []
    hole_ys: list[float | None] = []
    for piece in part.partition_by("piece", maintain_order=True):
        tx, ty = (hole_xs, hole_ys) if piece.get_column("hole")[0] else (xs, ys)
        tx.extend(piece.get_column("long").to_list())
        ty.extend(piece.get_column("lat").to_list())
        tx.append(None)
        ty.append(None)
    return xs, ys, hole_xs, hole_ys


def build_figure(df: pl.DataFrame, measure: DensityMeasure, *, title: str) -> go.Figure:
    """
    Build the choropleth figure.

    Args:
        df:      Flattened vertex table with region, id, piece, order, hole,
                 long, lat and the density columns.
        measure: One of the density column names.
        title:   Figure title.

    Returns:
        plotly Figure (one trace per region, one hole trace, one colourbar trace).
    """
    if measure not in DENSITY_COLUMNS:
        raise ValueError(f"Unknown measure {measure!r}; expected one of {list(DENSITY_COLUMNS)}")

    ordered = df.sort(["id", "order"])
    per_region = ordered.group_by("id", maintain_order=True).agg(
        pl.col(REGION_COLUMN).first(), pl.col(measure).first()
    )
    vmin, vmax = _value_range(per_region.get_column(measure).to_list())
    span = vmax - vmin

    fig = go.Figure()
    hole_xs: list[float | None] = []
    hole_ys: list[float | None] = []
    for part in ordered.partition_by("id", maintain_order=True):
        region = part.get_column(REGION_COLUMN)[0]
        value = part.get_column(measure)[0]
        xs, ys, hxs, hys = _ring_coords(part)
        hole_xs.extend(hxs)
        hole_ys.extend(hys)

        if value is None or not math.isfinite(value):
            color = MISSING_COLOR
            text = f"{region}<br>no data"
        else:
            t = (value - vmin) / span if span else 0.5
            color = sample_colorscale(COLORSCALE_COLORS, [t])[0]
            text = f"{region}<br>{_label(measure)}: {value:,.2f}"

        fig.add_trace(
            go.Scatter(
                x=xs,
                y=ys,
                mode="lines",
                fill="toself",
                fillcolor=color,
                line={"color": "white", "width": 0.5},
                hoveron="fills",
                hoverinfo="text",
                text=text,
                name=str(region),
                showlegend=False,
            )
        )

    if hole_xs:
        fig.add_trace(
            go.Scatter(
                x=hole_xs,
                y=hole_ys,
                mode="lines",
                fill="toself",
                fillcolor=BACKGROUND,
                line={"color": "white", "width": 0.5},
                hoverinfo="skip",
                showlegend=False,
                name="holes",
            )
        )

    # Invisible marker trace carrying the colourbar
    fig.add_trace(
        go.Scatter(
            x=[None],
            y=[None],
            mode="markers",
            marker={
                "colorscale": COLORSCALE,
                "cmin": vmin,
                "cmax": vmax,
                "color": [vmin],
                "showscale": True,
                "colorbar": {"title": {"text": _label(measure)}},
            },
            hoverinfo="skip",
            showlegend=False,
            name="scale",
        )
    )

    fig.update_layout(
        title={"text": title, "x": 0.5},
        plot_bgcolor=BACKGROUND,
        paper_bgcolor=BACKGROUND,
        margin={"l": 0, "r": 0, "t": 50, "b": 0},
        xaxis={"visible": False},
        yaxis={"visible": False, "scaleanchor": "x", "scaleratio": 1},
    )
    return fig


def render_choropleth(
    df: pl.DataFrame,
    measure: DensityMeasure,
    output_path: str | Path,
    *,
    title: str,
    self_contained: bool = True,
) -> Path:
    """
    Build the choropleth and write it as an HTML file.

    Args:
        df:             Flattened, joined vertex table with density columns.
        measure:        Density column to colour by.
        output_path:    Destination .html path.
        title:          Figure title.
        self_contained: Embed plotly.js (True) or load it from the CDN.

    Returns:
        Resolved path of the written file.
    """
    fig = build_figure(df, measure, title=title)
    path = Path(output_path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(
        str(path),
        include_plotlyjs=True if self_contained else "cdn",
        full_html=True,
    )
    log.info("map_written", path=str(path), measure=measure, regions=df.get_column("id").n_unique())
    return path
