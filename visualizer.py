"""
Static map rendering for composed layer stacks.

This module draws a ComposedMap with matplotlib through GeoDataFrame.plot,
one call per layer in stack order, and provides helpers to save or encode
the resulting figure.
"""

import base64
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from pandas.api.types import is_numeric_dtype

from layers import ComposedMap, Layer, RenderMode
from logging_config import get_logger

logger = get_logger("visualizer")


@dataclass
class MapStyle:
    """Figure-level styling for static maps.

    Attributes:
        figsize: Figure size in inches (width, height)
        title: Title used when the composed map carries none
        legend: Whether column-driven layers get a legend/colorbar
        background: Axes background color
        axis_off: Hide axes ticks and frame
    """
    figsize: Tuple[int, int] = (10, 12)
    title: Optional[str] = None
    legend: bool = True
    background: str = "white"
    axis_off: bool = True


def scale_sizes(values: pd.Series, size_range: Tuple[float, float]) -> np.ndarray:
    """Linearly map numeric values onto a marker size range.

    Missing values get the minimum size; a constant column gets the
    midpoint.
    """
    low, high = size_range
    numbers = pd.to_numeric(pd.Series(values), errors="coerce").astype(float).to_numpy()
    sizes = np.full(len(numbers), float(low))
    present = ~np.isnan(numbers)
    if not present.any():
        return sizes

    vmin = numbers[present].min()
    vmax = numbers[present].max()
    if vmax == vmin:
        sizes[present] = (low + high) / 2.0
    else:
        sizes[present] = low + (numbers[present] - vmin) / (vmax - vmin) * (high - low)
    return sizes


class StaticMapRenderer:
    """Renders composed maps to matplotlib figures."""

    def __init__(self, style: Optional[MapStyle] = None):
        """Initialize the renderer.

        Args:
            style: Figure-level style settings
        """
        self.style = style or MapStyle()

    def render(
        self,
        composed: ComposedMap,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Draw every layer, bottom to top.

        Args:
            composed: Map produced by LayerStack.render_target
            ax: Existing axes to plot on (creates new if None)

        Returns:
            Tuple of (Figure, Axes)
        """
        if composed.mode is not RenderMode.STATIC:
            logger.warning("Rendering a %s composition statically", composed.mode.value)

        if ax is None:
            fig, ax = plt.subplots(1, 1, figsize=self.style.figsize)
        else:
            fig = ax.get_figure()

        ax.set_facecolor(self.style.background)

        for zorder, layer in enumerate(composed.layers, start=1):
            if layer.data.empty:
                logger.debug("Layer '%s' is empty, nothing to draw", layer.name)
                continue
            self._plot_layer(layer, ax, zorder)

        title = composed.title or self.style.title
        if title:
            ax.set_title(title, fontsize=14, fontweight="bold")

        if self.style.axis_off:
            ax.set_axis_off()

        fig.tight_layout()
        logger.info("Rendered static map with layers %s", composed.names)
        return fig, ax

    def _plot_layer(self, layer: Layer, ax: Axes, zorder: int):
        """Plot a single layer on the axes."""
        style = layer.style
        data = layer.data

        plot_kwargs: Dict[str, Any] = {
            "ax": ax,
            "edgecolor": style.edge_color,
            "linewidth": style.edge_width,
            "alpha": style.opacity,
            "zorder": zorder,
        }

        if style.size_column is not None:
            plot_kwargs["markersize"] = scale_sizes(data[style.size_column], style.size_range)
        else:
            plot_kwargs["markersize"] = style.size

        if style.color_column is not None:
            column = data[style.color_column]
            categorical = not is_numeric_dtype(column)
            plot_kwargs.update({
                "column": style.color_column,
                "cmap": style.get_colormap_name(),
                "categorical": categorical,
                "legend": self.style.legend,
                "missing_kwds": {"color": style.color},
            })
            if self.style.legend:
                label = style.label or style.color_column
                if categorical:
                    plot_kwargs["legend_kwds"] = {"title": label, "loc": "lower right"}
                else:
                    plot_kwargs["legend_kwds"] = {"label": label, "shrink": 0.6}
            if categorical:
                # Missing categories are drawn through missing_kwds
                data = data.assign(**{style.color_column: column.astype(object).where(column.notna(), None)})
        elif style.fill:
            plot_kwargs["color"] = style.color
        else:
            plot_kwargs["facecolor"] = "none"

        data.plot(**plot_kwargs)

    def save(
        self,
        filepath: Union[str, Path],
        fig: Figure,
        dpi: int = 150,
        **kwargs
    ):
        """Save the figure to a file.

        Args:
            filepath: Output file path
            fig: Figure to save
            dpi: Resolution in dots per inch
            **kwargs: Additional arguments passed to savefig
        """
        fig.savefig(filepath, dpi=dpi, bbox_inches="tight", **kwargs)
        logger.info("Saved static map to %s", filepath)

    def to_bytes(self, fig: Figure, format: str = "png", dpi: int = 150) -> bytes:
        """Encode the figure into image bytes."""
        buffer = io.BytesIO()
        fig.savefig(buffer, format=format, dpi=dpi, bbox_inches="tight")
        return buffer.getvalue()

    def to_data_uri(self, fig: Figure, format: str = "png", dpi: int = 150) -> str:
        """Encode the figure as a base64 data URI."""
        mime = "image/svg+xml" if format == "svg" else f"image/{format}"
        encoded = base64.b64encode(self.to_bytes(fig, format=format, dpi=dpi)).decode("ascii")
        return f"data:{mime};base64,{encoded}"


def plot_composed(
    composed: ComposedMap,
    figsize: Tuple[int, int] = (10, 12),
    save_path: Optional[str] = None,
    dpi: int = 150
) -> Tuple[Figure, Axes]:
    """Convenience function to draw a composed map and optionally save it.

    Example:
        >>> composed = stack.render_target("static", 32624, title="Greenland")
        >>> fig, ax = plot_composed(composed, save_path="greenland.png")
    """
    renderer = StaticMapRenderer(MapStyle(figsize=figsize))
    fig, ax = renderer.render(composed)

    if save_path:
        renderer.save(save_path, fig, dpi=dpi)

    return fig, ax
