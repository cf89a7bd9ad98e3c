"""
Interactive web map rendering for composed layer stacks.

Each layer becomes a toggleable folium FeatureGroup. Points are drawn as
circle markers (optionally sized and colored by attribute columns), other
geometries as GeoJSON with a per-layer style function.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import folium
import matplotlib.colors as mcolors
from matplotlib import colormaps
import pandas as pd
from pandas.api.types import is_numeric_dtype

from crs import WGS84
from layers import ComposedMap, Layer, LayerStyle, RenderMode
from logging_config import get_logger
from visualizer import scale_sizes

logger = get_logger("interactive")

_POINT_TYPES = {"Point", "MultiPoint"}


def _color_lookup(data: pd.DataFrame, style: LayerStyle) -> List[str]:
    """Hex color per feature, from the color column or the constant."""
    if style.color_column is None:
        return [style.color] * len(data)

    column = data[style.color_column]
    cmap = colormaps[style.get_colormap_name()]

    if is_numeric_dtype(column):
        numbers = pd.to_numeric(column, errors="coerce").astype(float)
        vmin, vmax = numbers.min(), numbers.max()
        span = (vmax - vmin) or 1.0
        return [
            style.color if pd.isna(value) else mcolors.to_hex(cmap((value - vmin) / span))
            for value in numbers
        ]

    categories = sorted({str(value) for value in column if not pd.isna(value)})
    palette = {
        category: mcolors.to_hex(cmap(index % cmap.N))
        for index, category in enumerate(categories)
    }
    return [style.color if pd.isna(value) else palette[str(value)] for value in column]


def _tooltip_text(row: pd.Series, columns) -> Optional[str]:
    if not columns:
        return None
    parts = []
    for column in columns:
        value = row[column]
        parts.append(f"{column}: {'n/a' if pd.isna(value) else value}")
    return "<br>".join(parts)


class InteractiveMapRenderer:
    """Renders composed maps to folium web maps."""

    def __init__(
        self,
        tiles: str = "OpenStreetMap",
        zoom_start: int = 4,
        layer_control: bool = True
    ):
        self.tiles = tiles
        self.zoom_start = zoom_start
        self.layer_control = layer_control

    def render(self, composed: ComposedMap) -> folium.Map:
        """Build a folium map from the composition.

        Args:
            composed: Map produced by LayerStack.render_target, expected in
                EPSG:4326

        Returns:
            folium.Map with one FeatureGroup per layer in stack order
        """
        if composed.mode is not RenderMode.INTERACTIVE:
            logger.warning("Rendering a %s composition interactively", composed.mode.value)
        if composed.crs_id != WGS84:
            logger.warning(
                "Interactive map received EPSG:%s coordinates; markers will be misplaced",
                composed.crs_id
            )

        minx, miny, maxx, maxy = composed.total_bounds
        fmap = folium.Map(
            location=[(miny + maxy) / 2, (minx + maxx) / 2],
            zoom_start=self.zoom_start,
            tiles=self.tiles,
            control_scale=True
        )

        for layer in composed.layers:
            group = folium.FeatureGroup(name=layer.style.label or layer.name)
            if not layer.data.empty:
                self._add_layer(group, layer)
            group.add_to(fmap)

        if composed.title:
            title_html = f'<h3 style="text-align:center;margin:4px">{composed.title}</h3>'
            fmap.get_root().html.add_child(folium.Element(title_html))

        if self.layer_control:
            folium.LayerControl().add_to(fmap)

        fmap.fit_bounds([[miny, minx], [maxy, maxx]])
        logger.info("Rendered interactive map with layers %s", composed.names)
        return fmap

    def _add_layer(self, group: folium.FeatureGroup, layer: Layer):
        data = layer.data
        geom_types = set(data.geometry.geom_type.dropna())
        if geom_types and geom_types <= _POINT_TYPES:
            self._add_points(group, layer)
        else:
            self._add_shapes(group, layer)

    def _add_points(self, group: folium.FeatureGroup, layer: Layer):
        style = layer.style
        data = layer.data
        colors = _color_lookup(data, style)
        if style.size_column is not None:
            # Marker radius is in pixels; halve the point-size range
            radii = scale_sizes(data[style.size_column], style.size_range) / 2.0
        else:
            radii = [style.size / 2.0] * len(data)

        for (_, row), color, radius in zip(data.iterrows(), colors, radii):
            geometry = row[data.geometry.name]
            if geometry is None or geometry.is_empty:
                continue
            points = getattr(geometry, "geoms", [geometry])
            for point in points:
                folium.CircleMarker(
                    location=[point.y, point.x],
                    radius=float(radius),
                    color=style.edge_color,
                    weight=style.edge_width,
                    fill=True,
                    fill_color=color,
                    fill_opacity=style.opacity,
                    tooltip=_tooltip_text(row, style.tooltip_columns),
                ).add_to(group)

    def _add_shapes(self, group: folium.FeatureGroup, layer: Layer):
        style = layer.style
        data = layer.data.copy()
        data["_fill_color"] = _color_lookup(data, style)

        keep = ["_fill_color", *style.tooltip_columns, data.geometry.name]
        features = data[keep].copy()
        for column in style.tooltip_columns:
            features[column] = features[column].astype(object).where(features[column].notna(), None)

        def style_function(feature: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "color": style.edge_color,
                "weight": style.edge_width,
                "fillColor": feature["properties"]["_fill_color"],
                "fillOpacity": style.opacity if style.fill else 0.0,
            }

        kwargs: Dict[str, Any] = {"style_function": style_function}
        if style.tooltip_columns:
            kwargs["tooltip"] = folium.GeoJsonTooltip(fields=list(style.tooltip_columns))

        folium.GeoJson(features.to_json(), name=layer.name, **kwargs).add_to(group)


def to_html(fmap: folium.Map) -> str:
    """Render a folium map to a standalone HTML document."""
    return fmap.get_root().render()


def save_html(fmap: folium.Map, filepath: Union[str, Path]):
    fmap.save(str(filepath))
    logger.info("Saved interactive map to %s", filepath)
