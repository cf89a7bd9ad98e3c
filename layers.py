"""
Ordered, styled map layers and their composition onto one CRS.

A LayerStack collects named feature collections in z-order (later layers
draw on top). Layers may be appended in any declared CRS; render_target
reprojects all of them onto the requested CRS and returns a ComposedMap
for the renderer that matches the requested mode.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import geopandas as gpd

from crs import WGS84, crs_id_of, crs_label, is_geographic, reproject
from errors import DuplicateLayerName, EmptyLayerStack, StyleReferenceError
from logging_config import get_logger

logger = get_logger("layers")


class RenderMode(Enum):
    """Target composition modes.

    STATIC is meant for a projected, locally accurate CRS (print-style
    maps). INTERACTIVE is meant for EPSG:4326, the only CRS the web map
    client accepts.
    """
    STATIC = "static"
    INTERACTIVE = "interactive"


class ColorScale(Enum):
    """Pre-defined color scales for column-driven colors."""
    VIRIDIS = "viridis"
    PLASMA = "plasma"
    CIVIDIS = "cividis"
    BLUES = "Blues"
    REDS = "Reds"
    GREYS = "Greys"
    YELLOW_ORANGE_RED = "YlOrRd"
    SET1 = "Set1"
    TAB10 = "tab10"


@dataclass(frozen=True)
class LayerStyle:
    """Visual channels of a layer, each a constant or an attribute column.

    Attributes:
        color: Constant fill/marker color
        color_column: Column driving color (overrides color)
        colormap: Color scale used with color_column
        size: Constant marker size in points (point layers)
        size_column: Numeric column driving marker size
        size_range: (min, max) marker size when size_column is set
        opacity: Transparency (0-1)
        edge_color: Outline color
        edge_width: Outline width
        fill: Whether polygons are filled (False draws outlines only)
        tooltip_columns: Columns shown in interactive tooltips
        label: Legend label
    """
    color: str = "lightgrey"
    color_column: Optional[str] = None
    colormap: Union[str, ColorScale] = ColorScale.TAB10
    size: float = 6.0
    size_column: Optional[str] = None
    size_range: Tuple[float, float] = (4.0, 24.0)
    opacity: float = 1.0
    edge_color: str = "black"
    edge_width: float = 0.5
    fill: bool = True
    tooltip_columns: Tuple[str, ...] = ()
    label: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"opacity must be within [0, 1], got {self.opacity}")
        low, high = self.size_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid size_range: {self.size_range}")

    def get_colormap_name(self) -> str:
        """Get the colormap name as a string."""
        if isinstance(self.colormap, ColorScale):
            return self.colormap.value
        return self.colormap

    def referenced_columns(self) -> List[str]:
        """Attribute columns this style reads."""
        columns = [self.color_column, self.size_column, *self.tooltip_columns]
        return [col for col in columns if col is not None]


@dataclass(frozen=True, eq=False)
class Layer:
    """A named, styled feature collection."""
    name: str
    data: gpd.GeoDataFrame
    style: LayerStyle = field(default_factory=LayerStyle)

    @property
    def crs_id(self) -> Optional[int]:
        return crs_id_of(self.data)


@dataclass(frozen=True, eq=False)
class ComposedMap:
    """Layers reprojected onto one CRS, in draw order.

    Attributes:
        mode: Target composition mode
        crs_id: EPSG code shared by every layer
        layers: Layers bottom to top
        title: Optional map title
    """
    mode: RenderMode
    crs_id: int
    layers: Tuple[Layer, ...]
    title: Optional[str] = None

    @property
    def names(self) -> List[str]:
        return [layer.name for layer in self.layers]

    @property
    def total_bounds(self) -> Tuple[float, float, float, float]:
        """(minx, miny, maxx, maxy) over all non-empty layers."""
        bounds = [layer.data.total_bounds for layer in self.layers if not layer.data.empty]
        if not bounds:
            raise ValueError("Composed map has no features")
        return (
            min(b[0] for b in bounds),
            min(b[1] for b in bounds),
            max(b[2] for b in bounds),
            max(b[3] for b in bounds),
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "crs": f"EPSG:{self.crs_id}",
            "title": self.title,
            "layers": [
                {"name": layer.name, "features": len(layer.data)}
                for layer in self.layers
            ],
        }

    def render(self, renderer=None):
        """Hand the composition to a renderer for its mode.

        Without an explicit renderer, STATIC uses StaticMapRenderer
        (returns a matplotlib (Figure, Axes)) and INTERACTIVE uses
        InteractiveMapRenderer (returns a folium.Map).
        """
        if renderer is None:
            if self.mode is RenderMode.STATIC:
                from visualizer import StaticMapRenderer
                renderer = StaticMapRenderer()
            else:
                from interactive import InteractiveMapRenderer
                renderer = InteractiveMapRenderer()
        return renderer.render(self)


class LayerStack:
    """Ordered collection of named layers; append order is z-order."""

    def __init__(self):
        self._layers: List[Layer] = []

    def append(
        self,
        name: str,
        data: gpd.GeoDataFrame,
        style: Optional[LayerStyle] = None
    ) -> "LayerStack":
        """Add a layer on top of the current ones.

        Args:
            name: Unique layer name
            data: Features in any declared (or still unknown) CRS
            style: Styling; every referenced column must exist in data

        Returns:
            Self for method chaining

        Raises:
            DuplicateLayerName: If name is already in the stack
            StyleReferenceError: If style names columns absent from data
        """
        if name in self.names:
            raise DuplicateLayerName(name)

        style = style or LayerStyle()
        missing = [col for col in style.referenced_columns() if col not in data.columns]
        if missing:
            raise StyleReferenceError(name, missing, data.columns)

        self._layers.append(Layer(name=name, data=data.copy(), style=style))
        logger.debug("Appended layer '%s' (%d features, CRS %s)", name, len(data), crs_label(data))
        return self

    def remove(self, name: str) -> Layer:
        """Remove and return a layer by name."""
        for index, layer in enumerate(self._layers):
            if layer.name == name:
                return self._layers.pop(index)
        raise KeyError(f"Layer '{name}' not found. Available layers: {self.names}")

    @property
    def names(self) -> List[str]:
        return [layer.name for layer in self._layers]

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(list(self._layers))

    def __getitem__(self, name: str) -> Layer:
        for layer in self._layers:
            if layer.name == name:
                return layer
        raise KeyError(f"Layer '{name}' not found. Available layers: {self.names}")

    def render_target(
        self,
        mode: Union[RenderMode, str],
        crs_id: int,
        title: Optional[str] = None
    ) -> ComposedMap:
        """Reproject every layer onto crs_id, keeping append order.

        Args:
            mode: RenderMode or its value ("static" / "interactive")
            crs_id: EPSG code all layers are brought to
            title: Optional map title

        Returns:
            ComposedMap ready for the renderer of that mode

        Raises:
            EmptyLayerStack: If no layers were appended
            UnknownSourceCrs: If a layer's CRS was never declared
        """
        mode = RenderMode(mode)
        if not self._layers:
            raise EmptyLayerStack()

        geographic = is_geographic(crs_id)
        if mode is RenderMode.STATIC and geographic:
            logger.warning(
                "Static map composed in geographic EPSG:%s; a projected CRS "
                "gives locally accurate distances", crs_id
            )
        elif mode is RenderMode.INTERACTIVE and crs_id != WGS84:
            logger.warning(
                "Interactive map composed in EPSG:%s; the web map client "
                "expects EPSG:%s", crs_id, WGS84
            )

        layers = tuple(
            Layer(name=layer.name, data=reproject(layer.data, crs_id, layer.name), style=layer.style)
            for layer in self._layers
        )
        logger.info(
            "Composed %d layer(s) for %s rendering in EPSG:%s",
            len(layers), mode.value, crs_id
        )
        return ComposedMap(mode=mode, crs_id=crs_id, layers=layers, title=title)
