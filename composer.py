"""
End-to-end composition of a layered map for one scenario.

The composer wires the pipeline stages together:
1. Load the base polygons, borders, points and population table
2. Declare the CRS of inputs that carry none (borders, WKT points)
3. Classify points and left-join population figures onto them
4. Stack base -> borders -> points and render in either mode

Example usage:
    >>> from composer import MapComposer
    >>> from config import get_scenario
    >>>
    >>> composer = MapComposer(get_scenario("greenland"))
    >>> fig, ax = composer.render_static()
    >>> web_map = composer.render_interactive()
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import folium
import geopandas as gpd
import pandas as pd
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from attribute_join import AttributeJoiner, JoinResult, classify, population_value, suffix_key
from config import ScenarioConfig
from crs import assign_crs, crs_label, has_crs
from datasource import PolygonDataSource, ShapefileSource, TableSource, WktCsvSource
from interactive import InteractiveMapRenderer
from layers import ComposedMap, LayerStack, RenderMode
from logging_config import get_logger
from visualizer import StaticMapRenderer

logger = get_logger("composer")

BASE_LAYER = "base"
BORDER_LAYER = "borders"
POINT_LAYER = "localities"


@dataclass
class ScenarioSources:
    """Freshly loaded inputs of one scenario."""
    base: gpd.GeoDataFrame
    borders: gpd.GeoDataFrame
    points: gpd.GeoDataFrame
    population: pd.DataFrame


class MapComposer:
    """Composes the layered map of one scenario.

    Every call reloads the sources and builds a new stack, so repeated
    calls are independent of each other.
    """

    def __init__(
        self,
        scenario: ScenarioConfig,
        static_renderer: Optional[StaticMapRenderer] = None,
        interactive_renderer: Optional[InteractiveMapRenderer] = None
    ):
        """Initialize the composer.

        Args:
            scenario: Scenario configuration
            static_renderer: Renderer for static maps (default settings if None)
            interactive_renderer: Renderer for web maps (default settings if None)
        """
        self.scenario = scenario
        self.static_renderer = static_renderer or StaticMapRenderer()
        self.interactive_renderer = interactive_renderer or InteractiveMapRenderer()

    def polygon_source(self) -> PolygonDataSource:
        s = self.scenario
        source = PolygonDataSource(s.path(s.polygon_dir), scale=s.polygon_scale)
        if s.country:
            source = source.where(s.country_column, s.country)
        return source

    def border_source(self) -> ShapefileSource:
        return ShapefileSource(self.scenario.path(self.scenario.borders_path), name=BORDER_LAYER)

    def point_source(self) -> WktCsvSource:
        s = self.scenario
        return WktCsvSource(
            s.path(s.points_dir),
            pattern=s.points_pattern,
            wkt_column=s.wkt_column,
            name=POINT_LAYER,
            max_workers=s.max_workers
        )

    def population_source(self) -> TableSource:
        s = self.scenario
        return TableSource(
            s.path(s.population_path),
            required_columns=[s.population_code_column, s.population_count_column],
            name="population"
        )

    def load_sources(self) -> ScenarioSources:
        """Load every input of the scenario."""
        logger.info("Loading sources for scenario '%s'", self.scenario.name)
        return ScenarioSources(
            base=self.polygon_source().load(),
            borders=self.border_source().load(),
            points=self.point_source().load(),
            population=self.population_source().load(),
        )

    def declare_crs(self, data: gpd.GeoDataFrame, source: str) -> gpd.GeoDataFrame:
        """Assign the scenario's source CRS to an input that has none.

        Inputs that already declare a CRS are returned unchanged.
        """
        if has_crs(data):
            logger.debug("%s already declares %s", source, crs_label(data))
            return data
        return assign_crs(data, self.scenario.source_crs, source)

    def prepare_points(self, points: gpd.GeoDataFrame, population: pd.DataFrame) -> JoinResult:
        """Declare CRS, classify and attach population to the points."""
        s = self.scenario
        if s.point_key_column not in points.columns:
            raise KeyError(
                f"Column '{s.point_key_column}' not found in {POINT_LAYER}. "
                f"Available columns: {list(points.columns)}"
            )
        points = self.declare_crs(points, POINT_LAYER)
        points = classify(points, s.category_column, s.category_target, s.categories)

        joiner = AttributeJoiner(
            population,
            table_key=suffix_key(s.population_code_column, s.key_width)
        )
        result = joiner.join(
            points,
            collection_key=suffix_key(s.point_key_column, s.key_width),
            new_columns={
                "population": population_value(s.population_code_column, s.population_count_column)
            }
        )
        if result.unmatched:
            logger.info("%d locality(ies) have no population figure", result.unmatched)
        return result

    def build_stack(self) -> LayerStack:
        """Load, reconcile and enrich the inputs into a layer stack."""
        s = self.scenario
        sources = self.load_sources()

        borders = self.declare_crs(sources.borders, BORDER_LAYER)
        points = self.prepare_points(sources.points, sources.population).data

        stack = LayerStack()
        stack.append(BASE_LAYER, sources.base, s.base_style)
        stack.append(BORDER_LAYER, borders, s.border_style)
        stack.append(POINT_LAYER, points, s.point_style)
        return stack

    def compose(self, mode: RenderMode) -> ComposedMap:
        """Build a fresh stack and compose it for a mode."""
        mode = RenderMode(mode)
        crs_id = self.scenario.static_crs if mode is RenderMode.STATIC else self.scenario.interactive_crs
        return self.build_stack().render_target(mode, crs_id, title=self.scenario.title)

    def render_static(self, ax: Optional[Axes] = None) -> Tuple[Figure, Axes]:
        """Render the scenario as a static map in its projected CRS."""
        return self.static_renderer.render(self.compose(RenderMode.STATIC), ax=ax)

    def render_interactive(self) -> folium.Map:
        """Render the scenario as a web map in its geographic CRS."""
        return self.interactive_renderer.render(self.compose(RenderMode.INTERACTIVE))
