"""
Layered geographic map composition toolkit.

This package loads heterogeneous geographic inputs, reconciles them onto a
common coordinate reference system, enriches point features from tabular
data, and composes ordered layers into static or interactive maps.

Modules:
    datasource: Loading of polygon datasets, border files, WKT CSVs and tables
    crs: CRS assignment and reprojection
    attribute_join: Key-based left joins and category derivation
    layers: Layer stack and CRS-uniform composition
    visualizer: Static (matplotlib) rendering
    interactive: Interactive (folium) rendering
    composer: End-to-end scenario composition
    config: Scenario configurations

Example:
    >>> from composer import MapComposer
    >>> from config import get_scenario
    >>>
    >>> composer = MapComposer(get_scenario("greenland"))
    >>> fig, ax = composer.render_static()
    >>> web_map = composer.render_interactive()
"""

from errors import (
    GeoLayersError,
    SourceNotFound,
    MalformedGeometry,
    InvalidCrs,
    CrsAlreadySet,
    UnknownSourceCrs,
    DuplicateLayerName,
    StyleReferenceError,
    EmptyLayerStack,
    CategoryMappingError,
)

from datasource import (
    SourceKind,
    Scale,
    SourceConfig,
    SkippedRow,
    DataSource,
    PolygonDataSource,
    ShapefileSource,
    WktCsvSource,
    TableSource,
    load_dataset,
)

from crs import (
    WGS84,
    WEB_MERCATOR,
    assign_crs,
    reproject,
    crs_id_of,
    has_crs,
    crs_label,
)

from attribute_join import (
    MISSING,
    PopulationRecord,
    AttributeJoiner,
    JoinResult,
    left_join,
    suffix_key,
    classify,
    population_lookup,
)

from layers import (
    RenderMode,
    ColorScale,
    LayerStyle,
    Layer,
    LayerStack,
    ComposedMap,
)

from visualizer import (
    MapStyle,
    StaticMapRenderer,
    plot_composed,
)

from interactive import (
    InteractiveMapRenderer,
    to_html,
)

from composer import MapComposer

from config import (
    ScenarioConfig,
    ScenarioRegistry,
    registry,
    get_scenario,
    register_scenario,
    list_scenarios,
    GREENLAND,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    "GeoLayersError",
    "SourceNotFound",
    "MalformedGeometry",
    "InvalidCrs",
    "CrsAlreadySet",
    "UnknownSourceCrs",
    "DuplicateLayerName",
    "StyleReferenceError",
    "EmptyLayerStack",
    "CategoryMappingError",
    # Data loading
    "SourceKind",
    "Scale",
    "SourceConfig",
    "SkippedRow",
    "DataSource",
    "PolygonDataSource",
    "ShapefileSource",
    "WktCsvSource",
    "TableSource",
    "load_dataset",
    # CRS
    "WGS84",
    "WEB_MERCATOR",
    "assign_crs",
    "reproject",
    "crs_id_of",
    "has_crs",
    "crs_label",
    # Joins
    "MISSING",
    "PopulationRecord",
    "AttributeJoiner",
    "JoinResult",
    "left_join",
    "suffix_key",
    "classify",
    "population_lookup",
    # Layers
    "RenderMode",
    "ColorScale",
    "LayerStyle",
    "Layer",
    "LayerStack",
    "ComposedMap",
    # Rendering
    "MapStyle",
    "StaticMapRenderer",
    "plot_composed",
    "InteractiveMapRenderer",
    "to_html",
    # Composition
    "MapComposer",
    # Configuration
    "ScenarioConfig",
    "ScenarioRegistry",
    "registry",
    "get_scenario",
    "register_scenario",
    "list_scenarios",
    "GREENLAND",
]
