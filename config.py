"""
Scenario configuration for layered map composition.

A scenario names every input of one map (polygon dataset, border file,
point CSV directory, population table), the CRS codes involved, and the
layer styles. Paths are relative to a data directory that defaults to
``$GEOLAYERS_DATA_DIR`` or ``./data``.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from attribute_join import DEFAULT_CATEGORIES
from datasource import Scale
from layers import ColorScale, LayerStyle


def _default_data_dir() -> str:
    return os.getenv("GEOLAYERS_DATA_DIR", "./data")


@dataclass
class ScenarioConfig:
    """Inputs, CRS codes and styles of one composed map.

    Attributes:
        name: Registry identifier
        title: Map title
        data_dir: Directory the relative paths below resolve against;
            None reads $GEOLAYERS_DATA_DIR (default ./data) at use time
        polygon_dir: Directory of the bundled polygon dataset
        polygon_scale: Resolution tier of the base polygons
        country_column: Attribute used to select the base polygon
        country: Value of country_column to keep
        borders_path: Border file without CRS metadata
        points_dir: Directory of WKT-bearing point CSVs
        points_pattern: File name pattern of the point CSVs
        wkt_column: Column holding point WKT
        population_path: Population table
        category_column: Point column holding raw category codes
        category_target: Column receiving category labels
        categories: Raw code -> label
        point_key_column: Point column the join key is derived from
        population_code_column: Table column the join key is derived from
        population_count_column: Table column holding head counts
        key_width: Trailing characters forming the join key
        source_crs: CRS declared for inputs without CRS metadata
        static_crs: Projected CRS of the static map
        interactive_crs: Geographic CRS of the interactive map
        max_workers: Concurrent CSV reads
    """
    name: str
    title: str
    data_dir: Optional[str] = None
    polygon_dir: str = "naturalearth"
    polygon_scale: Scale = Scale.COARSE
    country_column: str = "NAME"
    country: str = ""
    borders_path: str = "borders/borders.shp"
    points_dir: str = "localities"
    points_pattern: str = "*.csv"
    wkt_column: str = "shape_wkt"
    population_path: str = "population.csv"
    category_column: str = "name"
    category_target: str = "category"
    categories: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_CATEGORIES))
    point_key_column: str = "code"
    population_code_column: str = "locality"
    population_count_column: str = "n"
    key_width: int = 4
    source_crs: int = 4326
    static_crs: int = 32624
    interactive_crs: int = 4326
    max_workers: int = field(
        default_factory=lambda: int(os.getenv("GEOLAYERS_MAX_WORKERS", "1"))
    )
    base_style: LayerStyle = field(default_factory=lambda: LayerStyle(
        color="whitesmoke", edge_color="dimgrey", edge_width=0.6, label="Land"
    ))
    border_style: LayerStyle = field(default_factory=lambda: LayerStyle(
        edge_color="grey", edge_width=0.4, fill=False, label="Borders"
    ))
    point_style: LayerStyle = field(default_factory=lambda: LayerStyle(
        color="lightgrey",
        color_column="category",
        colormap=ColorScale.SET1,
        size_column="population",
        size_range=(6.0, 60.0),
        opacity=0.85,
        edge_color="black",
        edge_width=0.3,
        tooltip_columns=("category", "population"),
        label="Localities",
    ))

    def __post_init__(self):
        self.polygon_scale = Scale(self.polygon_scale)
        if self.key_width <= 0:
            raise ValueError("key_width must be > 0")

    def resolved_data_dir(self) -> str:
        return self.data_dir or _default_data_dir()

    def path(self, relative: str) -> str:
        """Resolve a scenario path against data_dir."""
        return str(Path(self.resolved_data_dir()) / relative)

    def with_data_dir(self, data_dir: str) -> "ScenarioConfig":
        """Copy of this scenario reading from another data directory."""
        return replace(self, data_dir=data_dir)


# Pre-defined scenarios
GREENLAND = ScenarioConfig(
    name="greenland",
    title="Greenland: borders, localities and population",
    country="Greenland",
    polygon_scale=Scale.MEDIUM,
    points_pattern="localities_*.csv",
    static_crs=32624,
)


class ScenarioRegistry:
    """Registry for managing scenario configurations."""

    def __init__(self):
        """Initialize with pre-defined scenarios."""
        self._scenarios: Dict[str, ScenarioConfig] = {}
        self._load_defaults()

    def _load_defaults(self):
        self.register("greenland", GREENLAND)

    def register(self, name: str, scenario: ScenarioConfig):
        """Register a scenario.

        Args:
            name: Unique identifier for the scenario
            scenario: Scenario configuration
        """
        self._scenarios[name.lower()] = scenario

    def get(self, name: str) -> ScenarioConfig:
        """Retrieve a copy of a scenario configuration.

        Raises:
            KeyError: If scenario not found
        """
        name = name.lower()
        if name not in self._scenarios:
            available = list(self._scenarios.keys())
            raise KeyError(
                f"Scenario '{name}' not found. Available scenarios: {available}"
            )
        scenario = self._scenarios[name]
        return replace(scenario, categories=dict(scenario.categories))

    def list_scenarios(self) -> Dict[str, str]:
        """Map of scenario names to titles."""
        return {name: scenario.title for name, scenario in self._scenarios.items()}


# Global registry instance
registry = ScenarioRegistry()


def get_scenario(name: str) -> ScenarioConfig:
    """Get a scenario configuration from the global registry.

    Example:
        >>> scenario = get_scenario("greenland")
        >>> scenario.static_crs
        32624
    """
    return registry.get(name)


def register_scenario(name: str, scenario: ScenarioConfig):
    """Register a scenario in the global registry."""
    registry.register(name, scenario)


def list_scenarios() -> Dict[str, str]:
    """List all scenarios in the global registry."""
    return registry.list_scenarios()
