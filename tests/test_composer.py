import folium
import matplotlib.pyplot as plt
import pytest

from composer import BASE_LAYER, BORDER_LAYER, POINT_LAYER, MapComposer
from config import GREENLAND, ScenarioConfig, ScenarioRegistry, get_scenario
from conftest import border_frame
from crs import crs_id_of, crs_label
from errors import SourceNotFound
from layers import RenderMode
from visualizer import MapStyle, StaticMapRenderer


@pytest.fixture
def scenario(scenario_data_dir) -> ScenarioConfig:
    return GREENLAND.with_data_dir(str(scenario_data_dir))


@pytest.fixture
def composer(scenario) -> MapComposer:
    return MapComposer(scenario, static_renderer=StaticMapRenderer(MapStyle(figsize=(4, 4))))


class TestBuildStack:
    def test_layer_order(self, composer):
        stack = composer.build_stack()

        assert stack.names == [BASE_LAYER, BORDER_LAYER, POINT_LAYER]

    def test_base_is_filtered_country(self, composer):
        base = composer.build_stack()[BASE_LAYER].data

        assert list(base["NAME"]) == ["Greenland"]

    def test_unknown_crs_inputs_are_declared(self, composer, scenario):
        stack = composer.build_stack()

        assert crs_id_of(stack[BORDER_LAYER].data) == scenario.source_crs
        assert crs_id_of(stack[POINT_LAYER].data) == scenario.source_crs

    def test_points_are_classified_and_enriched(self, composer):
        points = composer.build_stack()[POINT_LAYER].data

        assert list(points["category"]) == ["Town", "Settlement", "Settlement"]
        assert points["population"].iloc[0] == 19872
        assert points["population"].iloc[1] == 53
        assert points["population"].isna().iloc[2]

    def test_prepare_points_reports_join_counts(self, composer):
        sources = composer.load_sources()

        result = composer.prepare_points(sources.points, sources.population)

        assert result.matched == 2
        assert result.unmatched == 1
        assert result.new_columns == ["population"]
        assert crs_id_of(sources.points) is None

    def test_declared_custom_crs_is_kept(self, composer):
        lcc = "+proj=lcc +lat_0=72 +lon_0=-41 +lat_1=62.5 +lat_2=77.5 +datum=WGS84 +units=m"
        borders = border_frame(crs="EPSG:4326").to_crs(lcc)

        declared = composer.declare_crs(borders, BORDER_LAYER)

        assert declared is borders
        assert crs_label(declared) == borders.crs.name

    def test_each_call_is_independent(self, composer):
        first = composer.build_stack()
        second = composer.build_stack()

        assert first is not second
        assert first[POINT_LAYER].data is not second[POINT_LAYER].data
        assert list(second[POINT_LAYER].data.columns) == list(first[POINT_LAYER].data.columns)


class TestCompose:
    def test_static_uses_projected_crs(self, composer, scenario):
        composed = composer.compose(RenderMode.STATIC)

        assert composed.crs_id == scenario.static_crs == 32624
        assert all(crs_id_of(layer.data) == 32624 for layer in composed.layers)
        assert composed.title == scenario.title

    def test_interactive_uses_geographic_crs(self, composer):
        composed = composer.compose("interactive")

        assert composed.crs_id == 4326
        assert composed.names == [BASE_LAYER, BORDER_LAYER, POINT_LAYER]

    def test_render_static(self, composer):
        fig, ax = composer.render_static()
        try:
            assert len(ax.collections) >= 3
        finally:
            plt.close(fig)

    def test_render_interactive(self, composer):
        assert isinstance(composer.render_interactive(), folium.Map)


class TestFailures:
    def test_missing_country(self, scenario):
        composer = MapComposer(ScenarioConfig(
            name="atlantis",
            title="Atlantis",
            data_dir=scenario.data_dir,
            country="Atlantis",
            polygon_scale="50m",
            points_pattern="localities_*.csv",
        ))

        with pytest.raises(SourceNotFound):
            composer.build_stack()

    def test_missing_data_dir(self, tmp_path):
        composer = MapComposer(GREENLAND.with_data_dir(str(tmp_path / "empty")))

        with pytest.raises(FileNotFoundError):
            composer.build_stack()

    def test_missing_point_key_column(self, scenario):
        composer = MapComposer(ScenarioConfig(
            name="nokey",
            title="No key",
            data_dir=scenario.data_dir,
            country="Greenland",
            polygon_scale="50m",
            points_pattern="localities_*.csv",
            point_key_column="locality_code",
        ))

        with pytest.raises(KeyError, match="locality_code"):
            composer.build_stack()


class TestScenarioConfig:
    def test_registry(self):
        registry = ScenarioRegistry()

        assert registry.get("Greenland") == GREENLAND
        assert "greenland" in registry.list_scenarios()
        with pytest.raises(KeyError):
            registry.get("mars")

    def test_lookup_returns_independent_copies(self):
        first = get_scenario("greenland")
        first.country = "Iceland"
        first.categories["3"] = "Station"

        second = get_scenario("greenland")
        assert second.country == "Greenland"
        assert "3" not in second.categories
        assert GREENLAND.country == "Greenland"

    def test_registered_scenario_reads_environment_at_use_time(self, monkeypatch):
        monkeypatch.setenv("GEOLAYERS_DATA_DIR", "/srv/maps")

        assert get_scenario("greenland").path("population.csv") == "/srv/maps/population.csv"

        monkeypatch.delenv("GEOLAYERS_DATA_DIR")
        assert get_scenario("greenland").resolved_data_dir() == "./data"

    def test_global_lookup(self):
        assert get_scenario("greenland").static_crs == 32624

    def test_data_dir_from_environment(self, monkeypatch):
        monkeypatch.setenv("GEOLAYERS_DATA_DIR", "/srv/maps")
        scenario = ScenarioConfig(name="env", title="Env")

        assert scenario.path("population.csv") == "/srv/maps/population.csv"

    def test_with_data_dir_keeps_original(self, scenario):
        assert scenario.data_dir != GREENLAND.data_dir
        assert scenario.static_crs == GREENLAND.static_crs

    def test_invalid_key_width(self):
        with pytest.raises(ValueError):
            ScenarioConfig(name="bad", title="Bad", key_width=0)
