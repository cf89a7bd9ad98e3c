import matplotlib

matplotlib.use("Agg")

from pathlib import Path

import geopandas as gpd
import pytest
from shapely.geometry import Point, Polygon, box

GREENLAND_BOX = box(-73.0, 59.0, -11.0, 84.0)
ICELAND_BOX = box(-25.0, 63.0, -13.0, 67.0)

LOCALITIES_A = """name,code,shape_wkt
1,loc-0600,POINT (-51.72 64.18)
2,loc-0611,POINT (-50.27 64.43)
1,loc-0900,
"""

LOCALITIES_B = """name,code,shape_wkt
2,loc-1201,POINT (-46.03 60.72)
1,loc-1300,POINT (-53.5 66.9
"""

POPULATION = """locality,n
Nuuk 0600,19872
Kapisillit 0611,53
Nuuk annex 0600,1
"""


def border_frame(crs=None) -> gpd.GeoDataFrame:
    """Two municipality-like polygons inside the Greenland box."""
    return gpd.GeoDataFrame(
        {"muni": ["Sermersooq", "Kujalleq"]},
        geometry=[
            Polygon([(-55.0, 63.0), (-40.0, 63.0), (-40.0, 70.0), (-55.0, 70.0)]),
            Polygon([(-50.0, 59.5), (-42.0, 59.5), (-42.0, 62.5), (-50.0, 62.5)]),
        ],
        crs=crs,
    )


def write_polygon_dataset(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    world = gpd.GeoDataFrame(
        {"NAME": ["Greenland", "Iceland"], "ISO_A3": ["GRL", "ISL"]},
        geometry=[GREENLAND_BOX, ICELAND_BOX],
        crs="EPSG:4326",
    )
    for scale in ("110m", "50m"):
        world.to_file(directory / f"ne_{scale}_admin_0_countries.shp")
    return directory


def write_localities(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "localities_a.csv").write_text(LOCALITIES_A, encoding="utf-8")
    (directory / "localities_b.csv").write_text(LOCALITIES_B, encoding="utf-8")
    # Not matched by the localities_*.csv pattern
    (directory / "other.csv").write_text("name,code,shape_wkt\n1,x,POINT (0 0)\n", encoding="utf-8")
    return directory


@pytest.fixture
def polygon_dir(tmp_path) -> Path:
    return write_polygon_dataset(tmp_path / "naturalearth")


@pytest.fixture
def localities_dir(tmp_path) -> Path:
    return write_localities(tmp_path / "localities")


@pytest.fixture
def population_csv(tmp_path) -> Path:
    path = tmp_path / "population.csv"
    path.write_text(POPULATION, encoding="utf-8")
    return path


@pytest.fixture
def borders_without_crs(tmp_path) -> Path:
    path = tmp_path / "borders" / "borders.shp"
    path.parent.mkdir(parents=True, exist_ok=True)
    border_frame().to_file(path)
    return path


@pytest.fixture
def scenario_data_dir(tmp_path) -> Path:
    """Data directory laid out the way ScenarioConfig expects."""
    root = tmp_path / "data"
    write_polygon_dataset(root / "naturalearth")
    write_localities(root / "localities")
    (root / "borders").mkdir(parents=True)
    border_frame().to_file(root / "borders" / "borders.shp")
    (root / "population.csv").write_text(POPULATION, encoding="utf-8")
    return root


@pytest.fixture
def points_4326() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {"code": ["loc-0600", "loc-0611", "loc-1201"], "name": ["1", "2", "2"]},
        geometry=[Point(-51.72, 64.18), Point(-50.27, 64.43), Point(-46.03, 60.72)],
        crs="EPSG:4326",
    )
