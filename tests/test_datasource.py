import logging

import pandas as pd
import pytest

from datasource import (
    PolygonDataSource,
    Scale,
    ShapefileSource,
    SourceKind,
    TableSource,
    WktCsvSource,
    load_dataset,
)
from errors import SourceNotFound


class TestPolygonDataSource:
    def test_filter_by_name(self, polygon_dir):
        source = PolygonDataSource(str(polygon_dir)).where("NAME", "Greenland")
        data = source.load()

        assert list(data["NAME"]) == ["Greenland"]
        assert data.crs.to_epsg() == 4326

    def test_filter_returns_new_source(self, polygon_dir):
        source = PolygonDataSource(str(polygon_dir))
        refined = source.filter(lambda row: row["ISO_A3"] == "ISL", "iceland")

        assert source.filters == ()
        assert len(source.load()) == 2
        assert list(refined.load()["NAME"]) == ["Iceland"]

    def test_filters_are_combined(self, polygon_dir):
        source = (
            PolygonDataSource(str(polygon_dir))
            .where("NAME", "Greenland")
            .where("ISO_A3", "ISL")
        )
        with pytest.raises(SourceNotFound) as excinfo:
            source.load()

        assert "NAME == 'Greenland'" in str(excinfo.value)
        assert "ISO_A3 == 'ISL'" in str(excinfo.value)

    def test_unknown_name_raises_source_not_found(self, polygon_dir):
        source = PolygonDataSource(str(polygon_dir)).where("NAME", "Atlantis")

        with pytest.raises(SourceNotFound) as excinfo:
            source.load()
        assert excinfo.value.source == source.get_config().name

    def test_scale_selects_file(self, polygon_dir):
        source = PolygonDataSource(str(polygon_dir), scale="50m")

        assert source.scale is Scale.MEDIUM
        assert source.get_config().path.endswith("ne_50m_admin_0_countries.shp")
        assert len(source.load()) == 2

    def test_missing_tier_file(self, polygon_dir):
        source = PolygonDataSource(str(polygon_dir), scale=Scale.FINE)

        with pytest.raises(FileNotFoundError):
            source.load()

    def test_invalid_scale(self, polygon_dir):
        with pytest.raises(ValueError):
            PolygonDataSource(str(polygon_dir), scale="5m")


class TestShapefileSource:
    def test_file_without_prj_has_unknown_crs(self, borders_without_crs):
        data = ShapefileSource(str(borders_without_crs)).load()

        assert data.crs is None
        assert list(data["muni"]) == ["Sermersooq", "Kujalleq"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ShapefileSource(str(tmp_path / "nope.shp")).load()

    def test_config_kind(self, borders_without_crs):
        config = ShapefileSource(str(borders_without_crs)).get_config()

        assert config.kind is SourceKind.SHAPEFILE
        assert config.name == "borders"


class TestWktCsvSource:
    def test_loads_valid_rows_and_skips_bad_ones(self, localities_dir, caplog):
        source = WktCsvSource(str(localities_dir), pattern="localities_*.csv")

        with caplog.at_level(logging.WARNING, logger="geolayers.datasource"):
            data = source.load()

        assert len(data) == 3
        skips = [r for r in caplog.records if r.levelno == logging.WARNING and "Skipping" in r.getMessage()]
        assert len(skips) == 2
        assert len(source.diagnostics) == 2

    def test_result_has_no_crs_and_no_wkt_column(self, localities_dir):
        data = WktCsvSource(str(localities_dir), pattern="localities_*.csv").load()

        assert data.crs is None
        assert "shape_wkt" not in data.columns
        assert set(data.geom_type) == {"Point"}

    def test_order_is_file_name_then_row(self, localities_dir):
        data = WktCsvSource(str(localities_dir), pattern="localities_*.csv").load()

        assert list(data["code"]) == ["loc-0600", "loc-0611", "loc-1201"]
        assert data.geometry.iloc[0].x == pytest.approx(-51.72)

    def test_parallel_read_keeps_order(self, localities_dir):
        sequential = WktCsvSource(str(localities_dir), pattern="localities_*.csv").load()
        parallel = WktCsvSource(
            str(localities_dir), pattern="localities_*.csv", max_workers=4
        ).load()

        assert list(parallel["code"]) == list(sequential["code"])
        assert list(parallel.geometry.to_wkt()) == list(sequential.geometry.to_wkt())

    def test_diagnostics_describe_skips(self, localities_dir):
        source = WktCsvSource(str(localities_dir), pattern="localities_*.csv")
        source.load()

        empty, malformed = source.diagnostics
        assert empty.path.endswith("localities_a.csv")
        assert empty.row == 4
        assert empty.reason == "empty geometry"
        assert malformed.path.endswith("localities_b.csv")
        assert "Malformed geometry" in malformed.reason

    def test_codes_stay_strings(self, localities_dir):
        data = WktCsvSource(str(localities_dir), pattern="localities_*.csv").load()

        assert list(data["name"]) == ["1", "2", "2"]

    def test_no_matching_files(self, localities_dir):
        source = WktCsvSource(str(localities_dir), pattern="settlements_*.csv")

        with pytest.raises(SourceNotFound):
            source.load()

    def test_missing_wkt_column(self, tmp_path):
        (tmp_path / "pts.csv").write_text("name,geom\n1,POINT (0 0)\n", encoding="utf-8")

        with pytest.raises(ValueError, match="shape_wkt"):
            WktCsvSource(str(tmp_path)).load()

    def test_all_rows_skipped_gives_empty_collection(self, tmp_path):
        (tmp_path / "pts.csv").write_text("name,shape_wkt\n1,\n2,POINT (\n", encoding="utf-8")

        source = WktCsvSource(str(tmp_path))
        data = source.load()

        assert len(data) == 0
        assert len(source.diagnostics) == 2


class TestTableSource:
    def test_loads_as_strings(self, population_csv):
        table = TableSource(str(population_csv), required_columns=["locality", "n"]).load()

        assert isinstance(table, pd.DataFrame)
        assert table["n"].iloc[0] == "19872"

    def test_required_columns(self, population_csv):
        with pytest.raises(ValueError, match="population"):
            TableSource(str(population_csv), required_columns=["population"]).load()


def test_load_dataset_dispatches_by_kind(localities_dir):
    data = load_dataset(str(localities_dir), kind="wkt_csv", pattern="localities_*.csv")

    assert len(data) == 3
