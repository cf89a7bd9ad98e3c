"""
Data source abstraction for the heterogeneous inputs of a layered map.

This module normalizes four kinds of input into GeoDataFrames (or, for
plain tables, DataFrames):
- Bundled world polygon datasets in several resolution tiers
- Vector border files (Shapefile and other OGR formats)
- Directories of CSV files carrying a WKT geometry column
- Plain CSV tables used as attribute join sources
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import fiona
import geopandas as gpd
import pandas as pd
import shapely.wkt
from shapely.errors import ShapelyError

from errors import MalformedGeometry, SourceNotFound
from logging_config import get_logger

logger = get_logger("datasource")

Predicate = Callable[[pd.Series], bool]


class SourceKind(Enum):
    """Kinds of input a map can be composed from."""
    POLYGON_DATASET = "polygon_dataset"
    SHAPEFILE = "shapefile"
    WKT_CSV = "wkt_csv"
    TABLE = "table"


class Scale(Enum):
    """Resolution tiers of the bundled polygon dataset."""
    COARSE = "110m"
    MEDIUM = "50m"
    FINE = "10m"


@dataclass
class SourceConfig:
    """Configuration for a data source.

    Attributes:
        path: Path to the data file or directory
        kind: Which kind of source this is
        name: Human-readable name for the source
        layer: Layer name for multi-layer formats like GeoPackage
    """
    path: str
    kind: SourceKind
    name: Optional[str] = None
    layer: Optional[str] = None

    def __post_init__(self):
        if self.name is None:
            self.name = Path(self.path).stem or str(self.path)


@dataclass
class SkippedRow:
    """A record dropped while loading, kept for diagnostics."""
    path: str
    row: int
    reason: str


class DataSource(ABC):
    """Abstract base class for map data sources."""

    @abstractmethod
    def load(self) -> Union[gpd.GeoDataFrame, pd.DataFrame]:
        """Load and return the data."""
        pass

    @abstractmethod
    def get_config(self) -> SourceConfig:
        """Return the source configuration."""
        pass


class PolygonDataSource(DataSource):
    """World/country polygons from a bundled Natural Earth style dataset.

    The dataset directory holds one file per resolution tier, named
    ``ne_<scale>_<theme>.shp`` (e.g. ``ne_110m_admin_0_countries.shp``).
    Records can be narrowed with attribute predicates before loading.
    """

    def __init__(
        self,
        directory: str,
        scale: Union[Scale, str] = Scale.COARSE,
        theme: str = "admin_0_countries",
        name: Optional[str] = None,
        filters: Sequence[Tuple[Predicate, str]] = ()
    ):
        """Initialize the polygon source.

        Args:
            directory: Directory holding the dataset files
            scale: Resolution tier (Scale member or its value, e.g. "50m")
            theme: Dataset theme part of the file name
            name: Human-readable name
            filters: (predicate, description) pairs, AND-ed together

        Raises:
            ValueError: If scale is not one of the known tiers
        """
        self.scale = Scale(scale)
        self.theme = theme
        self.directory = directory
        self.filters: Tuple[Tuple[Predicate, str], ...] = tuple(filters)
        self.config = SourceConfig(
            path=str(Path(directory) / f"ne_{self.scale.value}_{theme}.shp"),
            kind=SourceKind.POLYGON_DATASET,
            name=name or f"{theme} ({self.scale.value})"
        )

    def filter(self, predicate: Predicate, description: Optional[str] = None) -> "PolygonDataSource":
        """Return a new source refined by an attribute predicate.

        Args:
            predicate: Called with each record's attribute row; keeps the
                record when it returns True
            description: Text used in error messages

        Returns:
            New PolygonDataSource with the predicate added
        """
        description = description or getattr(predicate, "__name__", "predicate")
        return PolygonDataSource(
            directory=self.directory,
            scale=self.scale,
            theme=self.theme,
            name=self.config.name,
            filters=self.filters + ((predicate, description),)
        )

    def where(self, column: str, value) -> "PolygonDataSource":
        """Shortcut for an attribute equality filter.

        Example:
            >>> greenland = PolygonDataSource("./data/ne").where("NAME", "Greenland")
        """
        return self.filter(lambda row: row.get(column) == value, f"{column} == {value!r}")

    def load(self) -> gpd.GeoDataFrame:
        """Load the polygons and apply filters.

        Raises:
            FileNotFoundError: If the tier's file doesn't exist
            SourceNotFound: If no record survives the filters
        """
        path = Path(self.config.path)
        if not path.exists():
            raise FileNotFoundError(f"Polygon dataset not found: {path}")

        data = gpd.read_file(str(path))

        if self.filters and not data.empty:
            mask = pd.Series(True, index=data.index)
            for predicate, _ in self.filters:
                mask &= data.apply(lambda row: bool(predicate(row)), axis=1).astype(bool)
            data = data[mask].reset_index(drop=True)

        if data.empty:
            detail = " and ".join(desc for _, desc in self.filters) or "dataset is empty"
            raise SourceNotFound(self.config.name, detail)

        logger.info("Loaded %d polygon(s) from %s", len(data), self.config.name)
        return data

    def get_config(self) -> SourceConfig:
        return self.config


class ShapefileSource(DataSource):
    """Vector border/polygon file read through GeoPandas.

    No CRS is guessed. A Shapefile shipped without its ``.prj`` sidecar
    loads with ``crs is None`` and stays that way until a caller declares
    it with ``crs.assign_crs``.
    """

    def __init__(self, path: str, layer: Optional[str] = None, name: Optional[str] = None):
        self.config = SourceConfig(
            path=path,
            kind=SourceKind.SHAPEFILE,
            name=name,
            layer=layer
        )

    def load(self) -> gpd.GeoDataFrame:
        """Load the vector file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the requested layer doesn't exist
            SourceNotFound: If the file holds no records
        """
        path = Path(self.config.path)
        if not path.exists():
            raise FileNotFoundError(f"Border file not found: {path}")

        if self.config.layer is not None:
            available_layers = fiona.listlayers(str(path))
            if self.config.layer not in available_layers:
                raise ValueError(
                    f"Layer '{self.config.layer}' not found. "
                    f"Available layers: {available_layers}"
                )
            data = gpd.read_file(str(path), layer=self.config.layer)
        else:
            data = gpd.read_file(str(path))

        if data.empty:
            raise SourceNotFound(self.config.name, "file holds no records")

        if data.crs is None:
            logger.info(
                "Loaded %d feature(s) from %s with no CRS metadata",
                len(data), self.config.name
            )
        else:
            logger.info("Loaded %d feature(s) from %s", len(data), self.config.name)
        return data

    def list_layers(self) -> List[str]:
        """List the layers available in the file."""
        return fiona.listlayers(self.config.path)

    def get_config(self) -> SourceConfig:
        return self.config


class WktCsvSource(DataSource):
    """Point (or other) features from CSV files with a WKT geometry column.

    All files in ``directory`` matching ``pattern`` share one schema. They
    are read in file-name order and concatenated. Rows with a blank
    geometry are dropped, rows whose WKT fails to parse are skipped; both
    are logged and recorded in ``diagnostics``. CSV carries no CRS, so the
    result always has ``crs is None``.
    """

    def __init__(
        self,
        directory: str,
        pattern: str = "*.csv",
        wkt_column: str = "shape_wkt",
        name: Optional[str] = None,
        max_workers: int = 1
    ):
        """Initialize the WKT CSV source.

        Args:
            directory: Directory holding the CSV files
            pattern: Glob pattern selecting the files (e.g. "localities_*.csv")
            wkt_column: Column holding the WKT geometry
            name: Human-readable name
            max_workers: Files read concurrently; results keep file order
        """
        self.config = SourceConfig(
            path=directory,
            kind=SourceKind.WKT_CSV,
            name=name or f"{Path(directory).name}/{pattern}"
        )
        self.pattern = pattern
        self.wkt_column = wkt_column
        self.max_workers = max(1, max_workers)
        self.diagnostics: List[SkippedRow] = []

    def list_files(self) -> List[Path]:
        """Files matching the pattern, sorted by name."""
        return sorted(Path(self.config.path).glob(self.pattern), key=lambda p: p.name)

    def load(self) -> gpd.GeoDataFrame:
        """Read, parse and concatenate every matching file.

        Raises:
            FileNotFoundError: If the directory doesn't exist
            SourceNotFound: If no file matches the pattern
            ValueError: If a file lacks the WKT column
        """
        directory = Path(self.config.path)
        if not directory.is_dir():
            raise FileNotFoundError(f"CSV directory not found: {directory}")

        files = self.list_files()
        if not files:
            raise SourceNotFound(self.config.name, f"no files match '{self.pattern}'")

        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(self._read_file, files))
        else:
            results = [self._read_file(path) for path in files]

        self.diagnostics = [skip for _, skipped in results for skip in skipped]
        frames = [frame for frame, _ in results if not frame.empty]

        if frames:
            data = pd.concat(frames, ignore_index=True)
        else:
            data = results[0][0]

        gdf = gpd.GeoDataFrame(data, geometry="geometry", crs=None)
        logger.info(
            "Loaded %d feature(s) from %d file(s) in %s, skipped %d row(s)",
            len(gdf), len(files), self.config.name, len(self.diagnostics)
        )
        return gdf

    def _read_file(self, path: Path) -> Tuple[pd.DataFrame, List[SkippedRow]]:
        """Parse one CSV file into rows with shapely geometries."""
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
        if self.wkt_column not in frame.columns:
            raise ValueError(
                f"Missing column '{self.wkt_column}' in {path}. "
                f"Available columns: {list(frame.columns)}"
            )

        skipped: List[SkippedRow] = []
        keep: List[int] = []
        geometries = []

        for position, raw in enumerate(frame[self.wkt_column]):
            # Header is line 1, so data rows start at line 2
            line = position + 2
            if pd.isna(raw) or not str(raw).strip():
                reason = "empty geometry"
                logger.warning("Skipping %s line %d: %s", path.name, line, reason)
                skipped.append(SkippedRow(str(path), line, reason))
                continue
            try:
                geometry = shapely.wkt.loads(str(raw))
            except (ShapelyError, ValueError) as exc:
                error = MalformedGeometry(str(path), line, str(raw), str(exc))
                logger.warning("Skipping %s line %d: %s", path.name, line, error)
                skipped.append(SkippedRow(str(path), line, str(error)))
                continue
            keep.append(position)
            geometries.append(geometry)

        rows = frame.iloc[keep].drop(columns=[self.wkt_column]).reset_index(drop=True)
        rows["geometry"] = pd.Series(geometries, dtype=object)
        return rows, skipped

    def get_config(self) -> SourceConfig:
        return self.config


class TableSource(DataSource):
    """Plain CSV table without geometry, used as a join source."""

    def __init__(
        self,
        path: str,
        required_columns: Sequence[str] = (),
        name: Optional[str] = None,
        dtype=str
    ):
        """Initialize the table source.

        Args:
            path: Path to the CSV file
            required_columns: Columns that must be present
            name: Human-readable name
            dtype: dtype passed to pandas; strings keep fixed-width codes intact
        """
        self.config = SourceConfig(path=path, kind=SourceKind.TABLE, name=name)
        self.required_columns = list(required_columns)
        self.dtype = dtype

    def load(self) -> pd.DataFrame:
        """Load the table.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If required columns are missing
        """
        path = Path(self.config.path)
        if not path.exists():
            raise FileNotFoundError(f"Table not found: {path}")

        table = pd.read_csv(path, dtype=self.dtype)

        missing = [col for col in self.required_columns if col not in table.columns]
        if missing:
            raise ValueError(
                f"Missing columns in table '{self.config.name}': {missing}. "
                f"Available columns: {list(table.columns)}"
            )

        logger.info("Loaded %d row(s) from table %s", len(table), self.config.name)
        return table

    def get_config(self) -> SourceConfig:
        return self.config


def load_dataset(
    path: str,
    kind: Union[SourceKind, str] = SourceKind.SHAPEFILE,
    **options
) -> Union[gpd.GeoDataFrame, pd.DataFrame]:
    """Convenience function to load one source of any kind.

    Args:
        path: File or directory path (directory for polygon datasets and
            WKT CSV sets)
        kind: Source kind (SourceKind member or its value)
        **options: Passed to the source constructor

    Returns:
        Loaded GeoDataFrame, or DataFrame for tables

    Example:
        >>> points = load_dataset(
        ...     "./data/localities",
        ...     kind="wkt_csv",
        ...     pattern="localities_*.csv"
        ... )
    """
    kind = SourceKind(kind)
    sources = {
        SourceKind.POLYGON_DATASET: PolygonDataSource,
        SourceKind.SHAPEFILE: ShapefileSource,
        SourceKind.WKT_CSV: WktCsvSource,
        SourceKind.TABLE: TableSource,
    }
    source = sources[kind](path, **options)
    return source.load()
