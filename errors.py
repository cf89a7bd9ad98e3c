"""
Exception taxonomy for the layer-composition pipeline.

Per-record data problems (malformed WKT, unmatched join keys) are recovered
where they occur. The exceptions below that are raised signal either a
missing source or a caller logic error, and carry enough context to
diagnose it.
"""

from typing import Iterable, Optional, Union


class GeoLayersError(Exception):
    """Base class for all pipeline errors."""


class SourceNotFound(GeoLayersError, LookupError):
    """Raised when a source (or a filter over it) yields zero records."""

    def __init__(self, source: str, detail: Optional[str] = None):
        self.source = source
        self.detail = detail
        message = f"No records found in source '{source}'"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class MalformedGeometry(GeoLayersError, ValueError):
    """A non-empty WKT value that could not be parsed."""

    def __init__(self, source: str, row: int, wkt: str, reason: str):
        self.source = source
        self.row = row
        self.wkt = wkt
        self.reason = reason
        preview = wkt if len(wkt) <= 40 else wkt[:37] + "..."
        super().__init__(
            f"Malformed geometry in '{source}' row {row}: {preview!r} ({reason})"
        )


class InvalidCrs(GeoLayersError, ValueError):
    """Raised when a CRS code is not a registered EPSG code."""

    def __init__(self, crs_id):
        self.crs_id = crs_id
        super().__init__(f"'{crs_id}' is not a registered EPSG code")


class CrsAlreadySet(GeoLayersError, ValueError):
    """Raised when assigning a CRS to a collection that already declares one.

    ``current`` is the EPSG code of the declared CRS, or its name when it
    has no EPSG equivalent.
    """

    def __init__(self, current: Union[int, str], requested: int, source: Optional[str] = None):
        self.current = current
        self.requested = requested
        self.source = source
        where = f" for '{source}'" if source else ""
        label = f"EPSG:{current}" if isinstance(current, int) else repr(current)
        super().__init__(
            f"CRS already set to {label}{where}; refusing to assign "
            f"EPSG:{requested}. Use reproject() to transform coordinates."
        )


class UnknownSourceCrs(GeoLayersError, ValueError):
    """Raised when reprojecting a collection whose CRS was never declared."""

    def __init__(self, source: Optional[str] = None):
        self.source = source
        where = f" '{source}'" if source else ""
        super().__init__(
            f"Collection{where} has no CRS; assign one before reprojecting"
        )


class DuplicateLayerName(GeoLayersError, ValueError):
    """Raised when appending a layer whose name is already in the stack."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Layer '{name}' already exists in the stack")


class StyleReferenceError(GeoLayersError, ValueError):
    """Raised when a layer style names columns absent from its collection."""

    def __init__(self, layer: str, missing: Iterable[str], available: Iterable[str]):
        self.layer = layer
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(
            f"Style for layer '{layer}' references missing columns "
            f"{self.missing}. Available columns: {self.available}"
        )


class EmptyLayerStack(GeoLayersError, ValueError):
    """Raised when rendering a stack with no layers."""

    def __init__(self):
        super().__init__("Cannot render an empty layer stack")


class CategoryMappingError(GeoLayersError, ValueError):
    """Raised when raw category codes are absent from the configured mapping."""

    def __init__(self, column: str, unknown: Iterable, known: Iterable):
        self.column = column
        self.unknown = sorted(str(code) for code in unknown)
        self.known = sorted(str(code) for code in known)
        super().__init__(
            f"Column '{column}' contains codes {self.unknown} not in the "
            f"category mapping (known codes: {self.known})"
        )
