"""
Coordinate reference system reconciliation.

Two distinct operations are kept apart here: declaring which CRS a
collection's coordinates are in (assign_crs), and transforming coordinates
from one declared CRS into another (reproject). A collection whose CRS was
never declared has ``crs is None`` and cannot be reprojected until a caller
assigns one.
"""

from typing import Optional

import geopandas as gpd
from pyproj import CRS
from pyproj.exceptions import CRSError

from errors import CrsAlreadySet, InvalidCrs, UnknownSourceCrs
from logging_config import get_logger

logger = get_logger("crs")

WGS84 = 4326
WEB_MERCATOR = 3857

# Marker for a collection without declared CRS
UNKNOWN_CRS = None


def validate_crs_id(crs_id: int) -> CRS:
    """Resolve an EPSG code to a pyproj CRS.

    Raises:
        InvalidCrs: If the code is not a registered EPSG code
    """
    if isinstance(crs_id, bool) or not isinstance(crs_id, int):
        raise InvalidCrs(crs_id)
    try:
        return CRS.from_epsg(crs_id)
    except CRSError as exc:
        raise InvalidCrs(crs_id) from exc


def crs_id_of(data: gpd.GeoDataFrame) -> Optional[int]:
    """Return the EPSG code of a collection's declared CRS.

    A declared CRS without an exact match (an ESRI .prj, for example)
    reports its closest registered code. None means either no CRS was
    declared or nothing registered matches (a custom proj string). Use
    has_crs, not this code, to decide whether a CRS is known.
    """
    if data.crs is None:
        return UNKNOWN_CRS
    code = data.crs.to_epsg()
    if code is None:
        code = data.crs.to_epsg(min_confidence=20)
    return code


def has_crs(data: gpd.GeoDataFrame) -> bool:
    """True when the collection declares a CRS, EPSG-registered or not."""
    return data.crs is not None


def crs_label(data: gpd.GeoDataFrame) -> str:
    """Human-readable name of a collection's CRS for logs and errors."""
    if data.crs is None:
        return "unknown"
    code = data.crs.to_epsg()
    return f"EPSG:{code}" if code is not None else data.crs.name


def is_projected(crs_id: int) -> bool:
    return validate_crs_id(crs_id).is_projected


def is_geographic(crs_id: int) -> bool:
    return validate_crs_id(crs_id).is_geographic


def assign_crs(
    data: gpd.GeoDataFrame,
    crs_id: int,
    source: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Declare the CRS of a collection that has none.

    Coordinates are left untouched; only the reference system is stamped.

    Args:
        data: Collection whose CRS is unknown
        crs_id: EPSG code describing the existing coordinates
        source: Optional identifier used in error messages

    Returns:
        A new GeoDataFrame with the CRS set

    Raises:
        CrsAlreadySet: If the collection already declares a CRS
        InvalidCrs: If crs_id is not a registered code
    """
    validate_crs_id(crs_id)
    if has_crs(data):
        current = data.crs.to_epsg()
        raise CrsAlreadySet(current if current is not None else data.crs.name, crs_id, source)

    logger.debug("Assigning EPSG:%s to %s (%d features)", crs_id, source or "collection", len(data))
    return data.set_crs(epsg=crs_id, inplace=False)


def reproject(
    data: gpd.GeoDataFrame,
    target_crs_id: int,
    source: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Transform a collection's coordinates into another CRS.

    Args:
        data: Collection with a declared CRS
        target_crs_id: EPSG code to transform into
        source: Optional identifier used in error messages

    Returns:
        A new GeoDataFrame in the target CRS (an identity copy when the
        collection is already there)

    Raises:
        UnknownSourceCrs: If the collection has no CRS
        InvalidCrs: If target_crs_id is not a registered code
    """
    target = validate_crs_id(target_crs_id)
    if not has_crs(data):
        raise UnknownSourceCrs(source)

    # Exact EPSG match only; a low-confidence guess must not skip the transform
    if data.crs.to_epsg() == target_crs_id or data.crs == target:
        return data.copy()

    logger.debug(
        "Reprojecting %s from %s to EPSG:%s",
        source or "collection", crs_label(data), target_crs_id
    )
    return data.to_crs(target)
