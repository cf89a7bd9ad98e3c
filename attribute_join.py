"""
Attribute-key joins between feature collections and plain tables.

This module attaches columns from an external table (e.g. population
figures) to features by a derived key, and derives category labels from
raw codes through an explicit mapping.
"""

from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Union
)

import geopandas as gpd
import pandas as pd

from errors import CategoryMappingError
from logging_config import get_logger

logger = get_logger("attribute_join")

# Value attached to features without a matching table row
MISSING = pd.NA

KeyFunc = Callable[[Mapping[str, Any]], Optional[Hashable]]
KeySpec = Union[str, KeyFunc]
ValueSpec = Union[str, Callable[[Mapping[str, Any]], Any]]
Table = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]

DEFAULT_CATEGORIES: Dict[str, str] = {"1": "Town", "2": "Settlement"}


def _is_null(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def suffix_key(column: str, width: int) -> KeyFunc:
    """Key function taking the trailing ``width`` characters of a field.

    Null fields yield a None key, which never matches.

    Example:
        >>> key = suffix_key("locality", 4)
        >>> key({"locality": "Nuuk 0600"})
        '0600'
    """
    if width <= 0:
        raise ValueError("width must be > 0")

    def key(row: Mapping[str, Any]) -> Optional[str]:
        value = row.get(column)
        if _is_null(value):
            return None
        text = str(value).strip()
        return text[-width:] if text else None

    key.__name__ = f"suffix_key({column!r}, {width})"
    return key


def _as_key_func(key: KeySpec) -> KeyFunc:
    if callable(key):
        return key
    return lambda row: None if _is_null(row.get(key)) else row.get(key)


def _as_value_func(spec: ValueSpec) -> Callable[[Mapping[str, Any]], Any]:
    if callable(spec):
        return spec
    return lambda row: row.get(spec)


def _records(table: Table) -> List[Mapping[str, Any]]:
    if isinstance(table, pd.DataFrame):
        return table.to_dict("records")
    return list(table)


@dataclass(frozen=True)
class PopulationRecord:
    """Population figure for one locality.

    Attributes:
        locality_code: Fixed-width locality key
        population: Non-negative head count
    """
    locality_code: str
    population: int

    def __post_init__(self):
        if not isinstance(self.locality_code, str) or not self.locality_code:
            raise ValueError(f"Invalid locality code: {self.locality_code!r}")
        if isinstance(self.population, bool) or not isinstance(self.population, int):
            raise ValueError(
                f"Population for {self.locality_code} must be an integer, "
                f"got {self.population!r}"
            )
        if self.population < 0:
            raise ValueError(
                f"Population for {self.locality_code} must be >= 0, "
                f"got {self.population}"
            )

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        code_column: str = "locality",
        count_column: str = "n",
        key_width: Optional[int] = None
    ) -> "PopulationRecord":
        """Build a record from one table row.

        Args:
            row: Table row
            code_column: Column holding the locality code/name
            count_column: Column holding the head count
            key_width: If set, keep only this many trailing characters of
                the code

        Raises:
            ValueError: If the code is empty or the count isn't a
                non-negative integer
        """
        raw_code = row.get(code_column)
        code = "" if _is_null(raw_code) else str(raw_code).strip()
        if key_width:
            code = code[-key_width:]

        raw_count = row.get(count_column)
        if _is_null(raw_count):
            raise ValueError(f"Missing population for locality {code!r}")
        if isinstance(raw_count, str):
            try:
                raw_count = int(raw_count.strip())
            except ValueError as exc:
                raise ValueError(
                    f"Population for locality {code!r} is not an integer: {raw_count!r}"
                ) from exc
        elif hasattr(raw_count, "item"):
            # numpy scalars
            raw_count = raw_count.item()
        return cls(locality_code=code, population=raw_count)


def population_lookup(
    table: Table,
    code_column: str = "locality",
    count_column: str = "n",
    key_width: Optional[int] = None
) -> Dict[str, PopulationRecord]:
    """Index a population table by locality code, first row wins."""
    lookup: Dict[str, PopulationRecord] = {}
    for row in _records(table):
        record = PopulationRecord.from_row(row, code_column, count_column, key_width)
        lookup.setdefault(record.locality_code, record)
    return lookup


def population_value(code_column: str = "locality", count_column: str = "n") -> Callable:
    """Value function extracting a validated population from a table row."""
    def value(row: Mapping[str, Any]) -> int:
        return PopulationRecord.from_row(row, code_column, count_column).population

    return value


@dataclass
class JoinResult:
    """Result of an attribute join.

    Attributes:
        data: Collection with the new columns attached
        new_columns: Names of the attached columns
        matched: Number of features that found a table row
        unmatched: Number of features left with MISSING values
    """
    data: gpd.GeoDataFrame
    new_columns: List[str]
    matched: int
    unmatched: int


class AttributeJoiner:
    """Left-joins table columns onto feature collections.

    The table is indexed once by ``table_key``; when several rows share a
    key the first one wins. Joining never drops or duplicates features.
    """

    def __init__(self, table: Table, table_key: KeySpec):
        """Initialize the joiner.

        Args:
            table: DataFrame or iterable of row mappings
            table_key: Column name or function deriving each row's key
        """
        key_func = _as_key_func(table_key)
        self._index: Dict[Hashable, Mapping[str, Any]] = {}
        duplicates = 0
        for row in _records(table):
            key = key_func(row)
            if key is None:
                continue
            if key in self._index:
                duplicates += 1
                continue
            self._index[key] = row
        if duplicates:
            logger.debug("Join table has %d duplicate key(s); first rows kept", duplicates)

    def __len__(self) -> int:
        return len(self._index)

    def lookup(self, key: Hashable) -> Optional[Mapping[str, Any]]:
        return self._index.get(key)

    def join(
        self,
        collection: gpd.GeoDataFrame,
        collection_key: KeySpec,
        new_columns: Mapping[str, ValueSpec]
    ) -> JoinResult:
        """Attach new columns to every feature.

        A matched row whose values fail validation (ValueError) is logged
        and treated as unmatched.

        Args:
            collection: Features to enrich
            collection_key: Column name or function deriving each feature's key
            new_columns: Output column name -> table column name or
                function of the matched table row

        Returns:
            JoinResult with a new GeoDataFrame in the original order

        Raises:
            ValueError: If an output column already exists in the collection
        """
        clashes = [name for name in new_columns if name in collection.columns]
        if clashes:
            raise ValueError(
                f"Columns {clashes} already exist in the collection. "
                f"Available columns: {list(collection.columns)}"
            )

        key_func = _as_key_func(collection_key)
        value_funcs = {name: _as_value_func(spec) for name, spec in new_columns.items()}
        values: Dict[str, List[Any]] = {name: [] for name in new_columns}

        attributes = pd.DataFrame(collection.drop(columns=collection.geometry.name))
        matched = 0
        for feature in attributes.to_dict("records"):
            key = key_func(feature)
            row = self._index.get(key) if key is not None else None
            joined = None
            if row is not None:
                try:
                    joined = {name: func(row) for name, func in value_funcs.items()}
                except ValueError as exc:
                    logger.warning("Dropping table row for key %r: %s", key, exc)
            if joined is not None:
                matched += 1
            for name in value_funcs:
                values[name].append(MISSING if joined is None else joined[name])

        result = collection.copy()
        for name, column in values.items():
            result[name] = pd.array(column) if column else pd.array([], dtype=object)

        unmatched = len(result) - matched
        logger.info(
            "Joined %s onto %d feature(s): %d matched, %d unmatched",
            list(new_columns), len(result), matched, unmatched
        )
        return JoinResult(
            data=result,
            new_columns=list(new_columns),
            matched=matched,
            unmatched=unmatched
        )


def left_join(
    collection: gpd.GeoDataFrame,
    table: Table,
    collection_key: KeySpec,
    table_key: KeySpec,
    new_columns: Mapping[str, ValueSpec]
) -> gpd.GeoDataFrame:
    """Convenience function for a one-off attribute left join.

    Example:
        >>> localities = left_join(
        ...     collection=points,
        ...     table=population,
        ...     collection_key=suffix_key("code", 4),
        ...     table_key=suffix_key("locality", 4),
        ...     new_columns={"population": population_value("locality", "n")}
        ... )
    """
    joiner = AttributeJoiner(table, table_key)
    return joiner.join(collection, collection_key, new_columns).data


def classify(
    collection: gpd.GeoDataFrame,
    source_column: str,
    target_column: str,
    mapping: Optional[Mapping[Any, str]] = None
) -> gpd.GeoDataFrame:
    """Derive a category column from raw codes.

    Codes are compared as stripped strings, so ``1`` and ``"1"`` map the
    same way. Null codes become MISSING.

    Args:
        collection: Features to classify
        source_column: Column holding raw codes
        target_column: Column to write labels to
        mapping: Raw code -> label (defaults to Town/Settlement)

    Raises:
        KeyError: If source_column is absent
        CategoryMappingError: If any non-null code is not in the mapping
    """
    mapping = DEFAULT_CATEGORIES if mapping is None else mapping
    table = {str(code).strip(): label for code, label in mapping.items()}

    if source_column not in collection.columns:
        raise KeyError(
            f"Column '{source_column}' not found. "
            f"Available columns: {list(collection.columns)}"
        )

    codes = [
        None if _is_null(value) else str(value).strip()
        for value in collection[source_column]
    ]
    unknown = {code for code in codes if code is not None and code not in table}
    if unknown:
        raise CategoryMappingError(source_column, unknown, table)

    result = collection.copy()
    result[target_column] = pd.array(
        [MISSING if code is None else table[code] for code in codes],
        dtype="string"
    )
    return result
