"""Core data structures and enums for mixed-type clustering."""

import logging
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

MISSING_CODE = -1


class SchemaError(ValueError):
    """Raised when records do not fit the attribute schema.

    Schema problems are rejected before any clustering begins: duplicate or
    malformed attributes, values of the wrong type, attributes with no
    observed value, and record pairs with no jointly observed attribute.
    """


class DegeneratePartitionError(RuntimeError):
    """Raised when a requested partition cannot be produced."""


class AttributeKind(Enum):
    """Attribute types understood by the dissimilarity engine."""

    NUMERIC = "numeric"  # Real-valued, compared by range-normalized difference
    CATEGORICAL = "categorical"  # Unordered levels, compared by equality


class ClusteringMethod(Enum):
    """Clustering algorithms that produce cluster assignments."""

    HIERARCHICAL = "hierarchical"  # Agglomerative Ward clustering on Gower
    KPROTOTYPES = "kprototypes"  # Partitional clustering on raw records


@dataclass(frozen=True)
class Attribute:
    """A named, typed column of a dataset."""

    name: str
    kind: AttributeKind

    @property
    def is_numeric(self) -> bool:
        return self.kind == AttributeKind.NUMERIC

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"name": self.name, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attribute":
        """Create from dictionary."""
        return cls(name=data["name"], kind=AttributeKind(data["kind"]))


def is_missing(value: Any) -> bool:
    """True for None, NaN and pandas missing markers."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    # pandas.NA / pandas.NaT compare as neither equal nor unequal to themselves
    try:
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def _coerce_numeric(value: Any, attribute: str, row: int) -> float:
    if is_missing(value):
        return np.nan
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise SchemaError(
            f"Attribute '{attribute}' is numeric but record {row} holds "
            f"{value!r} ({type(value).__name__})"
        )
    result = float(value)
    if math.isinf(result):
        raise SchemaError(
            f"Attribute '{attribute}' holds a non-finite value in record {row}"
        )
    return result


class Dataset:
    """An immutable, ordered collection of records sharing one schema.

    Numeric attributes are stored column-wise as a float matrix with NaN for
    missing values. Categorical attributes are stored as integer codes into
    a per-attribute tuple of levels sorted lexicographically, with -1 for
    missing values. Both arrays are read-only once the dataset is built.

    Args:
        attributes: Ordered attribute schema
        records: Sequence of records, each a sequence of values in schema order
        record_ids: Optional identifiers kept alongside, never clustered on

    Raises:
        SchemaError: If the records do not fit the schema
    """

    def __init__(
        self,
        attributes: Sequence[Attribute],
        records: Sequence[Sequence[Any]],
        record_ids: Optional[Sequence[Any]] = None,
    ):
        attributes = tuple(attributes)
        self._validate_schema(attributes)

        rows = [tuple(record) for record in records]
        for row_index, row in enumerate(rows):
            if len(row) != len(attributes):
                raise SchemaError(
                    f"Record {row_index} has {len(row)} values, "
                    f"expected {len(attributes)}"
                )

        numeric_positions = [i for i, a in enumerate(attributes) if a.is_numeric]
        categorical_positions = [
            i for i, a in enumerate(attributes) if not a.is_numeric
        ]

        numeric = np.empty((len(rows), len(numeric_positions)), dtype=float)
        for col, pos in enumerate(numeric_positions):
            name = attributes[pos].name
            for row_index, row in enumerate(rows):
                numeric[row_index, col] = _coerce_numeric(row[pos], name, row_index)

        codes = np.full((len(rows), len(categorical_positions)), MISSING_CODE, dtype=np.int64)
        levels: List[Tuple[str, ...]] = []
        for col, pos in enumerate(categorical_positions):
            values = [None if is_missing(row[pos]) else str(row[pos]) for row in rows]
            column_levels = tuple(sorted({v for v in values if v is not None}))
            lookup = {level: code for code, level in enumerate(column_levels)}
            for row_index, value in enumerate(values):
                if value is not None:
                    codes[row_index, col] = lookup[value]
            levels.append(column_levels)

        self._init_arrays(attributes, numeric, codes, tuple(levels), record_ids)

    @classmethod
    def from_arrays(
        cls,
        attributes: Sequence[Attribute],
        numeric: np.ndarray,
        codes: np.ndarray,
        levels: Sequence[Tuple[str, ...]],
        record_ids: Optional[Sequence[Any]] = None,
    ) -> "Dataset":
        """Build a dataset directly from its column-wise arrays.

        Args:
            attributes: Ordered attribute schema
            numeric: (n, p_numeric) float matrix, NaN for missing
            codes: (n, p_categorical) integer codes into ``levels``, -1 for missing
            levels: Sorted levels of each categorical attribute

        Returns:
            Dataset sharing nothing mutable with the inputs
        """
        attributes = tuple(attributes)
        cls._validate_schema(attributes)
        numeric = np.array(numeric, dtype=float, copy=True)
        codes = np.array(codes, dtype=np.int64, copy=True)
        n_numeric = sum(1 for a in attributes if a.is_numeric)
        n_categorical = len(attributes) - n_numeric

        if numeric.ndim != 2 or codes.ndim != 2:
            raise SchemaError("numeric and codes must be two-dimensional")
        if numeric.shape[1] != n_numeric or codes.shape[1] != n_categorical:
            raise SchemaError(
                f"Array widths ({numeric.shape[1]}, {codes.shape[1]}) do not match "
                f"schema ({n_numeric} numeric, {n_categorical} categorical)"
            )
        if numeric.shape[0] != codes.shape[0]:
            raise SchemaError("numeric and codes must have the same number of rows")
        if len(levels) != n_categorical:
            raise SchemaError("One level tuple is required per categorical attribute")
        for col, column_levels in enumerate(levels):
            column = codes[:, col]
            if np.any((column < MISSING_CODE) | (column >= len(column_levels))):
                raise SchemaError(f"Category codes out of range in column {col}")

        dataset = cls.__new__(cls)
        dataset._init_arrays(
            attributes,
            numeric,
            codes,
            tuple(tuple(str(v) for v in lv) for lv in levels),
            record_ids,
        )
        return dataset

    def _init_arrays(
        self,
        attributes: Tuple[Attribute, ...],
        numeric: np.ndarray,
        codes: np.ndarray,
        levels: Tuple[Tuple[str, ...], ...],
        record_ids: Optional[Sequence[Any]],
    ) -> None:
        n_records = numeric.shape[0]
        if n_records == 0:
            raise SchemaError("Dataset must contain at least one record")
        if record_ids is not None:
            record_ids = tuple(record_ids)
            if len(record_ids) != n_records:
                raise SchemaError(
                    f"Got {len(record_ids)} record ids for {n_records} records"
                )

        numeric_attrs = [a for a in attributes if a.is_numeric]
        categorical_attrs = [a for a in attributes if not a.is_numeric]
        for col, attr in enumerate(numeric_attrs):
            if np.all(np.isnan(numeric[:, col])):
                raise SchemaError(f"Attribute '{attr.name}' has no observed values")
        for col, attr in enumerate(categorical_attrs):
            if np.all(codes[:, col] == MISSING_CODE):
                raise SchemaError(f"Attribute '{attr.name}' has no observed values")

        numeric.setflags(write=False)
        codes.setflags(write=False)
        self._attributes = attributes
        self._numeric = numeric
        self._codes = codes
        self._levels = levels
        self._record_ids = record_ids

    @staticmethod
    def _validate_schema(attributes: Tuple[Attribute, ...]) -> None:
        if not attributes:
            raise SchemaError("Dataset schema must contain at least one attribute")
        seen = set()
        for attr in attributes:
            if not isinstance(attr, Attribute) or not isinstance(attr.kind, AttributeKind):
                raise SchemaError(f"Invalid attribute definition: {attr!r}")
            if attr.name in seen:
                raise SchemaError(f"Duplicate attribute name: '{attr.name}'")
            seen.add(attr.name)

    @property
    def attributes(self) -> Tuple[Attribute, ...]:
        return self._attributes

    @property
    def numeric_attributes(self) -> Tuple[Attribute, ...]:
        return tuple(a for a in self._attributes if a.is_numeric)

    @property
    def categorical_attributes(self) -> Tuple[Attribute, ...]:
        return tuple(a for a in self._attributes if not a.is_numeric)

    @property
    def numeric(self) -> np.ndarray:
        """Read-only (n, p_numeric) matrix, NaN where missing."""
        return self._numeric

    @property
    def categorical_codes(self) -> np.ndarray:
        """Read-only (n, p_categorical) level codes, -1 where missing."""
        return self._codes

    @property
    def levels(self) -> Tuple[Tuple[str, ...], ...]:
        return self._levels

    @property
    def record_ids(self) -> Optional[Tuple[Any, ...]]:
        return self._record_ids

    @property
    def n_records(self) -> int:
        return self._numeric.shape[0]

    @property
    def n_attributes(self) -> int:
        return len(self._attributes)

    def __len__(self) -> int:
        return self.n_records

    def record(self, index: int) -> Tuple[Any, ...]:
        """Return record ``index`` as a tuple in schema order (None = missing)."""
        values: List[Any] = []
        num_col = 0
        cat_col = 0
        for attr in self._attributes:
            if attr.is_numeric:
                value = self._numeric[index, num_col]
                values.append(None if np.isnan(value) else float(value))
                num_col += 1
            else:
                code = self._codes[index, cat_col]
                values.append(
                    None if code == MISSING_CODE else self._levels[cat_col][code]
                )
                cat_col += 1
        return tuple(values)

    def records(self) -> Iterator[Tuple[Any, ...]]:
        for index in range(self.n_records):
            yield self.record(index)

    def column(self, name: str) -> List[Any]:
        """Return the values of attribute ``name`` for every record."""
        for position, attr in enumerate(self._attributes):
            if attr.name == name:
                return [self.record(i)[position] for i in range(self.n_records)]
        raise KeyError(f"Unknown attribute: {name}")

    def __repr__(self) -> str:
        return (
            f"Dataset(n_records={self.n_records}, "
            f"numeric={len(self.numeric_attributes)}, "
            f"categorical={len(self.categorical_attributes)})"
        )


def relabel_by_first_appearance(labels: np.ndarray) -> Tuple[np.ndarray, List[int]]:
    """
    Renumber cluster labels in order of first appearance.

    Args:
        labels: Arbitrary non-negative integer labels

    Returns:
        Tuple of (renumbered labels, original label for each new id)
    """
    labels = np.asarray(labels)
    order: List[int] = []
    mapping: Dict[int, int] = {}
    for label in labels.tolist():
        if label not in mapping:
            mapping[label] = len(order)
            order.append(label)
    renumbered = np.array([mapping[label] for label in labels.tolist()], dtype=np.int64)
    return renumbered, order


@dataclass(frozen=True, eq=False)
class ClusterAssignment:
    """Mapping from record index to cluster id in [0, k).

    Assignments are read-only; algorithms produce a new one per run.
    """

    labels: np.ndarray
    k: int
    method: ClusteringMethod

    def __post_init__(self):
        labels = np.array(self.labels, dtype=np.int64, copy=True)
        if labels.ndim != 1:
            raise ValueError("labels must be one-dimensional")
        if self.k < 1:
            raise ValueError("k must be >= 1")
        if labels.size and (labels.min() < 0 or labels.max() >= self.k):
            raise ValueError(f"labels must lie in [0, {self.k})")
        labels.setflags(write=False)
        object.__setattr__(self, "labels", labels)

    @property
    def n_records(self) -> int:
        return int(self.labels.shape[0])

    def sizes(self) -> List[int]:
        """Number of records in each cluster, indexed by cluster id."""
        return np.bincount(self.labels, minlength=self.k).tolist()

    def members(self, cluster_id: int) -> List[int]:
        """Record indices assigned to ``cluster_id``."""
        return np.flatnonzero(self.labels == cluster_id).tolist()

    def as_clusters(self) -> Dict[int, List[int]]:
        return {cluster_id: self.members(cluster_id) for cluster_id in range(self.k)}

    def same_partition(self, other: "ClusterAssignment") -> bool:
        """True if both assignments group the records identically."""
        if self.n_records != other.n_records:
            return False
        mine, _ = relabel_by_first_appearance(self.labels)
        theirs, _ = relabel_by_first_appearance(other.labels)
        return bool(np.array_equal(mine, theirs))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "method": self.method.value,
            "k": self.k,
            "labels": self.labels.tolist(),
            "sizes": self.sizes(),
        }


@dataclass
class Prototype:
    """Per-cluster representative of the k-prototypes engine.

    Holds the mean of each numeric attribute and the mode of each
    categorical attribute (as a level code, -1 if no member observed it).
    """

    cluster_id: int
    numeric: np.ndarray
    categorical: np.ndarray
    size: int = 0

    def describe(self, dataset: Dataset) -> Dict[str, Any]:
        """Map attribute names to prototype values for reporting."""
        values: Dict[str, Any] = {}
        for col, attr in enumerate(dataset.numeric_attributes):
            value = self.numeric[col]
            values[attr.name] = None if np.isnan(value) else float(value)
        for col, attr in enumerate(dataset.categorical_attributes):
            code = int(self.categorical[col])
            values[attr.name] = None if code == MISSING_CODE else dataset.levels[col][code]
        return values

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "cluster_id": self.cluster_id,
            "numeric": [None if np.isnan(v) else float(v) for v in self.numeric],
            "categorical": [int(c) for c in self.categorical],
            "size": self.size,
        }


@dataclass(frozen=True)
class MergeStep:
    """One agglomeration in a merge tree.

    Node ids follow the SciPy linkage convention: leaves are 0..n-1 and the
    cluster created by merge ``i`` has id ``n + i``.
    """

    left: int
    right: int
    height: float
    size: int
