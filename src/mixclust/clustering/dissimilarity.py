"""
Gower dissimilarity for records of mixed numeric and categorical type.

Numeric attributes contribute their absolute difference divided by the
attribute's observed range; categorical attributes contribute 0 on a match
and 1 on a mismatch. The distance between two records is the mean of the
contributions over the attributes both records observe. Numeric attributes
with zero range carry no information and are left out of the mean.
"""

import logging
from typing import Any, Dict, Mapping, Sequence

import numpy as np
from scipy.spatial.distance import squareform

from .cluster_types import Attribute, Dataset, SchemaError, is_missing

logger = logging.getLogger(__name__)


def attribute_ranges(dataset: Dataset) -> Dict[str, float]:
    """
    Compute max - min of every numeric attribute over its observed values.

    Args:
        dataset: Dataset to scan

    Returns:
        Dict mapping numeric attribute name to its range
    """
    ranges = {}
    numeric = dataset.numeric
    for col, attr in enumerate(dataset.numeric_attributes):
        column = numeric[:, col]
        ranges[attr.name] = float(np.nanmax(column) - np.nanmin(column))
    return ranges


def gower_distance(
    a: Sequence[Any],
    b: Sequence[Any],
    attributes: Sequence[Attribute],
    ranges: Mapping[str, float],
) -> float:
    """
    Gower distance between two records.

    Args:
        a: First record, values in schema order (None for missing)
        b: Second record, values in schema order (None for missing)
        attributes: Schema shared by both records
        ranges: Range of each numeric attribute, see ``attribute_ranges``

    Returns:
        Dissimilarity in [0, 1]

    Raises:
        SchemaError: If the records share no usable observed attribute
    """
    if len(a) != len(attributes) or len(b) != len(attributes):
        raise SchemaError("Records must have one value per attribute")

    total = 0.0
    weight = 0
    for attr, x, y in zip(attributes, a, b):
        if is_missing(x) or is_missing(y):
            continue
        if attr.is_numeric:
            value_range = ranges[attr.name]
            if value_range == 0:
                continue
            total += abs(float(x) - float(y)) / value_range
        else:
            total += 0.0 if str(x) == str(y) else 1.0
        weight += 1

    if weight == 0:
        raise SchemaError("Records have no jointly observed attribute to compare")
    return total / weight


class DissimilarityMatrix:
    """Symmetric, read-only n x n matrix of pairwise dissimilarities.

    Built once per dataset and shared between the hierarchical engine and
    the cluster-count advisor.
    """

    def __init__(self, values: np.ndarray):
        values = np.array(values, dtype=float, copy=True)
        if values.ndim != 2 or values.shape[0] != values.shape[1]:
            raise ValueError(f"Dissimilarity matrix must be square, got {values.shape}")
        if not np.allclose(values, values.T):
            raise ValueError("Dissimilarity matrix must be symmetric")
        if np.any(np.diag(values) != 0):
            raise ValueError("Dissimilarity matrix must have a zero diagonal")
        if np.any(values < 0):
            raise ValueError("Dissimilarities must be non-negative")
        values.setflags(write=False)
        self._values = values

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def n(self) -> int:
        return self._values.shape[0]

    def __len__(self) -> int:
        return self.n

    def __getitem__(self, index):
        return self._values[index]

    def condensed(self) -> np.ndarray:
        """Upper triangle in SciPy's condensed form."""
        return squareform(self._values, checks=False)

    def submatrix(self, indices: Sequence[int]) -> np.ndarray:
        indices = np.asarray(indices, dtype=np.int64)
        return self._values[np.ix_(indices, indices)]

    def __repr__(self) -> str:
        return f"DissimilarityMatrix(n={self.n})"


class GowerDissimilarity:
    """
    Batch Gower engine over a whole dataset.

    Attribute ranges are computed once at construction and reused for every
    pair. The full matrix is built column by column in O(n^2 * p).

    Example:
        >>> engine = GowerDissimilarity(dataset)
        >>> matrix = engine.matrix()
        >>> engine.distance(0, 1) == matrix[0, 1]
        True
    """

    def __init__(self, dataset: Dataset):
        self.dataset = dataset
        self.ranges = attribute_ranges(dataset)
        self._range_array = np.array(
            [self.ranges[a.name] for a in dataset.numeric_attributes], dtype=float
        )

        constant = [name for name, r in self.ranges.items() if r == 0]
        if constant:
            logger.warning(f"Numeric attributes with zero range are ignored: {constant}")

    def distance(self, i: int, j: int) -> float:
        """Gower distance between records ``i`` and ``j`` of the dataset."""
        if i == j:
            return 0.0
        return gower_distance(
            self.dataset.record(i),
            self.dataset.record(j),
            self.dataset.attributes,
            self.ranges,
        )

    def matrix(self) -> DissimilarityMatrix:
        """
        Build the full pairwise matrix.

        Returns:
            DissimilarityMatrix with entries in [0, 1]

        Raises:
            SchemaError: If any pair of records has no jointly observed attribute
        """
        n = self.dataset.n_records
        logger.info(
            f"Computing Gower dissimilarity for {n} records "
            f"and {self.dataset.n_attributes} attributes"
        )

        total = np.zeros((n, n), dtype=float)
        weight = np.zeros((n, n), dtype=float)

        numeric = self.dataset.numeric
        for col, value_range in enumerate(self._range_array):
            if value_range == 0:
                continue
            column = numeric[:, col]
            observed = ~np.isnan(column)
            both = observed[:, None] & observed[None, :]
            diff = np.abs(column[:, None] - column[None, :]) / value_range
            total += np.where(both, diff, 0.0)
            weight += both

        codes = self.dataset.categorical_codes
        for col in range(codes.shape[1]):
            column = codes[:, col]
            observed = column >= 0
            both = observed[:, None] & observed[None, :]
            total += both & (column[:, None] != column[None, :])
            weight += both

        unusable = weight == 0
        np.fill_diagonal(unusable, False)
        if np.any(unusable):
            i, j = np.argwhere(unusable)[0]
            raise SchemaError(
                f"Records {int(i)} and {int(j)} have no jointly observed attribute; "
                f"{int(unusable.sum() // 2)} pair(s) affected"
            )

        with np.errstate(invalid="ignore", divide="ignore"):
            values = np.where(weight > 0, total / np.where(weight > 0, weight, 1.0), 0.0)
        np.fill_diagonal(values, 0.0)
        return DissimilarityMatrix(values)


def dissimilarity_matrix(dataset: Dataset) -> DissimilarityMatrix:
    """Build the Gower dissimilarity matrix of ``dataset``."""
    return GowerDissimilarity(dataset).matrix()
