"""Hierarchical clustering strategy implementation."""

import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple
import logging
from scipy.cluster.hierarchy import cophenet

from .base import ClusteringStrategy, ClusteringResult
from ..cluster_types import (
    ClusterAssignment,
    ClusteringMethod,
    Dataset,
    DegeneratePartitionError,
    MergeStep,
    relabel_by_first_appearance,
)
from ..dissimilarity import DissimilarityMatrix, dissimilarity_matrix

logger = logging.getLogger(__name__)


class MergeTree:
    """
    Immutable dendrogram produced by agglomerative clustering.

    Holds the n - 1 merges of an n-leaf tree in the order they happened,
    with non-decreasing heights. Partitions for any k are derived by
    ``cut`` without touching the merges, so one tree serves every k.
    """

    def __init__(self, n_leaves: int, steps: Sequence[MergeStep]):
        steps = tuple(steps)
        if n_leaves < 1:
            raise ValueError("A merge tree needs at least one leaf")
        if len(steps) != n_leaves - 1:
            raise ValueError(
                f"A tree with {n_leaves} leaves needs {n_leaves - 1} merges, got {len(steps)}"
            )
        self._n_leaves = n_leaves
        self._steps = steps

    @property
    def n_leaves(self) -> int:
        return self._n_leaves

    @property
    def steps(self) -> Tuple[MergeStep, ...]:
        return self._steps

    @property
    def heights(self) -> np.ndarray:
        return np.array([step.height for step in self._steps], dtype=float)

    def __len__(self) -> int:
        return len(self._steps)

    def cut(self, k: int) -> np.ndarray:
        """
        Cluster labels obtained by stopping the agglomeration at k clusters.

        Args:
            k: Number of clusters, 1 <= k <= n

        Returns:
            Labels in [0, k), numbered by first appearance in record order

        Raises:
            DegeneratePartitionError: If k is outside [1, n]
        """
        n = self._n_leaves
        if k < 1 or k > n:
            raise DegeneratePartitionError(
                f"Cannot cut a tree with {n} leaves into {k} clusters"
            )

        parent = list(range(2 * n - 1))
        for index, step in enumerate(self._steps[: n - k]):
            parent[step.left] = n + index
            parent[step.right] = n + index

        def root(node: int) -> int:
            path = []
            while parent[node] != node:
                path.append(node)
                node = parent[node]
            for visited in path:
                parent[visited] = node
            return node

        roots = np.array([root(leaf) for leaf in range(n)], dtype=np.int64)
        labels, _ = relabel_by_first_appearance(roots)
        return labels

    def assignment(self, k: int) -> ClusterAssignment:
        """Cut at k and wrap the labels as a ClusterAssignment."""
        return ClusterAssignment(self.cut(k), k, ClusteringMethod.HIERARCHICAL)

    def cut_height(self, k: int) -> Optional[float]:
        """Height of the highest merge undone by cutting at k (None for k = 1)."""
        if k < 2 or k > self._n_leaves:
            return None
        return float(self._steps[self._n_leaves - k].height)

    def to_linkage_matrix(self) -> np.ndarray:
        """Return the tree as a SciPy linkage matrix of shape (n - 1, 4)."""
        if not self._steps:
            return np.zeros((0, 4), dtype=float)
        return np.array(
            [[step.left, step.right, step.height, step.size] for step in self._steps],
            dtype=float,
        )

    def cophenetic_correlation(self, matrix: DissimilarityMatrix) -> float:
        """Correlation between tree heights and the original dissimilarities."""
        if self._n_leaves < 3:
            return 0.0
        try:
            correlation, _ = cophenet(self.to_linkage_matrix(), matrix.condensed())
            return float(correlation)
        except (ValueError, FloatingPointError) as e:
            logger.warning(f"Failed to compute cophenetic correlation: {e}")
            return 0.0

    def __repr__(self) -> str:
        return f"MergeTree(n_leaves={self._n_leaves})"


def build_merge_tree(matrix: DissimilarityMatrix) -> MergeTree:
    """
    Agglomerate records bottom-up with Ward's minimum-variance criterion.

    Works on squared dissimilarities and updates cluster distances with the
    Lance-Williams recurrence

        d(AB, C) = ((nA + nC) d(A, C) + (nB + nC) d(B, C) - nC d(A, B)) / (nA + nB + nC)

    reporting merge heights as square roots. Cluster slots are indexed by
    their lowest record index, and ties at the minimum are resolved in
    favour of the lexicographically smallest (slot, slot) pair.

    Args:
        matrix: Gower (or any) dissimilarity matrix

    Returns:
        MergeTree with n - 1 merges
    """
    n = matrix.n
    logger.info(f"Building Ward merge tree for {n} records")
    if n == 1:
        return MergeTree(1, [])

    work = np.square(matrix.values)
    np.fill_diagonal(work, np.inf)
    active = np.ones(n, dtype=bool)
    sizes = np.ones(n, dtype=float)
    node_ids = np.arange(n)
    steps: List[MergeStep] = []
    previous_height = 0.0

    for step_index in range(n - 1):
        minimum = work.min()
        threshold = minimum + 1e-12 * max(1.0, abs(minimum))
        # row-major first hit is the smallest (i, j) pair with i < j
        flat = int(np.argmax(work.ravel() <= threshold))
        i, j = divmod(flat, n)
        if i > j:
            i, j = j, i
        merged = float(work[i, j])

        # rounding can make a Ward height dip by a few ulps
        height = max(float(np.sqrt(max(merged, 0.0))), previous_height)
        previous_height = height
        size_i, size_j = sizes[i], sizes[j]
        merged_size = size_i + size_j

        left, right = sorted((int(node_ids[i]), int(node_ids[j])))
        steps.append(MergeStep(left=left, right=right, height=height, size=int(merged_size)))

        others = active.copy()
        others[[i, j]] = False
        if np.any(others):
            size_k = sizes[others]
            updated = (
                (size_i + size_k) * work[i, others]
                + (size_j + size_k) * work[j, others]
                - size_k * merged
            ) / (merged_size + size_k)
            work[i, others] = updated
            work[others, i] = updated

        active[j] = False
        work[j, :] = np.inf
        work[:, j] = np.inf
        sizes[i] = merged_size
        node_ids[i] = n + step_index
        logger.debug(f"Merge {step_index}: slots ({i}, {j}) at height {height:.6f}")

    return MergeTree(n, steps)


class HierarchicalStrategy(ClusteringStrategy):
    """
    Agglomerative Ward clustering over a Gower dissimilarity matrix.

    The merge tree is built once per matrix and cut at ``n_clusters``.
    The tree is returned in the result metadata so further cuts need no
    rebuild.

    Parameters:
        n_clusters: Number of clusters to form (required, >= 1)

    Example:
        >>> strategy = HierarchicalStrategy(n_clusters=3)
        >>> result = strategy.cluster(dataset)
        >>> tree = result.metadata['merge_tree']
        >>> tree.cut(4)
    """

    @property
    def name(self) -> str:
        """Strategy name."""
        return "hierarchical"

    def validate_params(self) -> None:
        """Validate strategy parameters."""
        self.params.setdefault('n_clusters', None)

        if self.params['n_clusters'] is None:
            raise ValueError("n_clusters must be specified")

        if self.params['n_clusters'] < 1:
            raise ValueError("n_clusters must be >= 1")

    def cluster(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
        tree: Optional[MergeTree] = None,
    ) -> ClusteringResult:
        """
        Perform hierarchical clustering on a dataset.

        Args:
            dataset: Records to cluster
            matrix: Optional prebuilt Gower matrix of ``dataset``
            tree: Optional prebuilt merge tree of ``matrix``

        Returns:
            ClusteringResult with the cut, metrics and the merge tree

        Raises:
            DegeneratePartitionError: If n_clusters exceeds the number of records
        """
        if matrix is None:
            matrix = dissimilarity_matrix(dataset)
        if matrix.n != dataset.n_records:
            raise ValueError("Dissimilarity matrix does not match the dataset")
        if tree is None:
            tree = build_merge_tree(matrix)

        n_clusters = self.params['n_clusters']
        assignment = tree.assignment(n_clusters)

        metrics = self._compute_metrics(matrix, assignment.labels)
        metrics['cophenetic_correlation'] = tree.cophenetic_correlation(matrix)
        metrics['max_merge_height'] = float(tree.heights[-1]) if len(tree) else 0.0

        metadata: Dict = {
            'linkage_method': 'ward.D2',
            'metric': 'gower',
            'merge_tree': tree,
            'params': self.params.copy(),
        }
        cut_height = tree.cut_height(n_clusters)
        if cut_height is not None:
            metadata['cut_height'] = cut_height

        logger.info(f"Hierarchical clustering produced {n_clusters} clusters "
                    f"with sizes {assignment.sizes()}")

        return ClusteringResult(
            assignment=assignment,
            metrics=metrics,
            metadata=metadata,
        )
