"""
Cluster-count selection over a Gower dissimilarity matrix.

Three procedures are offered, all driven by one Ward merge tree that is cut
at every candidate k:

- the within-cluster dispersion curve W(k), returned as data for visual
  elbow inspection,
- the average silhouette width S(k), with its argmax as recommendation,
- the gap statistic, comparing log W(k) against uniform reference data.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from .cluster_config import ClusteringConfig
from .cluster_metrics import average_silhouette, within_cluster_dispersion
from .cluster_types import MISSING_CODE, Dataset
from .dissimilarity import DissimilarityMatrix, dissimilarity_matrix
from .strategies.hierarchical import MergeTree, build_merge_tree

logger = logging.getLogger(__name__)


@dataclass
class DispersionCurve:
    """Within-cluster dispersion W(k) for k = 1..K_max."""

    k_values: List[int]
    dispersion: List[float]

    def as_pairs(self) -> List[Tuple[int, float]]:
        return list(zip(self.k_values, self.dispersion))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"k": list(self.k_values), "dispersion": list(self.dispersion)}


@dataclass
class SilhouetteResult:
    """Average silhouette width S(k) for k = 2..K_max and its argmax."""

    k_values: List[int]
    scores: List[float]
    recommended_k: int

    def as_pairs(self) -> List[Tuple[int, float]]:
        return list(zip(self.k_values, self.scores))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "k": list(self.k_values),
            "silhouette": list(self.scores),
            "recommended_k": self.recommended_k,
        }


@dataclass
class GapStatisticResult:
    """Gap statistic curve for k = 1..K_max.

    ``converged`` is False when no k in [1, K_max - 1] satisfies
    Gap(k) >= Gap(k + 1) - sd(k + 1); ``recommended_k`` is then K_max.
    """

    k_values: List[int]
    gap: List[float]
    sd: List[float]
    log_dispersion: List[float]
    reference_log_dispersion: List[float]
    recommended_k: int
    converged: bool
    n_references: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "k": list(self.k_values),
            "gap": list(self.gap),
            "sd": list(self.sd),
            "log_dispersion": list(self.log_dispersion),
            "reference_log_dispersion": list(self.reference_log_dispersion),
            "recommended_k": self.recommended_k,
            "converged": self.converged,
            "n_references": self.n_references,
        }


@dataclass
class AdvisorReport:
    """Everything the advisor computed for one dataset."""

    max_candidate_k: int
    dispersion: DispersionCurve
    silhouette: SilhouetteResult
    gap: Optional[GapStatisticResult] = None

    @property
    def recommended_k(self) -> int:
        """The silhouette recommendation, the only automatic pick."""
        return self.silhouette.recommended_k

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_candidate_k": self.max_candidate_k,
            "recommended_k": self.recommended_k,
            "dispersion": self.dispersion.to_dict(),
            "silhouette": self.silhouette.to_dict(),
            "gap": self.gap.to_dict() if self.gap is not None else None,
        }


def _log_dispersion(values: np.ndarray) -> np.ndarray:
    """Natural log of dispersions, flooring zeros at the smallest positive float."""
    values = np.asarray(values, dtype=float)
    floor = np.finfo(float).tiny
    if np.any(values < floor):
        logger.warning("Within-cluster dispersion of 0 floored before taking its log")
        values = np.maximum(values, floor)
    return np.log(values)


def uniform_reference(dataset: Dataset, rng: np.random.Generator) -> Dataset:
    """
    Draw a reference dataset with the schema and size of ``dataset``.

    Numeric attributes are uniform over their observed [min, max];
    categorical attributes are uniform over their observed levels. The
    reference has no missing values.

    Args:
        dataset: Observed dataset
        rng: Generator to draw from

    Returns:
        New Dataset of the same shape
    """
    n = dataset.n_records
    observed_numeric = dataset.numeric
    numeric = np.empty_like(observed_numeric)
    for col in range(observed_numeric.shape[1]):
        column = observed_numeric[:, col]
        numeric[:, col] = rng.uniform(np.nanmin(column), np.nanmax(column), size=n)

    observed_codes = dataset.categorical_codes
    codes = np.empty_like(observed_codes)
    for col in range(observed_codes.shape[1]):
        column = observed_codes[:, col]
        support = np.unique(column[column != MISSING_CODE])
        codes[:, col] = rng.choice(support, size=n)

    return Dataset.from_arrays(dataset.attributes, numeric, codes, dataset.levels)


class ClusterCountAdvisor:
    """
    Recommend a number of clusters for a dataset.

    Args:
        config: Clustering configuration (max_candidate_k, compute_gap,
            reference_resamples, random_seed and parallel_workers are used)
        show_progress: Show a progress bar over gap reference datasets

    Example:
        >>> advisor = ClusterCountAdvisor(ClusteringConfig(max_candidate_k=8))
        >>> report = advisor.advise(dataset)
        >>> report.silhouette.recommended_k
        3
    """

    def __init__(self, config: Optional[ClusteringConfig] = None, show_progress: bool = False):
        self.config = config or ClusteringConfig()
        if not self.config.validate():
            raise ValueError(
                f"Invalid clustering configuration: {self.config.validation_errors()}"
            )
        self.show_progress = show_progress

    def effective_max_k(self, n_records: int) -> int:
        """
        Largest candidate k usable for ``n_records`` records.

        Raises:
            ValueError: If there are fewer than 3 records
        """
        if n_records < 3:
            raise ValueError(
                f"Cluster-count selection needs at least 3 records, got {n_records}"
            )
        max_k = self.config.max_candidate_k
        if max_k > n_records - 1:
            logger.warning(
                f"max_candidate_k={max_k} exceeds n - 1 for {n_records} records; "
                f"using {n_records - 1}"
            )
            max_k = n_records - 1
        if max_k > n_records / 2:
            logger.warning(
                f"max_candidate_k={max_k} is large for {n_records} records; "
                f"statistics for large k are unstable"
            )
        return max_k

    def dispersion_curve(
        self,
        matrix: DissimilarityMatrix,
        tree: Optional[MergeTree] = None,
        max_k: Optional[int] = None,
    ) -> DispersionCurve:
        """Within-cluster dispersion for k = 1..K_max, cutting one tree."""
        if max_k is None:
            max_k = self.effective_max_k(matrix.n)
        if tree is None:
            tree = build_merge_tree(matrix)
        k_values = list(range(1, max_k + 1))
        dispersion = [within_cluster_dispersion(matrix, tree.cut(k)) for k in k_values]
        return DispersionCurve(k_values=k_values, dispersion=dispersion)

    def silhouette_curve(
        self,
        matrix: DissimilarityMatrix,
        tree: Optional[MergeTree] = None,
        max_k: Optional[int] = None,
    ) -> SilhouetteResult:
        """Average silhouette for k = 2..K_max; the smallest best k is recommended."""
        if max_k is None:
            max_k = self.effective_max_k(matrix.n)
        if tree is None:
            tree = build_merge_tree(matrix)
        k_values = list(range(2, max_k + 1))
        scores = [average_silhouette(matrix, tree.cut(k)) for k in k_values]
        recommended_k = k_values[int(np.argmax(scores))]
        logger.info(f"Silhouette recommends k={recommended_k}")
        return SilhouetteResult(k_values=k_values, scores=scores, recommended_k=recommended_k)

    def gap_statistic(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
        tree: Optional[MergeTree] = None,
        max_k: Optional[int] = None,
    ) -> GapStatisticResult:
        """
        Gap statistic for k = 1..K_max.

        Every reference dataset gets its own Gower matrix and Ward tree.
        Reference b draws from the b-th child of the configured seed, so the
        result does not depend on the number of workers.

        Args:
            dataset: Observed dataset
            matrix: Optional prebuilt Gower matrix of ``dataset``
            tree: Optional prebuilt merge tree of ``matrix``
            max_k: Largest k, already clamped by ``effective_max_k``

        Returns:
            GapStatisticResult; a non-converged rule is flagged, not raised
        """
        if matrix is None:
            matrix = dissimilarity_matrix(dataset)
        if max_k is None:
            max_k = self.effective_max_k(dataset.n_records)
        if tree is None:
            tree = build_merge_tree(matrix)
        k_values = list(range(1, max_k + 1))

        observed = np.array([within_cluster_dispersion(matrix, tree.cut(k)) for k in k_values])
        log_w = _log_dispersion(observed)

        n_references = self.config.reference_resamples
        logger.info(f"Computing gap statistic with {n_references} reference datasets "
                    f"for k = 1..{max_k}")
        reference = self._reference_log_dispersions(dataset, k_values, n_references)

        reference_mean = reference.mean(axis=0)
        if n_references > 1:
            sd = reference.std(axis=0, ddof=1) * math.sqrt(1.0 + 1.0 / n_references)
        else:
            sd = np.zeros(len(k_values))
        gap = reference_mean - log_w

        recommended_k = max_k
        converged = False
        for index in range(len(k_values) - 1):
            if gap[index] >= gap[index + 1] - sd[index + 1]:
                recommended_k = k_values[index]
                converged = True
                break

        if converged:
            logger.info(f"Gap statistic recommends k={recommended_k}")
        else:
            logger.warning(
                f"Gap statistic rule did not converge for k <= {max_k}; "
                f"reporting k={max_k}"
            )

        return GapStatisticResult(
            k_values=k_values,
            gap=gap.tolist(),
            sd=sd.tolist(),
            log_dispersion=log_w.tolist(),
            reference_log_dispersion=reference_mean.tolist(),
            recommended_k=recommended_k,
            converged=converged,
            n_references=n_references,
        )

    def advise(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
        tree: Optional[MergeTree] = None,
    ) -> AdvisorReport:
        """
        Run every enabled procedure on one shared matrix and tree.

        The gap statistic only runs when ``compute_gap`` is set.
        """
        if matrix is None:
            matrix = dissimilarity_matrix(dataset)
        max_k = self.effective_max_k(matrix.n)
        if tree is None:
            tree = build_merge_tree(matrix)

        dispersion = self.dispersion_curve(matrix, tree, max_k)
        silhouette = self.silhouette_curve(matrix, tree, max_k)
        gap = None
        if self.config.compute_gap:
            gap = self.gap_statistic(dataset, matrix, tree, max_k)

        return AdvisorReport(
            max_candidate_k=max_k,
            dispersion=dispersion,
            silhouette=silhouette,
            gap=gap,
        )

    def _reference_log_dispersions(
        self,
        dataset: Dataset,
        k_values: List[int],
        n_references: int,
    ) -> np.ndarray:
        seeds = np.random.SeedSequence(self.config.random_seed).spawn(n_references)
        results = np.empty((n_references, len(k_values)))
        workers = min(self.config.resolved_workers(), n_references)

        with tqdm(total=n_references, desc="Reference datasets", unit="ref",
                  disable=not self.show_progress) as pbar:
            if workers > 1:
                with ThreadPoolExecutor(max_workers=workers) as executor:
                    future_to_index = {
                        executor.submit(self._reference_curve, dataset, k_values, seed): index
                        for index, seed in enumerate(seeds)
                    }
                    for future in as_completed(future_to_index):
                        results[future_to_index[future]] = future.result()
                        pbar.update(1)
            else:
                for index, seed in enumerate(seeds):
                    results[index] = self._reference_curve(dataset, k_values, seed)
                    pbar.update(1)

        return results

    def _reference_curve(
        self,
        dataset: Dataset,
        k_values: List[int],
        seed: np.random.SeedSequence,
    ) -> np.ndarray:
        reference = uniform_reference(dataset, np.random.default_rng(seed))
        matrix = dissimilarity_matrix(reference)
        tree = build_merge_tree(matrix)
        dispersion = [within_cluster_dispersion(matrix, tree.cut(k)) for k in k_values]
        return _log_dispersion(np.array(dispersion))
