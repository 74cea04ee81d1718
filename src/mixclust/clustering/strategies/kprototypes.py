"""K-prototypes clustering strategy for mixed numeric/categorical records."""

import numpy as np
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
import logging

from .base import ClusteringStrategy, ClusteringResult
from ..cluster_types import (
    MISSING_CODE,
    ClusterAssignment,
    ClusteringMethod,
    Dataset,
    DegeneratePartitionError,
    Prototype,
    relabel_by_first_appearance,
)
from ..dissimilarity import DissimilarityMatrix

logger = logging.getLogger(__name__)

SeedLike = Union[int, np.random.SeedSequence]


def estimate_balancing_weight(dataset: Dataset) -> float:
    """
    Estimate the weight of categorical mismatches against numeric cost.

    The weight is the mean sample variance of the numeric attributes
    divided by the mean concentration (1 - sum of squared level
    frequencies) of the categorical attributes. Without categorical
    attributes, or when every categorical attribute is constant, the mean
    numeric variance is used; without numeric attributes the weight is 1.

    Args:
        dataset: Dataset to estimate from

    Returns:
        Non-negative balancing weight
    """
    numeric = dataset.numeric
    codes = dataset.categorical_codes
    if numeric.shape[1] == 0:
        return 1.0

    variances = []
    for col in range(numeric.shape[1]):
        observed = numeric[:, col][~np.isnan(numeric[:, col])]
        variances.append(float(np.var(observed, ddof=1)) if observed.size > 1 else 0.0)
    mean_variance = float(np.mean(variances))

    if codes.shape[1] == 0:
        return mean_variance

    concentrations = []
    for col in range(codes.shape[1]):
        observed = codes[:, col][codes[:, col] != MISSING_CODE]
        frequencies = np.bincount(observed) / observed.size
        concentrations.append(1.0 - float(np.sum(frequencies ** 2)))
    mean_concentration = float(np.mean(concentrations))

    if mean_concentration == 0:
        return mean_variance
    return mean_variance / mean_concentration


def _cost_matrix(
    numeric: np.ndarray,
    codes: np.ndarray,
    proto_numeric: np.ndarray,
    proto_categorical: np.ndarray,
    balancing_weight: float,
) -> np.ndarray:
    """Cost of placing every record (rows) with every prototype (columns)."""
    diff = numeric[:, None, :] - proto_numeric[None, :, :]
    numeric_cost = np.where(np.isnan(diff), 0.0, diff ** 2).sum(axis=2)

    observed = (codes[:, None, :] != MISSING_CODE) & (proto_categorical[None, :, :] != MISSING_CODE)
    mismatches = (observed & (codes[:, None, :] != proto_categorical[None, :, :])).sum(axis=2)
    return numeric_cost + balancing_weight * mismatches


def kprototypes_cost(
    dataset: Dataset,
    labels: np.ndarray,
    proto_numeric: np.ndarray,
    proto_categorical: np.ndarray,
    balancing_weight: float,
) -> float:
    """
    Total k-prototypes cost of a partition.

    Sum over records of the squared numeric differences to their prototype
    plus ``balancing_weight`` times the number of mismatched categorical
    attributes. Missing values on either side contribute nothing.
    """
    labels = np.asarray(labels, dtype=np.int64)
    costs = _cost_matrix(
        dataset.numeric,
        dataset.categorical_codes,
        np.asarray(proto_numeric, dtype=float),
        np.asarray(proto_categorical, dtype=np.int64),
        balancing_weight,
    )
    return float(costs[np.arange(labels.shape[0]), labels].sum())


def _fill_unobserved(
    numeric: np.ndarray,
    codes: np.ndarray,
    proto_numeric: np.ndarray,
    proto_categorical: np.ndarray,
    n_levels: List[int],
) -> Tuple[np.ndarray, np.ndarray]:
    """Replace missing prototype values with the column mean or mode."""
    proto_numeric = proto_numeric.copy()
    proto_categorical = proto_categorical.copy()
    for col in range(numeric.shape[1]):
        gaps = np.isnan(proto_numeric[:, col])
        if np.any(gaps):
            proto_numeric[gaps, col] = np.nanmean(numeric[:, col])
    for col in range(codes.shape[1]):
        gaps = proto_categorical[:, col] == MISSING_CODE
        if np.any(gaps):
            observed = codes[:, col][codes[:, col] != MISSING_CODE]
            proto_categorical[gaps, col] = int(
                np.argmax(np.bincount(observed, minlength=n_levels[col]))
            )
    return proto_numeric, proto_categorical


def _update_prototypes(
    numeric: np.ndarray,
    codes: np.ndarray,
    labels: np.ndarray,
    previous_numeric: np.ndarray,
    previous_categorical: np.ndarray,
    n_levels: List[int],
) -> Tuple[np.ndarray, np.ndarray]:
    """Mean/mode of each cluster's members.

    An attribute no member observes keeps its previous prototype value.
    """
    proto_numeric = previous_numeric.astype(float, copy=True)
    proto_categorical = previous_categorical.astype(np.int64, copy=True)

    for cluster_id in range(proto_numeric.shape[0]):
        members = labels == cluster_id
        block = numeric[members]
        observed = ~np.isnan(block)
        counts = observed.sum(axis=0)
        sums = np.where(observed, block, 0.0).sum(axis=0)
        proto_numeric[cluster_id] = np.where(
            counts > 0, sums / np.maximum(counts, 1), proto_numeric[cluster_id]
        )

        for col in range(codes.shape[1]):
            values = codes[members, col]
            values = values[values != MISSING_CODE]
            if values.size:
                # argmax takes the lowest code, i.e. the smallest level, on ties
                proto_categorical[cluster_id, col] = int(
                    np.argmax(np.bincount(values, minlength=n_levels[col]))
                )

    return proto_numeric, proto_categorical


@dataclass
class RestartOutcome:
    """Converged state of one k-prototypes restart."""

    restart: int
    labels: np.ndarray
    proto_numeric: np.ndarray
    proto_categorical: np.ndarray
    cost: float
    iterations: int
    attempts: int
    cost_history: List[float] = field(default_factory=list)


def _spawn_seeds(seed: SeedLike, count: int) -> List[np.random.SeedSequence]:
    """Independent child seeds, the same on every call for the same seed."""
    if isinstance(seed, np.random.SeedSequence):
        base = np.random.SeedSequence(
            seed.entropy, spawn_key=seed.spawn_key, pool_size=seed.pool_size
        )
    else:
        base = np.random.SeedSequence(seed)
    return base.spawn(count)


class KPrototypesStrategy(ClusteringStrategy):
    """
    K-prototypes clustering on raw mixed-type records.

    Each restart samples k distinct records as initial prototypes and then
    alternates nearest-prototype assignment with mean/mode updates until no
    record moves. Restarts that empty a cluster are retried with fresh draws.
    The lowest-cost restart wins, ties going to the lowest restart index.

    Parameters:
        n_clusters: Number of clusters (required, >= 1)
        restarts: Independent random restarts (default: 25)
        max_iterations: Iteration cap per restart (default: 100)
        balancing_weight: Categorical mismatch weight, None = estimate (default: None)
        random_seed: int or numpy SeedSequence (default: 42)
        parallel_workers: Threads running restarts (default: 1)
        max_retries: Attempts per restart before it is discarded (default: 10)

    Example:
        >>> strategy = KPrototypesStrategy(n_clusters=3, random_seed=7)
        >>> result = strategy.cluster(dataset)
        >>> print(result.metrics['cost'])
    """

    @property
    def name(self) -> str:
        """Strategy name."""
        return "kprototypes"

    def validate_params(self) -> None:
        """Validate strategy parameters."""
        self.params.setdefault('n_clusters', None)
        self.params.setdefault('restarts', 25)
        self.params.setdefault('max_iterations', 100)
        self.params.setdefault('balancing_weight', None)
        self.params.setdefault('random_seed', 42)
        self.params.setdefault('parallel_workers', 1)
        self.params.setdefault('max_retries', 10)

        if self.params['n_clusters'] is None:
            raise ValueError("n_clusters must be specified")

        if self.params['n_clusters'] < 1:
            raise ValueError("n_clusters must be >= 1")

        if self.params['restarts'] < 1:
            raise ValueError("restarts must be >= 1")

        if self.params['max_iterations'] < 1:
            raise ValueError("max_iterations must be >= 1")

        weight = self.params['balancing_weight']
        if weight is not None and weight < 0:
            raise ValueError("balancing_weight must be >= 0")

        if self.params['parallel_workers'] < 1:
            raise ValueError("parallel_workers must be >= 1")

        if self.params['max_retries'] < 1:
            raise ValueError("max_retries must be >= 1")

    def cluster(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
    ) -> ClusteringResult:
        """
        Perform k-prototypes clustering on a dataset.

        Args:
            dataset: Records to cluster
            matrix: Optional Gower matrix, used only for quality metrics

        Returns:
            ClusteringResult with the best restart's assignment and prototypes

        Raises:
            DegeneratePartitionError: If k exceeds the number of records or
                every restart emptied a cluster
        """
        n = dataset.n_records
        k = self.params['n_clusters']
        if k > n:
            raise DegeneratePartitionError(
                f"Cannot form {k} clusters from {n} records"
            )

        weight = self.params['balancing_weight']
        if weight is None:
            weight = estimate_balancing_weight(dataset)
        weight = float(weight)

        restarts = self.params['restarts']
        seeds = _spawn_seeds(self.params['random_seed'], restarts)
        logger.info(f"Running k-prototypes with k={k}, {restarts} restarts, "
                    f"lambda={weight:.4g}")

        outcomes = self._run_restarts(dataset, k, weight, seeds)
        completed = [outcome for outcome in outcomes if outcome is not None]
        if not completed:
            raise DegeneratePartitionError(
                f"All {restarts} k-prototypes restarts produced an empty cluster for k={k}"
            )

        best = min(completed, key=lambda outcome: (outcome.cost, outcome.restart))
        logger.info(f"Best restart {best.restart} with cost {best.cost:.6g} "
                    f"after {best.iterations} iterations")

        labels, order = relabel_by_first_appearance(best.labels)
        proto_numeric = best.proto_numeric[order]
        proto_categorical = best.proto_categorical[order]
        assignment = ClusterAssignment(labels, k, ClusteringMethod.KPROTOTYPES)
        sizes = assignment.sizes()
        prototypes = [
            Prototype(
                cluster_id=cluster_id,
                numeric=proto_numeric[cluster_id].copy(),
                categorical=proto_categorical[cluster_id].copy(),
                size=sizes[cluster_id],
            )
            for cluster_id in range(k)
        ]

        metrics = self._compute_metrics(matrix, labels)
        metrics['cost'] = best.cost
        metrics['iterations'] = best.iterations
        metrics['failed_restarts'] = restarts - len(completed)
        metrics['balancing_weight'] = weight

        return ClusteringResult(
            assignment=assignment,
            metrics=metrics,
            metadata={
                'best_restart': best.restart,
                'cost_history': list(best.cost_history),
                'restart_costs': [
                    None if outcome is None else outcome.cost for outcome in outcomes
                ],
                'restart_attempts': [
                    self.params['max_retries'] if outcome is None else outcome.attempts
                    for outcome in outcomes
                ],
                'prototypes': prototypes,
                'params': {key: value for key, value in self.params.items()
                           if key != 'random_seed'},
            },
        )

    def _run_restarts(
        self,
        dataset: Dataset,
        k: int,
        weight: float,
        seeds: List[np.random.SeedSequence],
    ) -> List[Optional[RestartOutcome]]:
        """Run every restart, in parallel when more than one worker is set."""
        workers = min(self.params['parallel_workers'], len(seeds))
        outcomes: List[Optional[RestartOutcome]] = [None] * len(seeds)

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                future_to_restart = {
                    executor.submit(self._run_restart, dataset, k, weight, restart, seed): restart
                    for restart, seed in enumerate(seeds)
                }
                for future in as_completed(future_to_restart):
                    outcomes[future_to_restart[future]] = future.result()
        else:
            for restart, seed in enumerate(seeds):
                outcomes[restart] = self._run_restart(dataset, k, weight, restart, seed)

        return outcomes

    def _run_restart(
        self,
        dataset: Dataset,
        k: int,
        weight: float,
        restart: int,
        seed: np.random.SeedSequence,
    ) -> Optional[RestartOutcome]:
        """Run one restart, retrying with new draws after an empty cluster."""
        rng = np.random.default_rng(seed)
        max_retries = self.params['max_retries']
        for attempt in range(1, max_retries + 1):
            outcome = self._attempt(dataset, k, weight, restart, rng)
            if outcome is not None:
                outcome.attempts = attempt
                return outcome
            logger.debug(f"Restart {restart} attempt {attempt} emptied a cluster")

        logger.warning(f"Discarding restart {restart}: every one of {max_retries} "
                       f"attempts produced an empty cluster")
        return None

    def _attempt(
        self,
        dataset: Dataset,
        k: int,
        weight: float,
        restart: int,
        rng: np.random.Generator,
    ) -> Optional[RestartOutcome]:
        numeric = dataset.numeric
        codes = dataset.categorical_codes
        n_levels = [len(levels) for levels in dataset.levels]

        initial = rng.choice(dataset.n_records, size=k, replace=False)
        proto_numeric, proto_categorical = _fill_unobserved(
            numeric, codes, numeric[initial], codes[initial], n_levels
        )

        labels: Optional[np.ndarray] = None
        history: List[float] = []
        iteration = 0
        for iteration in range(1, self.params['max_iterations'] + 1):
            costs = _cost_matrix(numeric, codes, proto_numeric, proto_categorical, weight)
            new_labels = np.argmin(costs, axis=1)
            if np.bincount(new_labels, minlength=k).min() == 0:
                return None

            moved = labels is None or not np.array_equal(new_labels, labels)
            labels = new_labels
            proto_numeric, proto_categorical = _update_prototypes(
                numeric, codes, labels, proto_numeric, proto_categorical, n_levels
            )
            history.append(kprototypes_cost(dataset, labels, proto_numeric,
                                            proto_categorical, weight))
            logger.debug(f"Restart {restart} iteration {iteration}: cost {history[-1]:.6g}")
            if not moved:
                break

        return RestartOutcome(
            restart=restart,
            labels=labels,
            proto_numeric=proto_numeric,
            proto_categorical=proto_categorical,
            cost=history[-1],
            iterations=iteration,
            attempts=1,
            cost_history=history,
        )
