"""Configuration for mixed-type clustering runs."""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ClusteringConfig:
    """Parameters recognized by every clustering entry point.

    The same instance is passed explicitly to the advisor, both engines and
    the analyzer; nothing is read from module-level state.
    """

    # Cluster-count selection
    max_candidate_k: int = 10  # Largest k evaluated by the advisor
    chosen_k: Optional[int] = None  # None = use the silhouette recommendation
    compute_gap: bool = False  # Gap statistic is expensive, opt-in
    reference_resamples: int = 50  # Reference datasets B for the gap statistic

    # k-prototypes
    restarts: int = 25  # Independent random restarts R
    max_iterations: int = 100  # Iteration cap I per restart
    balancing_weight: Optional[float] = None  # Lambda; None = estimate from data

    # Reproducibility and performance
    random_seed: int = 42  # Seed for every random draw in a run
    parallel_workers: int = 1  # Worker threads (-1 = all CPUs)

    def validate(self) -> bool:
        """Validate configuration parameters."""
        if self.max_candidate_k < 2:
            return False

        if self.chosen_k is not None and self.chosen_k < 1:
            return False

        if self.restarts < 1:
            return False

        if self.max_iterations < 1:
            return False

        if self.balancing_weight is not None and self.balancing_weight < 0:
            return False

        if self.reference_resamples < 1:
            return False

        if self.parallel_workers == 0 or self.parallel_workers < -1:
            return False

        return True

    def validation_errors(self) -> Dict[str, str]:
        """Explain which fields fail ``validate``."""
        errors = {}
        if self.max_candidate_k < 2:
            errors["max_candidate_k"] = "must be at least 2"
        if self.chosen_k is not None and self.chosen_k < 1:
            errors["chosen_k"] = "must be at least 1"
        if self.restarts < 1:
            errors["restarts"] = "must be at least 1"
        if self.max_iterations < 1:
            errors["max_iterations"] = "must be at least 1"
        if self.balancing_weight is not None and self.balancing_weight < 0:
            errors["balancing_weight"] = "must be non-negative"
        if self.reference_resamples < 1:
            errors["reference_resamples"] = "must be at least 1"
        if self.parallel_workers == 0 or self.parallel_workers < -1:
            errors["parallel_workers"] = "must be -1 or a positive integer"
        return errors

    def resolved_workers(self) -> int:
        """Number of worker threads to use."""
        if self.parallel_workers == -1:
            return os.cpu_count() or 1
        return self.parallel_workers

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_candidate_k": self.max_candidate_k,
            "chosen_k": self.chosen_k,
            "compute_gap": self.compute_gap,
            "reference_resamples": self.reference_resamples,
            "restarts": self.restarts,
            "max_iterations": self.max_iterations,
            "balancing_weight": self.balancing_weight,
            "random_seed": self.random_seed,
            "parallel_workers": self.parallel_workers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusteringConfig":
        """Create from dictionary."""
        balancing_weight = data.get("balancing_weight")
        if isinstance(balancing_weight, str) and balancing_weight.lower() == "auto":
            balancing_weight = None
        return cls(
            max_candidate_k=data.get("max_candidate_k", 10),
            chosen_k=data.get("chosen_k"),
            compute_gap=data.get("compute_gap", False),
            reference_resamples=data.get("reference_resamples", 50),
            restarts=data.get("restarts", 25),
            max_iterations=data.get("max_iterations", 100),
            balancing_weight=balancing_weight,
            random_seed=data.get("random_seed", 42),
            parallel_workers=data.get("parallel_workers", 1),
        )
