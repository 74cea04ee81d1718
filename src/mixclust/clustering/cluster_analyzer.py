"""
End-to-end mixed-type cluster analysis.

The analyzer builds the Gower matrix once, asks the advisor for a cluster
count (unless one is configured), runs the hierarchical and k-prototypes
engines with that count and reports how well the two partitions agree.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import adjusted_rand_score

from .cluster_advisor import AdvisorReport, ClusterCountAdvisor
from .cluster_config import ClusteringConfig
from .cluster_profiler import ClusterProfile, profile_clusters
from .cluster_types import Dataset
from .dissimilarity import DissimilarityMatrix, dissimilarity_matrix
from .strategies.base import ClusteringResult
from .strategies.hierarchical import HierarchicalStrategy, MergeTree, build_merge_tree
from .strategies.kprototypes import KPrototypesStrategy

logger = logging.getLogger(__name__)


def contingency_table(h_labels: np.ndarray, k_labels: np.ndarray) -> pd.DataFrame:
    """Cross-tabulate hierarchical (rows) against k-prototypes (columns) labels."""
    return pd.crosstab(
        pd.Series(np.asarray(h_labels), name="hierarchical"),
        pd.Series(np.asarray(k_labels), name="kprototypes"),
    )


@dataclass
class AnalysisResult:
    """Outputs of one analysis run."""

    chosen_k: int
    hierarchical: ClusteringResult
    kprototypes: ClusteringResult
    adjusted_rand_index: float
    contingency: pd.DataFrame
    advice: Optional[AdvisorReport] = None
    hierarchical_profiles: List[ClusterProfile] = field(default_factory=list)
    kprototypes_profiles: List[ClusterProfile] = field(default_factory=list)
    execution_time: float = 0.0

    @property
    def h_labels(self) -> np.ndarray:
        return self.hierarchical.labels

    @property
    def k_labels(self) -> np.ndarray:
        return self.kprototypes.labels

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chosen_k": self.chosen_k,
            "advice": self.advice.to_dict() if self.advice is not None else None,
            "hierarchical": self.hierarchical.to_dict(),
            "kprototypes": self.kprototypes.to_dict(),
            "adjusted_rand_index": self.adjusted_rand_index,
            "contingency": self.contingency.values.tolist(),
            "hierarchical_profiles": [p.to_dict() for p in self.hierarchical_profiles],
            "kprototypes_profiles": [p.to_dict() for p in self.kprototypes_profiles],
            "execution_time": self.execution_time,
        }


class ClusterAnalyzer:
    """
    Run the full clustering pipeline on a dataset.

    Args:
        config: Clustering configuration shared by every stage
        show_progress: Show progress bars for long-running stages
    """

    def __init__(self, config: Optional[ClusteringConfig] = None, show_progress: bool = False):
        self.config = config or ClusteringConfig()
        if not self.config.validate():
            raise ValueError(
                f"Invalid clustering configuration: {self.config.validation_errors()}"
            )
        self.show_progress = show_progress

    def advise(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
        tree: Optional[MergeTree] = None,
    ) -> AdvisorReport:
        """Run the cluster-count advisor only."""
        advisor = ClusterCountAdvisor(self.config, show_progress=self.show_progress)
        return advisor.advise(dataset, matrix, tree)

    def run(self, dataset: Dataset) -> AnalysisResult:
        """
        Analyze ``dataset`` end to end.

        The advisor is skipped when ``chosen_k`` is configured.

        Returns:
            AnalysisResult with both partitions and their agreement

        Raises:
            SchemaError: If the dataset cannot be compared pairwise
            DegeneratePartitionError: If a partition with the chosen k
                cannot be produced
        """
        start_time = time.time()
        logger.info(f"Analyzing {dataset}")

        matrix = dissimilarity_matrix(dataset)
        tree = build_merge_tree(matrix)

        advice = None
        if self.config.chosen_k is None:
            advice = self.advise(dataset, matrix, tree)
            chosen_k = advice.recommended_k
        else:
            chosen_k = self.config.chosen_k
        logger.info(f"Using k={chosen_k}")

        hierarchical = HierarchicalStrategy(n_clusters=chosen_k).cluster(
            dataset, matrix, tree=tree
        )

        kprototypes = KPrototypesStrategy(
            n_clusters=chosen_k,
            restarts=self.config.restarts,
            max_iterations=self.config.max_iterations,
            balancing_weight=self.config.balancing_weight,
            random_seed=self.config.random_seed,
            parallel_workers=self.config.resolved_workers(),
        ).cluster(dataset, matrix)

        ari = float(adjusted_rand_score(hierarchical.labels, kprototypes.labels))
        logger.info(f"Adjusted Rand index between methods: {ari:.4f}")

        return AnalysisResult(
            chosen_k=chosen_k,
            hierarchical=hierarchical,
            kprototypes=kprototypes,
            adjusted_rand_index=ari,
            contingency=contingency_table(hierarchical.labels, kprototypes.labels),
            advice=advice,
            hierarchical_profiles=profile_clusters(dataset, hierarchical.assignment),
            kprototypes_profiles=profile_clusters(dataset, kprototypes.assignment),
            execution_time=time.time() - start_time,
        )
