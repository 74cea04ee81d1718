"""Base clustering strategy interface and utilities."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
import numpy as np
import logging

from ..cluster_metrics import average_silhouette, within_cluster_dispersion
from ..cluster_types import ClusterAssignment, Dataset
from ..dissimilarity import DissimilarityMatrix

logger = logging.getLogger(__name__)


@dataclass
class ClusteringResult:
    """Result of a clustering operation."""

    assignment: ClusterAssignment  # record index -> cluster id
    metrics: Dict[str, float]  # clustering quality metrics
    metadata: Dict[str, Any] = field(default_factory=dict)  # strategy-specific metadata

    @property
    def n_clusters(self) -> int:
        """Number of clusters formed."""
        return self.assignment.k

    @property
    def labels(self) -> np.ndarray:
        return self.assignment.labels

    def get_cluster_sizes(self) -> Dict[int, int]:
        """Get size of each cluster."""
        return dict(enumerate(self.assignment.sizes()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping metadata that is not plain data."""
        metadata = {}
        for key, value in self.metadata.items():
            if isinstance(value, list):
                metadata[key] = [v.to_dict() if hasattr(v, "to_dict") else v for v in value]
            elif isinstance(value, (int, float, str, bool, dict, type(None))):
                metadata[key] = value
        return {
            "assignment": self.assignment.to_dict(),
            "metrics": dict(self.metrics),
            "metadata": metadata,
        }


class ClusteringStrategy(ABC):
    """Abstract base class for clustering strategies."""

    def __init__(self, **params):
        """Initialize strategy with parameters."""
        self.params = params
        self.validate_params()

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name."""
        pass

    @abstractmethod
    def validate_params(self) -> None:
        """Validate strategy parameters."""
        pass

    @abstractmethod
    def cluster(
        self,
        dataset: Dataset,
        matrix: Optional[DissimilarityMatrix] = None,
    ) -> ClusteringResult:
        """
        Partition the records of a dataset.

        Args:
            dataset: Records to cluster
            matrix: Optional prebuilt Gower matrix of ``dataset``

        Returns:
            ClusteringResult with the assignment, metrics and metadata
        """
        pass

    def _compute_metrics(
        self,
        matrix: Optional[DissimilarityMatrix],
        labels: np.ndarray,
    ) -> Dict[str, float]:
        """Compute partition quality metrics on the Gower matrix."""
        n_clusters = len(np.unique(labels))
        metrics: Dict[str, float] = {
            "n_clusters": n_clusters,
            "n_samples": int(labels.shape[0]),
        }
        if matrix is None:
            return metrics

        metrics["within_dispersion"] = within_cluster_dispersion(matrix, labels)
        if 1 < n_clusters < labels.shape[0]:
            metrics["silhouette_score"] = average_silhouette(matrix, labels)
        return metrics
