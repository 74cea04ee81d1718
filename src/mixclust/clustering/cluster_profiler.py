"""Per-cluster summaries of a clustered dataset."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .cluster_types import MISSING_CODE, ClusterAssignment, Dataset

logger = logging.getLogger(__name__)


@dataclass
class ClusterProfile:
    """Size, numeric means and categorical modes of one cluster."""

    cluster_id: int
    size: int
    numeric_means: Dict[str, Optional[float]] = field(default_factory=dict)
    categorical_modes: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "cluster_id": self.cluster_id,
            "size": self.size,
            "numeric_means": dict(self.numeric_means),
            "categorical_modes": dict(self.categorical_modes),
        }


def profile_clusters(
    dataset: Dataset,
    labels: Union[ClusterAssignment, Sequence[int], np.ndarray],
) -> List[ClusterProfile]:
    """
    Summarize every cluster of a partition.

    Means ignore missing values; a mode is the most common observed level,
    the lexicographically smallest one on ties. Attributes no member
    observed are reported as None.

    Args:
        dataset: Clustered dataset
        labels: ClusterAssignment or per-record cluster ids

    Returns:
        One ClusterProfile per cluster id, in id order
    """
    if isinstance(labels, ClusterAssignment):
        k = labels.k
        labels = labels.labels
    else:
        labels = np.asarray(labels, dtype=np.int64)
        k = int(labels.max()) + 1 if labels.size else 0
    if labels.shape[0] != dataset.n_records:
        raise ValueError(
            f"Got {labels.shape[0]} labels for {dataset.n_records} records"
        )

    numeric = dataset.numeric
    codes = dataset.categorical_codes
    profiles = []
    for cluster_id in range(k):
        members = labels == cluster_id
        means: Dict[str, Optional[float]] = {}
        for col, attr in enumerate(dataset.numeric_attributes):
            values = numeric[members, col]
            values = values[~np.isnan(values)]
            means[attr.name] = float(values.mean()) if values.size else None

        modes: Dict[str, Optional[str]] = {}
        for col, attr in enumerate(dataset.categorical_attributes):
            values = codes[members, col]
            values = values[values != MISSING_CODE]
            if values.size:
                modes[attr.name] = dataset.levels[col][int(np.argmax(np.bincount(values)))]
            else:
                modes[attr.name] = None

        profiles.append(ClusterProfile(
            cluster_id=cluster_id,
            size=int(members.sum()),
            numeric_means=means,
            categorical_modes=modes,
        ))

    logger.debug(f"Profiled {k} clusters over {dataset.n_records} records")
    return profiles


def profiles_to_frame(profiles: Sequence[ClusterProfile]) -> pd.DataFrame:
    """Render profiles as a DataFrame indexed by cluster id."""
    rows = []
    for profile in profiles:
        row: Dict[str, Any] = {"cluster": profile.cluster_id, "size": profile.size}
        row.update(profile.numeric_means)
        row.update(profile.categorical_modes)
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=["cluster", "size"]).set_index("cluster")
    return pd.DataFrame(rows).set_index("cluster")
