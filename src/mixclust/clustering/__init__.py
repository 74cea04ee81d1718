"""
Mixclust Clustering Module

Clustering of records described by a mix of numeric and categorical
attributes. Records are compared with the Gower dissimilarity, grouped by
Ward hierarchical clustering and by k-prototypes, and the number of
clusters is chosen with dispersion, silhouette and gap-statistic curves.

Example Usage:
    from mixclust.clustering import ClusterAnalyzer, ClusteringConfig

    config = ClusteringConfig(max_candidate_k=8, random_seed=7)
    result = ClusterAnalyzer(config).run(dataset)
    print(result.chosen_k, result.adjusted_rand_index)
"""

from .cluster_advisor import (
    AdvisorReport,
    ClusterCountAdvisor,
    DispersionCurve,
    GapStatisticResult,
    SilhouetteResult,
    uniform_reference,
)
from .cluster_analyzer import AnalysisResult, ClusterAnalyzer, contingency_table
from .cluster_config import ClusteringConfig
from .cluster_metrics import average_silhouette, silhouette_samples, within_cluster_dispersion
from .cluster_profiler import ClusterProfile, profile_clusters, profiles_to_frame
from .cluster_types import (
    Attribute,
    AttributeKind,
    ClusterAssignment,
    ClusteringMethod,
    Dataset,
    DegeneratePartitionError,
    MergeStep,
    Prototype,
    SchemaError,
)
from .dissimilarity import (
    DissimilarityMatrix,
    GowerDissimilarity,
    attribute_ranges,
    dissimilarity_matrix,
    gower_distance,
)
from .strategies import (
    ClusteringResult,
    ClusteringStrategy,
    HierarchicalStrategy,
    KPrototypesStrategy,
    MergeTree,
    build_merge_tree,
    estimate_balancing_weight,
    get_strategy,
    kprototypes_cost,
)

# Public API - all classes and functions that should be available to users
__all__ = [
    # Pipeline
    "ClusterAnalyzer",
    "AnalysisResult",
    "contingency_table",
    # Cluster-count selection
    "ClusterCountAdvisor",
    "AdvisorReport",
    "DispersionCurve",
    "SilhouetteResult",
    "GapStatisticResult",
    "uniform_reference",
    # Configuration
    "ClusteringConfig",
    # Data model
    "Attribute",
    "AttributeKind",
    "Dataset",
    "ClusterAssignment",
    "ClusteringMethod",
    "Prototype",
    "MergeStep",
    "SchemaError",
    "DegeneratePartitionError",
    # Dissimilarity
    "DissimilarityMatrix",
    "GowerDissimilarity",
    "attribute_ranges",
    "gower_distance",
    "dissimilarity_matrix",
    # Metrics and profiling
    "within_cluster_dispersion",
    "silhouette_samples",
    "average_silhouette",
    "ClusterProfile",
    "profile_clusters",
    "profiles_to_frame",
    # Strategies
    "ClusteringStrategy",
    "ClusteringResult",
    "HierarchicalStrategy",
    "KPrototypesStrategy",
    "MergeTree",
    "build_merge_tree",
    "estimate_balancing_weight",
    "kprototypes_cost",
    "get_strategy",
]
