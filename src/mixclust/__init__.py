"""
Mixclust: clustering of mixed numeric and categorical data
"""

__version__ = "1.0.0"

from mixclust.clustering import (
    AnalysisResult,
    Attribute,
    AttributeKind,
    ClusterAnalyzer,
    ClusterAssignment,
    ClusterCountAdvisor,
    ClusteringConfig,
    Dataset,
    DegeneratePartitionError,
    HierarchicalStrategy,
    KPrototypesStrategy,
    SchemaError,
    dissimilarity_matrix,
    gower_distance,
)
from mixclust.config import (
    DataConfig,
    LoggingConfig,
    MixclustConfig,
    get_default_config,
    load_config,
    validate_config,
)
from mixclust.storage import load_dataset, save_results

__all__ = [
    # Data model
    "Attribute",
    "AttributeKind",
    "Dataset",
    "ClusterAssignment",
    "SchemaError",
    "DegeneratePartitionError",
    # Dissimilarity
    "gower_distance",
    "dissimilarity_matrix",
    # Clustering
    "HierarchicalStrategy",
    "KPrototypesStrategy",
    "ClusterCountAdvisor",
    "ClusterAnalyzer",
    "AnalysisResult",
    # Input and output
    "load_dataset",
    "save_results",
    # Configuration
    "MixclustConfig",
    "ClusteringConfig",
    "DataConfig",
    "LoggingConfig",
    "load_config",
    "get_default_config",
    "validate_config",
]
