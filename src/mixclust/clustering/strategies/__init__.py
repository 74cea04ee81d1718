"""Clustering strategies for mixed-type records."""

from .base import ClusteringStrategy, ClusteringResult
from .hierarchical import HierarchicalStrategy, MergeTree, build_merge_tree
from .kprototypes import (
    KPrototypesStrategy,
    RestartOutcome,
    estimate_balancing_weight,
    kprototypes_cost,
)

__all__ = [
    'ClusteringStrategy',
    'ClusteringResult',
    'HierarchicalStrategy',
    'MergeTree',
    'build_merge_tree',
    'KPrototypesStrategy',
    'RestartOutcome',
    'estimate_balancing_weight',
    'kprototypes_cost',
]

# Strategy registry for easy lookup
STRATEGIES = {
    'hierarchical': HierarchicalStrategy,
    'kprototypes': KPrototypesStrategy,
}


def get_strategy(name: str, **params) -> ClusteringStrategy:
    """
    Get a clustering strategy by name.

    Args:
        name: Strategy name ('hierarchical', 'kprototypes')
        **params: Parameters to pass to the strategy

    Returns:
        Initialized clustering strategy

    Raises:
        ValueError: If strategy name is not recognized
    """
    if name not in STRATEGIES:
        raise ValueError(f"Unknown clustering strategy: {name}. "
                         f"Available strategies: {list(STRATEGIES.keys())}")

    strategy_class = STRATEGIES[name]
    return strategy_class(**params)
