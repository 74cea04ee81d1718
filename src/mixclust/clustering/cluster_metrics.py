"""Partition quality measures computed from a dissimilarity matrix."""

import logging
from typing import Union

import numpy as np

from .dissimilarity import DissimilarityMatrix

logger = logging.getLogger(__name__)

MatrixLike = Union[DissimilarityMatrix, np.ndarray]


def _values(matrix: MatrixLike) -> np.ndarray:
    if isinstance(matrix, DissimilarityMatrix):
        return matrix.values
    return np.asarray(matrix, dtype=float)


def within_cluster_dispersion(matrix: MatrixLike, labels: np.ndarray) -> float:
    """
    Total within-cluster dispersion W.

    W = sum over clusters of (sum of pairwise dissimilarities inside the
    cluster, each unordered pair counted once) / cluster size.

    Args:
        matrix: n x n dissimilarity matrix
        labels: Cluster id of each record

    Returns:
        Dispersion W >= 0
    """
    values = _values(matrix)
    labels = np.asarray(labels)
    total = 0.0
    for cluster_id in np.unique(labels):
        members = np.flatnonzero(labels == cluster_id)
        if members.size < 2:
            continue
        block = values[np.ix_(members, members)]
        total += block.sum() / 2.0 / members.size
    return float(total)


def silhouette_samples(matrix: MatrixLike, labels: np.ndarray) -> np.ndarray:
    """
    Silhouette width of every record.

    a(i) is the mean dissimilarity from i to the other members of its
    cluster, b(i) the smallest mean dissimilarity from i to another
    cluster. s(i) = (b - a) / max(a, b), 0 when both are 0 and 0 for
    records alone in their cluster.

    Args:
        matrix: n x n dissimilarity matrix
        labels: Cluster id of each record, at least two distinct ids

    Returns:
        Array of silhouette widths in [-1, 1]
    """
    values = _values(matrix)
    labels = np.asarray(labels)
    cluster_ids = np.unique(labels)
    if cluster_ids.size < 2:
        raise ValueError("Silhouette requires at least two clusters")

    n = labels.shape[0]
    sizes = np.array([np.sum(labels == c) for c in cluster_ids], dtype=float)
    # sums[i, c] = total dissimilarity from record i to members of cluster c
    sums = np.column_stack([values[:, labels == c].sum(axis=1) for c in cluster_ids])
    own = np.searchsorted(cluster_ids, labels)
    rows = np.arange(n)

    own_size = sizes[own]
    with np.errstate(invalid="ignore", divide="ignore"):
        a = np.where(own_size > 1, sums[rows, own] / (own_size - 1), 0.0)
        means = sums / sizes[None, :]
    means[rows, own] = np.inf
    b = means.min(axis=1)

    denom = np.maximum(a, b)
    with np.errstate(invalid="ignore", divide="ignore"):
        widths = np.where(denom > 0, (b - a) / np.where(denom > 0, denom, 1.0), 0.0)
    widths[own_size == 1] = 0.0
    return widths


def average_silhouette(matrix: MatrixLike, labels: np.ndarray) -> float:
    """Mean silhouette width over all records."""
    return float(np.mean(silhouette_samples(matrix, labels)))
