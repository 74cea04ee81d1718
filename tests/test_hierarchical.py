"""Tests for Ward hierarchical clustering and the merge tree."""

import numpy as np
import pytest
from scipy.cluster.hierarchy import fcluster, is_valid_linkage, linkage

from mixclust.clustering.cluster_types import (
    Attribute,
    AttributeKind,
    ClusteringMethod,
    Dataset,
    DegeneratePartitionError,
    MergeStep,
)
from mixclust.clustering.dissimilarity import DissimilarityMatrix, dissimilarity_matrix
from mixclust.clustering.strategies import get_strategy
from mixclust.clustering.strategies.hierarchical import (
    HierarchicalStrategy,
    MergeTree,
    build_merge_tree,
)


@pytest.fixture
def six_records():
    attrs = [Attribute("value", AttributeKind.NUMERIC), Attribute("group", AttributeKind.CATEGORICAL)]
    records = [[1, "A"], [1, "A"], [2, "A"], [8, "B"], [9, "B"], [9, "B"]]
    return Dataset(attrs, records)


@pytest.fixture
def random_matrix():
    rng = np.random.default_rng(0)
    points = rng.uniform(size=(12, 3))
    values = np.sqrt(((points[:, None, :] - points[None, :, :]) ** 2).sum(axis=2))
    return DissimilarityMatrix(values)


class TestBuildMergeTree:
    """Tests for the Ward agglomeration."""

    def test_merge_count(self, random_matrix):
        tree = build_merge_tree(random_matrix)
        assert tree.n_leaves == 12
        assert len(tree) == 11
        assert tree.steps[-1].size == 12

    def test_heights_non_decreasing(self, random_matrix):
        heights = build_merge_tree(random_matrix).heights
        assert np.all(np.diff(heights) >= 0)

    def test_valid_scipy_linkage(self, random_matrix):
        """Test the tree exports as a SciPy linkage matrix."""
        linkage_matrix = build_merge_tree(random_matrix).to_linkage_matrix()
        assert linkage_matrix.shape == (11, 4)
        assert is_valid_linkage(linkage_matrix)

    def test_matches_scipy_ward_on_euclidean(self, random_matrix):
        """Test Ward.D2 heights agree with SciPy's Ward on Euclidean distances."""
        ours = build_merge_tree(random_matrix).to_linkage_matrix()
        reference = linkage(random_matrix.condensed(), method="ward")
        np.testing.assert_allclose(ours[:, 2], reference[:, 2], rtol=1e-9)

        for k in range(1, 12):
            ours_labels = build_merge_tree(random_matrix).cut(k)
            scipy_labels = fcluster(reference, k, criterion="maxclust")
            # same partition up to renumbering
            mapping = {}
            for mine, theirs in zip(ours_labels.tolist(), scipy_labels.tolist()):
                assert mapping.setdefault(mine, theirs) == theirs

    def test_ties_merge_lowest_index_pair_first(self):
        """Test equal distances merge the lexicographically smallest pair."""
        values = np.array([
            [0.0, 1.0, 1.0, 1.0],
            [1.0, 0.0, 1.0, 1.0],
            [1.0, 1.0, 0.0, 1.0],
            [1.0, 1.0, 1.0, 0.0],
        ])
        tree = build_merge_tree(DissimilarityMatrix(values))
        first = tree.steps[0]
        assert (first.left, first.right) == (0, 1)
        assert first.height == pytest.approx(1.0)

    def test_near_tie_uses_merged_pair_distance(self):
        """Test a pair picked within tolerance is merged at its own distance."""
        near = 1.0 + 2e-13
        values = np.array([
            [0.0, near, 3.0, 3.0],
            [near, 0.0, 3.0, 3.0],
            [3.0, 3.0, 0.0, 1.0],
            [3.0, 3.0, 1.0, 0.0],
        ])
        tree = build_merge_tree(DissimilarityMatrix(values))
        first = tree.steps[0]
        assert (first.left, first.right) == (0, 1)
        assert first.height > 1.0
        assert first.height == pytest.approx(near, rel=1e-15)

    def test_deterministic(self, random_matrix):
        first = build_merge_tree(random_matrix).to_linkage_matrix()
        second = build_merge_tree(random_matrix).to_linkage_matrix()
        assert np.array_equal(first, second)

    def test_single_leaf(self):
        tree = build_merge_tree(DissimilarityMatrix(np.zeros((1, 1))))
        assert len(tree) == 0
        assert tree.cut(1).tolist() == [0]
        assert tree.to_linkage_matrix().shape == (0, 4)


class TestMergeTree:
    """Tests for cutting and exporting the tree."""

    def test_cut_idempotent(self, random_matrix):
        """Test repeated cuts at the same k give identical partitions."""
        tree = build_merge_tree(random_matrix)
        for k in range(1, 13):
            assert np.array_equal(tree.cut(k), tree.cut(k))

    def test_cut_does_not_mutate(self, random_matrix):
        tree = build_merge_tree(random_matrix)
        before = tree.to_linkage_matrix()
        tree.cut(3)
        tree.cut(7)
        assert np.array_equal(before, tree.to_linkage_matrix())

    def test_cut_cluster_counts(self, random_matrix):
        tree = build_merge_tree(random_matrix)
        for k in range(1, 13):
            labels = tree.cut(k)
            assert len(np.unique(labels)) == k
            assert labels.min() == 0 and labels.max() == k - 1

    def test_cut_labels_by_first_appearance(self, random_matrix):
        labels = build_merge_tree(random_matrix).cut(4)
        seen = []
        for label in labels.tolist():
            if label not in seen:
                seen.append(label)
        assert seen == sorted(seen)

    def test_cut_nests(self, random_matrix):
        """Test each cut refines the next coarser one."""
        tree = build_merge_tree(random_matrix)
        for k in range(2, 12):
            fine, coarse = tree.cut(k + 1), tree.cut(k)
            for cluster_id in np.unique(fine):
                assert len(np.unique(coarse[fine == cluster_id])) == 1

    @pytest.mark.parametrize("k", [0, 13])
    def test_cut_out_of_range(self, random_matrix, k):
        tree = build_merge_tree(random_matrix)
        with pytest.raises(DegeneratePartitionError):
            tree.cut(k)

    def test_cut_height(self, random_matrix):
        tree = build_merge_tree(random_matrix)
        assert tree.cut_height(1) is None
        assert tree.cut_height(2) == pytest.approx(tree.heights[-1])
        assert tree.cut_height(12) == pytest.approx(tree.heights[0])

    def test_assignment(self, random_matrix):
        assignment = build_merge_tree(random_matrix).assignment(3)
        assert assignment.k == 3
        assert assignment.method == ClusteringMethod.HIERARCHICAL

    def test_step_count_validated(self):
        with pytest.raises(ValueError):
            MergeTree(3, [MergeStep(0, 1, 0.1, 2)])

    def test_cophenetic_correlation(self, random_matrix):
        tree = build_merge_tree(random_matrix)
        correlation = tree.cophenetic_correlation(random_matrix)
        assert 0.0 < correlation <= 1.0

    def test_cophenetic_correlation_small_tree(self):
        matrix = DissimilarityMatrix(np.array([[0.0, 0.5], [0.5, 0.0]]))
        assert build_merge_tree(matrix).cophenetic_correlation(matrix) == 0.0


class TestHierarchicalStrategy:
    """Tests for HierarchicalStrategy."""

    def test_requires_n_clusters(self):
        with pytest.raises(ValueError, match="n_clusters"):
            HierarchicalStrategy()
        with pytest.raises(ValueError):
            HierarchicalStrategy(n_clusters=0)

    def test_six_record_scenario(self, six_records):
        """Test {1, 1, 2} and {8, 9, 9} land in separate clusters."""
        result = HierarchicalStrategy(n_clusters=2).cluster(six_records)
        assert result.labels.tolist() == [0, 0, 0, 1, 1, 1]
        assert result.n_clusters == 2
        assert result.get_cluster_sizes() == {0: 3, 1: 3}

    def test_metrics_and_metadata(self, six_records):
        result = HierarchicalStrategy(n_clusters=2).cluster(six_records)
        assert result.metrics["n_clusters"] == 2
        assert result.metrics["silhouette_score"] > 0.5
        assert "cophenetic_correlation" in result.metrics
        assert result.metadata["linkage_method"] == "ward.D2"
        assert result.metadata["metric"] == "gower"
        assert isinstance(result.metadata["merge_tree"], MergeTree)
        assert result.metadata["cut_height"] == pytest.approx(result.metrics["max_merge_height"])

    def test_reuses_tree(self, six_records):
        """Test a prebuilt tree is cut, not rebuilt."""
        matrix = dissimilarity_matrix(six_records)
        tree = build_merge_tree(matrix)
        result = HierarchicalStrategy(n_clusters=3).cluster(six_records, matrix, tree=tree)
        assert result.metadata["merge_tree"] is tree
        assert np.array_equal(result.labels, tree.cut(3))

    def test_k_greater_than_n(self, six_records):
        with pytest.raises(DegeneratePartitionError):
            HierarchicalStrategy(n_clusters=7).cluster(six_records)

    def test_matrix_size_mismatch(self, six_records):
        matrix = DissimilarityMatrix(np.zeros((2, 2)))
        with pytest.raises(ValueError, match="does not match"):
            HierarchicalStrategy(n_clusters=2).cluster(six_records, matrix)

    def test_to_dict_drops_tree(self, six_records):
        data = HierarchicalStrategy(n_clusters=2).cluster(six_records).to_dict()
        assert "merge_tree" not in data["metadata"]
        assert data["assignment"]["labels"] == [0, 0, 0, 1, 1, 1]

    def test_registry(self):
        strategy = get_strategy("hierarchical", n_clusters=2)
        assert isinstance(strategy, HierarchicalStrategy)
        assert strategy.name == "hierarchical"
        with pytest.raises(ValueError, match="Unknown clustering strategy"):
            get_strategy("dbscan")
