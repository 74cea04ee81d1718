"""Tests for the end-to-end ClusterAnalyzer."""

import numpy as np
import pytest

from mixclust.clustering import (
    AnalysisResult,
    Attribute,
    AttributeKind,
    ClusterAnalyzer,
    ClusteringConfig,
    Dataset,
    DegeneratePartitionError,
    contingency_table,
)
from mixclust.utils import dumps_numpy


class TestClusterAnalyzer:
    """Test suite for ClusterAnalyzer."""

    @pytest.fixture
    def six_records(self):
        attrs = [
            Attribute("value", AttributeKind.NUMERIC),
            Attribute("group", AttributeKind.CATEGORICAL),
        ]
        records = [[1, "A"], [1, "A"], [2, "A"], [8, "B"], [9, "B"], [9, "B"]]
        return Dataset(attrs, records, record_ids=[f"r{i}" for i in range(6)])

    @pytest.fixture
    def three_groups(self):
        """Three well-separated groups with a categorical signal."""
        rng = np.random.default_rng(12)
        records = []
        for center, level in [(0.0, "low"), (40.0, "mid"), (80.0, "high")]:
            for _ in range(8):
                records.append([center + rng.uniform(-1, 1), level])
        attrs = [
            Attribute("score", AttributeKind.NUMERIC),
            Attribute("band", AttributeKind.CATEGORICAL),
        ]
        return Dataset(attrs, records)

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            ClusterAnalyzer(ClusteringConfig(restarts=0))

    def test_six_record_agreement(self, six_records):
        """Test both engines agree on the 6-record example at k = 2."""
        config = ClusteringConfig(chosen_k=2, restarts=5)
        result = ClusterAnalyzer(config).run(six_records)

        assert isinstance(result, AnalysisResult)
        assert result.chosen_k == 2
        assert result.advice is None
        assert result.h_labels.tolist() == [0, 0, 0, 1, 1, 1]
        assert np.array_equal(result.h_labels, result.k_labels)
        assert result.adjusted_rand_index == pytest.approx(1.0)

    def test_advised_k(self, three_groups):
        """Test the silhouette recommendation drives both engines."""
        config = ClusteringConfig(max_candidate_k=6, restarts=5)
        result = ClusterAnalyzer(config).run(three_groups)

        assert result.advice is not None
        assert result.chosen_k == result.advice.recommended_k == 3
        assert result.hierarchical.n_clusters == 3
        assert result.kprototypes.n_clusters == 3
        assert result.adjusted_rand_index == pytest.approx(1.0)

    def test_contingency(self, six_records):
        config = ClusteringConfig(chosen_k=2, restarts=3)
        result = ClusterAnalyzer(config).run(six_records)
        assert result.contingency.values.tolist() == [[3, 0], [0, 3]]
        assert result.contingency.index.name == "hierarchical"
        assert result.contingency.columns.name == "kprototypes"

    def test_profiles(self, six_records):
        config = ClusteringConfig(chosen_k=2, restarts=3)
        result = ClusterAnalyzer(config).run(six_records)
        sizes = [p.size for p in result.hierarchical_profiles]
        assert sizes == [3, 3]
        assert result.hierarchical_profiles[0].categorical_modes == {"group": "A"}
        assert result.kprototypes_profiles[1].numeric_means["value"] == pytest.approx(26 / 3)

    def test_deterministic(self, three_groups):
        """Test identical config and data give identical partitions."""
        config = ClusteringConfig(chosen_k=3, restarts=4, random_seed=21)
        first = ClusterAnalyzer(config).run(three_groups)
        second = ClusterAnalyzer(config).run(three_groups)
        assert first.h_labels.tobytes() == second.h_labels.tobytes()
        assert first.k_labels.tobytes() == second.k_labels.tobytes()

    def test_chosen_k_too_large(self, six_records):
        config = ClusteringConfig(chosen_k=10, restarts=2)
        with pytest.raises(DegeneratePartitionError):
            ClusterAnalyzer(config).run(six_records)

    def test_advise_only(self, three_groups):
        report = ClusterAnalyzer(ClusteringConfig(max_candidate_k=5)).advise(three_groups)
        assert report.recommended_k == 3
        assert report.gap is None

    def test_to_dict_serializes(self, six_records):
        config = ClusteringConfig(chosen_k=2, restarts=2)
        result = ClusterAnalyzer(config).run(six_records)
        data = result.to_dict()
        assert data["chosen_k"] == 2
        assert data["contingency"] == [[3, 0], [0, 3]]
        assert len(data["hierarchical_profiles"]) == 2
        # must not raise on numpy scalars or nested result objects
        assert '"adjusted_rand_index"' in dumps_numpy(data)


class TestContingencyTable:
    def test_crosstab(self):
        table = contingency_table(np.array([0, 0, 1, 1]), np.array([1, 0, 0, 0]))
        assert table.loc[0, 0] == 1
        assert table.loc[0, 1] == 1
        assert table.loc[1, 0] == 2
        assert table.loc[1, 1] == 0
