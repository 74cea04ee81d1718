"""Tests for CSV loading and result export."""

import numpy as np
import pandas as pd
import pytest

from mixclust.clustering.cluster_types import AttributeKind, SchemaError
from mixclust.config.schema import DataConfig
from mixclust.storage import (
    frame_to_dataset,
    infer_attribute_kind,
    load_dataset,
    results_frame,
    save_results,
)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "customers.csv"
    path.write_text(
        "id,age,segment,zip\n"
        "c1,34,retail,01234\n"
        "c2,,wholesale,02111\n"
        "c3,51,retail,01234\n"
        "c4,28,,90210\n"
    )
    return path


class TestInferAttributeKind:
    def test_numeric(self):
        assert infer_attribute_kind(pd.Series([1.0, 2.5])) == AttributeKind.NUMERIC

    def test_text(self):
        assert infer_attribute_kind(pd.Series(["a", "b"])) == AttributeKind.CATEGORICAL

    def test_boolean(self):
        assert infer_attribute_kind(pd.Series([True, False])) == AttributeKind.CATEGORICAL

    def test_forced(self):
        assert infer_attribute_kind(pd.Series([1, 2]), True) == AttributeKind.CATEGORICAL


class TestLoadDataset:
    """Tests for load_dataset."""

    def test_load(self, csv_path):
        dataset = load_dataset(csv_path)
        assert dataset.n_records == 4
        assert dataset.record_ids == ("c1", "c2", "c3", "c4")
        assert [a.name for a in dataset.attributes] == ["age", "segment", "zip"]
        assert dataset.record(1) == (None, "wholesale", 2111.0)
        assert dataset.record(3)[1] is None

    def test_forced_categorical_keeps_spelling(self, csv_path):
        """Test codes with leading zeros stay text when forced categorical."""
        dataset = load_dataset(csv_path, DataConfig(categorical_columns=["zip"]))
        assert dataset.column("zip") == ["01234", "02111", "01234", "90210"]

    def test_drop_missing(self, csv_path):
        dataset = load_dataset(csv_path, DataConfig(drop_missing=True))
        assert dataset.record_ids == ("c1", "c3")

    def test_no_id_column(self, csv_path):
        dataset = load_dataset(csv_path, DataConfig(id_column=None))
        assert dataset.record_ids is None
        assert dataset.attributes[0].name == "id"

    def test_absent_id_column_ignored(self, csv_path):
        dataset = load_dataset(csv_path, DataConfig(id_column="customer"))
        assert dataset.record_ids is None
        assert dataset.n_attributes == 4

    def test_unknown_categorical_column(self, csv_path):
        with pytest.raises(SchemaError, match="not found"):
            load_dataset(csv_path, DataConfig(categorical_columns=["region"]))

    def test_delimiter(self, tmp_path):
        path = tmp_path / "semi.csv"
        path.write_text("id;x;c\n1;0.5;a\n2;1.5;b\n")
        dataset = load_dataset(path, DataConfig(delimiter=";"))
        assert dataset.record(1) == (1.5, "b")

    def test_frame_to_dataset(self):
        frame = pd.DataFrame({"id": [1, 2], "x": [0.0, np.nan], "c": ["u", "v"]})
        dataset = frame_to_dataset(frame)
        assert dataset.record_ids == (1, 2)
        assert dataset.record(1) == (None, "v")


class TestSaveResults:
    """Tests for the clustered record table."""

    def test_results_frame(self, csv_path):
        dataset = load_dataset(csv_path)
        frame = results_frame(dataset, [0, 0, 1, 1], np.array([1, 1, 0, 0]))
        assert list(frame.columns) == ["id", "age", "segment", "zip", "h_cluster", "k_cluster"]
        assert frame["h_cluster"].tolist() == [0, 0, 1, 1]
        assert frame["k_cluster"].tolist() == [1, 1, 0, 0]
        assert frame["segment"].tolist()[3] is None

    def test_label_length_checked(self, csv_path):
        dataset = load_dataset(csv_path)
        with pytest.raises(ValueError, match="h_cluster"):
            results_frame(dataset, [0, 1], [0, 0, 1, 1])

    def test_save_roundtrip(self, csv_path, tmp_path):
        """Test the written CSV holds attributes plus both cluster columns."""
        dataset = load_dataset(csv_path)
        out = save_results(tmp_path / "out" / "clusters.csv", dataset, [0, 0, 1, 1], [0, 0, 1, 1])
        assert out.exists()

        written = pd.read_csv(out)
        assert written["id"].tolist() == ["c1", "c2", "c3", "c4"]
        assert written["h_cluster"].tolist() == [0, 0, 1, 1]
        assert written["k_cluster"].dtype.kind == "i"
        assert np.isnan(written["age"][1])

    def test_whole_numbers_keep_integer_spelling(self, tmp_path):
        """Test integer columns are not written back as floats."""
        source = tmp_path / "counts.csv"
        source.write_text("id,count,score\na,1,0.5\nb,,1.5\nc,3,2.0\n")
        dataset = load_dataset(source)
        out = save_results(tmp_path / "out.csv", dataset, [0, 0, 1], [0, 1, 1])
        assert out.read_text().splitlines() == [
            "id,count,score,h_cluster,k_cluster",
            "a,1,0.5,0,0",
            "b,,1.5,0,1",
            "c,3,2.0,1,1",
        ]

    def test_custom_id_column(self, tmp_path):
        frame = pd.DataFrame({"key": ["a", "b"], "x": [1.0, 2.0]})
        dataset = frame_to_dataset(frame, DataConfig(id_column="key"))
        out = save_results(tmp_path / "r.csv", dataset, [0, 1], [1, 0], id_column="key")
        assert pd.read_csv(out).columns.tolist() == ["key", "x", "h_cluster", "k_cluster"]
