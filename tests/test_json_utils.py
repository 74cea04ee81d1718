"""Tests for JSON utilities that handle numpy types."""

import json

import numpy as np
import pandas as pd
import pytest

from mixclust.clustering.cluster_types import AttributeKind, ClusterAssignment, ClusteringMethod
from mixclust.utils.json_utils import NumpyJSONEncoder, dumps_numpy


class TestNumpyJSONEncoder:
    """Tests for NumpyJSONEncoder class."""

    def test_encode_numpy_integer(self):
        """Test encoding numpy integers."""
        parsed = json.loads(json.dumps({"value": np.int64(42)}, cls=NumpyJSONEncoder))
        assert parsed["value"] == 42
        assert isinstance(parsed["value"], int)

    def test_encode_numpy_float(self):
        """Test encoding numpy floats."""
        parsed = json.loads(json.dumps({"value": np.float32(3.5)}, cls=NumpyJSONEncoder))
        assert parsed["value"] == 3.5

    def test_encode_numpy_bool(self):
        parsed = json.loads(json.dumps({"flag": np.bool_(True)}, cls=NumpyJSONEncoder))
        assert parsed["flag"] is True

    def test_encode_numpy_array(self):
        """Test encoding arrays, with NaN becoming null."""
        parsed = json.loads(json.dumps({"array": np.array([1.0, np.nan])}, cls=NumpyJSONEncoder))
        assert parsed["array"] == [1.0, None]

    def test_encode_dataframe(self):
        """Test DataFrames become row records including the index."""
        frame = pd.DataFrame({"size": [3, 2]}, index=pd.Index([0, 1], name="cluster"))
        parsed = json.loads(json.dumps({"table": frame}, cls=NumpyJSONEncoder))
        assert parsed["table"] == [{"cluster": 0, "size": 3}, {"cluster": 1, "size": 2}]

    def test_encode_enum(self):
        parsed = json.loads(json.dumps({"kind": AttributeKind.NUMERIC}, cls=NumpyJSONEncoder))
        assert parsed["kind"] == "numeric"

    def test_encode_to_dict_object(self):
        """Test objects exposing to_dict are serialized through it."""
        assignment = ClusterAssignment(np.array([0, 1]), 2, ClusteringMethod.HIERARCHICAL)
        parsed = json.loads(json.dumps({"assignment": assignment}, cls=NumpyJSONEncoder))
        assert parsed["assignment"]["labels"] == [0, 1]

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            json.dumps({"value": object()}, cls=NumpyJSONEncoder)


class TestDumpsNumpy:
    """Tests for dumps_numpy function."""

    def test_non_finite_floats(self):
        """Test NaN and infinities are written as null, not invalid JSON."""
        result = dumps_numpy({"a": float("nan"), "b": [float("inf"), 1.0], "c": np.float64("nan")})
        assert json.loads(result) == {"a": None, "b": [None, 1.0], "c": None}
        assert "NaN" not in result

    def test_kwargs_passed(self):
        result = dumps_numpy({"a": np.int32(1)}, indent=2)
        assert "\n" in result
        assert json.loads(result) == {"a": 1}
