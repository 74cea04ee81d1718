"""JSON utilities for clustering results."""

import json
import math
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd


def _clean_floats(obj: Any) -> Any:
    """Replace NaN and infinities, which JSON cannot represent, with None."""
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {key: _clean_floats(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_clean_floats(value) for value in obj]
    return obj


class NumpyJSONEncoder(json.JSONEncoder):
    """JSON encoder for numpy, pandas and mixclust result types.

    - numpy integers, floats and booleans -> Python scalars
    - numpy arrays -> lists
    - pandas DataFrames -> list of row dicts
    - Enums -> their value
    - objects with ``to_dict()`` -> that dict
    """

    def default(self, obj: Any) -> Any:
        """Convert unsupported types to JSON-serializable Python types."""
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            value = float(obj)
            return value if math.isfinite(value) else None
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, np.ndarray):
            return _clean_floats(obj.tolist())
        elif isinstance(obj, pd.DataFrame):
            return _clean_floats(obj.reset_index().to_dict(orient="records"))
        elif isinstance(obj, Enum):
            return obj.value
        elif hasattr(obj, "to_dict"):
            return _clean_floats(obj.to_dict())
        return super().default(obj)


def dumps_numpy(obj: Any, **kwargs) -> str:
    """Serialize obj to a JSON string, handling numpy types.

    Args:
        obj: Object to serialize
        **kwargs: Additional arguments to pass to json.dumps

    Returns:
        JSON string
    """
    return json.dumps(_clean_floats(obj), cls=NumpyJSONEncoder, **kwargs)
