"""Utility functions for mixclust"""

from mixclust.utils.json_utils import NumpyJSONEncoder, dumps_numpy

__all__ = [
    "NumpyJSONEncoder",
    "dumps_numpy",
]
