"""Tabular storage for datasets and clustering results"""

from mixclust.storage.table_store import (
    frame_to_dataset,
    infer_attribute_kind,
    load_dataset,
    results_frame,
    save_results,
)

__all__ = [
    "load_dataset",
    "frame_to_dataset",
    "infer_attribute_kind",
    "results_frame",
    "save_results",
]
