"""CSV input and output for mixed-type datasets."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..clustering.cluster_types import (
    MISSING_CODE,
    Attribute,
    AttributeKind,
    ClusterAssignment,
    Dataset,
    SchemaError,
)
from ..config.schema import DataConfig

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
LabelsLike = Union[ClusterAssignment, Sequence[int], np.ndarray]

H_CLUSTER_COLUMN = "h_cluster"
K_CLUSTER_COLUMN = "k_cluster"


def infer_attribute_kind(series: pd.Series, force_categorical: bool = False) -> AttributeKind:
    """Numeric dtypes (except booleans) are NUMERIC, everything else CATEGORICAL."""
    if force_categorical:
        return AttributeKind.CATEGORICAL
    if pd.api.types.is_bool_dtype(series) or not pd.api.types.is_numeric_dtype(series):
        return AttributeKind.CATEGORICAL
    return AttributeKind.NUMERIC


def frame_to_dataset(frame: pd.DataFrame, data_config: Optional[DataConfig] = None) -> Dataset:
    """
    Convert a DataFrame into a Dataset.

    The identifier column, when present, is removed from the attributes and
    kept as ``record_ids``.

    Args:
        frame: One row per record
        data_config: Identifier, missing-value and categorical settings

    Returns:
        Dataset with one attribute per remaining column

    Raises:
        SchemaError: If a configured categorical column does not exist or the
            remaining data do not form a valid dataset
    """
    data_config = data_config or DataConfig()

    unknown = [c for c in data_config.categorical_columns if c not in frame.columns]
    if unknown:
        raise SchemaError(f"Categorical columns not found in data: {unknown}")

    id_column = data_config.id_column
    if id_column is not None and id_column not in frame.columns:
        logger.info(f"Identifier column '{id_column}' not present; keeping every column")
        id_column = None

    if data_config.drop_missing:
        value_columns = [c for c in frame.columns if c != id_column]
        before = len(frame)
        frame = frame.dropna(subset=value_columns).reset_index(drop=True)
        if len(frame) < before:
            logger.info(f"Dropped {before - len(frame)} rows with missing values")

    record_ids = frame[id_column].tolist() if id_column is not None else None
    features = frame.drop(columns=[id_column]) if id_column is not None else frame

    forced = set(data_config.categorical_columns)
    attributes = [
        Attribute(str(name), infer_attribute_kind(features[name], name in forced))
        for name in features.columns
    ]

    records = []
    for row in features.itertuples(index=False, name=None):
        record = []
        for attr, value in zip(attributes, row):
            if pd.isna(value):
                record.append(None)
            elif attr.is_numeric:
                record.append(float(value))
            else:
                record.append(str(value))
        records.append(record)

    dataset = Dataset(attributes, records, record_ids=record_ids)
    logger.info(
        f"Loaded {dataset.n_records} records with "
        f"{len(dataset.numeric_attributes)} numeric and "
        f"{len(dataset.categorical_attributes)} categorical attributes"
    )
    return dataset


def load_dataset(path: PathLike, data_config: Optional[DataConfig] = None) -> Dataset:
    """
    Read a CSV file into a Dataset.

    Empty cells are missing values. Columns listed in
    ``categorical_columns`` are read as text so that codes such as ``01``
    keep their spelling.

    Args:
        path: CSV file with a header row
        data_config: Identifier, missing-value and categorical settings

    Returns:
        Dataset built from the file
    """
    data_config = data_config or DataConfig()
    path = Path(path)
    logger.info(f"Reading records from {path}")
    frame = pd.read_csv(
        path,
        sep=data_config.delimiter,
        dtype={column: str for column in data_config.categorical_columns},
    )
    return frame_to_dataset(frame, data_config)


def _label_array(labels: LabelsLike, n_records: int, name: str) -> np.ndarray:
    array = labels.labels if isinstance(labels, ClusterAssignment) else np.asarray(labels)
    if array.shape != (n_records,):
        raise ValueError(f"{name} must hold one label per record ({n_records})")
    return array.astype(np.int64)


def _numeric_column(values: np.ndarray):
    """Whole-number columns go back to (nullable) integers, others stay float."""
    observed = values[~np.isnan(values)]
    whole = np.all(observed == np.round(observed)) and np.all(np.abs(observed) < 2 ** 53)
    if observed.size and whole:
        return pd.array([None if np.isnan(v) else int(v) for v in values], dtype="Int64")
    return values


def results_frame(
    dataset: Dataset,
    h_labels: LabelsLike,
    k_labels: LabelsLike,
    id_column: Optional[str] = "id",
) -> pd.DataFrame:
    """
    Original attributes plus both cluster-id columns as a DataFrame.

    The identifier column comes first when the dataset carries record ids.
    """
    n = dataset.n_records
    columns = {}
    if dataset.record_ids is not None:
        columns[id_column or "id"] = list(dataset.record_ids)

    numeric_col = 0
    categorical_col = 0
    for attr in dataset.attributes:
        if attr.is_numeric:
            columns[attr.name] = _numeric_column(dataset.numeric[:, numeric_col])
            numeric_col += 1
        else:
            levels = dataset.levels[categorical_col]
            codes = dataset.categorical_codes[:, categorical_col]
            columns[attr.name] = [
                None if code == MISSING_CODE else levels[code] for code in codes.tolist()
            ]
            categorical_col += 1

    columns[H_CLUSTER_COLUMN] = _label_array(h_labels, n, H_CLUSTER_COLUMN)
    columns[K_CLUSTER_COLUMN] = _label_array(k_labels, n, K_CLUSTER_COLUMN)
    return pd.DataFrame(columns)


def save_results(
    path: PathLike,
    dataset: Dataset,
    h_labels: LabelsLike,
    k_labels: LabelsLike,
    id_column: Optional[str] = "id",
    delimiter: str = ",",
) -> Path:
    """
    Write the clustered records to CSV.

    Args:
        path: Output file, parent directories are created
        dataset: Clustered dataset
        h_labels: Hierarchical cluster of each record
        k_labels: K-prototypes cluster of each record
        id_column: Name of the identifier column to write
        delimiter: Field separator

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = results_frame(dataset, h_labels, k_labels, id_column)
    frame.to_csv(path, sep=delimiter, index=False)
    logger.info(f"Wrote {len(frame)} clustered records to {path}")
    return path
