from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, TypeAlias

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pitch_classifier.domain.dataset import Dataset
from pitch_classifier.domain.pitch import FEATURE_COLUMNS, PitchRecord
from pitch_classifier.exceptions import TrainingError
from pitch_classifier.models.protocols import TrainedModel
from pitch_classifier.models.registry import get_family

if TYPE_CHECKING:
    from pitch_classifier.models.protocols import ClassifierSpec

logger = logging.getLogger(__name__)

FeatureInput: TypeAlias = PitchRecord | Mapping[str, float] | Sequence[float]
BatchInput: TypeAlias = Dataset | pd.DataFrame | NDArray[np.floating] | Sequence[Sequence[float]]


def train(spec: ClassifierSpec, data: Dataset) -> TrainedModel:
    """Fit the spec's classifier family on ``data``.

    The family's estimator is seeded with ``spec.seed``, so repeated calls
    with identical inputs produce identical models.

    Raises:
        TrainingError: fewer than two distinct labels, fewer records than the
            family's minimum sample size, or the estimator failed to fit.
    """
    family = get_family(spec.family)
    params = spec.param_dict()
    labels = data.labels
    distinct = np.unique(labels)
    if len(distinct) < 2:
        raise TrainingError(f"{spec.name}: need at least 2 distinct labels to train, got {len(distinct)}")
    minimum = family.minimum_samples(params)
    if len(data) < minimum:
        raise TrainingError(f"{spec.name}: need at least {minimum} records to train, got {len(data)}")

    estimator = family.build(params, spec.seed)
    t0 = time.perf_counter()
    try:
        estimator.fit(data.features, labels)
    except (ValueError, np.linalg.LinAlgError) as exc:
        raise TrainingError(f"{spec.name}: fit failed: {exc}") from exc
    logger.debug("Fitted %s on %d rows in %.2fs", spec.name, len(data), time.perf_counter() - t0)

    return TrainedModel(
        spec=spec,
        estimator=estimator,
        classes=tuple(str(c) for c in estimator.classes_),
        feature_names=data.feature_names,
        n_samples=len(data),
    )


def _as_vector(features: FeatureInput) -> list[float]:
    if isinstance(features, PitchRecord):
        return features.feature_vector()
    if isinstance(features, Mapping):
        missing = [name for name in FEATURE_COLUMNS if name not in features]
        if missing:
            raise ValueError(f"Missing feature(s): {', '.join(missing)}")
        return [float(features[name]) for name in FEATURE_COLUMNS]
    vector = [float(v) for v in features]
    if len(vector) != len(FEATURE_COLUMNS):
        raise ValueError(f"Expected {len(FEATURE_COLUMNS)} feature values, got {len(vector)}")
    return vector


def _as_matrix(data: BatchInput) -> NDArray[np.float64]:
    if isinstance(data, Dataset):
        return data.features
    if isinstance(data, pd.DataFrame):
        return data.loc[:, list(FEATURE_COLUMNS)].to_numpy(dtype=np.float64)
    matrix = np.asarray(data, dtype=np.float64)
    if matrix.size == 0:
        return matrix.reshape(0, len(FEATURE_COLUMNS))
    if matrix.ndim != 2 or matrix.shape[1] != len(FEATURE_COLUMNS):
        raise ValueError(f"Expected an (n, {len(FEATURE_COLUMNS)}) feature matrix, got shape {matrix.shape}")
    return matrix


def predict(model: TrainedModel, features: FeatureInput) -> str:
    """Predict the label of a single pitch."""
    vector = np.asarray([_as_vector(features)], dtype=np.float64)
    return str(model.estimator.predict(vector)[0])


def predict_batch(model: TrainedModel, data: BatchInput) -> NDArray[np.str_]:
    matrix = _as_matrix(data)
    if len(matrix) == 0:
        return np.array([], dtype=str)
    return np.asarray(model.estimator.predict(matrix)).astype(str)
