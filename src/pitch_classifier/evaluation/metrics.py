import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from sklearn.metrics import accuracy_score, cohen_kappa_score


@dataclass(frozen=True)
class ClassificationScores:
    accuracy: float
    kappa: float


MetricFn = Callable[[NDArray[np.str_], NDArray[np.str_]], ClassificationScores]


def classification_scores(predictions: NDArray[np.str_], true_labels: NDArray[np.str_]) -> ClassificationScores:
    """Accuracy and Cohen's kappa of ``predictions`` against ``true_labels``.

    Kappa is undefined when chance agreement is total (a single label in
    both arrays); it is reported as 0.0 in that case.
    """
    if len(predictions) != len(true_labels):
        raise ValueError(
            f"Array length mismatch: predictions has {len(predictions)}, true_labels has {len(true_labels)}"
        )
    if len(true_labels) == 0:
        raise ValueError("Cannot score empty arrays")
    accuracy = float(accuracy_score(true_labels, predictions))
    if len(np.union1d(true_labels, predictions)) < 2:
        kappa = 0.0
    else:
        kappa = float(cohen_kappa_score(true_labels, predictions))
        if math.isnan(kappa):
            kappa = 0.0
    return ClassificationScores(accuracy=accuracy, kappa=kappa)
