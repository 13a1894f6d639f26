from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from pitch_classifier.domain.evaluation import CorrelationAudit, ImportanceTable
from pitch_classifier.exceptions import UnsupportedOperationError
from pitch_classifier.models.registry import get_family

if TYPE_CHECKING:
    from pitch_classifier.domain.dataset import Dataset
    from pitch_classifier.models.protocols import TrainedModel

logger = logging.getLogger(__name__)


def importances(model: TrainedModel) -> ImportanceTable:
    """Impurity-based feature importances scaled to 0-100.

    Each score is divided by the largest one, so the most important feature
    reads exactly 100 and equal raw importances stay equal.

    Raises:
        UnsupportedOperationError: the model's family has no importance
            signal, or the fitted model never split (all importances zero).
    """
    family = get_family(model.family)
    raw = getattr(model.final_estimator(), "feature_importances_", None)
    if not family.exposes_importance or raw is None:
        raise UnsupportedOperationError(f"Family '{model.family}' does not expose feature importances")

    values = np.asarray(raw, dtype=np.float64)
    top = float(values.max()) if values.size else 0.0
    if top <= 0.0:
        raise UnsupportedOperationError(f"{model.spec.name} has no non-zero feature importances")

    scaled = values / top * 100.0
    scores = {name: float(score) for name, score in zip(model.feature_names, scaled, strict=True)}
    logger.debug("Importances for %s: %s", model.spec.name, scores)
    return ImportanceTable(spec_name=model.spec.name, scores=scores)


def correlation_audit(dataset: Dataset, feature: str, threshold: float = 0.70) -> CorrelationAudit:
    """Pearson correlation between ``feature`` and every other feature.

    Used to check whether a dominant importance score is explained by
    redundancy with other measurements. Constant columns yield NaN.
    """
    names = list(dataset.feature_names)
    if feature not in names:
        raise KeyError(f"'{feature}': not a feature column")
    if len(dataset) < 2:
        raise ValueError("Need at least 2 records to compute correlations")

    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.corrcoef(dataset.features, rowvar=False)
    target = names.index(feature)
    correlations = {name: float(corr[target][j]) for j, name in enumerate(names) if j != target}
    audit = CorrelationAudit(feature=feature, threshold=threshold, correlations=correlations)
    if audit.strongly_correlated:
        logger.info("%s is strongly correlated with: %s", feature, ", ".join(audit.strongly_correlated))
    return audit
