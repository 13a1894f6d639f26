from __future__ import annotations

import logging
import statistics
from dataclasses import replace
from typing import TYPE_CHECKING

from sklearn.metrics import confusion_matrix, precision_recall_fscore_support

from pitch_classifier.domain.evaluation import ComparisonResult, FoldMetric, HoldoutEvaluation, SpecSummary
from pitch_classifier.evaluation.metrics import classification_scores
from pitch_classifier.exceptions import NoValidModelError, TrainingError
from pitch_classifier.models.trainer import predict_batch, train

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pitch_classifier.domain.dataset import Dataset
    from pitch_classifier.models.protocols import ClassifierSpec, TrainedModel

logger = logging.getLogger(__name__)


def _mean_sd(values: list[float]) -> tuple[float | None, float | None]:
    if not values:
        return None, None
    sd = statistics.stdev(values) if len(values) > 1 else 0.0
    return statistics.fmean(values), sd


def _summarize(spec: ClassifierSpec, metrics: Sequence[FoldMetric]) -> SpecSummary:
    ok = [m for m in metrics if m.succeeded]
    accuracies = [m.accuracy for m in ok if m.accuracy is not None]
    kappas = [m.kappa for m in ok if m.kappa is not None]
    mean_acc, sd_acc = _mean_sd(accuracies)
    mean_kappa, sd_kappa = _mean_sd(kappas)
    return SpecSummary(
        spec=spec,
        rank=0,
        n_succeeded=len(ok),
        n_failed=len(metrics) - len(ok),
        mean_accuracy=mean_acc,
        sd_accuracy=sd_acc,
        mean_kappa=mean_kappa,
        sd_kappa=sd_kappa,
        min_accuracy=min(accuracies) if accuracies else None,
        max_accuracy=max(accuracies) if accuracies else None,
    )


def _ranking_key(summary: SpecSummary) -> tuple[int, float, float, tuple[str, str, str, int]]:
    if summary.mean_accuracy is None:
        return (1, 0.0, 0.0, summary.spec.sort_key())
    return (0, -summary.mean_accuracy, summary.sd_accuracy or 0.0, summary.spec.sort_key())


def rank_specs(results: Mapping[ClassifierSpec, Sequence[FoldMetric]]) -> list[SpecSummary]:
    """Summaries ranked by mean accuracy, then lower spread, then spec ordering.

    Specs without any successful fold rank last.
    """
    ordered = sorted((_summarize(spec, metrics) for spec, metrics in results.items()), key=_ranking_key)
    return [replace(summary, rank=position) for position, summary in enumerate(ordered, start=1)]


def compare(results: Mapping[ClassifierSpec, Sequence[FoldMetric]], training: Dataset) -> ComparisonResult:
    """Rank specs by resampled accuracy and retrain the winner on all of ``training``.

    If the top spec cannot be retrained on the full training set the next
    ranked spec with successful folds is used.

    Raises:
        NoValidModelError: no spec has a successful fold, or none of those
            that do could be retrained.
    """
    summaries = rank_specs(results)
    candidates = [s for s in summaries if s.n_succeeded > 0]
    if not candidates:
        raise NoValidModelError(f"All {len(summaries)} classifier spec(s) failed every fold")

    for summary in candidates:
        try:
            model = train(summary.spec, training)
        except TrainingError as exc:
            logger.warning("Could not retrain %s on the full training set: %s", summary.spec.name, exc)
            continue
        logger.info(
            "Selected %s (mean accuracy %.4f, sd %.4f)",
            summary.spec.name,
            summary.mean_accuracy,
            summary.sd_accuracy,
        )
        return ComparisonResult(
            summaries=tuple(summaries),
            best_spec=summary.spec,
            best_model=model,
            fold_metrics={spec: tuple(metrics) for spec, metrics in results.items()},
        )
    raise NoValidModelError("No classifier spec with successful folds could be retrained on the full training set")


def evaluate_holdout(model: TrainedModel, holdout: Dataset) -> HoldoutEvaluation:
    """Score ``model`` once on the held-out validation subset."""
    if len(holdout) == 0:
        raise ValueError("Cannot evaluate on an empty holdout set")
    truth = holdout.labels
    predictions = predict_batch(model, holdout)
    scores = classification_scores(predictions, truth)
    labels = sorted(set(truth.tolist()) | set(predictions.tolist()))
    matrix = confusion_matrix(truth, predictions, labels=labels)
    precision, recall, _, support = precision_recall_fscore_support(
        truth, predictions, labels=labels, zero_division=0
    )
    logger.info(
        "Holdout accuracy for %s: %.4f (kappa %.4f, n=%d)", model.spec.name, scores.accuracy, scores.kappa, len(holdout)
    )
    return HoldoutEvaluation(
        spec_name=model.spec.name,
        n=len(holdout),
        accuracy=scores.accuracy,
        kappa=scores.kappa,
        labels=tuple(labels),
        confusion=tuple(tuple(int(v) for v in row) for row in matrix),
        precision={label: float(p) for label, p in zip(labels, precision, strict=True)},
        recall={label: float(r) for label, r in zip(labels, recall, strict=True)},
        support={label: int(s) for label, s in zip(labels, support, strict=True)},
    )
