"""End-to-end run: prepare, partition, cross-validate, select, and inspect."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pitch_classifier.data.preparer import LabelFrequency, label_frequencies, prepare_dataset
from pitch_classifier.evaluation.compare import compare, evaluate_holdout
from pitch_classifier.evaluation.harness import run_sweep
from pitch_classifier.evaluation.partition import make_folds, split
from pitch_classifier.exceptions import UnsupportedOperationError
from pitch_classifier.inspection.importance import correlation_audit, importances
from pitch_classifier.inspection.trees import extract_tree

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    import pandas as pd

    from pitch_classifier.config import EvaluationSettings
    from pitch_classifier.domain.dataset import Partition
    from pitch_classifier.domain.evaluation import (
        ComparisonResult,
        CorrelationAudit,
        HoldoutEvaluation,
        ImportanceTable,
        TreeStructure,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PipelineReport:
    frequencies: list[LabelFrequency]
    partition: Partition
    comparison: ComparisonResult
    holdout: HoldoutEvaluation
    importance: ImportanceTable | None
    tree: TreeStructure | None
    audit: CorrelationAudit | None


def run_pipeline(raw: pd.DataFrame | Iterable[Mapping[str, Any]], settings: EvaluationSettings) -> PipelineReport:
    t0 = time.perf_counter()
    dataset = prepare_dataset(raw)
    frequencies = label_frequencies(dataset)
    logger.info("Prepared %d records across %d pitch types", len(dataset), len(frequencies))

    partition = split(dataset, settings.holdout_fraction, settings.seed)
    folds = make_folds(partition.training, settings.folds, settings.seed)

    sweep = run_sweep(
        settings.specs(),
        partition.training,
        folds,
        max_workers=settings.max_workers,
        budget_seconds=settings.budget_seconds,
    )
    comparison = compare(sweep, partition.training)
    holdout = evaluate_holdout(comparison.best_model, partition.holdout)

    importance: ImportanceTable | None = None
    tree: TreeStructure | None = None
    audit: CorrelationAudit | None = None
    try:
        importance = importances(comparison.best_model)
    except UnsupportedOperationError as exc:
        logger.info("Skipping importances: %s", exc)
    try:
        tree = extract_tree(comparison.best_model)
    except UnsupportedOperationError as exc:
        logger.info("Skipping tree extraction: %s", exc)
    if importance is not None:
        audit = correlation_audit(partition.training, importance.top_feature())

    logger.info("Pipeline finished in %.1fs", time.perf_counter() - t0)
    return PipelineReport(
        frequencies=frequencies,
        partition=partition,
        comparison=comparison,
        holdout=holdout,
        importance=importance,
        tree=tree,
        audit=audit,
    )
