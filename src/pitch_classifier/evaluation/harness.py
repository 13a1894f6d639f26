"""Cross-validation harness: runs every classifier spec over a shared fold assignment."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator, Mapping, MutableMapping, Sequence
from concurrent.futures import ProcessPoolExecutor
from contextlib import ExitStack
from multiprocessing import Manager
from typing import TYPE_CHECKING, Any

from threadpoolctl import threadpool_limits

from pitch_classifier.domain.evaluation import FoldMetric
from pitch_classifier.evaluation.metrics import MetricFn, classification_scores
from pitch_classifier.exceptions import TrainingError
from pitch_classifier.models.trainer import predict_batch, train

if TYPE_CHECKING:
    from pitch_classifier.domain.dataset import Dataset, FoldAssignment
    from pitch_classifier.models.protocols import ClassifierSpec

logger = logging.getLogger(__name__)

BUDGET_EXCEEDED = "time budget exceeded"


class SweepResult(Mapping["ClassifierSpec", tuple[FoldMetric, ...]]):
    """Per-spec fold metrics from a complete sweep, each sorted by fold id."""

    def __init__(self, fold_metrics: Mapping[ClassifierSpec, Sequence[FoldMetric]]) -> None:
        self._fold_metrics = {spec: tuple(metrics) for spec, metrics in fold_metrics.items()}

    def __getitem__(self, spec: ClassifierSpec) -> tuple[FoldMetric, ...]:
        return self._fold_metrics[spec]

    def __iter__(self) -> Iterator[ClassifierSpec]:
        return iter(self._fold_metrics)

    def __len__(self) -> int:
        return len(self._fold_metrics)

    def failed_counts(self) -> dict[str, int]:
        return {spec.name: sum(1 for m in metrics if not m.succeeded) for spec, metrics in self._fold_metrics.items()}


def _run_fold(
    spec: ClassifierSpec,
    training: Dataset,
    folds: FoldAssignment,
    fold: int,
    metric_fn: MetricFn,
) -> FoldMetric:
    train_idx = folds.train_indices(fold)
    test_idx = folds.test_indices(fold)
    t0 = time.perf_counter()
    try:
        model = train(spec, training.subset(train_idx))
    except TrainingError as exc:
        logger.warning("%s fold %d failed: %s", spec.name, fold, exc)
        return FoldMetric(
            spec_name=spec.name,
            fold=fold,
            n_train=len(train_idx),
            n_test=len(test_idx),
            error=str(exc),
            elapsed_seconds=time.perf_counter() - t0,
        )
    test = training.subset(test_idx)
    scores = metric_fn(predict_batch(model, test), test.labels)
    return FoldMetric(
        spec_name=spec.name,
        fold=fold,
        n_train=len(train_idx),
        n_test=len(test_idx),
        accuracy=scores.accuracy,
        kappa=scores.kappa,
        elapsed_seconds=time.perf_counter() - t0,
    )


def _budget_exceeded(spec: ClassifierSpec, folds: FoldAssignment, fold: int) -> FoldMetric:
    n_test = len(folds.test_indices(fold))
    return FoldMetric(
        spec_name=spec.name,
        fold=fold,
        n_train=len(folds) - n_test,
        n_test=n_test,
        error=BUDGET_EXCEEDED,
    )


# Read-only inputs shared by every job in a worker process.
_WORKER_STATE: dict[str, Any] = {}


def _init_worker(
    training: Dataset,
    folds: FoldAssignment,
    metric_fn: MetricFn,
    budget_seconds: float | None,
    spec_started: MutableMapping[str, float] | None,
) -> None:
    _WORKER_STATE["training"] = training
    _WORKER_STATE["folds"] = folds
    _WORKER_STATE["metric_fn"] = metric_fn
    _WORKER_STATE["budget_seconds"] = budget_seconds
    _WORKER_STATE["spec_started"] = spec_started


def _run_worker_fold(spec: ClassifierSpec, fold: int) -> FoldMetric:
    folds: FoldAssignment = _WORKER_STATE["folds"]
    budget_seconds: float | None = _WORKER_STATE["budget_seconds"]
    if budget_seconds is not None:
        # A spec's clock starts when the first of its folds starts, in any worker.
        started = _WORKER_STATE["spec_started"].setdefault(spec.name, time.time())
        if time.time() - started >= budget_seconds:
            return _budget_exceeded(spec, folds, fold)
    with threadpool_limits(limits=1):
        return _run_fold(spec, _WORKER_STATE["training"], folds, fold, _WORKER_STATE["metric_fn"])


def _run_sequential(
    specs: Sequence[ClassifierSpec],
    training: Dataset,
    folds: FoldAssignment,
    metric_fn: MetricFn,
    budget_seconds: float | None,
) -> dict[ClassifierSpec, list[FoldMetric]]:
    results: dict[ClassifierSpec, list[FoldMetric]] = {}
    for spec in specs:
        start = time.perf_counter()
        metrics: list[FoldMetric] = []
        for fold in folds.fold_ids():
            if budget_seconds is not None and time.perf_counter() - start >= budget_seconds:
                metrics.append(_budget_exceeded(spec, folds, fold))
                continue
            metrics.append(_run_fold(spec, training, folds, fold, metric_fn))
        results[spec] = metrics
    return results


def _run_parallel(
    specs: Sequence[ClassifierSpec],
    training: Dataset,
    folds: FoldAssignment,
    metric_fn: MetricFn,
    budget_seconds: float | None,
    max_workers: int,
) -> dict[ClassifierSpec, list[FoldMetric]]:
    with ExitStack() as stack:
        spec_started: MutableMapping[str, float] | None = None
        if budget_seconds is not None:
            spec_started = stack.enter_context(Manager()).dict()
        executor = stack.enter_context(
            ProcessPoolExecutor(
                max_workers=max_workers,
                initializer=_init_worker,
                initargs=(training, folds, metric_fn, budget_seconds, spec_started),
            )
        )
        futures = {spec: [executor.submit(_run_worker_fold, spec, fold) for fold in folds.fold_ids()] for spec in specs}
        return {spec: [future.result() for future in by_fold] for spec, by_fold in futures.items()}


def run_sweep(
    specs: Sequence[ClassifierSpec],
    training: Dataset,
    folds: FoldAssignment,
    metric_fn: MetricFn = classification_scores,
    *,
    max_workers: int | None = 1,
    budget_seconds: float | None = None,
) -> SweepResult:
    """Cross-validate every spec on the same fold assignment.

    For each spec and fold, trains on the other folds and scores the held-out
    fold with ``metric_fn(predictions, true_labels)``. A fold whose training
    raises ``TrainingError`` is recorded as a failed FoldMetric instead of
    aborting the sweep.

    Args:
        specs: Classifier specs to evaluate. Names must be unique.
        training: Training dataset the folds were built from.
        folds: Shared fold assignment.
        metric_fn: Scoring function. Must be a module-level function when
            ``max_workers > 1`` so it can be sent to worker processes.
        max_workers: Worker processes for (spec, fold) jobs. ``None`` uses the
            CPU count; 1 runs everything in-process.
        budget_seconds: Wall-clock budget per spec, counted from the start of
            its first fold. Folds that would start after the budget is spent
            are recorded as failed; folds already running finish and are kept.

    Returns:
        A SweepResult, produced only after every job finished or was marked failed.
    """
    names = [spec.name for spec in specs]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Spec names must be unique, duplicated: {', '.join(duplicates)}")
    if len(folds) != len(training):
        raise ValueError(f"Fold assignment covers {len(folds)} records but training has {len(training)}")

    n_jobs = len(specs) * folds.k
    effective_workers = min(max_workers or os.cpu_count() or 1, n_jobs) if n_jobs else 1
    logger.info("Sweep: %d specs, %d folds, %d workers", len(specs), folds.k, effective_workers)
    t0 = time.perf_counter()

    if effective_workers <= 1:
        results = _run_sequential(specs, training, folds, metric_fn, budget_seconds)
    else:
        results = _run_parallel(specs, training, folds, metric_fn, budget_seconds, effective_workers)

    sweep = SweepResult(results)
    for spec, metrics in sweep.items():
        succeeded = [m.accuracy for m in metrics if m.succeeded and m.accuracy is not None]
        mean_acc = sum(succeeded) / len(succeeded) if succeeded else float("nan")
        logger.info("%s: %d/%d folds succeeded, mean accuracy %.4f", spec.name, len(succeeded), len(metrics), mean_acc)
    logger.info("Sweep done in %.1fs", time.perf_counter() - t0)
    return sweep


def evaluate(
    spec: ClassifierSpec,
    training: Dataset,
    folds: FoldAssignment,
    metric_fn: MetricFn = classification_scores,
    *,
    max_workers: int | None = 1,
    budget_seconds: float | None = None,
) -> list[FoldMetric]:
    """Cross-validate a single spec; FoldMetrics are sorted by fold id."""
    sweep = run_sweep(
        [spec], training, folds, metric_fn, max_workers=max_workers, budget_seconds=budget_seconds
    )
    return list(sweep[spec])
