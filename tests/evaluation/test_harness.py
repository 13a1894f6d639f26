import time
from collections.abc import Callable

import numpy as np
import pytest

from pitch_classifier.domain.dataset import Dataset, FoldAssignment
from pitch_classifier.evaluation import harness
from pitch_classifier.evaluation.harness import BUDGET_EXCEEDED, evaluate, run_sweep
from pitch_classifier.evaluation.metrics import ClassificationScores, classification_scores
from pitch_classifier.evaluation.partition import make_folds
from pitch_classifier.models.registry import make_spec


@pytest.fixture
def folds(pitch_dataset: Dataset) -> FoldAssignment:
    return make_folds(pitch_dataset, 4, seed=42)


def _specs() -> list:
    return [
        make_spec("lda", seed=42),
        make_spec("cart", seed=42),
        make_spec("random_forest", seed=42, params={"n_estimators": 15}),
    ]


class TestRunSweep:
    def test_every_spec_gets_one_metric_per_fold(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        sweep = run_sweep(_specs(), pitch_dataset, folds)
        assert len(sweep) == 3
        for spec, metrics in sweep.items():
            assert [m.fold for m in metrics] == [1, 2, 3, 4]
            assert all(m.spec_name == spec.name for m in metrics)
            assert all(m.succeeded for m in metrics)

    def test_fold_sizes_recorded(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        metrics = evaluate(make_spec("lda", seed=42), pitch_dataset, folds)
        sizes = folds.fold_sizes()
        for metric in metrics:
            assert metric.n_test == sizes[metric.fold]
            assert metric.n_train == len(pitch_dataset) - sizes[metric.fold]

    def test_well_separated_data_scores_high(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        metrics = evaluate(make_spec("lda", seed=42), pitch_dataset, folds)
        assert all(m.accuracy is not None and m.accuracy > 0.9 for m in metrics)
        assert all(m.kappa is not None and m.kappa > 0.85 for m in metrics)

    def test_repeat_runs_are_identical(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        first = run_sweep(_specs(), pitch_dataset, folds)
        second = run_sweep(_specs(), pitch_dataset, folds)
        assert dict(first) == dict(second)

    def test_single_label_training_fold_fails_without_aborting(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 20, "Slider": 20}, seed=2)
        labels = dataset.labels
        assignments = np.ones(len(dataset), dtype=np.intp)
        fastballs = np.flatnonzero(labels == "4-Seam Fastball")
        assignments[fastballs[::2]] = 2
        folds = FoldAssignment(assignments=assignments, k=2, seed=0)

        metrics = evaluate(make_spec("lda", seed=42), dataset, folds)

        failed, ok = metrics
        assert not failed.succeeded
        assert failed.accuracy is None
        assert "distinct labels" in (failed.error or "")
        assert ok.succeeded

    def test_failed_counts(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 20, "Slider": 20}, seed=2)
        assignments = np.where(dataset.labels == "Slider", 1, 2).astype(np.intp)
        folds = FoldAssignment(assignments=assignments, k=2, seed=0)
        sweep = run_sweep([make_spec("lda", seed=42), make_spec("cart", seed=42)], dataset, folds)
        assert sweep.failed_counts() == {"lda": 2, "cart": 2}

    def test_custom_metric_function_is_used(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        calls: list[int] = []

        def constant(predictions: np.ndarray, truth: np.ndarray) -> ClassificationScores:
            calls.append(len(truth))
            return ClassificationScores(accuracy=0.5, kappa=0.25)

        metrics = evaluate(make_spec("lda", seed=42), pitch_dataset, folds, constant)
        assert [m.accuracy for m in metrics] == [0.5] * 4
        assert sorted(calls) == sorted(folds.fold_sizes().values())

    def test_zero_budget_marks_every_fold_failed(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        metrics = evaluate(make_spec("lda", seed=42), pitch_dataset, folds, budget_seconds=0.0)
        assert [m.fold for m in metrics] == [1, 2, 3, 4]
        assert all(m.error == BUDGET_EXCEEDED for m in metrics)

    def test_generous_budget_changes_nothing(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        unbounded = evaluate(make_spec("cart", seed=42), pitch_dataset, folds)
        bounded = evaluate(make_spec("cart", seed=42), pitch_dataset, folds, budget_seconds=600.0)
        assert unbounded == bounded

    def test_duplicate_spec_names_raise(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        specs = [make_spec("lda", seed=1), make_spec("lda", seed=2)]
        with pytest.raises(ValueError, match="unique"):
            run_sweep(specs, pitch_dataset, folds)

    def test_misaligned_folds_raise(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        with pytest.raises(ValueError, match="Fold assignment covers"):
            run_sweep(_specs(), pitch_dataset.subset(range(100)), folds)

    @pytest.mark.slow
    def test_parallel_matches_sequential(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        sequential = run_sweep(_specs(), pitch_dataset, folds, max_workers=1)
        parallel = run_sweep(_specs(), pitch_dataset, folds, max_workers=2)
        assert dict(parallel) == dict(sequential)

    def test_parallel_zero_budget_marks_every_fold_failed(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        sweep = run_sweep(_specs()[:2], pitch_dataset, folds, max_workers=2, budget_seconds=0.0)
        for metrics in sweep.values():
            assert [m.fold for m in metrics] == [1, 2, 3, 4]
            assert all(m.error == BUDGET_EXCEEDED for m in metrics)

    @pytest.mark.slow
    def test_parallel_generous_budget_matches_sequential(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        sequential = run_sweep(_specs(), pitch_dataset, folds, max_workers=1)
        parallel = run_sweep(_specs(), pitch_dataset, folds, max_workers=2, budget_seconds=600.0)
        assert dict(parallel) == dict(sequential)


class TestWorkerBudget:
    @pytest.fixture(autouse=True)
    def _isolated_state(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(harness, "_WORKER_STATE", {})

    def test_clock_is_per_spec(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        lda, forest = make_spec("lda", seed=42), make_spec("random_forest", seed=42, params={"n_estimators": 5})
        started = {"random_forest": time.time() - 100.0}
        harness._init_worker(pitch_dataset, folds, classification_scores, 5.0, started)

        # A spent budget on one spec does not starve a spec that has not started yet.
        assert harness._run_worker_fold(lda, 1).succeeded
        assert "lda" in started
        assert harness._run_worker_fold(forest, 1).error == BUDGET_EXCEEDED

    def test_late_fold_of_started_spec_is_failed(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        cart = make_spec("cart", seed=42)
        started: dict[str, float] = {}
        harness._init_worker(pitch_dataset, folds, classification_scores, 5.0, started)

        first = harness._run_worker_fold(cart, 1)
        started["cart"] -= 10.0
        late = harness._run_worker_fold(cart, 2)

        assert first.succeeded
        assert late.error == BUDGET_EXCEEDED
        assert late.n_test == folds.fold_sizes()[2]

    def test_no_budget_ignores_start_times(self, pitch_dataset: Dataset, folds: FoldAssignment) -> None:
        harness._init_worker(pitch_dataset, folds, classification_scores, None, None)
        assert harness._run_worker_fold(make_spec("lda", seed=42), 3).succeeded
