from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from itertools import combinations
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pitch_classifier.models.protocols import ClassifierSpec, TrainedModel


@dataclass(frozen=True)
class FoldMetric:
    """Performance of one spec on one held-out fold.

    A failed fold has ``error`` set and no scores.
    """

    spec_name: str
    fold: int
    n_train: int
    n_test: int
    accuracy: float | None = None
    kappa: float | None = None
    error: str | None = None
    elapsed_seconds: float = field(default=0.0, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SpecSummary:
    spec: ClassifierSpec
    rank: int
    n_succeeded: int
    n_failed: int
    mean_accuracy: float | None
    sd_accuracy: float | None
    mean_kappa: float | None
    sd_kappa: float | None
    min_accuracy: float | None
    max_accuracy: float | None


@dataclass(frozen=True)
class PairwiseDifference:
    """Paired per-fold accuracy difference ``a - b`` over folds where both succeeded."""

    a: str
    b: str
    n_folds: int
    mean_difference: float
    sd_difference: float


@dataclass(frozen=True, eq=False)
class ComparisonResult:
    summaries: tuple[SpecSummary, ...]
    best_spec: ClassifierSpec
    best_model: TrainedModel
    fold_metrics: Mapping[ClassifierSpec, tuple[FoldMetric, ...]]

    def summary_for(self, spec: ClassifierSpec) -> SpecSummary:
        for summary in self.summaries:
            if summary.spec == spec:
                return summary
        raise KeyError(f"'{spec.name}': spec not part of this comparison")

    def failed_counts(self) -> dict[str, int]:
        return {s.spec.name: s.n_failed for s in self.summaries}

    def resamples_frame(self) -> pd.DataFrame:
        """Long-form per-fold table, one row per (spec, fold)."""
        rows = [
            {
                "spec": spec.name,
                "family": spec.family,
                "fold": metric.fold,
                "accuracy": metric.accuracy,
                "kappa": metric.kappa,
                "succeeded": metric.succeeded,
                "error": metric.error,
            }
            for spec in (s.spec for s in self.summaries)
            for metric in self.fold_metrics[spec]
        ]
        return pd.DataFrame(
            rows, columns=["spec", "family", "fold", "accuracy", "kappa", "succeeded", "error"]
        )

    def pairwise_differences(self) -> list[PairwiseDifference]:
        ranked = [s.spec for s in self.summaries]
        result: list[PairwiseDifference] = []
        for a, b in combinations(ranked, 2):
            acc_a = {m.fold: m.accuracy for m in self.fold_metrics[a] if m.succeeded}
            acc_b = {m.fold: m.accuracy for m in self.fold_metrics[b] if m.succeeded}
            shared = sorted(set(acc_a) & set(acc_b))
            if not shared:
                continue
            diffs = [acc_a[f] - acc_b[f] for f in shared]  # type: ignore[operator]
            result.append(
                PairwiseDifference(
                    a=a.name,
                    b=b.name,
                    n_folds=len(shared),
                    mean_difference=statistics.fmean(diffs),
                    sd_difference=statistics.stdev(diffs) if len(diffs) > 1 else 0.0,
                )
            )
        return result


@dataclass(frozen=True)
class HoldoutEvaluation:
    spec_name: str
    n: int
    accuracy: float
    kappa: float
    labels: tuple[str, ...]
    confusion: tuple[tuple[int, ...], ...]
    precision: dict[str, float]
    recall: dict[str, float]
    support: dict[str, int]

    def confusion_frame(self) -> pd.DataFrame:
        """Confusion matrix with true labels as rows and predictions as columns."""
        return pd.DataFrame(list(self.confusion), index=list(self.labels), columns=list(self.labels))


@dataclass(frozen=True)
class ImportanceTable:
    """Feature importances scaled so the most important feature reads 100."""

    spec_name: str
    scores: dict[str, float]

    def ranked(self) -> list[tuple[str, float]]:
        # sorted() is stable: equal scores keep feature-column order
        return sorted(self.scores.items(), key=lambda item: -item[1])

    def top_feature(self) -> str:
        return self.ranked()[0][0]


@dataclass(frozen=True)
class TreeNode:
    node_id: int
    n_samples: int
    impurity: float
    feature: str | None = None
    threshold: float | None = None
    left: int | None = None
    right: int | None = None
    label: str | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None


@dataclass(frozen=True)
class TreeStructure:
    spec_name: str
    tree_index: int
    nodes: tuple[TreeNode, ...]

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    @property
    def depth(self) -> int:
        if not self.nodes:
            return 0
        by_id = {node.node_id: node for node in self.nodes}
        deepest = 0
        stack = [(self.nodes[0].node_id, 0)]
        while stack:
            node_id, level = stack.pop()
            deepest = max(deepest, level)
            node = by_id[node_id]
            for child in (node.left, node.right):
                if child is not None:
                    stack.append((child, level + 1))
        return deepest

    def root(self) -> TreeNode:
        return self.nodes[0]

    def node(self, node_id: int) -> TreeNode:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        raise KeyError(f"No node with id {node_id}")


@dataclass(frozen=True)
class CorrelationAudit:
    feature: str
    threshold: float
    correlations: dict[str, float]

    @property
    def strongly_correlated(self) -> tuple[str, ...]:
        return tuple(name for name, corr in self.correlations.items() if abs(corr) > self.threshold)
