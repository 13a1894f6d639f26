from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from pitch_classifier.data.preparer import LabelFrequency
from pitch_classifier.domain.dataset import Partition
from pitch_classifier.domain.evaluation import (
    ComparisonResult,
    CorrelationAudit,
    HoldoutEvaluation,
    ImportanceTable,
    TreeNode,
    TreeStructure,
)
from pitch_classifier.models.registry import ClassifierFamily

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def _fmt(value: float | None, digits: int = 4) -> str:
    return "—" if value is None else f"{value:.{digits}f}"


def print_error(message: str) -> None:
    err_console.print(f"[red bold]Error:[/red bold] {message}")


def print_families(families: list[ClassifierFamily]) -> None:
    if not families:
        console.print("No classifier families registered.")
        return
    console.print("[bold]Registered classifier families:[/bold]")
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Defaults")
    table.add_column("Importance")
    table.add_column("Trees")
    for family in families:
        defaults = ", ".join(f"{k}={v!r}" for k, v in family.defaults.items())
        table.add_row(
            family.name,
            family.description,
            defaults,
            "yes" if family.exposes_importance else "no",
            "yes" if family.has_trees else "no",
        )
    console.print(table)


def print_label_frequencies(frequencies: list[LabelFrequency]) -> None:
    total = sum(f.count for f in frequencies)
    table = Table(title=f"Pitch types (n={total})", show_edge=False, pad_edge=False)
    table.add_column("Pitch type")
    table.add_column("Count", justify="right")
    table.add_column("Percent", justify="right")
    for freq in frequencies:
        table.add_row(freq.label, str(freq.count), f"{freq.percent:.1f}%")
    console.print(table)


def print_partition(partition: Partition) -> None:
    console.print(
        f"Partition (seed {partition.seed}): "
        f"{len(partition.training)} training, {len(partition.holdout)} holdout "
        f"({partition.holdout_fraction:.0%} held out)"
    )


def print_comparison_result(result: ComparisonResult) -> None:
    """Print ranked cross-validation summary across classifier specs."""
    console.print("[bold]Cross-validation comparison[/bold]")
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Rank", justify="right")
    table.add_column("Spec")
    table.add_column("Accuracy", justify="right")
    table.add_column("SD", justify="right")
    table.add_column("Kappa", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Folds ok", justify="right")
    table.add_column("Failed", justify="right")
    for s in result.summaries:
        failed = f"[red]{s.n_failed}[/red]" if s.n_failed else "0"
        name = f"[bold green]{s.spec.name}[/bold green]" if s.spec == result.best_spec else s.spec.name
        table.add_row(
            str(s.rank),
            name,
            _fmt(s.mean_accuracy),
            _fmt(s.sd_accuracy),
            _fmt(s.mean_kappa),
            _fmt(s.min_accuracy),
            _fmt(s.max_accuracy),
            str(s.n_succeeded),
            failed,
        )
    console.print(table)
    console.print(f"Selected [bold]'{result.best_spec.name}'[/bold] (retrained on the full training set)")


def print_holdout(evaluation: HoldoutEvaluation) -> None:
    console.print(
        f"[bold]Holdout[/bold] — {evaluation.spec_name}: accuracy {evaluation.accuracy:.4f}, "
        f"kappa {evaluation.kappa:.4f} (n={evaluation.n})"
    )
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Pitch type")
    table.add_column("Precision", justify="right")
    table.add_column("Recall", justify="right")
    table.add_column("Support", justify="right")
    for label in evaluation.labels:
        table.add_row(
            label,
            f"{evaluation.precision[label]:.3f}",
            f"{evaluation.recall[label]:.3f}",
            str(evaluation.support[label]),
        )
    console.print(table)


def print_importances(table_data: ImportanceTable) -> None:
    console.print(f"Feature importance for [bold]'{table_data.spec_name}'[/bold]")
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Feature")
    table.add_column("Importance", justify="right")
    for name, score in table_data.ranked():
        table.add_row(name, f"{score:.2f}")
    console.print(table)


def _node_label(node: TreeNode) -> str:
    if node.is_leaf:
        return f"[green]{node.label}[/green] (n={node.n_samples})"
    return f"{node.feature} <= {node.threshold:.3f} (n={node.n_samples})"


def print_tree(structure: TreeStructure) -> None:
    console.print(
        f"Tree {structure.tree_index} of [bold]'{structure.spec_name}'[/bold]: "
        f"{structure.n_nodes} nodes, {structure.n_leaves} leaves, depth {structure.depth}"
    )
    if not structure.nodes:
        return
    root = structure.root()
    rendered = Tree(_node_label(root))
    pending = [(root, rendered)]
    while pending:
        node, branch = pending.pop()
        for child_id in (node.left, node.right):
            if child_id is None:
                continue
            child = structure.node(child_id)
            pending.append((child, branch.add(_node_label(child))))
    console.print(rendered)


def print_audit(audit: CorrelationAudit) -> None:
    console.print(f"Correlation audit for [bold]{audit.feature}[/bold] (|r| > {audit.threshold:.2f} flagged)")
    table = Table(show_edge=False, pad_edge=False)
    table.add_column("Feature")
    table.add_column("r", justify="right")
    for name, corr in sorted(audit.correlations.items(), key=lambda item: -abs(item[1])):
        flagged = name in audit.strongly_correlated
        table.add_row(f"[yellow]{name}[/yellow]" if flagged else name, f"{corr:+.3f}")
    console.print(table)
