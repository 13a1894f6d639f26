from pathlib import Path  # noqa: TC003 (Typer resolves it at runtime)
from typing import Annotated

import typer

from pitch_classifier.cli._logging import configure_logging
from pitch_classifier.cli._output import (
    console,
    print_audit,
    print_comparison_result,
    print_error,
    print_families,
    print_holdout,
    print_importances,
    print_label_frequencies,
    print_partition,
    print_tree,
)
from pitch_classifier.config import create_config, load_settings
from pitch_classifier.data.preparer import label_frequencies, prepare_dataset, read_records
from pitch_classifier.exceptions import PitchClassifierError
from pitch_classifier.inspection.importance import correlation_audit, importances
from pitch_classifier.inspection.trees import extract_tree
from pitch_classifier.models.registry import get_family, list_families
from pitch_classifier.models.serialization import load_model, save_model
from pitch_classifier.pipeline import run_pipeline

app = typer.Typer(name="pitchclf", help="Pitch type classifier — cross-validated model comparison CLI")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
) -> None:
    """Pitch type classifier — cross-validated model comparison CLI."""
    configure_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


_CsvArg = Annotated[Path, typer.Argument(help="CSV of raw pitch records", exists=True, dir_okay=False)]
_ModelPathArg = Annotated[Path, typer.Argument(help="Saved model (.joblib)", exists=True, dir_okay=False)]


@app.command()
def families() -> None:
    """List registered classifier families and their default parameters."""
    print_families([get_family(name) for name in list_families()])


@app.command()
def summarize(csv_path: _CsvArg) -> None:
    """Show the pitch type frequency table of a CSV export."""
    try:
        dataset = prepare_dataset(read_records(csv_path))
    except PitchClassifierError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_label_frequencies(label_frequencies(dataset))


@app.command()
def evaluate(
    csv_path: _CsvArg,
    config_path: Annotated[str, typer.Option("--config", help="YAML config file")] = "pitch_classifier.yaml",
    seed: Annotated[int | None, typer.Option("--seed", help="Seed for splitting, folds and models")] = None,
    holdout: Annotated[float | None, typer.Option("--holdout", help="Holdout fraction")] = None,
    folds: Annotated[int | None, typer.Option("--folds", help="Number of CV folds")] = None,
    family: Annotated[list[str] | None, typer.Option("--family", help="Classifier family (repeatable)")] = None,
    workers: Annotated[int | None, typer.Option("--workers", help="Worker processes for the sweep")] = None,
    budget: Annotated[float | None, typer.Option("--budget", help="Per-family time budget in seconds")] = None,
    save_model_path: Annotated[Path | None, typer.Option("--save-model", help="Write the selected model here")] = None,
) -> None:
    """Cross-validate classifier families, select the best, and inspect it."""
    cfg = create_config(
        yaml_path=config_path,
        seed=seed,
        holdout_fraction=holdout,
        folds=folds,
        families=family or None,
        max_workers=workers,
        budget_seconds=budget,
    )
    try:
        settings = load_settings(cfg)
        report = run_pipeline(read_records(csv_path), settings)
    except (PitchClassifierError, KeyError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_label_frequencies(report.frequencies)
    print_partition(report.partition)
    console.print()
    print_comparison_result(report.comparison)
    console.print()
    print_holdout(report.holdout)
    if report.importance is not None:
        console.print()
        print_importances(report.importance)
    if report.audit is not None:
        console.print()
        print_audit(report.audit)
    if report.tree is not None:
        console.print()
        print_tree(report.tree)
    if save_model_path is not None:
        save_model(report.comparison.best_model, save_model_path)
        console.print(f"Model saved to {save_model_path}")


@app.command()
def importance(model_path: _ModelPathArg) -> None:
    """Show feature importances of a saved model."""
    try:
        table = importances(load_model(model_path))
    except (PitchClassifierError, TypeError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_importances(table)


@app.command()
def tree(
    model_path: _ModelPathArg,
    index: Annotated[int | None, typer.Option("--index", help="Tree index (default: fewest nodes)")] = None,
) -> None:
    """Show one decision tree of a saved model."""
    try:
        structure = extract_tree(load_model(model_path), index)
    except (PitchClassifierError, IndexError, TypeError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_tree(structure)


@app.command()
def audit(
    csv_path: _CsvArg,
    feature: Annotated[str, typer.Option("--feature", help="Feature to audit")],
    threshold: Annotated[float, typer.Option("--threshold", help="Flag |r| above this")] = 0.70,
) -> None:
    """Correlate one feature against all others."""
    try:
        result = correlation_audit(prepare_dataset(read_records(csv_path)), feature, threshold)
    except (PitchClassifierError, KeyError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_audit(result)
