"""Stratified holdout splitting and k-fold assignment."""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray

from pitch_classifier.domain.dataset import Dataset, FoldAssignment, Partition
from pitch_classifier.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)


def _frozen(values: NDArray[np.intp]) -> NDArray[np.intp]:
    values.setflags(write=False)
    return values


def _short_labels(counts: dict[str, int], minimum: int) -> dict[str, int]:
    return {label: count for label, count in counts.items() if count < minimum}


def min_records_per_label(holdout_fraction: float) -> int:
    """Smallest label count that can be stratified at ``holdout_fraction``."""
    return math.ceil(1.0 / holdout_fraction - 1e-9)


def split(dataset: Dataset, holdout_fraction: float, seed: int) -> Partition:
    """Split ``dataset`` into training and holdout subsets, stratified by label.

    For each label, ``round(n * holdout_fraction)`` of its records (halves
    round up) are drawn for the holdout with a generator seeded by ``seed``.
    Labels are visited in sorted order, so identical input and seed always
    produce the same partition.

    Raises:
        ValueError: ``holdout_fraction`` is not strictly between 0 and 1.
        InsufficientDataError: the dataset is empty or a label has fewer than
            ``1 / holdout_fraction`` records, or rounding would send all of a
            label's records to the holdout.
    """
    if not 0.0 < holdout_fraction < 1.0:
        raise ValueError(f"holdout_fraction must be between 0 and 1 (exclusive), got {holdout_fraction}")
    counts = dataset.label_counts()
    if not counts:
        raise InsufficientDataError("Cannot split an empty dataset")
    minimum = min_records_per_label(holdout_fraction)
    short = _short_labels(counts, minimum)
    if short:
        raise InsufficientDataError(
            f"Labels with fewer than {minimum} records cannot be stratified at "
            f"holdout_fraction={holdout_fraction}: {short}"
        )
    n_holdout = {label: math.floor(count * holdout_fraction + 0.5) for label, count in counts.items()}
    no_training = {label: count for label, count in counts.items() if count - n_holdout[label] < 1}
    if no_training:
        raise InsufficientDataError(
            f"Labels would keep no training records at holdout_fraction={holdout_fraction}: {no_training}"
        )

    rng = np.random.default_rng(seed)
    labels = dataset.labels
    holdout_parts: list[NDArray[np.intp]] = []
    for label in sorted(counts):
        members = np.flatnonzero(labels == label)
        holdout_parts.append(rng.permutation(members)[: n_holdout[label]])

    holdout_indices = np.sort(np.concatenate(holdout_parts)).astype(np.intp)
    in_training = np.ones(len(dataset), dtype=bool)
    in_training[holdout_indices] = False
    training_indices = np.flatnonzero(in_training).astype(np.intp)

    logger.info(
        "Split %d records: %d training, %d holdout (fraction=%.2f, seed=%d)",
        len(dataset),
        len(training_indices),
        len(holdout_indices),
        holdout_fraction,
        seed,
    )
    return Partition(
        training=dataset.subset(training_indices),
        holdout=dataset.subset(holdout_indices),
        training_indices=_frozen(training_indices),
        holdout_indices=_frozen(holdout_indices),
        seed=seed,
        holdout_fraction=holdout_fraction,
    )


def make_folds(training: Dataset, k: int, seed: int) -> FoldAssignment:
    """Assign each training record to one of ``k`` folds, stratified by label.

    Each label's records are shuffled and dealt round-robin into folds
    ``1..k``. The dealing position carries over from one label to the next,
    so overall fold sizes differ by at most one record.

    Raises:
        ValueError: ``k`` is less than 2.
        InsufficientDataError: a label has fewer than ``k`` records.
    """
    if k < 2:
        raise ValueError(f"k must be at least 2, got {k}")
    counts = training.label_counts()
    if not counts:
        raise InsufficientDataError("Cannot build folds from an empty dataset")
    short = _short_labels(counts, k)
    if short:
        raise InsufficientDataError(f"Labels with fewer than {k} records cannot be spread over {k} folds: {short}")

    rng = np.random.default_rng(seed)
    labels = training.labels
    assignments = np.zeros(len(training), dtype=np.intp)
    offset = 0
    for label in sorted(counts):
        members = rng.permutation(np.flatnonzero(labels == label))
        assignments[members] = (np.arange(len(members)) + offset) % k + 1
        offset = (offset + len(members)) % k

    folds = FoldAssignment(assignments=_frozen(assignments), k=k, seed=seed)
    logger.debug("Fold sizes: %s", folds.fold_sizes())
    return folds
