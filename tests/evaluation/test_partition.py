from collections.abc import Callable

import numpy as np
import pytest

from pitch_classifier.domain.dataset import Dataset
from pitch_classifier.evaluation.partition import make_folds, min_records_per_label, split
from pitch_classifier.exceptions import InsufficientDataError


class TestMinRecordsPerLabel:
    @pytest.mark.parametrize(("fraction", "expected"), [(0.2, 5), (0.25, 4), (0.3, 4), (0.5, 2), (0.1, 10)])
    def test_values(self, fraction: float, expected: int) -> None:
        assert min_records_per_label(fraction) == expected


class TestSplit:
    def test_concrete_600_400_scenario(self, two_label_dataset: Dataset) -> None:
        partition = split(two_label_dataset, 0.2, seed=42)
        assert partition.holdout.label_counts() == {"4-Seam Fastball": 120, "Slider": 80}
        assert partition.training.label_counts() == {"4-Seam Fastball": 480, "Slider": 320}
        assert len(partition.training) == 800

    def test_disjoint_and_complete(self, pitch_dataset: Dataset) -> None:
        partition = split(pitch_dataset, 0.25, seed=1)
        training = set(partition.training_indices.tolist())
        holdout = set(partition.holdout_indices.tolist())
        assert training.isdisjoint(holdout)
        assert training | holdout == set(range(len(pitch_dataset)))

    def test_per_label_counts_conserved(self, pitch_dataset: Dataset) -> None:
        partition = split(pitch_dataset, 0.3, seed=5)
        original = pitch_dataset.label_counts()
        train_counts = partition.training.label_counts()
        holdout_counts = partition.holdout.label_counts()
        for label, count in original.items():
            assert train_counts.get(label, 0) + holdout_counts.get(label, 0) == count

    def test_proportions_preserved_within_two_points(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 337, "Slider": 151, "Changeup": 73, "Curveball": 19}, seed=11)
        partition = split(dataset, 0.2, seed=9)
        total = len(dataset)
        for subset in (partition.training, partition.holdout):
            counts = subset.label_counts()
            for label, count in dataset.label_counts().items():
                expected_pct = 100 * count / total
                actual_pct = 100 * counts[label] / len(subset)
                assert abs(actual_pct - expected_pct) <= 2.0

    def test_subsets_match_indices(self, pitch_dataset: Dataset) -> None:
        partition = split(pitch_dataset, 0.2, seed=3)
        expected = pitch_dataset.labels[partition.holdout_indices].tolist()
        assert partition.holdout.labels.tolist() == expected

    def test_same_seed_is_idempotent(self, pitch_dataset: Dataset) -> None:
        a = split(pitch_dataset, 0.2, seed=42)
        b = split(pitch_dataset, 0.2, seed=42)
        assert np.array_equal(a.holdout_indices, b.holdout_indices)
        assert np.array_equal(a.training_indices, b.training_indices)

    def test_different_seed_changes_selection(self, pitch_dataset: Dataset) -> None:
        a = split(pitch_dataset, 0.2, seed=1)
        b = split(pitch_dataset, 0.2, seed=2)
        assert not np.array_equal(a.holdout_indices, b.holdout_indices)

    def test_indices_are_read_only(self, pitch_dataset: Dataset) -> None:
        partition = split(pitch_dataset, 0.2, seed=42)
        with pytest.raises(ValueError):
            partition.holdout_indices[0] = 0

    def test_rare_label_raises(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 50, "Knuckleball": 4})
        with pytest.raises(InsufficientDataError, match="Knuckleball"):
            split(dataset, 0.2, seed=42)

    def test_label_at_minimum_is_accepted(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 50, "Knuckleball": 5})
        partition = split(dataset, 0.2, seed=42)
        assert partition.holdout.label_counts()["Knuckleball"] == 1

    def test_label_left_without_training_records_raises(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 10, "Knuckleball": 2})
        with pytest.raises(InsufficientDataError, match="no training records.*Knuckleball"):
            split(dataset, 0.75, seed=42)

    def test_large_fraction_keeps_one_training_record(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 10, "Knuckleball": 3})
        partition = split(dataset, 0.6, seed=42)
        assert partition.training.label_counts()["Knuckleball"] == 1
        assert partition.holdout.label_counts()["Knuckleball"] == 2

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1, 1.5])
    def test_invalid_fraction_raises(self, pitch_dataset: Dataset, fraction: float) -> None:
        with pytest.raises(ValueError, match="holdout_fraction"):
            split(pitch_dataset, fraction, seed=42)

    def test_empty_dataset_raises(self, pitch_dataset: Dataset) -> None:
        with pytest.raises(InsufficientDataError, match="empty"):
            split(pitch_dataset.subset([]), 0.2, seed=42)


class TestMakeFolds:
    def test_concrete_ten_fold_scenario(self, two_label_dataset: Dataset) -> None:
        training = split(two_label_dataset, 0.2, seed=42).training
        folds = make_folds(training, 10, seed=42)
        labels = training.labels
        for fold, size in folds.fold_sizes().items():
            assert 79 <= size <= 81
            fold_labels = labels[folds.test_indices(fold)]
            assert abs(int(np.count_nonzero(fold_labels == "4-Seam Fastball")) - 48) <= 5
            assert abs(int(np.count_nonzero(fold_labels == "Slider")) - 32) <= 5

    def test_every_record_in_exactly_one_fold(self, pitch_dataset: Dataset) -> None:
        folds = make_folds(pitch_dataset, 7, seed=3)
        assert len(folds) == len(pitch_dataset)
        assert set(folds.assignments.tolist()) == set(range(1, 8))
        seen = np.concatenate([folds.test_indices(f) for f in folds.fold_ids()])
        assert sorted(seen.tolist()) == list(range(len(pitch_dataset)))

    def test_fold_sizes_differ_by_at_most_one(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 33, "Slider": 17, "Changeup": 13})
        sizes = make_folds(dataset, 5, seed=0).fold_sizes().values()
        assert max(sizes) - min(sizes) <= 1

    def test_each_label_spread_evenly(self, pitch_dataset: Dataset) -> None:
        folds = make_folds(pitch_dataset, 10, seed=8)
        labels = pitch_dataset.labels
        for label in pitch_dataset.distinct_labels:
            per_fold = [int(np.count_nonzero(labels[folds.test_indices(f)] == label)) for f in folds.fold_ids()]
            assert max(per_fold) - min(per_fold) <= 1

    def test_training_complement_is_valid(self, pitch_dataset: Dataset) -> None:
        folds = make_folds(pitch_dataset, 5, seed=8)
        for fold in folds.fold_ids():
            held_in = pitch_dataset.subset(folds.train_indices(fold))
            assert held_in.distinct_labels == pitch_dataset.distinct_labels

    def test_same_seed_is_idempotent(self, pitch_dataset: Dataset) -> None:
        a = make_folds(pitch_dataset, 10, seed=42)
        b = make_folds(pitch_dataset, 10, seed=42)
        assert np.array_equal(a.assignments, b.assignments)

    def test_label_with_fewer_than_k_records_raises(self, make_dataset: Callable[..., Dataset]) -> None:
        dataset = make_dataset({"4-Seam Fastball": 40, "Knuckleball": 9})
        with pytest.raises(InsufficientDataError, match="Knuckleball"):
            make_folds(dataset, 10, seed=42)

    def test_k_below_two_raises(self, pitch_dataset: Dataset) -> None:
        with pytest.raises(ValueError, match="at least 2"):
            make_folds(pitch_dataset, 1, seed=42)
