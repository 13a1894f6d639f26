from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pitch_classifier.domain.pitch import FEATURE_COLUMNS, LABEL_COLUMN, PitchRecord

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


@dataclass(frozen=True, eq=False)
class Dataset:
    """An ordered, schema-checked table of labeled pitches.

    The backing frame is treated as read-only; ``subset`` returns a new
    Dataset instead of filtering in place. Build instances with
    ``pitch_classifier.data.preparer.prepare_dataset``.
    """

    frame: pd.DataFrame

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def feature_names(self) -> tuple[str, ...]:
        return FEATURE_COLUMNS

    @property
    def features(self) -> NDArray[np.float64]:
        return self.frame.loc[:, list(FEATURE_COLUMNS)].to_numpy(dtype=np.float64)

    @property
    def labels(self) -> NDArray[np.str_]:
        return self.frame[LABEL_COLUMN].astype(str).to_numpy()

    @property
    def distinct_labels(self) -> tuple[str, ...]:
        return tuple(sorted(set(self.labels.tolist())))

    def label_counts(self) -> dict[str, int]:
        """Return the number of records per label, for labels present in this dataset."""
        counts = self.frame[LABEL_COLUMN].astype(str).value_counts()
        return {str(label): int(count) for label, count in sorted(counts.items())}

    def subset(self, indices: Sequence[int] | NDArray[np.intp]) -> Dataset:
        positions = np.asarray(indices, dtype=np.intp)
        return Dataset(frame=self.frame.iloc[positions].reset_index(drop=True))

    def records(self) -> Iterator[PitchRecord]:
        for row in self.frame.itertuples(index=False):
            values = row._asdict()
            yield PitchRecord(
                label=str(values[LABEL_COLUMN]),
                **{name: float(values[name]) for name in FEATURE_COLUMNS},
            )


@dataclass(frozen=True, eq=False)
class Partition:
    """A disjoint stratified split of a Dataset.

    ``training_indices`` and ``holdout_indices`` are row positions in the
    source Dataset, in ascending order.
    """

    training: Dataset
    holdout: Dataset
    training_indices: NDArray[np.intp]
    holdout_indices: NDArray[np.intp]
    seed: int
    holdout_fraction: float


@dataclass(frozen=True, eq=False)
class FoldAssignment:
    """Fold id (1..k) for each training record, aligned to training row order."""

    assignments: NDArray[np.intp]
    k: int
    seed: int

    def __len__(self) -> int:
        return len(self.assignments)

    def fold_ids(self) -> list[int]:
        return list(range(1, self.k + 1))

    def test_indices(self, fold: int) -> NDArray[np.intp]:
        self._check_fold(fold)
        return np.flatnonzero(self.assignments == fold)

    def train_indices(self, fold: int) -> NDArray[np.intp]:
        self._check_fold(fold)
        return np.flatnonzero(self.assignments != fold)

    def fold_sizes(self) -> dict[int, int]:
        return {fold: int(np.count_nonzero(self.assignments == fold)) for fold in self.fold_ids()}

    def _check_fold(self, fold: int) -> None:
        if not 1 <= fold <= self.k:
            raise ValueError(f"Fold id must be between 1 and {self.k}, got {fold}")
