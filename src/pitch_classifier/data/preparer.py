from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

from pitch_classifier.domain.dataset import Dataset
from pitch_classifier.domain.pitch import FEATURE_COLUMNS, LABEL_COLUMN, REQUIRED_COLUMNS
from pitch_classifier.exceptions import SchemaError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelFrequency:
    label: str
    count: int
    percent: float


def read_records(path: str | Path) -> pd.DataFrame:
    """Read raw pitch records from a CSV export."""
    frame = pd.read_csv(Path(path))
    logger.debug("Read %d raw records from %s", len(frame), path)
    return frame


def prepare_dataset(raw: pd.DataFrame | Iterable[Mapping[str, Any]]) -> Dataset:
    """Select the label and numeric features, drop incomplete records.

    Feature values that cannot be parsed as numbers and blank labels count
    as missing. Missing values are never imputed; the record is dropped.

    Raises:
        SchemaError: a required column is absent from ``raw``.
    """
    frame = raw if isinstance(raw, pd.DataFrame) else pd.DataFrame.from_records(list(raw))
    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        raise SchemaError(missing)

    selected = frame.loc[:, list(REQUIRED_COLUMNS)].copy()
    for col in FEATURE_COLUMNS:
        selected[col] = pd.to_numeric(selected[col], errors="coerce").astype("float64")
    labels = selected[LABEL_COLUMN].astype("string").str.strip().fillna("")
    selected[LABEL_COLUMN] = labels.mask(labels == "")

    cleaned = selected.dropna(how="any").reset_index(drop=True)
    cleaned[LABEL_COLUMN] = cleaned[LABEL_COLUMN].astype(str).astype("category")

    dropped = len(selected) - len(cleaned)
    if dropped:
        logger.info("Dropped %d of %d records with missing values", dropped, len(selected))
    logger.debug("Prepared dataset: %d records, %d labels", len(cleaned), cleaned[LABEL_COLUMN].nunique())
    return Dataset(frame=cleaned)


def label_frequencies(dataset: Dataset) -> list[LabelFrequency]:
    """Count and percentage of records per label, most frequent first."""
    counts = dataset.label_counts()
    total = sum(counts.values())
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        LabelFrequency(label=label, count=count, percent=(100.0 * count / total) if total else 0.0)
        for label, count in ordered
    ]
