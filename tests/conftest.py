"""Shared pytest fixtures for test modules."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pandas as pd
import pytest

from pitch_classifier.data.preparer import prepare_dataset
from pitch_classifier.domain.dataset import Dataset
from pitch_classifier.domain.pitch import FEATURE_COLUMNS, LABEL_COLUMN

# Rough per-pitch-type centers for the ten features, in FEATURE_COLUMNS order.
_CENTERS: dict[str, tuple[float, ...]] = {
    "4-Seam Fastball": (94.5, -1.8, 5.9, -0.6, 1.4, 0.0, 2.6, 2300.0, 6.4, 210.0),
    "Slider": (85.5, -1.8, 5.8, 0.4, 0.1, 0.5, 1.9, 2450.0, 6.2, 90.0),
    "Changeup": (86.0, -1.8, 5.8, -1.2, 0.6, -0.2, 1.8, 1750.0, 6.3, 235.0),
    "Curveball": (78.5, -1.7, 6.0, 0.6, -1.0, 0.2, 1.7, 2600.0, 6.1, 40.0),
}
_SCALES = (1.2, 0.3, 0.2, 0.2, 0.2, 0.6, 0.6, 120.0, 0.3, 15.0)

FrameFactory = Callable[..., pd.DataFrame]


def _center_for(label: str, rng: np.random.Generator) -> np.ndarray:
    if label in _CENTERS:
        return np.asarray(_CENTERS[label])
    base = np.asarray(_CENTERS["4-Seam Fastball"])
    return base + rng.normal(0.0, 4.0, size=len(base)) * np.asarray(_SCALES)


def build_pitch_frame(counts: dict[str, int], seed: int = 0, noise: float = 1.0) -> pd.DataFrame:
    """Synthetic raw pitch records, grouped by label then shuffled."""
    rng = np.random.default_rng(seed)
    frames = []
    for label, n in counts.items():
        center = _center_for(label, rng)
        values = center + rng.normal(0.0, 1.0, size=(n, len(FEATURE_COLUMNS))) * np.asarray(_SCALES) * noise
        frame = pd.DataFrame(values, columns=list(FEATURE_COLUMNS))
        frame.insert(0, LABEL_COLUMN, label)
        frames.append(frame)
    combined = pd.concat(frames, ignore_index=True)
    return combined.sample(frac=1.0, random_state=seed).reset_index(drop=True)


@pytest.fixture
def make_frame() -> FrameFactory:
    return build_pitch_frame


@pytest.fixture
def make_dataset() -> Callable[..., Dataset]:
    def factory(counts: dict[str, int], seed: int = 0, noise: float = 1.0) -> Dataset:
        return prepare_dataset(build_pitch_frame(counts, seed=seed, noise=noise))

    return factory


@pytest.fixture
def pitch_dataset() -> Dataset:
    """240 well-separated pitches across four pitch types."""
    return prepare_dataset(
        build_pitch_frame({"4-Seam Fastball": 80, "Slider": 60, "Changeup": 50, "Curveball": 50}, seed=7)
    )


@pytest.fixture
def two_label_dataset() -> Dataset:
    """1,000 pitches: 600 fastballs and 400 sliders."""
    return prepare_dataset(build_pitch_frame({"4-Seam Fastball": 600, "Slider": 400}, seed=3))
