from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Classifier(Protocol):
    """The subset of the scikit-learn estimator API the trainer relies on."""

    def fit(self, X: Any, y: Any) -> Any: ...
    def predict(self, X: Any) -> Any: ...


@dataclass(frozen=True)
class ClassifierSpec:
    """A classifier family plus its fixed configuration and seed.

    ``params`` is a sorted tuple of ``(name, value)`` pairs so specs stay
    hashable and can key comparison results.
    """

    name: str
    family: str
    params: tuple[tuple[str, Any], ...] = ()
    seed: int = 42

    def param_dict(self) -> dict[str, Any]:
        return dict(self.params)

    def sort_key(self) -> tuple[str, str, str, int]:
        return (self.name, self.family, repr(self.params), self.seed)


@dataclass(frozen=True, eq=False)
class TrainedModel:
    spec: ClassifierSpec
    estimator: Any = field(repr=False)
    classes: tuple[str, ...]
    feature_names: tuple[str, ...]
    n_samples: int

    @property
    def family(self) -> str:
        return self.spec.family

    def final_estimator(self) -> Any:
        """Return the fitted estimator, unwrapping a preprocessing pipeline."""
        steps = getattr(self.estimator, "steps", None)
        if steps:
            return steps[-1][1]
        return self.estimator
