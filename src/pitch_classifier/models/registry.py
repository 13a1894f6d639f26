from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pitch_classifier.models.protocols import Classifier, ClassifierSpec

Builder = Callable[[dict[str, Any], int], Classifier]


@dataclass(frozen=True)
class ClassifierFamily:
    name: str
    description: str
    builder: Builder = field(repr=False)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    min_samples: int | Callable[[Mapping[str, Any]], int] = 2
    exposes_importance: bool = False
    has_trees: bool = False

    def minimum_samples(self, params: Mapping[str, Any]) -> int:
        if callable(self.min_samples):
            return self.min_samples(params)
        return self.min_samples

    def build(self, params: Mapping[str, Any], seed: int) -> Classifier:
        return self.builder(dict(params), seed)


_REGISTRY: dict[str, ClassifierFamily] = {}


def register(
    name: str,
    *,
    description: str,
    defaults: Mapping[str, Any] | None = None,
    min_samples: int | Callable[[Mapping[str, Any]], int] = 2,
    exposes_importance: bool = False,
    has_trees: bool = False,
) -> Callable[[Builder], Builder]:
    """Decorator that registers an estimator builder as a classifier family."""

    def decorator(builder: Builder) -> Builder:
        if name in _REGISTRY:
            raise ValueError(f"Classifier family '{name}' is already registered")
        _REGISTRY[name] = ClassifierFamily(
            name=name,
            description=description,
            builder=builder,
            defaults=dict(defaults or {}),
            min_samples=min_samples,
            exposes_importance=exposes_importance,
            has_trees=has_trees,
        )
        return builder

    return decorator


def get_family(name: str) -> ClassifierFamily:
    if name not in _REGISTRY:
        raise KeyError(f"'{name}': no classifier family registered with this name")
    return _REGISTRY[name]


def list_families() -> list[str]:
    """Return sorted list of registered family names."""
    return sorted(_REGISTRY)


def make_spec(
    family: str,
    *,
    seed: int,
    name: str | None = None,
    params: Mapping[str, Any] | None = None,
) -> ClassifierSpec:
    """Build a spec whose params are the family defaults updated with ``params``.

    Unknown parameter names raise ``ValueError`` so typos in configuration do
    not silently fall back to defaults.
    """
    fam = get_family(family)
    overrides = dict(params or {})
    unknown = sorted(set(overrides) - set(fam.defaults))
    if unknown:
        raise ValueError(f"Unknown parameter(s) for family '{family}': {', '.join(unknown)}")
    merged = {**fam.defaults, **overrides}
    return ClassifierSpec(
        name=name or family,
        family=family,
        params=tuple(sorted(merged.items())),
        seed=seed,
    )
