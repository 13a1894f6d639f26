from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, cast

from config import ConfigurationSet, config_from_dict, config_from_env, config_from_yaml

from pitch_classifier.models.protocols import ClassifierSpec
from pitch_classifier.models.registry import get_family, make_spec

logger = logging.getLogger(__name__)

DEFAULT_FAMILIES: tuple[str, ...] = ("lda", "cart", "knn", "svm", "random_forest")

_DEFAULTS: dict[str, object] = {
    "evaluation": {
        "seed": 42,
        "holdout_fraction": 0.2,
        "folds": 10,
        "families": list(DEFAULT_FAMILIES),
        "max_workers": 1,
        # 0 disables the per-spec time budget
        "budget_seconds": 0,
    },
    "classifiers": {
        "random_forest": {"n_estimators": 100},
    },
}


@dataclass(frozen=True)
class EvaluationSettings:
    seed: int = 42
    holdout_fraction: float = 0.2
    folds: int = 10
    families: tuple[str, ...] = DEFAULT_FAMILIES
    family_params: dict[str, dict[str, Any]] = field(default_factory=dict)
    max_workers: int = 1
    budget_seconds: float | None = None

    def specs(self) -> list[ClassifierSpec]:
        """One spec per family, all sharing the settings' seed."""
        return [make_spec(family, seed=self.seed, params=self.family_params.get(family)) for family in self.families]


def create_config(
    yaml_path: str = "pitch_classifier.yaml",
    env_prefix: str = "PITCHCLF",
    defaults: dict[str, object] | None = None,
    *,
    seed: int | None = None,
    holdout_fraction: float | None = None,
    folds: int | None = None,
    families: list[str] | None = None,
    max_workers: int | None = None,
    budget_seconds: float | None = None,
) -> ConfigurationSet:
    """Create a layered configuration.

    Priority (highest to lowest): explicit overrides > env vars > YAML file > defaults dict.

    Args:
        yaml_path: Path to the YAML config file. A missing file is ignored.
        env_prefix: Prefix for environment variables, e.g. ``PITCHCLF__EVALUATION__SEED``.
        defaults: Default configuration values.
        seed, holdout_fraction, folds, families, max_workers, budget_seconds:
            Overrides for the ``evaluation`` section, typically from CLI options.
    """
    if defaults is None:
        defaults = _DEFAULTS

    layers = [
        config_from_env(env_prefix, separator="__", lowercase_keys=True),
        config_from_yaml(yaml_path, read_from_file=True, ignore_missing_paths=True),
        config_from_dict(defaults),
    ]

    overrides = _build_overrides(
        seed=seed,
        holdout_fraction=holdout_fraction,
        folds=folds,
        families=families,
        max_workers=max_workers,
        budget_seconds=budget_seconds,
    )
    if overrides:
        layers.insert(0, config_from_dict(overrides))

    return ConfigurationSet(*layers)


def _build_overrides(**values: object) -> dict[str, object]:
    evaluation = {key: value for key, value in values.items() if value is not None}
    return {"evaluation": evaluation} if evaluation else {}


def _parse_families(raw: object) -> tuple[str, ...]:
    if isinstance(raw, str):
        return tuple(name.strip() for name in raw.split(",") if name.strip())
    return tuple(str(name) for name in cast("Iterable[object]", raw))


def _coerce(value: object, default: object) -> object:
    """Convert a (possibly string) config value to the type of the family default."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if isinstance(default, bool):
        return text.lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(text)
    if isinstance(default, float):
        return float(text)
    if default is None:
        if text.lower() in {"", "none", "null"}:
            return None
        for convert in (int, float):
            try:
                return convert(text)
            except ValueError:
                continue
    return text


def _section(cfg: ConfigurationSet, name: str) -> dict[str, Any]:
    try:
        section = cfg[name]
    except (KeyError, AttributeError):
        return {}
    if hasattr(section, "as_dict"):
        section = section.as_dict()
    return dict(cast("Mapping[str, Any]", section))


def _family_params(cfg: ConfigurationSet, family: str) -> dict[str, Any]:
    """Every key under ``classifiers.<family>``, coerced to the type of its default.

    Env keys arrive lowercased, so they are matched to defaults case-insensitively.
    Keys the family does not know are passed through for ``make_spec`` to reject.
    """
    defaults = get_family(family).defaults
    by_lower = {key.lower(): key for key in defaults}
    params: dict[str, Any] = {}
    for raw_key, value in _section(cfg, f"classifiers.{family}").items():
        key = raw_key if raw_key in defaults else by_lower.get(raw_key.lower(), raw_key)
        params[key] = _coerce(value, defaults.get(key))
    return params


def load_settings(cfg: ConfigurationSet | None = None) -> EvaluationSettings:
    if cfg is None:
        cfg = create_config()
    families = _parse_families(cfg["evaluation.families"])
    budget = float(str(cfg["evaluation.budget_seconds"]))
    settings = EvaluationSettings(
        seed=int(str(cfg["evaluation.seed"])),
        holdout_fraction=float(str(cfg["evaluation.holdout_fraction"])),
        folds=int(str(cfg["evaluation.folds"])),
        families=families,
        family_params={family: _family_params(cfg, family) for family in families},
        max_workers=int(str(cfg["evaluation.max_workers"])),
        budget_seconds=budget if budget > 0 else None,
    )
    # Rejects unknown family parameters before any data is read
    settings.specs()
    logger.debug("Loaded settings: %s", settings)
    return settings
