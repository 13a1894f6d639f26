import logging
from pathlib import Path

import joblib

from pitch_classifier.models.protocols import TrainedModel

logger = logging.getLogger(__name__)


def save_model(model: TrainedModel, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model, target)
    logger.info("Saved %s model to %s", model.spec.name, target)
    return target


def load_model(path: str | Path) -> TrainedModel:
    result = joblib.load(Path(path))
    if not isinstance(result, TrainedModel):
        raise TypeError(f"{path} does not contain a TrainedModel (got {type(result).__name__})")
    return result
