"""Save/load fitted aging models via joblib."""

from pathlib import Path

import joblib

from hitter_aging.domain.aging_model import FittedAgingModel


def save_model(model: FittedAgingModel, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model, path)


def load_model(path: Path) -> FittedAgingModel:
    if not path.exists():
        msg = f"Model file not found: {path}"
        raise FileNotFoundError(msg)
    model: FittedAgingModel = joblib.load(path)
    return model
