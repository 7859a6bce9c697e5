"""Population and per-player aging curves from a fitted model.

Both operations are pure: they rebuild the design at the requested ages from
the model's stored knots and never touch the model.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

import numpy as np
import pandas as pd

from hitter_aging.domain.aging_model import CENTERED_AGE, INTERCEPT, FittedAgingModel
from hitter_aging.models.spline import evaluate_basis

logger = logging.getLogger(__name__)


def _as_ages(ages: Iterable[float] | float) -> np.ndarray:
    return np.atleast_1d(np.asarray(ages, dtype=np.float64))


def _term_values(model: FittedAgingModel, x: np.ndarray) -> dict[str, np.ndarray]:
    values = dict(zip(model.basis.term_names(), evaluate_basis(model.basis, x).T, strict=True))
    values[INTERCEPT] = np.ones_like(x)
    values[CENTERED_AGE] = x - model.mean_age
    return values


def _fixed_prediction(model: FittedAgingModel, x: np.ndarray) -> np.ndarray:
    values = _term_values(model, x)
    pred = np.zeros_like(x)
    for term, coef in model.fixed_effects.items():
        pred += coef * values[term]
    return pred


def _extrapolation_mask(model: FittedAgingModel, x: np.ndarray) -> np.ndarray:
    mask = np.array([model.is_extrapolating(float(age)) for age in x], dtype=bool)
    if mask.any():
        lo, hi = model.age_range
        logger.warning(
            "%d of %d ages fall outside the training range [%.1f, %.1f] for '%s'; values are extrapolated",
            int(mask.sum()),
            x.size,
            lo,
            hi,
            model.spec.name,
        )
    return mask


def predict_population(ages: Iterable[float] | float, model: FittedAgingModel) -> pd.DataFrame:
    """Fixed-effects-only curve: the aging curve of an average player."""
    x = _as_ages(ages)
    return pd.DataFrame(
        {
            "age": x,
            "pred_ops": _fixed_prediction(model, x),
            "extrapolated": _extrapolation_mask(model, x),
        }
    )


def predict_player(ages: Iterable[float] | float, model: FittedAgingModel, player_id: Any) -> pd.DataFrame:
    """Fixed effects plus ``player_id``'s random effects."""
    if player_id not in model.random_effects:
        raise KeyError(f"No random effects for player {player_id!r} in model '{model.spec.name}'")
    x = _as_ages(ages)
    values = _term_values(model, x)
    pred = _fixed_prediction(model, x)
    for term, effect in zip(model.spec.random_terms, model.random_effects[player_id], strict=True):
        pred = pred + effect * values[term]
    return pd.DataFrame(
        {
            "player_id": player_id,
            "age": x,
            "pred_ops": pred,
            "extrapolated": _extrapolation_mask(model, x),
        }
    )


def population_curve(model: FittedAgingModel) -> Callable[[float], float]:
    """Scalar population curve for root finding; does not flag extrapolation."""

    def curve(age: float) -> float:
        return float(_fixed_prediction(model, np.array([age], dtype=np.float64))[0])

    return curve
