"""Mixed-effects fits of a rate stat on spline-basis age terms.

The fixed part is ``intercept + spec.fixed_terms``; the random part is
``spec.random_terms`` grouped by ``spec.group``. Fitting uses statsmodels
``MixedLM`` and returns a plain ``FittedAgingModel`` so nothing downstream
depends on the statsmodels result object.
"""

import logging
import warnings
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm

from hitter_aging.data.loader import add_centered_age
from hitter_aging.domain.aging_model import CENTERED_AGE, INTERCEPT, FittedAgingModel, ModelSpec
from hitter_aging.domain.spline_basis import SplineBasis
from hitter_aging.exceptions import ModelConvergenceError, ModelSpecError
from hitter_aging.models.spline import add_spline_terms

logger = logging.getLogger(__name__)

# Non-spline terms the prediction engine knows how to rebuild at arbitrary ages.
_RANDOM_TERMS = frozenset({INTERCEPT, CENTERED_AGE})


def _validate(frame: pd.DataFrame, spec: ModelSpec, basis: SplineBasis) -> None:
    if frame.empty:
        raise ModelSpecError(f"Cannot fit '{spec.name}' on an empty table")
    for col in (spec.response, spec.group, "age"):
        if col not in frame.columns:
            raise ModelSpecError(f"'{spec.name}': column '{col}' not found")
    allowed_fixed = set(basis.term_names()) | {CENTERED_AGE}
    unknown_fixed = [t for t in spec.fixed_terms if t not in allowed_fixed]
    if unknown_fixed:
        raise ModelSpecError(f"'{spec.name}': unknown fixed terms {unknown_fixed}")
    if not spec.random_terms:
        raise ModelSpecError(f"'{spec.name}': at least one random term is required")
    allowed_random = _RANDOM_TERMS | set(basis.term_names())
    unknown_random = [t for t in spec.random_terms if t not in allowed_random]
    if unknown_random:
        raise ModelSpecError(f"'{spec.name}': unknown random terms {unknown_random}")


def _term_column(design: pd.DataFrame, term: str) -> pd.Series:
    if term == INTERCEPT:
        return pd.Series(1.0, index=design.index, name=INTERCEPT)
    return design[term].astype(np.float64).rename(term)


def _group_key(key: Any) -> Any:
    return int(key) if isinstance(key, (int, np.integer)) else key


def _diagnostic(caught: list[warnings.WarningMessage], fallback: str) -> str:
    messages = [str(w.message) for w in caught]
    return "; ".join(messages) if messages else fallback


def fit_aging_model(
    frame: pd.DataFrame,
    spec: ModelSpec,
    basis: SplineBasis,
    *,
    method: str | list[str] | None = None,
    maxiter: int | None = None,
) -> FittedAgingModel:
    """Fit ``spec`` on ``frame`` using the already-placed ``basis`` knots.

    Raises ``ModelConvergenceError`` when the optimizer does not converge
    instead of returning degenerate estimates.
    """
    _validate(frame, spec, basis)
    if CENTERED_AGE not in frame.columns:
        frame = add_centered_age(frame)

    design = add_spline_terms(frame, basis).reset_index(drop=True)
    fixed_names = (INTERCEPT, *spec.fixed_terms)
    exog = pd.concat([_term_column(design, t) for t in fixed_names], axis=1)
    exog_re = pd.concat([_term_column(design, t) for t in spec.random_terms], axis=1)
    endog = design[spec.response].astype(np.float64)

    model = sm.MixedLM(endog, exog, groups=design[spec.group], exog_re=exog_re)
    fit_kwargs: dict[str, Any] = {"reml": spec.reml}
    if method is not None:
        fit_kwargs["method"] = method
    if maxiter is not None:
        fit_kwargs["maxiter"] = maxiter

    logger.debug(
        "Fitting '%s': %d rows, %d groups, fixed=%s random=%s",
        spec.name,
        len(design),
        design[spec.group].nunique(),
        fixed_names,
        spec.random_terms,
    )
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = model.fit(**fit_kwargs)
        except np.linalg.LinAlgError as e:
            raise ModelConvergenceError(spec.name, f"linear algebra failure: {e}") from e

    for w in caught:
        logger.warning("'%s' fit warning: %s", spec.name, w.message)
    if not result.converged:
        raise ModelConvergenceError(spec.name, _diagnostic(caught, "optimizer reported no convergence"))

    fe = np.asarray(result.fe_params, dtype=np.float64)
    random_effects = {
        _group_key(key): tuple(float(v) for v in np.asarray(values, dtype=np.float64))
        for key, values in result.random_effects.items()
    }
    cov_re = np.atleast_2d(np.asarray(result.cov_re, dtype=np.float64))
    ages = design["age"].astype(np.float64)

    fitted = FittedAgingModel(
        spec=spec,
        basis=basis,
        fixed_effects=dict(zip(fixed_names, (float(b) for b in fe), strict=True)),
        random_effects=random_effects,
        random_effects_cov=tuple(tuple(float(v) for v in row) for row in cov_re),
        residual_variance=float(result.scale),
        mean_age=float((ages - design[CENTERED_AGE]).mean()),
        age_range=(float(ages.min()), float(ages.max())),
        n_obs=len(design),
        n_groups=len(random_effects),
        log_likelihood=float(result.llf),
        converged=bool(result.converged),
    )
    logger.info(
        "Fit '%s': %d obs, %d players, residual sd %.4f",
        spec.name,
        fitted.n_obs,
        fitted.n_groups,
        fitted.residual_variance**0.5,
    )
    return fitted
