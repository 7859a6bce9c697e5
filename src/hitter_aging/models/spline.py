"""Spline bases of age for the aging-curve regressions.

Knots are placed once on the training ages and stored on a ``SplineBasis``;
``evaluate_basis`` always reuses those knots so fitted coefficients stay
valid for new ages. Column layout follows R's ``bs()``/``ns()`` with
``intercept = FALSE``: the first B-spline is dropped and the model intercept
carries the level.

Ages outside the boundary knots are extrapolated, not rejected. B-spline
bases continue the boundary polynomial piece, natural spline bases continue
linearly. Predictions there are a known risk and are flagged downstream.
"""

from collections.abc import Iterable

import numpy as np
import pandas as pd
from scipy.interpolate import BSpline

from hitter_aging.domain.spline_basis import SplineBasis

SPLINE_KINDS: frozenset[str] = frozenset({"bs", "ns"})
KNOT_PLACEMENTS: frozenset[str] = frozenset({"quantile", "uniform"})


def fit_spline_basis(
    ages: Iterable[float],
    df: int = 3,
    kind: str = "bs",
    degree: int = 3,
    knot_placement: str = "quantile",
) -> SplineBasis:
    """Place knots over the training ages.

    B-splines get ``df - degree`` interior knots, natural splines (always
    cubic) get ``df - 1``. Interior knots sit at evenly spaced quantiles of
    the ages, or evenly spaced across their range with ``"uniform"``.
    """
    if kind not in SPLINE_KINDS:
        raise ValueError(f"Unknown spline kind '{kind}', expected one of {sorted(SPLINE_KINDS)}")
    if knot_placement not in KNOT_PLACEMENTS:
        raise ValueError(f"Unknown knot placement '{knot_placement}'")

    x = np.asarray(list(ages), dtype=np.float64)
    x = x[~np.isnan(x)]
    if x.size == 0:
        raise ValueError("Cannot place spline knots without ages")
    lo, hi = float(x.min()), float(x.max())
    if hi <= lo:
        raise ValueError(f"Ages must span a range, got a single value {lo}")

    if kind == "ns":
        degree = 3
        n_interior = df - 1
    else:
        n_interior = df - degree
    if n_interior < 0 or df < 1:
        raise ValueError(f"df={df} is too small for a degree-{degree} '{kind}' basis")

    probs = np.linspace(0.0, 1.0, n_interior + 2)[1:-1]
    if knot_placement == "uniform":
        knots = lo + probs * (hi - lo)
    else:
        knots = np.quantile(x, probs)

    return SplineBasis(
        kind=kind,
        df=df,
        degree=degree,
        interior_knots=tuple(float(k) for k in knots),
        boundary_knots=(lo, hi),
    )


def _augmented_knots(basis: SplineBasis) -> np.ndarray:
    lo, hi = basis.boundary_knots
    order = basis.degree + 1
    return np.concatenate([np.full(order, lo), np.asarray(basis.interior_knots, dtype=np.float64), np.full(order, hi)])


def _bspline_design(basis: SplineBasis, x: np.ndarray, nu: int = 0) -> np.ndarray:
    """Full B-spline design (every basis function, no column dropped)."""
    t = _augmented_knots(basis)
    n_funcs = len(t) - basis.degree - 1
    design = np.empty((x.size, n_funcs), dtype=np.float64)
    for j in range(n_funcs):
        coefs = np.zeros(n_funcs)
        coefs[j] = 1.0
        spl = BSpline(t, coefs, basis.degree, extrapolate=True)
        design[:, j] = spl(x, nu=nu)
    return design


def _natural_projection(basis: SplineBasis) -> np.ndarray:
    """Null space of the zero-second-derivative constraints at both boundaries."""
    bounds = np.asarray(basis.boundary_knots, dtype=np.float64)
    const = _bspline_design(basis, bounds, nu=2)[:, 1:]
    q, _ = np.linalg.qr(const.T, mode="complete")
    return q[:, 2:]


def _natural_design(basis: SplineBasis, x: np.ndarray) -> np.ndarray:
    lo, hi = basis.boundary_knots
    design = np.zeros((x.size, len(_augmented_knots(basis)) - basis.degree - 1), dtype=np.float64)

    inside = (x >= lo) & (x <= hi)
    if inside.any():
        design[inside] = _bspline_design(basis, x[inside])

    for edge, mask in ((lo, x < lo), (hi, x > hi)):
        if not mask.any():
            continue
        at_edge = np.array([edge])
        value = _bspline_design(basis, at_edge)
        slope = _bspline_design(basis, at_edge, nu=1)
        design[mask] = value + slope * (x[mask] - edge)[:, None]

    return design[:, 1:] @ _natural_projection(basis)


def evaluate_basis(basis: SplineBasis, ages: Iterable[float] | float) -> np.ndarray:
    """Evaluate the basis at ``ages``; returns an ``(n, df)`` array."""
    x = np.atleast_1d(np.asarray(ages, dtype=np.float64))
    if basis.kind == "ns":
        return _natural_design(basis, x)
    return _bspline_design(basis, x)[:, 1:]


def add_spline_terms(frame: pd.DataFrame, basis: SplineBasis, age_column: str = "age") -> pd.DataFrame:
    """Return a copy of ``frame`` with one column per spline term."""
    values = evaluate_basis(basis, frame[age_column].to_numpy(dtype=np.float64))
    out = frame.copy()
    for j, name in enumerate(basis.term_names()):
        out[name] = values[:, j]
    return out
