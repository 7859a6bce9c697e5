"""Peak-age search on the population aging curve.

The peak is the zero of the curve's first derivative where it crosses from
positive to negative. The bracket is validated (or found by a grid scan)
before ``brentq`` runs, so a missing peak is reported as an ``Err`` rather
than a spurious age.
"""

import logging
from collections.abc import Callable

import numpy as np
from scipy.optimize import brentq

from hitter_aging.domain.aging_model import FittedAgingModel, PeakAge
from hitter_aging.domain.errors import PeakNotFound
from hitter_aging.domain.result import Err, Ok, Result
from hitter_aging.models.predict import population_curve

logger = logging.getLogger(__name__)


def derivative(f: Callable[[float], float], age: float, step: float = 1e-3) -> float:
    """Central finite-difference first derivative."""
    return (f(age + step) - f(age - step)) / (2.0 * step)


def _scan_for_bracket(
    slope: Callable[[float], float],
    domain: tuple[float, float],
    seed: float,
    grid_step: float,
) -> tuple[float, float] | None:
    lo, hi = domain
    n_points = max(int(np.ceil((hi - lo) / grid_step)) + 1, 2)
    grid = np.linspace(lo, hi, n_points)
    slopes = [slope(float(a)) for a in grid]

    candidates: list[tuple[float, float]] = []
    for i in range(len(grid) - 1):
        if slopes[i] > 0.0 >= slopes[i + 1]:
            candidates.append((float(grid[i]), float(grid[i + 1])))
    if not candidates:
        return None
    return min(candidates, key=lambda b: abs((b[0] + b[1]) / 2.0 - seed))


def find_peak_age(
    model: FittedAgingModel,
    bracket: tuple[float, float] = (24.0, 36.0),
    seed: float = 30.0,
    step: float = 1e-3,
    search_domain: tuple[float, float] | None = None,
    grid_step: float = 0.5,
    xtol: float = 1e-6,
) -> Result[PeakAge, PeakNotFound]:
    """Locate the age of maximum predicted OPS.

    ``bracket`` is first clipped to the search domain (training age range by
    default) so the root finder never leaves the ages the model was fit on.
    The clipped bracket is used when the derivative is positive at its lower
    end and negative at its upper end. Otherwise the domain is scanned for
    the ``+ -> -`` sign change closest to ``seed``. A curve still rising (or
    falling) across the whole domain has no peak there.
    """
    curve = population_curve(model)

    def slope(age: float) -> float:
        return derivative(curve, age, step)

    domain = search_domain if search_domain is not None else model.age_range
    if bracket[0] >= bracket[1]:
        return Err(PeakNotFound(f"invalid bracket ({bracket[0]}, {bracket[1]})", model.spec.name, domain))
    lo, hi = max(bracket[0], domain[0]), min(bracket[1], domain[1])

    if lo >= hi or not (slope(lo) > 0.0 > slope(hi)):
        logger.debug("Bracket (%.2f, %.2f) has no sign change; scanning %.2f-%.2f", lo, hi, *domain)
        found = _scan_for_bracket(slope, domain, seed, grid_step)
        if found is None:
            return Err(
                PeakNotFound(
                    f"no positive-to-negative derivative sign change in [{domain[0]:.2f}, {domain[1]:.2f}]",
                    model.spec.name,
                    domain,
                )
            )
        lo, hi = found

    root, info = brentq(slope, lo, hi, xtol=xtol, full_output=True, disp=False)
    if not info.converged:
        return Err(PeakNotFound(f"root finder did not converge: {info.flag}", model.spec.name, domain))

    peak = PeakAge(
        age=float(root),
        pred_ops=curve(float(root)),
        bracket=(lo, hi),
        iterations=int(info.iterations),
        function_calls=int(info.function_calls),
    )
    logger.info("Peak age for '%s': %.2f (pred OPS %.3f)", model.spec.name, peak.age, peak.pred_ops)
    return Ok(peak)
