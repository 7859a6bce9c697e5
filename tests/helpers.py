"""Synthetic season tables and hand-built models shared across tests."""

import numpy as np
import pandas as pd

from hitter_aging.data.loader import add_centered_age, add_season_counts
from hitter_aging.domain.aging_model import FittedAgingModel, ModelSpec, random_intercept_spec
from hitter_aging.domain.spline_basis import SplineBasis
from hitter_aging.models.spline import fit_spline_basis


def make_seasons(
    n_players: int = 5,
    n_seasons: int = 10,
    peak: float = 28.0,
    curvature: float = 0.003,
    intercept_sd: float = 0.04,
    slope_sd: float = 0.0,
    noise: float = 0.005,
    seed: int = 7,
) -> pd.DataFrame:
    """Quadratic OPS-vs-age seasons with player-level offsets (and optional slopes)."""
    rng = np.random.default_rng(seed)
    offsets = rng.normal(0.0, intercept_sd, n_players)
    slopes = rng.normal(0.0, slope_sd, n_players) if slope_sd > 0 else np.zeros(n_players)

    rows = []
    for i in range(n_players):
        start_age = 20.5 + (i * 1.7) % 6.0
        for j in range(n_seasons):
            age = start_age + j
            ops = 0.800 - curvature * (age - peak) ** 2 + offsets[i] + slopes[i] * (age - peak)
            ops += rng.normal(0.0, noise)
            pa = int(rng.integers(300, 650))
            obp = ops * 0.45
            rows.append(
                {
                    "player_id": 100 + i,
                    "name": f"Player {i}",
                    "season": 2005 + j,
                    "age": age,
                    "pa": pa,
                    "ab": int(pa * 0.9),
                    "avg": ops * 0.35,
                    "obp": obp,
                    "slg": ops - obp,
                    "ops": ops,
                }
            )
    return add_centered_age(add_season_counts(pd.DataFrame(rows)))


def hump_basis() -> SplineBasis:
    """Cubic B-spline basis over ages 20-35 with no interior knots."""
    return fit_spline_basis([20.0, 35.0], df=3, kind="bs")


def make_model(
    coefficients: tuple[float, ...] = (0.3, 0.3, 0.0),
    intercept: float = 0.6,
    random_effects: dict[int, tuple[float, ...]] | None = None,
    spec: ModelSpec | None = None,
    basis: SplineBasis | None = None,
    mean_age: float = 27.5,
) -> FittedAgingModel:
    """Hand-built model; the default curve is 0.6 + 0.9 t (1 - t), t = (age - 20) / 15, peaking at 27.5."""
    basis = basis or hump_basis()
    spec = spec or random_intercept_spec(basis)
    fixed = {"intercept": intercept, **dict(zip(basis.term_names(), coefficients, strict=True))}
    effects = random_effects if random_effects is not None else {1: (0.05,), 2: (-0.05,)}
    k = len(spec.random_terms)
    return FittedAgingModel(
        spec=spec,
        basis=basis,
        fixed_effects=fixed,
        random_effects=effects,
        random_effects_cov=tuple(tuple(0.0025 if i == j else 0.0 for j in range(k)) for i in range(k)),
        residual_variance=0.0004,
        mean_age=mean_age,
        age_range=basis.boundary_knots,
        n_obs=20,
        n_groups=len(effects),
        log_likelihood=10.0,
        converged=True,
    )
