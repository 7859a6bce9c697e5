"""Model specification and fitted-model value objects for aging curves."""

from collections.abc import Mapping
from dataclasses import dataclass

from hitter_aging.domain.spline_basis import SplineBasis

INTERCEPT = "intercept"
CENTERED_AGE = "centered_age"


@dataclass(frozen=True)
class ModelSpec:
    """Explicit mixed-model structure.

    Fixed effects are ``intercept + fixed_terms``; random effects are
    ``random_terms`` grouped by ``group``.
    """

    name: str
    fixed_terms: tuple[str, ...]
    random_terms: tuple[str, ...] = (INTERCEPT,)
    response: str = "ops"
    group: str = "player_id"
    reml: bool = True


def random_intercept_spec(basis: SplineBasis, *, reml: bool = True) -> ModelSpec:
    return ModelSpec(
        name="random_intercept",
        fixed_terms=basis.term_names(),
        random_terms=(INTERCEPT,),
        reml=reml,
    )


def random_slope_spec(basis: SplineBasis, *, reml: bool = True) -> ModelSpec:
    # No fixed centered_age term: the spline terms carry the population trend,
    # so the mean of the per-player slopes is zero.
    return ModelSpec(
        name="random_slope",
        fixed_terms=basis.term_names(),
        random_terms=(INTERCEPT, CENTERED_AGE),
        reml=reml,
    )



def random_spline_spec(basis: SplineBasis, *, reml: bool = True) -> ModelSpec:
    """Each player gets an intercept and their own deviation on every spline term."""
    return ModelSpec(
        name="random_spline",
        fixed_terms=basis.term_names(),
        random_terms=(INTERCEPT, *basis.term_names()),
        reml=reml,
    )

@dataclass(frozen=True)
class FittedAgingModel:
    spec: ModelSpec
    basis: SplineBasis
    fixed_effects: Mapping[str, float]  # includes "intercept"
    random_effects: Mapping[int, tuple[float, ...]]  # aligned with spec.random_terms
    random_effects_cov: tuple[tuple[float, ...], ...]
    residual_variance: float
    mean_age: float
    age_range: tuple[float, float]
    n_obs: int
    n_groups: int
    log_likelihood: float
    converged: bool

    def is_extrapolating(self, age: float) -> bool:
        lo, hi = self.age_range
        return age < lo or age > hi


@dataclass(frozen=True)
class PeakAge:
    age: float
    pred_ops: float
    bracket: tuple[float, float]
    iterations: int
    function_calls: int
