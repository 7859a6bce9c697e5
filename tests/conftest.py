"""Shared pytest fixtures for test modules."""

import pandas as pd
import pytest

from hitter_aging.domain.aging_model import FittedAgingModel, random_intercept_spec, random_slope_spec
from hitter_aging.models.mixed import fit_aging_model
from hitter_aging.models.spline import fit_spline_basis
from tests.helpers import make_seasons


@pytest.fixture(scope="session")
def synthetic_seasons() -> pd.DataFrame:
    """5 players x 10 seasons, quadratic in age with a true peak at 28."""
    return make_seasons()


@pytest.fixture(scope="session")
def slope_seasons() -> pd.DataFrame:
    """20 players x 10 seasons with player-specific aging rates."""
    return make_seasons(n_players=20, intercept_sd=0.05, slope_sd=0.006, noise=0.01, seed=11)


@pytest.fixture(scope="session")
def intercept_model(synthetic_seasons: pd.DataFrame) -> FittedAgingModel:
    basis = fit_spline_basis(synthetic_seasons["age"], df=3)
    return fit_aging_model(synthetic_seasons, random_intercept_spec(basis), basis)


@pytest.fixture(scope="session")
def slope_model(slope_seasons: pd.DataFrame) -> FittedAgingModel:
    basis = fit_spline_basis(slope_seasons["age"], df=3)
    return fit_aging_model(slope_seasons, random_slope_spec(basis), basis)
