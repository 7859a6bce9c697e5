import logging
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from hitter_aging.domain.aging_model import FittedAgingModel, random_slope_spec, random_spline_spec
from hitter_aging.models.predict import population_curve, predict_player, predict_population
from hitter_aging.models.spline import evaluate_basis
from tests.helpers import hump_basis, make_model


class TestPredictPopulation:
    def test_matches_fixed_effects_times_basis(self, intercept_model: FittedAgingModel) -> None:
        ages = np.array([22.0, 25.5, 28.0, 31.0])
        fe = intercept_model.fixed_effects
        splines = evaluate_basis(intercept_model.basis, ages)
        expected = fe["intercept"] + splines @ np.array([fe["spline1"], fe["spline2"], fe["spline3"]])
        result = predict_population(ages, intercept_model)
        np.testing.assert_allclose(result["pred_ops"], expected)

    def test_deterministic(self, intercept_model: FittedAgingModel) -> None:
        first = predict_population([24.0, 30.0], intercept_model)
        second = predict_population([24.0, 30.0], intercept_model)
        pd.testing.assert_frame_equal(first, second)

    def test_scalar_age(self) -> None:
        result = predict_population(27.5, make_model())
        assert len(result) == 1
        assert result["pred_ops"].iloc[0] == pytest.approx(0.825)

    def test_hump_curve_values(self) -> None:
        result = predict_population([20.0, 35.0], make_model())
        np.testing.assert_allclose(result["pred_ops"], [0.6, 0.6], atol=1e-12)

    def test_flags_extrapolated_ages(self, caplog: pytest.LogCaptureFixture) -> None:
        model = make_model()
        with caplog.at_level(logging.WARNING, logger="hitter_aging.models.predict"):
            result = predict_population([18.0, 27.0, 40.0], model)
        assert list(result["extrapolated"]) == [True, False, True]
        assert "outside the training range" in caplog.text

    def test_no_warning_inside_range(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="hitter_aging.models.predict"):
            predict_population([21.0, 34.0], make_model())
        assert caplog.text == ""

    def test_does_not_mutate_model(self, intercept_model: FittedAgingModel) -> None:
        before = dict(intercept_model.fixed_effects)
        predict_population(np.linspace(15.0, 45.0, 7), intercept_model)
        assert dict(intercept_model.fixed_effects) == before


class TestPredictPlayer:
    def test_random_intercept_shifts_curve_uniformly(self, intercept_model: FittedAgingModel) -> None:
        ages = np.linspace(22.0, 34.0, 9)
        population = predict_population(ages, intercept_model)["pred_ops"].to_numpy()
        for player_id, (effect,) in intercept_model.random_effects.items():
            player = predict_player(ages, intercept_model, player_id)["pred_ops"].to_numpy()
            np.testing.assert_allclose(player - population, np.full(ages.size, effect), atol=1e-12)

    def test_random_slope_difference_is_linear_in_age(self) -> None:
        basis = hump_basis()
        model = make_model(
            spec=random_slope_spec(basis),
            random_effects={7: (0.02, -0.004)},
            mean_age=27.0,
        )
        ages = np.array([21.0, 27.0, 33.0])
        diff = (
            predict_player(ages, model, 7)["pred_ops"].to_numpy()
            - predict_population(ages, model)["pred_ops"].to_numpy()
        )
        np.testing.assert_allclose(diff, 0.02 - 0.004 * (ages - 27.0), atol=1e-12)

    def test_random_spline_difference_follows_basis(self) -> None:
        basis = hump_basis()
        model = make_model(spec=random_spline_spec(basis), random_effects={3: (0.01, 0.02, 0.0, -0.01)})
        ages = np.array([20.0, 24.0, 29.0, 35.0])
        diff = (
            predict_player(ages, model, 3)["pred_ops"].to_numpy()
            - predict_population(ages, model)["pred_ops"].to_numpy()
        )
        expected = 0.01 + evaluate_basis(basis, ages) @ np.array([0.02, 0.0, -0.01])
        np.testing.assert_allclose(diff, expected, atol=1e-12)

    def test_zero_random_effect_equals_population_exactly(self) -> None:
        model = make_model(random_effects={1: (0.0,)})
        ages = np.linspace(18.0, 40.0, 23)
        np.testing.assert_array_equal(
            predict_player(ages, model, 1)["pred_ops"].to_numpy(),
            predict_population(ages, model)["pred_ops"].to_numpy(),
        )

    def test_zeroed_fitted_effects_equal_population_exactly(self, intercept_model: FittedAgingModel) -> None:
        zeroed = replace(
            intercept_model,
            random_effects={pid: tuple(0.0 for _ in v) for pid, v in intercept_model.random_effects.items()},
        )
        ages = np.linspace(22.0, 34.0, 13)
        population = predict_population(ages, zeroed)["pred_ops"].to_numpy()
        for player_id in zeroed.random_effects:
            np.testing.assert_array_equal(predict_player(ages, zeroed, player_id)["pred_ops"].to_numpy(), population)

    def test_carries_player_id(self) -> None:
        result = predict_player([25.0, 26.0], make_model(), 1)
        assert list(result.columns) == ["player_id", "age", "pred_ops", "extrapolated"]
        assert (result["player_id"] == 1).all()

    def test_unknown_player_raises(self) -> None:
        with pytest.raises(KeyError, match="999"):
            predict_player([25.0], make_model(), 999)


class TestPopulationCurve:
    def test_scalar_callable_matches_population(self) -> None:
        model = make_model()
        curve = population_curve(model)
        assert curve(24.0) == pytest.approx(predict_population([24.0], model)["pred_ops"].iloc[0])
        assert isinstance(curve(24.0), float)

    def test_average_player_curve_is_population_curve(self, intercept_model: FittedAgingModel) -> None:
        ages = np.linspace(22.0, 34.0, 5)
        population = predict_population(ages, intercept_model)["pred_ops"].to_numpy()
        players = np.vstack(
            [
                predict_player(ages, intercept_model, pid)["pred_ops"].to_numpy()
                for pid in intercept_model.random_effects
            ]
        )
        np.testing.assert_allclose(players.mean(axis=0), population, atol=1e-3)
