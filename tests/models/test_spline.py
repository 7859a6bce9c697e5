import numpy as np
import pandas as pd
import pytest

from hitter_aging.models.spline import add_spline_terms, evaluate_basis, fit_spline_basis

_AGES = np.linspace(20.0, 38.0, 60)


class TestFitSplineBasis:
    def test_cubic_bs_df3_has_no_interior_knots(self) -> None:
        basis = fit_spline_basis(_AGES, df=3)
        assert basis.interior_knots == ()
        assert basis.boundary_knots == (20.0, 38.0)
        assert basis.term_names() == ("spline1", "spline2", "spline3")

    def test_bs_interior_knots_at_quantiles(self) -> None:
        ages = np.array([20.0, 21.0, 22.0, 25.0, 30.0, 31.0, 33.0, 38.0])
        basis = fit_spline_basis(ages, df=5)
        expected = np.quantile(ages, [1 / 3, 2 / 3])
        assert basis.interior_knots == pytest.approx(tuple(expected))

    def test_uniform_knot_placement(self) -> None:
        ages = np.array([20.0, 21.0, 22.0, 23.0, 38.0])
        basis = fit_spline_basis(ages, df=5, knot_placement="uniform")
        assert basis.interior_knots == pytest.approx((26.0, 32.0))

    def test_ns_uses_df_minus_one_interior_knots(self) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind="ns")
        assert len(basis.interior_knots) == 3
        assert basis.degree == 3

    def test_ignores_missing_ages(self) -> None:
        basis = fit_spline_basis([20.0, float("nan"), 30.0], df=3)
        assert basis.boundary_knots == (20.0, 30.0)

    def test_df_too_small_raises(self) -> None:
        with pytest.raises(ValueError, match="too small"):
            fit_spline_basis(_AGES, df=2, kind="bs")

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown spline kind"):
            fit_spline_basis(_AGES, kind="cr")

    def test_single_age_raises(self) -> None:
        with pytest.raises(ValueError, match="span a range"):
            fit_spline_basis([27.0, 27.0])

    def test_empty_ages_raises(self) -> None:
        with pytest.raises(ValueError, match="without ages"):
            fit_spline_basis([])


class TestEvaluateBasis:
    @pytest.mark.parametrize("kind", ["bs", "ns"])
    def test_shape_matches_df(self, kind: str) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind=kind)
        assert evaluate_basis(basis, _AGES).shape == (60, 4)

    @pytest.mark.parametrize("kind", ["bs", "ns"])
    def test_same_age_gives_same_row(self, kind: str) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind=kind)
        first = evaluate_basis(basis, 29.3)
        second = evaluate_basis(basis, [22.0, 29.3, 35.0])[1]
        np.testing.assert_allclose(first[0], second, rtol=1e-12, atol=1e-15)
        np.testing.assert_array_equal(first, evaluate_basis(basis, 29.3))

    @pytest.mark.parametrize("kind", ["bs", "ns"])
    def test_zero_at_lower_boundary(self, kind: str) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind=kind)
        np.testing.assert_allclose(evaluate_basis(basis, 20.0), 0.0, atol=1e-12)

    def test_bs_spans_quadratics(self) -> None:
        basis = fit_spline_basis(_AGES, df=3)
        design = np.column_stack([np.ones_like(_AGES), evaluate_basis(basis, _AGES)])
        target = 0.8 - 0.003 * (_AGES - 28.0) ** 2
        coefs, *_ = np.linalg.lstsq(design, target, rcond=None)
        np.testing.assert_allclose(design @ coefs, target, atol=1e-10)

    def test_ns_spans_linear_functions(self) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind="ns")
        design = np.column_stack([np.ones_like(_AGES), evaluate_basis(basis, _AGES)])
        target = 0.5 + 0.01 * _AGES
        coefs, *_ = np.linalg.lstsq(design, target, rcond=None)
        np.testing.assert_allclose(design @ coefs, target, atol=1e-10)

    def test_ns_extrapolates_linearly(self) -> None:
        basis = fit_spline_basis(_AGES, df=4, kind="ns")
        beyond = evaluate_basis(basis, [39.0, 40.0, 41.0, 42.0])
        np.testing.assert_allclose(np.diff(beyond, n=2, axis=0), 0.0, atol=1e-10)
        below = evaluate_basis(basis, [16.0, 17.0, 18.0, 19.0])
        np.testing.assert_allclose(np.diff(below, n=2, axis=0), 0.0, atol=1e-10)

    def test_bs_extrapolates_without_error(self) -> None:
        basis = fit_spline_basis(_AGES, df=3)
        values = evaluate_basis(basis, [18.0, 42.0])
        assert np.all(np.isfinite(values))

    def test_knots_not_refit_from_new_ages(self) -> None:
        basis = fit_spline_basis(_AGES, df=5)
        narrow = np.linspace(25.0, 30.0, 11)
        refit = fit_spline_basis(narrow, df=5)
        assert not np.allclose(evaluate_basis(basis, narrow), evaluate_basis(refit, narrow))


class TestAddSplineTerms:
    def test_adds_columns_without_mutating(self) -> None:
        frame = pd.DataFrame({"age": [22.0, 27.0, 33.0], "ops": [0.7, 0.8, 0.75]})
        basis = fit_spline_basis(frame["age"], df=3)
        out = add_spline_terms(frame, basis)
        assert list(out.columns) == ["age", "ops", "spline1", "spline2", "spline3"]
        assert "spline1" not in frame.columns
        expected = evaluate_basis(basis, frame["age"])
        np.testing.assert_allclose(out[["spline1", "spline2", "spline3"]].to_numpy(), expected)
